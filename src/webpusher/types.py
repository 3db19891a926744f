"""Type definitions for webpusher."""

from enum import Enum


class ContentEncoding(Enum):
    """Payload encryption scheme used for a push message."""
    AES128GCM = "aes128gcm"  # RFC 8291 / RFC 8188
    AESGCM = "aesgcm"  # legacy draft, still accepted by some push services


# Key sizes
PUBLIC_KEY_SIZE = 65  # uncompressed P-256 point
PRIVATE_KEY_SIZE = 32
SHARED_SECRET_SIZE = 32
AUTH_SECRET_SIZE = 16
SALT_SIZE = 16

# AEAD
CONTENT_KEY_SIZE = 16
NONCE_SIZE = 12
TAG_SIZE = 16

# aes128gcm body header: salt (16) + rs (4) + idlen (1) + keyid (65)
RECORD_SIZE_LENGTH = 4
BODY_HEADER_SIZE = SALT_SIZE + RECORD_SIZE_LENGTH + 1 + PUBLIC_KEY_SIZE
DEFAULT_RECORD_SIZE = 4096
LAST_RECORD_DELIMITER = b"\x02"

# aesgcm pads with a 2-byte length prefix
AESGCM_PAD_LENGTH_SIZE = 2
MAX_AESGCM_PADDING = 0xFFFF

# Push services must accept bodies of at least this size
MAX_BODY_SIZE = 4096

# Key derivation info strings
WEBPUSH_INFO = b"WebPush: info\x00"
AES128GCM_INFO = b"Content-Encoding: aes128gcm\x00"
AESGCM_INFO = b"Content-Encoding: aesgcm\x00"
NONCE_INFO = b"Content-Encoding: nonce\x00"
AUTH_INFO = b"Content-Encoding: auth\x00"
P256_CONTEXT_LABEL = b"P-256\x00"

# VAPID
VAPID_MAX_EXPIRY = 24 * 60 * 60
VAPID_DEFAULT_EXPIRY = 12 * 60 * 60
ES256_SIGNATURE_SIZE = 64

# RFC 8030 headers
DEFAULT_TTL = 24 * 60 * 60
URGENCY_VALUES = ("very-low", "low", "normal", "high")
MAX_TOPIC_LENGTH = 32


# Exception types
class WebPushError(Exception):
    """Base exception for webpusher errors."""
    pass


class DecodeError(WebPushError):
    """Text is not valid base64 in any accepted variant."""
    pass


class InvalidKeyError(WebPushError):
    """Key has the wrong length or is not a point on P-256."""
    pass


class InvalidSubscriptionError(WebPushError):
    """Subscription record is missing its endpoint or keys."""
    pass


class KeyGenerationError(WebPushError):
    """Random source failed while generating key material."""
    pass


class SigningError(WebPushError):
    """VAPID token could not be signed."""
    pass


class EncryptionError(WebPushError):
    """Encryption failed."""
    pass


class PayloadTooLargeError(EncryptionError):
    """Encrypted body would exceed the push service limit."""

    def __init__(self, size: int, max_size: int) -> None:
        self.size = size
        self.max_size = max_size
        super().__init__(f"Encrypted body too large: {size} bytes (max {max_size})")


class DecryptionError(WebPushError):
    """Decryption failed."""
    pass


class AssemblyError(WebPushError):
    """Request inputs are structurally inconsistent."""
    pass
