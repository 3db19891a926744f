"""
webpusher - Encrypted Web Push notifications

Python implementation of Web Push message encryption (RFC 8291, P-256 ECDH +
HKDF + AES-128-GCM) and VAPID request signing (RFC 8292).
"""

import logging

from .codec import Base64Variant, DecodeResult, decode, encode, try_decode
from .keys import (
    generate_ephemeral_keypair,
    derive_shared_secret,
    public_key_to_bytes,
    public_key_from_bytes,
)
from .derivation import derive_keys, derive_aes128gcm_keys, derive_aesgcm_keys
from .crypto import encrypt_message, decrypt_message, encrypt_payload, decrypt_payload
from .envelope import encode_body, decode_body, EnvelopeError
from .models import (
    Subscription,
    SubscriptionKey,
    DerivedKeys,
    EncryptedMessage,
    VapidKeyPair,
    VapidClaims,
    VapidToken,
    PushRequest,
)
from .vapid import (
    generate_vapid_keypair,
    generate_vapid,
    load_vapid_private_key,
    audience_for,
    sign_vapid_token,
    verify_vapid_token,
    token_claims,
    VapidSigner,
)
from .request import build_push_request
from .sender import PushConfig, PushSender, BatchResult
from .types import (
    ContentEncoding,
    MAX_BODY_SIZE,
    DEFAULT_TTL,
    VAPID_MAX_EXPIRY,
    WebPushError,
    DecodeError,
    InvalidKeyError,
    InvalidSubscriptionError,
    KeyGenerationError,
    SigningError,
    EncryptionError,
    PayloadTooLargeError,
    DecryptionError,
    AssemblyError,
)

logging.getLogger(__name__).addHandler(logging.NullHandler())

__version__ = "0.1.0"

__all__ = [
    # Codec
    "Base64Variant",
    "DecodeResult",
    "decode",
    "encode",
    "try_decode",
    # Keys
    "generate_ephemeral_keypair",
    "derive_shared_secret",
    "public_key_to_bytes",
    "public_key_from_bytes",
    # Derivation
    "derive_keys",
    "derive_aes128gcm_keys",
    "derive_aesgcm_keys",
    # Crypto
    "encrypt_message",
    "decrypt_message",
    "encrypt_payload",
    "decrypt_payload",
    # Envelope
    "encode_body",
    "decode_body",
    "EnvelopeError",
    # Models
    "Subscription",
    "SubscriptionKey",
    "DerivedKeys",
    "EncryptedMessage",
    "VapidKeyPair",
    "VapidClaims",
    "VapidToken",
    "PushRequest",
    # VAPID
    "generate_vapid_keypair",
    "generate_vapid",
    "load_vapid_private_key",
    "audience_for",
    "sign_vapid_token",
    "verify_vapid_token",
    "token_claims",
    "VapidSigner",
    # Request
    "build_push_request",
    # Sender
    "PushConfig",
    "PushSender",
    "BatchResult",
    # Constants
    "ContentEncoding",
    "MAX_BODY_SIZE",
    "DEFAULT_TTL",
    "VAPID_MAX_EXPIRY",
    # Errors
    "WebPushError",
    "DecodeError",
    "InvalidKeyError",
    "InvalidSubscriptionError",
    "KeyGenerationError",
    "SigningError",
    "EncryptionError",
    "PayloadTooLargeError",
    "DecryptionError",
    "AssemblyError",
]
