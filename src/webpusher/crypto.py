"""Encryption and decryption for Web Push messages."""

from typing import Optional, Union

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives.asymmetric import ec
from cryptography.hazmat.primitives.ciphers.aead import AESGCM

from .derivation import derive_keys
from .keys import (
    RandomSource,
    derive_shared_secret,
    generate_ephemeral_keypair,
    public_key_from_bytes,
    public_key_to_bytes,
    random_bytes,
)
from .models import DerivedKeys, EncryptedMessage, SubscriptionKey
from .types import (
    AESGCM_PAD_LENGTH_SIZE,
    BODY_HEADER_SIZE,
    DEFAULT_RECORD_SIZE,
    LAST_RECORD_DELIMITER,
    MAX_AESGCM_PADDING,
    MAX_BODY_SIZE,
    SALT_SIZE,
    TAG_SIZE,
    ContentEncoding,
    DecryptionError,
    EncryptionError,
    InvalidKeyError,
    PayloadTooLargeError,
)


def pad_plaintext(
    plaintext: bytes,
    content_encoding: ContentEncoding = ContentEncoding.AES128GCM,
    padding: int = 0,
) -> bytes:
    """
    Frame a plaintext into a single record.

    aes128gcm: plaintext || 0x02 || padding zeros
    aesgcm: padding length (2 bytes, big-endian) || padding zeros || plaintext

    Args:
        plaintext: Payload bytes
        content_encoding: Encryption scheme
        padding: Number of zero bytes to add

    Returns:
        AEAD input for the record
    """
    if padding < 0:
        raise ValueError(f"Padding must not be negative, got {padding}")

    content_encoding = ContentEncoding(content_encoding)
    if content_encoding is ContentEncoding.AESGCM:
        if padding > MAX_AESGCM_PADDING:
            raise ValueError(f"Padding must be at most {MAX_AESGCM_PADDING}, got {padding}")
        return padding.to_bytes(AESGCM_PAD_LENGTH_SIZE, byteorder="big") + bytes(padding) + plaintext

    return plaintext + LAST_RECORD_DELIMITER + bytes(padding)


def unpad_plaintext(
    record: bytes,
    content_encoding: ContentEncoding = ContentEncoding.AES128GCM,
) -> bytes:
    """
    Strip the framing added by pad_plaintext.

    Raises:
        DecryptionError: If the framing is malformed
    """
    content_encoding = ContentEncoding(content_encoding)
    if content_encoding is ContentEncoding.AESGCM:
        if len(record) < AESGCM_PAD_LENGTH_SIZE:
            raise DecryptionError("Record too short for padding length")
        padding = int.from_bytes(record[:AESGCM_PAD_LENGTH_SIZE], byteorder="big")
        end = AESGCM_PAD_LENGTH_SIZE + padding
        if end > len(record) or any(record[AESGCM_PAD_LENGTH_SIZE:end]):
            raise DecryptionError("Invalid padding")
        return record[end:]

    stripped = record.rstrip(b"\x00")
    if not stripped.endswith(LAST_RECORD_DELIMITER):
        raise DecryptionError("Missing last-record delimiter")
    return stripped[:-1]


def encrypted_body_size(
    plaintext_size: int,
    content_encoding: ContentEncoding = ContentEncoding.AES128GCM,
    padding: int = 0,
) -> int:
    """Size of the HTTP body a payload of the given size encrypts to."""
    content_encoding = ContentEncoding(content_encoding)
    if content_encoding is ContentEncoding.AESGCM:
        return AESGCM_PAD_LENGTH_SIZE + padding + plaintext_size + TAG_SIZE
    return BODY_HEADER_SIZE + plaintext_size + len(LAST_RECORD_DELIMITER) + padding + TAG_SIZE


def encrypt_payload(
    plaintext: bytes,
    derived_keys: DerivedKeys,
    content_encoding: ContentEncoding = ContentEncoding.AES128GCM,
    padding: int = 0,
    max_body_size: int = MAX_BODY_SIZE,
) -> bytes:
    """
    Frame and seal a payload with AES-128-GCM.

    Args:
        plaintext: Payload bytes
        derived_keys: Content-encryption key and nonce
        content_encoding: Encryption scheme
        padding: Number of zero padding bytes
        max_body_size: Largest body the push service accepts

    Returns:
        Ciphertext including the 16-byte tag

    Raises:
        PayloadTooLargeError: If the body would exceed max_body_size
    """
    body_size = encrypted_body_size(len(plaintext), content_encoding, padding)
    if body_size > max_body_size:
        raise PayloadTooLargeError(body_size, max_body_size)

    record = pad_plaintext(plaintext, content_encoding, padding)

    cipher = AESGCM(derived_keys.content_encryption_key)
    return cipher.encrypt(derived_keys.nonce, record, None)


def decrypt_payload(
    ciphertext: bytes,
    derived_keys: DerivedKeys,
    content_encoding: ContentEncoding = ContentEncoding.AES128GCM,
) -> bytes:
    """
    Open and unframe a record sealed by encrypt_payload.

    Raises:
        DecryptionError: If authentication fails or the framing is invalid
    """
    if len(ciphertext) < TAG_SIZE:
        raise DecryptionError(f"Ciphertext too short: {len(ciphertext)} bytes")

    cipher = AESGCM(derived_keys.content_encryption_key)
    try:
        record = cipher.decrypt(derived_keys.nonce, ciphertext, None)
    except InvalidTag as e:
        raise DecryptionError("Authentication tag mismatch") from e

    return unpad_plaintext(record, content_encoding)


def encrypt_message(
    plaintext: Union[str, bytes],
    subscription_key: SubscriptionKey,
    content_encoding: ContentEncoding = ContentEncoding.AES128GCM,
    padding: int = 0,
    max_body_size: int = MAX_BODY_SIZE,
    random_source: Optional[RandomSource] = None,
) -> EncryptedMessage:
    """
    Encrypt a push message for a subscriber.

    Args:
        plaintext: Payload (str is UTF-8 encoded)
        subscription_key: Subscriber's p256dh and auth secret
        content_encoding: Encryption scheme
        padding: Number of zero padding bytes
        max_body_size: Largest body the push service accepts
        random_source: Source for the salt and ephemeral key (default: os.urandom)

    Returns:
        EncryptedMessage holding the salt, ephemeral public key and ciphertext

    Raises:
        InvalidKeyError: If the subscriber key is not a valid P-256 point
        PayloadTooLargeError: If the body would exceed max_body_size
        EncryptionError: If the content encoding is unknown or sealing fails
    """
    try:
        content_encoding = ContentEncoding(content_encoding)
    except ValueError as e:
        raise EncryptionError(f"Unknown content encoding: {content_encoding!r}") from e

    message_bytes = plaintext.encode("utf-8") if isinstance(plaintext, str) else bytes(plaintext)

    # Validate the subscriber key before drawing any randomness
    ua_public_key = public_key_from_bytes(subscription_key.p256dh)

    body_size = encrypted_body_size(len(message_bytes), content_encoding, padding)
    if body_size > max_body_size:
        raise PayloadTooLargeError(body_size, max_body_size)

    salt = random_bytes(SALT_SIZE, random_source)
    ephemeral_private, ephemeral_public = generate_ephemeral_keypair(random_source)
    as_public_bytes = public_key_to_bytes(ephemeral_public)

    shared_secret = derive_shared_secret(ephemeral_private, ua_public_key)

    derived = derive_keys(
        content_encoding,
        shared_secret,
        subscription_key.auth,
        salt,
        subscription_key.p256dh,
        as_public_bytes,
    )

    try:
        ciphertext = encrypt_payload(message_bytes, derived, content_encoding, padding, max_body_size)
    except (ValueError, OverflowError) as e:
        raise EncryptionError(f"Encryption failed: {e}") from e

    return EncryptedMessage(
        salt=salt,
        ephemeral_public_key=as_public_bytes,
        ciphertext=ciphertext,
        content_encoding=content_encoding,
        record_size=max(DEFAULT_RECORD_SIZE, len(ciphertext)),
    )


def decrypt_message(
    message: EncryptedMessage,
    ua_private_key: ec.EllipticCurvePrivateKey,
    auth_secret: bytes,
) -> bytes:
    """
    Decrypt a push message as the subscriber.

    Args:
        message: The encrypted message
        ua_private_key: Subscriber's P-256 private key
        auth_secret: Subscriber's auth secret (16 bytes)

    Returns:
        Original payload bytes

    Raises:
        DecryptionError: If the message cannot be decrypted
    """
    ua_public_bytes = public_key_to_bytes(ua_private_key.public_key())

    # A decoded body carries an unvalidated sender key
    try:
        content_encoding = ContentEncoding(message.content_encoding)
        shared_secret = derive_shared_secret(ua_private_key, message.ephemeral_public_key)
        derived = derive_keys(
            content_encoding,
            shared_secret,
            auth_secret,
            message.salt,
            ua_public_bytes,
            message.ephemeral_public_key,
        )
    except (InvalidKeyError, ValueError) as e:
        raise DecryptionError(f"Key derivation failed: {e}") from e

    return decrypt_payload(message.ciphertext, derived, content_encoding)
