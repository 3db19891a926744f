"""aes128gcm body encoding and decoding (RFC 8188 / RFC 8291)."""

from .models import EncryptedMessage
from .types import (
    BODY_HEADER_SIZE,
    PUBLIC_KEY_SIZE,
    RECORD_SIZE_LENGTH,
    SALT_SIZE,
    TAG_SIZE,
    ContentEncoding,
    DecryptionError,
)


class EnvelopeError(DecryptionError):
    """Raised when body encoding/decoding fails."""
    pass


def encode_body(message: EncryptedMessage) -> bytes:
    """
    Encode an aes128gcm message into an HTTP body.

    Format (86-byte header + ciphertext):
        [0-15]   salt (16 bytes)
        [16-19]  record size (4 bytes, big-endian)
        [20]     key id length (65)
        [21-85]  key id: ephemeral public key (65 bytes)
        [86+]    ciphertext (variable)

    Args:
        message: EncryptedMessage to encode

    Returns:
        Encoded bytes
    """
    return (
        message.salt
        + message.record_size.to_bytes(RECORD_SIZE_LENGTH, byteorder="big")
        + bytes([len(message.ephemeral_public_key)])
        + message.ephemeral_public_key
        + message.ciphertext
    )


def decode_body(data: bytes) -> EncryptedMessage:
    """
    Decode an aes128gcm HTTP body.

    Args:
        data: Encoded body bytes

    Returns:
        Decoded EncryptedMessage

    Raises:
        EnvelopeError: If data is invalid
    """
    if len(data) < BODY_HEADER_SIZE + TAG_SIZE:
        raise EnvelopeError(f"Data too short: {len(data)} bytes (minimum {BODY_HEADER_SIZE + TAG_SIZE})")

    offset = 0
    salt = data[offset : offset + SALT_SIZE]
    offset += SALT_SIZE

    record_size = int.from_bytes(data[offset : offset + RECORD_SIZE_LENGTH], byteorder="big")
    offset += RECORD_SIZE_LENGTH

    key_id_length = data[offset]
    offset += 1

    if key_id_length != PUBLIC_KEY_SIZE:
        raise EnvelopeError(f"Unexpected key id length: {key_id_length}")

    ephemeral_public_key = data[offset : offset + PUBLIC_KEY_SIZE]
    offset += PUBLIC_KEY_SIZE

    ciphertext = data[offset:]

    if len(ciphertext) > record_size:
        raise EnvelopeError(f"Ciphertext of {len(ciphertext)} bytes exceeds record size {record_size}")

    return EncryptedMessage(
        salt=salt,
        ephemeral_public_key=ephemeral_public_key,
        ciphertext=ciphertext,
        content_encoding=ContentEncoding.AES128GCM,
        record_size=record_size,
    )
