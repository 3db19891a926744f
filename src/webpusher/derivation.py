"""Key derivation for Web Push message encryption.

Two-stage HKDF chain:
    - Stage 1 mixes the ECDH shared secret with the subscriber's auth secret
    - Stage 2 mixes in the per-message salt and yields the CEK and nonce

aes128gcm follows RFC 8291. aesgcm follows the earlier webpush-encryption
draft, which binds both public keys into the stage 2 info strings instead.
"""

from cryptography.hazmat.primitives.kdf.hkdf import HKDF
from cryptography.hazmat.primitives.hashes import SHA256

from .models import DerivedKeys
from .types import (
    AES128GCM_INFO,
    AESGCM_INFO,
    AUTH_INFO,
    AUTH_SECRET_SIZE,
    CONTENT_KEY_SIZE,
    NONCE_INFO,
    NONCE_SIZE,
    P256_CONTEXT_LABEL,
    PUBLIC_KEY_SIZE,
    SALT_SIZE,
    SHARED_SECRET_SIZE,
    WEBPUSH_INFO,
    ContentEncoding,
    InvalidKeyError,
)


def hkdf_sha256(salt: bytes, ikm: bytes, info: bytes, length: int) -> bytes:
    """HKDF-SHA256 extract-and-expand (RFC 5869)."""
    hkdf = HKDF(
        algorithm=SHA256(),
        length=length,
        salt=salt,
        info=info,
    )
    return hkdf.derive(ikm)


def _check_inputs(
    shared_secret: bytes,
    auth_secret: bytes,
    salt: bytes,
    ua_public_key: bytes,
    as_public_key: bytes,
) -> None:
    if len(shared_secret) != SHARED_SECRET_SIZE:
        raise InvalidKeyError(f"Shared secret must be {SHARED_SECRET_SIZE} bytes, got {len(shared_secret)}")
    if len(auth_secret) != AUTH_SECRET_SIZE:
        raise InvalidKeyError(f"Auth secret must be {AUTH_SECRET_SIZE} bytes, got {len(auth_secret)}")
    if len(ua_public_key) != PUBLIC_KEY_SIZE or len(as_public_key) != PUBLIC_KEY_SIZE:
        raise InvalidKeyError(f"Public keys must be {PUBLIC_KEY_SIZE} bytes")
    if len(salt) != SALT_SIZE:
        raise ValueError(f"Salt must be {SALT_SIZE} bytes, got {len(salt)}")


def derive_input_keying_material(
    shared_secret: bytes,
    auth_secret: bytes,
    ua_public_key: bytes,
    as_public_key: bytes,
) -> bytes:
    """Derive the RFC 8291 IKM from the ECDH secret and the auth secret.

    Args:
        shared_secret: ECDH shared secret (32 bytes).
        auth_secret: Subscriber's auth secret (16 bytes).
        ua_public_key: User agent (subscriber) public key (65 bytes).
        as_public_key: Application server (ephemeral) public key (65 bytes).

    Returns:
        32-byte input keying material for the content key derivation.
    """
    key_info = WEBPUSH_INFO + ua_public_key + as_public_key
    return hkdf_sha256(auth_secret, shared_secret, key_info, SHARED_SECRET_SIZE)


def derive_aes128gcm_keys(
    shared_secret: bytes,
    auth_secret: bytes,
    salt: bytes,
    ua_public_key: bytes,
    as_public_key: bytes,
) -> DerivedKeys:
    """Derive the content-encryption key and nonce per RFC 8291.

    Args:
        shared_secret: ECDH shared secret (32 bytes).
        auth_secret: Subscriber's auth secret (16 bytes).
        salt: Per-message salt (16 bytes).
        ua_public_key: User agent public key (65 bytes).
        as_public_key: Application server public key (65 bytes).

    Returns:
        DerivedKeys with a 16-byte CEK and 12-byte nonce.
    """
    _check_inputs(shared_secret, auth_secret, salt, ua_public_key, as_public_key)

    ikm = derive_input_keying_material(shared_secret, auth_secret, ua_public_key, as_public_key)

    return DerivedKeys(
        content_encryption_key=hkdf_sha256(salt, ikm, AES128GCM_INFO, CONTENT_KEY_SIZE),
        nonce=hkdf_sha256(salt, ikm, NONCE_INFO, NONCE_SIZE),
    )


def aesgcm_context(ua_public_key: bytes, as_public_key: bytes) -> bytes:
    """Build the legacy key context: label, then each key with a 2-byte length."""
    return (
        P256_CONTEXT_LABEL
        + len(ua_public_key).to_bytes(2, byteorder="big")
        + ua_public_key
        + len(as_public_key).to_bytes(2, byteorder="big")
        + as_public_key
    )


def derive_aesgcm_keys(
    shared_secret: bytes,
    auth_secret: bytes,
    salt: bytes,
    ua_public_key: bytes,
    as_public_key: bytes,
) -> DerivedKeys:
    """Derive the content-encryption key and nonce for the legacy aesgcm scheme.

    Args:
        shared_secret: ECDH shared secret (32 bytes).
        auth_secret: Subscriber's auth secret (16 bytes).
        salt: Per-message salt (16 bytes).
        ua_public_key: User agent public key (65 bytes).
        as_public_key: Application server public key (65 bytes).

    Returns:
        DerivedKeys with a 16-byte CEK and 12-byte nonce.
    """
    _check_inputs(shared_secret, auth_secret, salt, ua_public_key, as_public_key)

    prk = hkdf_sha256(auth_secret, shared_secret, AUTH_INFO, SHARED_SECRET_SIZE)
    context = aesgcm_context(ua_public_key, as_public_key)

    return DerivedKeys(
        content_encryption_key=hkdf_sha256(salt, prk, AESGCM_INFO + context, CONTENT_KEY_SIZE),
        nonce=hkdf_sha256(salt, prk, NONCE_INFO + context, NONCE_SIZE),
    )


def derive_keys(
    content_encoding: ContentEncoding,
    shared_secret: bytes,
    auth_secret: bytes,
    salt: bytes,
    ua_public_key: bytes,
    as_public_key: bytes,
) -> DerivedKeys:
    """Derive message keys for the given content encoding.

    Raises:
        ValueError: If the content encoding or salt is invalid
        InvalidKeyError: If a secret or public key has the wrong size
    """
    if ContentEncoding(content_encoding) is ContentEncoding.AESGCM:
        derive = derive_aesgcm_keys
    else:
        derive = derive_aes128gcm_keys
    return derive(shared_secret, auth_secret, salt, ua_public_key, as_public_key)
