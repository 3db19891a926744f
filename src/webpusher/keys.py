"""P-256 key generation, serialization and ECDH for webpusher."""

import os
from typing import Callable, Optional, Tuple, Union

from cryptography.hazmat.primitives.asymmetric import ec
from cryptography.hazmat.primitives.serialization import Encoding, PublicFormat

from .types import (
    PUBLIC_KEY_SIZE,
    PRIVATE_KEY_SIZE,
    InvalidKeyError,
    KeyGenerationError,
)


# A random source returns exactly n cryptographically secure bytes
RandomSource = Callable[[int], bytes]

# Order of the P-256 base point
P256_ORDER = 0xFFFFFFFF00000000FFFFFFFFFFFFFFFFBCE6FAADA7179E84F3B9CAC2FC632551

MAX_KEYGEN_ATTEMPTS = 64

CURVE = ec.SECP256R1()


def random_bytes(size: int, random_source: Optional[RandomSource] = None) -> bytes:
    """
    Read random bytes from the given source (default: os.urandom).

    Raises:
        KeyGenerationError: If the source fails or returns a short read
    """
    source = random_source or os.urandom
    try:
        data = source(size)
    except Exception as e:
        raise KeyGenerationError(f"Random source failed: {e}") from e

    if not isinstance(data, (bytes, bytearray)):
        raise KeyGenerationError(f"Random source returned {type(data).__name__}, expected bytes")

    if len(data) != size:
        raise KeyGenerationError(f"Random source returned {len(data)} bytes, expected {size}")

    return bytes(data)


def generate_keypair(
    random_source: Optional[RandomSource] = None,
) -> Tuple[ec.EllipticCurvePrivateKey, ec.EllipticCurvePublicKey]:
    """
    Generate a P-256 key pair.

    Without a random source the key comes straight from the OpenSSL CSPRNG.
    With one, the private scalar is drawn by rejection sampling so that a
    seeded source gives reproducible keys.

    Returns:
        Tuple of (private_key, public_key)

    Raises:
        KeyGenerationError: If the random source fails
    """
    if random_source is None:
        try:
            private_key = ec.generate_private_key(CURVE)
        except Exception as e:
            raise KeyGenerationError(f"Key generation failed: {e}") from e
        return private_key, private_key.public_key()

    for _ in range(MAX_KEYGEN_ATTEMPTS):
        candidate = int.from_bytes(random_bytes(PRIVATE_KEY_SIZE, random_source), "big")
        if 0 < candidate < P256_ORDER:
            private_key = ec.derive_private_key(candidate, CURVE)
            return private_key, private_key.public_key()

    raise KeyGenerationError("Random source did not yield a valid P-256 scalar")


def generate_ephemeral_keypair(
    random_source: Optional[RandomSource] = None,
) -> Tuple[ec.EllipticCurvePrivateKey, ec.EllipticCurvePublicKey]:
    """Generate a fresh per-message P-256 key pair."""
    return generate_keypair(random_source)


def public_key_to_bytes(public_key: ec.EllipticCurvePublicKey) -> bytes:
    """Convert a P-256 public key to its 65-byte uncompressed point."""
    return public_key.public_bytes(Encoding.X962, PublicFormat.UncompressedPoint)


def public_key_from_bytes(data: bytes) -> ec.EllipticCurvePublicKey:
    """
    Load a P-256 public key from an uncompressed point.

    Raises:
        InvalidKeyError: If the data is not a 65-byte uncompressed point on the curve
    """
    if len(data) != PUBLIC_KEY_SIZE:
        raise InvalidKeyError(f"Public key must be {PUBLIC_KEY_SIZE} bytes, got {len(data)}")

    if data[0] != 0x04:
        raise InvalidKeyError("Public key must be an uncompressed point (0x04 prefix)")

    try:
        return ec.EllipticCurvePublicKey.from_encoded_point(CURVE, bytes(data))
    except ValueError as e:
        raise InvalidKeyError(f"Public key is not a point on P-256: {e}") from e


def private_key_to_bytes(private_key: ec.EllipticCurvePrivateKey) -> bytes:
    """Convert a P-256 private key to its raw 32-byte scalar."""
    return private_key.private_numbers().private_value.to_bytes(PRIVATE_KEY_SIZE, "big")


def private_key_from_bytes(data: bytes) -> ec.EllipticCurvePrivateKey:
    """
    Load a P-256 private key from a raw 32-byte scalar.

    Raises:
        InvalidKeyError: If the scalar has the wrong length or is out of range
    """
    if len(data) != PRIVATE_KEY_SIZE:
        raise InvalidKeyError(f"Private key must be {PRIVATE_KEY_SIZE} bytes, got {len(data)}")

    value = int.from_bytes(data, "big")
    if not 0 < value < P256_ORDER:
        raise InvalidKeyError("Private key scalar is out of range")

    return ec.derive_private_key(value, CURVE)


def derive_shared_secret(
    private_key: ec.EllipticCurvePrivateKey,
    public_key: Union[ec.EllipticCurvePublicKey, bytes],
) -> bytes:
    """
    Perform P-256 ECDH key agreement.

    Args:
        private_key: Our (ephemeral) private key
        public_key: Their public key, or its uncompressed point bytes

    Returns:
        32-byte shared secret (x coordinate of the shared point)

    Raises:
        InvalidKeyError: If their public key is malformed
    """
    if isinstance(public_key, (bytes, bytearray)):
        public_key = public_key_from_bytes(public_key)

    try:
        return private_key.exchange(ec.ECDH(), public_key)
    except ValueError as e:
        raise InvalidKeyError(f"Key agreement failed: {e}") from e
