"""
VAPID (RFC 8292) key generation and token signing.

A VAPID token is a compact JWT signed with ES256. Push services use it,
together with the public key sent alongside, to identify the application
server that sent a message.
"""

import json
import logging
import threading
import time
from typing import Callable, Dict, Optional, Tuple, Union
from urllib.parse import urlparse

from cryptography.exceptions import InvalidSignature, UnsupportedAlgorithm
from cryptography.hazmat.primitives.asymmetric import ec
from cryptography.hazmat.primitives.asymmetric.utils import (
    decode_dss_signature,
    encode_dss_signature,
)
from cryptography.hazmat.primitives.hashes import SHA256
from cryptography.hazmat.primitives.serialization import (
    load_der_private_key,
    load_pem_private_key,
)

from .codec import decode, encode
from .keys import (
    RandomSource,
    generate_keypair,
    private_key_from_bytes,
    public_key_from_bytes,
    public_key_to_bytes,
)
from .models import VapidClaims, VapidKeyPair, VapidToken
from .types import (
    ES256_SIGNATURE_SIZE,
    PRIVATE_KEY_SIZE,
    VAPID_DEFAULT_EXPIRY,
    VAPID_MAX_EXPIRY,
    DecodeError,
    InvalidKeyError,
    SigningError,
)

logger = logging.getLogger(__name__)

JWT_HEADER = {"alg": "ES256", "typ": "JWT"}

# Re-sign a cached token once it has less than this much validity left
TOKEN_REFRESH_MARGIN = 5 * 60

_COORDINATE_SIZE = ES256_SIGNATURE_SIZE // 2


def generate_vapid_keypair(random_source: Optional[RandomSource] = None) -> VapidKeyPair:
    """
    Generate a new VAPID key pair.

    The caller is responsible for persisting the result, e.g. via
    VapidKeyPair.to_strings().
    """
    private_key, public_key = generate_keypair(random_source)
    return VapidKeyPair(private_key=private_key, public_key=public_key)


def generate_vapid() -> Tuple[str, str]:
    """Generate a VAPID key pair as (private, public) URL-safe base64 strings."""
    return generate_vapid_keypair().to_strings()


def load_vapid_private_key(
    value: Union[ec.EllipticCurvePrivateKey, VapidKeyPair, str, bytes],
) -> ec.EllipticCurvePrivateKey:
    """
    Load a VAPID private key from any of the usual storage formats.

    Accepts a key object, a VapidKeyPair, PEM text, or base64 / raw bytes
    holding either the 32-byte scalar or a DER (PKCS8 or SEC1) key.

    Raises:
        SigningError: If the key is malformed or not a P-256 key
    """
    if isinstance(value, VapidKeyPair):
        value = value.private_key

    if isinstance(value, ec.EllipticCurvePrivateKey):
        key = value
    else:
        try:
            key = _load_private_key(value)
        except (DecodeError, InvalidKeyError, ValueError, TypeError, UnsupportedAlgorithm) as e:
            raise SigningError(f"Malformed VAPID private key: {e}") from e

    if not isinstance(key, ec.EllipticCurvePrivateKey) or not isinstance(key.curve, ec.SECP256R1):
        raise SigningError("VAPID private key must be a P-256 EC key")

    return key


def _load_private_key(value: Union[str, bytes]):
    if isinstance(value, str):
        text = value.strip()
        if text.startswith("-----BEGIN"):
            return load_pem_private_key(text.encode("ascii"), password=None)
        value = decode(text)

    if len(value) == PRIVATE_KEY_SIZE:
        return private_key_from_bytes(value)
    return load_der_private_key(bytes(value), password=None)


def audience_for(endpoint: str) -> str:
    """
    Derive the VAPID audience (origin of the push service) from an endpoint.

    Raises:
        SigningError: If the endpoint is not an absolute URL
    """
    parsed = urlparse(endpoint)
    if not parsed.scheme or not parsed.netloc:
        raise SigningError(f"Cannot derive audience from endpoint: {endpoint!r}")
    return f"{parsed.scheme}://{parsed.netloc}"


def _validate_expiry(expiry_seconds: int) -> None:
    if expiry_seconds <= 0:
        raise SigningError(f"VAPID expiry must be positive, got {expiry_seconds}")
    if expiry_seconds > VAPID_MAX_EXPIRY:
        raise SigningError(
            f"VAPID expiry of {expiry_seconds}s exceeds the {VAPID_MAX_EXPIRY}s maximum"
        )


def _validate_subject(subject: str) -> None:
    if not subject or not subject.startswith(("mailto:", "https:")):
        raise SigningError(f"VAPID subject must be a mailto: or https: URI, got {subject!r}")


def _b64_json(data: dict) -> str:
    return encode(json.dumps(data, separators=(",", ":")).encode("utf-8"))


def sign_vapid_token(
    private_key: Union[ec.EllipticCurvePrivateKey, VapidKeyPair, str, bytes],
    claims: VapidClaims,
    issued_at: Optional[int] = None,
) -> VapidToken:
    """
    Sign a VAPID token for the given claims.

    Args:
        private_key: VAPID private key (any format load_vapid_private_key accepts)
        claims: Audience, subject and lifetime of the token
        issued_at: Unix time the lifetime counts from (default: now)

    Returns:
        VapidToken with the JWT, the public key header value and expiry

    Raises:
        SigningError: If the key is malformed or the claims are invalid
    """
    key = load_vapid_private_key(private_key)

    _validate_expiry(claims.expiry_seconds)
    _validate_subject(claims.subject)
    audience = audience_for(claims.audience)

    now = int(time.time()) if issued_at is None else int(issued_at)
    expires_at = now + claims.expiry_seconds

    payload = {"aud": audience, "exp": expires_at, "sub": claims.subject}
    signing_input = _b64_json(JWT_HEADER) + "." + _b64_json(payload)

    der_signature = key.sign(signing_input.encode("ascii"), ec.ECDSA(SHA256()))
    r, s = decode_dss_signature(der_signature)
    signature = r.to_bytes(_COORDINATE_SIZE, "big") + s.to_bytes(_COORDINATE_SIZE, "big")

    return VapidToken(
        jwt=signing_input + "." + encode(signature),
        public_key_header=encode(public_key_to_bytes(key.public_key())),
        expires_at=expires_at,
    )


def verify_vapid_token(
    jwt: str,
    public_key: Union[ec.EllipticCurvePublicKey, bytes, str],
) -> bool:
    """
    Verify a VAPID token's ES256 signature.

    Args:
        jwt: Compact JWT
        public_key: VAPID public key (key object, 65-byte point, or its base64)

    Returns:
        True if the signature is valid, False otherwise (including when the
        public key itself is malformed)
    """
    try:
        if isinstance(public_key, str):
            public_key = decode(public_key)
        if isinstance(public_key, (bytes, bytearray)):
            public_key = public_key_from_bytes(public_key)
    except (DecodeError, InvalidKeyError):
        logger.debug("Cannot verify VAPID token: malformed public key")
        return False

    parts = jwt.split(".")
    if len(parts) != 3:
        return False

    try:
        signature = decode(parts[2])
    except DecodeError:
        return False

    if len(signature) != ES256_SIGNATURE_SIZE:
        return False

    r = int.from_bytes(signature[:_COORDINATE_SIZE], "big")
    s = int.from_bytes(signature[_COORDINATE_SIZE:], "big")
    signing_input = (parts[0] + "." + parts[1]).encode("utf-8")

    try:
        public_key.verify(encode_dss_signature(r, s), signing_input, ec.ECDSA(SHA256()))
        return True
    except InvalidSignature:
        return False


def token_claims(jwt: str) -> dict:
    """
    Read the claims of a VAPID token without verifying it.

    Raises:
        DecodeError: If the token is not a well-formed JWT
    """
    parts = jwt.split(".")
    if len(parts) != 3:
        raise DecodeError("Token must have three segments")

    try:
        return json.loads(decode(parts[1]).decode("utf-8"))
    except (UnicodeDecodeError, json.JSONDecodeError) as e:
        raise DecodeError(f"Token payload is not JSON: {e}") from e


class VapidSigner:
    """
    Signs VAPID tokens for an application server, caching one per audience.

    A token is reused for every message to the same push service until it
    gets close to expiry. Safe to share between worker threads.
    """

    def __init__(
        self,
        private_key: Union[ec.EllipticCurvePrivateKey, VapidKeyPair, str, bytes],
        subject: str,
        expiry_seconds: int = VAPID_DEFAULT_EXPIRY,
        clock: Callable[[], float] = time.time,
    ) -> None:
        """
        Initialize the signer.

        Args:
            private_key: VAPID private key
            subject: Contact URI (mailto: or https:)
            expiry_seconds: Token lifetime, at most 24 hours
            clock: Returns the current Unix time

        Raises:
            SigningError: If the key, subject or expiry is invalid
        """
        self._key = load_vapid_private_key(private_key)
        _validate_subject(subject)
        _validate_expiry(expiry_seconds)

        self.subject = subject
        self.expiry_seconds = expiry_seconds
        self._clock = clock
        self._refresh_margin = min(TOKEN_REFRESH_MARGIN, expiry_seconds // 2)
        self._tokens: Dict[str, VapidToken] = {}
        self._lock = threading.Lock()

    @property
    def public_key_b64(self) -> str:
        """The application server key, URL-safe base64."""
        return encode(public_key_to_bytes(self._key.public_key()))

    def token_for(self, endpoint: str) -> VapidToken:
        """Return a valid token for the push service hosting the endpoint."""
        audience = audience_for(endpoint)
        now = int(self._clock())

        with self._lock:
            token = self._tokens.get(audience)
            if token is None or token.expires_at - now <= self._refresh_margin:
                claims = VapidClaims(
                    audience=audience,
                    subject=self.subject,
                    expiry_seconds=self.expiry_seconds,
                )
                token = sign_vapid_token(self._key, claims, issued_at=now)
                self._tokens[audience] = token
                logger.debug("Signed VAPID token for %s (expires %d)", audience, token.expires_at)

        return token

    def clear(self) -> None:
        """Drop all cached tokens."""
        with self._lock:
            self._tokens.clear()
