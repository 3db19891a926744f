"""Models for subscriptions, encrypted messages and push requests."""

from dataclasses import dataclass, field
from typing import Any, Dict, Mapping, Optional, Tuple

from cryptography.hazmat.primitives.asymmetric import ec

from .codec import decode, encode
from .keys import public_key_from_bytes, public_key_to_bytes, private_key_to_bytes
from .types import (
    AUTH_SECRET_SIZE,
    DEFAULT_RECORD_SIZE,
    VAPID_DEFAULT_EXPIRY,
    ContentEncoding,
    InvalidKeyError,
    InvalidSubscriptionError,
)


@dataclass(frozen=True)
class SubscriptionKey:
    """
    A subscriber's encryption key material.

    Attributes:
        p256dh: Uncompressed P-256 public key of the user agent (65 bytes).
        auth: Authentication secret (16 bytes).
    """

    p256dh: bytes
    auth: bytes = field(repr=False)

    def __post_init__(self) -> None:
        if len(self.auth) != AUTH_SECRET_SIZE:
            raise InvalidKeyError(
                f"Auth secret must be {AUTH_SECRET_SIZE} bytes, got {len(self.auth)}"
            )
        # Rejects lengths, compressed points and off-curve points up front
        public_key_from_bytes(self.p256dh)

    @classmethod
    def from_base64(cls, p256dh: str, auth: str) -> "SubscriptionKey":
        """
        Decode a key from the base64 strings a browser hands out.

        Raises:
            DecodeError: If either value is not base64
            InvalidKeyError: If the decoded keys are invalid
        """
        return cls(p256dh=decode(p256dh), auth=decode(auth))

    @property
    def public_key(self) -> ec.EllipticCurvePublicKey:
        """The subscriber's public key as a key object."""
        return public_key_from_bytes(self.p256dh)


@dataclass(frozen=True)
class Subscription:
    """A browser push subscription: where and how to deliver a message."""

    endpoint: str
    key: SubscriptionKey
    subscription_id: Optional[str] = None

    @classmethod
    def from_base64(
        cls,
        endpoint: str,
        p256dh: str,
        auth: str,
        subscription_id: Optional[str] = None,
    ) -> "Subscription":
        """Create a subscription from an endpoint and base64-encoded keys."""
        return cls(
            endpoint=endpoint,
            key=SubscriptionKey.from_base64(p256dh, auth),
            subscription_id=subscription_id,
        )

    @classmethod
    def from_dict(
        cls,
        info: Mapping[str, Any],
        subscription_id: Optional[str] = None,
    ) -> "Subscription":
        """
        Create a subscription from the JSON form of a browser PushSubscription.

        Expected shape::

            {"endpoint": "...", "keys": {"p256dh": "...", "auth": "..."}}

        Raises:
            InvalidSubscriptionError: If the record is not a mapping or the
                endpoint or keys are missing
            DecodeError: If a key is not base64
            InvalidKeyError: If a key is invalid
        """
        if not isinstance(info, Mapping):
            raise InvalidSubscriptionError(
                f"Subscription must be a mapping, got {type(info).__name__}"
            )

        endpoint = info.get("endpoint")
        if not endpoint or not isinstance(endpoint, str):
            raise InvalidSubscriptionError("Subscription has no endpoint")

        keys = info.get("keys")
        if not isinstance(keys, Mapping):
            raise InvalidSubscriptionError("Subscription has no keys")

        p256dh = keys.get("p256dh")
        auth = keys.get("auth")
        if not p256dh or not auth:
            raise InvalidSubscriptionError("Subscription keys must include p256dh and auth")

        return cls.from_base64(endpoint, p256dh, auth, subscription_id=subscription_id)

    @property
    def label(self) -> str:
        """Identifier used in log lines."""
        return self.subscription_id or self.endpoint


@dataclass(frozen=True)
class DerivedKeys:
    """Content-encryption key and nonce for one message."""
    content_encryption_key: bytes = field(repr=False)  # 16 bytes
    nonce: bytes = field(repr=False)  # 12 bytes


@dataclass(frozen=True)
class EncryptedMessage:
    """An encrypted push payload, ready for request assembly."""
    salt: bytes  # 16 bytes
    ephemeral_public_key: bytes  # 65 bytes
    ciphertext: bytes  # padded payload + 16-byte tag
    content_encoding: ContentEncoding = ContentEncoding.AES128GCM
    record_size: int = DEFAULT_RECORD_SIZE


@dataclass(frozen=True)
class VapidKeyPair:
    """An application server's VAPID key pair."""

    private_key: ec.EllipticCurvePrivateKey = field(repr=False)
    public_key: ec.EllipticCurvePublicKey

    @property
    def private_key_b64(self) -> str:
        """Raw 32-byte private scalar, unpadded URL-safe base64."""
        return encode(private_key_to_bytes(self.private_key))

    @property
    def public_key_b64(self) -> str:
        """Uncompressed public point, unpadded URL-safe base64 (applicationServerKey)."""
        return encode(public_key_to_bytes(self.public_key))

    def to_strings(self) -> Tuple[str, str]:
        """Return (private, public) as URL-safe base64 for external storage."""
        return self.private_key_b64, self.public_key_b64


@dataclass
class VapidClaims:
    """Claims for a VAPID token."""
    audience: str
    subject: str
    expiry_seconds: int = VAPID_DEFAULT_EXPIRY


@dataclass(frozen=True)
class VapidToken:
    """A signed VAPID JWT and the public key that verifies it."""
    jwt: str
    public_key_header: str
    expires_at: int


@dataclass(frozen=True)
class PushRequest:
    """Transport-ready description of a push message delivery."""
    url: str
    headers: Dict[str, str]
    body: bytes
    method: str = "POST"
