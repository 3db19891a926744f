"""Assembly of transport-ready push requests (RFC 8030 / RFC 8291 / RFC 8292)."""

import logging
import re
from typing import Dict, Optional

from .codec import encode
from .envelope import encode_body
from .models import EncryptedMessage, PushRequest, Subscription, VapidToken
from .types import (
    DEFAULT_TTL,
    MAX_TOPIC_LENGTH,
    PUBLIC_KEY_SIZE,
    SALT_SIZE,
    TAG_SIZE,
    URGENCY_VALUES,
    AssemblyError,
    ContentEncoding,
)

logger = logging.getLogger(__name__)

_TOPIC_PATTERN = re.compile(r"^[A-Za-z0-9_-]+$")


def _check_message(message: EncryptedMessage) -> None:
    if not message.ciphertext:
        raise AssemblyError("Ciphertext is empty")
    if len(message.ciphertext) < TAG_SIZE:
        raise AssemblyError(f"Ciphertext shorter than the {TAG_SIZE}-byte tag")
    if len(message.salt) != SALT_SIZE:
        raise AssemblyError(f"Salt must be {SALT_SIZE} bytes, got {len(message.salt)}")
    if len(message.ephemeral_public_key) != PUBLIC_KEY_SIZE:
        raise AssemblyError(
            f"Ephemeral public key must be {PUBLIC_KEY_SIZE} bytes, "
            f"got {len(message.ephemeral_public_key)}"
        )
    if message.record_size < len(message.ciphertext):
        raise AssemblyError("Record size is smaller than the ciphertext")


def push_headers(ttl: int, urgency: Optional[str] = None, topic: Optional[str] = None) -> Dict[str, str]:
    """
    Build the RFC 8030 TTL, Urgency and Topic headers.

    Raises:
        AssemblyError: If a value is out of range
    """
    if ttl < 0:
        raise AssemblyError(f"TTL must not be negative, got {ttl}")

    headers = {"TTL": str(ttl)}

    if urgency is not None:
        if urgency not in URGENCY_VALUES:
            raise AssemblyError(f"Urgency must be one of {', '.join(URGENCY_VALUES)}, got {urgency!r}")
        headers["Urgency"] = urgency

    if topic is not None:
        if len(topic) > MAX_TOPIC_LENGTH or not _TOPIC_PATTERN.match(topic):
            raise AssemblyError(
                f"Topic must be 1-{MAX_TOPIC_LENGTH} URL-safe base64 characters, got {topic!r}"
            )
        headers["Topic"] = topic

    return headers


def build_push_request(
    subscription: Subscription,
    message: EncryptedMessage,
    token: Optional[VapidToken] = None,
    ttl: int = DEFAULT_TTL,
    urgency: Optional[str] = None,
    topic: Optional[str] = None,
) -> PushRequest:
    """
    Assemble the HTTP request delivering a message to a subscription.

    aes128gcm carries the salt and ephemeral key in the body header and
    authenticates with ``Authorization: vapid t=..., k=...``. The legacy
    aesgcm scheme carries them in the Encryption and Crypto-Key headers and
    uses ``Authorization: WebPush <jwt>``.

    Args:
        subscription: Target subscription
        message: Encrypted payload
        token: VAPID token for the subscription's push service (optional)
        ttl: Seconds the push service should keep the message
        urgency: RFC 8030 urgency (very-low, low, normal, high)
        topic: RFC 8030 topic for replacing pending messages

    Returns:
        PushRequest for the external HTTP client

    Raises:
        AssemblyError: If the inputs are structurally inconsistent
    """
    if not subscription.endpoint:
        raise AssemblyError("Subscription endpoint is empty")

    _check_message(message)
    headers = push_headers(ttl, urgency, topic)

    try:
        content_encoding = ContentEncoding(message.content_encoding)
    except ValueError as e:
        raise AssemblyError(f"Unknown content encoding: {message.content_encoding!r}") from e

    if content_encoding is ContentEncoding.AESGCM:
        crypto_key = f"dh={encode(message.ephemeral_public_key)}"
        headers["Content-Encoding"] = ContentEncoding.AESGCM.value
        headers["Encryption"] = f"salt={encode(message.salt)}"
        if token is not None:
            crypto_key += f";p256ecdsa={token.public_key_header}"
            headers["Authorization"] = f"WebPush {token.jwt}"
        headers["Crypto-Key"] = crypto_key
        body = message.ciphertext
    else:
        headers["Content-Encoding"] = ContentEncoding.AES128GCM.value
        if token is not None:
            headers["Authorization"] = f"vapid t={token.jwt}, k={token.public_key_header}"
        body = encode_body(message)

    headers["Content-Type"] = "application/octet-stream"

    logger.debug(
        "Built %s push request for %s (%d byte body)",
        content_encoding.value,
        subscription.label,
        len(body),
    )

    return PushRequest(url=subscription.endpoint, headers=headers, body=body)
