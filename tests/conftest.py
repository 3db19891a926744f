"""Shared fixtures for webpusher tests."""

from typing import List

import pytest

from webpusher.codec import decode
from webpusher.keys import private_key_from_bytes
from webpusher.models import Subscription, SubscriptionKey
from .test_vectors import (
    AUTH_SECRET_B64,
    ENDPOINT,
    UA_PRIVATE_KEY_B64,
    UA_PUBLIC_KEY_B64,
)


class SequenceSource:
    """Random source that replays fixed chunks, in order."""

    def __init__(self, *chunks: bytes) -> None:
        self._chunks = list(chunks)
        self.calls: List[int] = []

    def __call__(self, size: int) -> bytes:
        self.calls.append(size)
        chunk = self._chunks.pop(0)
        assert len(chunk) == size, f"requested {size} bytes, next chunk has {len(chunk)}"
        return chunk


@pytest.fixture
def ua_private_key():
    """Subscriber private key from RFC 8291."""
    return private_key_from_bytes(decode(UA_PRIVATE_KEY_B64))


@pytest.fixture
def subscription_key():
    """Subscriber key material from RFC 8291."""
    return SubscriptionKey.from_base64(UA_PUBLIC_KEY_B64, AUTH_SECRET_B64)


@pytest.fixture
def subscription(subscription_key):
    """Subscription pointing at a test push service."""
    return Subscription(endpoint=ENDPOINT, key=subscription_key, subscription_id="sub-1")
