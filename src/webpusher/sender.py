"""
Batch preparation of Web Push deliveries.

The PushSender turns a payload and a batch of subscriptions into
transport-ready PushRequests. Each subscription is encrypted independently
on a bounded worker pool; a bad subscription is reported on its own result
and never aborts the rest of the batch.
"""

import asyncio
import logging
import threading
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from typing import Any, Callable, Iterable, List, Mapping, Optional, Union

from cryptography.hazmat.primitives.asymmetric import ec

from .crypto import encrypt_message
from .keys import RandomSource
from .models import PushRequest, Subscription, VapidKeyPair
from .request import build_push_request, push_headers
from .types import (
    BODY_HEADER_SIZE,
    DEFAULT_TTL,
    MAX_BODY_SIZE,
    TAG_SIZE,
    VAPID_DEFAULT_EXPIRY,
    VAPID_MAX_EXPIRY,
    AssemblyError,
    ContentEncoding,
    SigningError,
    WebPushError,
)
from .vapid import VapidSigner

logger = logging.getLogger(__name__)

SubscriptionInput = Union[Subscription, Mapping[str, Any]]
Transport = Callable[[PushRequest], Any]


@dataclass
class PushConfig:
    """Configuration for a PushSender."""
    content_encoding: ContentEncoding = ContentEncoding.AES128GCM
    ttl: int = DEFAULT_TTL
    padding: int = 0
    max_body_size: int = MAX_BODY_SIZE
    max_workers: int = 8
    vapid_expiry: int = VAPID_DEFAULT_EXPIRY
    urgency: Optional[str] = None
    topic: Optional[str] = None

    def __post_init__(self) -> None:
        self.content_encoding = ContentEncoding(self.content_encoding)

        if self.padding < 0:
            raise ValueError(f"padding must not be negative, got {self.padding}")
        if self.max_workers < 1:
            raise ValueError(f"max_workers must be at least 1, got {self.max_workers}")
        if self.max_body_size <= BODY_HEADER_SIZE + TAG_SIZE:
            raise ValueError(f"max_body_size too small: {self.max_body_size}")
        if not 0 < self.vapid_expiry <= VAPID_MAX_EXPIRY:
            raise ValueError(
                f"vapid_expiry must be between 1 and {VAPID_MAX_EXPIRY} seconds, got {self.vapid_expiry}"
            )

        try:
            push_headers(self.ttl, self.urgency, self.topic)
        except AssemblyError as e:
            raise ValueError(str(e)) from e


@dataclass
class BatchResult:
    """Outcome of preparing one subscription in a batch."""
    subscription: SubscriptionInput
    request: Optional[PushRequest] = None
    error: Optional[WebPushError] = None

    @property
    def ok(self) -> bool:
        """Whether a request was prepared."""
        return self.request is not None


def _label(subscription: SubscriptionInput) -> str:
    if isinstance(subscription, Subscription):
        return subscription.label
    if isinstance(subscription, Mapping):
        return str(subscription.get("endpoint", "<no endpoint>"))
    return f"<{type(subscription).__name__}>"


def _locked(random_source: RandomSource) -> RandomSource:
    """Serialize calls to a random source shared between worker threads."""
    lock = threading.Lock()

    def read(size: int) -> bytes:
        with lock:
            return random_source(size)

    return read


class PushSender:
    """
    Prepares encrypted, VAPID-signed push requests for batches of subscriptions.

    Example usage:
        ```python
        sender = PushSender(
            vapid_private_key=stored_private_key,
            subject="mailto:ops@example.com",
        )

        results = sender.prepare_batch(subscriptions, b'{"title": "Hi"}')
        for result in results:
            if result.ok:
                http_client.post(result.request.url, ...)
        ```
    """

    def __init__(
        self,
        vapid_private_key: Optional[Union[ec.EllipticCurvePrivateKey, VapidKeyPair, str, bytes]] = None,
        subject: Optional[str] = None,
        config: Optional[PushConfig] = None,
        random_source: Optional[RandomSource] = None,
        signer: Optional[VapidSigner] = None,
    ) -> None:
        """
        Initialize the sender.

        Args:
            vapid_private_key: VAPID private key; omit to send unauthenticated requests.
            subject: VAPID contact URI, required with a private key.
            config: Sender configuration (default: PushConfig()).
            random_source: Source for salts and ephemeral keys (default: os.urandom).
            signer: Prebuilt VapidSigner, used instead of vapid_private_key.

        Raises:
            SigningError: If the VAPID key or subject is invalid.
        """
        self.config = config or PushConfig()

        if signer is None and vapid_private_key is not None:
            if subject is None:
                raise SigningError("A VAPID subject is required with a VAPID private key")
            signer = VapidSigner(vapid_private_key, subject, self.config.vapid_expiry)

        self.signer = signer
        self._random_source = _locked(random_source) if random_source is not None else None

    def prepare(self, subscription: SubscriptionInput, payload: Union[str, bytes]) -> PushRequest:
        """
        Encrypt a payload for one subscription and build its request.

        Raises:
            WebPushError: If the subscription, payload or signing is invalid.
        """
        if not isinstance(subscription, Subscription):
            subscription = Subscription.from_dict(subscription)

        message = encrypt_message(
            payload,
            subscription.key,
            content_encoding=self.config.content_encoding,
            padding=self.config.padding,
            max_body_size=self.config.max_body_size,
            random_source=self._random_source,
        )

        token = self.signer.token_for(subscription.endpoint) if self.signer else None

        return build_push_request(
            subscription,
            message,
            token=token,
            ttl=self.config.ttl,
            urgency=self.config.urgency,
            topic=self.config.topic,
        )

    def _prepare_one(self, subscription: SubscriptionInput, payload: Union[str, bytes]) -> BatchResult:
        try:
            request = self.prepare(subscription, payload)
        except WebPushError as e:
            logger.warning("Skipping subscription %s: %s", _label(subscription), e)
            return BatchResult(subscription=subscription, error=e)
        return BatchResult(subscription=subscription, request=request)

    def prepare_batch(
        self,
        subscriptions: Iterable[SubscriptionInput],
        payload: Union[str, bytes],
    ) -> List[BatchResult]:
        """
        Prepare requests for a batch of subscriptions concurrently.

        Args:
            subscriptions: Subscriptions or their browser JSON dicts.
            payload: Message payload shared by the whole batch.

        Returns:
            One BatchResult per subscription, in input order.
        """
        subscriptions = list(subscriptions)
        if not subscriptions:
            return []

        workers = min(self.config.max_workers, len(subscriptions))
        with ThreadPoolExecutor(max_workers=workers) as pool:
            results = list(pool.map(lambda sub: self._prepare_one(sub, payload), subscriptions))

        failed = sum(1 for r in results if not r.ok)
        logger.info("Prepared %d push requests (%d failed)", len(results) - failed, failed)
        return results

    async def prepare_batch_async(
        self,
        subscriptions: Iterable[SubscriptionInput],
        payload: Union[str, bytes],
    ) -> List[BatchResult]:
        """Same as prepare_batch, run off the event loop."""
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, self.prepare_batch, list(subscriptions), payload)

    def send(
        self,
        subscriptions: Iterable[SubscriptionInput],
        payload: Union[str, bytes],
        transport: Transport,
    ) -> int:
        """
        Prepare a batch and hand every successful request to a transport.

        The transport owns delivery, retries and its own error handling.

        Returns:
            Number of requests handed to the transport.
        """
        sent = 0
        for result in self.prepare_batch(subscriptions, payload):
            if result.ok:
                transport(result.request)
                sent += 1
        return sent
