"""Nostr relay transport built on nostr-sdk.

Implements the [RelayTransport][nostrgather.utils.transport.RelayTransport]
contract with one ``nostr_sdk.Client`` per endpoint, so every endpoint
connects, fails, and disconnects independently of its siblings.

Attributes:
    NostrTransport: Connection factory (optionally signing with local keys
        for NIP-42 authentication).
    NostrConnection: One-shot queries, subscriptions with an end-of-stored
        marker, and publishing against a single relay.

Note:
    Connection failures are classified by message: certificate problems
    raise ``ssl.SSLCertVerificationError``, everything else ``OSError``.
    Multi-word patterns are used to avoid false positives from unrelated
    errors (e.g. DNS "cannot verify hostname").

Examples:
    ```python
    transport = NostrTransport(keys=my_keys)
    conn = await transport.connect("wss://relay.damus.io", timeout=10.0)
    try:
        records = await conn.query([RecordFilter(kinds=(1,), limit=10)], timeout=10.0)
    finally:
        await conn.close()
    ```
"""

from __future__ import annotations

import asyncio
import contextlib
import json
import logging
import ssl
from datetime import timedelta
from typing import TYPE_CHECKING

from nostr_sdk import (
    Client,
    ClientBuilder,
    Filter,
    HandleNotification,
    NostrSdkError,
    NostrSigner,
    RelayUrl,
)
from nostr_sdk import Event as NostrEvent

from nostrgather.models import Record, RecordFilter
from nostrgather.utils.transport import DEFAULT_TIMEOUT, END_OF_STORED_RECORDS


if TYPE_CHECKING:
    from collections.abc import AsyncIterator, Sequence

    from nostr_sdk import Keys

    from nostrgather.utils.transport import StreamItem


logger = logging.getLogger(__name__)


_SSL_ERROR_PATTERNS: tuple[str, ...] = (
    "ssl certificate",
    "certificate verify",
    "certificate has expired",
    "self signed certificate",
    "self-signed certificate",
    "unable to get local issuer",
    "x509",
    "tlsv1 alert",
    "ssl handshake",
    "tls handshake failed",
    "certificate_unknown",
    "certificate_expired",
    "ssl error",
    "tls error",
    "cert verify failed",
)


def _is_ssl_error(error_message: str) -> bool:
    """Check if an error message indicates an SSL/TLS certificate error."""
    error_lower = error_message.lower()
    return any(pattern in error_lower for pattern in _SSL_ERROR_PATTERNS)


def to_nostr_filter(record_filter: RecordFilter) -> Filter:
    """Convert a [RecordFilter][nostrgather.models.filter.RecordFilter] to a nostr-sdk ``Filter``."""
    return Filter.from_json(json.dumps(record_filter.to_dict()))


class _SubscriptionHandler(HandleNotification):
    """Forwards subscription traffic of one client into an ``asyncio.Queue``.

    Events are queued as records. The end-of-stored marker is queued once
    [ready()][nostrgather.utils.protocol._SubscriptionHandler.ready] has been
    called and every tracked subscription id has sent ``EOSE``. Ids whose
    ``EOSE`` arrives before they are tracked count as already finished.
    """

    def __init__(self, queue: asyncio.Queue[StreamItem]) -> None:
        self._queue = queue
        self._pending: set[str] = set()
        self._finished: set[str] = set()
        self._ready = False
        self._eose_sent = False

    def track(self, subscription_id: str) -> None:
        if subscription_id not in self._finished:
            self._pending.add(subscription_id)

    def ready(self) -> None:
        """Mark the subscription set complete; no more ids will be tracked."""
        self._ready = True
        self._maybe_finish()

    def _maybe_finish(self) -> None:
        if self._ready and not self._pending and not self._eose_sent:
            self._eose_sent = True
            self._queue.put_nowait(END_OF_STORED_RECORDS)

    async def handle(self, relay_url, subscription_id: str, event: NostrEvent) -> bool:  # noqa: ANN001
        try:
            record = Record.from_nostr_event(event)
        except (ValueError, TypeError) as e:
            logger.debug("subscription_record_invalid relay=%s error=%s", relay_url, e)
            return False
        self._queue.put_nowait(record)
        return False

    async def handle_msg(self, relay_url, msg) -> bool:  # noqa: ANN001
        message = msg.as_enum()
        if message.is_end_of_stored_events():
            self._finished.add(message.subscription_id)
            self._pending.discard(message.subscription_id)
            self._maybe_finish()
        return False


class NostrConnection:
    """A connected nostr-sdk client bound to exactly one relay URL."""

    def __init__(self, url: str, client: Client) -> None:
        self._url = url
        self._client = client

    @property
    def url(self) -> str:
        return self._url

    async def query(self, filters: Sequence[RecordFilter], timeout: float) -> list[Record]:  # noqa: ASYNC109
        """Fetch stored records for each filter, keeping only signature-verified ones.

        Raises:
            OSError: If nostr-sdk fails the fetch.
        """
        records: list[Record] = []
        for record_filter in filters:
            try:
                events = await self._client.fetch_events(
                    to_nostr_filter(record_filter), timedelta(seconds=timeout)
                )
            except NostrSdkError as e:
                raise OSError(f"Query failed: {self._url} ({e})") from e
            for evt in events.to_vec():
                try:
                    if evt.verify():
                        records.append(Record.from_nostr_event(evt))
                except (ValueError, TypeError, OverflowError):
                    continue
        return records

    async def subscribe(self, filters: Sequence[RecordFilter]) -> AsyncIterator[StreamItem]:
        """Subscribe to *filters* and yield records as they arrive.

        The subscriptions are closed and the notification loop cancelled when
        the consumer stops iterating.

        Raises:
            OSError: If nostr-sdk refuses one of the subscriptions.
        """
        queue: asyncio.Queue[StreamItem] = asyncio.Queue()
        handler = _SubscriptionHandler(queue)
        notifications = asyncio.create_task(self._client.handle_notifications(handler))
        try:
            for record_filter in filters:
                try:
                    output = await self._client.subscribe(to_nostr_filter(record_filter), None)
                except NostrSdkError as e:
                    raise OSError(f"Subscribe failed: {self._url} ({e})") from e
                handler.track(output.id)
            handler.ready()
            while True:
                get_item = asyncio.ensure_future(queue.get())
                done, _ = await asyncio.wait(
                    {get_item, notifications}, return_when=asyncio.FIRST_COMPLETED
                )
                if get_item in done:
                    yield get_item.result()
                    continue
                get_item.cancel()
                # Notification loop ended: surface its error or close the stream
                notifications.result()
                return
        finally:
            notifications.cancel()
            with contextlib.suppress(Exception):
                await self._client.unsubscribe_all()

    async def publish(self, record: Record) -> None:
        """Send *record* and raise ``OSError`` unless the relay accepted it."""
        try:
            output = await self._client.send_event(NostrEvent.from_json(record.to_json()))
        except NostrSdkError as e:
            raise OSError(f"Publish failed: {self._url} ({e})") from e
        if not output.success:
            reason = next(iter(output.failed.values()), "rejected")
            raise OSError(f"Publish failed: {self._url} ({reason})")

    async def close(self) -> None:
        # nostr-sdk Rust FFI can raise arbitrary exception types during shutdown.
        with contextlib.suppress(Exception):
            await self._client.shutdown()


class NostrTransport:
    """Connection factory producing one [NostrConnection][nostrgather.utils.protocol.NostrConnection] per endpoint.

    Args:
        keys: Optional signing keys (``None`` = read-only, no NIP-42 auth).
    """

    def __init__(self, keys: Keys | None = None) -> None:
        self._keys = keys

    def _create_client(self) -> Client:
        builder = ClientBuilder()
        if self._keys is not None:
            builder = builder.signer(NostrSigner.keys(self._keys))
        return builder.build()

    async def connect(self, url: str, timeout: float = DEFAULT_TIMEOUT) -> NostrConnection:  # noqa: ASYNC109
        """Connect to *url* within *timeout* seconds.

        Raises:
            ssl.SSLCertVerificationError: If the relay's certificate is rejected.
            OSError: If the connection fails for any other reason.
        """
        relay_url = RelayUrl.parse(url)
        client = self._create_client()
        await client.add_relay(relay_url)

        logger.debug("connecting relay=%s", url)
        output = await client.try_connect(timedelta(seconds=timeout))

        if relay_url in output.success:
            logger.debug("connected relay=%s", url)
            return NostrConnection(url, client)

        with contextlib.suppress(Exception):
            await client.shutdown()
        error_message = output.failed.get(relay_url, "Unknown error")
        logger.debug("connect_failed relay=%s error=%s", url, error_message)

        if _is_ssl_error(error_message):
            raise ssl.SSLCertVerificationError(
                f"SSL certificate verification failed for {url}: {error_message}"
            )
        raise OSError(f"Connection failed: {url} ({error_message})")
