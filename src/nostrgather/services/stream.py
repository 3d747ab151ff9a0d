"""Continuous multi-endpoint subscriptions.

[StreamAggregator.stream()][nostrgather.services.stream.StreamAggregator.stream]
opens one subscription per selected endpoint and hands each distinct record
to a callback as soon as it arrives. Records are emitted in cross-endpoint
arrival order; consumers that need time order buffer and sort.

Termination:

* the callback returns ``False``;
* catch-up mode: every endpoint has delivered its end-of-stored marker (or
  the catch-up deadline passes);
* follow mode: the caller cancels the awaiting task.

Endpoint selection and decoding follow the same rules as
[QueryAggregator][nostrgather.services.query.QueryAggregator]; a record that
fails to decode is skipped without reaching the callback.
"""

from __future__ import annotations

import asyncio
import contextlib
import inspect
from typing import TYPE_CHECKING, TypeAlias

from nostrgather.core.exceptions import DecodeError
from nostrgather.core.logger import Logger
from nostrgather.models import RecordFilter
from nostrgather.utils.transport import DEFAULT_TIMEOUT, EndOfStoredRecords

from .query import READ_ONLY, required_capabilities


if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable, Iterable

    from nostrgather.models import Capability, Record, RelayEndpoint
    from nostrgather.utils.transport import RelayConnection

    from .decoding import RecordResolver
    from .fanout import FanoutExecutor, FanoutReport


RecordCallback: TypeAlias = "Callable[[Record], bool | None | Awaitable[bool | None]]"
"""Receives each distinct record; returning ``False`` ends the stream."""


class StreamAggregator:
    """Deduplicated multi-endpoint subscriptions with catch-up or follow termination.

    Args:
        executor: Fan-out executor bound to the relay directory.
        resolver: Decoding pipeline applied once per record id.
        catch_up_timeout: Deadline in seconds for catch-up mode.
    """

    def __init__(
        self,
        executor: FanoutExecutor,
        resolver: RecordResolver,
        *,
        catch_up_timeout: float = DEFAULT_TIMEOUT,
    ) -> None:
        self._executor = executor
        self._resolver = resolver
        self._catch_up_timeout = catch_up_timeout
        self._logger = Logger("stream")

    async def stream(
        self,
        filters: RecordFilter | Iterable[RecordFilter],
        callback: RecordCallback,
        *,
        close_on_catch_up: bool = True,
        required: Iterable[Capability] | None = None,
    ) -> FanoutReport:
        """Subscribe to *filters* on every selected endpoint.

        Args:
            filters: One filter or several (combined with OR).
            callback: Called once per distinct, decoded record, serially.
            close_on_catch_up: End each endpoint's subscription at its
                end-of-stored marker (``False`` = follow live records until
                cancelled).
            required: Capability requirement override.

        Returns:
            The fan-out report of the subscription run.

        Raises:
            NoUsableEndpointsError: If no endpoint could be reached.
        """
        filters = [filters] if isinstance(filters, RecordFilter) else list(filters)
        required = frozenset(required) if required is not None else required_capabilities(filters)
        lock = asyncio.Lock()
        seen: set[str] = set()

        async def deliver(record: Record, stop: asyncio.Event) -> bool:
            async with lock:
                if stop.is_set():
                    return False
                if record.id in seen:
                    return True
                seen.add(record.id)
                try:
                    resolved = await self._resolver.resolve(record)
                except DecodeError as e:
                    self._logger.debug(
                        "record_decode_failed",
                        record_id=record.id,
                        kind=record.kind,
                        error=str(e),
                        error_type=type(e).__name__,
                    )
                    return True
                result = callback(resolved)
                if inspect.isawaitable(result):
                    result = await result
                if result is False:
                    stop.set()
                    return False
                return True

        async def consume(
            endpoint: RelayEndpoint, connection: RelayConnection, stop: asyncio.Event
        ) -> bool:
            subscription = connection.subscribe(filters)
            try:
                async for item in subscription:
                    if stop.is_set():
                        return False
                    if isinstance(item, EndOfStoredRecords):
                        if close_on_catch_up:
                            return True
                        continue
                    if not any(f.matches(item) for f in filters):
                        continue
                    if not await deliver(item, stop):
                        return False
                return True
            finally:
                aclose = getattr(subscription, "aclose", None)
                if aclose is not None:
                    with contextlib.suppress(RuntimeError):
                        await aclose()

        timeout = self._catch_up_timeout if close_on_catch_up else None
        return await self._executor.run_all(
            required, timeout, consume, fallback=READ_ONLY, cancel_on_stop=True
        )
