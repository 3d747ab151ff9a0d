"""Bounded one-shot queries across many endpoints.

[QueryAggregator.query()][nostrgather.services.query.QueryAggregator.query]
fans a set of filters out to every endpoint selected by
[required_capabilities()][nostrgather.services.query.required_capabilities],
merges the results into one identity-keyed map, and returns the records
sorted by ascending ``created_at``.

Concurrency model:

* Insertion into the map is check-then-insert under one ``asyncio.Lock``,
  so a record seen by several endpoints is inserted and decoded exactly
  once, by whichever endpoint delivered it first.
* A record that fails to decode is remembered as rejected and dropped; the
  same id arriving later is not decoded again.
* A query for exactly one id closes the collector under that same lock as
  soon as the id is inserted. No insert is accepted after the cutover, and
  the fan-out stops waiting for the remaining endpoints.
"""

from __future__ import annotations

import asyncio
from typing import TYPE_CHECKING

from nostrgather.core.exceptions import DecodeError
from nostrgather.core.logger import Logger
from nostrgather.models import BOOKMARK_KINDS, DIRECT_MESSAGE_KINDS, Capability, RecordFilter
from nostrgather.utils.transport import DEFAULT_TIMEOUT


if TYPE_CHECKING:
    from collections.abc import Iterable, Sequence

    from nostrgather.models import Record, RelayEndpoint
    from nostrgather.utils.transport import RelayConnection

    from .decoding import RecordResolver
    from .fanout import FanoutExecutor


READ_ONLY: frozenset[Capability] = frozenset({Capability.READ})


def required_capabilities(filters: Sequence[RecordFilter]) -> frozenset[Capability]:
    """Pick the capability class for *filters*.

    Direct-message kinds win over bookmark kinds, which win over search
    text; anything else needs only read.
    """
    kinds = {k for f in filters for k in (f.kinds or ())}
    if kinds & DIRECT_MESSAGE_KINDS:
        return frozenset({Capability.READ, Capability.DIRECT_MESSAGE})
    if kinds & BOOKMARK_KINDS:
        return frozenset({Capability.READ, Capability.BOOKMARK})
    if any(f.search for f in filters):
        return frozenset({Capability.READ, Capability.SEARCH})
    return READ_ONLY


class RecordCollector:
    """Identity-keyed, decode-once record map shared by concurrent endpoint tasks.

    Args:
        filters: Filters of the call; records matching none are ignored.
        resolver: Decoder applied at first insertion (``None`` = keep wire form).
        single_id: Close the collector as soon as one record is inserted.
    """

    def __init__(
        self,
        filters: Sequence[RecordFilter],
        resolver: RecordResolver | None,
        *,
        single_id: bool = False,
    ) -> None:
        self._filters = tuple(filters)
        self._resolver = resolver
        self._single_id = single_id
        self._lock = asyncio.Lock()
        self._records: dict[str, Record] = {}
        self._rejected: set[str] = set()
        self._closed = False
        self._logger = Logger("query")

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def rejected(self) -> int:
        return len(self._rejected)

    def __len__(self) -> int:
        return len(self._records)

    async def add(self, record: Record) -> bool:
        """Insert *record* unless its id was already seen.

        Returns:
            ``True`` once the collector is closed (single-id cutover or
            [seal()][nostrgather.services.query.RecordCollector.seal]).
        """
        if not any(f.matches(record) for f in self._filters):
            return self._closed
        async with self._lock:
            if self._closed:
                return True
            if record.id in self._records or record.id in self._rejected:
                return False
            try:
                resolved = record if self._resolver is None else await self._resolver.resolve(record)
            except DecodeError as e:
                self._rejected.add(record.id)
                self._logger.debug(
                    "record_decode_failed",
                    record_id=record.id,
                    kind=record.kind,
                    error=str(e),
                    error_type=type(e).__name__,
                )
                return False
            if self._closed:
                return True
            self._records[record.id] = resolved
            if self._single_id:
                self._closed = True
            return self._closed

    def seal(self) -> list[Record]:
        """Close the collector and return its records sorted by ascending time."""
        self._closed = True
        return sorted(self._records.values(), key=lambda r: (r.created_at, r.id))


class QueryAggregator:
    """Deduplicated, time-sorted multi-endpoint queries.

    Args:
        executor: Fan-out executor bound to the relay directory.
        resolver: Decoding pipeline applied once per record id.
        timeout: Default deadline in seconds for one query.
    """

    def __init__(
        self,
        executor: FanoutExecutor,
        resolver: RecordResolver,
        *,
        timeout: float = DEFAULT_TIMEOUT,
    ) -> None:
        self._executor = executor
        self._resolver = resolver
        self._timeout = timeout

    async def query(
        self,
        filters: RecordFilter | Iterable[RecordFilter],
        *,
        timeout: float | None = None,  # noqa: ASYNC109
        required: Iterable[Capability] | None = None,
        decode: bool = True,
    ) -> list[Record]:
        """Run *filters* against every selected endpoint and merge the results.

        Args:
            filters: One filter or several (combined with OR).
            timeout: Deadline override in seconds.
            required: Capability requirement override. An empty
                capability-specific subset falls back to read endpoints.
            decode: Whether to decode records (``False`` keeps wire records,
                e.g. for re-publishing).

        Returns:
            Distinct records sorted by ascending ``created_at``.

        Raises:
            NoUsableEndpointsError: If no read endpoint could be reached.
        """
        filters = [filters] if isinstance(filters, RecordFilter) else list(filters)
        required = frozenset(required) if required is not None else required_capabilities(filters)
        collector = RecordCollector(
            filters,
            self._resolver if decode else None,
            single_id=len(filters) == 1 and filters[0].requests_single_id,
        )
        deadline = self._timeout if timeout is None else timeout

        async def fetch(
            endpoint: RelayEndpoint, connection: RelayConnection, stop: asyncio.Event
        ) -> bool:
            records = await connection.query(filters, deadline)
            for record in records:
                if stop.is_set() or await collector.add(record):
                    return False
            return True

        await self._executor.run_all(required, deadline, fetch, fallback=READ_ONLY)
        return collector.seal()

    async def get(self, record_id: str, *, decode: bool = True) -> Record | None:
        """Fetch one record by id, returning as soon as any endpoint has it."""
        records = await self.query(RecordFilter(ids=(record_id,)), decode=decode)
        return records[0] if records else None
