"""Publishing signed records to write-capable endpoints."""

from __future__ import annotations

from typing import TYPE_CHECKING

from nostrgather.core.exceptions import PublishingError
from nostrgather.core.logger import Logger
from nostrgather.models import DIRECT_MESSAGE_KINDS, Capability


if TYPE_CHECKING:
    import asyncio
    from collections.abc import Iterable

    from nostrgather.models import Record, RelayEndpoint
    from nostrgather.utils.transport import RelayConnection

    from .fanout import FanoutExecutor
    from .query import QueryAggregator


WRITE_ONLY: frozenset[Capability] = frozenset({Capability.WRITE})


def publish_capabilities(record: Record) -> frozenset[Capability]:
    """Write endpoints for *record*; direct messages also need the dm flag."""
    if record.kind in DIRECT_MESSAGE_KINDS:
        return frozenset({Capability.WRITE, Capability.DIRECT_MESSAGE})
    return WRITE_ONLY


class Publisher:
    """Fans signed records out to every write endpoint.

    Args:
        executor: Fan-out executor bound to the relay directory.
        query: Aggregator used by
            [broadcast()][nostrgather.services.publish.Publisher.broadcast].
        timeout: Deadline of one publish fan-out (seconds).
    """

    def __init__(
        self,
        executor: FanoutExecutor,
        query: QueryAggregator,
        *,
        timeout: float = 30.0,  # noqa: ASYNC109
    ) -> None:
        self._executor = executor
        self._query = query
        self._timeout = timeout
        self._logger = Logger("publish")

    async def publish(
        self, record: Record, required: Iterable[Capability] | None = None
    ) -> list[str]:
        """Publish *record* and return the URLs that accepted it, sorted.

        Raises:
            PublishingError: If the record is unsigned, carries decoded
                content, or no endpoint accepted it.
            NoUsableEndpointsError: If no write endpoint could be reached.
        """
        if not record.sig:
            raise PublishingError(f"record {record.id} is not signed")
        if record.decoded:
            raise PublishingError(f"record {record.id} carries decoded content")
        required = frozenset(required) if required is not None else publish_capabilities(record)
        accepted: list[str] = []

        async def send(
            endpoint: RelayEndpoint, connection: RelayConnection, stop: asyncio.Event
        ) -> bool:
            await connection.publish(record)
            accepted.append(endpoint.url)
            return True

        report = await self._executor.run_all(
            required, self._timeout, send, fallback=WRITE_ONLY
        )
        if not accepted:
            raise PublishingError(
                f"record {record.id} was rejected by all {len(report.connected)} endpoint(s)"
            )
        self._logger.info(
            "record_published",
            record_id=record.id,
            kind=record.kind,
            accepted=len(accepted),
            attempted=len(report.attempted),
        )
        return sorted(accepted)

    async def broadcast(self, record_id: str) -> list[str]:
        """Re-publish an existing record, fetched unmodified by id.

        Raises:
            PublishingError: If the record cannot be found or is rejected.
        """
        record = await self._query.get(record_id, decode=False)
        if record is None:
            raise PublishingError(f"record {record_id} not found")
        return await self.publish(record)
