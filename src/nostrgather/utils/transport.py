"""Relay transport contracts.

Defines the structural interfaces the aggregation layer consumes: a
[RelayTransport][nostrgather.utils.transport.RelayTransport] opens one
[RelayConnection][nostrgather.utils.transport.RelayConnection] per endpoint,
and a connection runs one-shot queries, subscriptions, and publishes.
Subscriptions yield records interleaved with a distinct
[END_OF_STORED_RECORDS][nostrgather.utils.transport.END_OF_STORED_RECORDS]
marker, emitted once the relay has delivered every stored record and
before any new live record.

Implementations signal per-endpoint failure with ``OSError``,
``TimeoutError`` or ``ssl.SSLError``; the services layer translates those
into [ConnectivityError][nostrgather.core.exceptions.ConnectivityError].

See Also:
    [NostrTransport][nostrgather.utils.protocol.NostrTransport]: The
        nostr-sdk backed implementation.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Final, Protocol, TypeAlias, runtime_checkable


if TYPE_CHECKING:
    from collections.abc import AsyncIterator, Sequence

    from nostrgather.models import Record, RecordFilter


DEFAULT_TIMEOUT: float = 10.0


class EndOfStoredRecords:
    """Marker yielded by a subscription when stored records are exhausted."""

    __slots__ = ()

    def __repr__(self) -> str:
        return "END_OF_STORED_RECORDS"


END_OF_STORED_RECORDS: Final = EndOfStoredRecords()

StreamItem: TypeAlias = "Record | EndOfStoredRecords"


@runtime_checkable
class RelayConnection(Protocol):
    """An open connection to a single relay endpoint."""

    @property
    def url(self) -> str: ...

    async def query(self, filters: Sequence[RecordFilter], timeout: float) -> list[Record]:  # noqa: ASYNC109
        """Run a one-shot query and return the stored records it selects."""
        ...

    def subscribe(self, filters: Sequence[RecordFilter]) -> AsyncIterator[StreamItem]:
        """Open a subscription yielding records and one end-of-stored marker."""
        ...

    async def publish(self, record: Record) -> None:
        """Publish a signed record; raise ``OSError`` if the relay rejects it."""
        ...

    async def close(self) -> None: ...


@runtime_checkable
class RelayTransport(Protocol):
    """Factory of per-endpoint connections."""

    async def connect(self, url: str, timeout: float = DEFAULT_TIMEOUT) -> RelayConnection:  # noqa: ASYNC109
        """Connect to *url* or raise ``OSError``/``TimeoutError``/``ssl.SSLError``."""
        ...
