"""
Pytest configuration and shared fixtures for nostrgather tests.

Provides:
- In-memory relay transport and connections (no network access)
- A content decoder with deterministic, inspectable behavior
- A controllable clock for freshness checks
- A record factory producing valid records with predictable ids
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import AsyncIterator, Callable, Iterable, Sequence
from typing import Any

import pytest

from nostrgather.models import Record, RecordFilter
from nostrgather.utils.transport import END_OF_STORED_RECORDS


BASE_TIME = 1_700_000_000
SIGNATURE = "ab" * 64


# ============================================================================
# Logging Configuration
# ============================================================================


@pytest.fixture(scope="session", autouse=True)
def setup_logging() -> None:
    """Configure logging for tests."""
    logging.basicConfig(level=logging.DEBUG)


# ============================================================================
# Fakes
# ============================================================================


class FakeConnection:
    """In-memory relay connection serving canned records."""

    def __init__(
        self,
        url: str,
        records: Iterable[Record] = (),
        *,
        stream: Sequence[Any] | None = None,
        hold_open: bool = False,
        query_delay: float = 0.0,
        query_error: BaseException | None = None,
        publish_error: BaseException | None = None,
    ) -> None:
        self.url = url
        self.records = list(records)
        self.stream_items = (
            list(stream) if stream is not None else [*self.records, END_OF_STORED_RECORDS]
        )
        self.hold_open = hold_open
        self.query_delay = query_delay
        self.query_error = query_error
        self.publish_error = publish_error
        self.queries: list[list[RecordFilter]] = []
        self.subscriptions: list[list[RecordFilter]] = []
        self.published: list[Record] = []
        self.closed = False

    async def query(self, filters: Sequence[RecordFilter], timeout: float) -> list[Record]:
        self.queries.append(list(filters))
        if self.query_delay:
            await asyncio.sleep(self.query_delay)
        if self.query_error is not None:
            raise self.query_error
        return [r for r in self.records if any(f.matches(r) for f in filters)]

    async def subscribe(self, filters: Sequence[RecordFilter]) -> AsyncIterator[Any]:
        self.subscriptions.append(list(filters))
        for item in self.stream_items:
            await asyncio.sleep(0)
            yield item
        if self.hold_open:
            await asyncio.Event().wait()

    async def publish(self, record: Record) -> None:
        if self.publish_error is not None:
            raise self.publish_error
        self.published.append(record)

    async def close(self) -> None:
        self.closed = True


class FakeTransport:
    """Connection factory over a fixed set of fake connections."""

    def __init__(self) -> None:
        self.connections: dict[str, FakeConnection] = {}
        self.failures: dict[str, BaseException] = {}
        self.connects: list[str] = []

    def add(self, url: str, records: Iterable[Record] = (), **kwargs: Any) -> FakeConnection:
        conn = FakeConnection(url, records, **kwargs)
        self.connections[url] = conn
        return conn

    def fail(self, url: str, error: BaseException | None = None) -> None:
        self.failures[url] = error or OSError(f"Connection refused: {url}")

    async def connect(self, url: str, timeout: float = 10.0) -> FakeConnection:
        self.connects.append(url)
        if url in self.failures:
            raise self.failures[url]
        if url not in self.connections:
            raise OSError(f"Unknown host: {url}")
        return self.connections[url]


class FakeDecoder:
    """Deterministic content decoder recording every call."""

    def __init__(self, identity: str) -> None:
        self._identity = identity
        self.decrypt_calls: list[tuple[str, str]] = []
        self.unwrap_calls: list[str] = []
        self.envelopes: dict[str, Record] = {}

    @property
    def identity(self) -> str:
        return self._identity

    async def decrypt_shared(self, counterparty: str, ciphertext: str) -> str:
        self.decrypt_calls.append((counterparty, ciphertext))
        if ciphertext.startswith("bad"):
            raise ValueError("invalid padding")
        return f"plain({ciphertext})"

    async def unwrap_envelope(self, record: Record) -> Record:
        self.unwrap_calls.append(record.id)
        if record.id not in self.envelopes:
            raise ValueError("cannot open envelope")
        return self.envelopes[record.id]


class FakeClock:
    """Callable clock that only moves when told to."""

    def __init__(self, now: float = float(BASE_TIME)) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


# ============================================================================
# Fixtures
# ============================================================================


@pytest.fixture
def transport() -> FakeTransport:
    """Create an empty in-memory transport."""
    return FakeTransport()


@pytest.fixture
def decoder_factory() -> Callable[[str], FakeDecoder]:
    """Build a fake decoder for a given local identity."""
    return FakeDecoder


@pytest.fixture
def clock() -> FakeClock:
    """Create a clock fixed at BASE_TIME."""
    return FakeClock()


@pytest.fixture
def make_record() -> Callable[..., Record]:
    """Factory for valid records whose id is derived from an integer."""

    def _make(
        n: int,
        *,
        pubkey: str = "a1" * 32,
        kind: int = 1,
        created_at: int | None = None,
        tags: Sequence[Sequence[str]] = (),
        content: str = "",
        sig: str = SIGNATURE,
    ) -> Record:
        return Record(
            id=f"{n:064x}",
            pubkey=pubkey,
            created_at=BASE_TIME + n if created_at is None else created_at,
            kind=kind,
            tags=tuple(tuple(t) for t in tags),
            content=content or f"note {n}",
            sig=sig,
        )

    return _make
