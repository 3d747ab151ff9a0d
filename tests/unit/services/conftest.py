"""
Shared fixtures for services tests.

Provides:
- Environment isolation from a real private key
- A service stack (directory, executor, resolver, aggregators) over the
  in-memory transport
"""

from __future__ import annotations

from collections.abc import Callable, Iterable
from dataclasses import dataclass
from typing import Any

import pytest

from nostrgather.models import RelayEndpoint
from nostrgather.services import (
    FanoutExecutor,
    QueryAggregator,
    RecordResolver,
    RelayDirectory,
    StreamAggregator,
)
from nostrgather.utils.keys import ENV_PRIVATE_KEY


LOCAL_IDENTITY = "e1" * 32


@pytest.fixture(autouse=True)
def no_private_key(monkeypatch: pytest.MonkeyPatch) -> None:
    """Keep a developer's real key out of every session built in tests."""
    monkeypatch.delenv(ENV_PRIVATE_KEY, raising=False)


@dataclass
class Stack:
    directory: RelayDirectory
    executor: FanoutExecutor
    decoder: Any
    resolver: RecordResolver
    query: QueryAggregator
    stream: StreamAggregator


@pytest.fixture
def stack(transport: Any, decoder_factory: Callable[[str], Any]) -> Callable[..., Stack]:
    """Build a service stack over the shared fake transport."""

    def _build(
        endpoints: Iterable[RelayEndpoint] = (),
        *,
        identity: str | None = LOCAL_IDENTITY,
        override: Iterable[str] = (),
        timeout: float = 2.0,
    ) -> Stack:
        directory = RelayDirectory(endpoints, override=override)
        executor = FanoutExecutor(directory, transport, connect_timeout=1.0)
        decoder = decoder_factory(identity) if identity is not None else None
        resolver = RecordResolver(decoder)
        return Stack(
            directory=directory,
            executor=executor,
            decoder=decoder,
            resolver=resolver,
            query=QueryAggregator(executor, resolver, timeout=timeout),
            stream=StreamAggregator(executor, resolver, catch_up_timeout=timeout),
        )

    return _build
