"""
Unit tests for services.publish module.

Tests:
- Write routing, including direct-message endpoints and fallback
- Accepted URL reporting and PublishingError
- Broadcast of an existing record in its wire form
"""

from collections.abc import Callable
from typing import Any

import pytest

from nostrgather.core.exceptions import NoUsableEndpointsError, PublishingError
from nostrgather.models import Capability, Record, RelayEndpoint
from nostrgather.services import Publisher
from nostrgather.services.publish import publish_capabilities


ME = "e1" * 32
ALICE = "a1" * 32
READ = Capability.READ
WRITE = Capability.WRITE
DM = Capability.DIRECT_MESSAGE
W1 = "wss://w1.example.com"
W2 = "wss://w2.example.com"
R1 = "wss://r1.example.com"


def _ep(url: str, *caps: Capability) -> RelayEndpoint:
    return RelayEndpoint(url, frozenset(caps))


def _publisher(built: Any) -> Publisher:
    return Publisher(built.executor, built.query, timeout=2.0)


class TestPublishCapabilities:
    """Tests for publish_capabilities()."""

    def test_note(self, make_record: Callable[..., Record]) -> None:
        assert publish_capabilities(make_record(1)) == {WRITE}

    @pytest.mark.parametrize("kind", [4, 1059])
    def test_direct_message(self, make_record: Callable[..., Record], kind: int) -> None:
        assert publish_capabilities(make_record(1, kind=kind)) == {WRITE, DM}


class TestPublish:
    """Tests for Publisher.publish()."""

    async def test_accepted_urls(
        self, stack: Callable[..., Any], transport: Any, make_record: Callable[..., Record]
    ) -> None:
        transport.add(W2)
        transport.add(W1)
        record = make_record(1)
        publisher = _publisher(stack([_ep(W1, WRITE), _ep(W2, WRITE), _ep(R1, READ)]))

        assert await publisher.publish(record) == [W1, W2]
        assert transport.connections[W1].published == [record]
        assert R1 not in transport.connects

    async def test_partial_rejection(
        self, stack: Callable[..., Any], transport: Any, make_record: Callable[..., Record]
    ) -> None:
        transport.add(W1)
        transport.add(W2, publish_error=OSError("blocked: spam"))
        publisher = _publisher(stack([_ep(W1, WRITE), _ep(W2, WRITE)]))
        assert await publisher.publish(make_record(1)) == [W1]

    async def test_all_rejected(
        self, stack: Callable[..., Any], transport: Any, make_record: Callable[..., Record]
    ) -> None:
        transport.add(W1, publish_error=OSError("blocked"))
        publisher = _publisher(stack([_ep(W1, WRITE)]))
        with pytest.raises(PublishingError, match="rejected"):
            await publisher.publish(make_record(1))

    async def test_unreachable(
        self, stack: Callable[..., Any], transport: Any, make_record: Callable[..., Record]
    ) -> None:
        transport.fail(W1)
        publisher = _publisher(stack([_ep(W1, WRITE)]))
        with pytest.raises(NoUsableEndpointsError):
            await publisher.publish(make_record(1))

    async def test_unsigned_rejected(
        self, stack: Callable[..., Any], transport: Any, make_record: Callable[..., Record]
    ) -> None:
        publisher = _publisher(stack([_ep(W1, WRITE)]))
        with pytest.raises(PublishingError, match="not signed"):
            await publisher.publish(make_record(1, sig=""))
        assert transport.connects == []

    async def test_decoded_copy_rejected(
        self, stack: Callable[..., Any], transport: Any, make_record: Callable[..., Record]
    ) -> None:
        transport.add(W1)
        publisher = _publisher(stack([_ep(W1, WRITE)]))
        wire = make_record(1, pubkey=ME, kind=4, tags=[("p", ALICE)], content="cipher")
        with pytest.raises(PublishingError, match="decoded content"):
            await publisher.publish(wire.with_content("plaintext"))
        assert transport.connects == []

    async def test_direct_message_routing(
        self, stack: Callable[..., Any], transport: Any, make_record: Callable[..., Record]
    ) -> None:
        transport.add(W1)
        transport.add(W2)
        publisher = _publisher(stack([_ep(W1, WRITE), _ep(W2, WRITE, DM)]))
        dm = make_record(1, pubkey=ME, kind=4, tags=[("p", ALICE)], content="cipher")
        assert await publisher.publish(dm) == [W2]

    async def test_direct_message_fallback(
        self, stack: Callable[..., Any], transport: Any, make_record: Callable[..., Record]
    ) -> None:
        transport.add(W1)
        publisher = _publisher(stack([_ep(W1, WRITE)]))
        dm = make_record(1, pubkey=ME, kind=4, tags=[("p", ALICE)], content="cipher")
        assert await publisher.publish(dm) == [W1]

    async def test_override_receives_everything(
        self, stack: Callable[..., Any], transport: Any, make_record: Callable[..., Record]
    ) -> None:
        transport.add(R1)
        publisher = _publisher(stack([_ep(W1, WRITE)], override=[R1]))
        assert await publisher.publish(make_record(1)) == [R1]


class TestBroadcast:
    """Tests for Publisher.broadcast()."""

    async def test_republishes_wire_record(
        self, stack: Callable[..., Any], transport: Any, make_record: Callable[..., Record]
    ) -> None:
        dm = make_record(1, pubkey=ALICE, kind=4, tags=[("p", ME)], content="cipher")
        transport.add(R1, [dm])
        transport.add(W1)
        built = stack([_ep(R1, READ), _ep(W1, WRITE)])

        assert await _publisher(built).broadcast(dm.id) == [W1]
        assert transport.connections[W1].published == [dm]
        assert built.decoder.decrypt_calls == []

    async def test_missing_record(self, stack: Callable[..., Any], transport: Any) -> None:
        transport.add(R1)
        built = stack([_ep(R1, READ), _ep(W1, WRITE)])
        with pytest.raises(PublishingError, match="not found"):
            await _publisher(built).broadcast("9" * 64)
