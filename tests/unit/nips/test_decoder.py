"""
Unit tests for nips.decoder module.

Tests:
- compute_record_id() canonical serialization
- NostrContentDecoder error translation to ValueError (nostr-sdk mocked)
- Envelope unwrap author check and inner id computation
"""

import json
from typing import Any
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from nostrgather.models import Record
from nostrgather.nips.decoder import ContentDecoder, NostrContentDecoder, compute_record_id


ME = "a1" * 32
SENDER = "b2" * 32


def _keys() -> MagicMock:
    keys = MagicMock()
    keys.public_key.return_value.to_hex.return_value = ME
    return keys


def _envelope() -> Record:
    return Record(
        id="c3" * 32,
        pubkey="d4" * 32,
        created_at=1_700_000_000,
        kind=1059,
        tags=(("p", ME),),
        content="sealed",
        sig="ab" * 64,
    )


def _unwrapped(sender: str, rumor: dict) -> MagicMock:
    gift = MagicMock()
    gift.sender.return_value.to_hex.return_value = sender
    gift.rumor.return_value.as_json.return_value = json.dumps(rumor)
    return gift


def _patch_unwrap(**kwargs: Any) -> Any:
    return patch("nostrgather.nips.decoder.UnwrappedGift", from_gift_wrap=AsyncMock(**kwargs))


@pytest.fixture
def decoder() -> NostrContentDecoder:
    with patch("nostrgather.nips.decoder.NostrSigner"):
        return NostrContentDecoder(_keys())


# =============================================================================
# compute_record_id() Tests
# =============================================================================


class TestComputeRecordId:
    """Tests for compute_record_id()."""

    def test_known_vector(self) -> None:
        data = {
            "pubkey": ME,
            "created_at": 1_700_000_000,
            "kind": 1,
            "tags": [["t", "nostr"]],
            "content": "hello",
        }
        assert (
            compute_record_id(data)
            == "5e16694ffd3d5cd9938349da60e6e0985d2d75a46ad456bc592b717fa2b2b7de"
        )

    def test_content_changes_id(self) -> None:
        base = {"pubkey": ME, "created_at": 1, "kind": 1, "tags": [], "content": "a"}
        assert compute_record_id(base) != compute_record_id({**base, "content": "b"})


# =============================================================================
# NostrContentDecoder Tests
# =============================================================================


class TestNostrContentDecoder:
    """Tests for NostrContentDecoder with nostr-sdk mocked out."""

    def test_satisfies_protocol(self, decoder: NostrContentDecoder) -> None:
        assert isinstance(decoder, ContentDecoder)
        assert decoder.identity == ME

    async def test_decrypt_success(self, decoder: NostrContentDecoder) -> None:
        with (
            patch("nostrgather.nips.decoder.PublicKey"),
            patch("nostrgather.nips.decoder.nip04_decrypt", return_value="hi") as decrypt,
        ):
            assert await decoder.decrypt_shared(SENDER, "cipher?iv=x") == "hi"
        decrypt.assert_called_once()

    async def test_decrypt_failure_wrapped(self, decoder: NostrContentDecoder) -> None:
        with (
            patch("nostrgather.nips.decoder.PublicKey"),
            patch("nostrgather.nips.decoder.nip04_decrypt", side_effect=RuntimeError("bad mac")),
            pytest.raises(ValueError, match="decryption failed"),
        ):
            await decoder.decrypt_shared(SENDER, "cipher")

    async def test_unwrap_success_computes_missing_id(self, decoder: NostrContentDecoder) -> None:
        rumor = {
            "pubkey": SENDER,
            "created_at": 1_700_000_000,
            "kind": 14,
            "tags": [["p", ME]],
            "content": "hello",
        }
        gift = _unwrapped(SENDER, rumor)
        with (
            patch("nostrgather.nips.decoder.NostrEvent"),
            _patch_unwrap(return_value=gift),
        ):
            inner = await decoder.unwrap_envelope(_envelope())
        assert inner.kind == 14
        assert inner.pubkey == SENDER
        assert inner.sig == ""
        assert inner.id == compute_record_id(rumor)

    async def test_unwrap_author_mismatch(self, decoder: NostrContentDecoder) -> None:
        rumor = {"pubkey": ME, "created_at": 1, "kind": 14, "tags": [], "content": "x"}
        with (
            patch("nostrgather.nips.decoder.NostrEvent"),
            _patch_unwrap(return_value=_unwrapped(SENDER, rumor)),
            pytest.raises(ValueError, match="does not match"),
        ):
            await decoder.unwrap_envelope(_envelope())

    async def test_unwrap_failure_wrapped(self, decoder: NostrContentDecoder) -> None:
        with (
            patch("nostrgather.nips.decoder.NostrEvent"),
            _patch_unwrap(side_effect=RuntimeError("not for us")),
            pytest.raises(ValueError, match="unwrap failed"),
        ):
            await decoder.unwrap_envelope(_envelope())

    async def test_unwrap_malformed_inner(self, decoder: NostrContentDecoder) -> None:
        rumor = {"pubkey": SENDER, "created_at": -5, "kind": 14, "tags": [], "content": "x"}
        with (
            patch("nostrgather.nips.decoder.NostrEvent"),
            _patch_unwrap(return_value=_unwrapped(SENDER, rumor)),
            pytest.raises(ValueError, match="malformed inner record"),
        ):
            await decoder.unwrap_envelope(_envelope())
