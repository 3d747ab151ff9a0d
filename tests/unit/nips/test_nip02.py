"""
Unit tests for nips.nip02 module.

Tests:
- parse_follow_list() ordering, de-duplication, and filtering of bad keys
"""

import pytest

from nostrgather.models import Record
from nostrgather.nips import parse_follow_list


ALICE = "a1" * 32
BOB = "b2" * 32
CAROL = "c3" * 32


def _follow_list(*tags: tuple[str, ...], kind: int = 3) -> Record:
    return Record(id="f" * 64, pubkey=ALICE, created_at=1, kind=kind, tags=tags)


class TestParseFollowList:
    """Tests for parse_follow_list()."""

    def test_order_preserved(self) -> None:
        record = _follow_list(("p", CAROL), ("p", BOB, "wss://hint.example.com", "bob"))
        assert parse_follow_list(record) == [CAROL, BOB]

    def test_duplicates_dropped(self) -> None:
        record = _follow_list(("p", BOB), ("p", CAROL), ("p", BOB))
        assert parse_follow_list(record) == [BOB, CAROL]

    def test_uppercase_normalized(self) -> None:
        assert parse_follow_list(_follow_list(("p", BOB.upper()))) == [BOB]

    def test_invalid_keys_skipped(self) -> None:
        record = _follow_list(("p", "npub1notahexkey"), ("p", "ab"), ("p", BOB))
        assert parse_follow_list(record) == [BOB]

    def test_other_tags_ignored(self) -> None:
        record = _follow_list(("e", "d4" * 32), ("t", "nostr"), ("p", BOB))
        assert parse_follow_list(record) == [BOB]

    def test_empty_list(self) -> None:
        assert parse_follow_list(_follow_list()) == []

    def test_wrong_kind(self) -> None:
        with pytest.raises(ValueError, match="expected kind 3"):
            parse_follow_list(_follow_list(kind=1))
