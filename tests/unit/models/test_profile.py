"""
Unit tests for models.profile module.

Tests:
- Profile lenient parsing from kind-0 content and placeholder synthesis
- ProfileCacheEntry freshness against an explicit clock value
- FollowSet de-duplication and staleness
"""

import json

import pytest

from nostrgather.models import FollowSet, Profile, ProfileCacheEntry


ALICE = "a1" * 32
BOB = "b2" * 32
DAY = 86_400


# =============================================================================
# Profile Tests
# =============================================================================


class TestProfile:
    """Tests for Profile parsing and labels."""

    def test_from_content(self) -> None:
        content = json.dumps({"name": "alice", "display_name": "Alice", "bot": True, "extra": 1})
        profile = Profile.from_content(content)
        assert profile.name == "alice"
        assert profile.display_name == "Alice"
        assert profile.bot is True

    def test_wrongly_typed_values_dropped(self) -> None:
        profile = Profile.from_content(json.dumps({"name": 42, "about": ["x"], "bot": "yes"}))
        assert profile == Profile()

    def test_legacy_display_name_key(self) -> None:
        profile = Profile.from_content(json.dumps({"displayName": "Legacy"}))
        assert profile.display_name == "Legacy"

    def test_invalid_json(self) -> None:
        with pytest.raises(ValueError, match="invalid profile JSON"):
            Profile.from_content("{")

    def test_non_object_json(self) -> None:
        with pytest.raises(ValueError, match="object"):
            Profile.from_content("[]")

    def test_label_prefers_display_name(self) -> None:
        assert Profile(name="a", display_name="A").label == "A"
        assert Profile(name="a").label == "a"

    def test_placeholder_truncates_identity(self) -> None:
        assert Profile.placeholder(ALICE).name == ALICE[:12]

    def test_dict_round_trip(self) -> None:
        profile = Profile(name="n", website="https://example.com", bot=True)
        assert Profile.from_dict(profile.to_dict()) == profile


# =============================================================================
# ProfileCacheEntry Tests
# =============================================================================


class TestProfileCacheEntry:
    """Tests for ProfileCacheEntry."""

    def test_fresh_within_window(self) -> None:
        entry = ProfileCacheEntry(ALICE, Profile(name="a"), fetched_at=1_000)
        assert entry.is_fresh(1_000 + DAY - 1, DAY)

    def test_stale_at_window(self) -> None:
        entry = ProfileCacheEntry(ALICE, Profile(name="a"), fetched_at=1_000)
        assert not entry.is_fresh(1_000 + DAY, DAY)

    def test_invalid_identity(self) -> None:
        with pytest.raises(ValueError, match="identity"):
            ProfileCacheEntry("npub1xyz", Profile(), fetched_at=0)

    def test_dict_round_trip(self) -> None:
        entry = ProfileCacheEntry(ALICE, Profile(name="a"), fetched_at=5)
        assert ProfileCacheEntry.from_dict(ALICE, entry.to_dict()) == entry


# =============================================================================
# FollowSet Tests
# =============================================================================


class TestFollowSet:
    """Tests for FollowSet."""

    def test_deduplicates_preserving_order(self) -> None:
        follows = FollowSet((BOB, ALICE, BOB))
        assert follows.identities == (BOB, ALICE)
        assert len(follows) == 2
        assert ALICE in follows

    def test_empty_is_stale(self) -> None:
        assert FollowSet(refreshed_at=1_000).is_stale(1_001, 10_800)

    def test_staleness_window(self) -> None:
        follows = FollowSet((ALICE,), refreshed_at=1_000)
        assert not follows.is_stale(1_000 + 10_799, 10_800)
        assert follows.is_stale(1_000 + 10_800, 10_800)

    def test_dict_round_trip(self) -> None:
        follows = FollowSet((ALICE, BOB), refreshed_at=7)
        assert FollowSet.from_dict(follows.to_dict()) == follows

    def test_empty_identity_rejected(self) -> None:
        with pytest.raises(ValueError):
            FollowSet(("",))
