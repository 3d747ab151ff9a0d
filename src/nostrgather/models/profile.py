"""
Profile display attributes, cache entries, and follow sets.

[Profile][nostrgather.models.profile.Profile] holds the display attributes
parsed from a kind-0 metadata record.
[ProfileCacheEntry][nostrgather.models.profile.ProfileCacheEntry] stamps a
profile with the time it was fetched, and
[FollowSet][nostrgather.models.profile.FollowSet] holds the ordered list of
followed identities. Freshness checks take the current time as an explicit
argument so they are deterministic under test.
"""

from __future__ import annotations

import json
from dataclasses import asdict, dataclass, field, fields
from typing import Any

from ._validation import validate_hex_key, validate_str_not_empty, validate_timestamp


PLACEHOLDER_LENGTH = 12


@dataclass(frozen=True, slots=True)
class Profile:
    """Display attributes of an identity (NIP-01 kind 0, NIP-24 extras).

    Attributes:
        name: Short handle.
        display_name: Richer display name.
        about: Free-form biography.
        picture: Avatar URL.
        banner: Banner image URL.
        website: Personal website.
        nip05: NIP-05 internet identifier.
        lud16: Lightning address.
        bot: Whether the account self-identifies as automated.
    """

    name: str = ""
    display_name: str = ""
    about: str = ""
    picture: str = ""
    banner: str = ""
    website: str = ""
    nip05: str = ""
    lud16: str = ""
    bot: bool = False

    @property
    def label(self) -> str:
        """Best human-readable name: display_name, then name."""
        return self.display_name or self.name

    @classmethod
    def from_content(cls, content: str) -> Profile:
        """Parse kind-0 JSON content leniently.

        Unknown keys are ignored and non-string values for string fields are
        dropped.

        Raises:
            ValueError: If *content* is not a JSON object.
        """
        try:
            data = json.loads(content)
        except json.JSONDecodeError as e:
            raise ValueError(f"invalid profile JSON: {e}") from e
        if not isinstance(data, dict):
            raise ValueError("profile JSON must be an object")
        return cls.from_dict(data)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Profile:
        """Build a profile from a mapping, keeping only well-typed known keys."""
        kwargs: dict[str, Any] = {}
        for f in fields(cls):
            value = data.get(f.name)
            if f.name == "bot":
                if isinstance(value, bool):
                    kwargs["bot"] = value
            elif isinstance(value, str) and "\x00" not in value:
                kwargs[f.name] = value
        # Some clients still publish the legacy camelCase key
        if "display_name" not in kwargs and isinstance(data.get("displayName"), str):
            kwargs["display_name"] = data["displayName"]
        return cls(**kwargs)

    def to_dict(self) -> dict[str, Any]:
        """Return the attributes as a plain dict."""
        return asdict(self)

    @classmethod
    def placeholder(cls, identity: str) -> Profile:
        """Build a placeholder profile named after a truncated *identity*."""
        return cls(name=identity[:PLACEHOLDER_LENGTH])


@dataclass(frozen=True, slots=True)
class ProfileCacheEntry:
    """Cached profile stamped with its fetch time.

    Attributes:
        identity: 64-char hex public key the profile belongs to.
        profile: Cached display attributes.
        fetched_at: Unix timestamp (seconds) of the fetch or placeholder
            synthesis.
    """

    identity: str
    profile: Profile
    fetched_at: int

    def __post_init__(self) -> None:
        validate_hex_key(self.identity, "identity")
        validate_timestamp(self.fetched_at, "fetched_at")

    def is_fresh(self, now: float, ttl: float) -> bool:
        """Whether the entry's age at *now* is below *ttl* seconds."""
        return now - self.fetched_at < ttl

    def to_dict(self) -> dict[str, Any]:
        return {"profile": self.profile.to_dict(), "fetched_at": self.fetched_at}

    @classmethod
    def from_dict(cls, identity: str, data: dict[str, Any]) -> ProfileCacheEntry:
        return cls(
            identity=identity,
            profile=Profile.from_dict(data.get("profile") or {}),
            fetched_at=int(data.get("fetched_at", 0)),
        )


@dataclass(frozen=True, slots=True)
class FollowSet:
    """Ordered, de-duplicated list of followed identities.

    Attributes:
        identities: Followed public keys, in follow-list order.
        refreshed_at: Unix timestamp of the last refresh (0 = never).
    """

    identities: tuple[str, ...] = field(default=())
    refreshed_at: int = 0

    def __post_init__(self) -> None:
        seen: dict[str, None] = {}
        for identity in self.identities:
            validate_str_not_empty(identity, "identity")
            seen.setdefault(identity, None)
        object.__setattr__(self, "identities", tuple(seen))
        validate_timestamp(self.refreshed_at, "refreshed_at")

    def __len__(self) -> int:
        return len(self.identities)

    def __contains__(self, identity: object) -> bool:
        return identity in self.identities

    def is_stale(self, now: float, ttl: float) -> bool:
        """Whether the set needs a refresh: empty or at least *ttl* seconds old."""
        return not self.identities or now - self.refreshed_at >= ttl

    def to_dict(self) -> dict[str, Any]:
        return {"identities": list(self.identities), "refreshed_at": self.refreshed_at}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> FollowSet:
        return cls(
            identities=tuple(data.get("identities") or ()),
            refreshed_at=int(data.get("refreshed_at", 0)),
        )
