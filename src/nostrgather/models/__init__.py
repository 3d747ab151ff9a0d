"""Pure frozen dataclasses with zero I/O for records, filters, endpoints, and profiles.

The models layer is the foundation of the diamond DAG. It depends on no other
nostrgather package. Every model uses ``@dataclass(frozen=True, slots=True)``
for immutability, and all validation happens in ``__post_init__`` so invalid
instances never escape the constructor.

Attributes:
    Record: Immutable NIP-01 record with JSON round-tripping and tag helpers.
    RecordFilter: Per-call NIP-01 selection filter with local evaluation.
    RelayEndpoint: Normalized WebSocket URL plus
        [Capability][nostrgather.models.constants.Capability] flags.
    matches: The single capability predicate used by every routing decision.
    Profile: Display attributes parsed from kind-0 metadata.
    ProfileCacheEntry: Profile stamped with its fetch time.
    FollowSet: Ordered, de-duplicated followed identities.

See Also:
    [nostrgather.models.constants][]: Shared enumerations and kind groups.
"""

from .constants import (
    BOOKMARK_KINDS,
    DIRECT_MESSAGE_KINDS,
    EVENT_KIND_MAX,
    Capability,
    EventKind,
)
from .endpoint import RelayEndpoint, matches, normalize_url
from .filter import RecordFilter
from .profile import FollowSet, Profile, ProfileCacheEntry
from .record import Record


__all__ = [
    "BOOKMARK_KINDS",
    "DIRECT_MESSAGE_KINDS",
    "EVENT_KIND_MAX",
    "Capability",
    "EventKind",
    "FollowSet",
    "Profile",
    "ProfileCacheEntry",
    "Record",
    "RecordFilter",
    "RelayEndpoint",
    "matches",
    "normalize_url",
]
