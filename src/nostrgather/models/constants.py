"""Shared constants for the models layer.

Defines the enumerations used across model modules and by the services
layer for routing and decoding decisions. Placing them here avoids circular
dependencies between the models and utils layers.

See Also:
    [nostrgather.models.endpoint][]: Uses [Capability][nostrgather.models.constants.Capability]
        to describe what each relay endpoint may be used for.
    [nostrgather.services.decoding][]: Dispatches on
        [EventKind][nostrgather.models.constants.EventKind] to pick a decode strategy.
"""

from __future__ import annotations

from enum import IntEnum, StrEnum


class Capability(StrEnum):
    """Closed set of capability flags carried by a relay endpoint.

    Every fan-out call names the capabilities it requires; an endpoint is
    eligible when it carries all of them (see
    [matches()][nostrgather.models.endpoint.matches]).

    Attributes:
        READ: Endpoint may be queried for records.
        WRITE: Endpoint accepts published records.
        SEARCH: Endpoint supports NIP-50 full-text ``search`` filters.
        DIRECT_MESSAGE: Endpoint is used for direct-message traffic.
        BOOKMARK: Endpoint holds bookmark lists.
        GLOBAL_FEED: Endpoint is used for unfiltered (global) live feeds.

    Note:
        The string values double as the boolean flag names of the stored
        relay document (``{"read": true, "write": false, ...}``).
    """

    READ = "read"
    WRITE = "write"
    SEARCH = "search"
    DIRECT_MESSAGE = "dm"
    BOOKMARK = "bookmark"
    GLOBAL_FEED = "global"


class EventKind(IntEnum):
    """Well-known Nostr record kinds handled by the client.

    Attributes:
        PROFILE_METADATA: Kind 0 -- user profile metadata (NIP-01).
        TEXT_NOTE: Kind 1 -- short text note (NIP-01).
        FOLLOW_LIST: Kind 3 -- follow list (NIP-02).
        ENCRYPTED_DIRECT_MESSAGE: Kind 4 -- shared-secret encrypted DM (NIP-04).
        DELETION: Kind 5 -- deletion request (NIP-09).
        REPOST: Kind 6 -- repost (NIP-18).
        REACTION: Kind 7 -- reaction (NIP-25).
        SEAL: Kind 13 -- sealed rumor inside a gift wrap (NIP-59).
        PRIVATE_DIRECT_MESSAGE: Kind 14 -- chat message carried in a gift wrap (NIP-17).
        GIFT_WRAP: Kind 1059 -- throwaway-signed envelope (NIP-59).
        RELAY_LIST: Kind 10002 -- relay list metadata (NIP-65).
        BOOKMARKS: Kind 10003 -- standard bookmark list (NIP-51).
        CATEGORIZED_BOOKMARKS: Kind 30001 -- categorized bookmark list (NIP-51, legacy).
        ARTICLE: Kind 30023 -- long-form article (NIP-23).
    """

    PROFILE_METADATA = 0
    TEXT_NOTE = 1
    FOLLOW_LIST = 3
    ENCRYPTED_DIRECT_MESSAGE = 4
    DELETION = 5
    REPOST = 6
    REACTION = 7
    SEAL = 13
    PRIVATE_DIRECT_MESSAGE = 14
    GIFT_WRAP = 1059
    RELAY_LIST = 10_002
    BOOKMARKS = 10_003
    CATEGORIZED_BOOKMARKS = 30_001
    ARTICLE = 30_023


EVENT_KIND_MAX = 65_535

# Kinds routed to direct-message capable endpoints.
DIRECT_MESSAGE_KINDS: frozenset[int] = frozenset(
    {
        EventKind.ENCRYPTED_DIRECT_MESSAGE,
        EventKind.PRIVATE_DIRECT_MESSAGE,
        EventKind.GIFT_WRAP,
    }
)

# Kinds routed to bookmark capable endpoints.
BOOKMARK_KINDS: frozenset[int] = frozenset(
    {EventKind.BOOKMARKS, EventKind.CATEGORIZED_BOOKMARKS}
)
