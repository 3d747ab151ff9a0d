"""Read flows built on the aggregators.

[Timeline][nostrgather.services.timeline.Timeline] groups the client's
record views: the home timeline over the follow set, the global feed, live
tailing, NIP-50 search, NIP-51 bookmarks and direct-message conversations
(NIP-04 and NIP-17 gift-wrapped chat).

Bounded views always return records sorted by ascending ``created_at`` and
trimmed to the newest ``limit`` entries.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, NamedTuple

from nostrgather.core.exceptions import ConfigurationError, NotAddressedToMeError
from nostrgather.models import Capability, EventKind, RecordFilter

from .decoding import resolve_counterparty


if TYPE_CHECKING:
    from collections.abc import Iterable, Mapping, Sequence

    from nostrgather.models import Record

    from .fanout import FanoutReport
    from .follows import FollowService
    from .profiles import ProfileCache
    from .query import QueryAggregator
    from .stream import RecordCallback, StreamAggregator


GLOBAL_FEED: frozenset[Capability] = frozenset({Capability.READ, Capability.GLOBAL_FEED})
BOOKMARK_LIST_TAG = "bookmark"


class Conversation(NamedTuple):
    """One direct-message counterparty with its latest activity."""

    identity: str
    label: str
    last_at: int


def newest(records: Iterable[Record], limit: int | None) -> list[Record]:
    """Sort *records* ascending by time and keep the newest *limit* of them."""
    ordered = sorted(records, key=lambda r: (r.created_at, r.id))
    if limit is not None and len(ordered) > limit:
        return ordered[len(ordered) - limit :]
    return ordered


def chunked(values: Sequence[str], size: int) -> list[tuple[str, ...]]:
    return [tuple(values[i : i + size]) for i in range(0, len(values), size)]


def dm_counterparty(record: Record, identity: str) -> str | None:
    """Counterparty of a decoded direct message, or ``None`` if not a DM of *identity*.

    Chat messages (kind 14) must involve exactly the local identity and one
    other participant.
    """
    if record.kind == EventKind.ENCRYPTED_DIRECT_MESSAGE:
        try:
            return resolve_counterparty(record, identity)
        except NotAddressedToMeError:
            return None
    if record.kind == EventKind.PRIVATE_DIRECT_MESSAGE:
        recipient = record.first_tag_value("p")
        if recipient is None:
            return None
        if record.pubkey == identity and recipient != identity:
            return recipient
        if recipient == identity and record.pubkey != identity:
            return record.pubkey
    return None


class Timeline:
    """Record views for one session.

    Args:
        query: Bounded query aggregator.
        stream: Subscription aggregator.
        profiles: Profile cache used for conversation labels.
        follows: Follow set service (``None`` without local keys).
        identity: Hex public key of the local identity (``None`` without keys).
        chunk_size: Maximum authors per filter.
    """

    def __init__(
        self,
        query: QueryAggregator,
        stream: StreamAggregator,
        profiles: ProfileCache,
        *,
        follows: FollowService | None = None,
        identity: str | None = None,
        chunk_size: int = 500,
    ) -> None:
        self._query = query
        self._stream = stream
        self._profiles = profiles
        self._follows = follows
        self._identity = identity
        self._chunk_size = chunk_size

    def _require_identity(self) -> str:
        if self._identity is None:
            raise ConfigurationError("this view needs a private key (set NOSTR_PRIVATE_KEY)")
        return self._identity

    async def _collect(
        self,
        filters: list[RecordFilter],
        limit: int | None,
        required: Iterable[Capability] | None = None,
    ) -> list[Record]:
        buffer: list[Record] = []
        await self._stream.stream(filters, buffer.append, required=required)
        return newest(buffer, limit)

    # -- Notes ---------------------------------------------------------------

    async def home(
        self,
        limit: int = 30,
        *,
        author: str | None = None,
        kind: int = EventKind.TEXT_NOTE,
    ) -> list[Record]:
        """Newest notes of the follow set (or of one *author*).

        Raises:
            ConfigurationError: Without local keys and no *author*, or when
                the follow set is empty.
        """
        if author is not None:
            authors: Sequence[str] = (author,)
        else:
            self._require_identity()
            if self._follows is None:
                raise ConfigurationError("no follow set available")
            authors = (await self._follows.get_follows()).identities
            if not authors:
                raise ConfigurationError("no follows found; follow someone first")

        filters = [
            RecordFilter(kinds=(kind,), authors=chunk, limit=limit)
            for chunk in chunked(authors, self._chunk_size)
        ]
        return await self._collect(filters, limit)

    async def global_feed(
        self, limit: int = 30, *, kind: int = EventKind.TEXT_NOTE
    ) -> list[Record]:
        """Newest notes from global-feed endpoints (read endpoints if none)."""
        filters = [RecordFilter(kinds=(kind,), limit=limit)]
        return await self._collect(filters, limit, GLOBAL_FEED)

    async def follow(
        self,
        callback: RecordCallback,
        *,
        kinds: Sequence[int] = (EventKind.TEXT_NOTE,),
        authors: Sequence[str] | None = None,
        tags: Mapping[str, Sequence[str]] | None = None,
        since: int | None = None,
    ) -> FanoutReport:
        """Tail live records until *callback* returns ``False`` or the caller cancels.

        Without *authors* the feed is global and prefers global-feed
        endpoints.
        """
        record_filter = RecordFilter(
            kinds=tuple(kinds),
            authors=tuple(authors) if authors else None,
            tags={name: tuple(values) for name, values in (tags or {}).items()},
            since=since,
        )
        return await self._stream.stream(
            record_filter,
            callback,
            close_on_catch_up=False,
            required=None if authors else GLOBAL_FEED,
        )

    async def search(self, text: str, limit: int = 30) -> list[Record]:
        """NIP-50 full-text search routed to search-capable endpoints."""
        records = await self._query.query(
            RecordFilter(kinds=(EventKind.TEXT_NOTE,), search=text, limit=limit)
        )
        return newest(records, limit)

    # -- Bookmarks -----------------------------------------------------------

    async def bookmarks(self, limit: int = 30) -> list[Record]:
        """Notes referenced by the local identity's latest bookmark list.

        Both the categorized list (kind 30001, ``d=bookmark``) and the
        standard list (kind 10003) are read; the newest one wins.
        """
        identity = self._require_identity()
        lists = await self._query.query(
            [
                RecordFilter(
                    kinds=(EventKind.CATEGORIZED_BOOKMARKS,),
                    authors=(identity,),
                    tags={"d": (BOOKMARK_LIST_TAG,)},
                    limit=1,
                ),
                RecordFilter(kinds=(EventKind.BOOKMARKS,), authors=(identity,), limit=1),
            ]
        )
        if not lists:
            return []
        ids = list(dict.fromkeys(lists[-1].tag_values("e")))
        if not ids:
            return []
        notes = await self._query.query(
            [RecordFilter(ids=chunk) for chunk in chunked(ids, self._chunk_size)]
        )
        return newest(notes, limit)

    # -- Direct messages -----------------------------------------------------

    def _dm_filters(self, identity: str, counterparty: str | None) -> list[RecordFilter]:
        sent = RecordFilter(
            kinds=(EventKind.ENCRYPTED_DIRECT_MESSAGE,),
            authors=(identity,),
            tags={"p": (counterparty,)} if counterparty else {},
        )
        received = RecordFilter(
            kinds=(EventKind.ENCRYPTED_DIRECT_MESSAGE,),
            authors=(counterparty,) if counterparty else None,
            tags={"p": (identity,)},
        )
        wrapped = RecordFilter(kinds=(EventKind.GIFT_WRAP,), tags={"p": (identity,)})
        return [sent, received, wrapped]

    async def direct_messages(self, counterparty: str, limit: int | None = None) -> list[Record]:
        """Decoded conversation with *counterparty*, oldest first.

        Gift-wrapped chat messages are kept only when their participants are
        exactly the local identity and *counterparty*.
        """
        identity = self._require_identity()
        records = await self._query.query(self._dm_filters(identity, counterparty))
        messages = [r for r in records if dm_counterparty(r, identity) == counterparty]
        return newest(messages, limit)

    async def conversations(self) -> list[Conversation]:
        """Distinct direct-message counterparties, most recently active first."""
        identity = self._require_identity()
        records = await self._query.query(self._dm_filters(identity, None))
        latest: dict[str, int] = {}
        for record in records:
            counterparty = dm_counterparty(record, identity)
            if counterparty is not None:
                latest[counterparty] = max(latest.get(counterparty, 0), record.created_at)
        ordered = sorted(latest.items(), key=lambda item: (-item[1], item[0]))
        return [
            Conversation(identity=cp, label=self._profiles.label(cp), last_at=at)
            for cp, at in ordered
        ]
