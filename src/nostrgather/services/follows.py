"""Follow set maintenance (NIP-02)."""

from __future__ import annotations

import time
from typing import TYPE_CHECKING

from nostrgather.core.logger import Logger
from nostrgather.models import EventKind, FollowSet, RecordFilter
from nostrgather.nips import parse_follow_list


if TYPE_CHECKING:
    from collections.abc import Callable

    from .profiles import ProfileCache
    from .query import QueryAggregator


class FollowService:
    """Keeps the local identity's follow set and the profiles it needs fresh.

    Args:
        query: Aggregator used to fetch the follow list.
        profiles: Cache bulk-refreshed for the whole follow set.
        identity: Hex public key of the local identity.
        follows: Follow set loaded from storage.
        ttl: Seconds after which the follow set is refreshed.
        clock: Returns the current Unix time.
    """

    def __init__(
        self,
        query: QueryAggregator,
        profiles: ProfileCache,
        identity: str,
        *,
        follows: FollowSet | None = None,
        ttl: float = 10_800.0,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._query = query
        self._profiles = profiles
        self._identity = identity
        self._follows = follows or FollowSet()
        self._ttl = ttl
        self._clock = clock
        self._dirty = False
        self._logger = Logger("follows")

    @property
    def follows(self) -> FollowSet:
        """The current follow set, without refreshing."""
        return self._follows

    @property
    def dirty(self) -> bool:
        return self._dirty

    def mark_saved(self) -> None:
        self._dirty = False

    async def get_follows(self, *, force: bool = False) -> FollowSet:
        """Return the follow set, refreshing it when stale or empty.

        The latest kind-3 record of the local identity replaces the stored
        set; if none is found the stored set is kept. Profiles of every
        followed identity are then bulk-refreshed.

        Raises:
            NoUsableEndpointsError: If no read endpoint could be reached.
        """
        now = self._clock()
        if force or self._follows.is_stale(now, self._ttl):
            records = await self._query.query(
                RecordFilter(kinds=(EventKind.FOLLOW_LIST,), authors=(self._identity,), limit=1)
            )
            if records:
                latest = max(records, key=lambda r: r.created_at)
                self._follows = FollowSet(tuple(parse_follow_list(latest)), refreshed_at=int(now))
                self._dirty = True
                self._logger.info("follows_refreshed", count=len(self._follows))
            else:
                self._logger.warning("follow_list_not_found", identity=self._identity)

        if self._follows.identities:
            await self._profiles.refresh_many(self._follows.identities)
        return self._follows
