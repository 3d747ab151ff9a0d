"""TTL-based profile cache with batched bulk refresh and deferred persistence.

Individual lookups via
[get()][nostrgather.services.profiles.ProfileCache.get] return a fresh
entry immediately; a miss or stale entry triggers one bounded query for the
identity's latest kind-0 record. When that query yields nothing usable, a
stale entry is returned instead (``profile_stale_fallback``) and only a
complete miss raises
[ProfileNotFoundError][nostrgather.core.exceptions.ProfileNotFoundError].

[refresh_many()][nostrgather.services.profiles.ProfileCache.refresh_many]
refreshes a whole follow set in author chunks and synthesizes placeholder
entries for identities that published no metadata, so every followed
identity is renderable.

Time comes from an injected clock so freshness is deterministic under
test. Entries are never evicted. [flush()][nostrgather.services.profiles.ProfileCache.flush]
writes the full cache only if an entry was created or updated since the
last flush.
"""

from __future__ import annotations

import asyncio
import time
from types import MappingProxyType
from typing import TYPE_CHECKING

from nostrgather.core.exceptions import NoUsableEndpointsError, ProfileNotFoundError
from nostrgather.core.logger import Logger
from nostrgather.models import EventKind, Profile, ProfileCacheEntry, RecordFilter

from .query import READ_ONLY


if TYPE_CHECKING:
    from collections.abc import Callable, Iterable, Mapping

    from nostrgather.core.storage import LocalStorage
    from nostrgather.models import Record

    from .query import QueryAggregator


def latest_profiles(records: Iterable[Record]) -> dict[str, Profile]:
    """Return the newest parseable profile per author among kind-0 *records*."""
    newest: dict[str, Record] = {}
    for record in records:
        if record.kind != EventKind.PROFILE_METADATA:
            continue
        try:
            Profile.from_content(record.content)
        except ValueError:
            continue
        current = newest.get(record.pubkey)
        if current is None or record.created_at > current.created_at:
            newest[record.pubkey] = record
    return {pubkey: Profile.from_content(r.content) for pubkey, r in newest.items()}


class ProfileCache:
    """Identity-keyed profile cache.

    Args:
        query: Aggregator used for metadata lookups.
        entries: Entries loaded from storage.
        ttl: Freshness window of individual lookups (seconds).
        bulk_ttl: Freshness window of follow-set refreshes (seconds).
        timeout: Deadline of one individual lookup (seconds).
        chunk_size: Maximum authors per bulk-refresh filter.
        clock: Returns the current Unix time.
    """

    def __init__(
        self,
        query: QueryAggregator,
        *,
        entries: Mapping[str, ProfileCacheEntry] | None = None,
        ttl: float = 86_400.0,
        bulk_ttl: float = 10_800.0,
        timeout: float = 5.0,  # noqa: ASYNC109
        chunk_size: int = 500,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._query = query
        self._entries: dict[str, ProfileCacheEntry] = dict(entries or {})
        self._ttl = ttl
        self._bulk_ttl = bulk_ttl
        self._timeout = timeout
        self._chunk_size = chunk_size
        self._clock = clock
        self._locks: dict[str, asyncio.Lock] = {}
        self._dirty = False
        self._logger = Logger("profiles")

    @property
    def entries(self) -> Mapping[str, ProfileCacheEntry]:
        return MappingProxyType(self._entries)

    @property
    def dirty(self) -> bool:
        return self._dirty

    def peek(self, identity: str) -> ProfileCacheEntry | None:
        """Return the cached entry for *identity* without any network call."""
        return self._entries.get(identity)

    def label(self, identity: str) -> str:
        """Best cached display label for *identity*, or its placeholder name."""
        entry = self._entries.get(identity)
        profile = entry.profile if entry is not None else Profile.placeholder(identity)
        return profile.label or Profile.placeholder(identity).name

    def _store(self, identity: str, profile: Profile, now: float) -> None:
        self._entries[identity] = ProfileCacheEntry(identity, profile, int(now))
        self._dirty = True

    async def get(self, identity: str) -> Profile:
        """Return the profile of *identity*, fetching it when missing or stale.

        Raises:
            ProfileNotFoundError: If the lookup failed and nothing is cached.
        """
        entry = self._entries.get(identity)
        if entry is not None and entry.is_fresh(self._clock(), self._ttl):
            return entry.profile

        lock = self._locks.setdefault(identity, asyncio.Lock())
        async with lock:
            # A concurrent lookup may have refreshed it meanwhile
            entry = self._entries.get(identity)
            if entry is not None and entry.is_fresh(self._clock(), self._ttl):
                return entry.profile

            profile: Profile | None = None
            try:
                records = await self._query.query(
                    RecordFilter(
                        kinds=(EventKind.PROFILE_METADATA,), authors=(identity,), limit=1
                    ),
                    timeout=self._timeout,
                    required=READ_ONLY,
                )
                profile = latest_profiles(records).get(identity)
            except NoUsableEndpointsError as e:
                self._logger.warning("profile_lookup_failed", identity=identity, error=str(e))

            if profile is not None:
                self._store(identity, profile, self._clock())
                return profile
            if entry is not None:
                self._logger.info(
                    "profile_stale_fallback",
                    identity=identity,
                    age=int(self._clock()) - entry.fetched_at,
                )
                return entry.profile
            raise ProfileNotFoundError(f"no profile found for {identity}", identity=identity)

    async def refresh_many(self, identities: Iterable[str], *, force: bool = False) -> int:
        """Bulk-refresh every identity not fresh within the bulk window.

        Identities are queried in chunks of at most ``chunk_size`` authors.
        Identities with neither new metadata nor a cached entry receive a
        placeholder entry.

        Returns:
            Number of entries created or updated.

        Raises:
            NoUsableEndpointsError: If no read endpoint could be reached.
        """
        now = self._clock()
        stale = [
            identity
            for identity in dict.fromkeys(identities)
            if force
            or (entry := self._entries.get(identity)) is None
            or not entry.is_fresh(now, self._bulk_ttl)
        ]
        if not stale:
            return 0

        found: dict[str, Profile] = {}
        for start in range(0, len(stale), self._chunk_size):
            chunk = tuple(stale[start : start + self._chunk_size])
            records = await self._query.query(
                RecordFilter(kinds=(EventKind.PROFILE_METADATA,), authors=chunk),
                required=READ_ONLY,
            )
            found.update(latest_profiles(records))

        updated = 0
        placeholders = 0
        for identity in stale:
            profile = found.get(identity)
            if profile is None:
                if identity in self._entries:
                    continue
                profile = Profile.placeholder(identity)
                placeholders += 1
            self._store(identity, profile, now)
            updated += 1

        self._logger.info(
            "profiles_refreshed",
            requested=len(stale),
            found=len(found),
            placeholders=placeholders,
        )
        return updated

    def flush(self, storage: LocalStorage) -> bool:
        """Persist the full cache if it changed; return whether a write happened."""
        if not self._dirty:
            return False
        storage.save_profiles(self._entries)
        self._dirty = False
        self._logger.info("profiles_flushed", count=len(self._entries))
        return True
