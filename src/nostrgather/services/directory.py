"""Relay directory: the set of known endpoints and their capability flags.

The directory answers one question for every network operation: which
endpoints carry a given set of
[Capability][nostrgather.models.constants.Capability] flags. Routing goes
through the single [matches()][nostrgather.models.endpoint.matches]
predicate.

A session override list, when present, replaces the stored endpoints for
the whole session and bypasses capability filtering for reads and writes
alike.

The stored directory changes only through
[refresh_from_relay_list()][nostrgather.services.directory.RelayDirectory.refresh_from_relay_list]
(driven by the user's own NIP-65 relay list, at most once per refresh
window) or explicit [upsert()][nostrgather.services.directory.RelayDirectory.upsert]
calls. A refresh rewrites only the read and write flags; search, direct
message, bookmark and global-feed flags are manual configuration and are
never narrowed.

See Also:
    [FanoutExecutor][nostrgather.services.fanout.FanoutExecutor]: Asks the
        directory for the endpoints of each call.
    [LocalStorage][nostrgather.core.storage.LocalStorage]: Persists the
        directory between runs.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from nostrgather.core.logger import Logger
from nostrgather.models import Capability, RelayEndpoint, matches
from nostrgather.nips import parse_relay_list


if TYPE_CHECKING:
    from collections.abc import Iterable

    from nostrgather.models import Record


_READ_WRITE = frozenset({Capability.READ, Capability.WRITE})


class RelayDirectory:
    """Known endpoints keyed by normalized URL.

    Args:
        endpoints: Stored endpoints (usually from
            [LocalStorage.load_relays()][nostrgather.core.storage.LocalStorage.load_relays]).
        refreshed_at: Unix timestamp of the last relay-list refresh.
        override: Session override URLs. When non-empty, every call is
            served by exactly these endpoints regardless of capability.
        refresh_interval: Minimum seconds between two relay-list refreshes.
    """

    def __init__(
        self,
        endpoints: Iterable[RelayEndpoint] = (),
        *,
        refreshed_at: int = 0,
        override: Iterable[str] = (),
        refresh_interval: float = 10_800.0,
    ) -> None:
        self._endpoints: dict[str, RelayEndpoint] = {ep.url: ep for ep in endpoints}
        self._override = tuple(
            RelayEndpoint(url, frozenset(Capability)) for url in dict.fromkeys(override)
        )
        self._refreshed_at = refreshed_at
        self._refresh_interval = refresh_interval
        self._dirty = False
        self._logger = Logger("directory")

    @property
    def endpoints(self) -> list[RelayEndpoint]:
        """Stored endpoints, sorted by URL (the override list is not included)."""
        return [self._endpoints[url] for url in sorted(self._endpoints)]

    @property
    def overridden(self) -> bool:
        return bool(self._override)

    @property
    def refreshed_at(self) -> int:
        return self._refreshed_at

    @property
    def dirty(self) -> bool:
        """Whether the stored endpoints changed since load (or the last save)."""
        return self._dirty

    def mark_saved(self) -> None:
        self._dirty = False

    def get(self, url: str) -> RelayEndpoint | None:
        return self._endpoints.get(RelayEndpoint(url).url)

    def endpoints_for(self, required: Iterable[Capability]) -> frozenset[RelayEndpoint]:
        """Return every endpoint carrying all of *required*.

        With a session override the override endpoints are returned as-is.
        """
        if self._override:
            return frozenset(self._override)
        required = frozenset(required)
        return frozenset(ep for ep in self._endpoints.values() if matches(ep, required))

    def upsert(self, endpoint: RelayEndpoint) -> None:
        """Add *endpoint* or replace the stored flags of the same URL."""
        if self._endpoints.get(endpoint.url) != endpoint:
            self._endpoints[endpoint.url] = endpoint
            self._dirty = True

    def needs_refresh(self, now: float) -> bool:
        """Whether the refresh window has elapsed at *now*."""
        return now - self._refreshed_at >= self._refresh_interval

    def refresh_from_relay_list(self, record: Record, now: float) -> bool:
        """Merge the read/write flags of a NIP-65 relay list into the directory.

        Listed URLs get exactly the read/write flags the list declares while
        keeping every other flag they already carry. Unlisted endpoints are
        left untouched and nothing is ever removed.

        Args:
            record: The user's latest kind-10002 record.
            now: Current Unix time, used for the refresh window.

        Returns:
            ``True`` if the refresh ran, ``False`` if the window has not
            elapsed yet or a session override is active.

        Raises:
            ValueError: If *record* is not a relay list.
        """
        if self._override or not self.needs_refresh(now):
            return False

        usage = parse_relay_list(record)
        changed = 0
        for url, flags in usage.items():
            declared = {
                cap
                for cap, on in ((Capability.READ, flags.read), (Capability.WRITE, flags.write))
                if on
            }
            current = self._endpoints.get(url)
            if current is None:
                merged = RelayEndpoint(url, frozenset(declared))
            else:
                merged = current.with_capabilities(add=declared, remove=_READ_WRITE - declared)
            if merged != current:
                self._endpoints[url] = merged
                changed += 1

        self._refreshed_at = int(now)
        self._dirty = True
        self._logger.info(
            "directory_refreshed",
            listed=len(usage),
            changed=changed,
            total=len(self._endpoints),
        )
        return True
