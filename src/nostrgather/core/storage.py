"""
Local JSON storage for slowly-changing client state.

Persists the three structured documents the client keeps between runs:
the relay directory, the follow set, and the profile cache. Files can be
namespaced by a named account profile so several identities share one
state directory (``relays.json`` vs ``relays-alice.json``).

Writes are atomic: each document is written to a temporary file in the same
directory and then moved over the target with ``os.replace``.

See Also:
    [Session][nostrgather.services.session.Session]: Loads state on entry and
        flushes dirty state on exit.
    [ProfileCache.flush()][nostrgather.services.profiles.ProfileCache.flush]:
        Deferred persistence of the profile cache.
"""

from __future__ import annotations

import json
import logging
import os
import tempfile
from pathlib import Path
from typing import Any

from nostrgather.models import FollowSet, ProfileCacheEntry, RelayEndpoint

from .exceptions import StorageError


logger = logging.getLogger(__name__)

RELAYS_DOCUMENT = "relays"
FOLLOWS_DOCUMENT = "follows"
PROFILES_DOCUMENT = "profiles"


class LocalStorage:
    """Structured read/write of directory, follow set, and profile cache.

    Args:
        directory: State directory (created on first write).
        profile: Optional account profile name used to namespace every file.

    Examples:
        ```python
        storage = LocalStorage("~/.config/nostrgather", profile="work")
        endpoints, refreshed_at = storage.load_relays()
        storage.save_profiles(cache_entries)
        ```
    """

    def __init__(self, directory: str | Path, profile: str | None = None) -> None:
        if profile is not None and (not profile or "/" in profile or profile.startswith(".")):
            raise StorageError(f"Invalid profile name: {profile!r}")
        self._directory = Path(directory).expanduser()
        self._profile = profile

    @property
    def directory(self) -> Path:
        return self._directory

    @property
    def profile(self) -> str | None:
        return self._profile

    def path_for(self, document: str) -> Path:
        """Return the file path of *document* for the current profile."""
        suffix = f"-{self._profile}" if self._profile else ""
        return self._directory / f"{document}{suffix}.json"

    def list_profiles(self) -> list[str]:
        """Return the names of account profiles with a stored relay document."""
        if not self._directory.is_dir():
            return []
        prefix = f"{RELAYS_DOCUMENT}-"
        names = [
            p.stem[len(prefix) :]
            for p in self._directory.glob(f"{prefix}*.json")
            if p.stem[len(prefix) :]
        ]
        return sorted(names)

    # -- Raw documents -------------------------------------------------------

    def _read(self, document: str) -> dict[str, Any]:
        path = self.path_for(document)
        if not path.exists():
            return {}
        try:
            with path.open(encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, ValueError) as e:
            raise StorageError(f"Cannot read {path}: {e}") from e
        if not isinstance(data, dict):
            raise StorageError(f"Cannot read {path}: top level must be an object")
        return data

    def _write(self, document: str, data: dict[str, Any]) -> None:
        path = self.path_for(document)
        try:
            self._directory.mkdir(parents=True, exist_ok=True, mode=0o700)
            fd, tmp_name = tempfile.mkstemp(dir=self._directory, prefix=f".{path.name}.")
            try:
                with os.fdopen(fd, "w", encoding="utf-8") as f:
                    json.dump(data, f, indent=2, ensure_ascii=False)
                os.replace(tmp_name, path)
            except BaseException:
                Path(tmp_name).unlink(missing_ok=True)
                raise
        except OSError as e:
            raise StorageError(f"Cannot write {path}: {e}") from e
        logger.debug("document_written path=%s", path)

    # -- Relay directory -----------------------------------------------------

    def load_relays(self) -> tuple[list[RelayEndpoint], int]:
        """Load the relay directory and its last refresh timestamp.

        Raises:
            StorageError: If the file is unreadable or an entry is invalid.
        """
        data = self._read(RELAYS_DOCUMENT)
        relays = data.get("relays") or {}
        try:
            endpoints = [RelayEndpoint.from_dict(url, flags) for url, flags in relays.items()]
            refreshed_at = int(data.get("refreshed_at", 0))
        except (TypeError, ValueError, AttributeError) as e:
            path = self.path_for(RELAYS_DOCUMENT)
            raise StorageError(f"Invalid relay entry in {path}: {e}") from e
        return endpoints, refreshed_at

    def save_relays(self, endpoints: list[RelayEndpoint], refreshed_at: int) -> None:
        self._write(
            RELAYS_DOCUMENT,
            {
                "relays": {ep.url: ep.to_dict() for ep in sorted(endpoints, key=lambda e: e.url)},
                "refreshed_at": refreshed_at,
            },
        )

    # -- Follow set ----------------------------------------------------------

    def load_follows(self) -> FollowSet:
        data = self._read(FOLLOWS_DOCUMENT)
        try:
            return FollowSet.from_dict(data)
        except (TypeError, ValueError) as e:
            path = self.path_for(FOLLOWS_DOCUMENT)
            raise StorageError(f"Invalid follow set in {path}: {e}") from e

    def save_follows(self, follows: FollowSet) -> None:
        self._write(FOLLOWS_DOCUMENT, follows.to_dict())

    # -- Profile cache -------------------------------------------------------

    def load_profiles(self) -> dict[str, ProfileCacheEntry]:
        """Load every cached profile entry, keyed by identity.

        Invalid entries are skipped with a warning rather than failing the
        whole load.

        Raises:
            StorageError: If the file is unreadable or not a profile document.
        """
        data = self._read(PROFILES_DOCUMENT)
        profiles = data.get("profiles") or {}
        if not isinstance(profiles, dict):
            path = self.path_for(PROFILES_DOCUMENT)
            raise StorageError(f"Cannot read {path}: profiles must be an object")
        entries: dict[str, ProfileCacheEntry] = {}
        for identity, raw in profiles.items():
            try:
                entries[identity] = ProfileCacheEntry.from_dict(identity, raw)
            except (TypeError, ValueError, AttributeError) as e:
                logger.warning("profile_entry_skipped identity=%s error=%s", identity, e)
        return entries

    def save_profiles(self, entries: dict[str, ProfileCacheEntry]) -> None:
        profiles = {identity: entry.to_dict() for identity, entry in sorted(entries.items())}
        self._write(PROFILES_DOCUMENT, {"profiles": profiles})
