"""Session: wires configuration, local state, and the aggregation services.

A [Session][nostrgather.services.session.Session] owns every long-lived
component of one client invocation. Entering the context loads the stored
relay directory, follow set, and profile cache; it also refreshes the
directory from the user's NIP-65 relay list when the refresh window has
elapsed. Leaving the context persists whatever changed: the profile cache
only when an entry was created or updated, the directory and follow set
only when they were refreshed.

Examples:
    ```python
    from nostrgather import Session, SessionConfig

    config = SessionConfig.from_yaml("config/nostrgather.yaml")
    async with Session(config) as session:
        for record in await session.timeline.home(limit=20):
            print(session.profiles.label(record.pubkey), record.content)
    ```
"""

from __future__ import annotations

import time
from typing import TYPE_CHECKING, Any, Self

from nostrgather.core.exceptions import NoUsableEndpointsError
from nostrgather.core.logger import Logger
from nostrgather.core.storage import LocalStorage
from nostrgather.core.yaml import load_yaml
from nostrgather.models import EventKind, RecordFilter
from nostrgather.nips.decoder import NostrContentDecoder
from nostrgather.utils.protocol import NostrTransport

from .configs import SessionConfig
from .decoding import RecordResolver
from .directory import RelayDirectory
from .fanout import FanoutExecutor
from .follows import FollowService
from .profiles import ProfileCache
from .publish import Publisher
from .query import READ_ONLY, QueryAggregator
from .stream import StreamAggregator
from .timeline import Timeline


if TYPE_CHECKING:
    from collections.abc import Callable
    from pathlib import Path
    from types import TracebackType

    from nostrgather.nips.decoder import ContentDecoder
    from nostrgather.utils.transport import RelayTransport


class Session:
    """One client invocation's components and persisted state.

    Args:
        config: Session configuration.
        transport: Relay transport (defaults to
            [NostrTransport][nostrgather.utils.protocol.NostrTransport]).
        decoder: Content decoder (defaults to
            [NostrContentDecoder][nostrgather.nips.decoder.NostrContentDecoder]
            when keys are configured).
        storage: Local storage (defaults to the configured directory).
        clock: Returns the current Unix time.
    """

    def __init__(
        self,
        config: SessionConfig | None = None,
        *,
        transport: RelayTransport | None = None,
        decoder: ContentDecoder | None = None,
        storage: LocalStorage | None = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._config = config or SessionConfig()
        keys = self._config.keys.keys
        self._transport = transport or NostrTransport(keys=keys)
        if decoder is None and keys is not None:
            decoder = NostrContentDecoder(keys)
        self._decoder = decoder
        self._storage = storage or LocalStorage(
            self._config.storage.directory, profile=self._config.storage.profile
        )
        self._clock = clock
        self._logger = Logger("session")
        self._components: dict[str, Any] | None = None

    @classmethod
    def from_yaml(cls, config_path: str | Path, **kwargs: Any) -> Self:
        """Create a session from a YAML configuration file."""
        return cls.from_dict(load_yaml(config_path), **kwargs)

    @classmethod
    def from_dict(cls, data: dict[str, Any], **kwargs: Any) -> Self:
        """Create a session from a configuration dictionary."""
        return cls(SessionConfig.from_dict(data), **kwargs)

    # -------------------------------------------------------------------------
    # Components
    # -------------------------------------------------------------------------

    @property
    def config(self) -> SessionConfig:
        return self._config

    @property
    def storage(self) -> LocalStorage:
        return self._storage

    @property
    def identity(self) -> str | None:
        """Hex public key of the local identity, if keys are configured."""
        return self._decoder.identity if self._decoder is not None else None

    def _component(self, name: str) -> Any:
        if self._components is None:
            raise RuntimeError("session is not open; use 'async with Session(...)'")
        return self._components[name]

    @property
    def directory(self) -> RelayDirectory:
        return self._component("directory")

    @property
    def executor(self) -> FanoutExecutor:
        return self._component("executor")

    @property
    def query(self) -> QueryAggregator:
        return self._component("query")

    @property
    def stream(self) -> StreamAggregator:
        return self._component("stream")

    @property
    def profiles(self) -> ProfileCache:
        return self._component("profiles")

    @property
    def follows(self) -> FollowService | None:
        return self._component("follows")

    @property
    def publisher(self) -> Publisher:
        return self._component("publisher")

    @property
    def timeline(self) -> Timeline:
        return self._component("timeline")

    # -------------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------------

    def open(self) -> None:
        """Load stored state and build every component.

        Raises:
            StorageError: If a stored document is unreadable or invalid.
        """
        cfg = self._config
        endpoints, refreshed_at = self._storage.load_relays()
        directory = RelayDirectory(
            endpoints,
            refreshed_at=refreshed_at,
            override=cfg.relays,
            refresh_interval=cfg.cache.directory_ttl,
        )
        executor = FanoutExecutor(directory, self._transport, connect_timeout=cfg.timeouts.connect)
        resolver = RecordResolver(self._decoder)
        query = QueryAggregator(executor, resolver, timeout=cfg.timeouts.query)
        stream = StreamAggregator(executor, resolver, catch_up_timeout=cfg.timeouts.query)
        profiles = ProfileCache(
            query,
            entries=self._storage.load_profiles(),
            ttl=cfg.cache.profile_ttl,
            bulk_ttl=cfg.cache.follows_ttl,
            timeout=cfg.timeouts.profile,
            chunk_size=cfg.cache.profile_chunk_size,
            clock=self._clock,
        )
        follows = None
        if self.identity is not None:
            follows = FollowService(
                query,
                profiles,
                self.identity,
                follows=self._storage.load_follows(),
                ttl=cfg.cache.follows_ttl,
                clock=self._clock,
            )
        self._components = {
            "directory": directory,
            "executor": executor,
            "query": query,
            "stream": stream,
            "profiles": profiles,
            "follows": follows,
            "publisher": Publisher(executor, query, timeout=cfg.timeouts.publish),
            "timeline": Timeline(
                query,
                stream,
                profiles,
                follows=follows,
                identity=self.identity,
                chunk_size=cfg.cache.profile_chunk_size,
            ),
        }
        self._logger.info(
            "session_opened",
            endpoints=len(endpoints),
            override=len(cfg.relays),
            profiles=len(profiles.entries),
            profile=cfg.storage.profile or "default",
        )

    async def refresh_directory(self) -> bool:
        """Refresh the directory from the user's latest relay list if due.

        Returns:
            Whether the directory was refreshed.
        """
        directory = self.directory
        now = self._clock()
        if self.identity is None or directory.overridden or not directory.needs_refresh(now):
            return False
        try:
            records = await self.query.query(
                RecordFilter(kinds=(EventKind.RELAY_LIST,), authors=(self.identity,), limit=1),
                required=READ_ONLY,
            )
        except NoUsableEndpointsError as e:
            self._logger.warning("directory_refresh_skipped", error=str(e))
            return False
        if not records:
            return False
        return directory.refresh_from_relay_list(records[-1], now)

    def save(self) -> None:
        """Persist changed state: directory, follow set, and dirty profile cache."""
        directory = self.directory
        if directory.dirty:
            self._storage.save_relays(directory.endpoints, directory.refreshed_at)
            directory.mark_saved()
        follows = self.follows
        if follows is not None and follows.dirty:
            self._storage.save_follows(follows.follows)
            follows.mark_saved()
        self.profiles.flush(self._storage)

    async def close(self) -> None:
        """Persist changed state and release the components."""
        if self._components is None:
            return
        try:
            await self.executor.drain()
            self.save()
        finally:
            self._components = None
            self._logger.info("session_closed")

    async def __aenter__(self) -> Self:
        self.open()
        await self.refresh_directory()
        return self

    async def __aexit__(
        self,
        _exc_type: type[BaseException] | None,
        _exc_val: BaseException | None,
        _exc_tb: TracebackType | None,
    ) -> None:
        await self.close()
