r"""Relay aggregation, decoding, caching, and the session that wires them.

Services are the top layer of the diamond DAG, depending on
[nostrgather.core][nostrgather.core], [nostrgather.nips][nostrgather.nips],
[nostrgather.utils][nostrgather.utils], and
[nostrgather.models][nostrgather.models].

```text
Timeline / Publisher / FollowService
        |                  \
QueryAggregator  StreamAggregator  ProfileCache --> QueryAggregator
        \             /
       FanoutExecutor --> RelayDirectory
        |       \
  RelayTransport  RecordResolver --> ContentDecoder
```

Attributes:
    RelayDirectory: Endpoints and capability flags, session override,
        NIP-65 refresh.
    FanoutExecutor: Concurrent per-endpoint callbacks under one deadline
        with per-endpoint failure isolation.
    QueryAggregator: Bounded, deduplicated, time-sorted queries.
    StreamAggregator: Catch-up and follow-mode subscriptions.
    RecordResolver: Kind-dispatched decoding (plain, shared-secret, wrapped).
    ProfileCache: TTL profile cache with bulk refresh and deferred flush.
    FollowService: NIP-02 follow set maintenance.
    Publisher: Publishing and re-broadcasting signed records.
    Timeline: Home, global, search, bookmark, and direct-message views.
    Session: Async context manager owning all of the above.

Examples:
    ```python
    from nostrgather.services import Session, SessionConfig

    async with Session(SessionConfig(relays=["wss://relay.example.com"])) as session:
        notes = await session.timeline.global_feed(limit=10)
    ```
"""

from .configs import CacheConfig, SessionConfig, StorageConfig, TimeoutsConfig
from .decoding import Plain, RecordResolver, SymmetricEncrypted, Wrapped
from .directory import RelayDirectory
from .fanout import FanoutExecutor, FanoutReport
from .follows import FollowService
from .profiles import ProfileCache
from .publish import Publisher
from .query import QueryAggregator, RecordCollector, required_capabilities
from .session import Session
from .stream import StreamAggregator
from .timeline import Conversation, Timeline


__all__ = [
    "CacheConfig",
    "Conversation",
    "FanoutExecutor",
    "FanoutReport",
    "FollowService",
    "Plain",
    "ProfileCache",
    "Publisher",
    "QueryAggregator",
    "RecordCollector",
    "RecordResolver",
    "RelayDirectory",
    "Session",
    "SessionConfig",
    "StorageConfig",
    "StreamAggregator",
    "SymmetricEncrypted",
    "TimeoutsConfig",
    "Timeline",
    "Wrapped",
    "required_capabilities",
]
