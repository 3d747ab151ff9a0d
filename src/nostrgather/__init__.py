r"""nostrgather -- Multi-relay Nostr aggregation client library.

Gathers, deduplicates, and decodes records replicated inconsistently across
many independently operated relays, and keeps a local cache of
slowly-changing metadata (relay directory, follow set, profiles).

Architecture follows a **diamond DAG** dependency structure where imports
flow strictly downward:

```text
              services         Aggregation, decoding, caching, session
             /   |   \
          core  nips  utils    Errors/logging/storage, NIP helpers, transport
             \   |   /
              models           Pure frozen dataclasses (zero I/O)
```

Attributes:
    models: Records, filters, endpoints, profiles. Zero I/O.
    core: Exceptions, structured logging, YAML loading, local storage.
    nips: NIP-02 / NIP-65 parsing and the NIP-04 / NIP-59 content decoder.
    utils: Key management and the nostr-sdk relay transport.
    services: Directory, fan-out, aggregators, profile cache, session.

Note:
    Top-level imports (``from nostrgather import Session``) use lazy loading
    and resolve on first access.
"""

import importlib
from importlib.metadata import version as _get_version


__version__ = _get_version("nostrgather")

__all__ = [
    "Capability",
    "EventKind",
    "GatherError",
    "LocalStorage",
    "Logger",
    "NoUsableEndpointsError",
    "Profile",
    "Record",
    "RecordFilter",
    "RelayEndpoint",
    "Session",
    "SessionConfig",
]

_LAZY_IMPORTS: dict[str, tuple[str, str]] = {
    "GatherError": ("nostrgather.core", "GatherError"),
    "LocalStorage": ("nostrgather.core", "LocalStorage"),
    "Logger": ("nostrgather.core", "Logger"),
    "NoUsableEndpointsError": ("nostrgather.core", "NoUsableEndpointsError"),
    "Capability": ("nostrgather.models", "Capability"),
    "EventKind": ("nostrgather.models", "EventKind"),
    "Profile": ("nostrgather.models", "Profile"),
    "Record": ("nostrgather.models", "Record"),
    "RecordFilter": ("nostrgather.models", "RecordFilter"),
    "RelayEndpoint": ("nostrgather.models", "RelayEndpoint"),
    "Session": ("nostrgather.services", "Session"),
    "SessionConfig": ("nostrgather.services", "SessionConfig"),
}


def __getattr__(name: str) -> object:
    if name in _LAZY_IMPORTS:
        module_path, attr_name = _LAZY_IMPORTS[name]
        module = importlib.import_module(module_path)
        value = getattr(module, attr_name)
        globals()[name] = value  # Cache for subsequent access
        return value
    raise AttributeError(f"module 'nostrgather' has no attribute {name!r}")


def __dir__() -> list[str]:
    return __all__
