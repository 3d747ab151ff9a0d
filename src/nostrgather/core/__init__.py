"""Core layer: exceptions, structured logging, YAML loading, and local storage.

Sits in the middle of the diamond DAG -- depends only on
``nostrgather.models`` and is depended upon by ``nostrgather.services``.

Attributes:
    exceptions: Typed error hierarchy rooted at
        [GatherError][nostrgather.core.exceptions.GatherError].
    Logger: Structured logger supporting key=value and JSON output modes.
        See [Logger][nostrgather.core.logger.Logger].
    LocalStorage: JSON persistence of relays, follows, and profiles.
        See [LocalStorage][nostrgather.core.storage.LocalStorage].
    load_yaml: Safe YAML loading with ``yaml.safe_load()``.
"""

from .exceptions import (
    ConfigurationError,
    ConnectivityError,
    DecodeError,
    GatherError,
    NoUsableEndpointsError,
    NotAddressedToMeError,
    ProfileNotFoundError,
    PublishingError,
    RelaySSLError,
    RelayTimeoutError,
    StorageError,
)
from .logger import Logger, StructuredFormatter, configure_logging, format_kv_pairs
from .storage import LocalStorage
from .yaml import load_yaml


__all__ = [
    "ConfigurationError",
    "ConnectivityError",
    "DecodeError",
    "GatherError",
    "LocalStorage",
    "Logger",
    "NoUsableEndpointsError",
    "NotAddressedToMeError",
    "ProfileNotFoundError",
    "PublishingError",
    "RelaySSLError",
    "RelayTimeoutError",
    "StorageError",
    "StructuredFormatter",
    "configure_logging",
    "format_kv_pairs",
    "load_yaml",
]
