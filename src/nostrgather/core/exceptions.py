"""nostrgather exception hierarchy.

Provides typed exceptions for every error category so callers can tell
per-endpoint and per-record failures (contained, never fatal) apart from
directory-level exhaustion (surfaced to the caller). ``CancelledError`` is
never caught by these handlers and propagates untouched.

Exception hierarchy:

```text
GatherError (base -- never raised directly)
├── ConfigurationError       -- config validation, missing keys, bad YAML
├── StorageError             -- unreadable or unwritable local state files
├── ConnectivityError        -- one endpoint unreachable (swallowed per endpoint)
│   ├── RelayTimeoutError    -- connection or response timed out
│   └── RelaySSLError        -- certificate issues
├── NoUsableEndpointsError   -- whole capability class empty/unreachable (fatal)
├── DecodeError              -- one record failed decrypt/unwrap (record dropped)
│   └── NotAddressedToMeError -- neither side of a DM is the local identity
├── ProfileNotFoundError     -- lookup failed and nothing is cached
└── PublishingError          -- no write endpoint accepted a record
```

See Also:
    [FanoutExecutor][nostrgather.services.fanout.FanoutExecutor]: Swallows
        [ConnectivityError][nostrgather.core.exceptions.ConnectivityError] per
        endpoint and raises
        [NoUsableEndpointsError][nostrgather.core.exceptions.NoUsableEndpointsError]
        when nothing was reachable.
    [RecordResolver][nostrgather.services.decoding.RecordResolver]: Raises
        [DecodeError][nostrgather.core.exceptions.DecodeError] subclasses.
"""

from __future__ import annotations

from collections.abc import Iterable


class GatherError(Exception):
    """Base exception for all nostrgather errors.

    Never raised directly -- always use a specific subclass.
    """


# ---------------------------------------------------------------------------
# Configuration and storage
# ---------------------------------------------------------------------------


class ConfigurationError(GatherError):
    """Invalid or missing configuration (YAML, env vars)."""


class StorageError(GatherError):
    """Local state file could not be read, parsed, or written."""


# ---------------------------------------------------------------------------
# Connectivity
# ---------------------------------------------------------------------------


class ConnectivityError(GatherError):
    """A single endpoint could not be reached or failed mid-call.

    Contained by the fan-out executor: one unreachable endpoint never aborts
    sibling work.
    """

    def __init__(self, message: str, url: str | None = None) -> None:
        super().__init__(message)
        self.url = url


class RelayTimeoutError(ConnectivityError):
    """Connection or response timed out."""


class RelaySSLError(ConnectivityError):
    """TLS/SSL certificate or handshake failure."""


class NoUsableEndpointsError(GatherError):
    """No endpoint of the required capability class was usable.

    Raised when the directory has no matching endpoint at all, or when every
    matching endpoint failed to connect. This is the only connectivity
    failure that propagates to the caller.

    Attributes:
        required: Capability names that were required.
        attempted: URLs that were tried (empty when none matched).
    """

    def __init__(
        self,
        message: str,
        required: Iterable[str] = (),
        attempted: Iterable[str] = (),
    ) -> None:
        super().__init__(message)
        self.required = tuple(sorted(required))
        self.attempted = tuple(attempted)


# ---------------------------------------------------------------------------
# Decoding
# ---------------------------------------------------------------------------


class DecodeError(GatherError):
    """A single record could not be decrypted or unwrapped.

    The record is dropped; sibling records are unaffected.

    Attributes:
        record_id: Id of the record that failed, when known.
    """

    def __init__(self, message: str, record_id: str | None = None) -> None:
        super().__init__(message)
        self.record_id = record_id


class NotAddressedToMeError(DecodeError):
    """Neither the author nor the tagged recipient is the local identity."""


# ---------------------------------------------------------------------------
# Profiles and publishing
# ---------------------------------------------------------------------------


class ProfileNotFoundError(GatherError):
    """Profile lookup failed and no cached value exists for the identity."""

    def __init__(self, message: str, identity: str | None = None) -> None:
        super().__init__(message)
        self.identity = identity


class PublishingError(GatherError):
    """A record was not accepted by any write endpoint."""
