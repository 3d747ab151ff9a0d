"""
Relay endpoint with a normalized WebSocket URL and capability flags.

An [RelayEndpoint][nostrgather.models.endpoint.RelayEndpoint] pairs a
validated ``ws://``/``wss://`` URL with the closed set of
[Capability][nostrgather.models.constants.Capability] flags it carries.
Capability checks go through the single
[matches()][nostrgather.models.endpoint.matches] predicate instead of
ad hoc flag comparisons at each call site.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass, field
from typing import Any, ClassVar

from rfc3986 import uri_reference
from rfc3986.exceptions import UnpermittedComponentError, ValidationError
from rfc3986.validators import Validator

from ._validation import validate_str_not_empty
from .constants import Capability


def normalize_url(raw: str) -> str:
    """Parse and normalize a raw relay URL.

    Validates the URI structure using RFC 3986, lowercases scheme and host,
    collapses duplicate slashes, strips a trailing slash, and omits the port
    when it is the scheme default.

    Args:
        raw: Raw URL string (e.g. ``"WSS://Relay.Example.com:443/"``).

    Returns:
        The normalized URL (e.g. ``"wss://relay.example.com"``).

    Raises:
        ValueError: If the scheme is not ``ws``/``wss`` or the URI is invalid.
    """
    validate_str_not_empty(raw, "url")
    uri = uri_reference(raw.strip()).normalize()

    validator = (
        Validator()
        .require_presence_of("scheme", "host")
        .allow_schemes("ws", "wss")
        .check_validity_of("scheme", "host", "port", "path")
    )

    try:
        validator.validate(uri)
    except UnpermittedComponentError:
        raise ValueError(f"Invalid scheme: must be ws or wss ({raw})") from None
    except ValidationError as e:
        raise ValueError(f"Invalid URL: {e}") from None

    if uri.fragment:
        raise ValueError(f"Relay URL must not contain a fragment: #{uri.fragment}")

    scheme = uri.scheme
    host = uri.host
    port = int(uri.port) if uri.port else None

    path = uri.path or ""
    while "//" in path:
        path = path.replace("//", "/")
    path = path.rstrip("/")

    default_port = RelayEndpoint.DEFAULT_PORTS[scheme]
    authority = f"{host}:{port}" if port and port != default_port else host
    query = f"?{uri.query}" if uri.query else ""
    return f"{scheme}://{authority}{path}{query}"


@dataclass(frozen=True, slots=True)
class RelayEndpoint:
    """Immutable relay endpoint: URL identity plus capability flags.

    Attributes:
        url: Normalized WebSocket URL (the endpoint's identity).
        capabilities: Capability flags this endpoint carries.

    Raises:
        ValueError: If the URL is malformed or uses an unsupported scheme.

    Examples:
        ```python
        ep = RelayEndpoint("wss://relay.example.com/", {Capability.READ})
        ep.url                         # 'wss://relay.example.com'
        ep.has(Capability.READ)        # True
        ep.to_dict()                   # {'read': True, 'write': False, ...}
        ```
    """

    url: str
    capabilities: frozenset[Capability] = field(default_factory=frozenset)

    DEFAULT_PORTS: ClassVar[dict[str, int]] = {"ws": 80, "wss": 443}

    def __post_init__(self) -> None:
        """Normalize the URL and coerce capabilities into a frozenset."""
        object.__setattr__(self, "url", normalize_url(self.url))
        object.__setattr__(
            self, "capabilities", frozenset(Capability(c) for c in self.capabilities)
        )

    def has(self, capability: Capability) -> bool:
        """Whether this endpoint carries *capability*."""
        return capability in self.capabilities

    def with_capabilities(
        self,
        add: Iterable[Capability] = (),
        remove: Iterable[Capability] = (),
    ) -> RelayEndpoint:
        """Return a copy with *add* merged in and *remove* taken out."""
        caps = (self.capabilities | frozenset(add)) - frozenset(remove)
        return RelayEndpoint(self.url, caps)

    def to_dict(self) -> dict[str, bool]:
        """Return the stored flag document (one boolean per capability)."""
        return {cap.value: cap in self.capabilities for cap in Capability}

    @classmethod
    def from_dict(cls, url: str, flags: dict[str, Any]) -> RelayEndpoint:
        """Build an endpoint from a stored ``{flag: bool}`` document.

        Unknown flag names are ignored.
        """
        known = {cap.value: cap for cap in Capability}
        caps = {known[name] for name, enabled in flags.items() if enabled and name in known}
        return cls(url, frozenset(caps))


def matches(endpoint: RelayEndpoint, required: Iterable[Capability]) -> bool:
    """Whether *endpoint* carries every capability in *required*.

    An empty requirement matches every endpoint.
    """
    return frozenset(required) <= endpoint.capabilities
