"""Session configuration models.

All bounds and windows used by the aggregation layer live here so they can
be tuned from YAML without code changes. Every field has a default, so an
empty YAML file is a valid configuration.

Examples:
    ```yaml
    relays: []                # non-empty = session override list
    timeouts:
      query: 10.0
      profile: 5.0
    cache:
      profile_ttl: 86400
      follows_ttl: 10800
      profile_chunk_size: 500
    storage:
      directory: ~/.config/nostrgather
      profile: work
    keys:
      keys_env: NOSTR_PRIVATE_KEY
    ```

See Also:
    [Session][nostrgather.services.session.Session]: Consumes
        [SessionConfig][nostrgather.services.configs.SessionConfig].
"""

from __future__ import annotations

from pathlib import Path
from typing import Any, Self

from pydantic import BaseModel, Field, ValidationError, field_validator

from nostrgather.core.exceptions import ConfigurationError
from nostrgather.core.yaml import load_yaml
from nostrgather.models import normalize_url
from nostrgather.utils.keys import KeysConfig


DEFAULT_STATE_DIRECTORY = "~/.config/nostrgather"


class TimeoutsConfig(BaseModel):
    """Deadlines, in seconds, for each kind of network call."""

    connect: float = Field(default=10.0, gt=0.0, le=120.0, description="Per-endpoint connect")
    query: float = Field(default=10.0, gt=0.0, le=300.0, description="Bounded fan-out query")
    profile: float = Field(default=5.0, gt=0.0, le=120.0, description="Single profile lookup")
    publish: float = Field(default=30.0, gt=0.0, le=300.0, description="Publish fan-out")


class CacheConfig(BaseModel):
    """Freshness windows and bulk-refresh chunking."""

    profile_ttl: float = Field(
        default=86_400.0, gt=0.0, description="Individual profile freshness window (24h)"
    )
    follows_ttl: float = Field(
        default=10_800.0, gt=0.0, description="Follow set and bulk profile refresh window (3h)"
    )
    directory_ttl: float = Field(
        default=10_800.0, gt=0.0, description="Minimum interval between relay-list refreshes"
    )
    profile_chunk_size: int = Field(
        default=500, ge=1, le=5000, description="Authors per bulk metadata filter"
    )


class StorageConfig(BaseModel):
    """Location and namespace of the local state files."""

    directory: str = Field(default=DEFAULT_STATE_DIRECTORY, min_length=1)
    profile: str | None = Field(default=None, description="Account profile namespace")

    @field_validator("profile", mode="after")
    @classmethod
    def validate_profile(cls, v: str | None) -> str | None:
        if v is not None and (not v or "/" in v or v.startswith(".")):
            raise ValueError(f"invalid profile name: {v!r}")
        return v


class SessionConfig(BaseModel):
    """Top-level configuration of a [Session][nostrgather.services.session.Session].

    Attributes:
        relays: Session override list. When non-empty, these URLs replace the
            stored directory for this session and bypass capability
            filtering for both reads and writes.
        timeouts: Network deadlines.
        cache: Freshness windows and chunk size.
        storage: State directory and account profile.
        keys: Local key pair loaded from the environment.
    """

    relays: list[str] = Field(default_factory=list)
    timeouts: TimeoutsConfig = Field(default_factory=TimeoutsConfig)
    cache: CacheConfig = Field(default_factory=CacheConfig)
    storage: StorageConfig = Field(default_factory=StorageConfig)
    keys: KeysConfig = Field(default_factory=KeysConfig)

    @field_validator("relays", mode="after")
    @classmethod
    def normalize_relays(cls, v: list[str]) -> list[str]:
        """Normalize override URLs, dropping duplicates while preserving order."""
        return list(dict.fromkeys(normalize_url(url) for url in v))

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Self:
        """Validate *data*, translating Pydantic errors into ``ConfigurationError``."""
        try:
            return cls.model_validate(data)
        except ValidationError as e:
            raise ConfigurationError(f"Invalid configuration: {e}") from e

    @classmethod
    def from_yaml(cls, config_path: str | Path) -> Self:
        """Load and validate a YAML configuration file."""
        return cls.from_dict(load_yaml(config_path))
