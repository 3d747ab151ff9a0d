"""Nostr key management utilities.

Provides functions and a Pydantic model for loading Nostr cryptographic keys
from environment variables, plus identity parsing helpers. Supports both
nsec1 (bech32) and hex-encoded private key formats.

Warning:
    Private keys must **never** be stored in configuration files, source code,
    or logged to any output. Always use environment variables or a secure
    secret management system.

Examples:
    ```python
    import os

    os.environ["NOSTR_PRIVATE_KEY"] = "nsec1..."  # pragma: allowlist secret
    keys = load_keys_from_env("NOSTR_PRIVATE_KEY")
    print(keys.public_key().to_hex())
    ```
"""

from __future__ import annotations

import os
from typing import Any

from nostr_sdk import Keys, PublicKey
from pydantic import BaseModel, Field, model_validator


ENV_PRIVATE_KEY = "NOSTR_PRIVATE_KEY"  # pragma: allowlist secret  # Default env var name


def load_keys_from_env(env_var: str) -> Keys | None:
    """Load Nostr keys from an environment variable.

    Args:
        env_var: Name of the environment variable containing the private key.

    Returns:
        A ``nostr_sdk.Keys`` instance, or ``None`` when the variable is unset
        or empty (read-only session).

    Raises:
        nostr_sdk.NostrError: If the key value is malformed or invalid.
    """
    value = os.getenv(env_var)
    if not value:
        return None
    return Keys.parse(value)


def parse_identity(value: str) -> str:
    """Normalize an identity given as hex, ``npub1...`` or ``nostr:npub1...`` to hex.

    Raises:
        ValueError: If *value* is not a valid public key in any accepted form.
    """
    candidate = value.strip()
    if candidate.startswith("nostr:"):
        candidate = candidate[len("nostr:") :]
    try:
        return PublicKey.parse(candidate).to_hex()
    except Exception as e:  # nostr-sdk raises its own NostrError type
        raise ValueError(f"invalid identity: {value!r}") from e


class KeysConfig(BaseModel):
    """Pydantic model that auto-loads Nostr keys from an environment variable.

    The ``keys`` field is populated during validation from the environment
    variable named by ``keys_env``. A missing variable leaves ``keys`` unset,
    which makes the session read-only: encrypted records cannot be decoded
    and nothing can be signed.

    Attributes:
        keys_env: Environment variable name for the private key.
        keys: Loaded ``nostr_sdk.Keys`` instance, or ``None``.

    Warning:
        The ``keys`` field contains a live private key. Do not serialize
        this model to logs, JSON, or any persistent storage.
    """

    model_config = {"arbitrary_types_allowed": True}

    keys_env: str = Field(
        default=ENV_PRIVATE_KEY,
        min_length=1,
        description="Environment variable name for private key",
    )
    keys: Keys | None = Field(default=None, exclude=True, description="Keys loaded from keys_env")

    @model_validator(mode="before")
    @classmethod
    def _load_keys_from_env(cls, data: Any) -> Any:
        """Auto-populate the ``keys`` field from the environment variable."""
        if isinstance(data, dict) and "keys" not in data:
            env_var = data.get("keys_env", ENV_PRIVATE_KEY)
            data = {**data, "keys": load_keys_from_env(env_var)}
        return data

    @property
    def public_key(self) -> str | None:
        """Hex public key of the loaded keys, or ``None`` when read-only."""
        return self.keys.public_key().to_hex() if self.keys is not None else None
