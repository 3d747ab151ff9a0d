"""
Unit tests for utils.keys module.

Tests:
- load_keys_from_env() with set, unset, and empty variables
- parse_identity() accepted forms and rejection
- KeysConfig auto-loading and read-only mode
"""

import pytest
from nostr_sdk import Keys

from nostrgather.utils.keys import ENV_PRIVATE_KEY, KeysConfig, load_keys_from_env, parse_identity


@pytest.fixture
def generated_keys() -> Keys:
    return Keys.generate()


# =============================================================================
# load_keys_from_env() Tests
# =============================================================================


class TestLoadKeysFromEnv:
    """Tests for load_keys_from_env()."""

    def test_hex_key(self, monkeypatch: pytest.MonkeyPatch, generated_keys: Keys) -> None:
        monkeypatch.setenv("TEST_NOSTR_KEY", generated_keys.secret_key().to_hex())
        keys = load_keys_from_env("TEST_NOSTR_KEY")
        assert keys is not None
        assert keys.public_key().to_hex() == generated_keys.public_key().to_hex()

    def test_nsec_key(self, monkeypatch: pytest.MonkeyPatch, generated_keys: Keys) -> None:
        monkeypatch.setenv("TEST_NOSTR_KEY", generated_keys.secret_key().to_bech32())
        keys = load_keys_from_env("TEST_NOSTR_KEY")
        assert keys is not None
        assert keys.public_key().to_hex() == generated_keys.public_key().to_hex()

    def test_unset(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.delenv("TEST_NOSTR_KEY", raising=False)
        assert load_keys_from_env("TEST_NOSTR_KEY") is None

    def test_empty(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("TEST_NOSTR_KEY", "")
        assert load_keys_from_env("TEST_NOSTR_KEY") is None

    def test_malformed(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("TEST_NOSTR_KEY", "not-a-key")
        with pytest.raises(Exception):  # noqa: B017, PT011
            load_keys_from_env("TEST_NOSTR_KEY")


# =============================================================================
# parse_identity() Tests
# =============================================================================


class TestParseIdentity:
    """Tests for parse_identity()."""

    def test_hex(self, generated_keys: Keys) -> None:
        hex_key = generated_keys.public_key().to_hex()
        assert parse_identity(hex_key) == hex_key

    def test_npub(self, generated_keys: Keys) -> None:
        public_key = generated_keys.public_key()
        assert parse_identity(public_key.to_bech32()) == public_key.to_hex()

    def test_nostr_uri(self, generated_keys: Keys) -> None:
        public_key = generated_keys.public_key()
        assert parse_identity(f"nostr:{public_key.to_bech32()}") == public_key.to_hex()

    def test_invalid(self) -> None:
        with pytest.raises(ValueError, match="invalid identity"):
            parse_identity("npub1garbage")


# =============================================================================
# KeysConfig Tests
# =============================================================================


class TestKeysConfig:
    """Tests for KeysConfig."""

    def test_default_env_var(self, monkeypatch: pytest.MonkeyPatch, generated_keys: Keys) -> None:
        monkeypatch.setenv(ENV_PRIVATE_KEY, generated_keys.secret_key().to_hex())
        config = KeysConfig()
        assert config.public_key == generated_keys.public_key().to_hex()

    def test_custom_env_var(self, monkeypatch: pytest.MonkeyPatch, generated_keys: Keys) -> None:
        monkeypatch.setenv("OTHER_KEY", generated_keys.secret_key().to_hex())
        config = KeysConfig(keys_env="OTHER_KEY")
        assert config.public_key == generated_keys.public_key().to_hex()

    def test_read_only_without_env(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.delenv(ENV_PRIVATE_KEY, raising=False)
        config = KeysConfig()
        assert config.keys is None
        assert config.public_key is None

    def test_keys_excluded_from_dump(
        self, monkeypatch: pytest.MonkeyPatch, generated_keys: Keys
    ) -> None:
        monkeypatch.setenv(ENV_PRIVATE_KEY, generated_keys.secret_key().to_hex())
        assert "keys" not in KeysConfig().model_dump()
