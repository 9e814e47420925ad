"""Tests for keycustody.config module."""

import os
from unittest.mock import patch

import pytest
from pydantic import ValidationError

from keycustody.config import Settings, TestSettings, get_settings, get_test_settings
from keycustody.keys.vault import KeyVaultConfig


class TestVaultUrlValidation:
    """Tests for vault_url field validation."""

    def test_trailing_slash_added(self):
        settings = Settings(vault_url="https://kv.example.net")

        assert settings.vault_url == "https://kv.example.net/"

    def test_trailing_slash_kept_single(self):
        settings = Settings(vault_url="https://kv.example.net///")

        assert settings.vault_url == "https://kv.example.net/"

    def test_http_allowed(self):
        """Test plain http is accepted for local emulators."""
        assert Settings(vault_url="http://localhost:8443").vault_url == "http://localhost:8443/"

    def test_non_http_rejected(self):
        with pytest.raises(ValidationError) as exc_info:
            Settings(vault_url="ftp://kv.example.net")
        assert "https://" in str(exc_info.value)


class TestSettingsFromEnvironment:
    """Tests for environment variable loading."""

    def test_env_prefix(self):
        env = {
            "KEYCUSTODY_VAULT_URL": "https://env.vault.example.net",
            "KEYCUSTODY_VAULT_API_VERSION": "7.5",
            "KEYCUSTODY_VAULT_ACCESS_TOKEN": "secret-token",
            "KEYCUSTODY_REQUEST_TIMEOUT_SECONDS": "5",
            "KEYCUSTODY_LOG_FORMAT": "json",
        }
        with patch.dict(os.environ, env, clear=False):
            settings = Settings()

        assert settings.vault_url == "https://env.vault.example.net/"
        assert settings.vault_api_version == "7.5"
        assert settings.vault_access_token == "secret-token"
        assert settings.request_timeout_seconds == 5.0
        assert settings.log_format == "json"

    def test_timeout_must_be_positive(self):
        with pytest.raises(ValidationError):
            Settings(request_timeout_seconds=0)

    def test_invalid_log_level_rejected(self):
        with pytest.raises(ValidationError):
            Settings(log_level="VERBOSE")


class TestSettingsHelpers:
    """Tests for settings accessors."""

    def test_get_settings_is_cached(self):
        assert get_settings() is get_settings()

    def test_get_test_settings_not_cached(self):
        first = get_test_settings()

        assert isinstance(first, TestSettings)
        assert first is not get_test_settings()
        assert first.vault_url == "https://test.vault.local/"
        assert first.vault_access_token == "test-token"


class TestKeyVaultConfigFromSettings:
    """Tests for building the vault client config from settings."""

    def test_from_settings(self):
        settings = Settings(
            vault_url="https://kv.example.net",
            vault_api_version="7.3",
            request_timeout_seconds=12,
            vault_access_token="tok",
        )

        config = KeyVaultConfig.from_settings(settings)

        assert config.vault_url == "https://kv.example.net/"
        assert config.api_version == "7.3"
        assert config.timeout == 12
        assert config.access_token == "tok"

    def test_empty_token_becomes_none(self):
        config = KeyVaultConfig.from_settings(Settings(vault_access_token=""))

        assert config.access_token is None

    def test_url_for(self):
        config = KeyVaultConfig(vault_url="https://kv.example.net")

        assert config.url_for("keys/abc") == "https://kv.example.net/keys/abc"
