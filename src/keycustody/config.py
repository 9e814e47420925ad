"""Configuration management for keycustody using pydantic-settings."""

from functools import lru_cache
from typing import Literal

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.

    Environment variables are prefixed with KEYCUSTODY_ (e.g., KEYCUSTODY_VAULT_URL).
    """

    model_config = SettingsConfigDict(
        env_prefix="KEYCUSTODY_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Key vault
    vault_url: str = Field(
        default="https://localhost.vault.azure.net",
        description="Base URL of the key vault",
    )
    vault_api_version: str = Field(
        default="7.4",
        description="REST API version sent with every vault request",
    )
    vault_access_token: str = Field(
        default="",
        description="Bearer token for the vault (empty = no auth header)",
    )
    request_timeout_seconds: float = Field(
        default=30.0,
        gt=0,
        description="Timeout for a single vault request in seconds",
    )

    # Logging
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = Field(
        default="INFO",
        description="Log level",
    )
    log_format: Literal["json", "text"] = Field(
        default="text",
        description="Log output format",
    )

    @field_validator("vault_url")
    @classmethod
    def validate_vault_url(cls, v: str) -> str:
        """Require an http(s) URL and normalise it to end with a slash."""
        v = v.strip()
        if not v.startswith(("https://", "http://")):
            raise ValueError("vault_url must start with https:// or http://")
        return v.rstrip("/") + "/"


class TestSettings(Settings):
    """Settings for testing against a fake vault."""

    model_config = SettingsConfigDict(
        env_prefix="KEYCUSTODY_TEST_",
        extra="ignore",
    )

    vault_url: str = "https://test.vault.local/"
    vault_access_token: str = "test-token"


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()


def get_test_settings() -> TestSettings:
    """Get test settings instance (not cached)."""
    return TestSettings()
