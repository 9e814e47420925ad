"""Azure Key Vault style REST client for keycustody."""

from __future__ import annotations

from collections.abc import Generator
from dataclasses import dataclass
from typing import Any, Callable, TypeVar
from urllib.parse import urljoin
from uuid import UUID

import httpx

from keycustody.config import Settings, get_settings
from keycustody.core.exceptions import RemoteNotFoundError, RemoteRequestError
from keycustody.core.models import (
    KeyBundle,
    KeyCreateParameters,
    KeyOperationResult,
    KeySignParameters,
    KeyVerifyParameters,
    KeyVerifyResult,
    QueryResult,
    SecretBundle,
    WebKey,
)
from keycustody.keys.base import RemoteKeyStore
from keycustody.logging import get_logger
from keycustody.metrics import track_kms_request

logger = get_logger("vault")

T = TypeVar("T")


@dataclass
class KeyVaultConfig:
    """Key vault connection configuration."""

    vault_url: str
    api_version: str = "7.4"
    timeout: float = 30.0
    access_token: str | None = None

    @classmethod
    def from_settings(cls, settings: Settings | None = None) -> "KeyVaultConfig":
        """Create config from application settings."""
        settings = settings or get_settings()
        return cls(
            vault_url=settings.vault_url,
            api_version=settings.vault_api_version,
            timeout=settings.request_timeout_seconds,
            access_token=settings.vault_access_token or None,
        )

    def url_for(self, path: str) -> str:
        """Resolve a path relative to the vault URL."""
        return urljoin(self.vault_url.rstrip("/") + "/", path)


class BearerTokenAuth(httpx.Auth):
    """Attach a static bearer token to every request."""

    def __init__(self, token: str):
        self.token = token

    def auth_flow(self, request: httpx.Request) -> Generator[httpx.Request, httpx.Response, None]:
        request.headers["Authorization"] = f"Bearer {self.token}"
        yield request


def _key_path(key_id: UUID, version: str | None, action: str | None = None) -> str:
    segments = ["keys", str(key_id)]
    if version:
        segments.append(version)
    if action:
        segments.append(action)
    return "/".join(segments)


def _secret_path(secret_id: UUID, version: str | None = None) -> str:
    segments = ["secrets", str(secret_id)]
    if version:
        segments.append(version)
    return "/".join(segments)


def _error_detail(response: httpx.Response) -> str:
    """Extract the vault's error message, falling back to the raw body."""
    try:
        error = response.json().get("error", {})
        return f"{error.get('code', 'Error')}: {error.get('message', '')}"
    except (ValueError, AttributeError):
        return response.text


class KeyVaultClient(RemoteKeyStore):
    """
    Async HTTP client for key vault key and secret operations.

    Usage:
        async with KeyVaultClient(config, auth=BearerTokenAuth(token)) as client:
            result = await client.get_key(key_id)
    """

    def __init__(
        self,
        config: KeyVaultConfig | None = None,
        auth: httpx.Auth | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        """
        Initialize key vault client.

        Args:
            config: Vault configuration. Uses settings if not provided.
            auth: Authentication for vault requests. Defaults to a bearer
                token when the config carries one.
            transport: Optional httpx transport (used for testing)
        """
        self.config = config or KeyVaultConfig.from_settings()
        if auth is None and self.config.access_token:
            auth = BearerTokenAuth(self.config.access_token)
        self._auth = auth
        self._transport = transport
        self._http_client: httpx.AsyncClient | None = None

    async def __aenter__(self) -> "KeyVaultClient":
        """Async context manager entry."""
        _ = self.http_client
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        """Async context manager exit."""
        await self.close()

    @property
    def http_client(self) -> httpx.AsyncClient:
        """Get the HTTP client, creating if needed."""
        if self._http_client is None:
            self._http_client = httpx.AsyncClient(
                timeout=self.config.timeout,
                auth=self._auth,
                transport=self._transport,
            )
        return self._http_client

    async def close(self) -> None:
        """Close the HTTP client."""
        if self._http_client:
            await self._http_client.aclose()
            self._http_client = None

    async def _request(
        self,
        operation: str,
        method: str,
        path: str,
        parse: Callable[[dict[str, Any]], T],
        json: dict[str, Any] | None = None,
    ) -> QueryResult[T]:
        """
        Send one request to the vault and map the response.

        Raises:
            RemoteNotFoundError: On 404
            RemoteRequestError: On any other error status or transport failure
        """
        url = self.config.url_for(path)
        logger.debug(f"{operation}: {method} {path}")

        with track_kms_request(operation) as state:
            try:
                response = await self.http_client.request(
                    method,
                    url,
                    params={"api-version": self.config.api_version},
                    json=json,
                )
            except httpx.HTTPError as e:
                raise RemoteRequestError(
                    f"{operation} request to {path} failed: {e}",
                    operation=operation,
                ) from e

            if response.status_code == 404:
                state["outcome"] = "not_found"
                raise RemoteNotFoundError(f"{operation}: {path} not found", operation=operation)

            if response.is_error:
                state["outcome"] = "error"
                raise RemoteRequestError(
                    f"{operation} failed with status {response.status_code}: "
                    f"{_error_detail(response)}",
                    status_code=response.status_code,
                    operation=operation,
                )

        if not response.content.strip():
            return QueryResult(is_successful=True, result=None, status_code=response.status_code)

        # A success status with an unusable body carries no result
        try:
            body = response.json()
            if not isinstance(body, dict):
                raise ValueError(f"expected a JSON object, got {type(body).__name__}")
            result = parse(body)
        except ValueError as e:
            logger.warning(f"{operation}: unusable response from {path}: {e}")
            return QueryResult(is_successful=True, result=None, status_code=response.status_code)

        return QueryResult(is_successful=True, result=result, status_code=response.status_code)

    async def create_key(
        self, key_id: UUID, params: KeyCreateParameters
    ) -> QueryResult[KeyBundle]:
        return await self._request(
            "create_key",
            "POST",
            _key_path(key_id, None, "create"),
            KeyBundle.from_dict,
            json=params.to_dict(),
        )

    async def get_key(self, key_id: UUID) -> QueryResult[KeyBundle]:
        return await self._request("get_key", "GET", _key_path(key_id, None), KeyBundle.from_dict)

    async def import_key(self, key_id: UUID, web_key: WebKey) -> QueryResult[KeyBundle]:
        return await self._request(
            "import_key",
            "PUT",
            _key_path(key_id, None),
            KeyBundle.from_dict,
            json={"key": web_key.to_dict()},
        )

    async def import_secret(
        self, secret_id: UUID, secret: SecretBundle
    ) -> QueryResult[SecretBundle]:
        return await self._request(
            "import_secret",
            "PUT",
            _secret_path(secret_id),
            SecretBundle.from_dict,
            json=secret.to_dict(),
        )

    async def get_secret(
        self, secret_id: UUID, version: str | None = None
    ) -> QueryResult[SecretBundle]:
        return await self._request(
            "get_secret",
            "GET",
            _secret_path(secret_id, version),
            SecretBundle.from_dict,
        )

    async def sign(
        self, key_id: UUID, version: str | None, params: KeySignParameters
    ) -> QueryResult[KeyOperationResult]:
        return await self._request(
            "sign",
            "POST",
            _key_path(key_id, version, "sign"),
            KeyOperationResult.from_dict,
            json=params.to_dict(),
        )

    async def verify(
        self, key_id: UUID, version: str | None, params: KeyVerifyParameters
    ) -> QueryResult[KeyVerifyResult]:
        return await self._request(
            "verify",
            "POST",
            _key_path(key_id, version, "verify"),
            KeyVerifyResult.from_dict,
            json=params.to_dict(),
        )


@dataclass
class KeyVaultConnector:
    """
    Routes key operations to one remote key store.

    Create one connector per logical vault and hand it to every
    KeyCustodyService call for that vault.
    """

    key_store: RemoteKeyStore
    name: str = "default"

    @classmethod
    def from_settings(
        cls,
        settings: Settings | None = None,
        name: str = "default",
    ) -> "KeyVaultConnector":
        """Create a connector backed by a KeyVaultClient configured from settings."""
        return cls(key_store=KeyVaultClient(KeyVaultConfig.from_settings(settings)), name=name)

    async def close(self) -> None:
        """Release the underlying store's resources."""
        await self.key_store.close()
