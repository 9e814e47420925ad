"""Abstract base class for remote key store implementations."""

from abc import ABC, abstractmethod
from uuid import UUID

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


class RemoteKeyStore(ABC):
    """
    Primitive operations offered by a remote key vault.

    Every method is a single request/response round trip. A missing key or
    secret raises RemoteNotFoundError; any other failure status raises
    RemoteRequestError. Implementations never retry on behalf of the caller
    beyond what their transport is configured to do.
    """

    async def close(self) -> None:
        """Release any resources held by the store."""
        pass

    @abstractmethod
    async def create_key(
        self, key_id: UUID, params: KeyCreateParameters
    ) -> QueryResult[KeyBundle]:
        """
        Create a new key object; the vault generates the key material.

        Args:
            key_id: Name for the new key
            params: Key type and curve

        Returns:
            QueryResult wrapping the created key bundle
        """
        pass

    @abstractmethod
    async def get_key(self, key_id: UUID) -> QueryResult[KeyBundle]:
        """
        Fetch the current version of a key object (public members only).

        Raises:
            RemoteNotFoundError: If no key object exists
        """
        pass

    @abstractmethod
    async def import_key(self, key_id: UUID, web_key: WebKey) -> QueryResult[KeyBundle]:
        """
        Import key material as a native key object.

        The vault rejects web keys without a private component.
        """
        pass

    @abstractmethod
    async def import_secret(
        self, secret_id: UUID, secret: SecretBundle
    ) -> QueryResult[SecretBundle]:
        """Store an opaque secret value under the given name."""
        pass

    @abstractmethod
    async def get_secret(
        self, secret_id: UUID, version: str | None = None
    ) -> QueryResult[SecretBundle]:
        """
        Fetch a secret, the latest version when version is None.

        Raises:
            RemoteNotFoundError: If no such secret exists
        """
        pass

    @abstractmethod
    async def sign(
        self, key_id: UUID, version: str | None, params: KeySignParameters
    ) -> QueryResult[KeyOperationResult]:
        """Sign a digest with the key object's private key."""
        pass

    @abstractmethod
    async def verify(
        self, key_id: UUID, version: str | None, params: KeyVerifyParameters
    ) -> QueryResult[KeyVerifyResult]:
        """Verify a signature over a digest with the key object."""
        pass
