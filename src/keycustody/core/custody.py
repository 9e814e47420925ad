"""Asymmetric key custody over a remote key vault."""

from __future__ import annotations

import hashlib
from collections.abc import Iterator
from contextlib import contextmanager
from typing import Any, TypeVar
from uuid import UUID, uuid4

from cryptography.exceptions import InvalidSignature
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.asymmetric import ec
from cryptography.hazmat.primitives.asymmetric.utils import encode_dss_signature

from keycustody.core.entity import EntitySigner, SignedEntity
from keycustody.core.exceptions import (
    KeyCustodyError,
    NoSignaturePresentError,
    RemoteNotFoundError,
    RemoteOperationFailedError,
    RemoteRequestError,
    UnsupportedConnectorError,
    UnsupportedOperationError,
)
from keycustody.core.models import (
    AsymmetricKey,
    KeyCreateParameters,
    KeyDescriptor,
    KeySignParameters,
    KeyStorageShape,
    KeyVerifyParameters,
    QueryResult,
    SecretBundle,
    WebKey,
    b64url_decode,
)
from keycustody.keys.base import RemoteKeyStore
from keycustody.keys.vault import KeyVaultConnector
from keycustody.logging import AuditAction, AuditLogger, get_audit_logger, get_logger
from keycustody.metrics import (
    record_error,
    record_key_operation,
    record_secret_probe_fallback,
    record_verification,
)

logger = get_logger("custody")

T = TypeVar("T")
E = TypeVar("E", bound=SignedEntity)

# ES256 signatures from the vault are raw r || s, 32 bytes each
_SIGNATURE_SIZE = 64

STORAGE_KEY = "key"
STORAGE_SECRET = "secret"


def _digest(data: bytes) -> bytes:
    return hashlib.sha256(data).digest()


def _require(result: QueryResult[T], operation: str, key: Any) -> T:
    """Unwrap a query result, failing if the vault sent no usable payload."""
    if not result.is_successful:
        raise RemoteRequestError(
            f"{operation}: vault request for key {key} failed with status {result.status_code}",
            status_code=result.status_code,
            operation=operation,
        )
    if result.result is None:
        raise RemoteOperationFailedError(
            f"{operation}: vault returned no result for key {key}",
            operation=operation,
        )
    return result.result


def _connector_name(connector: object) -> str:
    return getattr(connector, "name", type(connector).__name__)


def verify_locally(key: AsymmetricKey, data: bytes, signature: bytes) -> bool:
    """
    Verify a raw r || s ES256 signature with a public key.

    Returns False for a mismatching or malformed signature.
    """
    if len(signature) != _SIGNATURE_SIZE:
        return False

    half = _SIGNATURE_SIZE // 2
    der_signature = encode_dss_signature(
        int.from_bytes(signature[:half], "big"),
        int.from_bytes(signature[half:], "big"),
    )
    try:
        key.load_public_key().verify(der_signature, data, ec.ECDSA(hashes.SHA256()))
    except InvalidSignature:
        return False
    return True


class KeyCustodyService:
    """
    Create, import, fetch, sign and verify EC keys held in a remote vault.

    The vault never releases private material and cannot hold a key object
    without a private component, so public-only keys are stored as secrets.
    Reads and verifications probe the secret first and fall back to the key
    object only when the vault reports the secret as not found. Any other
    failure propagates.

    The service keeps no state between calls; one instance may serve any
    number of connectors concurrently.
    """

    def __init__(
        self,
        entity_signer: EntitySigner | None = None,
        audit_logger: AuditLogger | None = None,
        actor: str = "keycustody",
    ):
        """
        Initialize the service.

        Args:
            entity_signer: Canonicalizer for entity signing
            audit_logger: Destination for audit events
            actor: Name recorded as the actor in audit events
        """
        self.entity_signer = entity_signer or EntitySigner()
        self.audit = audit_logger or get_audit_logger()
        self.actor = actor

    def _key_store(self, connector: object, operation: str) -> RemoteKeyStore:
        if not isinstance(connector, KeyVaultConnector):
            raise UnsupportedConnectorError(
                f"{operation}: connector type '{type(connector).__name__}' is not supported"
            )
        return connector.key_store

    @contextmanager
    def _audited(
        self,
        action: AuditAction,
        operation: str,
        connector: object,
        key_id: UUID | None,
        version: str | None,
    ) -> Iterator[None]:
        """Audit and count failures raised inside the block, then re-raise."""
        try:
            yield
        except KeyCustodyError as e:
            record_error(type(e).__name__, operation)
            self.audit.operation_failed(
                action, self.actor, _connector_name(connector), key_id, version, e
            )
            raise

    async def _probe_secret(
        self,
        store: RemoteKeyStore,
        descriptor: KeyDescriptor,
        operation: str,
    ) -> SecretBundle | None:
        """
        Look for a public-only key stored as a secret.

        Returns None only when the vault reports the secret as absent or
        answers successfully without one.

        Raises:
            RemoteRequestError: If the secret lookup failed for any other reason
        """
        try:
            result = await store.get_secret(descriptor.id, descriptor.version)
        except RemoteNotFoundError:
            logger.debug(f"{operation}: no public key secret for {descriptor}, using key object")
            record_secret_probe_fallback(operation)
            return None

        if not result.is_successful:
            if result.status_code == 404:
                record_secret_probe_fallback(operation)
                return None
            raise RemoteRequestError(
                f"{operation}: secret lookup for {descriptor} failed with status "
                f"{result.status_code}",
                status_code=result.status_code,
                operation=operation,
            )

        if result.result is None:
            record_secret_probe_fallback(operation)
            return None
        return result.result

    async def resolve_storage_shape(
        self,
        connector: KeyVaultConnector,
        descriptor: KeyDescriptor,
        operation: str = "resolve_storage_shape",
    ) -> KeyStorageShape:
        """
        Find which record holds the key: the public key secret or the key object.

        Args:
            connector: Vault connector
            descriptor: Key to resolve
            operation: Operation name used in errors and metrics

        Returns:
            SecretBundle for a public-only key, KeyBundle otherwise

        Raises:
            RemoteOperationFailedError: If neither record exists or the key
                object came back empty
        """
        store = self._key_store(connector, operation)

        secret = await self._probe_secret(store, descriptor, operation)
        if secret is not None:
            return secret

        try:
            result = await store.get_key(descriptor.id)
        except RemoteNotFoundError as e:
            raise RemoteOperationFailedError(
                f"{operation}: key {descriptor} exists neither as a secret nor as a key object",
                operation=operation,
            ) from e
        bundle = _require(result, operation, descriptor)
        if bundle.key is None:
            raise RemoteOperationFailedError(
                f"{operation}: vault returned a key bundle without a key for {descriptor}",
                operation=operation,
            )
        return bundle

    async def create_asymmetric_key(self, connector: KeyVaultConnector) -> KeyDescriptor:
        """
        Have the vault generate a new P-256 key under a fresh id.

        Returns:
            Descriptor with the new id and the vault-assigned version
        """
        operation = "create_asymmetric_key"
        key_id = uuid4()

        with self._audited(AuditAction.KEY_CREATE, operation, connector, key_id, None):
            store = self._key_store(connector, operation)
            result = await store.create_key(key_id, KeyCreateParameters())
            bundle = _require(result, operation, key_id)

        descriptor = KeyDescriptor(id=key_id, version=bundle.version)
        self.audit.key_created(self.actor, _connector_name(connector), key_id, descriptor.version)
        record_key_operation(operation)
        return descriptor

    async def import_asymmetric_key(
        self,
        connector: KeyVaultConnector,
        key: AsymmetricKey,
    ) -> KeyDescriptor:
        """
        Import a key into the vault.

        Keys with private material become key objects and can sign remotely.
        Public-only keys are stored as secrets and can only verify.
        The vault assigns its own secret version, so a public-only key
        imported with a version of its own can only be resolved by id.

        Returns:
            Descriptor built from the key's own id and version
        """
        operation = "import_asymmetric_key"

        with self._audited(AuditAction.KEY_IMPORT, operation, connector, key.id, key.version):
            store = self._key_store(connector, operation)
            if key.is_private:
                storage = STORAGE_KEY
                result: QueryResult[Any] = await store.import_key(key.id, WebKey.from_key(key))
            else:
                storage = STORAGE_SECRET
                if key.version:
                    logger.warning(
                        f"{operation}: version {key.version!r} of public-only key {key.id} "
                        "is not kept by the vault; look it up without a version"
                    )
                result = await store.import_secret(key.id, SecretBundle.from_key(key))
            _require(result, operation, key.id)

        self.audit.key_imported(
            self.actor, _connector_name(connector), key.id, key.version, storage
        )
        record_key_operation(operation)
        return KeyDescriptor.from_key(key)

    async def get_asymmetric_key(
        self,
        connector: KeyVaultConnector,
        descriptor: KeyDescriptor,
        export_private: bool = False,
    ) -> AsymmetricKey:
        """
        Fetch the public part of a key.

        Args:
            connector: Vault connector
            descriptor: Key to fetch
            export_private: Must be False; the vault never releases private keys

        Returns:
            Public-only AsymmetricKey

        Raises:
            UnsupportedOperationError: If export_private is True
        """
        operation = "get_asymmetric_key"

        with self._audited(
            AuditAction.KEY_GET, operation, connector, descriptor.id, descriptor.version
        ):
            if export_private:
                raise UnsupportedOperationError(
                    f"{operation}: exporting private keys from the vault is not supported "
                    f"(key {descriptor})"
                )

            shape = await self.resolve_storage_shape(connector, descriptor, operation)
            if isinstance(shape, SecretBundle):
                storage = STORAGE_SECRET
                key = shape.to_key()
            else:
                storage = STORAGE_KEY
                key = AsymmetricKey(
                    id=descriptor.id,
                    version=shape.version or descriptor.version,
                    public_key=shape.key.to_public_key(),
                )

        self.audit.key_fetched(
            self.actor, _connector_name(connector), descriptor.id, descriptor.version, storage
        )
        record_key_operation(operation)
        return key

    async def sign_data(
        self,
        connector: KeyVaultConnector,
        descriptor: KeyDescriptor,
        data: bytes,
    ) -> bytes:
        """
        Sign data with the vault-held private key (ES256 over SHA-256).

        There is no local fallback: a key the vault only holds as a public
        key secret cannot sign.

        Returns:
            Raw r || s signature bytes
        """
        operation = "sign_data"
        digest = _digest(data)

        with self._audited(
            AuditAction.DATA_SIGN, operation, connector, descriptor.id, descriptor.version
        ):
            store = self._key_store(connector, operation)
            result = await store.sign(
                descriptor.id, descriptor.version, KeySignParameters(digest=digest)
            )
            signature = b64url_decode(_require(result, operation, descriptor).value)

        self.audit.data_signed(
            self.actor, _connector_name(connector), descriptor.id, descriptor.version, digest.hex()
        )
        record_key_operation(operation)
        return signature

    async def verify_data(
        self,
        connector: KeyVaultConnector,
        descriptor: KeyDescriptor,
        data: bytes,
        signature: bytes,
    ) -> bool:
        """
        Verify a signature over data.

        A public key stored as a secret is used locally; otherwise the vault
        verifies against the key object. Errors are raised, never reported
        as an invalid signature.

        Returns:
            True if the signature matches
        """
        operation = "verify_data"

        with self._audited(
            AuditAction.DATA_VERIFY, operation, connector, descriptor.id, descriptor.version
        ):
            store = self._key_store(connector, operation)
            secret = await self._probe_secret(store, descriptor, operation)

            if secret is not None:
                path = "local"
                is_valid = verify_locally(secret.to_key(), data, signature)
            else:
                path = "remote"
                result = await store.verify(
                    descriptor.id,
                    descriptor.version,
                    KeyVerifyParameters(digest=_digest(data), signature=signature),
                )
                is_valid = _require(result, operation, descriptor).is_valid

        logger.debug(f"{operation}: {descriptor} verified on {path} path, valid={is_valid}")
        self.audit.data_verified(
            self.actor, _connector_name(connector), descriptor.id, descriptor.version, path, is_valid
        )
        record_verification(path, is_valid)
        record_key_operation(operation)
        return is_valid

    async def sign_entity(
        self,
        connector: KeyVaultConnector,
        descriptor: KeyDescriptor,
        entity: E,
    ) -> E:
        """Sign an entity's canonical bytes and return a signed copy."""
        data = self.entity_signer.canonicalize(entity)
        signature = await self.sign_data(connector, descriptor, data)
        return entity.with_signature(signature)

    async def verify_entity(
        self,
        connector: KeyVaultConnector,
        descriptor: KeyDescriptor,
        entity: SignedEntity,
    ) -> bool:
        """
        Verify an entity's signature over its canonical bytes.

        Raises:
            NoSignaturePresentError: If the entity is not signed
        """
        if not entity.is_signed:
            raise NoSignaturePresentError(
                f"verify_entity: {type(entity).__name__} has no signature (key {descriptor})"
            )

        signature = getattr(entity, entity.signature_field)
        data = self.entity_signer.canonicalize(entity)
        return await self.verify_data(connector, descriptor, data, signature)

    # Symmetric keys are outside what this service offers.

    async def create_symmetric_key(self, connector: KeyVaultConnector) -> KeyDescriptor:
        raise UnsupportedOperationError("create_symmetric_key: symmetric keys are not supported")

    async def get_symmetric_key(
        self, connector: KeyVaultConnector, descriptor: KeyDescriptor
    ) -> bytes:
        raise UnsupportedOperationError(
            f"get_symmetric_key: exporting symmetric keys is not supported (key {descriptor})"
        )

    async def encrypt_data(
        self, connector: KeyVaultConnector, descriptor: KeyDescriptor, data: bytes
    ) -> bytes:
        raise UnsupportedOperationError(
            f"encrypt_data: symmetric encryption is not supported (key {descriptor})"
        )

    async def decrypt_data(
        self, connector: KeyVaultConnector, descriptor: KeyDescriptor, data: bytes
    ) -> bytes:
        raise UnsupportedOperationError(
            f"decrypt_data: symmetric decryption is not supported (key {descriptor})"
        )
