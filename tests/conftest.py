"""Pytest configuration and fixtures for keycustody tests."""

import logging
from uuid import UUID, uuid4

import pytest
from cryptography.exceptions import InvalidSignature
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import ec
from cryptography.hazmat.primitives.asymmetric.utils import (
    Prehashed,
    decode_dss_signature,
    encode_dss_signature,
)

from keycustody.core.custody import KeyCustodyService
from keycustody.core.exceptions import RemoteNotFoundError, RemoteRequestError
from keycustody.core.models import (
    AsymmetricKey,
    KeyBundle,
    KeyCreateParameters,
    KeyOperationResult,
    KeySignParameters,
    KeyVerifyParameters,
    KeyVerifyResult,
    QueryResult,
    SecretBundle,
    WebKey,
    b64url_decode,
    b64url_encode,
)
from keycustody.keys.base import RemoteKeyStore
from keycustody.keys.vault import KeyVaultConnector
from keycustody.logging import AuditLogger

VAULT_URL = "https://test.vault.local/"


def key_pair(key_id: UUID | None = None, version: str | None = None) -> AsymmetricKey:
    """Generate a P-256 key pair outside the vault."""
    private = ec.generate_private_key(ec.SECP256R1())
    return AsymmetricKey(
        id=key_id or uuid4(),
        version=version,
        public_key=private.public_key().public_bytes(
            encoding=serialization.Encoding.DER,
            format=serialization.PublicFormat.SubjectPublicKeyInfo,
        ),
        private_key=private.private_bytes(
            encoding=serialization.Encoding.DER,
            format=serialization.PrivateFormat.PKCS8,
            encryption_algorithm=serialization.NoEncryption(),
        ),
    )


class FakeKeyVault(RemoteKeyStore):
    """
    In-memory stand-in for the key vault.

    Generates P-256 keys, signs digests as raw r || s, refuses key imports
    without a private scalar and answers missing keys and secrets with
    RemoteNotFoundError.
    """

    def __init__(self):
        self.keys: dict[UUID, dict[str, ec.EllipticCurvePrivateKey]] = {}
        self.secrets: dict[UUID, dict[str, str]] = {}
        self.calls: list[str] = []
        self.secret_error_status: int | None = None
        self.verify_error_status: int | None = None
        self.empty_results: set[str] = set()
        self.failed_results: dict[str, int] = {}

    def _result(self, operation: str, value):
        if operation in self.failed_results:
            return QueryResult(is_successful=False, result=None, status_code=self.failed_results[operation])
        if operation in self.empty_results:
            return QueryResult(is_successful=True, result=None, status_code=200)
        return QueryResult(is_successful=True, result=value, status_code=200)

    def _latest(self, versions: dict, version: str | None, what: str, name: UUID):
        if not versions:
            raise RemoteNotFoundError(f"{what} {name} not found")
        if version is None:
            return list(versions.items())[-1]
        if version not in versions:
            raise RemoteNotFoundError(f"{what} {name}/{version} not found")
        return version, versions[version]

    def _bundle(self, key_id: UUID, version: str, private: ec.EllipticCurvePrivateKey) -> KeyBundle:
        numbers = private.public_key().public_numbers()
        return KeyBundle(
            key=WebKey(
                kid=f"{VAULT_URL}keys/{key_id}/{version}",
                kty="EC",
                crv="P-256",
                x=b64url_encode(numbers.x.to_bytes(32, "big")),
                y=b64url_encode(numbers.y.to_bytes(32, "big")),
            )
        )

    def _store_key(self, key_id: UUID, private: ec.EllipticCurvePrivateKey) -> KeyBundle:
        version = uuid4().hex
        self.keys.setdefault(key_id, {})[version] = private
        return self._bundle(key_id, version, private)

    async def create_key(self, key_id, params: KeyCreateParameters):
        self.calls.append("create_key")
        return self._result("create_key", self._store_key(key_id, ec.generate_private_key(ec.SECP256R1())))

    async def get_key(self, key_id):
        self.calls.append("get_key")
        version, private = self._latest(self.keys.get(key_id, {}), None, "key", key_id)
        return self._result("get_key", self._bundle(key_id, version, private))

    async def import_key(self, key_id, web_key: WebKey):
        self.calls.append("import_key")
        if not web_key.d:
            raise RemoteRequestError("Key import requires a private component", status_code=400)
        private = ec.derive_private_key(int.from_bytes(b64url_decode(web_key.d), "big"), ec.SECP256R1())
        return self._result("import_key", self._store_key(key_id, private))

    async def import_secret(self, secret_id, secret: SecretBundle):
        self.calls.append("import_secret")
        version = uuid4().hex
        self.secrets.setdefault(secret_id, {})[version] = secret.value
        return self._result(
            "import_secret",
            SecretBundle(id=f"{VAULT_URL}secrets/{secret_id}/{version}", value=secret.value),
        )

    async def get_secret(self, secret_id, version=None):
        self.calls.append("get_secret")
        if self.secret_error_status is not None:
            raise RemoteRequestError("secret lookup failed", status_code=self.secret_error_status)
        if "get_secret" in self.failed_results:
            return self._result("get_secret", None)
        version, value = self._latest(self.secrets.get(secret_id, {}), version, "secret", secret_id)
        return self._result(
            "get_secret",
            SecretBundle(id=f"{VAULT_URL}secrets/{secret_id}/{version}", value=value),
        )

    async def sign(self, key_id, version, params: KeySignParameters):
        self.calls.append("sign")
        version, private = self._latest(self.keys.get(key_id, {}), version, "key", key_id)
        der = private.sign(params.digest, ec.ECDSA(Prehashed(hashes.SHA256())))
        r, s = decode_dss_signature(der)
        raw = r.to_bytes(32, "big") + s.to_bytes(32, "big")
        return self._result(
            "sign",
            KeyOperationResult(kid=f"{VAULT_URL}keys/{key_id}/{version}", value=b64url_encode(raw)),
        )

    async def verify(self, key_id, version, params: KeyVerifyParameters):
        self.calls.append("verify")
        if self.verify_error_status is not None:
            raise RemoteRequestError("verify failed", status_code=self.verify_error_status)
        version, private = self._latest(self.keys.get(key_id, {}), version, "key", key_id)
        signature = params.signature
        is_valid = False
        if len(signature) == 64:
            der = encode_dss_signature(
                int.from_bytes(signature[:32], "big"), int.from_bytes(signature[32:], "big")
            )
            try:
                private.public_key().verify(der, params.digest, ec.ECDSA(Prehashed(hashes.SHA256())))
                is_valid = True
            except InvalidSignature:
                is_valid = False
        return self._result("verify", KeyVerifyResult(is_valid=is_valid))


@pytest.fixture
def fake_vault():
    """Provide an empty in-memory vault."""
    return FakeKeyVault()


@pytest.fixture
def connector(fake_vault):
    """Provide a connector routed to the in-memory vault."""
    return KeyVaultConnector(key_store=fake_vault, name="test-vault")


@pytest.fixture
def audit_logger():
    """Provide an audit logger on a test-only logger name."""
    return AuditLogger(logging.getLogger("test.audit"))


@pytest.fixture
def service(audit_logger):
    """Provide a key custody service."""
    return KeyCustodyService(audit_logger=audit_logger, actor="tests")


@pytest.fixture
def private_key():
    """Provide a locally generated key pair."""
    return key_pair()


@pytest.fixture
def public_only_key(private_key):
    """Provide the public half of a locally generated key pair under a new id."""
    return AsymmetricKey(id=uuid4(), public_key=private_key.public_key)


def sign_locally(key: AsymmetricKey, data: bytes) -> bytes:
    """Produce a raw r || s ES256 signature with a local private key."""
    der = key.load_private_key().sign(data, ec.ECDSA(hashes.SHA256()))
    r, s = decode_dss_signature(der)
    return r.to_bytes(32, "big") + s.to_bytes(32, "big")


@pytest.fixture
def make_key():
    """Provide a factory for locally generated key pairs."""
    return key_pair


@pytest.fixture
def local_signer():
    """Provide a function that signs with a local private key."""
    return sign_locally
