"""Key descriptors, key values and the vault's wire records."""

from __future__ import annotations

import base64
from dataclasses import dataclass, field
from typing import Any, Generic, TypeVar, Union
from urllib.parse import urlsplit
from uuid import UUID

from cryptography.exceptions import UnsupportedAlgorithm
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import ec

from keycustody.core.exceptions import InvalidKeyError, UnsupportedCurveError

EC_KEY_TYPE = "EC"
P256_CURVE = "P-256"
SIGNATURE_ALGORITHM = "ES256"

# P-256 coordinates and scalars are 32 bytes
_P256_FIELD_SIZE = 32

T = TypeVar("T")


def b64url_encode(data: bytes) -> str:
    """Encode bytes as unpadded base64url."""
    return base64.urlsafe_b64encode(data).rstrip(b"=").decode("ascii")


def b64url_decode(value: str) -> bytes:
    """Decode base64url, with or without padding."""
    padding = -len(value) % 4
    return base64.urlsafe_b64decode(value + "=" * padding)


def url_path_segments(url: str) -> list[str]:
    """Split the path of a URL into its non-empty segments."""
    return [segment for segment in urlsplit(url).path.split("/") if segment]


def _required_str(data: dict[str, Any], member: str, record: str) -> str:
    value = data.get(member)
    if not isinstance(value, str) or not value:
        raise ValueError(f"{record} has no {member}")
    return value


def _load_public_key(public_key: bytes) -> ec.EllipticCurvePublicKey:
    try:
        loaded = serialization.load_der_public_key(public_key)
    except (ValueError, UnsupportedAlgorithm) as e:
        raise InvalidKeyError(f"Public key is not valid SPKI DER: {e}") from e

    if not isinstance(loaded, ec.EllipticCurvePublicKey):
        raise InvalidKeyError("Public key is not an elliptic curve key")
    if not isinstance(loaded.curve, ec.SECP256R1):
        raise UnsupportedCurveError(f"Unsupported curve: {loaded.curve.name}")
    return loaded


def _load_private_key(private_key: bytes) -> ec.EllipticCurvePrivateKey:
    try:
        loaded = serialization.load_der_private_key(private_key, password=None)
    except (ValueError, TypeError, UnsupportedAlgorithm) as e:
        raise InvalidKeyError(f"Private key is not valid PKCS8 DER: {e}") from e

    if not isinstance(loaded, ec.EllipticCurvePrivateKey):
        raise InvalidKeyError("Private key is not an elliptic curve key")
    if not isinstance(loaded.curve, ec.SECP256R1):
        raise UnsupportedCurveError(f"Unsupported curve: {loaded.curve.name}")
    return loaded


@dataclass(frozen=True)
class AsymmetricKey:
    """
    An EC P-256 key value held in memory.

    public_key is SPKI DER. private_key, when present, is PKCS8 DER and must
    describe the same curve point as public_key. A key without private_key
    is public-only.
    """

    id: UUID
    public_key: bytes
    private_key: bytes | None = field(default=None, repr=False)
    version: str | None = None

    def __post_init__(self) -> None:
        public = _load_public_key(self.public_key)
        if self.private_key is not None:
            private = _load_private_key(self.private_key)
            if private.public_key().public_numbers() != public.public_numbers():
                raise InvalidKeyError(
                    f"Public and private parts of key {self.id} do not match"
                )

    @classmethod
    def from_pem(
        cls,
        key_id: UUID,
        pem: bytes,
        version: str | None = None,
    ) -> "AsymmetricKey":
        """
        Load a key from a PEM private key or PEM public key.

        Args:
            key_id: Logical key identifier
            pem: PEM-encoded private key (PKCS8/SEC1) or public key (SPKI)
            version: Optional key version

        Returns:
            AsymmetricKey (public-only if the PEM holds only a public key)

        Raises:
            InvalidKeyError: If the PEM cannot be parsed
        """
        if b"PRIVATE KEY" in pem:
            try:
                private = serialization.load_pem_private_key(pem, password=None)
            except (ValueError, TypeError, UnsupportedAlgorithm) as e:
                raise InvalidKeyError(f"Failed to load private key: {e}") from e
            return cls(
                id=key_id,
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

        try:
            public = serialization.load_pem_public_key(pem)
        except (ValueError, UnsupportedAlgorithm) as e:
            raise InvalidKeyError(f"Failed to load public key: {e}") from e
        return cls(
            id=key_id,
            version=version,
            public_key=public.public_bytes(
                encoding=serialization.Encoding.DER,
                format=serialization.PublicFormat.SubjectPublicKeyInfo,
            ),
        )

    @property
    def is_private(self) -> bool:
        """Whether private material is present."""
        return self.private_key is not None

    def load_public_key(self) -> ec.EllipticCurvePublicKey:
        """Get the public key as a cryptography object."""
        return _load_public_key(self.public_key)

    def load_private_key(self) -> ec.EllipticCurvePrivateKey:
        """Get the private key as a cryptography object."""
        if self.private_key is None:
            raise InvalidKeyError(f"Key {self.id} has no private component")
        return _load_private_key(self.private_key)

    def public_pem(self) -> bytes:
        """Get the public key as PEM."""
        return self.load_public_key().public_bytes(
            encoding=serialization.Encoding.PEM,
            format=serialization.PublicFormat.SubjectPublicKeyInfo,
        )

    def without_private(self) -> "AsymmetricKey":
        """Return a public-only copy of this key."""
        return AsymmetricKey(id=self.id, version=self.version, public_key=self.public_key)


@dataclass(frozen=True)
class KeyDescriptor:
    """Logical (id, version) identity of a key, independent of storage shape."""

    id: UUID
    version: str | None = None

    @classmethod
    def from_key(cls, key: AsymmetricKey) -> "KeyDescriptor":
        """Create a descriptor naming the given key."""
        return cls(id=key.id, version=key.version)

    def __str__(self) -> str:
        if self.version:
            return f"{self.id}/{self.version}"
        return str(self.id)


@dataclass
class WebKey:
    """JSON web key as exchanged with the vault (EC keys only)."""

    kid: str | None = None
    kty: str = EC_KEY_TYPE
    crv: str | None = None
    x: str | None = None
    y: str | None = None
    d: str | None = field(default=None, repr=False)
    key_ops: list[str] | None = None

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "WebKey":
        """Create from API response dict."""
        return cls(
            kid=data.get("kid"),
            kty=data.get("kty", EC_KEY_TYPE),
            crv=data.get("crv"),
            x=data.get("x"),
            y=data.get("y"),
            d=data.get("d"),
            key_ops=data.get("key_ops"),
        )

    def to_dict(self) -> dict[str, Any]:
        """Convert to a request payload, omitting unset members."""
        data = {
            "kid": self.kid,
            "kty": self.kty,
            "crv": self.crv,
            "x": self.x,
            "y": self.y,
            "d": self.d,
            "key_ops": self.key_ops,
        }
        return {k: v for k, v in data.items() if v is not None}

    @classmethod
    def from_key(cls, key: AsymmetricKey) -> "WebKey":
        """
        Build the import payload for a key.

        The private scalar (d) is only included when the key carries
        private material.
        """
        numbers = key.load_public_key().public_numbers()
        web_key = cls(
            kid=str(key.id),
            kty=EC_KEY_TYPE,
            crv=P256_CURVE,
            x=b64url_encode(numbers.x.to_bytes(_P256_FIELD_SIZE, "big")),
            y=b64url_encode(numbers.y.to_bytes(_P256_FIELD_SIZE, "big")),
        )
        if key.is_private:
            private_value = key.load_private_key().private_numbers().private_value
            web_key.d = b64url_encode(private_value.to_bytes(_P256_FIELD_SIZE, "big"))
        return web_key

    def to_public_key(self) -> bytes:
        """
        Convert the curve point to SPKI DER.

        Raises:
            UnsupportedCurveError: If the curve is not P-256
            InvalidKeyError: If the coordinates are missing or not on the curve
        """
        if self.crv != P256_CURVE:
            raise UnsupportedCurveError(f"Unsupported curve: {self.crv!r}")
        if not self.x or not self.y:
            raise InvalidKeyError(f"Key {self.kid} is missing curve coordinates")

        try:
            public = ec.EllipticCurvePublicNumbers(
                x=int.from_bytes(b64url_decode(self.x), "big"),
                y=int.from_bytes(b64url_decode(self.y), "big"),
                curve=ec.SECP256R1(),
            ).public_key()
        except ValueError as e:
            raise InvalidKeyError(f"Key {self.kid} has an invalid curve point: {e}") from e

        return public.public_bytes(
            encoding=serialization.Encoding.DER,
            format=serialization.PublicFormat.SubjectPublicKeyInfo,
        )


@dataclass
class KeyBundle:
    """Full key record: the vault's native key object."""

    key: WebKey | None = None
    attributes: dict[str, Any] | None = None
    tags: dict[str, str] | None = None

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "KeyBundle":
        """Create from API response dict."""
        key = data.get("key")
        return cls(
            key=WebKey.from_dict(key) if key else None,
            attributes=data.get("attributes"),
            tags=data.get("tags"),
        )

    @property
    def version(self) -> str | None:
        """Key version: the last path segment of the key identifier URL."""
        if self.key is None or not self.key.kid:
            return None
        segments = url_path_segments(self.key.kid)
        return segments[-1] if segments else None


@dataclass
class SecretBundle:
    """Secret record: holds a public-only key as base64url SPKI."""

    value: str
    id: str | None = None
    content_type: str | None = None

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "SecretBundle":
        """
        Create from API response dict.

        Raises:
            ValueError: If the secret carries no value
        """
        return cls(
            value=_required_str(data, "value", "secret"),
            id=data.get("id"),
            content_type=data.get("contentType"),
        )

    def to_dict(self) -> dict[str, Any]:
        """Convert to a request payload."""
        data: dict[str, Any] = {"value": self.value}
        if self.content_type:
            data["contentType"] = self.content_type
        return data

    @classmethod
    def from_key(cls, key: AsymmetricKey) -> "SecretBundle":
        """Build the secret payload for a public-only key."""
        return cls(id=str(key.id), value=b64url_encode(key.public_key))

    def to_key(self) -> AsymmetricKey:
        """
        Decode the secret into a public-only key.

        The id and version come from the last two path segments of the
        secret identifier URL.

        Raises:
            InvalidKeyError: If the identifier or value cannot be decoded
        """
        segments = url_path_segments(self.id or "")
        if len(segments) < 2:
            raise InvalidKeyError(f"Secret identifier has no id/version: {self.id!r}")

        key_id, version = segments[-2], segments[-1]
        try:
            parsed_id = UUID(key_id)
        except ValueError as e:
            raise InvalidKeyError(f"Secret identifier is not a UUID: {key_id!r}") from e

        return AsymmetricKey(
            id=parsed_id,
            version=version or None,
            public_key=b64url_decode(self.value),
        )


@dataclass
class KeyOperationResult:
    """Result of a remote sign operation."""

    kid: str | None
    value: str

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "KeyOperationResult":
        """
        Create from API response dict.

        Raises:
            ValueError: If the signature value is missing
        """
        return cls(kid=data.get("kid"), value=_required_str(data, "value", "key operation result"))


@dataclass
class KeyVerifyResult:
    """Result of a remote verify operation."""

    is_valid: bool

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "KeyVerifyResult":
        """
        Create from API response dict (the vault reports validity as 'value').

        Raises:
            ValueError: If the verdict is missing or not a boolean
        """
        value = data.get("value")
        if not isinstance(value, bool):
            raise ValueError(f"verify result has no boolean value: {value!r}")
        return cls(is_valid=value)


@dataclass
class KeyCreateParameters:
    """Parameters for creating a key in the vault."""

    kty: str = EC_KEY_TYPE
    crv: str = P256_CURVE

    def to_dict(self) -> dict[str, Any]:
        return {"kty": self.kty, "crv": self.crv}


@dataclass
class KeySignParameters:
    """Parameters for a remote sign operation over a precomputed digest."""

    digest: bytes
    algorithm: str = SIGNATURE_ALGORITHM

    def to_dict(self) -> dict[str, Any]:
        return {"alg": self.algorithm, "value": b64url_encode(self.digest)}


@dataclass
class KeyVerifyParameters:
    """Parameters for a remote verify operation over a precomputed digest."""

    digest: bytes
    signature: bytes
    algorithm: str = SIGNATURE_ALGORITHM

    def to_dict(self) -> dict[str, Any]:
        return {
            "alg": self.algorithm,
            "digest": b64url_encode(self.digest),
            "value": b64url_encode(self.signature),
        }


@dataclass
class QueryResult(Generic[T]):
    """Envelope returned by every remote key store primitive."""

    is_successful: bool
    result: T | None = None
    status_code: int | None = None


KeyStorageShape = Union[KeyBundle, SecretBundle]
