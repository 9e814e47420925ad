"""Core key custody logic for keycustody."""

from keycustody.core.entity import EntitySigner, SignedEntity
from keycustody.core.exceptions import (
    InvalidKeyError,
    KeyCustodyError,
    NoSignaturePresentError,
    RemoteError,
    RemoteNotFoundError,
    RemoteOperationFailedError,
    RemoteRequestError,
    UnsupportedConnectorError,
    UnsupportedCurveError,
    UnsupportedOperationError,
)
from keycustody.core.models import AsymmetricKey, KeyDescriptor

__all__ = [
    "EntitySigner",
    "SignedEntity",
    "AsymmetricKey",
    "KeyDescriptor",
    "KeyCustodyError",
    "InvalidKeyError",
    "NoSignaturePresentError",
    "RemoteError",
    "RemoteNotFoundError",
    "RemoteOperationFailedError",
    "RemoteRequestError",
    "UnsupportedConnectorError",
    "UnsupportedCurveError",
    "UnsupportedOperationError",
]
