"""Custom exceptions for keycustody."""

from __future__ import annotations


class KeyCustodyError(Exception):
    """Base exception for all keycustody errors."""

    pass


class UnsupportedConnectorError(KeyCustodyError):
    """Operation invoked with a connector this service does not handle."""

    pass


class UnsupportedOperationError(KeyCustodyError):
    """Capability the key vault does not offer (private export, symmetric keys)."""

    pass


class UnsupportedCurveError(KeyCustodyError):
    """Key record uses an elliptic curve other than P-256."""

    pass


class NoSignaturePresentError(KeyCustodyError):
    """Entity verification attempted without a signature."""

    pass


class InvalidKeyError(KeyCustodyError):
    """Key material is malformed or its public and private parts disagree."""

    pass


class RemoteError(KeyCustodyError):
    """Base exception for key vault failures."""

    def __init__(self, message: str, operation: str | None = None):
        super().__init__(message)
        self.operation = operation


class RemoteOperationFailedError(RemoteError):
    """Vault answered successfully but returned no usable payload."""

    pass


class RemoteRequestError(RemoteError):
    """Vault request failed with an HTTP error status."""

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        operation: str | None = None,
    ):
        super().__init__(message, operation=operation)
        self.status_code = status_code


class RemoteNotFoundError(RemoteRequestError):
    """Vault reported that the requested key or secret does not exist."""

    def __init__(self, message: str, operation: str | None = None):
        super().__init__(message, status_code=404, operation=operation)
