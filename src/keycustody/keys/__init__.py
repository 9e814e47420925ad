"""Remote key store implementations for keycustody."""

from keycustody.keys.base import RemoteKeyStore
from keycustody.keys.vault import BearerTokenAuth, KeyVaultClient, KeyVaultConfig, KeyVaultConnector

__all__ = [
    "RemoteKeyStore",
    "BearerTokenAuth",
    "KeyVaultClient",
    "KeyVaultConfig",
    "KeyVaultConnector",
]
