"""keycustody - asymmetric key custody and signing over a remote key vault."""

__version__ = "0.1.0"
