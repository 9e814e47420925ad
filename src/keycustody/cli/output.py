"""Output formatting helpers for CLI."""

from __future__ import annotations

import json
from enum import Enum
from typing import Any
from uuid import UUID

from rich.console import Console

from keycustody.core.models import AsymmetricKey, KeyDescriptor

# Global console instances
console = Console()
error_console = Console(stderr=True)


class OutputFormat(str, Enum):
    """Output format options."""

    TEXT = "text"
    JSON = "json"


def print_success(message: str) -> None:
    """Print a success message."""
    console.print(f"[green]✓[/green] {message}")


def print_error(message: str) -> None:
    """Print an error message to stderr."""
    error_console.print(f"[red]✗[/red] {message}")


def print_json(data: Any) -> None:
    """Print data as formatted JSON."""

    def serialize(obj):
        if isinstance(obj, UUID):
            return str(obj)
        if isinstance(obj, bytes):
            return obj.decode("utf-8", errors="replace")
        return str(obj)

    console.print_json(json.dumps(data, default=serialize, indent=2))


def print_key_value(key: str, value: str, key_width: int = 12) -> None:
    """Print a key-value pair."""
    console.print(f"[cyan]{key:<{key_width}}[/cyan] {value}")


def descriptor_to_dict(descriptor: KeyDescriptor) -> dict[str, Any]:
    """Convert a descriptor for JSON output."""
    return {"id": str(descriptor.id), "version": descriptor.version}


def print_descriptor(descriptor: KeyDescriptor, output_format: OutputFormat) -> None:
    """Print a key descriptor."""
    if output_format == OutputFormat.JSON:
        print_json(descriptor_to_dict(descriptor))
        return

    print_key_value("Key ID", str(descriptor.id))
    print_key_value("Version", descriptor.version or "-")


def print_public_key(key: AsymmetricKey, output_format: OutputFormat) -> None:
    """Print the public part of a key."""
    pem = key.public_pem().decode("ascii")
    if output_format == OutputFormat.JSON:
        print_json({**descriptor_to_dict(KeyDescriptor.from_key(key)), "public_key": pem})
        return

    print_key_value("Key ID", str(key.id))
    print_key_value("Version", key.version or "-")
    console.print(pem, highlight=False, end="")


def spinner_context(message: str):
    """
    Create a spinner context manager.

    Usage:
        with spinner_context("Loading..."):
            do_something()
    """
    return error_console.status(message, spinner="dots")
