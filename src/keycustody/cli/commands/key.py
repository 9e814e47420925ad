"""Key lifecycle commands for CLI."""

from __future__ import annotations

from pathlib import Path
from uuid import UUID, uuid4

import click

from keycustody.cli.main import Context, async_command, handle_errors, pass_context
from keycustody.cli.output import (
    print_descriptor,
    print_public_key,
    print_success,
    spinner_context,
    OutputFormat,
)
from keycustody.core.custody import KeyCustodyService
from keycustody.core.models import AsymmetricKey, KeyDescriptor


@click.group("key")
def key_group():
    """Key lifecycle commands."""
    pass


@key_group.command("create")
@pass_context
@handle_errors
@async_command
async def create_key(ctx: Context):
    """
    Create a new P-256 key in the vault.

    The vault generates the key material; the private key never leaves it.

    Example:
        keycustody key create
    """
    service = KeyCustodyService(actor="cli")
    connector = ctx.get_connector()
    try:
        with spinner_context("Creating key..."):
            descriptor = await service.create_asymmetric_key(connector)
    finally:
        await connector.close()

    if ctx.output_format == OutputFormat.TEXT:
        print_success("Key created")
    print_descriptor(descriptor, ctx.output_format)


@key_group.command("import")
@click.argument("pem_file", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option("--id", "key_id", type=click.UUID, default=None, help="Key id (generated if omitted)")
@click.option("--version", default=None, help="Key version")
@click.option(
    "--public-only",
    is_flag=True,
    help="Import only the public part of a private key PEM",
)
@pass_context
@handle_errors
@async_command
async def import_key(
    ctx: Context,
    pem_file: Path,
    key_id: UUID | None,
    version: str | None,
    public_only: bool,
):
    """
    Import a PEM key into the vault.

    Private keys become vault key objects that can sign. Public keys are
    stored as secrets and can only be used to verify.

    Example:
        keycustody key import signer.pem
        keycustody key import --public-only signer.pem
    """
    key = AsymmetricKey.from_pem(key_id or uuid4(), pem_file.read_bytes(), version=version)
    if public_only:
        key = key.without_private()

    service = KeyCustodyService(actor="cli")
    connector = ctx.get_connector()
    try:
        with spinner_context("Importing key..."):
            descriptor = await service.import_asymmetric_key(connector, key)
    finally:
        await connector.close()

    if ctx.output_format == OutputFormat.TEXT:
        kind = "private key" if key.is_private else "public key"
        print_success(f"Imported {kind}")
    print_descriptor(descriptor, ctx.output_format)


@key_group.command("show")
@click.argument("key_id", type=click.UUID)
@click.option("--version", default=None, help="Key version")
@pass_context
@handle_errors
@async_command
async def show_key(ctx: Context, key_id: UUID, version: str | None):
    """
    Show the public key for a key id.

    Example:
        keycustody key show 0b6f6f1e-3c1a-4a53-9d3e-0c6d2f0f6d1a
    """
    service = KeyCustodyService(actor="cli")
    connector = ctx.get_connector()
    try:
        key = await service.get_asymmetric_key(connector, KeyDescriptor(key_id, version))
    finally:
        await connector.close()

    print_public_key(key, ctx.output_format)
