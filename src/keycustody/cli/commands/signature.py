"""Sign and verify commands for CLI."""

from __future__ import annotations

import sys
from pathlib import Path
from uuid import UUID

import click

from keycustody.cli.main import Context, async_command, handle_errors, pass_context
from keycustody.cli.output import console, print_error, print_json, print_success, OutputFormat
from keycustody.core.custody import KeyCustodyService
from keycustody.core.models import KeyDescriptor, b64url_decode, b64url_encode


@click.command("sign")
@click.argument("key_id", type=click.UUID)
@click.argument("file", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option("--version", default=None, help="Key version")
@pass_context
@handle_errors
@async_command
async def sign_command(ctx: Context, key_id: UUID, file: Path, version: str | None):
    """
    Sign a file with a vault-held key.

    Prints the signature as base64url.

    Example:
        keycustody sign 0b6f6f1e-3c1a-4a53-9d3e-0c6d2f0f6d1a release.tar.gz
    """
    descriptor = KeyDescriptor(key_id, version)
    service = KeyCustodyService(actor="cli")
    connector = ctx.get_connector()
    try:
        signature = await service.sign_data(connector, descriptor, file.read_bytes())
    finally:
        await connector.close()

    encoded = b64url_encode(signature)
    if ctx.output_format == OutputFormat.JSON:
        print_json({"id": str(key_id), "version": version, "signature": encoded})
    else:
        console.print(encoded, highlight=False, soft_wrap=True)


@click.command("verify")
@click.argument("key_id", type=click.UUID)
@click.argument("file", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.argument("signature")
@click.option("--version", default=None, help="Key version")
@pass_context
@handle_errors
@async_command
async def verify_command(
    ctx: Context,
    key_id: UUID,
    file: Path,
    signature: str,
    version: str | None,
):
    """
    Verify a base64url signature over a file.

    Exits with status 1 when the signature does not match.

    Example:
        keycustody verify 0b6f6f1e-3c1a-4a53-9d3e-0c6d2f0f6d1a release.tar.gz MEUCIQ...
    """
    try:
        signature_bytes = b64url_decode(signature)
    except ValueError as e:
        raise click.BadParameter(f"Signature is not valid base64url: {e}") from e

    descriptor = KeyDescriptor(key_id, version)
    service = KeyCustodyService(actor="cli")
    connector = ctx.get_connector()
    try:
        is_valid = await service.verify_data(
            connector, descriptor, file.read_bytes(), signature_bytes
        )
    finally:
        await connector.close()

    if ctx.output_format == OutputFormat.JSON:
        print_json({"id": str(key_id), "version": version, "valid": is_valid})
    elif is_valid:
        print_success("Signature is valid")
    else:
        print_error("Signature is not valid")

    if not is_valid:
        sys.exit(1)
