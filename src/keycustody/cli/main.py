"""CLI main entry point and command groups."""

from __future__ import annotations

import asyncio
import sys
from collections.abc import Callable
from functools import wraps

import click

from keycustody import __version__
from keycustody.cli.output import OutputFormat, error_console, print_error
from keycustody.config import Settings, get_settings
from keycustody.keys.vault import KeyVaultConnector
from keycustody.logging import init_logging


class Context:
    """CLI context object passed to all commands."""

    def __init__(self):
        self.settings: Settings = get_settings()
        self.output_format: OutputFormat = OutputFormat.TEXT
        self.verbose: bool = False

    def use_vault_url(self, vault_url: str) -> None:
        """Override the configured vault URL."""
        self.settings = Settings(vault_url=vault_url)

    def get_connector(self) -> KeyVaultConnector:
        """Create a connector for the configured vault."""
        return KeyVaultConnector.from_settings(self.settings, name="cli")


pass_context = click.make_pass_decorator(Context, ensure=True)


def async_command(f: Callable) -> Callable:
    """Decorator to run async functions in Click commands."""

    @wraps(f)
    def wrapper(*args, **kwargs):
        return asyncio.run(f(*args, **kwargs))

    return wrapper


def handle_errors(f: Callable) -> Callable:
    """Decorator to handle common errors gracefully."""

    @wraps(f)
    def wrapper(*args, **kwargs):
        try:
            return f(*args, **kwargs)
        except KeyboardInterrupt:
            print_error("Operation cancelled")
            sys.exit(130)
        except click.ClickException:
            raise
        except Exception as e:
            print_error(str(e))
            if args and getattr(args[0], "verbose", False):
                error_console.print_exception()
            sys.exit(1)

    return wrapper


@click.group()
@click.version_option(version=__version__, prog_name="keycustody")
@click.option(
    "-f",
    "--format",
    "output_format",
    type=click.Choice(["text", "json"]),
    default="text",
    help="Output format",
)
@click.option(
    "--vault-url",
    envvar="KEYCUSTODY_VAULT_URL",
    default=None,
    help="Key vault base URL",
)
@click.option(
    "-v",
    "--verbose",
    is_flag=True,
    help="Enable verbose output",
)
@pass_context
def cli(ctx: Context, output_format: str, vault_url: str | None, verbose: bool):
    """
    keycustody - asymmetric key custody over a remote key vault

    Create and import EC P-256 keys, sign with vault-held private keys,
    and verify signatures locally or in the vault.
    """
    if vault_url:
        ctx.use_vault_url(vault_url)
    ctx.output_format = OutputFormat(output_format)
    ctx.verbose = verbose
    init_logging()


# Import and register command groups
from keycustody.cli.commands.key import key_group
from keycustody.cli.commands.signature import sign_command, verify_command

cli.add_command(key_group)
cli.add_command(sign_command)
cli.add_command(verify_command)


def main():
    """Main entry point."""
    cli(auto_envvar_prefix="KEYCUSTODY")


if __name__ == "__main__":
    main()
