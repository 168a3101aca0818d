"""
Palimpsest CLI

Command-line interface for an owner-scoped encrypted record store kept by
a ledger-hosted DocumentStorage contract.

Identity = ECDSA/secp256k1 wallet. The same key signs transactions and
derives the key that seals record content before it leaves the client.

Commands:
  genesis   - Create a wallet and default configuration
  inscribe  - Seal and store a new record
  read      - Show one record
  list      - List records of an owner
  search    - Find records by tag (any match)
  count     - Count records of an owner
  amend     - Partially update a record
  erase     - Delete a record
  whoami    - Show current wallet address
"""

from __future__ import annotations

import logging
import sys
from typing import Optional

import click

from .sigil.eth import get_address, load_private_key

# ============ Constants ============

VERSION = "0.1.0"


# ============ Main CLI Group ============


@click.group(invoke_without_command=True)
@click.version_option(version=VERSION, prog_name="palimpsest")
@click.option("--verbose", "-v", is_flag=True, help="Log transaction progress")
@click.option("--rpc-url", default=None, help="JSON-RPC endpoint (overrides PALIMPSEST_RPC_URL)")
@click.option("--contract", default=None, help="DocumentStorage address (overrides DOCUMENT_STORAGE_ADDRESS)")
@click.pass_context
def cli(ctx: click.Context, verbose: bool, rpc_url: Optional[str], contract: Optional[str]) -> None:
    """Palimpsest - encrypted records on a ledger."""
    ctx.ensure_object(dict)
    ctx.obj["rpc_url"] = rpc_url
    ctx.obj["contract"] = contract
    if verbose:
        logging.basicConfig(level=logging.DEBUG, format="%(levelname)s %(name)s: %(message)s")
    if ctx.invoked_subcommand is None:
        click.echo(ctx.get_help())


# ============ Top-level Commands ============

from .theurgy.amend import amend
from .theurgy.erase import erase
from .theurgy.genesis import genesis
from .theurgy.inscribe import inscribe
from .theurgy.recall import count, list_records, read, search

cli.add_command(genesis)
cli.add_command(inscribe)
cli.add_command(read)
cli.add_command(list_records)
cli.add_command(search)
cli.add_command(count)
cli.add_command(amend)
cli.add_command(erase)


# ============ Identity ============


@cli.command()
def whoami() -> None:
    """Show current wallet identity."""
    try:
        pk = load_private_key()
        address = get_address(pk)
        click.echo(f"Address: {address}")
    except (ValueError, FileNotFoundError):
        click.echo("No wallet found.")
        click.echo("Run 'palimpsest genesis' to create one.")
        sys.exit(1)


# ============ Entry Points ============


def main() -> None:
    """Palimpsest CLI entry point."""
    cli()


if __name__ == "__main__":
    main()
