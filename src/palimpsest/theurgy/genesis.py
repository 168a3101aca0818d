"""
Genesis - Create a wallet identity and the default configuration.

Flow:
1. Generate an ECDSA wallet if none exists
2. Write default RPC / chain settings to ~/.palimpsest/.env
3. Save the DocumentStorage address (--contract)
4. Optionally initialize the contract (--init)
"""

from __future__ import annotations

import os
from typing import Optional

import click

from ..codex.store import RecordStore
from ..config import DEFAULT_CHAIN_ID, DEFAULT_RPC_URL, PALIMPSEST_DIR, PALIMPSEST_ENV
from ..errors import InvalidArgumentError
from ..sigil.eth import (
    LocalSigner,
    generate_eoa,
    get_address,
    load_private_key,
    read_env_file,
    save_private_key,
    write_env_values,
)
from ..utils import is_address
from .common import command_errors, load_settings, run

_DEFAULTS: dict[str, str] = {
    "PALIMPSEST_RPC_URL": DEFAULT_RPC_URL,
    "CHAIN_ID": str(DEFAULT_CHAIN_ID),
}


def _ensure_identity() -> tuple[str, bool]:
    """Returns (address, created)."""
    PALIMPSEST_DIR.mkdir(parents=True, exist_ok=True)
    try:
        return get_address(load_private_key()), False
    except ValueError:
        pk, address = generate_eoa()
        save_private_key(pk)
        os.environ["PRIVATE_KEY"] = pk
        return address, True


def _ensure_defaults() -> None:
    """Add default config keys that are not present yet; user values win."""
    existing = read_env_file(PALIMPSEST_ENV)
    missing = {k: v for k, v in _DEFAULTS.items() if k not in existing}
    if missing:
        write_env_values(missing)
        for key, value in missing.items():
            os.environ.setdefault(key, value)


@click.command()
@click.option("--contract", "contract_address", default=None, help="DocumentStorage address to save")
@click.option("--init", "init_contract", is_flag=True, help="Call the contract's init method")
@click.pass_context
@command_errors
def genesis(ctx: click.Context, contract_address: Optional[str], init_contract: bool) -> None:
    """Create a wallet and write the default configuration."""
    click.echo()
    click.echo(
        click.style("  ◆ ", fg="cyan")
        + click.style("Genesis", fg="bright_white", bold=True)
        + click.style(" ─── Prepare a record keeper", fg="cyan")
    )
    click.echo()

    address, created = _ensure_identity()
    _ensure_defaults()
    click.echo(click.style("  Address: ", dim=True) + click.style(address, fg="bright_white"))
    click.echo(click.style("  Config:  ", dim=True) + str(PALIMPSEST_ENV))
    if created:
        click.secho("  IMPORTANT: Back up ~/.palimpsest/.env; loss is irreversible.", fg="yellow", bold=True)

    if contract_address:
        if not is_address(contract_address):
            raise InvalidArgumentError(f"Not an address: {contract_address}", field="contract")
        write_env_values({"DOCUMENT_STORAGE_ADDRESS": contract_address})
        os.environ["DOCUMENT_STORAGE_ADDRESS"] = contract_address
        click.echo(click.style("  Contract: ", dim=True) + contract_address)

    if init_contract:
        store = RecordStore.from_settings(load_settings(ctx), LocalSigner(load_private_key()))
        run(store.init())
        click.secho("  Contract initialized.", fg="green")

    click.echo()
    click.secho("  Next steps:", fg="cyan")
    click.echo(f"    1. Fund your address with testnet ETH: {address}")
    click.echo("    2. Run 'palimpsest inscribe --name NAME --content TEXT'")
    click.echo()
