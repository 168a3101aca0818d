"""Shared plumbing for CLI commands: settings, store construction, errors."""

from __future__ import annotations

import asyncio
import functools
import sys
from dataclasses import replace
from typing import Any, Callable, Coroutine, Optional, TypeVar

import click

from ..codex.records import Record
from ..codex.store import RecordStore
from ..config import Settings
from ..errors import PalimpsestError, TransactionTimeoutError
from ..pneuma.codec import is_present
from ..sigil.crypto import CryptoError, derive_record_key, open_sealed, owner_binding, seal
from ..sigil.eth import LocalSigner, load_private_key

T = TypeVar("T")


def load_settings(ctx: click.Context) -> Settings:
    """Settings from the environment, with --rpc-url / --contract applied."""
    obj = ctx.find_root().obj or {}
    settings = Settings.from_env()
    overrides = {}
    if obj.get("rpc_url"):
        overrides["rpc_url"] = obj["rpc_url"]
    if obj.get("contract"):
        overrides["contract_address"] = obj["contract"]
    return replace(settings, **overrides) if overrides else settings


def open_store(ctx: click.Context, owner: Optional[str] = None) -> RecordStore:
    """
    Open the record store for the local wallet.

    Without a wallet, a read-only store bound to ``owner`` is returned.
    """
    settings = load_settings(ctx)
    try:
        signer = LocalSigner(load_private_key(settings.env_path))
    except ValueError:
        if owner is None:
            raise
        return RecordStore.from_settings(settings, account=owner)
    return RecordStore.from_settings(settings, signer)


def record_key(ctx: click.Context) -> bytes:
    """Owner-scoped sealing key derived from the wallet key."""
    return derive_record_key(load_private_key(load_settings(ctx).env_path))


def seal_for(key: bytes, owner: str, data: bytes) -> bytes:
    return seal(data, key, owner_binding(owner))


def unseal(key: Optional[bytes], record: Record, data: bytes) -> str:
    if key is None:
        return f"<{len(data)} bytes>"
    try:
        return open_sealed(data, key, owner_binding(record.owner)).decode("utf-8", errors="replace")
    except CryptoError:
        return f"<sealed, {len(data)} bytes>"


def run(coro: Coroutine[Any, Any, T]) -> T:
    return asyncio.run(coro)


def command_errors(func: Callable[..., T]) -> Callable[..., T]:
    """Print library errors in red and exit with their exit code."""

    @functools.wraps(func)
    def wrapper(*args: Any, **kwargs: Any) -> T:
        try:
            return func(*args, **kwargs)
        except TransactionTimeoutError as exc:
            click.secho(f"Timed out: {exc}", fg="yellow")
            click.echo(f"  Transaction {exc.tx_id} may still be included.")
            sys.exit(exc.exit_code)
        except PalimpsestError as exc:
            click.secho(f"Error: {exc}", fg="red")
            if exc.reason:
                click.echo(click.style("  Reason: ", dim=True) + exc.reason)
            sys.exit(exc.exit_code)
        except ValueError as exc:
            # Missing wallet, bad key material
            click.secho(f"Error: {exc}", fg="red")
            sys.exit(1)

    return wrapper


def print_record(record: Record, key: Optional[bytes] = None) -> None:
    click.echo(
        click.style(f"  #{record.id} ", fg="cyan", bold=True)
        + click.style(record.name, fg="bright_white", bold=True)
    )
    click.echo(click.style("    Content:  ", dim=True) + unseal(key, record, record.content))
    if is_present(record.metadata):
        click.echo(click.style("    Metadata: ", dim=True) + unseal(key, record, record.metadata.value))
    if record.tags:
        click.echo(click.style("    Tags:     ", dim=True) + ", ".join(record.tags))
    click.echo(click.style("    Created:  ", dim=True) + str(record.created_at))
    click.echo(click.style("    Updated:  ", dim=True) + str(record.updated_at))


def record_to_json(record: Record) -> dict[str, Any]:
    return {
        "id": record.id,
        "owner": record.owner,
        "name": record.name,
        "content": "0x" + record.content.hex(),
        "metadata": "0x" + record.metadata.value.hex() if is_present(record.metadata) else None,
        "tags": list(record.tags),
        "created_at": record.created_at,
        "updated_at": record.updated_at,
    }
