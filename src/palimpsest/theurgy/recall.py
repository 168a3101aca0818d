"""
Recall - Query records.

read   one record by id
list   all records of an owner
search records carrying any of the given tags
count  number of live records

Queries are simulated only; nothing is signed or submitted.
"""

from __future__ import annotations

import json
from typing import Optional

import click

from ..codex.records import Record
from .common import command_errors, open_store, print_record, record_key, record_to_json, run

_owner_option = click.option("--owner", default=None, help="Owner address (default: your wallet)")
_decrypt_option = click.option("--decrypt", is_flag=True, help="Open sealed content with your wallet key")
_json_option = click.option("--json", "as_json", is_flag=True, help="Print JSON")


def _emit(ctx: click.Context, records: list[Record], decrypt: bool, as_json: bool) -> None:
    if as_json:
        click.echo(json.dumps([record_to_json(r) for r in records], indent=2))
        return
    if not records:
        click.echo("No records.")
        return
    key = record_key(ctx) if decrypt else None
    for record in records:
        print_record(record, key)


@click.command("read")
@click.argument("record_id", type=int)
@_owner_option
@_decrypt_option
@_json_option
@click.pass_context
@command_errors
def read(ctx: click.Context, record_id: int, owner: Optional[str], decrypt: bool, as_json: bool) -> None:
    """Show one record."""
    record = run(open_store(ctx, owner).read(record_id, owner=owner))
    if record is None:
        click.secho(f"Record #{record_id} not found.", fg="yellow")
        ctx.exit(1)
    if as_json:
        click.echo(json.dumps(record_to_json(record), indent=2))
        return
    print_record(record, record_key(ctx) if decrypt else None)


@click.command("list")
@_owner_option
@_decrypt_option
@_json_option
@click.pass_context
@command_errors
def list_records(ctx: click.Context, owner: Optional[str], decrypt: bool, as_json: bool) -> None:
    """List all records of an owner."""
    records = run(open_store(ctx, owner).list_by_owner(owner))
    _emit(ctx, records, decrypt, as_json)


@click.command("search")
@click.option("--tag", "tags", multiple=True, required=True, help="Tag to match (repeatable, any matches)")
@_owner_option
@_decrypt_option
@_json_option
@click.pass_context
@command_errors
def search(ctx: click.Context, tags: tuple[str, ...], owner: Optional[str], decrypt: bool, as_json: bool) -> None:
    """Find records carrying any of the given tags."""
    records = run(open_store(ctx, owner).filter_by_tags(tags, owner))
    _emit(ctx, records, decrypt, as_json)


@click.command("count")
@_owner_option
@click.pass_context
@command_errors
def count(ctx: click.Context, owner: Optional[str]) -> None:
    """Count live records of an owner."""
    click.echo(run(open_store(ctx, owner).count(owner)))
