"""Erase - Delete a record permanently."""

from __future__ import annotations

import click

from .common import command_errors, open_store, run


@click.command()
@click.argument("record_id", type=int)
@click.option("--yes", is_flag=True, help="Do not ask for confirmation")
@click.pass_context
@command_errors
def erase(ctx: click.Context, record_id: int, yes: bool) -> None:
    """Delete a record permanently. Ids are never reused."""
    if not yes:
        click.confirm(f"Delete record #{record_id}?", abort=True)
    deleted = run(open_store(ctx).delete(record_id))
    if deleted:
        click.secho(f"Record #{record_id} deleted.", fg="green")
    else:
        click.secho(f"Record #{record_id} not found.", fg="yellow")
        ctx.exit(1)
