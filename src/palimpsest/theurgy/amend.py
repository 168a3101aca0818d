"""
Amend - Partially update a record.

Only the options given are changed. --clear-metadata removes metadata;
--clear-tags removes every tag.
"""

from __future__ import annotations

from typing import Optional

import click

from ..errors import InvalidArgumentError
from ..pneuma.codec import ABSENT, Present
from .common import command_errors, open_store, record_key, run, seal_for
from .inscribe import read_content


@click.command()
@click.argument("record_id", type=int)
@click.option("--name", default=None, help="New name")
@click.option("--content", default=None, help="New content (text)")
@click.option("--file", "file", type=click.Path(exists=True, dir_okay=False), default=None, help="Read new content from a file")
@click.option("--metadata", default=None, help="New metadata (text)")
@click.option("--clear-metadata", is_flag=True, help="Remove metadata")
@click.option("--tag", "tags", multiple=True, help="Replace tags (repeatable)")
@click.option("--clear-tags", is_flag=True, help="Remove all tags")
@click.option("--plain", is_flag=True, help="Store content without sealing it")
@click.pass_context
@command_errors
def amend(
    ctx: click.Context,
    record_id: int,
    name: Optional[str],
    content: Optional[str],
    file: Optional[str],
    metadata: Optional[str],
    clear_metadata: bool,
    tags: tuple[str, ...],
    clear_tags: bool,
    plain: bool,
) -> None:
    """Partially update a record."""
    if metadata is not None and clear_metadata:
        raise InvalidArgumentError("Use either --metadata or --clear-metadata", field="metadata")
    if tags and clear_tags:
        raise InvalidArgumentError("Use either --tag or --clear-tags", field="tags")

    store = open_store(ctx)
    data = read_content(content, file)
    meta = metadata.encode("utf-8") if metadata is not None else None
    if not plain and (data is not None or meta is not None):
        key = record_key(ctx)
        if data is not None:
            data = seal_for(key, store.account, data)
        if meta is not None:
            meta = seal_for(key, store.account, meta)

    if clear_metadata:
        metadata_opt = Present(b"")
    else:
        metadata_opt = Present(meta) if meta is not None else ABSENT
    if clear_tags:
        tags_opt = Present(())
    else:
        tags_opt = Present(tags) if tags else ABSENT

    updated = run(
        store.update(
            record_id,
            name=Present(name) if name is not None else ABSENT,
            content=Present(data) if data is not None else ABSENT,
            metadata=metadata_opt,
            tags=tags_opt,
        )
    )
    if updated:
        click.secho(f"Record #{record_id} updated.", fg="green")
    else:
        click.secho(f"Record #{record_id} not found.", fg="yellow")
        ctx.exit(1)
