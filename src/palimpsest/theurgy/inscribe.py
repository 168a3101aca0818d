"""
Inscribe - Seal and store a new record.

Content and metadata are sealed with the wallet-derived record key before
they leave the process (unless --plain).
"""

from __future__ import annotations

from pathlib import Path
from typing import Optional

import click

from ..errors import InvalidArgumentError
from ..pneuma.codec import ABSENT, Present
from .common import command_errors, open_store, record_key, run, seal_for


def read_content(content: Optional[str], file: Optional[str]) -> Optional[bytes]:
    if content is not None and file is not None:
        raise InvalidArgumentError("Use either --content or --file, not both", field="content")
    if file is not None:
        return Path(file).read_bytes()
    if content is not None:
        return content.encode("utf-8")
    return None


@click.command()
@click.option("--name", required=True, help="Record name")
@click.option("--content", default=None, help="Record content (text)")
@click.option("--file", "file", type=click.Path(exists=True, dir_okay=False), default=None, help="Read content from a file")
@click.option("--metadata", default=None, help="Optional metadata (text)")
@click.option("--tag", "tags", multiple=True, help="Tag (repeatable)")
@click.option("--plain", is_flag=True, help="Store content without sealing it")
@click.pass_context
@command_errors
def inscribe(
    ctx: click.Context,
    name: str,
    content: Optional[str],
    file: Optional[str],
    metadata: Optional[str],
    tags: tuple[str, ...],
    plain: bool,
) -> None:
    """Seal and store a new record."""
    data = read_content(content, file)
    if data is None:
        raise InvalidArgumentError("Provide --content or --file", field="content")

    store = open_store(ctx)
    meta = metadata.encode("utf-8") if metadata is not None else None
    if not plain:
        key = record_key(ctx)
        data = seal_for(key, store.account, data)
        if meta is not None:
            meta = seal_for(key, store.account, meta)

    record_id = run(
        store.create(name, data, metadata=Present(meta) if meta is not None else ABSENT, tags=tags)
    )
    click.secho(f"Record #{record_id} stored.", fg="green")
