"""revgraph init -- create a new repository."""

from __future__ import annotations

import os

import click

from revgraph.cli.formatting import format_error, get_console


@click.command()
@click.pass_context
def init(ctx: click.Context) -> None:
    """Create an empty repository at the ``--db`` path."""
    from revgraph.workspace import WorkspaceSession

    console = get_console()
    db_path = ctx.obj["db_path"]
    if os.path.exists(db_path):
        format_error(f"Repository already exists: {db_path}", console)
        raise SystemExit(1)
    try:
        ws = WorkspaceSession.open(db_path)
        ws.close()
    except Exception as e:
        format_error(str(e), console)
        raise SystemExit(1) from None
    console.print(f"Initialized repository in [yellow]{db_path}[/yellow]")
