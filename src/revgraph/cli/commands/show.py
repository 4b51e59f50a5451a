"""revgraph show -- show one revision in detail."""

from __future__ import annotations

import click

from revgraph.cli.formatting import format_error, format_revision
from revgraph.models.revision import RevNotFound


@click.command()
@click.argument("revision", default="@")
@click.pass_context
def show(ctx: click.Context, revision: str) -> None:
    """Show REVISION's description, changes and conflicts (default: @)."""
    from revgraph.cli import _rev_id, _workspace_session

    with _workspace_session(ctx) as (ws, console):
        detail = ws.query_revision(_rev_id(ws, revision))
        if isinstance(detail, RevNotFound):
            format_error(f"Revision not found: {detail.id}", console)
            raise SystemExit(1)
        format_revision(detail, console)
