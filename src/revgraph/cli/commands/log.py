"""revgraph log -- show the revision graph."""

from __future__ import annotations

import click

from revgraph.cli.formatting import format_log


@click.command()
@click.argument("revset", required=False, default=None)
@click.option("-n", "--limit", default=None, type=int, help="Maximum number of rows to show.")
@click.pass_context
def log(ctx: click.Context, revset: str | None, limit: int | None) -> None:
    """Show the revisions in REVSET as a graph.

    REVSET defaults to the workspace's default query (all but the root).
    """
    from revgraph.cli import _workspace_session

    if limit is not None and limit < 1:
        raise click.BadParameter("must be at least 1", param_hint="--limit")
    with _workspace_session(ctx) as (ws, console):
        page = ws.query_log(revset, limit)
        format_log(page, console)
