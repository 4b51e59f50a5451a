"""revgraph describe -- set a revision's description."""

from __future__ import annotations

import click

from revgraph.mutations import DescribeRevision


@click.command()
@click.argument("revision", default="@")
@click.option("-m", "--message", required=True, help="The new description.")
@click.pass_context
def describe(ctx: click.Context, revision: str, message: str) -> None:
    """Replace REVISION's description (default: @)."""
    from revgraph.cli import _report, _rev_id, _workspace_session

    with _workspace_session(ctx) as (ws, console):
        mutation = DescribeRevision(id=_rev_id(ws, revision), new_description=message)
        _report(ws.execute(mutation), console)
