"""revgraph new -- start a new revision."""

from __future__ import annotations

import click

from revgraph.mutations import CreateRevision


@click.command()
@click.argument("parents", nargs=-1)
@click.pass_context
def new(ctx: click.Context, parents: tuple[str, ...]) -> None:
    """Create an empty revision on top of PARENTS (default: @) and edit it."""
    from revgraph.cli import _report, _rev_id, _workspace_session

    with _workspace_session(ctx) as (ws, console):
        parent_ids = [_rev_id(ws, parent) for parent in parents or ("@",)]
        _report(ws.execute(CreateRevision(parent_ids=parent_ids)), console)
