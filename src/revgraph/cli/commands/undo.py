"""revgraph undo -- undo the last operation."""

from __future__ import annotations

import click

from revgraph.mutations import UndoOperation


@click.command()
@click.pass_context
def undo(ctx: click.Context) -> None:
    """Restore the repository to its state before the last operation."""
    from revgraph.cli import _report, _workspace_session

    with _workspace_session(ctx) as (ws, console):
        _report(ws.execute(UndoOperation()), console)
