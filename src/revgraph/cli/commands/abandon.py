"""revgraph abandon -- abandon revisions."""

from __future__ import annotations

import click

from revgraph.mutations import AbandonRevisions


@click.command()
@click.argument("revisions", nargs=-1)
@click.pass_context
def abandon(ctx: click.Context, revisions: tuple[str, ...]) -> None:
    """Abandon REVISIONS (default: @), rebasing their descendants."""
    from revgraph.cli import _report, _workspace_session

    with _workspace_session(ctx) as (ws, console):
        ids = []
        for revision in revisions or ("@",):
            ids.extend(
                ws.format_id(ws.store.get_commit(commit_id))
                for commit_id in ws.evaluate_revset_str(revision)
            )
        _report(ws.execute(AbandonRevisions(ids=ids)), console)
