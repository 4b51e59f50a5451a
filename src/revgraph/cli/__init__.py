"""revgraph CLI -- terminal interface for querying and editing a repository.

This module is not imported from revgraph/__init__.py. It is loaded via
the ``revgraph`` entry point defined in pyproject.toml.
"""

from __future__ import annotations

import os
from contextlib import contextmanager
from typing import TYPE_CHECKING

import click

from revgraph.cli.formatting import format_error, format_mutation_result, get_console

if TYPE_CHECKING:
    from collections.abc import Iterator

    from rich.console import Console

    from revgraph.models.mutation import MutationResult
    from revgraph.models.revision import RevId
    from revgraph.workspace import WorkspaceSession


@click.group()
@click.option(
    "--db",
    default=".revgraph.db",
    envvar="REVGRAPH_DB",
    help="Path to the repository database.",
)
@click.pass_context
def cli(ctx: click.Context, db: str) -> None:
    """revgraph: browse and edit a revision graph."""
    ctx.ensure_object(dict)
    ctx.obj["db_path"] = db


def _get_workspace(ctx: click.Context) -> WorkspaceSession:
    """Open the workspace named by ``--db``; it must already exist."""
    from revgraph.workspace import WorkspaceSession

    db_path = ctx.obj["db_path"]
    if db_path != ":memory:" and not os.path.exists(db_path):
        format_error(
            f"Database not found: {db_path} (run 'revgraph init' first)", get_console()
        )
        raise SystemExit(1)
    return WorkspaceSession.open(db_path)


@contextmanager
def _workspace_session(ctx: click.Context) -> Iterator[tuple[WorkspaceSession, Console]]:
    """Open a workspace, yield (workspace, console), and handle cleanup.

    Ensures the workspace is closed on exit and formats exceptions as CLI
    errors.
    """
    console = get_console()
    try:
        ws = _get_workspace(ctx)
        try:
            yield ws, console
        finally:
            ws.close()
    except SystemExit:
        raise
    except Exception as e:
        format_error(str(e), console)
        raise SystemExit(1) from None


def _rev_id(ws: WorkspaceSession, revision: str) -> RevId:
    """Resolve a single-revision revset to its change and commit id."""
    return ws.format_id(ws.resolve_revision(revision))


def _report(result: MutationResult, console: Console) -> None:
    """Print a mutation result; refusals exit with status 1."""
    if not format_mutation_result(result, console):
        raise SystemExit(1)


# Register subcommands after cli group is defined
from revgraph.cli.commands.init import init  # noqa: E402
from revgraph.cli.commands.log import log  # noqa: E402
from revgraph.cli.commands.show import show  # noqa: E402
from revgraph.cli.commands.remotes import remotes  # noqa: E402
from revgraph.cli.commands.describe import describe  # noqa: E402
from revgraph.cli.commands.new import new  # noqa: E402
from revgraph.cli.commands.abandon import abandon  # noqa: E402
from revgraph.cli.commands.undo import undo  # noqa: E402

cli.add_command(init)
cli.add_command(log)
cli.add_command(show)
cli.add_command(remotes)
cli.add_command(describe)
cli.add_command(new)
cli.add_command(abandon)
cli.add_command(undo)
