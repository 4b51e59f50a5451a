"""revgraph remotes -- list, add or remove remotes."""

from __future__ import annotations

import click
from rich.markup import escape


@click.command()
@click.option("--tracking", default=None, help="Only remotes tracking this bookmark.")
@click.option("--add", "add_name", default=None, help="Add a remote with this name.")
@click.option("--url", default="", help="URL recorded for --add.")
@click.option("--remove", "remove_name", default=None, help="Remove the remote with this name.")
@click.pass_context
def remotes(
    ctx: click.Context,
    tracking: str | None,
    add_name: str | None,
    url: str,
    remove_name: str | None,
) -> None:
    """List configured remotes."""
    from revgraph.cli import _workspace_session

    with _workspace_session(ctx) as (ws, console):
        if add_name is not None:
            ws.add_remote(add_name, url)
            console.print(f"Added remote [green]{escape(add_name)}[/green]")
            return
        if remove_name is not None:
            if not ws.remove_remote(remove_name):
                console.print(f"[red]Error:[/red] No such remote: {escape(remove_name)}")
                raise SystemExit(1)
            console.print(f"Removed remote [green]{escape(remove_name)}[/green]")
            return
        names = ws.query_remotes(tracking)
        if not names:
            console.print("[dim]No remotes.[/dim]")
            return
        for name in names:
            console.print(escape(name))
