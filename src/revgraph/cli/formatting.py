"""Rich formatting helpers for the revgraph CLI.

Provides functions that format query and mutation results for terminal
display. Rich auto-detects TTY and degrades gracefully when piped (no ANSI
codes).
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from rich.console import Console
from rich.markup import escape
from rich.table import Table
from rich.text import Text

from revgraph.models.mutation import NotFound, PreconditionError, Unchanged, UpdatedSelection
from revgraph.operations.diff import DiffTokenType, word_diff_lines

if TYPE_CHECKING:
    from revgraph.models.log import LogPage
    from revgraph.models.mutation import MutationResult
    from revgraph.models.revision import ChangeHunk, RevDetail, RevHeader

ID_WIDTH = 12


def get_console() -> Console:
    """Create a Rich Console that auto-detects TTY for graceful pipe degradation."""
    return Console(stderr=False)


def _node_glyph(header: RevHeader) -> str:
    if header.is_working_copy:
        return "@"
    if header.has_conflict:
        return "x"
    if header.is_immutable:
        return "◆"
    return "○"


def _refs_text(header: RevHeader) -> str:
    return " ".join(str(ref) for ref in header.refs)


def format_log(page: LogPage, console: Console) -> None:
    """Display one page of graph rows as a compact table."""
    if not page.rows:
        console.print("[dim]No revisions.[/dim]")
        return

    table = Table(show_header=False, box=None, pad_edge=False)
    table.add_column("Graph", no_wrap=True)
    table.add_column("Change", style="magenta", width=ID_WIDTH)
    table.add_column("Commit", style="blue", width=ID_WIDTH)
    table.add_column("Refs", style="green")
    table.add_column("Description")

    for row in page.rows:
        header = row.revision
        graph = "  " * row.location.column + _node_glyph(header)
        summary = escape(header.summary) if header.summary else "[dim](no description set)[/dim]"
        table.add_row(
            graph,
            header.id.change[:ID_WIDTH],
            header.id.commit[:ID_WIDTH],
            escape(_refs_text(header)),
            summary,
        )

    console.print(table)
    if page.has_more:
        console.print("[dim]... more revisions; raise --limit to see them[/dim]")


def _hunk_header(hunk: ChangeHunk) -> str:
    location = hunk.location
    return (
        f"@@ -{location.from_file.start},{location.from_file.len} "
        f"+{location.to_file.start},{location.to_file.len} @@"
    )


def _highlight(prefix: str, tokens: list, style: str) -> Text:
    text = Text(prefix, style=style)
    for token_type, token in tokens:
        chunk = token.decode("utf-8", errors="replace").rstrip("\n")
        if token_type == DiffTokenType.DIFFERENT:
            text.append(chunk, style=f"bold {style} reverse")
        else:
            text.append(chunk, style=style)
    return text


def _flush_changed(removed: list[str], added: list[str], console: Console) -> None:
    """Print a run of removed then added lines with word-level highlight."""
    if not removed and not added:
        return
    left = "".join(line + "\n" for line in removed).encode()
    right = "".join(line + "\n" for line in added).encode()
    left_lines, right_lines = word_diff_lines(left, right)
    for tokens in left_lines:
        console.print(_highlight("-", tokens, "red"))
    for tokens in right_lines:
        console.print(_highlight("+", tokens, "green"))
    removed.clear()
    added.clear()


def format_hunk(hunk: ChangeHunk, console: Console) -> None:
    """Display a unified hunk, highlighting the changed words."""
    console.print(Text(_hunk_header(hunk), style="cyan"))
    removed: list[str] = []
    added: list[str] = []
    for line in hunk.lines:
        prefix, body = line[:1], line[1:]
        if prefix == "-":
            if added:
                _flush_changed(removed, added, console)
            removed.append(body)
        elif prefix == "+":
            added.append(body)
        else:
            _flush_changed(removed, added, console)
            console.print(Text(line, style="dim"))
    _flush_changed(removed, added, console)


def format_header(header: RevHeader, console: Console) -> None:
    console.print(
        f"[magenta]{header.id.change[:ID_WIDTH]}[/magenta] "
        f"[blue]{header.id.commit}[/blue]"
        + (f" [green]{escape(_refs_text(header))}[/green]" if header.refs else "")
    )
    console.print(f"  Author: {escape(header.author)}")
    console.print(f"  Date:   {header.timestamp.strftime('%Y-%m-%d %H:%M:%S')}")
    flags = [
        name
        for name, value in (
            ("working copy", header.is_working_copy),
            ("immutable", header.is_immutable),
            ("conflict", header.has_conflict),
        )
        if value
    ]
    if flags:
        console.print(f"  Flags:  [yellow]{', '.join(flags)}[/yellow]")


def format_revision(detail: RevDetail, console: Console) -> None:
    """Display a revision: header, parents, changes and conflicts."""
    format_header(detail.header, console)
    console.print()
    if detail.header.description:
        for line in detail.header.description.splitlines():
            console.print(f"    {escape(line)}")
    else:
        console.print("    [dim](no description set)[/dim]")

    for parent in detail.parents:
        console.print(
            f"  Parent: [magenta]{parent.id.change[:ID_WIDTH]}[/magenta] "
            f"[blue]{parent.id.commit[:ID_WIDTH]}[/blue] {escape(parent.summary)}"
        )

    for change in detail.changes:
        console.print()
        marker = " [red](conflict)[/red]" if change.has_conflict else ""
        console.print(
            f"[bold]{change.kind} {escape(change.path.relative_path)}[/bold]{marker}"
        )
        for hunk in change.hunks:
            format_hunk(hunk, console)

    if detail.conflicts:
        console.print()
        console.print("[bold red]Unresolved conflicts:[/bold red]")
        for conflict in detail.conflicts:
            console.print(f"[bold]{escape(conflict.path.relative_path)}[/bold]")
            format_hunk(conflict.hunk, console)


def format_mutation_result(result: MutationResult, console: Console) -> bool:
    """Display a mutation result. Returns False for refusals."""
    if isinstance(result, PreconditionError):
        format_error(result.message, console)
        return False
    if isinstance(result, NotFound):
        format_error(f"Revision not found: {result.message}", console)
        return False
    if isinstance(result, Unchanged):
        console.print("[dim]Nothing changed.[/dim]")
        return True

    status = result.new_status
    console.print(f"Operation: {escape(status.operation_description)}")
    if isinstance(result, UpdatedSelection):
        header = result.new_selection
        console.print(
            f"Working copy now at: [magenta]{header.id.change[:ID_WIDTH]}[/magenta] "
            f"[blue]{header.id.commit[:ID_WIDTH]}[/blue] {escape(header.summary)}"
        )
    return True


def format_error(message: str, console: Console) -> None:
    """Display an error message."""
    console.print(f"[red]Error:[/red] {escape(message)}", highlight=False)
