"""Revision detail and remote queries.

query_revision() assembles everything a revision pane shows: the header,
the parent headers, per-file changes against the merged parent tree, and
the conflicts the revision's tree still holds.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from revgraph.models.revision import (
    ChangeHunk,
    ChangeKind,
    RevChange,
    RevConflict,
    RevDetail,
    RevId,
    RevNotFound,
)
from revgraph.operations.diff import get_unified_hunks
from revgraph.operations.materialize import (
    MaterializedAbsent,
    MaterializedFileConflict,
    MaterializedValue,
    get_value_contents,
    materialize_value,
)

if TYPE_CHECKING:
    from revgraph.engine.store import Tree
    from revgraph.workspace import WorkspaceSession

logger = logging.getLogger(__name__)

CONFLICT_CONTEXT_LINES = 3


def query_revision(ws: WorkspaceSession, rev_id: RevId) -> RevDetail | RevNotFound:
    """Detail for one revision, or NotFound if *rev_id* no longer resolves."""
    commit = ws.resolve_optional_id(rev_id)
    if commit is None:
        return RevNotFound(id=rev_id)

    store = ws.store
    parent_tree = store.merge_commit_trees(store.get_parents(commit))
    tree = store.commit_tree(commit)

    conflicts: list[RevConflict] = []
    for path, entry in tree.conflicts():
        value = materialize_value(store, path, entry)
        if not isinstance(value, MaterializedFileConflict):
            logger.warning("Unresolved entry at %s did not materialize as a file conflict", path)
            continue
        hunks = get_unified_hunks(CONFLICT_CONTEXT_LINES, value.content, b"")
        if hunks:
            conflicts.append(RevConflict(path=ws.format_path(path), hunk=hunks[-1]))

    changes = format_tree_changes(ws, parent_tree, tree)

    header = ws.format_header(commit)
    parents = [
        ws.format_header(parent, known_immutable=True if header.is_immutable else None)
        for parent in store.get_parents(commit)
    ]
    return RevDetail(header=header, parents=parents, changes=changes, conflicts=conflicts)


def format_tree_changes(
    ws: WorkspaceSession, before_tree: Tree, after_tree: Tree
) -> list[RevChange]:
    changes: list[RevChange] = []
    for path, before, after in before_tree.diff(after_tree):
        if before.is_present() and after.is_present():
            kind = ChangeKind.MODIFIED
        elif before.is_absent():
            kind = ChangeKind.ADDED
        else:
            kind = ChangeKind.DELETED
        # before and after are read one after the other on the same session
        before_value = materialize_value(ws.store, path, before)
        after_value = materialize_value(ws.store, path, after)
        changes.append(
            RevChange(
                path=ws.format_path(path),
                kind=kind,
                has_conflict=not after.is_resolved(),
                hunks=get_value_hunks(ws, path, before_value, after_value),
            )
        )
    return changes


def get_value_hunks(
    ws: WorkspaceSession,
    path: str,
    left: MaterializedValue,
    right: MaterializedValue,
) -> list[ChangeHunk]:
    context = ws.config.diff_context
    mode = ws.config.whitespace
    if isinstance(left, MaterializedAbsent):
        return get_unified_hunks(context, b"", get_value_contents(path, right), mode)
    if isinstance(right, MaterializedAbsent):
        return get_unified_hunks(context, get_value_contents(path, left), b"", mode)
    return get_unified_hunks(
        context, get_value_contents(path, left), get_value_contents(path, right), mode
    )


def query_remotes(ws: WorkspaceSession, tracking_branch: str | None = None) -> list[str]:
    """Configured remote names; with *tracking_branch*, only remotes tracking it."""
    remotes = ws.remote_names()
    if tracking_branch is None:
        return remotes
    matching = []
    for remote in remotes:
        ref = ws.view.get_remote_bookmark(tracking_branch, remote)
        if ref is not None and ref.tracked:
            matching.append(remote)
    return matching