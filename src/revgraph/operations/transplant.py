"""Hunk transplant: move or copy one diff hunk between two revisions.

Moving is split-rebase-squash done on trees:

- a *sibling* tree is the source's parent tree with only the hunk applied,
  i.e. a virtual commit holding just the hunk;
- the source loses the hunk by backing the base->sibling change out of it;
- the destination gains the hunk by merging the base->sibling change in.

Which of source and destination is rewritten first depends on their
ancestry, so that descendants are rebased onto the right commits.

Copying restores the source's lines for the hunk's range into the
destination after checking that the destination still holds the lines the
hunk was computed against.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from revgraph.engine.store import Store, Tree
from revgraph.exceptions import (
    HunkMismatchError,
    HunkValidationError,
    MalformedHunkError,
    PreconditionFailed,
    RebaseMapError,
)
from revgraph.models.commit import Commit
from revgraph.models.mutation import Unchanged, Updated
from revgraph.models.revision import ChangeHunk, RevId, TreePath
from revgraph.models.tree import FileValue, Merge
from revgraph.operations.materialize import MaterializedFileConflict, materialize_value

if TYPE_CHECKING:
    from revgraph.workspace import WorkspaceSession

logger = logging.getLogger(__name__)


def text_lines(content: bytes) -> list[str]:
    """Lines of *content* without terminators; a final newline adds no line."""
    text = content.decode("utf-8", errors="replace")
    lines = text.split("\n")
    if lines[-1] == "":
        lines.pop()
    return [line[:-1] if line.endswith("\r") else line for line in lines]


def line_ending(content: bytes) -> str:
    """The line terminator of *content*: CRLF if it uses one, else LF."""
    return "\r\n" if b"\r\n" in content else "\n"


def join_lines(lines: list[str], ends_with_newline: bool, newline: str = "\n") -> bytes:
    content = newline.join(lines).encode()
    if ends_with_newline and content and not content.endswith(b"\n"):
        content += newline.encode()
    return content


def read_file_content(store: Store, tree: Tree, path: str) -> bytes:
    """Contents of the file at *path*; conflicts come back with markers.

    Absent paths, symlinks and submodules read as empty.
    """
    value = tree.path_value(path)
    if value.is_resolved():
        resolved = value.as_resolved()
        if isinstance(resolved, FileValue):
            return store.read_file(resolved.blob_id)
        return b""
    materialized = materialize_value(store, path, value)
    if isinstance(materialized, MaterializedFileConflict):
        return materialized.content
    return b""


def file_executable(tree: Tree, path: str) -> bool:
    resolved = tree.path_value(path).as_resolved()
    return resolved.executable if isinstance(resolved, FileValue) else False


def apply_hunk_to_base(
    base_content: bytes,
    hunk: ChangeHunk,
    *,
    ends_with_newline: bool | None = None,
) -> bytes:
    """Rebuild the file a hunk was diffed into, starting from its left side.

    Context and removed lines must match *base_content* at the running
    offset, ignoring trailing whitespace. *ends_with_newline* overrides the
    base's trailing-newline convention, for a base that is empty.
    """
    base_lines = text_lines(base_content)
    if ends_with_newline is None:
        ends_with_newline = base_content.endswith(b"\n")

    start = max(hunk.location.from_file.start - 1, 0)
    if start > len(base_lines):
        raise HunkMismatchError(len(base_lines) + 1, "", "<EOF>")

    result = list(base_lines[:start])
    index = start
    for line in hunk.lines:
        prefix, body = line[:1], line[1:]
        if prefix in (" ", "-"):
            expected = body.rstrip()
            if index >= len(base_lines) or base_lines[index].rstrip() != expected:
                found = base_lines[index].rstrip() if index < len(base_lines) else "<EOF>"
                raise HunkMismatchError(index + 1, expected, found)
            if prefix == " ":
                result.append(base_lines[index])
            index += 1
        elif prefix == "+":
            result.append(body.rstrip("\n"))
        else:
            raise MalformedHunkError(line)
    result.extend(base_lines[index:])
    return join_lines(result, ends_with_newline)


def update_tree_entry(
    store: Store, tree: Tree, path: str, blob_id: str, executable: bool
) -> Tree:
    builder = store.tree_builder(tree)
    builder.set_or_remove(path, Merge.resolved(FileValue(blob_id=blob_id, executable=executable)))
    return builder.write_tree()


def combine_messages(source: Commit, destination: Commit, abandon_source: bool) -> str:
    if not abandon_source:
        return destination.description
    if not source.description:
        return destination.description
    if not destination.description:
        return source.description
    return destination.description + "\n" + source.description


def move_hunk(
    ws: WorkspaceSession,
    from_id: RevId,
    to_id: RevId,
    path: TreePath,
    hunk: ChangeHunk,
) -> Updated | Unchanged:
    """Move *hunk* of *path* out of one revision and into another."""
    source = ws.resolve_single_change(from_id)
    destination = ws.resolve_single_commit(to_id)

    if ws.check_immutable([source.commit_id, destination.commit_id]):
        raise PreconditionFailed("Revisions are immutable")

    parents = ws.store.get_parents(source)
    if len(parents) != 1:
        raise PreconditionFailed("Cannot move hunk from a merge commit")

    store = ws.store
    repo_path = path.repo_path
    source_tree = store.commit_tree(source)
    base_tree = store.commit_tree(parents[0])

    base_content = read_file_content(store, base_tree, repo_path)
    newline = None
    if not base_content:
        newline = read_file_content(store, source_tree, repo_path).endswith(b"\n")
    sibling_content = apply_hunk_to_base(base_content, hunk, ends_with_newline=newline)

    if source.commit_id == destination.commit_id:
        return Unchanged()

    tx = ws.start_transaction()
    sibling_tree = update_tree_entry(
        store,
        base_tree,
        repo_path,
        store.write_file(sibling_content),
        file_executable(source_tree, repo_path),
    )

    remainder_tree = store.merge_trees(source_tree, sibling_tree, base_tree)
    new_to_tree = store.merge_trees(store.commit_tree(destination), base_tree, sibling_tree)

    abandon_source = remainder_tree.id == base_tree.id
    description = combine_messages(source, destination, abandon_source)

    from_is_ancestor = tx.is_ancestor(source.commit_id, destination.commit_id)
    to_is_ancestor = tx.is_ancestor(destination.commit_id, source.commit_id)

    def rewrite_source() -> None:
        if abandon_source:
            tx.record_abandoned_commit(source)
        else:
            tx.rewrite_commit(source, tree=remainder_tree)

    if to_is_ancestor:
        tx.rewrite_commit(destination, tree=new_to_tree, description=description)
        rewrite_source()
        tx.rebase_descendants()
    else:
        rewrite_source()
        if from_is_ancestor:
            rebase_map: dict[str, str] = {}

            def record(old: Commit, new_id: str) -> None:
                rebase_map[old.commit_id] = new_id

            tx.rebase_descendants(on_rebased=record)
            rebased_id = rebase_map.get(destination.commit_id)
            if rebased_id is None:
                raise RebaseMapError(destination.commit_id)
            destination = store.get_commit(rebased_id)
            new_to_tree = store.merge_trees(
                store.commit_tree(destination), base_tree, sibling_tree
            )
        tx.rewrite_commit(destination, tree=new_to_tree, description=description)
        tx.rebase_descendants()

    logger.debug(
        "Moving hunk in %s from %s to %s (abandon source: %s)",
        repo_path,
        source.commit_id[:12],
        destination.commit_id[:12],
        abandon_source,
    )
    status = ws.finish_transaction(
        tx,
        f"move hunk in {repo_path} from {source.commit_id} to {destination.commit_id}",
    )
    return Updated(new_status=status) if status is not None else Unchanged()


def copy_hunk(
    ws: WorkspaceSession,
    from_id: str,
    to_id: RevId,
    path: TreePath,
    hunk: ChangeHunk,
) -> Updated | Unchanged:
    """Restore the source's lines for *hunk* into the destination revision."""
    source = ws.resolve_commit_id(from_id)
    destination = ws.resolve_single_change(to_id)
    repo_path = path.repo_path

    if ws.check_immutable([destination.commit_id]):
        raise PreconditionFailed("Revision is immutable")

    store = ws.store
    to_tree = store.commit_tree(destination)
    if not to_tree.path_value(repo_path).is_resolved():
        raise PreconditionFailed("Cannot restore hunk: destination file has conflicts")

    to_content = read_file_content(store, to_tree, repo_path)
    to_lines = text_lines(to_content)
    to_start = max(hunk.location.to_file.start - 1, 0)
    to_end = to_start + hunk.location.to_file.len
    if to_end > len(to_lines):
        raise PreconditionFailed(
            f"Hunk location out of bounds: file has {len(to_lines)} lines, "
            f"hunk requires lines {hunk.location.to_file.start}-{to_end}"
        )

    expected = [line.rstrip() for line in hunk.expected_to_lines()]
    actual = [line.rstrip() for line in to_lines[to_start:to_end]]
    if len(expected) != len(actual):
        raise HunkValidationError(
            f"Hunk validation failed: expected {len(expected)} lines, "
            f"found {len(actual)} lines at destination"
        )
    for offset, (want, got) in enumerate(zip(expected, actual)):
        if want != got:
            line_number = to_start + offset + 1
            raise HunkValidationError(
                f"Hunk validation failed at line {line_number}: "
                f"expected '{want}', found '{got}'",
                line=line_number,
                expected=want,
                found=got,
            )

    from_lines = text_lines(read_file_content(store, store.commit_tree(source), repo_path))
    from_start = max(hunk.location.from_file.start - 1, 0)
    from_end = from_start + hunk.location.from_file.len
    if from_end > len(from_lines):
        raise PreconditionFailed(
            f"Source hunk location out of bounds: file has {len(from_lines)} lines, "
            f"hunk requires lines {hunk.location.from_file.start}-{from_end}"
        )

    new_lines = to_lines[:to_start] + from_lines[from_start:from_end] + to_lines[to_end:]
    new_content = join_lines(
        new_lines, to_content.endswith(b"\n"), line_ending(to_content)
    )
    if new_content == to_content:
        return Unchanged()

    tx = ws.start_transaction()
    new_to_tree = update_tree_entry(
        store,
        to_tree,
        repo_path,
        store.write_file(new_content),
        file_executable(to_tree, repo_path),
    )
    tx.rewrite_commit(destination, tree=new_to_tree)
    tx.rebase_descendants()

    status = ws.finish_transaction(
        tx, f"restore hunk in {repo_path} from {from_id} into {to_id.commit}"
    )
    return Updated(new_status=status) if status is not None else Unchanged()
