"""Content-addressed commit/tree store.

The store reads and writes blobs, trees and commits through the storage
repositories and provides the tree algebra the rest of revgraph builds on:
path lookup, tree diffs, a sparse tree builder and a three-way tree merge.

Trees are flat: each entry maps a repo-relative path to a ``Merge`` of tree
values. Merging two trees over a base works per path; a path whose merge
does not resolve trivially gets a line-level content merge when all three
sides are files, and otherwise stays a conflict in the resulting tree.
"""

from __future__ import annotations

import logging
from collections.abc import Iterator, Sequence
from datetime import datetime, timezone

from merge3 import Merge3

from revgraph.engine.hashing import (
    ROOT_COMMIT_ID,
    blob_hash,
    commit_hash,
    tree_hash,
    utc,
)
from revgraph.exceptions import BlobNotFoundError, CommitNotFoundError, TreeNotFoundError
from revgraph.models.commit import Commit
from revgraph.models.tree import FileValue, Merge, merge_from_json, merge_to_json
from revgraph.operations import dag
from revgraph.operations.diff import split_lines
from revgraph.storage.repositories import BlobRepository, CommitRepository, TreeRepository
from revgraph.storage.schema import BlobRow, CommitRow, TreeRow

logger = logging.getLogger(__name__)

ABSENT: Merge = Merge.resolved(None)


class Tree:
    """An immutable tree snapshot."""

    def __init__(self, tree_id: str, entries: dict[str, Merge]) -> None:
        self.id = tree_id
        self._entries = entries

    def path_value(self, path: str) -> Merge:
        """The merge stored at *path*; an absent path gives a resolved None."""
        return self._entries.get(path, ABSENT)

    def entries(self) -> Iterator[tuple[str, Merge]]:
        for path in sorted(self._entries):
            yield path, self._entries[path]

    def paths(self) -> list[str]:
        return sorted(self._entries)

    def conflicts(self) -> Iterator[tuple[str, Merge]]:
        for path, value in self.entries():
            if not value.is_resolved():
                yield path, value

    def has_conflict(self) -> bool:
        return any(not value.is_resolved() for value in self._entries.values())

    def diff(self, other: Tree) -> Iterator[tuple[str, Merge, Merge]]:
        """Yield ``(path, before, after)`` for every path that differs.

        *self* is the before side. Paths come out sorted.
        """
        if self.id == other.id:
            return
        for path in sorted(set(self._entries) | set(other._entries)):
            before = self.path_value(path)
            after = other.path_value(path)
            if before != after:
                yield path, before, after

    def __eq__(self, other: object) -> bool:
        return isinstance(other, Tree) and self.id == other.id

    def __hash__(self) -> int:
        return hash(self.id)

    def __repr__(self) -> str:
        return f"Tree({self.id[:12]}, {len(self._entries)} entries)"


class TreeBuilder:
    """Builds a new tree from a base tree plus sparse path overrides."""

    def __init__(self, store: Store, base: Tree) -> None:
        self._store = store
        self._base = base
        self._overrides: dict[str, Merge] = {}

    def set_or_remove(self, path: str, value: Merge) -> None:
        """Set *path* to *value*, or remove it when *value* is absent."""
        self._overrides[path] = value

    def write_tree(self) -> Tree:
        if not self._overrides:
            return self._base
        entries = dict(self._base.entries())
        for path, value in self._overrides.items():
            if value.is_absent():
                entries.pop(path, None)
            else:
                entries[path] = value
        return self._store.write_tree(entries)


class Store:
    """Reads and writes content-addressed objects through the repositories.

    Objects are immutable once written, so lookups are cached. The cache
    must be cleared whenever the underlying session is rolled back, because
    rows written inside the discarded transaction no longer exist.
    """

    def __init__(
        self,
        blob_repo: BlobRepository,
        tree_repo: TreeRepository,
        commit_repo: CommitRepository,
    ) -> None:
        self._blob_repo = blob_repo
        self._tree_repo = tree_repo
        self._commit_repo = commit_repo
        self._commits: dict[str, Commit] = {}
        self._trees: dict[str, Tree] = {}
        self._blobs: dict[str, bytes] = {}
        self.empty_tree_id = tree_hash({})

    @property
    def root_commit_id(self) -> str:
        return ROOT_COMMIT_ID

    def clear_cache(self) -> None:
        self._commits.clear()
        self._trees.clear()
        self._blobs.clear()

    # ------------------------------------------------------------------
    # Commits
    # ------------------------------------------------------------------

    def get_commit(self, commit_id: str) -> Commit:
        cached = self._commits.get(commit_id)
        if cached is not None:
            return cached
        row = self._commit_repo.get(commit_id)
        if row is None:
            raise CommitNotFoundError(commit_id)
        commit = self._commit_from_row(row)
        self._commits[commit_id] = commit
        return commit

    def parent_ids(self, commit_id: str) -> tuple[str, ...]:
        return self.get_commit(commit_id).parent_ids

    def get_parents(self, commit: Commit) -> list[Commit]:
        return [self.get_commit(parent_id) for parent_id in commit.parent_ids]

    def write_commit(
        self,
        *,
        change_id: str,
        parent_ids: Sequence[str],
        tree_id: str,
        description: str = "",
        author: str = "",
        timestamp: datetime | None = None,
    ) -> Commit:
        """Write a commit. Writing an identical commit returns the existing one."""
        ts = utc(timestamp) if timestamp is not None else datetime.now(timezone.utc)
        commit_id = commit_hash(
            change_id=change_id,
            parent_ids=parent_ids,
            tree_id=tree_id,
            description=description,
            author=author,
            timestamp=ts,
        )
        row = CommitRow(
            commit_id=commit_id,
            change_id=change_id,
            tree_id=tree_id,
            description=description,
            author=author,
            timestamp=ts.replace(tzinfo=None),
        )
        self._commit_repo.save_if_absent(row, list(parent_ids))
        commit = Commit(
            commit_id=commit_id,
            change_id=change_id,
            parent_ids=tuple(parent_ids),
            tree_id=tree_id,
            description=description,
            author=author,
            timestamp=ts,
        )
        self._commits[commit_id] = commit
        logger.debug("Wrote commit %s (change %s)", commit_id[:12], change_id[:12])
        return commit

    def _commit_from_row(self, row: CommitRow) -> Commit:
        return Commit(
            commit_id=row.commit_id,
            change_id=row.change_id,
            parent_ids=tuple(self._commit_repo.get_parent_ids(row.commit_id)),
            tree_id=row.tree_id,
            description=row.description,
            author=row.author,
            timestamp=utc(row.timestamp),
        )

    # ------------------------------------------------------------------
    # Files and trees
    # ------------------------------------------------------------------

    def read_file(self, blob_id: str) -> bytes:
        cached = self._blobs.get(blob_id)
        if cached is not None:
            return cached
        row = self._blob_repo.get(blob_id)
        if row is None:
            raise BlobNotFoundError(blob_id)
        self._blobs[blob_id] = row.content
        return row.content

    def write_file(self, content: bytes) -> str:
        blob_id = blob_hash(content)
        self._blob_repo.save_if_absent(
            BlobRow(
                blob_id=blob_id,
                content=content,
                byte_size=len(content),
                created_at=datetime.now(timezone.utc).replace(tzinfo=None),
            )
        )
        self._blobs[blob_id] = content
        return blob_id

    def get_tree(self, tree_id: str) -> Tree:
        cached = self._trees.get(tree_id)
        if cached is not None:
            return cached
        row = self._tree_repo.get(tree_id)
        if row is None:
            raise TreeNotFoundError(tree_id)
        tree = Tree(
            tree_id,
            {path: merge_from_json(data) for path, data in row.entries_json.items()},
        )
        self._trees[tree_id] = tree
        return tree

    def commit_tree(self, commit: Commit) -> Tree:
        return self.get_tree(commit.tree_id)

    def empty_tree(self) -> Tree:
        return self.get_tree(self.empty_tree_id)

    def write_tree(self, entries: dict[str, Merge]) -> Tree:
        """Write a tree; absent entries are dropped."""
        present = {path: value for path, value in entries.items() if value.is_present()}
        serialized = {path: merge_to_json(value) for path, value in sorted(present.items())}
        tree_id = tree_hash(serialized)
        self._tree_repo.save_if_absent(TreeRow(tree_id=tree_id, entries_json=serialized))
        tree = Tree(tree_id, present)
        self._trees[tree_id] = tree
        return tree

    def tree_builder(self, base: Tree) -> TreeBuilder:
        return TreeBuilder(self, base)

    # ------------------------------------------------------------------
    # Merging
    # ------------------------------------------------------------------

    def merge_trees(self, left: Tree, base: Tree, right: Tree) -> Tree:
        """Three-way merge: ``left - base + right``."""
        if base.id == right.id or left.id == right.id:
            return left
        if base.id == left.id:
            return right

        paths = set(left.paths()) | set(base.paths()) | set(right.paths())
        entries: dict[str, Merge] = {}
        for path in sorted(paths):
            merged = self.merge_values(
                left.path_value(path), base.path_value(path), right.path_value(path)
            )
            if merged.is_present():
                entries[path] = merged
            if not merged.is_resolved():
                logger.debug("Conflict at %s after tree merge", path)
        return self.write_tree(entries)

    def merge_values(self, left: Merge, base: Merge, right: Merge) -> Merge:
        """Merge one path's values, resolving file content where possible."""
        merged = Merge((left, base, right)).flatten().resolve_trivial()
        if merged.is_resolved():
            return merged
        return self._try_resolve_file_conflict(merged)

    def _try_resolve_file_conflict(self, merge: Merge) -> Merge:
        if len(merge.values) != 3:
            return merge
        if not all(isinstance(value, FileValue) for value in merge.values):
            return merge

        side_a, base, side_b = merge.values
        merger = Merge3(
            split_lines(self.read_file(base.blob_id)),
            split_lines(self.read_file(side_a.blob_id)),
            split_lines(self.read_file(side_b.blob_id)),
        )
        content: list[bytes] = []
        for group in merger.merge_groups():
            if group[0] == "conflict":
                return merge
            content.extend(group[1])

        executable = Merge(tuple(v.executable for v in merge.values)).resolve_trivial()
        blob_id = self.write_file(b"".join(content))
        return Merge.resolved(
            FileValue(
                blob_id=blob_id,
                executable=(
                    executable.as_resolved()
                    if executable.is_resolved()
                    else side_a.executable
                ),
                copy_id=side_a.copy_id,
            )
        )

    def merge_commit_trees(self, commits: Sequence[Commit]) -> Tree:
        """The merged tree of several commits, e.g. a merge commit's parents."""
        if not commits:
            return self.empty_tree()
        tree = self.commit_tree(commits[0])
        for other in commits[1:]:
            base_id = dag.find_merge_base(
                self.parent_ids, commits[0].commit_id, other.commit_id
            )
            base_tree = (
                self.commit_tree(self.get_commit(base_id))
                if base_id is not None
                else self.empty_tree()
            )
            tree = self.merge_trees(tree, base_tree, self.commit_tree(other))
        return tree
