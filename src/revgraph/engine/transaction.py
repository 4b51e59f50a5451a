"""Transactions over the commit graph.

A ``Transaction`` starts from the view of one operation and accumulates
commit writes and view edits. Rewritten and abandoned commits are recorded
in a parent mapping (old id -> replacement ids) that ``rebase_descendants``
consults to move every visible descendant onto the replacements.

Nothing here commits the database session; the workspace session writes
the resulting view as a new operation and commits, or rolls back.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Sequence
from datetime import datetime

from revgraph.engine.hashing import new_change_id
from revgraph.engine.store import Store, Tree
from revgraph.models.commit import Commit
from revgraph.models.view import RemoteRef, View
from revgraph.operations import dag

logger = logging.getLogger(__name__)

RebasedCallback = Callable[[Commit, str], None]


class Transaction:
    """Mutable working state for one mutation."""

    def __init__(self, store: Store, view: View, *, author: str = "") -> None:
        self.store = store
        self.author = author
        self.base_view = view.normalized()
        self.view = view.model_copy(deep=True)
        self._heads: set[str] = set(view.heads)
        # old id -> replacement ids (one for a rewrite, parents for an abandon)
        self._parent_mapping: dict[str, list[str]] = {}
        self._abandoned: set[str] = set()
        self._pending: set[str] = set()

    # ------------------------------------------------------------------
    # Graph queries
    # ------------------------------------------------------------------

    def heads(self) -> set[str]:
        return dag.heads_of(self._heads, self.store.parent_ids)

    def is_ancestor(self, ancestor_id: str, commit_id: str) -> bool:
        """True if *ancestor_id* is *commit_id* or one of its ancestors."""
        return dag.is_ancestor(self.store.parent_ids, ancestor_id, commit_id)

    def is_rewritten(self, commit_id: str) -> bool:
        return commit_id in self._parent_mapping

    def new_parents(self, parent_ids: Sequence[str]) -> list[str]:
        """Follow the parent mapping until every id is a live commit."""
        result: list[str] = []
        for parent_id in parent_ids:
            if parent_id in self._parent_mapping:
                replacements = self.new_parents(self._parent_mapping[parent_id])
            else:
                replacements = [parent_id]
            for replacement in replacements:
                if replacement not in result:
                    result.append(replacement)
        return result

    # ------------------------------------------------------------------
    # Commit writes
    # ------------------------------------------------------------------

    def new_commit(
        self,
        parent_ids: Sequence[str],
        tree_id: str,
        description: str = "",
        *,
        change_id: str | None = None,
    ) -> Commit:
        """Write a brand-new commit and make it visible."""
        commit = self.store.write_commit(
            change_id=change_id or new_change_id(),
            parent_ids=list(parent_ids) or [self.store.root_commit_id],
            tree_id=tree_id,
            description=description,
            author=self.author,
        )
        self._add_head(commit)
        return commit

    def rewrite_commit(
        self,
        commit: Commit,
        *,
        tree: Tree | None = None,
        description: str | None = None,
        parent_ids: Sequence[str] | None = None,
        timestamp: datetime | None = None,
    ) -> Commit:
        """Write a replacement for *commit* with the same change id.

        Unchanged fields are carried over, including the timestamp, so a
        rewrite that changes nothing returns *commit* itself and records
        nothing.
        """
        new = self.store.write_commit(
            change_id=commit.change_id,
            parent_ids=list(parent_ids) if parent_ids is not None else list(commit.parent_ids),
            tree_id=tree.id if tree is not None else commit.tree_id,
            description=description if description is not None else commit.description,
            author=commit.author,
            timestamp=timestamp or commit.timestamp,
        )
        if new.commit_id == commit.commit_id:
            return commit
        self._record_replacement(commit.commit_id, [new.commit_id])
        self._add_head(new)
        logger.debug("Rewrote %s -> %s", commit.commit_id[:12], new.commit_id[:12])
        return new

    def record_abandoned_commit(self, commit: Commit) -> None:
        """Hide *commit*; its children will be rebased onto its parents."""
        parents = self.new_parents(commit.parent_ids)
        self._record_replacement(commit.commit_id, parents)
        self._abandoned.add(commit.commit_id)
        self._heads.discard(commit.commit_id)
        self._heads.update(parents)
        logger.debug("Abandoned %s", commit.commit_id[:12])

    def _record_replacement(self, old_id: str, new_ids: list[str]) -> None:
        self._parent_mapping[old_id] = new_ids
        self._pending.add(old_id)
        self._heads.discard(old_id)

    def _add_head(self, commit: Commit) -> None:
        self._heads.add(commit.commit_id)
        self._heads.difference_update(commit.parent_ids)

    def has_pending_rebase(self) -> bool:
        return bool(self._pending)

    def rebase_descendants(self, on_rebased: RebasedCallback | None = None) -> int:
        """Rebase every visible descendant of a rewritten or abandoned commit.

        Each descendant keeps its own changes: its new tree is its old tree
        moved from the old parents' merged tree to the new parents' merged
        tree. *on_rebased* is called with each old commit and its new id.
        Returns the number of commits rebased.
        """
        if not self._pending:
            return 0
        parents_of = self.store.parent_ids
        visible = dag.get_all_ancestors(self._heads, parents_of)
        children = dag.children_index(visible, parents_of)

        to_rebase: set[str] = set()
        frontier = [old_id for old_id in self._pending if old_id in children]
        while frontier:
            current = frontier.pop()
            for child in children.get(current, []):
                if child in to_rebase or child in self._parent_mapping:
                    continue
                to_rebase.add(child)
                frontier.append(child)
        self._pending.clear()

        def dependencies(commit_id: str) -> list[str]:
            # a rewritten parent counts through its replacement, which may
            # itself be waiting in this batch
            parent_ids = parents_of(commit_id)
            related = set(parent_ids) | set(self.new_parents(parent_ids))
            return sorted(related & to_rebase)

        count = 0
        for commit_id in dag.topo_order(to_rebase, dependencies, children_first=False):
            commit = self.store.get_commit(commit_id)
            new_parent_ids = self.new_parents(commit.parent_ids) or [
                self.store.root_commit_id
            ]
            if list(commit.parent_ids) == new_parent_ids:
                continue
            new_commit = self._rebase_commit(commit, new_parent_ids)
            count += 1
            if on_rebased is not None:
                on_rebased(commit, new_commit.commit_id)
        # replacements recorded while rebasing are already handled
        self._pending.clear()
        if count:
            logger.debug("Rebased %d descendant(s)", count)
        return count

    def _rebase_commit(self, commit: Commit, new_parent_ids: list[str]) -> Commit:
        store = self.store
        old_base = store.merge_commit_trees(store.get_parents(commit))
        new_base = store.merge_commit_trees(
            [store.get_commit(parent_id) for parent_id in new_parent_ids]
        )
        new_tree = store.merge_trees(new_base, old_base, store.commit_tree(commit))
        return self.rewrite_commit(commit, tree=new_tree, parent_ids=new_parent_ids)

    # ------------------------------------------------------------------
    # View edits
    # ------------------------------------------------------------------

    def set_working_copy(self, commit_id: str) -> None:
        self.view.wc_commit_id = commit_id

    def set_bookmark(self, name: str, target: str | None) -> None:
        if target is None:
            self.view.bookmarks.pop(name, None)
        else:
            self.view.bookmarks[name] = target

    def set_tag(self, name: str, target: str | None) -> None:
        if target is None:
            self.view.tags.pop(name, None)
        else:
            self.view.tags[name] = target

    def set_remote_bookmark(self, name: str, remote: str, ref: RemoteRef | None) -> None:
        refs = self.view.remote_bookmarks.setdefault(remote, {})
        if ref is None:
            refs.pop(name, None)
        else:
            refs[name] = ref
        if not refs:
            self.view.remote_bookmarks.pop(remote, None)

    def restore_view(self, view: View) -> None:
        """Replace the whole view, e.g. to undo an operation."""
        self.view = view.model_copy(deep=True)
        self._heads = set(view.heads)
        self._parent_mapping.clear()
        self._abandoned.clear()
        self._pending.clear()

    # ------------------------------------------------------------------
    # Completion
    # ------------------------------------------------------------------

    def finish(self) -> View:
        """Rebase what is left, update refs and the working copy, return the view.

        Local bookmarks and tags follow rewrites and are deleted when their
        commit is abandoned. Remote bookmarks record the remote's state and
        are never moved. An abandoned working copy is replaced by a new empty
        commit on its new parents.
        """
        if self._pending:
            self.rebase_descendants()

        for refs in (self.view.bookmarks, self.view.tags):
            for name, target in list(refs.items()):
                if target in self._abandoned:
                    del refs[name]
                elif target in self._parent_mapping:
                    refs[name] = self.new_parents([target])[0]

        wc_id = self.view.wc_commit_id
        if wc_id is not None and wc_id in self._parent_mapping:
            if wc_id in self._abandoned:
                parents = self.new_parents([wc_id])
                merged = self.store.merge_commit_trees(
                    [self.store.get_commit(parent_id) for parent_id in parents]
                )
                wc = self.new_commit(parents, merged.id)
                self.view.wc_commit_id = wc.commit_id
            else:
                self.view.wc_commit_id = self.new_parents([wc_id])[0]

        # every ref target and the working copy stay visible
        if self.view.wc_commit_id is not None:
            self._heads.add(self.view.wc_commit_id)
        self._heads.update(self.view.bookmarks.values())
        self._heads.update(self.view.tags.values())
        for refs in self.view.remote_bookmarks.values():
            self._heads.update(ref.target for ref in refs.values())
        self.view.heads = sorted(self.heads())
        return self.view.normalized()
