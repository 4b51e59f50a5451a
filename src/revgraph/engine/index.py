"""Index of the commits visible in one view.

Visibility is ancestry of the view's heads. The index fixes a stable
order over the visible commits: children before parents, newer commits
first among those that are ready together. Revset results and log pages
follow this order.
"""

from __future__ import annotations

from collections.abc import Iterable

from revgraph.engine.store import Store
from revgraph.models.commit import Commit
from revgraph.models.view import View
from revgraph.operations import dag


class RepoIndex:
    """Visible commits with parent/child links and positions."""

    def __init__(self, store: Store, view: View) -> None:
        self.store = store
        self.view = view
        self._visible = dag.get_all_ancestors(view.heads, store.parent_ids)
        self._children = dag.children_index(self._visible, store.parent_ids)
        self._order = dag.topo_order(
            self._visible,
            store.parent_ids,
            sort_key=lambda commit_id: (
                store.get_commit(commit_id).timestamp,
                commit_id,
            ),
        )
        self._position = {commit_id: i for i, commit_id in enumerate(self._order)}

    def __contains__(self, commit_id: object) -> bool:
        return commit_id in self._visible

    def __len__(self) -> int:
        return len(self._order)

    @property
    def visible(self) -> frozenset[str]:
        return frozenset(self._visible)

    def ordered(self, commit_ids: Iterable[str] | None = None) -> list[str]:
        """Ids in index order (newest first); all visible ids by default."""
        if commit_ids is None:
            return list(self._order)
        return sorted(
            (commit_id for commit_id in commit_ids if commit_id in self._position),
            key=self._position.__getitem__,
        )

    def position(self, commit_id: str) -> int:
        return self._position[commit_id]

    def parents(self, commit_id: str) -> tuple[str, ...]:
        return self.store.parent_ids(commit_id)

    def children(self, commit_id: str) -> list[str]:
        return self._children.get(commit_id, [])

    def heads(self) -> set[str]:
        return dag.heads_of(self._visible, self.store.parent_ids)

    def ancestors(self, commit_ids: Iterable[str]) -> set[str]:
        return dag.get_all_ancestors(commit_ids, self.store.parent_ids) & self._visible

    def descendants(self, commit_ids: Iterable[str]) -> set[str]:
        """Visible descendants, including the commits themselves."""
        seen: set[str] = set()
        stack = [commit_id for commit_id in commit_ids if commit_id in self._visible]
        while stack:
            current = stack.pop()
            if current in seen:
                continue
            seen.add(current)
            stack.extend(self.children(current))
        return seen

    def is_ancestor(self, ancestor_id: str, commit_id: str) -> bool:
        return dag.is_ancestor(self.store.parent_ids, ancestor_id, commit_id)

    def commits_with_change_prefix(self, prefix: str) -> list[Commit]:
        """Visible commits whose change id starts with *prefix*, in index order."""
        return [
            commit
            for commit in (self.store.get_commit(c) for c in self._order)
            if commit.change_id.startswith(prefix)
        ]

    def commits_with_id_prefix(self, prefix: str) -> list[str]:
        return [commit_id for commit_id in self._order if commit_id.startswith(prefix)]
