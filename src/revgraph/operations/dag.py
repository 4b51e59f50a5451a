"""DAG utilities -- merge base computation, ancestry and ordering.

All helpers take a ``parents_of`` callable mapping a commit id to its
ordered parent ids, so they work the same over the full store and over a
transaction's in-progress view.
"""

from __future__ import annotations

import heapq
from collections import deque
from collections.abc import Callable, Iterable, Iterator, Sequence

ParentsFn = Callable[[str], Sequence[str]]


def _bfs_walk(
    starts: Iterable[str],
    parents_of: ParentsFn,
    *,
    stop_at: set[str] | None = None,
) -> Iterator[str]:
    """BFS walk from the start ids, yielding each visited commit id once.

    Args:
        starts: Starting commit ids.
        parents_of: Parent lookup.
        stop_at: Optional set of known-visited ids. A commit in this set is
            yielded but its parents are not enqueued.
    """
    visited: set[str] = set()
    queue: deque[str] = deque(starts)
    while queue:
        current = queue.popleft()
        if current in visited:
            continue
        visited.add(current)
        yield current
        if stop_at is not None and current in stop_at:
            continue
        for parent in parents_of(current):
            if parent not in visited:
                queue.append(parent)


def find_merge_base(parents_of: ParentsFn, id_a: str, id_b: str) -> str | None:
    """Find the best common ancestor of two commits.

    Walks both ancestor sets using BFS and returns the first intersection
    seen from *id_b*. Returns None if there is no common ancestor.
    """
    ancestors_a = set(_bfs_walk([id_a], parents_of))
    for commit_id in _bfs_walk([id_b], parents_of):
        if commit_id in ancestors_a:
            return commit_id
    return None


def get_all_ancestors(
    commit_ids: Iterable[str],
    parents_of: ParentsFn,
    *,
    stop_at: set[str] | None = None,
) -> set[str]:
    """All ancestors of the given commits, including the commits themselves."""
    return set(_bfs_walk(commit_ids, parents_of, stop_at=stop_at))


def is_ancestor(parents_of: ParentsFn, ancestor_id: str, commit_id: str) -> bool:
    """True if *ancestor_id* is reachable from *commit_id* (inclusive)."""
    for visited in _bfs_walk([commit_id], parents_of):
        if visited == ancestor_id:
            return True
    return False


def heads_of(commit_ids: Iterable[str], parents_of: ParentsFn) -> set[str]:
    """Reduce a set of commits to those that are not ancestors of another."""
    candidates = set(commit_ids)
    non_heads: set[str] = set()
    for commit_id in candidates:
        for parent in parents_of(commit_id):
            non_heads |= get_all_ancestors([parent], parents_of, stop_at=non_heads)
    return candidates - non_heads


def children_index(
    commit_ids: Iterable[str], parents_of: ParentsFn
) -> dict[str, list[str]]:
    """Map each commit to its children among *commit_ids*."""
    ids = set(commit_ids)
    children: dict[str, list[str]] = {commit_id: [] for commit_id in ids}
    for commit_id in sorted(ids):
        for parent in parents_of(commit_id):
            if parent in children:
                children[parent].append(commit_id)
    return children


def topo_order(
    commit_ids: Iterable[str],
    parents_of: ParentsFn,
    *,
    sort_key: Callable[[str], object] | None = None,
    children_first: bool = True,
) -> list[str]:
    """Order commits so that every child comes before its parents.

    Among commits that are ready at the same time, the one with the
    largest *sort_key* goes first. With ``children_first=False`` the
    result is reversed (parents before children).
    """
    ids = set(commit_ids)
    key = sort_key or (lambda commit_id: commit_id)
    children = children_index(ids, parents_of)
    pending = {commit_id: len(kids) for commit_id, kids in children.items()}

    # max-heap on sort key; ids break ties deterministically
    heap: list[tuple[object, str]] = []
    for commit_id in ids:
        if pending[commit_id] == 0:
            heapq.heappush(heap, (_Reverse(key(commit_id)), commit_id))

    order: list[str] = []
    while heap:
        _, commit_id = heapq.heappop(heap)
        order.append(commit_id)
        for parent in parents_of(commit_id):
            if parent in pending:
                pending[parent] -= 1
                if pending[parent] == 0:
                    heapq.heappush(heap, (_Reverse(key(parent)), parent))

    if not children_first:
        order.reverse()
    return order


class _Reverse:
    """Inverts ordering so heapq pops the largest key first."""

    __slots__ = ("value",)

    def __init__(self, value: object) -> None:
        self.value = value

    def __lt__(self, other: _Reverse) -> bool:
        return other.value < self.value  # type: ignore[operator]

    def __eq__(self, other: object) -> bool:
        return isinstance(other, _Reverse) and self.value == other.value
