"""Tests for DAG utilities over plain parent maps."""

from __future__ import annotations

from revgraph.operations.dag import (
    children_index,
    find_merge_base,
    get_all_ancestors,
    heads_of,
    is_ancestor,
    topo_order,
)

#   r <- a <- b <- d
#         \       /
#          <- c <-
PARENTS = {
    "r": [],
    "a": ["r"],
    "b": ["a"],
    "c": ["a"],
    "d": ["b", "c"],
    "x": [],
}


def parents_of(commit_id: str) -> list[str]:
    return PARENTS[commit_id]


class TestAncestry:
    def test_ancestors_include_start(self) -> None:
        assert get_all_ancestors(["b"], parents_of) == {"b", "a", "r"}

    def test_ancestors_of_merge(self) -> None:
        assert get_all_ancestors(["d"], parents_of) == {"d", "b", "c", "a", "r"}

    def test_stop_at_prunes_walk(self) -> None:
        assert get_all_ancestors(["d"], parents_of, stop_at={"b", "c"}) == {"d", "b", "c"}

    def test_is_ancestor(self) -> None:
        assert is_ancestor(parents_of, "a", "d")
        assert is_ancestor(parents_of, "d", "d")
        assert not is_ancestor(parents_of, "b", "c")
        assert not is_ancestor(parents_of, "d", "a")


class TestMergeBase:
    def test_siblings(self) -> None:
        assert find_merge_base(parents_of, "b", "c") == "a"

    def test_ancestor_is_its_own_base(self) -> None:
        assert find_merge_base(parents_of, "d", "a") == "a"

    def test_unrelated(self) -> None:
        assert find_merge_base(parents_of, "x", "d") is None


class TestHeadsAndChildren:
    def test_heads_of(self) -> None:
        assert heads_of(["a", "b", "c"], parents_of) == {"b", "c"}
        assert heads_of(PARENTS, parents_of) == {"d", "x"}

    def test_children_index(self) -> None:
        children = children_index(["a", "b", "c", "d"], parents_of)
        assert children["a"] == ["b", "c"]
        assert children["b"] == ["d"]
        assert children["d"] == []
        assert "r" not in children


class TestTopoOrder:
    def test_children_before_parents(self) -> None:
        order = topo_order(PARENTS, parents_of)
        for commit_id, parents in PARENTS.items():
            for parent in parents:
                assert order.index(commit_id) < order.index(parent)

    def test_sort_key_picks_largest_ready(self) -> None:
        rank = {"r": 0, "a": 1, "b": 2, "c": 3, "d": 4}
        order = topo_order(["r", "a", "b", "c", "d"], parents_of, sort_key=rank.__getitem__)
        assert order == ["d", "c", "b", "a", "r"]

    def test_sort_key_cannot_lift_a_parent(self) -> None:
        rank = {"r": 10, "a": 9, "b": 1, "c": 2}
        order = topo_order(["r", "a", "b", "c"], parents_of, sort_key=rank.__getitem__)
        assert order == ["c", "b", "a", "r"]

    def test_parents_first(self) -> None:
        order = topo_order(["r", "a", "b"], parents_of, children_first=False)
        assert order == ["r", "a", "b"]

    def test_parents_outside_set_ignored(self) -> None:
        assert topo_order(["b", "c"], parents_of) == ["c", "b"]
