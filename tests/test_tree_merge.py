"""Tests for merge algebra and three-way tree merging."""

from __future__ import annotations

import pytest

from revgraph.models.tree import FileValue, Merge, SymlinkValue, merge_from_json, merge_to_json
from tests.conftest import build_tree, file_value


class TestMergeAlgebra:
    def test_requires_odd_terms(self) -> None:
        with pytest.raises(ValueError):
            Merge(("a", "b"))

    def test_from_removes_adds(self) -> None:
        merge = Merge.from_removes_adds(["b"], ["a", "c"])
        assert merge.values == ("a", "b", "c")
        assert merge.adds == ("a", "c")
        assert merge.removes == ("b",)

    def test_resolved(self) -> None:
        merge = Merge.resolved("x")
        assert merge.is_resolved()
        assert merge.as_resolved() == "x"
        assert Merge(("a", "b", "c")).as_resolved() is None

    def test_absent(self) -> None:
        assert Merge.resolved(None).is_absent()
        assert Merge((None, "b", None)).is_present()

    def test_simplify_cancels_pairs(self) -> None:
        assert Merge(("a", "b", "b")).simplify() == Merge(("a",))
        assert Merge(("b", "b", "a")).simplify() == Merge(("a",))

    def test_one_sided_change_resolves(self) -> None:
        assert Merge(("a", "b", "b")).resolve_trivial().as_resolved() == "a"

    def test_same_change_resolves(self) -> None:
        assert Merge(("x", "b", "x")).resolve_trivial().as_resolved() == "x"

    def test_real_conflict_stays(self) -> None:
        merge = Merge(("a", "b", "c")).resolve_trivial()
        assert not merge.is_resolved()
        assert merge.values == ("a", "b", "c")

    def test_flatten(self) -> None:
        nested = Merge((Merge(("a",)), Merge(("b",)), Merge(("c", "d", "e"))))
        assert nested.flatten().values == ("a", "b", "c", "d", "e")

    def test_flatten_reverses_removed_merge(self) -> None:
        nested = Merge((Merge(("a",)), Merge(("b", "c", "d")), Merge(("e",))))
        assert nested.flatten().values == ("a", "d", "c", "b", "e")

    def test_json_round_trip_of_conflict(self) -> None:
        merge = Merge((FileValue(blob_id="1" * 64), None, SymlinkValue(target="t")))
        assert merge_from_json(merge_to_json(merge)) == merge


class TestTreeBuilder:
    def test_set_and_remove(self, store) -> None:
        tree = build_tree(store, {"a": "1\n", "b": "2\n"})
        assert tree.paths() == ["a", "b"]
        smaller = build_tree(store, {"a": None}, tree)
        assert smaller.paths() == ["b"]

    def test_no_overrides_returns_base(self, store) -> None:
        tree = build_tree(store, {"a": "1\n"})
        assert store.tree_builder(tree).write_tree() is tree

    def test_content_addressed(self, store) -> None:
        first = build_tree(store, {"a": "1\n"})
        second = build_tree(store, {"a": "1\n"})
        assert first.id == second.id

    def test_tree_diff(self, store) -> None:
        before = build_tree(store, {"a": "1\n", "b": "2\n"})
        after = build_tree(store, {"b": "3\n", "c": "4\n"})
        changed = [path for path, _, _ in before.diff(after)]
        assert changed == ["a", "b", "c"]
        assert list(before.diff(before)) == []


class TestMergeTrees:
    def test_shortcuts(self, store) -> None:
        base = build_tree(store, {"a": "1\n"})
        side = build_tree(store, {"a": "2\n"})
        assert store.merge_trees(side, base, base) == side
        assert store.merge_trees(base, base, side) == side

    def test_clean_content_merge(self, store) -> None:
        base = build_tree(store, {"f": "a\nb\nc\n"})
        left = build_tree(store, {"f": "A\nb\nc\n"})
        right = build_tree(store, {"f": "a\nb\nC\n"})
        merged = store.merge_trees(left, base, right)
        value = merged.path_value("f").as_resolved()
        assert isinstance(value, FileValue)
        assert store.read_file(value.blob_id) == b"A\nb\nC\n"

    def test_conflicting_content(self, store) -> None:
        base = build_tree(store, {"f": "a\n"})
        left = build_tree(store, {"f": "X\n"})
        right = build_tree(store, {"f": "Y\n"})
        merged = store.merge_trees(left, base, right)
        assert merged.has_conflict()
        assert [path for path, _ in merged.conflicts()] == ["f"]
        assert len(merged.path_value("f").values) == 3

    def test_delete_against_unchanged(self, store) -> None:
        base = build_tree(store, {"f": "a\n", "g": "g\n"})
        left = build_tree(store, {"f": None}, base)
        right = build_tree(store, {"g": "G\n"}, base)
        merged = store.merge_trees(left, base, right)
        assert merged.paths() == ["g"]
        assert not merged.has_conflict()

    def test_independent_paths(self, store) -> None:
        base = build_tree(store, {})
        left = build_tree(store, {"a": "1\n"})
        right = build_tree(store, {"b": "2\n"})
        assert store.merge_trees(left, base, right).paths() == ["a", "b"]

    def test_executable_bit_merges(self, store) -> None:
        base = build_tree(store, {"f": file_value(store, "a\nb\n")})
        left = build_tree(store, {"f": file_value(store, "A\nb\n")})
        right = build_tree(store, {"f": file_value(store, "a\nb\n", executable=True)})
        merged = store.merge_trees(left, base, right)
        value = merged.path_value("f").as_resolved()
        assert value.executable
        assert store.read_file(value.blob_id) == b"A\nb\n"
