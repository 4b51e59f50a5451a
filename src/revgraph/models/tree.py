"""Tree value and merge models.

A tree maps repo-relative paths to a ``Merge`` of tree values. A resolved
path holds a merge with a single add; a conflicted path holds a merge with
``n + 1`` adds and ``n`` removes. Absent sides are represented by ``None``.

Values are frozen dataclasses so that they hash and compare by content,
which the merge simplification relies on.
"""

from __future__ import annotations

from collections import Counter
from dataclasses import dataclass
from typing import Any, Generic, Iterable, Iterator, Optional, TypeVar, Union

T = TypeVar("T")


@dataclass(frozen=True)
class FileValue:
    """A regular file: blob id, executable bit and copy id."""

    blob_id: str
    executable: bool = False
    copy_id: str = ""


@dataclass(frozen=True)
class SymlinkValue:
    """A symbolic link storing its target path."""

    target: str


@dataclass(frozen=True)
class SubmoduleValue:
    """A submodule pinned at a commit of another repository."""

    commit: str


TreeValue = Union[FileValue, SymlinkValue, SubmoduleValue]


@dataclass(frozen=True)
class Merge(Generic[T]):
    """An n-way merge stored as interleaved terms.

    ``values`` alternates add, remove, add, ... so it always has odd length.
    ``Merge((a,))`` is resolved; ``Merge((a, b, c))`` means ``a - b + c``.
    """

    values: tuple

    def __post_init__(self) -> None:
        if len(self.values) % 2 != 1:
            raise ValueError("a merge needs an odd number of terms")

    @classmethod
    def resolved(cls, value: T) -> Merge[T]:
        return cls((value,))

    @classmethod
    def from_removes_adds(cls, removes: Iterable[T], adds: Iterable[T]) -> Merge[T]:
        removes = list(removes)
        adds = list(adds)
        if len(adds) != len(removes) + 1:
            raise ValueError("a merge needs exactly one more add than removes")
        values: list = [adds[0]]
        for remove, add in zip(removes, adds[1:]):
            values.extend((remove, add))
        return cls(tuple(values))

    @property
    def adds(self) -> tuple:
        return self.values[0::2]

    @property
    def removes(self) -> tuple:
        return self.values[1::2]

    def is_resolved(self) -> bool:
        return len(self.values) == 1

    def as_resolved(self) -> Optional[T]:
        """Return the single value of a resolved merge, else None."""
        return self.values[0] if self.is_resolved() else None

    def is_present(self) -> bool:
        return not (self.is_resolved() and self.values[0] is None)

    def is_absent(self) -> bool:
        return not self.is_present()

    def map(self, fn) -> Merge:
        return Merge(tuple(fn(v) for v in self.values))

    def flatten(self) -> Merge:
        """Flatten a merge whose terms are themselves merges.

        Removed sub-merges have their terms reversed, which swaps their adds
        and removes.
        """
        terms: Iterator[Merge] = iter(self.values)
        result = list(next(terms).values)
        for remove, add in zip(terms, terms):
            result.extend(reversed(remove.values))
            result.extend(add.values)
        return Merge(tuple(result))

    def simplify(self) -> Merge[T]:
        """Cancel every add against an equal remove."""
        values = list(self.values)
        add_index = 0
        while add_index < len(values):
            add = values[add_index]
            removes = values[1::2]
            try:
                remove_index = removes.index(add)
            except ValueError:
                add_index += 2
                continue
            values[remove_index * 2], values[add_index] = (
                values[add_index],
                values[remove_index * 2],
            )
            del values[remove_index * 2 : remove_index * 2 + 2]
        return Merge(tuple(values))

    def resolve_trivial(self) -> Merge[T]:
        """Return a resolved merge when the conflict is trivial.

        After simplification, the merge resolves if only one value has a
        non-zero count, or if exactly two do (all sides made the same change).
        Otherwise the simplified merge is returned unresolved.
        """
        simplified = self.simplify()
        if simplified.is_resolved():
            return simplified
        counts: Counter = Counter()
        for add in simplified.adds:
            counts[add] += 1
        for remove in simplified.removes:
            counts[remove] -= 1
        nonzero = [(value, count) for value, count in counts.items() if count != 0]
        if len(nonzero) == 1:
            return Merge.resolved(nonzero[0][0])
        if len(nonzero) == 2:
            (value1, count1), (value2, count2) = nonzero
            if count1 + count2 == 1:
                return Merge.resolved(value1 if count1 > 0 else value2)
        return simplified


def value_to_json(value: TreeValue | None) -> dict[str, Any] | None:
    if value is None:
        return None
    if isinstance(value, FileValue):
        return {
            "type": "file",
            "id": value.blob_id,
            "executable": value.executable,
            "copy_id": value.copy_id,
        }
    if isinstance(value, SymlinkValue):
        return {"type": "symlink", "target": value.target}
    if isinstance(value, SubmoduleValue):
        return {"type": "submodule", "commit": value.commit}
    raise TypeError(f"not a tree value: {value!r}")


def value_from_json(data: dict[str, Any] | None) -> TreeValue | None:
    if data is None:
        return None
    kind = data["type"]
    if kind == "file":
        return FileValue(
            blob_id=data["id"],
            executable=bool(data.get("executable", False)),
            copy_id=data.get("copy_id", ""),
        )
    if kind == "symlink":
        return SymlinkValue(target=data["target"])
    if kind == "submodule":
        return SubmoduleValue(commit=data["commit"])
    raise ValueError(f"unknown tree value type: {kind}")


def merge_to_json(merge: Merge) -> dict[str, Any]:
    """Serialize a tree entry. Resolved entries store the bare value."""
    if merge.is_resolved():
        return value_to_json(merge.values[0])  # type: ignore[return-value]
    return {"type": "conflict", "terms": [value_to_json(v) for v in merge.values]}


def merge_from_json(data: dict[str, Any]) -> Merge:
    if data.get("type") == "conflict":
        return Merge(tuple(value_from_json(v) for v in data["terms"]))
    return Merge.resolved(value_from_json(data))
