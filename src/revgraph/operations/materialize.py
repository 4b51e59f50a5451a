"""Materialization: turn tree values into bytes a diff can consume.

materialize_value() reads what a tree entry holds (file contents, symlink
target, submodule pin, or a conflict) and get_value_contents() reduces the
result to the byte buffer that is diffed. File conflicts are rendered with
conflict markers; a two-sided conflict uses git-style markers around each
conflicting region, and conflicts with more sides list every side in full.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Union

from merge3 import Merge3

from revgraph.engine.store import Store
from revgraph.exceptions import UnresolvedTreeError
from revgraph.models.tree import FileValue, Merge, SubmoduleValue, SymlinkValue, TreeValue
from revgraph.operations.diff import BINARY_MARKER, is_binary, split_lines

SUBMODULE_MARKER = b"(submodule)"


@dataclass(frozen=True)
class MaterializedAbsent:
    pass


@dataclass(frozen=True)
class MaterializedFile:
    content: bytes
    executable: bool = False


@dataclass(frozen=True)
class MaterializedSymlink:
    target: str


@dataclass(frozen=True)
class MaterializedSubmodule:
    commit: str


@dataclass(frozen=True)
class MaterializedFileConflict:
    """A conflict between file contents, already rendered with markers."""

    content: bytes


@dataclass(frozen=True)
class MaterializedOtherConflict:
    """A conflict involving symlinks or submodules; only describable."""

    merge: Merge

    def describe(self) -> str:
        return describe_conflict(self.merge)


MaterializedValue = Union[
    MaterializedAbsent,
    MaterializedFile,
    MaterializedSymlink,
    MaterializedSubmodule,
    MaterializedFileConflict,
    MaterializedOtherConflict,
]


def materialize_value(store: Store, path: str, value: Merge) -> MaterializedValue:
    """Read the tree entry *value* stored at *path*."""
    if value.is_resolved():
        resolved = value.as_resolved()
        if resolved is None:
            return MaterializedAbsent()
        if isinstance(resolved, FileValue):
            return MaterializedFile(store.read_file(resolved.blob_id), resolved.executable)
        if isinstance(resolved, SymlinkValue):
            return MaterializedSymlink(resolved.target)
        if isinstance(resolved, SubmoduleValue):
            return MaterializedSubmodule(resolved.commit)
        raise UnresolvedTreeError(path, f"unknown value {resolved!r}")

    if all(v is None or isinstance(v, FileValue) for v in value.values):
        contents = Merge(
            tuple(store.read_file(v.blob_id) if v is not None else b"" for v in value.values)
        )
        return MaterializedFileConflict(materialize_merge_result(contents))
    return MaterializedOtherConflict(value)


def get_value_contents(path: str, value: MaterializedValue) -> bytes:
    """The bytes diffed for a materialized value."""
    if isinstance(value, MaterializedAbsent):
        raise UnresolvedTreeError(path, "absent path should have been handled by the caller")
    if isinstance(value, MaterializedFile):
        return BINARY_MARKER if is_binary(value.content) else value.content
    if isinstance(value, MaterializedSymlink):
        return value.target.encode()
    if isinstance(value, MaterializedSubmodule):
        return SUBMODULE_MARKER
    if isinstance(value, MaterializedFileConflict):
        return value.content
    if isinstance(value, MaterializedOtherConflict):
        return value.describe().encode()
    raise UnresolvedTreeError(path, f"unexpected value {value!r}")


def materialize_merge_result(contents: Merge) -> bytes:
    """Render a merge of file contents with conflict markers."""
    if contents.is_resolved():
        return contents.as_resolved() or b""
    if len(contents.values) == 3:
        side_a, base, side_b = contents.values
        return _materialize_two_sided(base, side_a, side_b)
    return _materialize_snapshot(contents)


def _terminated(lines: list[bytes]) -> list[bytes]:
    if lines and not lines[-1].endswith(b"\n"):
        return lines[:-1] + [lines[-1] + b"\n"]
    return lines


def _materialize_two_sided(base: bytes, side_a: bytes, side_b: bytes) -> bytes:
    merger = Merge3(split_lines(base), split_lines(side_a), split_lines(side_b))
    out: list[bytes] = []
    for group in merger.merge_groups():
        if group[0] != "conflict":
            out.extend(group[1])
            continue
        _, base_lines, a_lines, b_lines = group
        out[-1:] = _terminated(out[-1:])
        out.append(b"<<<<<<< side #1\n")
        out.extend(_terminated(list(a_lines)))
        out.append(b"||||||| base\n")
        out.extend(_terminated(list(base_lines)))
        out.append(b"=======\n")
        out.extend(_terminated(list(b_lines)))
        out.append(b">>>>>>> side #2\n")
    return b"".join(out)


def _materialize_snapshot(contents: Merge) -> bytes:
    out = [b"<<<<<<< conflict 1 of 1\n"]
    for index, add in enumerate(contents.adds):
        if index > 0:
            out.append(b"------- base #%d\n" % index)
            out.extend(_terminated(split_lines(contents.removes[index - 1])))
        out.append(b"+++++++ side #%d\n" % (index + 1))
        out.extend(_terminated(split_lines(add)))
    out.append(b">>>>>>> conflict 1 of 1 ends\n")
    return b"".join(out)


def _describe_value(value: TreeValue) -> str:
    if isinstance(value, FileValue):
        kind = "executable file" if value.executable else "file"
        return f"{kind} with id {value.blob_id[:12]}"
    if isinstance(value, SymlinkValue):
        return f"symlink with target {value.target}"
    if isinstance(value, SubmoduleValue):
        return f"git submodule with id {value.commit[:12]}"
    return repr(value)


def describe_conflict(merge: Merge) -> str:
    lines = ["Conflict:"]
    for remove in merge.removes:
        if remove is not None:
            lines.append(f"  Removing {_describe_value(remove)}")
    for add in merge.adds:
        if add is not None:
            lines.append(f"  Adding {_describe_value(add)}")
    return "\n".join(lines) + "\n"
