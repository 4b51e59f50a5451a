"""Revision query models.

These are the records exchanged with a UI: revision headers, per-file
changes with their unified hunks, and the NotFound/Detail query result.
Every variant carries a ``type`` discriminator so results serialize to
tagged JSON.
"""

from __future__ import annotations

import enum
from datetime import datetime
from typing import Annotated, Literal, Union

from pydantic import BaseModel, Field

from revgraph.models.refs import StoreRef


class RevId(BaseModel):
    """A revision addressed by both its change id and its commit id."""

    change: str
    commit: str

    def __str__(self) -> str:
        return f"{self.change[:12]}/{self.commit[:12]}"


class TreePath(BaseModel):
    """A repo-relative path plus the form shown to the user."""

    repo_path: str
    relative_path: str

    @classmethod
    def of(cls, repo_path: str) -> TreePath:
        return cls(repo_path=repo_path, relative_path=repo_path)


class RevHeader(BaseModel):
    id: RevId
    description: str = ""
    author: str = ""
    timestamp: datetime
    has_conflict: bool = False
    is_working_copy: bool = False
    is_immutable: bool = False
    refs: list[StoreRef] = []
    parent_ids: list[str] = []

    @property
    def summary(self) -> str:
        return self.description.splitlines()[0] if self.description else ""


class ChangeKind(str, enum.Enum):
    ADDED = "Added"
    MODIFIED = "Modified"
    DELETED = "Deleted"

    def __str__(self) -> str:
        return self.value


class FileRange(BaseModel):
    """A 1-based line range: ``start`` and line count ``len``."""

    start: int
    len: int


class HunkLocation(BaseModel):
    from_file: FileRange
    to_file: FileRange


class ChangeHunk(BaseModel):
    """A unified hunk: its location and lines prefixed with ' ', '-' or '+'.

    Line strings carry no trailing newline.
    """

    location: HunkLocation
    lines: list[str]

    def expected_to_lines(self) -> list[str]:
        """The context and added lines, without prefixes."""
        return [line[1:] for line in self.lines if line[:1] in (" ", "+")]


class RevChange(BaseModel):
    path: TreePath
    kind: ChangeKind
    has_conflict: bool = False
    hunks: list[ChangeHunk] = []


class RevConflict(BaseModel):
    path: TreePath
    hunk: ChangeHunk


class RevNotFound(BaseModel):
    type: Literal["NotFound"] = "NotFound"
    id: RevId


class RevDetail(BaseModel):
    type: Literal["Detail"] = "Detail"
    header: RevHeader
    parents: list[RevHeader] = []
    changes: list[RevChange] = []
    conflicts: list[RevConflict] = []


RevResult = Annotated[Union[RevNotFound, RevDetail], Field(discriminator="type")]
