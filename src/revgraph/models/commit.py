"""Commit domain model for revgraph.

Commit is the immutable record handed out by the store. It is never edited
in place: rewriting a commit writes a new one with a new commit id and the
same change id.
"""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, ConfigDict


class Commit(BaseModel):
    """Store-facing commit record.

    Not an ORM model -- used for data transfer only.
    """

    model_config = ConfigDict(frozen=True)

    commit_id: str
    change_id: str
    parent_ids: tuple[str, ...] = ()
    tree_id: str
    description: str = ""
    author: str = ""
    timestamp: datetime

    def __str__(self) -> str:
        first_line = self.description.splitlines()[0] if self.description else ""
        if len(first_line) > 60:
            first_line = first_line[:57] + "..."
        return f"{self.commit_id[:12]} {first_line}".rstrip()

    def __repr__(self) -> str:
        return f"Commit({self.commit_id[:12]} change={self.change_id[:12]})"
