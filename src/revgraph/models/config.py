"""Configuration models for revgraph.

WorkspaceConfig holds per-workspace settings: storage location, log paging,
diff rendering and the immutable-heads revset.
"""

from __future__ import annotations

import enum
from typing import Optional

from pydantic import BaseModel, Field


class WhitespaceMode(str, enum.Enum):
    """How lines are compared when diffing."""

    EXACT = "exact"
    IGNORE_ALL_SPACE = "ignore-all-space"
    IGNORE_SPACE_CHANGE = "ignore-space-change"

    def __str__(self) -> str:
        return self.value


class WorkspaceConfig(BaseModel):
    """Per-workspace configuration."""

    db_path: str = ":memory:"
    db_url: Optional[str] = None
    page_size: int = Field(default=100, ge=1)
    diff_context: int = Field(default=3, ge=0)
    whitespace: WhitespaceMode = WhitespaceMode.EXACT
    default_query: str = "~root()"
    immutable_heads: str = "root() | tags() | remote_bookmarks()"
    author: str = "revgraph <revgraph@localhost>"
