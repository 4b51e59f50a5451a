"""Graph layout models: coordinates, connector lines, rows, pages, stems.

``QueryState`` is the serializable half of a layout session. A caller may
hold it between page requests and resume a session from it.
"""

from __future__ import annotations

from typing import Annotated, Literal, NamedTuple, Optional, Union

from pydantic import BaseModel, Field

from revgraph.models.revision import RevHeader


class LogCoordinates(NamedTuple):
    column: int
    row: int


class _LineBase(BaseModel):
    source: LogCoordinates
    target: LogCoordinates
    indirect: bool = False


class FromNode(_LineBase):
    """Line drawn outward from a node into an interior column."""

    type: Literal["FromNode"] = "FromNode"


class ToNode(_LineBase):
    """Line drawn inward to a node from an appended column."""

    type: Literal["ToNode"] = "ToNode"


class ToIntersection(_LineBase):
    """Line joining an edge onto a stem already awaiting the same target."""

    type: Literal["ToIntersection"] = "ToIntersection"


class ToMissing(_LineBase):
    """Line ending at a target outside the queried set."""

    type: Literal["ToMissing"] = "ToMissing"


LogLine = Annotated[
    Union[FromNode, ToNode, ToIntersection, ToMissing],
    Field(discriminator="type"),
]


class LogRow(BaseModel):
    revision: RevHeader
    location: LogCoordinates
    padding: int = 0
    lines: list[LogLine] = []


class LogPage(BaseModel):
    rows: list[LogRow] = []
    has_more: bool = False


class LogStem(BaseModel):
    """An edge waiting for its target row; its slot index is its column."""

    source: LogCoordinates
    target: str
    indirect: bool = False
    was_inserted: bool = False
    known_immutable: bool = False


class QueryState(BaseModel):
    """Resumable layout state.

    ``next_row`` counts emitted rows (including rows consumed by missing-edge
    terminators); ``visited`` counts commits pulled from the iterator.
    """

    page_size: int = Field(default=100, ge=1)
    next_row: int = 0
    visited: int = 0
    stems: list[Optional[LogStem]] = []
