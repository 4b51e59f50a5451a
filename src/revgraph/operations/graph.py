"""Graph layout: turn a topo-grouped commit walk into paginated log rows.

A LogSession pulls ``(commit id, edges)`` pairs from a revset and lays each
commit out on a grid. Pending edges are kept as stems in a list of slots;
a slot's index is the column it is drawn in. Every row records the lines
that end at it, so a renderer can draw a page without looking back at
earlier pages.
"""

from __future__ import annotations

import itertools
import logging
from collections.abc import Iterator
from typing import TYPE_CHECKING, Generic, Optional, TypeVar

from revgraph.engine.revset import EdgeType, GraphEdge, Revset
from revgraph.models.log import (
    FromNode,
    LogCoordinates,
    LogLine,
    LogPage,
    LogRow,
    LogStem,
    QueryState,
    ToIntersection,
    ToMissing,
    ToNode,
)

if TYPE_CHECKING:
    from revgraph.workspace import WorkspaceSession

logger = logging.getLogger(__name__)

T = TypeVar("T")


class _Peekable(Generic[T]):
    """Iterator wrapper that can look one item ahead."""

    _EMPTY = object()

    def __init__(self, iterator: Iterator[T]) -> None:
        self._iterator = iterator
        self._head: object = self._EMPTY

    def __iter__(self) -> _Peekable[T]:
        return self

    def __next__(self) -> T:
        if self._head is not self._EMPTY:
            head, self._head = self._head, self._EMPTY
            return head  # type: ignore[return-value]
        return next(self._iterator)

    def has_next(self) -> bool:
        if self._head is self._EMPTY:
            try:
                self._head = next(self._iterator)
            except StopIteration:
                return False
        return True


class LogSession:
    """Stateful layout of one revset, one page at a time.

    The session is not reentrant: pages must be requested in order. Its
    ``state`` can be kept by the caller and handed to a new session over
    the same revset to continue where this one stopped.
    """

    def __init__(
        self,
        ws: WorkspaceSession,
        revset: Revset,
        state: QueryState | None = None,
    ) -> None:
        self.ws = ws
        self.state = state if state is not None else QueryState(page_size=ws.config.page_size)
        graph = itertools.islice(revset.iter_graph(), self.state.visited, None)
        self._iter: _Peekable[tuple[str, list[GraphEdge]]] = _Peekable(graph)
        self._is_immutable = ws.immutable_containing_fn()
        self._root_id = ws.store.root_commit_id

    def _find_stem(self, commit_id: str) -> Optional[int]:
        for slot, stem in enumerate(self.state.stems):
            if stem is not None and stem.target == commit_id:
                return slot
        return None

    def _first_empty_slot(self) -> Optional[int]:
        for slot, stem in enumerate(self.state.stems):
            if stem is None:
                return slot
        return None

    def _trim(self) -> None:
        stems = self.state.stems
        while stems and stems[-1] is None:
            stems.pop()

    def get_page(self) -> LogPage:
        """Lay out up to ``page_size`` rows."""
        state = self.state
        rows: list[LogRow] = []
        row = state.next_row
        max_row = row + state.page_size

        for commit_id, edges in self._iter:
            state.visited += 1
            lines: list[LogLine] = []

            # column: the stem awaiting this commit, else a gap, else a new column
            column = len(state.stems)
            padding = 0
            stem_known_immutable = False
            slot = self._find_stem(commit_id)
            if slot is not None:
                column = slot
                padding = len(state.stems) - column - 1

            if column < len(state.stems):
                terminated = state.stems[column]
                if terminated is not None:
                    stem_known_immutable = terminated.known_immutable
                    line_type = FromNode if terminated.was_inserted else ToNode
                    lines.append(
                        line_type(
                            indirect=terminated.indirect,
                            source=terminated.source,
                            target=LogCoordinates(column, row),
                        )
                    )
                state.stems[column] = None
            else:
                gap = self._first_empty_slot()
                if gap is not None:
                    column = gap
                    padding = len(state.stems) - gap - 1

            known_immutable = True if stem_known_immutable else self._is_immutable(commit_id)
            header = self.ws.format_header(
                self.ws.store.get_commit(commit_id), known_immutable=known_immutable
            )

            self._trim()

            next_missing: Optional[str] = None
            for edge in edges:
                if edge.edge_type == EdgeType.MISSING:
                    if edge.target == self._root_id:
                        continue
                    next_missing = edge.target

                indirect = edge.edge_type != EdgeType.DIRECT
                source = LogCoordinates(column, row)

                awaiting = self._find_stem(edge.target)
                if awaiting is not None:
                    lines.append(
                        ToIntersection(
                            indirect=indirect,
                            source=source,
                            target=LogCoordinates(awaiting, row + 1),
                        )
                    )
                    continue

                gap = self._first_empty_slot()
                stem = LogStem(
                    source=source,
                    target=edge.target,
                    indirect=indirect,
                    was_inserted=gap is not None,
                    known_immutable=header.is_immutable,
                )
                if gap is not None:
                    state.stems[gap] = stem
                else:
                    state.stems.append(stem)

            rows.append(
                LogRow(
                    revision=header,
                    location=LogCoordinates(column, row),
                    padding=padding,
                    lines=lines,
                )
            )
            row += 1

            # a missing edge ends right below its node, in a row of its own
            if next_missing is not None:
                slot = self._find_stem(next_missing)
                terminated = state.stems[slot] if slot is not None else None
                if terminated is not None:
                    rows[-1].lines.append(
                        ToMissing(
                            indirect=terminated.indirect,
                            source=LogCoordinates(column, row - 1),
                            target=LogCoordinates(slot, row),
                        )
                    )
                    state.stems[slot] = None
                    self._trim()
                    row += 1

            if row >= max_row:
                break

        state.next_row = row
        page = LogPage(rows=rows, has_more=self._iter.has_next())
        logger.debug(
            "Laid out %d row(s); next row %d, has_more=%s", len(rows), row, page.has_more
        )
        return page


def query_log(ws: WorkspaceSession, revset_str: str, max_results: int) -> LogPage:
    """Lay out the first page of *revset_str*."""
    revset = ws.evaluate_revset_str(revset_str)
    session = LogSession(ws, revset, QueryState(page_size=max_results))
    return session.get_page()
