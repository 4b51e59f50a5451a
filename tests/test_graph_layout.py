"""Tests for log graph layout and pagination.

Covers:
- Column assignment, padding and connector lines for chains, branches, merges
- Missing edges to the root are skipped; missing edges elsewhere get a row
- Pagination and resuming from a saved QueryState
- Properties over random DAGs
"""

from __future__ import annotations

from hypothesis import HealthCheck, given, settings
from hypothesis import strategies as st

from revgraph.models.log import (
    FromNode,
    LogCoordinates,
    QueryState,
    ToIntersection,
    ToMissing,
    ToNode,
)
from revgraph.workspace import WorkspaceSession
from tests.conftest import RepoBuilder
from tests.strategies import dag_shapes


def layout(ws, revset: str = "~root()", page_size: int = 100):
    return ws.log_session(revset, QueryState(page_size=page_size)).get_page()


def row_ids(page) -> list[str]:
    return [row.revision.id.commit for row in page.rows]


def build_shape(repo: RepoBuilder, shape: list[list[int]]):
    commits = []
    for i, parents in enumerate(shape):
        parent_commits = [commits[p] for p in parents] or [repo.root]
        commits.append(repo.commit(parents=parent_commits, description=f"n{i}"))
    return commits


class TestLinear:
    def test_chain_in_one_column(self, ws, repo) -> None:
        c1, c2, c3 = repo.chain(3)
        page = layout(ws, "all()")
        assert row_ids(page) == [c3.commit_id, c2.commit_id, c1.commit_id, ws.store.root_commit_id]
        assert [row.location for row in page.rows] == [
            LogCoordinates(0, i) for i in range(4)
        ]
        assert page.rows[0].lines == []
        for i in range(1, 4):
            assert page.rows[i].lines == [
                ToNode(source=LogCoordinates(0, i - 1), target=LogCoordinates(0, i))
            ]
        assert not page.has_more

    def test_missing_root_edge_skipped(self, ws, repo) -> None:
        c1, c2, c3 = repo.chain(3)
        page = layout(ws)
        assert row_ids(page) == [c3.commit_id, c2.commit_id, c1.commit_id]
        assert page.rows[-1].location == LogCoordinates(0, 2)
        assert not any(isinstance(line, ToMissing) for row in page.rows for line in row.lines)

    def test_header_flags(self, ws, repo) -> None:
        (c1,) = repo.chain(1)
        repo.edit(c1)
        page = layout(ws, "all()")
        wc_row, root_row = page.rows
        assert wc_row.revision.is_working_copy
        assert not wc_row.revision.is_immutable
        assert root_row.revision.is_immutable

    def test_empty_revset(self, ws) -> None:
        page = layout(ws)
        assert page.rows == []
        assert not page.has_more


class TestBranches:
    def test_fork(self, ws, repo) -> None:
        a = repo.commit(description="a")
        b = repo.commit(parents=[a], description="b")
        c = repo.commit(parents=[a], description="c")
        page = layout(ws)
        assert row_ids(page) == [c.commit_id, b.commit_id, a.commit_id]

        row_c, row_b, row_a = page.rows
        assert row_c.location == LogCoordinates(0, 0)
        assert row_b.location == LogCoordinates(1, 1)
        assert row_b.lines == [
            ToIntersection(source=LogCoordinates(1, 1), target=LogCoordinates(0, 2))
        ]
        assert row_a.location == LogCoordinates(0, 2)
        assert row_a.lines == [ToNode(source=LogCoordinates(0, 0), target=LogCoordinates(0, 2))]

    def test_merge(self, ws, repo) -> None:
        a = repo.commit(description="a")
        b = repo.commit(parents=[a], description="b")
        c = repo.commit(parents=[a], description="c")
        m = repo.commit(parents=[b, c], description="m")
        page = layout(ws)
        assert row_ids(page) == [m.commit_id, b.commit_id, c.commit_id, a.commit_id]

        row_m, row_b, row_c, row_a = page.rows
        assert row_m.location == LogCoordinates(0, 0)
        assert row_b.location == LogCoordinates(0, 1)
        assert row_b.padding == 1
        assert row_b.lines == [ToNode(source=LogCoordinates(0, 0), target=LogCoordinates(0, 1))]
        assert row_c.location == LogCoordinates(1, 2)
        assert row_c.lines == [
            ToNode(source=LogCoordinates(0, 0), target=LogCoordinates(1, 2)),
            ToIntersection(source=LogCoordinates(1, 2), target=LogCoordinates(0, 3)),
        ]
        assert row_a.location == LogCoordinates(0, 3)
        assert row_a.lines == [
            FromNode(source=LogCoordinates(0, 1), target=LogCoordinates(0, 3))
        ]

    def test_indirect_edge(self, ws, repo) -> None:
        c1, c2, c3 = repo.chain(3)
        page = layout(ws, f"{c1.commit_id} | {c3.commit_id}")
        assert page.rows[1].lines == [
            ToNode(indirect=True, source=LogCoordinates(0, 0), target=LogCoordinates(0, 1))
        ]

    def test_missing_edge_gets_its_own_row(self, ws, repo) -> None:
        c1, c2 = repo.chain(2)
        page = layout(ws, c2.commit_id)
        (row,) = page.rows
        assert row.lines == [
            ToMissing(indirect=True, source=LogCoordinates(0, 0), target=LogCoordinates(0, 1))
        ]
        state = QueryState(page_size=10)
        session = ws.log_session(c2.commit_id, state)
        session.get_page()
        assert state.next_row == 2
        assert state.stems == []


class TestPagination:
    def test_pages(self, ws, repo) -> None:
        commits = repo.chain(5)
        session = ws.log_session("~root()", QueryState(page_size=2))
        pages = [session.get_page() for _ in range(3)]
        assert [len(page.rows) for page in pages] == [2, 2, 1]
        assert [page.has_more for page in pages] == [True, True, False]
        ids = [commit_id for page in pages for commit_id in row_ids(page)]
        assert ids == [c.commit_id for c in reversed(commits)]
        assert pages[1].rows[0].location == LogCoordinates(0, 2)
        # lines across the page boundary still end at the right row
        assert pages[1].rows[0].lines == [
            ToNode(source=LogCoordinates(0, 1), target=LogCoordinates(0, 2))
        ]

    def test_resume_from_saved_state(self, ws, repo) -> None:
        a = repo.commit(description="a")
        b = repo.commit(parents=[a], description="b")
        c = repo.commit(parents=[a], description="c")
        repo.commit(parents=[b, c], description="m")
        full = layout(ws)

        first = ws.log_session("~root()", QueryState(page_size=2))
        page_one = first.get_page()
        saved = QueryState.model_validate_json(first.state.model_dump_json())
        page_two = ws.log_session("~root()", saved).get_page()
        assert page_one.rows + page_two.rows == full.rows
        assert not page_two.has_more

    def test_query_log_uses_default_query(self, ws, repo) -> None:
        repo.chain(3)
        page = ws.query_log(max_results=2)
        assert len(page.rows) == 2
        assert page.has_more


def _check_layout(ws: WorkspaceSession, page_size: int, revset_str: str = "all()") -> None:
    expected = list(ws.evaluate_revset_str(revset_str))
    session = ws.log_session(revset_str, QueryState(page_size=page_size))
    seen: list[str] = []
    row_numbers: list[int] = []
    while True:
        page = session.get_page()
        for row in page.rows:
            seen.append(row.revision.id.commit)
            row_numbers.append(row.location.row)
            assert row.location.column >= 0
            for line in row.lines:
                assert line.target.row <= row.location.row + 1
                assert line.source.row <= line.target.row
        assert not session.state.stems or session.state.stems[-1] is not None
        if not page.has_more:
            break
    assert session.state.stems == []
    assert sorted(seen) == sorted(expected)
    assert row_numbers == sorted(set(row_numbers))


class TestLayoutProperties:
    @given(shape=dag_shapes(), page_size=st.integers(1, 4))
    @settings(max_examples=40, deadline=None, suppress_health_check=[HealthCheck.too_slow])
    def test_every_commit_laid_out_once(self, shape, page_size) -> None:
        with WorkspaceSession.open() as ws:
            build_shape(RepoBuilder(ws), shape)
            _check_layout(ws, page_size)

    @given(shape=dag_shapes(), page_size=st.integers(1, 4), data=st.data())
    @settings(max_examples=40, deadline=None, suppress_health_check=[HealthCheck.too_slow])
    def test_hidden_commit_leaves_missing_edges(self, shape, page_size, data) -> None:
        with WorkspaceSession.open() as ws:
            commits = build_shape(RepoBuilder(ws), shape)
            hidden = data.draw(st.sampled_from(commits))
            _check_layout(ws, page_size, f"~root() ~ {hidden.commit_id}")

    @given(shape=dag_shapes())
    @settings(max_examples=40, deadline=None, suppress_health_check=[HealthCheck.too_slow])
    def test_graph_order_is_topological(self, shape) -> None:
        with WorkspaceSession.open() as ws:
            build_shape(RepoBuilder(ws), shape)
            graph = list(ws.evaluate_revset_str("all()").iter_graph())
            position = {commit_id: i for i, (commit_id, _) in enumerate(graph)}
            assert len(position) == len(ws.index)
            for commit_id, edges in graph:
                for edge in edges:
                    assert position[edge.target] > position[commit_id]
