"""Tests for repository implementations.

Covers:
- SqliteBlobRepository deduplication
- SqliteCommitRepository parent edges
- SqliteOperationRepository head and history
- SqliteRemoteRepository save, list and delete
"""

from datetime import datetime, timedelta

import pytest

from revgraph.engine.hashing import ROOT_COMMIT_ID, tree_hash
from revgraph.storage.engine import ROOT_OPERATION_ID
from revgraph.storage.schema import BlobRow, CommitRow, OperationRow, RemoteRow
from revgraph.storage.sqlite import (
    SqliteBlobRepository,
    SqliteCommitRepository,
    SqliteOperationRepository,
    SqliteRemoteRepository,
)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _make_commit(commit_id: str, change_id: str = "a" * 32, offset: int = 0) -> CommitRow:
    return CommitRow(
        commit_id=commit_id,
        change_id=change_id,
        tree_id=tree_hash({}),
        description="",
        author="",
        timestamp=datetime(2024, 1, 1) + timedelta(seconds=offset),
    )


def _make_op(op_id: str, parent_op_id: str | None) -> OperationRow:
    return OperationRow(
        op_id=op_id,
        parent_op_id=parent_op_id,
        description=f"op {op_id}",
        view_json={},
        created_at=datetime(2024, 1, 1),
    )


@pytest.fixture
def blob_repo(session):
    return SqliteBlobRepository(session)


@pytest.fixture
def commit_repo(session):
    return SqliteCommitRepository(session)


@pytest.fixture
def op_repo(session):
    return SqliteOperationRepository(session)


@pytest.fixture
def remote_repo(session):
    return SqliteRemoteRepository(session)


# ---------------------------------------------------------------------------
# Blob Repository
# ---------------------------------------------------------------------------


class TestSqliteBlobRepository:
    def test_save_and_get(self, blob_repo):
        blob_repo.save_if_absent(
            BlobRow(blob_id="1" * 64, content=b"hi", byte_size=2, created_at=datetime(2024, 1, 1))
        )
        assert blob_repo.get("1" * 64).content == b"hi"

    def test_get_nonexistent(self, blob_repo):
        assert blob_repo.get("2" * 64) is None

    def test_deduplication(self, blob_repo, session):
        for _ in range(2):
            blob_repo.save_if_absent(
                BlobRow(blob_id="3" * 64, content=b"x", byte_size=1, created_at=datetime(2024, 1, 1))
            )
        assert session.query(BlobRow).filter_by(blob_id="3" * 64).count() == 1


# ---------------------------------------------------------------------------
# Commit Repository
# ---------------------------------------------------------------------------


class TestSqliteCommitRepository:
    def test_parent_order_preserved(self, commit_repo):
        commit_repo.save_if_absent(_make_commit("b" * 64), [ROOT_COMMIT_ID])
        commit_repo.save_if_absent(_make_commit("c" * 64), [ROOT_COMMIT_ID])
        commit_repo.save_if_absent(_make_commit("d" * 64), ["c" * 64, "b" * 64])
        assert commit_repo.get_parent_ids("d" * 64) == ["c" * 64, "b" * 64]

    def test_save_twice_is_noop(self, commit_repo):
        commit_repo.save_if_absent(_make_commit("b" * 64), [ROOT_COMMIT_ID])
        commit_repo.save_if_absent(_make_commit("b" * 64), [ROOT_COMMIT_ID])
        assert commit_repo.get_parent_ids("b" * 64) == [ROOT_COMMIT_ID]


# ---------------------------------------------------------------------------
# Operation Repository
# ---------------------------------------------------------------------------


class TestSqliteOperationRepository:
    def test_head_is_root_operation(self, op_repo):
        assert op_repo.get_head_id() == ROOT_OPERATION_ID

    def test_history_walks_parents(self, op_repo):
        op_repo.save(_make_op("1" * 32, ROOT_OPERATION_ID))
        op_repo.save(_make_op("2" * 32, "1" * 32))
        op_repo.set_head_id("2" * 32)
        history = op_repo.get_history()
        assert [op.op_id for op in history] == ["2" * 32, "1" * 32, ROOT_OPERATION_ID]

    def test_history_limit(self, op_repo):
        op_repo.save(_make_op("1" * 32, ROOT_OPERATION_ID))
        op_repo.set_head_id("1" * 32)
        assert len(op_repo.get_history(limit=1)) == 1


# ---------------------------------------------------------------------------
# Remote Repository
# ---------------------------------------------------------------------------


class TestSqliteRemoteRepository:
    def test_save_and_list(self, remote_repo):
        remote_repo.save(RemoteRow(name="upstream", url="u"))
        remote_repo.save(RemoteRow(name="origin", url="o"))
        assert remote_repo.list_names() == ["origin", "upstream"]

    def test_save_updates_url(self, remote_repo):
        remote_repo.save(RemoteRow(name="origin", url="old"))
        remote_repo.save(RemoteRow(name="origin", url="new"))
        assert remote_repo.get("origin").url == "new"

    def test_delete(self, remote_repo):
        remote_repo.save(RemoteRow(name="origin", url=""))
        assert remote_repo.delete("origin") is True
        assert remote_repo.delete("origin") is False
        assert remote_repo.list_names() == []
