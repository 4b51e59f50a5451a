"""SQLite implementations of repository interfaces.

All repositories use SQLAlchemy 2.0-style queries (select() + session.execute()).
Each repository takes a Session in its constructor.
"""

from __future__ import annotations

from typing import Sequence

from sqlalchemy import select
from sqlalchemy.orm import Session

from revgraph.storage.repositories import (
    BlobRepository,
    CommitRepository,
    OperationRepository,
    RemoteRepository,
    TreeRepository,
)
from revgraph.storage.schema import (
    BlobRow,
    CommitParentRow,
    CommitRow,
    MetaRow,
    OperationRow,
    RemoteRow,
    TreeRow,
)


class SqliteBlobRepository(BlobRepository):
    """SQLite implementation of blob repository.

    Content-addressable: save_if_absent checks existence before insert.
    """

    def __init__(self, session: Session) -> None:
        self._session = session

    def get(self, blob_id: str) -> BlobRow | None:
        stmt = select(BlobRow).where(BlobRow.blob_id == blob_id)
        return self._session.execute(stmt).scalar_one_or_none()

    def save_if_absent(self, blob: BlobRow) -> None:
        if self.get(blob.blob_id) is None:
            self._session.add(blob)
            self._session.flush()


class SqliteTreeRepository(TreeRepository):
    """SQLite implementation of tree repository."""

    def __init__(self, session: Session) -> None:
        self._session = session

    def get(self, tree_id: str) -> TreeRow | None:
        stmt = select(TreeRow).where(TreeRow.tree_id == tree_id)
        return self._session.execute(stmt).scalar_one_or_none()

    def save_if_absent(self, tree: TreeRow) -> None:
        if self.get(tree.tree_id) is None:
            self._session.add(tree)
            self._session.flush()


class SqliteCommitRepository(CommitRepository):
    """SQLite implementation of commit repository."""

    def __init__(self, session: Session) -> None:
        self._session = session

    def get(self, commit_id: str) -> CommitRow | None:
        stmt = select(CommitRow).where(CommitRow.commit_id == commit_id)
        return self._session.execute(stmt).scalar_one_or_none()

    def save_if_absent(self, commit: CommitRow, parent_ids: Sequence[str]) -> None:
        if self.get(commit.commit_id) is not None:
            return
        self._session.add(commit)
        self._session.flush()
        for position, parent_id in enumerate(parent_ids):
            self._session.add(
                CommitParentRow(
                    commit_id=commit.commit_id,
                    parent_id=parent_id,
                    position=position,
                )
            )
        self._session.flush()

    def get_parent_ids(self, commit_id: str) -> list[str]:
        stmt = (
            select(CommitParentRow.parent_id)
            .where(CommitParentRow.commit_id == commit_id)
            .order_by(CommitParentRow.position)
        )
        return list(self._session.execute(stmt).scalars().all())


class SqliteOperationRepository(OperationRepository):
    """SQLite implementation of the operation log."""

    def __init__(self, session: Session) -> None:
        self._session = session

    def get(self, op_id: str) -> OperationRow | None:
        stmt = select(OperationRow).where(OperationRow.op_id == op_id)
        return self._session.execute(stmt).scalar_one_or_none()

    def save(self, op: OperationRow) -> None:
        self._session.add(op)
        self._session.flush()

    def get_head_id(self) -> str | None:
        stmt = select(MetaRow).where(MetaRow.key == "head_operation")
        row = self._session.execute(stmt).scalar_one_or_none()
        return row.value if row is not None else None

    def set_head_id(self, op_id: str) -> None:
        stmt = select(MetaRow).where(MetaRow.key == "head_operation")
        row = self._session.execute(stmt).scalar_one_or_none()
        if row is None:
            self._session.add(MetaRow(key="head_operation", value=op_id))
        else:
            row.value = op_id
        self._session.flush()

    def get_history(self, limit: int | None = None) -> Sequence[OperationRow]:
        history: list[OperationRow] = []
        current_id = self.get_head_id()
        while current_id is not None:
            if limit is not None and len(history) >= limit:
                break
            op = self.get(current_id)
            if op is None:
                break
            history.append(op)
            current_id = op.parent_op_id
        return history


class SqliteRemoteRepository(RemoteRepository):
    """SQLite implementation of remote configuration."""

    def __init__(self, session: Session) -> None:
        self._session = session

    def list_names(self) -> list[str]:
        stmt = select(RemoteRow.name).order_by(RemoteRow.name)
        return list(self._session.execute(stmt).scalars().all())

    def get(self, name: str) -> RemoteRow | None:
        stmt = select(RemoteRow).where(RemoteRow.name == name)
        return self._session.execute(stmt).scalar_one_or_none()

    def save(self, remote: RemoteRow) -> None:
        existing = self.get(remote.name)
        if existing is not None:
            existing.url = remote.url
        else:
            self._session.add(remote)
        self._session.flush()

    def delete(self, name: str) -> bool:
        existing = self.get(name)
        if existing is None:
            return False
        self._session.delete(existing)
        self._session.flush()
        return True
