"""Abstract repository interfaces for revgraph storage.

Defines ABC interfaces for all database operations. No SQLAlchemy
imports here -- pure abstract contracts.

Concrete implementations are in sqlite.py.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, Sequence

if TYPE_CHECKING:
    from revgraph.storage.schema import (
        BlobRow,
        CommitRow,
        OperationRow,
        RemoteRow,
        TreeRow,
    )


class BlobRepository(ABC):
    """Abstract interface for content-addressed file storage."""

    @abstractmethod
    def get(self, blob_id: str) -> BlobRow | None:
        """Get a blob by id. Returns None if not found."""
        ...

    @abstractmethod
    def save_if_absent(self, blob: BlobRow) -> None:
        """Store the blob unless a blob with the same id already exists."""
        ...


class TreeRepository(ABC):
    """Abstract interface for tree storage."""

    @abstractmethod
    def get(self, tree_id: str) -> TreeRow | None:
        ...

    @abstractmethod
    def save_if_absent(self, tree: TreeRow) -> None:
        ...


class CommitRepository(ABC):
    """Abstract interface for commit storage operations."""

    @abstractmethod
    def get(self, commit_id: str) -> CommitRow | None:
        """Get a commit by id. Returns None if not found."""
        ...

    @abstractmethod
    def save_if_absent(self, commit: CommitRow, parent_ids: Sequence[str]) -> None:
        """Store a commit and its ordered parent edges unless it exists."""
        ...

    @abstractmethod
    def get_parent_ids(self, commit_id: str) -> list[str]:
        """Parent ids of a commit, in position order."""
        ...


class OperationRepository(ABC):
    """Abstract interface for the append-only operation log."""

    @abstractmethod
    def get(self, op_id: str) -> OperationRow | None:
        ...

    @abstractmethod
    def save(self, op: OperationRow) -> None:
        ...

    @abstractmethod
    def get_head_id(self) -> str | None:
        """Id of the most recent operation."""
        ...

    @abstractmethod
    def set_head_id(self, op_id: str) -> None:
        ...

    @abstractmethod
    def get_history(self, limit: int | None = None) -> Sequence[OperationRow]:
        """Operations from the head back to the root, newest first."""
        ...


class RemoteRepository(ABC):
    """Abstract interface for configured remotes."""

    @abstractmethod
    def list_names(self) -> list[str]:
        """Remote names in alphabetical order."""
        ...

    @abstractmethod
    def get(self, name: str) -> RemoteRow | None:
        ...

    @abstractmethod
    def save(self, remote: RemoteRow) -> None:
        ...

    @abstractmethod
    def delete(self, name: str) -> bool:
        """Delete a remote. Returns False if it did not exist."""
        ...
