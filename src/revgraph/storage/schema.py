"""SQLAlchemy ORM schema for revgraph.

Defines all database tables: blobs, trees, commits, commit_parents,
operations, remotes, _revgraph_meta.

Blobs, trees and commits are content-addressed and never updated. The
operations table is the append-only operation log; each row stores the
view (heads, working copy, refs) in effect after that operation.
"""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from sqlalchemy import (
    DateTime,
    ForeignKey,
    Index,
    Integer,
    JSON,
    LargeBinary,
    String,
    Text,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship


class Base(DeclarativeBase):
    """Base class for all revgraph ORM models."""

    pass


class BlobRow(Base):
    """File content. Keyed by SHA-256 of the bytes."""

    __tablename__ = "blobs"

    blob_id: Mapped[str] = mapped_column(String(64), primary_key=True)
    content: Mapped[bytes] = mapped_column(LargeBinary, nullable=False)
    byte_size: Mapped[int] = mapped_column(Integer, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False)


class TreeRow(Base):
    """A flat tree: repo path -> serialized entry (value or conflict)."""

    __tablename__ = "trees"

    tree_id: Mapped[str] = mapped_column(String(64), primary_key=True)
    entries_json: Mapped[dict] = mapped_column(JSON, nullable=False)


class CommitRow(Base):
    """A commit in the revision DAG. Parents live in commit_parents."""

    __tablename__ = "commits"

    commit_id: Mapped[str] = mapped_column(String(64), primary_key=True)
    change_id: Mapped[str] = mapped_column(String(32), nullable=False, index=True)
    tree_id: Mapped[str] = mapped_column(
        String(64),
        ForeignKey("trees.tree_id"),
        nullable=False,
    )
    description: Mapped[str] = mapped_column(Text, nullable=False, default="")
    author: Mapped[str] = mapped_column(String(255), nullable=False, default="")
    timestamp: Mapped[datetime] = mapped_column(DateTime, nullable=False)

    # orders the tree insert before the commit in one flush
    tree: Mapped["TreeRow"] = relationship("TreeRow", lazy="select")


class CommitParentRow(Base):
    """Ordered parent edges. Position 0 is the first parent."""

    __tablename__ = "commit_parents"

    commit_id: Mapped[str] = mapped_column(
        String(64),
        ForeignKey("commits.commit_id"),
        primary_key=True,
    )
    parent_id: Mapped[str] = mapped_column(
        String(64),
        ForeignKey("commits.commit_id"),
        primary_key=True,
    )
    position: Mapped[int] = mapped_column(Integer, nullable=False)

    __table_args__ = (Index("ix_commit_parents_parent", "parent_id"),)


class OperationRow(Base):
    """One entry of the operation log."""

    __tablename__ = "operations"

    op_id: Mapped[str] = mapped_column(String(32), primary_key=True)
    parent_op_id: Mapped[Optional[str]] = mapped_column(
        String(32),
        ForeignKey("operations.op_id"),
        nullable=True,
    )
    description: Mapped[str] = mapped_column(Text, nullable=False)
    view_json: Mapped[dict] = mapped_column(JSON, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False)

    __table_args__ = (Index("ix_operations_time", "created_at"),)


class RemoteRow(Base):
    """A configured remote. Only its name is used; there is no transport."""

    __tablename__ = "remotes"

    name: Mapped[str] = mapped_column(String(255), primary_key=True)
    url: Mapped[str] = mapped_column(Text, nullable=False, default="")


class MetaRow(Base):
    """Key-value store for schema version and the head operation."""

    __tablename__ = "_revgraph_meta"

    key: Mapped[str] = mapped_column(String(255), primary_key=True)
    value: Mapped[str] = mapped_column(Text, nullable=False)
