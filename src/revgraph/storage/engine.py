"""Database setup for a revgraph repository.

Builds the SQLAlchemy engine, hands out sessions, and seeds a fresh
database with the root commit and the root operation.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone

from sqlalchemy import Engine, create_engine, event, select
from sqlalchemy.orm import Session, sessionmaker

from revgraph.engine.hashing import ROOT_CHANGE_ID, ROOT_COMMIT_ID, tree_hash
from revgraph.models.view import View
from revgraph.storage.schema import Base, CommitRow, MetaRow, OperationRow, TreeRow

logger = logging.getLogger(__name__)

SCHEMA_VERSION = "1"
ROOT_OPERATION_ID = "0" * 32
EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)

SQLITE_PRAGMAS = (
    "journal_mode=WAL",
    "busy_timeout=5000",
    "synchronous=NORMAL",
    "foreign_keys=ON",
)


def create_revgraph_engine(
    db_path: str = ":memory:",
    *,
    url: str | None = None,
) -> Engine:
    """Create a SQLAlchemy engine for revgraph storage.

    Pass a file path or ``":memory:"``, or a full SQLAlchemy URL via
    *url=*. SQLite pragmas (WAL, busy_timeout, foreign keys) are applied
    when the dialect is SQLite.
    """
    if url is not None:
        engine = create_engine(url, echo=False)
    elif db_path == ":memory:":
        engine = create_engine("sqlite://", echo=False)
    else:
        engine = create_engine(f"sqlite:///{db_path}", echo=False)

    if engine.dialect.name == "sqlite":

        @event.listens_for(engine, "connect")
        def _apply_pragmas(dbapi_conn, _record):  # type: ignore[no-untyped-def]
            cursor = dbapi_conn.cursor()
            for pragma in SQLITE_PRAGMAS:
                cursor.execute(f"PRAGMA {pragma}")
            cursor.close()

    return engine


def create_session_factory(engine: Engine) -> sessionmaker[Session]:
    """Sessions for *engine*; loaded rows stay usable after commit."""
    return sessionmaker(bind=engine, expire_on_commit=False)


def init_db(engine: Engine) -> None:
    """Create all tables and seed a new repository.

    A new database gets the empty tree, the root commit, the root
    operation (whose view has the root commit as its only head and as the
    working copy) and the schema version. Existing databases are left as
    they are.
    """
    Base.metadata.create_all(engine)

    with create_session_factory(engine)() as session:
        existing = session.execute(
            select(MetaRow).where(MetaRow.key == "schema_version")
        ).scalar_one_or_none()
        if existing is not None:
            return

        empty_tree_id = tree_hash({})
        session.add(TreeRow(tree_id=empty_tree_id, entries_json={}))
        session.flush()
        session.add(
            CommitRow(
                commit_id=ROOT_COMMIT_ID,
                change_id=ROOT_CHANGE_ID,
                tree_id=empty_tree_id,
                description="",
                author="",
                timestamp=EPOCH.replace(tzinfo=None),
            )
        )
        view = View(heads=[ROOT_COMMIT_ID], wc_commit_id=ROOT_COMMIT_ID)
        session.add(
            OperationRow(
                op_id=ROOT_OPERATION_ID,
                parent_op_id=None,
                description="initialize repo",
                view_json=view.model_dump(mode="json"),
                created_at=datetime.now(timezone.utc).replace(tzinfo=None),
            )
        )
        session.add(MetaRow(key="schema_version", value=SCHEMA_VERSION))
        session.add(MetaRow(key="head_operation", value=ROOT_OPERATION_ID))
        session.commit()
        logger.info("Initialized repository (schema v%s)", SCHEMA_VERSION)
