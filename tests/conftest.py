"""Shared test fixtures for revgraph.

Provides in-memory SQLite engine, session, store and workspace fixtures,
plus ``RepoBuilder`` for writing commits and refs through transactions.
"""

from __future__ import annotations

from typing import Union

import pytest
from sqlalchemy.orm import Session, sessionmaker

from revgraph.engine.store import Store, Tree
from revgraph.models.commit import Commit
from revgraph.models.revision import ChangeHunk, FileRange, HunkLocation, RevId, TreePath
from revgraph.models.tree import FileValue, Merge, SubmoduleValue, SymlinkValue
from revgraph.models.view import RemoteRef
from revgraph.operations.transplant import read_file_content
from revgraph.storage.engine import create_revgraph_engine, init_db
from revgraph.storage.sqlite import (
    SqliteBlobRepository,
    SqliteCommitRepository,
    SqliteTreeRepository,
)
from revgraph.workspace import WorkspaceSession

FileSpec = Union[bytes, str, None, FileValue, SymlinkValue, SubmoduleValue, Merge]


@pytest.fixture
def engine():
    """In-memory SQLite engine with all tables created."""
    eng = create_revgraph_engine(":memory:")
    init_db(eng)
    yield eng
    eng.dispose()


@pytest.fixture
def session(engine):
    """Session with automatic rollback after each test."""
    SessionLocal = sessionmaker(bind=engine, expire_on_commit=False)
    sess = SessionLocal()
    yield sess
    sess.rollback()
    sess.close()


@pytest.fixture
def store(session: Session) -> Store:
    return Store(
        SqliteBlobRepository(session),
        SqliteTreeRepository(session),
        SqliteCommitRepository(session),
    )


@pytest.fixture
def ws():
    """A fresh in-memory workspace."""
    workspace = WorkspaceSession.open(":memory:")
    yield workspace
    workspace.close()


@pytest.fixture
def repo(ws: WorkspaceSession) -> RepoBuilder:
    return RepoBuilder(ws)


# ------------------------------------------------------------------
# Shared test helpers
# ------------------------------------------------------------------


def file_value(store: Store, content: bytes | str, executable: bool = False) -> FileValue:
    if isinstance(content, str):
        content = content.encode()
    return FileValue(blob_id=store.write_file(content), executable=executable)


def build_tree(store: Store, files: dict[str, FileSpec], base: Tree | None = None) -> Tree:
    """Write a tree from *base* (empty by default) plus *files*.

    Values may be bytes/str contents, tree values, a ``Merge`` for a
    conflict, or None to remove the path.
    """
    builder = store.tree_builder(base if base is not None else store.empty_tree())
    for path, spec in files.items():
        if spec is None:
            builder.set_or_remove(path, Merge.resolved(None))
        elif isinstance(spec, Merge):
            builder.set_or_remove(path, spec)
        elif isinstance(spec, (bytes, str)):
            builder.set_or_remove(path, Merge.resolved(file_value(store, spec)))
        else:
            builder.set_or_remove(path, Merge.resolved(spec))
    return builder.write_tree()


def rev_id(commit: Commit) -> RevId:
    return RevId(change=commit.change_id, commit=commit.commit_id)


def tree_path(path: str) -> TreePath:
    return TreePath.of(path)


def make_hunk(from_start: int, from_len: int, to_start: int, to_len: int, lines: list[str]) -> ChangeHunk:
    return ChangeHunk(
        location=HunkLocation(
            from_file=FileRange(start=from_start, len=from_len),
            to_file=FileRange(start=to_start, len=to_len),
        ),
        lines=lines,
    )


class RepoBuilder:
    """Writes commits and refs into a workspace, one operation each."""

    def __init__(self, ws: WorkspaceSession) -> None:
        self.ws = ws

    @property
    def store(self) -> Store:
        return self.ws.store

    @property
    def root(self) -> Commit:
        return self.store.get_commit(self.store.root_commit_id)

    def commit(
        self,
        files: dict[str, FileSpec] | None = None,
        *,
        parents: list[Commit] | None = None,
        description: str = "",
    ) -> Commit:
        """Commit *files* on top of the merged tree of *parents* (default: root)."""
        parents = parents if parents is not None else [self.root]
        base = self.store.merge_commit_trees(parents)
        tree = build_tree(self.store, files or {}, base)
        tx = self.ws.start_transaction()
        commit = tx.new_commit([p.commit_id for p in parents], tree.id, description)
        self.ws.finish_transaction(tx, f"commit {commit.commit_id[:12]}")
        return commit

    def chain(self, count: int, *, parent: Commit | None = None) -> list[Commit]:
        """A linear run of *count* commits described "c1".."cN"."""
        commits: list[Commit] = []
        current = parent if parent is not None else self.root
        for i in range(count):
            current = self.commit(parents=[current], description=f"c{i + 1}")
            commits.append(current)
        return commits

    def edit(self, commit: Commit) -> None:
        tx = self.ws.start_transaction()
        tx.set_working_copy(commit.commit_id)
        self.ws.finish_transaction(tx, f"edit {commit.commit_id[:12]}")

    def bookmark(self, name: str, commit: Commit) -> None:
        tx = self.ws.start_transaction()
        tx.set_bookmark(name, commit.commit_id)
        self.ws.finish_transaction(tx, f"bookmark {name}")

    def tag(self, name: str, commit: Commit) -> None:
        tx = self.ws.start_transaction()
        tx.set_tag(name, commit.commit_id)
        self.ws.finish_transaction(tx, f"tag {name}")

    def remote_bookmark(
        self, name: str, remote: str, commit: Commit, *, tracked: bool = False
    ) -> None:
        if remote not in self.ws.remote_names():
            self.ws.add_remote(remote)
        tx = self.ws.start_transaction()
        tx.set_remote_bookmark(name, remote, RemoteRef(target=commit.commit_id, tracked=tracked))
        self.ws.finish_transaction(tx, f"remote bookmark {name}@{remote}")

    def current(self, commit: Commit) -> Commit:
        """The visible commit of *commit*'s change, after any rewrites."""
        matches = [
            c
            for c in self.ws.index.commits_with_change_prefix(commit.change_id)
            if c.change_id == commit.change_id
        ]
        assert len(matches) == 1, f"expected one visible commit for {commit!r}, got {matches}"
        return matches[0]

    def is_visible(self, commit: Commit) -> bool:
        return commit.commit_id in self.ws.index

    def read(self, commit: Commit, path: str) -> bytes:
        return read_file_content(self.store, self.store.commit_tree(commit), path)
