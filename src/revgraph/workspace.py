"""WorkspaceSession -- the entry point for querying and mutating a repository.

Ties together storage, the commit store and the operation log. Callers
open a session with ``WorkspaceSession.open()``, read through the query
methods and change the repository by executing mutations, each of which
runs in one database transaction and records one operation.

Not thread-safe. Each thread should open its own ``WorkspaceSession``.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable
from datetime import datetime, timezone
from typing import TYPE_CHECKING

from revgraph.engine.hashing import new_operation_id
from revgraph.engine.index import RepoIndex
from revgraph.engine.revset import Revset, RevsetContext, evaluate
from revgraph.engine.store import Store
from revgraph.engine.transaction import Transaction
from revgraph.exceptions import (
    CommitNotFoundError,
    OperationError,
    PreconditionFailed,
    RevisionNotFoundError,
)
from revgraph.models.commit import Commit
from revgraph.models.config import WorkspaceConfig
from revgraph.models.log import LogPage, QueryState
from revgraph.models.mutation import NotFound, PreconditionError, RepoStatus, Unchanged
from revgraph.models.refs import LocalBookmark, RemoteBookmark, Tag
from revgraph.models.revision import RevDetail, RevHeader, RevId, RevNotFound, TreePath
from revgraph.models.view import View
from revgraph.operations.graph import LogSession, query_log
from revgraph.operations.queries import query_remotes, query_revision
from revgraph.storage.engine import create_revgraph_engine, create_session_factory, init_db
from revgraph.storage.schema import OperationRow, RemoteRow
from revgraph.storage.sqlite import (
    SqliteBlobRepository,
    SqliteCommitRepository,
    SqliteOperationRepository,
    SqliteRemoteRepository,
    SqliteTreeRepository,
)

if TYPE_CHECKING:
    from sqlalchemy import Engine
    from sqlalchemy.orm import Session

    from revgraph.models.mutation import MutationResult
    from revgraph.models.refs import StoreRef
    from revgraph.mutations import Mutation

logger = logging.getLogger(__name__)


class WorkspaceSession:
    """A repository opened at its head operation.

    Example::

        with WorkspaceSession.open("repo.db") as ws:
            page = ws.query_log("all()")
            for row in page.rows:
                print(row.revision.id, row.revision.summary)
    """

    # ------------------------------------------------------------------
    # Construction
    # ------------------------------------------------------------------

    def __init__(
        self,
        *,
        engine: Engine | None,
        session: Session,
        config: WorkspaceConfig,
    ) -> None:
        self._engine = engine
        self._session = session
        self._config = config
        self._op_repo = SqliteOperationRepository(session)
        self._remote_repo = SqliteRemoteRepository(session)
        self.store = Store(
            SqliteBlobRepository(session),
            SqliteTreeRepository(session),
            SqliteCommitRepository(session),
        )
        self._closed = False
        self.operation_id = ""
        self.operation_description = ""
        self.view = View()
        self._index: RepoIndex | None = None
        self._revset_context: RevsetContext | None = None
        self.load_at_head()

    @classmethod
    def open(
        cls,
        path: str = ":memory:",
        *,
        config: WorkspaceConfig | None = None,
    ) -> WorkspaceSession:
        """Open (or create) a repository.

        Args:
            path: SQLite path. ``":memory:"`` for in-memory (default).
            config: Workspace configuration. ``config.db_url`` wins over
                *path* when set. Defaults created if *None*.

        Returns:
            A ready-to-use ``WorkspaceSession`` at the head operation.
        """
        if config is None:
            config = WorkspaceConfig(db_path=path)

        engine = create_revgraph_engine(config.db_path, url=config.db_url)
        init_db(engine)
        session = create_session_factory(engine)()
        return cls(engine=engine, session=session, config=config)

    @classmethod
    def from_session(
        cls, session: Session, config: WorkspaceConfig | None = None
    ) -> WorkspaceSession:
        """Create a session over an existing, initialized SQLAlchemy session.

        Skips engine creation. Useful for testing.
        """
        return cls(engine=None, session=session, config=config or WorkspaceConfig())

    # ------------------------------------------------------------------
    # Public properties
    # ------------------------------------------------------------------

    @property
    def config(self) -> WorkspaceConfig:
        return self._config

    @property
    def wc_id(self) -> str | None:
        return self.view.wc_commit_id

    @property
    def index(self) -> RepoIndex:
        """Index of the visible commits, built on first use."""
        if self._index is None:
            self._index = RepoIndex(self.store, self.view)
        return self._index

    @property
    def revset_context(self) -> RevsetContext:
        if self._revset_context is None:
            self._revset_context = RevsetContext(
                self.index, immutable_heads=self._config.immutable_heads
            )
        return self._revset_context

    # ------------------------------------------------------------------
    # Loading
    # ------------------------------------------------------------------

    def load_at_head(self) -> None:
        """Reload the view from the head operation."""
        head_id = self._op_repo.get_head_id()
        if head_id is None:
            raise OperationError("Repository has no head operation")
        op = self._op_repo.get(head_id)
        if op is None:
            raise OperationError(f"Head operation {head_id} is missing")
        self.operation_id = op.op_id
        self.operation_description = op.description
        self.view = View.model_validate(op.view_json)
        self._index = None
        self._revset_context = None

    # ------------------------------------------------------------------
    # Revsets and immutability
    # ------------------------------------------------------------------

    def evaluate_revset_str(self, text: str) -> Revset:
        return evaluate(text, self.revset_context)

    def immutable_containing_fn(self) -> Callable[[str], bool]:
        """Membership test for the immutable commits, memoized per view."""
        return self.revset_context.immutable_ids().__contains__

    def check_immutable(self, commit_ids: Iterable[str]) -> bool:
        """True if any of *commit_ids* is immutable."""
        is_immutable = self.immutable_containing_fn()
        return any(is_immutable(commit_id) for commit_id in commit_ids)

    # ------------------------------------------------------------------
    # Resolution
    # ------------------------------------------------------------------

    def resolve_commit_id(self, commit_id: str) -> Commit:
        """The visible commit with exactly this id."""
        if commit_id not in self.index:
            raise RevisionNotFoundError(commit_id)
        return self.store.get_commit(commit_id)

    def resolve_single_commit(self, rev_id: RevId) -> Commit:
        """Resolve by commit id; the commit must still be visible."""
        return self.resolve_commit_id(rev_id.commit)

    def resolve_single_change(self, rev_id: RevId) -> Commit:
        """Resolve by change id to the one visible commit of that change."""
        commits = [
            commit
            for commit in self.index.commits_with_change_prefix(rev_id.change)
            if commit.change_id == rev_id.change
        ]
        if not commits:
            raise RevisionNotFoundError(rev_id.change)
        if len(commits) > 1:
            raise PreconditionFailed(f"Change {rev_id.change[:12]} is divergent")
        return commits[0]

    def resolve_optional_id(self, rev_id: RevId) -> Commit | None:
        """The commit for *rev_id* if it is still visible, else None."""
        if rev_id.commit not in self.index:
            return None
        return self.store.get_commit(rev_id.commit)

    def resolve_revision(self, text: str) -> Commit:
        """Resolve a revset that must name exactly one commit."""
        ids = list(self.evaluate_revset_str(text))
        if len(ids) != 1:
            raise PreconditionFailed(
                f"Revset {text!r} resolved to {len(ids)} revisions, expected one"
            )
        return self.store.get_commit(ids[0])

    # ------------------------------------------------------------------
    # Formatting
    # ------------------------------------------------------------------

    def format_id(self, commit: Commit) -> RevId:
        return RevId(change=commit.change_id, commit=commit.commit_id)

    def format_path(self, repo_path: str) -> TreePath:
        return TreePath.of(repo_path)

    def format_header(self, commit: Commit, known_immutable: bool | None = None) -> RevHeader:
        """Header for *commit*; *known_immutable* skips the immutability lookup."""
        is_immutable = (
            known_immutable
            if known_immutable is not None
            else self.immutable_containing_fn()(commit.commit_id)
        )
        return RevHeader(
            id=self.format_id(commit),
            description=commit.description,
            author=commit.author,
            timestamp=commit.timestamp,
            has_conflict=self.store.commit_tree(commit).has_conflict(),
            is_working_copy=commit.commit_id == self.view.wc_commit_id,
            is_immutable=is_immutable,
            refs=self.refs_at(commit.commit_id),
            parent_ids=list(commit.parent_ids),
        )

    def refs_at(self, commit_id: str) -> list[StoreRef]:
        """Refs pointing at *commit_id*: bookmarks, then remote bookmarks, then tags."""
        view = self.view
        refs: list[StoreRef] = []
        for name, target in view.bookmarks.items():
            if target != commit_id:
                continue
            remotes = view.remote_bookmarks_named(name)
            tracking = [remote for remote, ref in remotes if ref.tracked]
            refs.append(
                LocalBookmark(
                    branch_name=name,
                    is_synced=all(ref.target == target for _, ref in remotes if ref.tracked),
                    tracking_remotes=tracking,
                )
            )
        for remote, remote_refs in view.remote_bookmarks.items():
            for name, ref in remote_refs.items():
                if ref.target != commit_id:
                    continue
                # a tracked remote bookmark in sync is shown by its local bookmark
                if ref.tracked and view.bookmarks.get(name) == ref.target:
                    continue
                refs.append(
                    RemoteBookmark(branch_name=name, remote_name=remote, is_tracked=ref.tracked)
                )
        for name, target in view.tags.items():
            if target == commit_id:
                refs.append(Tag(tag_name=name))
        return refs

    def format_status(self) -> RepoStatus:
        wc_id = self.view.wc_commit_id
        working_copy = None
        if wc_id is not None:
            working_copy = self.format_id(self.store.get_commit(wc_id))
        return RepoStatus(
            operation_description=self.operation_description,
            working_copy=working_copy,
        )

    # ------------------------------------------------------------------
    # Remotes
    # ------------------------------------------------------------------

    def remote_names(self) -> list[str]:
        return self._remote_repo.list_names()

    def add_remote(self, name: str, url: str = "") -> None:
        self._remote_repo.save(RemoteRow(name=name, url=url))
        self._session.commit()

    def remove_remote(self, name: str) -> bool:
        """Forget a remote. Its bookmarks stay in the view."""
        removed = self._remote_repo.delete(name)
        self._session.commit()
        return removed

    # ------------------------------------------------------------------
    # Transactions
    # ------------------------------------------------------------------

    def start_transaction(self) -> Transaction:
        return Transaction(self.store, self.view, author=self._config.author)

    def finish_transaction(self, tx: Transaction, description: str) -> RepoStatus | None:
        """Record *tx* as a new operation and commit.

        Returns None, and writes nothing, when the view did not change.
        """
        view = tx.finish()
        if view == tx.base_view:
            logger.debug("Transaction %r changed nothing", description)
            return None

        op_id = new_operation_id()
        self._op_repo.save(
            OperationRow(
                op_id=op_id,
                parent_op_id=self.operation_id,
                description=description,
                view_json=view.model_dump(mode="json"),
                created_at=datetime.now(timezone.utc).replace(tzinfo=None),
            )
        )
        self._op_repo.set_head_id(op_id)
        self._session.commit()
        logger.info("Operation %s: %s", op_id[:12], description)
        self.load_at_head()
        return self.format_status()

    def rollback(self) -> None:
        """Discard uncommitted writes and cached objects."""
        self._session.rollback()
        self.store.clear_cache()
        self.load_at_head()

    def operation_view(self, op_id: str) -> tuple[OperationRow, View]:
        op = self._op_repo.get(op_id)
        if op is None:
            raise OperationError(f"Operation {op_id} not found")
        return op, View.model_validate(op.view_json)

    def op_log(self, limit: int | None = None) -> list[OperationRow]:
        """Operations from the head backwards."""
        return list(self._op_repo.get_history(limit))

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    def execute(self, mutation: Mutation) -> MutationResult:
        """Run *mutation* in its own transaction.

        Refusals come back as ``PreconditionError`` and stale targets as
        ``NotFound``; both leave the repository untouched. Any other error
        rolls back and propagates.
        """
        try:
            result = mutation.execute(self)
        except PreconditionFailed as exc:
            self.rollback()
            logger.debug("Precondition failed for %s: %s", type(mutation).__name__, exc.message)
            return PreconditionError(message=exc.message)
        except (RevisionNotFoundError, CommitNotFoundError) as exc:
            self.rollback()
            return NotFound(message=str(exc))
        except Exception:
            self.rollback()
            raise
        if isinstance(result, Unchanged):
            self.rollback()
        return result

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def log_session(
        self, revset_str: str | None = None, state: QueryState | None = None
    ) -> LogSession:
        """A layout session over *revset_str* (the configured default query if None)."""
        revset = self.evaluate_revset_str(revset_str or self._config.default_query)
        return LogSession(self, revset, state)

    def query_log(
        self, revset_str: str | None = None, max_results: int | None = None
    ) -> LogPage:
        return query_log(
            self,
            revset_str or self._config.default_query,
            max_results or self._config.page_size,
        )

    def query_revision(self, rev_id: RevId) -> RevDetail | RevNotFound:
        return query_revision(self, rev_id)

    def query_remotes(self, tracking_branch: str | None = None) -> list[str]:
        return query_remotes(self, tracking_branch)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def close(self) -> None:
        """Close the session and dispose the engine."""
        if self._closed:
            return
        self._closed = True
        self._session.close()
        if self._engine is not None:
            self._engine.dispose()

    def __enter__(self) -> WorkspaceSession:
        return self

    def __exit__(self, exc_type: type | None, exc_val: BaseException | None, exc_tb: object) -> None:
        self.close()

    def __repr__(self) -> str:
        if self._closed:
            return "WorkspaceSession(closed=True)"
        wc = (self.wc_id or "")[:12]
        return f"WorkspaceSession(operation='{self.operation_id[:12]}', wc='{wc}')"
