"""Mutations: the closed set of repository edits a UI can request.

Each mutation is a pydantic model tagged by ``type`` so it can be decoded
from JSON (see ``MutationAdapter``) and carries an ``execute`` method.
Run mutations through ``WorkspaceSession.execute``, which turns refusals
into ``PreconditionError`` results and rolls back on failure.

A mutation raises ``PreconditionFailed`` for anything the user can fix and
returns ``Unchanged`` when there is nothing to do.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Annotated, Literal, Union

from pydantic import BaseModel, Field, TypeAdapter

from revgraph.exceptions import PreconditionFailed
from revgraph.models.mutation import MutationResult, Unchanged, Updated, UpdatedSelection
from revgraph.models.refs import LocalBookmark, RemoteBookmark, StoreRef, Tag
from revgraph.models.revision import ChangeHunk, RevId, TreePath
from revgraph.models.view import RemoteRef
from revgraph.operations.transplant import copy_hunk, move_hunk

if TYPE_CHECKING:
    from revgraph.engine.transaction import Transaction
    from revgraph.workspace import WorkspaceSession

logger = logging.getLogger(__name__)


def _updated(ws: WorkspaceSession, tx: Transaction, description: str) -> MutationResult:
    status = ws.finish_transaction(tx, description)
    return Updated(new_status=status) if status is not None else Unchanged()


def _updated_selection(
    ws: WorkspaceSession, tx: Transaction, description: str
) -> MutationResult:
    status = ws.finish_transaction(tx, description)
    if status is None:
        return Unchanged()
    working_copy = ws.store.get_commit(ws.wc_id) if ws.wc_id is not None else None
    if working_copy is None:
        return Updated(new_status=status)
    return UpdatedSelection(
        new_status=status,
        new_selection=ws.format_header(working_copy),
    )


# ----------------------------------------------------------------------
# Revisions
# ----------------------------------------------------------------------


class AbandonRevisions(BaseModel):
    type: Literal["AbandonRevisions"] = "AbandonRevisions"
    ids: list[RevId]

    def execute(self, ws: WorkspaceSession) -> MutationResult:
        commits = [ws.resolve_single_commit(rev_id) for rev_id in self.ids]
        if not commits:
            return Unchanged()
        if ws.check_immutable(commit.commit_id for commit in commits):
            raise PreconditionFailed("Revisions are immutable")

        tx = ws.start_transaction()
        for commit in commits:
            tx.record_abandoned_commit(commit)
        tx.rebase_descendants()

        if len(commits) == 1:
            description = f"abandon commit {commits[0].commit_id}"
        else:
            description = f"abandon {len(commits)} commits"
        return _updated(ws, tx, description)


class CheckoutRevision(BaseModel):
    """Make a revision the working copy."""

    type: Literal["CheckoutRevision"] = "CheckoutRevision"
    id: RevId

    def execute(self, ws: WorkspaceSession) -> MutationResult:
        commit = ws.resolve_single_commit(self.id)
        if ws.check_immutable([commit.commit_id]):
            raise PreconditionFailed("Revision is immutable")
        if commit.commit_id == ws.wc_id:
            return Unchanged()

        tx = ws.start_transaction()
        tx.set_working_copy(commit.commit_id)
        return _updated_selection(ws, tx, f"edit commit {commit.commit_id}")


class CreateRevision(BaseModel):
    """Create an empty revision on top of the parents and check it out."""

    type: Literal["CreateRevision"] = "CreateRevision"
    parent_ids: list[RevId]

    def execute(self, ws: WorkspaceSession) -> MutationResult:
        if not self.parent_ids:
            raise PreconditionFailed("A new revision needs at least one parent")
        parents = [ws.resolve_single_change(rev_id) for rev_id in self.parent_ids]

        tx = ws.start_transaction()
        tree = ws.store.merge_commit_trees(parents)
        commit = tx.new_commit([parent.commit_id for parent in parents], tree.id)
        tx.set_working_copy(commit.commit_id)
        return _updated_selection(ws, tx, "new empty commit")


class DescribeRevision(BaseModel):
    type: Literal["DescribeRevision"] = "DescribeRevision"
    id: RevId
    new_description: str

    def execute(self, ws: WorkspaceSession) -> MutationResult:
        commit = ws.resolve_single_change(self.id)
        if ws.check_immutable([commit.commit_id]):
            raise PreconditionFailed("Revision is immutable")
        if commit.description == self.new_description:
            return Unchanged()

        tx = ws.start_transaction()
        tx.rewrite_commit(commit, description=self.new_description)
        tx.rebase_descendants()
        return _updated(ws, tx, f"describe commit {commit.commit_id}")


# ----------------------------------------------------------------------
# Refs
# ----------------------------------------------------------------------


class CreateRef(BaseModel):
    type: Literal["CreateRef"] = "CreateRef"
    id: RevId
    ref: StoreRef

    def execute(self, ws: WorkspaceSession) -> MutationResult:
        ref = self.ref
        if isinstance(ref, RemoteBookmark):
            raise PreconditionFailed(f"{ref} is a remote bookmark and cannot be created")
        commit = ws.resolve_single_change(self.id)

        tx = ws.start_transaction()
        if isinstance(ref, LocalBookmark):
            if ref.branch_name in ws.view.bookmarks:
                raise PreconditionFailed(f"Bookmark already exists: {ref.branch_name}")
            tx.set_bookmark(ref.branch_name, commit.commit_id)
            description = f"create bookmark {ref.branch_name} pointing to commit {commit.commit_id}"
        else:
            tx.set_tag(ref.tag_name, commit.commit_id)
            description = f"set tag {ref.tag_name} to commit {commit.commit_id}"
        return _updated(ws, tx, description)


class DeleteRef(BaseModel):
    """Delete a tag, or forget a bookmark locally and on every remote."""

    type: Literal["DeleteRef"] = "DeleteRef"
    ref: StoreRef

    def execute(self, ws: WorkspaceSession) -> MutationResult:
        ref = self.ref
        tx = ws.start_transaction()
        if isinstance(ref, Tag):
            if ref.tag_name not in ws.view.tags:
                raise PreconditionFailed(f"No such tag: {ref.tag_name}")
            tx.set_tag(ref.tag_name, None)
            return _updated(ws, tx, f"delete tag {ref.tag_name}")

        name = ref.branch_name
        remotes = ws.view.remote_bookmarks_named(name)
        if name not in ws.view.bookmarks and not remotes:
            raise PreconditionFailed(f"No such bookmark: {name}")
        tx.set_bookmark(name, None)
        for remote, _ in remotes:
            tx.set_remote_bookmark(name, remote, None)
        return _updated(ws, tx, f"forget bookmark {name}")


class MoveRef(BaseModel):
    type: Literal["MoveRef"] = "MoveRef"
    ref: StoreRef
    to_id: RevId

    def execute(self, ws: WorkspaceSession) -> MutationResult:
        ref = self.ref
        if isinstance(ref, RemoteBookmark):
            raise PreconditionFailed(f"Bookmark is remote: {ref}")
        commit = ws.resolve_single_change(self.to_id)

        tx = ws.start_transaction()
        if isinstance(ref, LocalBookmark):
            if ref.branch_name not in ws.view.bookmarks:
                raise PreconditionFailed(f"No such bookmark: {ref.branch_name}")
            tx.set_bookmark(ref.branch_name, commit.commit_id)
            description = f"point bookmark {ref.branch_name} to commit {commit.commit_id}"
        else:
            tx.set_tag(ref.tag_name, commit.commit_id)
            description = f"set tag {ref.tag_name} to commit {commit.commit_id}"
        return _updated(ws, tx, description)


class RenameBranch(BaseModel):
    type: Literal["RenameBranch"] = "RenameBranch"
    ref: StoreRef
    new_name: str

    def execute(self, ws: WorkspaceSession) -> MutationResult:
        old_name = self.ref.as_branch()
        target = ws.view.bookmarks.get(old_name)
        if target is None:
            raise PreconditionFailed(f"No such bookmark: {old_name}")
        if self.new_name == old_name:
            return Unchanged()
        if self.new_name in ws.view.bookmarks:
            raise PreconditionFailed(f"Bookmark already exists: {self.new_name}")

        tx = ws.start_transaction()
        tx.set_bookmark(old_name, None)
        tx.set_bookmark(self.new_name, target)
        # the old name's remote bookmarks stay, but are no longer tracked
        for remote, remote_ref in ws.view.remote_bookmarks_named(old_name):
            if remote_ref.tracked:
                tx.set_remote_bookmark(
                    old_name, remote, RemoteRef(target=remote_ref.target, tracked=False)
                )
        return _updated(ws, tx, f"rename bookmark {old_name} to {self.new_name}")


class TrackBranch(BaseModel):
    type: Literal["TrackBranch"] = "TrackBranch"
    ref: StoreRef

    def execute(self, ws: WorkspaceSession) -> MutationResult:
        ref = self.ref
        if isinstance(ref, Tag):
            raise PreconditionFailed(f"{ref.tag_name} is a tag and cannot be tracked")
        if isinstance(ref, LocalBookmark):
            raise PreconditionFailed(
                f"{ref.branch_name} is a local bookmark and cannot be tracked"
            )

        remote_ref = ws.view.get_remote_bookmark(ref.branch_name, ref.remote_name)
        if remote_ref is None:
            raise PreconditionFailed(f"No such remote bookmark: {ref}")
        if remote_ref.tracked:
            return Unchanged()

        tx = ws.start_transaction()
        tx.set_remote_bookmark(
            ref.branch_name, ref.remote_name, RemoteRef(target=remote_ref.target, tracked=True)
        )
        local = ws.view.bookmarks.get(ref.branch_name)
        if local is None:
            tx.set_bookmark(ref.branch_name, remote_ref.target)
        elif local != remote_ref.target:
            logger.warning(
                "Tracking %s while the local bookmark points elsewhere", ref
            )
        return _updated(ws, tx, f"track remote bookmark {ref}")


class UntrackBranch(BaseModel):
    type: Literal["UntrackBranch"] = "UntrackBranch"
    ref: StoreRef

    def execute(self, ws: WorkspaceSession) -> MutationResult:
        ref = self.ref
        if isinstance(ref, Tag):
            raise PreconditionFailed(f"{ref.tag_name} is a tag and cannot be untracked")

        if isinstance(ref, LocalBookmark):
            targets = [
                (remote, remote_ref)
                for remote, remote_ref in ws.view.remote_bookmarks_named(ref.branch_name)
                if remote_ref.tracked
            ]
        else:
            remote_ref = ws.view.get_remote_bookmark(ref.branch_name, ref.remote_name)
            if remote_ref is None:
                raise PreconditionFailed(f"No such remote bookmark: {ref}")
            targets = [(ref.remote_name, remote_ref)] if remote_ref.tracked else []
        if not targets:
            return Unchanged()

        tx = ws.start_transaction()
        for remote, remote_ref in targets:
            tx.set_remote_bookmark(
                ref.branch_name, remote, RemoteRef(target=remote_ref.target, tracked=False)
            )
        names = ", ".join(f"{ref.branch_name}@{remote}" for remote, _ in targets)
        return _updated(ws, tx, f"untrack remote bookmark {names}")


# ----------------------------------------------------------------------
# Operations
# ----------------------------------------------------------------------


class UndoOperation(BaseModel):
    """Restore the view recorded before the head operation."""

    type: Literal["UndoOperation"] = "UndoOperation"

    def execute(self, ws: WorkspaceSession) -> MutationResult:
        head, _ = ws.operation_view(ws.operation_id)
        if head.parent_op_id is None:
            raise PreconditionFailed("Cannot undo repo initialization")
        _, previous_view = ws.operation_view(head.parent_op_id)

        tx = ws.start_transaction()
        tx.restore_view(previous_view)
        return _updated_selection(ws, tx, f"undo operation {head.op_id}")


# ----------------------------------------------------------------------
# Hunks
# ----------------------------------------------------------------------


class MoveHunk(BaseModel):
    """Move one hunk of a file out of a revision and into another."""

    type: Literal["MoveHunk"] = "MoveHunk"
    from_id: RevId
    to_id: RevId
    path: TreePath
    hunk: ChangeHunk

    def execute(self, ws: WorkspaceSession) -> MutationResult:
        return move_hunk(ws, self.from_id, self.to_id, self.path, self.hunk)


class CopyHunk(BaseModel):
    """Restore the source revision's lines for one hunk into another revision."""

    type: Literal["CopyHunk"] = "CopyHunk"
    from_id: str
    to_id: RevId
    path: TreePath
    hunk: ChangeHunk

    def execute(self, ws: WorkspaceSession) -> MutationResult:
        return copy_hunk(ws, self.from_id, self.to_id, self.path, self.hunk)


Mutation = Annotated[
    Union[
        AbandonRevisions,
        CheckoutRevision,
        CreateRevision,
        DescribeRevision,
        CreateRef,
        DeleteRef,
        MoveRef,
        RenameBranch,
        TrackBranch,
        UntrackBranch,
        UndoOperation,
        MoveHunk,
        CopyHunk,
    ],
    Field(discriminator="type"),
]

MutationAdapter: TypeAdapter[Mutation] = TypeAdapter(Mutation)
