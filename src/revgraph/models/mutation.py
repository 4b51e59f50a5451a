"""Mutation result models.

Every mutation reports one of a closed set of outcomes. ``Updated`` and
``UpdatedSelection`` carry the repository status after the new operation;
``UpdatedSelection`` also names the revision the UI should select.
"""

from __future__ import annotations

from typing import Annotated, Literal, Optional, Union

from pydantic import BaseModel, Field

from revgraph.models.revision import RevHeader, RevId


class RepoStatus(BaseModel):
    """The head operation and the working-copy revision it records."""

    operation_description: str
    working_copy: Optional[RevId] = None


class Unchanged(BaseModel):
    type: Literal["Unchanged"] = "Unchanged"


class Updated(BaseModel):
    type: Literal["Updated"] = "Updated"
    new_status: RepoStatus


class UpdatedSelection(BaseModel):
    type: Literal["UpdatedSelection"] = "UpdatedSelection"
    new_status: RepoStatus
    new_selection: RevHeader


class PreconditionError(BaseModel):
    type: Literal["PreconditionError"] = "PreconditionError"
    message: str


class NotFound(BaseModel):
    """A revision named by the mutation no longer exists in the current view."""

    type: Literal["NotFound"] = "NotFound"
    message: str


MutationResult = Annotated[
    Union[Unchanged, Updated, UpdatedSelection, PreconditionError, NotFound],
    Field(discriminator="type"),
]
