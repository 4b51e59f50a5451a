"""Ref models: the closed set of ref kinds a mutation can target."""

from __future__ import annotations

from typing import Annotated, Literal, Union

from pydantic import BaseModel, Field

from revgraph.exceptions import PreconditionFailed


class LocalBookmark(BaseModel):
    type: Literal["LocalBookmark"] = "LocalBookmark"
    branch_name: str
    has_conflict: bool = False
    # remotes whose tracked bookmark of the same name points at the same commit
    is_synced: bool = False
    tracking_remotes: list[str] = []

    def as_branch(self) -> str:
        return self.branch_name

    def __str__(self) -> str:
        return self.branch_name


class RemoteBookmark(BaseModel):
    type: Literal["RemoteBookmark"] = "RemoteBookmark"
    branch_name: str
    remote_name: str
    is_tracked: bool = False

    def as_branch(self) -> str:
        return self.branch_name

    def __str__(self) -> str:
        return f"{self.branch_name}@{self.remote_name}"


class Tag(BaseModel):
    type: Literal["Tag"] = "Tag"
    tag_name: str

    def as_branch(self) -> str:
        raise PreconditionFailed(f"{self.tag_name} is a tag, not a bookmark")

    def __str__(self) -> str:
        return self.tag_name


StoreRef = Annotated[
    Union[LocalBookmark, RemoteBookmark, Tag],
    Field(discriminator="type"),
]
