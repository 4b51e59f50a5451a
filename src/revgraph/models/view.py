"""View model: the visible state recorded by each operation.

A view is everything that is not content-addressed: which commits are
visible (through their heads), which one is the working copy, and where
the refs point.
"""

from __future__ import annotations

from typing import Optional

from pydantic import BaseModel


class RemoteRef(BaseModel):
    """A remote bookmark as last seen, plus whether it is tracked locally."""

    target: str
    tracked: bool = False


class View(BaseModel):
    """Snapshot of visible heads and refs at one operation."""

    heads: list[str] = []
    wc_commit_id: Optional[str] = None
    bookmarks: dict[str, str] = {}
    tags: dict[str, str] = {}
    # remote name -> bookmark name -> ref
    remote_bookmarks: dict[str, dict[str, RemoteRef]] = {}

    def get_remote_bookmark(self, name: str, remote: str) -> RemoteRef | None:
        return self.remote_bookmarks.get(remote, {}).get(name)

    def remote_bookmarks_named(self, name: str) -> list[tuple[str, RemoteRef]]:
        """All (remote, ref) pairs for a bookmark name, sorted by remote."""
        return [
            (remote, refs[name])
            for remote, refs in sorted(self.remote_bookmarks.items())
            if name in refs
        ]

    def normalized(self) -> View:
        """Return a copy with deterministic ordering, for comparison and storage."""
        return View(
            heads=sorted(set(self.heads)),
            wc_commit_id=self.wc_commit_id,
            bookmarks=dict(sorted(self.bookmarks.items())),
            tags=dict(sorted(self.tags.items())),
            remote_bookmarks={
                remote: dict(sorted(refs.items()))
                for remote, refs in sorted(self.remote_bookmarks.items())
                if refs
            },
        )
