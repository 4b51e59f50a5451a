"""revgraph exception hierarchy.

All revgraph-specific exceptions inherit from RevgraphError.

Two families matter to callers:

- ``PreconditionFailed`` is an expected, user-actionable refusal. Mutations
  raise it and the workspace session converts it into a
  ``PreconditionError`` result; nothing is written.
- Every other ``RevgraphError`` is a hard error: the in-progress transaction
  is rolled back and the exception propagates, because the caller's cached
  state (usually a hunk) no longer matches the store.
"""


class RevgraphError(Exception):
    """Base exception for all revgraph errors."""


class PreconditionFailed(RevgraphError):
    """Raised when a mutation is refused before anything is written."""

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(message)


class CommitNotFoundError(RevgraphError):
    """Raised when a commit id lookup fails."""

    def __init__(self, commit_id: str) -> None:
        self.commit_id = commit_id
        super().__init__(f"Commit not found: {commit_id}")


class RevisionNotFoundError(RevgraphError):
    """Raised when a mutation target cannot be resolved in the current view."""

    def __init__(self, rev: str) -> None:
        self.rev = rev
        super().__init__(f"Revision not found: {rev}")


class BlobNotFoundError(RevgraphError):
    """Raised when a blob id lookup fails."""

    def __init__(self, blob_id: str) -> None:
        self.blob_id = blob_id
        super().__init__(f"Blob not found: {blob_id}")


class TreeNotFoundError(RevgraphError):
    """Raised when a tree id lookup fails."""

    def __init__(self, tree_id: str) -> None:
        self.tree_id = tree_id
        super().__init__(f"Tree not found: {tree_id}")


class AmbiguousPrefixError(RevgraphError):
    """Raised when an id prefix matches multiple commits."""

    def __init__(self, prefix: str, candidates: list[str]) -> None:
        self.prefix = prefix
        self.candidates = candidates
        candidate_str = ", ".join(c[:12] + "..." for c in candidates[:5])
        super().__init__(f"Ambiguous prefix '{prefix}'. Matches: {candidate_str}")


class RevsetError(RevgraphError):
    """Raised when a revset expression cannot be parsed or resolved."""


class HunkMismatchError(RevgraphError):
    """Raised when a hunk's context or removed lines no longer match its base."""

    def __init__(self, line: int, expected: str, found: str) -> None:
        self.line = line
        self.expected = expected
        self.found = found
        super().__init__(
            f"Hunk mismatch at line {line}: expected '{expected}', found '{found}'"
        )


class MalformedHunkError(RevgraphError):
    """Raised when a hunk line has no recognised ' ', '-' or '+' prefix."""

    def __init__(self, line: str) -> None:
        self.line = line
        super().__init__(f"Malformed diff line: {line}")


class HunkValidationError(RevgraphError):
    """Raised when a copy-hunk destination no longer holds the expected lines.

    ``line`` is the 1-based line number of the first divergence, or None
    when the line counts already differ.
    """

    def __init__(
        self,
        message: str,
        *,
        line: int | None = None,
        expected: str | None = None,
        found: str | None = None,
    ) -> None:
        self.line = line
        self.expected = expected
        self.found = found
        super().__init__(message)


class RebaseMapError(RevgraphError):
    """Raised when a rebased descendant is missing from the old->new id map."""

    def __init__(self, commit_id: str) -> None:
        self.commit_id = commit_id
        super().__init__(f"Descendant {commit_id[:12]} not found in rebase map")


class UnresolvedTreeError(RevgraphError):
    """Raised when a diff meets a tree value it cannot turn into text."""

    def __init__(self, path: str, detail: str = "") -> None:
        self.path = path
        msg = f"Unexpected tree value in diff at path {path!r}"
        if detail:
            msg += f": {detail}"
        super().__init__(msg)


class OperationError(RevgraphError):
    """Raised when the operation log is inconsistent."""
