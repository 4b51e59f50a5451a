"""revgraph: graph layout and hunk transplant engine for a revision store.

Opens a content-addressed commit store, lays out revsets as paginated
graph rows, answers revision detail queries and applies mutations, each
recorded as one operation.
"""

from revgraph._version import __version__

# Core entry point
from revgraph.workspace import WorkspaceSession

# Configuration
from revgraph.models.config import WhitespaceMode, WorkspaceConfig

# Commit and tree types
from revgraph.models.commit import Commit
from revgraph.models.tree import FileValue, Merge, SubmoduleValue, SymlinkValue
from revgraph.models.view import RemoteRef, View

# Query models
from revgraph.models.refs import LocalBookmark, RemoteBookmark, StoreRef, Tag
from revgraph.models.revision import (
    ChangeHunk,
    ChangeKind,
    FileRange,
    HunkLocation,
    RevChange,
    RevConflict,
    RevDetail,
    RevHeader,
    RevId,
    RevNotFound,
    RevResult,
    TreePath,
)
from revgraph.models.log import (
    FromNode,
    LogCoordinates,
    LogLine,
    LogPage,
    LogRow,
    LogStem,
    QueryState,
    ToIntersection,
    ToMissing,
    ToNode,
)

# Mutations and their results
from revgraph.models.mutation import (
    MutationResult,
    NotFound,
    PreconditionError,
    RepoStatus,
    Unchanged,
    Updated,
    UpdatedSelection,
)
from revgraph.mutations import (
    AbandonRevisions,
    CheckoutRevision,
    CopyHunk,
    CreateRef,
    CreateRevision,
    DeleteRef,
    DescribeRevision,
    MoveHunk,
    MoveRef,
    Mutation,
    MutationAdapter,
    RenameBranch,
    TrackBranch,
    UndoOperation,
    UntrackBranch,
)

# Layout and diff entry points
from revgraph.operations.diff import diff
from revgraph.operations.graph import LogSession

# Exceptions
from revgraph.exceptions import (
    RevgraphError,
    PreconditionFailed,
    CommitNotFoundError,
    RevisionNotFoundError,
    BlobNotFoundError,
    TreeNotFoundError,
    AmbiguousPrefixError,
    RevsetError,
    HunkMismatchError,
    MalformedHunkError,
    HunkValidationError,
    RebaseMapError,
    UnresolvedTreeError,
    OperationError,
)

__all__ = [
    "__version__",
    "WorkspaceSession",
    # Config
    "WorkspaceConfig",
    "WhitespaceMode",
    # Commit and tree types
    "Commit",
    "FileValue",
    "SymlinkValue",
    "SubmoduleValue",
    "Merge",
    "View",
    "RemoteRef",
    # Query models
    "StoreRef",
    "LocalBookmark",
    "RemoteBookmark",
    "Tag",
    "RevId",
    "TreePath",
    "RevHeader",
    "ChangeKind",
    "FileRange",
    "HunkLocation",
    "ChangeHunk",
    "RevChange",
    "RevConflict",
    "RevDetail",
    "RevNotFound",
    "RevResult",
    "LogCoordinates",
    "LogLine",
    "FromNode",
    "ToNode",
    "ToIntersection",
    "ToMissing",
    "LogRow",
    "LogPage",
    "LogStem",
    "QueryState",
    # Mutations
    "Mutation",
    "MutationAdapter",
    "AbandonRevisions",
    "CheckoutRevision",
    "CreateRevision",
    "DescribeRevision",
    "CreateRef",
    "DeleteRef",
    "MoveRef",
    "RenameBranch",
    "TrackBranch",
    "UntrackBranch",
    "UndoOperation",
    "MoveHunk",
    "CopyHunk",
    "MutationResult",
    "RepoStatus",
    "Unchanged",
    "Updated",
    "UpdatedSelection",
    "PreconditionError",
    "NotFound",
    # Layout and diff
    "LogSession",
    "diff",
    # Exceptions
    "RevgraphError",
    "PreconditionFailed",
    "CommitNotFoundError",
    "RevisionNotFoundError",
    "BlobNotFoundError",
    "TreeNotFoundError",
    "AmbiguousPrefixError",
    "RevsetError",
    "HunkMismatchError",
    "MalformedHunkError",
    "HunkValidationError",
    "RebaseMapError",
    "UnresolvedTreeError",
    "OperationError",
]
