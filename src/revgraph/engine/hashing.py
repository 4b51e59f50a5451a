"""Content hashing for blobs, trees and commits.

Every id is the hex SHA-256 of a canonical encoding: raw bytes for blobs,
and sorted-key compact JSON for trees and commits. Identical content always
yields the same id, so writes are idempotent.
"""

from __future__ import annotations

import hashlib
import json
import uuid
from datetime import datetime, timezone
from typing import Any, Sequence

ROOT_COMMIT_ID = "0" * 64
ROOT_CHANGE_ID = "0" * 32


def canonical_json(data: Any) -> str:
    """Serialize with sorted keys and no whitespace."""
    return json.dumps(data, sort_keys=True, separators=(",", ":"), ensure_ascii=False)


def utc(ts: datetime) -> datetime:
    """Return *ts* as an aware UTC datetime (naive values are taken as UTC)."""
    if ts.tzinfo is None:
        return ts.replace(tzinfo=timezone.utc)
    return ts.astimezone(timezone.utc)


def blob_hash(content: bytes) -> str:
    return hashlib.sha256(content).hexdigest()


def tree_hash(entries: dict[str, Any]) -> str:
    """Hash a tree's serialized entries (path -> entry JSON)."""
    return hashlib.sha256(canonical_json(entries).encode("utf-8")).hexdigest()


def commit_hash(
    *,
    change_id: str,
    parent_ids: Sequence[str],
    tree_id: str,
    description: str,
    author: str,
    timestamp: datetime,
) -> str:
    """Hash the fields that identify a commit.

    Parent order matters. The timestamp is part of the hash, so a rewrite
    that keeps every field (including the timestamp) reproduces the id.
    """
    payload = {
        "change_id": change_id,
        "parents": list(parent_ids),
        "tree": tree_id,
        "description": description,
        "author": author,
        "timestamp": utc(timestamp).isoformat(),
    }
    return hashlib.sha256(canonical_json(payload).encode("utf-8")).hexdigest()


def new_change_id() -> str:
    return uuid.uuid4().hex


def new_operation_id() -> str:
    return uuid.uuid4().hex
