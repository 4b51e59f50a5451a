"""Diff operations: line and word level comparison of two byte buffers.

Provides diff() which compares two buffers and returns unified hunks
(``ChangeHunk``) with 1-based line ranges, and unified_diff_hunks() which
keeps the word-level token tagging for renderers that highlight changes
within a line.

Lines are compared according to a ``WhitespaceMode``; differing regions
are refined into word tokens so a renderer can tell which part of a
removed or added line actually changed.
"""

from __future__ import annotations

import difflib
import enum
import re
from dataclasses import dataclass, field

from revgraph.models.config import WhitespaceMode
from revgraph.models.revision import ChangeHunk, FileRange, HunkLocation

BINARY_MARKER = b"(binary)"
BINARY_PROBE_BYTES = 8000

_WORD_RE = re.compile(rb"\w+|\n|[^\S\n]+|[^\w\s]")
_SPACE_RUN_RE = re.compile(rb"\s+")


class DiffTokenType(enum.Enum):
    MATCHING = "matching"
    DIFFERENT = "different"


class DiffLineType(enum.Enum):
    CONTEXT = " "
    REMOVED = "-"
    ADDED = "+"


DiffToken = tuple[DiffTokenType, bytes]


@dataclass(frozen=True)
class DiffRegion:
    """A run of lines that either match or differ between the two sides.

    Attributes:
        matching: True for a run of equal lines.
        left: The run's lines on the left side, newline-inclusive.
        right: The run's lines on the right side, newline-inclusive.
    """

    matching: bool
    left: list[bytes]
    right: list[bytes]


@dataclass
class UnifiedHunk:
    """A unified hunk with token-tagged lines.

    Line ranges are 1-based and end-exclusive.
    """

    left_start: int = 1
    left_end: int = 1
    right_start: int = 1
    right_end: int = 1
    lines: list[tuple[DiffLineType, list[DiffToken]]] = field(default_factory=list)

    def extend_context_line(self, line: bytes) -> None:
        self.left_end += 1
        self.right_end += 1
        self.lines.append((DiffLineType.CONTEXT, [(DiffTokenType.MATCHING, line)]))

    def extend_removed_line(self, tokens: list[DiffToken]) -> None:
        self.left_end += 1
        self.lines.append((DiffLineType.REMOVED, tokens))

    def extend_added_line(self, tokens: list[DiffToken]) -> None:
        self.right_end += 1
        self.lines.append((DiffLineType.ADDED, tokens))

    def to_change_hunk(self) -> ChangeHunk:
        lines = []
        for line_type, tokens in self.lines:
            text = b"".join(content for _, content in tokens)
            if text.endswith(b"\n"):
                text = text[:-1]
            lines.append(line_type.value + text.decode("utf-8", errors="replace"))
        return ChangeHunk(
            location=HunkLocation(
                from_file=FileRange(start=self.left_start, len=self.left_end - self.left_start),
                to_file=FileRange(start=self.right_start, len=self.right_end - self.right_start),
            ),
            lines=lines,
        )


def is_binary(content: bytes) -> bool:
    return b"\0" in content[:BINARY_PROBE_BYTES]


def split_lines(content: bytes) -> list[bytes]:
    """Split on "\n", keeping each line's newline; a final unterminated line is kept."""
    parts = content.split(b"\n")
    lines = [part + b"\n" for part in parts[:-1]]
    if parts[-1]:
        lines.append(parts[-1])
    return lines


def _line_key(line: bytes, mode: WhitespaceMode) -> bytes:
    if mode == WhitespaceMode.IGNORE_ALL_SPACE:
        return bytes(b for b in line if b not in b" \t\r\n\x0b\x0c")
    if mode == WhitespaceMode.IGNORE_SPACE_CHANGE:
        return _SPACE_RUN_RE.sub(b" ", line).rstrip()
    return line


def diff_regions(
    left: bytes, right: bytes, mode: WhitespaceMode = WhitespaceMode.EXACT
) -> list[DiffRegion]:
    """Alternating matching/different line regions covering both buffers."""
    left_lines = split_lines(left)
    right_lines = split_lines(right)
    matcher = difflib.SequenceMatcher(
        None,
        [_line_key(line, mode) for line in left_lines],
        [_line_key(line, mode) for line in right_lines],
        autojunk=False,
    )
    return [
        DiffRegion(
            matching=tag == "equal",
            left=left_lines[i1:i2],
            right=right_lines[j1:j2],
        )
        for tag, i1, i2, j1, j2 in matcher.get_opcodes()
    ]


def tokenize_words(content: bytes) -> list[bytes]:
    return _WORD_RE.findall(content)


def word_diff_lines(
    left: bytes, right: bytes
) -> tuple[list[list[DiffToken]], list[list[DiffToken]]]:
    """Word-diff a differing region and split each side back into lines."""
    left_tokens = tokenize_words(left)
    right_tokens = tokenize_words(right)
    matcher = difflib.SequenceMatcher(None, left_tokens, right_tokens, autojunk=False)

    left_lines: list[list[DiffToken]] = []
    right_lines: list[list[DiffToken]] = []
    left_line: list[DiffToken] = []
    right_line: list[DiffToken] = []

    def push(
        line: list[DiffToken], lines: list[list[DiffToken]], token: DiffToken
    ) -> list[DiffToken]:
        line.append(token)
        if token[1].endswith(b"\n"):
            lines.append(line)
            return []
        return line

    for tag, i1, i2, j1, j2 in matcher.get_opcodes():
        if tag == "equal":
            for token in left_tokens[i1:i2]:
                left_line = push(left_line, left_lines, (DiffTokenType.MATCHING, token))
                right_line = push(right_line, right_lines, (DiffTokenType.MATCHING, token))
            continue
        for token in left_tokens[i1:i2]:
            left_line = push(left_line, left_lines, (DiffTokenType.DIFFERENT, token))
        for token in right_tokens[j1:j2]:
            right_line = push(right_line, right_lines, (DiffTokenType.DIFFERENT, token))

    if left_line:
        left_lines.append(left_line)
    if right_line:
        right_lines.append(right_line)
    return left_lines, right_lines


def unified_diff_hunks(
    left: bytes,
    right: bytes,
    context: int = 3,
    mode: WhitespaceMode = WhitespaceMode.EXACT,
) -> list[UnifiedHunk]:
    """Group diff regions into unified hunks with *context* lines around changes.

    Changes separated by at most ``2 * context`` matching lines share a hunk.
    """
    regions = diff_regions(left, right, mode)
    hunks: list[UnifiedHunk] = []
    current = UnifiedHunk()

    for index, region in enumerate(regions):
        if region.matching:
            lines = list(region.right)
            if current.lines:
                for line in lines[:context]:
                    current.extend_context_line(line)
                lines = lines[context:]
            has_more = index + 1 < len(regions)
            before_lines = lines[max(len(lines) - context, 0) :] if has_more and context else []
            skip = len(lines) - len(before_lines)
            if skip > 0:
                left_start = current.left_end + skip
                right_start = current.right_end + skip
                if current.lines:
                    hunks.append(current)
                current = UnifiedHunk(
                    left_start=left_start,
                    left_end=left_start,
                    right_start=right_start,
                    right_end=right_start,
                )
            for line in before_lines:
                current.extend_context_line(line)
        else:
            left_lines, right_lines = word_diff_lines(b"".join(region.left), b"".join(region.right))
            for tokens in left_lines:
                current.extend_removed_line(tokens)
            for tokens in right_lines:
                current.extend_added_line(tokens)

    if current.lines:
        hunks.append(current)
    return hunks


def get_unified_hunks(
    context: int,
    left: bytes,
    right: bytes,
    mode: WhitespaceMode = WhitespaceMode.EXACT,
) -> list[ChangeHunk]:
    """Unified hunks between two buffers as ``ChangeHunk`` records."""
    return [hunk.to_change_hunk() for hunk in unified_diff_hunks(left, right, context, mode)]


def diff(
    left: bytes,
    right: bytes,
    context: int = 3,
    mode: WhitespaceMode = WhitespaceMode.EXACT,
) -> list[ChangeHunk]:
    """Compare two buffers. Binary content is compared as ``(binary)``."""
    if is_binary(left):
        left = BINARY_MARKER
    if is_binary(right):
        right = BINARY_MARKER
    return get_unified_hunks(context, left, right, mode)
