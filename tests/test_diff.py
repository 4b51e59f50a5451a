"""Tests for the diff engine.

Covers:
- Unified hunk shape (ranges, context, hunk merging and splitting)
- Word-level token tagging
- Whitespace modes and binary detection
- Properties: identical buffers give no hunks, hunks rebuild the right side
"""

from __future__ import annotations

from hypothesis import given, settings
from hypothesis import strategies as st

from revgraph.models.config import WhitespaceMode
from revgraph.operations.diff import (
    BINARY_MARKER,
    DiffLineType,
    DiffTokenType,
    diff,
    diff_regions,
    get_unified_hunks,
    is_binary,
    split_lines,
    tokenize_words,
    unified_diff_hunks,
    word_diff_lines,
)
from tests.strategies import text_buffers


def _numbered(count: int) -> bytes:
    return b"".join(b"%d\n" % i for i in range(1, count + 1))


def _apply(left: bytes, hunks) -> list[str]:
    """Rebuild the right side's lines from the left side and the hunks."""
    left_lines = [line.rstrip(b"\n").decode() for line in split_lines(left)]
    out: list[str] = []
    pos = 0
    for hunk in hunks:
        start = hunk.location.from_file.start - 1
        out.extend(left_lines[pos:start])
        pos = start
        for line in hunk.lines:
            prefix, body = line[:1], line[1:]
            if prefix == " ":
                out.append(left_lines[pos])
                pos += 1
            elif prefix == "-":
                pos += 1
            else:
                out.append(body)
    out.extend(left_lines[pos:])
    return out


class TestSplitLines:
    def test_keeps_newlines(self) -> None:
        assert split_lines(b"a\nb\n") == [b"a\n", b"b\n"]

    def test_unterminated_last_line(self) -> None:
        assert split_lines(b"a\nb") == [b"a\n", b"b"]

    def test_empty(self) -> None:
        assert split_lines(b"") == []

    def test_blank_lines(self) -> None:
        assert split_lines(b"\n\n") == [b"\n", b"\n"]


class TestUnifiedHunks:
    def test_single_modification(self) -> None:
        hunks = get_unified_hunks(3, b"a\nb\nc\n", b"a\nB\nc\n")
        assert len(hunks) == 1
        hunk = hunks[0]
        assert hunk.lines == [" a", "-b", "+B", " c"]
        assert (hunk.location.from_file.start, hunk.location.from_file.len) == (1, 3)
        assert (hunk.location.to_file.start, hunk.location.to_file.len) == (1, 3)

    def test_identical_buffers(self) -> None:
        assert get_unified_hunks(3, b"a\nb\n", b"a\nb\n") == []

    def test_empty_buffers(self) -> None:
        assert get_unified_hunks(3, b"", b"") == []

    def test_added_file(self) -> None:
        hunks = get_unified_hunks(3, b"", b"one\ntwo\n")
        assert len(hunks) == 1
        assert hunks[0].lines == ["+one", "+two"]
        assert hunks[0].location.from_file.len == 0
        assert (hunks[0].location.to_file.start, hunks[0].location.to_file.len) == (1, 2)

    def test_deleted_file(self) -> None:
        hunks = get_unified_hunks(3, b"one\ntwo\n", b"")
        assert hunks[0].lines == ["-one", "-two"]
        assert hunks[0].location.to_file.len == 0

    def test_context_is_limited(self) -> None:
        left = _numbered(10)
        right = left.replace(b"5\n", b"five\n")
        hunks = get_unified_hunks(2, left, right)
        assert len(hunks) == 1
        assert hunks[0].lines == [" 3", " 4", "-5", "+five", " 6", " 7"]
        assert hunks[0].location.from_file.start == 3
        assert hunks[0].location.to_file.start == 3

    def test_distant_changes_split(self) -> None:
        left = _numbered(10)
        right = left.replace(b"1\n", b"one\n", 1).replace(b"10\n", b"ten\n")
        hunks = get_unified_hunks(1, left, right)
        assert len(hunks) == 2
        assert hunks[0].lines == ["-1", "+one", " 2"]
        assert hunks[1].lines == [" 9", "-10", "+ten"]
        assert hunks[1].location.from_file.start == 9
        assert hunks[1].location.from_file.len == 2

    def test_close_changes_merge(self) -> None:
        # separated by two matching lines, within 2 * context
        left = b"a\nb\nc\nd\ne\n"
        right = b"A\nb\nc\nD\ne\n"
        hunks = get_unified_hunks(1, left, right)
        assert len(hunks) == 1
        assert hunks[0].lines == ["-a", "+A", " b", " c", "-d", "+D", " e"]

    def test_zero_context(self) -> None:
        hunks = get_unified_hunks(0, b"a\nb\nc\n", b"a\nB\nc\n")
        assert len(hunks) == 1
        assert hunks[0].lines == ["-b", "+B"]
        assert hunks[0].location.from_file.start == 2
        assert hunks[0].location.to_file.start == 2

    def test_pure_insertion_location(self) -> None:
        hunks = get_unified_hunks(0, b"a\n", b"a\nb\n")
        assert hunks[0].lines == ["+b"]
        assert (hunks[0].location.from_file.start, hunks[0].location.from_file.len) == (2, 0)
        assert (hunks[0].location.to_file.start, hunks[0].location.to_file.len) == (2, 1)

    def test_lines_carry_no_newline(self) -> None:
        hunks = get_unified_hunks(3, b"x\n", b"y")
        assert hunks[0].lines == ["-x", "+y"]


class TestWordTokens:
    def test_tokenize_words(self) -> None:
        assert tokenize_words(b"foo(bar, 1)\n") == [
            b"foo",
            b"(",
            b"bar",
            b",",
            b" ",
            b"1",
            b")",
            b"\n",
        ]

    def test_changed_word_is_marked(self) -> None:
        left, right = word_diff_lines(b"x = 1\n", b"x = 2\n")
        assert len(left) == 1 and len(right) == 1
        different = [token for kind, token in left[0] if kind == DiffTokenType.DIFFERENT]
        assert different == [b"1"]
        different = [token for kind, token in right[0] if kind == DiffTokenType.DIFFERENT]
        assert different == [b"2"]

    def test_tokens_split_back_into_lines(self) -> None:
        left, right = word_diff_lines(b"a b\nc\n", b"a B\nc\nd\n")
        assert len(left) == 2
        assert len(right) == 3

    def test_unified_hunk_keeps_tokens(self) -> None:
        hunks = unified_diff_hunks(b"x = 1\n", b"x = 2\n", context=3)
        kinds = [line_type for line_type, _ in hunks[0].lines]
        assert kinds == [DiffLineType.REMOVED, DiffLineType.ADDED]


class TestWhitespaceModes:
    def test_exact_sees_spaces(self) -> None:
        assert get_unified_hunks(3, b"a b\n", b"a  b\n") != []

    def test_ignore_all_space(self) -> None:
        hunks = get_unified_hunks(3, b"a b\n", b"ab \n", WhitespaceMode.IGNORE_ALL_SPACE)
        assert hunks == []

    def test_ignore_space_change(self) -> None:
        mode = WhitespaceMode.IGNORE_SPACE_CHANGE
        assert get_unified_hunks(3, b"a b\n", b"a   b  \n", mode) == []
        assert get_unified_hunks(3, b"a b\n", b"ab\n", mode) != []

    def test_regions_report_matching(self) -> None:
        regions = diff_regions(b"a\nb\n", b"a\nc\n")
        assert [region.matching for region in regions] == [True, False]
        assert regions[1].left == [b"b\n"]
        assert regions[1].right == [b"c\n"]


class TestBinary:
    def test_nul_byte_is_binary(self) -> None:
        assert is_binary(b"abc\0def")
        assert not is_binary(b"plain text\n")

    def test_nul_past_probe_is_text(self) -> None:
        assert not is_binary(b"a" * 8000 + b"\0")

    def test_binary_diffed_as_marker(self) -> None:
        hunks = diff(b"\0\1\2", b"text\n")
        assert hunks[0].lines == ["-" + BINARY_MARKER.decode(), "+text"]

    def test_equal_binaries(self) -> None:
        assert diff(b"\0a", b"\0b") == []


class TestDiffProperties:
    @given(content=text_buffers())
    @settings(max_examples=100)
    def test_identical_has_no_hunks(self, content: bytes) -> None:
        assert diff(content, content) == []

    @given(left=text_buffers(), right=text_buffers(), context=st.integers(min_value=0, max_value=4))
    @settings(max_examples=200)
    def test_hunks_rebuild_right(self, left: bytes, right: bytes, context: int) -> None:
        hunks = diff(left, right, context)
        expected = [line.rstrip(b"\n").decode() for line in split_lines(right)]
        assert _apply(left, hunks) == expected

    @given(left=text_buffers(), right=text_buffers(), context=st.integers(min_value=0, max_value=4))
    @settings(max_examples=100)
    def test_hunks_are_ordered_and_disjoint(self, left: bytes, right: bytes, context: int) -> None:
        hunks = diff(left, right, context)
        for previous, current in zip(hunks, hunks[1:]):
            previous_end = previous.location.from_file.start + previous.location.from_file.len
            assert current.location.from_file.start > previous_end - 1
        for hunk in hunks:
            removed_or_context = sum(1 for line in hunk.lines if line[:1] in (" ", "-"))
            added_or_context = sum(1 for line in hunk.lines if line[:1] in (" ", "+"))
            assert hunk.location.from_file.len == removed_or_context
            assert hunk.location.to_file.len == added_or_context
