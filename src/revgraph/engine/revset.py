"""Revset expressions: parsing, evaluation and graph iteration.

Supported language::

    all()  none()  root()  @  visible_heads()
    bookmarks()  tags()  remote_bookmarks()  immutable()  mutable()
    <bookmark>  <tag>  <bookmark>@<remote>  <commit id prefix>  <change id prefix>
    ::x   x::   x::y   x-   x+
    x | y   x & y   x ~ y   ~x   (x)

Binding, loosest first: ``|``; ``&`` and binary ``~``; prefix ``~``;
``::``; postfix ``-``/``+``.

Evaluation produces a set of visible commit ids. ``Revset.iter_graph``
walks that set as ``(commit id, edges)`` pairs in topo-grouped order: a
commit comes after all of its children in the set, and each branch is
emitted contiguously.
"""

from __future__ import annotations

import enum
import logging
import re
from collections.abc import Iterator
from dataclasses import dataclass
from typing import NamedTuple, Union

from revgraph.engine.index import RepoIndex
from revgraph.exceptions import AmbiguousPrefixError, RevsetError

logger = logging.getLogger(__name__)


class EdgeType(str, enum.Enum):
    DIRECT = "direct"
    INDIRECT = "indirect"
    MISSING = "missing"


class GraphEdge(NamedTuple):
    target: str
    edge_type: EdgeType


# ----------------------------------------------------------------------
# Parsing
# ----------------------------------------------------------------------

_IDENT = r"[A-Za-z0-9_/]+(?:[.\-+][A-Za-z0-9_/]+)*"
_TOKEN_RE = re.compile(
    rf"""
    (?P<ws>\s+)
  | (?P<dcolon>::)
  | (?P<symbol>{_IDENT}(?:@{_IDENT})?)
  | (?P<op>[()|&~\-+@])
    """,
    re.VERBOSE,
)


class Token(NamedTuple):
    kind: str
    text: str
    pos: int


def tokenize(text: str) -> list[Token]:
    tokens: list[Token] = []
    pos = 0
    while pos < len(text):
        match = _TOKEN_RE.match(text, pos)
        if match is None:
            raise RevsetError(f"Unexpected character {text[pos]!r} at {pos} in {text!r}")
        kind = match.lastgroup or ""
        if kind != "ws":
            tokens.append(Token(kind, match.group(), pos))
        pos = match.end()
    return tokens


@dataclass(frozen=True)
class Symbol:
    name: str


@dataclass(frozen=True)
class FunctionCall:
    name: str


@dataclass(frozen=True)
class WorkingCopy:
    pass


@dataclass(frozen=True)
class Unary:
    op: str  # "not", "ancestors", "descendants", "parents", "children"
    operand: "Expr"


@dataclass(frozen=True)
class Binary:
    op: str  # "union", "intersection", "difference", "range"
    left: "Expr"
    right: "Expr"


Expr = Union[Symbol, FunctionCall, WorkingCopy, Unary, Binary]

FUNCTIONS = frozenset(
    {
        "all",
        "none",
        "root",
        "visible_heads",
        "bookmarks",
        "tags",
        "remote_bookmarks",
        "immutable",
        "mutable",
    }
)


class _Parser:
    def __init__(self, text: str) -> None:
        self.text = text
        self.tokens = tokenize(text)
        self.index = 0

    def peek(self) -> Token | None:
        return self.tokens[self.index] if self.index < len(self.tokens) else None

    def at(self, text: str) -> bool:
        token = self.peek()
        return token is not None and token.text == text and token.kind != "symbol"

    def take(self) -> Token:
        token = self.peek()
        if token is None:
            raise RevsetError(f"Unexpected end of revset {self.text!r}")
        self.index += 1
        return token

    def expect(self, text: str) -> None:
        token = self.take()
        if token.text != text:
            raise RevsetError(
                f"Expected {text!r} at {token.pos} in {self.text!r}, found {token.text!r}"
            )

    def parse(self) -> Expr:
        if not self.tokens:
            raise RevsetError("Empty revset")
        expr = self.union()
        token = self.peek()
        if token is not None:
            raise RevsetError(f"Unexpected {token.text!r} at {token.pos} in {self.text!r}")
        return expr

    def union(self) -> Expr:
        expr = self.intersection()
        while self.at("|"):
            self.take()
            expr = Binary("union", expr, self.intersection())
        return expr

    def intersection(self) -> Expr:
        expr = self.negation()
        while self.at("&") or self.at("~"):
            op = "intersection" if self.take().text == "&" else "difference"
            expr = Binary(op, expr, self.negation())
        return expr

    def negation(self) -> Expr:
        if self.at("~"):
            self.take()
            return Unary("not", self.negation())
        return self.range()

    def range(self) -> Expr:
        token = self.peek()
        if token is not None and token.kind == "dcolon":
            self.take()
            if self._starts_operand():
                return Unary("ancestors", self.postfix())
            return FunctionCall("all")
        expr = self.postfix()
        token = self.peek()
        if token is not None and token.kind == "dcolon":
            self.take()
            if self._starts_operand():
                return Binary("range", expr, self.postfix())
            return Unary("descendants", expr)
        return expr

    def _starts_operand(self) -> bool:
        token = self.peek()
        return token is not None and (token.kind == "symbol" or token.text in ("(", "@"))

    def postfix(self) -> Expr:
        expr = self.primary()
        while self.at("-") or self.at("+"):
            op = "parents" if self.take().text == "-" else "children"
            expr = Unary(op, expr)
        return expr

    def primary(self) -> Expr:
        token = self.take()
        if token.text == "(" and token.kind == "op":
            expr = self.union()
            self.expect(")")
            return expr
        if token.text == "@" and token.kind == "op":
            return WorkingCopy()
        if token.kind == "symbol":
            if self.at("("):
                self.take()
                self.expect(")")
                if token.text not in FUNCTIONS:
                    raise RevsetError(f"Function {token.text!r} doesn't exist")
                return FunctionCall(token.text)
            return Symbol(token.text)
        raise RevsetError(f"Unexpected {token.text!r} at {token.pos} in {self.text!r}")


def parse(text: str) -> Expr:
    """Parse a revset string into an expression tree."""
    return _Parser(text).parse()


# ----------------------------------------------------------------------
# Evaluation
# ----------------------------------------------------------------------


class RevsetContext:
    """What evaluation needs: the index, its view and the immutable heads."""

    def __init__(self, index: RepoIndex, *, immutable_heads: str = "root()") -> None:
        self.index = index
        self.view = index.view
        self.immutable_heads = immutable_heads
        self._immutable: frozenset[str] | None = None

    def immutable_ids(self) -> frozenset[str]:
        if self._immutable is None:
            heads = _evaluate(parse(self.immutable_heads), self, allow_immutable=False)
            self._immutable = frozenset(self.index.ancestors(heads))
        return self._immutable

    def resolve_symbol(self, name: str) -> set[str]:
        view = self.view
        if name in view.bookmarks:
            return {view.bookmarks[name]}
        if name in view.tags:
            return {view.tags[name]}
        if "@" in name:
            bookmark, _, remote = name.partition("@")
            ref = view.get_remote_bookmark(bookmark, remote)
            if ref is not None:
                return {ref.target}
            raise RevsetError(f"Remote bookmark {name!r} doesn't exist")

        matches = self.index.commits_with_id_prefix(name)
        if len(matches) == 1:
            return set(matches)
        if len(matches) > 1:
            raise AmbiguousPrefixError(name, matches)

        changes = self.index.commits_with_change_prefix(name)
        change_ids = {commit.change_id for commit in changes}
        if len(change_ids) == 1:
            return {commit.commit_id for commit in changes}
        if len(change_ids) > 1:
            raise AmbiguousPrefixError(name, sorted(change_ids))
        raise RevsetError(f"Revision {name!r} doesn't exist")


def _evaluate(expr: Expr, ctx: RevsetContext, *, allow_immutable: bool = True) -> set[str]:
    index = ctx.index

    def ev(sub: Expr) -> set[str]:
        return _evaluate(sub, ctx, allow_immutable=allow_immutable)

    if isinstance(expr, Symbol):
        return {commit_id for commit_id in ctx.resolve_symbol(expr.name) if commit_id in index}
    if isinstance(expr, WorkingCopy):
        wc = ctx.view.wc_commit_id
        return {wc} if wc is not None and wc in index else set()
    if isinstance(expr, FunctionCall):
        return _evaluate_function(expr.name, ctx, allow_immutable)
    if isinstance(expr, Unary):
        operand = ev(expr.operand)
        if expr.op == "not":
            return set(index.visible) - operand
        if expr.op == "ancestors":
            return index.ancestors(operand)
        if expr.op == "descendants":
            return index.descendants(operand)
        if expr.op == "parents":
            return {p for c in operand for p in index.parents(c) if p in index}
        if expr.op == "children":
            return {child for c in operand for child in index.children(c)}
    if isinstance(expr, Binary):
        left = ev(expr.left)
        right = ev(expr.right)
        if expr.op == "union":
            return left | right
        if expr.op == "intersection":
            return left & right
        if expr.op == "difference":
            return left - right
        if expr.op == "range":
            return index.descendants(left) & index.ancestors(right)
    raise RevsetError(f"Cannot evaluate {expr!r}")


def _evaluate_function(name: str, ctx: RevsetContext, allow_immutable: bool) -> set[str]:
    index = ctx.index
    view = ctx.view
    if name == "all":
        return set(index.visible)
    if name == "none":
        return set()
    if name == "root":
        return {index.store.root_commit_id}
    if name == "visible_heads":
        return index.heads()
    if name == "bookmarks":
        return {target for target in view.bookmarks.values() if target in index}
    if name == "tags":
        return {target for target in view.tags.values() if target in index}
    if name == "remote_bookmarks":
        return {
            ref.target
            for refs in view.remote_bookmarks.values()
            for ref in refs.values()
            if ref.target in index
        }
    if name in ("immutable", "mutable"):
        if not allow_immutable:
            raise RevsetError(f"{name}() cannot be used to define immutable heads")
        immutable = set(ctx.immutable_ids())
        return immutable if name == "immutable" else set(index.visible) - immutable
    raise RevsetError(f"Function {name!r} doesn't exist")


class Revset:
    """An evaluated revset over one index."""

    def __init__(self, index: RepoIndex, commit_ids: set[str]) -> None:
        self.index = index
        self._ids = frozenset(commit_ids)

    def __contains__(self, commit_id: object) -> bool:
        return commit_id in self._ids

    def __len__(self) -> int:
        return len(self._ids)

    def __iter__(self) -> Iterator[str]:
        return iter(self.index.ordered(self._ids))

    def iter_graph(self) -> Iterator[tuple[str, list[GraphEdge]]]:
        """Yield ``(commit id, edges)`` in topo-grouped order.

        An edge is DIRECT to a parent in the set, INDIRECT to the nearest
        in-set ancestors reached through commits outside the set, and
        MISSING to a parent with no in-set ancestor at all.
        """
        index = self.index
        members = self._ids
        order = index.ordered(members)
        nearest_cache: dict[str, list[str]] = {}

        def nearest_in_set(start: str) -> list[str]:
            if start in nearest_cache:
                return nearest_cache[start]
            found: set[str] = set()
            seen: set[str] = set()
            stack = [start]
            while stack:
                current = stack.pop()
                if current in seen:
                    continue
                seen.add(current)
                if current in members:
                    found.add(current)
                    continue
                stack.extend(index.parents(current))
            result = index.ordered(found)
            nearest_cache[start] = result
            return result

        edges_by_id: dict[str, list[GraphEdge]] = {}
        for commit_id in order:
            edges: list[GraphEdge] = []
            targets: set[str] = set()
            for parent in index.parents(commit_id):
                if parent in members:
                    candidates = [GraphEdge(parent, EdgeType.DIRECT)]
                else:
                    ancestors = nearest_in_set(parent)
                    if ancestors:
                        candidates = [GraphEdge(a, EdgeType.INDIRECT) for a in ancestors]
                    else:
                        candidates = [GraphEdge(parent, EdgeType.MISSING)]
                for edge in candidates:
                    if edge.target not in targets:
                        targets.add(edge.target)
                        edges.append(edge)
            edges_by_id[commit_id] = _remove_transitive_edges(index, edges)

        pending: dict[str, int] = {commit_id: 0 for commit_id in order}
        for edges in edges_by_id.values():
            for edge in edges:
                if edge.target in pending:
                    pending[edge.target] += 1

        stack = [commit_id for commit_id in reversed(order) if pending[commit_id] == 0]
        while stack:
            commit_id = stack.pop()
            edges = edges_by_id[commit_id]
            yield commit_id, edges
            for edge in reversed(edges):
                if edge.target in pending:
                    pending[edge.target] -= 1
                    if pending[edge.target] == 0:
                        stack.append(edge.target)


def _remove_transitive_edges(index: RepoIndex, edges: list[GraphEdge]) -> list[GraphEdge]:
    """Drop indirect edges whose target is reachable through another edge."""
    if len(edges) < 2:
        return edges
    kept: list[GraphEdge] = []
    for edge in edges:
        if edge.edge_type == EdgeType.INDIRECT and any(
            other.target != edge.target
            and other.edge_type != EdgeType.MISSING
            and index.is_ancestor(edge.target, other.target)
            for other in edges
        ):
            continue
        kept.append(edge)
    return kept


def evaluate(text: str, ctx: RevsetContext) -> Revset:
    """Parse and evaluate *text*."""
    ids = _evaluate(parse(text), ctx)
    logger.debug("Revset %r matched %d commit(s)", text, len(ids))
    return Revset(ctx.index, ids)
