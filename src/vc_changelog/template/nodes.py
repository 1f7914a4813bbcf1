"""
Abstract syntax tree for changelog templates.

Templates are small trees of statement nodes (:class:`Text`,
:class:`Output`, :class:`For`, :class:`If`, :class:`Set`) holding
expression nodes (:class:`Literal`, :class:`VarRef`,
:class:`FilterChain`, :class:`Not`, :class:`Compare`, :class:`BoolOp`).
They can be built directly in Python or produced by
:func:`vc_changelog.template.parser.parse_template`.

Evaluation is pure: a node reads from a :class:`Context` built from the
data passed to :meth:`Template.render` and never mutates that data.
Missing variables evaluate to ``None`` and render as nothing.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence, Tuple

from vc_changelog.template.filters import NONE_AWARE_FILTERS, get_filter, python_arg_name


logger = logging.getLogger(__name__)
if not logger.handlers:
    logger.addHandler(logging.NullHandler())
    logger.propagate = False


class Context:
    """Stack of variable scopes used during rendering."""

    def __init__(self, variables: Optional[Mapping] = None) -> None:
        self._scopes: List[Dict[str, Any]] = [dict(variables or {})]

    def lookup(self, name: str) -> Any:
        for scope in reversed(self._scopes):
            if name in scope:
                return scope[name]
        return None

    def assign(self, name: str, value: Any) -> None:
        self._scopes[-1][name] = value

    def push(self, variables: Optional[Dict[str, Any]] = None) -> None:
        self._scopes.append(dict(variables or {}))

    def pop(self) -> None:
        self._scopes.pop()


def get_attribute(value: Any, name: str) -> Any:
    """Read ``name`` from a mapping key or an attribute; ``None`` if absent."""
    if value is None:
        return None
    if isinstance(value, Mapping):
        return value.get(name)
    if name.startswith("_"):
        return None
    return getattr(value, name, None)


def to_text(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


# ---------------------------------------------------------------------------
# Expressions
# ---------------------------------------------------------------------------

class Expr:
    def evaluate(self, ctx: Context) -> Any:
        raise NotImplementedError


@dataclass
class Literal(Expr):
    value: Any

    def evaluate(self, ctx: Context) -> Any:
        return self.value


@dataclass
class VarRef(Expr):
    """Dotted variable reference such as ``commit.scope``."""

    path: Tuple[str, ...]

    def __init__(self, *path: str) -> None:
        if len(path) == 1 and "." in path[0]:
            path = tuple(path[0].split("."))
        self.path = tuple(path)

    def evaluate(self, ctx: Context) -> Any:
        value = ctx.lookup(self.path[0])
        for name in self.path[1:]:
            value = get_attribute(value, name)
        return value


@dataclass
class FilterCall:
    name: str
    args: Dict[str, Expr] = field(default_factory=dict)

    def __post_init__(self) -> None:
        self.func = get_filter(self.name, list(self.args))

    def apply(self, value: Any, ctx: Context) -> Any:
        kwargs = {python_arg_name(key): expr.evaluate(ctx) for key, expr in self.args.items()}
        try:
            return self.func(value, **kwargs)
        except (TypeError, ValueError, OverflowError, OSError) as exc:
            logger.warning("Filter %r skipped: %s", self.name, exc)
            return None


@dataclass
class FilterChain(Expr):
    """A value piped through filters from left to right."""

    base: Expr
    filters: List[FilterCall] = field(default_factory=list)

    def evaluate(self, ctx: Context) -> Any:
        value = self.base.evaluate(ctx)
        for call in self.filters:
            if value is None and call.name not in NONE_AWARE_FILTERS:
                return None
            value = call.apply(value, ctx)
        return value


@dataclass
class Not(Expr):
    operand: Expr

    def evaluate(self, ctx: Context) -> Any:
        return not self.operand.evaluate(ctx)


@dataclass
class Compare(Expr):
    op: str
    left: Expr
    right: Expr

    def evaluate(self, ctx: Context) -> Any:
        equal = self.left.evaluate(ctx) == self.right.evaluate(ctx)
        return equal if self.op == "==" else not equal


@dataclass
class BoolOp(Expr):
    op: str
    operands: List[Expr]

    def evaluate(self, ctx: Context) -> Any:
        if self.op == "and":
            return all(operand.evaluate(ctx) for operand in self.operands)
        return any(operand.evaluate(ctx) for operand in self.operands)


# ---------------------------------------------------------------------------
# Statements
# ---------------------------------------------------------------------------

class Node:
    def render(self, ctx: Context, out: List[str]) -> None:
        raise NotImplementedError


def render_nodes(nodes: Sequence[Node], ctx: Context, out: List[str]) -> None:
    for node in nodes:
        node.render(ctx, out)


@dataclass
class Text(Node):
    text: str

    def render(self, ctx: Context, out: List[str]) -> None:
        out.append(self.text)


@dataclass
class Output(Node):
    expr: Expr

    def render(self, ctx: Context, out: List[str]) -> None:
        out.append(to_text(self.expr.evaluate(ctx)))


@dataclass
class LoopInfo:
    """The ``loop`` variable inside a for block; ``index`` is 1-based."""

    index: int
    index0: int
    length: int
    first: bool
    last: bool


@dataclass
class For(Node):
    target: str
    iterable: Expr
    body: List[Node] = field(default_factory=list)

    def render(self, ctx: Context, out: List[str]) -> None:
        items = self.iterable.evaluate(ctx)
        if items is None:
            return
        if isinstance(items, Mapping):
            items = list(items.values())
        elif isinstance(items, (str, bytes)):
            logger.warning("Loop over %r skipped: value is a string", self.target)
            return
        try:
            items = list(items)
        except TypeError:
            logger.warning("Loop over %r skipped: value is not iterable", self.target)
            return
        total = len(items)
        for index0, item in enumerate(items):
            loop = LoopInfo(index=index0 + 1, index0=index0, length=total, first=index0 == 0, last=index0 == total - 1)
            ctx.push({self.target: item, "loop": loop})
            try:
                render_nodes(self.body, ctx, out)
            finally:
                ctx.pop()


@dataclass
class If(Node):
    branches: List[Tuple[Expr, List[Node]]]
    else_body: List[Node] = field(default_factory=list)

    def render(self, ctx: Context, out: List[str]) -> None:
        for condition, body in self.branches:
            if condition.evaluate(ctx):
                render_nodes(body, ctx, out)
                return
        render_nodes(self.else_body, ctx, out)


@dataclass
class Set(Node):
    name: str
    expr: Expr

    def render(self, ctx: Context, out: List[str]) -> None:
        ctx.assign(self.name, self.expr.evaluate(ctx))


@dataclass
class Template:
    """A parsed template."""

    body: List[Node] = field(default_factory=list)
    source: Optional[str] = None

    def render(self, variables: Optional[Mapping] = None) -> str:
        ctx = Context(variables)
        out: List[str] = []
        render_nodes(self.body, ctx, out)
        return "".join(out)
