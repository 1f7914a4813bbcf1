"""
Parser for the textual changelog template syntax.

The syntax is a small subset of the Jinja/Tera family:

* ``{{ expr }}`` outputs an expression, optionally piped through
  filters: ``{{ commit.description | upper_first | link_refs }}``.
* ``{% for x in seq %}...{% endfor %}`` with ``loop.index`` (1-based).
* ``{% if expr %}...{% elif expr %}...{% else %}...{% endif %}``.
* ``{% set name = expr %}``.
* ``{# comment #}``.
* ``{%-``, ``-%}``, ``{{-`` and ``-}}`` strip whitespace next to a tag.
* A backslash at the end of a line joins it with the next line,
  dropping the next line's indentation.

Expressions support dotted variables, string and number literals,
``true``/``false``/``none``, ``==``, ``!=``, ``not``, ``and``, ``or``
and parentheses.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Tuple

from vc_changelog.errors import TemplateError
from vc_changelog.template.nodes import (
    BoolOp,
    Compare,
    Expr,
    FilterCall,
    FilterChain,
    For,
    If,
    Literal,
    Node,
    Not,
    Output,
    Set,
    Template,
    Text,
    VarRef,
)


_CONTINUATION_RE = re.compile(r"\\\r?\n[ \t]*")
_INDENT_RE = re.compile(r"^[ \t]+", re.MULTILINE)

_OPENERS = {"{{": "}}", "{%": "%}", "{#": "#}"}

_TOKEN_RE = re.compile(
    r"""
    (?P<ws>\s+)
  | (?P<string>"(?:[^"\\]|\\.)*"|'(?:[^'\\]|\\.)*')
  | (?P<number>-?\d+(?:\.\d+)?)
  | (?P<name>[A-Za-z_][A-Za-z0-9_]*)
  | (?P<op>==|!=|[|().,=])
    """,
    re.VERBOSE,
)

_ESCAPES = {"n": "\n", "t": "\t", "r": "\r", "\\": "\\", '"': '"', "'": "'"}


# ---------------------------------------------------------------------------
# Lexing of the template into text and tag chunks
# ---------------------------------------------------------------------------

@dataclass
class _Chunk:
    kind: str  # "text", "output", "block" or "comment"
    content: str
    line: int
    strip_before: bool = False
    strip_after: bool = False


def _find_close(source: str, start: int, closer: str) -> int:
    """Index of ``closer`` after ``start``, skipping quoted strings."""
    i = start
    quote: Optional[str] = None
    while i < len(source):
        char = source[i]
        if quote:
            if char == "\\":
                i += 2
                continue
            if char == quote:
                quote = None
        elif char in "\"'":
            quote = char
        elif source.startswith(closer, i):
            return i
        i += 1
    return -1


def _lex(source: str) -> List[_Chunk]:
    chunks: List[_Chunk] = []
    pos = 0
    while pos < len(source):
        starts = [(source.find(opener, pos), opener) for opener in _OPENERS]
        starts = [(index, opener) for index, opener in starts if index != -1]
        if not starts:
            chunks.append(_Chunk("text", source[pos:], source.count("\n", 0, pos) + 1))
            break
        index, opener = min(starts)
        if index > pos:
            chunks.append(_Chunk("text", source[pos:index], source.count("\n", 0, pos) + 1))

        line = source.count("\n", 0, index) + 1
        closer = _OPENERS[opener]
        if opener == "{#":
            end = source.find(closer, index + 2)
            if end == -1:
                raise TemplateError("Unclosed comment", line)
            chunks.append(_Chunk("comment", "", line))
            pos = end + 2
            continue

        inner_start = index + 2
        strip_before = source.startswith("-", inner_start)
        if strip_before:
            inner_start += 1
        end = _find_close(source, inner_start, closer)
        if end == -1:
            raise TemplateError(f"Unclosed tag, expected {closer!r}", line)
        inner_end = end
        strip_after = source[inner_end - 1 : inner_end] == "-" and inner_end - 1 >= inner_start
        if strip_after:
            inner_end -= 1
        kind = "output" if opener == "{{" else "block"
        chunks.append(_Chunk(kind, source[inner_start:inner_end].strip(), line, strip_before, strip_after))
        pos = end + 2

    # Apply whitespace control to neighbouring text chunks.
    for i, chunk in enumerate(chunks):
        if chunk.strip_before and i > 0 and chunks[i - 1].kind == "text":
            chunks[i - 1].content = chunks[i - 1].content.rstrip()
        if chunk.strip_after and i + 1 < len(chunks) and chunks[i + 1].kind == "text":
            chunks[i + 1].content = chunks[i + 1].content.lstrip()
    return chunks


# ---------------------------------------------------------------------------
# Expression parsing
# ---------------------------------------------------------------------------

def _unquote(token: str) -> str:
    body = token[1:-1]
    return re.sub(r"\\(.)", lambda m: _ESCAPES.get(m.group(1), "\\" + m.group(1)), body)


def _tokenize(text: str, line: int) -> List[Tuple[str, str]]:
    tokens: List[Tuple[str, str]] = []
    pos = 0
    while pos < len(text):
        match = _TOKEN_RE.match(text, pos)
        if match is None:
            raise TemplateError(f"Unexpected character {text[pos]!r} in {text!r}", line)
        kind = match.lastgroup
        if kind != "ws":
            tokens.append((kind, match.group()))
        pos = match.end()
    return tokens


class _ExprParser:
    def __init__(self, text: str, line: int) -> None:
        self.text = text
        self.line = line
        self.tokens = _tokenize(text, line)
        self.pos = 0

    def error(self, message: str) -> TemplateError:
        return TemplateError(f"{message} in {self.text!r}", self.line)

    def peek(self) -> Optional[Tuple[str, str]]:
        return self.tokens[self.pos] if self.pos < len(self.tokens) else None

    def accept(self, value: str) -> bool:
        token = self.peek()
        if token is not None and token[1] == value and token[0] in ("op", "name"):
            self.pos += 1
            return True
        return False

    def expect(self, value: str) -> None:
        if not self.accept(value):
            raise self.error(f"Expected {value!r}")

    def expect_name(self) -> str:
        token = self.peek()
        if token is None or token[0] != "name":
            raise self.error("Expected a name")
        self.pos += 1
        return token[1]

    def at_end(self) -> bool:
        return self.pos >= len(self.tokens)

    def parse(self) -> Expr:
        expr = self.parse_or()
        if not self.at_end():
            raise self.error(f"Unexpected {self.peek()[1]!r}")
        return expr

    def parse_or(self) -> Expr:
        operands = [self.parse_and()]
        while self.accept("or"):
            operands.append(self.parse_and())
        return operands[0] if len(operands) == 1 else BoolOp("or", operands)

    def parse_and(self) -> Expr:
        operands = [self.parse_not()]
        while self.accept("and"):
            operands.append(self.parse_not())
        return operands[0] if len(operands) == 1 else BoolOp("and", operands)

    def parse_not(self) -> Expr:
        if self.accept("not"):
            return Not(self.parse_not())
        return self.parse_compare()

    def parse_compare(self) -> Expr:
        left = self.parse_filtered()
        for op in ("==", "!="):
            if self.accept(op):
                return Compare(op, left, self.parse_filtered())
        return left

    def parse_filtered(self) -> Expr:
        base = self.parse_primary()
        filters: List[FilterCall] = []
        while self.accept("|"):
            name = self.expect_name()
            args: Dict[str, Expr] = {}
            if self.accept("("):
                if not self.accept(")"):
                    while True:
                        arg = self.expect_name()
                        self.expect("=")
                        args[arg] = self.parse_or()
                        if self.accept(")"):
                            break
                        self.expect(",")
            try:
                filters.append(FilterCall(name, args))
            except TemplateError as exc:
                raise self.error(str(exc)) from exc
        return FilterChain(base, filters) if filters else base

    def parse_primary(self) -> Expr:
        token = self.peek()
        if token is None:
            raise self.error("Unexpected end of expression")
        kind, value = token
        if kind == "string":
            self.pos += 1
            return Literal(_unquote(value))
        if kind == "number":
            self.pos += 1
            return Literal(float(value) if "." in value else int(value))
        if self.accept("("):
            expr = self.parse_or()
            self.expect(")")
            return expr
        if kind == "name":
            self.pos += 1
            if value == "true":
                return Literal(True)
            if value == "false":
                return Literal(False)
            if value == "none":
                return Literal(None)
            path = [value]
            while self.accept("."):
                path.append(self.expect_name())
            return VarRef(*path)
        raise self.error(f"Unexpected {value!r}")


def parse_expression(text: str, line: int = 0) -> Expr:
    """Parse a single expression such as ``commit.scope | upper``."""
    return _ExprParser(text, line).parse()


# ---------------------------------------------------------------------------
# Statement parsing
# ---------------------------------------------------------------------------

_FOR_RE = re.compile(r"^for\s+([A-Za-z_][A-Za-z0-9_]*)\s+in\s+(.+)$", re.DOTALL)
_SET_RE = re.compile(r"^set\s+([A-Za-z_][A-Za-z0-9_]*)\s*=\s*(.+)$", re.DOTALL)


@dataclass
class _Frame:
    keyword: str
    node: Any
    body: List[Node]
    line: int


def parse_template(source: str, strip_indent: bool = True) -> Template:
    """Parse template text into a :class:`Template`.

    Parameters
    ----------
    source : str
        Template text.
    strip_indent : bool
        Remove leading spaces and tabs from every line so templates can
        be indented for readability.

    Raises
    ------
    TemplateError
        On any syntax error, unknown filter, or unbalanced block.
    """
    text = _CONTINUATION_RE.sub("", source or "")
    if strip_indent:
        text = _INDENT_RE.sub("", text)

    root: List[Node] = []
    stack: List[_Frame] = []
    current = root

    for chunk in _lex(text):
        if chunk.kind == "text":
            if chunk.content:
                current.append(Text(chunk.content))
            continue
        if chunk.kind == "comment":
            continue
        if chunk.kind == "output":
            current.append(Output(parse_expression(chunk.content, chunk.line)))
            continue

        statement = chunk.content
        keyword = statement.split(None, 1)[0] if statement else ""

        if keyword == "for":
            match = _FOR_RE.match(statement)
            if match is None:
                raise TemplateError(f"Malformed for statement {statement!r}", chunk.line)
            node = For(match.group(1), parse_expression(match.group(2), chunk.line))
            current.append(node)
            stack.append(_Frame("for", node, current, chunk.line))
            current = node.body
        elif keyword == "if":
            node = If([(parse_expression(statement[2:], chunk.line), [])])
            current.append(node)
            stack.append(_Frame("if", node, current, chunk.line))
            current = node.branches[0][1]
        elif keyword in ("elif", "else"):
            if not stack or stack[-1].keyword not in ("if", "else"):
                raise TemplateError(f"Unexpected {keyword!r} outside of an if block", chunk.line)
            frame = stack[-1]
            if frame.keyword == "else":
                raise TemplateError(f"Unexpected {keyword!r} after else", chunk.line)
            if keyword == "elif":
                body: List[Node] = []
                frame.node.branches.append((parse_expression(statement[4:], chunk.line), body))
                current = body
            else:
                if statement != "else":
                    raise TemplateError(f"Malformed else statement {statement!r}", chunk.line)
                frame.keyword = "else"
                current = frame.node.else_body
        elif keyword in ("endfor", "endif"):
            expected = ("for",) if keyword == "endfor" else ("if", "else")
            if not stack or stack[-1].keyword not in expected:
                raise TemplateError(f"Unexpected {keyword!r}", chunk.line)
            current = stack.pop().body
        elif keyword == "set":
            match = _SET_RE.match(statement)
            if match is None:
                raise TemplateError(f"Malformed set statement {statement!r}", chunk.line)
            current.append(Set(match.group(1), parse_expression(match.group(2), chunk.line)))
        else:
            raise TemplateError(f"Unknown statement {statement!r}", chunk.line)

    if stack:
        frame = stack[-1]
        raise TemplateError(f"Unclosed {frame.keyword.replace('else', 'if')!r} block", frame.line)

    return Template(body=root, source=source)
