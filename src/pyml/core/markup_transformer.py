"""Compile PyML markup literals into plain Python.

A ``.pyml`` module is Python source that may contain markup element literals
wherever an expression can start::

    def render(self):
        return <Panel title="Hello" on_close={self.close}>
            <p class="note">{self.props["text"]}</p>
        </Panel>

Each element becomes a call to the element factory named by
:attr:`TransformOptions.pragma`::

    __pyml_element__(Panel, {'title': 'Hello', 'on_close': (self.close), }
        , __pyml_element__('p', {'class': 'note', }, (self.props["text"]))
        )

The output keeps every newline of the input, so each line of generated code
sits on the line it came from and tracebacks point into the ``.pyml`` file.
Everything outside markup is copied through untouched.
"""

from __future__ import annotations

import ast
import html
import logging
import re
from dataclasses import dataclass
from typing import Any

from pyml.components import FRAGMENT, create_element
from pyml.errors import MarkupSyntaxError


logger = logging.getLogger(__name__)

DEFAULT_PRAGMA = "__pyml_element__"
DEFAULT_PRAGMA_FRAG = "__pyml_fragment__"

_IDENT = re.compile(r"[^\W\d]\w*")
_NUMBER = re.compile(r"0[xXoObB][0-9a-fA-F_]+|(?:\d[\d_]*\.?[\d_]*|\.\d[\d_]*)(?:[eE][+-]?\d[\d_]*)?[jJ]?")
_STRING_START = re.compile(r"(?:[rRuUbBfFtT]|[rR][bBfFtT]|[bBfFtT][rR])?('''|\"\"\"|'|\")")
_TAG_NAME = re.compile(r"[^\W\d]\w*(?:[.:\-][^\W\d]\w*)*")
_ATTR_NAME = re.compile(r"[^\W\d]\w*(?:[:\-]\w+)*")
_SPREAD = re.compile(r"\s*\.\.\.")
_TEXT = re.compile(r"[^<{}]+")
_WHITESPACE = re.compile(r"[ \t\f\n]*")
_COMMENT = re.compile(r"#[^\n]*")

# After these keywords an expression starts, so '<' opens markup.
_EXPRESSION_KEYWORDS = frozenset(
    {"and", "assert", "await", "elif", "else", "from", "if", "in", "is", "lambda", "not", "or", "return", "while", "yield"}
)


@dataclass(frozen=True, slots=True)
class TransformOptions:
    """Options for :func:`transform`.

    Attributes
    ----------
    non_standard
        Accept markup literals. Without it the source must be plain Python.
    pragma
        Name of the element factory called by generated code.
    pragma_frag
        Name bound to the fragment marker used as the type of ``<>...</>``.
    """

    non_standard: bool = True
    pragma: str = DEFAULT_PRAGMA
    pragma_frag: str = DEFAULT_PRAGMA_FRAG


class _MarkupCompiler:
    """Single-pass scanner that copies Python and rewrites markup literals."""

    def __init__(self, source: str, filename: str, options: TransformOptions) -> None:
        self.src = source
        self.filename = filename
        self.options = options
        self.pos = 0

    def compile(self) -> str:
        return self.python(in_braces=False)

    def error(self, msg: str, pos: int | None = None) -> MarkupSyntaxError:
        return MarkupSyntaxError(msg, self.src, self.pos if pos is None else pos, self.filename)

    # Python ------------------------------------------------------------

    def python(self, *, in_braces: bool) -> str:
        """Copy Python code, compiling markup found in expression position.

        With ``in_braces`` the scan stops before the ``}`` closing a markup
        expression container.
        """
        src = self.src
        start = self.pos
        out: list[str] = []
        depth = 0
        expect_operand = True

        while self.pos < len(src):
            ch = src[self.pos]

            if ch == "#":
                end = src.find("\n", self.pos)
                end = len(src) if end == -1 else end
                out.append(src[self.pos:end])
                self.pos = end
                continue

            if ch in " \t\f":
                out.append(ch)
                self.pos += 1
                continue

            if ch == "\n":
                out.append(ch)
                self.pos += 1
                if depth == 0 and not in_braces:
                    expect_operand = True
                continue

            if ch == "\\":
                out.append(src[self.pos:self.pos + 2])
                self.pos += 2
                continue

            if src.startswith("<<", self.pos):
                # Left shift, never markup.
                end = self.pos + (3 if src.startswith("<<=", self.pos) else 2)
                out.append(src[self.pos:end])
                self.pos = end
                expect_operand = True
                continue

            if ch == "<" and expect_operand and self.at_markup():
                out.append(self.element())
                expect_operand = False
                continue

            if match := _STRING_START.match(src, self.pos):
                out.append(self.string_literal(match))
                expect_operand = False
                continue

            if match := _IDENT.match(src, self.pos):
                word = match.group()
                out.append(word)
                self.pos = match.end()
                expect_operand = word in _EXPRESSION_KEYWORDS
                continue

            if (ch.isdigit() or ch == ".") and (match := _NUMBER.match(src, self.pos)):
                out.append(match.group())
                self.pos = match.end()
                expect_operand = False
                continue

            if ch in "([{":
                depth += 1
                expect_operand = True
            elif ch in ")]}":
                if ch == "}" and in_braces and depth == 0:
                    return "".join(out)
                depth = max(depth - 1, 0)
                expect_operand = False
            else:
                expect_operand = True

            out.append(ch)
            self.pos += 1

        if in_braces:
            raise self.error("Unterminated '{' expression in markup", start - 1)
        return "".join(out)

    def string_literal(self, match: re.Match[str]) -> str:
        src = self.src
        quote = match.group(1)
        start = self.pos
        i = match.end()
        while i < len(src):
            if src.startswith(quote, i):
                i += len(quote)
                break
            ch = src[i]
            if ch == "\\":
                i += 2
                continue
            if ch == "\n" and len(quote) == 1:
                # Unterminated; left for the Python parser to report.
                break
            i += 1
        self.pos = min(i, len(src))
        return src[start:self.pos]

    # Markup ------------------------------------------------------------

    def at_markup(self) -> bool:
        nxt = self.src[self.pos + 1:self.pos + 2]
        return nxt == ">" or _IDENT.match(self.src, self.pos + 1) is not None

    def skip_space(self) -> str:
        """Consume whitespace and return the newlines it contained."""
        match = _WHITESPACE.match(self.src, self.pos)
        self.pos = match.end()
        return "\n" * match.group().count("\n")

    def expect(self, token: str, msg: str) -> None:
        if not self.src.startswith(token, self.pos):
            raise self.error(msg)
        self.pos += len(token)

    def element(self) -> str:
        start = self.pos
        self.pos += 1  # '<'
        if self.src.startswith(">", self.pos):
            self.pos += 1
            name = ""
            type_expr = self.options.pragma_frag
            props, self_closing = "None", False
        else:
            match = _TAG_NAME.match(self.src, self.pos)
            name = match.group()
            self.pos = match.end()
            type_expr = _type_expression(name)
            props, self_closing = self.attributes(name, start)

        children = "" if self_closing else self.children(name, start)
        return f"{self.options.pragma}({type_expr}, {props}{children})"

    def attributes(self, name: str, start: int) -> tuple[str, bool]:
        pieces: list[str] = []
        has_attrs = False
        while True:
            pieces.append(self.skip_space())
            if self.pos >= len(self.src):
                raise self.error(f"Unterminated markup element <{name}>", start)

            if self.src.startswith("/>", self.pos):
                self.pos += 2
                self_closing = True
                break
            if self.src.startswith(">", self.pos):
                self.pos += 1
                self_closing = False
                break

            if self.src.startswith("{", self.pos):
                brace = self.pos
                self.pos += 1
                spread = _SPREAD.match(self.src, self.pos)
                if spread is None:
                    raise self.error("Expected '...' in attribute spread", brace)
                pieces.append("\n" * spread.group().count("\n"))
                self.pos = spread.end()
                expr = self.python(in_braces=True)
                self.pos += 1
                pieces.append(f"**({expr}), ")
                has_attrs = True
                continue

            match = _ATTR_NAME.match(self.src, self.pos)
            if match is None:
                raise self.error(f"Unexpected character {self.src[self.pos]!r} in <{name}>")
            attr = match.group()
            self.pos = match.end()
            gap = self.skip_space()
            has_attrs = True

            if self.src.startswith("=", self.pos):
                self.pos += 1
                gap += self.skip_space()
                value, trailing = self.attribute_value(attr)
                pieces.append(f"{gap}{attr!r}: {value}, {trailing}")
            else:
                pieces.append(f"{attr!r}: True, {gap}")

        body = "".join(pieces)
        return ("{" + body + "}" if has_attrs else "None" + body), self_closing

    def attribute_value(self, attr: str) -> tuple[str, str]:
        """Return the Python expression for an attribute value and the newlines it spans."""
        src = self.src
        if src.startswith(('"', "'"), self.pos):
            quote = src[self.pos]
            end = src.find(quote, self.pos + 1)
            if end == -1:
                raise self.error(f"Unterminated string for attribute {attr!r}")
            text = src[self.pos + 1:end]
            self.pos = end + 1
            return repr(html.unescape(text)), "\n" * text.count("\n")

        if src.startswith("{", self.pos):
            brace = self.pos
            self.pos += 1
            expr = self.python(in_braces=True)
            self.pos += 1
            if _is_blank(expr):
                raise self.error(f"Attribute {attr!r} needs a non-empty expression", brace)
            return f"({expr})", ""

        if src.startswith("<", self.pos) and self.at_markup():
            return self.element(), ""

        raise self.error(f"Expected a string, '{{expression}}' or element as value of {attr!r}")

    def children(self, name: str, start: int) -> str:
        src = self.src
        pieces: list[str] = []
        while True:
            if self.pos >= len(src):
                raise self.error(f"Unterminated markup element <{name or ''}>", start)

            if src.startswith("</", self.pos):
                closing_at = self.pos
                self.pos += 2
                newlines = self.skip_space()
                match = _TAG_NAME.match(src, self.pos)
                closing = ""
                if match is not None:
                    closing = match.group()
                    self.pos = match.end()
                newlines += self.skip_space()
                self.expect(">", f"Expected '>' to close </{closing}>")
                if closing != name:
                    raise self.error(f"Expected corresponding closing tag for <{name}>", closing_at)
                pieces.append(newlines)
                return "".join(pieces)

            ch = src[self.pos]
            if ch == "<":
                if not self.at_markup():
                    raise self.error("Unexpected '<' in markup text")
                pieces.append(", " + self.element())
            elif ch == "{":
                self.pos += 1
                spread = _SPREAD.match(src, self.pos)
                if spread is not None:
                    pieces.append("\n" * spread.group().count("\n"))
                    self.pos = spread.end()
                expr = self.python(in_braces=True)
                self.pos += 1
                if spread is not None:
                    pieces.append(f", *({expr})")
                elif _is_blank(expr):
                    pieces.append("\n" * expr.count("\n"))
                else:
                    pieces.append(f", ({expr})")
            elif ch == "}":
                raise self.error("Unexpected '}' in markup text")
            else:
                match = _TEXT.match(src, self.pos)
                raw = match.group()
                self.pos = match.end()
                text = _clean_text(raw)
                if text:
                    pieces.append(f", {text!r}")
                pieces.append("\n" * raw.count("\n"))


def _type_expression(name: str) -> str:
    if "-" in name or ":" in name or ("." not in name and name[0].islower()):
        return repr(name)
    return name


def _is_blank(expr: str) -> bool:
    return not _COMMENT.sub("", expr).strip()


def _clean_text(raw: str) -> str:
    """Collapse markup text the way JSX does.

    Lines are trimmed (except the outer edges of the first and last line),
    whitespace-only lines are dropped and the rest are joined by one space.
    """
    lines = raw.replace("\t", " ").split("\n")
    last_non_empty = max((i for i, line in enumerate(lines) if line.strip(" ")), default=0)
    parts: list[str] = []
    for i, line in enumerate(lines):
        if i > 0:
            line = line.lstrip(" ")
        if i < len(lines) - 1:
            line = line.rstrip(" ")
        if line:
            if i != last_non_empty:
                line += " "
            parts.append(line)
    return html.unescape("".join(parts))


def transform(source: str, filename: str = "<pyml>", options: TransformOptions | None = None) -> str:
    """Compile PyML ``source`` into Python source with the same line numbering.

    Raises:
        SyntaxError: ``source`` is malformed markup (:class:`MarkupSyntaxError`)
            or the result is not valid Python.
    """
    options = options or TransformOptions()
    source = source.replace("\r\n", "\n")
    code = _MarkupCompiler(source, filename, options).compile() if options.non_standard else source
    ast.parse(code, filename=filename)
    return code


class MarkupTransformer:
    """Source transformer used by the load pipeline."""

    def __init__(self, options: TransformOptions | None = None) -> None:
        self.options = options or TransformOptions()

    def transform(self, source: str, filename: str) -> str:
        code = transform(source, filename, self.options)
        logger.debug("Compiled markup in %s", filename)
        return code

    def injected_globals(self) -> dict[str, Any]:
        """Names that compiled markup references, bound for module execution."""
        return {
            self.options.pragma: create_element,
            self.options.pragma_frag: FRAGMENT,
        }
