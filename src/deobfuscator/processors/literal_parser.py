"""Literal-only evaluator for JavaScript constant expressions.

Obfuscated string tables are plain array literals, so decoding one never
requires running code.  This module implements a tiny recursive descent
parser over :mod:`deobfuscator.processors.js_lexer` tokens that accepts only
literals: strings, template strings without substitutions, numbers,
``true``/``false``/``null`` and (nested) array brackets.  Anything else,
an identifier, a call, an operator or an array hole, raises
:class:`LiteralSyntaxError` instead of being evaluated.

The produced values are plain Python objects (``str``, ``int``, ``float``,
``bool``, ``None`` and ``tuple`` for nested arrays).

A second entry point, :func:`evaluate_index`, evaluates the small integer
expressions obfuscators use as table indices (``0x1f``, ``'3'``,
``0x10 - 2``).
"""

from __future__ import annotations

import json
import re
from typing import Any, Sequence, Union

from deobfuscator.processors.js_lexer import Token, TokenType, significant, tokenize

LiteralValue = Union[str, int, float, bool, None, tuple]

_SIMPLE_ESCAPES = {
    "n": "\n",
    "t": "\t",
    "r": "\r",
    "b": "\b",
    "f": "\f",
    "v": "\v",
}
_LINE_TERMINATORS = ("\r\n", "\n", "\r", "\u2028", "\u2029")
_HEX_RE = re.compile(r"[0-9a-fA-F]+")
_KEYWORD_VALUES = {"true": True, "false": False, "null": None}
_LONE_SURROGATE_RE = re.compile(r"[\ud800-\udfff]")


class LiteralSyntaxError(ValueError):
    """Raised when an expression contains anything other than literals."""


# ---------------------------------------------------------------------------
# String and number decoding
# ---------------------------------------------------------------------------

def _combine_surrogates(text: str) -> str:
    try:
        return text.encode("utf-16", "surrogatepass").decode("utf-16")
    except UnicodeDecodeError:
        return text


def unescape(body: str) -> str:
    """Resolve JavaScript escape sequences in a string literal body.

    Unknown escapes follow JavaScript's identity-escape rule (``\\q`` is
    ``q``).  Malformed ``\\x``/``\\u`` escapes raise
    :class:`LiteralSyntaxError`.
    """
    out: list[str] = []
    index = 0
    length = len(body)

    while index < length:
        ch = body[index]
        if ch != "\\":
            out.append(ch)
            index += 1
            continue

        index += 1
        if index >= length:
            raise LiteralSyntaxError("Dangling backslash in string literal")

        for terminator in _LINE_TERMINATORS:
            if body.startswith(terminator, index):
                index += len(terminator)
                break
        else:
            esc = body[index]
            index += 1

            if esc in _SIMPLE_ESCAPES:
                out.append(_SIMPLE_ESCAPES[esc])
            elif esc == "0" and not (index < length and body[index].isdigit()):
                out.append("\0")
            elif esc.isdigit():
                raise LiteralSyntaxError("Legacy octal escapes are not supported")
            elif esc == "x":
                digits = body[index:index + 2]
                if len(digits) != 2 or not _HEX_RE.fullmatch(digits):
                    raise LiteralSyntaxError(f"Malformed \\x escape: \\x{digits}")
                out.append(chr(int(digits, 16)))
                index += 2
            elif esc == "u":
                if body.startswith("{", index):
                    end = body.find("}", index)
                    digits = body[index + 1:end] if end != -1 else ""
                    if not _HEX_RE.fullmatch(digits) or int(digits, 16) > 0x10FFFF:
                        raise LiteralSyntaxError("Malformed \\u{...} escape")
                    out.append(chr(int(digits, 16)))
                    index = end + 1
                else:
                    digits = body[index:index + 4]
                    if len(digits) != 4 or not _HEX_RE.fullmatch(digits):
                        raise LiteralSyntaxError(f"Malformed \\u escape: \\u{digits}")
                    out.append(chr(int(digits, 16)))
                    index += 4
            else:
                out.append(esc)

    return _combine_surrogates("".join(out))


def decode_string_token(token: Token) -> str:
    """Return the value of a string or substitution-free template token."""
    if not token.terminated:
        raise LiteralSyntaxError(f"Unterminated string literal at offset {token.start}")
    if token.type is TokenType.TEMPLATE:
        body = token.value[1:-1]
        if "${" in body.replace("\\$", ""):
            raise LiteralSyntaxError("Template literals with substitutions are not literals")
        return unescape(body.replace("\r\n", "\n"))
    if token.type is TokenType.STRING:
        return unescape(token.value[1:-1])
    raise LiteralSyntaxError(f"Expected a string literal, got {token.value!r}")


def parse_number(text: str) -> int | float:
    """Convert a JavaScript numeric literal to ``int`` or ``float``.

    Examples:
        >>> parse_number("0x1f"), parse_number("1_000"), parse_number("2.5e1")
        (31, 1000, 25.0)
    """
    cleaned = text.replace("_", "")
    if cleaned.endswith("n"):
        cleaned = cleaned[:-1]
    lowered = cleaned.lower()
    if re.fullmatch(r"0\d+", lowered):
        raise LiteralSyntaxError(f"Legacy octal literal {text!r} is not supported")
    try:
        if lowered.startswith("0x"):
            return int(lowered[2:], 16)
        if lowered.startswith("0o"):
            return int(lowered[2:], 8)
        if lowered.startswith("0b"):
            return int(lowered[2:], 2)
        if re.fullmatch(r"\d+", lowered):
            return int(lowered)
        return float(lowered)
    except ValueError as e:
        raise LiteralSyntaxError(f"Malformed numeric literal {text!r}") from e


def coerce_to_number(text: str) -> int | float:
    """Apply JavaScript ``Number()`` coercion to a numeric string.

    Only the numeric-literal forms obfuscators emit are accepted; an empty
    or non-numeric string raises :class:`LiteralSyntaxError`.
    """
    stripped = text.strip()
    if not stripped:
        raise LiteralSyntaxError("Empty string is not a table index")
    sign = 1
    if stripped[0] in "+-":
        sign = -1 if stripped[0] == "-" else 1
        stripped = stripped[1:]
    if "_" in stripped or stripped.endswith("n") or not re.fullmatch(r"[0-9a-fA-FxXoObB.eE+-]+", stripped):
        raise LiteralSyntaxError(f"String {text!r} is not numeric")
    if sign < 0 and stripped.lower().startswith(("0x", "0o", "0b")):
        raise LiteralSyntaxError(f"String {text!r} is not numeric")
    if re.fullmatch(r"0\d+", stripped):
        # Number("010") is ten, not eight
        return sign * int(stripped)
    return sign * parse_number(stripped)


# ---------------------------------------------------------------------------
# Rendering
# ---------------------------------------------------------------------------

def render_string(value: str) -> str:
    """Render *value* as a double-quoted JavaScript string literal.

    Unpaired surrogates cannot be written as UTF-8, so they keep their
    ``\\uXXXX`` escape form.
    """
    rendered = json.dumps(value, ensure_ascii=False)
    return _LONE_SURROGATE_RE.sub(lambda m: f"\\u{ord(m.group()):04x}", rendered)


def render_literal(value: Any) -> str:
    """Render a value produced by :func:`parse_literal` back to JavaScript."""
    if value is None:
        return "null"
    if value is True:
        return "true"
    if value is False:
        return "false"
    if isinstance(value, str):
        return render_string(value)
    if isinstance(value, tuple):
        return "[" + ", ".join(render_literal(v) for v in value) + "]"
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return repr(value)


# ---------------------------------------------------------------------------
# Parser
# ---------------------------------------------------------------------------

class _LiteralParser:
    """Recursive descent over a token slice."""

    def __init__(self, tokens: Sequence[Token]) -> None:
        self.tokens = significant(tokens)
        self.index = 0

    def _peek(self) -> Token | None:
        return self.tokens[self.index] if self.index < len(self.tokens) else None

    def _advance(self) -> Token:
        token = self._peek()
        if token is None:
            raise LiteralSyntaxError("Unexpected end of literal")
        self.index += 1
        return token

    def parse(self) -> LiteralValue:
        value = self._value()
        if self._peek() is not None:
            raise LiteralSyntaxError(f"Unexpected token {self._peek().value!r} after literal")
        return value

    def _value(self) -> LiteralValue:
        token = self._advance()

        if token.type in (TokenType.STRING, TokenType.TEMPLATE):
            return decode_string_token(token)

        if token.type is TokenType.NUMBER:
            return parse_number(token.value)

        if token.is_punct("-", "+"):
            operand = self._advance()
            if operand.type is not TokenType.NUMBER:
                raise LiteralSyntaxError(f"Unary {token.value} is only allowed before numbers")
            number = parse_number(operand.value)
            return -number if token.value == "-" else number

        if token.type is TokenType.IDENTIFIER and token.value in _KEYWORD_VALUES:
            following = self._peek()
            if following is not None and following.is_punct("(", ".", "[", "?."):
                raise LiteralSyntaxError(f"Expression on keyword {token.value!r} is not a literal")
            return _KEYWORD_VALUES[token.value]

        if token.is_punct("["):
            return self._array()

        raise LiteralSyntaxError(f"Non-literal token {token.value!r} at offset {token.start}")

    def _array(self) -> tuple:
        items: list[LiteralValue] = []
        while True:
            token = self._peek()
            if token is None:
                raise LiteralSyntaxError("Unterminated array literal")
            if token.is_punct("]"):
                self.index += 1
                return tuple(items)
            if token.is_punct(","):
                raise LiteralSyntaxError("Array holes are not supported")
            items.append(self._value())
            separator = self._advance()
            if separator.is_punct("]"):
                return tuple(items)
            if not separator.is_punct(","):
                raise LiteralSyntaxError(
                    f"Non-literal token {separator.value!r} at offset {separator.start}"
                )


def parse_literal_tokens(tokens: Sequence[Token]) -> LiteralValue:
    """Evaluate a token slice that must form exactly one literal."""
    return _LiteralParser(tokens).parse()


def parse_literal(source: str) -> LiteralValue:
    """Evaluate *source* as a single JavaScript literal.

    Examples:
        >>> parse_literal("['a', \"b\", 0x2, [true, null]]")
        ('a', 'b', 2, (True, None))
        >>> parse_literal("[foo(), 'bar']")
        Traceback (most recent call last):
        ...
        deobfuscator.processors.literal_parser.LiteralSyntaxError: Non-literal token 'foo' at offset 1
    """
    return parse_literal_tokens(tokenize(source))


# ---------------------------------------------------------------------------
# Index expressions
# ---------------------------------------------------------------------------

class _IndexParser:
    """``expr := term (('+'|'-') term)*``, ``term := unary ('*' unary)*``."""

    def __init__(self, tokens: Sequence[Token]) -> None:
        self.tokens = significant(tokens)
        self.index = 0

    def _peek(self) -> Token | None:
        return self.tokens[self.index] if self.index < len(self.tokens) else None

    def _advance(self) -> Token:
        token = self._peek()
        if token is None:
            raise LiteralSyntaxError("Unexpected end of index expression")
        self.index += 1
        return token

    def parse(self) -> int | float:
        value = self._expr()
        if self._peek() is not None:
            raise LiteralSyntaxError(f"Unexpected token {self._peek().value!r} in index")
        return value

    def _expr(self) -> int | float:
        value = self._term()
        while self._peek() is not None and self._peek().is_punct("+", "-"):
            op = self._advance().value
            rhs = self._term()
            value = value + rhs if op == "+" else value - rhs
        return value

    def _term(self) -> int | float:
        value = self._unary()
        while self._peek() is not None and self._peek().is_punct("*"):
            self._advance()
            value = value * self._unary()
        return value

    def _unary(self) -> int | float:
        token = self._advance()
        if token.is_punct("-"):
            return -self._unary()
        if token.is_punct("+"):
            return self._unary()
        if token.type is TokenType.NUMBER:
            return parse_number(token.value)
        if token.is_punct("("):
            value = self._expr()
            if not self._advance().is_punct(")"):
                raise LiteralSyntaxError("Unbalanced parentheses in index")
            return value
        raise LiteralSyntaxError(f"Non-literal token {token.value!r} in index")


def evaluate_index(tokens: Sequence[Token], canonical_strings: bool = False) -> int:
    """Evaluate an index expression to an integer.

    A lone string literal is coerced like JavaScript ``Number()`` does, or,
    with *canonical_strings*, accepted only when it is the canonical decimal
    spelling of an integer (the rule for ``array["1"]`` property access).
    Otherwise the expression may combine numeric literals with ``+``, ``-``,
    ``*``, unary signs and parentheses.

    Raises:
        LiteralSyntaxError: If the expression is not literal-valued or does
            not evaluate to an integer.
    """
    tokens = significant(tokens)
    while (
        len(tokens) >= 2
        and tokens[0].is_punct("(")
        and tokens[-1].is_punct(")")
        and _wraps(tokens)
    ):
        tokens = tokens[1:-1]

    if len(tokens) == 1 and tokens[0].type in (TokenType.STRING, TokenType.TEMPLATE):
        text = decode_string_token(tokens[0])
        if canonical_strings:
            if not re.fullmatch(r"0|[1-9]\d*", text):
                raise LiteralSyntaxError(f"String key {text!r} is not an array index")
            return int(text)
        value: int | float = coerce_to_number(text)
    else:
        value = _IndexParser(tokens).parse()

    if isinstance(value, float):
        if not value.is_integer():
            raise LiteralSyntaxError(f"Index {value!r} is not an integer")
        value = int(value)
    return value


def _wraps(tokens: Sequence[Token]) -> bool:
    """Return True when the first "(" closes at the last token."""
    depth = 0
    for i, token in enumerate(tokens):
        if token.is_punct("(", "[", "{"):
            depth += 1
        elif token.is_punct(")", "]", "}"):
            depth -= 1
            if depth == 0 and i != len(tokens) - 1:
                return False
    return True
