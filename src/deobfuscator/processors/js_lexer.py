"""Lenient JavaScript tokenizer used by the source transformers.

The transformers in this package never need a full JavaScript parser: they
look for a handful of fixed shapes (an array declaration, an ``if (false)``
guard, an empty function) and need to know exactly where balanced
``(...)``, ``[...]`` and ``{...}`` groups start and end.  Getting that right
requires skipping over strings, template literals, comments and regular
expression literals, which is all this lexer does.

The lexer is deliberately forgiving.  Unterminated strings, comments and
templates are closed at the end of their line (or of the input) instead of
raising, so every caller can run on malformed input and fall back to doing
nothing.

Example:
    >>> tokens = tokenize("if (false) { x(']'); }")
    >>> [t.value for t in tokens][:4]
    ['if', '(', 'false', ')']
    >>> find_matching(tokens, 4)
    10
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from enum import Enum
from typing import Sequence


class TokenType(Enum):
    """Lexical categories produced by :func:`tokenize`."""

    IDENTIFIER = "identifier"
    NUMBER = "number"
    STRING = "string"
    TEMPLATE = "template"
    REGEX = "regex"
    PUNCTUATOR = "punctuator"
    COMMENT = "comment"


@dataclass(frozen=True)
class Token:
    """A single lexical token.

    Attributes:
        type: Lexical category.
        value: Raw source text of the token.
        start: Offset of the first character in the source.
        end: Offset one past the last character.
        newline_before: Whether a line break separates this token from the
            previous one.
        terminated: ``False`` for strings, templates, comments and regexes
            that ran into the end of their line or of the input.
    """

    type: TokenType
    value: str
    start: int
    end: int
    newline_before: bool = False
    terminated: bool = True

    def is_punct(self, *values: str) -> bool:
        return self.type is TokenType.PUNCTUATOR and self.value in values

    def is_ident(self, *values: str) -> bool:
        return self.type is TokenType.IDENTIFIER and (not values or self.value in values)


OPENERS = {"(": ")", "[": "]", "{": "}"}
CLOSERS = {v: k for k, v in OPENERS.items()}

# Longest first so that greedy matching picks e.g. ">>>=" before ">>"
_PUNCTUATORS = sorted(
    [
        ">>>=", "...", "===", "!==", "**=", "<<=", ">>=", ">>>", "&&=", "||=", "??=",
        "=>", "==", "!=", "<=", ">=", "&&", "||", "??", "?.", "++", "--", "+=", "-=",
        "*=", "/=", "%=", "&=", "|=", "^=", "**", "<<", ">>",
    ],
    key=len,
    reverse=True,
)

# Keywords after which a "/" starts a regular expression literal
_REGEX_PRECEDING_KEYWORDS = frozenset({
    "return", "typeof", "case", "do", "else", "in", "instanceof", "new",
    "delete", "void", "throw", "yield", "await", "of",
})

_IDENTIFIER_RE = re.compile(r"[A-Za-z_$\u0080-\uffff][\w$\u0080-\uffff]*")
_NUMBER_RE = re.compile(
    r"0[xX][0-9a-fA-F_]+n?"
    r"|0[oO][0-7_]+n?"
    r"|0[bB][01_]+n?"
    r"|(?:\d[\d_]*(?:\.[\d_]*)?|\.\d[\d_]*)(?:[eE][+-]?\d+)?n?"
)
_WHITESPACE = " \t\r\n\u00a0\ufeff\u2028\u2029\v\f"


class _Lexer:
    """Single-pass scanner; see :func:`tokenize`."""

    def __init__(self, source: str) -> None:
        self.src = source
        self.pos = 0
        self.length = len(source)
        self.newline_seen = False

    # -- helpers ---------------------------------------------------------

    def _skip_whitespace(self) -> None:
        while self.pos < self.length and self.src[self.pos] in _WHITESPACE:
            if self.src[self.pos] in "\n\r\u2028\u2029":
                self.newline_seen = True
            self.pos += 1

    def _make(self, type_: TokenType, start: int, terminated: bool = True) -> Token:
        token = Token(
            type=type_,
            value=self.src[start:self.pos],
            start=start,
            end=self.pos,
            newline_before=self.newline_seen,
            terminated=terminated,
        )
        self.newline_seen = False
        return token

    @staticmethod
    def _regex_allowed(prev: Token | None) -> bool:
        if prev is None:
            return True
        if prev.type is TokenType.PUNCTUATOR:
            return prev.value not in (")", "]")
        if prev.type is TokenType.IDENTIFIER:
            return prev.value in _REGEX_PRECEDING_KEYWORDS
        return False

    # -- scanners --------------------------------------------------------

    def _scan_string(self, quote: str) -> bool:
        self.pos += 1
        while self.pos < self.length:
            ch = self.src[self.pos]
            if ch == "\\":
                self.pos += 2
                continue
            if ch == quote:
                self.pos += 1
                return True
            if ch == "\n":
                return False
            self.pos += 1
        self.pos = self.length
        return False

    def _scan_template(self) -> bool:
        self.pos += 1
        while self.pos < self.length:
            ch = self.src[self.pos]
            if ch == "\\":
                self.pos += 2
                continue
            if ch == "`":
                self.pos += 1
                return True
            if ch == "$" and self.src.startswith("${", self.pos):
                self.pos += 2
                if not self._scan_substitution():
                    return False
                continue
            self.pos += 1
        self.pos = self.length
        return False

    def _scan_substitution(self) -> bool:
        """Skip a ``${...}`` body, including nested braces and literals."""
        depth = 0
        prev: Token | None = None
        while True:
            self._skip_whitespace()
            if self.pos >= self.length:
                return False
            if self.src[self.pos] == "}" and depth == 0:
                self.pos += 1
                return True
            token = self._next(prev)
            if token.is_punct("{"):
                depth += 1
            elif token.is_punct("}"):
                depth -= 1
            if token.type is not TokenType.COMMENT:
                prev = token

    def _scan_regex(self) -> bool:
        start = self.pos
        self.pos += 1
        in_class = False
        while self.pos < self.length:
            ch = self.src[self.pos]
            if ch == "\\":
                self.pos += 2
                continue
            if ch == "\n":
                break
            if in_class:
                if ch == "]":
                    in_class = False
            elif ch == "[":
                in_class = True
            elif ch == "/":
                self.pos += 1
                while self.pos < self.length and (
                    self.src[self.pos].isalnum() or self.src[self.pos] in "_$"
                ):
                    self.pos += 1
                return True
            self.pos += 1
        # Not a regex after all; rewind and let the caller emit "/"
        self.pos = start
        return False

    def _next(self, prev: Token | None) -> Token:
        src, start = self.src, self.pos
        ch = src[start]

        if src.startswith("//", start) or (start == 0 and src.startswith("#!")):
            end = src.find("\n", start)
            self.pos = self.length if end == -1 else end
            return self._make(TokenType.COMMENT, start)

        if src.startswith("/*", start):
            end = src.find("*/", start + 2)
            if end == -1:
                self.pos = self.length
                return self._make(TokenType.COMMENT, start, terminated=False)
            self.pos = end + 2
            return self._make(TokenType.COMMENT, start)

        if ch in "'\"":
            terminated = self._scan_string(ch)
            return self._make(TokenType.STRING, start, terminated)

        if ch == "`":
            terminated = self._scan_template()
            return self._make(TokenType.TEMPLATE, start, terminated)

        if ch.isdigit() or (ch == "." and start + 1 < self.length and src[start + 1].isdigit()):
            match = _NUMBER_RE.match(src, start)
            if match:
                self.pos = match.end()
                return self._make(TokenType.NUMBER, start)

        match = _IDENTIFIER_RE.match(src, start)
        if match:
            self.pos = match.end()
            return self._make(TokenType.IDENTIFIER, start)

        if ch == "/" and self._regex_allowed(prev) and self._scan_regex():
            return self._make(TokenType.REGEX, start)

        for punct in _PUNCTUATORS:
            if src.startswith(punct, start):
                self.pos = start + len(punct)
                return self._make(TokenType.PUNCTUATOR, start)

        self.pos = start + 1
        return self._make(TokenType.PUNCTUATOR, start)

    def run(self, include_comments: bool) -> list[Token]:
        tokens: list[Token] = []
        prev: Token | None = None
        while True:
            self._skip_whitespace()
            if self.pos >= self.length:
                return tokens
            token = self._next(prev)
            if token.type is TokenType.COMMENT:
                if include_comments:
                    tokens.append(token)
                continue
            tokens.append(token)
            prev = token


def tokenize(source: str, include_comments: bool = False) -> list[Token]:
    """Split *source* into tokens.

    Args:
        source: JavaScript source text.
        include_comments: Emit comment tokens instead of dropping them.

    Returns:
        Tokens in source order.  Never raises for malformed input.
    """
    return _Lexer(source).run(include_comments)


def significant(tokens: Sequence[Token]) -> list[Token]:
    """Return *tokens* without comments."""
    return [t for t in tokens if t.type is not TokenType.COMMENT]


def find_matching(tokens: Sequence[Token], index: int) -> int | None:
    """Return the index of the bracket closing ``tokens[index]``.

    Comment tokens are ignored.  Returns ``None`` when ``tokens[index]`` is
    not an opening bracket, when a mismatched closer is met first, or when
    the input ends before the group is closed.
    """
    opener = tokens[index]
    if opener.type is not TokenType.PUNCTUATOR or opener.value not in OPENERS:
        return None

    stack = [OPENERS[opener.value]]
    for i in range(index + 1, len(tokens)):
        token = tokens[i]
        if token.type is not TokenType.PUNCTUATOR:
            continue
        if token.value in OPENERS:
            stack.append(OPENERS[token.value])
        elif token.value in CLOSERS:
            if token.value != stack[-1]:
                return None
            stack.pop()
            if not stack:
                return i
    return None


def is_balanced(tokens: Sequence[Token]) -> bool:
    """Return True when every bracket is closed in order and no literal is
    left unterminated."""
    stack: list[str] = []
    for token in tokens:
        if not token.terminated:
            return False
        if token.type is not TokenType.PUNCTUATOR:
            continue
        if token.value in OPENERS:
            stack.append(OPENERS[token.value])
        elif token.value in CLOSERS:
            if not stack or stack.pop() != token.value:
                return False
    return not stack
