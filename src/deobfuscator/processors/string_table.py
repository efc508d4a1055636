"""String table resolution for array-indirection obfuscation.

Obfuscators in the javascript-obfuscator family move every string literal
into one array declared near the top of the file::

    var _0x3f1a = ["log", "Hello", "warn"];
    function _0x52c1(_0x1, _0x2) { _0x1 = _0x1 - 0x0; return _0x3f1a[_0x1]; }
    console[_0x52c1("0x0")](_0x52c1("0x1"));

:class:`StringTableResolver` finds that declaration, decodes it with the
literal-only evaluator, annotates it, and inlines every reference whose index
it can evaluate::

    /* Deobfuscated string array: _0x3f1a */
    var _0x3f1a = ["log", "Hello", "warn"];
    ...
    console["log"]("Hello");

Reference binding comes in two modes.  ``strict`` (the default) only touches
subscripts of the declared table and calls to accessor functions whose body
does nothing but return ``table[p]`` or ``table[p - N]``, honouring that
constant offset.
``loose`` treats a call to any identifier that follows the obfuscator's
naming convention as a table lookup, which is what naive regex-based
tools do and can corrupt files that carry more than one table.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Sequence

from deobfuscator.exceptions import UnsupportedStringTableError
from deobfuscator.processors.js_lexer import Token, TokenType, find_matching, significant, tokenize
from deobfuscator.processors.literal_parser import (
    LiteralSyntaxError,
    LiteralValue,
    evaluate_index,
    parse_literal_tokens,
    parse_number,
    render_literal,
    render_string,
)
from deobfuscator.processors.source_transformer import SourceTransformer, SourceUnit
from deobfuscator.utils.logger import get_logger

logger = get_logger("deobfuscator.processors.string_table")

DEFAULT_IDENTIFIER_PATTERN = r"_0x[0-9a-fA-F]+"
TABLE_MARKER = "/* Deobfuscated string array: {name} */"
VALID_BINDINGS = ("strict", "loose")

_DECLARATION_KEYWORDS = ("var", "let", "const")
_MUTATING_METHODS = frozenset({
    "push", "pop", "shift", "unshift", "splice", "reverse", "sort", "fill", "copyWithin",
})
_ASSIGNMENT_OPERATORS = frozenset({
    "=", "+=", "-=", "*=", "/=", "%=", "**=", "<<=", ">>=", ">>>=",
    "&=", "|=", "^=", "&&=", "||=", "??=", "++", "--",
})
# Keywords that may precede "(" without forming a call
_NON_CALL_KEYWORDS = frozenset({
    "if", "while", "for", "switch", "catch", "return", "typeof", "void",
    "delete", "in", "of", "new", "case", "do", "else", "throw", "yield", "await",
})


@dataclass(frozen=True)
class StringTable:
    """An obfuscator-generated literal table.

    Attributes:
        identifier: Name the table is declared under.
        values: Decoded elements; index ``i`` is the ``i``-th written element.
        keyword: Declaration keyword (``var``, ``let`` or ``const``).
        start: Offset of the declaration keyword.
        end: Offset one past the declaration (including ``;`` if present).
        element_sources: Source text of each element as written, used to
            re-emit non-string entries (``10n``, ``-0``) unchanged.
    """

    identifier: str
    values: tuple[LiteralValue, ...]
    keyword: str
    start: int
    end: int
    element_sources: tuple[str, ...] = ()

    def __len__(self) -> int:
        return len(self.values)

    def lookup(self, index: int) -> str | None:
        """Return the string at *index*, or None when out of range or not a string."""
        if 0 <= index < len(self.values):
            value = self.values[index]
            if isinstance(value, str):
                return value
        return None

    def render(self) -> str:
        elements = ", ".join(
            render_string(value) if isinstance(value, str) else self._element_source(i)
            for i, value in enumerate(self.values)
        )
        return f"{self.keyword} {self.identifier} = [{elements}];"

    def _element_source(self, index: int) -> str:
        if len(self.element_sources) == len(self.values):
            return self.element_sources[index]
        return render_literal(self.values[index])


@dataclass(frozen=True)
class Accessor:
    """A callable that reads the table: ``name(i)`` means ``table[i - offset]``."""

    name: str
    offset: int = 0


class StringTableResolver(SourceTransformer):
    """Inline references to an obfuscator string table.

    Args:
        identifier_pattern: Regular expression (full match) identifying
            obfuscator-generated names.
        binding: ``"strict"`` or ``"loose"`` reference binding.

    Example:
        >>> resolver = StringTableResolver()
        >>> resolver.resolve('var _0xabc1 = ["foo", "bar"];\\nalert(_0xabc1[1]);')
        '/* Deobfuscated string array: _0xabc1 */\\nvar _0xabc1 = ["foo", "bar"];\\nalert("bar");'
    """

    name = "string_table"

    def __init__(
        self,
        identifier_pattern: str = DEFAULT_IDENTIFIER_PATTERN,
        binding: str = "strict",
    ) -> None:
        super().__init__()
        if binding not in VALID_BINDINGS:
            raise ValueError(f"Invalid binding: {binding}. Expected one of {VALID_BINDINGS}")
        self.identifier_re = re.compile(identifier_pattern)
        self.binding = binding
        self.logger = logger

    # ------------------------------------------------------------------
    # Table discovery
    # ------------------------------------------------------------------

    def _is_obfuscated_name(self, token: Token) -> bool:
        return token.type is TokenType.IDENTIFIER and self.identifier_re.fullmatch(token.value) is not None

    def locate_table(
        self, source: SourceUnit, tokens: Sequence[Token] | None = None
    ) -> StringTable | None:
        """Find and decode the first string table declaration.

        Returns:
            The decoded table, or None when the source has no declaration
            of the expected shape.

        Raises:
            UnsupportedStringTableError: If the first declaration contains
                anything other than literals.
        """
        if tokens is None:
            tokens = tokenize(source)

        for i in range(len(tokens) - 3):
            keyword, name, assign, bracket = tokens[i:i + 4]
            if not (
                keyword.is_ident(*_DECLARATION_KEYWORDS)
                and self._is_obfuscated_name(name)
                and assign.is_punct("=")
                and bracket.is_punct("[")
            ):
                continue

            close = find_matching(tokens, i + 3)
            if close is None:
                continue

            following = tokens[close + 1] if close + 1 < len(tokens) else None
            if following is None or following.is_punct("}"):
                end = tokens[close].end
            elif following.is_punct(";"):
                end = following.end
            elif following.newline_before and not following.is_punct(".", "[", "(", ",", "?."):
                end = tokens[close].end
            else:
                # Part of a larger expression or a multi-declarator statement
                continue

            try:
                values = parse_literal_tokens(tokens[i + 3:close + 1])
            except LiteralSyntaxError as e:
                raise UnsupportedStringTableError(
                    f"String table {name.value} is not literal-only: {e}"
                ) from e

            self.logger.debug(
                f"Found string table {name.value} with {len(values)} element(s)"
            )
            return StringTable(
                identifier=name.value,
                values=values,
                keyword=keyword.value,
                start=keyword.start,
                end=end,
                element_sources=self._element_sources(source, tokens[i + 4:close]),
            )

        return None

    @staticmethod
    def _element_sources(source: SourceUnit, tokens: Sequence[Token]) -> tuple[str, ...]:
        """Split the tokens between an array's brackets into element texts."""
        elements: list[list[Token]] = []
        current: list[Token] = []
        depth = 0
        for token in significant(tokens):
            if token.is_punct("(", "[", "{"):
                depth += 1
            elif token.is_punct(")", "]", "}"):
                depth -= 1
            elif depth == 0 and token.is_punct(","):
                elements.append(current)
                current = []
                continue
            current.append(token)
        if current:
            elements.append(current)
        return tuple(source[element[0].start:element[-1].end] for element in elements)

    def is_mutated(self, table: StringTable, tokens: Sequence[Token]) -> bool:
        """Return True when the table is modified or handed to other code.

        Rotated or shuffled tables (``_0x12.push(_0x12.shift())`` inside an
        IIFE that receives the table) do not keep their written order, so
        inlining by written index would corrupt the output.
        """
        for i, token in enumerate(tokens):
            if token.start < table.end or not token.is_ident(table.identifier):
                continue
            prev = tokens[i - 1] if i > 0 else None
            nxt = tokens[i + 1] if i + 1 < len(tokens) else None
            if prev is not None and prev.is_punct(".", "?."):
                continue
            if nxt is not None and nxt.is_punct(".", "?.") and i + 2 < len(tokens):
                if tokens[i + 2].value in _MUTATING_METHODS:
                    return True
            if nxt is not None and nxt.value in _ASSIGNMENT_OPERATORS:
                return True
            if prev is not None and prev.value in ("++", "--"):
                return True
            if nxt is not None and nxt.is_punct("["):
                close = find_matching(tokens, i + 1)
                if close is not None and close + 1 < len(tokens):
                    if tokens[close + 1].value in _ASSIGNMENT_OPERATORS:
                        return True
            if prev is not None and prev.is_punct("(", ",") and nxt is not None and nxt.is_punct(")", ","):
                if self._inside_call_arguments(tokens, i):
                    return True
        return False

    @staticmethod
    def _inside_call_arguments(tokens: Sequence[Token], index: int) -> bool:
        depth = 0
        for j in range(index - 1, -1, -1):
            token = tokens[j]
            if token.is_punct(")", "]", "}"):
                depth += 1
            elif token.is_punct("[", "{"):
                if depth == 0:
                    return False
                depth -= 1
            elif token.is_punct("("):
                if depth > 0:
                    depth -= 1
                    continue
                callee = tokens[j - 1] if j > 0 else None
                if callee is None:
                    return False
                if callee.is_punct(")", "]", "}"):
                    return True
                return callee.type is TokenType.IDENTIFIER and callee.value not in _NON_CALL_KEYWORDS
        return False

    # ------------------------------------------------------------------
    # Accessor discovery
    # ------------------------------------------------------------------

    def find_accessors(self, table: StringTable, tokens: Sequence[Token]) -> dict[str, Accessor]:
        """Return the accessor functions bound to *table*, keyed by name."""
        accessors: dict[str, Accessor] = {}

        for i, token in enumerate(tokens):
            header = self._function_header(tokens, i)
            if header is None:
                continue
            name, params_open = header
            if name == table.identifier:
                continue
            params_close = find_matching(tokens, params_open)
            if params_close is None or params_close + 1 >= len(tokens):
                continue
            body_open = params_close + 1
            if not tokens[body_open].is_punct("{"):
                continue
            body_close = find_matching(tokens, body_open)
            if body_close is None:
                continue

            params = [
                t.value for t in tokens[params_open + 1:params_close]
                if t.type is TokenType.IDENTIFIER
            ]
            body = tokens[body_open + 1:body_close]

            offset = self._accessor_shape(params[0], table, body) if params else None
            if offset is None:
                continue
            accessors[name] = Accessor(name=name, offset=offset)
            self.logger.debug(f"Accessor {name} bound to {table.identifier} (offset {offset})")

        return accessors

    def _function_header(self, tokens: Sequence[Token], i: int) -> tuple[str, int] | None:
        """Match ``function NAME (`` or ``var NAME = function (``.

        Returns ``(name, index_of_open_paren)`` or None.
        """
        token = tokens[i]
        if token.is_ident("function") and i + 2 < len(tokens):
            name = tokens[i + 1]
            if self._is_obfuscated_name(name) and tokens[i + 2].is_punct("("):
                prev = tokens[i - 1] if i > 0 else None
                if prev is None or not prev.is_punct("=", "(", ",", ":", "?", "||", "&&"):
                    return name.value, i + 2
            return None
        if token.is_ident(*_DECLARATION_KEYWORDS) and i + 4 < len(tokens):
            name, assign, keyword, paren = tokens[i + 1:i + 5]
            if (
                self._is_obfuscated_name(name)
                and assign.is_punct("=")
                and keyword.is_ident("function")
                and paren.is_punct("(")
            ):
                return name.value, i + 4
        return None

    @staticmethod
    def _integer(token: Token) -> int | None:
        if token.type is not TokenType.NUMBER:
            return None
        try:
            value = parse_number(token.value)
        except LiteralSyntaxError:
            return None
        return value if isinstance(value, int) else None

    @classmethod
    def _accessor_shape(cls, param: str, table: StringTable, body: Sequence[Token]) -> int | None:
        """Return the index offset if *body* is a table accessor, else None.

        Accepted bodies, each optionally preceded by ``p = p - N`` or ``p -= N``::

            return table[p];
            return table[p - N];
            var v = table[p]; return v;
        """
        toks = [t for t in significant(body) if not t.is_punct(";")]
        offset = 0

        if (
            len(toks) >= 5
            and toks[0].is_ident(param)
            and toks[1].is_punct("=")
            and toks[2].is_ident(param)
            and toks[3].is_punct("-")
        ):
            step, toks = cls._integer(toks[4]), toks[5:]
            if step is None:
                return None
            offset = step
        elif len(toks) >= 3 and toks[0].is_ident(param) and toks[1].is_punct("-="):
            step, toks = cls._integer(toks[2]), toks[3:]
            if step is None:
                return None
            offset = step

        local = None
        if (
            len(toks) >= 3
            and toks[0].is_ident(*_DECLARATION_KEYWORDS)
            and toks[1].type is TokenType.IDENTIFIER
            and toks[2].is_punct("=")
        ):
            local, toks = toks[1].value, toks[3:]
        elif toks and toks[0].is_ident("return"):
            toks = toks[1:]
        else:
            return None

        if not (
            len(toks) >= 4
            and toks[0].is_ident(table.identifier)
            and toks[1].is_punct("[")
            and toks[2].is_ident(param)
        ):
            return None
        if toks[3].is_punct("]"):
            rest = toks[4:]
        elif len(toks) >= 6 and toks[3].is_punct("-") and toks[5].is_punct("]"):
            step = cls._integer(toks[4])
            if step is None:
                return None
            offset, rest = offset + step, toks[6:]
        else:
            return None

        if local is None:
            return offset if not rest else None
        if len(rest) == 2 and rest[0].is_ident("return") and rest[1].is_ident(local):
            return offset
        return None

    # ------------------------------------------------------------------
    # Reference inlining
    # ------------------------------------------------------------------

    def _collect_replacements(
        self,
        table: StringTable,
        tokens: Sequence[Token],
        accessors: dict[str, Accessor],
    ) -> list[tuple[int, int, str]]:
        replacements: list[tuple[int, int, str]] = []
        i = 0
        while i < len(tokens):
            token = tokens[i]
            if token.start < table.end or token.type is not TokenType.IDENTIFIER:
                i += 1
                continue

            prev = tokens[i - 1] if i > 0 else None
            nxt = tokens[i + 1] if i + 1 < len(tokens) else None
            if nxt is None or (prev is not None and prev.is_punct(".", "?.")) or (
                prev is not None and prev.is_ident("function")
            ):
                i += 1
                continue

            replacement = None
            if token.value == table.identifier and nxt.is_punct("["):
                replacement = self._resolve_subscript(table, tokens, i)
            elif nxt.is_punct("("):
                accessor = accessors.get(token.value)
                if accessor is None and self.binding == "loose" and self._is_obfuscated_name(token):
                    accessor = Accessor(token.value)
                if accessor is not None:
                    replacement = self._resolve_call(table, tokens, i, accessor)

            if replacement is None:
                i += 1
                continue

            close, text = replacement
            replacements.append((token.start, tokens[close].end, text))
            i = close + 1

        return replacements

    def _resolve_subscript(
        self, table: StringTable, tokens: Sequence[Token], i: int
    ) -> tuple[int, str] | None:
        close = find_matching(tokens, i + 1)
        if close is None:
            return None
        after = tokens[close + 1] if close + 1 < len(tokens) else None
        if after is not None and after.value in _ASSIGNMENT_OPERATORS:
            return None
        try:
            index = evaluate_index(tokens[i + 2:close], canonical_strings=True)
        except LiteralSyntaxError:
            return None
        value = table.lookup(index)
        return None if value is None else (close, render_string(value))

    def _resolve_call(
        self, table: StringTable, tokens: Sequence[Token], i: int, accessor: Accessor
    ) -> tuple[int, str] | None:
        close = find_matching(tokens, i + 1)
        if close is None:
            return None
        args = tokens[i + 2:close]
        if not args or self._has_top_level_comma(args):
            return None
        try:
            index = evaluate_index(args) - accessor.offset
        except LiteralSyntaxError:
            return None
        value = table.lookup(index)
        return None if value is None else (close, render_string(value))

    @staticmethod
    def _has_top_level_comma(tokens: Sequence[Token]) -> bool:
        depth = 0
        for token in tokens:
            if token.is_punct("(", "[", "{"):
                depth += 1
            elif token.is_punct(")", "]", "}"):
                depth -= 1
            elif token.is_punct(",") and depth == 0:
                return True
        return False

    # ------------------------------------------------------------------
    # Entry points
    # ------------------------------------------------------------------

    def apply(self, source: SourceUnit) -> SourceUnit:
        tokens = tokenize(source)

        try:
            table = self.locate_table(source, tokens)
        except UnsupportedStringTableError as e:
            self.logger.warning(f"Skipping string table resolution: {e}")
            self.warnings.append(str(e))
            return source

        if table is None:
            self.logger.debug("No string table found")
            return source

        if self.is_mutated(table, tokens):
            message = (
                f"String table {table.identifier} is modified at runtime; "
                "references left in place"
            )
            self.logger.warning(message)
            self.warnings.append(message)
            return source

        accessors = self.find_accessors(table, tokens)
        replacements = self._collect_replacements(table, tokens, accessors)

        marker = TABLE_MARKER.format(name=table.identifier)
        declaration = table.render()
        if not source[:table.start].rstrip().endswith(marker):
            declaration = f"{marker}\n{declaration}"
        edits = [(table.start, table.end, declaration)] + replacements

        result = source
        for start, end, text in sorted(edits, reverse=True):
            result = result[:start] + text + result[end:]

        self.transformation_count = len(replacements)
        self.logger.info(
            f"Inlined {len(replacements)} reference(s) to string table "
            f"{table.identifier} ({len(table)} entries)"
        )
        return result

    def resolve(self, unit: SourceUnit) -> SourceUnit:
        """Return *unit* with its string table annotated and references inlined."""
        return self.transform(unit).source
