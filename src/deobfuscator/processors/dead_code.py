"""Dead code removal for obfuscator-inserted noise.

The stripper recognises three exact idioms and nothing else:

* branches guarded by ``false`` or ``!1`` (``if (false) { ... }``),
* statement-level empty function declarations (``function _0x1() {}``),
* ``console.clear()`` calls.

Blocks are delimited structurally with the tokenizer's bracket matching, so
nested blocks and braces inside strings never truncate a removal.  No
general constant folding is attempted: ``if (0)`` or ``if (1 > 2)`` are left
alone.
"""

from __future__ import annotations

from typing import Callable, Sequence

from deobfuscator.processors.js_lexer import Token, TokenType, find_matching, tokenize
from deobfuscator.processors.source_transformer import SourceTransformer, SourceUnit
from deobfuscator.utils.logger import get_logger

logger = get_logger("deobfuscator.processors.dead_code")

Edit = tuple[int, int, str]

# Tokens after which a removed statement must be replaced by an empty one
_NEEDS_EMPTY_STATEMENT = (")", "else", "do", ":")
_STATEMENT_BOUNDARIES = (";", "{", "}")
_DECLARATION_PREFIXES = frozenset({"async", "export", "default"})


def _is_false_guard(guard: Sequence[Token]) -> bool:
    if len(guard) == 1:
        return guard[0].is_ident("false")
    if len(guard) == 2:
        return guard[0].is_punct("!") and guard[1].type is TokenType.NUMBER and guard[1].value == "1"
    return False


def _needs_placeholder(prev: Token | None) -> bool:
    return prev is not None and prev.value in _NEEDS_EMPTY_STATEMENT


def _at_statement_start(prev: Token | None, current: Token) -> bool:
    if prev is None or prev.is_punct(*_STATEMENT_BOUNDARIES):
        return True
    if current.newline_before and prev.type in (TokenType.IDENTIFIER, TokenType.NUMBER, TokenType.STRING):
        return prev.value not in _DECLARATION_PREFIXES and prev.value not in ("return", "throw")
    return current.newline_before and prev.is_punct("]")


class DeadCodeStripper(SourceTransformer):
    """Remove provably unreachable branches and obfuscator no-op stubs.

    Args:
        strip_dead_branches: Remove ``if (false)`` / ``if (!1)`` blocks.
        strip_empty_functions: Remove empty zero-parameter function declarations.
        strip_console_clear: Remove ``console.clear()`` calls.
        max_passes: Upper bound on passes used to reach a fixed point.
    """

    name = "dead_code"

    def __init__(
        self,
        strip_dead_branches: bool = True,
        strip_empty_functions: bool = True,
        strip_console_clear: bool = True,
        max_passes: int = 10,
    ) -> None:
        super().__init__()
        self.logger = logger
        self.max_passes = max_passes
        self.rules: list[Callable[[Sequence[Token]], list[Edit]]] = []
        if strip_dead_branches:
            self.rules.append(self._dead_branches)
        if strip_empty_functions:
            self.rules.append(self._empty_functions)
        if strip_console_clear:
            self.rules.append(self._console_clear)

    # ------------------------------------------------------------------
    # Rules
    # ------------------------------------------------------------------

    def _dead_branches(self, tokens: Sequence[Token]) -> list[Edit]:
        edits: list[Edit] = []
        i = 0
        while i < len(tokens):
            token = tokens[i]
            prev = tokens[i - 1] if i > 0 else None
            if not token.is_ident("if") or i + 1 >= len(tokens) or not tokens[i + 1].is_punct("("):
                i += 1
                continue
            if prev is not None and prev.is_punct(".", "?."):
                i += 1
                continue

            guard_close = find_matching(tokens, i + 1)
            if guard_close is None or not _is_false_guard(tokens[i + 2:guard_close]):
                i += 1
                continue

            body_open = guard_close + 1
            if body_open >= len(tokens) or not tokens[body_open].is_punct("{"):
                i += 1
                continue
            body_close = find_matching(tokens, body_open)
            if body_close is None:
                i += 1
                continue

            following = tokens[body_close + 1] if body_close + 1 < len(tokens) else None
            if following is not None and following.is_ident("else"):
                # The else branch becomes a plain statement
                edits.append((token.start, following.end, ""))
            else:
                placeholder = "{}" if _needs_placeholder(prev) else ""
                edits.append((token.start, tokens[body_close].end, placeholder))
            i = body_close + 1
        return edits

    def _empty_functions(self, tokens: Sequence[Token]) -> list[Edit]:
        edits: list[Edit] = []
        for i in range(len(tokens) - 5):
            keyword, name, lparen, rparen, lbrace, rbrace = tokens[i:i + 6]
            if not (
                keyword.is_ident("function")
                and name.type is TokenType.IDENTIFIER
                and lparen.is_punct("(")
                and rparen.is_punct(")")
                and lbrace.is_punct("{")
                and rbrace.is_punct("}")
            ):
                continue
            prev = tokens[i - 1] if i > 0 else None
            if prev is not None and prev.value in _DECLARATION_PREFIXES:
                continue
            if not (prev is None or prev.is_punct(*_STATEMENT_BOUNDARIES)):
                continue
            edits.append((keyword.start, rbrace.end, ""))
        return edits

    def _console_clear(self, tokens: Sequence[Token]) -> list[Edit]:
        edits: list[Edit] = []
        for i in range(len(tokens) - 4):
            console, dot, clear, lparen, rparen = tokens[i:i + 5]
            if not (
                console.is_ident("console")
                and dot.is_punct(".")
                and clear.is_ident("clear")
                and lparen.is_punct("(")
                and rparen.is_punct(")")
            ):
                continue
            prev = tokens[i - 1] if i > 0 else None
            if prev is not None and prev.is_punct(".", "?."):
                continue

            end = rparen.end
            following = tokens[i + 5] if i + 5 < len(tokens) else None
            if following is not None and following.is_punct(";"):
                end = following.end
            elif following is not None and not (
                following.newline_before or following.is_punct("}")
            ):
                # Part of a larger expression
                continue

            if _needs_placeholder(prev):
                edits.append((console.start, end, ";"))
            elif _at_statement_start(prev, console):
                edits.append((console.start, end, ""))
        return edits

    # ------------------------------------------------------------------
    # Entry points
    # ------------------------------------------------------------------

    @staticmethod
    def _apply_edits(source: SourceUnit, edits: list[Edit]) -> SourceUnit:
        for start, end, text in sorted(edits, reverse=True):
            source = source[:start] + text + source[end:]
        return source

    def apply(self, source: SourceUnit) -> SourceUnit:
        current = source
        for pass_number in range(1, self.max_passes + 1):
            changed = False
            for rule in self.rules:
                edits = rule(tokenize(current))
                if edits:
                    current = self._apply_edits(current, edits)
                    self.transformation_count += len(edits)
                    changed = True
            if not changed:
                break
            self.logger.debug(f"Dead code pass {pass_number}: source changed")
        else:
            self.logger.warning(
                f"Dead code removal did not converge after {self.max_passes} passes"
            )

        if self.transformation_count:
            self.logger.info(f"Removed {self.transformation_count} dead code construct(s)")
        return current

    def strip(self, unit: SourceUnit) -> SourceUnit:
        """Return *unit* with recognised dead code removed."""
        return self.transform(unit).source
