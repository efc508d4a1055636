"""Canonical formatting of deobfuscated JavaScript.

Formatting is a chain of engines tried in order until one succeeds:

1. :class:`PrettierFormatter` runs the ``prettier`` command line tool.
2. :class:`BeautifierFormatter` uses the ``jsbeautifier`` library.
3. :class:`LineFormatter` is a line-oriented normaliser that never fails.

Each engine exposes ``format(unit) -> unit`` and signals that it cannot
handle the input by raising :class:`FormatError`.  :class:`SourceFormatter`
walks the chain and always returns something.
"""

from __future__ import annotations

import shutil
import subprocess
from typing import Iterable, Protocol

import jsbeautifier

from deobfuscator.exceptions import FormatError
from deobfuscator.processors.js_lexer import (
    CLOSERS,
    OPENERS,
    Token,
    TokenType,
    is_balanced,
    tokenize,
)
from deobfuscator.processors.source_transformer import SourceTransformer, SourceUnit
from deobfuscator.utils.logger import get_logger

logger = get_logger("deobfuscator.processors.formatter")

DEFAULT_ENGINES = ("prettier", "jsbeautifier")

PRETTIER_STYLE_ARGS = (
    "--semi",
    "--single-quote",
    "--trailing-comma", "es5",
    "--bracket-spacing",
    "--arrow-parens", "avoid",
)


class Formatter(Protocol):
    name: str

    def format(self, unit: SourceUnit) -> SourceUnit:
        ...


class PrettierFormatter:
    """Format through the ``prettier`` executable, reading from stdin."""

    name = "prettier"

    def __init__(self, command: str = "prettier", timeout: float = 30) -> None:
        self.command = command
        self.timeout = timeout

    def format(self, unit: SourceUnit) -> SourceUnit:
        executable = shutil.which(self.command)
        if executable is None:
            raise FormatError(f"Formatter executable not found: {self.command}")

        args = [executable, "--stdin-filepath", "input.js", *PRETTIER_STYLE_ARGS]
        logger.debug(f"Running formatter: {' '.join(args)}")
        try:
            completed = subprocess.run(
                args,
                input=unit,
                capture_output=True,
                text=True,
                encoding="utf-8",
                timeout=self.timeout,
                check=False,
            )
        except subprocess.TimeoutExpired as e:
            raise FormatError(f"prettier timed out after {self.timeout}s") from e
        except OSError as e:
            raise FormatError(f"Failed to run prettier: {e}") from e

        if completed.returncode != 0:
            detail = (completed.stderr or "").strip().splitlines()
            reason = detail[0] if detail else f"exit code {completed.returncode}"
            raise FormatError(f"prettier rejected the input: {reason}")

        output = completed.stdout
        if unit.strip() and not output.strip():
            raise FormatError("prettier produced no output")
        return output


class BeautifierFormatter:
    """Format with :mod:`jsbeautifier` after checking bracket balance.

    jsbeautifier happily re-indents broken input into something misleading,
    so unbalanced sources are refused up front.
    """

    name = "jsbeautifier"

    def __init__(self, indent_size: int = 2) -> None:
        self.indent_size = indent_size

    def _options(self):
        options = jsbeautifier.default_options()
        options.indent_size = self.indent_size
        options.preserve_newlines = True
        options.max_preserve_newlines = 2
        options.end_with_newline = True
        return options

    def format(self, unit: SourceUnit) -> SourceUnit:
        if not is_balanced(tokenize(unit)):
            raise FormatError("Unbalanced brackets or unterminated literal")
        return jsbeautifier.beautify(unit, self._options())


class _LineBuilder:
    """Accumulates tokens into indented output lines."""

    def __init__(self, indent_size: int) -> None:
        self.indent_size = indent_size
        self.lines: list[str] = []
        self.parts: list[str] = []
        self.line_depth = 0

    def emit(self, text: str, depth: int, space: bool) -> None:
        if not self.parts:
            self.line_depth = max(0, depth - 1) if text in CLOSERS else depth
        elif space:
            self.parts.append(" ")
        self.parts.append(text)

    def break_line(self) -> None:
        if self.parts:
            indent = " " * (self.indent_size * self.line_depth)
            self.lines.append(indent + "".join(self.parts))
            self.parts = []

    def blank_line(self) -> None:
        self.break_line()
        if self.lines and self.lines[-1] != "":
            self.lines.append("")

    def result(self) -> str:
        self.break_line()
        while self.lines and self.lines[-1] == "":
            self.lines.pop()
        return "\n".join(self.lines) + "\n"


class LineFormatter:
    """Line-oriented normaliser used when no real formatter is available.

    Breaks lines after ``{``, ``}`` and ``;`` (but not inside ``for (;;)``
    headers), puts ``case``/``default`` labels on their own lines, indents
    every line by bracket depth, and collapses runs of blank lines.  Running
    it on its own output returns the same text.
    """

    name = "line"

    # Tokens that may follow "}" on the same line
    _JOINS_AFTER_BRACE = (";", ",", ")", "]", ".", "?.")
    _JOINING_KEYWORDS = ("else", "catch", "finally")
    _LABEL_CONTEXT = ("{", "}", ";", ":")

    def __init__(self, indent_size: int = 2) -> None:
        self.indent_size = indent_size

    def format(self, unit: SourceUnit) -> SourceUnit:
        if not unit.strip():
            return "\n" if unit else ""

        tokens = tokenize(unit, include_comments=True)
        builder = _LineBuilder(self.indent_size)
        stack: list[str] = []
        case_depth: int | None = None
        ternaries = 0
        pending_break = False
        prev: Token | None = None

        for index, token in enumerate(tokens):
            nxt = tokens[index + 1] if index + 1 < len(tokens) else None
            gap = unit[prev.end:token.start] if prev is not None else ""
            newlines = gap.count("\n")

            if pending_break:
                pending_break = False
                if token.type is TokenType.COMMENT and newlines == 0:
                    # Keep a trailing comment on the line it annotates
                    builder.emit(token.value, len(stack), True)
                    builder.break_line()
                    prev = token
                    continue
                builder.break_line()

            if newlines >= 2:
                builder.blank_line()
            elif newlines:
                builder.break_line()

            is_label = (
                (token.is_ident("case") or (token.is_ident("default") and nxt is not None and nxt.is_punct(":")))
                and (prev is None or prev.is_punct(*self._LABEL_CONTEXT))
            )
            if token.is_punct("}") and not (prev is not None and prev.is_punct("{")):
                builder.break_line()
            elif is_label:
                builder.break_line()

            space = bool(gap)
            ends_label = (
                token.is_punct(":") and case_depth == len(stack) and ternaries == 0
            )
            if ends_label:
                space = False
            elif prev is not None and (
                prev.is_ident("switch", "case")
                or (prev.is_punct(")") and token.is_punct("{"))
                or (prev.is_punct("}") and token.is_ident(*self._JOINING_KEYWORDS))
                or (prev.is_ident("else", "try", "finally", "do") and token.is_punct("{"))
            ):
                space = True

            builder.emit(token.value, len(stack), space)

            if token.type is TokenType.PUNCTUATOR:
                if token.value in OPENERS:
                    stack.append(token.value)
                elif token.value in CLOSERS and stack:
                    stack.pop()

            if is_label:
                case_depth = len(stack)
                ternaries = 0
            elif case_depth is not None and case_depth == len(stack):
                if token.is_punct("?"):
                    ternaries += 1
                elif token.is_punct(":"):
                    if ternaries:
                        ternaries -= 1
                    else:
                        case_depth = None
                        pending_break = True

            if token.is_punct("{"):
                pending_break = not (nxt is not None and nxt.is_punct("}"))
            elif token.is_punct("}"):
                pending_break = not (
                    nxt is not None
                    and (nxt.is_punct(*self._JOINS_AFTER_BRACE) or nxt.is_ident(*self._JOINING_KEYWORDS))
                )
            elif token.is_punct(";"):
                pending_break = not stack or stack[-1] != "("

            prev = token

        return builder.result()


def build_chain(
    engines: Iterable[str] = DEFAULT_ENGINES,
    indent_size: int = 2,
    prettier_command: str = "prettier",
    timeout: float = 30,
) -> list[Formatter]:
    """Instantiate the named engines, always ending with the line formatter.

    Raises:
        ValueError: If an engine name is unknown.
    """
    chain: list[Formatter] = []
    for engine in engines:
        if engine == PrettierFormatter.name:
            chain.append(PrettierFormatter(prettier_command, timeout))
        elif engine == BeautifierFormatter.name:
            chain.append(BeautifierFormatter(indent_size))
        elif engine == LineFormatter.name:
            continue
        else:
            raise ValueError(f"Unknown formatter engine: {engine}")
    chain.append(LineFormatter(indent_size))
    return chain


class SourceFormatter(SourceTransformer):
    """Format a source unit with the first engine in the chain that succeeds.

    Attributes:
        chain: Formatter engines in the order they are tried.
        engine_used: Name of the engine that produced the last result.
    """

    name = "formatting"

    def __init__(
        self,
        engines: Iterable[str] = DEFAULT_ENGINES,
        indent_size: int = 2,
        prettier_command: str = "prettier",
        timeout: float = 30,
    ) -> None:
        super().__init__()
        self.logger = logger
        self.chain = build_chain(engines, indent_size, prettier_command, timeout)
        self.engine_used: str | None = None

    def apply(self, source: SourceUnit) -> SourceUnit:
        self.engine_used = None
        for engine in self.chain:
            try:
                formatted = engine.format(source)
            except FormatError as e:
                self.logger.warning(f"{engine.name} unavailable, falling back: {e}")
                self.warnings.append(f"{engine.name}: {e}")
                continue
            except Exception as e:
                self.logger.warning(
                    f"{engine.name} raised {e.__class__.__name__}, falling back: {e}"
                )
                self.warnings.append(f"{engine.name}: {e}")
                continue

            self.engine_used = engine.name
            if formatted != source:
                self.transformation_count = 1
            if engine is self.chain[0]:
                self.logger.debug(f"Formatted with {engine.name}")
            else:
                message = f"Formatted with {engine.name} instead of {self.chain[0].name}"
                if self.chain[0].name == PrettierFormatter.name:
                    message += (
                        "; prettier style options (single quotes, trailing commas,"
                        " arrow parens) were not applied"
                    )
                self.logger.info(message)
            return formatted

        return source

    def format(self, unit: SourceUnit) -> SourceUnit:
        """Return *unit* formatted. Never raises."""
        return self.transform(unit).source
