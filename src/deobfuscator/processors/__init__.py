"""Public API for source processors with lazy imports.

Importing the package does not pull in ``jsbeautifier`` or the tokenizer
until one of the exported names is actually used.
"""

from __future__ import annotations

from importlib import import_module
from typing import Any

_EXPORT_MAP: dict[str, tuple[str, str]] = {
    "SourceTransformer": (
        "deobfuscator.processors.source_transformer",
        "SourceTransformer",
    ),
    "TransformResult": (
        "deobfuscator.processors.source_transformer",
        "TransformResult",
    ),
    "SourceUnit": (
        "deobfuscator.processors.source_transformer",
        "SourceUnit",
    ),
    "Token": (
        "deobfuscator.processors.js_lexer",
        "Token",
    ),
    "TokenType": (
        "deobfuscator.processors.js_lexer",
        "TokenType",
    ),
    "tokenize": (
        "deobfuscator.processors.js_lexer",
        "tokenize",
    ),
    "parse_literal": (
        "deobfuscator.processors.literal_parser",
        "parse_literal",
    ),
    "LiteralSyntaxError": (
        "deobfuscator.processors.literal_parser",
        "LiteralSyntaxError",
    ),
    "StringTable": (
        "deobfuscator.processors.string_table",
        "StringTable",
    ),
    "StringTableResolver": (
        "deobfuscator.processors.string_table",
        "StringTableResolver",
    ),
    "DeadCodeStripper": (
        "deobfuscator.processors.dead_code",
        "DeadCodeStripper",
    ),
    "SourceFormatter": (
        "deobfuscator.processors.formatter",
        "SourceFormatter",
    ),
    "PrettierFormatter": (
        "deobfuscator.processors.formatter",
        "PrettierFormatter",
    ),
    "BeautifierFormatter": (
        "deobfuscator.processors.formatter",
        "BeautifierFormatter",
    ),
    "LineFormatter": (
        "deobfuscator.processors.formatter",
        "LineFormatter",
    ),
}

__all__ = list(_EXPORT_MAP.keys())


def __getattr__(name: str) -> Any:
    """Resolve package exports lazily."""
    target = _EXPORT_MAP.get(name)
    if target is None:
        raise AttributeError(f"module 'deobfuscator.processors' has no attribute {name!r}")

    module_name, attr_name = target
    module = import_module(module_name)
    value = getattr(module, attr_name)
    globals()[name] = value
    return value
