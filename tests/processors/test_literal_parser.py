"""Tests for the literal-only evaluator."""

from __future__ import annotations

import pytest

from deobfuscator.processors.js_lexer import tokenize
from deobfuscator.processors.literal_parser import (
    LiteralSyntaxError,
    coerce_to_number,
    evaluate_index,
    parse_literal,
    parse_number,
    render_literal,
    render_string,
    unescape,
)


class TestParseLiteral:
    """Test evaluation of literal expressions."""

    def test_mixed_array(self):
        """Test strings, numbers, keywords and nested arrays."""
        assert parse_literal("['a', \"b\", 0x2, [true, null]]") == ("a", "b", 2, (True, None))

    def test_empty_array(self):
        assert parse_literal("[]") == ()

    def test_trailing_comma(self):
        """Test that a single trailing comma is accepted."""
        assert parse_literal("['a', 'b',]") == ("a", "b")

    def test_signed_numbers(self):
        assert parse_literal("[-1, +2, 1.5]") == (-1, 2, 1.5)

    def test_template_without_substitution(self):
        assert parse_literal("`plain`") == "plain"

    def test_comments_are_ignored(self):
        assert parse_literal("[/* first */ 'a', // second\n 'b']") == ("a", "b")

    @pytest.mark.parametrize(
        "source",
        [
            "[foo(), 'bar']",
            "['a', b]",
            "`a${b}`",
            "[1,,2]",
            "[1, 2",
            "'unterminated",
            "true.toString",
            "[1] + 1",
            "[010]",
            "-'a'",
        ],
    )
    def test_rejects_non_literals(self, source):
        """Test that anything but literals raises instead of being evaluated."""
        with pytest.raises(LiteralSyntaxError):
            parse_literal(source)

    def test_error_names_offending_token(self):
        with pytest.raises(LiteralSyntaxError, match="Non-literal token 'foo'"):
            parse_literal("[foo(), 'bar']")


class TestEscapes:
    """Test string escape decoding."""

    def test_hex_and_unicode_escapes(self):
        assert parse_literal(r"'\x41\u0042\u{43}\n'") == "ABC\n"

    def test_surrogate_pair_is_combined(self):
        assert parse_literal(r"'\uD83D\uDE00'") == "\U0001F600"

    def test_identity_escape(self):
        assert unescape(r"\q\'") == "q'"

    def test_line_continuation(self):
        assert unescape("a\\\nb") == "ab"

    def test_null_escape(self):
        assert unescape(r"\0") == "\0"

    @pytest.mark.parametrize("body", [r"\x4", r"\u12", r"\u{110000}", r"\1"])
    def test_malformed_escapes(self, body):
        with pytest.raises(LiteralSyntaxError):
            unescape(body)


class TestNumbers:
    """Test numeric literal conversion and Number() coercion."""

    @pytest.mark.parametrize(
        "text, expected",
        [("0x1f", 31), ("1_000", 1000), ("2.5e1", 25.0), ("0b101", 5), ("0o17", 15), ("10n", 10)],
    )
    def test_parse_number(self, text, expected):
        assert parse_number(text) == expected

    def test_parse_number_rejects_legacy_octal(self):
        with pytest.raises(LiteralSyntaxError, match="Legacy octal"):
            parse_number("017")

    @pytest.mark.parametrize(
        "text, expected",
        [("0x10", 16), (" 7 ", 7), ("010", 10), ("-3", -3), ("1e3", 1000.0)],
    )
    def test_coerce_to_number(self, text, expected):
        assert coerce_to_number(text) == expected

    @pytest.mark.parametrize("text", ["", "  ", "abc", "1_0", "-0x1"])
    def test_coerce_rejects_non_numeric(self, text):
        with pytest.raises(LiteralSyntaxError):
            coerce_to_number(text)


class TestEvaluateIndex:
    """Test evaluation of table index expressions."""

    @pytest.mark.parametrize(
        "source, expected",
        [
            ("0x1f", 31),
            ("'3'", 3),
            ("'0x2'", 2),
            ("0x10 - 2", 14),
            ("(1 + 2) * 3", 9),
            ("((4))", 4),
            ("-(-5)", 5),
            ("2.0", 2),
        ],
    )
    def test_literal_expressions(self, source, expected):
        assert evaluate_index(tokenize(source)) == expected

    @pytest.mark.parametrize("source", ["x", "1.5", "f(1)", "1 +", "'one'", "(1"])
    def test_rejects_non_literal_indices(self, source):
        with pytest.raises(LiteralSyntaxError):
            evaluate_index(tokenize(source))

    def test_canonical_string_keys(self):
        """Test that property-style keys must be canonical decimal integers."""
        assert evaluate_index(tokenize("'1'"), canonical_strings=True) == 1
        with pytest.raises(LiteralSyntaxError):
            evaluate_index(tokenize("'01'"), canonical_strings=True)
        with pytest.raises(LiteralSyntaxError):
            evaluate_index(tokenize("' 1'"), canonical_strings=True)

    def test_coerced_string_keys(self):
        """Test that call arguments follow Number() coercion."""
        assert evaluate_index(tokenize("' 1'")) == 1


class TestRendering:
    """Test rendering of values back to JavaScript."""

    def test_render_literal(self):
        assert render_literal(("a", 1, 2.0, True, None, (False,))) == '["a", 1, 2, true, null, [false]]'

    def test_render_string_escapes_quotes(self):
        assert render_string('say "hi"\n') == '"say \\"hi\\"\\n"'

    def test_render_string_keeps_non_ascii(self):
        assert render_string("café") == '"café"'

    def test_render_string_escapes_lone_surrogate(self):
        assert render_string(chr(0xD800) + "x") == '"\\ud800x"'
        render_string(chr(0xD800)).encode("utf-8")
