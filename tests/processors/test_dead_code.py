"""Tests for DeadCodeStripper."""

from __future__ import annotations

import pytest

from deobfuscator.processors.dead_code import DeadCodeStripper


@pytest.fixture
def stripper() -> DeadCodeStripper:
    return DeadCodeStripper()


class TestDeadBranches:
    """Test removal of branches guarded by a false literal."""

    def test_if_false_block(self, stripper):
        assert stripper.strip("if (false) { a(); }\nb();") == "\nb();"

    def test_if_not_one_block(self, stripper):
        assert stripper.strip("if (!1) { a(); }") == ""

    def test_nested_braces_and_strings(self, stripper):
        """Test that the whole block goes, including braces in strings."""
        source = 'if (false) { if (x) { y("}"); } }\nz();'
        assert stripper.strip(source) == "\nz();"

    def test_else_branch_is_kept(self, stripper):
        assert stripper.strip("if (false) { a(); } else { b(); }") == " { b(); }"

    def test_placeholder_keeps_statement_valid(self, stripper):
        """Test that a removed branch under another guard becomes an empty block."""
        assert stripper.strip("if (x) if (false) { a(); }\nb();") == "if (x) {}\nb();"

    @pytest.mark.parametrize(
        "source",
        [
            "if (false) a();",
            "if (0) { a(); }",
            "if (1 > 2) { a(); }",
            "if (false || x) { a(); }",
            "obj.if(false) { }",
            "if (false) { a();",
        ],
    )
    def test_other_guards_are_untouched(self, stripper, source):
        assert stripper.strip(source) == source

    def test_transformation_count(self, stripper):
        result = stripper.transform("if (false) { a(); }")
        assert result.success
        assert result.transformation_count == 1


class TestEmptyFunctions:
    """Test removal of empty no-op function declarations."""

    def test_empty_declaration(self, stripper):
        assert stripper.strip("function _0x1a() {}\nfoo();") == "\nfoo();"

    @pytest.mark.parametrize(
        "source",
        [
            "function f(a) {}",
            "export function f() {}",
            "var f = function g() {};",
            "async function f() {}",
            "function f() { return 1; }",
        ],
    )
    def test_other_functions_are_untouched(self, stripper, source):
        assert stripper.strip(source) == source


class TestConsoleClear:
    """Test removal of console.clear() calls."""

    def test_statement(self, stripper):
        assert stripper.strip("console.clear();\nfoo();") == "\nfoo();"

    def test_under_guard_becomes_empty_statement(self, stripper):
        assert stripper.strip("if (x) console.clear();") == "if (x) ;"

    @pytest.mark.parametrize(
        "source",
        [
            "x = console.clear();",
            "window.console.clear();",
            "console.clear(1);",
            "console.clear().then(f);",
        ],
    )
    def test_other_uses_are_untouched(self, stripper, source):
        assert stripper.strip(source) == source


class TestFixedPoint:
    """Test repeated passes and rule switches."""

    def test_removal_exposes_more_dead_code(self, stripper):
        """Test that clearing a body lets the empty function go too."""
        result = stripper.transform("function f() { console.clear(); }")
        assert result.source.strip() == ""
        assert result.transformation_count == 2

    def test_idempotent(self, stripper):
        source = "if (false) { a(); }\nfunction _0x1() {}\nconsole.clear();\nkeep();\n"
        once = stripper.strip(source)
        assert stripper.strip(once) == once
        assert once.strip() == "keep();"

    def test_rules_can_be_disabled(self):
        stripper = DeadCodeStripper(strip_console_clear=False, strip_empty_functions=False)
        source = "console.clear();\nfunction f() {}\nif (false) { a(); }"
        assert stripper.strip(source) == "console.clear();\nfunction f() {}\n"

    def test_max_passes_bounds_work(self):
        """Test that a single pass leaves exposed dead code for later."""
        stripper = DeadCodeStripper(max_passes=1)
        assert stripper.strip("function f() { console.clear(); }") == "function f() {  }"
