"""Tests for the formatter chain.

prettier is never executed: ``shutil.which`` and ``subprocess.run`` are
patched so the tests behave the same with or without Node installed.
"""

from __future__ import annotations

import logging
import subprocess
from unittest.mock import patch

import pytest

from deobfuscator.exceptions import FormatError
from deobfuscator.processors.formatter import (
    BeautifierFormatter,
    LineFormatter,
    PrettierFormatter,
    SourceFormatter,
    build_chain,
)

WHICH = "deobfuscator.processors.formatter.shutil.which"
RUN = "deobfuscator.processors.formatter.subprocess.run"


def _completed(returncode: int = 0, stdout: str = "", stderr: str = "") -> subprocess.CompletedProcess:
    return subprocess.CompletedProcess(args=["prettier"], returncode=returncode, stdout=stdout, stderr=stderr)


@pytest.fixture
def line_formatter() -> LineFormatter:
    return LineFormatter(indent_size=2)


class TestLineFormatter:
    """Test the fallback line formatter."""

    def test_function_body(self, line_formatter):
        assert line_formatter.format("function f(){return 1;}") == "function f() {\n  return 1;\n}\n"

    def test_else_joins_closing_brace(self, line_formatter):
        assert line_formatter.format("if(a){b();}else{c();}") == (
            "if(a) {\n  b();\n} else {\n  c();\n}\n"
        )

    def test_for_header_is_not_split(self, line_formatter):
        output = line_formatter.format("for(var i=0;i<n;i++){x();}")
        assert output.startswith("for(var i=0;i<n;i++) {\n")

    def test_case_labels_on_own_line(self, line_formatter):
        output = line_formatter.format("switch(x){case 1:a();break;default:b();}")
        assert output.startswith("switch (x) {\n  case 1:\n")
        assert "\n  default:\n" in output

    def test_ternary_inside_case_keeps_label(self, line_formatter):
        output = line_formatter.format("switch(x){case a?1:2:y();}")
        assert "  case a?1:2:\n  y();\n" in output

    def test_blank_line_runs_collapse(self, line_formatter):
        assert line_formatter.format("a();\n\n\n\nb();") == "a();\n\nb();\n"

    def test_trailing_comment_stays_on_line(self, line_formatter):
        assert line_formatter.format("a(); // note\nb();") == "a(); // note\nb();\n"

    def test_empty_input(self, line_formatter):
        assert line_formatter.format("") == ""
        assert line_formatter.format("   \n") == "\n"

    def test_custom_indent(self):
        assert LineFormatter(indent_size=4).format("{a();}") == "{\n    a();\n}\n"

    def test_unbalanced_input_terminates(self, line_formatter):
        """Test that broken input still yields non-empty output."""
        output = line_formatter.format("function f() {")
        assert output.strip() == "function f() {"

    @pytest.mark.parametrize(
        "source",
        [
            "function f(){return 1;}",
            "switch(x){case 1:a();break;default:b();}",
            "if(a){b();}else{c();}\n\n\nd();",
            "var o = {a: 1, b: [1, 2]}; // done",
            "try{a();}catch(e){}finally{b();}",
        ],
    )
    def test_idempotent(self, line_formatter, source):
        once = line_formatter.format(source)
        assert line_formatter.format(once) == once


class TestBeautifierFormatter:
    """Test the jsbeautifier engine."""

    def test_formats_balanced_source(self):
        output = BeautifierFormatter(indent_size=2).format("function f(){return 1;}")
        assert "  return 1;" in output
        assert output.endswith("\n")

    def test_refuses_unbalanced_source(self):
        with pytest.raises(FormatError, match="Unbalanced"):
            BeautifierFormatter().format("function f() {")


class TestPrettierFormatter:
    """Test the prettier subprocess engine with the process mocked."""

    def test_missing_executable(self):
        with patch(WHICH, return_value=None):
            with pytest.raises(FormatError, match="not found"):
                PrettierFormatter().format("a();")

    def test_success_pipes_source_through_stdin(self):
        with patch(WHICH, return_value="/usr/bin/prettier"), patch(
            RUN, return_value=_completed(stdout="a();\n")
        ) as run:
            assert PrettierFormatter(timeout=5).format("a()") == "a();\n"

        args = run.call_args.args[0]
        assert args[0] == "/usr/bin/prettier"
        assert "--stdin-filepath" in args
        assert run.call_args.kwargs["input"] == "a()"
        assert run.call_args.kwargs["timeout"] == 5

    def test_timeout(self):
        with patch(WHICH, return_value="/usr/bin/prettier"), patch(
            RUN, side_effect=subprocess.TimeoutExpired(cmd="prettier", timeout=5)
        ):
            with pytest.raises(FormatError, match="timed out"):
                PrettierFormatter(timeout=5).format("a();")

    def test_non_zero_exit(self):
        with patch(WHICH, return_value="/usr/bin/prettier"), patch(
            RUN, return_value=_completed(returncode=2, stderr="SyntaxError: Unexpected token (1:5)\nmore")
        ):
            with pytest.raises(FormatError, match="rejected the input: SyntaxError"):
                PrettierFormatter().format("a(;")

    def test_empty_output(self):
        with patch(WHICH, return_value="/usr/bin/prettier"), patch(RUN, return_value=_completed()):
            with pytest.raises(FormatError, match="no output"):
                PrettierFormatter().format("a();")


class TestChain:
    """Test engine selection and fallback."""

    def test_build_chain_always_ends_with_line(self):
        chain = build_chain(["line", "jsbeautifier"])
        assert [engine.name for engine in chain] == ["jsbeautifier", "line"]
        assert [engine.name for engine in build_chain([])] == ["line"]

    def test_build_chain_rejects_unknown_engine(self):
        with pytest.raises(ValueError, match="Unknown formatter engine"):
            build_chain(["clang-format"])

    def test_prettier_used_when_available(self):
        formatter = SourceFormatter()
        with patch(WHICH, return_value="/usr/bin/prettier"), patch(
            RUN, return_value=_completed(stdout="a();\n")
        ):
            result = formatter.transform("a()")
        assert result.source == "a();\n"
        assert formatter.engine_used == "prettier"
        assert result.transformation_count == 1

    def test_falls_back_to_beautifier(self):
        formatter = SourceFormatter()
        with patch(WHICH, return_value=None):
            result = formatter.transform("function f(){return 1;}")
        assert result.success
        assert formatter.engine_used == "jsbeautifier"
        assert any(w.startswith("prettier:") for w in result.warnings)

    def test_fallback_engine_is_logged_at_info(self, caplog):
        formatter = SourceFormatter()
        with caplog.at_level(logging.INFO, logger="deobfuscator.processors.formatter"), patch(
            WHICH, return_value=None
        ):
            formatter.transform("function f(){return 1;}")
        messages = [r.getMessage() for r in caplog.records if r.levelno == logging.INFO]
        assert any(
            "Formatted with jsbeautifier instead of prettier" in m and "single quotes" in m
            for m in messages
        )

    def test_first_engine_is_not_logged_at_info(self, caplog):
        formatter = SourceFormatter(engines=["jsbeautifier"])
        with caplog.at_level(logging.INFO, logger="deobfuscator.processors.formatter"):
            formatter.transform("a();")
        assert formatter.engine_used == "jsbeautifier"
        assert not [r for r in caplog.records if r.levelno == logging.INFO]

    def test_falls_back_to_line_on_unbalanced_input(self):
        formatter = SourceFormatter()
        with patch(WHICH, return_value=None):
            result = formatter.transform("function f() {")
        assert result.success
        assert formatter.engine_used == "line"
        assert result.source == "function f() {\n"
        assert len(result.warnings) == 2

    def test_unexpected_engine_error_falls_back(self):
        formatter = SourceFormatter(engines=["jsbeautifier"])
        with patch.object(BeautifierFormatter, "format", side_effect=RuntimeError("boom")):
            result = formatter.transform("a();")
        assert formatter.engine_used == "line"
        assert result.source == "a();\n"
        assert result.warnings == ["jsbeautifier: boom"]
