"""Tests for the OutputWriter class.

Covers:
- Atomic writes and the direct-write fallback
- Permission validation
- Report persistence
- Cleanup of temp files after failed writes
"""

from __future__ import annotations

import json
import os
from pathlib import Path
from unittest.mock import patch

import pytest

from deobfuscator.core.file_processor import ProcessingResult
from deobfuscator.core.orchestrator import BatchReport, JobState
from deobfuscator.core.output_writer import OutputWriter


@pytest.fixture
def writer() -> OutputWriter:
    return OutputWriter()


@pytest.fixture
def report(tmp_path: Path) -> BatchReport:
    report = BatchReport(directory=tmp_path, state=JobState.COMPLETED)
    report.add(ProcessingResult.succeeded(tmp_path / "a.js", tmp_path / "aDeobs.js"))
    report.add(ProcessingResult.failed(tmp_path / "b.js", "External tool not found: deob"))
    return report


class TestWriteFile:
    """Test single file writes."""

    def test_atomic_write(self, writer, tmp_path: Path):
        target = tmp_path / "appDeobs.js"
        result = writer.write_file(target, "alert(1);\n", input_path=tmp_path / "app.js")

        assert result.success
        assert result.was_atomic
        assert result.output_path == target
        assert target.read_text(encoding="utf-8") == "alert(1);\n"
        assert [p.name for p in tmp_path.iterdir()] == ["appDeobs.js"]

    def test_overwrites_existing_output(self, writer, tmp_path: Path):
        target = tmp_path / "appDeobs.js"
        target.write_text("old\n", encoding="utf-8")
        assert writer.write_file(target, "new\n").success
        assert target.read_text(encoding="utf-8") == "new\n"

    def test_creates_parent_directories(self, writer, tmp_path: Path):
        target = tmp_path / "nested" / "dir" / "out.js"
        assert writer.write_file(target, "x;\n").success
        assert target.exists()

    def test_direct_mode(self, tmp_path: Path):
        target = tmp_path / "out.js"
        result = OutputWriter(use_atomic_writes=False).write_file(target, "x;\n")
        assert result.success
        assert result.was_atomic is False

    def test_fallback_to_direct_write(self, writer, tmp_path: Path):
        target = tmp_path / "out.js"
        with patch("deobfuscator.core.output_writer.os.replace", side_effect=OSError("cross-device")):
            result = writer.write_file(target, "x;\n")

        assert result.success
        assert result.was_atomic is False
        assert target.read_text(encoding="utf-8") == "x;\n"
        assert not list(tmp_path.glob(".out.js.*.tmp"))
        assert "falling back to direct write" in result.warning

    def test_both_strategies_fail(self, writer, tmp_path: Path):
        target = tmp_path / "out.js"
        with patch("deobfuscator.core.output_writer.os.replace", side_effect=OSError("no")), patch.object(
            Path, "write_text", side_effect=OSError("disk full")
        ):
            result = writer.write_file(target, "x;\n")

        assert not result.success
        assert "Both atomic and direct writes failed" in result.error
        assert not target.exists()

    @pytest.mark.skipif(os.name == "nt" or (hasattr(os, "geteuid") and os.geteuid() == 0),
                        reason="permission bits are not enforced")
    def test_read_only_target(self, writer, tmp_path: Path):
        target = tmp_path / "locked.js"
        target.write_text("keep\n", encoding="utf-8")
        os.chmod(target, 0o444)
        try:
            result = writer.write_file(target, "x;\n")
        finally:
            os.chmod(target, 0o644)

        assert not result.success
        assert "not writable" in result.error
        assert target.read_text(encoding="utf-8") == "keep\n"

    def test_unencodable_content_fails_cleanly(self, writer, tmp_path: Path):
        """Test that text with a lone surrogate is refused before touching disk."""
        target = tmp_path / "out.js"
        result = writer.write_file(target, "x = '" + chr(0xD800) + "';\n")

        assert not result.success
        assert "cannot be encoded as UTF-8" in result.error
        assert list(tmp_path.iterdir()) == []

    def test_failed_atomic_write_removes_temp_file(self, writer, tmp_path: Path):
        target = tmp_path / "out.js"
        with patch("deobfuscator.core.output_writer.os.fsync", side_effect=OSError("io error")), patch.object(
            Path, "write_text", side_effect=OSError("disk full")
        ):
            result = writer.write_file(target, "x;\n")

        assert not result.success
        assert result.warning
        assert list(tmp_path.iterdir()) == []


class TestWriteReport:
    """Test batch report persistence."""

    def test_text_report(self, writer, report, tmp_path: Path):
        target = tmp_path / "report.txt"
        assert writer.write_report(report, target).success
        text = target.read_text(encoding="utf-8")
        assert "Successfully processed: 1 files" in text
        assert "- b.js: External tool not found: deob" in text

    def test_json_report(self, writer, report, tmp_path: Path):
        target = tmp_path / "report.json"
        assert writer.write_report(report, target, format="json").success
        data = json.loads(target.read_text(encoding="utf-8"))
        assert data["successful"] == ["a.js"]
        assert data["failed"] == ["b.js"]
        assert data["state"] == "completed"

    def test_invalid_format(self, writer, report, tmp_path: Path):
        with pytest.raises(ValueError, match="Invalid report format"):
            writer.write_report(report, tmp_path / "report.xml", format="xml")
