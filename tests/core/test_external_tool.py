"""Tests for the external deobfuscator wrapper (subprocess mocked)."""

from __future__ import annotations

import subprocess
from pathlib import Path
from unittest.mock import patch

import pytest

from deobfuscator.core.external_tool import ExternalDeobfuscator
from deobfuscator.exceptions import ExternalToolError

RUN = "deobfuscator.core.external_tool.subprocess.run"


@pytest.fixture
def paths(tmp_path: Path) -> tuple[Path, Path]:
    source = tmp_path / "app.js"
    source.write_text("a();\n", encoding="utf-8")
    return source, tmp_path / "app.js.temp.js"


def _completed(returncode: int = 0, stdout: str = "", stderr: str = "") -> subprocess.CompletedProcess:
    return subprocess.CompletedProcess(args=[], returncode=returncode, stdout=stdout, stderr=stderr)


class TestExternalDeobfuscator:
    """Test command construction and failure mapping."""

    def test_build_command(self, paths):
        source, temp = paths
        tool = ExternalDeobfuscator(command="deob")
        assert tool.build_command(source, temp) == ["deob", str(source), "-o", str(temp)]

    def test_is_available(self):
        with patch("deobfuscator.core.external_tool.shutil.which", return_value=None):
            assert ExternalDeobfuscator().is_available() is False
        with patch("deobfuscator.core.external_tool.shutil.which", return_value="/bin/deob"):
            assert ExternalDeobfuscator().is_available() is True

    def test_success(self, paths):
        source, temp = paths

        def fake_run(args, **kwargs):
            Path(args[-1]).write_text("b();\n", encoding="utf-8")
            return _completed()

        with patch(RUN, side_effect=fake_run) as run:
            assert ExternalDeobfuscator(timeout=7).run(source, temp) == temp

        assert temp.read_text(encoding="utf-8") == "b();\n"
        assert run.call_args.kwargs["timeout"] == 7
        assert run.call_args.kwargs["check"] is False

    def test_missing_binary(self, paths):
        with patch(RUN, side_effect=FileNotFoundError("deob")):
            with pytest.raises(ExternalToolError, match="not found"):
                ExternalDeobfuscator(command="deob").run(*paths)

    def test_timeout(self, paths):
        with patch(RUN, side_effect=subprocess.TimeoutExpired(cmd="deob", timeout=1)):
            with pytest.raises(ExternalToolError, match="timed out after 1s on app.js"):
                ExternalDeobfuscator(timeout=1).run(*paths)

    def test_other_os_error(self, paths):
        with patch(RUN, side_effect=PermissionError("denied")):
            with pytest.raises(ExternalToolError, match="Failed to start"):
                ExternalDeobfuscator().run(*paths)

    def test_non_zero_exit(self, paths):
        with patch(RUN, return_value=_completed(returncode=1, stderr="parse\nSyntaxError: bad\n")):
            with pytest.raises(ExternalToolError, match="exited with code 1 on app.js: SyntaxError: bad"):
                ExternalDeobfuscator().run(*paths)

    def test_missing_output(self, paths):
        with patch(RUN, return_value=_completed()):
            with pytest.raises(ExternalToolError, match="did not produce app.js.temp.js"):
                ExternalDeobfuscator().run(*paths)
