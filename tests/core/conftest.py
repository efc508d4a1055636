"""Shared fixtures for the core workflow tests."""

from __future__ import annotations

import textwrap
from pathlib import Path
from unittest.mock import MagicMock

import pytest

from deobfuscator.core.config import DeobfuscationConfig
from deobfuscator.core.external_tool import ExternalDeobfuscator
from deobfuscator.core.orchestrator import ProgressInfo

OBFUSCATED_SOURCE = 'var _0xabc1 = ["foo", "bar"];\nalert(_0xabc1[1]);\n'

CLEAN_SOURCE = "function add(a, b) {\n  return a + b;\n}\n"


# ---------------------------------------------------------------------------
# Helper functions
# ---------------------------------------------------------------------------

def create_test_file(directory: Path, name: str, content: str = "") -> Path:
    """Create a test file with the given name and content."""
    file_path = directory / name
    file_path.parent.mkdir(parents=True, exist_ok=True)
    file_path.write_text(textwrap.dedent(content), encoding="utf-8")
    return file_path


def assert_state_transition(log_records: list, from_state: str, to_state: str) -> bool:
    """Check that a state transition appears in log records."""
    pattern = f"{from_state} -> {to_state}"
    return any(pattern in record.message for record in log_records)


def copy_to_output(input_path: Path, output_path: Path) -> Path:
    """Stand-in for the external tool: copy the input unchanged."""
    output_path.write_text(input_path.read_text(encoding="utf-8"), encoding="utf-8")
    return output_path


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------

@pytest.fixture
def offline_config() -> DeobfuscationConfig:
    """Config that never starts a subprocess: no external tool, line formatter only."""
    return DeobfuscationConfig(
        name="offline",
        features={
            "string_table": True,
            "dead_code": True,
            "formatting": True,
            "external_tool": False,
        },
        options={"formatter_engines": ["line"]},
    )


@pytest.fixture
def external_config(offline_config: DeobfuscationConfig) -> DeobfuscationConfig:
    """Offline config with the external pass switched on (tool is mocked)."""
    offline_config.features["external_tool"] = True
    return offline_config


@pytest.fixture
def fake_external_tool() -> MagicMock:
    """ExternalDeobfuscator mock that copies its input to the temp path."""
    tool = MagicMock(spec=ExternalDeobfuscator)
    tool.run.side_effect = copy_to_output
    return tool


@pytest.fixture
def sample_dir(tmp_path: Path) -> Path:
    """Directory with two inputs plus artifacts that must be ignored."""
    work = tmp_path / "work"
    create_test_file(work, "a.js", OBFUSCATED_SOURCE)
    create_test_file(work, "b.js", CLEAN_SOURCE)
    create_test_file(work, "oldDeobs.js", "old();\n")
    create_test_file(work, "a.js.2026-01-01T00-00-00-000000.backup", "x();\n")
    create_test_file(work, "notes.txt", "not javascript\n")
    return work


@pytest.fixture
def mock_progress_callback() -> MagicMock:
    """Return a mock function that captures progress updates."""
    callback = MagicMock()
    callback.captured: list[ProgressInfo] = []

    def side_effect(progress_info: ProgressInfo) -> None:
        callback.captured.append(progress_info)

    callback.side_effect = side_effect
    return callback


@pytest.fixture
def obfuscated_source() -> str:
    return OBFUSCATED_SOURCE


@pytest.fixture
def clean_source() -> str:
    return CLEAN_SOURCE
