"""Wrapper around the external ``obfuscator-io-deobfuscator`` command.

The external tool performs the primary semantic pass (string array
rotation, control-flow unflattening) that the in-process pipeline does not
attempt.  It is treated as a black box: given an input path it must write a
deobfuscated file to the requested output path.
"""

from __future__ import annotations

import shutil
import subprocess
from pathlib import Path

from deobfuscator.exceptions import ExternalToolError
from deobfuscator.utils.logger import get_logger

logger = get_logger("deobfuscator.core.external_tool")

DEFAULT_COMMAND = "obfuscator-io-deobfuscator"
DEFAULT_TIMEOUT = 60


class ExternalDeobfuscator:
    """Run the external deobfuscator as a subprocess.

    Attributes:
        command: Executable name or path.
        timeout: Seconds before the subprocess is killed.
    """

    def __init__(self, command: str = DEFAULT_COMMAND, timeout: float = DEFAULT_TIMEOUT) -> None:
        self.command = command
        self.timeout = timeout

    def is_available(self) -> bool:
        """Return True when the command can be found on ``PATH``."""
        return shutil.which(self.command) is not None

    def build_command(self, input_path: Path, output_path: Path) -> list[str]:
        return [self.command, str(input_path), "-o", str(output_path)]

    def run(self, input_path: Path, output_path: Path) -> Path:
        """Deobfuscate *input_path* into *output_path*.

        Returns:
            *output_path*, which is guaranteed to exist.

        Raises:
            ExternalToolError: If the command is missing, times out, exits
                non-zero, or does not produce *output_path*.
        """
        args = self.build_command(input_path, output_path)
        logger.debug(f"Running external tool: {' '.join(args)}")

        try:
            completed = subprocess.run(
                args,
                capture_output=True,
                text=True,
                timeout=self.timeout,
                check=False,
            )
        except FileNotFoundError as e:
            raise ExternalToolError(f"External tool not found: {self.command}") from e
        except subprocess.TimeoutExpired as e:
            raise ExternalToolError(
                f"External tool timed out after {self.timeout}s on {input_path.name}"
            ) from e
        except OSError as e:
            raise ExternalToolError(f"Failed to start external tool: {e}") from e

        if completed.returncode != 0:
            detail = (completed.stderr or completed.stdout or "").strip().splitlines()
            reason = detail[-1] if detail else "no output"
            raise ExternalToolError(
                f"External tool exited with code {completed.returncode} "
                f"on {input_path.name}: {reason}"
            )

        if not output_path.is_file():
            raise ExternalToolError(
                f"External tool did not produce {output_path.name}"
            )

        logger.debug(f"External tool wrote {output_path}")
        return output_path
