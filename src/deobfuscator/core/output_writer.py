"""Output writer module for atomic file writing.

This module provides the ``OutputWriter`` class that performs every write
of deobfuscated output.  Content goes to a temporary file in the target
directory which is then renamed over the destination, so a reader never
observes a half-written output and a failed write leaves nothing behind.
The writer also persists batch reports.

Example::

    from pathlib import Path
    from deobfuscator.core.output_writer import OutputWriter

    writer = OutputWriter()
    result = writer.write_file(Path("work/appDeobs.js"), "alert(1);\\n")
    if result.success:
        print(f"Written to {result.output_path}")
"""

from __future__ import annotations

import os
import tempfile
from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING

from deobfuscator.utils.logger import get_logger
from deobfuscator.utils.path_utils import ensure_directory, is_writable

if TYPE_CHECKING:
    from deobfuscator.core.orchestrator import BatchReport

VALID_REPORT_FORMATS = ("text", "json")


@dataclass
class WriteResult:
    """Result of a single file write operation.

    Attributes:
        success: Whether the write operation succeeded.
        output_path: Path the file was written to, or ``None`` on failure.
        original_path: The requested output path.
        error: Human-readable error message if the write failed.
        was_atomic: ``True`` if the temp-file + rename strategy was used,
            ``False`` if it fell back to a direct write.
        warning: Set when the atomic strategy failed and the direct write
            was used instead.
    """

    success: bool
    output_path: Path | None
    original_path: Path
    error: str | None = None
    was_atomic: bool = False
    warning: str | None = None


class OutputWriter:
    """File writer with atomic replace and a direct-write fallback.

    Args:
        use_atomic_writes: If ``True`` (default), use temp-file + rename and
            fall back to a direct write when that fails.
    """

    def __init__(self, use_atomic_writes: bool = True) -> None:
        self._logger = get_logger("deobfuscator.core.output_writer")
        self.use_atomic_writes = use_atomic_writes

    # ------------------------------------------------------------------
    # Low-level writers
    # ------------------------------------------------------------------

    def _write_atomic(self, output_path: Path, content: str) -> None:
        """Write *content* to a sibling temp file, fsync, then rename.

        The temp file is removed whenever the rename did not happen.

        Raises:
            OSError: On file-system errors.
        """
        ensure_directory(output_path.parent)
        temp_path: str | None = None

        try:
            fd = tempfile.NamedTemporaryFile(
                mode="w",
                encoding="utf-8",
                delete=False,
                dir=str(output_path.parent),
                prefix=f".{output_path.name}.",
                suffix=".tmp",
            )
            temp_path = fd.name
            with fd:
                fd.write(content)
                fd.flush()
                os.fsync(fd.fileno())

            os.replace(temp_path, output_path)
            self._logger.debug(f"Atomic write: renamed {temp_path} -> {output_path}")
            temp_path = None

        except OSError as exc:
            self._logger.error(f"Atomic write failed for {output_path}: {exc}")
            raise
        finally:
            if temp_path is not None and os.path.exists(temp_path):
                try:
                    os.unlink(temp_path)
                except OSError:
                    self._logger.error(f"Failed to clean up temp file: {temp_path}")

    def _write_direct(self, output_path: Path, content: str) -> bool:
        """Write *content* straight to *output_path*.

        A partially written file is removed on failure.
        """
        try:
            ensure_directory(output_path.parent)
            output_path.write_text(content, encoding="utf-8")
            self._logger.debug(f"Direct write succeeded: {output_path}")
            return True
        except OSError as exc:
            self._logger.error(f"Direct write failed for {output_path}: {exc}")
            try:
                output_path.unlink(missing_ok=True)
            except OSError:
                self._logger.error(f"Failed to remove partial output: {output_path}")
            return False

    # ------------------------------------------------------------------
    # Public write API
    # ------------------------------------------------------------------

    def _failure(self, output_path: Path, error: str, warning: str | None = None) -> WriteResult:
        return WriteResult(
            success=False,
            output_path=None,
            original_path=output_path,
            error=error,
            warning=warning,
        )

    def write_file(
        self,
        output_path: Path,
        content: str,
        input_path: Path | None = None,
    ) -> WriteResult:
        """Write *content* to *output_path*.

        Args:
            output_path: Destination file path.
            content: Text content to write.
            input_path: Optional source file path (for logging context).

        Returns:
            A :class:`WriteResult` describing the outcome.
        """
        if output_path.exists() and not is_writable(output_path):
            msg = f"File is not writable: {output_path}"
            self._logger.warning(msg)
            return self._failure(output_path, msg)

        try:
            content.encode("utf-8")
        except UnicodeEncodeError as exc:
            msg = f"Output for {output_path.name} cannot be encoded as UTF-8: {exc}"
            self._logger.error(msg)
            return self._failure(output_path, msg)

        was_atomic = False
        warning_message: str | None = None
        try:
            if self.use_atomic_writes:
                try:
                    self._write_atomic(output_path, content)
                    was_atomic = True
                except OSError:
                    warning_message = (
                        f"Atomic write failed for {output_path.name}, "
                        "falling back to direct write"
                    )
                    self._logger.warning(warning_message)
                    if not self._write_direct(output_path, content):
                        raise OSError(
                            f"Both atomic and direct writes failed for {output_path}"
                        )
            elif not self._write_direct(output_path, content):
                raise OSError(f"Direct write failed for {output_path}")
        except OSError as exc:
            return self._failure(output_path, str(exc), warning_message)

        input_label = f" (source: {input_path.name})" if input_path else ""
        self._logger.info(f"Wrote {output_path}{input_label} [atomic={was_atomic}]")
        return WriteResult(
            success=True,
            output_path=output_path,
            original_path=output_path,
            was_atomic=was_atomic,
            warning=warning_message,
        )

    # ------------------------------------------------------------------
    # Reports
    # ------------------------------------------------------------------

    def write_report(
        self,
        report: BatchReport,
        output_path: Path,
        format: str = "text",
    ) -> WriteResult:
        """Render *report* and write it to *output_path*.

        Raises:
            ValueError: If *format* is not ``"text"`` or ``"json"``.
        """
        if format not in VALID_REPORT_FORMATS:
            raise ValueError(
                f"Invalid report format: {format!r}. Expected 'text' or 'json'"
            )

        content = report.render(format)

        result = self.write_file(output_path, content)
        if result.success:
            self._logger.info(f"Batch report written successfully: {output_path}")
        else:
            self._logger.error(f"Failed to write batch report to {output_path}: {result.error}")
        return result
