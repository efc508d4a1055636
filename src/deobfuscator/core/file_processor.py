"""Per-file processing protocol.

For each input file the FileProcessor:

1. copies the original to ``<path>.<timestamp>.backup``,
2. runs the external deobfuscator into ``<path>.temp.js`` (falling back to
   the original when the tool is unavailable),
3. runs the in-process TransformPipeline on the staged text,
4. writes the result atomically to ``<stem>Deobs<ext>`` next to the input,
5. removes the temp artifact it created, whatever happened.

An existing file at the temp path is never overwritten or removed; the
external pass is skipped for that input instead.

The input file itself is never modified.  Every error raised while handling
one file is turned into a failed :class:`ProcessingResult`; nothing but a
programming error escapes :meth:`FileProcessor.process`.
"""

from __future__ import annotations

import shutil
import threading
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from pathlib import Path

from deobfuscator.core.config import DeobfuscationConfig
from deobfuscator.core.external_tool import ExternalDeobfuscator
from deobfuscator.core.output_writer import OutputWriter
from deobfuscator.core.transform_pipeline import TransformPipeline
from deobfuscator.exceptions import (
    BackupError,
    DeobfuscationError,
    ExternalToolError,
    FileIOError,
)
from deobfuscator.utils.logger import get_logger
from deobfuscator.utils.path_utils import (
    derive_output_path,
    is_readable,
    make_backup_path,
    make_temp_path,
)

logger = get_logger("deobfuscator.core.file_processor")

_timestamp_lock = threading.Lock()
_last_timestamp: datetime | None = None


def backup_timestamp() -> str:
    """Return a filesystem-safe timestamp, strictly increasing per process.

    Example:
        >>> backup_timestamp()
        '2026-10-17T12-30-01-123456'
    """
    global _last_timestamp
    with _timestamp_lock:
        now = datetime.now()
        if _last_timestamp is not None and now <= _last_timestamp:
            now = _last_timestamp + timedelta(microseconds=1)
        _last_timestamp = now
    return now.isoformat(timespec="microseconds").replace(":", "-").replace(".", "-")


@dataclass(frozen=True)
class BackupRecord:
    """A copy of an input file taken before it was processed."""

    original_path: Path
    backup_path: Path
    timestamp: str


@dataclass
class ProcessingResult:
    """Outcome of processing a single file.

    Attributes:
        input_path: The processed input file
        success: Whether an output file was written
        output_path: Path of the written output, ``None`` on failure
        reason: Why processing failed, ``None`` on success
        backup: Backup taken before processing, if any
        warnings: Degradations that did not fail the file
        stages: Per-stage outcome labels such as ``external:ok``
    """

    input_path: Path
    success: bool
    output_path: Path | None = None
    reason: str | None = None
    backup: BackupRecord | None = None
    warnings: list[str] = field(default_factory=list)
    stages: list[str] = field(default_factory=list)

    @property
    def name(self) -> str:
        return self.input_path.name

    @classmethod
    def succeeded(
        cls,
        input_path: Path,
        output_path: Path,
        backup: BackupRecord | None = None,
        warnings: list[str] | None = None,
        stages: list[str] | None = None,
    ) -> ProcessingResult:
        return cls(
            input_path=input_path,
            success=True,
            output_path=output_path,
            backup=backup,
            warnings=list(warnings or []),
            stages=list(stages or []),
        )

    @classmethod
    def failed(
        cls,
        input_path: Path,
        reason: str,
        backup: BackupRecord | None = None,
        warnings: list[str] | None = None,
        stages: list[str] | None = None,
    ) -> ProcessingResult:
        return cls(
            input_path=input_path,
            success=False,
            reason=reason,
            backup=backup,
            warnings=list(warnings or []),
            stages=list(stages or []),
        )


class FileProcessor:
    """Run the backup / external pass / pipeline / write protocol on one file.

    Args:
        config: Configuration controlling stages and options.
        pipeline: Pipeline to run; built from *config* when omitted.
        external_tool: External deobfuscator; built from *config* when omitted.
        output_writer: Writer used for outputs; a new one when omitted.
    """

    def __init__(
        self,
        config: DeobfuscationConfig | None = None,
        pipeline: TransformPipeline | None = None,
        external_tool: ExternalDeobfuscator | None = None,
        output_writer: OutputWriter | None = None,
    ) -> None:
        self.config = config or DeobfuscationConfig(name="default")
        self.pipeline = pipeline or TransformPipeline(self.config)
        self.external_tool = external_tool or ExternalDeobfuscator(
            command=self.config.option("external_tool_command"),
            timeout=self.config.option("external_tool_timeout"),
        )
        self.output_writer = output_writer or OutputWriter()

    def create_backup(self, path: Path) -> BackupRecord:
        """Copy *path* to a timestamped sibling.

        Raises:
            BackupError: If the copy fails.
        """
        timestamp = backup_timestamp()
        backup_path = make_backup_path(path, timestamp)
        try:
            shutil.copy2(path, backup_path)
        except OSError as e:
            raise BackupError(f"Failed to back up {path.name}: {e}") from e
        logger.debug(f"Backed up {path.name} -> {backup_path.name}")
        return BackupRecord(original_path=path, backup_path=backup_path, timestamp=timestamp)

    def _read_source(self, path: Path) -> str:
        if not is_readable(path):
            raise FileIOError(f"Cannot read {path}", path)
        try:
            return path.read_text(encoding="utf-8")
        except UnicodeDecodeError as e:
            raise FileIOError(f"{path.name} is not valid UTF-8: {e}", path) from e

    def _run_external(self, path: Path, temp_path: Path, warnings: list[str], stages: list[str]) -> Path:
        """Return the path whose content the pipeline should start from."""
        if not self.config.is_enabled("external_tool"):
            return path
        if temp_path.exists():
            message = f"{temp_path.name} already exists; skipping the external pass for {path.name}"
            stages.append("external:skipped")
            if self.config.option("external_tool_required"):
                raise ExternalToolError(message)
            logger.warning(message)
            warnings.append(message)
            return path
        try:
            staged = self.external_tool.run(path, temp_path)
        except ExternalToolError as e:
            stages.append("external:failed")
            if self.config.option("external_tool_required"):
                raise
            logger.warning(f"{e}; continuing with the original source of {path.name}")
            warnings.append(str(e))
            return path
        stages.append("external:ok")
        return staged

    @staticmethod
    def _cleanup(temp_path: Path) -> None:
        if not temp_path.exists():
            return
        try:
            temp_path.unlink()
            logger.debug(f"Removed temp artifact {temp_path.name}")
        except OSError as e:
            logger.warning(f"Failed to remove temp artifact {temp_path}: {e}")

    def process(self, path: Path) -> ProcessingResult:
        """Process one file and report the outcome.

        Args:
            path: Input file; it is read but never modified.

        Returns:
            ProcessingResult describing success or the failure reason.
        """
        path = Path(path)
        logger.info(f"Processing {path.name}")
        warnings: list[str] = []
        stages: list[str] = []
        backup: BackupRecord | None = None

        if self.config.option("create_backups"):
            try:
                backup = self.create_backup(path)
            except BackupError as e:
                logger.warning(str(e))
                warnings.append(str(e))

        temp_path = make_temp_path(path)
        owns_temp = self.config.is_enabled("external_tool") and not temp_path.exists()
        try:
            source_path = self._run_external(path, temp_path, warnings, stages)
            source = self._read_source(source_path)

            pipeline_result = self.pipeline.run_detailed(source, label=path.name)
            stages.extend(pipeline_result.stage_labels())
            warnings.extend(pipeline_result.warnings)
            warnings.extend(pipeline_result.errors)

            output_path = derive_output_path(path, self.config.option("output_marker"))
            write_result = self.output_writer.write_file(output_path, pipeline_result.source, input_path=path)
            if write_result.warning:
                warnings.append(write_result.warning)
            if not write_result.success:
                raise FileIOError(write_result.error or f"Failed to write {output_path}", output_path)

        except (DeobfuscationError, OSError, ValueError) as e:
            logger.error(f"Failed to process {path.name}: {e}")
            return ProcessingResult.failed(path, str(e), backup=backup, warnings=warnings, stages=stages)
        finally:
            if owns_temp:
                self._cleanup(temp_path)

        logger.info(f"Processed {path.name} -> {output_path.name}")
        return ProcessingResult.succeeded(path, output_path, backup=backup, warnings=warnings, stages=stages)
