"""Batch orchestrator for deobfuscating a directory of JavaScript files.

The orchestrator implements a small stateful workflow:

1. **Scanning** (SCANNING): enumerate eligible source files in the target
   directory.  A missing directory is the only fatal error of a batch.
2. **Processing** (PROCESSING): run the FileProcessor on each file, either
   sequentially or on a bounded thread pool, with progress callbacks and
   between-file cancellation.
3. **Completion** (COMPLETED/CANCELLED/FAILED).

State Transitions::

    PENDING -> SCANNING -> PROCESSING -> COMPLETED
                  |            |
                  v            v
                FAILED     CANCELLED

Example::

    from pathlib import Path
    from deobfuscator.core.orchestrator import BatchOrchestrator, ProgressInfo

    def on_progress(info: ProgressInfo):
        print(f"[{info.current_state.name}] {info.message} ({info.percentage:.0f}%)")

    report = BatchOrchestrator().run(Path("./dump"), progress_callback=on_progress)
    for line in report.summary_lines():
        print(line)
"""

from __future__ import annotations

import json
import threading
import time
from concurrent.futures import FIRST_COMPLETED, Future, ThreadPoolExecutor, wait
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, Callable

from deobfuscator.core.config import DeobfuscationConfig
from deobfuscator.core.file_processor import FileProcessor, ProcessingResult
from deobfuscator.exceptions import DirectoryNotFoundError
from deobfuscator.utils.logger import get_logger
from deobfuscator.utils.path_utils import list_source_files

logger = get_logger("deobfuscator.core.orchestrator")


class JobState(Enum):
    """Enumeration of possible states of a batch run.

    States:
        PENDING: Job created but not started
        SCANNING: Enumerating eligible files
        PROCESSING: Deobfuscating files
        COMPLETED: Every file was attempted
        FAILED: The batch could not run (e.g. directory missing)
        CANCELLED: Stopped by request before all files were scheduled
    """
    PENDING = "pending"
    SCANNING = "scanning"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"


@dataclass
class ProgressInfo:
    """Progress snapshot handed to progress callbacks.

    Attributes:
        current_file: Name of the file just finished, or None
        current_index: Number of files finished so far
        total_files: Number of files in the batch
        percentage: Progress percentage (0.0 to 100.0)
        elapsed_seconds: Seconds since processing started
        estimated_remaining_seconds: Estimated seconds left, or None if unknown
        current_state: Current JobState of the batch
        message: Human-readable progress message
        log_level: Severity hint for rendering (success, warning, error, info)
    """
    current_file: str | None
    current_index: int
    total_files: int
    percentage: float
    elapsed_seconds: float
    estimated_remaining_seconds: float | None
    current_state: JobState
    message: str
    log_level: str = "info"

    @property
    def is_complete(self) -> bool:
        """Returns True when current_index >= total_files."""
        return self.current_index >= self.total_files

    @property
    def formatted_elapsed(self) -> str:
        """Returns elapsed time as 'MM:SS' format."""
        minutes = int(self.elapsed_seconds) // 60
        seconds = int(self.elapsed_seconds) % 60
        return f"{minutes:02d}:{seconds:02d}"

    @property
    def formatted_remaining(self) -> str:
        """Returns estimated remaining time as 'MM:SS' or 'Calculating...' if None."""
        if self.estimated_remaining_seconds is None:
            return "Calculating..."
        minutes = int(self.estimated_remaining_seconds) // 60
        seconds = int(self.estimated_remaining_seconds) % 60
        return f"{minutes:02d}:{seconds:02d}"


@dataclass
class BatchReport:
    """Per-file outcomes of one batch run, in enumeration order.

    Attributes:
        directory: The processed directory
        results: Mapping of file name -> ProcessingResult
        skipped: Files never scheduled because of cancellation
        state: Final JobState of the run
        elapsed_seconds: Wall-clock duration of the run
    """
    directory: Path
    results: dict[str, ProcessingResult] = field(default_factory=dict)
    skipped: list[str] = field(default_factory=list)
    state: JobState = JobState.PENDING
    elapsed_seconds: float = 0.0

    def add(self, result: ProcessingResult) -> None:
        self.results[result.name] = result

    @property
    def successful(self) -> list[ProcessingResult]:
        return [r for r in self.results.values() if r.success]

    @property
    def failed(self) -> list[ProcessingResult]:
        return [r for r in self.results.values() if not r.success]

    @property
    def all_succeeded(self) -> bool:
        return not self.failed and not self.skipped

    def summary_lines(self) -> list[str]:
        """Return the human-readable batch summary."""
        lines = [
            "Deobfuscation Summary:",
            f"Successfully processed: {len(self.successful)} files",
            f"Failed to process: {len(self.failed)} files",
        ]
        if self.failed:
            lines.append("Failed files:")
            lines.extend(f"- {r.name}: {r.reason}" for r in self.failed)
        if self.skipped:
            lines.append(f"Skipped after cancellation: {len(self.skipped)} files")
            lines.extend(f"- {name}" for name in self.skipped)
        return lines

    def to_dict(self) -> dict[str, Any]:
        return {
            "directory": str(self.directory),
            "state": self.state.value,
            "elapsed_seconds": round(self.elapsed_seconds, 3),
            "successful": [r.name for r in self.successful],
            "failed": [r.name for r in self.failed],
            "skipped": list(self.skipped),
            "files": {
                name: {
                    "success": r.success,
                    "output_path": str(r.output_path) if r.output_path else None,
                    "reason": r.reason,
                    "backup_path": str(r.backup.backup_path) if r.backup else None,
                    "warnings": list(r.warnings),
                    "stages": list(r.stages),
                }
                for name, r in self.results.items()
            },
        }

    def render(self, format: str = "text") -> str:
        """Render the report as ``"text"`` or ``"json"``.

        Raises:
            ValueError: If *format* is not supported.
        """
        if format == "json":
            return json.dumps(self.to_dict(), indent=2) + "\n"
        if format == "text":
            return "\n".join(self.summary_lines()) + "\n"
        raise ValueError(f"Invalid report format: {format!r}. Expected 'text' or 'json'")


class BatchOrchestrator:
    """Coordinates deobfuscation of every eligible file in a directory.

    Attributes:
        config: Configuration shared by every file in the batch
        processor: The FileProcessor applied to each file

    Example::

        orchestrator = BatchOrchestrator(config)
        # From another thread: orchestrator.request_cancellation()
        report = orchestrator.run(Path("./dump"))
    """

    def __init__(
        self,
        config: DeobfuscationConfig | None = None,
        processor: FileProcessor | None = None,
    ) -> None:
        self.config = config or DeobfuscationConfig(name="default")
        self.processor = processor or FileProcessor(self.config)
        self._logger = logger
        self._current_state: JobState = JobState.PENDING
        self._cancellation_requested = threading.Event()
        self._start_time: float | None = None

    @property
    def state(self) -> JobState:
        return self._current_state

    def _transition_state(self, new_state: JobState, report: BatchReport) -> None:
        old_state = self._current_state
        self._current_state = new_state
        report.state = new_state
        self._logger.info(f"State transition: {old_state.name} -> {new_state.name}")

    def request_cancellation(self) -> None:
        """Request that no further files be scheduled.

        Files already being processed run to completion.  Safe to call from
        any thread, and idempotent.
        """
        self._cancellation_requested.set()
        self._logger.info("Cancellation requested by user")

    def _check_cancellation(self) -> bool:
        if self._cancellation_requested.is_set():
            self._logger.debug("Cancellation detected during processing")
            return True
        return False

    def _progress(
        self,
        callback: Callable[[ProgressInfo], None] | None,
        done: int,
        total: int,
        message: str,
        current_file: str | None = None,
        log_level: str = "info",
    ) -> None:
        if callback is None:
            return
        elapsed = time.time() - (self._start_time or time.time())
        remaining = (elapsed / done) * (total - done) if done else None
        callback(
            ProgressInfo(
                current_file=current_file,
                current_index=done,
                total_files=total,
                percentage=(done / total) * 100 if total else 100.0,
                elapsed_seconds=elapsed,
                estimated_remaining_seconds=remaining,
                current_state=self._current_state,
                message=message,
                log_level=log_level,
            )
        )

    def _result_message(self, result: ProcessingResult) -> tuple[str, str]:
        if result.success:
            return f"Successfully processed: {result.name}", "success"
        return f"Failed to process {result.name}: {result.reason}", "error"

    def _run_sequential(
        self,
        files: list[Path],
        report: BatchReport,
        progress_callback: Callable[[ProgressInfo], None] | None,
    ) -> None:
        for index, path in enumerate(files):
            if self._check_cancellation():
                report.skipped.extend(p.name for p in files[index:])
                return
            result = self.processor.process(path)
            report.add(result)
            message, level = self._result_message(result)
            self._progress(progress_callback, index + 1, len(files), message, path.name, level)

    def _run_parallel(
        self,
        files: list[Path],
        report: BatchReport,
        progress_callback: Callable[[ProgressInfo], None] | None,
        max_workers: int,
    ) -> None:
        results: dict[Path, ProcessingResult] = {}
        pending: dict[Future[ProcessingResult], Path] = {}
        queue = list(files)
        done_count = 0

        with ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix="deobfuscate") as executor:
            while queue or pending:
                # Keep at most max_workers files in flight so that
                # cancellation stops scheduling promptly
                while queue and len(pending) < max_workers and not self._check_cancellation():
                    path = queue.pop(0)
                    pending[executor.submit(self.processor.process, path)] = path
                if not pending:
                    break

                finished, _ = wait(pending, return_when=FIRST_COMPLETED)
                for future in finished:
                    path = pending.pop(future)
                    result = future.result()
                    results[path] = result
                    done_count += 1
                    message, level = self._result_message(result)
                    self._progress(progress_callback, done_count, len(files), message, path.name, level)

        for path in files:
            if path in results:
                report.add(results[path])
            else:
                report.skipped.append(path.name)

    def run(
        self,
        directory: Path,
        progress_callback: Callable[[ProgressInfo], None] | None = None,
    ) -> BatchReport:
        """Deobfuscate every eligible file in *directory*.

        Args:
            directory: Directory to scan (non-recursive).
            progress_callback: Called after each file with a ProgressInfo.

        Returns:
            BatchReport with one entry per processed file.

        Raises:
            DirectoryNotFoundError: If *directory* does not exist.
        """
        directory = Path(directory)
        report = BatchReport(directory=directory)
        self._cancellation_requested.clear()
        self._start_time = time.time()
        self._transition_state(JobState.PENDING, report)

        self._transition_state(JobState.SCANNING, report)
        try:
            files = list_source_files(
                directory,
                extension=self.config.option("source_extension"),
                marker=self.config.option("output_marker"),
            )
        except DirectoryNotFoundError:
            self._transition_state(JobState.FAILED, report)
            self._logger.error(f"Directory not found: {directory}")
            raise

        if not files:
            self._logger.info("No JavaScript files found to process.")
        else:
            self._logger.info(f"Found {len(files)} JavaScript files")

        self._transition_state(JobState.PROCESSING, report)
        self._progress(progress_callback, 0, len(files), f"Processing {len(files)} file(s)")

        max_workers = self.config.option("max_workers")
        if max_workers > 1 and len(files) > 1:
            self._run_parallel(files, report, progress_callback, max_workers)
        else:
            self._run_sequential(files, report, progress_callback)

        report.elapsed_seconds = time.time() - self._start_time
        if report.skipped:
            self._transition_state(JobState.CANCELLED, report)
            self._logger.warning(
                f"{len(report.results)} of {len(files)} file(s) completed before cancellation"
            )
        else:
            self._transition_state(JobState.COMPLETED, report)

        for line in report.summary_lines():
            self._logger.info(line)
        return report
