"""Error taxonomy for the deobfuscator.

Only :class:`DirectoryNotFoundError` is fatal to a batch run. Every other
error is raised inside a single file's lifecycle and is either degraded
around (backup, external tool, string table, formatting) or converted to a
failed :class:`~deobfuscator.core.file_processor.ProcessingResult` at the
``FileProcessor`` boundary.
"""

from __future__ import annotations

from pathlib import Path


class DeobfuscationError(Exception):
    """Base class for all deobfuscator errors."""


class DirectoryNotFoundError(DeobfuscationError):
    """Raised when the batch input directory does not exist."""

    def __init__(self, directory: Path | str) -> None:
        self.directory = Path(directory)
        super().__init__(f"Directory not found: {self.directory}")


class BackupError(DeobfuscationError):
    """Raised when a file cannot be copied to its backup path."""


class ExternalToolError(DeobfuscationError):
    """Raised when the external deobfuscation tool cannot handle an input."""


class UnsupportedStringTableError(DeobfuscationError):
    """Raised when a string table contains anything besides literals."""


class FormatError(DeobfuscationError):
    """Raised by a formatting engine that cannot format its input."""


class FileIOError(DeobfuscationError):
    """Raised when reading, writing or cleaning up a file fails."""

    def __init__(self, message: str, path: Path | str | None = None) -> None:
        self.path = Path(path) if path is not None else None
        super().__init__(message)
