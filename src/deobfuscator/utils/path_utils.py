"""
Path utilities for source enumeration and artifact naming.

This module provides directory creation, permission checks, the directory
listing that selects eligible source files, and the pure functions that
derive output, backup and temp artifact paths from an input path.

Examples:
    >>> from deobfuscator.utils.path_utils import derive_output_path
    >>> derive_output_path(Path("/work/app.js"))
    PosixPath('/work/appDeobs.js')
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import Iterable, Union

from deobfuscator.exceptions import DirectoryNotFoundError

# Type alias for path-like objects
PathLike = Union[str, Path]

DEFAULT_SOURCE_EXTENSION = ".js"
DEFAULT_OUTPUT_MARKER = "Deobs"
BACKUP_SUFFIX = ".backup"
TEMP_SUFFIX = ".temp.js"

# Files belonging to the tool itself are never treated as inputs
TOOL_NAME_FRAGMENTS: tuple[str, ...] = ("deobfuscator",)


def ensure_directory(path: Path) -> Path:
    """
    Create directory if it doesn't exist, return Path.

    Raises:
        OSError: If directory creation fails.
    """
    path.mkdir(parents=True, exist_ok=True)
    return path


def is_readable(path: Path) -> bool:
    """Return True if path exists and is readable."""
    return path.exists() and os.access(path, os.R_OK)


def is_writable(path: Path) -> bool:
    """Return True if path exists and is writable."""
    return path.exists() and os.access(path, os.W_OK)


def derive_output_path(path: PathLike, marker: str = DEFAULT_OUTPUT_MARKER) -> Path:
    """
    Insert the disambiguation marker before the file extension.

    The directory of the input is preserved, so the output always lands next
    to its source.

    Args:
        path: Input file path.
        marker: Token inserted between stem and extension.

    Returns:
        Output path ``<dir>/<stem><marker><ext>``.

    Examples:
        >>> derive_output_path(Path("src/bundle.js"))
        PosixPath('src/bundleDeobs.js')
        >>> derive_output_path(Path("README"))
        PosixPath('READMEDeobs')
    """
    path = Path(path)
    return path.with_name(f"{path.stem}{marker}{path.suffix}")


def make_backup_path(path: PathLike, timestamp: str) -> Path:
    """
    Return ``<path>.<timestamp>.backup`` as a sibling of *path*.

    Examples:
        >>> make_backup_path(Path("a.js"), "2026-10-17T10-00-00-000000")
        PosixPath('a.js.2026-10-17T10-00-00-000000.backup')
    """
    path = Path(path)
    return path.with_name(f"{path.name}.{timestamp}{BACKUP_SUFFIX}")


def make_temp_path(path: PathLike) -> Path:
    """Return the staging path used for the external tool's output."""
    path = Path(path)
    return path.with_name(f"{path.name}{TEMP_SUFFIX}")


def is_generated_artifact(name: str, marker: str = DEFAULT_OUTPUT_MARKER) -> bool:
    """Return True for outputs, backups and temp files written by the tool."""
    return (
        marker in name
        or name.endswith(BACKUP_SUFFIX)
        or name.endswith(TEMP_SUFFIX)
    )


def list_source_files(
    directory: PathLike,
    extension: str = DEFAULT_SOURCE_EXTENSION,
    marker: str = DEFAULT_OUTPUT_MARKER,
    exclude_fragments: Iterable[str] = TOOL_NAME_FRAGMENTS,
) -> list[Path]:
    """
    List eligible source files in *directory* (non-recursive).

    A file is eligible when it is a regular file (symlinks are followed, so a
    link to a directory is excluded), its name ends with *extension*, and it
    is neither a generated artifact nor one of the tool's own files.

    Args:
        directory: Directory to scan.
        extension: Recognised source extension, including the dot.
        marker: Output disambiguation marker to skip.
        exclude_fragments: Lowercase name fragments identifying tool files.

    Returns:
        Eligible paths sorted by file name.

    Raises:
        DirectoryNotFoundError: If *directory* does not exist or is not a
            directory.
    """
    directory = Path(directory)
    if not directory.is_dir():
        raise DirectoryNotFoundError(directory)

    fragments = tuple(f.lower() for f in exclude_fragments)
    eligible: list[Path] = []
    for entry in directory.iterdir():
        name = entry.name
        if not name.endswith(extension):
            continue
        if is_generated_artifact(name, marker):
            continue
        if any(fragment in name.lower() for fragment in fragments):
            continue
        if not entry.is_file():
            continue
        eligible.append(entry)

    return sorted(eligible, key=lambda p: p.name)
