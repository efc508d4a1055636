"""
Utility modules for file system operations and logging.

This package provides:
- Path utilities for source enumeration and artifact naming
- Logging infrastructure with file and console output

Examples:
    >>> from deobfuscator.utils import list_source_files, setup_logger
    >>> files = list_source_files("~/Downloads/js")
    >>> logger = setup_logger("deobfuscator")
"""

from .path_utils import (
    # Type alias
    PathLike,
    # Directories and permissions
    ensure_directory,
    is_readable,
    is_writable,
    # Artifact naming
    derive_output_path,
    make_backup_path,
    make_temp_path,
    is_generated_artifact,
    # Enumeration
    list_source_files,
)

from .logger import (
    # Logger setup
    setup_logger,
    get_logger,
    set_log_level,
    # Handler management
    add_file_handler,
    add_console_handler,
    # Constants
    VALID_LOG_LEVELS,
)

__all__ = [
    "PathLike",
    "ensure_directory",
    "is_readable",
    "is_writable",
    "derive_output_path",
    "make_backup_path",
    "make_temp_path",
    "is_generated_artifact",
    "list_source_files",
    "setup_logger",
    "get_logger",
    "set_log_level",
    "add_file_handler",
    "add_console_handler",
    "VALID_LOG_LEVELS",
]
