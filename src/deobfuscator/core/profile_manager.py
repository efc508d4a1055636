"""Profile management for deobfuscation configurations.

This module provides the ProfileManager class for saving, loading, and
validating deobfuscation profiles, plus the built-in preset profiles.

Example:
    >>> from pathlib import Path
    >>> config = ProfileManager.get_default_profile("conservative")
    >>> config.is_enabled("external_tool")
    False
    >>> ProfileManager.save_profile(config, Path("conservative.json"))
"""

from __future__ import annotations

import json
from copy import deepcopy
from pathlib import Path
from typing import Any, Dict, List

from deobfuscator.core.config import DeobfuscationConfig
from deobfuscator.utils.logger import get_logger
from deobfuscator.utils.path_utils import ensure_directory

logger = get_logger("deobfuscator.core.profile_manager")

DEFAULT_PROFILES: Dict[str, Dict[str, Any]] = {
    "Standard": {
        "version": "1.0",
        "name": "Standard Profile",
        "features": {
            "string_table": True,
            "dead_code": True,
            "formatting": True,
            "external_tool": True,
        },
        "options": {
            "reference_binding": "strict",
            "strip_dead_branches": True,
            "strip_empty_functions": True,
            "strip_console_clear": True,
            "formatter_engines": ["prettier", "jsbeautifier"],
        },
    },
    # Skips the external tool and only removes the unambiguous dead branches
    "Conservative": {
        "version": "1.0",
        "name": "Conservative Profile",
        "features": {
            "string_table": True,
            "dead_code": True,
            "formatting": True,
            "external_tool": False,
        },
        "options": {
            "reference_binding": "strict",
            "strip_dead_branches": True,
            "strip_empty_functions": False,
            "strip_console_clear": False,
            "formatter_engines": ["jsbeautifier"],
        },
    },
    "Format Only": {
        "version": "1.0",
        "name": "Format Only Profile",
        "features": {
            "string_table": False,
            "dead_code": False,
            "formatting": True,
            "external_tool": False,
        },
        "options": {
            "formatter_engines": ["prettier", "jsbeautifier"],
        },
    },
}


class ProfileManager:
    """Manager for deobfuscation configuration profiles."""

    @staticmethod
    def save_profile(config: DeobfuscationConfig, file_path: Path) -> None:
        """Save a configuration profile to a JSON file.

        Raises:
            ValueError: If configuration validation fails
            OSError: If the file cannot be written
        """
        try:
            config.validate()
            ensure_directory(file_path.parent)
            with open(file_path, "w", encoding="utf-8") as f:
                json.dump(config.to_dict(), f, indent=2)
            logger.debug(f"Profile '{config.name}' saved to {file_path}")

        except ValueError as e:
            logger.error(f"Validation failed for profile '{config.name}': {e}")
            raise ValueError(f"Configuration validation failed: {e}")
        except OSError as e:
            logger.error(f"Failed to write profile to {file_path}: {e}")
            raise OSError(f"Failed to write profile file: {e}")

    @staticmethod
    def load_profile(file_path: Path) -> DeobfuscationConfig:
        """Load and validate a configuration profile from a JSON file.

        Raises:
            FileNotFoundError: If the file does not exist
            ValueError: If JSON is invalid or validation fails
        """
        if not file_path.exists():
            logger.error(f"Profile file not found: {file_path}")
            raise FileNotFoundError(f"Profile file not found: {file_path}")

        try:
            with open(file_path, "r", encoding="utf-8") as f:
                data = json.load(f)
            if not isinstance(data, dict):
                raise ValueError("Profile must be a JSON object")

            config = DeobfuscationConfig.from_dict(data)
            config.validate()

            logger.debug(f"Profile '{config.name}' loaded from {file_path}")
            return config

        except json.JSONDecodeError as e:
            logger.error(f"Invalid JSON in profile file {file_path}: {e}")
            raise ValueError(f"Invalid JSON format in profile file: {e}")
        except KeyError as e:
            logger.error(f"Missing required field in profile {file_path}: {e}")
            raise ValueError(f"Missing required field in profile: {e}")
        except ValueError as e:
            logger.error(f"Validation failed for profile from {file_path}: {e}")
            raise ValueError(f"Profile validation failed: {e}")

    @staticmethod
    def validate_profile(file_path: Path) -> bool:
        """Return True when *file_path* holds a loadable, valid profile."""
        try:
            ProfileManager.load_profile(file_path)
            logger.debug(f"Profile validation successful: {file_path}")
            return True
        except (OSError, ValueError) as e:
            logger.warning(f"Profile validation failed for {file_path}: {e}")
            return False

    @staticmethod
    def get_default_profile(preset_name: str) -> DeobfuscationConfig:
        """Get a built-in preset profile (name is case-insensitive).

        Raises:
            ValueError: If preset_name is not valid
        """
        preset_title = preset_name.strip().title()

        if preset_title not in DEFAULT_PROFILES:
            valid_presets = list(DEFAULT_PROFILES.keys())
            logger.error(f"Invalid preset name: {preset_name}")
            raise ValueError(
                f"Invalid preset name: {preset_name}. "
                f"Valid presets: {valid_presets}"
            )

        profile_data = deepcopy(DEFAULT_PROFILES[preset_title])
        config = DeobfuscationConfig.from_dict(profile_data)

        logger.debug(f"Retrieved default profile: {preset_title}")
        return config

    @staticmethod
    def list_default_profiles() -> List[str]:
        """Return the built-in profile names, e.g. ``['Standard', 'Conservative', 'Format Only']``."""
        return list(DEFAULT_PROFILES.keys())
