"""Configuration data model for deobfuscation profiles.

This module defines the DeobfuscationConfig dataclass that represents a
deobfuscation profile: which pipeline stages run and the options that tune
them. It handles validation and conversion to and from the JSON profile
format used by :class:`~deobfuscator.core.profile_manager.ProfileManager`.

Example:
    >>> config = DeobfuscationConfig(name="Batch", features={"external_tool": False})
    >>> config.validate()
    >>> config.is_enabled("external_tool")
    False
    >>> config.option("output_marker")
    'Deobs'
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Any, Dict

from deobfuscator.utils.logger import get_logger

logger = get_logger("deobfuscator.core.config")

# Pipeline stages that can be switched on and off
VALID_FEATURES = {
    "string_table",
    "dead_code",
    "formatting",
    "external_tool",
}

VALID_BINDINGS = {"strict", "loose"}
VALID_ENGINES = {"prettier", "jsbeautifier", "line"}


def default_features() -> Dict[str, bool]:
    return {feature: True for feature in sorted(VALID_FEATURES)}


def default_options() -> Dict[str, Any]:
    return {
        "source_extension": ".js",
        "output_marker": "Deobs",
        "identifier_pattern": r"_0x[0-9a-fA-F]+",
        "reference_binding": "strict",
        "strip_dead_branches": True,
        "strip_empty_functions": True,
        "strip_console_clear": True,
        "max_passes": 10,
        "formatter_engines": ["prettier", "jsbeautifier"],
        "prettier_command": "prettier",
        "format_timeout": 30,
        "indent_size": 2,
        "external_tool_command": "obfuscator-io-deobfuscator",
        "external_tool_timeout": 60,
        "external_tool_required": False,
        "max_workers": 1,
        "create_backups": True,
    }


_BOOLEAN_OPTIONS = (
    "strip_dead_branches",
    "strip_empty_functions",
    "strip_console_clear",
    "external_tool_required",
    "create_backups",
)
_STRING_OPTIONS = (
    "source_extension",
    "output_marker",
    "identifier_pattern",
    "prettier_command",
    "external_tool_command",
)
_POSITIVE_INT_OPTIONS = ("max_passes", "max_workers")
_TIMEOUT_OPTIONS = ("format_timeout", "external_tool_timeout")


@dataclass
class DeobfuscationConfig:
    """Deobfuscation configuration profile.

    Attributes:
        name: Profile name
        version: Schema version (currently "1.0")
        features: Feature flags (feature_name -> enabled). Missing features
            count as enabled.
        options: Stage options. Missing keys fall back to
            :func:`default_options`.

    Features:
        string_table: Inline references to the literal string array
        dead_code: Strip ``if (false)`` blocks, empty stubs and console.clear()
        formatting: Reformat the result (prettier -> jsbeautifier -> line)
        external_tool: Run the external deobfuscator before the pipeline
    """

    name: str
    version: str = "1.0"
    features: Dict[str, bool] = field(default_factory=default_features)
    options: Dict[str, Any] = field(default_factory=default_options)

    def is_enabled(self, feature: str) -> bool:
        """Return whether *feature* is switched on."""
        return bool(self.features.get(feature, True))

    def option(self, key: str) -> Any:
        """Return option *key*, falling back to its default."""
        if key in self.options:
            return self.options[key]
        return default_options()[key]

    def validate(self) -> None:
        """Validate the configuration.

        Raises:
            ValueError: If any validation check fails
        """
        if self.version != "1.0":
            raise ValueError(f"Invalid version: {self.version}. Expected '1.0'")

        if not self.name:
            raise ValueError("Configuration name cannot be empty")

        for feature_name, enabled in self.features.items():
            if feature_name not in VALID_FEATURES:
                raise ValueError(
                    f"Unknown feature '{feature_name}' in configuration. "
                    f"Valid features: {sorted(VALID_FEATURES)}"
                )
            if not isinstance(enabled, bool):
                raise ValueError(f"Feature '{feature_name}' must be a boolean")

        known = default_options()
        for key in self.options:
            if key not in known:
                raise ValueError(f"Unknown option '{key}' in configuration")

        for key in _BOOLEAN_OPTIONS:
            if key in self.options and not isinstance(self.options[key], bool):
                raise ValueError(f"Option '{key}' must be a boolean")

        for key in _STRING_OPTIONS:
            if key in self.options:
                value = self.options[key]
                if not isinstance(value, str) or not value:
                    raise ValueError(f"Option '{key}' must be a non-empty string")

        for key in _POSITIVE_INT_OPTIONS:
            if key in self.options:
                value = self.options[key]
                if not isinstance(value, int) or isinstance(value, bool) or value < 1:
                    raise ValueError(f"Option '{key}' must be a positive integer")

        for key in _TIMEOUT_OPTIONS:
            if key in self.options:
                value = self.options[key]
                if not isinstance(value, (int, float)) or isinstance(value, bool) or value <= 0:
                    raise ValueError(f"Option '{key}' must be a positive number")

        if "indent_size" in self.options:
            indent = self.options["indent_size"]
            if not isinstance(indent, int) or isinstance(indent, bool):
                raise ValueError("Option 'indent_size' must be an integer")
            if not 0 <= indent <= 8:
                raise ValueError("Option 'indent_size' must be between 0 and 8")

        extension = self.option("source_extension")
        if not extension.startswith("."):
            raise ValueError(
                f"Option 'source_extension' must start with '.': {extension}"
            )

        binding = self.option("reference_binding")
        if binding not in VALID_BINDINGS:
            raise ValueError(
                f"Invalid reference_binding: {binding}. "
                f"Expected one of {sorted(VALID_BINDINGS)}"
            )

        try:
            re.compile(self.option("identifier_pattern"))
        except re.error as e:
            raise ValueError(f"Option 'identifier_pattern' is not a valid regex: {e}")

        engines = self.option("formatter_engines")
        if not isinstance(engines, list):
            raise ValueError("Option 'formatter_engines' must be a list")
        for engine in engines:
            if engine not in VALID_ENGINES:
                raise ValueError(
                    f"Unknown formatter engine '{engine}'. "
                    f"Expected one of {sorted(VALID_ENGINES)}"
                )

        logger.debug(f"Configuration '{self.name}' validated successfully")

    def to_dict(self) -> Dict[str, Any]:
        """Convert configuration to dictionary for JSON serialization.

        Example:
            >>> DeobfuscationConfig(name="Test").to_dict()["name"]
            'Test'
        """
        options = self.options.copy()
        if isinstance(options.get("formatter_engines"), list):
            options["formatter_engines"] = list(options["formatter_engines"])
        return {
            "version": self.version,
            "name": self.name,
            "features": self.features.copy(),
            "options": options,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> DeobfuscationConfig:
        """Create configuration from dictionary.

        Options and features absent from *data* take their defaults.

        Raises:
            KeyError: If required fields are missing
        """
        try:
            features = default_features()
            features.update(data.get("features", {}))
            options = default_options()
            options.update(data.get("options", {}))
            config = cls(
                version=data["version"],
                name=data["name"],
                features=features,
                options=options,
            )
            logger.debug(f"Created configuration from dictionary: {config.name}")
            return config
        except KeyError as e:
            raise KeyError(f"Missing required field in configuration: {e}")
