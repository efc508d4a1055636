"""Tests for ProfileManager presets and JSON persistence."""

from __future__ import annotations

import json
from pathlib import Path

import pytest

from deobfuscator.core.config import DeobfuscationConfig
from deobfuscator.core.profile_manager import DEFAULT_PROFILES, ProfileManager


class TestDefaultProfiles:
    """Test the built-in presets."""

    def test_list_default_profiles(self):
        assert ProfileManager.list_default_profiles() == ["Standard", "Conservative", "Format Only"]

    @pytest.mark.parametrize("name", list(DEFAULT_PROFILES))
    def test_presets_validate(self, name):
        ProfileManager.get_default_profile(name).validate()

    def test_lookup_is_case_insensitive(self):
        config = ProfileManager.get_default_profile("  format only ")
        assert config.name == "Format Only Profile"
        assert not config.is_enabled("string_table")
        assert config.is_enabled("formatting")

    def test_conservative_skips_external_tool(self):
        config = ProfileManager.get_default_profile("conservative")
        assert not config.is_enabled("external_tool")
        assert config.option("strip_console_clear") is False

    def test_presets_are_independent_copies(self):
        first = ProfileManager.get_default_profile("Standard")
        first.features["dead_code"] = False
        assert ProfileManager.get_default_profile("Standard").is_enabled("dead_code")

    def test_unknown_preset(self):
        with pytest.raises(ValueError, match="Invalid preset name"):
            ProfileManager.get_default_profile("Aggressive")


class TestPersistence:
    """Test save_profile / load_profile / validate_profile."""

    def test_save_and_load(self, tmp_path: Path):
        config = DeobfuscationConfig(name="mine", options={"max_workers": 3})
        target = tmp_path / "profiles" / "mine.json"
        ProfileManager.save_profile(config, target)

        assert json.loads(target.read_text(encoding="utf-8"))["name"] == "mine"
        loaded = ProfileManager.load_profile(target)
        assert loaded.option("max_workers") == 3

    def test_save_refuses_invalid_config(self, tmp_path: Path):
        config = DeobfuscationConfig(name="bad", options={"max_workers": 0})
        with pytest.raises(ValueError, match="validation failed"):
            ProfileManager.save_profile(config, tmp_path / "bad.json")
        assert not (tmp_path / "bad.json").exists()

    def test_load_missing_file(self, tmp_path: Path):
        with pytest.raises(FileNotFoundError):
            ProfileManager.load_profile(tmp_path / "absent.json")

    @pytest.mark.parametrize(
        "content, message",
        [
            ("{not json", "Invalid JSON"),
            ("[1, 2]", "must be a JSON object"),
            ('{"name": "x"}', "Missing required field"),
            ('{"version": "1.0", "name": "x", "features": {"mangle": true}}', "Unknown feature"),
        ],
    )
    def test_load_invalid(self, tmp_path: Path, content, message):
        target = tmp_path / "profile.json"
        target.write_text(content, encoding="utf-8")
        with pytest.raises(ValueError, match=message):
            ProfileManager.load_profile(target)

    def test_validate_profile(self, tmp_path: Path):
        good = tmp_path / "good.json"
        ProfileManager.save_profile(DeobfuscationConfig(name="good"), good)
        bad = tmp_path / "bad.json"
        bad.write_text("{}", encoding="utf-8")

        assert ProfileManager.validate_profile(good) is True
        assert ProfileManager.validate_profile(bad) is False
        assert ProfileManager.validate_profile(tmp_path / "absent.json") is False
