"""Tests for SettingsManager: defaults, TOML round-trip and corrupt files.

Run with:
    python -m pytest tests/test_settings.py -v
"""
from __future__ import annotations

import os
import sys

sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

from settings import DEFAULT_GENERIC_TITLES, SettingsManager


class TestSettings:

    def test_defaults_without_file(self, tmp_path):
        sm = SettingsManager(settings_dir=tmp_path)
        s = sm.settings
        assert s.parser.max_blocks == 12
        assert s.parser.summary_max_chars == 800
        assert s.overlay.poll_interval_ms == 800
        assert s.overlay.resize_debounce_ms == 150
        assert s.overlay.placement_margin == 0.02
        assert s.projects.similarity_threshold == 0.7
        assert s.projects.generic_titles == DEFAULT_GENERIC_TITLES
        assert s.storage.quota_bytes == 10 * 1024 * 1024
        assert not sm.get_settings_path().exists()

    def test_ensure_file_complete_writes_all_sections(self, tmp_path):
        sm = SettingsManager(settings_dir=tmp_path)
        sm.ensure_file_complete()
        text = sm.get_settings_path().read_text(encoding="utf-8")
        for section in ("[parser]", "[overlay]", "[projects]", "[storage]", "[debug]"):
            assert section in text

    def test_round_trip(self, tmp_path):
        sm = SettingsManager(settings_dir=tmp_path)
        sm.settings.overlay.poll_interval_ms = 500
        sm.settings.projects.weekly_input_day = 5
        sm.settings.projects.generic_titles = ["draft"]
        sm.settings.storage.data_dir = str(tmp_path / "data")
        sm.save()

        reloaded = SettingsManager(settings_dir=tmp_path)
        assert reloaded.settings.overlay.poll_interval_ms == 500
        assert reloaded.settings.projects.weekly_input_day == 5
        assert reloaded.settings.projects.generic_titles == ["draft"]
        assert reloaded.get_data_dir() == tmp_path / "data"

    def test_partial_file_keeps_other_defaults(self, tmp_path):
        (tmp_path / "settings.toml").write_text("[parser]\nmax_blocks = 4\n", encoding="utf-8")
        s = SettingsManager(settings_dir=tmp_path).settings
        assert s.parser.max_blocks == 4
        assert s.parser.summary_max_chars == 800

    def test_corrupt_file_falls_back_to_defaults(self, tmp_path):
        (tmp_path / "settings.toml").write_text("this is [not toml", encoding="utf-8")
        s = SettingsManager(settings_dir=tmp_path).settings
        assert s.parser.max_blocks == 12

    def test_debug_section_saved(self, tmp_path):
        sm = SettingsManager(settings_dir=tmp_path)
        sm.settings.debug.trace = True
        sm.settings.debug.trace_file = str(tmp_path / "trace.log")
        sm.save()

        reloaded = SettingsManager(settings_dir=tmp_path)
        assert reloaded.settings.debug.trace is True
        assert reloaded.settings.debug.trace_file == str(tmp_path / "trace.log")
