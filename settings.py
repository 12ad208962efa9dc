"""
settings.py

Persistent settings management for SlidePin.

Handles cross-platform settings storage using TOML format with platformdirs
for proper user config directory detection.

Settings file location:
    - Windows: %APPDATA%/slidepin/settings.toml
    - macOS: ~/Library/Application Support/slidepin/settings.toml
    - Linux: ~/.config/slidepin/settings.toml

Default values are documented in comments throughout this file.
If settings.toml is corrupted, these defaults will be used.
"""

from __future__ import annotations

import sys
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional

import platformdirs

# TOML reading - use tomllib for Python 3.11+, tomli for earlier versions
if sys.version_info >= (3, 11):
    import tomllib
else:
    import tomli as tomllib

import tomli_w

APP_NAME = "slidepin"

# Global settings manager instance (singleton)
_settings_manager: Optional["SettingsManager"] = None


def get_settings() -> "SettingsManager":
    """Get the global settings manager instance.

    Returns:
        The singleton SettingsManager instance.
    """
    global _settings_manager
    if _settings_manager is None:
        _settings_manager = SettingsManager()
    return _settings_manager


# =============================================================================
# Parser Settings
# =============================================================================

@dataclass
class ParserSettings:
    """Free-text feedback parsing limits.

    Defaults:
        max_blocks: 12
        summary_max_chars: 800
        ellipsis: "…"
    """
    max_blocks: int = 12            # Default: 12 blank-line separated blocks
    summary_max_chars: int = 800    # Default: 800 characters
    ellipsis: str = "…"             # Default: single-character ellipsis


# =============================================================================
# Overlay Settings
# =============================================================================

@dataclass
class OverlaySettings:
    """Overlay synchronization and placement settings.

    Defaults:
        poll_interval_ms: 800
        resize_debounce_ms: 150
        scroll_debounce_ms: 150
        placement_margin: 0.02
        bubble_edge_threshold: 0.3
    """
    poll_interval_ms: int = 800          # Default: 800 ms slide index poll
    resize_debounce_ms: int = 150        # Default: 150 ms
    scroll_debounce_ms: int = 150        # Default: 150 ms
    placement_margin: float = 0.02       # Default: 2% inset on manual pins
    bubble_edge_threshold: float = 0.3   # Default: 0.3 (0.7 on the far side)


# =============================================================================
# Project Settings
# =============================================================================

DEFAULT_GENERIC_TITLES: List[str] = [
    "untitled presentation",
    "untitled project",
    "untitled",
    "presentation",
    "無題のプレゼンテーション",
    "無題のプロジェクト",
]


@dataclass
class ProjectSettings:
    """Project registry and context retention settings.

    Defaults:
        similarity_threshold: 0.7
        max_filled_contexts: 20
        pending_retention_days: 21
        weekly_input_day: 1 (Monday, 0 = Sunday)
        generic_titles: see DEFAULT_GENERIC_TITLES
    """
    similarity_threshold: float = 0.7    # Default: 0.7
    max_filled_contexts: int = 20        # Default: 20 entries
    pending_retention_days: int = 21     # Default: 21 days
    weekly_input_day: int = 1            # Default: Monday
    generic_titles: List[str] = field(default_factory=lambda: list(DEFAULT_GENERIC_TITLES))


# =============================================================================
# Storage Settings
# =============================================================================

@dataclass
class StorageSettings:
    """Persistence backend settings.

    Defaults:
        data_dir: "" (platformdirs user data dir)
        quota_bytes: 10485760 (10 MB)
    """
    data_dir: str = ""               # Default: "" = platform user data dir
    quota_bytes: int = 10 * 1024 * 1024


# =============================================================================
# Debug Settings
# =============================================================================

@dataclass
class DebugSettings:
    """Trace output settings.

    Defaults:
        trace: False
        trace_file: ""
    """
    trace: bool = False      # Default: False
    trace_file: str = ""     # Default: "" = stderr only


# =============================================================================
# Application Settings Container
# =============================================================================

@dataclass
class AppSettings:
    """Application settings with default values.

    Attributes:
        parser: Free-text parsing limits.
        overlay: Overlay timers and placement margins.
        projects: Project registry and retention policy.
        storage: Persistence backend options.
        debug: Trace output options.
    """
    parser: ParserSettings = field(default_factory=ParserSettings)
    overlay: OverlaySettings = field(default_factory=OverlaySettings)
    projects: ProjectSettings = field(default_factory=ProjectSettings)
    storage: StorageSettings = field(default_factory=StorageSettings)
    debug: DebugSettings = field(default_factory=DebugSettings)


# =============================================================================
# Settings Manager
# =============================================================================

class SettingsManager:
    """Manages loading, saving, and accessing application settings.

    Settings are stored in a TOML file at the platform-appropriate location.
    If the settings file doesn't exist, defaults are used and the file is
    created on first save.

    Args:
        app_name: Application name used for the config directory.
        settings_dir: Optional explicit directory (used by tests).
    """

    def __init__(self, app_name: str = APP_NAME, settings_dir: Optional[Path] = None):
        self.app_name = app_name
        self.settings_dir = Path(settings_dir) if settings_dir else Path(platformdirs.user_config_dir(app_name))
        self.settings_file = self.settings_dir / "settings.toml"
        self.settings = self.load()
        self._needs_save = not self.settings_file.exists()  # Save if file didn't exist

    def ensure_file_complete(self) -> None:
        """Ensure settings file exists with all sections. Call once at startup."""
        if self._needs_save or not self.settings_file.exists():
            self.save()
            self._needs_save = False

    def load(self) -> AppSettings:
        """Load settings from the TOML file.

        Returns:
            AppSettings instance with values from file or defaults if file
            doesn't exist or is invalid.
        """
        if not self.settings_file.exists():
            return AppSettings()

        try:
            with open(self.settings_file, "rb") as f:
                data = tomllib.load(f)

            return self._parse_toml(data)
        except Exception:
            # Corrupted or invalid file: fall back to defaults
            return AppSettings()

    def _parse_toml(self, data: Dict[str, Any]) -> AppSettings:
        """Parse TOML data into AppSettings.

        Args:
            data: Parsed TOML dictionary.

        Returns:
            AppSettings instance populated from TOML data.
        """
        settings = AppSettings()

        parser = data.get("parser", {})
        settings.parser.max_blocks = parser.get("max_blocks", settings.parser.max_blocks)
        settings.parser.summary_max_chars = parser.get("summary_max_chars", settings.parser.summary_max_chars)
        settings.parser.ellipsis = parser.get("ellipsis", settings.parser.ellipsis)

        overlay = data.get("overlay", {})
        settings.overlay.poll_interval_ms = overlay.get("poll_interval_ms", settings.overlay.poll_interval_ms)
        settings.overlay.resize_debounce_ms = overlay.get("resize_debounce_ms", settings.overlay.resize_debounce_ms)
        settings.overlay.scroll_debounce_ms = overlay.get("scroll_debounce_ms", settings.overlay.scroll_debounce_ms)
        settings.overlay.placement_margin = overlay.get("placement_margin", settings.overlay.placement_margin)
        settings.overlay.bubble_edge_threshold = overlay.get("bubble_edge_threshold", settings.overlay.bubble_edge_threshold)

        projects = data.get("projects", {})
        settings.projects.similarity_threshold = projects.get("similarity_threshold", settings.projects.similarity_threshold)
        settings.projects.max_filled_contexts = projects.get("max_filled_contexts", settings.projects.max_filled_contexts)
        settings.projects.pending_retention_days = projects.get("pending_retention_days", settings.projects.pending_retention_days)
        settings.projects.weekly_input_day = projects.get("weekly_input_day", settings.projects.weekly_input_day)
        settings.projects.generic_titles = list(projects.get("generic_titles", settings.projects.generic_titles))

        storage = data.get("storage", {})
        settings.storage.data_dir = storage.get("data_dir", settings.storage.data_dir)
        settings.storage.quota_bytes = storage.get("quota_bytes", settings.storage.quota_bytes)

        debug = data.get("debug", {})
        settings.debug.trace = debug.get("trace", settings.debug.trace)
        settings.debug.trace_file = debug.get("trace_file", settings.debug.trace_file)

        return settings

    def save(self) -> None:
        """Save current settings to the TOML file.

        Creates the settings directory if it doesn't exist.
        """
        self.settings_dir.mkdir(parents=True, exist_ok=True)

        data = self._to_toml_dict()

        with open(self.settings_file, "wb") as f:
            tomli_w.dump(data, f)

    def _to_toml_dict(self) -> Dict[str, Any]:
        """Convert settings to a TOML-compatible dictionary structure.

        Returns:
            Dictionary organized by TOML sections.
        """
        s = self.settings
        return {
            "parser": {
                "max_blocks": s.parser.max_blocks,
                "summary_max_chars": s.parser.summary_max_chars,
                "ellipsis": s.parser.ellipsis,
            },
            "overlay": {
                "poll_interval_ms": s.overlay.poll_interval_ms,
                "resize_debounce_ms": s.overlay.resize_debounce_ms,
                "scroll_debounce_ms": s.overlay.scroll_debounce_ms,
                "placement_margin": s.overlay.placement_margin,
                "bubble_edge_threshold": s.overlay.bubble_edge_threshold,
            },
            "projects": {
                "similarity_threshold": s.projects.similarity_threshold,
                "max_filled_contexts": s.projects.max_filled_contexts,
                "pending_retention_days": s.projects.pending_retention_days,
                "weekly_input_day": s.projects.weekly_input_day,
                "generic_titles": list(s.projects.generic_titles),
            },
            "storage": {
                "data_dir": s.storage.data_dir,
                "quota_bytes": s.storage.quota_bytes,
            },
            "debug": {
                "trace": s.debug.trace,
                "trace_file": s.debug.trace_file,
            },
        }

    def get_data_dir(self) -> Path:
        """Get the resolved storage directory path.

        Returns:
            Path to the data directory. Falls back to the platformdirs user
            data directory if the data_dir setting is empty.
        """
        if self.settings.storage.data_dir:
            return Path(self.settings.storage.data_dir)
        return Path(platformdirs.user_data_dir(self.app_name))

    def get_settings_path(self) -> Path:
        """Get the path to the settings file.

        Returns:
            Path object pointing to the settings file location.
        """
        return self.settings_file
