"""Engine settings storage and management.

Settings are stored as JSON in the OS user config directory via platformdirs,
using atomic writes (temp file + rename) to prevent corruption.
"""

from __future__ import annotations

import json
import os
import tempfile
from dataclasses import asdict, dataclass, fields
from datetime import datetime, timezone
from enum import Enum
from pathlib import Path
from typing import Any

import platformdirs

# Settings format version for migrations
SETTINGS_VERSION = 1

# App name for platformdirs
APP_NAME = "cogboard"


class ExportFormat(Enum):
    """Artifact format options."""

    npz = "npz"
    csv = "csv"
    tsv = "tsv"
    excel_compatible = "excel_compatible"


@dataclass
class EngineSettings:
    """Acquisition engine settings."""

    # Metadata
    settings_version: int = SETTINGS_VERSION
    last_updated_utc: str = ""

    # Acquisition
    sample_rate_hz: float = 44.0
    warn_on_duplicate: bool = True

    # Buffers (initial row allocations, not limits)
    all_capacity_hint: int = 10_000
    trial_capacity_hint: int = 1_000
    clear_trial_on_all_export: bool = True

    # Startup
    ready_button: str = "A"
    ready_timeout_seconds: float | None = None

    # Display
    use_gui: bool = True
    display_window_seconds: float = 10.0
    display_queue_size: int = 256

    # Export
    output_directory: str = ""
    export_format: str = ExportFormat.npz.value

    # Diagnostics
    log_level: str = "INFO"

    def validate(self) -> None:
        """Check values that would break the engine.

        Raises:
            ValueError: Describing the first invalid setting.
        """
        if self.sample_rate_hz <= 0:
            raise ValueError(f"sample_rate_hz must be positive, got {self.sample_rate_hz}")
        if self.all_capacity_hint <= 0:
            raise ValueError(f"all_capacity_hint must be positive, got {self.all_capacity_hint}")
        if self.trial_capacity_hint <= 0:
            raise ValueError(
                f"trial_capacity_hint must be positive, got {self.trial_capacity_hint}"
            )
        if self.display_window_seconds <= 0:
            raise ValueError(
                f"display_window_seconds must be positive, got {self.display_window_seconds}"
            )
        if self.display_queue_size <= 0:
            raise ValueError(f"display_queue_size must be positive, got {self.display_queue_size}")
        if self.export_format not in {f.value for f in ExportFormat}:
            raise ValueError(f"Unknown export_format: {self.export_format}")

    @property
    def display_points(self) -> int:
        """Number of COG points in the display history window."""
        return max(1, int(self.display_window_seconds * self.sample_rate_hz))


def get_settings_dir() -> Path:
    """Return the OS-specific user config directory for cogboard."""
    return Path(platformdirs.user_config_dir(APP_NAME))


def get_settings_path() -> Path:
    """Return the full path to the settings.json file."""
    return get_settings_dir() / "settings.json"


class SettingsStore:
    """Handles loading and saving engine settings with atomic writes.

    Example usage:
        store = SettingsStore()
        settings = store.load()
        settings.sample_rate_hz = 50.0
        store.save(settings)
    """

    def __init__(self, settings_path: Path | None = None) -> None:
        """Initialize the settings store.

        Args:
            settings_path: Custom path for the settings file. If None, uses
                the default OS config directory location.
        """
        self._path = settings_path or get_settings_path()

    @property
    def path(self) -> Path:
        """Return the settings file path."""
        return self._path

    def load(self) -> EngineSettings:
        """Load settings from disk.

        Returns:
            EngineSettings with values from disk, or defaults if the file
            doesn't exist, is unreadable or holds invalid values.
        """
        if not self._path.exists():
            return EngineSettings()

        try:
            with open(self._path, encoding="utf-8") as f:
                data = json.load(f)
            settings = self._from_dict(data)
            settings.validate()
        except (json.JSONDecodeError, OSError, TypeError, ValueError, AttributeError):
            return EngineSettings()
        return settings

    def save(self, settings: EngineSettings) -> None:
        """Save settings to disk using atomic write.

        Args:
            settings: The settings to save.

        Raises:
            ValueError: If the settings are invalid.
            OSError: If the directory cannot be created or write fails.
        """
        settings.validate()
        settings.last_updated_utc = datetime.now(timezone.utc).isoformat()
        settings.settings_version = SETTINGS_VERSION

        self._path.parent.mkdir(parents=True, exist_ok=True)
        content = json.dumps(asdict(settings), indent=2, ensure_ascii=False)

        fd, tmp_path = tempfile.mkstemp(
            suffix=".tmp",
            prefix="settings_",
            dir=self._path.parent,
        )
        try:
            try:
                os.write(fd, content.encode("utf-8"))
                os.fsync(fd)
            finally:
                os.close(fd)
            os.replace(tmp_path, self._path)
        except BaseException:
            try:
                os.unlink(tmp_path)
            except OSError:
                pass
            raise

    def reset(self) -> EngineSettings:
        """Delete the stored settings and return defaults."""
        try:
            self._path.unlink()
        except FileNotFoundError:
            pass
        return EngineSettings()

    def _from_dict(self, data: dict[str, Any]) -> EngineSettings:
        """Convert a dictionary to EngineSettings.

        Unknown keys are ignored, missing keys use defaults.
        """
        valid_fields = {f.name for f in fields(EngineSettings)}
        kwargs = {key: value for key, value in data.items() if key in valid_fields}
        return EngineSettings(**kwargs)
