"""Persisted user preferences: last used directory and filter defaults.

Stored in <state_dir>/preferences.yaml. The file is rewritten by the service
whenever the last directory or the saved filter changes; users may edit it
while the service is stopped. An unreadable or invalid file is treated as
absent and defaults are used.
"""

from __future__ import annotations

import threading
from pathlib import Path

import structlog
import yaml
from pydantic import BaseModel, Field, ValidationError

from snapwatch.config.models import FilterConfig
from snapwatch.core.excludes import (
    DEFAULT_ALLOWED_EXTENSIONS,
    DEFAULT_IGNORED_DIRS,
    DEFAULT_IGNORED_FILES,
    DEFAULT_MAX_FILE_SIZE_BYTES,
)

logger = structlog.get_logger()

PREFERENCES_HEADER = """\
# SnapWatch preferences
# Rewritten by the service when the last directory or saved filter changes.

"""


class FilterPreferences(BaseModel):
    """YAML-friendly form of FilterConfig (sorted lists instead of sets)."""

    allowed_types: list[str] = Field(default_factory=lambda: sorted(DEFAULT_ALLOWED_EXTENSIONS))
    ignore_dirs: list[str] = Field(default_factory=lambda: sorted(DEFAULT_IGNORED_DIRS))
    ignore_files: list[str] = Field(default_factory=lambda: sorted(DEFAULT_IGNORED_FILES))
    max_file_size_bytes: int = Field(default=DEFAULT_MAX_FILE_SIZE_BYTES, ge=0)

    def to_filter_config(self) -> FilterConfig:
        return FilterConfig(
            allowed_extensions=self.allowed_types,
            ignored_dir_names=self.ignore_dirs,
            ignored_file_names=self.ignore_files,
            max_file_size_bytes=self.max_file_size_bytes,
        )

    @classmethod
    def from_filter_config(cls, config: FilterConfig) -> FilterPreferences:
        return cls(
            allowed_types=sorted(config.allowed_extensions),
            ignore_dirs=sorted(config.ignored_dir_names),
            ignore_files=sorted(config.ignored_file_names),
            max_file_size_bytes=config.max_file_size_bytes,
        )


class Preferences(BaseModel):
    """Everything the service remembers between sessions."""

    last_directory: str | None = Field(
        default=None,
        description="Directory of the last completed scan.",
    )
    filter: FilterPreferences = Field(default_factory=FilterPreferences)


def load_preferences(path: Path) -> Preferences:
    """Load preferences from YAML file, falling back to defaults."""
    if not path.exists():
        return Preferences()
    try:
        with path.open() as f:
            data = yaml.safe_load(f) or {}
        return Preferences(**data)
    except (OSError, yaml.YAMLError, ValidationError, TypeError) as e:
        logger.warning("preferences_unreadable", path=str(path), error=str(e))
        return Preferences()


def write_preferences(path: Path, prefs: Preferences) -> None:
    """Write preferences file with header."""
    path.parent.mkdir(parents=True, exist_ok=True)
    data = prefs.model_dump()
    content = PREFERENCES_HEADER + yaml.safe_dump(data, default_flow_style=False, sort_keys=False)
    path.write_text(content)


class PreferencesStore:
    """Read/write access to the preferences file.

    Keeps the loaded preferences in memory and only touches the disk when a
    value actually changes.
    """

    def __init__(self, path: Path) -> None:
        self.path = path
        self._lock = threading.Lock()
        self._prefs = load_preferences(path)

    @property
    def preferences(self) -> Preferences:
        with self._lock:
            return self._prefs.model_copy(deep=True)

    def get_last_directory(self) -> str | None:
        with self._lock:
            return self._prefs.last_directory

    def set_last_directory(self, directory: str) -> None:
        with self._lock:
            if self._prefs.last_directory == directory:
                return
            self._prefs = self._prefs.model_copy(update={"last_directory": directory})
            self._save_locked()

    def get_filter_config(self) -> FilterConfig:
        with self._lock:
            return self._prefs.filter.to_filter_config()

    def set_filter_config(self, config: FilterConfig) -> FilterConfig:
        with self._lock:
            self._prefs = self._prefs.model_copy(
                update={"filter": FilterPreferences.from_filter_config(config)}
            )
            self._save_locked()
            return self._prefs.filter.to_filter_config()

    def _save_locked(self) -> None:
        try:
            write_preferences(self.path, self._prefs)
        except OSError as e:
            # The in-memory value stays authoritative for this session
            logger.warning("preferences_write_failed", path=str(self.path), error=str(e))
