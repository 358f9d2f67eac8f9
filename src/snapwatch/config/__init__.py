"""Config module exports."""

from snapwatch.config.loader import load_config
from snapwatch.config.models import (
    FilterConfig,
    LoggingConfig,
    ServerConfig,
    SnapWatchConfig,
    StateConfig,
    WatchConfig,
)
from snapwatch.config.preferences import Preferences, PreferencesStore

__all__ = [
    "load_config",
    "FilterConfig",
    "LoggingConfig",
    "Preferences",
    "PreferencesStore",
    "ServerConfig",
    "SnapWatchConfig",
    "StateConfig",
    "WatchConfig",
]
