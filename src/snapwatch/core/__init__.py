"""Core module exports."""

from snapwatch.core.errors import (
    ConfigError,
    ErrorCode,
    InternalError,
    ScanError,
    SnapWatchError,
    WatchError,
)
from snapwatch.core.logging import (
    clear_request_id,
    configure_logging,
    get_logger,
    get_request_id,
    set_request_id,
)
from snapwatch.core.progress import spinner, status

__all__ = [
    # Errors
    "ConfigError",
    "ErrorCode",
    "InternalError",
    "ScanError",
    "SnapWatchError",
    "WatchError",
    # Logging
    "clear_request_id",
    "configure_logging",
    "get_logger",
    "get_request_id",
    "set_request_id",
    # Progress
    "spinner",
    "status",
]
