"""SnapWatch error types with typed error codes.

Error code ranges:
- 2xxx: Config
- 3xxx: Scan
- 4xxx: Watch
- 9xxx: Internal

Per-entry walker failures (permission denied, symlinks, vanished files) are
not errors: they are skipped and logged by the walker.
"""

from dataclasses import dataclass, field
from enum import IntEnum
from typing import Any


class ErrorCode(IntEnum):
    """Typed error codes for programmatic handling."""

    # Config (2xxx)
    CONFIG_PARSE_ERROR = 2001
    CONFIG_INVALID_VALUE = 2002

    # Scan (3xxx)
    SCAN_ROOT_UNREADABLE = 3001

    # Watch (4xxx)
    WATCH_ATTACH_FAILED = 4001
    WATCH_RUNTIME_ERROR = 4002

    # Internal (9xxx)
    INTERNAL_ERROR = 9001
    INTERNAL_TIMEOUT = 9002


@dataclass(eq=False, slots=True)
class SnapWatchError(Exception):
    """Base error with structured context for transport responses.

    Not frozen: context managers and task machinery assign __traceback__
    on exceptions passing through them.
    """

    code: ErrorCode
    message: str
    retryable: bool = False
    details: dict[str, Any] = field(default_factory=dict)

    @property
    def error_name(self) -> str:
        """String identifier for logging (e.g., 'SCAN_ROOT_UNREADABLE')."""
        return self.code.name

    def to_dict(self) -> dict[str, Any]:
        """Serialize for JSON responses."""
        return {
            "code": self.code.value,
            "error": self.error_name,
            "message": self.message,
            "retryable": self.retryable,
            "details": self.details,
        }

    def __str__(self) -> str:
        return f"[{self.code.value}] {self.error_name}: {self.message}"


class ConfigError(SnapWatchError):
    """Configuration-related errors."""

    @classmethod
    def parse_error(cls, path: str, reason: str) -> "ConfigError":
        return cls(
            code=ErrorCode.CONFIG_PARSE_ERROR,
            message=f"Failed to parse config at {path}: {reason}",
            details={"path": path, "reason": reason},
        )

    @classmethod
    def invalid_value(cls, field: str, value: Any, reason: str) -> "ConfigError":
        return cls(
            code=ErrorCode.CONFIG_INVALID_VALUE,
            message=f"Invalid value for '{field}': {reason}",
            details={"field": field, "value": str(value), "reason": reason},
        )


class ScanError(SnapWatchError):
    """The scan root itself could not be read."""

    @classmethod
    def root_unreadable(cls, root: str, reason: str) -> "ScanError":
        return cls(
            code=ErrorCode.SCAN_ROOT_UNREADABLE,
            message=f"Cannot read scan root {root}: {reason}",
            retryable=True,
            details={"root": root, "reason": reason},
        )


class WatchError(SnapWatchError):
    """Native filesystem watch errors."""

    @classmethod
    def attach_failed(cls, directory: str, reason: str) -> "WatchError":
        return cls(
            code=ErrorCode.WATCH_ATTACH_FAILED,
            message=f"Could not watch {directory}: {reason}",
            retryable=True,
            details={"directory": directory, "reason": reason},
        )

    @classmethod
    def runtime_error(cls, directory: str, reason: str) -> "WatchError":
        return cls(
            code=ErrorCode.WATCH_RUNTIME_ERROR,
            message=f"Watch on {directory} failed: {reason}",
            details={"directory": directory, "reason": reason},
        )


class InternalError(SnapWatchError):
    """Internal/unexpected errors."""

    @classmethod
    def unexpected(cls, reason: str, **details: Any) -> "InternalError":
        return cls(
            code=ErrorCode.INTERNAL_ERROR,
            message=f"Internal error: {reason}",
            details=details,
        )

    @classmethod
    def timeout(cls, operation: str, seconds: float) -> "InternalError":
        return cls(
            code=ErrorCode.INTERNAL_TIMEOUT,
            message=f"{operation} timed out after {seconds}s",
            retryable=True,
            details={"operation": operation, "seconds": seconds},
        )
