"""Pydantic configuration models with env var support.

Configuration Hierarchy (highest to lowest precedence):
1. Direct kwargs to load_config()
2. Environment variables (SNAPWATCH__SECTION__KEY)
3. Global YAML (~/.config/snapwatch/config.yaml)
4. Built-in defaults (this file)

Environment Variable Format:
    SNAPWATCH__<SECTION>__<KEY>=<VALUE>

Examples:
    SNAPWATCH__LOGGING__LEVEL=DEBUG
    SNAPWATCH__SERVER__PORT=8080
    SNAPWATCH__WATCH__DEBOUNCE_SEC=0.5

FilterConfig is not part of the process configuration: it travels with each
scan request and is persisted by the preferences store.
"""

from collections.abc import Iterable
from pathlib import Path
from typing import Literal, Self

from pydantic import BaseModel, ConfigDict, Field, field_validator

from snapwatch.core.excludes import (
    DEFAULT_ALLOWED_EXTENSIONS,
    DEFAULT_IGNORED_DIRS,
    DEFAULT_IGNORED_FILES,
    DEFAULT_MAX_FILE_SIZE_BYTES,
)

LogLevel = Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]

DEFAULT_STATE_DIR = "~/.config/snapwatch"


def _normalize_extension(ext: str) -> str:
    ext = ext.strip().lower()
    if ext and not ext.startswith("."):
        ext = "." + ext
    return ext


class FilterConfig(BaseModel):
    """Which files a scan includes. Immutable per scan invocation.

    An empty allowed_extensions set means every extension is allowed.
    Extensions are stored lowercase with a leading dot (".TS" and "ts"
    both become ".ts").
    """

    model_config = ConfigDict(frozen=True)

    allowed_extensions: frozenset[str] = Field(default_factory=frozenset)
    ignored_dir_names: frozenset[str] = Field(default_factory=frozenset)
    ignored_file_names: frozenset[str] = Field(default_factory=frozenset)
    max_file_size_bytes: int = Field(
        default=DEFAULT_MAX_FILE_SIZE_BYTES,
        ge=0,
        description="Skip files larger than this many bytes.",
    )

    @field_validator("allowed_extensions", mode="before")
    @classmethod
    def normalize_extensions(cls, v: Iterable[str]) -> frozenset[str]:
        if isinstance(v, str):
            v = [v]
        return frozenset(e for e in (_normalize_extension(x) for x in v) if e)

    @field_validator("ignored_dir_names", "ignored_file_names", mode="before")
    @classmethod
    def strip_names(cls, v: Iterable[str]) -> frozenset[str]:
        if isinstance(v, str):
            v = [v]
        return frozenset(n.strip() for n in v if n.strip())

    @classmethod
    def defaults(cls) -> Self:
        """Application defaults used when nothing has been saved yet."""
        return cls(
            allowed_extensions=DEFAULT_ALLOWED_EXTENSIONS,
            ignored_dir_names=DEFAULT_IGNORED_DIRS,
            ignored_file_names=DEFAULT_IGNORED_FILES,
        )

    def allows_extension(self, ext: str) -> bool:
        return not self.allowed_extensions or ext.lower() in self.allowed_extensions


class LogOutputConfig(BaseModel):
    """Single logging output configuration."""

    format: Literal["json", "console"] = "console"
    destination: str = "stderr"  # stderr, stdout, or absolute file path
    level: LogLevel | None = None  # Inherits from parent if None

    @field_validator("destination")
    @classmethod
    def validate_destination(cls, v: str) -> str:
        if v in ("stderr", "stdout"):
            return v
        path = Path(v).expanduser()
        if not path.is_absolute():
            raise ValueError(f"File destination must be absolute path: {v}")
        return str(path)


class LoggingConfig(BaseModel):
    """Logging configuration.

    Env vars:
        SNAPWATCH__LOGGING__LEVEL: Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
    """

    level: LogLevel = Field(
        default="INFO",
        description="Root log level. DEBUG logs every skipped entry during a walk.",
    )
    outputs: list[LogOutputConfig] = Field(default_factory=lambda: [LogOutputConfig()])


class ServerConfig(BaseModel):
    """Local transport configuration.

    Env vars:
        SNAPWATCH__SERVER__HOST: Bind address (default: 127.0.0.1)
        SNAPWATCH__SERVER__PORT: Port number (default: 7655)
    """

    host: str = Field(
        default="127.0.0.1",
        description="Bind address. The service is single-consumer; keep it on loopback.",
    )
    port: int = Field(default=7655, description="Server port.")
    shutdown_timeout_sec: float = Field(
        default=5.0,
        description="Graceful shutdown timeout before force exit.",
    )

    @field_validator("port")
    @classmethod
    def validate_port(cls, v: int) -> int:
        if not (0 <= v <= 65535):
            raise ValueError(f"Port must be 0-65535, got {v}")
        return v


class WatchConfig(BaseModel):
    """Watcher and refresh coalescing configuration.

    Env vars:
        SNAPWATCH__WATCH__DEBOUNCE_SEC: Quiet period before a rescan runs
        SNAPWATCH__WATCH__READY_TIMEOUT_SEC: Max wait for the native watch to attach
    """

    debounce_sec: float = Field(
        default=0.3,
        gt=0,
        description="Quiet period after the last event before a rescan runs. Fixed, not adaptive.",
    )
    rust_timeout_ms: int = Field(
        default=500,
        gt=0,
        description="How long the native watcher blocks per poll. Bounds readiness latency.",
    )
    step_ms: int = Field(
        default=50,
        gt=0,
        description="Interval at which the native watcher checks for stop requests.",
    )
    ready_timeout_sec: float = Field(
        default=5.0,
        gt=0,
        description="Give up attaching a watch if it is not ready within this time.",
    )
    stop_timeout_sec: float = Field(
        default=2.0,
        gt=0,
        description="Native watcher shutdown timeout.",
    )


class StateConfig(BaseModel):
    """Where persisted state lives.

    Env vars:
        SNAPWATCH__STATE__STATE_DIR: Directory for preferences and pid files
    """

    state_dir: str = Field(
        default=DEFAULT_STATE_DIR,
        description="Directory holding preferences.yaml and the daemon pid/port files.",
    )
    preferences_file: str = Field(default="preferences.yaml")

    @property
    def state_path(self) -> Path:
        return Path(self.state_dir).expanduser()

    @property
    def preferences_path(self) -> Path:
        return self.state_path / self.preferences_file


class SnapWatchConfig(BaseModel):
    """Root configuration for SnapWatch."""

    logging: LoggingConfig = Field(default_factory=LoggingConfig)
    server: ServerConfig = Field(default_factory=ServerConfig)
    watch: WatchConfig = Field(default_factory=WatchConfig)
    state: StateConfig = Field(default_factory=StateConfig)
