"""Structured logging for SnapWatch.

structlog events are rendered by stdlib logging handlers, so records from
uvicorn and watchfiles land in the same outputs as the service's own. The
HTTP middleware binds a request id into structlog's context variables and
every record logged while handling that request carries it.
"""

from __future__ import annotations

import logging
import sys
from pathlib import Path
from typing import TYPE_CHECKING
from uuid import uuid4

import structlog

if TYPE_CHECKING:
    from snapwatch.config.models import LoggingConfig, LogOutputConfig

REQUEST_ID_KEY = "request_id"

_STREAM_DESTINATIONS = ("stderr", "stdout")

# Loggers that report every raw event below WARNING
_NOISY_LOGGERS = ("watchfiles.main", "uvicorn.access")


def set_request_id(request_id: str | None = None) -> str:
    """Bind a request correlation id, generating one when none is given."""
    rid = request_id or uuid4().hex[:12]
    structlog.contextvars.bind_contextvars(**{REQUEST_ID_KEY: rid})
    return rid


def get_request_id() -> str | None:
    rid = structlog.contextvars.get_contextvars().get(REQUEST_ID_KEY)
    return str(rid) if rid is not None else None


def clear_request_id() -> None:
    structlog.contextvars.unbind_contextvars(REQUEST_ID_KEY)


def _to_level(name: str | None, default: int) -> int:
    if name is None:
        return default
    return logging.getLevelNamesMapping().get(name.upper(), default)


def _open_handler(output: LogOutputConfig) -> logging.Handler:
    if output.destination == "stderr":
        return logging.StreamHandler(sys.stderr)
    if output.destination == "stdout":
        return logging.StreamHandler(sys.stdout)
    path = Path(output.destination)
    path.parent.mkdir(parents=True, exist_ok=True)
    return logging.FileHandler(path, mode="a", encoding="utf-8")


def _renderer_for(output: LogOutputConfig) -> structlog.types.Processor:
    if output.format == "json":
        return structlog.processors.JSONRenderer()
    stream = sys.stdout if output.destination == "stdout" else sys.stderr
    colors = output.destination in _STREAM_DESTINATIONS and stream.isatty()
    return structlog.dev.ConsoleRenderer(colors=colors)


def configure_logging(
    *,
    config: LoggingConfig | None = None,
    json_format: bool = False,
    level: str = "INFO",
) -> Path | None:
    """Send structlog and stdlib records to the configured outputs.

    Without config, one stderr output at `level` is used. Calling this again
    replaces (and closes) the handlers of the previous call.

    Returns:
        The first file destination, or None when logging only to streams.
    """
    from snapwatch.config.models import LoggingConfig, LogOutputConfig

    if config is None:
        config = LoggingConfig(
            level=level,
            outputs=[LogOutputConfig(format="json" if json_format else "console")],
        )
    root_level = _to_level(config.level, logging.INFO)

    pre_chain: list[structlog.types.Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="%Y-%m-%d %H:%M:%S", key="timestamp"),
    ]
    structlog.configure(
        processors=[*pre_chain, structlog.stdlib.ProcessorFormatter.wrap_for_formatter],
        wrapper_class=structlog.make_filtering_bound_logger(root_level),
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        # Reconfiguration must reach loggers that were already handed out
        cache_logger_on_first_use=False,
    )

    root = logging.getLogger()
    for old in list(root.handlers):
        root.removeHandler(old)
        old.close()
    root.setLevel(root_level)
    for name in _NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    log_file: Path | None = None
    for output in config.outputs:
        handler = _open_handler(output)
        handler.setLevel(_to_level(output.level, root_level))
        handler.setFormatter(
            structlog.stdlib.ProcessorFormatter(
                processor=_renderer_for(output),
                foreign_pre_chain=pre_chain,
            )
        )
        root.addHandler(handler)
        if log_file is None and output.destination not in _STREAM_DESTINATIONS:
            log_file = Path(output.destination)
    return log_file


def get_logger(name: str | None = None) -> structlog.stdlib.BoundLogger:
    logger = structlog.get_logger()
    if name:
        logger = logger.bind(logger=name)
    return logger  # type: ignore[no-any-return]
