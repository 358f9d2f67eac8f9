"""HTTP routes for the SnapWatch service.

Every operation of the snapshot service is one route. Request bodies are
JSON; failures are returned as the JSON form of SnapWatchError.
"""

from __future__ import annotations

import importlib.metadata
import json
import os
import sys
import time
from collections.abc import AsyncIterator
from typing import TYPE_CHECKING, Any, TypeVar

import structlog
from pydantic import BaseModel, ValidationError
from starlette.requests import Request
from starlette.responses import JSONResponse, Response, StreamingResponse
from starlette.routing import Route

from snapwatch.config.models import FilterConfig
from snapwatch.core.errors import ConfigError, ScanError, SnapWatchError, WatchError

if TYPE_CHECKING:
    from snapwatch.daemon.service import SnapshotService

logger = structlog.get_logger()

M = TypeVar("M", bound=BaseModel)


class ScanBody(BaseModel):
    directory: str
    config: FilterConfig | None = None
    watch: bool | None = None


class WatchBody(BaseModel):
    enabled: bool | None
    directory: str | None = None


def _get_version() -> str:
    """Get package version from installed metadata."""
    try:
        return importlib.metadata.version("snapwatch")
    except importlib.metadata.PackageNotFoundError:
        return "dev"


def _get_runtime_info() -> dict[str, Any]:
    """Get Python runtime information."""
    return {
        "python_version": sys.version.split()[0],
        "pid": os.getpid(),
    }


def filter_to_dict(config: FilterConfig) -> dict[str, Any]:
    """JSON form of a FilterConfig with stable (sorted) lists."""
    return {
        "allowed_extensions": sorted(config.allowed_extensions),
        "ignored_dir_names": sorted(config.ignored_dir_names),
        "ignored_file_names": sorted(config.ignored_file_names),
        "max_file_size_bytes": config.max_file_size_bytes,
    }


def _status_code_for(error: SnapWatchError) -> int:
    if isinstance(error, ScanError):
        return 422
    if isinstance(error, WatchError):
        return 409
    if isinstance(error, ConfigError):
        return 400
    return 500


def error_response(error: SnapWatchError) -> JSONResponse:
    return JSONResponse(error.to_dict(), status_code=_status_code_for(error))


async def _parse_body(request: Request, model: type[M]) -> M:
    """Parse and validate a JSON body, raising ConfigError on bad input."""
    try:
        data = await request.json()
    except json.JSONDecodeError as e:
        raise ConfigError.invalid_value("body", "", f"invalid JSON: {e.msg}") from e
    except UnicodeDecodeError as e:
        raise ConfigError.invalid_value("body", "", f"invalid JSON: {e.reason}") from e
    try:
        return model.model_validate(data)
    except ValidationError as e:
        first = e.errors()[0]
        field = ".".join(str(p) for p in first["loc"]) or "body"
        raise ConfigError.invalid_value(field, first.get("input", ""), first["msg"]) from e


def _format_event(data: dict[str, Any], event: str) -> str:
    return f"event: {event}\ndata: {json.dumps(data)}\n\n"


def create_routes(service: SnapshotService) -> list[Route]:
    """Create HTTP routes bound to the snapshot service."""
    start_time = time.time()
    version = _get_version()

    async def health(request: Request) -> JSONResponse:
        """Health check endpoint.

        Returns a quick status suitable for liveness probes.
        For detailed diagnostics, use /status instead.
        """
        _ = request  # unused
        return JSONResponse(
            {
                "status": "healthy",
                "version": version,
                "uptime_seconds": round(time.time() - start_time, 1),
            }
        )

    async def status(request: Request) -> JSONResponse:
        """Detailed status endpoint."""
        _ = request  # unused
        return JSONResponse(
            {
                "version": version,
                "uptime_seconds": round(time.time() - start_time, 1),
                "runtime": _get_runtime_info(),
                **service.status(),
            }
        )

    async def scan(request: Request) -> JSONResponse:
        try:
            body = await _parse_body(request, ScanBody)
            files = await service.scan(body.directory, config=body.config, watch=body.watch)
        except SnapWatchError as e:
            logger.info("scan_rejected", error=e.error_name, message=e.message)
            return error_response(e)
        return JSONResponse(
            {
                "files": [f.to_dict() for f in files],
                "watching": service.watch.is_active,
            }
        )

    async def watch(request: Request) -> JSONResponse:
        try:
            body = await _parse_body(request, WatchBody)
        except SnapWatchError as e:
            return error_response(e)
        watching = await service.toggle_watch(body.enabled, body.directory)
        return JSONResponse({"watching": watching})

    async def snapshot(request: Request) -> JSONResponse:
        _ = request  # unused
        return JSONResponse({"files": [f.to_dict() for f in service.get_snapshot()]})

    async def last_directory(request: Request) -> JSONResponse:
        _ = request  # unused
        return JSONResponse({"directory": service.get_last_directory()})

    async def refresh(request: Request) -> JSONResponse:
        _ = request  # unused
        return JSONResponse({"scheduled": service.refresh()})

    async def export(request: Request) -> Response:
        _ = request  # unused
        return Response(service.export_markdown(), media_type="text/markdown")

    async def get_config(request: Request) -> JSONResponse:
        _ = request  # unused
        return JSONResponse(filter_to_dict(service.get_filter_defaults()))

    async def put_config(request: Request) -> JSONResponse:
        try:
            config = await _parse_body(request, FilterConfig)
        except SnapWatchError as e:
            return error_response(e)
        return JSONResponse(filter_to_dict(service.save_filter_defaults(config)))

    async def events(request: Request) -> StreamingResponse:
        """Server-sent events stream of notifications."""
        subscription = service.emitter.subscribe()
        logger.info("event_stream_opened", client=request.client.host if request.client else None)

        async def stream() -> AsyncIterator[str]:
            try:
                yield _format_event({"watching": service.watch.is_active}, "connected")
                async for notification in subscription:
                    yield _format_event(notification.to_dict(), notification.kind.value)
            finally:
                service.emitter.unsubscribe(subscription)
                logger.info("event_stream_closed")

        return StreamingResponse(
            stream(),
            media_type="text/event-stream",
            headers={"Cache-Control": "no-cache"},
        )

    return [
        Route("/health", health, methods=["GET"]),
        Route("/status", status, methods=["GET"]),
        Route("/scan", scan, methods=["POST"]),
        Route("/watch", watch, methods=["POST"]),
        Route("/snapshot", snapshot, methods=["GET"]),
        Route("/last-directory", last_directory, methods=["GET"]),
        Route("/refresh", refresh, methods=["POST"]),
        Route("/export", export, methods=["GET"]),
        Route("/config", get_config, methods=["GET"]),
        Route("/config", put_config, methods=["PUT"]),
        Route("/events", events, methods=["GET"]),
    ]
