"""Starlette application factory."""

from __future__ import annotations

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import TYPE_CHECKING

from starlette.applications import Starlette

from snapwatch.daemon.middleware import RequestIdMiddleware
from snapwatch.daemon.routes import create_routes

if TYPE_CHECKING:
    from snapwatch.daemon.service import SnapshotService


def create_app(service: SnapshotService) -> Starlette:
    """Create the Starlette application serving one snapshot service."""

    @asynccontextmanager
    async def lifespan(_app: Starlette) -> AsyncIterator[None]:
        yield
        # Service stop is handled in run_server finally block
        # to ensure it runs even if lifespan exit times out

    app = Starlette(
        routes=create_routes(service),
        lifespan=lifespan,
    )
    app.add_middleware(RequestIdMiddleware)
    app.state.service = service

    return app
