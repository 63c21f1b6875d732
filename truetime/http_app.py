"""
Factory helpers for the Starlette HTTP application.
"""

from __future__ import annotations

import contextlib
import logging
import time

from starlette.applications import Starlette
from starlette.middleware import Middleware
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.responses import JSONResponse, Response
from starlette.routing import Route

from truetime.config import Settings, get_settings
from truetime.services.ntp_time import NtpQuerySource
from truetime.services.resync_loop import ResyncLoopService
from truetime.services.sync_coordinator import (
    LoggingSyncObserver,
    SyncCoordinator,
)
from truetime.sync_api import build_sync_routes

logger = logging.getLogger(__name__)


def build_coordinator(settings: Settings) -> SyncCoordinator:
    """Create a coordinator that queries the configured NTP server."""
    source = NtpQuerySource(
        host=settings.ntp_host,
        port=settings.ntp_port,
        version=settings.ntp_version,
        timeout_seconds=settings.ntp_timeout_seconds,
    )
    return SyncCoordinator(source)


async def _log_requests(request, call_next):
    start_time = time.monotonic()
    try:
        response = await call_next(request)
    except Exception:
        logger.error(
            "%s %s failed after %.4fs",
            request.method,
            request.url.path,
            time.monotonic() - start_time,
            exc_info=True,
        )
        raise
    logger.info(
        "%s %s -> %s (%.4fs)",
        request.method,
        request.url.path,
        response.status_code,
        time.monotonic() - start_time,
    )
    return response


async def _not_found_handler(request, _exc):
    logger.warning(
        "404 Not Found - method=%s path=%s",
        request.method,
        request.url.path,
    )
    return Response("Not Found", status_code=404)


def create_starlette_app(
    settings: Settings | None = None,
    coordinator: SyncCoordinator | None = None,
) -> Starlette:
    """Create and configure the Starlette application."""

    settings = settings or get_settings()
    coordinator = coordinator or build_coordinator(settings)
    resync_loop = ResyncLoopService(
        coordinator,
        interval_seconds=settings.resync_interval_seconds,
    )
    observer = LoggingSyncObserver(host_label=settings.ntp_host)

    sync_routes = build_sync_routes(
        settings,
        coordinator,
        status_extras=lambda: {"resync": resync_loop.get_status()},
    )

    async def health_check(_request):
        return JSONResponse(
            {
                "status": "healthy",
                "server": "truetime",
                "version": settings.app_version,
            }
        )

    async def root_endpoint(_request):
        return JSONResponse(
            {
                "server": "truetime",
                "status": "running",
                "endpoints": {
                    "/sync": "POST to start or restart a sync",
                    "/sync/status": "Sync state, last attempt and anchor",
                    "/time": "Current true-time estimate and drift",
                    "/health": "Health check endpoint",
                },
            }
        )

    @contextlib.asynccontextmanager
    async def lifespan(_app):
        coordinator.register_observer(observer)
        logger.info("Starlette app started - NTP host %s", settings.ntp_host)
        if settings.sync_on_startup:
            coordinator.start_sync()
        await resync_loop.start()
        try:
            yield
        finally:
            logger.info("Shutdown signal received - releasing sync resources")
            await resync_loop.stop()
            try:
                coordinator.shutdown()
            except Exception:
                logger.exception("Error shutting down sync coordinator")
            coordinator.unregister_observer(observer)

    routes = sync_routes + [
        Route("/health", health_check, methods=["GET"]),
        Route("/", root_endpoint, methods=["GET"]),
    ]

    app = Starlette(
        routes=routes,
        middleware=[Middleware(BaseHTTPMiddleware, dispatch=_log_requests)],
        exception_handlers={404: _not_found_handler},
        lifespan=lifespan,
    )
    app.state.coordinator = coordinator
    app.state.resync_loop = resync_loop
    return app


__all__ = ["build_coordinator", "create_starlette_app"]
