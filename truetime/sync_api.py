"""
Starlette routes exposing the sync coordinator over HTTP.

GET endpoints only read state. POST /sync starts (or restarts) a sync and is
the only endpoint guarded by the API key.
"""

from __future__ import annotations

from typing import Any, Callable

from starlette.exceptions import HTTPException
from starlette.requests import Request
from starlette.responses import JSONResponse
from starlette.routing import Route

from truetime.config import Settings
from truetime.services.sync_coordinator import SyncCoordinator

StatusExtras = Callable[[], dict[str, Any]]


def build_sync_routes(
    settings: Settings,
    coordinator: SyncCoordinator,
    status_extras: StatusExtras | None = None,
) -> list[Route]:
    """
    Return a list of Starlette Routes for starting syncs and reading time.
    """

    async def _require_api_key(request: Request) -> None:
        if not settings.sync_api_key:
            return
        provided = request.headers.get("x-api-key")
        if provided != settings.sync_api_key:
            raise HTTPException(
                status_code=401,
                detail="Missing or invalid X-API-Key header",
            )

    async def start_sync(request: Request):
        await _require_api_key(request)
        attempt_id = coordinator.start_sync()
        return JSONResponse(
            {
                "attempt_id": attempt_id,
                "state": coordinator.state.value,
                "ntp_host": settings.ntp_host,
            },
            status_code=202,
        )

    async def current_time(_request: Request):
        estimate = coordinator.sample_current_estimate()
        if estimate is None:
            return JSONResponse(
                {
                    "available": False,
                    "message": "No successful sync yet.",
                    "state": coordinator.state.value,
                }
            )
        payload: dict[str, Any] = {"available": True, "ntp_host": settings.ntp_host}
        payload.update(estimate.to_dict())
        return JSONResponse(payload)

    async def sync_status(_request: Request):
        status = coordinator.get_status()
        status["ntp_host"] = settings.ntp_host
        if status_extras is not None:
            status.update(status_extras())
        return JSONResponse(status)

    return [
        Route("/sync", start_sync, methods=["POST"]),
        Route("/sync/status", sync_status, methods=["GET"]),
        Route("/time", current_time, methods=["GET"]),
    ]


__all__ = ["build_sync_routes"]
