"""Health check endpoint."""

import time

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse

from clipper.config import get_settings

router = APIRouter()


@router.get("/health")
async def health_check(request: Request) -> JSONResponse:
    """Liveness plus configuration status.

    Returns 503 with status "degraded" when the upstream service credential or
    the session signing secret is missing. The preview key is optional.
    """
    settings = get_settings()
    services = {
        "upstream_api": bool(settings.upstream_service_token),
        "preview_api": bool(settings.preview_api_key),
        "session_secret": bool(settings.session_signing_secret),
    }
    healthy = services["upstream_api"] and services["session_secret"]
    started_at = getattr(request.app.state, "started_at", None)
    uptime_s = round(time.monotonic() - started_at, 3) if started_at is not None else 0.0

    return JSONResponse(
        status_code=200 if healthy else 503,
        content={
            "status": "ok" if healthy else "degraded",
            "version": settings.app_version,
            "environment": settings.clipper_env.value,
            "uptime_s": uptime_s,
            "services": services,
        },
    )
