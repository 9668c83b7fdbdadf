"""FastAPI dependencies for route handlers.

Shared services live on app.state (created in the lifespan) and are handed to
routes through these getters, so tests can swap them on a live app.
"""

from fastapi import Request

from clipper.config import Settings, get_settings
from clipper.services.cache import TTLCache
from clipper.services.clip import ClipService
from clipper.services.media_relay import MediaRelay
from clipper.services.preview import PreviewFetcher
from clipper.services.rate_limit import RateLimiter
from clipper.upstream.client import UpstreamClient

__all__ = [
    "client_ip",
    "get_cache",
    "get_clip_service",
    "get_media_relay",
    "get_preview_fetcher",
    "get_rate_limiter",
    "get_settings",
    "get_upstream",
]


def get_cache(request: Request) -> TTLCache:
    """Token and preview cache."""
    return request.app.state.cache


def get_rate_limiter(request: Request) -> RateLimiter:
    return request.app.state.rate_limiter


def get_upstream(request: Request) -> UpstreamClient:
    """Community platform client bound to the shared httpx.AsyncClient."""
    return request.app.state.upstream


def get_preview_fetcher(request: Request) -> PreviewFetcher:
    return request.app.state.preview_fetcher


def get_media_relay(request: Request) -> MediaRelay:
    return request.app.state.media_relay


def get_clip_service(request: Request) -> ClipService:
    settings: Settings = get_settings()
    return ClipService(
        upstream=get_upstream(request),
        previews=get_preview_fetcher(request),
        relay=get_media_relay(request),
        cache=get_cache(request),
        settings=settings,
    )


def client_ip(request: Request) -> str:
    """Caller IP: first X-Forwarded-For hop, else the socket peer."""
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        first = forwarded.split(",", 1)[0].strip()
        if first:
            return first
    if request.client and request.client.host:
        return request.client.host
    return "unknown"
