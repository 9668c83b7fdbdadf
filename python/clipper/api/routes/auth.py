"""Session login route.

POST /auth exchanges a member email for a session token. The upstream token
lookup doubles as the membership check: unknown emails get
E_UPSTREAM_USER_NOT_FOUND and no session is issued.
"""

from typing import Annotated

from fastapi import APIRouter, Depends, Request

from clipper.api.deps import client_ip, get_cache, get_rate_limiter, get_upstream
from clipper.config import get_settings
from clipper.logging import get_logger
from clipper.responses import success_response
from clipper.schemas.clip import AuthRequest
from clipper.services.cache import TTLCache
from clipper.services.rate_limit import RateLimiter
from clipper.services.redact import hash_text, safe_kv
from clipper.services.upstream_auth import resolve_access_token
from clipper.upstream.client import UpstreamClient

logger = get_logger(__name__)

router = APIRouter(tags=["auth"])


def enforce_auth_rate_limit(
    request: Request,
    limiter: Annotated[RateLimiter, Depends(get_rate_limiter)],
) -> None:
    """Per-IP limit, checked before the body is validated."""
    settings = get_settings()
    limiter.check(
        f"auth:{client_ip(request)}",
        settings.rate_limit_auth,
        settings.rate_limit_auth_window_s,
    )


@router.post("/auth", dependencies=[Depends(enforce_auth_rate_limit)])
async def authenticate(
    body: AuthRequest,
    request: Request,
    upstream: Annotated[UpstreamClient, Depends(get_upstream)],
    cache: Annotated[TTLCache, Depends(get_cache)],
) -> dict:
    """Issue a session token for a community member.

    Returns:
        {"success": true, "session_token": ..., "expires_in": ..., "message": ...}
    """
    settings = get_settings()
    await resolve_access_token(body.email, upstream=upstream, cache=cache, settings=settings)

    session = request.app.state.sessions.issue(body.email)
    logger.info("session_issued", **safe_kv(email_sha256=hash_text(body.email)))

    return success_response(
        session_token=session.token,
        expires_in=session.expires_in,
        message="Authentication successful",
    )
