"""Upstream access token resolution.

Exchanges a member email for an upstream access token, reusing a cached token
while it is still fresh. Cached tokens live for the upstream-stated lifetime
minus UPSTREAM_TOKEN_CACHE_MARGIN_S so a token is never used right at its expiry.
"""

from clipper.config import MIN_TOKEN_CACHE_TTL_S, Settings
from clipper.logging import get_logger
from clipper.services.cache import TTLCache, cache_key
from clipper.services.redact import hash_text, safe_kv
from clipper.upstream.client import UpstreamClient
from clipper.upstream.errors import UpstreamError

logger = get_logger(__name__)


def token_cache_ttl(expires_in: int | None, settings: Settings) -> int:
    """Cache lifetime for a freshly issued token."""
    if expires_in is None:
        return settings.upstream_token_cache_ttl_s
    return max(MIN_TOKEN_CACHE_TTL_S, expires_in - settings.upstream_token_cache_margin_s)


async def resolve_access_token(
    email: str,
    *,
    upstream: UpstreamClient,
    cache: TTLCache,
    settings: Settings,
) -> str:
    """Return an upstream access token for email.

    Raises:
        ApiError: E_UPSTREAM_USER_NOT_FOUND (404), E_UPSTREAM_CONFIG (500),
            E_UPSTREAM_PROTOCOL (502), E_UPSTREAM_FAILED (502) or
            E_UPSTREAM_TIMEOUT (504), converted from the UpstreamError.
    """
    key = cache_key("token", email)
    cached = cache.get(key)
    if cached is not None:
        logger.debug("access_token_cache_hit", **safe_kv(email_sha256=hash_text(email)))
        return cached

    try:
        member_token = await upstream.issue_member_token(email)
    except UpstreamError as e:
        logger.warning(
            "access_token_failed",
            **safe_kv(
                email_sha256=hash_text(email),
                upstream_error=e.error_class.value,
                status_code=e.status_code,
            ),
        )
        raise e.to_api_error() from e

    ttl_s = token_cache_ttl(member_token.expires_in, settings)
    cache.set(key, member_token.access_token, ttl_s)
    logger.info(
        "access_token_issued", **safe_kv(email_sha256=hash_text(email), cache_ttl_s=ttl_s)
    )
    return member_token.access_token


def invalidate_access_token(email: str, cache: TTLCache) -> None:
    """Forget a cached token, e.g. after the upstream rejected it."""
    cache.delete(cache_key("token", email))

