"""Link preview route."""

from datetime import UTC, datetime
from typing import Annotated

from fastapi import APIRouter, Depends, Query

from clipper.api.deps import get_preview_fetcher, get_rate_limiter
from clipper.auth.middleware import Viewer, get_viewer
from clipper.config import get_settings
from clipper.errors import InvalidRequestError
from clipper.responses import success_response
from clipper.schemas.clip import validate_http_url
from clipper.services.preview import PreviewFetcher
from clipper.services.rate_limit import RateLimiter

router = APIRouter(tags=["preview"])


@router.get("/preview")
async def get_preview(
    viewer: Annotated[Viewer, Depends(get_viewer)],
    limiter: Annotated[RateLimiter, Depends(get_rate_limiter)],
    previews: Annotated[PreviewFetcher, Depends(get_preview_fetcher)],
    url: Annotated[str | None, Query()] = None,
) -> dict:
    """Preview metadata for a URL.

    Never fails because of the metadata service: the response falls back to a
    heuristic preview (preview.source == "fallback").
    """
    settings = get_settings()
    limiter.check(
        f"preview:{viewer.subject_hash}",
        settings.rate_limit_preview,
        settings.rate_limit_preview_window_s,
    )

    try:
        target = validate_http_url(url)
    except ValueError as e:
        raise InvalidRequestError(str(e)) from e
    if target is None:
        raise InvalidRequestError("URL parameter is required")

    cache_status = "hit" if previews.is_cached(target) else "miss"
    preview = await previews.get_preview(target)

    return success_response(
        preview=preview.model_dump(exclude={"thumbnail_signed_id"}),
        meta={
            "requested_at": datetime.now(UTC).isoformat(),
            "cache_status": cache_status,
        },
    )
