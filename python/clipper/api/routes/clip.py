"""Clip route: create a post from the extension's captured page data."""

from datetime import UTC, datetime
from typing import Annotated

from fastapi import APIRouter, Depends

from clipper.api.deps import get_clip_service, get_rate_limiter
from clipper.auth.middleware import Viewer, get_viewer
from clipper.config import get_settings
from clipper.responses import success_response
from clipper.schemas.clip import ClipRequest
from clipper.services.clip import ClipService
from clipper.services.rate_limit import RateLimiter

router = APIRouter(tags=["clip"])


@router.post("/clip")
async def create_clip(
    body: ClipRequest,
    viewer: Annotated[Viewer, Depends(get_viewer)],
    limiter: Annotated[RateLimiter, Depends(get_rate_limiter)],
    clips: Annotated[ClipService, Depends(get_clip_service)],
) -> dict:
    """Clip page content into a new post.

    Returns:
        {"success": true, "message": ..., "post": {id, url, title, space_id},
         "processing": {...}, "meta": {...}}
    """
    settings = get_settings()
    limiter.check(
        f"clip:{viewer.subject_hash}",
        settings.rate_limit_clip,
        settings.rate_limit_clip_window_s,
    )

    result = await clips.clip(viewer.subject, body)

    return success_response(
        message="Content clipped successfully",
        post={
            "id": result.post.id,
            "url": result.post.url,
            "title": result.post.title,
            "space_id": result.post.space_id,
        },
        processing=result.processing,
        meta={"created_at": datetime.now(UTC).isoformat()},
    )
