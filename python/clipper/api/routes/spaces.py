"""Space listing route."""

from datetime import UTC, datetime
from typing import Annotated

from fastapi import APIRouter, Depends

from clipper.api.deps import get_cache, get_upstream
from clipper.auth.middleware import Viewer, get_viewer
from clipper.config import get_settings
from clipper.responses import success_response
from clipper.services import spaces as spaces_service
from clipper.services.cache import TTLCache
from clipper.services.upstream_auth import invalidate_access_token, resolve_access_token
from clipper.upstream.client import UpstreamClient

router = APIRouter(tags=["spaces"])


@router.get("/spaces")
async def list_spaces(
    viewer: Annotated[Viewer, Depends(get_viewer)],
    upstream: Annotated[UpstreamClient, Depends(get_upstream)],
    cache: Annotated[TTLCache, Depends(get_cache)],
) -> dict:
    """Spaces the member can post into."""
    access_token = await resolve_access_token(
        viewer.subject, upstream=upstream, cache=cache, settings=get_settings()
    )
    spaces = await spaces_service.list_spaces(
        access_token,
        upstream=upstream,
        on_token_rejected=lambda: invalidate_access_token(viewer.subject, cache),
    )

    return success_response(
        spaces=spaces,
        meta={
            "total_count": len(spaces),
            "fetched_at": datetime.now(UTC).isoformat(),
        },
    )
