"""Space listing for the extension's space picker."""

from collections.abc import Callable
from typing import Any

from clipper.logging import get_logger
from clipper.upstream.client import UpstreamClient
from clipper.upstream.errors import UpstreamError

logger = get_logger(__name__)


def project_space(space: dict[str, Any]) -> dict[str, Any]:
    return {
        "id": space.get("id"),
        "name": space.get("name"),
        "slug": space.get("slug"),
        "description": space.get("description") or "",
        "is_private": bool(space.get("is_private", False)),
        "member_count": space.get("member_count") or 0,
        "post_count": space.get("post_count") or 0,
    }


async def list_spaces(
    access_token: str,
    *,
    upstream: UpstreamClient,
    on_token_rejected: Callable[[], None] | None = None,
) -> list[dict[str, Any]]:
    """Spaces visible to the member, projected to the picker fields.

    Raises:
        ApiError: Converted from the UpstreamError.
    """
    try:
        raw = await upstream.list_spaces(access_token)
    except UpstreamError as e:
        logger.warning(
            "spaces_fetch_failed",
            upstream_error=e.error_class.value,
            status_code=e.status_code,
        )
        if e.token_rejected and on_token_rejected is not None:
            on_token_rejected()
        raise e.to_api_error("Failed to fetch spaces") from e

    return [project_space(space) for space in raw if isinstance(space, dict)]
