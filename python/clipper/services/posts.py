"""Post submission to the community platform.

One configured endpoint and one payload shape:

    {"name": ..., "post_type": UPSTREAM_POST_TYPE, "space_id"?: ...,
     UPSTREAM_POST_BODY_FIELD: <document>}

Any 2xx JSON response is success. Non-JSON responses surface as
E_UPSTREAM_PROTOCOL and non-2xx responses as E_UPSTREAM_FAILED, both with the
endpoint and status in debug.
"""

from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

from clipper.config import Settings
from clipper.errors import ApiError, ApiErrorCode
from clipper.logging import get_logger
from clipper.services.document import count_nodes
from clipper.upstream.client import UpstreamClient
from clipper.upstream.errors import UpstreamError

logger = get_logger(__name__)

DEFAULT_POST_NAME = "Web Clip"
MAX_NAME_FROM_TEXT_CHARS = 100


@dataclass(frozen=True)
class CreatedPost:
    id: Any
    url: str | None
    title: str | None
    space_id: Any
    endpoint: str


def post_name(title: str | None, selected_text: str | None) -> str:
    """Title, else the first 100 chars of the selected text, else "Web Clip"."""
    if title and title.strip():
        return title.strip()
    if selected_text and selected_text.strip():
        return selected_text.strip()[:MAX_NAME_FROM_TEXT_CHARS]
    return DEFAULT_POST_NAME


def build_payload(
    document: dict[str, Any],
    name: str,
    space_id: Any,
    settings: Settings,
) -> dict[str, Any]:
    payload: dict[str, Any] = {
        "name": name,
        "post_type": settings.upstream_post_type,
        settings.upstream_post_body_field: document,
    }
    if space_id is not None and space_id != "":
        payload["space_id"] = space_id
    return payload


async def submit(
    access_token: str,
    document: dict[str, Any],
    title: str,
    space_id: Any = None,
    *,
    upstream: UpstreamClient,
    settings: Settings,
    on_token_rejected: Callable[[], None] | None = None,
) -> CreatedPost:
    """Create a post carrying document.

    on_token_rejected runs when the upstream answers 401 to the access token,
    so the caller can drop it from the token cache.

    Raises:
        ApiError: E_UPSTREAM_PROTOCOL, E_UPSTREAM_FAILED or E_UPSTREAM_TIMEOUT.
    """
    payload = build_payload(document, title, space_id, settings)
    endpoint = upstream.post_endpoint

    logger.info(
        "post_submit_started",
        endpoint=endpoint,
        has_space_id="space_id" in payload,
        node_counts=count_nodes(document),
    )

    try:
        post = await upstream.create_post(access_token, payload)
    except UpstreamError as e:
        logger.warning(
            "post_submit_failed",
            endpoint=endpoint,
            upstream_error=e.error_class.value,
            status_code=e.status_code,
        )
        if e.token_rejected and on_token_rejected is not None:
            on_token_rejected()
        raise e.to_api_error("Failed to create post") from e

    post_id = post.get("id")
    if post_id is None:
        raise ApiError(
            ApiErrorCode.E_UPSTREAM_PROTOCOL,
            "Failed to create post",
            debug={"endpoint": endpoint, "detail": "response has no post id"},
        )

    created = CreatedPost(
        id=post_id,
        url=post.get("url") or post.get("share_url"),
        title=post.get("name") or title,
        space_id=post.get("space_id", space_id),
        endpoint=endpoint,
    )
    logger.info("post_submit_succeeded", endpoint=endpoint, post_id=str(post_id))
    return created
