"""Clip orchestration: turn one extension clip request into one upstream post.

Flow:
1. Resolve the member's upstream access token (fatal on failure)
2. Concurrently: link preview, page image relay, media relay. Each task settles
   on its own; a failure degrades that field to None.
3. If the preview has a thumbnail and no page image was relayed, relay the
   thumbnail (THUMBNAIL_MAX_BYTES) and attach its signed id to a copy of the
   preview. The cached preview is never mutated.
4. Synthesize and validate the document (E_CONTENT_INVALID on failure)
5. Submit the post
"""

import asyncio
from dataclasses import dataclass
from typing import Any

from clipper.config import Settings
from clipper.errors import ApiError, ApiErrorCode, InvalidRequestError
from clipper.logging import get_logger
from clipper.schemas.clip import ClipRequest
from clipper.services.cache import TTLCache
from clipper.services.document import DocumentValidationError, synthesize, validate_document
from clipper.services.media_relay import MediaRelay, UploadedMedia
from clipper.services.posts import CreatedPost, post_name, submit
from clipper.services.preview import LinkPreview, PreviewFetcher
from clipper.services.redact import safe_kv
from clipper.services.upstream_auth import invalidate_access_token, resolve_access_token
from clipper.upstream.client import UpstreamClient

logger = get_logger(__name__)


@dataclass(frozen=True)
class ClipResult:
    post: CreatedPost
    preview: LinkPreview | None
    image: UploadedMedia | None
    media: UploadedMedia | None

    @property
    def processing(self) -> dict[str, Any]:
        return {
            "preview_source": self.preview.source if self.preview else None,
            "image_processed": self.image is not None,
            "media_processed": self.media is not None,
            "thumbnail_enhanced": bool(self.preview and self.preview.thumbnail_signed_id),
            "endpoint_used": self.post.endpoint,
        }


async def _none() -> None:
    return None


def _settled(name: str, result: Any) -> Any:
    """Map a gather(return_exceptions=True) slot to its value or None."""
    if isinstance(result, BaseException):
        if not isinstance(result, Exception):
            raise result
        logger.warning("clip_subtask_failed", subtask=name, error_type=type(result).__name__)
        return None
    return result


class ClipService:
    """Coordinates preview, media relay, synthesis and submission for one clip."""

    def __init__(
        self,
        *,
        upstream: UpstreamClient,
        previews: PreviewFetcher,
        relay: MediaRelay,
        cache: TTLCache,
        settings: Settings,
    ):
        self._upstream = upstream
        self._previews = previews
        self._relay = relay
        self._cache = cache
        self._settings = settings

    async def clip(self, subject: str, request: ClipRequest) -> ClipResult:
        """Create a post for subject from request.

        Raises:
            InvalidRequestError: If title, selectedText and url are all absent.
            ApiError: Token resolution, validation or submission failures.
        """
        if not (request.title or request.selected_text or request.url):
            raise InvalidRequestError(
                "At least one of title, selectedText, or url is required",
                debug="Cannot create empty post",
            )

        access_token = await resolve_access_token(
            subject,
            upstream=self._upstream,
            cache=self._cache,
            settings=self._settings,
        )

        media_limit = self._settings.media_max_bytes
        preview_result, image_result, media_result = await asyncio.gather(
            self._previews.get_preview(request.url) if request.url else _none(),
            self._relay.relay_or_none(request.image_url, access_token, media_limit)
            if request.image_url
            else _none(),
            self._relay.relay_or_none(request.media_url, access_token, media_limit)
            if request.media_url
            else _none(),
            return_exceptions=True,
        )
        preview: LinkPreview | None = _settled("preview", preview_result)
        image: UploadedMedia | None = _settled("image", image_result)
        media: UploadedMedia | None = _settled("media", media_result)
        if media is not None and request.media_type and request.media_type != media.category:
            # The relayed content type decides the node category
            logger.info(
                "media_type_hint_ignored", hinted=request.media_type, relayed=media.category
            )

        if preview is not None and preview.thumbnail_url and image is None:
            thumbnail = await self._relay.relay_or_none(
                preview.thumbnail_url, access_token, self._settings.thumbnail_max_bytes
            )
            if thumbnail is not None:
                preview = preview.model_copy(update={"thumbnail_signed_id": thumbnail.signed_id})

        doc = synthesize(
            title=request.title,
            selected_text=request.selected_text,
            url=request.url,
            preview=preview,
            image_ref=image,
            media_ref=media,
        )
        try:
            validate_document(doc)
        except DocumentValidationError as e:
            logger.error("document_invalid", reason=str(e))
            raise ApiError(
                ApiErrorCode.E_CONTENT_INVALID,
                "Content generation failed",
                debug=str(e),
            ) from e

        post = await submit(
            access_token,
            doc,
            post_name(request.title, request.selected_text),
            request.space_id,
            upstream=self._upstream,
            settings=self._settings,
            on_token_rejected=lambda: invalidate_access_token(subject, self._cache),
        )

        result = ClipResult(post=post, preview=preview, image=image, media=media)
        logger.info(
            "clip_completed",
            **safe_kv(
                selected_text_chars=len(request.selected_text or ""), **result.processing
            ),
        )
        return result
