"""Link preview fetching.

Resolution order for get_preview(url):
1. Preview cache, keyed by the exact URL string
2. Link metadata service (PREVIEW_API_URL with PREVIEW_API_KEY), cached 24h
3. YouTube oEmbed for YouTube video URLs when the metadata service is unavailable,
   cached 24h
4. Heuristic preview derived from the URL alone (source="fallback"), not cached

get_preview never raises: every failure of steps 2 and 3 ends in the heuristic
preview. Cached previews are immutable; callers attach derived data with
model_copy().
"""

import re
from datetime import UTC, datetime
from typing import Any
from urllib.parse import urlparse

import httpx
from pydantic import BaseModel, ConfigDict, ValidationError

from clipper.config import Settings
from clipper.logging import get_logger
from clipper.services.cache import TTLCache, cache_key

logger = get_logger(__name__)

USER_AGENT = "WebClipper/2.0"

SOURCE_METADATA = "metadata"
SOURCE_OEMBED = "oembed"
SOURCE_FALLBACK = "fallback"

# Candidate link groups, in preference order
THUMBNAIL_RELS = ("thumbnail", "image", "logo")
EMBED_RELS = ("player", "app", "reader")

YOUTUBE_ID_RE = re.compile(r"(?:youtube\.com/watch\?v=|youtu\.be/|youtube\.com/embed/)([^&\n?#]+)")
_WORD_RE = re.compile(r"\w\S*")


class LinkPreview(BaseModel):
    """Normalized link metadata."""

    model_config = ConfigDict(frozen=True)

    url: str
    title: str
    site: str
    description: str = ""
    thumbnail_url: str | None = None
    can_embed: bool = False
    embed_html: str | None = None
    type: str = "link"
    author: str | None = None
    duration: int | float | None = None
    source: str = SOURCE_FALLBACK
    cached_at: str
    thumbnail_signed_id: str | None = None


class PreviewUnavailable(Exception):
    """The metadata or oEmbed service could not produce a preview."""


# =============================================================================
# URL heuristics
# =============================================================================


def extract_site(url: str) -> str:
    """Hostname without a leading "www."."""
    hostname = urlparse(url).hostname or ""
    if hostname.startswith("www."):
        hostname = hostname[4:]
    return hostname or "Unknown Site"


def extract_title(url: str) -> str:
    """Humanize the last path segment: "/blog/my_first-post.html" -> "My First Post"."""
    parsed = urlparse(url)
    segment = parsed.path.strip("/").rsplit("/", 1)[-1]
    segment = re.sub(r"\.[^.]*$", "", segment)
    segment = re.sub(r"[-_]", " ", segment).strip()
    title = _WORD_RE.sub(lambda m: m.group(0)[0].upper() + m.group(0)[1:].lower(), segment)
    return title or parsed.hostname or url


def extract_youtube_id(url: str) -> str | None:
    match = YOUTUBE_ID_RE.search(url)
    return match.group(1) if match else None


def _now_iso() -> str:
    return datetime.now(UTC).isoformat()


def fallback_preview(url: str) -> LinkPreview:
    """Build a preview from the URL alone."""
    return LinkPreview(
        url=url,
        title=extract_title(url),
        site=extract_site(url),
        source=SOURCE_FALLBACK,
        cached_at=_now_iso(),
    )


# =============================================================================
# Metadata parsing
# =============================================================================


def _link_list(links: dict[str, Any], rel: str) -> list[dict[str, Any]]:
    candidates = links.get(rel)
    if not isinstance(candidates, list):
        return []
    return [c for c in candidates if isinstance(c, dict)]


def _area(link: dict[str, Any]) -> int:
    media = link.get("media")
    if not isinstance(media, dict):
        return 0
    try:
        return int(media.get("width") or 0) * int(media.get("height") or 0)
    except (TypeError, ValueError):
        return 0


def best_thumbnail(links: dict[str, Any]) -> str | None:
    """Largest width*height thumbnail, searching thumbnail, then image, then logo."""
    for rel in THUMBNAIL_RELS:
        candidates = [c for c in _link_list(links, rel) if c.get("href")]
        if candidates:
            # max() keeps the first of equal areas
            return max(candidates, key=_area)["href"]
    return None


def can_embed(links: dict[str, Any]) -> bool:
    return any(_link_list(links, rel) for rel in EMBED_RELS)


def embed_html(links: dict[str, Any]) -> str | None:
    for rel in EMBED_RELS:
        for candidate in _link_list(links, rel):
            if candidate.get("html"):
                return candidate["html"]
    return None


def parse_metadata(url: str, data: dict[str, Any]) -> LinkPreview:
    """Normalize a metadata service response into a LinkPreview."""
    meta = data.get("meta") if isinstance(data.get("meta"), dict) else {}
    links = data.get("links") if isinstance(data.get("links"), dict) else {}

    def pick(key: str) -> Any:
        return meta.get(key) or data.get(key)

    return LinkPreview(
        url=url,
        title=pick("title") or extract_title(url),
        site=pick("site") or extract_site(url),
        description=pick("description") or "",
        thumbnail_url=best_thumbnail(links),
        can_embed=can_embed(links),
        embed_html=embed_html(links),
        type=meta.get("medium") or data.get("type") or "link",
        author=pick("author"),
        duration=pick("duration"),
        source=SOURCE_METADATA,
        cached_at=_now_iso(),
    )


# =============================================================================
# Fetcher
# =============================================================================


class PreviewFetcher:
    """Fetches and caches link previews."""

    def __init__(self, client: httpx.AsyncClient, cache: TTLCache, settings: Settings):
        self._client = client
        self._cache = cache
        self._settings = settings

    def is_cached(self, url: str) -> bool:
        return self._cache.get(cache_key("preview", url)) is not None

    async def get_preview(self, url: str) -> LinkPreview:
        """Return a preview for url. Never raises."""
        key = cache_key("preview", url)
        cached = self._cache.get(key)
        if cached is not None:
            logger.debug("preview_cache_hit", url_host=extract_site(url))
            return cached

        try:
            preview = await self._fetch_metadata(url)
        except PreviewUnavailable as e:
            logger.warning("preview_metadata_unavailable", url_host=extract_site(url), reason=str(e))
            preview = None

        if preview is None and extract_youtube_id(url):
            try:
                preview = await self._fetch_youtube_oembed(url)
            except PreviewUnavailable as e:
                logger.warning("preview_oembed_unavailable", reason=str(e))

        if preview is None:
            return fallback_preview(url)

        self._cache.set(key, preview, self._settings.preview_cache_ttl_s)
        return preview

    async def _fetch_metadata(self, url: str) -> LinkPreview:
        api_key = self._settings.preview_api_key
        if not api_key:
            raise PreviewUnavailable("PREVIEW_API_KEY not configured")

        data = await self._get_json(
            self._settings.preview_api_url,
            params={"url": url, "api_key": api_key},
        )
        try:
            return parse_metadata(url, data)
        except (ValidationError, AttributeError, TypeError, ValueError) as e:
            raise PreviewUnavailable("unexpected metadata shape") from e

    async def _fetch_youtube_oembed(self, url: str) -> LinkPreview:
        video_id = extract_youtube_id(url)
        data = await self._get_json(
            self._settings.youtube_oembed_url,
            params={"url": f"https://www.youtube.com/watch?v={video_id}", "format": "json"},
        )
        try:
            return self._oembed_preview(url, data)
        except (ValidationError, AttributeError, TypeError, ValueError) as e:
            raise PreviewUnavailable("unexpected oEmbed shape") from e

    def _oembed_preview(self, url: str, data: dict[str, Any]) -> LinkPreview:
        return LinkPreview(
            url=url,
            title=data.get("title") or extract_title(url),
            site="YouTube",
            thumbnail_url=data.get("thumbnail_url"),
            can_embed=bool(data.get("html")),
            embed_html=data.get("html"),
            type="video",
            author=data.get("author_name"),
            source=SOURCE_OEMBED,
            cached_at=_now_iso(),
        )

    async def _get_json(self, endpoint: str, params: dict[str, str]) -> dict[str, Any]:
        try:
            response = await self._client.get(
                endpoint,
                params=params,
                headers={"User-Agent": USER_AGENT, "Accept": "application/json"},
                timeout=self._settings.preview_timeout_s,
            )
        except httpx.TimeoutException as e:
            raise PreviewUnavailable("timeout") from e
        except httpx.RequestError as e:
            raise PreviewUnavailable(f"request failed: {type(e).__name__}") from e

        if not response.is_success:
            raise PreviewUnavailable(f"status {response.status_code}")

        try:
            data = response.json()
        except ValueError as e:
            raise PreviewUnavailable("invalid JSON") from e

        if not isinstance(data, dict):
            raise PreviewUnavailable("unexpected JSON shape")
        return data
