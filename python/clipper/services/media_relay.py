"""Media relay: copy a remote image/video/audio resource into upstream blob storage.

relay(remote_url, access_token, size_limit):
1. Validate the URL (scheme, credentials, host denylist, private IP literals)
2. Stream the download: a declared Content-Length over the limit fails before any
   body byte is read; received bytes are counted and the download aborts once the
   limit is exceeded. At most one redirect, re-validated.
3. Reject content types outside the image/video/audio allow-list
4. Strip EXIF/ICC metadata from still images (Pillow re-encode)
5. Provision a direct upload slot, then PUT the bytes to the signed URL

Any failure raises MediaRelayError. Callers that must not fail (the clip flow)
use relay_or_none(), which logs and returns None.
"""

import io
import re
import time
import warnings
from dataclasses import dataclass
from ipaddress import IPv4Address, IPv6Address, ip_address
from urllib.parse import unquote, urljoin, urlparse

import httpx
from PIL import Image

from clipper.logging import get_logger
from clipper.upstream.client import UpstreamClient
from clipper.upstream.errors import UpstreamError

logger = get_logger(__name__)

# =============================================================================
# Configuration Constants
# =============================================================================

DEFAULT_MAX_BYTES = 25 * 1024 * 1024
DOWNLOAD_TIMEOUT_S = 30.0
CHUNK_SIZE = 64 * 1024

# Decoded pixel ceiling for metadata stripping
MAX_IMAGE_PIXELS = 8192 * 8192

ALLOWED_SCHEMES = frozenset({"http", "https"})

HOSTNAME_DENYLIST_EXACT = frozenset({"localhost"})
HOSTNAME_DENYLIST_SUFFIXES = (".local", ".internal", ".lan", ".home")

REDIRECT_STATUS_CODES = frozenset({301, 302, 303, 307, 308})
MAX_REDIRECTS = 1

USER_AGENT = "WebClipper/2.0"

SUPPORTED_IMAGE_TYPES = frozenset({"image/jpeg", "image/png", "image/gif", "image/webp"})
SUPPORTED_VIDEO_TYPES = frozenset({"video/mp4", "video/webm", "video/avi", "video/mov"})
SUPPORTED_AUDIO_TYPES = frozenset({"audio/mp3", "audio/mpeg", "audio/wav", "audio/ogg", "audio/m4a"})

EXTENSION_BY_TYPE = {
    "image/jpeg": ".jpg",
    "image/jpg": ".jpg",
    "image/png": ".png",
    "image/gif": ".gif",
    "image/webp": ".webp",
    "video/mp4": ".mp4",
    "video/webm": ".webm",
    "video/avi": ".avi",
    "video/mov": ".mov",
    "audio/mp3": ".mp3",
    "audio/mpeg": ".mp3",
    "audio/wav": ".wav",
    "audio/ogg": ".ogg",
    "audio/m4a": ".m4a",
}

# Still formats re-encoded without metadata; GIFs are left alone (animation)
_STRIP_FORMATS = {"image/jpeg": "JPEG", "image/png": "PNG", "image/webp": "WEBP"}

# Image.info entries dropped on re-encode; everything else (transparency, gamma,
# dpi) is carried over
STRIPPED_INFO_KEYS = frozenset({"exif", "icc_profile", "xmp", "XML:com.adobe.xmp", "comment"})

MAX_FILENAME_CHARS = 100
_UNSAFE_FILENAME_CHARS = re.compile(r"[^a-zA-Z0-9._-]")


# =============================================================================
# Data Classes
# =============================================================================


class MediaRelayError(Exception):
    """Relay failure with a machine-readable reason.

    Reasons: INVALID_URL, BLOCKED, DOWNLOAD_FAILED, TIMEOUT, TOO_LARGE,
    UNSUPPORTED_TYPE, INVALID_IMAGE, UPLOAD_FAILED.
    """

    def __init__(self, reason: str, message: str):
        self.reason = reason
        self.message = message
        super().__init__(f"{reason}: {message}")


@dataclass(frozen=True)
class UploadedMedia:
    """Reference to a blob now stored upstream."""

    signed_id: str
    filename: str
    content_type: str
    size: int
    category: str


@dataclass(frozen=True)
class DownloadedMedia:
    data: bytes
    content_type: str
    filename: str


# =============================================================================
# Content type helpers
# =============================================================================


def normalize_content_type(content_type: str | None) -> str:
    """Strip parameters and lower-case: "Image/PNG; q=1" -> "image/png"."""
    if not content_type:
        return ""
    return content_type.split(";", 1)[0].strip().lower()


def is_supported_type(content_type: str) -> bool:
    return (
        content_type in SUPPORTED_IMAGE_TYPES
        or content_type in SUPPORTED_VIDEO_TYPES
        or content_type in SUPPORTED_AUDIO_TYPES
    )


def media_category(content_type: str) -> str:
    """Coarse category: image, video, audio or file."""
    if content_type in SUPPORTED_IMAGE_TYPES:
        return "image"
    if content_type in SUPPORTED_VIDEO_TYPES:
        return "video"
    if content_type in SUPPORTED_AUDIO_TYPES:
        return "audio"
    return "file"


def extension_for(content_type: str) -> str:
    return EXTENSION_BY_TYPE.get(content_type, ".bin")


def filename_from_url(url: str, content_type: str) -> str:
    """Derive a safe upload filename from the last URL path segment.

    Falls back to media_<epoch ms><ext> when the segment has no extension.
    """
    segment = unquote(urlparse(url).path.rsplit("/", 1)[-1])
    if not segment or "." not in segment:
        segment = f"media_{int(time.time() * 1000)}{extension_for(content_type)}"
    return _UNSAFE_FILENAME_CHARS.sub("_", segment)[:MAX_FILENAME_CHARS] or "media"


# =============================================================================
# URL Validation
# =============================================================================


def is_private_ip(ip: IPv4Address | IPv6Address) -> bool:
    """Loopback, private, link-local, reserved or unspecified addresses."""
    return ip.is_loopback or ip.is_private or ip.is_link_local or ip.is_reserved or ip.is_unspecified


def validate_remote_url(url: str) -> str:
    """Check a remote media URL and return its hostname.

    Raises:
        MediaRelayError: INVALID_URL or BLOCKED.
    """
    try:
        parsed = urlparse(url)
        hostname = parsed.hostname
    except ValueError as e:
        raise MediaRelayError("INVALID_URL", f"Invalid URL: {e}") from e

    if parsed.scheme.lower() not in ALLOWED_SCHEMES:
        raise MediaRelayError("INVALID_URL", f"URL scheme must be http or https, got: {parsed.scheme}")

    if parsed.username is not None or parsed.password is not None or "@" in parsed.netloc:
        raise MediaRelayError("BLOCKED", "URL must not contain credentials")

    if not hostname:
        raise MediaRelayError("INVALID_URL", "URL must have a host")

    hostname = hostname.lower()
    if hostname in HOSTNAME_DENYLIST_EXACT or hostname.endswith(HOSTNAME_DENYLIST_SUFFIXES):
        raise MediaRelayError("BLOCKED", "Host is not allowed")

    try:
        ip = ip_address(hostname)
    except ValueError:
        return hostname
    if is_private_ip(ip):
        raise MediaRelayError("BLOCKED", "Host is not allowed")
    return hostname


# =============================================================================
# Image metadata stripping
# =============================================================================


def strip_image_metadata(data: bytes, content_type: str) -> bytes:
    """Re-encode a still image without EXIF/ICC metadata.

    Raises:
        MediaRelayError(INVALID_IMAGE): If the bytes do not decode as an image.
    """
    target_format = _STRIP_FORMATS.get(content_type)
    if target_format is None:
        return data

    Image.MAX_IMAGE_PIXELS = MAX_IMAGE_PIXELS
    try:
        with warnings.catch_warnings():
            warnings.simplefilter("error", Image.DecompressionBombWarning)
            with Image.open(io.BytesIO(data)) as img:
                img.load()
                if img.format != target_format:
                    raise MediaRelayError(
                        "INVALID_IMAGE", f"Content is not a valid {content_type} image"
                    )
                if not STRIPPED_INFO_KEYS.intersection(img.info):
                    return data
                clean = img.copy()
                # Keep encoder hints such as PNG transparency
                clean.info = {k: v for k, v in img.info.items() if k not in STRIPPED_INFO_KEYS}

                out = io.BytesIO()
                save_options = {"quality": 95} if target_format == "JPEG" else {}
                clean.save(out, format=target_format, **save_options)
    except (Image.DecompressionBombWarning, Image.DecompressionBombError) as e:
        raise MediaRelayError("TOO_LARGE", "Image exceeds dimension limits") from e
    except (OSError, SyntaxError, ValueError) as e:
        raise MediaRelayError("INVALID_IMAGE", "Content is not a valid image") from e

    return out.getvalue()


# =============================================================================
# Relay
# =============================================================================


class MediaRelay:
    """Downloads remote media and re-uploads it to upstream blob storage."""

    def __init__(
        self,
        client: httpx.AsyncClient,
        upstream: UpstreamClient,
        download_timeout_s: float = DOWNLOAD_TIMEOUT_S,
    ):
        self._client = client
        self._upstream = upstream
        self._download_timeout_s = download_timeout_s

    async def relay(
        self,
        remote_url: str,
        access_token: str,
        size_limit: int = DEFAULT_MAX_BYTES,
    ) -> UploadedMedia:
        """Copy remote_url into upstream storage.

        Raises:
            MediaRelayError: On any validation, download or upload failure.
        """
        validate_remote_url(remote_url)
        media = await self.download(remote_url, size_limit)

        data = media.data
        if media.content_type in SUPPORTED_IMAGE_TYPES:
            data = strip_image_metadata(data, media.content_type)

        try:
            upload = await self._upstream.create_direct_upload(
                access_token,
                filename=media.filename,
                content_type=media.content_type,
                byte_size=len(data),
            )
            await self._upstream.upload_to_signed_url(upload, data, media.content_type)
        except UpstreamError as e:
            raise MediaRelayError("UPLOAD_FAILED", e.message) from e

        uploaded = UploadedMedia(
            signed_id=upload.signed_id,
            filename=media.filename,
            content_type=media.content_type,
            size=len(data),
            category=media_category(media.content_type),
        )
        logger.info(
            "media_relayed",
            category=uploaded.category,
            content_type=uploaded.content_type,
            size=uploaded.size,
        )
        return uploaded

    async def relay_or_none(
        self,
        remote_url: str,
        access_token: str,
        size_limit: int = DEFAULT_MAX_BYTES,
    ) -> UploadedMedia | None:
        """relay(), degraded to None on MediaRelayError."""
        try:
            return await self.relay(remote_url, access_token, size_limit)
        except MediaRelayError as e:
            logger.warning("media_relay_failed", reason=e.reason, detail=e.message)
            return None

    async def download(self, url: str, size_limit: int) -> DownloadedMedia:
        """Stream url into memory, enforcing size_limit and the type allow-list."""
        current_url = url
        for _ in range(MAX_REDIRECTS + 1):
            try:
                async with self._client.stream(
                    "GET",
                    current_url,
                    headers={"User-Agent": USER_AGENT, "Accept": "image/*,video/*,audio/*;q=0.9"},
                    timeout=self._download_timeout_s,
                    follow_redirects=False,
                ) as response:
                    if response.status_code in REDIRECT_STATUS_CODES:
                        location = response.headers.get("location")
                        if not location:
                            raise MediaRelayError("DOWNLOAD_FAILED", "Redirect without Location header")
                        current_url = urljoin(current_url, location)
                        validate_remote_url(current_url)
                        continue

                    if response.status_code >= 400:
                        raise MediaRelayError(
                            "DOWNLOAD_FAILED",
                            f"Remote returned status {response.status_code}",
                        )

                    _check_declared_length(response, size_limit)

                    content_type = normalize_content_type(response.headers.get("content-type"))
                    if not is_supported_type(content_type):
                        raise MediaRelayError(
                            "UNSUPPORTED_TYPE",
                            f"Unsupported media type: {content_type or 'unknown'}",
                        )

                    chunks = []
                    total_bytes = 0
                    async for chunk in response.aiter_bytes(chunk_size=CHUNK_SIZE):
                        total_bytes += len(chunk)
                        if total_bytes > size_limit:
                            raise MediaRelayError(
                                "TOO_LARGE",
                                f"Media exceeds maximum size of {size_limit} bytes",
                            )
                        chunks.append(chunk)

                    return DownloadedMedia(
                        data=b"".join(chunks),
                        content_type=content_type,
                        filename=filename_from_url(current_url, content_type),
                    )
            except httpx.TimeoutException as e:
                raise MediaRelayError("TIMEOUT", "Media download timed out") from e
            except httpx.RequestError as e:
                raise MediaRelayError("DOWNLOAD_FAILED", f"Failed to fetch media: {e}") from e

        raise MediaRelayError("DOWNLOAD_FAILED", f"Too many redirects (max {MAX_REDIRECTS} allowed)")


def _check_declared_length(response: httpx.Response, size_limit: int) -> None:
    declared = response.headers.get("content-length")
    if declared is None:
        return
    try:
        declared_bytes = int(declared)
    except ValueError:
        return
    if declared_bytes > size_limit:
        raise MediaRelayError(
            "TOO_LARGE",
            f"Declared size {declared_bytes} exceeds maximum of {size_limit} bytes",
        )
