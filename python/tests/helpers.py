"""Test helpers for sessions, upstream fakes and simulated time.

Provides:
- FakeClock: injectable monotonic clock
- Canonical upstream/preview URLs used by the test environment
- Session header generation for authenticated requests
- Builders for upstream JSON payloads
"""

import io

from PIL import Image

from clipper.auth.session_token import SessionTokenService

TEST_SIGNING_SECRET = "test-signing-secret-0123456789abcdef0123"
TEST_SERVICE_TOKEN = "test-service-token"
TEST_PREVIEW_KEY = "test-preview-key"
TEST_EMAIL = "member@example.com"

UPSTREAM_API_BASE = "https://community.test/api"
HEADLESS_BASE = f"{UPSTREAM_API_BASE}/headless/v1"
TOKEN_URL = f"{UPSTREAM_API_BASE}/v1/headless/auth_token"
DIRECT_UPLOADS_URL = f"{HEADLESS_BASE}/direct_uploads"
POSTS_URL = f"{HEADLESS_BASE}/posts"
SPACES_URL = f"{HEADLESS_BASE}/spaces"
SIGNED_UPLOAD_URL = "https://blobs.test/upload/abc123"
PREVIEW_API_URL = "https://preview.test/api/iframely"
YOUTUBE_OEMBED_URL = "https://youtube.test/oembed"

JSON_HEADERS = {"content-type": "application/json; charset=utf-8"}


class FakeClock:
    """Monotonic clock that only moves when told to."""

    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


def session_service() -> SessionTokenService:
    return SessionTokenService(TEST_SIGNING_SECRET)


def auth_headers(email: str = TEST_EMAIL, token: str | None = None) -> dict[str, str]:
    """Authorization header carrying a valid (or the given) session token."""
    if token is None:
        token = session_service().issue(email).token
    return {"Authorization": f"Bearer {token}"}


def token_payload(access_token: str = "member-access-token", expires_in: int = 3600) -> dict:
    return {"access_token": access_token, "expires_in": expires_in}


def direct_upload_payload(signed_id: str = "signed-blob-1") -> dict:
    return {
        "signed_id": signed_id,
        "direct_upload": {
            "url": SIGNED_UPLOAD_URL,
            "headers": {"Content-MD5": "abc=="},
        },
    }


def post_payload(post_id: int = 42, **overrides) -> dict:
    post = {
        "id": post_id,
        "name": "Clipped",
        "url": f"https://community.test/c/general/{post_id}",
        "space_id": 7,
    }
    post.update(overrides)
    return post


def metadata_payload(**overrides) -> dict:
    data = {
        "meta": {
            "title": "An Article",
            "site": "Example News",
            "description": "First para.\n\nSecond para.",
            "author": "A. Writer",
            "medium": "article",
        },
        "links": {
            "thumbnail": [
                {"href": "https://cdn.example.com/small.jpg", "media": {"width": 100, "height": 100}},
                {"href": "https://cdn.example.com/large.jpg", "media": {"width": 800, "height": 600}},
            ],
        },
    }
    data.update(overrides)
    return data


def png_bytes(size: tuple[int, int] = (4, 4)) -> bytes:
    buf = io.BytesIO()
    Image.new("RGB", size, (200, 10, 10)).save(buf, format="PNG")
    return buf.getvalue()


def jpeg_with_exif() -> bytes:
    exif = Image.Exif()
    exif[0x010F] = "TestCamera"  # Make
    buf = io.BytesIO()
    Image.new("RGB", (8, 8), (10, 200, 10)).save(buf, format="JPEG", exif=exif.tobytes())
    return buf.getvalue()


def paletted_png_with_exif() -> bytes:
    """4x4 paletted PNG whose palette index 0 is transparent, carrying EXIF."""
    exif = Image.Exif()
    exif[0x010F] = "TestCamera"  # Make
    img = Image.new("P", (4, 4), 0)
    img.putpalette([0, 0, 0, 255, 0, 0] + [0, 0, 0] * 254)
    img.putpixel((1, 1), 1)
    buf = io.BytesIO()
    img.save(buf, format="PNG", transparency=0, exif=exif.tobytes())
    return buf.getvalue()
