"""Request schemas for the extension-facing endpoints.

Field names on the wire follow the extension's camelCase (selectedText,
imageUrl, ...); the models accept snake_case too.
"""

import re
from urllib.parse import urlparse

from pydantic import BaseModel, ConfigDict, Field, field_validator

EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
MAX_EMAIL_CHARS = 320


def validate_http_url(value: str | None) -> str | None:
    """Strip, map blank to None and require an absolute http(s) URL."""
    if value is None:
        return None
    value = value.strip()
    if not value:
        return None
    try:
        parsed = urlparse(value)
        hostname = parsed.hostname
    except ValueError as e:
        raise ValueError("Invalid URL") from e
    if parsed.scheme.lower() not in ("http", "https") or not hostname:
        raise ValueError("URL must be an absolute http(s) URL")
    return value


class AuthRequest(BaseModel):
    """POST /auth body."""

    email: str = Field(..., max_length=MAX_EMAIL_CHARS)

    @field_validator("email")
    @classmethod
    def validate_email(cls, v: str) -> str:
        v = v.strip()
        if not EMAIL_RE.match(v):
            raise ValueError("Invalid email format")
        return v


class ClipRequest(BaseModel):
    """POST /clip body.

    At least one of title, selectedText or url must be present; the clip
    service enforces that so the error carries the API's own message.
    """

    model_config = ConfigDict(populate_by_name=True)

    title: str | None = None
    url: str | None = None
    selected_text: str | None = Field(default=None, alias="selectedText")
    image_url: str | None = Field(default=None, alias="imageUrl")
    media_url: str | None = Field(default=None, alias="mediaUrl")
    # Category hint from the page (image, video or audio); the relayed content
    # type wins when they disagree
    media_type: str | None = Field(default=None, alias="mediaType")
    space_id: int | str | None = Field(default=None, alias="spaceId")

    @field_validator("url", "image_url", "media_url")
    @classmethod
    def validate_urls(cls, v: str | None) -> str | None:
        return validate_http_url(v)

    @field_validator("title", "selected_text")
    @classmethod
    def blank_to_none(cls, v: str | None) -> str | None:
        if v is None or not v.strip():
            return None
        return v
