"""Application settings loaded from environment variables.

Environment Configuration:
    CLIPPER_ENV: Deployment environment (local | test | staging | prod)

Upstream Platform Configuration:
    UPSTREAM_API_BASE: Community platform API root
    UPSTREAM_SERVICE_TOKEN: Static service credential used to mint member tokens
        (required in staging/prod)
    UPSTREAM_POST_PATH / UPSTREAM_POST_BODY_FIELD / UPSTREAM_POST_TYPE:
        Post-creation contract (single endpoint, single payload shape)

Link Preview Configuration:
    PREVIEW_API_URL: Link metadata endpoint
    PREVIEW_API_KEY: Metadata service key (optional, heuristic previews without it)

Session Configuration:
    SESSION_SIGNING_SECRET: HMAC secret for session tokens (required in staging/prod)
    SESSION_TOKEN_TTL_S: Session lifetime in seconds

Note: In local/test the upstream credential and signing secret may be absent.
The component that needs them fails at call time with E_UPSTREAM_CONFIG.
"""

from enum import Enum
from functools import lru_cache

from pydantic import Field, model_validator
from pydantic_settings import BaseSettings

MIN_SIGNING_SECRET_BYTES = 32
MIN_TOKEN_CACHE_TTL_S = 60


class Environment(str, Enum):
    """Valid deployment environments."""

    LOCAL = "local"
    TEST = "test"
    STAGING = "staging"
    PROD = "prod"


class Settings(BaseSettings):
    """Application configuration.

    Validation rules:
    - UPSTREAM_SERVICE_TOKEN and SESSION_SIGNING_SECRET are required in staging and prod
    - SESSION_SIGNING_SECRET must be at least 32 bytes when set in staging and prod
    - Size limits and rate limits must be positive
    """

    clipper_env: Environment = Field(default=Environment.LOCAL, alias="CLIPPER_ENV")
    app_version: str = Field(default="2.0.0", alias="APP_VERSION")

    # Upstream community platform
    upstream_api_base: str = Field(default="https://app.circle.so/api", alias="UPSTREAM_API_BASE")
    upstream_service_token: str | None = Field(default=None, alias="UPSTREAM_SERVICE_TOKEN")
    upstream_token_ttl_s: int = Field(default=3600, alias="UPSTREAM_TOKEN_TTL_S")
    upstream_token_cache_margin_s: int = Field(default=600, alias="UPSTREAM_TOKEN_CACHE_MARGIN_S")
    upstream_post_path: str = Field(default="/posts", alias="UPSTREAM_POST_PATH")
    upstream_post_body_field: str = Field(default="tiptap_body", alias="UPSTREAM_POST_BODY_FIELD")
    upstream_post_type: str = Field(default="basic", alias="UPSTREAM_POST_TYPE")
    upstream_timeout_s: float = Field(default=30.0, alias="UPSTREAM_TIMEOUT_S")

    # Link preview service
    preview_api_url: str = Field(
        default="https://iframe.ly/api/iframely", alias="PREVIEW_API_URL"
    )
    preview_api_key: str | None = Field(default=None, alias="PREVIEW_API_KEY")
    preview_cache_ttl_s: int = Field(default=24 * 60 * 60, alias="PREVIEW_CACHE_TTL_S")
    preview_timeout_s: float = Field(default=10.0, alias="PREVIEW_TIMEOUT_S")
    youtube_oembed_url: str = Field(
        default="https://www.youtube.com/oembed", alias="YOUTUBE_OEMBED_URL"
    )

    # Session tokens
    session_signing_secret: str | None = Field(default=None, alias="SESSION_SIGNING_SECRET")
    session_token_ttl_s: int = Field(default=24 * 60 * 60, alias="SESSION_TOKEN_TTL_S")
    session_token_issuer: str = Field(default="web-clipper", alias="SESSION_TOKEN_ISSUER")

    # Media relay limits
    media_max_bytes: int = Field(default=25 * 1024 * 1024, alias="MEDIA_MAX_BYTES")  # 25 MB
    thumbnail_max_bytes: int = Field(default=5 * 1024 * 1024, alias="THUMBNAIL_MAX_BYTES")  # 5 MB
    media_download_timeout_s: float = Field(default=30.0, alias="MEDIA_DOWNLOAD_TIMEOUT_S")

    # Browser extension origins
    cors_allowed_origins: str = Field(default="*", alias="CORS_ALLOWED_ORIGINS")

    # Rate limits (requests per window)
    rate_limit_auth: int = Field(default=10, alias="RATE_LIMIT_AUTH")
    rate_limit_auth_window_s: int = Field(default=15 * 60, alias="RATE_LIMIT_AUTH_WINDOW_S")
    rate_limit_preview: int = Field(default=30, alias="RATE_LIMIT_PREVIEW")
    rate_limit_preview_window_s: int = Field(default=5 * 60, alias="RATE_LIMIT_PREVIEW_WINDOW_S")
    rate_limit_clip: int = Field(default=20, alias="RATE_LIMIT_CLIP")
    rate_limit_clip_window_s: int = Field(default=5 * 60, alias="RATE_LIMIT_CLIP_WINDOW_S")

    model_config = {
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "extra": "ignore",
    }

    @model_validator(mode="after")
    def validate_required_settings(self) -> "Settings":
        """Ensure credentials are present where the environment demands them."""
        if self.clipper_env in (Environment.STAGING, Environment.PROD):
            missing = []
            if not self.upstream_service_token:
                missing.append("UPSTREAM_SERVICE_TOKEN")
            if not self.session_signing_secret:
                missing.append("SESSION_SIGNING_SECRET")
            if missing:
                raise ValueError(
                    f"Missing required settings for CLIPPER_ENV={self.clipper_env.value}: "
                    f"{', '.join(missing)}"
                )
            if len(self.session_signing_secret.encode("utf-8")) < MIN_SIGNING_SECRET_BYTES:
                raise ValueError(
                    f"SESSION_SIGNING_SECRET must be at least {MIN_SIGNING_SECRET_BYTES} bytes"
                )

        positive = {
            "MEDIA_MAX_BYTES": self.media_max_bytes,
            "THUMBNAIL_MAX_BYTES": self.thumbnail_max_bytes,
            "SESSION_TOKEN_TTL_S": self.session_token_ttl_s,
            "RATE_LIMIT_AUTH": self.rate_limit_auth,
            "RATE_LIMIT_PREVIEW": self.rate_limit_preview,
            "RATE_LIMIT_CLIP": self.rate_limit_clip,
        }
        for name, value in positive.items():
            if value < 1:
                raise ValueError(f"{name} must be >= 1, got {value}")

        return self

    @property
    def is_production(self) -> bool:
        """Whether debug details must be withheld from error responses."""
        return self.clipper_env in (Environment.STAGING, Environment.PROD)

    @property
    def upstream_headless_base(self) -> str:
        """Base URL for member-scoped (headless) upstream endpoints."""
        return f"{self.upstream_api_base.rstrip('/')}/headless/v1"

    @property
    def upstream_token_cache_ttl_s(self) -> int:
        """Cache TTL for member access tokens, just under their real lifetime."""
        return max(
            MIN_TOKEN_CACHE_TTL_S,
            self.upstream_token_ttl_s - self.upstream_token_cache_margin_s,
        )

    @property
    def cors_origin_list(self) -> list[str]:
        """Parse comma-separated CORS origins into a list."""
        return [o.strip() for o in self.cors_allowed_origins.split(",") if o.strip()]


@lru_cache
def get_settings() -> Settings:
    """Get cached application settings.

    Returns:
        Settings instance loaded from environment.

    Raises:
        ValidationError: If required settings are missing or invalid.
    """
    return Settings()


def clear_settings_cache() -> None:
    """Clear the settings cache. Useful for testing."""
    get_settings.cache_clear()
