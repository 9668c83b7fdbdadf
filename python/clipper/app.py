"""FastAPI application creation and configuration.

This module creates and configures the FastAPI application instance.
It registers exception handlers, auth, CORS and request-id middleware, and routes.

Middleware Ordering (Critical):
- Middleware runs in reverse order of registration
- RequestIDMiddleware is added LAST so it runs FIRST (outermost)
- ExtensionCORSMiddleware runs before AuthMiddleware so preflight never needs a session

Actual execution order per request:
1. RequestIDMiddleware (sets request_id, starts timer)
2. ExtensionCORSMiddleware (answers preflight, tags responses)
3. AuthMiddleware (verifies the session, sets viewer)
4. Route handler

Shared state:
- TTLCache, RateLimiter and SessionTokenService are created with the app
- httpx.AsyncClient is created in the lifespan and wrapped by UpstreamClient,
  PreviewFetcher and MediaRelay; it is closed at shutdown
"""

import json
import time
from contextlib import asynccontextmanager

import httpx
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from clipper.api.routes import create_api_router
from clipper.auth.middleware import AuthMiddleware
from clipper.auth.session_token import SessionTokenService
from clipper.config import get_settings
from clipper.errors import ApiError, ApiErrorCode
from clipper.logging import configure_logging, get_logger
from clipper.middleware.cors import ExtensionCORSMiddleware
from clipper.middleware.request_id import RequestIDMiddleware
from clipper.responses import (
    api_error_handler,
    error_response,
    http_exception_handler,
    unhandled_exception_handler,
)
from clipper.services.cache import TTLCache
from clipper.services.media_relay import MediaRelay
from clipper.services.preview import PreviewFetcher
from clipper.services.rate_limit import RateLimiter
from clipper.upstream.client import UpstreamClient

# Configure structured logging at import time
configure_logging()

logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Create the shared HTTP client and the services that use it."""
    settings = get_settings()

    app.state.httpx_client = httpx.AsyncClient(
        timeout=httpx.Timeout(settings.upstream_timeout_s, connect=10.0),
        limits=httpx.Limits(max_connections=100, max_keepalive_connections=20),
        trust_env=False,
    )
    app.state.upstream = UpstreamClient(app.state.httpx_client, settings)
    app.state.preview_fetcher = PreviewFetcher(app.state.httpx_client, app.state.cache, settings)
    app.state.media_relay = MediaRelay(
        app.state.httpx_client,
        app.state.upstream,
        download_timeout_s=settings.media_download_timeout_s,
    )

    logger.info(
        "services_initialized",
        upstream_configured=bool(settings.upstream_service_token),
        preview_configured=bool(settings.preview_api_key),
    )

    yield

    await app.state.httpx_client.aclose()
    logger.info("httpx_client_closed")


def create_app(
    skip_auth_middleware: bool = False,
    cache: TTLCache | None = None,
    rate_limiter: RateLimiter | None = None,
) -> FastAPI:
    """Create and configure the FastAPI application.

    Args:
        skip_auth_middleware: If True, skip adding auth middleware (for testing).
        cache: Optional token/preview cache (tests inject a simulated clock).
        rate_limiter: Optional rate limiter (tests inject a simulated clock).

    Returns:
        Configured FastAPI application instance.
    """
    settings = get_settings()

    app = FastAPI(
        title="Web Clipper API",
        description="Backend for the web clipper browser extension",
        version=settings.app_version,
        docs_url="/docs",
        redoc_url="/redoc",
        lifespan=lifespan,
    )

    app.state.started_at = time.monotonic()
    app.state.cache = cache or TTLCache()
    app.state.rate_limiter = rate_limiter or RateLimiter()
    app.state.sessions = SessionTokenService(
        settings.session_signing_secret,
        ttl_s=settings.session_token_ttl_s,
        issuer=settings.session_token_issuer,
    )

    # Register exception handlers
    app.add_exception_handler(ApiError, api_error_handler)
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(Exception, unhandled_exception_handler)

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(
        request: Request, exc: RequestValidationError
    ) -> JSONResponse:
        """Handle request validation errors (including malformed JSON)."""
        errors = exc.errors()
        message = "Invalid request body"
        if errors:
            first = errors[0]
            field = ".".join(str(part) for part in first.get("loc", ())[1:])
            detail = str(first.get("msg", "")).removeprefix("Value error, ")
            message = f"{field}: {detail}" if field else detail or message
        return JSONResponse(
            status_code=400,
            content=error_response(ApiErrorCode.E_INVALID_REQUEST, message),
        )

    # Handle JSON decode errors from malformed JSON bodies
    @app.middleware("http")
    async def catch_json_decode_errors(request: Request, call_next):
        """Catch JSON decode errors before they reach route handlers."""
        if request.method in ("POST", "PUT", "PATCH"):
            content_type = request.headers.get("content-type", "")
            if "application/json" in content_type:
                body = await request.body()
                if body:
                    try:
                        json.loads(body)
                    except json.JSONDecodeError:
                        return JSONResponse(
                            status_code=400,
                            content=error_response(
                                ApiErrorCode.E_INVALID_REQUEST, "Malformed JSON body"
                            ),
                        )
        return await call_next(request)

    app.include_router(create_api_router())

    if not skip_auth_middleware:
        app.add_middleware(AuthMiddleware, sessions=app.state.sessions)
        logger.info("auth_middleware_enabled", env=settings.clipper_env.value)

    cors_origins = settings.cors_origin_list
    if cors_origins:
        app.add_middleware(ExtensionCORSMiddleware, allowed_origins=cors_origins)
        logger.info("cors_middleware_enabled", origins=cors_origins)

    return app


def add_request_id_middleware(app: FastAPI, log_requests: bool = True) -> None:
    """Add request-id middleware to the app.

    Call AFTER all other middleware is added, so it runs FIRST and every
    response carries X-Request-ID, auth failures included.
    """
    app.add_middleware(RequestIDMiddleware, log_requests=log_requests)
    logger.info("request_id_middleware_enabled")
