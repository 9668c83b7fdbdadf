"""Session authentication middleware for FastAPI.

Provides:
- AuthMiddleware: Global middleware that verifies the bearer session token
- get_viewer: Dependency for accessing the authenticated member
"""

from dataclasses import dataclass

from fastapi import Request
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.types import ASGIApp

from clipper.auth.session_token import SessionTokenService
from clipper.errors import ApiError, ApiErrorCode
from clipper.logging import get_logger, set_subject_hash
from clipper.responses import error_response
from clipper.services.redact import hash_text

logger = get_logger(__name__)

AUTHORIZATION_HEADER = "authorization"

# Paths that don't require a session
PUBLIC_PATHS = {"/health", "/auth", "/docs", "/redoc", "/openapi.json"}


@dataclass
class Viewer:
    """Authenticated member identity.

    Attributes:
        subject: The member email (session sub claim).
        subject_hash: SHA-256 of the email, safe to log.
        expires_at: Session expiry, epoch seconds.
    """

    subject: str
    subject_hash: str
    expires_at: int


class AuthMiddleware(BaseHTTPMiddleware):
    """Session authentication middleware.

    Order of checks:
    1. Skip if public path or CORS preflight
    2. Extract the bearer token
    3. Verify it with SessionTokenService (401 on any failure)
    4. Attach Viewer to request state
    """

    def __init__(self, app: ASGIApp, sessions: SessionTokenService):
        super().__init__(app)
        self.sessions = sessions

    async def dispatch(self, request: Request, call_next) -> JSONResponse:
        """Process the request through auth checks."""
        if request.url.path in PUBLIC_PATHS or request.method == "OPTIONS":
            return await call_next(request)

        token, error_response_obj = self._extract_bearer_token(request)
        if error_response_obj:
            return error_response_obj

        try:
            claims = self.sessions.verify(token)
        except ApiError as e:
            return self._error_json_response(e.code, e.message, e.status_code, e.debug)

        subject_hash = hash_text(claims.subject)
        set_subject_hash(subject_hash)
        request.state.viewer = Viewer(
            subject=claims.subject,
            subject_hash=subject_hash,
            expires_at=claims.expires_at,
        )

        return await call_next(request)

    def _extract_bearer_token(self, request: Request) -> tuple[str, JSONResponse | None]:
        """Extract bearer token from Authorization header.

        Returns:
            Tuple of (token, error_response). Token is empty string if error.
        """
        auth_header = request.headers.get(AUTHORIZATION_HEADER)

        if not auth_header:
            logger.warning("auth_failure", reason="missing_header")
            return "", self._error_json_response(
                ApiErrorCode.E_UNAUTHENTICATED,
                "Missing or invalid authorization header",
                401,
            )

        # Check for Bearer prefix (case-insensitive)
        if not auth_header.lower().startswith("bearer "):
            logger.warning("auth_failure", reason="invalid_header_format")
            return "", self._error_json_response(
                ApiErrorCode.E_UNAUTHENTICATED,
                "Missing or invalid authorization header",
                401,
            )

        token = auth_header[7:].strip()
        if not token:
            logger.warning("auth_failure", reason="empty_token")
            return "", self._error_json_response(
                ApiErrorCode.E_UNAUTHENTICATED,
                "Missing or invalid authorization header",
                401,
            )

        return token, None

    def _error_json_response(
        self, code: ApiErrorCode, message: str, status_code: int, debug=None
    ) -> JSONResponse:
        """Create a JSON error response."""
        return JSONResponse(
            status_code=status_code,
            content=error_response(code, message, debug),
        )


def get_viewer(request: Request) -> Viewer:
    """FastAPI dependency to get the authenticated member.

    Raises:
        ApiError: If viewer is not set (middleware didn't run or path is public).
    """
    viewer = getattr(request.state, "viewer", None)
    if viewer is None:
        raise ApiError(ApiErrorCode.E_UNAUTHENTICATED, "Authentication required")
    return viewer
