"""API error definitions.

All API errors are defined here with their corresponding HTTP status codes.
"""

from enum import Enum
from typing import Any


class ApiErrorCode(str, Enum):
    """Standardized error codes for the API.

    Format: E_CATEGORY_NAME
    """

    # Validation errors (400)
    E_INVALID_REQUEST = "E_INVALID_REQUEST"

    # Authentication errors (401)
    E_UNAUTHENTICATED = "E_UNAUTHENTICATED"
    E_SESSION_INVALID = "E_SESSION_INVALID"
    E_SESSION_EXPIRED = "E_SESSION_EXPIRED"

    # Not found errors (404)
    E_NOT_FOUND = "E_NOT_FOUND"
    E_UPSTREAM_USER_NOT_FOUND = "E_UPSTREAM_USER_NOT_FOUND"

    E_METHOD_NOT_ALLOWED = "E_METHOD_NOT_ALLOWED"  # 405
    E_RATE_LIMITED = "E_RATE_LIMITED"  # 429

    # Server errors
    E_UPSTREAM_CONFIG = "E_UPSTREAM_CONFIG"  # 500, operator fault
    E_CONTENT_INVALID = "E_CONTENT_INVALID"  # 500
    E_INTERNAL = "E_INTERNAL"  # 500
    E_UPSTREAM_PROTOCOL = "E_UPSTREAM_PROTOCOL"  # 502
    E_UPSTREAM_FAILED = "E_UPSTREAM_FAILED"  # 502
    E_UPSTREAM_TIMEOUT = "E_UPSTREAM_TIMEOUT"  # 504


# Error code to HTTP status mapping
ERROR_CODE_TO_STATUS: dict[ApiErrorCode, int] = {
    ApiErrorCode.E_INVALID_REQUEST: 400,
    ApiErrorCode.E_UNAUTHENTICATED: 401,
    ApiErrorCode.E_SESSION_INVALID: 401,
    ApiErrorCode.E_SESSION_EXPIRED: 401,
    ApiErrorCode.E_NOT_FOUND: 404,
    ApiErrorCode.E_UPSTREAM_USER_NOT_FOUND: 404,
    ApiErrorCode.E_METHOD_NOT_ALLOWED: 405,
    ApiErrorCode.E_RATE_LIMITED: 429,
    ApiErrorCode.E_UPSTREAM_CONFIG: 500,
    ApiErrorCode.E_CONTENT_INVALID: 500,
    ApiErrorCode.E_INTERNAL: 500,
    ApiErrorCode.E_UPSTREAM_PROTOCOL: 502,
    ApiErrorCode.E_UPSTREAM_FAILED: 502,
    ApiErrorCode.E_UPSTREAM_TIMEOUT: 504,
}


class ApiError(Exception):
    """Base exception for API errors.

    Attributes:
        code: The error code enum value
        message: Human-readable error message
        status_code: HTTP status code (derived from code)
        debug: Optional diagnostic detail (omitted from responses in production)
        retry_after: Seconds until a rate-limited caller may retry
    """

    def __init__(
        self,
        code: ApiErrorCode,
        message: str,
        debug: Any = None,
        retry_after: int | None = None,
    ):
        self.code = code
        self.message = message
        self.status_code = ERROR_CODE_TO_STATUS.get(code, 500)
        self.debug = debug
        self.retry_after = retry_after
        super().__init__(message)


class InvalidRequestError(ApiError):
    """Invalid request error."""

    def __init__(self, message: str = "Invalid request", debug: Any = None):
        super().__init__(ApiErrorCode.E_INVALID_REQUEST, message, debug=debug)


class AuthenticationError(ApiError):
    """Missing, malformed or expired session."""

    def __init__(
        self,
        code: ApiErrorCode = ApiErrorCode.E_UNAUTHENTICATED,
        message: str = "Authentication required",
    ):
        super().__init__(code, message)


class RateLimitedError(ApiError):
    """Rate limit exceeded; carries the Retry-After hint."""

    def __init__(self, message: str, retry_after: int):
        super().__init__(ApiErrorCode.E_RATE_LIMITED, message, retry_after=retry_after)
