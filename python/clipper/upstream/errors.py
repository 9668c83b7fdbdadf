"""Upstream platform error classification.

Every failed call to the community platform raises UpstreamError carrying a
normalized error class, the endpoint and the HTTP status. Route handlers and
services convert it to an ApiError with to_api_error().

Error classes:
- USER_NOT_FOUND: member email unknown upstream (404)
- CREDENTIAL_INVALID: service credential rejected (401/403 on token issuance), operator fault
- NOT_CONFIGURED: service credential missing, operator fault
- MALFORMED_RESPONSE: non-JSON body (e.g. an HTML error page) or unexpected JSON shape
- REJECTED: upstream answered with a non-2xx JSON error
- TIMEOUT: request timed out
- UNAVAILABLE: network failure before a response arrived
"""

from enum import Enum
from typing import Any

from clipper.errors import ApiError, ApiErrorCode


class UpstreamErrorClass(str, Enum):
    """Normalized upstream failure classifications."""

    USER_NOT_FOUND = "user_not_found"
    CREDENTIAL_INVALID = "credential_invalid"
    NOT_CONFIGURED = "not_configured"
    MALFORMED_RESPONSE = "malformed_response"
    REJECTED = "rejected"
    TIMEOUT = "timeout"
    UNAVAILABLE = "unavailable"


_CLASS_TO_CODE: dict[UpstreamErrorClass, ApiErrorCode] = {
    UpstreamErrorClass.USER_NOT_FOUND: ApiErrorCode.E_UPSTREAM_USER_NOT_FOUND,
    UpstreamErrorClass.CREDENTIAL_INVALID: ApiErrorCode.E_UPSTREAM_CONFIG,
    UpstreamErrorClass.NOT_CONFIGURED: ApiErrorCode.E_UPSTREAM_CONFIG,
    UpstreamErrorClass.MALFORMED_RESPONSE: ApiErrorCode.E_UPSTREAM_PROTOCOL,
    UpstreamErrorClass.REJECTED: ApiErrorCode.E_UPSTREAM_FAILED,
    UpstreamErrorClass.TIMEOUT: ApiErrorCode.E_UPSTREAM_TIMEOUT,
    UpstreamErrorClass.UNAVAILABLE: ApiErrorCode.E_UPSTREAM_FAILED,
}

_CLASS_TO_MESSAGE: dict[UpstreamErrorClass, str] = {
    UpstreamErrorClass.USER_NOT_FOUND: "Email not found in the community",
    UpstreamErrorClass.CREDENTIAL_INVALID: "Server authentication error. Please contact support.",
    UpstreamErrorClass.NOT_CONFIGURED: "Server configuration error. Please contact support.",
}


class UpstreamError(Exception):
    """Exception for failed upstream platform calls.

    Attributes:
        error_class: The normalized error classification
        message: Human-readable error message
        status_code: HTTP status returned upstream (None if no response)
        endpoint: The URL that was called
        detail: Truncated upstream body or parsed JSON error, for diagnostics
    """

    def __init__(
        self,
        error_class: UpstreamErrorClass,
        message: str,
        status_code: int | None = None,
        endpoint: str | None = None,
        detail: Any = None,
    ):
        self.error_class = error_class
        self.message = message
        self.status_code = status_code
        self.endpoint = endpoint
        self.detail = detail
        super().__init__(message)

    @property
    def token_rejected(self) -> bool:
        """The upstream refused the member access token that was sent."""
        return self.status_code == 401 and self.error_class != UpstreamErrorClass.CREDENTIAL_INVALID

    def to_api_error(self, message: str | None = None) -> ApiError:
        """Convert to the API error the caller should see."""
        code = _CLASS_TO_CODE[self.error_class]
        return ApiError(
            code,
            message or _CLASS_TO_MESSAGE.get(self.error_class, self.message),
            debug={
                "upstream_error": self.error_class.value,
                "endpoint": self.endpoint,
                "status": self.status_code,
                "detail": self.message,
            },
        )
