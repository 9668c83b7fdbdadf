"""Tests for error handling and response envelopes.

Verifies:
- Error body shape is flat: error, message, request_id, optional debug
- Every error code maps to correct HTTP status
- Debug detail is withheld in production
- Upstream failure classes map to client-facing codes
- Unknown exceptions return E_INTERNAL with 500
"""

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from clipper.config import clear_settings_cache
from clipper.errors import (
    ERROR_CODE_TO_STATUS,
    ApiError,
    ApiErrorCode,
    InvalidRequestError,
    RateLimitedError,
)
from clipper.responses import (
    api_error_handler,
    error_response,
    success_response,
    unhandled_exception_handler,
)
from clipper.upstream.errors import UpstreamError, UpstreamErrorClass


class TestErrorResponse:
    """Tests for error response body format."""

    def test_error_response_is_flat(self):
        response = error_response(ApiErrorCode.E_NOT_FOUND, "Resource not found")

        assert response["error"] == "E_NOT_FOUND"
        assert response["message"] == "Resource not found"
        assert "debug" not in response

    def test_error_code_is_string(self):
        response = error_response(ApiErrorCode.E_RATE_LIMITED, "Slow down", retry_after=3)

        assert isinstance(response["error"], str)
        assert response["retry_after"] == 3

    def test_debug_included_outside_production(self):
        response = error_response(ApiErrorCode.E_INTERNAL, "Boom", debug={"why": "x"})

        assert response["debug"] == {"why": "x"}

    def test_debug_withheld_in_production(self, monkeypatch):
        monkeypatch.setenv("CLIPPER_ENV", "prod")
        clear_settings_cache()

        response = error_response(ApiErrorCode.E_INTERNAL, "Boom", debug={"why": "x"})

        assert "debug" not in response

    def test_explicit_request_id(self):
        response = error_response(ApiErrorCode.E_INTERNAL, "Boom", request_id="req-1")

        assert response["request_id"] == "req-1"


class TestSuccessResponse:
    """Tests for success response format."""

    def test_success_response_merges_payload(self):
        response = success_response(spaces=[], meta={"total_count": 0})

        assert response == {"success": True, "spaces": [], "meta": {"total_count": 0}}


class TestErrorCodeMapping:
    """Tests for error code to HTTP status mapping."""

    def test_every_code_has_status(self):
        for code in ApiErrorCode:
            assert code in ERROR_CODE_TO_STATUS, f"{code} missing from status map"

    @pytest.mark.parametrize(
        "code,expected_status",
        [
            (ApiErrorCode.E_INVALID_REQUEST, 400),
            (ApiErrorCode.E_UNAUTHENTICATED, 401),
            (ApiErrorCode.E_SESSION_EXPIRED, 401),
            (ApiErrorCode.E_UPSTREAM_USER_NOT_FOUND, 404),
            (ApiErrorCode.E_RATE_LIMITED, 429),
            (ApiErrorCode.E_UPSTREAM_CONFIG, 500),
            (ApiErrorCode.E_UPSTREAM_PROTOCOL, 502),
            (ApiErrorCode.E_UPSTREAM_FAILED, 502),
            (ApiErrorCode.E_UPSTREAM_TIMEOUT, 504),
        ],
    )
    def test_error_code_status(self, code, expected_status):
        assert ApiError(code, "msg").status_code == expected_status

    def test_invalid_request_error_defaults(self):
        error = InvalidRequestError()

        assert error.code == ApiErrorCode.E_INVALID_REQUEST
        assert error.status_code == 400

    def test_rate_limited_error_carries_retry_after(self):
        error = RateLimitedError("Too many", retry_after=12)

        assert error.status_code == 429
        assert error.retry_after == 12


class TestUpstreamErrorMapping:
    """Upstream failure classes become client-facing ApiErrors."""

    @pytest.mark.parametrize(
        "error_class,expected_code",
        [
            (UpstreamErrorClass.USER_NOT_FOUND, ApiErrorCode.E_UPSTREAM_USER_NOT_FOUND),
            (UpstreamErrorClass.CREDENTIAL_INVALID, ApiErrorCode.E_UPSTREAM_CONFIG),
            (UpstreamErrorClass.NOT_CONFIGURED, ApiErrorCode.E_UPSTREAM_CONFIG),
            (UpstreamErrorClass.MALFORMED_RESPONSE, ApiErrorCode.E_UPSTREAM_PROTOCOL),
            (UpstreamErrorClass.REJECTED, ApiErrorCode.E_UPSTREAM_FAILED),
            (UpstreamErrorClass.UNAVAILABLE, ApiErrorCode.E_UPSTREAM_FAILED),
            (UpstreamErrorClass.TIMEOUT, ApiErrorCode.E_UPSTREAM_TIMEOUT),
        ],
    )
    def test_class_maps_to_code(self, error_class, expected_code):
        api_error = UpstreamError(error_class, "detail").to_api_error()

        assert api_error.code == expected_code

    def test_user_not_found_message(self):
        api_error = UpstreamError(UpstreamErrorClass.USER_NOT_FOUND, "404").to_api_error()

        assert api_error.message == "Email not found in the community"

    def test_override_message_and_debug(self):
        error = UpstreamError(
            UpstreamErrorClass.REJECTED,
            "HTTP 422",
            status_code=422,
            endpoint="/posts",
        )

        api_error = error.to_api_error("Failed to create post")

        assert api_error.message == "Failed to create post"
        assert api_error.debug["status"] == 422
        assert api_error.debug["endpoint"] == "/posts"
        assert api_error.debug["upstream_error"] == "rejected"


class TestExceptionHandlers:
    """Exception handlers render the flat error body."""

    def _app(self) -> FastAPI:
        app = FastAPI()
        app.add_exception_handler(ApiError, api_error_handler)
        app.add_exception_handler(Exception, unhandled_exception_handler)

        @app.get("/limited")
        def limited():
            raise RateLimitedError("Rate limit exceeded", retry_after=7)

        @app.get("/boom")
        def boom():
            raise RuntimeError("secret internals")

        return app

    def test_rate_limited_sets_retry_after_header(self):
        client = TestClient(self._app())

        response = client.get("/limited")

        assert response.status_code == 429
        assert response.headers["Retry-After"] == "7"
        assert response.json()["retry_after"] == 7

    def test_unknown_exception_returns_internal(self):
        client = TestClient(self._app(), raise_server_exceptions=False)

        response = client.get("/boom")

        assert response.status_code == 500
        body = response.json()
        assert body["error"] == "E_INTERNAL"
        assert "secret internals" not in response.text
