"""Community platform REST client.

Endpoints (relative to UPSTREAM_API_BASE):
- POST /v1/headless/auth_token             mint a member access token (service credential)
- POST /headless/v1/direct_uploads         provision a one-time blob upload slot
- PUT  <signed upload url>                 raw bytes, Content-Type must match the slot
- POST /headless/v1{UPSTREAM_POST_PATH}    create a post
- GET  /headless/v1/spaces                 list spaces visible to the member

The declared Content-Type of every JSON endpoint is checked before parsing, so
an HTML error page surfaces as MALFORMED_RESPONSE rather than a decode error.

Uses the shared httpx.AsyncClient created in the application lifespan.
"""

import json
from dataclasses import dataclass, field
from typing import Any

import httpx

from clipper.config import Settings
from clipper.logging import get_logger
from clipper.upstream.errors import UpstreamError, UpstreamErrorClass

logger = get_logger(__name__)

USER_AGENT = "WebClipper/2.0"
BODY_SNIPPET_CHARS = 500


@dataclass(frozen=True)
class MemberToken:
    """Upstream access token for one member."""

    access_token: str
    expires_in: int | None = None


@dataclass(frozen=True)
class DirectUpload:
    """A provisioned blob upload slot."""

    signed_id: str
    url: str
    headers: dict[str, str] = field(default_factory=dict)


class UpstreamClient:
    """Thin async client for the community platform API."""

    def __init__(self, client: httpx.AsyncClient, settings: Settings):
        self._client = client
        self._settings = settings
        self._api_base = settings.upstream_api_base.rstrip("/")
        self._headless_base = settings.upstream_headless_base

    @property
    def post_endpoint(self) -> str:
        """The single configured post-creation URL."""
        return f"{self._headless_base}/{self._settings.upstream_post_path.lstrip('/')}"

    async def issue_member_token(self, email: str) -> MemberToken:
        """Exchange a member email for an upstream access token.

        Raises:
            UpstreamError: NOT_CONFIGURED, USER_NOT_FOUND, CREDENTIAL_INVALID,
                MALFORMED_RESPONSE, REJECTED, TIMEOUT or UNAVAILABLE.
        """
        service_token = self._settings.upstream_service_token
        if not service_token:
            raise UpstreamError(
                UpstreamErrorClass.NOT_CONFIGURED,
                "UPSTREAM_SERVICE_TOKEN is not configured",
            )

        endpoint = f"{self._api_base}/v1/headless/auth_token"
        response = await self._send(
            "POST", endpoint, token=service_token, json_body={"email": email}
        )
        data = self._parse_json(response, endpoint)

        if response.status_code == 404:
            raise UpstreamError(
                UpstreamErrorClass.USER_NOT_FOUND,
                _error_text(data, "Member not found"),
                status_code=404,
                endpoint=endpoint,
                detail=data,
            )
        if response.status_code in (401, 403):
            raise UpstreamError(
                UpstreamErrorClass.CREDENTIAL_INVALID,
                _error_text(data, "Service credential rejected"),
                status_code=response.status_code,
                endpoint=endpoint,
                detail=data,
            )
        self._raise_for_status(response, endpoint, data, "Failed to get access token")

        access_token = data.get("access_token") if isinstance(data, dict) else None
        if not access_token:
            raise UpstreamError(
                UpstreamErrorClass.MALFORMED_RESPONSE,
                "No access_token in upstream response",
                status_code=response.status_code,
                endpoint=endpoint,
            )

        expires_in = data.get("expires_in")
        return MemberToken(
            access_token=access_token,
            expires_in=int(expires_in) if isinstance(expires_in, int | float) else None,
        )

    async def create_direct_upload(
        self,
        access_token: str,
        filename: str,
        content_type: str,
        byte_size: int,
    ) -> DirectUpload:
        """Provision a one-time upload slot for a blob."""
        endpoint = f"{self._headless_base}/direct_uploads"
        response = await self._send(
            "POST",
            endpoint,
            token=access_token,
            json_body={
                "blob": {
                    "filename": filename,
                    "content_type": content_type,
                    "byte_size": byte_size,
                }
            },
        )
        data = self._parse_json(response, endpoint)
        self._raise_for_status(response, endpoint, data, "Direct upload creation failed")

        direct_upload = data.get("direct_upload") if isinstance(data, dict) else None
        signed_id = data.get("signed_id") if isinstance(data, dict) else None
        if not isinstance(direct_upload, dict) or not direct_upload.get("url") or not signed_id:
            raise UpstreamError(
                UpstreamErrorClass.MALFORMED_RESPONSE,
                "Invalid direct upload response format",
                status_code=response.status_code,
                endpoint=endpoint,
            )

        return DirectUpload(
            signed_id=signed_id,
            url=direct_upload["url"],
            headers=dict(direct_upload.get("headers") or {}),
        )

    async def upload_to_signed_url(
        self, upload: DirectUpload, data: bytes, content_type: str
    ) -> None:
        """PUT raw bytes to a provisioned upload slot."""
        headers = {**upload.headers, "Content-Type": content_type}
        try:
            response = await self._client.put(
                upload.url,
                content=data,
                headers=headers,
                timeout=self._settings.upstream_timeout_s,
            )
        except httpx.TimeoutException as e:
            raise UpstreamError(
                UpstreamErrorClass.TIMEOUT, "Upload to signed URL timed out"
            ) from e
        except httpx.RequestError as e:
            raise UpstreamError(
                UpstreamErrorClass.UNAVAILABLE, f"Upload to signed URL failed: {e}"
            ) from e

        if not response.is_success:
            raise UpstreamError(
                UpstreamErrorClass.REJECTED,
                f"Upload to signed URL failed: {response.status_code}",
                status_code=response.status_code,
                detail=response.text[:BODY_SNIPPET_CHARS],
            )

    async def create_post(self, access_token: str, payload: dict[str, Any]) -> dict[str, Any]:
        """Create a post and return the upstream post object."""
        endpoint = self.post_endpoint
        response = await self._send("POST", endpoint, token=access_token, json_body=payload)
        data = self._parse_json(response, endpoint)
        self._raise_for_status(response, endpoint, data, "Post creation failed")

        if not isinstance(data, dict):
            raise UpstreamError(
                UpstreamErrorClass.MALFORMED_RESPONSE,
                "Post response is not a JSON object",
                status_code=response.status_code,
                endpoint=endpoint,
            )
        # Some deployments wrap the created object.
        post = data.get("post")
        return post if isinstance(post, dict) else data

    async def list_spaces(self, access_token: str) -> list[dict[str, Any]]:
        """Return the raw space objects visible to the member."""
        endpoint = f"{self._headless_base}/spaces"
        response = await self._send("GET", endpoint, token=access_token)
        data = self._parse_json(response, endpoint)
        self._raise_for_status(response, endpoint, data, "Failed to fetch spaces")

        if isinstance(data, list):
            return data
        spaces = data.get("spaces") if isinstance(data, dict) else None
        if spaces is None:
            spaces = data.get("records") if isinstance(data, dict) else None
        return spaces if isinstance(spaces, list) else []

    # =========================================================================
    # Internals
    # =========================================================================

    async def _send(
        self,
        method: str,
        endpoint: str,
        *,
        token: str,
        json_body: dict[str, Any] | None = None,
    ) -> httpx.Response:
        headers = {
            "Authorization": f"Bearer {token}",
            "Accept": "application/json",
            "User-Agent": USER_AGENT,
        }
        try:
            return await self._client.request(
                method,
                endpoint,
                headers=headers,
                json=json_body,
                timeout=self._settings.upstream_timeout_s,
            )
        except httpx.TimeoutException as e:
            logger.warning("upstream_timeout", endpoint=endpoint)
            raise UpstreamError(
                UpstreamErrorClass.TIMEOUT,
                "Upstream request timed out",
                endpoint=endpoint,
            ) from e
        except httpx.RequestError as e:
            logger.warning("upstream_unavailable", endpoint=endpoint, error=str(e))
            raise UpstreamError(
                UpstreamErrorClass.UNAVAILABLE,
                f"Upstream request failed: {e}",
                endpoint=endpoint,
            ) from e

    def _parse_json(self, response: httpx.Response, endpoint: str) -> Any:
        content_type = response.headers.get("content-type", "")
        if "application/json" not in content_type.lower():
            logger.warning(
                "upstream_non_json_response",
                endpoint=endpoint,
                status_code=response.status_code,
                content_type=content_type or None,
            )
            raise UpstreamError(
                UpstreamErrorClass.MALFORMED_RESPONSE,
                "Upstream returned non-JSON response",
                status_code=response.status_code,
                endpoint=endpoint,
                detail=response.text[:BODY_SNIPPET_CHARS],
            )
        try:
            return response.json()
        except json.JSONDecodeError as e:
            raise UpstreamError(
                UpstreamErrorClass.MALFORMED_RESPONSE,
                "Upstream returned invalid JSON",
                status_code=response.status_code,
                endpoint=endpoint,
                detail=response.text[:BODY_SNIPPET_CHARS],
            ) from e

    def _raise_for_status(
        self, response: httpx.Response, endpoint: str, data: Any, message: str
    ) -> None:
        if response.is_success:
            return
        logger.warning(
            "upstream_rejected",
            endpoint=endpoint,
            status_code=response.status_code,
        )
        raise UpstreamError(
            UpstreamErrorClass.REJECTED,
            f"{message}: {_error_text(data, response.reason_phrase)}",
            status_code=response.status_code,
            endpoint=endpoint,
            detail=data,
        )


def _error_text(data: Any, default: str) -> str:
    """Pull a human-readable message out of an upstream JSON error body."""
    if isinstance(data, dict):
        for key in ("error", "message", "errors"):
            value = data.get(key)
            if isinstance(value, str) and value:
                return value
    return default
