"""Pure ASGI CORS middleware for the browser extension.

- Allowed origins come from CORS_ALLOWED_ORIGINS; "*" allows any origin
- OPTIONS preflight is answered here, before auth runs
- Requests without an Origin header (curl, tests) pass through untouched
- Disallowed origins get 403 on preflight and no CORS headers otherwise
"""

from starlette.datastructures import Headers, MutableHeaders
from starlette.responses import Response
from starlette.types import ASGIApp, Message, Receive, Scope, Send

ALLOW_METHODS = "GET, POST, OPTIONS"
ALLOW_HEADERS = "Authorization, Content-Type, X-Request-ID"
MAX_AGE_S = "86400"


class ExtensionCORSMiddleware:
    """Injects CORS headers on the http.response.start message."""

    def __init__(self, app: ASGIApp, allowed_origins: list[str]):
        self.app = app
        self.allow_any = "*" in allowed_origins
        self.allowed_origins = set(allowed_origins)

    def is_allowed(self, origin: str) -> bool:
        return self.allow_any or origin in self.allowed_origins

    def _allow_origin_value(self, origin: str) -> str:
        return "*" if self.allow_any else origin

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        origin = Headers(scope=scope).get("origin")
        if origin is None:
            await self.app(scope, receive, send)
            return

        allowed = self.is_allowed(origin)

        if scope["method"] == "OPTIONS":
            if not allowed:
                response = Response(status_code=403, content="origin not allowed")
            else:
                response = Response(
                    status_code=204,
                    headers={
                        "access-control-allow-origin": self._allow_origin_value(origin),
                        "access-control-allow-methods": ALLOW_METHODS,
                        "access-control-allow-headers": ALLOW_HEADERS,
                        "access-control-max-age": MAX_AGE_S,
                        "vary": "Origin",
                    },
                )
            await response(scope, receive, send)
            return

        if not allowed:
            await self.app(scope, receive, send)
            return

        async def send_with_cors(message: Message) -> None:
            if message["type"] == "http.response.start":
                resp_headers = MutableHeaders(scope=message)
                resp_headers.append("access-control-allow-origin", self._allow_origin_value(origin))
                resp_headers.append("access-control-expose-headers", "X-Request-ID, Retry-After")
                resp_headers.append("vary", "Origin")
            await send(message)

        await self.app(scope, receive, send_with_cors)
