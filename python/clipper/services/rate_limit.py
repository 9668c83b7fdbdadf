"""In-memory rate limiting.

Sliding-window request counter keyed by caller identity:
- /auth: per client IP (RATE_LIMIT_AUTH per RATE_LIMIT_AUTH_WINDOW_S)
- /preview, /clip: per session subject

Exceeding a limit raises RateLimitedError (429) with retry_after set to the
seconds until the oldest request in the window falls out.

State lives in the process only; counters reset on restart. One limiter is
created per application and injected through app.state.
"""

import math
import time
from collections import deque
from collections.abc import Callable
from threading import Lock

from clipper.errors import RateLimitedError
from clipper.logging import get_logger

logger = get_logger(__name__)


def scope_of(identifier: str) -> str:
    """Return the limit scope of an identifier such as "preview:<subject>"."""
    return identifier.split(":", 1)[0]


class RateLimiter:
    """Sliding-window rate limiter.

    Thread-safe for use in FastAPI endpoints.
    """

    def __init__(self, clock: Callable[[], float] = time.monotonic):
        self._clock = clock
        self._windows: dict[str, deque[float]] = {}
        self._lock = Lock()

    def check(self, identifier: str, limit: int, window_s: float) -> None:
        """Record a request for identifier, or reject it.

        Raises:
            RateLimitedError: If identifier already made `limit` requests in the window.
        """
        with self._lock:
            now = self._clock()
            window_start = now - window_s

            requests = self._windows.setdefault(identifier, deque())
            while requests and requests[0] <= window_start:
                requests.popleft()

            if len(requests) >= limit:
                retry_after = max(1, math.ceil(requests[0] + window_s - now))
                logger.warning(
                    "rate_limit.blocked",
                    limit_type=scope_of(identifier),
                    retry_after=retry_after,
                )
                raise RateLimitedError(
                    f"Rate limit exceeded. Try again in {retry_after} seconds.",
                    retry_after=retry_after,
                )

            requests.append(now)
            self._sweep(scope_of(identifier), window_start, identifier)

    def reset(self) -> None:
        """Drop all counters."""
        with self._lock:
            self._windows.clear()

    def _sweep(self, scope: str, window_start: float, keep: str) -> None:
        # Only identifiers of the same scope share a window length.
        stale = [
            key
            for key, requests in self._windows.items()
            if key != keep
            and scope_of(key) == scope
            and (not requests or requests[-1] <= window_start)
        ]
        for key in stale:
            del self._windows[key]
