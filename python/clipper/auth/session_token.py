"""Session token auth: mint and verify the extension's signed session JWTs.

- HS256 signed with SESSION_SIGNING_SECRET (never leaves the backend)
- Claims: sub=email, iat, exp=iat+SESSION_TOKEN_TTL_S, iss, type=session
- The signature segment must equal the recomputed HMAC of header.payload exactly;
  tokens that only decode to the same bytes are still rejected
- A token is expired when now >= exp
- No revocation list and no server-side persistence
"""

import hashlib
import hmac
import time
from dataclasses import dataclass

import jwt
from jwt.utils import base64url_encode

from clipper.errors import ApiError, ApiErrorCode, AuthenticationError
from clipper.logging import get_logger

logger = get_logger(__name__)

SESSION_TOKEN_TYPE = "session"
SESSION_TOKEN_ALGORITHM = "HS256"
DEFAULT_SESSION_TTL_SECONDS = 24 * 60 * 60
DEFAULT_SESSION_ISSUER = "web-clipper"


@dataclass(frozen=True)
class IssuedSession:
    """A freshly minted session token."""

    token: str
    expires_in: int
    expires_at: int


@dataclass(frozen=True)
class SessionClaims:
    """Verified session identity."""

    subject: str
    issued_at: int
    expires_at: int


class SessionTokenService:
    """Issues and verifies session tokens with a server-held secret."""

    def __init__(
        self,
        secret: str | None,
        ttl_s: int = DEFAULT_SESSION_TTL_SECONDS,
        issuer: str = DEFAULT_SESSION_ISSUER,
    ):
        self._secret = secret
        self._ttl_s = ttl_s
        self._issuer = issuer

    @property
    def configured(self) -> bool:
        """Whether a signing secret is available."""
        return bool(self._secret)

    def _key(self) -> bytes:
        if not self._secret:
            raise ApiError(
                ApiErrorCode.E_UPSTREAM_CONFIG,
                "Server configuration error. Please contact support.",
                debug="SESSION_SIGNING_SECRET is not configured",
            )
        return self._secret.encode("utf-8")

    def issue(self, subject: str, now: int | None = None) -> IssuedSession:
        """Mint a session token for subject.

        Args:
            subject: The authenticated member email.
            now: Issue time in epoch seconds (defaults to the current time).

        Raises:
            ApiError(E_UPSTREAM_CONFIG): If the signing secret is unset.
        """
        key = self._key()
        issued_at = int(time.time()) if now is None else now
        expires_at = issued_at + self._ttl_s

        payload = {
            "sub": subject,
            "iat": issued_at,
            "exp": expires_at,
            "iss": self._issuer,
            "type": SESSION_TOKEN_TYPE,
        }
        token = jwt.encode(payload, key, algorithm=SESSION_TOKEN_ALGORITHM)
        return IssuedSession(token=token, expires_in=self._ttl_s, expires_at=expires_at)

    def verify(self, token: str, now: int | None = None) -> SessionClaims:
        """Verify a session token and return its claims.

        Raises:
            AuthenticationError(E_SESSION_INVALID): Malformed token, bad signature,
                wrong issuer/type or missing claims.
            AuthenticationError(E_SESSION_EXPIRED): now >= exp.
            ApiError(E_UPSTREAM_CONFIG): If the signing secret is unset.
        """
        key = self._key()

        segments = token.split(".")
        if len(segments) != 3 or not all(segments):
            raise _invalid("malformed")

        header_segment, payload_segment, signature_segment = segments
        signing_input = f"{header_segment}.{payload_segment}".encode()
        expected = base64url_encode(hmac.new(key, signing_input, hashlib.sha256).digest())
        if not hmac.compare_digest(expected, signature_segment.encode()):
            raise _invalid("signature_mismatch")

        try:
            payload = jwt.decode(
                token,
                key,
                algorithms=[SESSION_TOKEN_ALGORITHM],
                issuer=self._issuer,
                options={
                    "verify_exp": False,
                    "verify_iat": False,
                    "require": ["sub", "iat", "exp", "iss"],
                },
            )
        except jwt.InvalidTokenError as e:
            raise _invalid(type(e).__name__) from e

        if payload.get("type") != SESSION_TOKEN_TYPE:
            raise _invalid("wrong_type")

        current = int(time.time()) if now is None else now
        expires_at = int(payload["exp"])
        if current >= expires_at:
            raise AuthenticationError(
                ApiErrorCode.E_SESSION_EXPIRED,
                "Session has expired. Please re-authenticate.",
            )

        return SessionClaims(
            subject=payload["sub"],
            issued_at=int(payload["iat"]),
            expires_at=expires_at,
        )


def _invalid(reason: str) -> AuthenticationError:
    logger.warning("session_token_invalid", reason=reason)
    return AuthenticationError(
        ApiErrorCode.E_SESSION_INVALID,
        "Invalid session. Please re-authenticate.",
    )
