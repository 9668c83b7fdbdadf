"""Hashing and log guard utilities.

- hash_text: stable SHA-256 hex digest for log correlation
- safe_kv: log guard that blocks forbidden keys at call site

Never-log policy:
- Member emails (log email_sha256 instead)
- Session tokens, upstream access tokens, service credentials
- Preview API keys
- Selected page text and synthesized document bodies

Allowed (with suffix):
- _chars, _length: length of text
- _sha256, _hash: hash of text
"""

import hashlib
import os

from clipper.logging import get_logger

FORBIDDEN_KEYS = frozenset(
    {
        "email",
        "token",
        "access_token",
        "session_token",
        "api_key",
        "bearer",
        "secret",
        "password",
        "selected_text",
        "document",
        "raw_body",
    }
)

REDACTED_SUFFIXES = ("_sha256", "_hash", "_length", "_chars")


def hash_text(value: str) -> str:
    """SHA-256 hex digest of a string.

    Stable: same input always produces same output.
    Used for log correlation without exposing content.
    """
    return hashlib.sha256(value.encode("utf-8")).hexdigest()


def _has_redacted_suffix(key: str) -> bool:
    """Check if key ends with a recognized redacted suffix."""
    return any(key.endswith(suffix) for suffix in REDACTED_SUFFIXES)


def safe_kv(*, _env: str | None = None, **kwargs) -> dict:
    """Validate that no forbidden keys are present unless already redacted.

    Raises ValueError in local/test environments if a forbidden key is used
    without a redacted suffix. In staging/prod, logs a warning instead.

    Usage:
        logger.info("clip_started", **safe_kv(
            email_sha256=hash_text(email),   # OK: _sha256 suffix
            selected_text_chars=1234,        # OK: _chars suffix
            # email="a@b.c",                 # BLOCKED: forbidden key
        ))

    Args:
        _env: Override for CLIPPER_ENV (test-only). If None, reads from env.
        **kwargs: Keyword arguments to validate and return.

    Returns:
        The same kwargs dict, after validation.
    """
    violations = [
        key for key in kwargs if key in FORBIDDEN_KEYS and not _has_redacted_suffix(key)
    ]

    if violations:
        msg = f"Forbidden log keys without redacted suffix: {violations}"
        env = _env or os.environ.get("CLIPPER_ENV", "local")
        if env in ("local", "test"):
            raise ValueError(msg)
        get_logger(__name__).warning("safe_kv_violation", forbidden_keys=violations)

    return kwargs
