"""Authentication module.

This module provides:
- Session token issuance and verification (HS256)
- Auth middleware for FastAPI
- Request state with viewer identity
"""

from clipper.auth.middleware import AuthMiddleware, Viewer, get_viewer
from clipper.auth.session_token import SessionTokenService

__all__ = [
    "AuthMiddleware",
    "SessionTokenService",
    "Viewer",
    "get_viewer",
]
