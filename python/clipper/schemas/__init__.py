"""Pydantic schemas for request models."""

from clipper.schemas.clip import AuthRequest, ClipRequest

__all__ = ["AuthRequest", "ClipRequest"]
