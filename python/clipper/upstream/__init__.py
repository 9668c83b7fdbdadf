"""Community platform API client and error classification."""

from clipper.upstream.client import DirectUpload, MemberToken, UpstreamClient
from clipper.upstream.errors import UpstreamError, UpstreamErrorClass

__all__ = [
    "DirectUpload",
    "MemberToken",
    "UpstreamClient",
    "UpstreamError",
    "UpstreamErrorClass",
]
