"""Middleware modules for the clipper API."""

from clipper.middleware.cors import ExtensionCORSMiddleware
from clipper.middleware.request_id import REQUEST_ID_HEADER, RequestIDMiddleware

__all__ = ["ExtensionCORSMiddleware", "RequestIDMiddleware", "REQUEST_ID_HEADER"]
