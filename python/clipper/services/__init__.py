"""Business logic services.

Services are called by route handlers and orchestrate upstream calls,
caching, media relay and document synthesis.
"""
