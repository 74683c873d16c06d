"""Middleware package for the API."""

from homedash.middleware.auth import APIKeyAuth, configure_auth, get_auth, require_api_key
from homedash.middleware.request_context import RequestContextMiddleware

__all__ = [
    "APIKeyAuth",
    "configure_auth",
    "get_auth",
    "require_api_key",
    "RequestContextMiddleware",
]
