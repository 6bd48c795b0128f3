"""Middleware package for the image gateway."""

from imagegate.app.middleware.rate_limit import RateLimitMiddleware, get_client_identity
from imagegate.app.middleware.request_id import RequestIdMiddleware, get_request_id
from imagegate.app.middleware.request_size import RequestSizeLimitMiddleware

__all__ = [
    "RateLimitMiddleware",
    "RequestIdMiddleware",
    "RequestSizeLimitMiddleware",
    "get_client_identity",
    "get_request_id",
]
