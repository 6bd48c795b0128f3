"""Core utilities for the image gateway."""

from imagegate.app.core.config import Settings, settings
from imagegate.app.core.http_client import get_http_client, init_http_client
from imagegate.app.core.logging import get_logger, setup_logging

__all__ = [
    "Settings",
    "settings",
    "get_http_client",
    "init_http_client",
    "get_logger",
    "setup_logging",
]
