"""Shared HTTP client management for connection pooling.

This module provides a singleton-like HTTP client that is initialized
on application startup and shared across all image providers for
connection reuse.
"""

from contextlib import asynccontextmanager
from typing import AsyncGenerator, Optional

import httpx

from imagegate.app.core.config import Settings, settings


# Shared HTTP client for connection pooling
_shared_http_client: httpx.AsyncClient | None = None


def get_http_client() -> httpx.AsyncClient:
    """Get the shared HTTP client instance.

    Raises:
        RuntimeError: If the HTTP client has not been initialized.
    """
    if _shared_http_client is None:
        raise RuntimeError(
            "HTTP client not initialized. Ensure lifespan context is active."
        )
    return _shared_http_client


def try_get_shared_http_client() -> Optional[httpx.AsyncClient]:
    """Return the shared HTTP client, or None outside the app lifespan."""
    try:
        return get_http_client()
    except RuntimeError:
        return None


def build_timeout(app_settings: Optional[Settings] = None) -> httpx.Timeout:
    """Granular timeouts; the read timeout covers the upstream render time."""
    app_settings = app_settings or settings
    return httpx.Timeout(
        connect=app_settings.httpx_connect_timeout,
        read=app_settings.httpx_read_timeout,
        write=app_settings.httpx_write_timeout,
        pool=app_settings.httpx_pool_timeout,
    )


def build_limits(app_settings: Optional[Settings] = None) -> httpx.Limits:
    app_settings = app_settings or settings
    return httpx.Limits(
        max_connections=app_settings.httpx_max_connections,
        max_keepalive_connections=app_settings.httpx_max_keepalive_connections,
        keepalive_expiry=app_settings.httpx_keepalive_expiry,
    )


@asynccontextmanager
async def init_http_client(
    app_settings: Optional[Settings] = None,
) -> AsyncGenerator[httpx.AsyncClient, None]:
    """Initialize and yield the shared HTTP client.

    This context manager should be used in the FastAPI lifespan:

        @asynccontextmanager
        async def lifespan(app: FastAPI):
            async with init_http_client(app_settings):
                yield

    Args:
        app_settings: Settings providing timeouts and pool limits; the
            environment-loaded settings are used when omitted
    """
    global _shared_http_client

    _shared_http_client = httpx.AsyncClient(
        timeout=build_timeout(app_settings),
        limits=build_limits(app_settings),
    )

    try:
        yield _shared_http_client
    finally:
        if _shared_http_client is not None:
            await _shared_http_client.aclose()
            _shared_http_client = None
