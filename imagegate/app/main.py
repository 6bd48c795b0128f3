import asyncio
import contextlib
from contextlib import asynccontextmanager
from typing import AsyncGenerator, Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles

from imagegate.app.api.images import router as images_router
from imagegate.app.api.status import router as status_router
from imagegate.app.core.config import Settings, settings
from imagegate.app.core.http_client import init_http_client
from imagegate.app.core.logging import get_logger, setup_logging
from imagegate.app.exceptions import GatewayException, InvalidInputError, StorageError
from imagegate.app.middleware.rate_limit import RateLimitMiddleware
from imagegate.app.middleware.request_id import RequestIdMiddleware
from imagegate.app.middleware.request_size import RequestSizeLimitMiddleware
from imagegate.app.providers.base import BaseImageProvider
from imagegate.app.providers.factory import create_provider
from imagegate.app.services.generation import GenerationGateway
from imagegate.app.services.image_store import UPLOADS_PATH, ImageStore
from imagegate.app.services.rate_governor import RateGovernor

# Expired rate counters are dropped this often
RATE_COUNTER_CLEANUP_INTERVAL = 600


async def _cleanup_rate_counters(governor: RateGovernor, interval: float) -> None:
    while True:
        await asyncio.sleep(interval)
        await governor.cleanup()


def create_app(
    app_settings: Optional[Settings] = None,
    provider: Optional[BaseImageProvider] = None,
    governor: Optional[RateGovernor] = None,
    image_store: Optional[ImageStore] = None,
) -> FastAPI:
    """Create and configure the FastAPI application.

    Args:
        app_settings: Settings to use instead of the environment-loaded ones
        provider: Upstream provider; built from settings when omitted
        governor: Rate governor; built from settings when omitted
        image_store: Image store; built from settings when omitted

    Returns:
        Configured FastAPI application instance
    """
    app_settings = app_settings or settings

    setup_logging(app_settings)
    logger = get_logger(__name__)

    provider = provider or create_provider(app_settings)
    governor = governor or RateGovernor.from_settings(app_settings)
    image_store = image_store or ImageStore(app_settings.upload_dir, app_settings.public_base_url)

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
        """Application lifespan context manager.

        Initializes the shared HTTP connection pool and the rate counter
        cleanup task on startup and tears both down on shutdown.
        """
        async with init_http_client(app_settings):
            cleanup_task = None
            if app_settings.rate_limit_enabled:
                cleanup_task = asyncio.create_task(
                    _cleanup_rate_counters(governor, RATE_COUNTER_CLEANUP_INTERVAL)
                )

            logger.info(
                "Application startup complete",
                extra={
                    "provider": provider.name,
                    "rate_limit_enabled": app_settings.rate_limit_enabled,
                    "upload_dir": str(image_store.directory),
                    "debug_mode": app_settings.debug,
                },
            )

            yield

            if cleanup_task is not None:
                cleanup_task.cancel()
                with contextlib.suppress(asyncio.CancelledError):
                    await cleanup_task

        logger.info("Application shutdown complete")

    app = FastAPI(
        title="Imagegate",
        description="Text-to-image gateway with rate limiting and prompt moderation",
        version="1.0.0",
        lifespan=lifespan,
    )

    app.state.settings = app_settings
    app.state.rate_governor = governor
    app.state.image_store = image_store
    app.state.generation_gateway = GenerationGateway(provider)

    # Add middleware (order matters: last added = first executed)
    # Request ID middleware (innermost - closest to route)
    app.add_middleware(RequestIdMiddleware)

    # Rate limit middleware, applied to every route and to static uploads
    if app_settings.rate_limit_enabled:
        app.add_middleware(
            RateLimitMiddleware,
            governor=governor,
            trust_proxy=app_settings.trust_proxy,
            proxy_hops=app_settings.trusted_proxy_hops,
        )
        logger.info(
            "Rate limiting enabled: "
            + ", ".join(f"{w.label} {w.limit} per {w.duration_seconds}s" for w in governor.windows)
        )
    else:
        logger.warning("Rate limiting disabled (DISABLE_RATE_LIMIT=true)")

    # Request body size limit middleware
    app.add_middleware(RequestSizeLimitMiddleware, max_body_size=app_settings.max_body_size)

    # CORS middleware (outermost - handles preflight requests first)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=app_settings.cors_origins,
        allow_credentials=True,
        allow_methods=["GET", "POST", "OPTIONS"],
        allow_headers=["*"],
        expose_headers=["X-Request-ID", "X-RateLimit-Limit", "X-RateLimit-Remaining", "X-RateLimit-Reset", "Retry-After"],
        max_age=600,  # Cache preflight requests for 10 minutes
    )

    # Include routers
    app.include_router(images_router)
    app.include_router(status_router)

    try:
        image_store.ensure_directory()
    except StorageError as e:
        logger.warning(f"Upload directory unavailable: {e.message}")
    app.mount(
        UPLOADS_PATH,
        StaticFiles(directory=str(image_store.directory), check_dir=False),
        name="uploads",
    )

    @app.exception_handler(GatewayException)
    async def gateway_exception_handler(request: Request, exc: GatewayException) -> JSONResponse:
        """Render gateway errors as ``{"error", "message"}`` with their status."""
        return JSONResponse(status_code=exc.status_code, content=exc.to_response())

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
        """Handle malformed request bodies as invalid input (HTTP 400)."""
        errors = exc.errors()
        detail = errors[0].get("msg", "Invalid request body") if errors else "Invalid request body"
        error = InvalidInputError(f"Invalid request body: {detail}")
        return JSONResponse(status_code=error.status_code, content=error.to_response())

    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception) -> JSONResponse:
        """Global exception handler for unhandled exceptions.

        Logs full details server-side; the exception message is returned
        only in debug mode and the traceback never is.
        """
        request_id = getattr(request.state, "request_id", "unknown")

        logger.exception(
            f"Unhandled exception [request_id={request_id}]",
            extra={
                "request_id": request_id,
                "exception_type": type(exc).__name__,
            },
        )

        content = {
            "error": "internal_error",
            "message": str(exc) if app_settings.debug else "Internal server error",
            "request_id": request_id,
        }
        return JSONResponse(status_code=500, content=content)

    return app


def run() -> None:
    """Run the gateway with uvicorn on the configured host and port."""
    import uvicorn

    uvicorn.run(
        "imagegate.app.main:app",
        host=settings.host,
        port=settings.port,
        log_config=None,
    )


# Create the application instance
app = create_app()


if __name__ == "__main__":
    run()
