"""API endpoints package for the image gateway."""

from imagegate.app.api.images import router as images_router
from imagegate.app.api.status import router as status_router

__all__ = [
    "images_router",
    "status_router",
]
