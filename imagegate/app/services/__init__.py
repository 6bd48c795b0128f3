"""Services package for the image gateway.

This package provides:
- Prompt moderation (keyword blacklist)
- Layered per-client rate governor
- Generation gateway in front of the upstream provider
- Local image storage
"""

from imagegate.app.services.generation import GenerationGateway
from imagegate.app.services.image_store import ImageStore, StoredImage
from imagegate.app.services.moderation import BLACKLIST, ModerationDecision, moderate
from imagegate.app.services.rate_governor import (
    AdmitResult,
    RateCounterStore,
    RateGovernor,
    RateWindow,
    WindowCounter,
    WindowStatus,
    build_windows,
)

__all__ = [
    "GenerationGateway",
    "ImageStore",
    "StoredImage",
    "BLACKLIST",
    "ModerationDecision",
    "moderate",
    "AdmitResult",
    "RateCounterStore",
    "RateGovernor",
    "RateWindow",
    "WindowCounter",
    "WindowStatus",
    "build_windows",
]
