"""Image providers package.

This package provides:
- Base provider interface (BaseImageProvider)
- Provider implementations (StabilityProvider, OpenAIImageProvider, MockImageProvider)
- Generation result variants (HostedImage, InlineImages)
- Provider factory (ProviderType, create_provider)
"""

from imagegate.app.providers.base import BaseImageProvider
from imagegate.app.providers.factory import ProviderType, create_provider
from imagegate.app.providers.mock import MockImageProvider
from imagegate.app.providers.openai import OpenAIImageProvider
from imagegate.app.providers.results import GenerationResult, HostedImage, InlineImages
from imagegate.app.providers.stability import StabilityProvider

__all__ = [
    "BaseImageProvider",
    "StabilityProvider",
    "OpenAIImageProvider",
    "MockImageProvider",
    "GenerationResult",
    "HostedImage",
    "InlineImages",
    "ProviderType",
    "create_provider",
]
