"""Provider factory.

Builds the single upstream provider selected by ``IMAGE_PROVIDER``.
"""

from enum import Enum
from typing import Optional

import httpx

from imagegate.app.core.config import Settings
from imagegate.app.core.logging import get_logger
from imagegate.app.providers.base import BaseImageProvider
from imagegate.app.providers.mock import MockImageProvider
from imagegate.app.providers.openai import OpenAIImageProvider
from imagegate.app.providers.stability import StabilityProvider

logger = get_logger(__name__)


class ProviderType(str, Enum):
    """Supported provider types."""

    STABILITY = "stability"
    OPENAI = "openai"
    MOCK = "mock"


def create_provider(
    app_settings: Settings,
    http_client: Optional[httpx.AsyncClient] = None,
) -> BaseImageProvider:
    """Create the configured image provider.

    A missing API key is logged rather than raised; upstream calls then
    fail with the provider's own authentication error.
    """
    provider_type = ProviderType(app_settings.image_provider)
    timeout = app_settings.httpx_read_timeout

    if provider_type == ProviderType.MOCK:
        return MockImageProvider()

    if provider_type == ProviderType.OPENAI:
        if not app_settings.openai_api_key:
            logger.warning("OPENAI_API_KEY is not set; image generation will fail")
        return OpenAIImageProvider(
            base_url=app_settings.openai_base_url,
            api_key=app_settings.openai_api_key,
            model=app_settings.openai_image_model,
            organization=app_settings.openai_organization,
            http_client=http_client,
            timeout=timeout,
        )

    if not app_settings.stability_api_key:
        logger.warning("STABILITY_API_KEY is not set; image generation will fail")
    return StabilityProvider(
        base_url=app_settings.stability_base_url,
        api_key=app_settings.stability_api_key,
        engine=app_settings.stability_engine,
        http_client=http_client,
        timeout=timeout,
    )
