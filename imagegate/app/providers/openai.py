"""OpenAI image generation provider (DALL-E).

Compatible with the OpenAI images API and other OpenAI-compatible
endpoints that implement ``/images/generations``.
"""

from typing import Any, Dict, Optional

import httpx

from imagegate.app.providers.base import BaseImageProvider
from imagegate.app.providers.results import HostedImage

IMAGE_SIZE = "1024x1024"
IMAGE_COUNT = 1


class OpenAIImageProvider(BaseImageProvider):
    """OpenAI provider returning a single hosted image URL.

    If http_client is provided, it will be used for all requests (connection reuse).
    """

    name = "openai"

    def __init__(
        self,
        base_url: str,
        api_key: str,
        model: str = "dall-e-3",
        organization: Optional[str] = None,
        http_client: Optional[httpx.AsyncClient] = None,
        timeout: float = 120.0
    ):
        """Initialize OpenAI provider.

        Args:
            base_url: The OpenAI API base URL
            api_key: The OpenAI API key
            model: Image model name
            organization: Optional organization ID
            http_client: Optional shared HTTP client
            timeout: Request timeout in seconds
        """
        super().__init__(base_url, api_key, http_client, timeout)
        self.model = model
        self.organization = organization

        if organization:
            self.headers["OpenAI-Organization"] = organization

    def build_payload(self, prompt: str) -> Dict[str, Any]:
        return {
            "model": self.model,
            "prompt": prompt,
            "n": IMAGE_COUNT,
            "size": IMAGE_SIZE,
        }

    async def generate(self, prompt: str) -> Optional[HostedImage]:
        """Request one image and return its hosted URL.

        Returns:
            HostedImage, or None when the response carried no URL
        """
        data = await self._post_json("/images/generations", self.build_payload(prompt))

        for item in data.get("data") or []:
            if isinstance(item, dict) and item.get("url"):
                return HostedImage(url=item["url"])
        return None
