"""Stability AI text-to-image provider.

Calls the v1 generation REST endpoint, which returns base64 encoded PNG
artifacts in the JSON body.
"""

import base64
import binascii
from typing import Any, Dict, Optional

import httpx

from imagegate.app.exceptions import UpstreamError
from imagegate.app.providers.base import BaseImageProvider
from imagegate.app.providers.results import InlineImages

# Fixed generation parameters
CFG_SCALE = 7
IMAGE_WIDTH = 1024
IMAGE_HEIGHT = 1024
STEPS = 30
SAMPLES = 1


class StabilityProvider(BaseImageProvider):
    """Stability AI provider returning inline PNG images."""

    name = "stability"

    def __init__(
        self,
        base_url: str,
        api_key: str,
        engine: str = "stable-diffusion-xl-1024-v1-0",
        http_client: Optional[httpx.AsyncClient] = None,
        timeout: float = 120.0
    ):
        super().__init__(base_url, api_key, http_client, timeout)
        self.engine = engine

    def build_payload(self, prompt: str) -> Dict[str, Any]:
        return {
            "text_prompts": [{"text": prompt}],
            "cfg_scale": CFG_SCALE,
            "height": IMAGE_HEIGHT,
            "width": IMAGE_WIDTH,
            "steps": STEPS,
            "samples": SAMPLES,
        }

    async def generate(self, prompt: str) -> InlineImages:
        data = await self._post_json(
            f"/generation/{self.engine}/text-to-image",
            self.build_payload(prompt),
        )

        artifacts = data.get("artifacts") or []
        images = []
        for artifact in artifacts:
            encoded = artifact.get("base64") if isinstance(artifact, dict) else None
            if not encoded:
                continue
            try:
                images.append(base64.b64decode(encoded))
            except (binascii.Error, ValueError) as e:
                raise UpstreamError(f"Malformed image data from {self.name}: {e}", provider=self.name) from e
        return InlineImages(images=images)
