"""Mock provider for local development and tests.

Returns a small generated PNG without calling any external API.

Enable with:
    IMAGE_PROVIDER=mock
"""

import asyncio
import struct
import zlib
from typing import Any, Optional

from imagegate.app.providers.base import BaseImageProvider
from imagegate.app.providers.results import InlineImages


def _png_chunk(tag: bytes, data: bytes) -> bytes:
    return (
        struct.pack(">I", len(data))
        + tag
        + data
        + struct.pack(">I", zlib.crc32(tag + data) & 0xFFFFFFFF)
    )


def solid_png(width: int = 8, height: int = 8, rgb: tuple[int, int, int] = (40, 90, 200)) -> bytes:
    """Encode a solid-colour RGB PNG."""
    row = b"\x00" + bytes(rgb) * width
    raw = row * height
    return (
        b"\x89PNG\r\n\x1a\n"
        + _png_chunk(b"IHDR", struct.pack(">IIBBBBB", width, height, 8, 2, 0, 0, 0))
        + _png_chunk(b"IDAT", zlib.compress(raw))
        + _png_chunk(b"IEND", b"")
    )


class MockImageProvider(BaseImageProvider):
    """Mock provider that returns simulated images.

    Features:
    - Simulates a response delay (configurable)
    - Records received prompts for assertions
    - Can be told to fail, to exercise error handling
    """

    name = "mock"

    def __init__(
        self,
        base_url: str = "http://mock.provider",
        api_key: str = "mock-key",
        http_client: Optional[Any] = None,
        timeout: float = 120.0,
        delay: float = 0.0,
        fail_with: Optional[Exception] = None,
        samples: int = 1,
    ):
        """Initialize the mock provider.

        Args:
            base_url: Not used, provided for API compatibility
            api_key: Not used, provided for API compatibility
            http_client: Not used, provided for API compatibility
            timeout: Not used, provided for API compatibility
            delay: Response delay in seconds
            fail_with: Exception raised from every generate call
            samples: Number of images returned
        """
        super().__init__(base_url, api_key, http_client, timeout)
        self.delay = delay
        self.fail_with = fail_with
        self.samples = samples
        self.prompts: list[str] = []

    async def generate(self, prompt: str) -> InlineImages:
        self.prompts.append(prompt)
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.fail_with is not None:
            raise self.fail_with
        return InlineImages(images=[solid_png() for _ in range(self.samples)])
