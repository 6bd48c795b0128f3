"""Generation gateway: validates, moderates and forwards prompts.

Rate limiting has already been applied by the middleware when a request
reaches this service, so it is not repeated here.
"""

from typing import Any

import httpx

from imagegate.app.core.logging import get_log_context, get_logger
from imagegate.app.exceptions import ContentRejectedError, InvalidInputError, UpstreamError
from imagegate.app.providers.base import BaseImageProvider
from imagegate.app.providers.results import GenerationResult
from imagegate.app.services.moderation import moderate

logger = get_logger(__name__)


class GenerationGateway:
    """Runs each prompt through the gates in order.

    1. prompt present and non-blank, else InvalidInputError
    2. moderation, else ContentRejectedError (provider never called)
    3. upstream call; any failure or an empty result becomes UpstreamError
    """

    def __init__(self, provider: BaseImageProvider):
        self.provider = provider

    @property
    def provider_name(self) -> str:
        return self.provider.name

    async def generate(self, prompt: Any) -> GenerationResult:
        if not isinstance(prompt, str) or not prompt.strip():
            raise InvalidInputError("Prompt is required")

        context = get_log_context(provider=self.provider_name)
        decision = moderate(prompt)
        if not decision.allowed:
            logger.info(
                f"Prompt rejected by moderation: {decision.reason}",
                extra=context,
            )
            raise ContentRejectedError(decision.reason)

        try:
            result = await self.provider.generate(prompt)
        except UpstreamError as e:
            logger.error(f"Upstream provider error: {e.message}", extra=context)
            raise
        except httpx.TimeoutException as e:
            logger.error(
                f"Upstream provider timed out: {e!r}",
                exc_info=True,
                extra=context,
            )
            raise UpstreamError("Image provider timed out", provider=self.provider_name) from e
        except httpx.HTTPError as e:
            logger.error(
                f"Upstream provider request failed: {e!r}",
                exc_info=True,
                extra=context,
            )
            raise UpstreamError(str(e) or "Image provider request failed", provider=self.provider_name) from e
        except Exception as e:
            logger.exception("Unexpected error calling image provider", extra=context)
            raise UpstreamError(str(e) or type(e).__name__, provider=self.provider_name) from e

        if result is None or len(result) == 0:
            logger.error("Upstream provider returned no images", extra=context)
            raise UpstreamError("No image generated", provider=self.provider_name)

        logger.info(
            f"Generated {len(result)} image(s)",
            extra=context,
        )
        return result
