"""Image generation and storage endpoints."""

from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from imagegate.app.core.logging import get_log_context, get_logger
from imagegate.app.exceptions import GatewayException
from imagegate.app.middleware.request_id import get_request_id
from imagegate.app.providers.results import HostedImage
from imagegate.app.services.generation import GenerationGateway
from imagegate.app.services.image_store import ImageStore

logger = get_logger(__name__)
router = APIRouter()

PROVIDER_TEST_PROMPT = "A simple blue circle"


class GenerateRequest(BaseModel):
    """Request body for POST /generate.

    The prompt is optional at the schema level so that a missing prompt is
    reported as invalid input by the gateway rather than as a schema error.
    """
    prompt: Optional[str] = None


class SaveImageRequest(BaseModel):
    """Request body for POST /save-image: base64 payload or data URI."""
    imageData: Optional[str] = None


def get_generation_gateway(request: Request) -> GenerationGateway:
    return request.app.state.generation_gateway


def get_image_store(request: Request) -> ImageStore:
    return request.app.state.image_store


@router.post("/generate")
async def generate_image(
    body: GenerateRequest,
    request: Request,
    gateway: GenerationGateway = Depends(get_generation_gateway),
) -> Dict[str, Any]:
    """Generate image(s) for a prompt through the configured provider."""
    result = await gateway.generate(body.prompt)

    response: Dict[str, Any] = {
        "success": True,
        "images": result.to_entries(),
        "provider": gateway.provider_name,
    }
    if isinstance(result, HostedImage):
        response["imageUrl"] = result.url

    logger.debug(
        "Generation request completed",
        extra=get_log_context(request_id=get_request_id(request), provider=gateway.provider_name),
    )
    return response


@router.post("/save-image")
async def save_image(
    body: SaveImageRequest,
    store: ImageStore = Depends(get_image_store),
) -> Dict[str, Any]:
    """Persist an image and return its public URL."""
    stored = await store.save(body.imageData)
    return {"success": True, "imageUrl": stored.url}


@router.get("/test-provider", response_model=None)
@router.get("/test-stability", response_model=None, include_in_schema=False)
async def test_provider(
    gateway: GenerationGateway = Depends(get_generation_gateway),
) -> Dict[str, Any] | JSONResponse:
    """Check the upstream connection with a fixed harmless prompt."""
    try:
        result = await gateway.generate(PROVIDER_TEST_PROMPT)
    except GatewayException as e:
        logger.error(
            f"Provider test failed: {e.message}",
            extra=get_log_context(provider=gateway.provider_name),
        )
        return JSONResponse(
            status_code=500,
            content={"error": "API test failed", "message": e.message},
        )

    logger.info(
        f"Provider test succeeded with {len(result)} image(s)",
        extra=get_log_context(provider=gateway.provider_name),
    )
    return {
        "success": True,
        "message": "API connection successful",
        "imageGenerated": len(result) > 0,
        "provider": gateway.provider_name,
    }
