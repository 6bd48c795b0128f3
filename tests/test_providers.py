"""Tests for upstream image providers."""

import base64
import json

import httpx
import pytest

from imagegate.app.core.config import Settings
from imagegate.app.exceptions import UpstreamError
from imagegate.app.providers import (
    HostedImage,
    InlineImages,
    MockImageProvider,
    OpenAIImageProvider,
    ProviderType,
    StabilityProvider,
    create_provider,
)

STABILITY_URL = (
    "https://api.stability.ai/v1/generation/stable-diffusion-xl-1024-v1-0/text-to-image"
)
OPENAI_URL = "https://api.openai.com/v1/images/generations"


@pytest.fixture
def stability():
    return StabilityProvider(base_url="https://api.stability.ai/v1", api_key="sk-test")


@pytest.fixture
def openai_provider():
    return OpenAIImageProvider(base_url="https://api.openai.com/v1", api_key="sk-test")


class TestStabilityProvider:

    @pytest.mark.asyncio
    async def test_generate_decodes_artifacts(self, stability, respx_mock):
        png = b"\x89PNG fake"
        route = respx_mock.post(STABILITY_URL).mock(
            return_value=httpx.Response(
                200, json={"artifacts": [{"base64": base64.b64encode(png).decode()}]}
            )
        )

        result = await stability.generate("a blue cat")

        assert isinstance(result, InlineImages)
        assert result.images == [png]
        assert result.to_entries()[0]["imageUrl"].startswith("data:image/png;base64,")

        request = route.calls.last.request
        assert request.headers["Authorization"] == "Bearer sk-test"
        body = json.loads(request.content)
        assert body == {
            "text_prompts": [{"text": "a blue cat"}],
            "cfg_scale": 7,
            "height": 1024,
            "width": 1024,
            "steps": 30,
            "samples": 1,
        }

    @pytest.mark.asyncio
    async def test_error_status_uses_upstream_message(self, stability, respx_mock):
        respx_mock.post(STABILITY_URL).mock(
            return_value=httpx.Response(401, json={"message": "Invalid API key"})
        )

        with pytest.raises(UpstreamError) as exc_info:
            await stability.generate("a blue cat")
        assert exc_info.value.message == "Invalid API key"
        assert exc_info.value.provider == "stability"

    @pytest.mark.asyncio
    async def test_error_status_without_json_body(self, stability, respx_mock):
        respx_mock.post(STABILITY_URL).mock(return_value=httpx.Response(502, text="Bad Gateway"))

        with pytest.raises(UpstreamError) as exc_info:
            await stability.generate("a blue cat")
        assert "502" in exc_info.value.message

    @pytest.mark.asyncio
    async def test_malformed_json(self, stability, respx_mock):
        respx_mock.post(STABILITY_URL).mock(return_value=httpx.Response(200, text="not json"))

        with pytest.raises(UpstreamError):
            await stability.generate("a blue cat")

    @pytest.mark.asyncio
    async def test_no_artifacts_gives_empty_result(self, stability, respx_mock):
        respx_mock.post(STABILITY_URL).mock(return_value=httpx.Response(200, json={"artifacts": []}))

        result = await stability.generate("a blue cat")
        assert len(result) == 0

    @pytest.mark.asyncio
    async def test_custom_engine_in_url(self, respx_mock):
        provider = StabilityProvider(
            base_url="https://api.stability.ai/v1/", api_key="k", engine="sdxl-test"
        )
        route = respx_mock.post(
            "https://api.stability.ai/v1/generation/sdxl-test/text-to-image"
        ).mock(return_value=httpx.Response(200, json={"artifacts": []}))

        await provider.generate("x")
        assert route.called


class TestOpenAIImageProvider:

    @pytest.mark.asyncio
    async def test_generate_returns_hosted_url(self, openai_provider, respx_mock):
        route = respx_mock.post(OPENAI_URL).mock(
            return_value=httpx.Response(200, json={"data": [{"url": "https://cdn.example/img.png"}]})
        )

        result = await openai_provider.generate("a blue cat")

        assert result == HostedImage(url="https://cdn.example/img.png")
        assert result.to_entries() == [{"imageUrl": "https://cdn.example/img.png"}]
        body = json.loads(route.calls.last.request.content)
        assert body == {"model": "dall-e-3", "prompt": "a blue cat", "n": 1, "size": "1024x1024"}

    @pytest.mark.asyncio
    async def test_nested_error_message(self, openai_provider, respx_mock):
        respx_mock.post(OPENAI_URL).mock(
            return_value=httpx.Response(
                400, json={"error": {"message": "Your request was rejected", "type": "invalid_request_error"}}
            )
        )

        with pytest.raises(UpstreamError) as exc_info:
            await openai_provider.generate("a blue cat")
        assert exc_info.value.message == "Your request was rejected"

    @pytest.mark.asyncio
    async def test_missing_url_returns_none(self, openai_provider, respx_mock):
        respx_mock.post(OPENAI_URL).mock(return_value=httpx.Response(200, json={"data": []}))

        assert await openai_provider.generate("a blue cat") is None

    def test_organization_header(self):
        provider = OpenAIImageProvider(
            base_url="https://api.openai.com/v1", api_key="k", organization="org-1"
        )
        assert provider.headers["OpenAI-Organization"] == "org-1"


class TestMockImageProvider:

    @pytest.mark.asyncio
    async def test_returns_png(self):
        provider = MockImageProvider(samples=2)
        result = await provider.generate("hello")

        assert len(result) == 2
        assert result.images[0].startswith(b"\x89PNG\r\n\x1a\n")
        assert provider.prompts == ["hello"]

    @pytest.mark.asyncio
    async def test_configured_failure(self):
        provider = MockImageProvider(fail_with=RuntimeError("boom"))
        with pytest.raises(RuntimeError):
            await provider.generate("hello")


class TestCreateProvider:

    @pytest.mark.parametrize(
        ("name", "expected"),
        [
            ("stability", StabilityProvider),
            ("openai", OpenAIImageProvider),
            ("mock", MockImageProvider),
        ],
    )
    def test_selects_configured_provider(self, name, expected):
        settings = Settings(_env_file=None, image_provider=name)
        provider = create_provider(settings)
        assert isinstance(provider, expected)
        assert provider.name == ProviderType(name).value

    def test_openai_settings_applied(self):
        settings = Settings(
            _env_file=None,
            image_provider="openai",
            openai_api_key="sk-x",
            openai_image_model="dall-e-2",
        )
        provider = create_provider(settings)
        assert provider.model == "dall-e-2"
        assert provider.headers["Authorization"] == "Bearer sk-x"
