from abc import ABC, abstractmethod
from contextlib import asynccontextmanager
from typing import Any, AsyncGenerator, Dict, Optional

import httpx

from imagegate.app.core.http_client import try_get_shared_http_client
from imagegate.app.exceptions import UpstreamError
from imagegate.app.providers.results import GenerationResult


class BaseImageProvider(ABC):
    """Base class for upstream text-to-image providers.

    Subclasses can accept an external httpx.AsyncClient for connection
    pooling. Without one, the shared application client is used when the
    app lifespan is active, and a per-call client otherwise.
    """

    name: str = "base"

    def __init__(
        self,
        base_url: str,
        api_key: str,
        http_client: Optional[httpx.AsyncClient] = None,
        timeout: float = 120.0
    ):
        """Initialize the provider.

        Args:
            base_url: The API base URL
            api_key: The API key for authentication
            http_client: Optional shared HTTP client for connection pooling
            timeout: Request timeout in seconds for per-call clients
        """
        self._http_client = http_client
        self.base_url = base_url.rstrip('/')
        self.api_key = api_key
        self.timeout = timeout
        self.headers = self._build_headers()

    def _build_headers(self) -> Dict[str, str]:
        return {
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json",
            "Accept": "application/json",
        }

    def _get_endpoint_url(self, endpoint: str) -> str:
        return f"{self.base_url}{endpoint}"

    @asynccontextmanager
    async def _client_context(self) -> AsyncGenerator[httpx.AsyncClient, None]:
        """Yield an HTTP client, closing it afterwards only if we created it."""
        client = self._http_client or try_get_shared_http_client()
        owned = client is None
        if owned:
            client = httpx.AsyncClient(timeout=self.timeout)
        try:
            yield client
        finally:
            if owned:
                await client.aclose()

    async def _post_json(self, endpoint: str, payload: Dict[str, Any]) -> Dict[str, Any]:
        """POST payload and return the decoded JSON body.

        Raises:
            UpstreamError: On a non-success status or a non-object body
            httpx.HTTPError: On network failures and timeouts
        """
        url = self._get_endpoint_url(endpoint)
        async with self._client_context() as client:
            resp = await client.post(url, headers=self.headers, json=payload)

        if resp.is_error:
            raise UpstreamError(self._error_message(resp), provider=self.name)

        try:
            data = resp.json()
        except ValueError as e:
            raise UpstreamError(f"Malformed response from {self.name}: {e}", provider=self.name) from e
        if not isinstance(data, dict):
            raise UpstreamError(f"Malformed response from {self.name}", provider=self.name)
        return data

    @staticmethod
    def _error_message(resp: httpx.Response) -> str:
        """Pull a human readable message out of an upstream error response."""
        try:
            body = resp.json()
        except ValueError:
            body = None

        if isinstance(body, dict):
            message = body.get("message")
            error = body.get("error")
            if isinstance(error, dict):
                message = message or error.get("message")
            elif isinstance(error, str):
                message = message or error
            if message:
                return str(message)
        return f"Upstream request failed with status {resp.status_code}"

    @abstractmethod
    async def generate(self, prompt: str) -> Optional[GenerationResult]:
        """Generate images for prompt.

        Args:
            prompt: Moderated, non-empty prompt text

        Returns:
            HostedImage or InlineImages, or None if nothing came back.
            Empty results are rejected by the caller.
        """
        pass
