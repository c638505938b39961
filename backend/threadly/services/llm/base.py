"""
Abstract base class for all LLM providers.

Each provider implements the API-specific translation layer: request
envelope, auth scheme, and extraction of the completion text from the
response envelope. JSON extraction and repair are handled by the normalizer.
"""

from abc import ABC, abstractmethod
from typing import Any

import httpx

from threadly.services.llm.errors import ProviderError


class LLMProvider(ABC):
    """Abstract base class for all LLM providers."""

    provider_name: str = "base"

    def __init__(
        self,
        base_url: str,
        temperature: float = 0.7,
        max_output_tokens: int = 2000,
    ):
        self.base_url = base_url.rstrip("/")
        self.temperature = temperature
        self.max_output_tokens = max_output_tokens

    async def aclose(self) -> None:
        """Release network resources held by the adapter."""

    @abstractmethod
    async def call(self, prompt: str, credential: str, model: str) -> str:
        """
        Send the prompt to the backend and return its raw completion text.

        Args:
            prompt: The user prompt built from the conversation inputs
            credential: The API credential for this backend
            model: The API model identifier

        Returns:
            Raw completion text (expected to be JSON, not guaranteed)

        Raises:
            ProviderError: On a non-success status, a transport failure,
                or an empty completion
        """
        ...

    def _fail(
        self,
        message: str,
        status_code: int | None = None,
        network: bool = False,
    ) -> ProviderError:
        return ProviderError(
            self.provider_name, message, status_code=status_code, network=network
        )


class HTTPProvider(LLMProvider):
    """Base for providers spoken to directly over HTTP with httpx."""

    def __init__(
        self,
        base_url: str,
        temperature: float = 0.7,
        max_output_tokens: int = 2000,
        http_client: httpx.AsyncClient | None = None,
    ):
        super().__init__(base_url, temperature, max_output_tokens)
        self._http_client = http_client
        self._owns_http_client = http_client is None

    @property
    def http_client(self) -> httpx.AsyncClient:
        if self._http_client is None:
            # Timeouts are owned by the dispatcher's race, not the socket.
            self._http_client = httpx.AsyncClient(timeout=None)
        return self._http_client

    async def _post(
        self,
        url: str,
        payload: dict[str, Any],
        headers: dict[str, str] | None = None,
        params: dict[str, str] | None = None,
    ) -> Any:
        """POST JSON and return the decoded body, raising ProviderError on failure."""
        try:
            response = await self.http_client.post(
                url,
                json=payload,
                headers={"Content-Type": "application/json", **(headers or {})},
                params=params,
            )
        except httpx.TransportError as e:
            raise self._fail(f"Connection error: {e}", network=True) from e

        if not response.is_success:
            raise self._fail(
                self._error_message(response), status_code=response.status_code
            )

        try:
            return response.json()
        except ValueError as e:
            raise self._fail("Response body is not valid JSON") from e

    @staticmethod
    def _error_message(response: httpx.Response) -> str:
        """Extract whatever error message the backend provides."""
        try:
            body = response.json()
        except ValueError:
            return response.reason_phrase or f"HTTP {response.status_code}"

        if isinstance(body, dict):
            error = body.get("error")
            if isinstance(error, dict) and error.get("message"):
                return str(error["message"])
            if isinstance(error, str) and error:
                return error
            if body.get("message"):
                return str(body["message"])
        return response.reason_phrase or f"HTTP {response.status_code}"

    async def aclose(self) -> None:
        if self._owns_http_client and self._http_client is not None:
            await self._http_client.aclose()
            self._http_client = None
