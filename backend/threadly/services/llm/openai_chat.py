"""
OpenAI Chat Completions API Provider

Handles OpenAI and every OpenAI-compatible backend (OpenRouter,
Hugging Face router):
- client.chat.completions.create()
- system + user messages
- response_format json_object where the backend supports it
- response.choices[0].message.content
"""

import httpx
from openai import APIConnectionError, APIStatusError, AsyncOpenAI, OpenAIError

from threadly.services.llm.base import LLMProvider
from threadly.services.llm.prompts import SYSTEM_INSTRUCTION


class OpenAIChatProvider(LLMProvider):
    """Provider for the OpenAI Chat Completions API."""

    provider_name = "openai"
    supports_json_mode = True

    def __init__(
        self,
        base_url: str,
        temperature: float = 0.7,
        max_output_tokens: int = 2000,
        http_client: httpx.AsyncClient | None = None,
        default_headers: dict[str, str] | None = None,
    ):
        super().__init__(base_url, temperature, max_output_tokens)
        self._http_client = http_client
        self._owns_http_client = http_client is None
        self._default_headers = default_headers or {}
        # The SDK binds the key at construction; only the latest one is kept.
        self._client: tuple[str, AsyncOpenAI] | None = None

    @property
    def http_client(self) -> httpx.AsyncClient:
        if self._http_client is None:
            self._http_client = httpx.AsyncClient(timeout=None)
        return self._http_client

    def _client_for(self, credential: str) -> AsyncOpenAI:
        if self._client is None or self._client[0] != credential:
            client = AsyncOpenAI(
                api_key=credential,
                base_url=self.base_url,
                default_headers=self._default_headers or None,
                http_client=self.http_client,
                max_retries=0,  # retry policy belongs to the analysis service
                timeout=None,
            )
            self._client = (credential, client)
        return self._client[1]

    async def aclose(self) -> None:
        self._client = None
        if self._owns_http_client and self._http_client is not None:
            await self._http_client.aclose()
            self._http_client = None

    async def call(self, prompt: str, credential: str, model: str) -> str:
        request: dict = {
            "model": model,
            "messages": [
                {"role": "system", "content": SYSTEM_INSTRUCTION},
                {"role": "user", "content": prompt},
            ],
            "temperature": self.temperature,
            "max_tokens": self.max_output_tokens,
        }
        if self.supports_json_mode:
            request["response_format"] = {"type": "json_object"}

        try:
            response = await self._client_for(credential).chat.completions.create(
                **request
            )
        except APIStatusError as e:
            raise self._fail(_status_message(e), status_code=e.status_code) from e
        except APIConnectionError as e:
            raise self._fail(f"Connection error: {e}", network=True) from e
        except OpenAIError as e:
            raise self._fail(str(e)) from e

        content = response.choices[0].message.content if response.choices else None
        if not content or not content.strip():
            raise self._fail("Empty response from Chat Completions API")
        return content


class OpenRouterProvider(OpenAIChatProvider):
    """OpenRouter speaks the Chat Completions dialect and wants attribution headers."""

    provider_name = "openrouter"

    def __init__(
        self,
        base_url: str,
        temperature: float = 0.7,
        max_output_tokens: int = 2000,
        http_client: httpx.AsyncClient | None = None,
        referer: str = "https://threadly.app",
        title: str = "Threadly - AI Conversation Strategist",
    ):
        super().__init__(
            base_url,
            temperature,
            max_output_tokens,
            http_client=http_client,
            default_headers={"HTTP-Referer": referer, "X-Title": title},
        )


class HuggingFaceProvider(OpenAIChatProvider):
    """Hugging Face inference router; JSON mode is not uniformly supported."""

    provider_name = "huggingface"
    supports_json_mode = False


def _status_message(error: APIStatusError) -> str:
    body = error.body
    if isinstance(body, dict):
        nested = body.get("error", body)
        if isinstance(nested, dict) and nested.get("message"):
            return str(nested["message"])
        if isinstance(nested, str) and nested:
            return nested
    return error.message or f"HTTP {error.status_code}"
