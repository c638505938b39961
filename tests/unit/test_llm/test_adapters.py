"""Unit tests for the provider adapters, using httpx mock transports."""

import asyncio
import json
from collections.abc import Callable

import httpx
import pytest

from threadly.services.llm.claude import ANTHROPIC_VERSION, ClaudeProvider
from threadly.services.llm.errors import ProviderError
from threadly.services.llm.gemini import GeminiProvider
from threadly.services.llm.openai_chat import (
    HuggingFaceProvider,
    OpenAIChatProvider,
    OpenRouterProvider,
)
from threadly.services.llm.prompts import SYSTEM_INSTRUCTION

Handler = Callable[[httpx.Request], httpx.Response]


def _client(handler: Handler, requests: list[httpx.Request]) -> httpx.AsyncClient:
    def record(request: httpx.Request) -> httpx.Response:
        requests.append(request)
        return handler(request)

    return httpx.AsyncClient(transport=httpx.MockTransport(record))


def _chat_completion(content: str | None) -> dict:
    return {
        "id": "chatcmpl-1",
        "object": "chat.completion",
        "created": 1700000000,
        "model": "gpt-4o-mini",
        "choices": [
            {
                "index": 0,
                "message": {"role": "assistant", "content": content},
                "finish_reason": "stop",
            }
        ],
    }


class TestGeminiProvider:
    """Tests for GeminiProvider."""

    BASE = "https://generativelanguage.googleapis.com/v1beta/models"

    def _make(self, handler: Handler, requests: list) -> GeminiProvider:
        return GeminiProvider(self.BASE, http_client=_client(handler, requests))

    def test_aclose_closes_own_client_only(self) -> None:
        injected = _client(lambda r: httpx.Response(200), [])
        borrowed = GeminiProvider(self.BASE, http_client=injected)
        owning = GeminiProvider(self.BASE)
        owned = owning.http_client

        async def scenario() -> None:
            await borrowed.aclose()
            await owning.aclose()

        asyncio.run(scenario())

        assert injected.is_closed is False
        assert owned.is_closed is True

    def test_request_shape_and_text(self) -> None:
        """Should send the key as a query parameter and join the text parts."""
        requests: list[httpx.Request] = []
        body = {"candidates": [{"content": {"parts": [{"text": '{"a": '}, {"text": "1}"}]}}]}
        provider = self._make(lambda r: httpx.Response(200, json=body), requests)

        text = asyncio.run(provider.call("the prompt", "gem-key", "gemini-2.0-flash"))

        assert text == '{"a": 1}'
        request = requests[0]
        assert request.url.path.endswith("/models/gemini-2.0-flash:generateContent")
        assert request.url.params["key"] == "gem-key"
        assert "authorization" not in request.headers
        payload = json.loads(request.content)
        assert payload["contents"][0]["parts"][0]["text"] == "the prompt"
        assert payload["systemInstruction"]["parts"][0]["text"] == SYSTEM_INSTRUCTION
        assert payload["generationConfig"]["responseMimeType"] == "application/json"
        assert payload["generationConfig"]["temperature"] == 0.7

    def test_no_candidates(self) -> None:
        provider = self._make(lambda r: httpx.Response(200, json={"candidates": []}), [])

        with pytest.raises(ProviderError, match="No candidates"):
            asyncio.run(provider.call("p", "k", "gemini-2.0-flash"))

    def test_empty_text(self) -> None:
        body = {"candidates": [{"content": {"parts": [{"text": "  "}]}}]}
        provider = self._make(lambda r: httpx.Response(200, json=body), [])

        with pytest.raises(ProviderError, match="Empty response from Gemini API"):
            asyncio.run(provider.call("p", "k", "gemini-2.0-flash"))

    def test_error_status_extracts_message(self) -> None:
        """Should surface error.message and the status code."""
        body = {"error": {"code": 400, "message": "API key not valid. Please pass a valid API key."}}
        provider = self._make(lambda r: httpx.Response(400, json=body), [])

        with pytest.raises(ProviderError) as exc_info:
            asyncio.run(provider.call("p", "k", "gemini-2.0-flash"))

        assert exc_info.value.status_code == 400
        assert exc_info.value.message.startswith("API key not valid")
        assert str(exc_info.value).startswith("GEMINI API Error:")

    def test_error_status_without_json(self) -> None:
        provider = self._make(lambda r: httpx.Response(503, text="upstream down"), [])

        with pytest.raises(ProviderError) as exc_info:
            asyncio.run(provider.call("p", "k", "gemini-2.0-flash"))

        assert exc_info.value.status_code == 503
        assert exc_info.value.message == "Service Unavailable"

    def test_transport_failure_is_network(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        provider = self._make(handler, [])

        with pytest.raises(ProviderError) as exc_info:
            asyncio.run(provider.call("p", "k", "gemini-2.0-flash"))

        assert exc_info.value.network is True
        assert exc_info.value.status_code is None


class TestClaudeProvider:
    """Tests for ClaudeProvider."""

    BASE = "https://api.anthropic.com/v1"

    def test_request_shape_and_text(self) -> None:
        """Should authenticate with x-api-key and a pinned version header."""
        requests: list[httpx.Request] = []
        body = {"content": [{"type": "text", "text": '{"ok": true}'}]}
        provider = ClaudeProvider(
            self.BASE, http_client=_client(lambda r: httpx.Response(200, json=body), requests)
        )

        text = asyncio.run(provider.call("the prompt", "claude-key", "claude-3-5-sonnet-latest"))

        assert text == '{"ok": true}'
        request = requests[0]
        assert str(request.url) == f"{self.BASE}/messages"
        assert request.headers["x-api-key"] == "claude-key"
        assert request.headers["anthropic-version"] == ANTHROPIC_VERSION
        payload = json.loads(request.content)
        assert payload["system"] == SYSTEM_INSTRUCTION
        assert payload["messages"] == [{"role": "user", "content": "the prompt"}]
        assert payload["max_tokens"] == 2000

    def test_empty_content(self) -> None:
        provider = ClaudeProvider(
            self.BASE,
            http_client=_client(lambda r: httpx.Response(200, json={"content": []}), []),
        )

        with pytest.raises(ProviderError, match="Empty response from Claude API"):
            asyncio.run(provider.call("p", "k", "claude-3-5-sonnet-latest"))

    def test_auth_error(self) -> None:
        body = {"type": "error", "error": {"type": "authentication_error", "message": "invalid x-api-key"}}
        provider = ClaudeProvider(
            self.BASE, http_client=_client(lambda r: httpx.Response(401, json=body), [])
        )

        with pytest.raises(ProviderError) as exc_info:
            asyncio.run(provider.call("p", "k", "claude-3-5-sonnet-latest"))

        assert exc_info.value.status_code == 401
        assert exc_info.value.message == "invalid x-api-key"


class TestOpenAIChatProvider:
    """Tests for the Chat Completions adapters."""

    BASE = "https://api.openai.com/v1"

    def test_request_shape_and_text(self) -> None:
        """Should send bearer auth, both messages and JSON mode."""
        requests: list[httpx.Request] = []
        provider = OpenAIChatProvider(
            self.BASE,
            http_client=_client(
                lambda r: httpx.Response(200, json=_chat_completion('{"x": 1}')), requests
            ),
        )

        text = asyncio.run(provider.call("the prompt", "sk-test", "gpt-4o-mini"))

        assert text == '{"x": 1}'
        request = requests[0]
        assert request.url.path == "/v1/chat/completions"
        assert request.headers["authorization"] == "Bearer sk-test"
        payload = json.loads(request.content)
        assert payload["model"] == "gpt-4o-mini"
        assert payload["messages"][0] == {"role": "system", "content": SYSTEM_INSTRUCTION}
        assert payload["messages"][1] == {"role": "user", "content": "the prompt"}
        assert payload["response_format"] == {"type": "json_object"}

    def test_empty_content(self) -> None:
        provider = OpenAIChatProvider(
            self.BASE,
            http_client=_client(lambda r: httpx.Response(200, json=_chat_completion(None)), []),
        )

        with pytest.raises(ProviderError, match="Empty response"):
            asyncio.run(provider.call("p", "sk-test", "gpt-4o-mini"))

    def test_status_error(self) -> None:
        body = {"error": {"message": "You exceeded your current quota", "type": "insufficient_quota"}}
        provider = OpenAIChatProvider(
            self.BASE,
            http_client=_client(lambda r: httpx.Response(429, json=body), []),
        )

        with pytest.raises(ProviderError) as exc_info:
            asyncio.run(provider.call("p", "sk-test", "gpt-4o-mini"))

        assert exc_info.value.status_code == 429
        assert exc_info.value.message == "You exceeded your current quota"

    def test_connection_error_is_network(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        provider = OpenAIChatProvider(self.BASE, http_client=_client(handler, []))

        with pytest.raises(ProviderError) as exc_info:
            asyncio.run(provider.call("p", "sk-test", "gpt-4o-mini"))

        assert exc_info.value.network is True

    def test_openrouter_attribution_headers(self) -> None:
        requests: list[httpx.Request] = []
        provider = OpenRouterProvider(
            "https://openrouter.ai/api/v1",
            http_client=_client(
                lambda r: httpx.Response(200, json=_chat_completion("{}")), requests
            ),
            referer="https://example.test",
            title="Example",
        )

        asyncio.run(provider.call("p", "or-key", "openai/gpt-4o-mini"))

        assert requests[0].headers["http-referer"] == "https://example.test"
        assert requests[0].headers["x-title"] == "Example"
        assert requests[0].headers["authorization"] == "Bearer or-key"

    def test_huggingface_skips_json_mode(self) -> None:
        requests: list[httpx.Request] = []
        provider = HuggingFaceProvider(
            "https://router.huggingface.co/v1",
            http_client=_client(
                lambda r: httpx.Response(200, json=_chat_completion("{}")), requests
            ),
        )

        asyncio.run(provider.call("p", "hf-key", "Qwen/Qwen2.5-7B-Instruct:featherless-ai"))

        assert "response_format" not in json.loads(requests[0].content)

    def test_keeps_only_latest_credential_client(self) -> None:
        """Should rebuild the SDK client on a key change and drop the old one."""
        requests: list[httpx.Request] = []
        provider = OpenAIChatProvider(
            self.BASE,
            http_client=_client(
                lambda r: httpx.Response(200, json=_chat_completion("{}")), requests
            ),
        )

        async def scenario() -> None:
            await provider.call("p", "sk-first", "gpt-4o-mini")
            first = provider._client_for("sk-first")
            await provider.call("p", "sk-first", "gpt-4o-mini")
            assert provider._client_for("sk-first") is first
            await provider.call("p", "sk-second", "gpt-4o-mini")

        asyncio.run(scenario())

        assert [r.headers["authorization"] for r in requests] == [
            "Bearer sk-first",
            "Bearer sk-first",
            "Bearer sk-second",
        ]
        assert provider._client[0] == "sk-second"

    def test_aclose_closes_own_client_only(self) -> None:
        injected = _client(lambda r: httpx.Response(200, json=_chat_completion("{}")), [])
        borrowed = OpenAIChatProvider(self.BASE, http_client=injected)
        owning = OpenAIChatProvider(self.BASE)
        owned = owning.http_client

        async def scenario() -> None:
            await borrowed.aclose()
            await owning.aclose()

        asyncio.run(scenario())

        assert injected.is_closed is False
        assert owned.is_closed is True
