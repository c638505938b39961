"""
Gemini generateContent API Provider

- API key travels in the URL query string (?key=...)
- system instruction goes in systemInstruction, not in the message list
- generationConfig.responseMimeType requests native JSON output
- text lives at candidates[0].content.parts[0].text
"""

from threadly.services.llm.base import HTTPProvider
from threadly.services.llm.prompts import SYSTEM_INSTRUCTION


class GeminiProvider(HTTPProvider):
    """Provider for the Google Gemini REST API."""

    provider_name = "gemini"

    async def call(self, prompt: str, credential: str, model: str) -> str:
        data = await self._post(
            f"{self.base_url}/{model}:generateContent",
            payload={
                "contents": [{"role": "user", "parts": [{"text": prompt}]}],
                "systemInstruction": {"parts": [{"text": SYSTEM_INSTRUCTION}]},
                "generationConfig": {
                    "responseMimeType": "application/json",
                    "temperature": self.temperature,
                    "maxOutputTokens": self.max_output_tokens,
                },
            },
            params={"key": credential},
        )

        candidates = data.get("candidates") if isinstance(data, dict) else None
        if not candidates:
            raise self._fail("No candidates in Gemini API response")

        first = candidates[0] if isinstance(candidates[0], dict) else {}
        parts = (first.get("content") or {}).get("parts") or []
        text = "".join(
            part.get("text", "") for part in parts if isinstance(part, dict)
        )
        if not text.strip():
            raise self._fail("Empty response from Gemini API")
        return text
