"""
Anthropic Messages API Provider

- x-api-key header plus a pinned anthropic-version header
- system prompt is a top-level field, messages carry only the user turn
- text lives at content[0].text
"""

from threadly.services.llm.base import HTTPProvider
from threadly.services.llm.prompts import SYSTEM_INSTRUCTION

ANTHROPIC_VERSION = "2023-06-01"


class ClaudeProvider(HTTPProvider):
    """Provider for the Anthropic Messages API (Claude models)."""

    provider_name = "claude"

    async def call(self, prompt: str, credential: str, model: str) -> str:
        data = await self._post(
            f"{self.base_url}/messages",
            payload={
                "model": model,
                "max_tokens": self.max_output_tokens,
                "temperature": self.temperature,
                "system": SYSTEM_INSTRUCTION,
                "messages": [{"role": "user", "content": prompt}],
            },
            headers={
                "x-api-key": credential,
                "anthropic-version": ANTHROPIC_VERSION,
            },
        )

        blocks = data.get("content") if isinstance(data, dict) else None
        if not isinstance(blocks, list):
            blocks = []
        text = "".join(
            block.get("text", "")
            for block in blocks
            if isinstance(block, dict) and block.get("type", "text") == "text"
        )
        if not text.strip():
            raise self._fail("Empty response from Claude API")
        return text
