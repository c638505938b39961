"""Test doubles and sample payloads shared across the suite."""

import asyncio
from typing import Any

from threadly.core.config import Settings
from threadly.services.credentials import SettingsCredentialStore
from threadly.services.llm.base import LLMProvider
from threadly.services.llm.cache import AnalysisCache
from threadly.services.llm.dispatch import ProviderDispatcher
from threadly.services.llm.orchestrator import AnalysisService


VALID_HISTORY = "Alex: Are we still on for Friday? You went quiet after the meeting."

VALID_SAMPLE: dict[str, Any] = {
    "analysis": {
        "sentiment": "Anxious",
        "dynamics": "Alex is seeking reassurance after a tense meeting",
        "urgency": "high",
        "urgencyReasoning": "Plans for Friday depend on a quick answer",
        "keyPoints": ["Alex feels ignored", "Friday plan is at stake", "Tone is cautious"],
    },
    "responses": [
        {
            "strategyType": "recommended",
            "replyText": "Yes, Friday is still on! Sorry for going quiet, the meeting drained me.",
            "predictedOutcome": "Alex relaxes and confirms the plan.",
            "riskLevel": "low",
            "riskExplanation": "Acknowledges the silence without over-explaining.",
            "reasoning": "Reassurance first, brief context second.",
            "followUp": "Suggest a time for Friday.",
        },
        {
            "strategyType": "bold",
            "replyText": "Friday for sure. Honestly, that meeting got to me. Can we talk about it?",
            "predictedOutcome": "Opens a deeper conversation.",
            "riskLevel": "medium",
            "riskExplanation": "Alex may not want to discuss work.",
            "reasoning": "Names the real issue directly.",
            "followUp": "Listen before proposing anything.",
        },
        {
            "strategyType": "safe",
            "replyText": "Still on for Friday, see you then.",
            "predictedOutcome": "Plan confirmed, tension unaddressed.",
            "riskLevel": "low",
            "riskExplanation": "Leaves the silence unexplained.",
            "reasoning": "Minimal and clear.",
            "followUp": "Check in after Friday.",
        },
    ],
    "simulator": {
        "theirResponse": "Phew, okay! Was worried I said something wrong.",
        "yourFollowUp": "Not at all, just a long day. 7pm?",
        "finalReaction": "Alex happily agrees to 7pm.",
    },
}


def make_settings(**overrides: Any) -> Settings:
    """Settings isolated from the developer's .env and environment keys."""
    values: dict[str, Any] = {
        "default_provider": "gemini",
        "gemini_api_key": "test-gemini-key-1234567890",
        "openai_api_key": "",
        "claude_api_key": "",
        "openrouter_api_key": "",
        "huggingface_api_key": "",
        "analytics_url": "",
        "analytics_key": "",
    }
    values.update(overrides)
    return Settings(_env_file=None, **values)


class FakeClock:
    """Manually advanced monotonic clock."""

    def __init__(self, start: float = 1000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakeProvider(LLMProvider):
    """Adapter double that returns scripted replies and counts calls.

    Replies are consumed in order; the last one repeats. An exception
    instance in the script is raised instead of returned.
    """

    provider_name = "gemini"

    def __init__(self, replies: list[Any], delay: float = 0.0) -> None:
        super().__init__("https://fake.invalid")
        self.replies = list(replies)
        self.delay = delay
        self.calls: list[tuple[str, str, str]] = []
        self.closed = False

    async def call(self, prompt: str, credential: str, model: str) -> str:
        self.calls.append((prompt, credential, model))
        if self.delay:
            await asyncio.sleep(self.delay)
        reply = self.replies.pop(0) if len(self.replies) > 1 else self.replies[0]
        if isinstance(reply, BaseException):
            raise reply
        return reply

    async def aclose(self) -> None:
        self.closed = True


class RecordingSink:
    """Analytics sink that keeps what it was given."""

    def __init__(self, fail: bool = False) -> None:
        self.prompts: list[Any] = []
        self.feedback: list[Any] = []
        self.fail = fail
        self.closed = False

    async def record_prompt(self, record: Any) -> None:
        if self.fail:
            raise RuntimeError("sink unavailable")
        self.prompts.append(record)

    async def record_feedback(self, record: Any) -> None:
        if self.fail:
            raise RuntimeError("sink unavailable")
        self.feedback.append(record)

    async def aclose(self) -> None:
        self.closed = True


def make_service(
    settings: Settings,
    provider: LLMProvider,
    clock: FakeClock,
    sleeps: list[float] | None = None,
    timeout: float = 30.0,
    **kwargs: Any,
) -> AnalysisService:
    """Build an AnalysisService wired to a fake adapter and clock."""

    async def record_sleep(seconds: float) -> None:
        if sleeps is not None:
            sleeps.append(seconds)

    return AnalysisService(
        settings=settings,
        dispatcher=ProviderDispatcher(
            timeout=timeout,
            providers={provider.provider_name: provider},
        ),
        cache=AnalysisCache(ttl_seconds=settings.cache_ttl_seconds, clock=clock),
        credentials=SettingsCredentialStore(settings),
        clock=clock,
        sleep=record_sleep,
        **kwargs,
    )
