"""
Analytics side channel

Records each analysis request and each explicit feedback submission for
product analytics. Delivery is fire-and-forget: callers never wait on it
and its failures are logged, not raised.
"""

import asyncio
from collections.abc import Coroutine
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Protocol

import httpx
import structlog
from pydantic import BaseModel, Field

from threadly.core.config import Settings

logger = structlog.get_logger()

MAX_RECORDED_HISTORY = 5000


class FeedbackOutcome(str, Enum):
    GREAT = "great"
    OKAY = "okay"
    BAD = "bad"


class Helpfulness(str, Enum):
    VERY = "very"
    SOMEWHAT = "somewhat"
    NOT = "not"


class PromptRecord(BaseModel):
    user_id: str
    conversation_history: str
    scenario: str
    tone: int
    user_context: str | None = None
    provider: str
    response_time_ms: int | None = None
    error_occurred: bool = False
    error_message: str | None = None
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


class FeedbackRecord(BaseModel):
    user_id: str
    feedback_id: str
    scenario: str
    tone: int = Field(ge=0, le=100)
    response_type: str
    outcome: FeedbackOutcome
    rating: int | None = Field(default=None, ge=1, le=5)
    helpfulness: Helpfulness | None = None
    would_use_again: bool | None = None
    notes: str | None = None
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


class AnalyticsSink(Protocol):
    async def record_prompt(self, record: PromptRecord) -> None: ...

    async def record_feedback(self, record: FeedbackRecord) -> None: ...

    async def aclose(self) -> None: ...


class NullAnalyticsSink:
    """Used when no analytics endpoint is configured."""

    async def record_prompt(self, record: PromptRecord) -> None:
        logger.debug("analytics_disabled", kind="prompt")

    async def record_feedback(self, record: FeedbackRecord) -> None:
        logger.debug("analytics_disabled", kind="feedback")

    async def aclose(self) -> None:
        pass


class RestAnalyticsSink:
    """Inserts rows through a PostgREST-style endpoint (``/rest/v1/<table>``)."""

    def __init__(
        self,
        base_url: str,
        api_key: str,
        http_client: httpx.AsyncClient | None = None,
    ):
        self.base_url = base_url.rstrip("/")
        self._api_key = api_key
        self._owns_http_client = http_client is None
        self._http_client = http_client or httpx.AsyncClient(timeout=10.0)

    async def _insert(self, table: str, row: dict[str, Any]) -> None:
        response = await self._http_client.post(
            f"{self.base_url}/rest/v1/{table}",
            json=[row],
            headers={
                "apikey": self._api_key,
                "Authorization": f"Bearer {self._api_key}",
                "Prefer": "return=minimal",
            },
        )
        response.raise_for_status()

    async def record_prompt(self, record: PromptRecord) -> None:
        await self._insert("prompts", record.model_dump(mode="json"))

    async def record_feedback(self, record: FeedbackRecord) -> None:
        await self._insert("feedback", record.model_dump(mode="json"))

    async def aclose(self) -> None:
        if self._owns_http_client:
            await self._http_client.aclose()


def create_analytics_sink(settings: Settings) -> AnalyticsSink:
    if settings.analytics_url and settings.analytics_key:
        return RestAnalyticsSink(settings.analytics_url, settings.analytics_key)
    return NullAnalyticsSink()


def build_prompt_record(
    user_id: str | None,
    history: str,
    scenario: str,
    tone: int,
    context: str,
    provider: str,
    response_time_ms: int | None,
    error_message: str | None = None,
) -> PromptRecord:
    return PromptRecord(
        user_id=user_id or "anonymous",
        conversation_history=history[:MAX_RECORDED_HISTORY],
        scenario=getattr(scenario, "value", scenario),
        tone=tone,
        user_context=context or None,
        provider=provider,
        response_time_ms=response_time_ms,
        error_occurred=error_message is not None,
        error_message=error_message,
    )


class BackgroundEmitter:
    """Schedules sink calls without awaiting them; keeps tasks alive until done."""

    def __init__(self):
        self._tasks: set[asyncio.Task] = set()

    def emit(self, coro: Coroutine[Any, Any, None], kind: str) -> None:
        task = asyncio.ensure_future(self._deliver(coro, kind))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    @staticmethod
    async def _deliver(coro: Coroutine[Any, Any, None], kind: str) -> None:
        try:
            await coro
        except Exception as e:
            logger.warning("analytics_delivery_failed", kind=kind, error=str(e))

    async def drain(self) -> None:
        """Wait for in-flight deliveries. Used at shutdown and in tests."""
        if self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    @property
    def pending(self) -> int:
        return len(self._tasks)
