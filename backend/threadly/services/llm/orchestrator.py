"""
Analysis Orchestrator

Public entry point for conversation analysis:
- input validation and credential resolution
- cooldown between initiated requests
- cache lookup and store
- dispatch, normalization, and bounded retry of network failures
- classification of failures into one user-facing category

The service owns its cache, cooldown stamp and dispatcher; build one per
process (``get_analysis_service``) or one per test.
"""

import asyncio
import time
from collections.abc import Awaitable, Callable
from functools import partial

import structlog

from threadly.core.config import Settings, get_settings
from threadly.services.analytics import (
    AnalyticsSink,
    BackgroundEmitter,
    NullAnalyticsSink,
    build_prompt_record,
    create_analytics_sink,
)
from threadly.services.credentials import (
    CredentialStore,
    SettingsCredentialStore,
    is_usable_credential,
)
from threadly.services.llm.cache import AnalysisCache
from threadly.services.llm.dispatch import ProviderConfig, ProviderDispatcher
from threadly.services.llm.errors import (
    AnalysisFailedError,
    CooldownError,
    ErrorKind,
    InputValidationError,
    classify_error,
    user_message,
)
from threadly.services.llm.models import AnalysisRequest, Scenario, ThreadlyResponse
from threadly.services.llm.normalizer import is_degraded, normalize_text
from threadly.services.llm.prompts import build_prompt
from threadly.services.llm.registry import PROVIDER_REGISTRY, create_provider

logger = structlog.get_logger()


class AnalysisService:
    """Orchestrates analysis requests over cache, dispatcher and normalizer."""

    def __init__(
        self,
        settings: Settings | None = None,
        dispatcher: ProviderDispatcher | None = None,
        cache: AnalysisCache | None = None,
        credentials: CredentialStore | None = None,
        analytics: AnalyticsSink | None = None,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.settings = settings or get_settings()
        self.dispatcher = dispatcher or ProviderDispatcher(
            timeout=self.settings.api_timeout_seconds,
            provider_factory=partial(create_provider, settings=self.settings),
            cancel_on_timeout=self.settings.cancel_on_timeout,
        )
        self.cache = cache or AnalysisCache(
            ttl_seconds=self.settings.cache_ttl_seconds,
            prefix_length=self.settings.cache_key_prefix_length,
            clock=clock,
        )
        self.credentials = credentials or SettingsCredentialStore(self.settings)
        self.analytics = analytics or NullAnalyticsSink()
        self.emitter = BackgroundEmitter()
        self._clock = clock
        self._sleep = sleep
        self._last_request_at: float | None = None
        self._inflight: set[asyncio.Task] = set()
        self._log = logger.bind(component="llm", subcomponent="orchestrator")

    # ── Public API ────────────────────────────────────────────────────────────

    async def generate_analysis(
        self,
        history: str,
        scenario: Scenario | str,
        tone: int,
        context: str = "",
        credential: str | None = None,
        provider: str | None = None,
        *,
        user_id: str | None = None,
    ) -> ThreadlyResponse:
        """
        Analyze a conversation and return three reply strategies.

        Args:
            history: Pasted conversation text
            scenario: Scenario tag
            tone: Tone preference 0-100
            context: Optional free-text context
            credential: Explicit API credential; looked up when omitted
            provider: Provider name; the configured default when omitted
            user_id: Owner id recorded on the analytics side channel

        Returns:
            A normalized ThreadlyResponse

        Raises:
            InputValidationError: Bad input or missing credential
            CooldownError: Called again inside the cooldown window
            AnalysisFailedError: Classified provider failure
        """
        request = self._validate(history, scenario, tone, context, credential, provider)
        self._enforce_cooldown()

        fingerprint = self.cache.fingerprint(
            request.history,
            request.scenario.value,
            request.tone,
            request.context,
            request.provider,
        )
        cached = self.cache.get(fingerprint)
        if cached is not None:
            self._log.info("analysis_cache_hit", provider=request.provider)
            return cached

        # The shielded task finishes (and fills the cache) even if our caller
        # stops waiting for it.
        task = asyncio.ensure_future(self._run(request, fingerprint, user_id))
        self._inflight.add(task)
        task.add_done_callback(self._inflight_done)
        return await asyncio.shield(task)

    def set_credential(self, provider: str, credential: str | None) -> bool:
        """
        Store a runtime credential for a provider.

        Returns:
            True if the credential changed (and the cache was cleared)
        """
        if provider not in PROVIDER_REGISTRY:
            raise InputValidationError(f"Unknown provider: {provider}")
        previous = self.credentials.get_credential(provider)
        self.credentials.set_credential(provider, credential)
        changed = previous != self.credentials.get_credential(provider)
        if changed:
            self.clear_cache()
        return changed

    def clear_cache(self) -> None:
        self.cache.clear()
        self._log.info("analysis_cache_cleared")

    def cache_size(self) -> int:
        return self.cache.size()

    async def drain(self) -> None:
        """Wait for in-flight analyses and analytics deliveries."""
        if self._inflight:
            await asyncio.gather(*list(self._inflight), return_exceptions=True)
        await self.emitter.drain()

    async def aclose(self) -> None:
        """Drain, then release adapter and analytics connections."""
        await self.drain()
        await self.dispatcher.aclose()
        await self.analytics.aclose()

    # ── Steps ─────────────────────────────────────────────────────────────────

    def _validate(
        self,
        history: str,
        scenario: Scenario | str,
        tone: int,
        context: str,
        credential: str | None,
        provider: str | None,
    ) -> AnalysisRequest:
        settings = self.settings
        provider = provider or settings.default_provider
        if provider not in PROVIDER_REGISTRY:
            raise InputValidationError(f"Unknown provider: {provider}")

        resolved = credential or self.credentials.get_credential(provider)
        if not is_usable_credential(resolved):
            raise InputValidationError(
                f"API Key is missing for {provider}. "
                f"Please configure your {provider} API key in Settings."
            )

        text = (history or "").strip()
        if len(text) < settings.history_min_length:
            raise InputValidationError(
                "Conversation history is too short. Please provide more context."
            )
        if len(text) > settings.history_max_length:
            raise InputValidationError(
                "Conversation history is too long. "
                f"Please keep it under {settings.history_max_length} characters."
            )

        context = (context or "").strip()
        if len(context) > settings.context_max_length:
            raise InputValidationError(
                "Additional context is too long. "
                f"Please keep it under {settings.context_max_length} characters."
            )

        if isinstance(tone, bool) or not isinstance(tone, int) or not 0 <= tone <= 100:
            raise InputValidationError("Tone must be a whole number between 0 and 100.")

        try:
            scenario = Scenario(getattr(scenario, "value", scenario))
        except ValueError:
            raise InputValidationError(f"Unknown scenario: {scenario}") from None

        return AnalysisRequest(
            history=text,
            scenario=scenario,
            tone=tone,
            context=context,
            provider=provider,
            credential=resolved.strip(),
        )

    def _enforce_cooldown(self) -> None:
        # Read and stamp with no await in between.
        now = self._clock()
        if self._last_request_at is not None:
            elapsed = now - self._last_request_at
            remaining = self.settings.request_cooldown_seconds - elapsed
            if remaining > 0:
                self._log.info("analysis_cooldown_rejected", remaining=round(remaining, 2))
                raise CooldownError(remaining)
        self._last_request_at = now

    async def _run(
        self,
        request: AnalysisRequest,
        fingerprint: str,
        user_id: str | None,
    ) -> ThreadlyResponse:
        started = self._clock()
        prompt = build_prompt(
            request.history, request.scenario.value, request.tone, request.context
        )
        config = ProviderConfig(provider=request.provider, credential=request.credential)

        try:
            raw_text = await self._dispatch_with_retry(prompt, config)
        except Exception as e:
            kind = classify_error(e)
            self._log.error(
                "analysis_failed",
                provider=request.provider,
                kind=kind.value,
                error=str(e),
            )
            self._record(request, user_id, started, error_message=str(e))
            raise AnalysisFailedError(
                kind, user_message(kind, request.provider), request.provider
            ) from e

        result = normalize_text(raw_text, provider=request.provider)
        if is_degraded(result):
            self._log.warning("analysis_degraded", provider=request.provider)

        self.cache.put(fingerprint, result)
        self._record(request, user_id, started)
        self._log.info(
            "analysis_completed",
            provider=request.provider,
            elapsed_ms=self._elapsed_ms(started),
        )
        return result

    async def _dispatch_with_retry(self, prompt: str, config: ProviderConfig) -> str:
        """Retry only network-classified failures, with fixed spacing."""
        retries = 0
        while True:
            try:
                return await self.dispatcher.call_provider(prompt, config)
            except Exception as e:
                if classify_error(e) != ErrorKind.NETWORK:
                    raise
                if retries >= self.settings.network_retry_attempts:
                    raise
                retries += 1
                self._log.warning(
                    "provider_network_retry",
                    provider=config.provider,
                    retry=retries,
                    error=str(e),
                )
                await self._sleep(self.settings.network_retry_delay_seconds)

    def _record(
        self,
        request: AnalysisRequest,
        user_id: str | None,
        started: float,
        error_message: str | None = None,
    ) -> None:
        record = build_prompt_record(
            user_id,
            request.history,
            request.scenario.value,
            request.tone,
            request.context,
            request.provider,
            self._elapsed_ms(started),
            error_message=error_message,
        )
        self.emitter.emit(self.analytics.record_prompt(record), kind="prompt")

    def _elapsed_ms(self, started: float) -> int:
        return int((self._clock() - started) * 1000)

    def _inflight_done(self, task: asyncio.Task) -> None:
        self._inflight.discard(task)
        if not task.cancelled():
            # Mark the outcome retrieved; an abandoned caller already stopped listening.
            task.exception()


# ── Singleton ─────────────────────────────────────────────────────────────────

_service: AnalysisService | None = None


def get_analysis_service() -> AnalysisService:
    """Get or create the process-wide analysis service."""
    global _service
    if _service is None:
        settings = get_settings()
        _service = AnalysisService(
            settings=settings,
            analytics=create_analytics_sink(settings),
        )
    return _service


async def close_analysis_service() -> None:
    """Shut down the process-wide service, if one was created."""
    global _service
    if _service is not None:
        await _service.aclose()
        _service = None
