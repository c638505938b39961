"""
Provider Dispatch

Selects the adapter for a request, races it against a wall-clock budget,
and normalizes whatever goes wrong into a provider-tagged error.

The losing side of the race is abandoned rather than cancelled: the adapter
call keeps running until the network layer settles, and its late outcome is
logged and dropped.
"""

import asyncio
from collections.abc import Callable, Mapping
from dataclasses import dataclass, field

import structlog

from threadly.services.llm.base import LLMProvider
from threadly.services.llm.errors import DispatchTimeoutError, ProviderError
from threadly.services.llm.registry import create_provider, get_endpoint

logger = structlog.get_logger()


@dataclass(frozen=True)
class ProviderConfig:
    provider: str
    credential: str = field(repr=False)
    model: str | None = None


class ProviderDispatcher:
    """Routes prompts to adapters under a timeout race."""

    def __init__(
        self,
        timeout: float = 30.0,
        providers: Mapping[str, LLMProvider] | None = None,
        provider_factory: Callable[[str], LLMProvider] = create_provider,
        cancel_on_timeout: bool = False,
    ):
        self.timeout = timeout
        self.cancel_on_timeout = cancel_on_timeout
        self._providers: dict[str, LLMProvider] = dict(providers or {})
        self._provider_factory = provider_factory
        # Abandoned calls are kept referenced until they settle.
        self._abandoned: set[asyncio.Task] = set()
        self._log = logger.bind(component="llm", subcomponent="dispatch")

    def get_provider(self, provider: str) -> LLMProvider:
        """Get or lazily create the adapter for a provider."""
        if provider not in self._providers:
            get_endpoint(provider)
            self._providers[provider] = self._provider_factory(provider)
        return self._providers[provider]

    @property
    def pending_abandoned(self) -> int:
        return len(self._abandoned)

    async def call_provider(self, prompt: str, config: ProviderConfig) -> str:
        """
        Send the prompt to the configured provider and return its raw text.

        Raises:
            ProviderError: If the adapter fails for any reason
            DispatchTimeoutError: If the adapter does not settle in time
        """
        adapter = self.get_provider(config.provider)
        model = config.model or get_endpoint(config.provider).default_model

        task = asyncio.ensure_future(adapter.call(prompt, config.credential, model))
        try:
            done, _ = await asyncio.wait({task}, timeout=self.timeout)
        except asyncio.CancelledError:
            task.cancel()
            raise

        if not done:
            self._abandon(task, config.provider)
            raise DispatchTimeoutError(config.provider, self.timeout)

        try:
            return task.result()
        except ProviderError:
            raise
        except Exception as e:
            raise ProviderError(config.provider, str(e) or type(e).__name__) from e

    async def aclose(self) -> None:
        """Close every adapter created so far."""
        for provider in self._providers.values():
            await provider.aclose()

    def _abandon(self, task: asyncio.Task, provider: str) -> None:
        if self.cancel_on_timeout:
            task.cancel()
            self._log.warning("provider_call_cancelled", provider=provider)
            return

        self._abandoned.add(task)

        def _settled(finished: asyncio.Task) -> None:
            self._abandoned.discard(finished)
            if finished.cancelled():
                return
            exc = finished.exception()
            self._log.info(
                "abandoned_provider_call_settled",
                provider=provider,
                failed=exc is not None,
            )

        task.add_done_callback(_settled)
        self._log.warning(
            "provider_call_timed_out", provider=provider, timeout=self.timeout
        )
