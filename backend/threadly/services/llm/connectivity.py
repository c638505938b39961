"""
Provider connectivity check

Sends a tiny prompt through a provider's adapter to confirm the credential
and endpoint work. Bypasses the cache, cooldown and normalizer; reports
status instead of raising.
"""

import time
from enum import Enum

import structlog
from pydantic import BaseModel

from threadly.services.credentials import is_usable_credential
from threadly.services.llm.dispatch import ProviderConfig, ProviderDispatcher
from threadly.services.llm.errors import ProviderError

logger = structlog.get_logger()

CHECK_PROMPT = 'Say "Threadly API test successful" in exactly those words.'


class CheckStatus(str, Enum):
    SUCCESS = "success"
    FAILED = "failed"  # backend answered with an error
    ERROR = "error"  # no usable answer (transport, timeout, missing key)


class ConnectivityResult(BaseModel):
    provider: str
    status: CheckStatus
    message: str
    response_time_ms: int | None = None


async def check_provider(
    dispatcher: ProviderDispatcher,
    provider: str,
    credential: str | None,
    model: str | None = None,
) -> ConnectivityResult:
    """Send the check prompt to one provider with the given credential."""
    if not is_usable_credential(credential):
        return ConnectivityResult(
            provider=provider,
            status=CheckStatus.ERROR,
            message=f"{provider.upper()} API key not configured",
        )

    started = time.monotonic()
    try:
        await dispatcher.call_provider(
            CHECK_PROMPT,
            ProviderConfig(provider=provider, credential=credential, model=model),
        )
    except ProviderError as e:
        logger.info("provider_check_failed", provider=provider, error=e.message)
        status = CheckStatus.ERROR if e.network else CheckStatus.FAILED
        return ConnectivityResult(provider=provider, status=status, message=str(e))
    except TimeoutError as e:
        return ConnectivityResult(
            provider=provider,
            status=CheckStatus.ERROR,
            message=f"Connection error: {e}",
        )

    return ConnectivityResult(
        provider=provider,
        status=CheckStatus.SUCCESS,
        message=f"{provider} API is working correctly",
        response_time_ms=int((time.monotonic() - started) * 1000),
    )
