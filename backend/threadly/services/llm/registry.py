"""
Provider Registry

Maps provider names to their endpoint metadata and adapter classes.
Used by the dispatcher to select the correct adapter per request.
"""

from dataclasses import dataclass

from threadly.core.config import Settings, get_settings
from threadly.services.llm.base import LLMProvider
from threadly.services.llm.errors import UnknownProviderError


@dataclass(frozen=True)
class ProviderEndpoint:
    name: str
    display_name: str
    base_url: str
    models: tuple[str, ...]
    default_model: str


# ── Provider Registry ─────────────────────────────────────────────────────────
# Each entry maps a provider name to:
#   - display_name:  Human-readable name for the frontend
#   - base_url:      API root the adapter builds its request URL from
#   - models:        Model identifiers the frontend may select
#   - default_model: Model used when the request does not name one

PROVIDER_REGISTRY: dict[str, ProviderEndpoint] = {
    "gemini": ProviderEndpoint(
        name="gemini",
        display_name="Google Gemini",
        base_url="https://generativelanguage.googleapis.com/v1beta/models",
        models=("gemini-2.0-flash", "gemini-1.5-pro", "gemini-1.5-flash"),
        default_model="gemini-2.0-flash",
    ),
    "openai": ProviderEndpoint(
        name="openai",
        display_name="OpenAI",
        base_url="https://api.openai.com/v1",
        models=("gpt-4o", "gpt-4o-mini", "gpt-4-turbo"),
        default_model="gpt-4o-mini",
    ),
    "claude": ProviderEndpoint(
        name="claude",
        display_name="Anthropic Claude",
        base_url="https://api.anthropic.com/v1",
        models=(
            "claude-3-5-sonnet-latest",
            "claude-3-5-haiku-latest",
            "claude-3-opus-latest",
        ),
        default_model="claude-3-5-sonnet-latest",
    ),
    "openrouter": ProviderEndpoint(
        name="openrouter",
        display_name="OpenRouter",
        base_url="https://openrouter.ai/api/v1",
        models=(
            "openai/gpt-4o-mini",
            "anthropic/claude-3.5-sonnet",
            "meta-llama/llama-3.1-70b-instruct",
            "mistralai/mistral-7b-instruct",
        ),
        default_model="openai/gpt-4o-mini",
    ),
    "huggingface": ProviderEndpoint(
        name="huggingface",
        display_name="Hugging Face",
        base_url="https://router.huggingface.co/v1",
        models=("Qwen/Qwen2.5-7B-Instruct:featherless-ai",),
        default_model="Qwen/Qwen2.5-7B-Instruct:featherless-ai",
    ),
}


def get_endpoint(provider: str) -> ProviderEndpoint:
    """
    Look up the endpoint metadata for a provider.

    Raises:
        UnknownProviderError: If the provider is not in the registry
    """
    endpoint = PROVIDER_REGISTRY.get(provider)
    if endpoint is None:
        raise UnknownProviderError(
            f"Unknown provider: {provider}. "
            f"Available providers: {', '.join(PROVIDER_REGISTRY.keys())}"
        )
    return endpoint


def list_providers() -> list[str]:
    return list(PROVIDER_REGISTRY.keys())


def list_models(provider: str) -> list[str]:
    return list(get_endpoint(provider).models)


def describe_providers() -> list[dict]:
    """
    Return the list of available providers for the frontend.

    Returns:
        List of dicts with id, display_name, models, default_model
    """
    return [
        {
            "id": name,
            "display_name": endpoint.display_name,
            "models": list(endpoint.models),
            "default_model": endpoint.default_model,
        }
        for name, endpoint in PROVIDER_REGISTRY.items()
    ]


# ── Provider Factory ──────────────────────────────────────────────────────────


def create_provider(provider: str, settings: Settings | None = None) -> LLMProvider:
    """
    Create an adapter instance for a registered provider.

    Generation options come from ``settings``, or the process settings when omitted.
    """
    endpoint = get_endpoint(provider)
    settings = settings or get_settings()
    options = {
        "temperature": settings.llm_temperature,
        "max_output_tokens": settings.llm_max_output_tokens,
    }

    if provider == "gemini":
        from threadly.services.llm.gemini import GeminiProvider
        return GeminiProvider(endpoint.base_url, **options)
    elif provider == "claude":
        from threadly.services.llm.claude import ClaudeProvider
        return ClaudeProvider(endpoint.base_url, **options)
    elif provider == "openai":
        from threadly.services.llm.openai_chat import OpenAIChatProvider
        return OpenAIChatProvider(endpoint.base_url, **options)
    elif provider == "openrouter":
        from threadly.services.llm.openai_chat import OpenRouterProvider
        return OpenRouterProvider(
            endpoint.base_url,
            referer=settings.app_referer,
            title=settings.app_title,
            **options,
        )
    elif provider == "huggingface":
        from threadly.services.llm.openai_chat import HuggingFaceProvider
        return HuggingFaceProvider(endpoint.base_url, **options)
    else:
        raise UnknownProviderError(f"No adapter for provider: {provider}")
