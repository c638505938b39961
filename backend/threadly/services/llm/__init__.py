"""
LLM Provider Abstraction Layer

Provides a unified interface for multiple LLM providers (Gemini, OpenAI,
Claude, OpenRouter, Hugging Face) with a provider registry, a response
normalizer, and the analysis service that ties them together.
"""

from threadly.services.llm.orchestrator import AnalysisService, get_analysis_service
from threadly.services.llm.registry import (
    PROVIDER_REGISTRY,
    get_endpoint,
    list_models,
    list_providers,
)
from threadly.services.llm.models import ThreadlyResponse
from threadly.services.llm.normalizer import is_degraded, normalize_response

__all__ = [
    "AnalysisService",
    "get_analysis_service",
    "PROVIDER_REGISTRY",
    "get_endpoint",
    "list_models",
    "list_providers",
    "ThreadlyResponse",
    "is_degraded",
    "normalize_response",
]
