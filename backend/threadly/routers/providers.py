"""
Providers Router

Exposes the available LLM providers to the frontend and manages their
runtime credentials.
"""

from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import BaseModel, Field

from threadly.services.llm.connectivity import ConnectivityResult, check_provider
from threadly.services.llm.errors import InputValidationError
from threadly.services.llm.orchestrator import AnalysisService, get_analysis_service
from threadly.services.llm.registry import PROVIDER_REGISTRY, describe_providers, list_models

router = APIRouter()


class ProviderInfo(BaseModel):
    id: str
    display_name: str
    models: list[str]
    default_model: str


class CredentialRequest(BaseModel):
    credential: str | None = Field(default=None, repr=False)


class CredentialResponse(BaseModel):
    provider: str
    configured: bool
    cache_cleared: bool


class CheckRequest(BaseModel):
    credential: str | None = Field(default=None, repr=False)
    model: str | None = None


Service = Annotated[AnalysisService, Depends(get_analysis_service)]


def require_provider(provider: str) -> str:
    if provider not in PROVIDER_REGISTRY:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Unknown provider: {provider}",
        )
    return provider


@router.get("", response_model=list[ProviderInfo])
async def get_available_providers():
    """Return the list of available LLM providers."""
    return describe_providers()


@router.get("/{provider}/models", response_model=list[str])
async def get_provider_models(provider: str):
    return list_models(require_provider(provider))


@router.put("/{provider}/credential", response_model=CredentialResponse)
async def set_provider_credential(
    provider: str,
    payload: CredentialRequest,
    service: Service,
):
    """Store a runtime API key for a provider. A changed key clears the cache."""
    require_provider(provider)
    try:
        changed = service.set_credential(provider, payload.credential)
    except InputValidationError as e:
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=e.message)
    return CredentialResponse(
        provider=provider,
        configured=service.credentials.get_credential(provider) is not None,
        cache_cleared=changed,
    )


@router.post("/{provider}/check", response_model=ConnectivityResult)
async def check_provider_connectivity(
    provider: str,
    payload: CheckRequest,
    service: Service,
):
    """Send a tiny test prompt to confirm the key and endpoint work."""
    require_provider(provider)
    credential = payload.credential or service.credentials.get_credential(provider)
    return await check_provider(
        service.dispatcher, provider, credential, model=payload.model
    )
