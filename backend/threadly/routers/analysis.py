"""
Analysis Router

Runs conversation analyses and manages the analysis cache.
"""

from typing import Annotated

from fastapi import APIRouter, Depends, status
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from threadly.services.llm.errors import AnalysisError, CooldownError, ErrorKind
from threadly.services.llm.models import Scenario, ThreadlyResponse
from threadly.services.llm.normalizer import is_degraded
from threadly.services.llm.orchestrator import AnalysisService, get_analysis_service

router = APIRouter()

# HTTP status per failure category
ERROR_STATUS = {
    ErrorKind.VALIDATION: status.HTTP_422_UNPROCESSABLE_ENTITY,
    ErrorKind.COOLDOWN: status.HTTP_429_TOO_MANY_REQUESTS,
    ErrorKind.AUTH: status.HTTP_401_UNAUTHORIZED,
    ErrorKind.QUOTA: status.HTTP_429_TOO_MANY_REQUESTS,
    ErrorKind.TIMEOUT: status.HTTP_504_GATEWAY_TIMEOUT,
    ErrorKind.NETWORK: status.HTTP_503_SERVICE_UNAVAILABLE,
    ErrorKind.GENERIC: status.HTTP_502_BAD_GATEWAY,
}


# Schemas
class AnalysisRequestSchema(BaseModel):
    history: str
    scenario: Scenario = Scenario.PROFESSIONAL
    tone: int = Field(default=50, ge=0, le=100)
    context: str = ""
    provider: str | None = None
    credential: str | None = Field(default=None, repr=False)
    user_id: str | None = None


class AnalysisResponseSchema(BaseModel):
    result: ThreadlyResponse
    degraded: bool
    provider: str


class CacheStatusResponse(BaseModel):
    size: int


# Dependency
Service = Annotated[AnalysisService, Depends(get_analysis_service)]


def error_response(exc: AnalysisError) -> JSONResponse:
    headers = None
    if isinstance(exc, CooldownError):
        headers = {"Retry-After": str(max(1, round(exc.remaining_seconds)))}
    return JSONResponse(
        status_code=ERROR_STATUS.get(exc.kind, status.HTTP_502_BAD_GATEWAY),
        content={"detail": exc.message, "kind": exc.kind.value},
        headers=headers,
    )


# Endpoints
@router.post("", response_model=AnalysisResponseSchema)
async def analyze_conversation(payload: AnalysisRequestSchema, service: Service):
    """Analyze a pasted conversation and return three reply strategies."""
    provider = payload.provider or service.settings.default_provider
    try:
        result = await service.generate_analysis(
            payload.history,
            payload.scenario,
            payload.tone,
            payload.context,
            credential=payload.credential,
            provider=provider,
            user_id=payload.user_id,
        )
    except AnalysisError as e:
        return error_response(e)

    return AnalysisResponseSchema(
        result=result,
        degraded=is_degraded(result),
        provider=provider,
    )


@router.get("/cache", response_model=CacheStatusResponse)
async def cache_status(service: Service):
    return CacheStatusResponse(size=service.cache_size())


@router.delete("/cache", status_code=status.HTTP_204_NO_CONTENT)
async def clear_cache(service: Service):
    """Drop every cached analysis."""
    service.clear_cache()
