import uuid
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware

from threadly.core.config import get_settings
from threadly.core.logging import (
    bind_request_context,
    clear_request_context,
    configure_logging,
)
from threadly.routers import analysis, feedback, providers
from threadly.services.llm.orchestrator import close_analysis_service


settings = get_settings()
configure_logging(level=settings.log_level, json_format=settings.log_json)


@asynccontextmanager
async def lifespan(app: FastAPI):
    yield
    # Shutdown: let pending work finish, then close outbound connections
    await close_analysis_service()


app = FastAPI(
    title="Threadly API",
    description="Conversation strategy coaching backed by multiple LLM providers",
    version="1.0.0",
    lifespan=lifespan,
)
app.router.redirect_slashes = False

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=[
        settings.frontend_url,
        "http://localhost:5173",
        "http://localhost",
        "http://127.0.0.1",
    ],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.middleware("http")
async def request_context(request: Request, call_next):
    request_id = request.headers.get("X-Request-ID") or uuid.uuid4().hex
    bind_request_context(request_id)
    try:
        response = await call_next(request)
    finally:
        clear_request_context()
    response.headers["X-Request-ID"] = request_id
    return response


# Include routers
app.include_router(analysis.router, prefix="/analysis", tags=["Analysis"])
app.include_router(providers.router, prefix="/providers", tags=["Providers"])
app.include_router(feedback.router, prefix="/feedback", tags=["Feedback"])


@app.get("/health")
async def health_check():
    return {"status": "healthy"}
