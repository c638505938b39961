from pydantic_settings import BaseSettings
from functools import lru_cache


class Settings(BaseSettings):
    # Provider selection
    default_provider: str = "gemini"

    # Provider credentials (read through the credential store, never logged)
    gemini_api_key: str = ""
    openai_api_key: str = ""
    claude_api_key: str = ""
    openrouter_api_key: str = ""
    huggingface_api_key: str = ""

    # Generation parameters shared by every adapter
    llm_temperature: float = 0.7
    llm_max_output_tokens: int = 2000

    # Dispatch
    api_timeout_seconds: float = 30.0
    cancel_on_timeout: bool = False  # abandoned calls keep running unless set

    # Cache
    cache_ttl_seconds: float = 5 * 60
    cache_key_prefix_length: int = 100

    # Rate limiting / retry
    request_cooldown_seconds: float = 2.0
    network_retry_attempts: int = 2
    network_retry_delay_seconds: float = 2.0

    # Input bounds
    history_min_length: int = 10
    history_max_length: int = 5000
    context_max_length: int = 1000

    # Analytics side channel (PostgREST-style endpoint); disabled when empty
    analytics_url: str = ""
    analytics_key: str = ""

    # URLs
    frontend_url: str = "http://localhost:5173"
    app_referer: str = "https://threadly.app"
    app_title: str = "Threadly - AI Conversation Strategist"

    # Logging
    log_level: str = "INFO"
    log_json: bool = True

    class Config:
        env_file = ".env"
        case_sensitive = False


@lru_cache()
def get_settings() -> Settings:
    return Settings()
