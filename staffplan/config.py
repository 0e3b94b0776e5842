import os
from functools import lru_cache
from typing import Optional

from dotenv import load_dotenv
from pydantic import BaseModel, Field

from staffplan.utils.errors import ConfigurationError

load_dotenv()


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        return int(raw)
    except ValueError as e:
        raise ConfigurationError(f"{name} must be an integer, got {raw!r}") from e


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        return float(raw)
    except ValueError as e:
        raise ConfigurationError(f"{name} must be a number, got {raw!r}") from e


class Settings(BaseModel):
    """Runtime configuration. Built from the environment by `load_settings`."""

    openai_api_key: str = Field(..., description="Credential for the model provider.")
    openai_base_url: Optional[str] = Field(default=None)

    reasoning_model: str = Field(default="gpt-4o")
    parser_model: str = Field(default="gpt-4o")
    chat_model: str = Field(default="gpt-4o")

    llm_timeout_seconds: float = Field(default=180.0, gt=0)
    llm_max_retries: int = Field(default=3, ge=0)
    json_repair_attempts: int = Field(default=2, ge=0)

    reasoning_max_tokens: int = Field(default=10000, gt=0)
    hours_max_tokens: int = Field(default=16000, gt=0)
    parser_max_tokens: int = Field(default=16000, gt=0)
    chat_max_tokens: int = Field(default=4000, gt=0)

    chat_history_window: int = Field(default=5, ge=0)
    rfp_excerpt_chars: int = Field(default=1000, ge=0)
    hours_per_fte: float = Field(default=1880.0, gt=0)

    mongo_url: str = Field(default="mongodb://localhost:27017/staffplan")
    mongo_db: str = Field(default="app_db")

    cors_allow_origins: str = Field(default="*")
    log_level: str = Field(default="INFO")
    port: int = Field(default=8080)


def load_settings() -> Settings:
    api_key = (os.getenv("OPENAI_API_KEY") or "").strip()
    if not api_key:
        raise ConfigurationError("OPENAI_API_KEY environment variable is required")

    return Settings(
        openai_api_key=api_key,
        openai_base_url=os.getenv("OPENAI_BASE_URL") or None,
        reasoning_model=os.getenv("REASONING_MODEL", "gpt-4o"),
        parser_model=os.getenv("PARSER_MODEL", "gpt-4o"),
        chat_model=os.getenv("CHAT_MODEL", "gpt-4o"),
        llm_timeout_seconds=_env_float("LLM_TIMEOUT_SECONDS", 180.0),
        llm_max_retries=_env_int("LLM_MAX_RETRIES", 3),
        json_repair_attempts=_env_int("JSON_REPAIR_ATTEMPTS", 2),
        reasoning_max_tokens=_env_int("REASONING_MAX_TOKENS", 10000),
        hours_max_tokens=_env_int("HOURS_MAX_TOKENS", 16000),
        parser_max_tokens=_env_int("PARSER_MAX_TOKENS", 16000),
        chat_max_tokens=_env_int("CHAT_MAX_TOKENS", 4000),
        chat_history_window=_env_int("CHAT_HISTORY_WINDOW", 5),
        rfp_excerpt_chars=_env_int("RFP_EXCERPT_CHARS", 1000),
        hours_per_fte=_env_float("HOURS_PER_FTE", 1880.0),
        mongo_url=os.getenv("MONGO_URL", "mongodb://localhost:27017/staffplan"),
        mongo_db=os.getenv("MONGO_DB", "app_db"),
        cors_allow_origins=os.getenv("CORS_ALLOW_ORIGINS", "*"),
        log_level=os.getenv("LOG_LEVEL", "INFO"),
        port=_env_int("PORT", 8080),
    )


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return cached application settings."""

    return load_settings()
