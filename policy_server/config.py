"""
Policy Search Server - Configuration

Pydantic Settings for all configuration via environment variables.
"""

from pydantic_settings import BaseSettings
from pydantic import BaseModel, Field
from typing import Optional, Literal, List
from pathlib import Path


ProviderName = Literal["huggingface", "openai", "lm_studio"]


class ModelEndpoint(BaseModel):
    """One model endpoint in the fallback chain."""
    name: str
    provider: ProviderName
    base_url: str
    model: str
    api_key: Optional[str] = None
    timeout_ms: int = Field(30000, gt=0)

    @property
    def timeout_seconds(self) -> float:
        return self.timeout_ms / 1000


class LLMSettings(BaseSettings):
    """LLM provider configuration (primary endpoint plus fallbacks)."""
    provider: ProviderName = Field("huggingface", alias="LLM_PROVIDER")
    base_url: str = Field(
        "https://api-inference.huggingface.co/models", alias="LLM_BASE_URL"
    )
    api_key: Optional[str] = Field(None, alias="LLM_API_KEY")
    model: str = Field("mistralai/Mistral-7B-Instruct-v0.2", alias="LLM_MODEL")
    timeout_ms: int = Field(30000, alias="LLM_TIMEOUT_MS")
    fallback_models: List[str] = Field(
        default_factory=lambda: [
            "meta-llama/Llama-2-7b-chat-hf",
            "google/flan-t5-xl",
            "bigscience/bloom-1b7",
            "tiiuae/falcon-7b-instruct",
        ],
        alias="LLM_FALLBACK_MODELS",
    )
    fallback_endpoints: List[ModelEndpoint] = Field(
        default_factory=list, alias="LLM_FALLBACK_ENDPOINTS"
    )
    max_tokens: int = Field(800, alias="LLM_MAX_TOKENS")
    temperature: float = Field(0.2, alias="LLM_TEMPERATURE")
    max_concurrent_calls: int = Field(4, ge=1, alias="LLM_MAX_CONCURRENT_CALLS")

    model_config = {"env_prefix": "", "extra": "ignore", "populate_by_name": True}

    def endpoints(self) -> List[ModelEndpoint]:
        """Ordered endpoint chain: primary, same-provider fallbacks, extra endpoints."""
        chain = [
            ModelEndpoint(
                name=f"{self.provider}:{model}",
                provider=self.provider,
                base_url=self.base_url,
                model=model,
                api_key=self.api_key,
                timeout_ms=self.timeout_ms,
            )
            for model in [self.model, *self.fallback_models]
        ]
        chain.extend(self.fallback_endpoints)
        return chain


class SearchSettings(BaseSettings):
    """Candidate selection and prompt budget configuration."""
    max_candidates: int = Field(5, ge=1, alias="SEARCH_MAX_CANDIDATES")
    excerpt_chars: int = Field(1500, ge=50, alias="SEARCH_EXCERPT_CHARS")
    context_budget_chars: int = Field(6000, ge=50, alias="SEARCH_CONTEXT_BUDGET_CHARS")
    history_limit: int = Field(50, ge=1, alias="SEARCH_HISTORY_LIMIT")

    model_config = {"env_prefix": "", "extra": "ignore", "populate_by_name": True}


class AuthSettings(BaseSettings):
    """Session and API key configuration."""
    session_cookie_name: str = Field("policy_session", alias="AUTH_SESSION_COOKIE")
    session_ttl_seconds: int = Field(86400, ge=60, alias="AUTH_SESSION_TTL_SECONDS")
    session_cookie_secure: bool = Field(True, alias="AUTH_SESSION_COOKIE_SECURE")
    max_sessions: int = Field(10000, ge=1, alias="AUTH_MAX_SESSIONS")
    api_key_header: str = Field("X-API-Key", alias="AUTH_API_KEY_HEADER")
    api_key_ttl_days: int = Field(90, ge=0, alias="API_KEY_TTL_DAYS")
    bcrypt_rounds: int = Field(12, ge=4, le=16, alias="AUTH_BCRYPT_ROUNDS")
    require_https_for_extension: bool = Field(
        False, alias="AUTH_REQUIRE_HTTPS_FOR_EXTENSION"
    )

    model_config = {"env_prefix": "", "extra": "ignore", "populate_by_name": True}


class StorageSettings(BaseSettings):
    """In-memory store seeding."""
    seed_file: Optional[Path] = Field(None, alias="POLICY_SEED_FILE")

    model_config = {"env_prefix": "", "extra": "ignore", "populate_by_name": True}


class ServerSettings(BaseSettings):
    """HTTP server configuration."""
    host: str = Field("0.0.0.0", alias="SERVER_HOST")
    port: int = Field(5000, alias="SERVER_PORT")
    cors_origins: List[str] = Field(default_factory=list, alias="SERVER_CORS_ORIGINS")

    model_config = {"env_prefix": "", "extra": "ignore", "populate_by_name": True}


class LogSettings(BaseSettings):
    """Logging configuration."""
    level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = Field(
        "INFO", alias="LOG_LEVEL"
    )
    format: Literal["json", "text"] = Field("json", alias="LOG_FORMAT")

    model_config = {"env_prefix": "", "extra": "ignore", "populate_by_name": True}


class Settings(BaseSettings):
    """Main settings aggregating all configuration."""
    llm: LLMSettings = Field(default_factory=LLMSettings)
    search: SearchSettings = Field(default_factory=SearchSettings)
    auth: AuthSettings = Field(default_factory=AuthSettings)
    storage: StorageSettings = Field(default_factory=StorageSettings)
    server: ServerSettings = Field(default_factory=ServerSettings)
    log: LogSettings = Field(default_factory=LogSettings)

    model_config = {"env_prefix": "", "extra": "ignore"}


def get_settings() -> Settings:
    """Load settings from environment variables."""
    from dotenv import load_dotenv
    load_dotenv()
    return Settings()
