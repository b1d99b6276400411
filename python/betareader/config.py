"""Application settings loaded from environment variables.

Environment Configuration:
    BETA_ENV: Deployment environment (local | test | prod)
    DATABASE_URL: PostgreSQL connection string (required)
    PORT: Listen port for the uvicorn launcher (default 3001)
    LOG_FORMAT: "json" or "console"

Auth Configuration (required in all environments):
    AUTH0_DOMAIN: Identity provider domain, e.g. "tenant.us.auth0.com"
    AUTH0_CLIENT_ID: Client ID; tokens issued to the UI carry it as audience
    AUTH0_AUDIENCE: Optional comma-separated list of extra accepted audiences
    USERINFO_CACHE_TTL_S: How long userinfo lookups are cached (default 900)

LLM Configuration:
    OPENAI_API_KEY: Platform key for the language-model provider (required)
    OPENAI_MODEL: Chat model used for summaries, reviews and wiki upkeep
    OPENAI_BASE_URL: Override for OpenAI-compatible gateways
    LLM_TIMEOUT_S: Per-request timeout in seconds
"""

from enum import Enum
from functools import lru_cache
from typing import Annotated

from pydantic import Field, model_validator
from pydantic_settings import BaseSettings


class Environment(str, Enum):
    """Valid deployment environments."""

    LOCAL = "local"
    TEST = "test"
    PROD = "prod"


class Settings(BaseSettings):
    """Application configuration.

    Validation rules:
    - DATABASE_URL is always required
    - OPENAI_API_KEY, AUTH0_DOMAIN and AUTH0_CLIENT_ID are required in all environments
    """

    beta_env: Environment = Field(default=Environment.LOCAL, alias="BETA_ENV")
    database_url: Annotated[str, Field(alias="DATABASE_URL")]
    port: int = Field(default=3001, alias="PORT")
    log_format: str = Field(default="json", alias="LOG_FORMAT")

    # Auth0 settings
    auth0_domain: str | None = Field(default=None, alias="AUTH0_DOMAIN")
    auth0_client_id: str | None = Field(default=None, alias="AUTH0_CLIENT_ID")
    auth0_audience: str | None = Field(default=None, alias="AUTH0_AUDIENCE")
    userinfo_cache_ttl_s: int = Field(default=900, alias="USERINFO_CACHE_TTL_S")

    # Language-model provider settings
    openai_api_key: str | None = Field(default=None, alias="OPENAI_API_KEY")
    openai_model: str = Field(default="gpt-4o-mini", alias="OPENAI_MODEL")
    openai_base_url: str = Field(default="https://api.openai.com/v1", alias="OPENAI_BASE_URL")
    llm_timeout_s: int = Field(default=120, alias="LLM_TIMEOUT_S")

    model_config = {
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "extra": "ignore",
    }

    @model_validator(mode="after")
    def validate_required_settings(self) -> "Settings":
        """Ensure required settings are present at startup."""
        missing = []
        if not self.openai_api_key:
            missing.append("OPENAI_API_KEY")
        if not self.auth0_domain:
            missing.append("AUTH0_DOMAIN")
        if not self.auth0_client_id:
            missing.append("AUTH0_CLIENT_ID")

        if missing:
            raise ValueError(f"Missing required settings: {', '.join(missing)}")

        if self.userinfo_cache_ttl_s < 1:
            raise ValueError("USERINFO_CACHE_TTL_S must be >= 1")

        return self

    @property
    def normalized_domain(self) -> str:
        """Auth0 domain without scheme or trailing slash."""
        domain = self.auth0_domain or ""
        for prefix in ("https://", "http://"):
            if domain.startswith(prefix):
                domain = domain[len(prefix) :]
        return domain.rstrip("/")

    @property
    def jwks_url(self) -> str:
        return f"https://{self.normalized_domain}/.well-known/jwks.json"

    @property
    def issuer(self) -> str:
        return f"https://{self.normalized_domain}/"

    @property
    def userinfo_url(self) -> str:
        return f"https://{self.normalized_domain}/userinfo"

    @property
    def management_audience(self) -> str:
        """Audience carried by machine-to-machine tokens."""
        return f"https://{self.normalized_domain}/api/v2/"

    @property
    def extra_audience_list(self) -> list[str]:
        """Parse comma-separated AUTH0_AUDIENCE into a list."""
        if self.auth0_audience:
            return [a.strip() for a in self.auth0_audience.split(",") if a.strip()]
        return []


@lru_cache
def get_settings() -> Settings:
    """Get cached application settings.

    Raises:
        ValidationError: If required settings are missing or invalid.
    """
    return Settings()


def clear_settings_cache() -> None:
    """Clear the settings cache. Useful for testing."""
    get_settings.cache_clear()
