"""Configuration management for the Orthanc client."""

from typing import Literal

from pydantic import BaseModel, Field, field_validator
from pydantic_settings import BaseSettings

DEFAULT_ENDPOINT = "https://api.orthanc.ai"


class CacheConfig(BaseModel):
    """Response cache settings.

    Attributes:
        enabled: Cache ``query`` results on the client.
        ttl_seconds: Seconds a cached result stays valid (60 default).
        max_size: Maximum number of cached results (1000 default).
    """

    enabled: bool = Field(
        default=False,
        description="Enable the client-side query cache",
    )
    ttl_seconds: float = Field(
        default=60.0,
        gt=0.0,
        description="Seconds before a cached result expires",
    )
    max_size: int = Field(
        default=1000,
        ge=1,
        description="Maximum number of cached results",
    )


class Settings(BaseSettings):
    """Orthanc client configuration loaded from environment variables.

    All settings can be overridden via environment variables with
    the ORTHANC_ prefix. For example:
        ORTHANC_API_KEY=sk-...
        ORTHANC_ENDPOINT=http://localhost:3000
        ORTHANC_CACHE__ENABLED=true
    """

    # Connection
    endpoint: str = Field(
        default=DEFAULT_ENDPOINT,
        description="Base URL of the memory service",
    )
    api_key: str | None = Field(
        default=None,
        description="Bearer credential sent with every request",
    )

    # Request pipeline
    timeout_seconds: float = Field(
        default=30.0,
        gt=0.0,
        description="Hard timeout for a single HTTP attempt",
    )
    retries: int = Field(
        default=3,
        ge=1,
        le=10,
        description="Maximum attempts per call, including the first one",
    )
    retry_delay_seconds: float = Field(
        default=1.0,
        ge=0.0,
        description="Base backoff delay; doubles after each failed attempt",
    )

    # Caching
    cache: CacheConfig = Field(
        default_factory=CacheConfig,
        description="Query result cache settings",
    )

    # Logging
    log_level: str = Field(
        default="INFO",
        description="Logging level",
    )
    log_format: Literal["json", "text"] = Field(
        default="json",
        description="Log output format",
    )

    model_config = {
        "env_prefix": "ORTHANC_",
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "env_nested_delimiter": "__",
    }

    @field_validator("endpoint")
    @classmethod
    def _strip_trailing_slash(cls, value: str) -> str:
        """Normalize the endpoint so paths can be appended directly."""
        return value.rstrip("/")

    @property
    def has_api_key(self) -> bool:
        return bool(self.api_key)


# Global settings instance
settings = Settings()
