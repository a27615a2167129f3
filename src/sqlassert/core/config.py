"""Configuration management.

Uses pydantic-settings for type-safe configuration from environment variables.
"""

from functools import lru_cache

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings.

    All settings can be overridden via environment variables.
    Prefix: SQLASSERT_
    """

    model_config = SettingsConfigDict(
        env_prefix="SQLASSERT_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Rules
    max_falsifying_examples: int = Field(
        default=3,
        ge=0,
        description="Default number of offending values reported per failed column rule",
    )

    # Execution
    isolation_level: str = Field(
        default="SERIALIZABLE",
        description="Transaction isolation level used for every rule query",
    )
    max_workers: int = Field(
        default=1,
        ge=1,
        description="Rules evaluated concurrently by the suite runner (1 = sequential)",
    )

    # Logging
    log_level: str = Field(default="INFO")
    log_format: str = Field(default="console")  # 'json' or 'console'


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
