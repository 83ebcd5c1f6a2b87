"""
Shared configuration management for the rule conditions engine.
"""

from functools import lru_cache

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class EngineConfig(BaseSettings):
    """Engine settings, read from CONDITIONS_* environment variables."""

    model_config = SettingsConfigDict(
        env_prefix="CONDITIONS_",
        env_file=".env",
        case_sensitive=False,
        extra="ignore"
    )

    # Environment
    env: str = Field(default="local")
    log_level: str = Field(default="info")

    # Serialization
    export_format: str = Field(default="json", pattern="^(json|xml)$")

    # Diagnostics
    log_coercions: bool = Field(default=False)
    enable_metrics: bool = Field(default=True)


@lru_cache()
def get_config() -> EngineConfig:
    """Get the process-wide engine configuration."""
    return EngineConfig()
