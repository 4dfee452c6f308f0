"""Configuration management for pyinflate."""

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class InflatorSettings(BaseSettings):
    """Application settings from PYINFLATE_* environment variables"""

    # Inflation defaults
    default_max_mb: int = Field(default=1024, ge=0)
    default_step_mb: int = Field(default=10, ge=1)
    step_interval: float = Field(default=2.0, ge=0.0)  # seconds between steps

    # API
    api_host: str = "0.0.0.0"
    api_port: int = 8080

    # Logging
    log_level: str = "INFO"

    model_config = SettingsConfigDict(
        env_prefix="PYINFLATE_",
        env_file=".env",
        case_sensitive=False,
        extra="ignore",
    )


def get_settings() -> InflatorSettings:
    """Load settings from the environment."""
    return InflatorSettings()
