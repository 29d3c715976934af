"""Application configuration using pydantic-settings."""

from functools import lru_cache
from pathlib import Path
from typing import Literal

from pydantic_settings import BaseSettings, SettingsConfigDict

# Profiles shipped with the service
DEFAULT_PROFILES_DIR = Path(__file__).parent.parent.parent / "profiles"


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Application environment
    env: Literal["dev", "test", "staging", "prod"] = "dev"

    # Logging
    log_level: str = "INFO"

    # Profile (rule set) selection
    profiles_dir: Path = DEFAULT_PROFILES_DIR
    profile_filename: str = "dans-bagit-profile-v1.0.0.yaml"

    # Rule engine
    engine_max_workers: int = 1
    engine_timeout_seconds: float | None = None

    # Upload limits for zipped bags
    max_upload_bytes: int = 1024 * 1024 * 1024

    @property
    def is_dev(self) -> bool:
        """Check if running in development mode."""
        return self.env == "dev"

    @property
    def is_prod(self) -> bool:
        """Check if running in production mode."""
        return self.env == "prod"


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()


settings = get_settings()
