"""
Configuration management for the TOEIC admin console.

Settings come from environment variables (or a local .env file) and are
validated once per run; the CLI reads them through get_settings().
"""

from __future__ import annotations

from pathlib import Path
from typing import Dict, List, Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

SUPPORTED_LOCALES = ("en", "vi")


class ApiConfig(BaseSettings):
    """REST backend configuration."""

    base_url: str = Field(default="http://localhost:3000/api", alias="TOEIC_API_BASE_URL")
    timeout: float = Field(default=30.0, alias="TOEIC_API_TIMEOUT")

    @field_validator("base_url")
    @classmethod
    def strip_trailing_slash(cls, v):
        return v.rstrip("/")

    model_config = SettingsConfigDict(env_prefix="", extra="ignore")


class SessionConfig(BaseSettings):
    """Local session storage (bearer token and serialized user)."""

    session_file: Path = Field(
        default=Path.home() / ".toeic_admin" / "session.json", alias="TOEIC_SESSION_FILE"
    )
    idle_timeout_seconds: int = Field(default=300, alias="TOEIC_IDLE_TIMEOUT_SECONDS")

    @field_validator("session_file", mode="before")
    @classmethod
    def expand_user(cls, v):
        if isinstance(v, str):
            return Path(v).expanduser()
        return v

    model_config = SettingsConfigDict(env_prefix="", extra="ignore")


class BatchConfig(BaseSettings):
    """Fan-out and AI batching configuration."""

    max_workers: int = Field(default=6, alias="MAX_WORKERS")
    ai_batch_size: int = Field(default=10, alias="AI_BATCH_SIZE")
    ai_batch_delay_seconds: float = Field(default=12.0, alias="AI_BATCH_DELAY_SECONDS")

    model_config = SettingsConfigDict(env_prefix="", extra="ignore")


class Settings(BaseSettings):
    """Main application settings."""

    # Environment
    environment: str = Field(default="production", alias="ENVIRONMENT")
    debug: bool = Field(default=False, alias="DEBUG")
    dry_run: bool = Field(default=False, alias="DRY_RUN")
    locale: str = Field(default="en", alias="TOEIC_LOCALE")

    # Component configurations
    api: ApiConfig = Field(default_factory=ApiConfig)
    session: SessionConfig = Field(default_factory=SessionConfig)
    batch: BatchConfig = Field(default_factory=BatchConfig)

    @field_validator("debug", "dry_run", mode="before")
    @classmethod
    def parse_flag(cls, v):
        if isinstance(v, str):
            return v.lower() in ("1", "true", "yes")
        return bool(v)

    @field_validator("locale", mode="before")
    @classmethod
    def parse_locale(cls, v):
        value = (v or "en").strip().lower()
        return value if value in SUPPORTED_LOCALES else "en"

    def model_post_init(self, __context) -> None:
        # Sub-configurations read their own aliases from the environment
        self.api = ApiConfig()
        self.session = SessionConfig()
        self.batch = BatchConfig()

    model_config = SettingsConfigDict(
        env_prefix="",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )


# Global settings instance
settings: Optional[Settings] = None


def get_settings() -> Settings:
    """Get the global settings instance."""
    global settings
    if settings is None:
        settings = Settings()
    return settings


def reset_settings() -> None:
    """Drop the cached settings so the next access re-reads the environment."""
    global settings
    settings = None


def validate_required_settings(for_workflow: str = "api") -> List[str]:
    """
    Validate that required settings are present for specific workflows.

    Args:
        for_workflow: Workflow name ("api", "ai" or "minimal")

    Returns:
        List of missing or invalid settings
    """
    missing = []
    try:
        config = get_settings()

        if for_workflow in ("api", "ai"):
            if not config.api.base_url:
                missing.append("TOEIC_API_BASE_URL")
            elif not config.api.base_url.startswith(("http://", "https://")):
                missing.append("TOEIC_API_BASE_URL (must start with http:// or https://)")
            if config.api.timeout <= 0:
                missing.append("TOEIC_API_TIMEOUT (must be positive)")

        if for_workflow == "ai":
            if config.batch.ai_batch_size < 1:
                missing.append("AI_BATCH_SIZE (must be at least 1)")
            if config.batch.ai_batch_delay_seconds < 0:
                missing.append("AI_BATCH_DELAY_SECONDS (must not be negative)")

    except Exception as e:
        missing.append(f"Configuration error: {e}")

    return missing


def configuration_summary() -> Dict[str, str]:
    """Return a flat summary of the current configuration for display."""
    config = get_settings()
    return {
        "Environment": config.environment,
        "Debug Mode": str(config.debug),
        "Dry Run": str(config.dry_run),
        "Locale": config.locale,
        "API Base URL": config.api.base_url,
        "API Timeout": f"{config.api.timeout:g}s",
        "Session File": str(config.session.session_file),
        "Idle Timeout": f"{config.session.idle_timeout_seconds}s",
        "Max Workers": str(config.batch.max_workers),
        "AI Batch Size": str(config.batch.ai_batch_size),
        "AI Batch Delay": f"{config.batch.ai_batch_delay_seconds:g}s",
    }
