"""
Configuration module for PR Review Bot.

Uses pydantic-settings for configuration management with environment variables.
"""

import logging
from functools import lru_cache
from pathlib import Path
from typing import Literal, Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # GitHub App Configuration
    github_app_id: str = Field(
        default="",
        description="GitHub App identifier",
    )
    github_private_key: str = Field(
        default="",
        description="GitHub App private key (PEM)",
    )
    github_private_key_path: Optional[str] = Field(
        default=None,
        description="Path to a PEM file holding the GitHub App private key",
    )
    github_webhook_secret: str = Field(
        default="",
        description="Shared secret used to sign webhook deliveries",
    )
    github_api_url: str = Field(
        default="https://api.github.com",
        description="GitHub API base URL",
    )
    github_request_timeout: float = Field(
        default=30.0,
        gt=0.0,
        description="Timeout in seconds for GitHub API requests",
    )

    # Pipeline Settings
    webhook_path: str = Field(
        default="/api/review",
        description="Path receiving webhook deliveries",
    )
    include_full_context: bool = Field(
        default=True,
        description="Pass full file contents to review generation",
    )
    max_concurrent_fetches: int = Field(
        default=0,
        ge=0,
        description="Upper bound on parallel file fetches per pull request (0 = unbounded)",
    )
    deduplicate_in_flight: bool = Field(
        default=False,
        description="Skip a pull request event while a run for the same PR is in flight",
    )
    max_file_chars: int = Field(
        default=20_000,
        ge=100,
        description="Maximum characters of a single file included in the prompt",
    )

    # OpenAI Configuration
    openai_api_key: str = Field(
        default="",
        description="OpenAI API key for GPT integration",
    )
    openai_model: str = Field(
        default="gpt-4",
        description="OpenAI model to use for review generation",
    )
    openai_temperature: float = Field(
        default=0.3,
        ge=0.0,
        le=2.0,
        description="Temperature for OpenAI responses (lower = more consistent)",
    )
    openai_max_tokens: int = Field(
        default=2000,
        ge=100,
        le=8000,
        description="Maximum tokens for OpenAI responses",
    )

    # Application Settings
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = Field(
        default="INFO",
        description="Logging level",
    )
    debug: bool = Field(
        default=False,
        description="Enable debug mode",
    )

    # Server Configuration
    host: str = Field(
        default="0.0.0.0",
        description="Server host",
    )
    port: int = Field(
        default=3000,
        ge=1,
        le=65535,
        description="Server port",
    )

    # Cache Settings
    cache_ttl: int = Field(
        default=3600,
        ge=0,
        description="Cache TTL in seconds",
    )
    cache_max_size: int = Field(
        default=1000,
        ge=1,
        description="Maximum cache entries",
    )

    @field_validator("log_level", mode="before")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Validate and normalize log level."""
        if isinstance(v, str):
            return v.upper()
        return v

    @field_validator("github_private_key", mode="after")
    @classmethod
    def unescape_private_key(cls, v: str) -> str:
        """Allow PEM keys stored on one line with literal \\n sequences."""
        return v.replace("\\n", "\n").strip()

    @property
    def resolved_private_key(self) -> str:
        """Private key from the environment, falling back to the key file."""
        if self.github_private_key:
            return self.github_private_key
        if self.github_private_key_path:
            return Path(self.github_private_key_path).read_text(encoding="utf-8").strip()
        return ""

    @property
    def is_github_app_configured(self) -> bool:
        """Check if the GitHub App identity is properly configured."""
        has_key = bool(self.github_private_key or self.github_private_key_path)
        return bool(self.github_app_id and has_key and self.github_webhook_secret)

    @property
    def is_openai_configured(self) -> bool:
        """Check if OpenAI is properly configured."""
        return bool(self.openai_api_key and self.openai_api_key != "your_openai_api_key_here")


@lru_cache()
def get_settings() -> Settings:
    """
    Get cached application settings.

    Returns:
        Settings: Application settings instance.
    """
    return Settings()


def setup_logging(settings: Settings | None = None) -> logging.Logger:
    """
    Configure application logging.

    Args:
        settings: Optional settings instance. If not provided, uses cached settings.

    Returns:
        logging.Logger: Configured logger instance.
    """
    if settings is None:
        settings = get_settings()

    logging.basicConfig(
        level=getattr(logging, settings.log_level),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )

    logger = logging.getLogger("pr_review_bot")
    logger.setLevel(getattr(logging, settings.log_level))

    return logger
