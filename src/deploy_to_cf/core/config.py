"""Configuration management for deploy-to-cf."""

import os
from typing import Optional

from pydantic import Field, HttpUrl, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Service configuration settings."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Server configuration
    host: str = Field(default_factory=lambda: os.getenv("HOST", "0.0.0.0"), description="Server host")
    port: int = Field(default_factory=lambda: int(os.getenv("PORT", "3000")), description="Server port")
    workers: int = Field(1, description="Number of worker processes")
    reload: bool = Field(False, description="Enable auto-reload in development")

    # Cloud Foundry / UAA endpoints
    cf_url: str = Field("https://api.example.com", description="Cloud Controller API endpoint")
    auth_url: str = Field("https://login.example.com/oauth/authorize", description="OAuth authorization endpoint")
    token_url: str = Field("https://uaa.example.com/oauth/token", description="OAuth token endpoint")
    client_id: str = Field("cf", description="OAuth client identifier")
    client_secret: str = Field("", description="OAuth client secret")

    # Orchestration
    service_timeout: int = Field(600, description="Seconds to wait for each backing service")
    poll_interval: float = Field(5.0, description="Seconds between service status queries")
    cf_binary: str = Field("cf", description="Path or name of the cf CLI")
    status_query: str = Field("lines", pattern="^(lines|structured)$")
    cleanup_services_on_failure: bool = Field(
        False,
        description="Delete services created by a failed run",
    )
    default_app_name: str = Field("app", description="Fallback application name")

    # Source repository
    manifest_filename: str = Field("manifest.yml", description="Deployment descriptor file name")
    github_api_url: HttpUrl = Field("https://api.github.com", description="GitHub API base URL")
    github_token: Optional[str] = Field(None, description="Optional GitHub API token")

    # Archive download
    archive_timeout_seconds: float = Field(120.0, description="Total archive download timeout")
    archive_max_retries: int = Field(3, description="Archive download attempts")

    # Observability
    log_level: str = Field("INFO")
    log_format: str = Field("json")
    metrics_enabled: bool = Field(True)

    @field_validator("service_timeout")
    @classmethod
    def validate_service_timeout(cls, v: int) -> int:
        if v <= 0:
            raise ValueError("service_timeout must be positive")
        return v

    @field_validator("poll_interval")
    @classmethod
    def validate_poll_interval(cls, v: float) -> float:
        """A zero interval would never advance the elapsed-time bound."""
        if v <= 0:
            raise ValueError("poll_interval must be positive")
        return v

    @property
    def github_api_base(self) -> str:
        """GitHub API URL without trailing slash."""
        return str(self.github_api_url).rstrip("/")
