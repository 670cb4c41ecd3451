"""Application configuration using Pydantic Settings.

Configuration is environment-aware:
- APP_ENV determines which .env file to load
- Supports: development, testing, staging, production
- Each environment has its own .env.{environment} file
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


# Determine which environment to load (default: development)
APP_ENV = os.getenv("APP_ENV", "development")

# Project root (so .env resolution doesn't depend on current working directory)
PROJECT_ROOT = Path(__file__).resolve().parents[2]

# Map environments to their respective .env files (relative to PROJECT_ROOT)
ENV_FILE_MAP = {
    "development": ".env.development",
    "testing": ".env.testing",
    "staging": ".env.staging",
    "production": ".env.production",
}

_env_filename = ENV_FILE_MAP.get(APP_ENV, ".env.development")
_env_path = PROJECT_ROOT / _env_filename

# Only load from file if it exists (production might inject via env vars only)
_env_file = str(_env_path) if _env_path.is_file() else None


# Load .env file early to populate os.environ before creating nested settings
# This is necessary because Pydantic nested BaseSettings don't inherit env_file
if _env_file and not os.getenv("TESTING"):
    from dotenv import load_dotenv
    load_dotenv(_env_file, override=True)


def _build_github_settings() -> "GitHubAppSettings":
    """Build GitHub App settings from environment.

    Pydantic Settings (v2) can populate values from environment variables.
    However, static type checkers often treat required fields as required
    constructor arguments, which is not how BaseSettings is intended to be used.
    """

    return GitHubAppSettings()  # type: ignore[call-arg]


def _build_app_settings() -> "AppSettings":
    return AppSettings()  # type: ignore[call-arg]


def _build_log_settings() -> "LogSettings":
    return LogSettings()  # type: ignore[call-arg]


def _build_supervisor_settings() -> "SupervisorSettings":
    return SupervisorSettings()  # type: ignore[call-arg]


class GitHubAppSettings(BaseSettings):
    """Identity of the GitHub App and how to reach the platform.

    The private key may be given inline (``GITHUB_PRIVATE_KEY``) or as a path
    to a PEM file (``GITHUB_PRIVATE_KEY_PATH``). Key material is only parsed
    when an assertion is signed, so a bad key surfaces as a SigningError.
    """

    app_id: int = Field(
        ...,
        description="Numeric ID of the GitHub App",
    )
    private_key: str | None = Field(
        None,
        description="PEM-encoded private key of the GitHub App",
    )
    private_key_path: str | None = Field(
        None,
        description="Path to a PEM file holding the private key",
    )
    enterprise_host: str | None = Field(
        None,
        description="GitHub Enterprise host (bare host, no scheme), e.g. ghe.example.com",
    )
    installation_token_ttl_seconds: int = Field(
        3540,
        description="Seconds to cache installation tokens (one minute short of GitHub's expiry)",
        ge=1,
    )
    timeout_seconds: float = Field(
        30.0,
        description="Timeout for outbound API calls in seconds",
    )
    debug: bool = Field(
        False,
        description="Log request/response metadata for every outbound API call",
    )

    model_config = SettingsConfigDict(
        env_prefix="GITHUB_",
        case_sensitive=False,
    )

    def load_private_key(self) -> str:
        """Return the PEM text from the inline value or the configured file."""

        if self.private_key:
            # Env files often carry the key with escaped newlines
            return self.private_key.replace("\\n", "\n")
        if self.private_key_path:
            return Path(self.private_key_path).read_text(encoding="utf-8")
        return ""


class AppSettings(BaseSettings):
    """Application-wide configuration."""

    rate_limit_max_concurrent: int = Field(
        1,
        description="Maximum number of outbound API calls in flight at once",
        ge=1,
    )
    rate_limit_min_interval_seconds: float = Field(
        1.0,
        description="Minimum spacing between the starts of two outbound API calls",
        ge=0,
    )
    webhook_path: str = Field(
        "/webhooks",
        description="Route receiving webhook deliveries",
    )

    model_config = SettingsConfigDict(
        env_prefix="APP_",
        case_sensitive=False,
    )


class SupervisorSettings(BaseSettings):
    """Policy applied to failures of background webhook dispatches."""

    failure_policy: Literal["log", "raise"] = Field(
        "log",
        description="'log' keeps serving after a failed dispatch; 'raise' re-raises it from join()",
    )

    model_config = SettingsConfigDict(
        env_prefix="SUPERVISOR_",
        case_sensitive=False,
    )


class LogSettings(BaseSettings):
    """Logging configuration; records always go to stdout."""

    level: str = Field("INFO", description="Root log level")
    format: str = Field("json", description="'json' or 'plain'")
    request_id_header: str = Field(
        "X-Request-ID",
        description="Header used to propagate the correlation id",
    )

    model_config = SettingsConfigDict(
        env_prefix="LOG_",
        case_sensitive=False,
    )


class Settings(BaseSettings):
    """Main application settings container.

    Automatically loads from the appropriate .env.{APP_ENV} file.
    Raises validation errors on startup if required settings are missing.
    """

    app_env: str = APP_ENV
    github: GitHubAppSettings = Field(default_factory=_build_github_settings)
    app: AppSettings = Field(default_factory=_build_app_settings)
    supervisor: SupervisorSettings = Field(default_factory=_build_supervisor_settings)
    log: LogSettings = Field(default_factory=_build_log_settings)

    model_config = SettingsConfigDict(
        case_sensitive=False,
    )


# Global settings instance - composed from domain-specific settings
# Nested settings are created via default_factory so env loading works.
settings = Settings()
