"""Application-level exception types.

This module defines domain errors used across services/adapters, enabling
consistent error handling, logging, and API responses.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, NotRequired, TypedDict


PRIVATE_KEY_HINT = (
    "Your private key (usually a .pem file) is not correct. Go to "
    "https://github.com/settings/apps/YOUR_APP and generate a new PEM file."
)
SECRET_MISMATCH_HINT = (
    "Go to https://github.com/settings/apps/YOUR_APP and verify that the App ID "
    "and webhook secret match the GITHUB_APP_ID and WEBHOOK_SECRET values."
)


class ErrorDetails(TypedDict, total=False):
    """Structured error context for observability and clients.

    Fields are optional to keep backward compatibility while encouraging
    consistent shapes across the codebase.
    """

    code: str
    message: str
    hint: str
    http_status: int
    retry_after: float
    installation_id: int
    url: str
    request_id: str
    context: NotRequired[dict[str, Any]]


@dataclass
class AppError(Exception):
    """Base error for application/domain failures.

    Attributes:
        code: Stable, machine-readable error code.
        message: Human-readable error message.
        details: Optional structured details for debugging/observability.
    """

    code: str
    message: str
    details: ErrorDetails | None = None

    def __post_init__(self) -> None:
        # Populate Exception args so str(error) is useful in logs/tracebacks.
        super().__init__(self.message)

    @property
    def hint(self) -> str | None:
        return (self.details or {}).get("hint")


class ValidationAppError(AppError):
    """Raised when inbound input validation fails."""


class ConfigurationError(AppError):
    """Raised when configuration is malformed; detected before any network call."""


class SigningError(AppError):
    """Raised when the app assertion cannot be signed."""


class GitHubApiError(AppError):
    """Raised when the platform answers with a non-2xx status."""

    @property
    def status_code(self) -> int | None:
        return (self.details or {}).get("http_status")


class AuthenticationError(GitHubApiError):
    """Raised when the platform rejects the presented credential."""


class RateLimitedByUpstream(GitHubApiError):
    """Raised when the platform throttles the caller. Never retried here."""

    @property
    def retry_after(self) -> float | None:
        return (self.details or {}).get("retry_after")


class TransportError(AppError):
    """Raised when the call never produced an HTTP response."""
