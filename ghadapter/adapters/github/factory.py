"""Factory functions building the adapter's collaborators from settings."""

from __future__ import annotations

import httpx
from cryptography.exceptions import UnsupportedAlgorithm
from cryptography.hazmat.primitives.serialization import load_pem_private_key

from ghadapter.adapters.github.credential_manager import CredentialManager, build_base_url
from ghadapter.adapters.github.credentials import AppIdentity
from ghadapter.adapters.github.executor import RequestExecutor
from ghadapter.adapters.rate_limit.base import AbstractRateLimiter
from ghadapter.core.config import GitHubAppSettings, settings
from ghadapter.core.errors import PRIVATE_KEY_HINT, ConfigurationError
from ghadapter.core.rate_limit import get_rate_limiter


def create_request_executor(
    github_settings: GitHubAppSettings | None = None,
    *,
    limiter: AbstractRateLimiter | None = None,
    transport: httpx.AsyncBaseTransport | None = None,
) -> RequestExecutor:
    """Build the executor from settings, pacing through the shared limiter.

    Raises:
        ConfigurationError: If the enterprise host is malformed.
    """
    cfg = github_settings or settings.github
    return RequestExecutor(
        limiter=limiter or get_rate_limiter(),
        base_url=build_base_url(cfg.enterprise_host),
        timeout_seconds=cfg.timeout_seconds,
        debug=cfg.debug,
        transport=transport,
    )


def create_credential_manager(
    executor: RequestExecutor,
    github_settings: GitHubAppSettings | None = None,
) -> CredentialManager:
    """Build the credential manager from settings.

    Raises:
        ConfigurationError: If no private key is configured, the key file
            cannot be read, or the key is not a usable PEM private key.
    """
    cfg = github_settings or settings.github
    try:
        private_key = cfg.load_private_key()
    except OSError as exc:
        raise ConfigurationError(
            code="private_key_unreadable",
            message=f"Could not read GITHUB_PRIVATE_KEY_PATH: {exc}",
        ) from exc
    if not private_key.strip():
        raise ConfigurationError(
            code="private_key_missing",
            message="Set GITHUB_PRIVATE_KEY or GITHUB_PRIVATE_KEY_PATH",
        )
    try:
        load_pem_private_key(private_key.encode(), password=None)
    except (ValueError, TypeError, UnsupportedAlgorithm) as exc:
        raise ConfigurationError(
            code="private_key_invalid",
            message=f"GITHUB_PRIVATE_KEY is not a usable PEM private key: {exc}",
            details={"hint": PRIVATE_KEY_HINT},
        ) from exc

    return CredentialManager(
        AppIdentity(app_id=cfg.app_id, private_key=private_key),
        executor,
        enterprise_host=cfg.enterprise_host,
        token_ttl_seconds=cfg.installation_token_ttl_seconds,
    )
