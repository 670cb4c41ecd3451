"""Signing app assertions and minting installation tokens.

Authenticating as the app uses a JWT signed with the app's private key.
Authenticating as an installation uses an access token obtained by
exchanging such a JWT at ``POST /app/installations/{id}/access_tokens``.
Installation tokens live one hour on GitHub; they are cached slightly less.

Reference: https://docs.github.com/en/apps/creating-github-apps/authenticating-with-a-github-app
"""

from __future__ import annotations

import logging
import re
import time
from typing import Callable

import jwt

from ghadapter.adapters.github.credentials import (
    AppCredential,
    AppIdentity,
    Credential,
    InstallationCredential,
    InstallationToken,
    SignedAssertion,
)
from ghadapter.adapters.github.executor import DEFAULT_API_URL, RequestDescriptor, RequestExecutor
from ghadapter.core.errors import PRIVATE_KEY_HINT, ConfigurationError, GitHubApiError, SigningError
from ghadapter.utils.simple_cache import ExpiringCache, installation_token_key

logger = logging.getLogger(__name__)

# GitHub rejects assertions valid for longer than ten minutes and tolerates
# about a minute of clock drift; one minute keeps every JWT single-use.
ASSERTION_LIFETIME_SECONDS = 60
DEFAULT_INSTALLATION_TOKEN_TTL_SECONDS = 3540

_SCHEME_RE = re.compile(r"^https?://", re.IGNORECASE)


def build_base_url(enterprise_host: str | None) -> str:
    """Resolve the REST API root for github.com or a GitHub Enterprise host.

    Raises:
        ConfigurationError: If the host carries an ``http(s)://`` prefix.
    """
    if not enterprise_host:
        return DEFAULT_API_URL
    if _SCHEME_RE.match(enterprise_host):
        raise ConfigurationError(
            code="enterprise_host_has_scheme",
            message=(
                "Your GITHUB_ENTERPRISE_HOST environment variable should not "
                "begin with https:// or http://"
            ),
            details={"hint": "Use the bare host, e.g. ghe.example.com"},
        )
    return f"https://{enterprise_host.rstrip('/')}/api/v3"


class CredentialManager:
    """Resolves the credential for app-level or installation-level calls.

    The token cache belongs to this object; nothing else writes to it.

    Attributes:
        identity: App id and private key.
        token_ttl_seconds: How long an installation token stays cached.
    """

    def __init__(
        self,
        identity: AppIdentity,
        executor: RequestExecutor,
        *,
        enterprise_host: str | None = None,
        token_ttl_seconds: float = DEFAULT_INSTALLATION_TOKEN_TTL_SECONDS,
        cache: ExpiringCache[InstallationToken] | None = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.identity = identity
        self.token_ttl_seconds = token_ttl_seconds
        self._executor = executor
        self._enterprise_host = enterprise_host
        self._cache: ExpiringCache[InstallationToken] = cache or ExpiringCache(
            ttl_seconds=token_ttl_seconds,
            max_entries=None,
        )
        self._clock = clock

    def sign_assertion(self) -> SignedAssertion:
        """Sign a fresh 60-second RS256 assertion for the app.

        Raises:
            SigningError: If the private key cannot be used for signing.
        """
        issued_at = int(self._clock())
        payload = {
            "iat": issued_at,
            "exp": issued_at + ASSERTION_LIFETIME_SECONDS,
            # GitHub accepts the app id as a string; some JWT libraries insist on one
            "iss": str(self.identity.app_id),
        }
        try:
            token = jwt.encode(payload, self.identity.private_key, algorithm="RS256")
        except Exception as exc:
            logger.error(
                "github.sign_failed",
                extra={"app_id": self.identity.app_id, "error_type": type(exc).__name__},
            )
            raise SigningError(
                code="private_key_invalid",
                message=f"Could not sign the app assertion: {exc}",
                details={"hint": PRIVATE_KEY_HINT},
            ) from exc

        return SignedAssertion(
            token=token,
            issued_at=issued_at,
            expires_at=issued_at + ASSERTION_LIFETIME_SECONDS,
            issuer=self.identity.app_id,
        )

    async def resolve_credential(self, installation_id: int | None = None) -> Credential:
        """Return the credential for an app-level or installation-level call.

        Args:
            installation_id: Installation to act for. ``None`` authenticates
                as the app itself, which only works for app endpoints.

        Returns:
            AppCredential when no installation is given, otherwise an
            InstallationCredential backed by a cached or freshly minted token.

        Raises:
            ConfigurationError: Malformed enterprise host; raised before any call.
            SigningError: The assertion could not be signed.
            GitHubApiError: The token exchange failed (see its subclasses).
        """
        build_base_url(self._enterprise_host)

        if installation_id is None:
            return AppCredential(self.sign_assertion())

        token = await self._cache.get_or_compute(
            installation_token_key(installation_id),
            lambda: self._exchange(installation_id),
            ttl_seconds=self.token_ttl_seconds,
        )
        return InstallationCredential(installation_id=installation_id, token=token)

    async def _exchange(self, installation_id: int) -> InstallationToken:
        logger.debug(
            "github.installation_token.create",
            extra={"installation_id": installation_id},
        )
        response = await self._executor.execute(
            RequestDescriptor(
                method="POST",
                url=f"/app/installations/{installation_id}/access_tokens",
            ),
            AppCredential(self.sign_assertion()),
        )
        data = response.data if isinstance(response.data, dict) else {}
        if not data.get("token"):
            raise GitHubApiError(
                code="installation_token_missing",
                message="Token exchange returned no token",
                details={"http_status": response.status_code, "installation_id": installation_id},
            )
        return InstallationToken(token=data["token"], expires_at=data.get("expires_at"))

    def cache_stats(self) -> dict[str, int | float | None]:
        return self._cache.stats()
