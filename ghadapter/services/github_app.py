"""The GitHub App adapter: authenticated clients for webhook handlers."""

from __future__ import annotations

import logging

import httpx

from ghadapter.adapters.github.client import GitHubClient
from ghadapter.adapters.github.credential_manager import CredentialManager
from ghadapter.adapters.github.executor import RequestExecutor
from ghadapter.adapters.github.factory import create_credential_manager, create_request_executor
from ghadapter.adapters.github.pagination import Paginator
from ghadapter.adapters.rate_limit.base import AbstractRateLimiter
from ghadapter.core.config import GitHubAppSettings
from ghadapter.schemas.webhook import WebhookEvent
from ghadapter.services.context import Context

logger = logging.getLogger(__name__)


def is_unauthenticated_event(event: WebhookEvent) -> bool:
    """Events that cannot get an installation client.

    Payloads without an installation, and ``installation.deleted`` (the
    installation is already gone when the event arrives).
    """
    return not event.payload.get("installation") or (
        event.name == "installation" and event.action == "deleted"
    )


class GitHubApp:
    """Hands out authenticated GitHub clients.

    Attributes:
        credentials: Resolves and caches credentials.
        executor: Shared executor (and thus the shared rate limiter).
    """

    def __init__(self, credentials: CredentialManager, executor: RequestExecutor) -> None:
        self.credentials = credentials
        self.executor = executor
        self._paginator = Paginator(executor)

    @property
    def app_id(self) -> int:
        return self.credentials.identity.app_id

    async def auth(self, installation_id: int | None = None) -> GitHubClient:
        """Authenticate and return a client for API calls.

        Args:
            installation_id: Installation to act for, usually
                ``context.payload["installation"]["id"]``. Without it the
                client authenticates as the app and can only call app APIs.

        Returns:
            An authenticated GitHubClient.
        """
        credential = await self.credentials.resolve_credential(installation_id)
        return GitHubClient(credential, self.executor, self._paginator)

    async def create_context(self, event: WebhookEvent) -> Context:
        log = logging.LoggerAdapter(logger, {"event_id": event.id, "event": event.qualified_name})

        if is_unauthenticated_event(event):
            github = await self.auth()
            log.debug("context.github is authenticated as the app; this event has no installation")
        else:
            github = await self.auth(event.installation_id)

        return Context(event, github, log)

    async def aclose(self) -> None:
        await self.executor.aclose()


def create_github_app(
    github_settings: GitHubAppSettings | None = None,
    *,
    limiter: AbstractRateLimiter | None = None,
    transport: httpx.AsyncBaseTransport | None = None,
) -> GitHubApp:
    """Build the adapter from settings.

    Raises:
        ConfigurationError: Malformed host override or missing key material.
    """
    executor = create_request_executor(github_settings, limiter=limiter, transport=transport)
    credentials = create_credential_manager(executor, github_settings)
    return GitHubApp(credentials, executor)
