"""Handler registry that routes webhook events to extensions."""

from __future__ import annotations

import asyncio
import logging
from collections import defaultdict
from typing import Awaitable, Callable, Iterable

from ghadapter.core.logging import log_context
from ghadapter.schemas.webhook import WebhookEvent
from ghadapter.services.context import Context
from ghadapter.services.github_app import GitHubApp

logger = logging.getLogger(__name__)

Handler = Callable[[Context], Awaitable[None]]

WILDCARD = "*"


class Application:
    """Subscribes handlers to events and runs them for each delivery.

    Handlers subscribe to an event name (``"issues"``), a qualified name
    (``"issues.opened"``) or ``"*"``. A delivery builds one Context shared
    by every matching handler; handlers run concurrently.

    Example:
        >>> application.on("issues.opened", welcome)
        >>> application.on(["pull_request.opened", "pull_request.synchronize"], lint)
    """

    def __init__(self, adapter: GitHubApp) -> None:
        self.adapter = adapter
        self._handlers: dict[str, list[Handler]] = defaultdict(list)

    def on(self, event_names: str | Iterable[str], handler: Handler) -> None:
        names = [event_names] if isinstance(event_names, str) else list(event_names)
        for name in names:
            self._handlers[name].append(handler)

    def handlers_for(self, event: WebhookEvent) -> list[Handler]:
        keys = [WILDCARD, event.name]
        if event.action:
            keys.append(event.qualified_name)
        return [handler for key in keys for handler in self._handlers.get(key, [])]

    async def receive(self, event: WebhookEvent) -> None:
        """Run every handler subscribed to ``event``.

        Raises:
            Exception: The first handler failure, after all handlers finished.
        """
        handlers = self.handlers_for(event)
        with log_context(
            request_id=event.id,
            event=event.qualified_name,
            installation_id=event.installation_id,
        ):
            if not handlers:
                logger.debug("webhook.no_handlers")
                return

            context = await self.adapter.create_context(event)
            results = await asyncio.gather(*(handler(context) for handler in handlers), return_exceptions=True)
        failures = [result for result in results if isinstance(result, BaseException)]
        if failures:
            raise failures[0]
