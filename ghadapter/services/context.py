"""Per-event context handed to handlers."""

from __future__ import annotations

import logging
from typing import Any

from ghadapter.adapters.github.client import GitHubClient
from ghadapter.schemas.webhook import WebhookEvent


class Context:
    """Event, authenticated client and a logger bound to the delivery.

    Attributes:
        event: The webhook delivery.
        github: Client authenticated for the event's installation, or as the
            app for events that carry no usable installation.
        log: Logger adapter adding ``event_id``/``event`` to every record.
    """

    def __init__(self, event: WebhookEvent, github: GitHubClient, log: logging.LoggerAdapter) -> None:
        self.event = event
        self.github = github
        self.log = log

    @property
    def id(self) -> str:
        return self.event.id

    @property
    def name(self) -> str:
        return self.event.name

    @property
    def payload(self) -> dict[str, Any]:
        return self.event.payload

    def repo(self, **extra: Any) -> dict[str, Any]:
        """Return ``{"owner", "repo"}`` of the event's repository merged with ``extra``.

        Raises:
            ValueError: If the payload has no repository.
        """
        repository = self.payload.get("repository")
        if not repository:
            raise ValueError("repo() is not supported for this webhook payload")
        return {
            "owner": repository["owner"]["login"],
            "repo": repository["name"],
            **extra,
        }

    def issue(self, **extra: Any) -> dict[str, Any]:
        """Like ``repo()`` plus the issue or pull request number."""
        subject = self.payload.get("issue") or self.payload.get("pull_request") or self.payload
        return self.repo(number=subject.get("number"), **extra)
