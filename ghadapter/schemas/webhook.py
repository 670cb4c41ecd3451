"""Pydantic schemas for webhook deliveries."""

from __future__ import annotations

from typing import Any, Dict

from pydantic import BaseModel, Field


class WebhookEvent(BaseModel):
    """One webhook delivery as seen by handlers."""

    id: str = Field(..., description="Delivery id (X-GitHub-Delivery).")
    name: str = Field(..., description="Event name (X-GitHub-Event), e.g. 'issues'.")
    payload: Dict[str, Any] = Field(default_factory=dict, description="Parsed JSON body.")

    @property
    def action(self) -> str | None:
        return self.payload.get("action")

    @property
    def installation_id(self) -> int | None:
        installation = self.payload.get("installation") or {}
        return installation.get("id")

    @property
    def qualified_name(self) -> str:
        """``"<name>.<action>"`` when the payload has an action, else the name."""
        return f"{self.name}.{self.action}" if self.action else self.name


class WebhookAccepted(BaseModel):
    """Acknowledgement returned to GitHub for an accepted delivery."""

    id: str = Field(..., description="Delivery id the dispatch was scheduled for.")
    event: str = Field(..., description="Qualified event name.")
    accepted: bool = Field(True, description="Always true; dispatch happens after the response.")
