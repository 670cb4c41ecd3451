"""Webhook intake route.

Signature verification is not performed here; deploy behind something that
verifies ``X-Hub-Signature-256`` if the endpoint is publicly reachable.
"""

from __future__ import annotations

import logging
import uuid
from typing import Annotated

from fastapi import APIRouter, BackgroundTasks, Header, Request, status

from ghadapter.core.errors import ValidationAppError
from ghadapter.schemas.webhook import WebhookAccepted, WebhookEvent

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Webhooks"])


@router.post(
    "",
    status_code=status.HTTP_202_ACCEPTED,
    response_model=WebhookAccepted,
)
async def receive_webhook(
    request: Request,
    background_tasks: BackgroundTasks,
    x_github_event: Annotated[str | None, Header(alias="X-GitHub-Event")] = None,
    x_github_delivery: Annotated[str | None, Header(alias="X-GitHub-Delivery")] = None,
) -> WebhookAccepted:
    """Accept one delivery and dispatch it after responding.

    Handlers run under the supervisor once the 202 has been sent, so a slow
    or failing handler never makes GitHub retry the delivery.

    Raises:
        ValidationAppError: Missing event header or a body that is not a JSON object.
    """
    if not x_github_event:
        raise ValidationAppError(
            code="missing_event_header",
            message="Missing X-GitHub-Event header",
        )

    try:
        payload = await request.json()
    except ValueError as exc:
        raise ValidationAppError(
            code="invalid_payload",
            message="Webhook body must be valid JSON",
        ) from exc
    if not isinstance(payload, dict):
        raise ValidationAppError(
            code="invalid_payload",
            message="Webhook body must be a JSON object",
        )

    event = WebhookEvent(
        id=x_github_delivery or str(uuid.uuid4()),
        name=x_github_event,
        payload=payload,
    )
    logger.debug(
        "webhook.received",
        extra={
            "event_id": event.id,
            "event": event.qualified_name,
            "installation_id": event.installation_id,
        },
    )

    application = request.app.state.application
    supervisor = request.app.state.supervisor
    background_tasks.add_task(
        supervisor.run,
        f"webhook:{event.qualified_name}:{event.id}",
        application.receive,
        event,
    )

    return WebhookAccepted(id=event.id, event=event.qualified_name)
