"""Application factory for the webhook service.

Centralizes app construction (adapter, supervisor, middleware, handlers,
routers) so tests can build isolated instances with their own adapter.
"""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import AsyncIterator

from fastapi import FastAPI

from ghadapter.api.routes import health_router, webhooks_router
from ghadapter.core.config import settings
from ghadapter.core.exception_handlers import setup_exception_handlers
from ghadapter.core.logging import configure_logging
from ghadapter.core.middleware import request_id_middleware
from ghadapter.core.supervisor import Supervisor
from ghadapter.services.application import Application
from ghadapter.services.github_app import create_github_app


def create_app(
    application: Application | None = None,
    supervisor: Supervisor | None = None,
) -> FastAPI:
    """Create and configure the FastAPI application instance.

    Args:
        application: Handler registry to dispatch deliveries to; built from
            settings when omitted.
        supervisor: Boundary collecting dispatch outcomes; built from
            settings when omitted.

    Returns:
        Configured FastAPI app with middleware, handlers and routers.

    Raises:
        ConfigurationError: If the GitHub settings are malformed.
    """
    # Logging first so subsequent init logs are formatted as desired
    configure_logging(settings.log)

    application = application or Application(create_github_app())
    supervisor = supervisor or Supervisor(settings.supervisor.failure_policy)

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        yield
        await supervisor.join()
        await application.adapter.aclose()

    app = FastAPI(
        title="GitHub App Webhook Adapter",
        description=(
            "Receives GitHub webhook deliveries and dispatches them to registered "
            "handlers with an authenticated, rate-limited GitHub API client."
        ),
        version="0.1.0",
        lifespan=lifespan,
    )
    app.state.application = application
    app.state.supervisor = supervisor

    app.middleware("http")(request_id_middleware)

    setup_exception_handlers(app)

    app.include_router(webhooks_router, prefix=settings.app.webhook_path)
    app.include_router(health_router)

    return app
