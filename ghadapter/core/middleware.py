"""HTTP middleware for request ID propagation and correlation.

Every request/response pair carries a correlation id. For webhook deliveries
the id is GitHub's ``X-GitHub-Delivery`` so logs from the dispatch can be
matched with the delivery shown in the app's settings page.

Usage:
    app.middleware("http")(request_id_middleware)
"""

from __future__ import annotations

import time
import uuid

from fastapi import Request, Response

from ghadapter.core.config import settings
from ghadapter.core.logging import log_context

DELIVERY_HEADER = "X-GitHub-Delivery"


async def request_id_middleware(request: Request, call_next) -> Response:
    """HTTP middleware for request ID generation and propagation.

    The id is taken from, in order: the configured request id header
    (default ``X-Request-ID``), ``X-GitHub-Delivery``, or a new UUID. It is
    bound with ``log_context`` for log correlation and echoed in the response
    together with ``X-Request-Duration-ms``.

    Args:
        request: The incoming HTTP request object.
        call_next: The next middleware/route handler in the stack.

    Returns:
        Response: The response from the next handler with request_id and
            duration headers added.
    """

    header_name = settings.log.request_id_header
    request_id = (
        request.headers.get(header_name)
        or request.headers.get(DELIVERY_HEADER)
        or str(uuid.uuid4())
    )
    start = time.perf_counter()
    with log_context(request_id=request_id):
        response: Response = await call_next(request)

    duration_ms = (time.perf_counter() - start) * 1000
    response.headers[header_name] = request_id
    response.headers.setdefault("X-Request-Duration-ms", f"{duration_ms:.2f}")
    return response
