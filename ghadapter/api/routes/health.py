from __future__ import annotations

from fastapi import APIRouter, Request

router = APIRouter(tags=["Health"])


@router.get("/health")
def health_check(request: Request) -> dict:
    """Health check endpoint.

    Returns the service status and the queue counters of the limiter the
    adapter's executor paces through, which is where backpressure from
    GitHub pacing shows up first.
    """

    limiter = request.app.state.application.adapter.executor.limiter
    return {"status": "ok", "rate_limiter": limiter.stats()}
