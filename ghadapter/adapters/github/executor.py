"""Single authenticated call against the GitHub REST API.

The executor is the only place that talks HTTP. It attaches the credential,
waits for the shared rate limiter, and turns every failure into a typed
AppError so callers never see raw httpx exceptions.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from typing import Any, Mapping

import httpx

from ghadapter.adapters.github.credentials import Credential
from ghadapter.adapters.rate_limit.base import AbstractRateLimiter
from ghadapter.core.errors import (
    PRIVATE_KEY_HINT,
    SECRET_MISMATCH_HINT,
    AuthenticationError,
    ErrorDetails,
    GitHubApiError,
    RateLimitedByUpstream,
    TransportError,
)

logger = logging.getLogger(__name__)

DEFAULT_API_URL = "https://api.github.com"
DEFAULT_USER_AGENT = "ghadapter/0.1.0"
ACCEPT_HEADER = "application/vnd.github+json"

_JWT_DECODE_FAILURE = "A JSON web token could not be decoded"


@dataclass(frozen=True)
class RequestDescriptor:
    """What to call; the credential is supplied separately.

    Attributes:
        method: HTTP method.
        url: Path relative to the API base URL, or an absolute URL (cursors).
        params: Query string parameters.
        json: JSON body.
        headers: Extra headers merged over the defaults.
    """

    method: str
    url: str
    params: Mapping[str, Any] | None = None
    json: Any = None
    headers: Mapping[str, str] | None = None


@dataclass(frozen=True)
class ApiResponse:
    status_code: int
    url: str
    data: Any = None
    headers: Mapping[str, str] = field(default_factory=dict)


class RequestExecutor:
    """Performs one authenticated call under the rate limiter's control.

    Args:
        limiter: Process-wide limiter every call is admitted through.
        base_url: API root (``https://api.github.com`` or a GHE ``/api/v3``).
        timeout_seconds: Transport timeout for the whole call.
        debug: Log request/response metadata for every call.
        transport: Optional httpx transport (tests use ``httpx.MockTransport``).
    """

    def __init__(
        self,
        *,
        limiter: AbstractRateLimiter,
        base_url: str = DEFAULT_API_URL,
        timeout_seconds: float = 30.0,
        debug: bool = False,
        transport: httpx.AsyncBaseTransport | None = None,
        user_agent: str = DEFAULT_USER_AGENT,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.debug = debug
        self._limiter = limiter
        self._client = httpx.AsyncClient(
            base_url=self.base_url,
            headers={"Accept": ACCEPT_HEADER, "User-Agent": user_agent},
            timeout=httpx.Timeout(timeout_seconds),
            transport=transport,
        )

    @property
    def limiter(self) -> AbstractRateLimiter:
        return self._limiter

    async def __aenter__(self) -> "RequestExecutor":
        return self

    async def __aexit__(self, *args: Any) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        """Close the underlying httpx client and release connections."""
        await self._client.aclose()

    async def execute(self, request: RequestDescriptor, credential: Credential) -> ApiResponse:
        """Perform ``request`` authenticated with ``credential``.

        Returns:
            ApiResponse for any 2xx status.

        Raises:
            AuthenticationError: 401, or the platform could not decode the JWT.
            RateLimitedByUpstream: 429, or 403 caused by an exhausted quota.
            GitHubApiError: Any other non-2xx status.
            TransportError: The call failed before a response arrived.
        """
        headers = {"Authorization": credential.authorization, **(request.headers or {})}

        async with self._limiter.admit() as permit:
            started = time.perf_counter()
            try:
                response = await self._client.request(
                    request.method,
                    request.url,
                    params=request.params,
                    json=request.json,
                    headers=headers,
                )
            except httpx.HTTPError as exc:
                logger.warning(
                    "github.transport_error",
                    extra={
                        "method": request.method,
                        "url": request.url,
                        "error_type": type(exc).__name__,
                    },
                )
                raise TransportError(
                    code="github_transport_error",
                    message=f"Request to GitHub failed: {exc}",
                    details={"url": request.url},
                ) from exc
            duration_ms = (time.perf_counter() - started) * 1000

        if self.debug:
            logger.debug(
                "github.request",
                extra={
                    "method": request.method,
                    "url": str(response.request.url),
                    "status": response.status_code,
                    "duration_ms": round(duration_ms, 2),
                    "auth_kind": credential.kind,
                    "ticket": permit.ticket,
                    "ratelimit_remaining": response.headers.get("x-ratelimit-remaining"),
                },
            )

        data = _decode_body(response)
        if response.is_success:
            return ApiResponse(
                status_code=response.status_code,
                url=str(response.request.url),
                data=data,
                headers=response.headers,
            )

        raise _error_for(response, data)


def _decode_body(response: httpx.Response) -> Any:
    if not response.content:
        return None
    try:
        return response.json()
    except ValueError:
        return response.text


def _retry_after(headers: httpx.Headers) -> float | None:
    value = headers.get("retry-after")
    if value is not None:
        try:
            return float(value)
        except ValueError:
            return None
    reset = headers.get("x-ratelimit-reset")
    if reset is not None:
        try:
            return max(0.0, float(reset) - time.time())
        except ValueError:
            return None
    return None


def _error_for(response: httpx.Response, data: Any) -> GitHubApiError:
    """Map a non-2xx response to the matching typed error."""

    status = response.status_code
    message = ""
    if isinstance(data, Mapping):
        message = str(data.get("message") or "")
    elif isinstance(data, str):
        message = data
    message = message or response.reason_phrase

    details: ErrorDetails = {
        "http_status": status,
        "url": str(response.request.url),
    }

    if status == 401 or _JWT_DECODE_FAILURE in message:
        details["hint"] = PRIVATE_KEY_HINT if _JWT_DECODE_FAILURE in message else SECRET_MISMATCH_HINT
        logger.warning(
            "github.authentication_failed",
            extra={"status": status, "upstream_message": message},
        )
        return AuthenticationError(
            code="github_authentication_failed",
            message=f"GitHub rejected the credential: {message}",
            details=details,
        )

    exhausted = response.headers.get("x-ratelimit-remaining") == "0"
    if status == 429 or (status == 403 and (exhausted or "rate limit" in message.lower())):
        retry_after = _retry_after(response.headers)
        if retry_after is not None:
            details["retry_after"] = retry_after
        logger.warning(
            "github.rate_limited",
            extra={"status": status, "retry_after_s": retry_after},
        )
        return RateLimitedByUpstream(
            code="github_rate_limited",
            message=f"GitHub throttled the request: {message}",
            details=details,
        )

    return GitHubApiError(
        code="github_api_error",
        message=f"GitHub API error {status}: {message}",
        details=details,
    )
