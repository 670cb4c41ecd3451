"""Unit tests for RequestExecutor: auth headers, error mapping, debug logging."""

import json
import logging

import httpx
import pytest

from ghadapter.adapters.github.credentials import (
    AppCredential,
    InstallationCredential,
    InstallationToken,
    SignedAssertion,
)
from ghadapter.adapters.github.executor import RequestDescriptor, RequestExecutor
from ghadapter.core.errors import (
    PRIVATE_KEY_HINT,
    SECRET_MISMATCH_HINT,
    AuthenticationError,
    GitHubApiError,
    RateLimitedByUpstream,
    TransportError,
)

APP_CREDENTIAL = AppCredential(
    SignedAssertion(token="jwt-value", issued_at=0, expires_at=60, issuer=4242)
)
INSTALLATION_CREDENTIAL = InstallationCredential(
    installation_id=7,
    token=InstallationToken(token="ghs_abc"),
)


@pytest.fixture
def executor(fake_github, limiter) -> RequestExecutor:
    return RequestExecutor(limiter=limiter, transport=fake_github.transport)


class TestAuthorizationHeader:
    @pytest.mark.asyncio
    async def test_app_credential_uses_bearer_scheme(self, executor, fake_github) -> None:
        fake_github.add("GET", "/app", json_body={"id": 4242})

        response = await executor.execute(RequestDescriptor("GET", "/app"), APP_CREDENTIAL)

        assert response.status_code == 200
        assert response.data == {"id": 4242}
        assert fake_github.calls[0].headers["Authorization"] == "Bearer jwt-value"

    @pytest.mark.asyncio
    async def test_installation_credential_uses_token_scheme(self, executor, fake_github) -> None:
        fake_github.add("GET", "/repos/octo/repo", json_body={"name": "repo"})

        await executor.execute(RequestDescriptor("GET", "/repos/octo/repo"), INSTALLATION_CREDENTIAL)

        request = fake_github.calls[0]
        assert request.headers["Authorization"] == "token ghs_abc"
        assert request.headers["Accept"] == "application/vnd.github+json"

    @pytest.mark.asyncio
    async def test_params_and_json_body_are_sent(self, executor, fake_github) -> None:
        fake_github.add("POST", "/repos/octo/repo/issues?labels=bug", status=201, json_body={"number": 1})

        response = await executor.execute(
            RequestDescriptor("POST", "/repos/octo/repo/issues", params={"labels": "bug"}, json={"title": "t"}),
            INSTALLATION_CREDENTIAL,
        )

        assert response.status_code == 201
        assert json.loads(fake_github.calls[0].content) == {"title": "t"}

    @pytest.mark.asyncio
    async def test_empty_body_yields_none(self, executor, fake_github) -> None:
        fake_github.add("DELETE", "/repos/octo/repo/labels/bug", status=204)

        response = await executor.execute(RequestDescriptor("DELETE", "/repos/octo/repo/labels/bug"), INSTALLATION_CREDENTIAL)

        assert response.status_code == 204
        assert response.data is None

    def test_base_url_defaults_to_github_com(self, executor) -> None:
        assert executor.base_url == "https://api.github.com"


class TestErrorMapping:
    @pytest.mark.asyncio
    async def test_401_is_authentication_error_with_mismatch_hint(self, executor, fake_github) -> None:
        fake_github.add("GET", "/app", status=401, json_body={"message": "Bad credentials"})

        with pytest.raises(AuthenticationError) as exc_info:
            await executor.execute(RequestDescriptor("GET", "/app"), APP_CREDENTIAL)

        assert exc_info.value.status_code == 401
        assert exc_info.value.hint == SECRET_MISMATCH_HINT

    @pytest.mark.asyncio
    async def test_undecodable_jwt_points_at_private_key(self, executor, fake_github) -> None:
        fake_github.add(
            "GET",
            "/app",
            status=401,
            json_body={
                "message": "A JSON web token could not be decoded",
                "documentation_url": "https://docs.github.com/rest",
            },
        )

        with pytest.raises(AuthenticationError) as exc_info:
            await executor.execute(RequestDescriptor("GET", "/app"), APP_CREDENTIAL)

        assert exc_info.value.hint == PRIVATE_KEY_HINT

    @pytest.mark.asyncio
    async def test_429_is_rate_limited_with_retry_after(self, executor, fake_github) -> None:
        fake_github.add("GET", "/repos/octo/repo", status=429, json_body={"message": "slow down"}, headers={"Retry-After": "30"})

        with pytest.raises(RateLimitedByUpstream) as exc_info:
            await executor.execute(RequestDescriptor("GET", "/repos/octo/repo"), INSTALLATION_CREDENTIAL)

        assert exc_info.value.retry_after == 30.0
        assert exc_info.value.status_code == 429

    @pytest.mark.asyncio
    async def test_403_with_exhausted_quota_is_rate_limited(self, executor, fake_github) -> None:
        fake_github.add(
            "GET",
            "/repos/octo/repo",
            status=403,
            json_body={"message": "API rate limit exceeded for installation ID 7."},
            headers={"X-RateLimit-Remaining": "0"},
        )

        with pytest.raises(RateLimitedByUpstream):
            await executor.execute(RequestDescriptor("GET", "/repos/octo/repo"), INSTALLATION_CREDENTIAL)

    @pytest.mark.asyncio
    async def test_plain_403_is_api_error(self, executor, fake_github) -> None:
        fake_github.add("GET", "/repos/octo/private", status=403, json_body={"message": "Resource not accessible by integration"})

        with pytest.raises(GitHubApiError) as exc_info:
            await executor.execute(RequestDescriptor("GET", "/repos/octo/private"), INSTALLATION_CREDENTIAL)

        assert type(exc_info.value) is GitHubApiError
        assert exc_info.value.status_code == 403
        assert "Resource not accessible" in exc_info.value.message

    @pytest.mark.asyncio
    async def test_404_is_api_error(self, executor) -> None:
        with pytest.raises(GitHubApiError) as exc_info:
            await executor.execute(RequestDescriptor("GET", "/nope"), INSTALLATION_CREDENTIAL)

        assert exc_info.value.code == "github_api_error"
        assert exc_info.value.status_code == 404

    @pytest.mark.asyncio
    async def test_transport_failure_is_wrapped(self, limiter) -> None:
        def refuse(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        executor = RequestExecutor(limiter=limiter, transport=httpx.MockTransport(refuse))

        with pytest.raises(TransportError) as exc_info:
            await executor.execute(RequestDescriptor("GET", "/app"), APP_CREDENTIAL)

        assert isinstance(exc_info.value.__cause__, httpx.ConnectError)

    @pytest.mark.asyncio
    async def test_slot_is_released_after_failure(self, executor, limiter) -> None:
        with pytest.raises(GitHubApiError):
            await executor.execute(RequestDescriptor("GET", "/nope"), INSTALLATION_CREDENTIAL)

        assert limiter.stats()["in_flight"] == 0
        assert limiter.stats()["admitted"] == 1


class TestDebugMode:
    @pytest.mark.asyncio
    async def test_debug_logs_metadata_without_credentials(self, fake_github, limiter, caplog) -> None:
        fake_github.add("GET", "/app", json_body={"id": 4242}, headers={"X-RateLimit-Remaining": "4999"})
        executor = RequestExecutor(limiter=limiter, transport=fake_github.transport, debug=True)

        with caplog.at_level(logging.DEBUG, logger="ghadapter.adapters.github.executor"):
            response = await executor.execute(RequestDescriptor("GET", "/app"), APP_CREDENTIAL)

        assert response.data == {"id": 4242}
        records = [r for r in caplog.records if r.getMessage() == "github.request"]
        assert len(records) == 1
        assert records[0].status == 200
        assert records[0].ratelimit_remaining == "4999"
        assert "jwt-value" not in caplog.text

    @pytest.mark.asyncio
    async def test_no_request_logs_without_debug(self, executor, fake_github, caplog) -> None:
        fake_github.add("GET", "/app", json_body={"id": 4242})

        with caplog.at_level(logging.DEBUG, logger="ghadapter.adapters.github.executor"):
            await executor.execute(RequestDescriptor("GET", "/app"), APP_CREDENTIAL)

        assert not [r for r in caplog.records if r.getMessage() == "github.request"]
