"""GitHub client bound to one credential.

The client exposes only what handlers need: issue a request, walk a
paginated collection, and read the next cursor of a response. Whether it
acts as the app or as an installation follows from the credential it holds.
"""

from __future__ import annotations

from typing import Any, Mapping

from ghadapter.adapters.github.credentials import Credential, InstallationCredential
from ghadapter.adapters.github.executor import ApiResponse, RequestDescriptor, RequestExecutor
from ghadapter.adapters.github.pagination import PageCallback, Paginator, next_cursor


class GitHubClient:
    """Authenticated GitHub REST client.

    Example:
        >>> github = await adapter.auth(installation_id=42)
        >>> issues = await github.paginate("/repos/octo/repo/issues", params={"per_page": 100})
    """

    def __init__(
        self,
        credential: Credential,
        executor: RequestExecutor,
        paginator: Paginator | None = None,
    ) -> None:
        self.credential = credential
        self._executor = executor
        self._paginator = paginator or Paginator(executor)

    def __repr__(self) -> str:  # pragma: no cover - representation only
        return f"GitHubClient(scope={self.scope!r}, installation_id={self.installation_id!r})"

    @property
    def scope(self) -> str:
        return self.credential.kind

    @property
    def installation_id(self) -> int | None:
        if isinstance(self.credential, InstallationCredential):
            return self.credential.installation_id
        return None

    async def request(
        self,
        method: str,
        url: str,
        *,
        params: Mapping[str, Any] | None = None,
        json: Any = None,
        headers: Mapping[str, str] | None = None,
    ) -> ApiResponse:
        descriptor = RequestDescriptor(
            method=method.upper(),
            url=url,
            params=params,
            json=json,
            headers=headers,
        )
        return await self._executor.execute(descriptor, self.credential)

    async def get(self, url: str, *, params: Mapping[str, Any] | None = None) -> ApiResponse:
        return await self.request("GET", url, params=params)

    async def post(self, url: str, *, json: Any = None) -> ApiResponse:
        return await self.request("POST", url, json=json)

    async def paginate(
        self,
        url: str | RequestDescriptor,
        on_page: PageCallback | None = None,
        *,
        params: Mapping[str, Any] | None = None,
    ) -> list[Any]:
        """Collect a paginated collection, optionally stopping early.

        Args:
            url: Path of the first page, or a full RequestDescriptor.
            on_page: ``on_page(page, stop)`` callback; see Paginator.paginate.
            params: Query parameters for the first page.
        """
        if isinstance(url, RequestDescriptor):
            first = url
        else:
            first = RequestDescriptor(method="GET", url=url, params=params)
        return await self._paginator.paginate(first, self.credential, on_page)

    @staticmethod
    def next_cursor(response: ApiResponse) -> str | None:
        return next_cursor(response)
