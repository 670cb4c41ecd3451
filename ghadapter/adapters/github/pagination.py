"""Cursor pagination over ``Link: <...>; rel="next"`` headers.

Pages are fetched strictly one after another: the next request is only
issued once the callback for the current page has returned without calling
``stop``.
"""

from __future__ import annotations

import inspect
import logging
import re
from dataclasses import dataclass
from typing import Any, Awaitable, Callable

from ghadapter.adapters.github.credentials import Credential
from ghadapter.adapters.github.executor import ApiResponse, RequestDescriptor, RequestExecutor

logger = logging.getLogger(__name__)

_LINK_RE = re.compile(r'<(?P<url>[^>]*)>\s*;\s*rel="(?P<rel>[^"]*)"')


def parse_link_header(value: str | None) -> dict[str, str]:
    """Parse an RFC 8288 ``Link`` header into ``{rel: url}``.

    Examples:
        >>> parse_link_header('<https://api.github.com/x?page=2>; rel="next"')
        {'next': 'https://api.github.com/x?page=2'}
        >>> parse_link_header("")
        {}
    """
    links: dict[str, str] = {}
    if not value:
        return links
    for match in _LINK_RE.finditer(value):
        for rel in match.group("rel").split():
            links[rel] = match.group("url")
    return links


def next_cursor(response: ApiResponse) -> str | None:
    """Return the URL of the next page, or None on the last page."""

    return parse_link_header(response.headers.get("link")).get("next") or None


@dataclass(frozen=True)
class Page:
    """One page of a collection.

    A JSON array body is the item list; any other non-empty body (a single
    resource) counts as a one-item page.
    """

    items: tuple[Any, ...]
    cursor: str | None
    response: ApiResponse

    @property
    def data(self) -> Any:
        return self.response.data

    @classmethod
    def from_response(cls, response: ApiResponse) -> "Page":
        data = response.data
        if data is None:
            items: tuple[Any, ...] = ()
        elif isinstance(data, list):
            items = tuple(data)
        else:
            items = (data,)
        return cls(items=items, cursor=next_cursor(response), response=response)


StopFn = Callable[[], None]
PageCallback = Callable[[Page, StopFn], Awaitable[None] | None]


class Paginator:
    """Walks a cursor chain through a RequestExecutor."""

    def __init__(self, executor: RequestExecutor) -> None:
        self._executor = executor

    async def paginate(
        self,
        first_request: RequestDescriptor,
        credential: Credential,
        on_page: PageCallback | None = None,
    ) -> list[Any]:
        """Fetch every page starting at ``first_request``.

        Args:
            first_request: Request for the first page.
            credential: Credential used for every page.
            on_page: Called as ``on_page(page, stop)`` after each page; may be
                a coroutine function. Calling ``stop()`` ends the walk after
                the current page without any further request.

        Returns:
            Items of all visited pages, in page order.
        """
        stopped = False

        def stop() -> None:
            nonlocal stopped
            stopped = True

        items: list[Any] = []
        request = first_request
        pages = 0
        while True:
            response = await self._executor.execute(request, credential)
            page = Page.from_response(response)
            pages += 1
            items.extend(page.items)

            if on_page is not None:
                result = on_page(page, stop)
                if inspect.isawaitable(result):
                    await result

            if stopped or page.cursor is None:
                break
            # The cursor already carries the query string of the first request
            request = RequestDescriptor(
                method=first_request.method,
                url=page.cursor,
                headers=first_request.headers,
            )

        logger.debug(
            "github.paginate.done",
            extra={
                "url": first_request.url,
                "pages": pages,
                "items": len(items),
                "stopped_early": stopped,
            },
        )
        return items
