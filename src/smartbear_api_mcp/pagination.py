import re
from typing import Any, List, Optional

import httpx

from .cancellation import CancellationToken, check
from .errors import PaginationLimitExceeded, ShapeError
from .models import RequestDescriptor, ResponseEnvelope
from .ratelimit import RateLimitGuard

NEXT_LINK = re.compile(r'<([^>]+)>\s*;\s*rel="next"', re.IGNORECASE)
TOTAL_COUNT_HEADER = "X-Total-Count"


def relative_to(url: str, base_path: str) -> str:
    """
    ``url`` relative to ``base_path`` when it has the same scheme, host and port and its
    path lies under the base path; otherwise ``url`` unchanged.
    """
    if not base_path:
        return url
    try:
        target = httpx.URL(url)
        base = httpx.URL(base_path)
    except httpx.InvalidURL:
        return url
    if not target.is_absolute_url or (target.scheme, target.host, target.port) != (base.scheme, base.host, base.port):
        return url

    prefix = base.raw_path.decode("ascii").rstrip("/")
    path_and_query = target.raw_path.decode("ascii")
    if not path_and_query.startswith(prefix + "/"):
        return url
    return path_and_query[len(prefix):]


def next_cursor(headers: Optional[httpx.Headers], base_path: str = "") -> Optional[str]:
    """
    Extracts the rel="next" URL from a Link header. Links under base_path are returned
    relative to it, so they resolve against the same configuration; others stay absolute.
    """
    if not headers:
        return None
    link = headers.get("link")
    if not link:
        return None
    match = NEXT_LINK.search(link)
    if not match:
        return None
    return relative_to(match.group(1).strip(), base_path)


def parse_total_count(headers: Optional[httpx.Headers]) -> Optional[int]:
    if not headers:
        return None
    value = headers.get(TOTAL_COUNT_HEADER)
    if value is None:
        return None
    try:
        return int(value.strip())
    except ValueError:
        return None


class PaginationWalker:
    def __init__(self, guard: RateLimitGuard, base_path: str, max_pages: Optional[int] = None):
        self.guard = guard
        self.base_path = base_path
        self.max_pages = max_pages

    async def fetch_collection(
            self,
            descriptor: RequestDescriptor,
            fetch_all: bool = False,
            cancel: Optional[CancellationToken] = None,
    ) -> ResponseEnvelope:
        """
        Fetches a collection resource.

        :param fetch_all: follow rel="next" links until the last page and return every item
            in server order. Otherwise only the first page is returned, along with the cursor
            to resume from.
        """
        items: List[Any] = []
        request = descriptor
        pages = 0
        while True:
            check(cancel)
            response = await self.guard.call(request, cancel)
            if not isinstance(response.body, list):
                raise ShapeError(
                    f"Expected array from {request.method} {request.url}, got {type(response.body).__name__}"
                )
            items.extend(response.body)
            pages += 1
            cursor = next_cursor(response.headers, self.base_path)

            if not fetch_all or cursor is None:
                return ResponseEnvelope(
                    status=response.status,
                    headers=response.headers,
                    body=items,
                    next_cursor=None if fetch_all else cursor,
                    total_count=parse_total_count(response.headers),
                )

            if self.max_pages is not None and pages >= self.max_pages:
                raise PaginationLimitExceeded(self.max_pages)
            request = descriptor.at(cursor)
