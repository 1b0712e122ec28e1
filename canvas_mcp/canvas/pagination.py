"""
Link header pagination for Canvas list endpoints.

Canvas advertises further pages in the ``Link`` response header:

    <https://canvas.example.com/api/v1/courses?page=2&per_page=100>; rel="next",
    <https://canvas.example.com/api/v1/courses?page=1&per_page=100>; rel="first"

Only ``rel="next"`` drives the loop.
"""

import logging
import re
from typing import Optional
from urllib.parse import urlencode

from .errors import CanvasAPIError, InvalidResponseError
from .fetcher import HttpFetcher

logger = logging.getLogger(__name__)

PER_PAGE = 100

_LINK_SEGMENT = re.compile(r'<([^>]+)>;\s*rel="([^"]+)"')


def parse_link_header(link_header: Optional[str]) -> dict[str, str]:
    """
    Parse a Link header into a mapping of relation name to URL.

    Segments that do not look like ``<URL>; rel="REL"`` are ignored.
    """
    links: dict[str, str] = {}
    if not link_header:
        return links

    for part in link_header.split(","):
        match = _LINK_SEGMENT.search(part)
        if match:
            url, rel = match.groups()
            links[rel] = url
    return links


def next_link(link_header: Optional[str]) -> Optional[str]:
    """Return the ``next`` URL from a Link header, if any."""
    return parse_link_header(link_header).get("next")


def build_url(url: str, params: Optional[dict] = None) -> str:
    """Append caller params and then ``per_page`` to a URL's query string."""
    query = list((params or {}).items())
    query.append(("per_page", str(PER_PAGE)))
    separator = "&" if "?" in url else "?"
    return f"{url}{separator}{urlencode(query, doseq=True)}"


class LinkPaginator:
    """
    Follows ``rel="next"`` links until Canvas stops sending them.

    Pages are fetched strictly in sequence since each URL comes from the
    previous response. There is no page cap: an upstream that never drops
    ``next`` keeps the loop running until a request fails or times out.
    """

    def __init__(self, fetcher: HttpFetcher):
        self.fetcher = fetcher

    def fetch_all_pages(self, url: str, params: Optional[dict] = None) -> list:
        """
        Fetch every page of a list endpoint.

        Args:
            url: Absolute endpoint URL without ``per_page``
            params: Extra query parameters for the first request

        Returns:
            All items, in page order then upstream order within a page

        Raises:
            CanvasAPIError: If any page answers with a non-2xx status
            InvalidResponseError: If any page body is not a JSON array
            CanvasTimeoutError: If any page exceeds the request timeout
        """
        results: list = []
        page_url: Optional[str] = build_url(url, params)
        pages = 0

        while page_url:
            response = self.fetcher.fetch(page_url)
            pages += 1

            if not response.ok:
                raise CanvasAPIError(
                    f"Canvas API error: {response.status_code} {response.reason}",
                    status_code=response.status_code,
                )

            try:
                data = response.json()
            except ValueError as e:
                raise InvalidResponseError() from e

            if not isinstance(data, list):
                raise InvalidResponseError()

            results.extend(data)
            logger.debug(f"Fetched page {pages} ({len(data)} items)")

            page_url = next_link(response.headers.get("Link"))

        return results
