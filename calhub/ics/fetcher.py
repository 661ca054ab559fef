"""HTTP client for downloading ICS calendar feeds."""

import logging
from typing import Any, Optional

import httpx

from .exceptions import ICSFetchError, ICSNetworkError, ICSTimeoutError
from .models import ICSResponse

logger = logging.getLogger(__name__)

ACCEPT_HEADER = "text/calendar, text/plain, */*"


class ICSFetcher:
    """Async HTTP client for conditional ICS downloads.

    Usable as an async context manager. An externally owned
    ``httpx.AsyncClient`` may be injected; it is then never closed here.
    """

    def __init__(self, settings: Any, client: Optional[httpx.AsyncClient] = None):
        """Initialize ICS fetcher.

        Args:
            settings: Application settings (``request_timeout``, ``user_agent``)
            client: Optional shared HTTP client
        """
        self.settings = settings
        self.client = client
        self._owns_client = client is None

        logger.debug("ICS fetcher initialized")

    async def __aenter__(self) -> "ICSFetcher":
        await self._ensure_client()
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        await self.close()

    async def _ensure_client(self) -> httpx.AsyncClient:
        if self.client is None or self.client.is_closed:
            self.client = httpx.AsyncClient(
                timeout=httpx.Timeout(self.settings.request_timeout),
                follow_redirects=True,
                headers={"User-Agent": self.settings.user_agent},
            )
            self._owns_client = True
        return self.client

    async def close(self) -> None:
        if self._owns_client and self.client is not None and not self.client.is_closed:
            await self.client.aclose()

    @staticmethod
    def get_conditional_headers(
        etag: Optional[str] = None, last_modified: Optional[str] = None
    ) -> dict[str, str]:
        """Build If-None-Match / If-Modified-Since headers from stored validators."""
        headers = {}
        if etag:
            headers["If-None-Match"] = etag
        if last_modified:
            headers["If-Modified-Since"] = last_modified
        return headers

    async def fetch_ics(
        self, url: str, conditional_headers: Optional[dict[str, str]] = None
    ) -> ICSResponse:
        """Download a feed, honouring conditional-request validators.

        A 304 answer is a successful response with no content.

        Args:
            url: Feed URL
            conditional_headers: Headers from :meth:`get_conditional_headers`

        Returns:
            ICSResponse with body and the response's new validators

        Raises:
            ICSTimeoutError: Request timed out
            ICSNetworkError: Connection failed
            ICSFetchError: Any status other than 2xx or 304
        """
        client = await self._ensure_client()

        headers = {"Accept": ACCEPT_HEADER}
        if conditional_headers:
            headers.update(conditional_headers)

        logger.debug(f"Fetching ICS from {url}")
        try:
            response = await client.get(url, headers=headers)
        except httpx.TimeoutException as e:
            raise ICSTimeoutError(f"Timeout fetching {url}: {e}") from e
        except httpx.HTTPError as e:
            raise ICSNetworkError(f"Network error fetching {url}: {e}") from e

        logger.info(
            f"ICS fetch response {response.status_code} from {url} "
            f"({response.headers.get('content-type', 'unknown type')})"
        )

        if response.status_code == 304:
            return self._create_response(response, content=None)

        if not response.is_success:
            raise ICSFetchError(
                f"HTTP {response.status_code}: {response.reason_phrase}",
                response.status_code,
            )

        return self._create_response(response, content=response.text)

    @staticmethod
    def _create_response(response: httpx.Response, content: Optional[str]) -> ICSResponse:
        etag = response.headers.get("etag") or None
        last_modified = response.headers.get("last-modified") or None
        return ICSResponse(
            status_code=response.status_code,
            content=content,
            headers=dict(response.headers),
            etag=etag,
            last_modified=last_modified,
        )
