"""Thin async client for the Google Calendar ``events.list`` endpoint."""

import logging
from typing import Any, Optional
from urllib.parse import quote

import httpx
from pydantic import ValidationError

from .exceptions import GoogleApiError, SyncTokenGone
from .models import GoogleEventsPage

logger = logging.getLogger(__name__)

API_BASE_URL = "https://www.googleapis.com/calendar/v3"
PAGE_SIZE = 2500


class GoogleCalendarClient:
    """Fetches pages of event resources, one request per call."""

    def __init__(
        self,
        settings: Any,
        client: Optional[httpx.AsyncClient] = None,
        base_url: str = API_BASE_URL,
    ):
        self.settings = settings
        self.client = client
        self.base_url = base_url.rstrip("/")
        self._owns_client = client is None

    async def __aenter__(self) -> "GoogleCalendarClient":
        await self._ensure_client()
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        await self.close()

    async def _ensure_client(self) -> httpx.AsyncClient:
        if self.client is None or self.client.is_closed:
            self.client = httpx.AsyncClient(
                timeout=httpx.Timeout(self.settings.request_timeout),
                headers={"User-Agent": self.settings.user_agent},
            )
            self._owns_client = True
        return self.client

    async def close(self) -> None:
        if self._owns_client and self.client is not None and not self.client.is_closed:
            await self.client.aclose()

    async def list_events(
        self,
        calendar_id: str,
        access_token: str,
        page_token: Optional[str] = None,
        sync_token: Optional[str] = None,
    ) -> GoogleEventsPage:
        """Fetch one page of ``events.list`` with ``singleEvents=false``.

        Args:
            calendar_id: Google-side calendar id (e.g. ``primary``)
            access_token: OAuth bearer token
            page_token: Continuation token of the current pass
            sync_token: Incremental cursor from a previous pass

        Raises:
            SyncTokenGone: HTTP 410, the sync token must be discarded
            GoogleApiError: Any other failure
        """
        client = await self._ensure_client()

        params: dict[str, Any] = {
            "showDeleted": "true",
            "showHiddenInvitations": "false",
            "singleEvents": "false",
            "maxResults": PAGE_SIZE,
        }
        if page_token:
            params["pageToken"] = page_token
        if sync_token:
            params["syncToken"] = sync_token

        url = f"{self.base_url}/calendars/{quote(calendar_id, safe='')}/events"
        headers = {"Authorization": f"Bearer {access_token}", "Accept": "application/json"}

        try:
            response = await client.get(url, params=params, headers=headers)
        except httpx.HTTPError as e:
            raise GoogleApiError(f"Request to {url} failed: {e}") from e

        if response.status_code == 410:
            raise SyncTokenGone("Sync token expired (HTTP 410)", 410)
        if not response.is_success:
            raise GoogleApiError(
                f"events.list returned HTTP {response.status_code}: {response.text[:200]}",
                response.status_code,
            )

        try:
            page = GoogleEventsPage.model_validate(response.json())
        except (ValueError, ValidationError) as e:
            raise GoogleApiError(f"Malformed events.list response: {e}") from e

        logger.debug(
            f"events.list {calendar_id}: {len(page.items)} items, "
            f"next_page={bool(page.next_page_token)}"
        )
        return page
