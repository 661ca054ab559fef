"""Tests for the Google Calendar events.list client."""

from typing import Any, Callable

import httpx
import pytest

from calhub.google.client import GoogleCalendarClient
from calhub.google.exceptions import GoogleApiError, SyncTokenGone


def _client(
    test_settings: Any, handler: Callable[[httpx.Request], httpx.Response]
) -> GoogleCalendarClient:
    http = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return GoogleCalendarClient(test_settings, client=http, base_url="https://api.test/v3/")


class TestListEvents:
    @pytest.mark.asyncio
    async def test_request_shape(self, test_settings: Any) -> None:
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(200, json={"items": [], "nextSyncToken": "s1"})

        page = await _client(test_settings, handler).list_events(
            "team@group.calendar.google.com", "tok", sync_token="s0"
        )

        request = seen[0]
        raw_path = request.url.raw_path.split(b"?")[0]
        assert raw_path == b"/v3/calendars/team%40group.calendar.google.com/events"
        assert request.headers["Authorization"] == "Bearer tok"
        assert request.url.params["singleEvents"] == "false"
        assert request.url.params["showDeleted"] == "true"
        assert request.url.params["syncToken"] == "s0"
        assert "pageToken" not in request.url.params
        assert page.next_sync_token == "s1"

    @pytest.mark.asyncio
    async def test_page_token_forwarded(self, test_settings: Any) -> None:
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(200, json={"items": [{"id": "a"}], "nextPageToken": "p3"})

        page = await _client(test_settings, handler).list_events("primary", "tok", page_token="p2")

        assert seen[0].url.params["pageToken"] == "p2"
        assert page.next_page_token == "p3"
        assert page.items[0].id == "a"

    @pytest.mark.asyncio
    async def test_gone_raises_sync_token_gone(self, test_settings: Any) -> None:
        client = _client(test_settings, lambda request: httpx.Response(410))

        with pytest.raises(SyncTokenGone):
            await client.list_events("primary", "tok", sync_token="old")

    @pytest.mark.asyncio
    async def test_other_error_status(self, test_settings: Any) -> None:
        client = _client(test_settings, lambda request: httpx.Response(403, text="forbidden"))

        with pytest.raises(GoogleApiError) as exc_info:
            await client.list_events("primary", "tok")

        assert exc_info.value.status_code == 403
        assert not isinstance(exc_info.value, SyncTokenGone)

    @pytest.mark.asyncio
    async def test_malformed_body(self, test_settings: Any) -> None:
        client = _client(test_settings, lambda request: httpx.Response(200, text="<html>"))

        with pytest.raises(GoogleApiError, match="Malformed"):
            await client.list_events("primary", "tok")

    @pytest.mark.asyncio
    async def test_transport_error(self, test_settings: Any) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("down", request=request)

        with pytest.raises(GoogleApiError) as exc_info:
            await _client(test_settings, handler).list_events("primary", "tok")

        assert exc_info.value.status_code is None
