"""Unit tests for the conditional ICS fetcher."""

from typing import Any, Callable

import httpx
import pytest

from calhub.ics.exceptions import ICSFetchError, ICSNetworkError, ICSTimeoutError
from calhub.ics.fetcher import ICSFetcher

URL = "https://example.com/feed.ics"
BODY = "BEGIN:VCALENDAR\nVERSION:2.0\nEND:VCALENDAR\n"


def _fetcher(test_settings: Any, handler: Callable[[httpx.Request], httpx.Response]) -> ICSFetcher:
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return ICSFetcher(test_settings, client=client)


class TestConditionalHeaders:
    def test_both_validators(self) -> None:
        headers = ICSFetcher.get_conditional_headers('"abc"', "Mon, 01 Jan 2024 00:00:00 GMT")

        assert headers == {
            "If-None-Match": '"abc"',
            "If-Modified-Since": "Mon, 01 Jan 2024 00:00:00 GMT",
        }

    def test_no_validators(self) -> None:
        assert ICSFetcher.get_conditional_headers(None, None) == {}


class TestFetchIcs:
    """Status handling of fetch_ics."""

    @pytest.mark.asyncio
    async def test_success_returns_body_and_validators(self, test_settings: Any) -> None:
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(
                200,
                text=BODY,
                headers={"ETag": '"v2"', "Last-Modified": "Tue, 02 Jan 2024 00:00:00 GMT"},
            )

        fetcher = _fetcher(test_settings, handler)
        response = await fetcher.fetch_ics(URL, {"If-None-Match": '"v1"'})

        assert response.status_code == 200
        assert response.content == BODY
        assert response.etag == '"v2"'
        assert response.last_modified == "Tue, 02 Jan 2024 00:00:00 GMT"
        assert seen[0].headers["If-None-Match"] == '"v1"'
        assert "text/calendar" in seen[0].headers["Accept"]

    @pytest.mark.asyncio
    async def test_not_modified_has_no_content(self, test_settings: Any) -> None:
        fetcher = _fetcher(test_settings, lambda request: httpx.Response(304))

        response = await fetcher.fetch_ics(URL)

        assert response.is_not_modified
        assert response.content is None

    @pytest.mark.parametrize("status", [401, 404, 500, 503])
    @pytest.mark.asyncio
    async def test_error_status_raises(self, test_settings: Any, status: int) -> None:
        fetcher = _fetcher(test_settings, lambda request: httpx.Response(status))

        with pytest.raises(ICSFetchError) as exc_info:
            await fetcher.fetch_ics(URL)

        assert exc_info.value.status_code == status

    @pytest.mark.asyncio
    async def test_timeout_raises(self, test_settings: Any) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ReadTimeout("slow", request=request)

        with pytest.raises(ICSTimeoutError):
            await _fetcher(test_settings, handler).fetch_ics(URL)

    @pytest.mark.asyncio
    async def test_connection_error_raises(self, test_settings: Any) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("refused", request=request)

        with pytest.raises(ICSNetworkError):
            await _fetcher(test_settings, handler).fetch_ics(URL)


class TestClientLifecycle:
    @pytest.mark.asyncio
    async def test_injected_client_is_not_closed(self, test_settings: Any) -> None:
        client = httpx.AsyncClient(transport=httpx.MockTransport(lambda r: httpx.Response(200)))
        async with ICSFetcher(test_settings, client=client):
            pass

        assert not client.is_closed
        await client.aclose()

    @pytest.mark.asyncio
    async def test_owned_client_created_and_closed(self, test_settings: Any) -> None:
        fetcher = ICSFetcher(test_settings)
        async with fetcher:
            assert fetcher.client is not None
            assert fetcher.client.headers["User-Agent"] == test_settings.user_agent

        assert fetcher.client.is_closed
