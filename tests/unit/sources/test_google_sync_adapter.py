"""Tests for the Google incremental sync adapter."""

from typing import Any, Callable
from unittest.mock import AsyncMock, Mock

import httpx
import pytest

from calhub.google.client import GoogleCalendarClient
from calhub.google.exceptions import NoCredential
from calhub.sources.exceptions import CursorInvalid
from calhub.sources.google_source import GoogleSyncAdapter
from calhub.store.database import EventStore
from calhub.store.models import RawEvent

MASTER = {
    "id": "weekly",
    "status": "confirmed",
    "summary": "Weekly",
    "start": {"dateTime": "2024-01-01T09:00:00Z"},
    "end": {"dateTime": "2024-01-01T10:00:00Z"},
    "recurrence": ["RRULE:FREQ=WEEKLY"],
    "updated": "2024-01-01T00:00:00Z",
}

SINGLE = {
    "id": "lunch",
    "status": "confirmed",
    "summary": "Lunch",
    "start": {"dateTime": "2024-01-02T12:00:00Z"},
    "end": {"dateTime": "2024-01-02T13:00:00Z"},
    "updated": "2024-01-01T00:00:00Z",
}


def _vault(token: str = "access") -> Mock:
    vault = Mock()
    vault.get_valid_access_token = AsyncMock(return_value=token)
    return vault


def _adapter(
    event_store: EventStore,
    test_settings: Any,
    handler: Callable[[httpx.Request], httpx.Response],
    vault: Any = None,
) -> GoogleSyncAdapter:
    http = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    client = GoogleCalendarClient(test_settings, client=http, base_url="https://api.test/v3")
    return GoogleSyncAdapter(event_store, test_settings, vault=vault or _vault(), client=client)


class TestFullAndDeltaSync:
    """Pagination, cursors and writes."""

    @pytest.mark.asyncio
    async def test_full_sync_walks_pages_and_stores_cursor(
        self, event_store: EventStore, test_settings: Any
    ) -> None:
        calendar = await event_store.upsert_calendar_google("primary")
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            if "pageToken" not in request.url.params:
                return httpx.Response(200, json={"items": [MASTER], "nextPageToken": "p2"})
            return httpx.Response(200, json={"items": [SINGLE], "nextSyncToken": "s1"})

        summary = await _adapter(event_store, test_settings, handler).sync()

        assert summary.updated_count == 2
        assert summary.processed_calendar_ids == [calendar.id]
        assert [r.url.params.get("pageToken") for r in seen] == [None, "p2"]
        assert all("syncToken" not in r.url.params for r in seen)
        assert all(r.headers["Authorization"] == "Bearer access" for r in seen)

        stored = await event_store.get_calendar(calendar.id)
        assert stored.sync_token == "s1"
        assert {e.uid for e in await event_store.list_raw_events(calendar.id)} == {"weekly", "lunch"}

    @pytest.mark.asyncio
    async def test_delta_sync_sends_stored_cursor(
        self, event_store: EventStore, test_settings: Any
    ) -> None:
        calendar = await event_store.upsert_calendar_google("primary")
        await event_store.update_sync_cursor(calendar.id, "s1")
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(200, json={"items": [], "nextSyncToken": "s2"})

        summary = await _adapter(event_store, test_settings, handler).sync()

        assert seen[0].url.params["syncToken"] == "s1"
        assert summary.updated_count == 0
        assert (await event_store.get_calendar(calendar.id)).sync_token == "s2"

    @pytest.mark.asyncio
    async def test_cursor_kept_when_response_has_none(
        self, event_store: EventStore, test_settings: Any
    ) -> None:
        calendar = await event_store.upsert_calendar_google("primary")
        await event_store.update_sync_cursor(calendar.id, "s1")

        await _adapter(
            event_store, test_settings, lambda r: httpx.Response(200, json={"items": []})
        ).sync()

        assert (await event_store.get_calendar(calendar.id)).sync_token == "s1"


class TestCursorRestart:
    @pytest.mark.asyncio
    async def test_gone_cursor_restarts_with_full_sync(
        self, event_store: EventStore, test_settings: Any
    ) -> None:
        calendar = await event_store.upsert_calendar_google("primary")
        await event_store.update_sync_cursor(calendar.id, "stale")
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            if "syncToken" in request.url.params:
                return httpx.Response(410)
            return httpx.Response(200, json={"items": [SINGLE], "nextSyncToken": "fresh"})

        summary = await _adapter(event_store, test_settings, handler).sync()

        assert len(seen) == 2
        assert summary.processed_calendar_ids == [calendar.id]
        assert (await event_store.get_calendar(calendar.id)).sync_token == "fresh"

    @pytest.mark.asyncio
    async def test_restart_bound_exceeded(self, event_store: EventStore, test_settings: Any) -> None:
        calendar = await event_store.upsert_calendar_google("primary")
        await event_store.update_sync_cursor(calendar.id, "stale")
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(410)

        adapter = _adapter(event_store, test_settings, handler)
        summary = await adapter.sync()

        assert len(seen) == 1 + adapter.max_cursor_restarts
        assert summary.processed_calendar_ids == []
        assert (await event_store.get_calendar(calendar.id)).sync_token is None

    @pytest.mark.asyncio
    async def test_restart_bound_raises_cursor_invalid(
        self, event_store: EventStore, test_settings: Any
    ) -> None:
        calendar = await event_store.upsert_calendar_google("primary")
        adapter = _adapter(event_store, test_settings, lambda r: httpx.Response(410))

        with pytest.raises(CursorInvalid) as exc_info:
            async with adapter.client as client:
                await adapter._sync_calendar(client, calendar, "access")

        assert exc_info.value.calendar_id == calendar.id


class TestItemApplication:
    """Last-write-wins and cancellation handling."""

    @pytest.mark.asyncio
    async def test_older_item_does_not_overwrite(
        self,
        event_store: EventStore,
        test_settings: Any,
        make_raw_event: Callable[..., RawEvent],
    ) -> None:
        calendar = await event_store.upsert_calendar_google("primary")
        await event_store.upsert_raw_event(
            make_raw_event(
                calendar_id=calendar.id, uid="lunch", summary="Newer", updated_ts=1_800_000_000_000
            )
        )

        summary = await _adapter(
            event_store, test_settings, lambda r: httpx.Response(200, json={"items": [SINGLE]})
        ).sync()

        assert summary.updated_count == 0
        event = await event_store.get_raw_event(calendar.id, "lunch")
        assert event.summary == "Newer"

    @pytest.mark.asyncio
    async def test_redelivered_items_are_skipped(
        self, event_store: EventStore, test_settings: Any
    ) -> None:
        calendar = await event_store.upsert_calendar_google("primary")
        adapter = _adapter(
            event_store,
            test_settings,
            lambda r: httpx.Response(200, json={"items": [MASTER, SINGLE], "nextSyncToken": "s1"}),
        )

        first = await adapter.sync()
        before = await event_store.list_raw_events(calendar.id)
        second = await adapter.sync()
        after = await event_store.list_raw_events(calendar.id)

        assert first.updated_count == 2
        assert second.updated_count == 0
        assert second.processed_calendar_ids == [calendar.id]
        assert after == before

    @pytest.mark.asyncio
    async def test_cancelled_master_deletes_series(
        self,
        event_store: EventStore,
        test_settings: Any,
        make_raw_event: Callable[..., RawEvent],
    ) -> None:
        calendar = await event_store.upsert_calendar_google("primary")
        await event_store.upsert_raw_event(
            make_raw_event(calendar_id=calendar.id, uid="weekly", rrule="RRULE:FREQ=WEEKLY")
        )
        await event_store.upsert_raw_event(
            make_raw_event(
                calendar_id=calendar.id, uid="weekly", recurrence_id="2024-01-08T10:00:00Z"
            )
        )
        cancelled = {"id": "weekly", "status": "cancelled", "updated": "2024-02-01T00:00:00Z"}

        summary = await _adapter(
            event_store, test_settings, lambda r: httpx.Response(200, json={"items": [cancelled]})
        ).sync()

        assert summary.updated_count == 1
        assert await event_store.list_raw_events(calendar.id) == []

    @pytest.mark.asyncio
    async def test_cancelled_override_is_stored(
        self, event_store: EventStore, test_settings: Any
    ) -> None:
        calendar = await event_store.upsert_calendar_google("primary")
        override = {
            "id": "weekly_20240108T090000Z",
            "status": "cancelled",
            "recurringEventId": "weekly",
            "originalStartTime": {"dateTime": "2024-01-08T09:00:00Z"},
            "updated": "2024-01-05T00:00:00Z",
        }

        await _adapter(
            event_store,
            test_settings,
            lambda r: httpx.Response(200, json={"items": [MASTER, override]}),
        ).sync()

        events = await event_store.list_raw_events(calendar.id)
        overrides = [e for e in events if e.recurrence_id is not None]
        assert len(overrides) == 1
        assert overrides[0].recurrence_id == "2024-01-08T09:00:00Z"
        assert overrides[0].is_cancelled


class TestFailureIsolation:
    @pytest.mark.asyncio
    async def test_missing_credentials_is_noop(
        self, event_store: EventStore, test_settings: Any
    ) -> None:
        await event_store.upsert_calendar_google("primary")
        vault = Mock()
        vault.get_valid_access_token = AsyncMock(side_effect=NoCredential("none"))

        def handler(request: httpx.Request) -> httpx.Response:
            raise AssertionError("no request expected")

        summary = await _adapter(event_store, test_settings, handler, vault=vault).sync()

        assert summary.updated_count == 0
        assert summary.processed_calendar_ids == []

    @pytest.mark.asyncio
    async def test_failing_calendar_does_not_stop_others(
        self, event_store: EventStore, test_settings: Any
    ) -> None:
        await event_store.upsert_calendar_google("broken")
        healthy = await event_store.upsert_calendar_google("primary")

        def handler(request: httpx.Request) -> httpx.Response:
            if "/calendars/broken/" in request.url.path:
                return httpx.Response(500)
            return httpx.Response(200, json={"items": [SINGLE], "nextSyncToken": "s1"})

        summary = await _adapter(event_store, test_settings, handler).sync()

        assert summary.processed_calendar_ids == [healthy.id]
        assert summary.updated_count == 1

    @pytest.mark.asyncio
    async def test_no_google_calendars(self, event_store: EventStore, test_settings: Any) -> None:
        vault = _vault()

        summary = await _adapter(
            event_store, test_settings, lambda r: httpx.Response(500), vault=vault
        ).sync()

        assert summary.processed_calendar_ids == []
        vault.get_valid_access_token.assert_not_awaited()
