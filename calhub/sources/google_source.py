"""Google Calendar sync adapter."""

import logging
from typing import Any, Optional

from ..google.client import GoogleCalendarClient
from ..google.credentials import CredentialVault
from ..google.exceptions import CredentialError, GoogleApiError, SyncTokenGone
from ..google.models import GoogleEventRecord, map_google_event
from ..store.database import EventStore
from ..store.models import Calendar, CalendarType
from ..utils.logging import VERBOSE
from .exceptions import CursorInvalid, SourceError, SourceParseError, UpstreamHttpError
from .models import SyncSummary

logger = logging.getLogger(__name__)


class GoogleSyncAdapter:
    """Incremental sync of enabled Google calendars via ``events.list``.

    Each calendar keeps a sync token. A 410 answer discards it and restarts
    with a full sync, at most ``google_max_cursor_restarts`` times per run.
    """

    def __init__(
        self,
        store: EventStore,
        settings: Any,
        vault: Optional[CredentialVault] = None,
        client: Optional[GoogleCalendarClient] = None,
    ):
        self.store = store
        self.settings = settings
        self.vault = vault or CredentialVault(store, settings)
        self.client = client or GoogleCalendarClient(settings)
        self.max_cursor_restarts = max(0, int(settings.google_max_cursor_restarts))

    async def sync(self) -> SyncSummary:
        """Sync all enabled Google calendars.

        Missing or unrefreshable credentials make the run a no-op. Store
        failures propagate.
        """
        summary = SyncSummary()
        calendars = await self.store.list_enabled_calendars(CalendarType.GOOGLE)
        if not calendars:
            logger.debug("No enabled Google calendars")
            return summary

        try:
            access_token = await self.vault.get_valid_access_token()
        except CredentialError as e:
            logger.warning(f"Skipping Google sync: {e.message}")
            return summary

        async with self.client as client:
            for calendar in calendars:
                try:
                    updated = await self._sync_calendar(client, calendar, access_token)
                except SourceError as e:
                    logger.warning(f"Google sync failed for {calendar.id}: {e.message}")
                    continue
                summary.record(calendar.id, updated)

        logger.info(
            f"Google sync complete: {summary.updated_count} updates from "
            f"{len(summary.processed_calendar_ids)}/{len(calendars)} calendars"
        )
        return summary

    async def _sync_calendar(
        self, client: GoogleCalendarClient, calendar: Calendar, access_token: str
    ) -> int:
        """Run a delta (or full) sync for one calendar.

        Raises:
            CursorInvalid: Sync token rejected past the restart bound
            UpstreamHttpError: Any other API failure
            SourceParseError: An item could not be mapped
        """
        if not calendar.google_cal_id:
            raise SourceError(f"Calendar {calendar.id} has no Google calendar id", calendar.id)

        sync_token = calendar.sync_token
        restarts = 0
        while True:
            mode = "delta" if sync_token else "full"
            logger.debug(f"Google {mode} sync for {calendar.id}")
            try:
                updated, next_sync_token = await self._run_pass(
                    client, calendar, access_token, sync_token
                )
                break
            except SyncTokenGone as e:
                if restarts >= self.max_cursor_restarts:
                    raise CursorInvalid(
                        f"Sync token rejected after {restarts} restart(s)", calendar.id
                    ) from e
                restarts += 1
                logger.warning(f"Sync token for {calendar.id} expired, restarting full sync")
                await self.store.update_sync_cursor(calendar.id, None)
                sync_token = None
            except GoogleApiError as e:
                raise UpstreamHttpError(e.message, calendar.id, e.status_code) from e

        if next_sync_token:
            await self.store.update_sync_cursor(calendar.id, next_sync_token)

        logger.log(VERBOSE, f"Google calendar {calendar.id}: {updated} updates")
        return updated

    async def _run_pass(
        self,
        client: GoogleCalendarClient,
        calendar: Calendar,
        access_token: str,
        sync_token: Optional[str],
    ) -> tuple[int, Optional[str]]:
        """Walk every page of one pass and apply its items."""
        updated = 0
        page_token: Optional[str] = None
        next_sync_token: Optional[str] = None

        while True:
            page = await client.list_events(
                calendar.google_cal_id,  # type: ignore[arg-type]
                access_token,
                page_token=page_token,
                sync_token=sync_token,
            )
            for record in page.items:
                updated += await self._apply_record(calendar.id, record)

            if page.next_sync_token:
                next_sync_token = page.next_sync_token
            page_token = page.next_page_token
            if not page_token:
                break

        return updated, next_sync_token

    async def _apply_record(self, calendar_id: str, record: GoogleEventRecord) -> int:
        """Write one item with last-write-wins. Returns 1 if the store changed."""
        try:
            recurrence_id = record.recurrence_id
            incoming_ts = record.updated_ms
        except ValueError as e:
            raise SourceParseError(f"Invalid timestamps on item {record.id}: {e}", calendar_id) from e

        existing_ts = await self.store.get_existing_updated_ts(calendar_id, record.id, recurrence_id)
        if existing_ts is not None and existing_ts >= incoming_ts:
            return 0

        if record.is_cancelled and not record.is_override:
            removed = await self.store.delete_raw_events_by_uid(calendar_id, record.id)
            logger.debug(f"Deleted {removed} rows for cancelled event {record.id}")
            return 1

        try:
            event = map_google_event(calendar_id, record, incoming_ts)
        except ValueError as e:
            raise SourceParseError(f"Cannot map item {record.id}: {e}", calendar_id) from e

        await self.store.upsert_raw_event(event)
        return 1
