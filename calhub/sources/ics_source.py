"""ICS feed sync adapter."""

import logging
import time
from typing import Any, Optional

from ..ics import ICSFetcher, ICSParser, map_ics_record
from ..ics.exceptions import ICSError, ICSParseError
from ..store.database import EventStore
from ..store.models import Calendar, CalendarType
from ..utils.timeutils import now_ms
from .exceptions import SourceError, SourceParseError, UpstreamHttpError
from .models import SyncSummary

logger = logging.getLogger(__name__)


class IcsSyncAdapter:
    """Pulls every enabled ICS calendar with conditional requests.

    Sync is accretive: every VEVENT in a feed is upserted, and events that
    disappear from a feed stay in the store.
    """

    def __init__(
        self,
        store: EventStore,
        settings: Any,
        fetcher: Optional[ICSFetcher] = None,
        parser: Optional[ICSParser] = None,
    ):
        """Initialize ICS sync adapter.

        Args:
            store: Event store to write to
            settings: Application settings
            fetcher: Optional fetcher (tests inject one over a mock transport)
            parser: Optional parser
        """
        self.store = store
        self.settings = settings
        self.fetcher = fetcher or ICSFetcher(settings)
        self.parser = parser or ICSParser()

    async def sync(self) -> SyncSummary:
        """Sync all enabled ICS calendars.

        Per-calendar failures are logged and leave the calendar out of the
        summary. Store failures propagate.
        """
        summary = SyncSummary()
        calendars = await self.store.list_enabled_calendars(CalendarType.ICS)
        if not calendars:
            logger.debug("No enabled ICS calendars")
            return summary

        async with self.fetcher as fetcher:
            for calendar in calendars:
                try:
                    updated = await self._sync_calendar(fetcher, calendar)
                except SourceError as e:
                    logger.warning(f"ICS sync failed for {calendar.id}: {e.message}")
                    continue
                if updated is not None:
                    summary.record(calendar.id, updated)

        logger.info(
            f"ICS sync complete: {summary.updated_count} events from "
            f"{len(summary.processed_calendar_ids)}/{len(calendars)} calendars"
        )
        return summary

    async def _sync_calendar(self, fetcher: ICSFetcher, calendar: Calendar) -> Optional[int]:
        """Sync one feed.

        Returns:
            Number of events written, or None when the feed was not modified

        Raises:
            UpstreamHttpError: Fetch failed
            SourceParseError: Body could not be parsed
        """
        url = calendar.ics_url
        if not url:
            raise SourceError(f"Calendar {calendar.id} has no ICS URL", calendar.id)

        start_time = time.time()
        headers = fetcher.get_conditional_headers(calendar.ics_etag, calendar.ics_last_mod)
        try:
            response = await fetcher.fetch_ics(url, headers)
        except ICSError as e:
            raise UpstreamHttpError(e.message, calendar.id, e.status_code) from e

        if response.is_not_modified:
            logger.info(f"ICS calendar {calendar.id} not modified (304)")
            return None

        try:
            records = self.parser.parse_ics_content(response.content or "", calendar.id)
        except ICSParseError as e:
            raise SourceParseError(e.message, calendar.id) from e

        updated_ts = now_ms()
        for record in records:
            await self.store.upsert_raw_event(map_ics_record(record, calendar.id, updated_ts))

        await self.store.update_conditional_validators(
            calendar.id, response.etag, response.last_modified
        )

        elapsed_ms = (time.time() - start_time) * 1000
        logger.debug(
            f"ICS calendar {calendar.id}: {len(records)} events in {elapsed_ms:.0f}ms "
            f"(etag={response.etag}, last_modified={response.last_modified})"
        )
        return len(records)
