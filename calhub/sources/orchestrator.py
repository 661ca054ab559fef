"""Runs the Google and ICS adapters together with a single-flight guard."""

import asyncio
import logging
from typing import Any, Optional

from ..store.database import EventStore
from .exceptions import SyncInProgress
from .google_source import GoogleSyncAdapter
from .ics_source import IcsSyncAdapter
from .models import SyncResult

logger = logging.getLogger(__name__)


class SyncOrchestrator:
    """Coordinates one sync of every enabled calendar.

    Both adapters run concurrently. Per-calendar failures stay inside the
    adapters; anything else (e.g. ``StoreUnavailable``) propagates.
    """

    def __init__(
        self,
        store: EventStore,
        settings: Any,
        google_adapter: Optional[GoogleSyncAdapter] = None,
        ics_adapter: Optional[IcsSyncAdapter] = None,
    ):
        self.store = store
        self.settings = settings
        self.google_adapter = google_adapter or GoogleSyncAdapter(store, settings)
        self.ics_adapter = ics_adapter or IcsSyncAdapter(store, settings)
        self._running = False

    @property
    def is_running(self) -> bool:
        return self._running

    async def sync_all(self) -> SyncResult:
        """Sync both sources once.

        Raises:
            SyncInProgress: Another run on this orchestrator has not finished
        """
        if self._running:
            raise SyncInProgress("A sync run is already in progress")

        self._running = True
        try:
            logger.info("Starting sync of all calendars")
            # Both adapters must finish before the guard is released
            outcomes = await asyncio.gather(
                self.google_adapter.sync(), self.ics_adapter.sync(), return_exceptions=True
            )
        finally:
            self._running = False

        for outcome in outcomes:
            if isinstance(outcome, BaseException):
                raise outcome

        google, ics = outcomes
        result = SyncResult(google=google, ics=ics)
        logger.info(
            f"Sync finished: google={google.updated_count} "
            f"({len(google.processed_calendar_ids)} calendars), "
            f"ics={ics.updated_count} ({len(ics.processed_calendar_ids)} calendars)"
        )
        return result
