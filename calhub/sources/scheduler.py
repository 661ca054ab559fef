"""Periodic sync loop."""

import asyncio
import logging
from typing import Optional

from ..exceptions import CalHubError
from .exceptions import SyncInProgress
from .models import SyncResult
from .orchestrator import SyncOrchestrator

logger = logging.getLogger(__name__)


class SyncScheduler:
    """Calls ``sync_all`` every ``interval`` seconds until stopped."""

    def __init__(self, orchestrator: SyncOrchestrator, interval: float = 300):
        if interval <= 0:
            raise ValueError("interval must be positive")
        self.orchestrator = orchestrator
        self.interval = interval
        self.shutdown_event = asyncio.Event()
        self.runs = 0
        self.skipped = 0

    async def tick(self) -> Optional[SyncResult]:
        """Run one sync unless one is already running.

        A failed run is logged and returns None.
        """
        if self.orchestrator.is_running:
            self.skipped += 1
            logger.info("Sync still running, skipping scheduled tick")
            return None

        try:
            result = await self.orchestrator.sync_all()
        except SyncInProgress:
            self.skipped += 1
            logger.info("Sync still running, skipping scheduled tick")
            return None
        except CalHubError:
            logger.exception("Scheduled sync failed")
            return None

        self.runs += 1
        return result

    async def run(self) -> None:
        """Sync immediately, then on every interval until :meth:`stop`."""
        logger.info(f"Starting sync scheduler (interval: {self.interval}s)")
        self.shutdown_event.clear()

        await self.tick()
        while not self.shutdown_event.is_set():
            try:
                await asyncio.wait_for(self.shutdown_event.wait(), timeout=self.interval)
                break
            except asyncio.TimeoutError:
                await self.tick()

        logger.info("Sync scheduler stopped")

    def stop(self) -> None:
        self.shutdown_event.set()
