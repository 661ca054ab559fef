"""Calendar source adapters, sync orchestration and scheduling."""

from .exceptions import (
    CursorInvalid,
    SourceError,
    SourceParseError,
    SyncInProgress,
    UpstreamHttpError,
)
from .google_source import GoogleSyncAdapter
from .ics_source import IcsSyncAdapter
from .models import SyncResult, SyncSummary
from .orchestrator import SyncOrchestrator
from .scheduler import SyncScheduler

__all__ = [
    "CursorInvalid",
    "GoogleSyncAdapter",
    "IcsSyncAdapter",
    "SourceError",
    "SourceParseError",
    "SyncInProgress",
    "SyncOrchestrator",
    "SyncResult",
    "SyncScheduler",
    "SyncSummary",
    "UpstreamHttpError",
]
