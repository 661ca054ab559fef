"""Durable event store: calendar registry, raw events and OAuth tokens."""

from .database import EventStore
from .exceptions import StoreError, StoreUnavailable
from .models import (
    MASTER_KEY,
    Calendar,
    CalendarType,
    RawEvent,
    RecurrencePayload,
    google_calendar_id,
    ics_calendar_id,
)

__all__ = [
    "MASTER_KEY",
    "Calendar",
    "CalendarType",
    "EventStore",
    "RawEvent",
    "RecurrencePayload",
    "StoreError",
    "StoreUnavailable",
    "google_calendar_id",
    "ics_calendar_id",
]
