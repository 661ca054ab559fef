"""Recurrence expansion engine and the views built on it."""

from .cache import ExpansionCache
from .exceptions import ExpansionError, InvalidWindow, MalformedRecurrence
from .expander import RecurrenceExpander
from .models import Occurrence, OccurrenceRecurrence, OccurrenceSource
from .views import FreeBusy, freebusy, project_to_zone, render_ics

__all__ = [
    "ExpansionCache",
    "ExpansionError",
    "FreeBusy",
    "InvalidWindow",
    "MalformedRecurrence",
    "Occurrence",
    "OccurrenceRecurrence",
    "OccurrenceSource",
    "RecurrenceExpander",
    "freebusy",
    "project_to_zone",
    "render_ics",
]
