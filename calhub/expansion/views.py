"""Views derived from expanded occurrences: free/busy, zone projection, ICS export."""

import logging
from datetime import datetime
from typing import Optional

import pytz
from icalendar import Calendar as ICalendar
from icalendar import Event as IEvent
from pydantic import BaseModel, Field

from ..utils.timeutils import parse_iso
from .models import Occurrence

logger = logging.getLogger(__name__)

PRODID = "-//calhub//EN"


class BusyInterval(BaseModel):
    start: str
    end: str


class FreeBusy(BaseModel):
    """Busy intervals per calendar plus the merged view across all calendars."""

    calendars: dict[str, list[BusyInterval]] = Field(default_factory=dict)
    merged: list[BusyInterval] = Field(default_factory=list)


def coalesce(intervals: list[tuple[str, str]]) -> list[BusyInterval]:
    """Merge overlapping or touching intervals.

    Args:
        intervals: ``(start, end)`` ISO strings in any order

    Returns:
        Disjoint intervals sorted by start
    """
    parsed = sorted(
        ((parse_iso(start), parse_iso(end), start, end) for start, end in intervals),
        key=lambda item: item[0],
    )

    merged: list[list] = []
    for start_dt, end_dt, start, end in parsed:
        if merged and start_dt <= merged[-1][1]:
            if end_dt > merged[-1][1]:
                merged[-1][1] = end_dt
                merged[-1][3] = end
            continue
        merged.append([start_dt, end_dt, start, end])

    return [BusyInterval(start=item[2], end=item[3]) for item in merged]


def freebusy(occurrences: list[Occurrence]) -> FreeBusy:
    """Coalesce occurrences into busy intervals per calendar and overall.

    Cancelled occurrences never count as busy.
    """
    by_calendar: dict[str, list[tuple[str, str]]] = {}
    everything: list[tuple[str, str]] = []
    for occurrence in occurrences:
        if occurrence.is_cancelled:
            continue
        interval = (occurrence.start, occurrence.end)
        by_calendar.setdefault(occurrence.calendar_id, []).append(interval)
        everything.append(interval)

    return FreeBusy(
        calendars={calendar_id: coalesce(ivs) for calendar_id, ivs in by_calendar.items()},
        merged=coalesce(everything),
    )


def project_to_zone(occurrences: list[Occurrence], zone: str) -> list[Occurrence]:
    """Rewrite start/end as ISO-8601 with the offset of ``zone``.

    Raises:
        ValueError: If the zone name is unknown
    """
    try:
        tz = pytz.timezone(zone)
    except pytz.UnknownTimeZoneError as e:
        raise ValueError(f"Unknown time zone: {zone}") from e

    return [
        occurrence.model_copy(
            update={
                "start": parse_iso(occurrence.start).astimezone(tz).isoformat(),
                "end": parse_iso(occurrence.end).astimezone(tz).isoformat(),
            }
        )
        for occurrence in occurrences
    ]


def render_ics(occurrences: list[Occurrence], prodid: Optional[str] = None) -> str:
    """Render occurrences as an RFC 5545 VCALENDAR document.

    Each occurrence becomes one VEVENT with UTC DTSTART/DTEND (DATE values for
    all-day events). Text values are escaped by icalendar.
    """
    calendar = ICalendar()
    calendar.add("prodid", prodid or PRODID)
    calendar.add("version", "2.0")

    for occurrence in occurrences:
        event = IEvent()
        event.add("uid", occurrence.uid)
        start: datetime = parse_iso(occurrence.start)
        end: datetime = parse_iso(occurrence.end)
        if occurrence.all_day:
            event.add("dtstart", start.date())
            event.add("dtend", end.date())
        else:
            event.add("dtstart", start)
            event.add("dtend", end)
        if occurrence.summary:
            event.add("summary", occurrence.summary)
        if occurrence.location:
            event.add("location", occurrence.location)
        if occurrence.description:
            event.add("description", occurrence.description)
        if occurrence.status:
            event.add("status", occurrence.status.upper())
        calendar.add_component(event)

    logger.debug(f"Rendered {len(occurrences)} occurrences as ICS")
    return calendar.to_ical().decode("utf-8")
