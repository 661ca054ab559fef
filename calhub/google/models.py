"""Google Calendar API records and their mapping to raw events."""

import json
import logging
from datetime import datetime, timezone
from typing import Any, Optional

import pytz
from pydantic import BaseModel, ConfigDict, Field

from ..store.models import CANCELLED, RawEvent, RecurrencePayload
from ..utils.timeutils import now_ms, parse_iso, to_epoch_ms, to_utc_iso, utc_now

logger = logging.getLogger(__name__)


class GoogleEventTime(BaseModel):
    """``start`` / ``end`` / ``originalStartTime`` of an event resource."""

    model_config = ConfigDict(populate_by_name=True, extra="allow")

    date: Optional[str] = None
    date_time: Optional[str] = Field(default=None, alias="dateTime")
    time_zone: Optional[str] = Field(default=None, alias="timeZone")

    @property
    def is_all_day(self) -> bool:
        return self.date is not None

    def to_utc_iso(self) -> Optional[str]:
        """UTC start of this time; dates map to UTC midnight."""
        if self.date:
            return to_utc_iso(parse_iso(self.date))
        if self.date_time:
            return to_utc_iso(parse_iso(self.date_time))
        return None


class GoogleEventRecord(BaseModel):
    """An event resource from ``events.list`` with ``singleEvents=false``.

    Unknown fields are kept so the full resource can be retained as the
    source payload.
    """

    model_config = ConfigDict(populate_by_name=True, extra="allow")

    id: str
    status: Optional[str] = None
    summary: Optional[str] = None
    description: Optional[str] = None
    location: Optional[str] = None
    start: Optional[GoogleEventTime] = None
    end: Optional[GoogleEventTime] = None
    recurrence: list[str] = Field(default_factory=list)
    recurring_event_id: Optional[str] = Field(default=None, alias="recurringEventId")
    original_start_time: Optional[GoogleEventTime] = Field(
        default=None, alias="originalStartTime"
    )
    updated: Optional[str] = None

    @property
    def is_override(self) -> bool:
        return bool(self.recurring_event_id) and self.original_start_time is not None

    @property
    def is_cancelled(self) -> bool:
        return (self.status or "").lower() == CANCELLED

    @property
    def recurrence_id(self) -> Optional[str]:
        """Canonical original start for overrides, None for masters and singles."""
        if not self.is_override:
            return None
        return self.original_start_time.to_utc_iso()  # type: ignore[union-attr]

    @property
    def updated_ms(self) -> int:
        """Logical update time in epoch ms; now when the resource has none."""
        if not self.updated:
            return now_ms()
        return to_epoch_ms(parse_iso(self.updated))

    def to_payload(self) -> dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


class GoogleEventsPage(BaseModel):
    """One page of an ``events.list`` response."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    items: list[GoogleEventRecord] = Field(default_factory=list)
    next_page_token: Optional[str] = Field(default=None, alias="nextPageToken")
    next_sync_token: Optional[str] = Field(default=None, alias="nextSyncToken")


def _parse_date_values(line: str) -> list[str]:
    """Parse ``EXDATE``/``RDATE`` lines into canonical UTC strings.

    Handles ``;TZID=Zone:yyyymmddThhmmss[,...]``, ``...Z`` values and
    ``;VALUE=DATE:yyyymmdd``. Unparseable values are skipped.
    """
    prefix, _, values = line.partition(":")
    params = dict(
        part.split("=", 1) for part in prefix.split(";")[1:] if "=" in part
    )

    zone = pytz.utc
    if "TZID" in params:
        try:
            zone = pytz.timezone(params["TZID"])
        except pytz.UnknownTimeZoneError:
            logger.warning(f"Unknown TZID {params['TZID']} in {line!r}, assuming UTC")

    parsed = []
    for value in values.split(","):
        value = value.strip()
        if not value:
            continue
        try:
            if value.endswith("Z"):
                dt = datetime.strptime(value, "%Y%m%dT%H%M%SZ").replace(tzinfo=timezone.utc)
            elif "T" in value:
                dt = zone.localize(datetime.strptime(value, "%Y%m%dT%H%M%S"))
            else:
                dt = datetime.strptime(value, "%Y%m%d").replace(tzinfo=timezone.utc)
        except ValueError:
            logger.debug(f"Skipping unparseable date {value!r} in {line!r}")
            continue
        parsed.append(to_utc_iso(dt))
    return parsed


def parse_recurrence_lines(lines: list[str]) -> RecurrencePayload:
    """Split a resource's ``recurrence`` list into rule, exdates and rdates."""
    rules = []
    exdates: list[str] = []
    rdates: list[str] = []
    for line in lines:
        line = line.strip()
        upper = line.upper()
        if upper.startswith("RRULE"):
            rules.append(line)
        elif upper.startswith("EXDATE"):
            exdates.extend(_parse_date_values(line))
        elif upper.startswith("RDATE"):
            rdates.extend(_parse_date_values(line))
    return RecurrencePayload(rrule="\n".join(rules) or None, exdates=exdates, rdates=rdates)


def map_google_event(
    calendar_id: str, record: GoogleEventRecord, updated_ts: Optional[int] = None
) -> RawEvent:
    """Normalize an event resource into a raw event row.

    Overrides are keyed by their original start. Missing start/end values
    fall back to the original start (or now). A recurrence payload is kept
    for an RRULE or for RDATEs alone; RDATE-only series are expanded from
    their RDATEs.

    Raises:
        ValueError: If a timestamp cannot be parsed
    """
    recurrence_id = record.recurrence_id
    fallback = recurrence_id or to_utc_iso(utc_now())

    start = (record.start.to_utc_iso() if record.start else None) or fallback
    end = (record.end.to_utc_iso() if record.end else None) or fallback
    all_day = bool(record.start and record.start.is_all_day)

    time_zone = None
    if record.start and record.start.time_zone:
        time_zone = record.start.time_zone
    elif record.end and record.end.time_zone:
        time_zone = record.end.time_zone

    recurrence_json = None
    if not record.is_override and record.recurrence:
        payload = parse_recurrence_lines(record.recurrence)
        if payload.rrule or payload.rdates:
            recurrence_json = payload.to_json()

    return RawEvent(
        calendar_id=calendar_id,
        uid=record.id,
        recurrence_id=recurrence_id,
        updated_ts=updated_ts if updated_ts is not None else record.updated_ms,
        status=record.status,
        all_day=all_day,
        start_utc=start,
        end_utc=end,
        timezone=time_zone,
        summary=record.summary,
        location=record.location,
        description=record.description,
        recurrence_json=recurrence_json,
        source_payload=json.dumps(record.to_payload()),
    )
