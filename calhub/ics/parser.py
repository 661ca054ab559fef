"""ICS parsing: VEVENT components to tagged records and normalized raw events."""

import json
import logging
from datetime import date, datetime, timedelta
from typing import Any, Optional

import pytz
from icalendar import Calendar, Component
from icalendar.prop import vRecur

from ..store.models import RawEvent, RecurrencePayload
from ..utils.timeutils import ensure_utc, to_utc_iso
from .exceptions import ICSParseError
from .models import ComponentKind, IcsEventRecord

logger = logging.getLogger(__name__)

ONE_DAY = timedelta(days=1)


def _as_list(value: Any) -> list:
    if value is None:
        return []
    return value if isinstance(value, list) else [value]


def _text(component: Component, name: str) -> Optional[str]:
    value = component.get(name)
    return str(value) if value is not None else None


def _date_list(component: Component, name: str) -> list[str]:
    """Canonical UTC strings for every value of EXDATE or RDATE."""
    values = []
    for prop in _as_list(component.get(name)):
        for item in getattr(prop, "dts", []):
            dt = item.dt
            if isinstance(dt, tuple):
                # RDATE period: (start, end or duration)
                dt = dt[0]
            values.append(to_utc_iso(dt))
    return values


def _utc_until(until: Any, dtstart: Any) -> Any:
    """Convert an RRULE UNTIL date-time to UTC.

    A floating UNTIL is read in the zone of DTSTART. Date values are kept.
    """
    if not isinstance(until, datetime):
        return until
    if until.tzinfo is None and isinstance(dtstart, datetime) and dtstart.tzinfo is not None:
        localize = getattr(dtstart.tzinfo, "localize", None)
        until = localize(until) if localize else until.replace(tzinfo=dtstart.tzinfo)
    return ensure_utc(until).astimezone(pytz.utc)


def _rrule_text(component: Component, dtstart: Any = None) -> Optional[str]:
    rules = _as_list(component.get("RRULE"))
    if not rules:
        return None

    lines = []
    for rule in rules:
        if "UNTIL" in rule:
            rule = vRecur(rule)
            rule["UNTIL"] = [_utc_until(value, dtstart) for value in _as_list(rule["UNTIL"])]
        lines.append(f"RRULE:{rule.to_ical().decode('utf-8')}")
    return "\n".join(lines)


class ICSParser:
    """Turns an iCalendar document into :class:`IcsEventRecord` values."""

    def parse_ics_content(
        self, ics_content: str, calendar_id: str = "ics"
    ) -> list[IcsEventRecord]:
        """Parse every VEVENT in a document.

        Components without DTSTART are skipped with a warning.

        Args:
            ics_content: Raw document text
            calendar_id: Used to synthesize uids for components without UID

        Raises:
            ICSParseError: If the document cannot be parsed
        """
        try:
            calendar = Calendar.from_ical(ics_content)
        except (ValueError, IndexError) as e:
            raise ICSParseError(f"Invalid iCalendar document: {e}") from e

        records = []
        for index, component in enumerate(calendar.walk("VEVENT")):
            try:
                record = self._parse_event_component(component, f"{calendar_id}-{index}")
            except (ValueError, TypeError, AttributeError) as e:
                raise ICSParseError(f"Invalid VEVENT #{index}: {e}") from e
            if record is not None:
                records.append(record)

        logger.debug(f"Parsed {len(records)} VEVENT components")
        return records

    def _parse_event_component(
        self, component: Component, fallback_uid: str
    ) -> Optional[IcsEventRecord]:
        uid = _text(component, "UID") or fallback_uid

        dtstart_prop = component.get("DTSTART")
        if dtstart_prop is None:
            logger.warning(f"Event {uid} missing DTSTART, skipping")
            return None

        start_value = dtstart_prop.dt
        start = ensure_utc(start_value)
        end = self._resolve_end(component, start_value, start)
        is_date = not isinstance(start_value, datetime)
        all_day = is_date or (end - start) == ONE_DAY

        timezone = dtstart_prop.params.get("TZID")
        if timezone is None and isinstance(start_value, datetime) and start_value.tzinfo:
            timezone = str(start_value.tzinfo)

        recurrence_id_prop = component.get("RECURRENCE-ID")
        recurrence_id = to_utc_iso(recurrence_id_prop.dt) if recurrence_id_prop else None

        rrule = _rrule_text(component, start_value)
        exdates = _date_list(component, "EXDATE")
        rdates = _date_list(component, "RDATE")

        if recurrence_id is not None:
            kind = ComponentKind.OVERRIDE
        elif rrule is not None or rdates:
            kind = ComponentKind.MASTER
        else:
            kind = ComponentKind.SINGLE

        start_iso, end_iso = to_utc_iso(start), to_utc_iso(end)
        status = _text(component, "STATUS")
        summary = _text(component, "SUMMARY")
        location = _text(component, "LOCATION")
        description = _text(component, "DESCRIPTION")

        return IcsEventRecord(
            kind=kind,
            uid=uid,
            recurrence_id=recurrence_id,
            start=start_iso,
            end=end_iso,
            all_day=all_day,
            timezone=str(timezone) if timezone else None,
            status=status,
            summary=summary,
            location=location,
            description=description,
            rrule=rrule,
            exdates=exdates,
            rdates=rdates,
            source={
                "uid": _text(component, "UID"),
                "start": start_iso,
                "end": end_iso,
                "status": status,
                "summary": summary,
                "location": location,
                "description": description,
                "recurrenceid": recurrence_id,
                "rrule": rrule,
                "exdate": exdates,
                "rdate": rdates,
            },
        )

    @staticmethod
    def _resolve_end(component: Component, start_value: Any, start: datetime) -> datetime:
        """DTEND, else DTSTART + DURATION, else one day for dates and zero for times."""
        dtend_prop = component.get("DTEND")
        if dtend_prop is not None:
            return ensure_utc(dtend_prop.dt)

        duration_prop = component.get("DURATION")
        if duration_prop is not None:
            return start + duration_prop.dt

        if isinstance(start_value, date) and not isinstance(start_value, datetime):
            return start + ONE_DAY
        return start


def map_ics_record(record: IcsEventRecord, calendar_id: str, updated_ts: int) -> RawEvent:
    """Normalize an ICS record into a raw event row.

    Only masters carry a recurrence payload: an RRULE, or RDATEs alone,
    without RECURRENCE-ID. RDATE-only masters are intentionally expanded
    from their RDATEs by the recurrence expander.
    """
    recurrence_json = None
    if record.kind == ComponentKind.MASTER:
        payload = RecurrencePayload(
            rrule=record.rrule, exdates=record.exdates, rdates=record.rdates
        )
        recurrence_json = payload.to_json()

    return RawEvent(
        calendar_id=calendar_id,
        uid=record.uid,
        recurrence_id=record.recurrence_id,
        updated_ts=updated_ts,
        status=record.status,
        all_day=record.all_day,
        start_utc=record.start,
        end_utc=record.end,
        timezone=record.timezone,
        summary=record.summary,
        location=record.location,
        description=record.description,
        recurrence_json=recurrence_json,
        source_payload=json.dumps(record.source, default=str),
    )
