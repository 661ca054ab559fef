"""Recurrence expansion of stored raw events into concrete occurrences."""

import asyncio
import logging
import re
from datetime import date, datetime, timedelta
from typing import Optional

from dateutil.rrule import rruleset, rrulestr

from ..store.database import EventStore
from ..store.models import CalendarType, RawEvent, RecurrencePayload
from ..utils.timeutils import DateLike, coerce_datetime, parse_iso, to_utc_iso
from .cache import ExpansionCache
from .exceptions import InvalidWindow, MalformedRecurrence
from .models import Occurrence, OccurrenceRecurrence, OccurrenceSource

logger = logging.getLogger(__name__)

_UNTIL_PATTERN = re.compile(r"UNTIL=(\d{8})(T\d{6})?Z?", re.IGNORECASE)


def _is_date_only(value: DateLike) -> bool:
    if isinstance(value, str):
        return len(value.strip()) == 10
    return isinstance(value, date) and not isinstance(value, datetime)


def _normalize_until(rule_text: str) -> str:
    """Make UNTIL values UTC so they are comparable with an aware DTSTART.

    Date-only values become the last second of that day. Floating
    date-times are read as UTC; ICS rules already had a floating UNTIL
    resolved in the DTSTART zone by the parser.
    """

    def _replace(match: "re.Match[str]") -> str:
        day, clock = match.group(1), match.group(2)
        if clock is None:
            return f"UNTIL={day}T235959Z"
        return f"UNTIL={day}{clock.upper()}Z"

    return _UNTIL_PATTERN.sub(_replace, rule_text)


def build_rule_set(dtstart: datetime, payload: RecurrencePayload) -> rruleset:
    """Build a dateutil rruleset anchored at ``dtstart``.

    A payload without an RRULE but with RDATEs is a valid recurrence set and
    yields exactly its RDATEs; ``dtstart`` itself is not included. Such a
    master is expanded rather than skipped so its occurrences are not lost.

    Raises:
        ValueError: If the rule or any exception/addition date is invalid
    """
    if payload.rrule:
        rule_text = _normalize_until(payload.rrule.strip())
        rule_set = rrulestr(rule_text, dtstart=dtstart, forceset=True)
    else:
        rule_set = rruleset()

    for exdate in payload.exdates:
        rule_set.exdate(parse_iso(exdate))
    for rdate in payload.rdates:
        rule_set.rdate(parse_iso(rdate))

    return rule_set


class RecurrenceExpander:
    """Expands masters, applies overrides and merges singles for a window.

    Results are memoized in the supplied :class:`ExpansionCache`.
    """

    def __init__(self, store: EventStore, cache: ExpansionCache):
        self.store = store
        self.cache = cache

    @staticmethod
    def _parse_window(window_start: DateLike, window_end: DateLike) -> tuple[datetime, datetime]:
        """Resolve the window bounds to aware UTC datetimes.

        A date-only end covers that whole day.
        """
        try:
            start = coerce_datetime(window_start)
            end = coerce_datetime(window_end)
            if _is_date_only(window_end):
                end += timedelta(days=1)
        except (TypeError, ValueError) as e:
            raise InvalidWindow(f"Invalid time window: {e}") from e

        if end <= start:
            raise InvalidWindow(
                f"Invalid time window: end {to_utc_iso(end)} is not after start {to_utc_iso(start)}"
            )
        return start, end

    async def expand(
        self,
        window_start: DateLike,
        window_end: DateLike,
        include_cancelled: bool = False,
    ) -> list[Occurrence]:
        """Return every occurrence in the window, ordered by start.

        Args:
            window_start: Inclusive window start (datetime, date or ISO string)
            window_end: Window end; must be after ``window_start``
            include_cancelled: Keep cancelled overrides and singles

        Raises:
            InvalidWindow: If the window is unparsable or inverted
            StoreUnavailable: If the event store cannot be read
        """
        start, end = self._parse_window(window_start, window_end)
        start_iso, end_iso = to_utc_iso(start), to_utc_iso(end)

        calendars = await self.store.list_enabled_calendars()
        if not calendars:
            return []

        calendar_ids = [calendar.id for calendar in calendars]
        calendar_types = {calendar.id: calendar.type for calendar in calendars}

        cache_key = self.cache.make_key(start_iso, end_iso, include_cancelled, calendar_ids)
        cached = self.cache.get(cache_key)
        if cached is not None:
            logger.debug(f"Expansion cache hit for {start_iso}..{end_iso}")
            return cached

        masters, overrides, singles = await asyncio.gather(
            self.store.get_masters(calendar_ids, end_iso),
            self.store.get_overrides(calendar_ids, start_iso, end_iso),
            self.store.get_singles(calendar_ids, start_iso, end_iso),
        )

        overrides_by_key = {
            (override.calendar_id, override.uid, override.recurrence_id): override
            for override in overrides
        }

        results: list[Occurrence] = []
        for master in masters:
            try:
                instants = self._expand_master(master, start, end)
            except MalformedRecurrence as e:
                logger.warning(
                    f"Skipping master {master.uid} in {master.calendar_id}: {e.message}"
                )
                continue

            duration = parse_iso(master.end_utc) - parse_iso(master.start_utc)
            calendar_type = calendar_types[master.calendar_id]

            for instant in instants:
                recurrence_id = to_utc_iso(instant)
                override = overrides_by_key.get((master.calendar_id, master.uid, recurrence_id))

                if override is not None:
                    if override.is_cancelled and not include_cancelled:
                        continue
                    results.append(
                        self._make_occurrence(
                            override,
                            calendar_type,
                            start=override.start_utc,
                            end=override.end_utc,
                            uid=master.uid,
                            recurrence_id=recurrence_id,
                        )
                    )
                    continue

                results.append(
                    self._make_occurrence(
                        master,
                        calendar_type,
                        start=recurrence_id,
                        end=to_utc_iso(instant + duration),
                        uid=master.uid,
                        recurrence_id=recurrence_id,
                    )
                )

        for single in singles:
            if single.is_cancelled and not include_cancelled:
                continue
            results.append(
                self._make_occurrence(
                    single,
                    calendar_types[single.calendar_id],
                    start=single.start_utc,
                    end=single.end_utc,
                    uid=single.uid,
                )
            )

        results.sort(key=lambda item: (item.start, item.calendar_id, item.uid))

        self.cache.set(cache_key, results)
        logger.debug(
            f"Expanded {len(masters)} masters, {len(singles)} singles into "
            f"{len(results)} occurrences for {start_iso}..{end_iso}"
        )
        return list(results)

    @staticmethod
    def _expand_master(master: RawEvent, start: datetime, end: datetime) -> list[datetime]:
        """Occurrence start instants of a master within ``[start, end]``.

        Raises:
            MalformedRecurrence: If the payload or rule cannot be expanded
        """
        try:
            payload = master.parse_recurrence()
            if payload is None or payload.is_empty:
                raise MalformedRecurrence("Master has no recurrence rule", master.uid)
            dtstart = parse_iso(master.start_utc)
            parse_iso(master.end_utc)
            rule_set = build_rule_set(dtstart, payload)
            return list(rule_set.between(start, end, inc=True))
        except (ValueError, TypeError, OverflowError) as e:
            raise MalformedRecurrence(f"Cannot expand recurrence: {e}", master.uid) from e

    @staticmethod
    def _make_occurrence(
        event: RawEvent,
        calendar_type: CalendarType,
        start: str,
        end: str,
        uid: str,
        recurrence_id: Optional[str] = None,
    ) -> Occurrence:
        is_recurring = recurrence_id is not None
        return Occurrence(
            uid=uid,
            calendar_id=event.calendar_id,
            source=OccurrenceSource(type=calendar_type, id=uid),
            start=start,
            end=end,
            all_day=event.all_day,
            status=event.status,
            summary=event.summary,
            location=event.location,
            description=event.description,
            recurrence=OccurrenceRecurrence(
                is_recurring=is_recurring,
                master_uid=uid if is_recurring else None,
                recurrence_id=recurrence_id,
            ),
        )
