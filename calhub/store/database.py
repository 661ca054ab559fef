"""SQLite event store.

Holds the calendar registry, the normalized raw event table and the encrypted
OAuth token rows. Every failure of the underlying database surfaces as
:class:`StoreUnavailable`.
"""

import asyncio
import logging
from collections.abc import AsyncIterator, Iterable
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Any, Optional, Union

import aiosqlite

from ..utils.timeutils import now_ms
from .exceptions import StoreUnavailable
from .migrations import DatabaseMigration
from .models import (
    MASTER_KEY,
    Calendar,
    CalendarType,
    RawEvent,
    TokenRecord,
    google_calendar_id,
    ics_calendar_id,
)

logger = logging.getLogger(__name__)

UPDATABLE_CALENDAR_FIELDS = ("label", "color", "description", "sort_order", "enabled")

_RAW_EVENT_COLUMNS = (
    "calendar_id",
    "uid",
    "recurrence_id",
    "updated_ts",
    "status",
    "all_day",
    "start_iso",
    "end_iso",
    "tzid",
    "summary",
    "location",
    "description",
    "recurrence_json",
    "source_json",
)


def _placeholders(count: int) -> str:
    return ",".join("?" for _ in range(count))


class EventStore:
    """Async access layer over the SQLite database.

    Connections are opened per operation. Writes are serialized through a
    single lock so concurrent sync adapters never interleave a
    delete-then-insert pair.
    """

    def __init__(self, database_path: Union[Path, str]):
        """Initialize the store (lazy, no I/O).

        Args:
            database_path: Path to SQLite database file
        """
        self.database_path = Path(database_path)
        self._initialized = False
        self._initialization_lock: Optional[asyncio.Lock] = None
        self._write_lock: Optional[asyncio.Lock] = None

        logger.debug(f"Event store created (lazy): {self.database_path}")

    def _get_write_lock(self) -> asyncio.Lock:
        if self._write_lock is None:
            self._write_lock = asyncio.Lock()
        return self._write_lock

    async def initialize(self) -> None:
        """Create the database file and apply pending migrations.

        Raises:
            StoreUnavailable: If the database cannot be opened or migrated
        """
        if self._initialized:
            return

        if self._initialization_lock is None:
            self._initialization_lock = asyncio.Lock()

        async with self._initialization_lock:
            if self._initialized:
                return

            try:
                self.database_path.parent.mkdir(parents=True, exist_ok=True)
                async with aiosqlite.connect(str(self.database_path)) as db:
                    await db.execute("PRAGMA journal_mode=WAL")
                    await db.execute("PRAGMA synchronous=NORMAL")
                    await DatabaseMigration().migrate_to_latest(db)
            except (aiosqlite.Error, OSError) as e:
                logger.exception(f"Failed to initialize event store at {self.database_path}")
                raise StoreUnavailable(f"Cannot initialize database: {e}") from e

            self._initialized = True
            logger.info(f"Event store ready: {self.database_path}")

    @asynccontextmanager
    async def _connect(self) -> AsyncIterator[aiosqlite.Connection]:
        await self.initialize()
        try:
            async with aiosqlite.connect(str(self.database_path)) as db:
                db.row_factory = aiosqlite.Row
                yield db
        except (aiosqlite.Error, OSError) as e:
            raise StoreUnavailable(f"Database operation failed: {e}") from e

    @asynccontextmanager
    async def _write(self) -> AsyncIterator[aiosqlite.Connection]:
        async with self._get_write_lock():
            async with self._connect() as db:
                yield db
                await db.commit()

    # ------------------------------------------------------------------
    # Calendar registry
    # ------------------------------------------------------------------

    async def list_calendars(self) -> list[Calendar]:
        async with self._connect() as db:
            cursor = await db.execute("SELECT * FROM calendars ORDER BY sort_order ASC, id ASC")
            rows = await cursor.fetchall()
        return [Calendar.from_row(row) for row in rows]

    async def list_enabled_calendars(
        self, calendar_type: Optional[CalendarType] = None
    ) -> list[Calendar]:
        """Enabled calendars, optionally restricted to one source type."""
        query = "SELECT * FROM calendars WHERE enabled = 1"
        params: list[Any] = []
        if calendar_type is not None:
            query += " AND type = ?"
            params.append(CalendarType(calendar_type).value)
        query += " ORDER BY sort_order ASC, id ASC"

        async with self._connect() as db:
            cursor = await db.execute(query, params)
            rows = await cursor.fetchall()
        return [Calendar.from_row(row) for row in rows]

    async def get_calendar(self, calendar_id: str) -> Optional[Calendar]:
        async with self._connect() as db:
            cursor = await db.execute("SELECT * FROM calendars WHERE id = ?", (calendar_id,))
            row = await cursor.fetchone()
        return Calendar.from_row(row) if row else None

    async def upsert_calendar_ics(self, url: str, label: Optional[str] = None) -> Calendar:
        """Register an ICS feed, idempotent on the URL-derived id.

        Re-registering updates the URL and, when given, the label. Sync state
        is preserved.
        """
        calendar_id = ics_calendar_id(url)
        async with self._write() as db:
            await db.execute(
                """
                INSERT INTO calendars (id, type, label, enabled, ics_url, updated_at)
                VALUES (?, 'ics', ?, 1, ?, ?)
                ON CONFLICT(id) DO UPDATE SET
                    label = COALESCE(?, calendars.label),
                    ics_url = excluded.ics_url,
                    updated_at = excluded.updated_at
                """,
                (calendar_id, label or url, url, now_ms(), label),
            )
        calendar = await self.get_calendar(calendar_id)
        logger.info(f"Registered ICS calendar {calendar_id}")
        return calendar  # type: ignore[return-value]

    async def upsert_calendar_google(
        self, google_cal_id: str, label: Optional[str] = None
    ) -> Calendar:
        """Register a Google calendar, idempotent on the id-derived key."""
        calendar_id = google_calendar_id(google_cal_id)
        async with self._write() as db:
            await db.execute(
                """
                INSERT INTO calendars (id, type, label, enabled, google_cal_id, updated_at)
                VALUES (?, 'google', ?, 1, ?, ?)
                ON CONFLICT(id) DO UPDATE SET
                    label = COALESCE(?, calendars.label),
                    google_cal_id = excluded.google_cal_id,
                    updated_at = excluded.updated_at
                """,
                (calendar_id, label or google_cal_id, google_cal_id, now_ms(), label),
            )
        calendar = await self.get_calendar(calendar_id)
        logger.info(f"Registered Google calendar {calendar_id}")
        return calendar  # type: ignore[return-value]

    async def update_calendar(self, calendar_id: str, **fields: Any) -> Optional[Calendar]:
        """Update calendar metadata (label, color, description, sort_order, enabled).

        Raises:
            ValueError: If an unknown field is given
        """
        unknown = set(fields) - set(UPDATABLE_CALENDAR_FIELDS)
        if unknown:
            raise ValueError(f"Cannot update calendar fields: {', '.join(sorted(unknown))}")

        if fields:
            assignments = [f"{name} = ?" for name in fields]
            values = [int(v) if name == "enabled" else v for name, v in fields.items()]
            async with self._write() as db:
                await db.execute(
                    f"UPDATE calendars SET {', '.join(assignments)}, updated_at = ? WHERE id = ?",
                    (*values, now_ms(), calendar_id),
                )
        return await self.get_calendar(calendar_id)

    async def delete_calendar(self, calendar_id: str) -> bool:
        """Delete a calendar and all its raw events.

        Returns:
            True if the calendar existed
        """
        async with self._write() as db:
            await db.execute("DELETE FROM raw_events WHERE calendar_id = ?", (calendar_id,))
            cursor = await db.execute("DELETE FROM calendars WHERE id = ?", (calendar_id,))
            deleted = cursor.rowcount > 0

        if deleted:
            logger.info(f"Deleted calendar {calendar_id} and its events")
        return deleted

    async def update_sync_cursor(self, calendar_id: str, cursor: Optional[str]) -> None:
        async with self._write() as db:
            await db.execute(
                "UPDATE calendars SET sync_token = ?, updated_at = ? WHERE id = ?",
                (cursor, now_ms(), calendar_id),
            )

    async def update_conditional_validators(
        self, calendar_id: str, etag: Optional[str], last_modified: Optional[str]
    ) -> None:
        async with self._write() as db:
            await db.execute(
                "UPDATE calendars SET ics_etag = ?, ics_last_mod = ?, updated_at = ? WHERE id = ?",
                (etag, last_modified, now_ms(), calendar_id),
            )

    # ------------------------------------------------------------------
    # Raw events
    # ------------------------------------------------------------------

    async def upsert_raw_event(self, event: RawEvent) -> None:
        """Replace the row with the same identity (delete then insert)."""
        row = event.to_row()
        async with self._write() as db:
            await db.execute(
                """
                DELETE FROM raw_events
                WHERE calendar_id = ? AND uid = ? AND COALESCE(recurrence_id, 'master') = ?
                """,
                (event.calendar_id, event.uid, event.recurrence_key),
            )
            await db.execute(
                f"INSERT INTO raw_events ({', '.join(_RAW_EVENT_COLUMNS)}) "
                f"VALUES ({_placeholders(len(_RAW_EVENT_COLUMNS))})",
                tuple(row[column] for column in _RAW_EVENT_COLUMNS),
            )

    async def delete_raw_events_by_uid(self, calendar_id: str, uid: str) -> int:
        """Delete every row (master, single and overrides) for a uid.

        Returns:
            Number of rows removed
        """
        async with self._write() as db:
            cursor = await db.execute(
                "DELETE FROM raw_events WHERE calendar_id = ? AND uid = ?", (calendar_id, uid)
            )
            return cursor.rowcount

    async def get_existing_updated_ts(
        self, calendar_id: str, uid: str, recurrence_id: Optional[str]
    ) -> Optional[int]:
        """Logical update time of the stored row for an identity, if any."""
        recurrence_key = recurrence_id if recurrence_id is not None else MASTER_KEY
        async with self._connect() as db:
            cursor = await db.execute(
                """
                SELECT updated_ts FROM raw_events
                WHERE calendar_id = ? AND uid = ? AND COALESCE(recurrence_id, 'master') = ?
                """,
                (calendar_id, uid, recurrence_key),
            )
            row = await cursor.fetchone()
        return row["updated_ts"] if row else None

    async def get_raw_event(
        self, calendar_id: str, uid: str, recurrence_id: Optional[str] = None
    ) -> Optional[RawEvent]:
        recurrence_key = recurrence_id if recurrence_id is not None else MASTER_KEY
        async with self._connect() as db:
            cursor = await db.execute(
                """
                SELECT * FROM raw_events
                WHERE calendar_id = ? AND uid = ? AND COALESCE(recurrence_id, 'master') = ?
                """,
                (calendar_id, uid, recurrence_key),
            )
            row = await cursor.fetchone()
        return RawEvent.from_row(row) if row else None

    async def list_raw_events(self, calendar_id: Optional[str] = None) -> list[RawEvent]:
        """All stored rows, ordered by identity."""
        query = "SELECT * FROM raw_events"
        params: tuple[Any, ...] = ()
        if calendar_id is not None:
            query += " WHERE calendar_id = ?"
            params = (calendar_id,)
        query += " ORDER BY calendar_id, uid, COALESCE(recurrence_id, 'master')"

        async with self._connect() as db:
            cursor = await db.execute(query, params)
            rows = await cursor.fetchall()
        return [RawEvent.from_row(row) for row in rows]

    async def _select_events(self, where: str, params: Iterable[Any]) -> list[RawEvent]:
        async with self._connect() as db:
            cursor = await db.execute(f"SELECT * FROM raw_events WHERE {where}", tuple(params))
            rows = await cursor.fetchall()
        return [RawEvent.from_row(row) for row in rows]

    async def get_masters(self, calendar_ids: list[str], window_end: str) -> list[RawEvent]:
        """Recurring masters that start on or before ``window_end``."""
        if not calendar_ids:
            return []
        return await self._select_events(
            "recurrence_id IS NULL AND recurrence_json IS NOT NULL "
            f"AND calendar_id IN ({_placeholders(len(calendar_ids))}) AND start_iso <= ?",
            [*calendar_ids, window_end],
        )

    async def get_overrides(
        self, calendar_ids: list[str], window_start: str, window_end: str
    ) -> list[RawEvent]:
        """Overrides whose recurrence id lies in ``[window_start, window_end]``."""
        if not calendar_ids:
            return []
        return await self._select_events(
            "recurrence_id IS NOT NULL "
            f"AND calendar_id IN ({_placeholders(len(calendar_ids))}) "
            "AND recurrence_id >= ? AND recurrence_id <= ?",
            [*calendar_ids, window_start, window_end],
        )

    async def get_singles(
        self, calendar_ids: list[str], window_start: str, window_end: str
    ) -> list[RawEvent]:
        """Non-recurring events overlapping the half-open window."""
        if not calendar_ids:
            return []
        return await self._select_events(
            "recurrence_id IS NULL AND recurrence_json IS NULL "
            f"AND calendar_id IN ({_placeholders(len(calendar_ids))}) "
            "AND start_iso < ? AND end_iso > ?",
            [*calendar_ids, window_end, window_start],
        )

    # ------------------------------------------------------------------
    # OAuth tokens
    # ------------------------------------------------------------------

    async def get_token_record(self, provider: str) -> Optional[TokenRecord]:
        async with self._connect() as db:
            cursor = await db.execute(
                "SELECT * FROM oauth_tokens WHERE provider = ?", (provider,)
            )
            row = await cursor.fetchone()
        if not row:
            return None
        return TokenRecord(
            provider=row["provider"],
            payload_encrypted=row["payload_encrypted"],
            updated_at=row["updated_at"],
        )

    async def save_token_record(self, provider: str, payload_encrypted: str) -> None:
        async with self._write() as db:
            await db.execute(
                """
                INSERT INTO oauth_tokens (provider, payload_encrypted, updated_at)
                VALUES (?, ?, ?)
                ON CONFLICT(provider) DO UPDATE SET
                    payload_encrypted = excluded.payload_encrypted,
                    updated_at = excluded.updated_at
                """,
                (provider, payload_encrypted, now_ms()),
            )
