"""Schema migrations for the event store.

Each migration is applied once and recorded by name in ``_migrations``.
"""

import logging

import aiosqlite

from ..utils.timeutils import now_ms

logger = logging.getLogger(__name__)

MIGRATIONS: list[tuple[str, list[str]]] = [
    (
        "0001_calendars_and_raw_events",
        [
            """
            CREATE TABLE IF NOT EXISTS calendars (
                id TEXT PRIMARY KEY,
                type TEXT NOT NULL,
                label TEXT,
                color TEXT,
                enabled INTEGER NOT NULL DEFAULT 1,
                google_cal_id TEXT,
                sync_token TEXT,
                ics_url TEXT,
                ics_etag TEXT,
                ics_last_mod TEXT,
                updated_at INTEGER NOT NULL
            )
            """,
            """
            CREATE TABLE IF NOT EXISTS raw_events (
                calendar_id TEXT NOT NULL,
                uid TEXT NOT NULL,
                recurrence_id TEXT,
                updated_ts INTEGER NOT NULL,
                status TEXT,
                all_day INTEGER NOT NULL,
                start_iso TEXT NOT NULL,
                end_iso TEXT NOT NULL,
                tzid TEXT,
                summary TEXT,
                location TEXT,
                description TEXT,
                recurrence_json TEXT,
                source_json TEXT NOT NULL
            )
            """,
            """
            CREATE UNIQUE INDEX IF NOT EXISTS idx_raw_events_identity
            ON raw_events(calendar_id, uid, COALESCE(recurrence_id, 'master'))
            """,
            """
            CREATE INDEX IF NOT EXISTS idx_raw_events_start
            ON raw_events(calendar_id, start_iso)
            """,
            """
            CREATE INDEX IF NOT EXISTS idx_raw_events_recurrence_id
            ON raw_events(calendar_id, recurrence_id)
            """,
        ],
    ),
    (
        "0002_oauth_tokens",
        [
            """
            CREATE TABLE IF NOT EXISTS oauth_tokens (
                provider TEXT PRIMARY KEY,
                payload_encrypted TEXT NOT NULL,
                updated_at INTEGER NOT NULL
            )
            """,
        ],
    ),
    (
        "0003_calendar_metadata",
        [
            "ALTER TABLE calendars ADD COLUMN description TEXT",
            "ALTER TABLE calendars ADD COLUMN sort_order INTEGER",
        ],
    ),
]


class DatabaseMigration:
    """Applies pending schema migrations and records them in the ledger."""

    def __init__(self, migrations: list[tuple[str, list[str]]] = MIGRATIONS):
        self.migrations = migrations

    async def get_applied(self, db: aiosqlite.Connection) -> set[str]:
        """Names of migrations already recorded in the ledger."""
        await db.execute(
            """
            CREATE TABLE IF NOT EXISTS _migrations (
                name TEXT PRIMARY KEY,
                applied_at INTEGER NOT NULL
            )
            """
        )
        cursor = await db.execute("SELECT name FROM _migrations")
        rows = await cursor.fetchall()
        return {row[0] for row in rows}

    async def migrate_to_latest(self, db: aiosqlite.Connection) -> list[str]:
        """Apply every migration not yet in the ledger, in order.

        Each migration and its ledger row are committed together.

        Returns:
            Names of the migrations applied by this call
        """
        applied = await self.get_applied(db)
        await db.commit()

        newly_applied = []
        for name, statements in self.migrations:
            if name in applied:
                continue

            logger.info(f"Applying database migration {name}")
            try:
                for statement in statements:
                    await db.execute(statement)
                await db.execute(
                    "INSERT INTO _migrations (name, applied_at) VALUES (?, ?)",
                    (name, now_ms()),
                )
                await db.commit()
            except aiosqlite.Error:
                await db.rollback()
                raise
            newly_applied.append(name)

        if newly_applied:
            logger.debug(f"Applied {len(newly_applied)} migration(s)")
        return newly_applied
