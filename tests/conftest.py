"""Shared test fixtures: lightweight settings, temporary stores and raw event builders."""

from collections.abc import AsyncGenerator, Callable
from pathlib import Path
from typing import Any, Optional

import pytest
import pytest_asyncio
from cryptography.fernet import Fernet

from calhub.config.settings import LoggingSettings
from calhub.store.database import EventStore
from calhub.store.models import RawEvent, RecurrencePayload


class MockSettings:
    """Plain attribute container standing in for CalHubSettings."""

    def __init__(self, data_dir: Path, **overrides: Any) -> None:
        self.data_dir = data_dir
        self.config_dir = data_dir / "config"
        self.database_path = data_dir / "calhub.db"
        self.database_file = self.database_path
        self.ics_urls: list[str] = []
        self.google_client_id = "client-id"
        self.google_client_secret = "client-secret"
        self.google_scopes = "https://www.googleapis.com/auth/calendar.readonly"
        self.token_encryption_key = Fernet.generate_key().decode("ascii")
        self.google_max_cursor_restarts = 1
        self.sync_interval = 300
        self.request_timeout = 5.0
        self.user_agent = "calhub-tests"
        self.expansion_cache_ttl = 30.0
        self.expansion_cache_size = 200
        self.logging = LoggingSettings(console_level="ERROR")

        for name, value in overrides.items():
            setattr(self, name, value)


@pytest.fixture
def test_settings(tmp_path: Path) -> MockSettings:
    """Create lightweight test settings rooted in a temporary directory."""
    return MockSettings(tmp_path)


@pytest_asyncio.fixture
async def event_store(tmp_path: Path) -> AsyncGenerator[EventStore, None]:
    """Initialized EventStore backed by a temporary SQLite file."""
    store = EventStore(tmp_path / "events.db")
    await store.initialize()
    yield store


@pytest.fixture
def make_raw_event() -> Callable[..., RawEvent]:
    """Factory for RawEvent rows with sensible defaults."""

    def _make(
        calendar_id: str = "ics_test",
        uid: str = "event-1",
        start: str = "2024-01-01T10:00:00Z",
        end: str = "2024-01-01T11:00:00Z",
        recurrence_id: Optional[str] = None,
        rrule: Optional[str] = None,
        exdates: Optional[list[str]] = None,
        rdates: Optional[list[str]] = None,
        updated_ts: int = 1_000,
        **fields: Any,
    ) -> RawEvent:
        recurrence_json = None
        if rrule is not None or rdates:
            recurrence_json = RecurrencePayload(
                rrule=rrule, exdates=exdates or [], rdates=rdates or []
            ).to_json()
        fields.setdefault("summary", uid)
        return RawEvent(
            calendar_id=calendar_id,
            uid=uid,
            recurrence_id=recurrence_id,
            updated_ts=updated_ts,
            start_utc=start,
            end_utc=end,
            recurrence_json=recurrence_json,
            **fields,
        )

    return _make
