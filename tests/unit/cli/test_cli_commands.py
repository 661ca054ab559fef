"""End-to-end tests of CLI commands against a temporary database."""

import json
import os
from collections.abc import Callable
from pathlib import Path

import pytest
from cryptography.fernet import Fernet

from calhub.cli import main_entry
from calhub.store.database import EventStore
from calhub.store.models import RawEvent, ics_calendar_id

URL = "https://example.com/team.ics"


@pytest.fixture(autouse=True)
def clean_environment(monkeypatch: pytest.MonkeyPatch) -> None:
    for key in list(os.environ):
        if key.upper().startswith("CALHUB_"):
            monkeypatch.delenv(key, raising=False)


@pytest.fixture
def database(tmp_path: Path) -> Path:
    return tmp_path / "cli.db"


@pytest.fixture
def cli(tmp_path: Path, database: Path) -> Callable:
    """Run ``calhub`` with an isolated config and database."""
    config = tmp_path / "config.yaml"
    config.write_text(f"data_dir: {tmp_path}\n")

    async def _run(*argv: str) -> int:
        return await main_entry(["--config", str(config), "--database", str(database), "-q", *argv])

    return _run


class TestRegistryCommands:
    @pytest.mark.asyncio
    async def test_add_and_list(self, cli: Callable, capsys: pytest.CaptureFixture) -> None:
        assert await cli("add-ics", URL, "--label", "Team") == 0
        capsys.readouterr()

        assert await cli("list") == 0

        out = capsys.readouterr().out
        assert ics_calendar_id(URL) in out
        assert "Team" in out
        assert "enabled" in out

    @pytest.mark.asyncio
    async def test_disable_then_enable(self, cli: Callable, capsys: pytest.CaptureFixture) -> None:
        await cli("add-ics", URL)
        calendar_id = ics_calendar_id(URL)

        assert await cli("disable", calendar_id) == 0
        assert "disabled" in capsys.readouterr().out
        assert await cli("enable", calendar_id) == 0
        assert "\tenabled\t" in capsys.readouterr().out

    @pytest.mark.asyncio
    async def test_unknown_calendar(self, cli: Callable) -> None:
        assert await cli("enable", "ics_missing") == 1
        assert await cli("remove", "ics_missing") == 1

    @pytest.mark.asyncio
    async def test_remove(self, cli: Callable, capsys: pytest.CaptureFixture) -> None:
        await cli("add-google", "primary")
        capsys.readouterr()

        await cli("list")
        calendar_id = capsys.readouterr().out.split("\t")[0]

        assert await cli("remove", calendar_id) == 0
        await cli("list")
        assert "No calendars registered" in capsys.readouterr().out


class TestQueryCommands:
    @pytest.mark.asyncio
    async def test_events_json(
        self,
        cli: Callable,
        database: Path,
        capsys: pytest.CaptureFixture,
        make_raw_event: Callable[..., RawEvent],
    ) -> None:
        store = EventStore(database)
        calendar = await store.upsert_calendar_ics(URL)
        await store.upsert_raw_event(
            make_raw_event(
                calendar_id=calendar.id,
                uid="standup",
                start="2024-01-01T09:00:00Z",
                end="2024-01-01T09:30:00Z",
                rrule="RRULE:FREQ=DAILY;COUNT=5",
            )
        )

        assert await cli("events", "--start", "2024-01-01", "--end", "2024-01-05") == 0

        occurrences = json.loads(capsys.readouterr().out)
        assert len(occurrences) == 5
        assert occurrences[0]["calendarId"] == calendar.id
        assert occurrences[0]["recurrence"]["masterUid"] == "standup"

    @pytest.mark.asyncio
    async def test_events_projected_into_zone(
        self,
        cli: Callable,
        database: Path,
        capsys: pytest.CaptureFixture,
        make_raw_event: Callable[..., RawEvent],
    ) -> None:
        store = EventStore(database)
        calendar = await store.upsert_calendar_ics(URL)
        await store.upsert_raw_event(make_raw_event(calendar_id=calendar.id))

        await cli("events", "--start", "2024-01-01", "--end", "2024-01-02", "--zone", "Asia/Tokyo")

        occurrences = json.loads(capsys.readouterr().out)
        assert occurrences[0]["start"] == "2024-01-01T19:00:00+09:00"

    @pytest.mark.asyncio
    async def test_unknown_zone_fails(self, cli: Callable) -> None:
        code = await cli("events", "--start", "2024-01-01", "--end", "2024-01-02", "--zone", "Nope")

        assert code == 1

    @pytest.mark.asyncio
    async def test_invalid_window_exit_code(
        self, cli: Callable, capsys: pytest.CaptureFixture
    ) -> None:
        await cli("add-ics", URL)

        code = await cli("events", "--start", "2024-01-05", "--end", "2024-01-01")

        assert code == 2
        assert "Invalid window" in capsys.readouterr().err

    @pytest.mark.asyncio
    async def test_freebusy(
        self,
        cli: Callable,
        database: Path,
        capsys: pytest.CaptureFixture,
        make_raw_event: Callable[..., RawEvent],
    ) -> None:
        store = EventStore(database)
        calendar = await store.upsert_calendar_ics(URL)
        await store.upsert_raw_event(make_raw_event(calendar_id=calendar.id, uid="a"))
        await store.upsert_raw_event(
            make_raw_event(
                calendar_id=calendar.id,
                uid="b",
                start="2024-01-01T10:30:00Z",
                end="2024-01-01T12:00:00Z",
            )
        )

        assert await cli("freebusy", "--start", "2024-01-01", "--end", "2024-01-02") == 0

        result = json.loads(capsys.readouterr().out)
        assert result["merged"] == [{"start": "2024-01-01T10:00:00Z", "end": "2024-01-01T12:00:00Z"}]

    @pytest.mark.asyncio
    async def test_export_ics(
        self,
        cli: Callable,
        database: Path,
        capsys: pytest.CaptureFixture,
        make_raw_event: Callable[..., RawEvent],
    ) -> None:
        store = EventStore(database)
        calendar = await store.upsert_calendar_ics(URL)
        await store.upsert_raw_event(make_raw_event(calendar_id=calendar.id, summary="Review"))

        await cli("export-ics", "--start", "2024-01-01", "--end", "2024-01-02")

        out = capsys.readouterr().out
        assert out.startswith("BEGIN:VCALENDAR")
        assert "SUMMARY:Review" in out


class TestImportToken:
    @pytest.mark.asyncio
    async def test_import_token(
        self, cli: Callable, database: Path, tmp_path: Path, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        monkeypatch.setenv("CALHUB_TOKEN_ENCRYPTION_KEY", Fernet.generate_key().decode("ascii"))
        token_file = tmp_path / "token.json"
        token_file.write_text(
            json.dumps({"access_token": "a", "refresh_token": "r", "expires_in": 3600})
        )

        assert await cli("import-token", str(token_file)) == 0

        record = await EventStore(database).get_token_record("google")
        assert record is not None
        assert "refresh_token" not in record.payload_encrypted

    @pytest.mark.asyncio
    async def test_import_token_without_key_fails(self, cli: Callable, tmp_path: Path) -> None:
        token_file = tmp_path / "token.json"
        token_file.write_text(json.dumps({"access_token": "a"}))

        assert await cli("import-token", str(token_file)) == 1

    @pytest.mark.asyncio
    async def test_import_unreadable_file(self, cli: Callable, tmp_path: Path) -> None:
        assert await cli("import-token", str(tmp_path / "missing.json")) == 1
