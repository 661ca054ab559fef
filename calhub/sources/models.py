"""Sync result models."""

from pydantic import BaseModel, Field


class SyncSummary(BaseModel):
    """Outcome of one adapter run.

    Calendars that failed or were not modified are absent from
    ``processed_calendar_ids``.
    """

    updated_count: int = 0
    processed_calendar_ids: list[str] = Field(default_factory=list)

    def record(self, calendar_id: str, updated: int) -> None:
        self.updated_count += updated
        self.processed_calendar_ids.append(calendar_id)


class SyncResult(BaseModel):
    """Summaries of both sources for one ``sync_all`` run."""

    google: SyncSummary = Field(default_factory=SyncSummary)
    ics: SyncSummary = Field(default_factory=SyncSummary)

    @property
    def updated_count(self) -> int:
        return self.google.updated_count + self.ics.updated_count
