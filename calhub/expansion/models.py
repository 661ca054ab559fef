"""Expanded occurrence models."""

from typing import Optional

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

from ..store.models import CalendarType


class _OccurrenceModel(BaseModel):
    model_config = ConfigDict(frozen=True, alias_generator=to_camel, populate_by_name=True)


class OccurrenceSource(_OccurrenceModel):
    type: CalendarType
    id: str


class OccurrenceRecurrence(_OccurrenceModel):
    is_recurring: bool
    master_uid: Optional[str] = None
    recurrence_id: Optional[str] = None


class Occurrence(_OccurrenceModel):
    """One concrete event instance within a query window.

    ``start`` and ``end`` are canonical UTC strings unless the occurrence was
    projected into a client zone. ``model_dump(by_alias=True)`` yields
    camelCase keys.
    """

    uid: str
    calendar_id: str
    source: OccurrenceSource
    start: str
    end: str
    all_day: bool = False
    status: Optional[str] = None
    summary: Optional[str] = None
    location: Optional[str] = None
    description: Optional[str] = None
    recurrence: OccurrenceRecurrence

    @property
    def is_cancelled(self) -> bool:
        return (self.status or "").lower() == "cancelled"
