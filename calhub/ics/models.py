"""Data models for ICS feed processing."""

from datetime import datetime
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, Field


class ICSResponse(BaseModel):
    """Result of a conditional ICS fetch."""

    status_code: int
    content: Optional[str] = None
    headers: dict[str, str] = Field(default_factory=dict)
    etag: Optional[str] = None
    last_modified: Optional[str] = None
    fetch_time: datetime = Field(default_factory=datetime.now)

    @property
    def is_not_modified(self) -> bool:
        """Check if response indicates content not modified (304)."""
        return self.status_code == 304


class ComponentKind(str, Enum):
    """How a VEVENT participates in recurrence."""

    MASTER = "master"
    OVERRIDE = "override"
    SINGLE = "single"


class IcsEventRecord(BaseModel):
    """One VEVENT as read from a feed, before normalization.

    All timestamps are canonical UTC strings.
    """

    kind: ComponentKind
    uid: str
    recurrence_id: Optional[str] = None
    start: str
    end: str
    all_day: bool = False
    timezone: Optional[str] = None
    status: Optional[str] = None
    summary: Optional[str] = None
    location: Optional[str] = None
    description: Optional[str] = None
    rrule: Optional[str] = None
    exdates: list[str] = Field(default_factory=list)
    rdates: list[str] = Field(default_factory=list)
    source: dict[str, Any] = Field(default_factory=dict)
