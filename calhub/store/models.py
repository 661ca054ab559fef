"""Data models for the event store."""

import hashlib
import json
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field

# Recurrence key of master and single rows (stored as NULL recurrence_id)
MASTER_KEY = "master"

CANCELLED = "cancelled"


class CalendarType(str, Enum):
    """Supported calendar source types."""

    GOOGLE = "google"
    ICS = "ics"


def _short_sha1(value: str) -> str:
    return hashlib.sha1(value.encode("utf-8")).hexdigest()[:12]


def ics_calendar_id(url: str) -> str:
    """Stable calendar id for an ICS feed URL."""
    return f"ics_{_short_sha1(url)}"


def google_calendar_id(google_cal_id: str) -> str:
    """Stable calendar id for a Google calendar id."""
    return f"gcal_{_short_sha1(google_cal_id)}"


class Calendar(BaseModel):
    """A subscribed calendar source and its incremental sync state."""

    id: str
    type: CalendarType
    label: Optional[str] = None
    color: Optional[str] = None
    description: Optional[str] = None
    sort_order: Optional[int] = None
    enabled: bool = True

    google_cal_id: Optional[str] = None
    sync_token: Optional[str] = None

    ics_url: Optional[str] = None
    ics_etag: Optional[str] = None
    ics_last_mod: Optional[str] = None

    updated_at: int = 0

    @classmethod
    def from_row(cls, row: Any) -> "Calendar":
        return cls(
            id=row["id"],
            type=CalendarType(row["type"]),
            label=row["label"],
            color=row["color"],
            description=row["description"],
            sort_order=row["sort_order"],
            enabled=bool(row["enabled"]),
            google_cal_id=row["google_cal_id"],
            sync_token=row["sync_token"],
            ics_url=row["ics_url"],
            ics_etag=row["ics_etag"],
            ics_last_mod=row["ics_last_mod"],
            updated_at=row["updated_at"],
        )

    @property
    def source_pointer(self) -> Optional[str]:
        """Google calendar id or ICS URL, whichever matches ``type``."""
        return self.google_cal_id if self.type == CalendarType.GOOGLE else self.ics_url


class RecurrencePayload(BaseModel):
    """Recurrence definition stored on master rows.

    ``exdates`` and ``rdates`` hold canonical UTC timestamps.
    """

    rrule: Optional[str] = None
    exdates: list[str] = Field(default_factory=list)
    rdates: list[str] = Field(default_factory=list)

    @property
    def is_empty(self) -> bool:
        return not self.rrule and not self.exdates and not self.rdates

    def to_json(self) -> str:
        return json.dumps(
            {"rrule": self.rrule, "exdates": self.exdates, "rdates": self.rdates},
            separators=(",", ":"),
        )

    @classmethod
    def from_json(cls, text: str) -> "RecurrencePayload":
        """Parse a stored payload.

        Raises:
            ValueError: If the text is not a valid payload
        """
        try:
            data = json.loads(text)
        except json.JSONDecodeError as e:
            raise ValueError(f"Recurrence payload is not JSON: {e}") from e
        if not isinstance(data, dict):
            raise ValueError("Recurrence payload must be an object")
        return cls.model_validate(
            {
                "rrule": data.get("rrule"),
                "exdates": data.get("exdates") or [],
                "rdates": data.get("rdates") or [],
            }
        )


class RawEvent(BaseModel):
    """Normalized event row as written by the sync adapters.

    Identity is ``(calendar_id, uid, recurrence_key)``. ``recurrence_id`` is
    None for masters and singles and the canonical UTC start of the
    overridden occurrence for overrides.
    """

    model_config = ConfigDict(frozen=True)

    calendar_id: str
    uid: str
    recurrence_id: Optional[str] = None
    updated_ts: int
    status: Optional[str] = None
    all_day: bool = False
    start_utc: str
    end_utc: str
    timezone: Optional[str] = None
    summary: Optional[str] = None
    location: Optional[str] = None
    description: Optional[str] = None
    recurrence_json: Optional[str] = None
    source_payload: str = "{}"

    @property
    def recurrence_key(self) -> str:
        return self.recurrence_id if self.recurrence_id is not None else MASTER_KEY

    @property
    def is_override(self) -> bool:
        return self.recurrence_id is not None

    @property
    def is_master(self) -> bool:
        return self.recurrence_id is None and self.recurrence_json is not None

    @property
    def is_cancelled(self) -> bool:
        return (self.status or "").lower() == CANCELLED

    def parse_recurrence(self) -> Optional[RecurrencePayload]:
        """Decode the stored recurrence payload.

        Raises:
            ValueError: If the payload is malformed
        """
        if self.recurrence_json is None:
            return None
        return RecurrencePayload.from_json(self.recurrence_json)

    def to_row(self) -> dict[str, Any]:
        return {
            "calendar_id": self.calendar_id,
            "uid": self.uid,
            "recurrence_id": self.recurrence_id,
            "updated_ts": self.updated_ts,
            "status": self.status,
            "all_day": 1 if self.all_day else 0,
            "start_iso": self.start_utc,
            "end_iso": self.end_utc,
            "tzid": self.timezone,
            "summary": self.summary,
            "location": self.location,
            "description": self.description,
            "recurrence_json": self.recurrence_json,
            "source_json": self.source_payload,
        }

    @classmethod
    def from_row(cls, row: Any) -> "RawEvent":
        return cls(
            calendar_id=row["calendar_id"],
            uid=row["uid"],
            recurrence_id=row["recurrence_id"],
            updated_ts=row["updated_ts"],
            status=row["status"],
            all_day=bool(row["all_day"]),
            start_utc=row["start_iso"],
            end_utc=row["end_iso"],
            timezone=row["tzid"],
            summary=row["summary"],
            location=row["location"],
            description=row["description"],
            recurrence_json=row["recurrence_json"],
            source_payload=row["source_json"],
        )


class TokenRecord(BaseModel):
    """Encrypted OAuth token payload for one provider."""

    provider: str
    payload_encrypted: str
    updated_at: int
