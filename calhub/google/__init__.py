"""Google Calendar access: API client, event mapping and OAuth credentials."""

from .client import GoogleCalendarClient
from .credentials import CredentialVault, TokenSet
from .exceptions import (
    CredentialError,
    GoogleApiError,
    NoCredential,
    RefreshFailed,
    SyncTokenGone,
)
from .models import (
    GoogleEventRecord,
    GoogleEventsPage,
    GoogleEventTime,
    map_google_event,
    parse_recurrence_lines,
)

__all__ = [
    "CredentialError",
    "CredentialVault",
    "GoogleApiError",
    "GoogleCalendarClient",
    "GoogleEventRecord",
    "GoogleEventTime",
    "GoogleEventsPage",
    "NoCredential",
    "RefreshFailed",
    "SyncTokenGone",
    "TokenSet",
    "map_google_event",
    "parse_recurrence_lines",
]
