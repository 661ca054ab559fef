"""Source-specific exceptions."""

from typing import Optional

from ..exceptions import CalHubError


class SourceError(CalHubError):
    """Base exception for source-related errors."""

    def __init__(self, message: str, calendar_id: Optional[str] = None):
        super().__init__(message)
        self.calendar_id = calendar_id


class UpstreamHttpError(SourceError):
    """Upstream answered with an error status, or could not be reached."""

    def __init__(
        self,
        message: str,
        calendar_id: Optional[str] = None,
        status_code: Optional[int] = None,
    ):
        super().__init__(message, calendar_id)
        self.status_code = status_code


class CursorInvalid(SourceError):
    """Incremental cursor rejected more often than the restart bound allows."""


class SourceParseError(SourceError):
    """Upstream payload could not be parsed."""


class SyncInProgress(SourceError):
    """A sync run is already in progress."""
