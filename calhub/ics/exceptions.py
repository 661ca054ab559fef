"""ICS-specific exceptions."""

from typing import Optional

from ..exceptions import CalHubError


class ICSError(CalHubError):
    """Base exception for ICS-related errors."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class ICSFetchError(ICSError):
    """Upstream answered with a status other than 2xx or 304."""


class ICSNetworkError(ICSError):
    """Connection-level failure while fetching a feed."""


class ICSTimeoutError(ICSNetworkError):
    """Request exceeded the configured timeout."""


class ICSParseError(ICSError):
    """Feed body is not a parseable iCalendar document."""
