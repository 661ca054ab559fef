"""Google Calendar and OAuth exceptions."""

from typing import Optional

from ..exceptions import CalHubError


class CredentialError(CalHubError):
    """Base exception for OAuth credential problems."""


class NoCredential(CredentialError):
    """No usable token set is stored (not yet authorized, or undecryptable)."""


class RefreshFailed(CredentialError):
    """The token endpoint rejected the refresh or could not be reached."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class GoogleApiError(CalHubError):
    """Calendar API request failed."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class SyncTokenGone(GoogleApiError):
    """HTTP 410: the incremental sync token is no longer valid."""
