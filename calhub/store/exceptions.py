"""Event store exceptions."""

from ..exceptions import CalHubError


class StoreError(CalHubError):
    """Base exception for event store errors."""


class StoreUnavailable(StoreError):
    """The database could not be opened, read or written."""
