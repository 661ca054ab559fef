"""Recurrence expansion exceptions."""

from typing import Optional

from ..exceptions import CalHubError


class ExpansionError(CalHubError):
    """Base exception for expansion errors."""


class InvalidWindow(ExpansionError):
    """Query window is unparsable or does not satisfy start < end."""


class MalformedRecurrence(ExpansionError):
    """A master's recurrence payload cannot be parsed or expanded."""

    def __init__(self, message: str, uid: Optional[str] = None):
        super().__init__(message)
        self.uid = uid
