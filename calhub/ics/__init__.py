"""ICS feed fetching and parsing."""

from .exceptions import ICSError, ICSFetchError, ICSNetworkError, ICSParseError, ICSTimeoutError
from .fetcher import ICSFetcher
from .models import ComponentKind, ICSResponse, IcsEventRecord
from .parser import ICSParser, map_ics_record

__all__ = [
    "ComponentKind",
    "ICSError",
    "ICSFetchError",
    "ICSFetcher",
    "ICSNetworkError",
    "ICSParseError",
    "ICSParser",
    "ICSResponse",
    "ICSTimeoutError",
    "IcsEventRecord",
    "map_ics_record",
]
