"""calhub - calendar aggregation engine for Google Calendar and ICS feeds."""

__version__ = "0.1.0"
__author__ = "calhub developers"
__description__ = (
    "Aggregates Google Calendar and ICS feeds into a local store and serves "
    "recurrence-expanded event windows"
)

__all__ = [
    "__author__",
    "__description__",
    "__version__",
]
