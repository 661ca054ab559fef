"""Command-line argument parsing for calhub."""

import argparse

from .. import __version__


def _add_window_arguments(parser: argparse.ArgumentParser, required: bool) -> None:
    parser.add_argument(
        "--start",
        required=required,
        help="Window start (ISO-8601, e.g. 2024-01-01 or 2024-01-01T09:00:00Z)",
    )
    parser.add_argument("--end", required=required, help="Window end (exclusive, ISO-8601)")


def create_parser() -> argparse.ArgumentParser:
    """Create the ``calhub`` argument parser.

    Global options (config, database, logging) come before the command.

    Example:
        >>> parser = create_parser()
        >>> args = parser.parse_args(["events", "--start", "2024-01-01", "--end", "2024-01-08"])
        >>> args.command
        'events'
    """
    parser = argparse.ArgumentParser(
        prog="calhub",
        description="calhub - aggregate Google Calendar and ICS feeds into one local store",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  %(prog)s add-ics https://example.com/team.ics --label Team
  %(prog)s add-google primary
  %(prog)s sync
  %(prog)s events --start 2024-01-01 --end 2024-01-08 --zone Europe/Berlin
  %(prog)s export-ics > next-month.ics
  %(prog)s run                      # sync every sync_interval seconds
        """,
    )

    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    parser.add_argument("--config", metavar="FILE", help="YAML configuration file")
    parser.add_argument("--database", metavar="FILE", help="SQLite database file")

    logging_group = parser.add_argument_group("logging")
    logging_group.add_argument(
        "--log-level",
        choices=["DEBUG", "VERBOSE", "INFO", "WARNING", "ERROR", "CRITICAL"],
        help="Console and file log level",
    )
    logging_group.add_argument(
        "--verbose", "-v", action="store_true", help="Enable verbose logging"
    )
    logging_group.add_argument(
        "--quiet", "-q", action="store_true", help="Only log errors to the console"
    )

    subparsers = parser.add_subparsers(dest="command", metavar="COMMAND")
    subparsers.required = True

    add_ics = subparsers.add_parser("add-ics", help="Register an ICS feed")
    add_ics.add_argument("url", help="Feed URL")
    add_ics.add_argument("--label", help="Display label (defaults to the URL)")

    add_google = subparsers.add_parser("add-google", help="Register a Google calendar")
    add_google.add_argument("calendar_id", metavar="CAL_ID", help="Google calendar id, e.g. primary")
    add_google.add_argument("--label", help="Display label (defaults to the calendar id)")

    subparsers.add_parser("list", help="List registered calendars")

    for name, help_text in (("enable", "Enable a calendar"), ("disable", "Disable a calendar")):
        toggle = subparsers.add_parser(name, help=help_text)
        toggle.add_argument("calendar_id", metavar="ID", help="calhub calendar id")

    remove = subparsers.add_parser("remove", help="Delete a calendar and its events")
    remove.add_argument("calendar_id", metavar="ID", help="calhub calendar id")

    subparsers.add_parser("sync", help="Sync all enabled calendars once")

    events = subparsers.add_parser("events", help="Print expanded occurrences as JSON")
    _add_window_arguments(events, required=True)
    events.add_argument(
        "--include-cancelled", action="store_true", help="Keep cancelled occurrences"
    )
    events.add_argument("--zone", help="Render start/end in this IANA time zone")

    freebusy = subparsers.add_parser("freebusy", help="Print busy intervals as JSON")
    _add_window_arguments(freebusy, required=True)

    export = subparsers.add_parser(
        "export-ics", help="Print a window as iCalendar text (default: next 30 days)"
    )
    _add_window_arguments(export, required=False)

    subparsers.add_parser("run", help="Sync on a schedule until interrupted")

    import_token = subparsers.add_parser("import-token", help="Store a Google token set")
    import_token.add_argument(
        "file", metavar="FILE", help="JSON with access_token, refresh_token, expires_in/expiry_ms"
    )

    return parser
