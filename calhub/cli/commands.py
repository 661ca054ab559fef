"""Command implementations. Each returns a process exit code."""

import argparse
import asyncio
import json
import logging
import signal
from pathlib import Path
from typing import Any, Awaitable, Callable

from pydantic import ValidationError

from ..expansion.views import freebusy, project_to_zone, render_ics
from ..google.credentials import TokenSet
from ..sources.scheduler import SyncScheduler
from ..store.models import Calendar
from ..utils.timeutils import default_window, now_ms
from .context import AppContext

logger = logging.getLogger(__name__)

Command = Callable[[AppContext, argparse.Namespace], Awaitable[int]]


def _print_json(data: Any) -> None:
    print(json.dumps(data, indent=2, ensure_ascii=False))


def _format_calendar(calendar: Calendar) -> str:
    state = "enabled" if calendar.enabled else "disabled"
    return (
        f"{calendar.id}\t{calendar.type.value}\t{state}\t"
        f"{calendar.label or ''}\t{calendar.source_pointer or ''}"
    )


async def add_ics(ctx: AppContext, args: argparse.Namespace) -> int:
    calendar = await ctx.store.upsert_calendar_ics(args.url, label=args.label)
    print(_format_calendar(calendar))
    return 0


async def add_google(ctx: AppContext, args: argparse.Namespace) -> int:
    calendar = await ctx.store.upsert_calendar_google(args.calendar_id, label=args.label)
    print(_format_calendar(calendar))
    return 0


async def list_calendars(ctx: AppContext, args: argparse.Namespace) -> int:
    calendars = await ctx.store.list_calendars()
    if not calendars:
        print("No calendars registered")
        return 0
    for calendar in calendars:
        print(_format_calendar(calendar))
    return 0


async def _set_enabled(ctx: AppContext, calendar_id: str, enabled: bool) -> int:
    calendar = await ctx.store.update_calendar(calendar_id, enabled=enabled)
    if calendar is None:
        print(f"Unknown calendar: {calendar_id}")
        return 1
    print(_format_calendar(calendar))
    return 0


async def enable(ctx: AppContext, args: argparse.Namespace) -> int:
    return await _set_enabled(ctx, args.calendar_id, True)


async def disable(ctx: AppContext, args: argparse.Namespace) -> int:
    return await _set_enabled(ctx, args.calendar_id, False)


async def remove(ctx: AppContext, args: argparse.Namespace) -> int:
    if not await ctx.store.delete_calendar(args.calendar_id):
        print(f"Unknown calendar: {args.calendar_id}")
        return 1
    print(f"Removed {args.calendar_id}")
    return 0


async def sync(ctx: AppContext, args: argparse.Namespace) -> int:
    result = await ctx.orchestrator.sync_all()
    _print_json(result.model_dump())
    return 0


async def events(ctx: AppContext, args: argparse.Namespace) -> int:
    occurrences = await ctx.expander.expand(
        args.start, args.end, include_cancelled=args.include_cancelled
    )
    if args.zone:
        try:
            occurrences = project_to_zone(occurrences, args.zone)
        except ValueError as e:
            print(f"Error: {e}")
            return 1
    _print_json([occurrence.model_dump(by_alias=True) for occurrence in occurrences])
    return 0


async def busy(ctx: AppContext, args: argparse.Namespace) -> int:
    occurrences = await ctx.expander.expand(args.start, args.end)
    _print_json(freebusy(occurrences).model_dump())
    return 0


async def export_ics(ctx: AppContext, args: argparse.Namespace) -> int:
    default_start, default_end = default_window()
    occurrences = await ctx.expander.expand(args.start or default_start, args.end or default_end)
    print(render_ics(occurrences), end="")
    return 0


async def run(ctx: AppContext, args: argparse.Namespace) -> int:
    """Register configured feeds, then sync on schedule until stopped."""
    for url in ctx.settings.ics_urls:
        await ctx.store.upsert_calendar_ics(url)

    scheduler = SyncScheduler(ctx.orchestrator, interval=ctx.settings.sync_interval)

    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, scheduler.stop)
        except NotImplementedError:
            logger.debug(f"Signal handlers not supported for {sig!r}")

    await scheduler.run()
    logger.info(f"Scheduler finished after {scheduler.runs} runs ({scheduler.skipped} skipped)")
    return 0


async def import_token(ctx: AppContext, args: argparse.Namespace) -> int:
    """Store a token set from JSON; ``expires_in`` is converted to an absolute expiry."""
    try:
        data = json.loads(Path(args.file).read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError) as e:
        print(f"Cannot read token file {args.file}: {e}")
        return 1

    if isinstance(data, dict) and "expiry_ms" not in data and data.get("expires_in"):
        data["expiry_ms"] = now_ms() + int(data["expires_in"]) * 1000

    try:
        token_set = TokenSet.model_validate(data)
    except ValidationError as e:
        print(f"Invalid token file {args.file}: {e}")
        return 1

    await ctx.vault.save_token_set(token_set)
    print("Google token stored")
    return 0


COMMANDS: dict[str, Command] = {
    "add-ics": add_ics,
    "add-google": add_google,
    "list": list_calendars,
    "enable": enable,
    "disable": disable,
    "remove": remove,
    "sync": sync,
    "events": events,
    "freebusy": busy,
    "export-ics": export_ics,
    "run": run,
    "import-token": import_token,
}
