"""Command-line interface for calhub."""

import sys
from pathlib import Path
from typing import Optional

from ..config.settings import CalHubSettings
from ..exceptions import CalHubError
from ..expansion.exceptions import InvalidWindow
from ..utils.logging import apply_command_line_overrides, setup_logging
from .commands import COMMANDS
from .context import AppContext, create_context
from .parser import create_parser


async def main_entry(argv: Optional[list[str]] = None) -> int:
    """Parse arguments, build the components and run one command.

    Returns:
        Exit code: 0 on success, 2 for an invalid window, 1 for other errors
    """
    parser = create_parser()
    args = parser.parse_args(argv)

    overrides = {}
    if args.config:
        overrides["config_file"] = Path(args.config).expanduser()
    if args.database:
        overrides["database_path"] = Path(args.database).expanduser()

    settings = CalHubSettings(**overrides)
    apply_command_line_overrides(settings, args)
    setup_logging(settings)

    ctx = create_context(settings)
    command = COMMANDS[args.command]
    try:
        return await command(ctx, args)
    except InvalidWindow as e:
        print(f"Invalid window: {e.message}", file=sys.stderr)
        return 2
    except CalHubError as e:
        print(f"Error: {e.message}", file=sys.stderr)
        return 1


__all__ = [
    "AppContext",
    "COMMANDS",
    "create_context",
    "create_parser",
    "main_entry",
]
