"""Logging configuration for calhub."""

import logging
import os
import sys
from datetime import datetime
from pathlib import Path
from typing import TYPE_CHECKING, Any, Union

if TYPE_CHECKING:
    from calhub.config.settings import CalHubSettings

# Between DEBUG(10) and INFO(20)
VERBOSE = 15
logging.addLevelName(VERBOSE, "VERBOSE")

THIRD_PARTY_LOGGERS = ("httpx", "httpcore", "asyncio", "aiosqlite")


def verbose(self: logging.Logger, message: Any, *args: Any, **kwargs: Any) -> None:
    """Log at the VERBOSE level.

    Example:
        >>> logger = logging.getLogger(__name__)
        >>> logger.verbose("Fetched %d pages for %s", pages, calendar_id)
    """
    if self.isEnabledFor(VERBOSE):
        self._log(VERBOSE, message, args, **kwargs)


logging.Logger.verbose = verbose  # type: ignore[attr-defined]


def get_log_level(level_name: str) -> int:
    """Convert a level name (including VERBOSE) to its numeric value.

    Raises:
        AttributeError: If the level name is unknown
    """
    level_name = level_name.upper()
    if level_name == "VERBOSE":
        return VERBOSE
    level: int = getattr(logging, level_name)
    return level


class AutoColoredFormatter(logging.Formatter):
    """Formatter that colors the level name when the terminal supports it."""

    COLORS = {
        "CRITICAL": {"truecolor": "\033[91m\033[1m", "basic": "\033[31m\033[1m", "none": ""},
        "ERROR": {"truecolor": "\033[91m", "basic": "\033[31m", "none": ""},
        "WARNING": {"truecolor": "\033[93m", "basic": "\033[33m", "none": ""},
        "INFO": {"truecolor": "\033[94m", "basic": "\033[34m", "none": ""},
        "VERBOSE": {"truecolor": "\033[92m", "basic": "\033[32m", "none": ""},
        "DEBUG": {"truecolor": "\033[95m", "basic": "\033[35m", "none": ""},
        "RESET": {"truecolor": "\033[0m", "basic": "\033[0m", "none": ""},
    }

    def __init__(self, *args: Any, enable_colors: bool = True, **kwargs: Any) -> None:
        super().__init__(*args, **kwargs)
        self.enable_colors = enable_colors
        self.color_mode = self._detect_color_support() if enable_colors else "none"

    def _detect_color_support(self) -> str:
        if not hasattr(sys.stderr, "isatty") or not sys.stderr.isatty():
            return "none"

        term = os.environ.get("TERM", "").lower()
        colorterm = os.environ.get("COLORTERM", "").lower()

        if term == "dumb" or os.environ.get("NO_COLOR"):
            return "none"
        if colorterm in ("truecolor", "24bit") or "256color" in term:
            return "truecolor"
        if "color" in term:
            return "basic"
        return "none"

    def format(self, record: logging.LogRecord) -> str:
        formatted = super().format(record)
        if self.color_mode == "none" or record.levelname not in self.COLORS:
            return formatted

        start = self.COLORS[record.levelname][self.color_mode]
        reset = self.COLORS["RESET"][self.color_mode]
        return formatted.replace(record.levelname, f"{start}{record.levelname}{reset}", 1)


class TimestampedFileHandler(logging.FileHandler):
    """File handler writing one timestamped log file per process run."""

    def __init__(self, log_dir: Union[str, Path], prefix: str = "calhub", max_files: int = 5):
        self.log_dir = Path(log_dir)
        self.prefix = prefix
        self.max_files = max_files

        self.log_dir.mkdir(parents=True, exist_ok=True)
        stamp = datetime.now().strftime("%Y%m%d_%H%M%S")
        super().__init__(str(self.log_dir / f"{prefix}_{stamp}.log"), encoding="utf-8")

        self.cleanup_old_files()

    def cleanup_old_files(self) -> None:
        """Keep only the ``max_files`` most recent log files."""
        log_files = sorted(
            self.log_dir.glob(f"{self.prefix}_*.log"),
            key=lambda f: f.stat().st_mtime,
            reverse=True,
        )
        for old_file in log_files[self.max_files :]:
            try:
                old_file.unlink()
            except OSError:
                logging.getLogger(__name__).debug(f"Could not remove old log file {old_file}")


def setup_logging(settings: "CalHubSettings") -> logging.Logger:
    """Configure the ``calhub`` logger from settings.

    Installs a colored console handler and, when enabled, a timestamped file
    handler under ``logging.file_directory`` (or ``data_dir/logs``).

    Args:
        settings: Application settings

    Returns:
        The configured ``calhub`` logger
    """
    log_settings = settings.logging

    logger = logging.getLogger("calhub")
    logger.setLevel(logging.DEBUG)
    logger.handlers.clear()
    logger.propagate = False

    if log_settings.console_enabled:
        console_handler = logging.StreamHandler()
        console_handler.setLevel(get_log_level(log_settings.console_level))
        console_handler.setFormatter(
            AutoColoredFormatter(
                "%(asctime)s - %(levelname)s - %(message)s",
                datefmt="%H:%M:%S",
                enable_colors=log_settings.console_colors,
            )
        )
        logger.addHandler(console_handler)

    if log_settings.file_enabled:
        log_dir = (
            Path(log_settings.file_directory)
            if log_settings.file_directory
            else settings.data_dir / "logs"
        )
        file_handler = TimestampedFileHandler(
            log_dir=log_dir,
            prefix=log_settings.file_prefix,
            max_files=log_settings.max_log_files,
        )
        file_handler.setLevel(get_log_level(log_settings.file_level))
        file_handler.setFormatter(
            logging.Formatter(
                "%(asctime)s - %(name)s - %(levelname)s - %(funcName)s:%(lineno)d - %(message)s",
                datefmt="%Y-%m-%d %H:%M:%S",
            )
        )
        logger.addHandler(file_handler)
        logger.debug(f"Logging to file: {file_handler.baseFilename}")

    third_party_level = get_log_level(log_settings.third_party_level)
    for name in THIRD_PARTY_LOGGERS:
        logging.getLogger(name).setLevel(third_party_level)

    return logger


def apply_command_line_overrides(settings: "CalHubSettings", args: Any) -> "CalHubSettings":
    """Apply ``--log-level``, ``--verbose`` and ``--quiet`` to the logging settings.

    Command-line flags take priority over environment, YAML and defaults.
    """
    if getattr(args, "log_level", None):
        settings.logging.console_level = args.log_level
        settings.logging.file_level = args.log_level

    if getattr(args, "verbose", False):
        settings.logging.console_level = "VERBOSE"
        settings.logging.file_level = "VERBOSE"

    if getattr(args, "quiet", False):
        settings.logging.console_level = "ERROR"

    return settings
