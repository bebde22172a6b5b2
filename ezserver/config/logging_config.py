"""
Logging setup for ezserver.

Console output goes through rich when stdout is a terminal; the log file
rotates and always records DEBUG. Child process output is logged at
DEBUG, so ``--debug`` shows the full server console.
"""

import logging
import logging.handlers
import re
import sys
from pathlib import Path
from typing import Optional

from rich.console import Console
from rich.logging import RichHandler

from .settings import Settings

# Shared console for tables, progress bars and log records
console = Console()

DEFAULT_LOG_SIZE = 10 * 1024 ** 2
SIZE_UNITS = {"": 1, "B": 1, "KB": 1024, "MB": 1024 ** 2, "GB": 1024 ** 3}
QUIET_LOGGERS = ("httpx", "httpcore")

PLAIN_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
FILE_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(funcName)s:%(lineno)d - %(message)s"


def _console_handler(use_rich: bool) -> logging.Handler:
    if use_rich and sys.stdout.isatty():
        handler: logging.Handler = RichHandler(
            console=console,
            show_time=False,
            show_path=False,
            markup=False,
            rich_tracebacks=True,
        )
        handler.setFormatter(logging.Formatter("%(message)s"))
    else:
        handler = logging.StreamHandler(sys.stdout)
        handler.setFormatter(logging.Formatter(PLAIN_FORMAT, datefmt="%H:%M:%S"))
    return handler


def _file_handler(settings: Settings) -> logging.Handler:
    log_file = Path(settings.get("logging.log_file")).expanduser()
    log_file.parent.mkdir(parents=True, exist_ok=True)
    handler = logging.handlers.RotatingFileHandler(
        log_file,
        maxBytes=_parse_size(settings.get("logging.max_log_size", "10MB")),
        backupCount=int(settings.get("logging.backup_count", 5)),
        encoding="utf-8",
    )
    handler.setFormatter(logging.Formatter(FILE_FORMAT, datefmt="%Y-%m-%d %H:%M:%S"))
    handler.setLevel(logging.DEBUG)
    return handler


def setup_logging(
    settings: Settings,
    log_level: Optional[str] = None,
    enable_file_logging: Optional[bool] = None,
    enable_rich_logging: Optional[bool] = None,
) -> None:
    """
    Configure the root logger.

    Arguments left as None fall back to the ``logging.*`` and
    ``ui.colored_output`` settings.
    """
    if log_level is None:
        log_level = settings.get("logging.level", "INFO")
    if enable_file_logging is None:
        enable_file_logging = settings.get("logging.file_logging", True)
    if enable_rich_logging is None:
        enable_rich_logging = settings.get("ui.colored_output", True)

    level = getattr(logging, str(log_level).upper(), logging.INFO)

    root = logging.getLogger()
    root.handlers.clear()
    root.setLevel(logging.DEBUG if enable_file_logging else level)

    console_handler = _console_handler(enable_rich_logging)
    console_handler.setLevel(level)
    root.addHandler(console_handler)

    if enable_file_logging:
        try:
            root.addHandler(_file_handler(settings))
        except OSError as e:
            logging.getLogger(__name__).warning(f"File logging disabled: {e}")

    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    logging.getLogger(__name__).debug(
        f"Logging configured: level={logging.getLevelName(level)}, file={enable_file_logging}"
    )


def _parse_size(size: str) -> int:
    """Turn a size such as ``10MB`` or ``512KB`` into bytes."""
    match = re.fullmatch(r"\s*(\d+(?:\.\d+)?)\s*([KMG]?B?)\s*", str(size).upper())
    if not match or match.group(2) not in SIZE_UNITS:
        return DEFAULT_LOG_SIZE
    return int(float(match.group(1)) * SIZE_UNITS[match.group(2)])
