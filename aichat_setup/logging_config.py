"""
Logging configuration, called once by the CLI.

Every module does ``logger = logging.getLogger(__name__)`` and inherits this
setup. Level precedence: ``-v`` flags > ``AICHAT_SETUP_LOG_LEVEL`` > WARNING.
``AICHAT_SETUP_LOG_FILE`` (or ``--log-file``) adds a detailed file log.
"""

from __future__ import annotations

import logging
import os
from typing import Optional

from rich.console import Console
from rich.logging import RichHandler

_FMT_FILE = "%(asctime)s %(levelname)-5s %(name)s:%(lineno)d %(message)s"
_DATEFMT_FILE = "%Y-%m-%d %H:%M:%S"

_NOISY_LOGGERS = ("urllib3", "markdown_it")


def level_from_verbosity(verbosity: int) -> Optional[str]:
    if verbosity >= 2:
        return "DEBUG"
    if verbosity == 1:
        return "INFO"
    return None


def setup_logging(level: Optional[str] = None, log_file: Optional[str] = None) -> None:
    """Configure the root logger for the whole process."""
    level = level or os.environ.get("AICHAT_SETUP_LOG_LEVEL") or "WARNING"
    log_file = log_file or os.environ.get("AICHAT_SETUP_LOG_FILE")
    numeric_level = _parse_level(level)

    console = RichHandler(
        console=Console(stderr=True),
        show_time=numeric_level <= logging.INFO,
        show_path=numeric_level <= logging.DEBUG,
        rich_tracebacks=numeric_level <= logging.DEBUG,
    )
    console.setLevel(numeric_level)
    console.setFormatter(logging.Formatter("%(message)s", datefmt="%H:%M:%S"))

    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(console)
    effective_level = numeric_level

    if log_file:
        file_handler = logging.FileHandler(log_file, encoding="utf-8")
        file_handler.setLevel(logging.DEBUG)
        file_handler.setFormatter(logging.Formatter(_FMT_FILE, datefmt=_DATEFMT_FILE))
        root.addHandler(file_handler)
        effective_level = logging.DEBUG

    root.setLevel(effective_level)

    if numeric_level > logging.DEBUG:
        for name in _NOISY_LOGGERS:
            logging.getLogger(name).setLevel(logging.WARNING)


def _parse_level(level: Optional[str]) -> int:
    if not level:
        return logging.WARNING
    numeric = getattr(logging, level.upper(), None)
    if not isinstance(numeric, int):
        return logging.WARNING
    return numeric
