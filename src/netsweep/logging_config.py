"""Logging setup for the scanner: rich console on stderr, optional log file."""
from __future__ import annotations

import logging
import os
from logging.handlers import RotatingFileHandler

from rich.console import Console
from rich.logging import RichHandler

from .config import LOG_FILE_ENV

PACKAGE_LOGGER = "netsweep"
# scapy warns about missing routes and IPv6 support on import
_QUIET_LOGGERS = ("scapy.runtime", "scapy.loading")


def setup_logging(
    level: int = logging.INFO,
    log_file: str | None = None,
    *,
    file_level: int = logging.DEBUG,
) -> None:
    """Configure console logging at *level* and file logging at *file_level*.

    Parameters
    ----------
    level:
        Console severity. The CLI maps ``-v`` to ``INFO`` (host up/down) and
        ``-vv`` to ``DEBUG`` (probe failure causes).
    log_file:
        Path for a ``RotatingFileHandler``. If ``None``, the
        ``NETSWEEP_LOG_FILE`` environment variable is consulted.
    file_level:
        Severity written to the log file, so probe failure causes can be
        kept on disk while the terminal stays quiet.
    """
    if log_file is None:
        log_file = os.getenv(LOG_FILE_ENV)

    # stderr keeps log lines out of summaries and JSON written to stdout
    console = RichHandler(
        console=Console(stderr=True),
        rich_tracebacks=True,
        markup=False,
        show_path=False,
    )
    console.setLevel(level)
    handlers: list[logging.Handler] = [console]
    package_level = level

    if log_file:
        file_handler = RotatingFileHandler(log_file, maxBytes=5_000_000, backupCount=5)
        file_handler.setFormatter(
            logging.Formatter("%(asctime)s [%(levelname)s] %(name)s: %(message)s")
        )
        file_handler.setLevel(file_level)
        handlers.append(file_handler)
        package_level = min(level, file_level)

    logging.basicConfig(
        level=level,
        handlers=handlers,
        format="%(message)s",
        force=True,
    )
    logging.getLogger(PACKAGE_LOGGER).setLevel(package_level)
    for name in _QUIET_LOGGERS:
        logging.getLogger(name).setLevel(max(level, logging.ERROR))


__all__ = ["PACKAGE_LOGGER", "setup_logging"]
