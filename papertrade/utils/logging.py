"""Logging configuration for papertrade.

Engine telemetry is emitted through standard loggers with ``extra`` fields
(``event`` and, for per-token records, ``asset_id``). The formatter below
renders those fields after the message so log files stay greppable by event.
"""

import logging
import sys
from pathlib import Path
from typing import Optional

LOG_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)-28s | %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

TELEMETRY_FIELDS = ("event", "asset_id")


class TelemetryFormatter(logging.Formatter):
    """Formatter that appends engine telemetry extras to each line."""

    def format(self, record: logging.LogRecord) -> str:
        line = super().format(record)
        extras = [
            f"{name}={getattr(record, name)}"
            for name in TELEMETRY_FIELDS
            if getattr(record, name, None) is not None
        ]
        if not extras:
            return line

        # Keep the tag on the first line when a traceback follows
        head, sep, tail = line.partition("\n")
        return f"{head} [{' '.join(extras)}]{sep}{tail}"


def _level(name: str) -> int:
    return getattr(logging, name.upper(), logging.INFO)


def configure_logging(
    log_file: Optional[Path] = None,
    log_level: str = "INFO",
    console_level: str = "INFO",
) -> None:
    """
    Route papertrade logs to the console and, optionally, a file.

    Args:
        log_file: Append-mode log file. If None, logs go to stdout only.
        log_level: Level for the file handler
        console_level: Level for the stdout handler

    Example:
        >>> configure_logging(log_file=Path("logs/session.log"), log_level="DEBUG")
    """
    formatter = TelemetryFormatter(LOG_FORMAT, datefmt=DATE_FORMAT)

    # Handlers filter by level, the root passes everything through
    root_logger = logging.getLogger()
    root_logger.setLevel(logging.DEBUG)
    root_logger.handlers.clear()

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(_level(console_level))
    console_handler.setFormatter(formatter)
    root_logger.addHandler(console_handler)

    if log_file is None:
        root_logger.debug(f"Session logging to console at {console_level}")
        return

    log_file = Path(log_file)
    log_file.parent.mkdir(parents=True, exist_ok=True)
    file_handler = logging.FileHandler(log_file, mode="a", encoding="utf-8")
    file_handler.setLevel(_level(log_level))
    file_handler.setFormatter(formatter)
    root_logger.addHandler(file_handler)
    root_logger.debug(f"Session logging to {log_file} at {log_level}")
