from __future__ import annotations

import logging
import sys
from typing import IO

from tlsgate.utils import human

# termlog_verbosity values
LOG_LEVELS = {
    "error": logging.ERROR,
    "warn": logging.WARNING,
    "info": logging.INFO,
    "debug": logging.DEBUG,
}


def log_level(verbosity: str) -> int:
    return LOG_LEVELS[verbosity]


class TlsgateFormatter(logging.Formatter):
    """
    Renders `[time] message`, or `[time][client] message` for records that carry
    the client address as `extra={"client": peername}`.
    """

    default_time_format = "%H:%M:%S"
    default_msec_format = "%s.%03d"

    def format(self, record: logging.LogRecord) -> str:
        prefix = f"[{self.formatTime(record)}]"
        if client := getattr(record, "client", None):
            prefix += f"[{human.format_address(client)}]"
        message = record.getMessage()
        if record.exc_info:
            message += "\n" + self.formatException(record.exc_info)
        return f"{prefix} {message}"


class TermLogHandler(logging.Handler):
    """Prints log records to the terminal, stderr unless told otherwise."""

    def __init__(self, out: IO[str] | None = None, verbosity: str = "info"):
        super().__init__(log_level(verbosity))
        self.file: IO[str] = out or sys.stderr
        self.setFormatter(TlsgateFormatter())

    def set_verbosity(self, verbosity: str) -> None:
        self.setLevel(log_level(verbosity))

    def install(self) -> None:
        logging.getLogger().addHandler(self)

    def uninstall(self) -> None:
        logging.getLogger().removeHandler(self)

    def emit(self, record: logging.LogRecord) -> None:
        try:
            print(self.format(record), file=self.file)
        except OSError:
            # stderr is gone, there is nobody left to tell.
            sys.exit(1)
