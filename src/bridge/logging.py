"""Logging utilities for bridge.

Console logging goes to stderr so it never mixes with remote command
output on stdout. Verbosity maps to levels:

- default: warnings and errors (lock waits, failed steps)
- ``-v``: info (host, remote path, lock and reconnect settings, timings)
- ``-vv``: debug (composed commands, loaded files, state changes)
- ``-vvv``: trace with source locations
"""

import logging
import time
from contextlib import contextmanager
from typing import IO, Any, Generator

DEFAULT_FORMAT = "%(message)s"
DEBUG_FORMAT = "%(asctime)s %(levelname)s [%(name)s:%(funcName)s:%(lineno)d] %(message)s"

# Custom TRACE level (more detailed than DEBUG)
TRACE = 5
logging.addLevelName(TRACE, "TRACE")

VERBOSITY_LEVELS = [logging.WARNING, logging.INFO, logging.DEBUG, TRACE]

# Libraries whose debug output is noise next to ours
QUIET_LOGGERS = ["filelock"]


def get_level_from_verbosity(verbosity: int) -> int:
    """Convert a count of -v flags to a logging level.

    Example:
        >>> get_level_from_verbosity(1) == logging.INFO
        True
        >>> get_level_from_verbosity(7) == TRACE
        True
    """
    index = min(max(verbosity, 0), len(VERBOSITY_LEVELS) - 1)
    return VERBOSITY_LEVELS[index]


def configure_logging(
    level: int = logging.WARNING,
    format_string: str | None = None,
    stream: IO[str] | None = None,
) -> None:
    """Install a single console handler on the root logger.

    Calling this again replaces the previous handler, so repeated CLI
    invocations in one process do not duplicate output.

    Args:
        level: Console logging level
        format_string: Custom format (chosen from level if None)
        stream: Output stream (defaults to stderr)
    """
    if format_string is None:
        format_string = DEBUG_FORMAT if level <= logging.DEBUG else DEFAULT_FORMAT

    root_logger = logging.getLogger()
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    handler = logging.StreamHandler(stream)
    handler.setLevel(level)
    handler.setFormatter(logging.Formatter(format_string))
    root_logger.addHandler(handler)
    root_logger.setLevel(level)

    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(max(level, logging.INFO))


def _context_suffix(context: dict[str, Any]) -> str:
    if not context:
        return ""
    return " (" + ", ".join(f"{key}={value}" for key, value in context.items()) + ")"


class StructuredLogger:
    """Logger that appends key=value context to every message.

    Context identifies what an operation was acting on (host, lock name)
    so interleaved output from a long run stays attributable.

    Example:
        >>> logger = StructuredLogger("bridge.run", host="dev-server")
        >>> logger.info("Running command", lock="kernel")
        Running command (host=dev-server, lock=kernel)
    """

    def __init__(self, name: str, **context: Any) -> None:
        self.logger = logging.getLogger(name)
        self.context: dict[str, Any] = dict(context)

    def bind(self, **context: Any) -> "StructuredLogger":
        """Return a logger for the same name with extra context."""
        return StructuredLogger(self.logger.name, **{**self.context, **context})

    def log(self, level: int, message: str, **extra: Any) -> None:
        if not self.logger.isEnabledFor(level):
            return
        suffix = _context_suffix({**self.context, **extra})
        # stacklevel points funcName/lineno at our caller
        self.logger.log(level, message + suffix, stacklevel=3)

    def trace(self, message: str, **extra: Any) -> None:
        self.log(TRACE, message, **extra)

    def debug(self, message: str, **extra: Any) -> None:
        self.log(logging.DEBUG, message, **extra)

    def info(self, message: str, **extra: Any) -> None:
        self.log(logging.INFO, message, **extra)

    def warning(self, message: str, **extra: Any) -> None:
        self.log(logging.WARNING, message, **extra)

    def error(self, message: str, **extra: Any) -> None:
        self.log(logging.ERROR, message, **extra)

    @contextmanager
    def timed(self, operation: str, level: int = logging.INFO, **extra: Any) -> Generator[None, None, None]:
        """Log how long the enclosed block took.

        A block that raises is reported as failed, and the exception
        propagates.

        Example:
            >>> logger = StructuredLogger("bridge.run", host="dev-server")
            >>> with logger.timed("Remote command"):
            ...     run_remote_command(...)
            Remote command completed in 12.041s (host=dev-server)
        """
        start = time.perf_counter()
        try:
            yield
        except BaseException:
            self.log(level, f"{operation} failed after {time.perf_counter() - start:.3f}s", **extra)
            raise
        self.log(level, f"{operation} completed in {time.perf_counter() - start:.3f}s", **extra)


def get_logger(name: str, **context: Any) -> StructuredLogger:
    """Get a structured logger."""
    return StructuredLogger(name, **context)
