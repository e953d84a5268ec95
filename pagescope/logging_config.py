"""Logging configuration for pagescope.

Every module logs through ``logging.getLogger(__name__)``. In verbose mode the
records of the ``pagescope`` logger tree are forwarded to the same output sink
as the report, each line prefixed with ``> `` so the diagnostic trail can be
told apart from the rendered results.
"""

import json
import logging
from typing import Callable, Optional

ROOT_LOGGER = "pagescope"
VERBOSE_PREFIX = "> "

Echo = Callable[[str], None]


class VerboseFormatter(logging.Formatter):
    """Formats records as ``> message``; dicts and lists are dumped as JSON."""

    def format(self, record: logging.LogRecord) -> str:
        msg = record.msg
        if isinstance(msg, (dict, list)) and not record.args:
            text = json.dumps(msg, default=str)
        else:
            text = record.getMessage()

        if record.exc_info:
            text = f"{text}\n{self.formatException(record.exc_info)}"

        return f"{VERBOSE_PREFIX}{text}"


class VerboseHandler(logging.Handler):
    """Forwards log records to an echo callable (the run's output sink)."""

    def __init__(self, echo: Echo, level: int = logging.DEBUG):
        super().__init__(level=level)
        self.echo = echo
        self.setFormatter(VerboseFormatter())

    def emit(self, record: logging.LogRecord) -> None:
        try:
            self.echo(self.format(record))
        except Exception:
            self.handleError(record)


def setup_logging(verbose: bool, silent: bool, echo: Echo) -> Optional[VerboseHandler]:
    """Attach the verbose handler to the ``pagescope`` logger.

    Args:
        verbose: Whether the diagnostic log should be emitted
        silent: Silent mode suppresses all output, including the log
        echo: Output sink receiving the formatted lines

    Returns:
        The installed handler (pass it to ``teardown_logging``), or None
    """
    logger = logging.getLogger(ROOT_LOGGER)
    if not verbose or silent:
        return None

    handler = VerboseHandler(echo)
    logger.addHandler(handler)
    logger.setLevel(logging.DEBUG)
    # the sink already shows everything, stderr handlers would duplicate it
    logger.propagate = False
    return handler


def teardown_logging(handler: Optional[VerboseHandler]) -> None:
    """Remove a handler installed by ``setup_logging``."""
    if handler is None:
        return
    logger = logging.getLogger(ROOT_LOGGER)
    logger.removeHandler(handler)
    if not logger.handlers:
        logger.setLevel(logging.NOTSET)
        logger.propagate = True


def get_logger(name: str) -> logging.Logger:
    """Get a logger instance below the ``pagescope`` tree."""
    if name != ROOT_LOGGER and not name.startswith(f"{ROOT_LOGGER}."):
        name = f"{ROOT_LOGGER}.{name}"
    return logging.getLogger(name)
