"""Logging setup for the purerequest logger tree and the aiohttp transport."""

import logging
import sys
from typing import Optional

LOGGER_NAME = "purerequest"
LOG_FORMAT = "%(asctime)s %(levelname)-7s %(name)s: %(message)s"

# Verbosity -> package level. WARNING: size ceiling hits and digest
# mismatches. INFO: followed redirects. DEBUG: every hop sent, resolved
# request and selected content coding.
VERBOSITY_LEVELS = (logging.WARNING, logging.INFO, logging.DEBUG)

# aiohttp's own loggers only become verbose one step after ours
AIOHTTP_LOGGERS = ("aiohttp.client", "aiohttp.internal")

_installed: list[logging.Handler] = []


def level_for_verbosity(verbosity: int) -> int:
    """Map a ``-v`` count to a level for the purerequest loggers."""
    return VERBOSITY_LEVELS[max(0, min(verbosity, len(VERBOSITY_LEVELS) - 1))]


def aiohttp_level_for_verbosity(verbosity: int) -> int:
    return logging.DEBUG if verbosity >= len(VERBOSITY_LEVELS) else logging.WARNING


def _install(handlers: list[logging.Handler]) -> None:
    loggers = [logging.getLogger(LOGGER_NAME)] + [logging.getLogger(name) for name in AIOHTTP_LOGGERS]
    for handler in _installed:
        for logger in loggers:
            logger.removeHandler(handler)
        handler.close()
    _installed[:] = handlers
    for logger in loggers:
        for handler in handlers:
            logger.addHandler(handler)
        # The CLI owns these records; don't duplicate them through the root logger
        logger.propagate = False


def setup_logging(
    verbosity: int = 0,
    log_file: Optional[str] = None,
    force: bool = False,
) -> logging.Logger:
    """
    Configure logging for a purerequest process, typically the CLI.

    Records go to stderr so a response body printed on stdout stays clean.
    The aiohttp client loggers share the same handlers; they log at DEBUG
    from ``verbosity`` 3 and only report warnings below that.

    Args:
        verbosity: Number of ``-v`` flags (0 = warnings only)
        log_file: Optional file that receives the same records
        force: Replace handlers installed by an earlier call

    Returns:
        The configured ``purerequest`` logger
    """
    logger = logging.getLogger(LOGGER_NAME)
    logger.setLevel(level_for_verbosity(verbosity))
    for name in AIOHTTP_LOGGERS:
        logging.getLogger(name).setLevel(aiohttp_level_for_verbosity(verbosity))

    if force or not _installed:
        formatter = logging.Formatter(LOG_FORMAT)
        handlers: list[logging.Handler] = [logging.StreamHandler(sys.stderr)]
        if log_file:
            handlers.append(logging.FileHandler(log_file))
        for handler in handlers:
            handler.setFormatter(formatter)
        _install(handlers)

    return logger


def reset_logging() -> None:
    """Remove the handlers installed by setup_logging()."""
    _install([])
    for name in (LOGGER_NAME, *AIOHTTP_LOGGERS):
        logger = logging.getLogger(name)
        logger.setLevel(logging.NOTSET)
        logger.propagate = True
