"""Logging for configmapwatch.

Every module logs under the ``configmapwatch`` logger. Nothing is emitted
until setup_logging() attaches a handler, so hosts that configure logging
themselves can ignore this module and let records propagate.

Levels below DEBUG are used for poll chatter:
    VERBOSE (15): lifecycle detail worth keeping in a log file
    TRACE (5):    one record per poll cycle
"""

from __future__ import annotations

import logging
import os
import sys
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from configmapwatch.config.schema import LoggingConfig

TRACE = 5
VERBOSE = 15

logging.addLevelName(TRACE, "TRACE")
logging.addLevelName(VERBOSE, "VERBOSE")

LOG_FILE_ENV = "CMW_LOG"
LOG_FORMAT = "%(asctime)s %(levelname)-7s %(name)s: %(message)s"

logger = logging.getLogger("configmapwatch")

# verbose: 0 -> errors only ... 4 -> every poll cycle
_VERBOSITY_LEVELS = (logging.ERROR, logging.WARNING, logging.INFO, VERBOSE, TRACE)

# Handler installed by the last setup_logging() call
_handler: logging.Handler | None = None


def resolve_level(config: LoggingConfig | None) -> int:
    """Effective level for a LoggingConfig.

    ``verbose`` wins over ``level``. Level names are case-insensitive and
    include TRACE and VERBOSE; unknown names mean INFO.
    """
    if config is None:
        return logging.INFO
    if config.verbose is not None:
        index = min(max(config.verbose, 0), len(_VERBOSITY_LEVELS) - 1)
        return _VERBOSITY_LEVELS[index]
    if config.level:
        level = logging.getLevelName(config.level.upper())
        if isinstance(level, int):
            return level
    return logging.INFO


def setup_logging(config: LoggingConfig | None = None) -> logging.Handler:
    """Send configmapwatch records to a log file or stderr.

    The file comes from ``config.file`` or the CMW_LOG environment variable.
    If neither is set, or the file cannot be opened, records go to stderr.
    Calling this again (after a config reload, say) swaps out the handler
    the previous call installed rather than adding a second one.

    Returns:
        The installed handler.
    """
    global _handler

    level = resolve_level(config)
    log_path = (config.file if config else None) or os.environ.get(LOG_FILE_ENV)

    open_error: OSError | None = None
    handler: logging.Handler
    if log_path:
        try:
            handler = logging.FileHandler(os.path.expanduser(log_path), encoding="utf-8")
        except OSError as e:
            open_error = e
            handler = logging.StreamHandler(sys.stderr)
    else:
        handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(logging.Formatter(LOG_FORMAT, datefmt="%H:%M:%S"))

    if _handler is not None:
        logger.removeHandler(_handler)
        _handler.close()
    _handler = handler
    logger.addHandler(handler)
    logger.setLevel(level)

    if open_error is not None:
        logger.warning("Cannot open log file %s, logging to stderr: %s", log_path, open_error)
    return handler


def get_logger(name: str | None = None) -> logging.Logger:
    """The package logger, or its child ``configmapwatch.<name>``."""
    return logger.getChild(name) if name else logger
