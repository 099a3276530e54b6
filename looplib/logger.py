"""
Structured logging for looplib.

Keeps the terse CLI style ([*], [!], [✓], [✗]) while providing proper
log levels, module tagging, and configurable verbosity.

Environment Variables:
    LOOPLIB_LOG_LEVEL: Set logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
                       Defaults to INFO if not set
                       set_level() overrides it for the rest of the process
"""

import logging
import os
import sys
from typing import Optional


# Custom log level for SUCCESS messages
SUCCESS = 25  # Between INFO (20) and WARNING (30)
logging.addLevelName(SUCCESS, "SUCCESS")

# Level chosen by set_level(); wins over LOOPLIB_LOG_LEVEL for new loggers
_level_override: Optional[str] = None


def current_level_name() -> str:
    """Level name new loggers start at."""
    if _level_override is not None:
        return _level_override
    return os.environ.get("LOOPLIB_LOG_LEVEL", "INFO").upper()


class LoopFormatter(logging.Formatter):
    """
    Formatter that maps log levels to visual prefixes.

        DEBUG    -> [·]
        INFO     -> [*]
        SUCCESS  -> [✓]
        WARNING  -> [!]
        ERROR    -> [✗]
        CRITICAL -> [✗✗]
    """

    PREFIX_MAP = {
        "DEBUG": "[·]",
        "INFO": "[*]",
        "SUCCESS": "[✓]",
        "WARNING": "[!]",
        "ERROR": "[✗]",
        "CRITICAL": "[✗✗]",
    }

    def __init__(self, include_module: bool = False):
        """
        Initialize formatter.

        Args:
            include_module: If True, include module name in output (for debugging)
        """
        self.include_module = include_module
        super().__init__()

    def format(self, record: logging.LogRecord) -> str:
        """Format log record with visual prefix."""
        prefix = self.PREFIX_MAP.get(record.levelname, "[?]")

        if self.include_module:
            module = record.name.replace("looplib.", "").replace("__main__", "main")
            return f"{prefix} [{module}] {record.getMessage()}"
        return f"{prefix} {record.getMessage()}"


def get_logger(name: str) -> logging.Logger:
    """
    Get a configured logger for a module.

    Args:
        name: Module name (typically __name__)

    Returns:
        Configured logger instance

    Example:
        >>> from looplib.logger import get_logger
        >>> logger = get_logger(__name__)
        >>> logger.info("Building loop tracks")
        [*] Building loop tracks
    """
    logger = logging.getLogger(name)

    # Only configure once (avoid duplicate handlers)
    if not logger.handlers:
        level = getattr(logging, current_level_name(), logging.INFO)

        logger.setLevel(level)

        handler = logging.StreamHandler(sys.stdout)
        handler.setLevel(level)
        handler.setFormatter(LoopFormatter(include_module=level == logging.DEBUG))

        logger.addHandler(handler)

        # Don't propagate to root logger (avoid duplicate messages)
        logger.propagate = False

    return logger


def log_success(logger: logging.Logger, message: str) -> None:
    """
    Log a success message with [✓] prefix.

    Example:
        >>> logger = get_logger(__name__)
        >>> log_success(logger, "Saved loop.wav")
        [✓] Saved loop.wav
    """
    logger.log(SUCCESS, message)


def set_level(level: str) -> None:
    """
    Change the level of every looplib logger that is already configured.

    Loggers created afterwards start at the same level. The process
    environment is left alone.
    """
    global _level_override
    _level_override = level.upper()
    numeric = getattr(logging, level.upper(), logging.INFO)
    for name, logger in logging.Logger.manager.loggerDict.items():
        if not isinstance(logger, logging.Logger):
            continue
        if name == "looplib" or name.startswith("looplib.") or name == "__main__":
            logger.setLevel(numeric)
            for handler in logger.handlers:
                handler.setLevel(numeric)
                handler.setFormatter(LoopFormatter(include_module=numeric == logging.DEBUG))


def configure_root_logger(level: Optional[str] = None) -> None:
    """
    Configure logging for the whole application.

    Called once at CLI startup (make_loop.py).

    Args:
        level: Log level name (DEBUG, INFO, WARNING, ERROR, CRITICAL)
               If None, uses LOOPLIB_LOG_LEVEL environment variable
    """
    if level:
        set_level(level)

    root = logging.getLogger()
    root.handlers.clear()

    get_logger("looplib")
