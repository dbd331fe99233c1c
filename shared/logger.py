"""
Simple logging module for the input resolver.

All components log to console (stdout) with colored, structured output.

Usage:
    from shared.logger import get_logger

    logger = get_logger(__name__)  # Use module name
    # or
    logger = get_logger('my_component')  # Use custom name

    logger.info("Message here")
"""

import logging
import sys
from typing import Optional

from shared.config import config

# Global cache of loggers
_loggers = {}


class ColoredFormatter(logging.Formatter):
    """Formatter that adds colors to console output"""

    COLORS = {
        'DEBUG': '\033[36m',     # Cyan
        'INFO': '\033[32m',      # Green
        'WARNING': '\033[33m',   # Yellow
        'ERROR': '\033[31m',     # Red
        'CRITICAL': '\033[35m',  # Magenta
        'RESET': '\033[0m'       # Reset
    }

    def format(self, record):
        # Color a copy so other handlers still see the plain level name
        levelname = record.levelname
        if levelname in self.COLORS:
            record = logging.makeLogRecord(record.__dict__)
            record.levelname = f"{self.COLORS[levelname]}{levelname}{self.COLORS['RESET']}"

        return super().format(record)


def _configured_level() -> int:
    level = logging.getLevelName(config.log_level)
    return level if isinstance(level, int) else logging.INFO


def get_logger(name: str, level: Optional[int] = None) -> logging.Logger:
    """
    Get a logger that outputs colored, structured logs to console.

    Args:
        name: Logger name (typically __name__ or component name)
        level: Logging level (default: config.log_level)

    Returns:
        Configured logger instance
    """
    # Return cached logger if it exists
    if name in _loggers:
        return _loggers[name]

    if level is None:
        level = _configured_level()

    # Create new logger
    logger = logging.getLogger(name)
    logger.setLevel(level)
    logger.propagate = False

    # Clear any existing handlers
    logger.handlers.clear()

    # Create console handler with colored formatter
    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(level)

    formatter = ColoredFormatter(
        fmt='%(asctime)s | %(name)s | %(levelname)s | %(message)s',
        datefmt='%Y-%m-%d %H:%M:%S'
    )
    console_handler.setFormatter(formatter)

    logger.addHandler(console_handler)

    # Cache and return
    _loggers[name] = logger
    return logger
