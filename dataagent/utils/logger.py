"""
Logging utility with loguru.
Provides console logging plus a rotating file sink.
"""

import sys
from pathlib import Path
from typing import Optional

from loguru import logger

_configured = False


def setup_logger(level: Optional[str] = None, log_file: Optional[str] = None):
    """
    Configure loguru logger with file and console outputs.

    Safe to call more than once; only the first call installs sinks.
    """
    global _configured
    if _configured:
        return logger

    from dataagent.config.settings import settings

    logger.remove()

    logger.add(
        sys.stderr,
        colorize=True,
        format="<green>{time:YYYY-MM-DD HH:mm:ss}</green> | <level>{level: <8}</level> | <cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> - <level>{message}</level>",
        level=level or settings.log_level,
    )

    log_path = Path(log_file or settings.log_file)
    log_path.parent.mkdir(parents=True, exist_ok=True)
    logger.add(
        log_path,
        rotation="10 MB",
        retention="7 days",
        compression="zip",
        enqueue=True,
        format="{time:YYYY-MM-DD HH:mm:ss} | {level: <8} | {name}:{function}:{line} - {message}",
        level="DEBUG",
    )

    _configured = True
    logger.info("Logger initialized")
    return logger
