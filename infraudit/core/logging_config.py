import logging
import sys
from typing import Optional

from infraudit.core.config import settings


def setup_logging(level: Optional[str] = None, log_file: Optional[str] = None) -> logging.Logger:
    """
    Configure root logging for command-line runs.

    Args:
        level: Logging level name, defaults to settings.LOG_LEVEL
        log_file: Optional file to also write logs to

    Returns:
        The package logger
    """
    level = (level or settings.LOG_LEVEL).upper()
    log_file = log_file or settings.LOG_FILE

    handlers = [logging.StreamHandler(sys.stderr)]
    if log_file:
        handlers.append(logging.FileHandler(log_file))

    logging.basicConfig(
        level=getattr(logging, level, logging.INFO),
        format=settings.LOG_FORMAT,
        handlers=handlers,
        force=True,
    )

    return logging.getLogger("infraudit")
