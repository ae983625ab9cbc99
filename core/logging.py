"""
Logging configuration
"""

import logging
import sys
import time
from pathlib import Path
from typing import Optional

from core.config import settings


def setup_logging(log_dir: Optional[str] = None) -> Optional[Path]:
    """
    Configure application logging.

    Console output always goes to stdout. When a log directory is given
    (or LOG_DIR is set) each run also gets its own crawler_<ms>.log file.

    Returns:
        Path of the run log file, if one was opened
    """

    # Get log level from settings
    log_level = getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO)

    handlers = [logging.StreamHandler(sys.stdout)]
    log_file = None

    log_dir = log_dir or settings.LOG_DIR
    if log_dir:
        directory = Path(log_dir)
        directory.mkdir(parents=True, exist_ok=True)
        log_file = directory / f"crawler_{int(time.time() * 1000)}.log"
        handlers.append(logging.FileHandler(log_file, encoding="utf-8"))

    # Configure root logger
    logging.basicConfig(
        level=log_level,
        format="%(asctime)s | %(levelname)-8s | %(name)s | %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
        handlers=handlers,
        force=True
    )

    # Set SQLAlchemy and HTTP client logging to WARNING to reduce noise
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)
    logging.getLogger("sqlalchemy.pool").setLevel(logging.WARNING)
    logging.getLogger("httpx").setLevel(logging.WARNING)

    logger = logging.getLogger(__name__)
    logger.info(f"Logging configured at {settings.LOG_LEVEL} level")
    if log_file:
        logger.info(f"Writing run log to {log_file}")

    return log_file
