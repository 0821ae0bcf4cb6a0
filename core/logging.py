"""
Logging configuration shared by the API and worker processes
"""

import logging
import sys
from typing import Optional
from core.config import settings

# Client libraries that log every request at INFO/DEBUG
QUIET_LOGGERS = (
    "sqlalchemy.engine",
    "sqlalchemy.pool",
    "botocore",
    "boto3",
    "s3transfer",
    "urllib3",
)

LOG_FORMAT = "%(asctime)s | %(levelname)-8s | %(process)d | %(name)s | %(message)s"


def setup_logging(level: Optional[str] = None) -> int:
    """
    Configure root logging for this process.

    Args:
        level: Level name overriding settings.LOG_LEVEL (e.g. from a CLI flag)

    Returns:
        The numeric level applied to the root logger
    """
    level_name = (level or settings.LOG_LEVEL).upper()
    log_level = getattr(logging, level_name, logging.INFO)

    logging.basicConfig(
        format=LOG_FORMAT,
        datefmt="%Y-%m-%d %H:%M:%S",
        handlers=[logging.StreamHandler(sys.stdout)]
    )
    # basicConfig is a no-op once handlers exist, the level still has to apply
    logging.getLogger().setLevel(log_level)

    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(max(log_level, logging.WARNING))

    logging.getLogger(__name__).info(f"Logging configured at {logging.getLevelName(log_level)} level")
    return log_level
