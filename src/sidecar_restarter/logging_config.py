"""Logging configuration for the sidecar restarter.

Console (stderr): INFO and above, DEBUG with --verbose.
File (optional): DEBUG and above, with rotation.
Format: ISO 8601 timestamp, logger name, message.
"""

from __future__ import annotations

import logging
import sys
from logging.handlers import RotatingFileHandler

LOG_FORMAT = "%(asctime)s [%(levelname)s] (%(name)s) - %(message)s"
LOG_DATEFMT = "%Y-%m-%dT%H:%M:%S%z"
LOG_MAX_BYTES = 5 * 1024 * 1024  # 5 MB
LOG_BACKUP_COUNT = 3

# The kubernetes client logs every HTTP connection through urllib3 at DEBUG.
NOISY_LOGGERS = ("urllib3", "kubernetes.client.rest")


def setup_logging(log_file: str | None = None, verbose: bool = False) -> None:
    """Configure logging with a stderr handler and an optional rotating file.

    Args:
        log_file: Path to the log file. None keeps logging on stderr only.
        verbose: Lower the stderr threshold from INFO to DEBUG.
    """
    root = logging.getLogger()
    root.setLevel(logging.DEBUG)

    formatter = logging.Formatter(fmt=LOG_FORMAT, datefmt=LOG_DATEFMT)
    formatter.default_msec_format = "%s.%03d"

    stderr_handler = logging.StreamHandler(sys.stderr)
    stderr_handler.setLevel(logging.DEBUG if verbose else logging.INFO)
    stderr_handler.setFormatter(formatter)
    root.addHandler(stderr_handler)

    if log_file is not None:
        file_handler = RotatingFileHandler(log_file, maxBytes=LOG_MAX_BYTES, backupCount=LOG_BACKUP_COUNT)
        file_handler.setLevel(logging.DEBUG)
        file_handler.setFormatter(formatter)
        root.addHandler(file_handler)

    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)
