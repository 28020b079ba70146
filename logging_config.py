"""
logging_config.py — Logging setup for the storefront API

Every module logs through `logging.getLogger(__name__)`; this module wires the
root logger once at application start.
"""

import logging
import os
import sys

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
LOG_FILE = os.getenv("LOG_FILE")


def setup_logging():
    """
    Configures the root logger.

    - Level from LOG_LEVEL (default INFO)
    - Format: timestamp, level, process id, logger name, message
    - Handlers: stdout always, plus LOG_FILE when it is set
    - pymongo is reduced to WARNING
    """
    log_format = '%(asctime)s - %(levelname)s - [PID:%(process)d] - %(name)s - %(message)s'

    handlers = [logging.StreamHandler(sys.stdout)]
    if LOG_FILE:
        handlers.append(logging.FileHandler(LOG_FILE))

    logging.basicConfig(
        level=getattr(logging, LOG_LEVEL.upper(), logging.INFO),
        format=log_format,
        handlers=handlers,
    )

    logging.getLogger("pymongo").setLevel(logging.WARNING)


def get_logger(name):
    return logging.getLogger(name)
