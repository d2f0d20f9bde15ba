"""
Logging for the ledger service and its scripts.

Everything logs under the ``ledger`` namespace. ``setup_logging`` is called
once by the app lifespan and by each script's ``main``; modules only ever call
``get_logger(__name__)``.
"""
import logging
import logging.handlers
import sys
from pathlib import Path
from typing import List, Optional

from ledger.settings import (
    APP_LOG_LEVEL, THIRD_PARTY_LOG_LEVEL, LOG_FILE, LOG_MAX_BYTES, LOG_BACKUP_COUNT, SQL_ECHO,
)


APP_LOGGER_NAME = "ledger"

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

# Libraries that are chatty at INFO; the rate provider goes through requests/urllib3
QUIET_LOGGERS = (
    "sqlalchemy.engine",
    "sqlalchemy.pool",
    "sqlalchemy.orm",
    "urllib3",
    "requests",
    "uvicorn.access",
    "uvicorn.error",
    "httpx",
    "faker",
)


def _level(name: str, default: int) -> int:
    return getattr(logging, name.upper(), default)


def _handlers(level: int, log_file: Optional[str]) -> List[logging.Handler]:
    handlers: List[logging.Handler] = [logging.StreamHandler(sys.stdout)]

    if log_file:
        Path(log_file).parent.mkdir(parents=True, exist_ok=True)
        handlers.append(logging.handlers.RotatingFileHandler(
            log_file,
            maxBytes=LOG_MAX_BYTES,
            backupCount=LOG_BACKUP_COUNT,
        ))

    formatter = logging.Formatter(fmt=LOG_FORMAT, datefmt=DATE_FORMAT)
    for handler in handlers:
        handler.setLevel(level)
        handler.setFormatter(formatter)
    return handlers


def setup_logging(
    app_log_level: Optional[str] = None,
    third_party_log_level: Optional[str] = None,
    log_file: Optional[str] = None,
) -> logging.Logger:
    """
    Configure the ``ledger`` logger and quiet third-party libraries.

    Arguments override the APP_LOG_LEVEL, THIRD_PARTY_LOG_LEVEL and LOG_FILE
    settings. Safe to call more than once; handlers are replaced, not added.
    """
    app_level = _level(app_log_level or APP_LOG_LEVEL, logging.INFO)
    third_party_level = _level(third_party_log_level or THIRD_PARTY_LOG_LEVEL, logging.WARNING)

    app_logger = logging.getLogger(APP_LOGGER_NAME)
    app_logger.setLevel(app_level)
    app_logger.handlers.clear()
    for handler in _handlers(app_level, log_file or LOG_FILE):
        app_logger.addHandler(handler)
    app_logger.propagate = False

    for name in QUIET_LOGGERS:
        # SQL_ECHO asks for statement logs, leave the engine logger alone
        if SQL_ECHO and name == "sqlalchemy.engine":
            continue
        logging.getLogger(name).setLevel(third_party_level)

    return app_logger


def get_logger(name: str = APP_LOGGER_NAME) -> logging.Logger:
    """Logger under the ``ledger`` namespace; scripts pass a bare name."""
    if name == APP_LOGGER_NAME or name.startswith(f"{APP_LOGGER_NAME}."):
        return logging.getLogger(name)
    return logging.getLogger(f"{APP_LOGGER_NAME}.{name}")
