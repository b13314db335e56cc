# erps/utils/logger.py
"""
Logging setup shared by the API, the scheduler and the setup scripts.

Every module calls get_logger(__name__). Output goes to the console and,
unless LOG_DIR is empty, to a size-rotated erps.log next to the project.
Messages carry a bracketed component tag, e.g. "[WARRANTY] Submitted ...".
"""

import logging
import os
from logging.handlers import RotatingFileHandler

from erps.config import settings

_PROJECT_ROOT = os.path.dirname(os.path.dirname(os.path.dirname(__file__)))
_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"

# Chatty third-party loggers, capped at WARNING
_QUIET = ("httpx", "httpcore", "urllib3", "sqlalchemy.engine")

_configured = False


def _log_dir() -> str:
    if os.path.isabs(settings.LOG_DIR):
        return settings.LOG_DIR
    return os.path.join(_PROJECT_ROOT, settings.LOG_DIR)


def _configure_root_logger():
    global _configured
    if _configured:
        return
    _configured = True

    level = settings.LOG_LEVEL.upper()
    fmt = logging.Formatter(fmt=_FORMAT, datefmt="%Y-%m-%d %H:%M:%S")
    handlers: list[logging.Handler] = [logging.StreamHandler()]

    if settings.LOG_DIR:
        log_dir = _log_dir()
        os.makedirs(log_dir, exist_ok=True)
        handlers.append(RotatingFileHandler(
            filename=os.path.join(log_dir, "erps.log"),
            maxBytes=settings.LOG_FILE_MAX_MB * 1024 * 1024,
            backupCount=settings.LOG_FILE_BACKUPS,
            encoding="utf-8",
        ))

    root = logging.getLogger()
    root.setLevel(level)
    for handler in handlers:
        handler.setLevel(level)
        handler.setFormatter(fmt)
        root.addHandler(handler)

    for name in _QUIET:
        logging.getLogger(name).setLevel(logging.WARNING)


def get_logger(name: str) -> logging.Logger:
    """Named logger; configures the root logger on first use."""
    _configure_root_logger()
    return logging.getLogger(name)
