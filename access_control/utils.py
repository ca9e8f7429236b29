"""
Shared helpers: logger factory and clock.
"""
import logging
from datetime import date, datetime, timezone

from access_control.core import config


_LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s %(message)s"
_configured = False


def _configure_root() -> None:
    global _configured
    if _configured:
        return
    handler = logging.StreamHandler()
    handler.setFormatter(logging.Formatter(_LOG_FORMAT))
    root = logging.getLogger("access_control")
    root.addHandler(handler)
    root.setLevel(config.LOG_LEVEL)
    _configured = True


def get_logger(name: str) -> logging.Logger:
    """
    Return a logger under the package's configured root.

    Usage:
        log = get_logger(__name__)
        log.info("Created assignment %s", assignment.id)
    """
    _configure_root()
    if not name.startswith("access_control"):
        name = f"access_control.{name}"
    return logging.getLogger(name)


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def utc_today() -> date:
    """Calendar date used for assignment validity windows."""
    return utc_now().date()
