"""
Logging setup shared by the API process and the finalization CLI
"""
import logging
import sys
from typing import Optional

from attendance_engine.core.config import settings

# Thread name distinguishes finalization workers ("finalize_0", ...) from request threads
LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - [%(threadName)s] %(message)s"

_NOISY_LOGGERS = {
    "uvicorn.access": logging.WARNING,
    "sqlalchemy.engine": logging.WARNING,
    "alembic.runtime.migration": logging.INFO,
}


def setup_logging(level: Optional[str] = None) -> None:
    """
    Configure the root logger once: stdout handler, LOG_FORMAT, level from
    `level` or settings.LOG_LEVEL. Third-party loggers listed in _NOISY_LOGGERS
    are capped.
    """
    log_level = getattr(logging, (level or settings.LOG_LEVEL).upper(), logging.INFO)

    root = logging.getLogger()
    if not root.handlers:
        handler = logging.StreamHandler(sys.stdout)
        handler.setFormatter(logging.Formatter(LOG_FORMAT, datefmt="%Y-%m-%d %H:%M:%S"))
        root.addHandler(handler)
    root.setLevel(log_level)

    for name, cap in _NOISY_LOGGERS.items():
        logging.getLogger(name).setLevel(cap)

    logging.getLogger(__name__).info(
        "Logging configured: level=%s env=%s org_timezone=%s",
        logging.getLevelName(log_level), settings.APP_ENV, settings.ORG_TIMEZONE,
    )
