"""Logging setup shared by the API and background entrypoints."""

from __future__ import annotations

import logging
import sys
from typing import Optional

from app.config import get_settings

LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"
ROOT_LOGGER_NAME = "crm_whatsapp"

# Libraries that log every request at INFO
_NOISY_LOGGERS = ("urllib3", "sqlalchemy.engine")


class LoggingConfig:
    """Configures the root logger once from LOG_LEVEL."""

    _configured = False

    @classmethod
    def setup(cls, level: Optional[str] = None) -> None:
        if cls._configured:
            return
        level_name = (level or get_settings().log_level or "INFO").upper()
        handler = logging.StreamHandler(sys.stdout)
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
        root = logging.getLogger()
        root.handlers = [handler]
        root.setLevel(getattr(logging, level_name, logging.INFO))
        for name in _NOISY_LOGGERS:
            logging.getLogger(name).setLevel(logging.WARNING)
        cls._configured = True


def get_logger(name: str) -> logging.Logger:
    """Return a logger namespaced under the application root logger."""
    return logging.getLogger(f"{ROOT_LOGGER_NAME}.{name}")
