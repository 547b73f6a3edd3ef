"""Logging setup for the scanning client."""
from __future__ import annotations

import logging
from logging.config import dictConfig
from pathlib import Path
from typing import Optional

from .config import DATA_DIR

LOG_FORMAT = "%(asctime)s | %(levelname)s | %(name)s | %(message)s"
CONSOLE_FORMAT = "%(asctime)s %(levelname).1s %(name)s: %(message)s"


def configure_logging(level: str = "INFO", log_dir: Optional[Path] = None, retention_days: int = 14) -> None:
    """
    Route client logs to the terminal and to ``client.log`` in ``log_dir``
    (``~/.infect-client/logs`` by default), rolled over daily.
    """

    log_dir = Path(log_dir or DATA_DIR / "logs").expanduser()
    log_dir.mkdir(parents=True, exist_ok=True)

    dictConfig(
        {
            "version": 1,
            "disable_existing_loggers": False,
            "formatters": {
                "file": {"format": LOG_FORMAT},
                "console": {"format": CONSOLE_FORMAT, "datefmt": "%H:%M:%S"},
            },
            "handlers": {
                "console": {
                    "class": "logging.StreamHandler",
                    "formatter": "console",
                    "level": level,
                },
                "client_file": {
                    "class": "logging.handlers.TimedRotatingFileHandler",
                    "formatter": "file",
                    "level": level,
                    "filename": str(log_dir / "client.log"),
                    "when": "midnight",
                    "backupCount": max(int(retention_days), 1),
                    "utc": True,
                    "delay": True,
                    "encoding": "utf-8",
                },
            },
            "loggers": {
                # reconnect attempts are logged at INFO by websockets
                "websockets": {"level": "WARNING"},
                "uvicorn.access": {"level": "WARNING"},
            },
            "root": {"level": level, "handlers": ["console", "client_file"]},
        }
    )
    logging.getLogger(__name__).debug("Client logging ready (level=%s, dir=%s)", level, log_dir)


__all__ = ["configure_logging"]
