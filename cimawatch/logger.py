# cimawatch/logger.py
import logging
import os
import sys
from logging.handlers import RotatingFileHandler
from typing import List

DATA_DIR = os.getenv("DATA_DIR", "/data")

LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"

# One line per HTTP request adds up to dozens per feed fetch.
QUIET_LOGGERS = ("urllib3", "requests")

_configured = False


def _env_flag(name: str, default: str) -> bool:
    return os.getenv(name, default).strip().lower() == "true"


def _build_handlers(level: int, formatter: logging.Formatter) -> List[logging.Handler]:
    handlers: List[logging.Handler] = []

    if _env_flag("LOG_TO_STDOUT", "true"):
        handlers.append(logging.StreamHandler(sys.stdout))

    if _env_flag("LOG_TO_FILE", "true"):
        log_file = os.getenv("LOG_FILE", os.path.join(DATA_DIR, "cima_watch.log"))
        try:
            os.makedirs(os.path.dirname(log_file) or ".", exist_ok=True)
            handlers.append(
                RotatingFileHandler(
                    log_file,
                    maxBytes=int(os.getenv("LOG_MAX_BYTES", str(2 * 1024 * 1024))),
                    backupCount=int(os.getenv("LOG_BACKUPS", "3")),
                    encoding="utf-8",
                )
            )
        except OSError as e:
            print(f"Failed to initialize file logging at {log_file}: {e}", file=sys.stderr)

    for handler in handlers:
        handler.setLevel(level)
        handler.setFormatter(formatter)
    return handlers


def setup_logging():
    """Configure the root logger once; handlers already installed (pytest, a host app) win."""
    global _configured
    if _configured:
        return

    level = getattr(logging, os.getenv("LOG_LEVEL", "INFO").upper(), logging.INFO)
    root = logging.getLogger()
    root.setLevel(level)

    if not root.handlers:
        for handler in _build_handlers(level, logging.Formatter(LOG_FORMAT)):
            root.addHandler(handler)

    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(max(level, logging.WARNING))

    _configured = True


def get_logger(name: str | None = None) -> logging.Logger:
    setup_logging()
    return logging.getLogger(name)
