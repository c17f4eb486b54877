# core/logger.py
import logging
import os
import sys
from logging.handlers import RotatingFileHandler

_configured = False

DEFAULT_LOG_FILE = os.path.join(os.path.expanduser("~"), ".cart_sorter", "cart_sorter.log")
LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"
# fetches run on worker threads, so name the thread when debugging
DEBUG_LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s:%(threadName)s] %(message)s"

QUIET_LOGGERS = ("urllib3", "asyncio", "playwright")


def _env_flag(name: str, default: str) -> bool:
    return os.getenv(name, default).strip().lower() in ("1", "true", "yes", "on")


def _file_handler(path: str, level: int, formatter: logging.Formatter) -> logging.Handler:
    os.makedirs(os.path.dirname(path) or ".", exist_ok=True)
    handler = RotatingFileHandler(
        path,
        maxBytes=int(os.getenv("LOG_MAX_BYTES", str(1024 * 1024))),
        backupCount=int(os.getenv("LOG_BACKUPS", "2")),
        encoding="utf-8",
    )
    handler.setLevel(level)
    handler.setFormatter(formatter)
    return handler


def setup_logging():
    global _configured
    if _configured:
        return

    level = getattr(logging, os.getenv("LOG_LEVEL", "INFO").upper(), logging.INFO)
    root = logging.getLogger()
    root.setLevel(level)

    formatter = logging.Formatter(DEBUG_LOG_FORMAT if level <= logging.DEBUG else LOG_FORMAT)

    for noisy in QUIET_LOGGERS:
        logging.getLogger(noisy).setLevel(max(level, logging.INFO))

    if not root.handlers:
        if _env_flag("LOG_TO_STDOUT", "true"):
            ch = logging.StreamHandler(sys.stdout)
            ch.setLevel(level)
            ch.setFormatter(formatter)
            root.addHandler(ch)

        if _env_flag("LOG_TO_FILE", "false"):
            log_file = os.getenv("LOG_FILE", DEFAULT_LOG_FILE)
            try:
                root.addHandler(_file_handler(log_file, level, formatter))
            except OSError as e:
                root.warning("Failed to initialize file logging at %s: %s", log_file, e)

    _configured = True


def get_logger(name: str | None = None) -> logging.Logger:
    setup_logging()
    return logging.getLogger(name)
