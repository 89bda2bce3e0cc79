"""Centralized logging setup."""

import logging
import os
import sys
from contextvars import ContextVar
from logging.handlers import WatchedFileHandler
from typing import Optional


request_id_var: ContextVar[str] = ContextVar("request_id", default="")

NOISY_LOGGERS = ("urllib3", "httpx", "httpcore", "botocore", "apscheduler", "pusher")


class RequestIdFilter(logging.Filter):
    """Stamp every record with the current request id (or '-')."""

    def filter(self, record: logging.LogRecord) -> bool:
        record.request_id = request_id_var.get() or "-"
        return True


def _handler_exists(
    logger: logging.Logger, handler_type: type, *, filename: Optional[str] = None
) -> bool:
    for handler in logger.handlers:
        if isinstance(handler, handler_type):
            if filename is None:
                return True
            if getattr(handler, "baseFilename", None) == filename:
                return True
    return False


def _attach(logger: logging.Logger, handler: logging.Handler, level: int, formatter) -> None:
    handler.setLevel(level)
    handler.setFormatter(formatter)
    handler.addFilter(RequestIdFilter())
    logger.addHandler(handler)


def configure_logging(*, environment: str, log_level: str) -> int:
    level = getattr(logging, (log_level or "INFO").upper(), logging.INFO)

    root = logging.getLogger()
    root.setLevel(level)

    formatter = logging.Formatter(
        "[%(asctime)s.%(msecs)03d] [%(levelname)-5s] [%(request_id)-8s] [%(name)-20s] %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )

    if not _handler_exists(root, logging.StreamHandler):
        _attach(root, logging.StreamHandler(sys.stdout), level, formatter)

    app_log_path = os.getenv("APP_LOG_PATH", "").strip()
    if app_log_path:
        try:
            log_dir = os.path.dirname(app_log_path)
            if log_dir:
                os.makedirs(log_dir, exist_ok=True)
            if not _handler_exists(root, WatchedFileHandler, filename=app_log_path):
                _attach(root, WatchedFileHandler(app_log_path), level, formatter)
        except OSError as exc:
            root.warning(
                "Failed to configure APP_LOG_PATH logging for %s: %s",
                app_log_path,
                exc,
            )

    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    for name in ("uvicorn", "uvicorn.error", "uvicorn.access"):
        uv_logger = logging.getLogger(name)
        uv_logger.handlers.clear()
        uv_logger.propagate = True
        uv_logger.setLevel(level)
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)

    root.info("Logging configured | environment=%s | level=%s", environment, logging.getLevelName(level))
    return level
