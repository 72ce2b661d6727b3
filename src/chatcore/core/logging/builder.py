"""
Build and apply the dictConfig for the service, optionally moving log I/O to a
background `QueueListener`.

Queue mode (LOG_USE_QUEUE):
 - LOG_QUEUE_MAX_SIZE > 0 bounds the queue, 0 leaves it unbounded.
 - With a bounded queue, LOG_QUEUE_BLOCKING=False drops records when full
   (counted, see `get_queue_stats`) instead of blocking the event loop, with a
   stderr notice every LOG_QUEUE_DROP_WARNING_THRESHOLD drops.
 - Request id stamping and redaction run on the producer side, where the
   request contextvar is still set.

Call `stop_queue_logging()` at shutdown to flush the listener.
"""

from __future__ import annotations

import logging
import logging.config
import queue as _queue
import sys
import threading
from logging.handlers import QueueHandler, QueueListener
from pathlib import Path

from chatcore.config.settings import Settings
from chatcore.utils.logging import get_project_name

from .formatters import JsonFormatter, ColorFormatter
from .filters import RequestIdFilter, RedactFilter
from .handlers import (
    get_console_handler,
    get_file_handler,
    get_error_file_handler,
    get_error_console_handler,
)

_QUEUE_LISTENER: QueueListener | None = None
_QUEUE: _queue.Queue | None = None

_DROPPED_LOGS_COUNT = 0
_DROPPED_LOGS_LOCK = threading.Lock()

# Loggers that are chatty at INFO/DEBUG in every environment
QUIET_LOGGERS = ("aiosqlite", "asyncio", "httpx", "httpcore", "faker")


class NonBlockingQueueHandler(QueueHandler):
    """
    QueueHandler that drops (and counts) records instead of blocking on a full queue.
    Every `warn_every` drops a line goes to stderr, bypassing the full queue.
    """

    def __init__(self, queue, warn_every: int = 100):
        super().__init__(queue)
        self.warn_every = max(int(warn_every), 1)

    def emit(self, record: logging.LogRecord) -> None:
        global _DROPPED_LOGS_COUNT
        try:
            self.queue.put_nowait(self.prepare(record))
        except _queue.Full:
            with _DROPPED_LOGS_LOCK:
                _DROPPED_LOGS_COUNT += 1
                dropped = _DROPPED_LOGS_COUNT
            if dropped % self.warn_every == 0:
                sys.stderr.write(f"chatcore logging: dropped {dropped} records, queue full\n")


def get_queue_stats() -> dict:
    with _DROPPED_LOGS_LOCK:
        return {"dropped_logs": _DROPPED_LOGS_COUNT, "queue_present": _QUEUE is not None}


def make_dict_config(settings: Settings) -> dict:
    """
    dictConfig mapping for `settings`:
      - formatters "standard" (colored in text mode) and "json"
      - filters "request_id" and "redact"
      - handlers: console, plus file/error_file when writing to LOG_DIR,
        otherwise error_console
      - loggers: root, uvicorn, sqlalchemy.engine, the GraphQL executor
    """
    formatters = {
        "standard": {
            "()": ColorFormatter if settings.LOG_FORMAT == "text" else logging.Formatter,
            "format": "%(asctime)s | %(levelname)s | %(name)s | %(request_id)s | %(message)s",
        },
        "json": {
            "()": JsonFormatter,
            "env": settings.ENV,
            "service": get_project_name(default="chatcore"),
        },
    }

    filters = {
        "request_id": {"()": RequestIdFilter},
        "redact": {"()": RedactFilter},
    }

    handlers: dict[str, dict] = {"console": get_console_handler(settings)}
    if (not settings.LOG_TO_STDOUT) and settings.LOG_DIR:
        handlers["file"] = get_file_handler(settings)
        handlers["error_file"] = get_error_file_handler(settings)
    else:
        handlers["error_console"] = get_error_console_handler(settings)

    loggers: dict[str, dict] = {
        "": {
            "handlers": list(handlers.keys()),
            "level": settings.LOG_LEVEL,
            "propagate": True,
        },
        "uvicorn.error": {
            "level": settings.LOG_LEVEL,
            "handlers": list(handlers.keys()),
            "propagate": False,
        },
        "uvicorn.access": {
            "level": "INFO",
            "handlers": ["console"],
            "propagate": False,
        },
        # SQL logging may contain message bodies
        "sqlalchemy.engine": {
            "level": "DEBUG" if settings.ENABLE_SQL_LOGGING else "WARNING",
            "handlers": ["console"],
            "propagate": False,
        },
        # Per-error logging from the GraphQL executor; the gateway's error formatter logs instead
        "chatcore.api.graphql.executor": {
            "level": "CRITICAL",
            "propagate": False,
        },
    }
    for name in QUIET_LOGGERS:
        loggers[name] = {"level": "WARNING"}

    return {
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": formatters,
        "filters": filters,
        "handlers": handlers,
        "loggers": loggers,
    }


def setup_logging(settings: Settings) -> None:
    """
    Apply the dictConfig for `settings` and, when LOG_USE_QUEUE is set, move the
    real handlers behind a QueueListener. Safe to call more than once.
    """
    global _QUEUE_LISTENER, _QUEUE

    stop_queue_logging()

    if (not settings.LOG_TO_STDOUT) and settings.LOG_DIR:
        Path(settings.LOG_DIR).mkdir(parents=True, exist_ok=True)

    logging.config.dictConfig(make_dict_config(settings))
    root_logger = logging.getLogger()
    root_logger.addFilter(RequestIdFilter())

    if not settings.LOG_USE_QUEUE:
        return

    current_handlers = list(root_logger.handlers)
    if not current_handlers:
        return

    # Real handlers must only run on the listener thread
    moved = set(current_handlers)
    for logger_obj in list(logging.Logger.manager.loggerDict.values()):
        if isinstance(logger_obj, logging.Logger):
            for h in list(logger_obj.handlers):
                if h in moved:
                    logger_obj.removeHandler(h)
    for h in current_handlers:
        root_logger.removeHandler(h)

    max_size = settings.LOG_QUEUE_MAX_SIZE or 0
    log_queue: _queue.Queue = _queue.Queue(max_size if max_size > 0 else 0)

    if max_size > 0 and not settings.LOG_QUEUE_BLOCKING:
        queue_handler: QueueHandler = NonBlockingQueueHandler(
            log_queue, warn_every=settings.LOG_QUEUE_DROP_WARNING_THRESHOLD
        )
    else:
        queue_handler = QueueHandler(log_queue)

    queue_handler.addFilter(RequestIdFilter())
    queue_handler.addFilter(RedactFilter())

    listener = QueueListener(log_queue, *current_handlers, respect_handler_level=True)
    listener.start()
    root_logger.addHandler(queue_handler)

    _QUEUE_LISTENER = listener
    _QUEUE = log_queue


def stop_queue_logging() -> None:
    """Flush and stop the QueueListener, if one is running."""
    global _QUEUE_LISTENER, _QUEUE
    listener = _QUEUE_LISTENER
    if listener is None:
        return

    try:
        listener.stop()
    except RuntimeError:
        logging.getLogger(__name__).exception("logging.queue_listener_stop_failed")
    finally:
        _QUEUE_LISTENER = None
        _QUEUE = None

    dropped = get_queue_stats()["dropped_logs"]
    if dropped:
        logging.getLogger(__name__).warning("logging.dropped_records", extra={"dropped": dropped})
