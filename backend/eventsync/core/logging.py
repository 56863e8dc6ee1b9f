"""
structlog setup for the sync engine.

JSON lines in production, colored console output elsewhere. Anything bound
with `structlog.contextvars` (a sync run's `family` / `sync_id`, a UI
request's `request_id`) is merged into every line logged while it is bound,
including lines from stdlib loggers routed through the same formatter.
"""

import logging
import sys
from typing import Optional

import structlog
from structlog.types import EventDict, WrappedLogger

from eventsync.core.config import get_settings

# Third-party loggers that are only interesting at WARNING and above
QUIET_LOGGERS = ("uvicorn.access", "sqlalchemy.engine", "httpx", "httpcore", "aiosqlite")

_HANDLER_NAME = "eventsync"


def add_app_context(logger: WrappedLogger, method_name: str, event_dict: EventDict) -> EventDict:
    settings = get_settings()
    event_dict.setdefault("app", settings.APP_NAME)
    event_dict.setdefault("env", settings.ENVIRONMENT)
    return event_dict


def _install_handler(formatter: logging.Formatter, level: int) -> None:
    root = logging.getLogger()
    # Lifespan may run several times in one process (tests); keep a single handler
    for existing in list(root.handlers):
        if existing.get_name() == _HANDLER_NAME:
            root.removeHandler(existing)

    handler = logging.StreamHandler(sys.stdout)
    handler.set_name(_HANDLER_NAME)
    handler.setFormatter(formatter)
    root.addHandler(handler)
    root.setLevel(level)


def setup_logging(level: Optional[str] = None, json_logs: Optional[bool] = None) -> None:
    settings = get_settings()
    if json_logs is None:
        json_logs = settings.ENVIRONMENT == "production"
    log_level = getattr(logging, (level or settings.LOG_LEVEL).upper(), logging.INFO)

    processors = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.UnicodeDecoder(),
    ]
    if json_logs:
        processors.append(add_app_context)
        processors.append(structlog.processors.format_exc_info)
        renderer = structlog.processors.JSONRenderer()
    else:
        renderer = structlog.dev.ConsoleRenderer(colors=sys.stdout.isatty())

    structlog.configure(
        processors=[*processors, structlog.stdlib.ProcessorFormatter.wrap_for_formatter],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    formatter = structlog.stdlib.ProcessorFormatter(
        foreign_pre_chain=processors,
        processors=[structlog.stdlib.ProcessorFormatter.remove_processors_meta, renderer],
    )
    _install_handler(formatter, log_level)

    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)
    if settings.DB_ECHO:
        logging.getLogger("sqlalchemy.engine").setLevel(logging.INFO)


def get_logger(name: str = __name__) -> structlog.stdlib.BoundLogger:
    return structlog.get_logger(name)
