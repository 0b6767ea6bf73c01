"""Structured logging for the pricing engine, built on structlog.

Console output in development, one JSON object per event in production.
Engine code logs snake_case events with document identifiers bound through
``document_context`` so that every line carries the document it concerns.
"""

import logging
import sys
from decimal import Decimal
from enum import Enum
from pathlib import Path
from typing import Any
from uuid import UUID

import structlog
from structlog.types import EventDict, Processor, WrappedLogger

from back_office_ledger.config import Settings, get_settings


def _add_log_level(logger: WrappedLogger, method_name: str, event_dict: EventDict) -> EventDict:
    """Upper-case level name, with ``warn`` folded into ``warning``."""
    if method_name == "warn":
        method_name = "warning"
    event_dict["level"] = method_name.upper()
    return event_dict


def _app_context(settings: Settings) -> Processor:
    """Processor stamping the app name and environment on every event."""
    app = settings.app_name
    environment = settings.environment.value

    def add_app_context(
        logger: WrappedLogger, method_name: str, event_dict: EventDict
    ) -> EventDict:
        event_dict.setdefault("app", app)
        event_dict.setdefault("environment", environment)
        return event_dict

    return add_app_context


def _stringify_values(logger: WrappedLogger, method_name: str, event_dict: EventDict) -> EventDict:
    """Render Decimals, UUIDs and enums the way they are stored."""
    for key, value in event_dict.items():
        if isinstance(value, Enum):
            event_dict[key] = value.value
        elif isinstance(value, (Decimal, UUID)):
            event_dict[key] = str(value)
    return event_dict


def _shared_processors(settings: Settings) -> list[Processor]:
    return [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_logger_name,
        _app_context(settings),
        _stringify_values,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
    ]


def get_console_processors(settings: Settings | None = None) -> list[Processor]:
    """Processors for development output."""
    return [
        *_shared_processors(settings or get_settings()),
        structlog.stdlib.add_log_level,
        structlog.dev.ConsoleRenderer(
            colors=sys.stderr.isatty(),
            exception_formatter=structlog.dev.plain_traceback,
        ),
    ]


def get_json_processors(settings: Settings | None = None) -> list[Processor]:
    """Processors for production output."""
    return [
        *_shared_processors(settings or get_settings()),
        _add_log_level,
        structlog.processors.format_exc_info,
        structlog.processors.JSONRenderer(sort_keys=True),
    ]


def configure_logging(settings: Settings | None = None) -> None:
    """Configure structlog and the stdlib root logger from settings.

    Called once by the CLI before a command runs. Library callers that
    never configure logging get structlog's defaults.
    """
    if settings is None:
        settings = get_settings()

    level = getattr(logging, settings.log_level.value)
    if settings.log_format == "json" or settings.is_production:
        processors = get_json_processors(settings)
    else:
        processors = get_console_processors(settings)

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )
    logging.basicConfig(format="%(message)s", stream=sys.stderr, level=level)

    if settings.log_file:
        _add_file_handler(settings.log_file, level)


def _add_file_handler(log_file: Path, level: int) -> None:
    log_file.parent.mkdir(parents=True, exist_ok=True)
    handler = logging.FileHandler(log_file)
    handler.setLevel(level)
    handler.setFormatter(
        logging.Formatter("%(asctime)s - %(name)s - %(levelname)s - %(message)s")
    )
    logging.getLogger().addHandler(handler)


def get_logger(name: str | None = None) -> structlog.stdlib.BoundLogger:
    """Return a structlog logger, normally ``get_logger(__name__)``."""
    return structlog.stdlib.get_logger(name)


def bind_context(**kwargs: Any) -> None:
    """Bind values to every later event in the current context."""
    structlog.contextvars.bind_contextvars(**kwargs)


def clear_context() -> None:
    structlog.contextvars.clear_contextvars()


class LogContext:
    """Bind values for the duration of a ``with`` block.

    Values bound outside the block are restored on exit, so nested
    contexts for an order and one of its deliveries do not clobber each
    other.

    Example:
        with LogContext(document_id=str(header.id)):
            service.reconcile_document(header.id)
    """

    def __init__(self, **kwargs: Any) -> None:
        self.kwargs = kwargs
        self._bound: Any = None

    def __enter__(self) -> "LogContext":
        self._bound = structlog.contextvars.bound_contextvars(**self.kwargs)
        self._bound.__enter__()
        return self

    def __exit__(self, *args: Any) -> None:
        self._bound.__exit__(*args)
        self._bound = None


def document_context(document_id: UUID, number: str) -> LogContext:
    """Log context naming one document by id and number."""
    return LogContext(document_id=str(document_id), document_number=number)
