"""
Structured logging for schema-spine.

Every component logs through structlog so sync and migration events
carry their ``name``/``type``/``migration`` fields as real keys rather
than text baked into a message.

Architecture:
    ::

        configure_logging(level="INFO", json_format=None, service="schema-spine")
            │
            ▼
        structlog processor chain:
          1. TimeStamper (iso)
          2. add_log_level (logger name bound by get_logger)
          3. service metadata
          4. ECS field names (JSON only)
          5. JSONRenderer or ConsoleRenderer

        SQL statements come from SQLAlchemy's stdlib ``sqlalchemy.engine``
        logger; configure_sql_logging() sets its level from the
        ``info|warn|error|silent`` vocabulary used by the settings.

Examples:
    >>> from schemaspine.core.logging import configure_logging, get_logger
    >>> configure_logging(level="DEBUG", json_format=False)
    >>> logger = get_logger(__name__)
    >>> logger.info("schema.recreated", name="v1", type="materialized-view")

Tags:
    logging, structlog, observability, schema-spine
"""

from __future__ import annotations

import logging
import sys
from typing import Any, TextIO

import structlog
from structlog.types import EventDict, Processor, WrappedLogger

from schemaspine.core.errors import InvalidConfigError

SQL_LOGGER_NAME = "sqlalchemy.engine"

# One step above CRITICAL so nothing is emitted.
SILENT = logging.CRITICAL + 10

_SQL_LOG_LEVELS = {
    "info": logging.INFO,
    "warn": logging.WARNING,
    "error": logging.ERROR,
    "silent": SILENT,
}

# ECS names for the keys structlog produces.
_ECS_RENAMES = {"timestamp": "@timestamp", "level": "log.level", "logger": "log.logger"}


def _service_stamp(service: str) -> Processor:
    def stamp(logger: WrappedLogger, method_name: str, event_dict: EventDict) -> EventDict:
        event_dict.setdefault("service.name", service)
        return event_dict

    return stamp


def _ecs_field_names(logger: WrappedLogger, method_name: str, event_dict: EventDict) -> EventDict:
    for old, new in _ECS_RENAMES.items():
        if old in event_dict:
            event_dict[new] = event_dict.pop(old)
    return event_dict


def _build_processors(service: str, json_format: bool, add_timestamp: bool) -> list[Processor]:
    processors: list[Processor] = []
    if add_timestamp:
        processors.append(structlog.processors.TimeStamper(fmt="iso"))
    processors += [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.processors.StackInfoRenderer(),
        structlog.dev.set_exc_info,
        _service_stamp(service),
    ]
    if json_format:
        processors += [_ecs_field_names, structlog.processors.JSONRenderer()]
    else:
        processors.append(structlog.dev.ConsoleRenderer(colors=True))
    return processors


def configure_logging(
    level: str = "INFO",
    json_format: bool | None = None,
    service: str = "schema-spine",
    add_timestamp: bool = True,
    stream: TextIO | None = None,
    cache_loggers: bool = True,
) -> None:
    """Configure structlog (and the stdlib root logger SQLAlchemy uses).

    Args:
        level: Minimum level name, e.g. ``"DEBUG"`` or ``"WARNING"``
        json_format: JSON lines when true, console when false; ``None``
            picks JSON unless stdout is a terminal
        service: Value of the ``service.name`` field on every event
        add_timestamp: Prefix events with an ISO timestamp
        stream: Where log lines go (default stdout)
        cache_loggers: Freeze each logger on first use; turn off when the
            stream is swapped between calls
    """
    numeric_level = logging.getLevelName(level.upper())
    if not isinstance(numeric_level, int):
        raise InvalidConfigError("log_level", level, f"Unknown log level: {level}")
    if json_format is None:
        json_format = not sys.stdout.isatty()

    structlog.configure(
        processors=_build_processors(service, json_format, add_timestamp),
        wrapper_class=structlog.make_filtering_bound_logger(numeric_level),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(file=stream),
        cache_logger_on_first_use=cache_loggers,
    )
    logging.basicConfig(format="%(message)s", stream=stream or sys.stdout, level=numeric_level)


def parse_sql_log_level(value: str) -> int:
    """Map ``info|warn|error|silent`` to a stdlib logging level.

    Raises:
        InvalidConfigError: For any other value.
    """
    try:
        return _SQL_LOG_LEVELS[value.lower()]
    except KeyError:
        raise InvalidConfigError(
            "sql_log_level", value, f"Unknown SQL log level: {value}"
        ) from None


def configure_sql_logging(level: str | int) -> None:
    """Set the level of SQLAlchemy's statement logger.

    ``info`` emits every statement, ``warn`` only problems (and the slow
    statement warnings the engine factory emits), ``silent`` nothing.
    """
    if isinstance(level, str):
        level = parse_sql_log_level(level)
    logging.getLogger(SQL_LOGGER_NAME).setLevel(level)


def get_logger(name: str | None = None) -> Any:
    """``structlog.get_logger`` with *name* (usually ``__name__``) on every event.

    The name is an initial value of the lazy proxy, so loggers created at
    import time still pick up a later ``configure_logging`` call.
    """
    if name is None:
        return structlog.get_logger()
    # ``structlog.get_logger(logger=name)`` collides with ``wrap_logger``'s
    # own ``logger`` parameter, so build the lazy proxy directly.
    return structlog._config.BoundLoggerLazyProxy(
        None, initial_values={"logger": name}, logger_factory_args=()
    )


def bind_context(**kwargs: Any) -> None:
    """Add fields to every event logged from this context onwards."""
    structlog.contextvars.bind_contextvars(**kwargs)


def unbind_context(*keys: str) -> None:
    structlog.contextvars.unbind_contextvars(*keys)


class LogContext:
    """Bind fields for the duration of a ``with`` block.

    Example:
        with LogContext(step="resources"):
            logger.info("schema.recreated", name="v1")
    """

    def __init__(self, **fields: Any):
        self.fields = fields

    def __enter__(self) -> LogContext:
        bind_context(**self.fields)
        return self

    def __exit__(self, *exc_info) -> None:
        unbind_context(*self.fields)


__all__ = [
    "SILENT",
    "SQL_LOGGER_NAME",
    "LogContext",
    "bind_context",
    "configure_logging",
    "configure_sql_logging",
    "get_logger",
    "parse_sql_log_level",
    "unbind_context",
]
