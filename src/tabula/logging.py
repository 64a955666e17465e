"""
Structured logging for tabula (structlog).

Manifesto:
    Generated SQL is only worth logging when it stays structured: the
    statement, its positional arguments and the table travel as separate
    keys so a log pipeline can filter on them.  Statement logging is opt-in
    (``log_sql``); schema changes and failures are always logged.

    Event names are dotted and stable: ``sql.exec``, ``sql.error``,
    ``migration.column_added``, ``migration.index_created``,
    ``adapter.connected`` and so on.

Examples:
    >>> from tabula.logging import configure_logging, get_logger
    >>> configure_logging(level="DEBUG", json_format=False)
    >>> logger = get_logger(__name__)
    >>> logger.debug("sql.exec", sql="SELECT 1", args=[])

Tags:
    logging, structlog, observability, tabula
"""

from __future__ import annotations

import logging
import sys
from typing import Any

import structlog
from structlog.types import EventDict, Processor, WrappedLogger

MAX_ARG_LENGTH = 200

_service_name = "tabula"


def _add_service_name(logger: WrappedLogger, method_name: str, event_dict: EventDict) -> EventDict:
    event_dict.setdefault("service.name", _service_name)
    return event_dict


def _shorten_arg(value: Any) -> Any:
    if isinstance(value, (bytes, bytearray, memoryview)):
        return f"<{len(value)} bytes>"
    if isinstance(value, str) and len(value) > MAX_ARG_LENGTH:
        return value[:MAX_ARG_LENGTH] + f"...<{len(value)} chars>"
    return value


def shorten_sql_args(logger: WrappedLogger, method_name: str, event_dict: EventDict) -> EventDict:
    """Keep bound statement arguments readable: blobs become their size, long text is cut."""
    args = event_dict.get("args")
    if isinstance(args, (list, tuple)):
        event_dict["args"] = [_shorten_arg(a) for a in args]
    return event_dict


def build_processors(json_format: bool) -> list[Processor]:
    processors: list[Processor] = [
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.processors.StackInfoRenderer(),
        structlog.dev.set_exc_info,
        shorten_sql_args,
        _add_service_name,
    ]
    if json_format:
        processors.append(structlog.processors.JSONRenderer())
    else:
        processors.append(structlog.dev.ConsoleRenderer(colors=sys.stdout.isatty()))
    return processors


def configure_logging(
    level: str = "INFO",
    json_format: bool | None = None,
    service: str = "tabula",
) -> None:
    """Install the tabula processor chain as the global structlog config.

    Args:
        level: DEBUG, INFO, WARNING or ERROR.  ``sql.exec`` events are DEBUG.
        json_format: JSON lines when true, console rendering when false;
            ``None`` picks JSON unless stdout is a terminal.
        service: Value of the ``service.name`` key on every event.
    """
    global _service_name
    _service_name = service
    if json_format is None:
        json_format = not sys.stdout.isatty()
    structlog.configure(
        processors=build_processors(json_format),
        wrapper_class=structlog.make_filtering_bound_logger(getattr(logging, level.upper())),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=True,
    )


def get_logger(name: str | None = None) -> Any:
    return structlog.get_logger(name)


def bind_context(**kwargs: Any) -> None:
    """Add keys to every event logged from this context (thread or task)."""
    structlog.contextvars.bind_contextvars(**kwargs)


def unbind_context(*keys: str) -> None:
    structlog.contextvars.unbind_contextvars(*keys)


class LogContext:
    """Bind keys for the duration of a ``with`` block.

    Migrations use it to tag everything they log with the table::

        with LogContext(table="user", dialect="sqlite"):
            logger.info("migration.index_created", index="user_name")
    """

    def __init__(self, **kwargs: Any):
        self._context = kwargs

    def __enter__(self) -> LogContext:
        bind_context(**self._context)
        return self

    def __exit__(self, *args: Any) -> None:
        unbind_context(*self._context)


__all__ = [
    "LogContext",
    "MAX_ARG_LENGTH",
    "bind_context",
    "build_processors",
    "configure_logging",
    "get_logger",
    "shorten_sql_args",
    "unbind_context",
]
