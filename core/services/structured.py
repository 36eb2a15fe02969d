# =============================================================================
# core/services/structured.py - Producer Front-Ends
# =============================================================================
# Two ways of handing events to the LogRouter:
#
# 1. structlog: `get_logger(router, category)` returns a structlog bound
#    logger. The positional message is kept as a template and keyword
#    arguments stay structured properties:
#
#        log = router.get_logger(__name__)
#        log.info("Returned {count} forecasts", count=5)
#
# 2. stdlib logging: `install_stdlib_bridge(router)` puts a RouterHandler on
#    the root logger so framework internals (uvicorn, FastAPI, libraries)
#    reach the same sinks and filters.
# =============================================================================

from __future__ import annotations

import logging
import sys
from typing import TYPE_CHECKING, Any

import structlog

from core.models.log_event import LogEvent, Severity

if TYPE_CHECKING:
    from core.services.log_router import LogRouter


def _resolve_exception(exc_info: Any) -> BaseException | None:
    """Turn structlog-style exc_info (True, exception or tuple) into an exception."""
    if exc_info is None or exc_info is False:
        return None
    if isinstance(exc_info, BaseException):
        return exc_info
    if isinstance(exc_info, tuple):
        return exc_info[1]
    return sys.exc_info()[1]


def _event_exception(
    level: Severity,
    exception: BaseException | None,
    properties: dict[str, Any],
) -> BaseException | None:
    # Events below Warning cannot carry an exception; keep its type name
    if exception is not None and level < Severity.WARNING:
        properties["exception_type"] = type(exception).__name__
        return None
    return exception


# =============================================================================
# structlog Front-End
# =============================================================================

_METHOD_LEVELS: dict[str, Severity] = {
    "trace": Severity.TRACE,
    "debug": Severity.DEBUG,
    "info": Severity.INFORMATION,
    "information": Severity.INFORMATION,
    "warning": Severity.WARNING,
    "warn": Severity.WARNING,
    "error": Severity.ERROR,
    "exception": Severity.ERROR,
    "critical": Severity.CRITICAL,
    "fatal": Severity.CRITICAL,
}


class RouterEmitter:
    """
    The "logger" structlog wraps: turns a processed event dict into a
    LogEvent and hands it to the router.
    """

    def __init__(self, router: LogRouter, category: str):
        self.router = router
        self.category = category

    def is_enabled(self, method_name: str) -> bool:
        level = _METHOD_LEVELS.get(method_name)
        return level is not None and self.router.is_enabled(level, self.category)

    def log(self, level: Severity, event: Any = None, **properties: Any) -> None:
        exception = _resolve_exception(properties.pop("exc_info", None))
        exception = _event_exception(level, exception, properties)
        self.router.emit(LogEvent(
            level=level,
            source_category=self.category,
            message_template="" if event is None else str(event),
            properties=properties,
            exception=exception,
        ))

    def trace(self, event: Any = None, **properties: Any) -> None:
        self.log(Severity.TRACE, event, **properties)

    def debug(self, event: Any = None, **properties: Any) -> None:
        self.log(Severity.DEBUG, event, **properties)

    def info(self, event: Any = None, **properties: Any) -> None:
        self.log(Severity.INFORMATION, event, **properties)

    information = info

    def warning(self, event: Any = None, **properties: Any) -> None:
        self.log(Severity.WARNING, event, **properties)

    warn = warning

    def error(self, event: Any = None, **properties: Any) -> None:
        self.log(Severity.ERROR, event, **properties)

    def exception(self, event: Any = None, **properties: Any) -> None:
        properties.setdefault("exc_info", True)
        self.log(Severity.ERROR, event, **properties)

    def critical(self, event: Any = None, **properties: Any) -> None:
        self.log(Severity.CRITICAL, event, **properties)

    fatal = critical


def drop_disabled_levels(logger: RouterEmitter, method_name: str, event_dict: dict) -> dict:
    """structlog processor: stop before building an event no sink would accept."""
    if not logger.is_enabled(method_name):
        raise structlog.DropEvent
    return event_dict


def get_logger(router: LogRouter, category: str, **initial_values: Any) -> Any:
    """
    Return a structlog logger bound to `category` that emits into `router`.

    `initial_values` become properties of every event from this logger.
    """
    return structlog.wrap_logger(
        RouterEmitter(router, category),
        processors=[drop_disabled_levels],
        wrapper_class=structlog.BoundLogger,
        context_class=dict,
        **initial_values,
    )


# =============================================================================
# stdlib logging Bridge
# =============================================================================

# Attributes every LogRecord has; anything else came in through `extra=`
_RECORD_ATTRIBUTES = frozenset(vars(logging.makeLogRecord({}))) | {"message", "asctime", "taskName"}


class RouterHandler(logging.Handler):
    """
    stdlib logging handler that forwards records to a LogRouter.

    The logger name becomes the source category; `extra=` attributes become
    properties. The router's own filters decide which sinks get the event.
    """

    def __init__(self, router: LogRouter, level: int = logging.NOTSET):
        super().__init__(level)
        self.router = router

    def emit(self, record: logging.LogRecord) -> None:
        try:
            level = Severity.from_stdlib(record.levelno)
            properties = {
                key: value for key, value in record.__dict__.items()
                if key not in _RECORD_ATTRIBUTES and not key.startswith("_")
            }
            exception = record.exc_info[1] if record.exc_info else None
            exception = _event_exception(level, exception, properties)

            # Already formatted by %-style logging; escape so it renders verbatim
            message = record.getMessage().replace("{", "{{").replace("}", "}}")

            self.router.emit(LogEvent(
                level=level,
                source_category=record.name or "root",
                message_template=message,
                properties=properties,
                exception=exception,
            ))
        except Exception:
            self.handleError(record)


def install_stdlib_bridge(router: LogRouter) -> RouterHandler:
    """
    Route all stdlib logging through `router`.

    Replaces the root logger's handlers and lowers the root level so every
    record a sink might accept reaches the router.
    """
    handler = RouterHandler(router)
    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(handler)
    root.setLevel(router.lowest_enabled_level.stdlib_level)
    return handler


def remove_stdlib_bridge(handler: RouterHandler) -> None:
    logging.getLogger().removeHandler(handler)
