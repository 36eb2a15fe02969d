# =============================================================================
# core/services/enrichment.py - Event Enrichment
# =============================================================================
# Enrichers attach contextual properties to every event passing through the
# router. An enricher is any callable taking the event and returning a
# mapping of extra properties.
#
# Request-scoped properties (correlation id, method, path) are held in
# structlog's contextvars. A context variable belongs to the logical
# operation: it follows the request across `await` points, and Starlette
# copies it into the threadpool for sync handlers, so a request that resumes
# on another worker thread still carries its own values.
# =============================================================================

import os
import threading
import uuid
from contextlib import contextmanager
from typing import Any, Callable, Iterator, Mapping

import structlog

from core.models.log_event import LogEvent

Enricher = Callable[[LogEvent], Mapping[str, Any]]


def context_enricher(event: LogEvent) -> Mapping[str, Any]:
    """Properties bound to the current request context."""
    return structlog.contextvars.get_contextvars()


def process_enricher(event: LogEvent) -> Mapping[str, Any]:
    """Process id and emitting thread name."""
    return {
        "process_id": os.getpid(),
        "thread_name": threading.current_thread().name,
    }


class StaticPropertiesEnricher:
    """Attaches the same properties to every event (application, environment)."""

    def __init__(self, properties: Mapping[str, Any]):
        self.properties = dict(properties)

    def __call__(self, event: LogEvent) -> Mapping[str, Any]:
        return self.properties

    def __repr__(self) -> str:
        return f"StaticPropertiesEnricher({self.properties!r})"


DEFAULT_ENRICHERS: tuple[Enricher, ...] = (context_enricher,)


# =============================================================================
# Request Context
# =============================================================================

def new_correlation_id() -> str:
    """Generate a correlation id for a request that did not bring one."""
    return uuid.uuid4().hex


@contextmanager
def request_context(**values: Any) -> Iterator[dict[str, Any]]:
    """
    Bind request-scoped properties for the extent of the `with` block.

    Previous values are restored on exit, so nested scopes and concurrent
    requests do not leak into each other.

    Example:
        with request_context(correlation_id=new_correlation_id(), request_path="/x"):
            log.info("handled")  # event carries correlation_id and request_path
    """
    with structlog.contextvars.bound_contextvars(**values):
        yield structlog.contextvars.get_contextvars()
