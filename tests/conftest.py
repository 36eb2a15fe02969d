# =============================================================================
# tests/conftest.py - Pytest Configuration
# =============================================================================
# This module provides pytest fixtures and configuration for all tests.
#
# Key features:
# - Points settings at the tests/ directory so the project's own
#   appsettings*.json files (and their file sinks) are not used
# - Provides an in-memory sink and a router built on it
# =============================================================================

import os
from pathlib import Path

# =============================================================================
# Set up test environment BEFORE any imports
# =============================================================================

os.environ["APP_CONFIG_DIR"] = str(Path(__file__).parent)
os.environ.setdefault("ENVIRONMENT", "development")

import pytest

from core.models.log_event import LogEvent, Severity
from core.services.log_router import LogRouter
from core.services.sinks import Sink


# =============================================================================
# Helpers
# =============================================================================

class MemorySink(Sink):
    """Keeps every event it is handed, in order."""

    def __init__(self, name: str = "memory", minimum_level: Severity | None = None):
        super().__init__(name, minimum_level)
        self.events: list[LogEvent] = []
        self.flush_count = 0

    def _write_event(self, event: LogEvent) -> None:
        self.events.append(event)

    def _flush(self) -> None:
        self.flush_count += 1

    def at(self, level: Severity) -> list[LogEvent]:
        return [e for e in self.events if e.level == level]

    def messages(self) -> list[str]:
        return [e.render_message() for e in self.events]


def inline_router(sinks, enrichers=None, **kwargs) -> LogRouter:
    """A configured router that writes to its sinks before `emit` returns."""
    if enrichers is not None:
        kwargs["enrichers"] = enrichers
    return LogRouter.configure(sinks, background=False, **kwargs)


def make_event(
    level: Severity = Severity.INFORMATION,
    category: str = "tests",
    template: str = "hello",
    **properties,
) -> LogEvent:
    return LogEvent(
        level=level,
        source_category=category,
        message_template=template,
        properties=properties,
    )


# =============================================================================
# Fixtures
# =============================================================================

@pytest.fixture
def memory_sink():
    """An in-memory sink with no minimum of its own."""
    return MemorySink()


@pytest.fixture
def router(memory_sink):
    """A router that lets everything through to the memory sink."""
    log_router = inline_router([memory_sink], minimum_level=Severity.TRACE)
    yield log_router
    log_router.flush_and_close()
