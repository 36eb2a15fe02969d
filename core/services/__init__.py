# =============================================================================
# core/services/__init__.py - Service Layer Exports
# =============================================================================

from .enrichment import (
    StaticPropertiesEnricher,
    context_enricher,
    new_correlation_id,
    process_enricher,
    request_context,
)
from .forecast_service import SUMMARIES, generate_forecasts
from .log_router import LogRouter
from .sinks import ConsoleSink, DebugSink, RollingFileSink, Sink, build_sink
from .structured import RouterHandler, get_logger, install_stdlib_bridge, remove_stdlib_bridge

__all__ = [
    "LogRouter",
    "Sink",
    "ConsoleSink",
    "DebugSink",
    "RollingFileSink",
    "build_sink",
    "RouterHandler",
    "get_logger",
    "install_stdlib_bridge",
    "remove_stdlib_bridge",
    "StaticPropertiesEnricher",
    "context_enricher",
    "new_correlation_id",
    "process_enricher",
    "request_context",
    "SUMMARIES",
    "generate_forecasts",
]
