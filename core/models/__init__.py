# =============================================================================
# core/models/ - Pydantic Data Models
# =============================================================================
# This package contains Pydantic schemas for data validation:
# - log_event.py: Severity, LogEvent and sink/router configuration
# - forecast.py: WeatherForecast record returned by the API
#
# These models define the "contract" between producers, sinks and clients.
# =============================================================================

# -----------------------------------------------------------------------------
# Log Models - Structured events and sink configuration
# -----------------------------------------------------------------------------
from .log_event import (
    DEFAULT_TEMPLATE,
    LogEvent,
    LoggingConfiguration,
    OutputFormat,
    Severity,
    SeverityLevel,
    SinkConfiguration,
    SinkKind,
)

# -----------------------------------------------------------------------------
# Forecast Models - API response records
# -----------------------------------------------------------------------------
from .forecast import WeatherForecast

# -----------------------------------------------------------------------------
# __all__ - Explicit public API
# -----------------------------------------------------------------------------
__all__ = [
    # Logging
    "DEFAULT_TEMPLATE",
    "LogEvent",
    "LoggingConfiguration",
    "OutputFormat",
    "Severity",
    "SeverityLevel",
    "SinkConfiguration",
    "SinkKind",
    # Forecast
    "WeatherForecast",
]
