# =============================================================================
# core/errors.py - Logging Layer Errors
# =============================================================================
# Errors raised by the log router and its sinks:
# - ConfigurationError: a sink could not be set up at startup (fatal)
# - SinkWriteError: a sink failed while writing (contained by the router)
#
# Request-handling faults live in app/exceptions.py.
# =============================================================================

from typing import Any


class LoggingError(Exception):
    """
    Base error class for the logging layer.

    Provides actionable error messages following the principle:
    "Errors should tell HOW to fix, not just WHAT failed."

    Attributes:
        code: Error code for categorization
        message: Human-readable error message
        suggestion: Actionable suggestion for fixing the error
        details: Additional context for debugging
    """

    def __init__(
        self,
        message: str,
        code: str = "LOGGING_ERROR",
        suggestion: str | None = None,
        details: dict[str, Any] | None = None,
    ):
        super().__init__(message)
        self.code = code
        self.message = message
        self.suggestion = suggestion
        self.details = details or {}

    def __str__(self) -> str:
        result = f"[{self.code}] {self.message}"
        if self.suggestion:
            result += f"\n  Suggestion: {self.suggestion}"
        return result


class ConfigurationError(LoggingError):
    """Raised when a sink destination cannot be opened at startup."""

    def __init__(self, sink_name: str, error: str):
        super().__init__(
            message=f"Sink '{sink_name}' could not be configured: {error}",
            code="SINK_CONFIGURATION_ERROR",
            suggestion="Check that the sink path exists or can be created and is writable",
            details={"sink": sink_name, "error": error},
        )


class SinkWriteError(LoggingError):
    """Raised by a sink when an event could not be written."""

    def __init__(self, sink_name: str, error: str):
        super().__init__(
            message=f"Sink '{sink_name}' failed to write: {error}",
            code="SINK_WRITE_ERROR",
            details={"sink": sink_name, "error": error},
        )
