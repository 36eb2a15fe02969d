# =============================================================================
# app/exceptions.py - Fault Classification
# =============================================================================
# Centralized fault classification for the API.
#
# Every unhandled fault is reduced to a FaultKind, and one table decides the
# response status, the log severity and whether the fault is re-raised.
# Callers only ever see {"message": ...}; type names and stack traces stay
# in the log sinks.
# =============================================================================

from dataclasses import dataclass
from enum import Enum
from typing import Any

from core.models.log_event import Severity


class FaultKind(str, Enum):
    """Classification of a fault reaching the HTTP boundary."""
    INVALID_OPERATION = "invalid_operation"
    INVALID_ARGUMENT = "invalid_argument"
    UNCLASSIFIED = "unclassified"
    RESPONSE_STARTED = "response_started"
    CANCELLED = "cancelled"


@dataclass(frozen=True)
class FaultPolicy:
    """
    What to do with one kind of fault.

    status_code is None when no response may be written (the response has
    already started or nobody is listening); those faults are re-raised.
    """
    status_code: int | None
    severity: Severity
    rethrow: bool = False


FAULT_POLICIES: dict[FaultKind, FaultPolicy] = {
    FaultKind.INVALID_OPERATION: FaultPolicy(400, Severity.ERROR),
    FaultKind.INVALID_ARGUMENT: FaultPolicy(400, Severity.ERROR),
    FaultKind.UNCLASSIFIED: FaultPolicy(500, Severity.ERROR),
    FaultKind.RESPONSE_STARTED: FaultPolicy(None, Severity.WARNING, rethrow=True),
    FaultKind.CANCELLED: FaultPolicy(None, Severity.WARNING, rethrow=True),
}

DEFAULT_ERROR_MESSAGE = "An unexpected error occurred"


# =============================================================================
# API Exceptions
# =============================================================================

class ForecastApiException(Exception):
    """
    Base exception for the Forecast API.

    Subclasses set `fault_kind`, which is all the fault translator needs to
    pick a response.
    """

    fault_kind: FaultKind = FaultKind.UNCLASSIFIED

    def __init__(
        self,
        message: str,
        code: str = "FORECAST_API_ERROR",
        details: dict[str, Any] | None = None,
    ):
        super().__init__(message)
        self.message = message
        self.code = code
        self.details = details or {}


class InvalidOperationError(ForecastApiException):
    """Raised when an operation is not valid in the current state."""

    fault_kind = FaultKind.INVALID_OPERATION

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        super().__init__(message, code="INVALID_OPERATION", details=details)


class InvalidArgumentError(ForecastApiException, ValueError):
    """Raised when caller input is malformed."""

    fault_kind = FaultKind.INVALID_ARGUMENT

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        super().__init__(message, code="INVALID_ARGUMENT", details=details)


# Untagged exceptions recognised by type (checked along the MRO)
_BUILTIN_FAULT_KINDS: dict[type, FaultKind] = {
    ValueError: FaultKind.INVALID_ARGUMENT,
}


# =============================================================================
# Classification
# =============================================================================

def classify(exc: BaseException) -> FaultKind:
    """
    Return the FaultKind of an exception raised by a request handler.

    Tagged exceptions (a `fault_kind` attribute) are taken at their word;
    anything else is looked up in the builtin table, then UNCLASSIFIED.
    """
    kind = getattr(exc, "fault_kind", None)
    if isinstance(kind, FaultKind):
        return kind

    for cls in type(exc).__mro__:
        if cls in _BUILTIN_FAULT_KINDS:
            return _BUILTIN_FAULT_KINDS[cls]

    return FaultKind.UNCLASSIFIED


def error_body(exc: BaseException) -> dict[str, str]:
    """The JSON body sent to the caller: the fault message, nothing else."""
    message = str(exc).strip()
    return {"message": message or DEFAULT_ERROR_MESSAGE}
