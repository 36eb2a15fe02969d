# =============================================================================
# core/models/log_event.py - Log Event and Sink Configuration Schemas
# =============================================================================
# These models define the contract between log producers and log sinks:
# - Severity: ordered level scale (Trace < ... < Critical)
# - LogEvent: one structured, write-once log event
# - SinkConfiguration: one configured output target
# - LoggingConfiguration: global default, category overrides and sinks
#
# A LogEvent is never mutated after it is handed to the router. Enrichment
# produces a new event (see LogEvent.with_properties).
# =============================================================================

from datetime import datetime
from enum import Enum, IntEnum
from typing import Annotated, Any, Mapping

from pydantic import BaseModel, BeforeValidator, ConfigDict, Field, model_validator


class Severity(IntEnum):
    """
    Ordered log severity.

    Comparison follows the numeric order, so `event.level >= minimum`
    is the whole filtering rule.
    """
    TRACE = 0
    DEBUG = 1
    INFORMATION = 2
    WARNING = 3
    ERROR = 4
    CRITICAL = 5

    @classmethod
    def parse(cls, value: Any) -> "Severity":
        """
        Parse a severity from a Severity, an int, or a name.

        Names are case-insensitive and accept the common aliases
        used in settings files ("info", "warn", "fatal", "verbose").

        Raises:
            ValueError: If the value does not name a severity
        """
        if isinstance(value, cls):
            return value
        if isinstance(value, int) and not isinstance(value, bool):
            return cls(value)
        if isinstance(value, str):
            key = value.strip().lower()
            if key in _SEVERITY_ALIASES:
                return _SEVERITY_ALIASES[key]
        raise ValueError(f"Unknown severity: {value!r}")

    @classmethod
    def from_stdlib(cls, levelno: int) -> "Severity":
        """Map a stdlib logging level number to the closest severity at or below it."""
        result = cls.TRACE
        for severity, number in _STDLIB_LEVELS.items():
            if levelno >= number:
                result = severity
        return result

    @property
    def stdlib_level(self) -> int:
        """The stdlib logging level number for this severity."""
        return _STDLIB_LEVELS[self]

    @property
    def label(self) -> str:
        """Display name, e.g. "Information"."""
        return self.name.capitalize()

    @property
    def short_label(self) -> str:
        """Three-letter display name, e.g. "INF"."""
        return _SHORT_LABELS[self]


_SEVERITY_ALIASES: dict[str, Severity] = {
    "trace": Severity.TRACE,
    "verbose": Severity.TRACE,
    "debug": Severity.DEBUG,
    "information": Severity.INFORMATION,
    "info": Severity.INFORMATION,
    "warning": Severity.WARNING,
    "warn": Severity.WARNING,
    "error": Severity.ERROR,
    "critical": Severity.CRITICAL,
    "fatal": Severity.CRITICAL,
}

_STDLIB_LEVELS: dict[Severity, int] = {
    Severity.TRACE: 5,
    Severity.DEBUG: 10,
    Severity.INFORMATION: 20,
    Severity.WARNING: 30,
    Severity.ERROR: 40,
    Severity.CRITICAL: 50,
}

_SHORT_LABELS: dict[Severity, str] = {
    Severity.TRACE: "TRC",
    Severity.DEBUG: "DBG",
    Severity.INFORMATION: "INF",
    Severity.WARNING: "WRN",
    Severity.ERROR: "ERR",
    Severity.CRITICAL: "CRT",
}

# Severity field type that accepts names ("Information", "warn") in settings
SeverityLevel = Annotated[Severity, BeforeValidator(Severity.parse)]


class _TemplateValues(dict):
    """format_map helper: unknown placeholders render verbatim."""

    def __missing__(self, key: str) -> str:
        return "{" + key + "}"


def _local_now() -> datetime:
    return datetime.now().astimezone()


# =============================================================================
# Log Event
# =============================================================================

class LogEvent(BaseModel):
    """
    A single structured log event.

    The message is a template plus properties, not a pre-formatted string:
    sinks that support structured output keep the properties queryable.

    Example:
        LogEvent(
            level=Severity.INFORMATION,
            source_category="app.routers.weather",
            message_template="Returned {count} forecasts",
            properties={"count": 5},
        )
    """

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    # When the event was emitted (timezone-aware, local wall clock)
    timestamp: datetime = Field(
        default_factory=_local_now,
        description="Point in time of emission"
    )

    level: SeverityLevel = Field(
        ...,
        description="Event severity"
    )

    # Usually the module or component name, e.g. "app.middleware"
    source_category: str = Field(
        ...,
        min_length=1,
        description="Emitting component"
    )

    message_template: str = Field(
        default="",
        description="Message template with {name} placeholders"
    )

    properties: dict[str, Any] = Field(
        default_factory=dict,
        description="Structured key/value properties"
    )

    exception: BaseException | None = Field(
        default=None,
        description="Associated fault (Warning and above only)"
    )

    @model_validator(mode="after")
    def _exception_requires_warning(self) -> "LogEvent":
        if self.exception is not None and self.level < Severity.WARNING:
            raise ValueError("Only Warning, Error and Critical events may carry an exception")
        return self

    def render_message(self) -> str:
        """
        Render the message template with the event properties.

        Never raises: unknown placeholders stay as-is and a malformed
        template is returned unformatted.
        """
        try:
            return self.message_template.format_map(_TemplateValues(self.properties))
        except (ValueError, IndexError, AttributeError, KeyError, TypeError):
            return self.message_template

    def with_properties(self, extra: Mapping[str, Any]) -> "LogEvent":
        """Return a copy with `extra` added wherever the key is not already present."""
        if not extra:
            return self
        merged = dict(extra)
        merged.update(self.properties)
        return self.model_copy(update={"properties": merged})


# =============================================================================
# Sink Configuration
# =============================================================================

class SinkKind(str, Enum):
    """Where a sink writes."""
    CONSOLE = "console"
    FILE = "file"
    DEBUG = "debug"


class OutputFormat(str, Enum):
    """How a sink renders events."""
    TEXT = "text"
    JSON = "json"


DEFAULT_TEMPLATE = "{timestamp:%Y-%m-%d %H:%M:%S.%f} [{level_short}] {category}: {message}"


class SinkConfiguration(BaseModel):
    """
    One named output target.

    Example (file sink, one file per day: logs/forecast-20240115.log):
        {
            "name": "file",
            "kind": "file",
            "path": "logs/forecast-",
            "extension": "log",
            "minimum_level": "Warning"
        }
    """

    name: str = Field(
        ...,
        min_length=1,
        description="Sink name (used in self-log messages)"
    )

    kind: SinkKind = Field(
        ...,
        description="Destination type"
    )

    # When set, overrides both category rules and the global default
    minimum_level: SeverityLevel | None = Field(
        default=None,
        description="Per-sink minimum severity override"
    )

    template: str | None = Field(
        default=None,
        description="Text output template (str.format syntax)"
    )

    format: OutputFormat = Field(
        default=OutputFormat.TEXT,
        description="Render as text lines or JSON lines"
    )

    # File sinks only
    path: str | None = Field(
        default=None,
        description="File name prefix, e.g. logs/forecast-"
    )

    extension: str = Field(
        default="log",
        min_length=1,
        description="File extension without the dot"
    )

    date_format: str = Field(
        default="%Y%m%d",
        description="strftime format of the date part of the file name"
    )

    retained_file_count: int | None = Field(
        default=31,
        ge=1,
        description="How many daily files to keep (None keeps all)"
    )

    buffered: bool = Field(
        default=False,
        description="Skip flushing after every event"
    )

    @model_validator(mode="after")
    def _file_sink_needs_path(self) -> "SinkConfiguration":
        if self.kind == SinkKind.FILE and not self.path:
            raise ValueError(f"File sink '{self.name}' requires a path")
        return self


def _default_sinks() -> list[SinkConfiguration]:
    return [SinkConfiguration(name="console", kind=SinkKind.CONSOLE)]


class LoggingConfiguration(BaseModel):
    """
    Router configuration: global default level, category overrides, sinks.

    Example:
        {
            "minimum_level": "Information",
            "overrides": {"uvicorn.access": "Warning", "Framework.*": "Error"},
            "sinks": [{"name": "console", "kind": "console"}],
            "close_timeout_seconds": 5
        }
    """

    minimum_level: SeverityLevel = Field(
        default=Severity.INFORMATION,
        description="Global default minimum severity"
    )

    # Keys are category prefixes; "Framework.*" and "Framework" are equivalent
    overrides: dict[str, SeverityLevel] = Field(
        default_factory=dict,
        description="Per-category minimum severity (prefix match)"
    )

    sinks: list[SinkConfiguration] = Field(
        default_factory=_default_sinks,
        description="Active sinks"
    )

    properties: dict[str, Any] = Field(
        default_factory=dict,
        description="Static properties attached to every event"
    )

    # Producers enqueue; one writer thread per router does the sink I/O
    background: bool = Field(
        default=True,
        description="Write to sinks from a background writer thread"
    )

    close_timeout_seconds: float = Field(
        default=5.0,
        gt=0,
        description="How long shutdown waits for queued events before dropping them"
    )
