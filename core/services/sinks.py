# =============================================================================
# core/services/sinks.py - Log Sinks
# =============================================================================
# A sink is one destination for log events:
# - ConsoleSink: standard output
# - DebugSink: standard error, only while __debug__ is set (not under -O)
# - RollingFileSink: one file per calendar day, <prefix><date>.<ext>
#
# Every sink serializes its physical writes with its own lock, so events from
# concurrent requests never interleave inside a line. Filtering is done by
# the router; a sink writes whatever it is handed.
# =============================================================================

import json
import os
import sys
import threading
import traceback
from abc import ABC, abstractmethod
from datetime import date, datetime
from pathlib import Path
from typing import Any, Callable, TextIO

from structlog.processors import JSONRenderer

from core.errors import SinkWriteError
from core.models.log_event import (
    DEFAULT_TEMPLATE,
    LogEvent,
    OutputFormat,
    Severity,
    SinkConfiguration,
    SinkKind,
)


# =============================================================================
# Base Sink
# =============================================================================

class Sink(ABC):
    """
    Base class for all sinks.

    Subclasses implement `_write_event`; `write` takes the sink lock and
    converts any failure into SinkWriteError for the router to contain.
    """

    def __init__(self, name: str, minimum_level: Severity | None = None):
        self.name = name
        self.minimum_level = minimum_level
        self._lock = threading.Lock()
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    def open(self) -> None:
        """Acquire the destination. Called once by the router at startup."""

    def write(self, event: LogEvent) -> None:
        """
        Write one event.

        Raises:
            SinkWriteError: If the destination rejected the write
        """
        with self._lock:
            if self._closed:
                return
            try:
                self._write_event(event)
            except SinkWriteError:
                raise
            except Exception as e:
                raise SinkWriteError(self.name, str(e)) from e

    def flush(self) -> None:
        with self._lock:
            if not self._closed:
                self._flush()

    def close(self) -> None:
        """Flush and release the destination. Safe to call more than once."""
        with self._lock:
            if self._closed:
                return
            self._closed = True
            self._flush()
            self._release()

    @abstractmethod
    def _write_event(self, event: LogEvent) -> None:
        ...

    def _flush(self) -> None:
        pass

    def _release(self) -> None:
        pass


# =============================================================================
# Text-Rendering Sinks
# =============================================================================

class TextSink(Sink):
    """
    A sink that renders events to text lines.

    Text format fields available to the template:
        timestamp, level, level_short, category, message, properties

    JSON format writes one object per line with the template, the rendered
    message and the properties kept separate.
    """

    def __init__(
        self,
        name: str,
        minimum_level: Severity | None = None,
        template: str | None = None,
        output_format: OutputFormat = OutputFormat.TEXT,
    ):
        super().__init__(name, minimum_level)
        self.template = template or DEFAULT_TEMPLATE
        self.output_format = output_format
        self._json = JSONRenderer(sort_keys=True)

    def open(self) -> None:
        # Surface a broken template at startup instead of on every event
        self.render(LogEvent(level=Severity.INFORMATION, source_category="startup"))

    def render(self, event: LogEvent) -> str:
        """Render an event as one or more lines ending in a newline."""
        if self.output_format == OutputFormat.JSON:
            return self._render_json(event) + "\n"

        text = self.template.format(
            timestamp=event.timestamp,
            level=event.level.label,
            level_short=event.level.short_label,
            category=event.source_category,
            message=event.render_message(),
            properties=json.dumps(event.properties, default=str, sort_keys=True),
        )
        if event.exception is not None:
            text += "\n" + _format_exception(event.exception)
        return text + "\n"

    def _render_json(self, event: LogEvent) -> str:
        event_dict: dict[str, Any] = {
            "timestamp": event.timestamp.isoformat(),
            "level": event.level.label,
            "category": event.source_category,
            "message": event.render_message(),
            "message_template": event.message_template,
            "properties": event.properties,
        }
        if event.exception is not None:
            event_dict["exception"] = _format_exception(event.exception)
        return self._json(None, "", event_dict)

    def _write_event(self, event: LogEvent) -> None:
        self._write_text(self.render(event))

    @abstractmethod
    def _write_text(self, text: str) -> None:
        ...


def _format_exception(exc: BaseException) -> str:
    return "".join(traceback.format_exception(exc)).rstrip("\n")


class ConsoleSink(TextSink):
    """Writes to standard output (or the given stream)."""

    def __init__(self, name: str, *, stream: TextIO | None = None, **kwargs):
        super().__init__(name, **kwargs)
        self._stream = stream

    @property
    def stream(self) -> TextIO:
        # Resolved per write so a replaced sys.stdout is honoured
        return self._stream or sys.stdout

    def _write_text(self, text: str) -> None:
        self.stream.write(text)

    def _flush(self) -> None:
        self.stream.flush()


class DebugSink(ConsoleSink):
    """
    The debug stream: standard error, silent when Python runs with -O.
    """

    @property
    def stream(self) -> TextIO:
        return self._stream or sys.stderr

    def _write_text(self, text: str) -> None:
        if __debug__:
            self.stream.write(text)


class RollingFileSink(TextSink):
    """
    Appends to one file per calendar day.

    File names follow `<prefix><date>.<ext>`, e.g. with prefix
    "logs/forecast-" and the default date format: logs/forecast-20240115.log.
    The file is switched when the clock's date changes; size never triggers
    a rollover. After a rollover only the newest `retained_file_count` files
    whose name is exactly the prefix, a date in `date_format` and the
    extension are kept; other files in the folder are left alone.
    """

    def __init__(
        self,
        name: str,
        path_prefix: str,
        extension: str = "log",
        *,
        date_format: str = "%Y%m%d",
        retained_file_count: int | None = 31,
        buffered: bool = False,
        clock: Callable[[], datetime] | None = None,
        **kwargs,
    ):
        super().__init__(name, **kwargs)
        self.path_prefix = path_prefix
        self.extension = extension.lstrip(".")
        self.date_format = date_format
        self.retained_file_count = retained_file_count
        self.buffered = buffered
        self._clock = clock or datetime.now
        self._file: TextIO | None = None
        self._day: date | None = None
        self._path: Path | None = None

    @property
    def current_path(self) -> Path | None:
        """Path of the file currently being written, if open."""
        return self._path

    def path_for(self, day: date) -> Path:
        return Path(f"{self.path_prefix}{day.strftime(self.date_format)}.{self.extension}")

    def open(self) -> None:
        """
        Create the log directory and open today's file.

        Raises:
            OSError: If the directory or file cannot be created
        """
        super().open()
        with self._lock:
            self._open_for(self._clock().date())

    def _open_for(self, day: date) -> None:
        path = self.path_for(day)
        path.parent.mkdir(parents=True, exist_ok=True)
        self._file = open(path, "a", encoding="utf-8")
        self._day = day
        self._path = path

    def _write_text(self, text: str) -> None:
        today = self._clock().date()
        rolled = False
        if self._file is None or today != self._day:
            self._release()
            self._open_for(today)
            rolled = True

        self._file.write(text)
        if not self.buffered:
            self._file.flush()

        if rolled:
            self._apply_retention()

    def _file_day(self, name: str) -> datetime | None:
        """The date in a `<stem><date>.<ext>` file name, or None if it is not one of ours."""
        stem = os.path.basename(self.path_prefix)
        suffix = f".{self.extension}"
        if not (name.startswith(stem) and name.endswith(suffix)):
            return None
        try:
            return datetime.strptime(name[len(stem):-len(suffix)], self.date_format)
        except ValueError:
            return None

    def _apply_retention(self) -> None:
        if self.retained_file_count is None:
            return
        folder = Path(os.path.dirname(self.path_prefix) or ".")
        dated = []
        for path in folder.iterdir():
            day = self._file_day(path.name)
            if day is not None and path.is_file():
                dated.append((day, path))
        dated.sort()
        for _, old in dated[:-self.retained_file_count]:
            if old != self._path:
                old.unlink()

    def _flush(self) -> None:
        if self._file is not None:
            self._file.flush()

    def _release(self) -> None:
        if self._file is not None:
            self._file.close()
            self._file = None


# =============================================================================
# Factory
# =============================================================================

def build_sink(config: SinkConfiguration, *, clock: Callable[[], datetime] | None = None) -> Sink:
    """
    Create the sink described by a SinkConfiguration.

    The sink is not opened; LogRouter.configure does that so a failure
    becomes a ConfigurationError.
    """
    common = {
        "minimum_level": config.minimum_level,
        "template": config.template,
        "output_format": config.format,
    }

    if config.kind == SinkKind.CONSOLE:
        return ConsoleSink(config.name, **common)

    if config.kind == SinkKind.DEBUG:
        return DebugSink(config.name, **common)

    return RollingFileSink(
        config.name,
        config.path,
        config.extension,
        date_format=config.date_format,
        retained_file_count=config.retained_file_count,
        buffered=config.buffered,
        clock=clock,
        **common,
    )
