# =============================================================================
# core/services/log_router.py - Log Router
# =============================================================================
# Decouples log producers from log destinations.
#
# Producers hand LogEvents to `emit`; the router enriches each event and
# forwards it to every sink whose effective minimum severity it passes:
#
#     effective_minimum = sink.minimum_level
#                         ?? longest matching category override
#                         ?? global default
#
# Filtering and enrichment run on the producer's thread (enrichers read the
# producer's request context). In background mode the sink writes happen on
# one writer thread fed by an in-memory queue, so a slow disk never stalls
# the event loop. Inline mode writes on the producer's thread.
#
# `emit` never raises. A failing sink is reported once per failure burst on
# stderr and its event is dropped; producers never see the failure.
#
# There is one router per process, created at the composition root and
# passed to whoever needs it (no module-level singleton).
# =============================================================================

import queue
import sys
import threading
from datetime import datetime
from typing import Any, Iterable, Mapping, Sequence

from core.errors import ConfigurationError, SinkWriteError
from core.models.log_event import LogEvent, LoggingConfiguration, Severity
from core.services.enrichment import DEFAULT_ENRICHERS, Enricher, StaticPropertiesEnricher
from core.services.sinks import Sink, build_sink
from core.services.structured import get_logger

DEFAULT_CLOSE_TIMEOUT = 5.0

# Queue marker that stops the writer thread
_STOP = object()


def self_log(message: str) -> None:
    """
    Report a problem of the logging layer itself.

    Goes straight to stderr, never through the router, so a broken sink
    cannot recurse into itself.
    """
    timestamp = datetime.now().astimezone().isoformat()
    try:
        sys.stderr.write(f"{timestamp} [log-router] {message}\n")
        sys.stderr.flush()
    except (OSError, ValueError):
        # stderr itself is gone; nothing left to report to
        pass


def _normalize_prefix(prefix: str) -> str:
    """'Framework.*' and 'Framework' name the same subtree."""
    prefix = prefix.strip()
    if prefix.endswith(".*"):
        prefix = prefix[:-2]
    elif prefix == "*":
        prefix = ""
    return prefix


class LogRouter:
    """
    Routes log events to sinks with per-sink and per-category filtering.

    Use `LogRouter.configure` (or `from_configuration`) rather than the
    constructor: it opens the sinks and fails loudly if one is unusable.

    Args:
        background: Deliver events from a writer thread (default). With
            False, `emit` writes to the sinks before returning.
        close_timeout: Seconds `flush_and_close` waits for queued events;
            events still queued after that are dropped.
    """

    def __init__(
        self,
        sinks: Sequence[Sink],
        enrichers: Iterable[Enricher] = DEFAULT_ENRICHERS,
        *,
        minimum_level: Severity = Severity.INFORMATION,
        overrides: Mapping[str, Severity] | None = None,
        background: bool = True,
        close_timeout: float = DEFAULT_CLOSE_TIMEOUT,
    ):
        self.sinks: tuple[Sink, ...] = tuple(sinks)
        self.enrichers: tuple[Enricher, ...] = tuple(enrichers)
        self.minimum_level = Severity.parse(minimum_level)
        self.close_timeout = close_timeout

        # Longest prefix first, so the first match is the most specific one
        rules = {
            _normalize_prefix(prefix): Severity.parse(level)
            for prefix, level in (overrides or {}).items()
        }
        self.overrides: tuple[tuple[str, Severity], ...] = tuple(
            sorted(rules.items(), key=lambda item: len(item[0]), reverse=True)
        )

        self._minimum_cache: dict[tuple[str, str], Severity] = {}
        self._failing_sinks: set[str] = set()
        self._state_lock = threading.Lock()
        self._closed = False

        self._queue: queue.SimpleQueue | None = None
        self._writer: threading.Thread | None = None
        self._abandoned = False
        self._dropped = 0
        if background:
            self._queue = queue.SimpleQueue()
            self._writer = threading.Thread(
                target=self._run_writer,
                name="log-router-writer",
                daemon=True,
            )
            self._writer.start()

    # -------------------------------------------------------------------------
    # Construction
    # -------------------------------------------------------------------------

    @classmethod
    def configure(
        cls,
        sinks: Sequence[Sink],
        enrichers: Iterable[Enricher] = DEFAULT_ENRICHERS,
        *,
        minimum_level: Severity = Severity.INFORMATION,
        overrides: Mapping[str, Severity] | None = None,
        background: bool = True,
        close_timeout: float = DEFAULT_CLOSE_TIMEOUT,
    ) -> "LogRouter":
        """
        Open every sink and return a ready router.

        Raises:
            ConfigurationError: If any sink cannot be opened. Sinks opened
                before the failing one are closed again.
        """
        opened: list[Sink] = []
        for sink in sinks:
            try:
                sink.open()
            except Exception as e:
                for done in opened:
                    done.close()
                raise ConfigurationError(sink.name, str(e)) from e
            opened.append(sink)

        return cls(
            sinks,
            enrichers,
            minimum_level=minimum_level,
            overrides=overrides,
            background=background,
            close_timeout=close_timeout,
        )

    @classmethod
    def from_configuration(
        cls,
        config: LoggingConfiguration,
        enrichers: Iterable[Enricher] = DEFAULT_ENRICHERS,
    ) -> "LogRouter":
        """
        Build sinks from configuration and open them.

        Static `properties` from the configuration are attached to every
        event after the given enrichers.
        """
        enrichers = list(enrichers)
        if config.properties:
            enrichers.append(StaticPropertiesEnricher(config.properties))

        return cls.configure(
            [build_sink(sink_config) for sink_config in config.sinks],
            enrichers,
            minimum_level=config.minimum_level,
            overrides=config.overrides,
            background=config.background,
            close_timeout=config.close_timeout_seconds,
        )

    # -------------------------------------------------------------------------
    # Filtering
    # -------------------------------------------------------------------------

    def category_minimum(self, category: str) -> Severity | None:
        """Minimum from the most specific override matching `category`, if any."""
        for prefix, level in self.overrides:
            if not prefix or category == prefix or category.startswith(prefix + "."):
                return level
        return None

    def effective_minimum(self, sink: Sink, category: str) -> Severity:
        key = (sink.name, category)
        cached = self._minimum_cache.get(key)
        if cached is not None:
            return cached

        if sink.minimum_level is not None:
            level = sink.minimum_level
        else:
            level = self.category_minimum(category)
            if level is None:
                level = self.minimum_level

        self._minimum_cache[key] = level
        return level

    def is_enabled(self, level: Severity, category: str) -> bool:
        """Whether any sink would accept an event of this level and category."""
        if self._closed:
            return False
        return any(level >= self.effective_minimum(sink, category) for sink in self.sinks)

    @property
    def lowest_enabled_level(self) -> Severity:
        """The lowest severity any sink could accept for some category."""
        levels = [self.minimum_level, *(level for _, level in self.overrides)]
        levels.extend(sink.minimum_level for sink in self.sinks if sink.minimum_level is not None)
        return min(levels)

    # -------------------------------------------------------------------------
    # Emission
    # -------------------------------------------------------------------------

    @property
    def background(self) -> bool:
        return self._queue is not None

    def emit(self, event: LogEvent) -> None:
        """
        Route one event. Never raises.

        In background mode this only enqueues; it does no sink I/O.
        Events emitted after `flush_and_close` are dropped.
        """
        if self._closed:
            return

        targets = [
            sink for sink in self.sinks
            if event.level >= self.effective_minimum(sink, event.source_category)
        ]
        if not targets:
            return

        event = self._enrich(event)

        if self._queue is not None:
            self._queue.put((event, targets))
        else:
            self._deliver(event, targets)

    def _enrich(self, event: LogEvent) -> LogEvent:
        for enricher in self.enrichers:
            try:
                extra = enricher(event)
            except Exception as e:
                self_log(f"Enricher {enricher!r} failed: {e!r}")
                continue
            event = event.with_properties(extra)
        return event

    def _deliver(self, event: LogEvent, targets: Sequence[Sink]) -> None:
        for sink in targets:
            try:
                sink.write(event)
            except Exception as e:
                self._report_failure(sink, e)
            else:
                if sink.name in self._failing_sinks:
                    self._recovered(sink)

    def _report_failure(self, sink: Sink, error: Exception) -> None:
        with self._state_lock:
            if sink.name in self._failing_sinks:
                return
            self._failing_sinks.add(sink.name)

        detail = error.details.get("error") if isinstance(error, SinkWriteError) else repr(error)
        self_log(f"Sink '{sink.name}' failed, dropping events until it recovers: {detail}")

    def _recovered(self, sink: Sink) -> None:
        with self._state_lock:
            self._failing_sinks.discard(sink.name)
        self_log(f"Sink '{sink.name}' recovered")

    def get_logger(self, category: str, **initial_values: Any):
        """
        Return a structlog bound logger whose events go to this router.

        Example:
            log = router.get_logger(__name__)
            log.info("Returned {count} forecasts", count=5)
        """
        return get_logger(self, category, **initial_values)

    # -------------------------------------------------------------------------
    # Background Writer
    # -------------------------------------------------------------------------

    def _run_writer(self) -> None:
        """Writer thread: deliver queued events in order until stopped."""
        while True:
            item = self._queue.get()
            if item is _STOP:
                break
            if isinstance(item, threading.Event):
                self._flush_sinks()
                item.set()
                continue

            if self._abandoned:
                self._dropped += 1
                continue
            event, targets = item
            self._deliver(event, targets)

        if self._dropped:
            self_log(f"Dropped {self._dropped} queued event(s) after the close timeout")
        self._close_sinks()

    def _flush_sinks(self) -> None:
        for sink in self.sinks:
            try:
                sink.flush()
            except Exception as e:
                self_log(f"Sink '{sink.name}' failed to flush: {e!r}")

    def _close_sinks(self) -> None:
        for sink in self.sinks:
            try:
                sink.close()
            except Exception as e:
                self_log(f"Sink '{sink.name}' failed to close: {e!r}")

    # -------------------------------------------------------------------------
    # Shutdown
    # -------------------------------------------------------------------------

    @property
    def closed(self) -> bool:
        return self._closed

    def flush(self, timeout: float | None = None) -> bool:
        """
        Wait until every event emitted so far has been written and flushed.

        Returns:
            False if the queue did not drain within `timeout` seconds
        """
        if self._closed:
            return True
        if self._queue is None:
            self._flush_sinks()
            return True

        drained = threading.Event()
        self._queue.put(drained)
        return drained.wait(timeout)

    def flush_and_close(self, timeout: float | None = None) -> None:
        """
        Drain queued events, then flush and close every sink. A second call
        does nothing.

        Waits at most `timeout` seconds (default: the router's close
        timeout). Events still queued after that are dropped and the drop is
        self-logged; the writer closes the sinks once it is free.

        Each sink receives its events in emission order; the order in which
        sinks are flushed relative to each other is not defined.
        """
        with self._state_lock:
            if self._closed:
                return
            self._closed = True

        if self._writer is None:
            self._close_sinks()
            return

        self._queue.put(_STOP)
        self._writer.join(self.close_timeout if timeout is None else timeout)
        if self._writer.is_alive():
            self._abandoned = True
            self_log("Log writer did not drain before the close timeout; dropping queued events")
