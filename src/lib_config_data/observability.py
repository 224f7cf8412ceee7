"""Structured logging sinks handed explicitly to every pipeline component.

Purpose
    Keep every emission of logging data predictable, contextual, and ready for
    downstream aggregation pipelines without forcing applications to adopt a
    specific logging backend. Configuration data is processed while the host
    application is still starting, so components never reach for a global
    logger: they receive a :class:`LogSink` and write to it.

Contents
    - ``TRACE_ID``: context variable storing the active trace identifier.
    - ``LogSink``: structural protocol implemented by all sinks.
    - ``StructuredLogSink``: forwards entries to a :class:`logging.Logger`.
    - ``DeferredLogSink``: buffers entries until the host's logging is ready.
    - ``get_logger`` / ``default_sink``: package logger (quiet by default) and
      the sink wrapping it.
    - ``bind_trace_id``: binds or clears the active trace identifier.
    - ``make_event``: convenience builder for structured event payloads.

System Integration
    The composition root creates (or receives) one sink and threads it through
    the importer, resolvers, loaders and the environment pipeline.
"""

from __future__ import annotations

import logging
from contextvars import ContextVar
from typing import Any, Final, Mapping, Protocol, runtime_checkable

TRACE_ID: ContextVar[str | None] = ContextVar("lib_config_data_trace_id", default=None)
"""Current trace identifier propagated through every sink.

Why
    Correlates configuration events of one startup sequence without threading
    identifiers through each call.
"""

_LOGGER: Final[logging.Logger] = logging.getLogger("lib_config_data")
_LOGGER.addHandler(logging.NullHandler())


@runtime_checkable
class LogSink(Protocol):
    """Capability to record structured diagnostic events."""

    def debug(self, message: str, **fields: Any) -> None:
        """Record a debug-level event."""

    def info(self, message: str, **fields: Any) -> None:
        """Record an info-level event."""

    def warning(self, message: str, **fields: Any) -> None:
        """Record a warning-level event."""

    def error(self, message: str, **fields: Any) -> None:
        """Record an error-level event."""


class StructuredLogSink:
    """Send structured entries through a standard library logger.

    Examples
    --------
    >>> sink = StructuredLogSink(logging.getLogger("demo"))
    >>> sink.debug("location_resolved", location="file:./")
    """

    def __init__(self, logger: logging.Logger) -> None:
        self._logger = logger

    def debug(self, message: str, **fields: Any) -> None:
        self._emit(logging.DEBUG, message, fields)

    def info(self, message: str, **fields: Any) -> None:
        self._emit(logging.INFO, message, fields)

    def warning(self, message: str, **fields: Any) -> None:
        self._emit(logging.WARNING, message, fields)

    def error(self, message: str, **fields: Any) -> None:
        self._emit(logging.ERROR, message, fields)

    def _emit(self, level: int, message: str, fields: Mapping[str, Any]) -> None:
        """Send a log entry with the trace context attached."""

        self._logger.log(level, message, extra={"context": _with_trace(fields)})


class DeferredLogSink:
    """Buffer entries until the host application has configured logging.

    Why
        Configuration data decides, among other things, how logging itself is
        configured. Entries written before that point are kept in memory and
        replayed once a destination exists.

    What
        Records ``(level, message, fields)`` tuples. :meth:`replay` forwards
        them in order to a destination sink; afterwards the instance writes
        straight through to that destination.

    Examples
    --------
    >>> deferred = DeferredLogSink()
    >>> deferred.info("configuration_applied", sources=2)
    >>> len(deferred.pending)
    1
    >>> collected = DeferredLogSink()
    >>> deferred.replay(collected)
    >>> deferred.pending, collected.pending[0][1]
    ((), 'configuration_applied')
    """

    def __init__(self) -> None:
        self._pending: list[tuple[int, str, dict[str, Any]]] = []
        self._destination: LogSink | None = None

    @property
    def pending(self) -> tuple[tuple[int, str, dict[str, Any]], ...]:
        """Entries recorded but not yet replayed."""

        return tuple(self._pending)

    def debug(self, message: str, **fields: Any) -> None:
        self._record(logging.DEBUG, message, fields)

    def info(self, message: str, **fields: Any) -> None:
        self._record(logging.INFO, message, fields)

    def warning(self, message: str, **fields: Any) -> None:
        self._record(logging.WARNING, message, fields)

    def error(self, message: str, **fields: Any) -> None:
        self._record(logging.ERROR, message, fields)

    def replay(self, destination: LogSink | None = None) -> None:
        """Forward buffered entries to *destination* and switch to pass-through.

        ``None`` replays into :func:`default_sink`.
        """

        target = destination if destination is not None else default_sink()
        pending, self._pending = self._pending, []
        for level, message, fields in pending:
            _dispatch(target, level, message, fields)
        self._destination = target

    def _record(self, level: int, message: str, fields: dict[str, Any]) -> None:
        if self._destination is not None:
            _dispatch(self._destination, level, message, fields)
            return
        self._pending.append((level, message, _with_trace(fields)))


_DEFAULT_SINK: Final[StructuredLogSink] = StructuredLogSink(_LOGGER)


def get_logger() -> logging.Logger:
    """Expose the package logger so applications may attach handlers.

    Why
        Leaves the library silent by default while giving host applications full
        control over handler and formatter configuration.
    """

    return _LOGGER


def default_sink() -> StructuredLogSink:
    """Return the sink writing to the package logger."""

    return _DEFAULT_SINK


def bind_trace_id(trace_id: str | None) -> None:
    """Bind or clear the active trace identifier.

    Examples
    --------
    >>> bind_trace_id('abc123')
    >>> TRACE_ID.get()
    'abc123'
    >>> bind_trace_id(None)
    >>> TRACE_ID.get() is None
    True
    """

    TRACE_ID.set(trace_id)


def make_event(
    location: str | None,
    resource: str | None,
    payload: Mapping[str, Any] | None = None,
) -> dict[str, Any]:
    """Build a structured payload for configuration-data lifecycle events.

    Why
        Keeps event construction consistent so downstream log processors can rely
        on stable keys.
    Inputs
        location: Location string being processed, if any.
        resource: Concrete resource description, if any.
        payload: Optional mapping with extra diagnostic detail.
    Outputs
        dict[str, Any]: Data safe to unpack into any sink method.

    Examples
    --------
    >>> make_event('optional:file:./', None, {'documents': 2})
    {'location': 'optional:file:./', 'resource': None, 'documents': 2}
    """

    event: dict[str, Any] = {"location": location, "resource": resource}
    if payload:
        event |= dict(payload)
    return event


def _dispatch(sink: LogSink, level: int, message: str, fields: Mapping[str, Any]) -> None:
    """Route a buffered entry to the sink method matching *level*."""

    if level >= logging.ERROR:
        sink.error(message, **fields)
    elif level >= logging.WARNING:
        sink.warning(message, **fields)
    elif level >= logging.INFO:
        sink.info(message, **fields)
    else:
        sink.debug(message, **fields)


def _with_trace(fields: Mapping[str, Any]) -> dict[str, Any]:
    """Attach the current trace identifier to the provided structured fields."""

    context = {"trace_id": TRACE_ID.get()}
    context.update(fields)
    return context
