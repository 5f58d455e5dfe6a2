"""source.py - Sinks that receive rendered trace events.

A TraceLogger hands every event to a *sink* and, optionally, to a *structured
logger*. Both are protocols so tests and host applications can plug in their
own. The stock implementations are:

    TraceSource      A named trace source built on a stdlib ``logging.Logger``.
                     Its listeners are ordinary ``logging.Handler`` objects,
                     registered by name, filtered by a SourceLevel threshold
                     and closed together on shutdown.
    StructlogLogger  Forwards events to a structlog bound logger as key/value
                     events (``event_id``, ``exc_info``).

A TraceSource is meant to be created and populated at process start, handed to
the loggers that use it, and closed at process stop. Registration is
serialised by a lock; the logging path itself takes no lock of ours.
"""

from __future__ import annotations

import logging
import threading
from typing import Dict, Mapping, Optional, Protocol, runtime_checkable

import structlog

from .config import DEFAULT_SOURCE_NAME, TraceSettings
from .severity import SourceLevel, TraceEventType, translate_severity


@runtime_checkable
class Sink(Protocol):
    """Receives one rendered trace event. Must be callable from any thread."""

    def emit(
        self,
        severity: TraceEventType,
        event_id: int,
        message: str,
        exception: Optional[BaseException],
    ) -> None: ...


@runtime_checkable
class StructuredLogger(Protocol):
    """Optional second destination with its own level filter."""

    def is_enabled(self, level: int) -> bool: ...

    def log(
        self,
        level: int,
        event_id: int,
        exception: Optional[BaseException],
        message: str,
    ) -> None: ...


class StructlogLogger:
    """StructuredLogger backed by structlog.

    Args:
        logger: A structlog bound logger. Defaults to
            ``structlog.get_logger("faulttrace")``, which picks up whatever
            ``structlog.configure()`` the host application ran.
    """

    def __init__(self, logger=None) -> None:
        self._log = logger if logger is not None else structlog.get_logger("faulttrace")

    def is_enabled(self, level: int) -> bool:
        is_enabled_for = getattr(self._log, "is_enabled_for", None)
        if is_enabled_for is None:
            return True
        return bool(is_enabled_for(level))

    def log(
        self,
        level: int,
        event_id: int,
        exception: Optional[BaseException],
        message: str,
    ) -> None:
        if exception is not None:
            self._log.log(level, message, event_id=event_id, exc_info=exception)
        else:
            self._log.log(level, message, event_id=event_id)


class TraceSource:
    """A named trace source with registered listeners and a threshold.

    Events are written through ``logging.getLogger(name)``. The logger does
    not propagate, so only the listeners registered here ever see them.

    Args:
        name: Source name; also the name of the underlying stdlib logger.
        level: Minimum severity passed to listeners. Defaults to OFF.

    Example:
        >>> import io
        >>> source = TraceSource("docs.example", SourceLevel.WARNING)
        >>> handler = logging.StreamHandler(io.StringIO())
        >>> handler.set_name("memory")
        >>> source.register_listener(handler)
        True
        >>> source.close_listeners()
    """

    def __init__(
        self,
        name: str = DEFAULT_SOURCE_NAME,
        level: SourceLevel = SourceLevel.OFF,
    ) -> None:
        self.name = name
        self._lock = threading.Lock()
        self._listeners: Dict[str, logging.Handler] = {}
        self._logger = logging.getLogger(name)
        self._logger.propagate = False
        self.set_level(level)

    @classmethod
    def from_settings(cls, settings: TraceSettings) -> TraceSource:
        return cls(name=settings.source_name, level=settings.trace_level)

    @property
    def level(self) -> SourceLevel:
        return self._level

    @property
    def listeners(self) -> Mapping[str, logging.Handler]:
        """Copy of the registered listeners, keyed by name."""
        with self._lock:
            return dict(self._listeners)

    def set_level(self, level: SourceLevel) -> None:
        """Change the threshold. Accepts a SourceLevel or its name."""
        level = SourceLevel(level.lower() if isinstance(level, str) else level)
        with self._lock:
            self._level = level
            self._logger.setLevel(level.logging_level)

    def register_listener(self, listener: logging.Handler) -> bool:
        """Attach ``listener`` under its handler name.

        Unnamed handlers are registered under their class name.

        Returns:
            True if the listener was added, False if a listener with the same
            name was already registered (the existing one is kept).
        """
        key = listener.get_name() or type(listener).__name__
        with self._lock:
            if key in self._listeners:
                return False
            self._listeners[key] = listener
            self._logger.addHandler(listener)
        return True

    def close_listeners(self) -> None:
        """Detach and close every registered listener."""
        with self._lock:
            listeners = list(self._listeners.values())
            self._listeners.clear()
            for listener in listeners:
                self._logger.removeHandler(listener)
        for listener in listeners:
            listener.close()

    def is_enabled(self, severity: TraceEventType) -> bool:
        return self._logger.isEnabledFor(translate_severity(severity))

    def emit(
        self,
        severity: TraceEventType,
        event_id: int,
        message: str,
        exception: Optional[BaseException],
    ) -> None:
        """Write one event to the listeners.

        The failure object rides along on the record as ``record.failure``;
        it is not passed as ``exc_info`` because ``message`` already carries
        the rendered dump.
        """
        self._logger.log(
            translate_severity(severity),
            message,
            extra={
                "event_id": event_id,
                "severity": TraceEventType(severity).name,
                "failure": exception,
            },
        )
