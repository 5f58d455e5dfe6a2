"""logger.py - TraceLogger, the entry point a service client logs through.

TraceLogger ties the pieces together. For every call it:

    1. builds the message (formatter.py) and picks the severity,
    2. flattens the failure, if any, into a detail dump and a condensed
       summary (flatten.py),
    3. emits the dump to the sink and, when enabled, the structured logger,
    4. for error severities, appends the summary to ``last_error`` and
       replaces ``last_exception``,
    5. appends the rendered line to the RetentionBuffer when capture is on.

Everything runs synchronously on the calling thread.

Concurrency note:
    ``last_error`` and ``last_exception`` are two separate fields updated one
    after the other. Concurrent error logging from several threads can
    interleave the text appended to ``last_error``, and the two fields can
    briefly describe different failures. Callers that need the pair to stay
    consistent construct the logger with ``synchronize_last_error=True``.
"""

from __future__ import annotations

import threading
from contextlib import nullcontext
from datetime import timedelta
from typing import List, Optional, Union

import httpx

from . import formatter
from .buffer import DEFAULT_RETENTION_WINDOW, LogRecord, RetentionBuffer
from .config import TraceSettings
from .faults import OperationError
from .flatten import RenderContext, flatten
from .formatter import TrackingId
from .severity import TraceEventType, is_error, translate_severity
from .source import Sink, StructuredLogger, TraceSource


class TraceLogger:
    """Diagnostic logger for a remote-service client.

    Args:
        sink: Destination for every event. Defaults to a TraceSource with the
            default name and an OFF threshold.
        structured_logger: Optional second destination, consulted with
            ``is_enabled()`` before each event.
        retention_window: Maximum age of lines kept in memory.
        retention_enabled: Whether lines are kept in memory at all.
        synchronize_last_error: Update ``last_error`` and ``last_exception``
            together under a lock.

    Example:
        >>> trace = TraceLogger(retention_enabled=True)
        >>> trace.log("connecting")
        >>> trace.log(ValueError("bad organization url"))
        >>> trace.last_error
        'bad organization url'
        >>> len(trace.logs)
        2
    """

    def __init__(
        self,
        sink: Optional[Sink] = None,
        structured_logger: Optional[StructuredLogger] = None,
        retention_window: timedelta = DEFAULT_RETENTION_WINDOW,
        retention_enabled: bool = False,
        synchronize_last_error: bool = False,
    ) -> None:
        self.sink = sink if sink is not None else TraceSource()
        self.structured_logger = structured_logger
        self._buffer = RetentionBuffer(window=retention_window, enabled=retention_enabled)
        self._last_error = ""
        self._last_exception: Optional[BaseException] = None
        self._last_error_lock = threading.Lock() if synchronize_last_error else None

    @classmethod
    def from_settings(
        cls,
        settings: TraceSettings,
        sink: Optional[Sink] = None,
        structured_logger: Optional[StructuredLogger] = None,
    ) -> TraceLogger:
        """Build a logger (and, unless given, its TraceSource) from settings."""
        return cls(
            sink=sink if sink is not None else TraceSource.from_settings(settings),
            structured_logger=structured_logger,
            retention_window=settings.retention_window,
            retention_enabled=settings.retention_enabled,
            synchronize_last_error=settings.synchronize_last_error,
        )

    # ---------------------------------------------------------------------- #
    # State
    # ---------------------------------------------------------------------- #

    @property
    def last_error(self) -> str:
        """Condensed summaries of every error logged since the last reset."""
        return self._last_error

    @property
    def last_exception(self) -> Optional[BaseException]:
        return self._last_exception

    @property
    def retention_window(self) -> timedelta:
        return self._buffer.window

    @retention_window.setter
    def retention_window(self, value: timedelta) -> None:
        if value < timedelta(0):
            raise ValueError(f"retention_window must be >= 0, got {value}")
        self._buffer.window = value

    @property
    def retention_enabled(self) -> bool:
        return self._buffer.enabled

    @retention_enabled.setter
    def retention_enabled(self, value: bool) -> None:
        self._buffer.enabled = bool(value)

    @property
    def logs(self) -> List[LogRecord]:
        """Snapshot of the retained log lines, oldest first."""
        return self._buffer.snapshot()

    def reset_last_error(self) -> None:
        """Forget the accumulated last-error text and exception."""
        with self._guard():
            self._last_error = ""
            self._last_exception = None

    def clear_log_cache(self) -> None:
        """Drop every retained log line."""
        self._buffer.clear()

    # ---------------------------------------------------------------------- #
    # Logging surface
    # ---------------------------------------------------------------------- #

    def log(
        self,
        message: Union[str, BaseException],
        severity: TraceEventType = TraceEventType.INFORMATION,
        exception: Optional[BaseException] = None,
    ) -> None:
        """Log a message, optionally with the failure that caused it.

        ``log(exc)`` logs a failure on its own at ERROR severity. An ERROR
        message without a failure gets a generic exception built from the
        message text, so the dump always has a block to show.
        """
        if isinstance(message, BaseException):
            self._log_failure_object(message)
            return

        severity = TraceEventType(severity)
        if exception is None and not is_error(severity):
            self._dispatch(severity, message, None)
            return

        synthesized = exception is None
        if synthesized:
            exception = Exception(message)

        ctx = flatten(exception)
        if synthesized:
            dump, summary = ctx.dump(), ctx.condensed()
        else:
            dump = f"{message}\n{ctx.dump()}"
            summary = f"{message}\n{ctx.condensed()}"
        self._dispatch(severity, dump, exception)
        if is_error(severity):
            self._record_error(summary, exception)

    def log_retry(
        self,
        retry_count: int,
        request_name: Optional[str],
        pause: timedelta,
        is_terminal: bool = False,
        is_throttled: bool = False,
        fallback_label: str = "",
    ) -> None:
        """Record a retry attempt decided by the caller's retry policy."""
        severity, message = formatter.retry_message(
            retry_count, request_name, pause, is_terminal, is_throttled, fallback_label
        )
        self.log(message, severity)

    def log_exception(
        self,
        request_name: Optional[str],
        exc: BaseException,
        context: str,
        fallback_label: str = "",
    ) -> None:
        """Log an exception raised while executing a request.

        HTTP faults are logged through an OperationError built from the
        response body, chained to the original fault.
        """
        message = formatter.exception_message(request_name, exc, context, fallback_label)
        if isinstance(exc, httpx.HTTPStatusError):
            exc = OperationError.from_transport_fault(exc)
        self.log(message, TraceEventType.ERROR, exc)

    def log_failure(
        self,
        request_name: Optional[str],
        tracking_id: TrackingId,
        session_id: Optional[TrackingId],
        cross_thread_safety_disabled: bool,
        lock_wait: timedelta,
        elapsed: timedelta,
        exc: BaseException,
        context: str,
        is_terminal: bool = False,
        fallback_label: str = "",
    ) -> None:
        """Log the failure of a request with its tracking details."""
        message = formatter.failure_message(
            request_name,
            tracking_id,
            session_id,
            cross_thread_safety_disabled,
            lock_wait,
            elapsed,
            exc,
            context,
            is_terminal,
            fallback_label,
        )
        self.log(message, TraceEventType.ERROR, exc)

    # ---------------------------------------------------------------------- #
    # Private helpers
    # ---------------------------------------------------------------------- #

    def _log_failure_object(self, exc: BaseException) -> None:
        ctx: RenderContext = flatten(exc)
        self._dispatch(TraceEventType.ERROR, ctx.dump(), exc)
        self._record_error(ctx.condensed(), exc)

    def _dispatch(
        self,
        severity: TraceEventType,
        message: str,
        exception: Optional[BaseException],
    ) -> None:
        event_id = int(severity)
        # Sink failures are deliberately not caught.
        self.sink.emit(severity, event_id, message, exception)

        level = translate_severity(severity)
        structured = self.structured_logger
        if structured is not None and structured.is_enabled(level):
            structured.log(level, event_id, exception, message)

        self._buffer.append(f"[{severity.name}][{event_id}] {message}")

    def _record_error(self, summary: str, exception: BaseException) -> None:
        if isinstance(exception, httpx.HTTPStatusError):
            exception = OperationError.from_transport_fault(exception)
        with self._guard():
            if self._last_error:
                self._last_error += "\n" + summary
            else:
                self._last_error = summary
            self._last_exception = exception

    def _guard(self):
        lock = self._last_error_lock
        return lock if lock is not None else nullcontext()
