"""handler.py - Bridge from the standard ``logging`` module into a TraceLogger.

Code that already logs through ``logging`` can feed the same diagnostics
pipeline as the client itself: attach a TraceLogHandler and every record is
re-logged through TraceLogger, so errors are flattened, counted in
``last_error`` and kept in the retention buffer.

Typical usage::

    import logging
    from faulttrace import TraceLogger, TraceLogHandler

    trace = TraceLogger(retention_enabled=True)
    logging.getLogger("myclient").addHandler(TraceLogHandler(trace))

    log = logging.getLogger("myclient")
    log.info("connecting")                   # retained
    try:
        ...
    except Exception:
        log.error("save failed", exc_info=True)   # flattened into last_error

Do not attach the handler to the trace source's own logger: the source would
feed its output straight back in.
"""

import logging

from .logger import TraceLogger
from .severity import severity_from_level


class TraceLogHandler(logging.Handler):
    """A logging.Handler that forwards records to a TraceLogger.

    The record's level picks the TraceEventType; ``exc_info``, when present,
    becomes the failure object that gets flattened.

    Thread-safety:
        ``logging.Handler`` serialises ``emit()`` per handler with its own
        lock. TraceLogger itself is safe to call from any thread.

    Attributes:
        trace_logger (TraceLogger): Destination for the forwarded records.
    """

    def __init__(self, trace_logger: TraceLogger, level: int = logging.NOTSET) -> None:
        super().__init__(level)
        self.trace_logger = trace_logger

    def emit(self, record: logging.LogRecord) -> None:
        """Forward a single record.

        Args:
            record: The LogRecord produced by the logging framework.
        """
        try:
            exception = record.exc_info[1] if record.exc_info else None
            self.trace_logger.log(
                record.getMessage(),
                severity_from_level(record.levelno),
                exception,
            )
        except Exception:
            # A failure in here must never take down the application's own
            # logging; the stdlib reports it through handleError.
            self.handleError(record)
