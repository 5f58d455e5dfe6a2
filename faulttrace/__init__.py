"""faulttrace/__init__.py - Public API for the faulttrace package.

faulttrace is the diagnostic logging core of a remote-service client. It turns
the failures a client runs into (structured service faults, HTTP faults from
httpx, wrapped operation errors, plain exceptions) into a multi-block detail
dump for trace listeners and a one-line "last error" summary for code, and can
keep recent log lines in memory for a configurable time window.

Quick start:
    import logging
    from datetime import timedelta
    from faulttrace import SourceLevel, TraceLogger, TraceSource

    # 1. Create the trace source once, at process start
    source = TraceSource(level=SourceLevel.WARNING)
    source.register_listener(logging.StreamHandler())

    # 2. Log through a TraceLogger
    trace = TraceLogger(source, retention_enabled=True)
    trace.log_retry(1, "Create", timedelta(seconds=2), is_throttled=True)
    try:
        client.execute(request)
    except Exception as exc:
        trace.log_exception("Create", exc, "Execute")

    # 3. Inspect what happened
    print(trace.last_error)
    for ts, line in trace.logs:
        ...

    # 4. Close the listeners at process stop
    source.close_listeners()

Exported names:
    TraceLogger:      Orchestrates formatting, flattening, dispatch and retention.
    TraceSource:      Named stdlib-logging source with registered listeners.
    TraceSettings:    pydantic-settings configuration (FAULTTRACE_* variables).
    TraceLogHandler:  logging.Handler that forwards records into a TraceLogger.
    StructlogLogger:  Structured-logger adapter over structlog.
    RetentionBuffer:  The time-windowed in-memory line store.
    flatten:          Renders a failure chain into a RenderContext.
    ServiceFault, OperationError: Failure types raised by service clients.
"""

from .buffer import LogRecord, RetentionBuffer
from .config import DEFAULT_SOURCE_NAME, TraceSettings
from .faults import NOT_PROVIDED, OperationError, ServiceFault
from .flatten import RenderContext, flatten
from .handler import TraceLogHandler
from .logger import TraceLogger
from .severity import SourceLevel, TraceEventType, translate_severity
from .source import Sink, StructlogLogger, StructuredLogger, TraceSource

__all__ = [
    "TraceLogger",
    "TraceSource",
    "TraceSettings",
    "TraceLogHandler",
    "StructlogLogger",
    "Sink",
    "StructuredLogger",
    "RetentionBuffer",
    "LogRecord",
    "RenderContext",
    "flatten",
    "ServiceFault",
    "OperationError",
    "TraceEventType",
    "SourceLevel",
    "translate_severity",
    "DEFAULT_SOURCE_NAME",
    "NOT_PROVIDED",
]
__version__ = "0.1.0"
