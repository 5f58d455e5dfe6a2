"""examples/structlog_usage.py - Feeding trace events into structlog.

The host application configures structlog once; TraceLogger then sends every
event to both the trace source and the structured logger, with the event id
and the failure object attached as keys.

Configuration comes from FAULTTRACE_* environment variables, e.g.:

    FAULTTRACE_TRACE_LEVEL=warning FAULTTRACE_RETENTION_ENABLED=true \
        python examples/structlog_usage.py
"""

import logging
from datetime import timedelta

import structlog

from faulttrace import StructlogLogger, TraceLogger, TraceSettings


def configure_structlog(log_level: str = "INFO") -> None:
    """Human-readable console output, filtered at ``log_level``."""
    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.StackInfoRenderer(),
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.dev.ConsoleRenderer(),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(
            getattr(logging, log_level.upper(), logging.INFO)
        ),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=True,
    )


if __name__ == "__main__":
    configure_structlog("DEBUG")
    settings = TraceSettings()
    trace = TraceLogger.from_settings(settings, structured_logger=StructlogLogger())

    structlog.contextvars.bind_contextvars(organization="org.example.com")
    trace.log("client.connected")
    trace.log_retry(2, "RetrieveMultiple", timedelta(seconds=4), is_throttled=True)
    try:
        raise TimeoutError("The operation has timed out")
    except TimeoutError as exc:
        trace.log_exception("RetrieveMultiple", exc, "Execute")

    print("last_error:", trace.last_error.replace("\n", " | "))
