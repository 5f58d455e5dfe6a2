"""severity.py - Trace severities and their mapping onto ``logging`` levels.

Callers speak in ``TraceEventType`` (the trace-source vocabulary: Critical,
Error, Warning, Information, Verbose). Sinks built on the standard ``logging``
module speak in integer levels. This module is the only place that knows how
the two line up.

``SourceLevel`` is the threshold vocabulary used to configure a trace source
("let everything from Warning upwards through").
"""

import logging
from enum import Enum, IntEnum


class TraceEventType(IntEnum):
    """Severity of a single trace event.

    The integer value is also used as the event id handed to sinks, so the
    numbering must stay stable.
    """

    CRITICAL = 1
    ERROR = 2
    WARNING = 4
    INFORMATION = 8
    VERBOSE = 16


_EVENT_TO_LEVEL = {
    TraceEventType.CRITICAL: logging.CRITICAL,
    TraceEventType.ERROR: logging.ERROR,
    TraceEventType.WARNING: logging.WARNING,
    TraceEventType.INFORMATION: logging.INFO,
    TraceEventType.VERBOSE: logging.DEBUG,
}


def translate_severity(event_type: TraceEventType) -> int:
    """Map a ``TraceEventType`` to the matching ``logging`` level.

    Args:
        event_type: The trace severity to translate.

    Returns:
        One of ``logging.CRITICAL``, ``ERROR``, ``WARNING``, ``INFO`` or
        ``DEBUG``.

    Example:
        >>> translate_severity(TraceEventType.VERBOSE) == logging.DEBUG
        True
    """
    return _EVENT_TO_LEVEL[TraceEventType(event_type)]


def severity_from_level(levelno: int) -> TraceEventType:
    """Map a ``logging`` level back onto the closest ``TraceEventType``.

    Levels between the named ones round down (``logging.WARNING + 5`` is
    still a WARNING); anything below INFO is VERBOSE.
    """
    if levelno >= logging.CRITICAL:
        return TraceEventType.CRITICAL
    if levelno >= logging.ERROR:
        return TraceEventType.ERROR
    if levelno >= logging.WARNING:
        return TraceEventType.WARNING
    if levelno >= logging.INFO:
        return TraceEventType.INFORMATION
    return TraceEventType.VERBOSE


def is_error(event_type: TraceEventType) -> bool:
    """Return True for the severities that update the last-error state."""
    return event_type in (TraceEventType.CRITICAL, TraceEventType.ERROR)


class SourceLevel(str, Enum):
    """Minimum severity a trace source lets through to its listeners."""

    OFF = "off"
    CRITICAL = "critical"
    ERROR = "error"
    WARNING = "warning"
    INFORMATION = "information"
    VERBOSE = "verbose"
    ALL = "all"

    @property
    def logging_level(self) -> int:
        """The ``logging`` threshold this source level stands for."""
        return _SOURCE_TO_LEVEL[self]


_SOURCE_TO_LEVEL = {
    # Nothing is ever logged above CRITICAL, so this silences the source.
    SourceLevel.OFF: logging.CRITICAL + 10,
    SourceLevel.CRITICAL: logging.CRITICAL,
    SourceLevel.ERROR: logging.ERROR,
    SourceLevel.WARNING: logging.WARNING,
    SourceLevel.INFORMATION: logging.INFO,
    SourceLevel.VERBOSE: logging.DEBUG,
    # NOTSET would defer to the parent logger; 1 lets every level through.
    SourceLevel.ALL: 1,
}
