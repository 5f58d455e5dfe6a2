"""formatter.py - Message templates for retry, exception and failure notices.

These functions only build text and pick a severity; TraceLogger decides what
to do with the result. Request identity is passed as a request name, with a
caller-supplied fallback label for calls that have no structured request
(e.g. raw Web API calls identified by their URI).
"""

from __future__ import annotations

import uuid
from datetime import timedelta
from typing import Optional, Tuple, Union

import httpx

from .faults import transport_error_message
from .severity import TraceEventType

UNKNOWN_REQUEST = "UNKNOWN"
EXCEPTION_MARKER = "************"

_NIL_UUID = uuid.UUID(int=0)

TrackingId = Union[uuid.UUID, str]


def request_label(request_name: Optional[str], fallback_label: str = "") -> str:
    """The request name, or the fallback label when there is no request."""
    return request_name if request_name else fallback_label


def retry_message(
    retry_count: int,
    request_name: Optional[str],
    pause: timedelta,
    is_terminal: bool = False,
    is_throttled: bool = False,
    fallback_label: str = "",
) -> Tuple[TraceEventType, str]:
    """Build the notice for a retry attempt.

    Returns:
        ``(severity, message)``. A count of 0 and a terminal retry are
        VERBOSE; a retry that is starting is a WARNING.

    Example:
        >>> retry_message(3, "Create", timedelta(seconds=2), is_throttled=True)[1]
        'Retry No=3 Retry=Started IsThrottle=True Delay=0:00:02 for Command Create'
    """
    name = request_label(request_name, fallback_label)
    if retry_count == 0:
        return TraceEventType.VERBOSE, f"No retry attempted for Command {name}"
    if is_terminal:
        return (
            TraceEventType.VERBOSE,
            f"Retry Completed at Retry No={retry_count} for Command {name}",
        )
    return (
        TraceEventType.WARNING,
        f"Retry No={retry_count} Retry=Started IsThrottle={is_throttled} "
        f"Delay={pause} for Command {name}",
    )


def exception_message(
    request_name: Optional[str],
    exc: BaseException,
    context: str,
    fallback_label: str = "",
) -> str:
    """Build the one-line notice for an exception raised by a request.

    Shape: ``************ <ExcType> - <RequestName> : <context> |=> <message>``.
    HTTP faults report the error message from their JSON body (or the status
    text) instead of the exception text.
    """
    name = request_name or fallback_label or UNKNOWN_REQUEST
    if isinstance(exc, httpx.HTTPStatusError):
        message = transport_error_message(exc)
    else:
        message = str(exc)
    return f"{EXCEPTION_MARKER} {type(exc).__name__} - {name} : {context} |=> {message}"


def failure_message(
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
) -> str:
    """Build the single line logged when a request fails.

    Optional segments (terminal tag, session id, cross-thread flag, lock wait)
    only appear when they carry information.
    """
    if isinstance(exc, httpx.HTTPStatusError):
        message = transport_error_message(exc)
    else:
        message = str(exc)

    lock = f": LockWaitDuration={lock_wait} " if lock_wait else ""
    return (
        f"{'[TerminalFailure] ' if is_terminal else ''}"
        f"Failed to Execute Command - {request_label(request_name, fallback_label)}"
        f"{' : DisableCrossThreadSafeties=true :' if cross_thread_safety_disabled else ''}"
        f" : {_session_segment(session_id, suffix=' : ')}"
        f"RequestID={tracking_id} {lock}: {context} "
        f"duration={elapsed} ExceptionMessage = {message}"
    )


def _session_segment(session_id: Optional[TrackingId], suffix: str = "") -> str:
    if not _has_session(session_id):
        return ""
    return f"SessionID={session_id}{suffix}"


def _has_session(session_id: Optional[TrackingId]) -> bool:
    if session_id is None:
        return False
    if isinstance(session_id, uuid.UUID):
        return session_id != _NIL_UUID
    return bool(str(session_id).strip())
