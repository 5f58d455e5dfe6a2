"""faults.py - The failure objects a remote-service client hands to the logger.

A failed remote call can surface as one of four shapes:

    ServiceFault           A structured fault returned by the service itself:
                           error code, trace text, activity id, detail entries
                           and an optional nested fault of the same kind.
    httpx.HTTPStatusError  A transport-level HTTP fault. The interesting parts
                           live in the JSON body (``error.message``,
                           ``error.stacktrace``, one level of
                           ``error.innererror``) and in the ``REQ_ID`` header.
    OperationError         A client-side wrapper with a numeric result code,
                           a data dictionary and a chained cause.
    any other exception    A generic failure; its cause is ``__cause__`` or the
                           implicit ``__context__``.

The helpers at the bottom read the HTTP error body defensively: a malformed,
missing or unread body yields ``None`` rather than an exception, so rendering
code can degrade a single field instead of failing.
"""

from __future__ import annotations

import json
from datetime import datetime
from typing import Any, Dict, List, Mapping, Optional

import httpx

NOT_PROVIDED = "Not Provided"
CORRELATION_HEADER = "REQ_ID"
HELP_LINK_ANNOTATION = "@Microsoft.PowerApps.CDS.HelpLink"


class ServiceFault(Exception):
    """Structured fault reported by the remote service.

    Args:
        message: Human-readable fault message.
        error_code: Numeric service error code.
        trace_text: Server-side trace text, if the service sent one.
        activity_id: Server activity id for the failed operation.
        timestamp: When the service says the fault happened.
        help_link: URL with more information about the error code.
        error_details: Extra key/value pairs attached to the fault.
        inner_fault: The nested fault that caused this one, if any.
    """

    def __init__(
        self,
        message: str,
        error_code: int = 0,
        trace_text: Optional[str] = None,
        activity_id: Optional[str] = None,
        timestamp: Optional[datetime] = None,
        help_link: Optional[str] = None,
        error_details: Optional[Mapping[str, Any]] = None,
        inner_fault: Optional[ServiceFault] = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.error_code = error_code
        self.trace_text = trace_text
        self.activity_id = activity_id
        self.timestamp = timestamp
        self.help_link = help_link
        self.error_details: Dict[str, Any] = dict(error_details or {})
        self.inner_fault = inner_fault


class OperationError(Exception):
    """Client-side exception wrapping a failed service operation.

    ``error_code`` is the numeric result code of the operation, or
    ``OperationError.UNSET`` when none is known. The wrapped cause, if any, is
    carried as ``__cause__`` exactly as ``raise ... from`` would set it.
    """

    UNSET = -1

    def __init__(
        self,
        message: str,
        source: Optional[str] = None,
        error_code: int = UNSET,
        data: Optional[Mapping[str, Any]] = None,
        help_link: Optional[str] = None,
        inner: Optional[BaseException] = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.source = source
        self.error_code = error_code
        self.data: Dict[str, Any] = dict(data or {})
        self.help_link = help_link
        if inner is not None:
            self.__cause__ = inner

    @classmethod
    def from_transport_fault(cls, exc: httpx.HTTPStatusError) -> OperationError:
        """Build an OperationError describing an HTTP fault, chained to it.

        The message is the first line of ``error.message`` (or the status
        text), the error code comes from ``error.code`` when it parses as a
        number, and the data dictionary records the HTTP status, the request
        url and the correlation id.
        """
        response = exc.response
        error = parse_error_block(response) or {}

        data: Dict[str, Any] = {"HttpStatusCode": response.status_code}
        request = _request_of(exc)
        if request is not None:
            data["RequestUrl"] = str(request.url)
        req_id = correlation_id(response)
        if req_id:
            data["RequestId"] = req_id

        help_link = error.get(HELP_LINK_ANNOTATION)
        if help_link is None and isinstance(error.get("innererror"), dict):
            help_link = error["innererror"].get(HELP_LINK_ANNOTATION)

        return cls(
            transport_error_message(exc),
            source=response.headers.get("Server") or None,
            error_code=_parse_error_code(error.get("code")),
            data=data,
            help_link=first_line(str(help_link)) if help_link else None,
            inner=exc,
        )


def inner_failure(failure: BaseException) -> Optional[BaseException]:
    """Return the next failure in the cause chain, or None at the end.

    Service faults prefer their explicit ``inner_fault``; every exception
    falls back to ``__cause__`` and then to ``__context__`` unless the context
    was suppressed with ``raise ... from None``.
    """
    if isinstance(failure, ServiceFault) and failure.inner_fault is not None:
        return failure.inner_fault
    if failure.__cause__ is not None:
        return failure.__cause__
    if failure.__context__ is not None and not failure.__suppress_context__:
        return failure.__context__
    return None


# ---------------------------------------------------------------------------
# HTTP error-body helpers
# ---------------------------------------------------------------------------


def first_line(text: Optional[str]) -> Optional[str]:
    """Return the first line of ``text``, stripped.

    Any of ``\\n``, ``\\r\\n`` or ``\\r`` ends the first line. ``None`` and the
    empty string are returned unchanged.
    """
    if not text:
        return text
    lines = text.splitlines()
    return lines[0].strip() if lines else ""


def parse_error_block(response: httpx.Response) -> Optional[Dict[str, Any]]:
    """Return the ``error`` object from a JSON error body, or None.

    None covers every way the body can be unusable: not read yet, empty,
    not JSON, not a JSON object, or without an ``error`` object.
    """
    try:
        text = response.text
    except httpx.ResponseNotRead:
        return None
    if not text or not text.strip():
        return None
    try:
        body = json.loads(text)
    except ValueError:
        return None
    if not isinstance(body, dict):
        return None
    error = body.get("error")
    return error if isinstance(error, dict) else None


def correlation_id(response: httpx.Response) -> Optional[str]:
    """Distinct values of the correlation header, joined with ``|``."""
    values: List[str] = []
    for value in response.headers.get_list(CORRELATION_HEADER):
        if value not in values:
            values.append(value)
    return "|".join(values) or None


def status_text(response: httpx.Response) -> str:
    """HTTP reason phrase for the response, e.g. ``"Not Found"``."""
    return response.reason_phrase or str(response.status_code)


def transport_error_message(exc: httpx.HTTPStatusError) -> str:
    """Best-effort one-line message for an HTTP fault.

    Uses the first line of ``error.message`` from the body, falling back to the
    status text when the body is missing or unparseable.
    """
    error = parse_error_block(exc.response)
    if error is not None:
        message = first_line(_as_text(error.get("message")))
        if message:
            return message
    return status_text(exc.response)


def _as_text(value: Any) -> Optional[str]:
    if value is None:
        return None
    return value if isinstance(value, str) else str(value)


def _request_of(exc: httpx.HTTPStatusError) -> Optional[httpx.Request]:
    # HTTPStatusError.request raises when no request was attached.
    try:
        return exc.request
    except RuntimeError:
        return None


def _parse_error_code(value: Any) -> int:
    if isinstance(value, bool):
        return OperationError.UNSET
    if isinstance(value, int):
        return value
    if isinstance(value, str) and value.strip():
        try:
            return int(value.strip(), 0)
        except ValueError:
            return OperationError.UNSET
    return OperationError.UNSET
