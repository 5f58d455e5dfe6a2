"""flatten.py - Render a failure cause chain as a detail dump and a summary.

``flatten()`` walks a failure and its causes depth-first, outermost first, and
writes into a single RenderContext:

    detail   One block of ``Label: value`` lines per failure, framed by
             fixed-width ``=`` lines. Blocks below the top are preceded by an
             ``Inner Exception Level N:`` marker.
    summary  One message fragment per failure; ``condensed()`` joins them with
             ``" => "`` to give the one-line "last error" text.

Output shape for a generic exception caused by a service fault::

    ==Exception===========================================...
    Source: builtins
    Method: save
    DateUTC: 2024-01-15
    TimeUTC: 12:34:56
    Error: save failed
    HelpLink Url: Not Provided
    Stack Trace: File "client.py", line 10, in save ...
    ======================================================...
    Inner Exception Level 1:
    ==ServiceFault Info===================================...
    ...

Every block is stamped with the render time (``ctx.rendered_at``), i.e. when
the failure was logged, not when it happened. A fault's own time, if it has
one, shows up in its ``Time`` or ``Trace`` field.
"""

from __future__ import annotations

import traceback
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Mapping, Optional

import httpx

from .buffer import utcnow
from .faults import (
    HELP_LINK_ANNOTATION,
    NOT_PROVIDED,
    OperationError,
    ServiceFault,
    correlation_id,
    first_line,
    inner_failure,
    parse_error_block,
)

MAX_DEPTH = 32
BLOCK_WIDTH = 118
SUMMARY_SEPARATOR = " => "

_RULE = "=" * BLOCK_WIDTH


@dataclass
class RenderContext:
    """Accumulates the output of one ``flatten()`` run across recursive calls.

    Attributes:
        rendered_at: UTC time stamped into every block.
        detail: Detail-dump lines, in output order.
        summary: One message fragment per rendered failure.
    """

    rendered_at: datetime = field(default_factory=utcnow)
    detail: List[str] = field(default_factory=list)
    summary: List[str] = field(default_factory=list)

    def dump(self) -> str:
        """The detail dump as a single multi-line string."""
        return "\n".join(self.detail)

    def condensed(self) -> str:
        """The condensed one-line summary of the whole chain."""
        return SUMMARY_SEPARATOR.join(self.summary)


def flatten(
    failure: Optional[BaseException],
    ctx: Optional[RenderContext] = None,
    level: int = 0,
) -> RenderContext:
    """Render ``failure`` and its cause chain into ``ctx``.

    Args:
        failure: The outermost failure to render. ``None`` renders nothing.
        ctx: Context to append to; a fresh one is created when omitted.
        level: Depth of ``failure`` in the chain; 0 for the outermost.

    Returns:
        The context that received the output (``ctx`` when one was given).

    Rendering never raises on malformed input; chains deeper than
    ``MAX_DEPTH`` (including cyclic ones) are cut off silently.
    """
    if ctx is None:
        ctx = RenderContext()
    while failure is not None and level < MAX_DEPTH:
        match failure:
            case ServiceFault():
                _render_service_fault(failure, ctx, level)
            case httpx.HTTPStatusError():
                # The wire format nests at most one inner error, rendered
                # inline; nothing below it is followed.
                _render_transport_fault(failure, ctx, level)
                return ctx
            case OperationError():
                _render_operation_error(failure, ctx, level)
            case BaseException():
                _render_generic(failure, ctx, level)
            case _:
                return ctx
        failure = inner_failure(failure)
        level += 1
    return ctx


# ---------------------------------------------------------------------------
# Per-variant renderers
# ---------------------------------------------------------------------------


def _render_service_fault(fault: ServiceFault, ctx: RenderContext, level: int) -> None:
    fields = [
        ("Error", _text(fault.message)),
        ("Time", fault.timestamp.isoformat() if fault.timestamp else NOT_PROVIDED),
        ("ErrorCode", _text(fault.error_code)),
    ]
    if fault.activity_id:
        fields.append(("ActivityId", str(fault.activity_id)))
    fields += [
        *_stamp(ctx),
        ("HelpLink Url", _text(fault.help_link)),
        ("Trace", _text(fault.trace_text)),
    ]
    _write_block(ctx, level, "ServiceFault Info", fields, _details("Error Details", fault.error_details))
    ctx.summary.append(_text(fault.message))


def _render_transport_fault(
    exc: httpx.HTTPStatusError, ctx: RenderContext, level: int
) -> None:
    error = parse_error_block(exc.response) or {}
    source = _text(type(exc).__module__)
    method = _method_name(exc)

    message = first_line(_field(error, "message"))
    fields = [
        ("Source", source),
        ("Method", method),
        *_stamp(ctx),
        ("Error", message or NOT_PROVIDED),
    ]
    req_id = correlation_id(exc.response)
    if req_id:
        fields.append(("ActivityId", req_id))
    fields += [
        ("HelpLink Url", _text(getattr(exc, "help_link", None))),
        ("Stack Trace", _text(_field(error, "stacktrace"))),
    ]
    _write_block(ctx, level, "Exception", fields)
    ctx.summary.append(message or _text(first_line(str(exc))))

    inner = error.get("innererror")
    if not isinstance(inner, dict) or level + 1 >= MAX_DEPTH:
        return
    inner_message = first_line(_field(inner, "message"))
    _write_block(
        ctx,
        level + 1,
        "Exception",
        [
            ("Source", source),
            ("Method", method),
            *_stamp(ctx),
            ("Error", inner_message or NOT_PROVIDED),
            ("HelpLink Url", _text(first_line(_field(inner, HELP_LINK_ANNOTATION)))),
            ("Stack Trace", _text(_field(inner, "stacktrace"))),
        ],
    )
    ctx.summary.append(inner_message or NOT_PROVIDED)


def _render_operation_error(exc: OperationError, ctx: RenderContext, level: int) -> None:
    code = NOT_PROVIDED if exc.error_code == OperationError.UNSET else str(exc.error_code)
    fields = [
        ("Source", _text(exc.source)),
        ("Error", _text(exc.message)),
        ("ErrorCode", code),
        *_stamp(ctx),
        ("HelpLink Url", _text(exc.help_link)),
    ]
    _write_block(ctx, level, "OperationException Info", fields, _details("ErrorDetail", exc.data))
    ctx.summary.append(_text(exc.message))


def _render_generic(exc: BaseException, ctx: RenderContext, level: int) -> None:
    stack = "".join(traceback.format_tb(exc.__traceback__)) if exc.__traceback__ else None
    fields = [
        ("Source", _text(type(exc).__module__)),
        ("Method", _method_name(exc)),
        *_stamp(ctx),
        ("Error", _text(str(exc))),
        ("HelpLink Url", _text(getattr(exc, "help_link", None))),
        ("Stack Trace", _text(stack)),
    ]
    _write_block(ctx, level, "Exception", fields)
    ctx.summary.append(_text(str(exc)))


# ---------------------------------------------------------------------------
# Layout helpers
# ---------------------------------------------------------------------------


def _write_block(
    ctx: RenderContext,
    level: int,
    title: str,
    fields: List[tuple],
    trailer: Optional[List[str]] = None,
) -> None:
    if level != 0:
        ctx.detail.append(f"Inner Exception Level {level}: ")
    ctx.detail.append(f"=={title}".ljust(BLOCK_WIDTH, "="))
    ctx.detail.extend(f"{label}: {value}" for label, value in fields)
    if trailer:
        ctx.detail.extend(trailer)
    ctx.detail.append(_RULE)


def _stamp(ctx: RenderContext) -> List[tuple]:
    return [
        ("DateUTC", ctx.rendered_at.strftime("%Y-%m-%d")),
        ("TimeUTC", ctx.rendered_at.strftime("%H:%M:%S")),
    ]


def _details(heading: str, items: Mapping[str, Any]) -> List[str]:
    if not items:
        return []
    lines = [f"{heading}:"]
    for key, value in items.items():
        lines.append(f"    {key}: {'Not Set' if value is None else value}")
    return lines


def _text(value: Any) -> str:
    """Stripped text of ``value``, or ``Not Provided`` when it is empty."""
    if value is None:
        return NOT_PROVIDED
    text = str(value).strip()
    return text or NOT_PROVIDED


def _field(block: Dict[str, Any], key: str) -> Optional[str]:
    value = block.get(key)
    if value is None:
        return None
    return value if isinstance(value, str) else str(value)


def _method_name(exc: BaseException) -> str:
    """Name of the function the exception was raised in, if it was raised."""
    tb = exc.__traceback__
    if tb is None:
        return NOT_PROVIDED
    while tb.tb_next is not None:
        tb = tb.tb_next
    return tb.tb_frame.f_code.co_name
