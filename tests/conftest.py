"""
Shared fixtures for the faulttrace test suite.

HTTP faults come from calling ``Response.raise_for_status()`` on real httpx
Request/Response objects, so their messages match production; nothing
touches the network.
"""

from __future__ import annotations

from typing import Any, List, Optional, Tuple

import httpx
import pytest

from faulttrace import TraceEventType

API_URL = "https://org.example.com/api/data/v9.2/accounts"


def make_http_error(
    status: int = 400,
    body: Any = None,
    text: Optional[str] = None,
    headers: Any = None,
    method: str = "POST",
) -> httpx.HTTPStatusError:
    """Raise and catch the HTTPStatusError a real ``raise_for_status()`` gives.

    ``body`` is sent as JSON; otherwise ``text`` is the raw body. ``status``
    must be a 4xx or 5xx code.
    """
    request = httpx.Request(method, API_URL)
    if body is not None:
        response = httpx.Response(status, json=body, headers=headers, request=request)
    else:
        response = httpx.Response(status, text=text or "", headers=headers, request=request)
    with pytest.raises(httpx.HTTPStatusError) as raised:
        response.raise_for_status()
    return raised.value


class RecordingSink:
    """Sink that keeps every emitted event for inspection."""

    def __init__(self) -> None:
        self.events: List[Tuple[TraceEventType, int, str, Optional[BaseException]]] = []

    def emit(self, severity, event_id, message, exception) -> None:
        self.events.append((severity, event_id, message, exception))

    @property
    def messages(self) -> List[str]:
        return [event[2] for event in self.events]


@pytest.fixture()
def http_error():
    """Factory fixture: ``http_error(status, body=..., text=..., headers=...)``."""
    return make_http_error


@pytest.fixture()
def sink() -> RecordingSink:
    return RecordingSink()
