"""examples/basic_usage.py - faulttrace integration demo.

Demonstrates the three things a service client does with a TraceLogger:
    1. record retries decided by its retry policy
    2. log the failures it runs into (a service fault chain and an HTTP fault)
    3. inspect last_error and the retained log lines afterwards

Run:
    python examples/basic_usage.py
"""

import logging
import sys
import uuid
from datetime import timedelta

import httpx

from faulttrace import (
    OperationError,
    ServiceFault,
    SourceLevel,
    TraceLogger,
    TraceSource,
)

# ---------------------------------------------------------------------------
# Process start: one trace source, one console listener
# ---------------------------------------------------------------------------
source = TraceSource(level=SourceLevel.VERBOSE)
console = logging.StreamHandler(sys.stderr)
console.set_name("console")
console.setFormatter(logging.Formatter("%(asctime)s [%(severity)s/%(event_id)s] %(message)s"))
source.register_listener(console)

trace = TraceLogger(source, retention_enabled=True, retention_window=timedelta(minutes=1))


def create_account(name: str) -> None:
    """Pretend the service rejected the request with a nested fault."""
    inner = ServiceFault("Duplicate record detected", error_code=-2147220685)
    outer = ServiceFault(
        "A record with these values already exists.",
        error_code=-2147220937,
        trace_text="[DuplicateDetection] rule 'Accounts with same name'",
        error_details={"name": name},
        inner_fault=inner,
    )
    raise OperationError("Create failed", source="example.client") from outer


def retrieve_account(account_id: int) -> None:
    """Pretend the Web API answered 404 with a JSON error body."""
    request = httpx.Request("GET", f"https://org.example.com/api/data/v9.2/accounts({account_id})")
    response = httpx.Response(
        404,
        json={"error": {"code": "0x80040217", "message": f"account With Id = {account_id} Does Not Exist"}},
        headers={"REQ_ID": str(uuid.uuid4())},
        request=request,
    )
    response.raise_for_status()


if __name__ == "__main__":
    trace.log("Connecting to https://org.example.com")
    trace.log_retry(1, "Create", timedelta(seconds=2), is_throttled=True)

    try:
        create_account("Contoso")
    except OperationError as exc:
        trace.log_exception("Create", exc, "Execute")

    try:
        retrieve_account(42)
    except httpx.HTTPStatusError as exc:
        trace.log_failure(
            None,
            uuid.uuid4(),
            None,
            False,
            timedelta(0),
            timedelta(milliseconds=180),
            exc,
            "Execute",
            is_terminal=True,
            fallback_label="GET accounts(42)",
        )

    print("\n--- last_error ---")
    print(trace.last_error)
    print(f"\n--- {len(trace.logs)} retained lines ---")
    for ts, line in trace.logs:
        print(ts.isoformat(), line.splitlines()[0])

    source.close_listeners()
