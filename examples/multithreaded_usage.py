"""examples/multithreaded_usage.py - One TraceLogger shared by many workers.

A client is usually shared by a pool of worker threads. Every worker logs
through the same TraceLogger: the retention buffer takes concurrent appends
without external locking, and ``synchronize_last_error=True`` keeps the last
error text and exception consistent with each other.

Run:
    python examples/multithreaded_usage.py
"""

import logging
import random
import threading
import time
from datetime import timedelta

from faulttrace import ServiceFault, SourceLevel, TraceLogger, TraceSource

logging.basicConfig(
    level=logging.DEBUG,
    format="%(asctime)s [%(levelname)s] [thread=%(threadName)s] %(message)s",
)

source = TraceSource("example.multithreaded", SourceLevel.WARNING)
source.register_listener(logging.StreamHandler())

trace = TraceLogger(
    source,
    retention_enabled=True,
    retention_window=timedelta(seconds=30),
    synchronize_last_error=True,
)


def execute(order_id: int) -> None:
    """Simulate a request that is throttled, retried and sometimes fails."""
    for attempt in range(3):
        time.sleep(random.uniform(0.001, 0.01))
        if random.random() < 0.5:
            trace.log_retry(attempt + 1, "UpsertOrder", timedelta(milliseconds=50), is_throttled=True)
            continue
        trace.log(f"Order {order_id} saved")
        return
    trace.log_retry(3, "UpsertOrder", timedelta(0), is_terminal=True)
    trace.log(ServiceFault(f"Order {order_id} could not be saved", error_code=-2147015902))


if __name__ == "__main__":
    workers = [
        threading.Thread(target=execute, args=(1000 + n,), name=f"Worker-{n}")
        for n in range(8)
    ]
    for worker in workers:
        worker.start()
    for worker in workers:
        worker.join()

    print()
    print(f"{len(trace.logs)} lines retained across {len(workers)} threads")
    print("last_error:")
    print(trace.last_error or "(none)")
    source.close_listeners()
