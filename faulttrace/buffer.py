"""buffer.py - Time-windowed in-memory store for rendered log lines.

RetentionBuffer keeps the most recent log lines of a TraceLogger in memory so
they can be inspected after the fact without any external log infrastructure.
Unlike a fixed-capacity ring, the bound is an *age*: every entry older than the
retention window is dropped the next time anything is appended or read.

Design decisions:
    - ``collections.deque`` gives O(1) append at the tail and O(1) pop at the
      head. Appends are timestamped at call time, so the head is always the
      oldest entry and expiry is a prefix trim rather than a scan.
    - ``deque.append`` is atomic under CPython's GIL, so appends from many
      threads need no lock. Eviction is a peek-then-pop pair; a small internal
      lock keeps two evicting threads from splitting that pair and dropping a
      live entry.
    - Eviction runs inline on every append and every read. There is no
      sweeper thread.
    - ``clear()`` swaps in a fresh deque instead of emptying the old one, so a
      reader that already took a snapshot keeps a consistent view.
"""

import threading
from collections import deque
from datetime import datetime, timedelta, timezone
from typing import List, Optional

DEFAULT_RETENTION_WINDOW = timedelta(minutes=5)


def utcnow() -> datetime:
    """Timezone-aware current UTC time."""
    return datetime.now(timezone.utc)


class LogRecord:
    """An immutable ``(timestamp, rendered_line)`` pair held by RetentionBuffer.

    Attributes:
        timestamp (datetime): UTC wall-clock time at which the line was logged.
        rendered_line (str): The fully rendered line, e.g.
            ``"[WARNING][4] Retry No=1 Retry=Started ..."``.
    """

    __slots__ = ("_timestamp", "_rendered_line")

    def __init__(self, timestamp: datetime, rendered_line: str) -> None:
        self._timestamp = timestamp
        self._rendered_line = rendered_line

    @property
    def timestamp(self) -> datetime:
        return self._timestamp

    @property
    def rendered_line(self) -> str:
        return self._rendered_line

    def __iter__(self):
        # Allows ``ts, line = record``.
        yield self._timestamp
        yield self._rendered_line

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, LogRecord):
            return NotImplemented
        return (self._timestamp, self._rendered_line) == (
            other._timestamp,
            other._rendered_line,
        )

    def __hash__(self) -> int:
        return hash((self._timestamp, self._rendered_line))

    def __repr__(self) -> str:  # pragma: no cover
        return f"LogRecord({self._timestamp.isoformat()}, {self._rendered_line!r})"


class RetentionBuffer:
    """Thread-safe, age-bounded FIFO of LogRecord objects.

    Capture is off by default; a disabled buffer ignores ``append()`` calls so
    callers never have to check the flag themselves.

    Example:
        >>> from datetime import datetime, timedelta, timezone
        >>> t0 = datetime(2024, 1, 1, tzinfo=timezone.utc)
        >>> buf = RetentionBuffer(window=timedelta(seconds=2), enabled=True)
        >>> for i in range(4):
        ...     buf.append(f"line {i}", now=t0 + timedelta(seconds=i))
        >>> buf.lines()
        ['line 2', 'line 3']
    """

    def __init__(
        self,
        window: timedelta = DEFAULT_RETENTION_WINDOW,
        enabled: bool = False,
    ) -> None:
        """Initialise an empty buffer.

        Args:
            window: Maximum age of a retained entry. Entries whose timestamp
                is at or before ``now - window`` are evicted.
            enabled: Whether ``append()`` records anything. Defaults to False.

        Raises:
            ValueError: If ``window`` is negative.
        """
        if window < timedelta(0):
            raise ValueError(f"window must be >= 0, got {window}")
        self.window = window
        self.enabled = enabled
        self._entries: deque[LogRecord] = deque()
        self._evict_lock = threading.Lock()

    def append(self, line: str, now: Optional[datetime] = None) -> None:
        """Record ``line`` at the tail, then trim expired entries from the head.

        Does nothing when the buffer is disabled.

        Args:
            line: The rendered log line to retain.
            now: Timestamp to record; defaults to the current UTC time. Only
                tests should pass this explicitly.
        """
        if not self.enabled:
            return
        if now is None:
            now = utcnow()
        self._entries.append(LogRecord(now, line))
        self.evict_expired(now)

    def evict_expired(
        self,
        now: Optional[datetime] = None,
        window: Optional[timedelta] = None,
    ) -> int:
        """Pop entries from the head while they are older than the window.

        Stops at the first entry that is still live, so the cost is
        proportional to the number of expired entries only.

        Args:
            now: Reference time; defaults to the current UTC time.
            window: Retention window override; defaults to ``self.window``.

        Returns:
            The number of entries evicted.
        """
        if now is None:
            now = utcnow()
        cutoff = now - (self.window if window is None else window)
        entries = self._entries
        evicted = 0
        with self._evict_lock:
            while entries:
                try:
                    head = entries[0]
                except IndexError:  # cleared underneath us
                    break
                if head.timestamp > cutoff:
                    break
                entries.popleft()
                evicted += 1
        return evicted

    def clear(self) -> None:
        """Drop every entry by swapping in a fresh, empty deque."""
        self._entries = deque()

    def snapshot(self, now: Optional[datetime] = None) -> List[LogRecord]:
        """Return the live entries, oldest first, as a shallow-copy list.

        Expired entries are evicted first, so a read after a quiet period
        longer than the window never returns them.

        Args:
            now: Reference time for eviction; defaults to the current UTC time.
        """
        self.evict_expired(now)
        return list(self._entries)

    def lines(self, now: Optional[datetime] = None) -> List[str]:
        """Return only the rendered lines of the live entries, oldest first."""
        return [record.rendered_line for record in self.snapshot(now)]

    def __len__(self) -> int:
        return len(self._entries)
