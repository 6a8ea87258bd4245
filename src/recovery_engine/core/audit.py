"""Bounded, insertion-ordered audit trail of handled failures."""

import threading
from collections import deque
from datetime import datetime

from recovery_engine.types import ErrorLog

__all__ = ["DEFAULT_AUDIT_CAPACITY", "AuditLog"]

DEFAULT_AUDIT_CAPACITY = 100


class AuditLog:
    """Fixed-capacity FIFO store of ErrorLog entries.

    The oldest entry is evicted first once capacity is reached. Appends and
    in-place updates are serialized by a lock so concurrent handlers cannot
    interleave an update with an eviction.
    """

    def __init__(self, capacity: int = DEFAULT_AUDIT_CAPACITY) -> None:
        if capacity < 1:
            msg = f"Audit log capacity must be >= 1, got {capacity}"
            raise ValueError(msg)
        self._capacity: int = capacity
        self._entries: deque[ErrorLog] = deque(maxlen=capacity)
        self._lock: threading.Lock = threading.Lock()

    @property
    def capacity(self) -> int:
        return self._capacity

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def append(self, entry: ErrorLog) -> ErrorLog:
        """Append an entry, evicting the oldest one when full."""
        with self._lock:
            self._entries.append(entry)
        return entry

    def replace(self, current: ErrorLog, updated: ErrorLog) -> bool:
        """Swap an existing entry for its updated version, keeping its position.

        Entries are matched by identity. Returns False when ``current`` has
        already been evicted, in which case nothing is written.
        """
        with self._lock:
            for index, entry in enumerate(self._entries):
                if entry is current:
                    self._entries[index] = updated
                    return True
        return False

    def entries(self) -> tuple[ErrorLog, ...]:
        """Return an immutable snapshot in insertion order."""
        with self._lock:
            return tuple(self._entries)

    def since(self, cutoff: datetime) -> tuple[ErrorLog, ...]:
        """Return entries whose timestamp is at or after ``cutoff``."""
        with self._lock:
            return tuple(entry for entry in self._entries if entry.timestamp >= cutoff)

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()
