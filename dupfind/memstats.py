"""Simple allocation counters for the in-memory data structures."""

from __future__ import annotations

import threading


class AllocTracker:
    """Counts live objects of one kind and remembers the peak count."""

    def __init__(self, name, item_size):
        self.name = name
        self.item_size = item_size
        self.count = 0
        self.max_count = 0
        self._lock = threading.Lock()

    def allocate(self, count=1):
        """Record ``count`` new objects."""
        if count < 0:
            raise ValueError("count must not be negative")
        with self._lock:
            self.count += count
            self.max_count = max(self.max_count, self.count)

    def free(self):
        """Record that one object was released."""
        with self._lock:
            if self.count == 0:
                raise ValueError(f"no live {self.name} objects to free")
            self.count -= 1

    @property
    def total(self):
        return self.item_size * self.count

    @property
    def max_total(self):
        return self.item_size * self.max_count

    def report(self):
        """Return a one-line summary of the counters."""
        return (
            f"struct {self.name} num: {self.count} sizeof: {self.item_size} "
            f"total: {self.total} max: {self.max_count} "
            f"max total: {self.max_total}"
        )


def format_mem_stats(trackers):
    """Return a report of every tracker, one line each, under a header."""
    lines = ["Memory usage statistics:"]
    lines.extend(tracker.report() for tracker in trackers)
    return "\n".join(lines) + "\n"