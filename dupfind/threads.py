"""A worker pool that runs cleanup callbacks once all work is done."""

from __future__ import annotations

import threading
from concurrent.futures import ThreadPoolExecutor


class WorkerPool:
    """Runs ``function(item, arg)`` for each pushed item on worker threads.

    Cleanup callbacks registered while the pool runs are called, in the
    order they were registered, when the pool is closed.
    """

    def __init__(self, function, arg=None, workers=1):
        if workers < 1:
            raise ValueError("a worker pool needs at least one worker")
        self._function = function
        self._arg = arg
        self._executor = ThreadPoolExecutor(max_workers=workers)
        self._futures = []
        self._cleanups = []
        self._lock = threading.Lock()
        self._closed = False

    def push(self, item):
        """Queue one item for processing and return its future."""
        if self._closed:
            raise RuntimeError("cannot push to a closed worker pool")
        future = self._executor.submit(self._function, item, self._arg)
        with self._lock:
            self._futures.append(future)
        return future

    def register_cleanup(self, function, ptr):
        """Arrange for ``function(ptr)`` to be called when the pool closes."""
        with self._lock:
            self._cleanups.append((function, ptr))

    def close(self):
        """Wait for all work, run the cleanups, then re-raise a worker error."""
        if self._closed:
            return
        self._closed = True
        self._executor.shutdown(wait=True)

        with self._lock:
            cleanups, self._cleanups = self._cleanups, []
            futures, self._futures = self._futures, []

        for function, ptr in cleanups:
            function(ptr)

        for future in futures:
            error = future.exception()
            if error is not None:
                raise error

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()
        return False