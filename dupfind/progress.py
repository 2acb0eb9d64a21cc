"""Multi-line progress display for the file scanning phase."""

from __future__ import annotations

import enum
import os
import sys
import threading
from dataclasses import dataclass
from typing import Optional

from dupfind.util import pretty_size

_CLEAR_LINE = "\x1b[K"
_SAVE_POS = "\x1b[s"
_RESTORE_POS = "\x1b[u"
_CLEAR_DOWN = "\x1b[J"
_HIDE_CURSOR = "\x1b[?25l"
_SHOW_CURSOR = "\x1b[?25h"


class ThreadStatus(enum.Enum):
    IDLE = "idle"
    SCANNING = "scanning"
    WAITING_LOCK = "waiting_lock"
    COMMITTING = "committing"


@dataclass(eq=False)
class ThreadProgress:
    """Progress of one scanning thread."""

    tid: int
    total_scanned_files: int = 0
    total_scanned_bytes: int = 0
    file_scanned_bytes: int = 0
    file_total_bytes: int = 0
    file_path: str = ""
    status: ThreadStatus = ThreadStatus.IDLE


def _percent(value, total):
    return value / total * 100 if total else 0.0


class ScanProgress:
    """Tracks scan totals and redraws one line per thread plus three totals.

    On a terminal the display area is redrawn in place; otherwise lines
    are only appended.
    """

    def __init__(self, io_threads, out=None, human_readable=False):
        self.io_threads = io_threads
        self.out = out if out is not None else sys.stdout
        self.human_readable = human_readable
        self.total_files_count = 0
        self.total_bytes_count = 0
        self.listing_completed = False
        self.threads = []
        self._lock = threading.Lock()
        self._wake = threading.Event()
        self._printer: Optional[threading.Thread] = None
        isatty = getattr(self.out, "isatty", None)
        self.tty = bool(isatty and isatty())
        self._width: Optional[int] = None

    def _size(self, value):
        return pretty_size(value, self.human_readable)

    def _write(self, text):
        self.out.write(text)

    def _line(self, text):
        self._write((_CLEAR_LINE if self.tty else "") + text)

    def _flush(self):
        flush = getattr(self.out, "flush", None)
        if flush:
            flush()

    def finish_listing(self):
        """Mark the file listing as complete."""
        self.listing_completed = True
        self._wake.set()

    def add_work(self, files, nbytes):
        """Add files and bytes to the amount of work to do."""
        with self._lock:
            self.total_files_count += files
            self.total_bytes_count += nbytes

    def register_thread(self, tid):
        """Create and return the progress record of a scanning thread."""
        thread = ThreadProgress(tid)
        with self._lock:
            self.threads.append(thread)
        return thread

    def reset_thread(self, thread):
        """Mark a thread idle after a file, counting the file as fully scanned."""
        if thread is None:
            return
        thread.status = ThreadStatus.IDLE
        # The file may have shrunk during the scan; count the missing bytes.
        if thread.file_scanned_bytes < thread.file_total_bytes:
            thread.total_scanned_bytes += (
                thread.file_total_bytes - thread.file_scanned_bytes
            )
        thread.total_scanned_files += 1
        thread.file_path = ""
        self._wake.set()

    def format_thread(self, thread, width=None):
        """Return the status line of ``thread``, cut to ``width`` characters."""
        tid = thread.tid
        if thread.status is ThreadStatus.IDLE:
            text = f"[{tid}] idle"
        elif thread.status is ThreadStatus.SCANNING:
            pct = _percent(thread.file_scanned_bytes, thread.file_total_bytes)
            text = (
                f"[{tid}] {'checksumming:':<20}{thread.file_path}: "
                f"{self._size(thread.file_scanned_bytes)}/"
                f"{self._size(thread.file_total_bytes)} ({pct:05.2f}%)"
            )
        else:
            label = ("waiting for lock:"
                     if thread.status is ThreadStatus.WAITING_LOCK
                     else "committing:")
            text = (
                f"[{tid}] {label:<20}{thread.file_path} "
                f"(size: {self._size(thread.file_total_bytes)})"
            )
        return text if width is None else text[:width]

    def _scanned(self):
        files = sum(t.total_scanned_files for t in self.threads)
        nbytes = sum(t.total_scanned_bytes for t in self.threads)
        return files, nbytes

    def _totals_lines(self):
        files, nbytes = self._scanned()
        listing = "completed" if self.listing_completed else "in progress"
        return [
            f"\tFiles scanned: {files}/{self.total_files_count} "
            f"({_percent(files, self.total_files_count):05.2f}%)",
            f"\tBytes scanned: {self._size(nbytes)}/"
            f"{self._size(self.total_bytes_count)} "
            f"({_percent(nbytes, self.total_bytes_count):05.2f}%)",
            f"\tFile listing: {listing}",
        ]

    def format_totals(self):
        """Return the three total lines: files, bytes and listing state."""
        return "".join(line + "\n" for line in self._totals_lines())

    def _write_totals(self):
        for line in self._totals_lines():
            self._line(line + "\n")

    def _prepare_screen_area(self):
        rows = self.io_threads + 3
        for _ in range(rows):
            self._line("\n")
        self._write(f"\x1b[{rows}A")
        self._write(_SAVE_POS)

    def _print_progress(self):
        if self.tty:
            self._write(_RESTORE_POS)
        for thread in self.threads:
            self._line(self.format_thread(thread, self._width) + "\n")
        self._write_totals()
        self._flush()

    def _done(self):
        files, nbytes = self._scanned()
        return (self.listing_completed
                and files == self.total_files_count
                and nbytes == self.total_bytes_count)

    def _refresh_width(self):
        if not self.tty:
            self._width = None
            return
        try:
            self._width = os.get_terminal_size(self.out.fileno()).columns
        except (OSError, ValueError, AttributeError):
            self._width = None

    def _loop(self):
        while True:
            self._refresh_width()
            with self._lock:
                self._print_progress()
                done = self._done()
            if done:
                break
            self._wake.wait(0.1 if self.tty else 1.0)
            self._wake.clear()

    def run(self):
        """Start the thread that redraws the progress until the scan ends."""
        if self._printer is not None:
            raise RuntimeError("progress display is already running")
        if self.tty:
            self._write(_HIDE_CURSOR)
            self._prepare_screen_area()
        self._printer = threading.Thread(
            target=self._loop, name="progress_printer", daemon=True
        )
        self._printer.start()

    def join(self):
        """Wait for the display thread, then print the final totals."""
        if self._printer is None:
            raise RuntimeError("progress display is not running")
        self._printer.join()
        if self.tty:
            self._write(_SHOW_CURSOR)
            self._write(_RESTORE_POS + _CLEAR_DOWN + _RESTORE_POS)
        with self._lock:
            self._write_totals()
            self.threads.clear()
        self._flush()
        self._printer = None

    def is_running(self):
        return self._printer is not None

    def print(self, text):
        """Write ``text`` above the progress area, then redraw the progress."""
        with self._lock:
            if self.tty:
                self._write(_RESTORE_POS + _CLEAR_DOWN + _RESTORE_POS)
            self._write(text)
            if self.tty:
                self._write(_SAVE_POS)
                self._prepare_screen_area()
            self._print_progress()