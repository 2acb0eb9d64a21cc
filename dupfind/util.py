"""Size parsing and formatting, CPU detection and small timing helpers."""

from __future__ import annotations

import logging
import os
import re
import resource
import struct
import subprocess
import time
from pathlib import Path

log = logging.getLogger(__name__)

_SUFFIX_POWER = {"b": 0, "k": 1, "m": 2, "g": 3, "t": 4, "p": 5, "e": 6}
_SIZE_UNITS = ("", "K", "M", "G", "T", "P", "E")
_CPU_SYSFS = Path("/sys/devices/system/cpu")


def parse_size(s):
    """Parse a size such as ``"128k"`` or ``"4M"`` into a number of bytes.

    Raises ValueError when the value is empty, the suffix is unknown, or
    anything follows the suffix.
    """
    text = s or ""
    digits = re.match(r"[0-9]*", text).group()
    if not digits:
        raise ValueError("size value is empty")

    rest = text[len(digits):]
    multiplier = 1
    if rest:
        descriptor = rest[0].lower()
        if descriptor not in _SUFFIX_POWER:
            raise ValueError(f"unknown size descriptor {descriptor!r}")
        if len(rest) > 1:
            raise ValueError(
                f"illegal suffix contains character {rest[1]!r} in wrong position"
            )
        multiplier = 1024 ** _SUFFIX_POWER[descriptor]
    return int(digits) * multiplier


def _as_float32(value):
    return struct.unpack("f", struct.pack("f", value))[0]


def pretty_size(size, human_readable=False):
    """Format a byte count, optionally as a human readable string like ``1.5MB``.

    Returns an empty string when the value is too large for the known units.
    """
    if size < 0:
        raise ValueError("size must not be negative")
    if not human_readable:
        return str(size)

    if size < 1024:
        fraction = float(size)
        divisions = 0
    else:
        divisions = 0
        last_size = size
        while size >= 1024:
            last_size = size
            size //= 1024
            divisions += 1
        if divisions >= len(_SIZE_UNITS):
            return ""
        fraction = last_size / 1024
    return f"{_as_float32(fraction):.1f}{_SIZE_UNITS[divisions]}B"


def num_digits(num):
    """Return the number of decimal digits in ``num`` (zero for zero)."""
    digits = 0
    while num:
        num //= 10
        digits += 1
    return digits


def get_core_count():
    """Count physical and logical CPUs using ``lscpu -p``.

    Returns ``(physical, logical)``. Raises OSError when lscpu cannot be
    started and ValueError when its output yields no CPUs.
    """
    try:
        proc = subprocess.run(
            ["lscpu", "-p"], capture_output=True, text=True, check=False
        )
    except OSError as exc:
        raise OSError(f"can't start lscpu: {exc}") from exc

    logical = 0
    cores = set()
    for line in proc.stdout.splitlines():
        if line.startswith("#"):
            continue
        logical += 1
        try:
            _, core, socket = (int(field) for field in line.split(",")[:3])
        except ValueError:
            log.debug("Can't parse lscpu line: %s", line)
            continue
        cores.add((socket, core))

    if not logical or not cores:
        raise ValueError("could not determine the core count from lscpu")
    return len(cores), logical


def _count_siblings(text):
    """Mimic scanning ``"%d,%d"``: how many numbers head a siblings list."""
    first = re.match(r"\s*[+-]?[0-9]+", text)
    if not first:
        return -1 if not text.strip() else 0
    return 2 if re.match(r",\s*[+-]?[0-9]+", text[first.end():]) else 1


def _get_core_count_fallback(root=_CPU_SYSFS):
    physical = 0
    logical = 0
    with os.scandir(root) as entries:
        for entry in entries:
            if not re.search(r"cpu[0-9]+", entry.name):
                continue
            siblings = Path(entry.path) / "topology" / "thread_siblings_list"
            try:
                text = siblings.read_text()
            except OSError:
                # Hyperthreads have no topology directory when HT is off.
                continue
            physical += 1
            logical += _count_siblings(text)

    # With HT on every core was counted once per sibling.
    if logical > physical:
        logical //= 2
        physical //= 2
    if physical <= 0 or logical <= 0:
        raise ValueError(f"no CPUs found under {root}")
    return physical, logical


def get_num_cpus():
    """Return ``(physical, logical)`` CPU counts, falling back as needed."""
    try:
        physical, logical = get_core_count()
        ht_state = "is on" if logical > physical else "is off"
    except (OSError, ValueError):
        try:
            physical, logical = _get_core_count_fallback()
            ht_state = "is off"
        except (OSError, ValueError):
            physical = logical = os.cpu_count() or 1
            ht_state = "detection broken"
    log.debug(
        "Detected %d logical and %d physical cpus (ht %s).",
        logical, physical, ht_state,
    )
    return physical, logical


def increase_limits():
    """Raise the open file soft limit to the hard limit.

    Returns ``(old_limit, new_limit)``.
    """
    soft, hard = resource.getrlimit(resource.RLIMIT_NOFILE)
    resource.setrlimit(resource.RLIMIT_NOFILE, (hard, hard))
    log.info("Increased open file limit from %d to %d.", soft, hard)
    return soft, hard


class ElapsedTime:
    """Measures the time taken by a named step."""

    def __init__(self, name):
        self.name = name
        self.start = time.perf_counter()
        self.end = None
        self.elapsed = 0.0

    def stop(self):
        """Record the end time and return the seconds elapsed."""
        self.end = time.perf_counter()
        self.elapsed = self.end - self.start
        return self.elapsed

    def report(self):
        """Stop the timer, print how long the step took and return that line."""
        self.stop()
        message = f"{self.name} took {self.elapsed:f}s"
        print(message)
        return message