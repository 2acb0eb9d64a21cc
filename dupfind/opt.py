"""Run-time options shared by the scanning and dedupe phases."""

from __future__ import annotations

import os
from dataclasses import dataclass, fields
from typing import Optional, Union

_FLAG_FIELDS = frozenset({
    "recurse_dirs",
    "skip_zeroes",
    "only_whole_files",
    "do_block_hash",
    "dedupe_same_file",
    "fdupes_mode",
})
_UNSIGNED_FIELDS = frozenset({"io_threads", "cpu_threads", "batch_size"})
_INT_FIELDS = frozenset({"run_dedupe"})


@dataclass
class Options:
    """Settings that control how files are scanned and deduplicated."""

    run_dedupe: int = 0
    recurse_dirs: bool = False
    io_threads: int = 0
    cpu_threads: int = 0
    skip_zeroes: bool = False
    only_whole_files: bool = False
    do_block_hash: bool = False
    dedupe_same_file: bool = True
    batch_size: int = 1024
    fdupes_mode: bool = False
    hashfile: Optional[Union[str, os.PathLike]] = None

    def validate(self):
        """Check field types and ranges; return self so calls can be chained.

        Raises TypeError for a value of the wrong type and ValueError for a
        negative count.
        """
        for field in fields(self):
            name = field.name
            value = getattr(self, name)
            if name in _FLAG_FIELDS:
                if not isinstance(value, bool):
                    raise TypeError(f"{name} must be a bool, not {value!r}")
            elif name in _UNSIGNED_FIELDS or name in _INT_FIELDS:
                if isinstance(value, bool) or not isinstance(value, int):
                    raise TypeError(f"{name} must be an int, not {value!r}")
                if name in _UNSIGNED_FIELDS and value < 0:
                    raise ValueError(f"{name} must not be negative")
            elif name == "hashfile":
                if value is not None and not isinstance(value, (str, os.PathLike)):
                    raise TypeError(f"hashfile must be a path, not {value!r}")
        return self