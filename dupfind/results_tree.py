"""Groups of identical extents found by the duplicate search."""

from __future__ import annotations

import threading
from dataclasses import dataclass, field
from typing import Any, Optional

from sortedcontainers import SortedDict


def _position_key(file, loff):
    return (id(file), loff)


@dataclass(eq=False)
class Extent:
    """A range of ``file`` starting at ``loff`` that belongs to a duplicate group."""

    file: Any
    loff: int
    poff: int = 0
    plen: int = 0
    shared_bytes: int = 0
    parent: Optional["DupeExtents"] = None

    @property
    def length(self):
        return self.parent.length if self.parent is not None else 0


@dataclass(eq=False)
class DupeExtents:
    """A set of extents of the same length and digest."""

    digest: bytes
    length: int
    score: int = 0
    extents: list = field(default_factory=list)
    _by_position: SortedDict = field(default_factory=SortedDict, repr=False)
    lock: threading.Lock = field(default_factory=threading.Lock, repr=False)

    def __post_init__(self):
        if not self.score:
            self.score = self.length

    @property
    def num_dupes(self):
        return len(self.extents)

    @property
    def sorted_extents(self):
        """The extents ordered by file and then offset."""
        return list(self._by_position.values())

    def _add(self, extent):
        key = _position_key(extent.file, extent.loff)
        if key in self._by_position:
            return False
        self._by_position[key] = extent
        extent.parent = self
        self.extents.append(extent)
        return True

    def _discard(self, extent):
        del self._by_position[_position_key(extent.file, extent.loff)]
        self.extents.remove(extent)
        extent.parent = None


class ResultsTree:
    """Duplicate extent groups ordered by length and then digest."""

    def __init__(self):
        self._root: SortedDict = SortedDict()
        self._lock = threading.Lock()
        self.num_extents = 0

    @property
    def num_dupes(self):
        return len(self._root)

    def _find_alloc(self, digest, length):
        key = (length, digest)
        with self._lock:
            dext = self._root.get(key)
            if dext is not None:
                return dext, True
            dext = DupeExtents(digest, length)
            self._root[key] = dext
            return dext, False

    def insert_result(self, digest, recs, startoff, endoff):
        """Record that two ranges match; return how many extents were new."""
        if endoff[0] < startoff[0]:
            raise ValueError("end offset lies before start offset")
        digest = bytes(digest)
        length = endoff[0] - startoff[0] + 1
        first = Extent(recs[0], startoff[0])
        second = Extent(recs[1], startoff[1])

        dext, existed = self._find_alloc(digest, length)
        with dext.lock:
            added = [dext._add(first), dext._add(second)]
            if existed:
                dext.score += length * sum(added)

        with self._lock:
            self.num_extents += sum(added)
        return sum(added)

    def insert_one_result(self, digest, file, startoff, length, poff):
        """Record a single extent; return it, or None if it was already present."""
        digest = bytes(digest)
        extent = Extent(file, startoff, poff=poff, plen=length, shared_bytes=0)
        dext, _ = self._find_alloc(digest, length)
        with dext.lock:
            added = dext._add(extent)
        if not added:
            return None
        with self._lock:
            self.num_extents += 1
        return extent

    def remove_extent(self, extent):
        """Remove ``extent``; return how many extents remain in its group.

        A group left with one extent is emptied, and an empty group is
        dropped from the tree.
        """
        dext = extent.parent
        if dext is None:
            raise ValueError("extent is not in a results tree")
        while True:
            dext.score -= dext.length
            dext._discard(extent)
            remaining = dext.num_dupes
            with self._lock:
                self.num_extents -= 1
            if remaining == 1:
                extent = dext.sorted_extents[0]
                continue
            break
        if remaining == 0:
            with self._lock:
                self._root.pop((dext.length, dext.digest), None)
        return remaining

    def free_dupe_extents(self, dext):
        """Remove every extent of ``dext`` and drop it from the tree."""
        while dext.num_dupes:
            self.remove_extent(dext.sorted_extents[0])
        with self._lock:
            self._root.pop((dext.length, dext.digest), None)

    def clear(self):
        """Remove every group from the tree."""
        while self._root:
            self.free_dupe_extents(self._root.peekitem(0)[1])

    def __iter__(self):
        with self._lock:
            return iter(list(self._root.values()))

    def __len__(self):
        return self.num_dupes