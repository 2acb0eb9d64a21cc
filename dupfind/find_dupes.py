"""Search inside non-deduplicated extents for additional duplicate ranges."""

from __future__ import annotations

import hashlib
import logging
import math
import sys
import threading
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass

log = logging.getLogger(__name__)

_BAR_WIDTH = 40


@dataclass(frozen=True)
class FileExtent:
    """An on-disk extent of a file as reported by fiemap."""

    loff: int
    length: int
    poff: int = 0
    flags: int = 0


class SearchProgress:
    """Counts searched files and draws a progress bar on a terminal."""

    def __init__(self, total, out=None):
        self.total = total
        self.out = out if out is not None else sys.stdout
        self.processed = 0
        self._cond = threading.Condition()
        self._last_pos = -1
        isatty = getattr(self.out, "isatty", None)
        self.enabled = bool(isatty and isatty())

    def update(self, processed=1):
        """Record that ``processed`` more files have been searched."""
        with self._cond:
            self.processed += processed
            self._cond.notify()

    def render(self, processed):
        """Draw the bar for ``processed`` files; return the drawn text or None.

        The bar is only redrawn when it has grown by at least one cell.
        """
        progress = processed / self.total if self.total else 1.0
        pos = int(_BAR_WIDTH * progress)
        if pos <= self._last_pos:
            return None
        self._last_pos = pos
        cells = "".join(
            "#" if i < pos else "%" if i == pos else " "
            for i in range(_BAR_WIDTH)
        )
        line = f"\r[{cells}]"
        self.out.write(line)
        flush = getattr(self.out, "flush", None)
        if flush:
            flush()
        return line

    def wait(self):
        """Draw the bar until every file is searched.

        Returns False at once when the output is not a terminal.
        """
        if not self.enabled:
            return False
        self.render(0)
        last = 0
        with self._cond:
            while self.processed < self.total:
                self._cond.wait(timeout=1.0)
                current = self.processed
                if current != last:
                    self.render(current)
                last = current
            final = self.processed
        self.render(final)
        self.out.write("\nSearch completed with no errors.             \n")
        return True


def block_len(block, blocksize):
    """Return how many bytes of its file ``block`` covers."""
    size = block.file.size
    if block.loff + blocksize <= size:
        return blocksize
    if block.loff >= size:
        return 0
    return (size - block.loff) % blocksize


def _record_match(results, digest, orig_file, walk_file, start, end, blocksize):
    soff = (start[0].loff, start[1].loff)
    eoff = (
        block_len(end[0], blocksize) + end[0].loff - 1,
        block_len(end[1], blocksize) + end[1].loff - 1,
    )
    results.insert_result(digest, (orig_file, walk_file), soff, eoff)
    length = eoff[0] - soff[0] + 1
    log.debug(
        "Duplicated extent of %d blocks in files:\n%s\t\t%s",
        length // blocksize, getattr(orig_file, "filename", orig_file),
        getattr(walk_file, "filename", walk_file),
    )
    log.debug(
        "%d-%d\t\t%d-%d",
        soff[0] // blocksize, eoff[0] // blocksize,
        soff[1] // blocksize, eoff[1] // blocksize,
    )


def compare_extents(tree, orig_file, orig_block, walk_file, walk_block,
                    search_len, results, blocksize):
    """Walk two files block by block from the given blocks, recording matches.

    ``search_len`` bytes are searched; None searches to the end of file.
    Returns the number of matches recorded in ``results``.
    """
    orig, block = orig_block, walk_block
    if search_len is None:
        extent_end = math.inf
    else:
        extent_end = block.loff + search_len - 1
    matches = 0

    while True:
        start = (orig, block)
        end = None
        matchmore = True

        # Fast-forward to the next pair of blocks with the same hash.
        while block.parent is not orig.parent and block.loff < extent_end:
            next_orig = tree.next_file_block(orig)
            next_block = tree.next_file_block(block)
            if next_orig is None or next_block is None:
                return matches
            orig, block = next_orig, next_block

        csum = hashlib.sha256()
        while block.parent is orig.parent and block.loff < extent_end:
            end = (orig, block)
            csum.update(block.parent.digest)

            next_orig = tree.next_file_block(orig)
            next_block = tree.next_file_block(block)
            if next_orig is None or next_block is None:
                matchmore = False
                break
            contiguous = (next_orig.loff == orig.loff + blocksize
                          and next_block.loff == block.loff + blocksize)
            orig, block = next_orig, next_block
            if not contiguous:
                matchmore = False
                break

        if end is None:
            return matches

        match_end = block_len(end[1], blocksize) + end[1].loff - 1
        if match_end > extent_end:
            return matches
        _record_match(results, csum.digest(), orig_file, walk_file,
                      start, end, blocksize)
        matches += 1

        if not matchmore:
            return matches
        orig = tree.next_file_block(end[0])
        block = tree.next_file_block(end[1])
        if orig is None or block is None:
            return matches
        if block.loff > extent_end:
            return matches


def search_extent(tree, file, extent, results, load_extent, options, blocksize):
    """Look for duplicates of ``extent`` of ``file`` among blocks of equal hash.

    ``load_extent(file, loff)`` loads the on-disk extent holding a found
    block. Returns the number of matches recorded.
    """
    block = tree.find_file_block(file, extent.loff)
    if block is None:
        return 0

    matches = 0
    for found_block in list(block.parent.blocks):
        if found_block is block:
            continue
        found_file = found_block.file
        if not options.dedupe_same_file and found_file is file:
            continue
        load_extent(found_file, found_block.loff)
        matches += compare_extents(tree, file, block, found_file, found_block,
                                   extent.length, results, blocksize)
    return matches


def find_additional_dedupe(tree, results, files, load_nondupe_extents,
                           load_extent, options, blocksize):
    """Search every file's non-deduplicated extents on worker threads.

    ``load_nondupe_extents(file)`` returns the file's FileExtent list.
    Returns the total number of matches recorded.
    """
    files = list(files)
    workers = max(1, options.cpu_threads)
    log.info(
        "Using %d threads to search within extents for additional dedupe. "
        "This process will take some time, during which it can safely be "
        "interrupted.", workers,
    )
    progress = SearchProgress(len(files))

    def search_file(file):
        found = 0
        try:
            extents = list(load_nondupe_extents(file))
            log.debug("search_file_extents: %s (size=%d num_extents: %d)",
                      getattr(file, "filename", file), file.size, len(extents))
            for extent in extents:
                found += search_extent(tree, file, extent, results,
                                       load_extent, options, blocksize)
        except (OSError, ValueError, LookupError) as exc:
            log.error("Search of %s stopped: %s",
                      getattr(file, "filename", file), exc)
        finally:
            progress.update(1)
        return found

    futures = []
    with ThreadPoolExecutor(max_workers=workers) as pool:
        for file in files:
            if file.size == 0:
                progress.update(1)
                continue
            futures.append(pool.submit(search_file, file))
        progress.wait()
    return sum(future.result() for future in futures)