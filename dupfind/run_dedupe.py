"""Reporting and pre-dedupe cleanup of duplicate extent groups."""

from __future__ import annotations

import logging
import sys

from dupfind.util import pretty_size

log = logging.getLogger(__name__)

_SHORT_DIGEST_BYTES = 8


def _short_digest(digest):
    return bytes(digest)[:_SHORT_DIGEST_BYTES].hex()


def _filename(file):
    return getattr(file, "filename", str(file))


def print_dupes_table(results, whole_file=False, quiet=False,
                      human_readable=False, out=None):
    """Write a table of every duplicate group in ``results``; return the text."""
    out = out if out is not None else sys.stdout
    kind = "files" if whole_file else "extents"
    lines = [
        f"Simple read and compare of file data found {results.num_dupes} "
        f"instances of {kind} that might benefit from deduplication.\n"
    ]

    if not quiet and results.num_dupes:
        for dext in results:
            lines.append(
                f"Showing {dext.num_dupes} identical {kind} of length "
                f"{pretty_size(dext.length, human_readable)} with id "
                f"{_short_digest(dext.digest)}\n"
            )
            lines.append("Start\t\tFilename\n")
            lines.extend(
                f"{pretty_size(extent.loff, human_readable)}\t"
                f"\"{_filename(extent.file)}\"\n"
                for extent in list(dext.extents)
            )

    text = "".join(lines)
    out.write(text)
    return text


def disk_extent_grew(dext, extent):
    """Return True if the first physical extent is shorter than the duplicate.

    Such extents are worth deduplicating again: the files may have been
    appended to, or an unaligned tail was left behind earlier.
    """
    return extent.plen < dext.length


def clean_deduped(results, dext):
    """Drop extents of ``dext`` that appear to be deduplicated already.

    Returns ``dext``, or None when the whole group was removed from
    ``results``. Errs on the side of keeping extents.
    """
    if dext is None or dext.num_dupes == 0:
        return dext

    kept = 0
    snapshot = dext.sorted_extents
    for position, outer in enumerate(snapshot):
        if outer.parent is not dext:
            continue
        # The first extent is never removed here, but counts as kept when
        # it would have survived the checks below.
        if position == 0 and (outer.poff == 0 or disk_extent_grew(dext, outer)):
            kept += 1

        for inner in snapshot[position + 1:]:
            if inner.parent is not dext:
                continue
            if dext.num_dupes == 2 and kept:
                return dext
            # A zero physical offset means fiemap failed; keep the extent.
            if (inner.poff and outer.poff == inner.poff
                    and not disk_extent_grew(dext, inner)):
                log.debug(
                    "Remove extent (\"%s\", %d, %d)",
                    _filename(inner.file), inner.poff, inner.plen,
                )
                if results.remove_extent(inner) == 0:
                    return None
            else:
                kept += 1
    return dext


def shared_bytes(dext):
    """Return the sum of the shared byte counts of every extent in ``dext``."""
    return sum(extent.shared_bytes for extent in dext.extents)