# dupfind

`dupfind` is a library for finding duplicated data between files, working from
block hashes. You give it a hash for each block of each file. It groups
identical blocks, walks runs of matching blocks to build duplicate extents,
and decides which of those extents are still worth deduplicating.

## Installation

Install it with any PEP 517 installer. It depends on `sortedcontainers`; the
`test` extra also pulls in pytest.

## Modules

- `dupfind.hash_tree` — `HashTree` collects `FileBlock` records under one
  `DupeBlocksList` per digest.
  - `insert_hashed_block(digest, file, loff)` adds a block and returns it; a
    second block at the same offset of the same file raises `ValueError`.
  - `remove_hashed_block(block)` returns `True` when the digest's list became
    empty.
  - `find_block_list`, `find_file_block`, `next_file_block` (the same file's
    block at the next higher offset) and `file_blocks_for_hash` look blocks
    up.
  - `duplicated_lists()` returns the lists that have held more than one block,
    newest first. `clear()` empties the tree.
  - The module also defines the flag constants `FIEMAP_SKIP_FLAGS` and
    `FILE_INLINED`.
- `dupfind.results_tree` — `ResultsTree` holds duplicate extents, grouped into
  `DupeExtents` by length and digest and ordered that way when iterated.
  - `insert_result(digest, recs, startoff, endoff)` records a matching pair of
    ranges and returns how many extents were new.
  - `insert_one_result(digest, file, startoff, length, poff)` records one
    extent. It returns the new `Extent`, or `None` if the extent was already
    there.
  - `remove_extent(extent)` returns how many extents remain in the group. A
    group left with a single extent is emptied and dropped.
  - `free_dupe_extents(dext)` and `clear()` remove whole groups.
- `dupfind.find_dupes` searches inside extents that are not yet deduplicated
  for further matches.
  - `block_len(block, blocksize)` gives the bytes a block covers.
  - `compare_extents` walks two files block by block and records matches.
  - `search_extent` and `find_additional_dedupe` drive that search. The
    second one runs on `options.cpu_threads` worker threads.
  - Extents are described by `FileExtent`. The search gets them from callbacks
    that you pass in: `load_nondupe_extents(file)` and
    `load_extent(file, loff)`. Files must have a `size` attribute.
  - `SearchProgress` draws a 40-cell bar while the search runs, but only when
    the output is a terminal.
- `dupfind.run_dedupe` — helpers that run before deduplication.
  - `print_dupes_table` writes the table of duplicate groups and returns its
    text.
  - `clean_deduped(results, dext)` drops extents that already share a
    physical offset. It returns `None` when the whole group went away.
  - `disk_extent_grew` reports whether an extent's physical length is shorter
    than the group's length.
  - `shared_bytes` sums the `shared_bytes` of a group's extents.
- `dupfind.progress` — `ScanProgress` tracks a scan that uses several threads.
  It draws one line per `ThreadProgress` followed by three total lines.
  - On a terminal the area is redrawn in place. Otherwise lines are only
    appended.
  - `run()` and `join()` start and stop the drawing thread.
  - `print(text)` writes above the progress area.
- `dupfind.util` has these helpers:
  - `parse_size` accepts sizes with a suffix `b`, `k`, `m`, `g`, `t`, `p` or
    `e`, each a power of 1024. It raises `ValueError` for a malformed size.
  - `pretty_size` formats a size as a plain number or, if asked, in human
    readable form such as `1.5KB`.
  - `num_digits` counts the digits of a number.
  - `get_core_count` and `get_num_cpus` count CPUs. `get_core_count` runs
    `lscpu -p`. `get_num_cpus` falls back first to sysfs, then to
    `os.cpu_count()`.
  - `increase_limits` raises the open-file soft limit to the hard limit.
  - `ElapsedTime` is a small timer.
- Other modules:
  - `dupfind.opt.Options` is a dataclass of run settings. `validate()` checks
    types and rejects negative counts.
  - `dupfind.threads.WorkerPool` is a thread pool usable as a context manager.
    It runs the cleanups registered with `register_cleanup` when it closes,
    then re-raises any worker error.
  - `dupfind.memstats.AllocTracker` counts live and peak objects, and
    `format_mem_stats` reports a set of trackers.

## Example

```python
from dupfind.hash_tree import HashTree
from dupfind.results_tree import ResultsTree
from dupfind.run_dedupe import print_dupes_table
from dupfind.util import parse_size, pretty_size

blocksize = parse_size("128k")          # 131072

tree = HashTree()
digest = bytes(16)
tree.insert_hashed_block(digest, "a.img", 0)
tree.insert_hashed_block(digest, "b.img", 0)

for blocklist in tree.duplicated_lists():
    print(blocklist.digest.hex(), blocklist.num_elem, blocklist.num_files)

results = ResultsTree()
results.insert_result(digest, ("a.img", "b.img"), (0, 0),
                      (blocksize - 1, blocksize - 1))   # returns 2
print_dupes_table(results, human_readable=True)

print(pretty_size(1536, True))          # 1.5KB
print(pretty_size(1536, False))         # 1536
```

## What it does not do

`dupfind` works only on data you hand it. It does not:

- walk directories or read files;
- compute block hashes;
- store hashes in a hashfile;
- query extent maps from the filesystem;
- ask the kernel to deduplicate anything.

It installs no command-line program.