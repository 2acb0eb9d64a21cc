"""Group hashed file blocks, find duplicate extents and plan their deduplication."""

__version__ = "0.1.0"

__all__ = [
    "find_dupes",
    "hash_tree",
    "memstats",
    "opt",
    "progress",
    "results_tree",
    "run_dedupe",
    "threads",
    "util",
]