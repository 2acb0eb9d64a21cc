"""Blocks grouped by content hash, with a per-file index ordered by offset."""

from __future__ import annotations

import bisect
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from sortedcontainers import SortedDict

# Extent flags reported by the kernel's fiemap interface.
FIEMAP_EXTENT_DATA_INLINE = 0x00000200
FIEMAP_EXTENT_UNWRITTEN = 0x00000800
# Extents carrying any of these flags cannot be deduplicated.
FIEMAP_SKIP_FLAGS = FIEMAP_EXTENT_DATA_INLINE | FIEMAP_EXTENT_UNWRITTEN

# Hashfile flag: the file is inlined, so no extents or hashes are stored
# for it and it must not be deduplicated.
FILE_INLINED = 0x0001


@dataclass(eq=False)
class FileBlock:
    """One hashed block of a file at logical offset ``loff``."""

    parent: "DupeBlocksList"
    file: Any
    loff: int

    @property
    def digest(self):
        return self.parent.digest


@dataclass(eq=False)
class DupeBlocksList:
    """All blocks that share one digest."""

    digest: bytes
    blocks: List[FileBlock] = field(default_factory=list)
    files: Dict[Any, List[FileBlock]] = field(default_factory=dict)

    @property
    def num_elem(self):
        return len(self.blocks)

    @property
    def num_files(self):
        return len(self.files)


class HashTree:
    """Index of hashed blocks by digest and by (file, offset)."""

    def __init__(self):
        self._lists: SortedDict = SortedDict()
        self._file_trees: Dict[Any, SortedDict] = {}
        self._size_list: Dict[bytes, DupeBlocksList] = {}
        self.num_blocks = 0

    @property
    def num_hashes(self):
        return len(self._lists)

    def insert_hashed_block(self, digest, file, loff):
        """Add a block of ``file`` at ``loff`` with the given digest.

        Returns the new FileBlock. Raises ValueError if the file already
        has a block at that offset.
        """
        digest = bytes(digest)
        tree = self._file_trees.get(file)
        if tree is not None and loff in tree:
            raise ValueError(f"file already has a block at offset {loff}")

        blocklist = self._lists.get(digest)
        if blocklist is None:
            blocklist = DupeBlocksList(digest)
            self._lists[digest] = blocklist

        block = FileBlock(blocklist, file, loff)
        heads = blocklist.files.setdefault(file, [])
        bisect.insort(heads, block, key=lambda b: b.loff)

        if tree is None:
            tree = self._file_trees[file] = SortedDict()
        tree[loff] = block

        blocklist.blocks.append(block)
        if blocklist.num_elem > 1 and digest not in self._size_list:
            self._size_list[digest] = blocklist

        self.num_blocks += 1
        return block

    def remove_hashed_block(self, block):
        """Remove ``block``; return True if its digest list became empty."""
        tree = self._file_trees.get(block.file)
        if tree is None or tree.get(block.loff) is not block:
            raise ValueError("block is not in this tree")

        del tree[block.loff]
        if not tree:
            del self._file_trees[block.file]

        blocklist = block.parent
        blocklist.blocks.remove(block)
        heads = blocklist.files[block.file]
        heads.remove(block)
        if not heads:
            del blocklist.files[block.file]

        self.num_blocks -= 1
        if not blocklist.blocks:
            del self._lists[blocklist.digest]
            self._size_list.pop(blocklist.digest, None)
            return True
        return False

    def find_block_list(self, digest):
        """Return the DupeBlocksList for ``digest``, or None."""
        return self._lists.get(bytes(digest))

    def find_file_block(self, file, loff):
        """Return the block of ``file`` at exactly ``loff``, or None."""
        tree = self._file_trees.get(file)
        if tree is None:
            return None
        return tree.get(loff)

    def next_file_block(self, block):
        """Return the block of the same file at the next higher offset, or None."""
        tree = self._file_trees.get(block.file)
        if tree is None:
            return None
        index = tree.bisect_right(block.loff)
        if index >= len(tree):
            return None
        return tree.peekitem(index)[1]

    def file_blocks_for_hash(self, blocklist, file):
        """Return the blocks of ``file`` in ``blocklist``, by increasing offset."""
        return list(blocklist.files.get(file, ()))

    def duplicated_lists(self):
        """Return the lists that have held more than one block, newest first."""
        return list(reversed(self._size_list.values()))

    def clear(self):
        """Remove every block from the tree."""
        for blocklist in list(self._lists.values()):
            for block in list(blocklist.blocks):
                if self.remove_hashed_block(block):
                    break

    def __iter__(self):
        return iter(list(self._lists.values()))