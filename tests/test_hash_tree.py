from dataclasses import dataclass

import pytest

from dupfind.hash_tree import HashTree


@dataclass(eq=False)
class Rec:
    filename: str
    size: int = 0


DIGEST_A = b"\x01" * 16
DIGEST_B = b"\x02" * 16
DIGEST_C = b"\x00" * 16


def test_insert_and_find_block_list():
    tree = HashTree()
    a, b = Rec("a"), Rec("b")
    block = tree.insert_hashed_block(DIGEST_A, a, 0)
    tree.insert_hashed_block(DIGEST_A, b, 4096)
    blocklist = tree.find_block_list(DIGEST_A)
    assert blocklist is block.parent
    assert blocklist.num_elem == 2
    assert blocklist.num_files == 2
    assert tree.num_blocks == 2
    assert tree.num_hashes == 1
    assert tree.find_block_list(DIGEST_B) is None


def test_duplicate_offset_rejected():
    tree = HashTree()
    a = Rec("a")
    tree.insert_hashed_block(DIGEST_A, a, 0)
    with pytest.raises(ValueError):
        tree.insert_hashed_block(DIGEST_B, a, 0)
    assert tree.num_blocks == 1


def test_file_blocks_walk_in_offset_order():
    tree = HashTree()
    a = Rec("a")
    for loff in (8192, 0, 4096):
        tree.insert_hashed_block(DIGEST_A, a, loff)
    first = tree.find_file_block(a, 0)
    assert first.loff == 0
    second = tree.next_file_block(first)
    assert second.loff == 4096
    third = tree.next_file_block(second)
    assert third.loff == 8192
    assert tree.next_file_block(third) is None
    assert tree.find_file_block(a, 100) is None


def test_file_blocks_for_hash_sorted():
    tree = HashTree()
    a, b = Rec("a"), Rec("b")
    for loff in (12288, 0, 4096):
        tree.insert_hashed_block(DIGEST_A, a, loff)
    tree.insert_hashed_block(DIGEST_A, b, 0)
    blocklist = tree.find_block_list(DIGEST_A)
    offsets = [blk.loff for blk in tree.file_blocks_for_hash(blocklist, a)]
    assert offsets == sorted(offsets)
    assert len(offsets) == 3
    assert tree.file_blocks_for_hash(blocklist, Rec("c")) == []


def test_remove_reports_empty_list():
    tree = HashTree()
    a, b = Rec("a"), Rec("b")
    first = tree.insert_hashed_block(DIGEST_A, a, 0)
    second = tree.insert_hashed_block(DIGEST_A, b, 0)
    assert tree.remove_hashed_block(first) is False
    assert tree.find_file_block(a, 0) is None
    assert tree.find_block_list(DIGEST_A).num_files == 1
    assert tree.remove_hashed_block(second) is True
    assert tree.find_block_list(DIGEST_A) is None
    assert tree.num_blocks == 0
    assert tree.num_hashes == 0


def test_remove_unknown_block_raises():
    tree = HashTree()
    other = HashTree()
    block = other.insert_hashed_block(DIGEST_A, Rec("a"), 0)
    with pytest.raises(ValueError):
        tree.remove_hashed_block(block)


def test_duplicated_lists_only_shared_hashes():
    tree = HashTree()
    a, b = Rec("a"), Rec("b")
    tree.insert_hashed_block(DIGEST_A, a, 0)
    tree.insert_hashed_block(DIGEST_A, b, 0)
    tree.insert_hashed_block(DIGEST_B, a, 4096)
    tree.insert_hashed_block(DIGEST_C, a, 8192)
    tree.insert_hashed_block(DIGEST_C, b, 8192)
    digests = [bl.digest for bl in tree.duplicated_lists()]
    assert digests == [DIGEST_C, DIGEST_A]


def test_iteration_in_digest_order_and_clear():
    tree = HashTree()
    a = Rec("a")
    tree.insert_hashed_block(DIGEST_B, a, 0)
    tree.insert_hashed_block(DIGEST_C, a, 4096)
    tree.insert_hashed_block(DIGEST_A, a, 8192)
    assert [bl.digest for bl in tree] == sorted([DIGEST_A, DIGEST_B, DIGEST_C])
    tree.clear()
    assert list(tree) == []
    assert tree.num_blocks == 0
    assert tree.find_file_block(a, 0) is None