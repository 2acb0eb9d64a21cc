import threading

import pytest

from dupfind.memstats import AllocTracker, format_mem_stats


def test_allocate_and_free_track_count_and_peak():
    tracker = AllocTracker("file_block", 16)
    tracker.allocate()
    tracker.allocate(4)
    tracker.free()
    tracker.free()
    assert tracker.count == 3
    assert tracker.max_count == 5


def test_totals_follow_item_size():
    tracker = AllocTracker("extent", 8)
    tracker.allocate(3)
    assert tracker.total == tracker.count * tracker.item_size
    assert tracker.max_total == tracker.max_count * tracker.item_size


def test_report_format():
    tracker = AllocTracker("extent", 8)
    tracker.allocate(3)
    tracker.free()
    assert tracker.report() == (
        "struct extent num: 2 sizeof: 8 total: 16 max: 3 max total: 24"
    )


def test_free_without_allocation_raises():
    tracker = AllocTracker("filerec", 32)
    with pytest.raises(ValueError):
        tracker.free()
    assert tracker.count == 0


def test_negative_allocate_raises():
    tracker = AllocTracker("filerec", 32)
    with pytest.raises(ValueError):
        tracker.allocate(-1)


def test_concurrent_allocations():
    tracker = AllocTracker("dupe_extents", 64)

    def work():
        for _ in range(1000):
            tracker.allocate()

    threads = [threading.Thread(target=work) for _ in range(8)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()
    assert tracker.count == 8000
    assert tracker.max_count == tracker.count


def test_format_mem_stats_lists_every_tracker():
    trackers = [AllocTracker("file_block", 16), AllocTracker("extent", 8)]
    trackers[0].allocate(2)
    lines = format_mem_stats(trackers).splitlines()
    assert len(lines) == 3
    assert lines[1:] == [tracker.report() for tracker in trackers]
    assert "statistics" in lines[0]