import threading

import pytest

from dupfind.threads import WorkerPool


def test_all_items_processed_with_arg():
    seen = []
    lock = threading.Lock()

    def work(item, arg):
        with lock:
            seen.append((item, arg))

    with WorkerPool(work, "ctx", 4) as pool:
        for item in range(50):
            pool.push(item)
    assert sorted(seen) == [(item, "ctx") for item in range(50)]


def test_push_returns_future_with_result():
    pool = WorkerPool(lambda item, arg: item + arg, 10, 2)
    future = pool.push(5)
    pool.close()
    assert future.result() == 15


def test_cleanups_run_in_order_after_work():
    events = []
    lock = threading.Lock()

    def work(item, pool):
        with lock:
            events.append(("work", item))

    pool = WorkerPool(work, None, 1)
    pool.register_cleanup(lambda ptr: events.append(("cleanup", ptr)), "a")
    pool.register_cleanup(lambda ptr: events.append(("cleanup", ptr)), "b")
    for item in range(3):
        pool.push(item)
    pool.close()
    assert events[-2:] == [("cleanup", "a"), ("cleanup", "b")]
    assert sorted(e for e in events if e[0] == "work") == [("work", i) for i in range(3)]


def test_workers_can_register_cleanups():
    released = []
    holder = {}

    def work(item, arg):
        holder["pool"].register_cleanup(released.append, item)
        return item * 2

    pool = WorkerPool(work, None, 3)
    holder["pool"] = pool
    futures = [pool.push(item) for item in range(10)]
    pool.close()
    assert [future.result() for future in futures] == [item * 2 for item in range(10)]
    assert sorted(released) == list(range(10))


def test_zero_workers_rejected():
    with pytest.raises(ValueError):
        WorkerPool(lambda item, arg: None, None, 0)


def test_push_after_close_raises():
    pool = WorkerPool(lambda item, arg: None, None, 1)
    pool.close()
    with pytest.raises(RuntimeError):
        pool.push(1)


def test_worker_error_raised_after_cleanups():
    cleaned = []

    def work(item, arg):
        raise KeyError(item)

    pool = WorkerPool(work, None, 1)
    pool.register_cleanup(cleaned.append, "done")
    pool.push("bad")
    with pytest.raises(KeyError):
        pool.close()
    assert cleaned == ["done"]


def test_close_is_idempotent():
    calls = []
    pool = WorkerPool(lambda item, arg: None, None, 1)
    pool.register_cleanup(calls.append, 1)
    pool.close()
    pool.close()
    assert calls == [1]