"""
Per-key lock: retry count, re-entrancy, timeout
"""
import threading
import time

import pytest

from auction_engine.infrastructure.lock import AuctionLock


def test_uncontended_lock_has_no_retries():
    lock = AuctionLock()
    with lock.lock(1) as retry_count:
        assert retry_count == 0


def test_reentrant_for_same_thread():
    lock = AuctionLock(timeout=0.01, max_retries=1)
    with lock.lock(1):
        with lock.lock(1) as retry_count:
            assert retry_count == 0


def test_different_keys_do_not_contend():
    lock = AuctionLock(timeout=0.01, max_retries=1)
    with lock.lock(1):
        with lock.lock("alice"):
            pass


def test_times_out_when_held_elsewhere():
    lock = AuctionLock(timeout=0.01, retry_delay=0, max_retries=2)
    held = threading.Event()
    release = threading.Event()

    def holder():
        with lock.lock(1):
            held.set()
            release.wait(5)

    thread = threading.Thread(target=holder)
    thread.start()
    held.wait(5)
    try:
        with pytest.raises(TimeoutError):
            with lock.lock(1):
                pass
    finally:
        release.set()
        thread.join()

    with lock.lock(1) as retry_count:
        assert retry_count == 0


def test_entry_dropped_after_release():
    lock = AuctionLock()
    with lock.lock(1):
        with lock.lock(1):
            assert len(lock) == 1
        assert len(lock) == 1
    assert len(lock) == 0


def test_many_keys_leave_nothing_behind():
    lock = AuctionLock()
    for key in range(1000):
        with lock.lock(key):
            pass
    assert len(lock) == 0


def test_waiter_keeps_entry_until_it_is_done():
    lock = AuctionLock(timeout=0.5, retry_delay=0, max_retries=20)
    held = threading.Event()
    release = threading.Event()
    waited = []

    def holder():
        with lock.lock(1):
            held.set()
            release.wait(5)

    def waiter():
        with lock.lock(1) as retry_count:
            waited.append(retry_count)

    first = threading.Thread(target=holder)
    first.start()
    held.wait(5)
    second = threading.Thread(target=waiter)
    second.start()
    time.sleep(0.05)
    assert len(lock) == 1

    release.set()
    first.join()
    second.join()
    assert len(waited) == 1
    assert len(lock) == 0


def test_timeout_leaves_no_entry_of_its_own():
    lock = AuctionLock(timeout=0.01, retry_delay=0, max_retries=1)
    held = threading.Event()
    release = threading.Event()

    def holder():
        with lock.lock(1):
            held.set()
            release.wait(5)

    thread = threading.Thread(target=holder)
    thread.start()
    held.wait(5)
    try:
        with pytest.raises(TimeoutError):
            with lock.lock(1):
                pass
        assert len(lock) == 1
    finally:
        release.set()
        thread.join()
    assert len(lock) == 0
