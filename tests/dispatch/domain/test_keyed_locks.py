"""Tests for KeyedLocks — per-key mutual exclusion around assignment commits."""

import threading
import time

from dispatch.assignment.locks import KeyedLocks


class TestKeyedLocks:
    def test_same_key_is_exclusive(self):
        locks = KeyedLocks()
        order = []

        def worker(name):
            with locks.hold("order:1"):
                order.append(f"{name}-in")
                time.sleep(0.05)
                order.append(f"{name}-out")

        threads = [threading.Thread(target=worker, args=(n,)) for n in ("a", "b")]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        # No interleaving: each worker leaves before the other enters
        assert order[0].split("-")[0] == order[1].split("-")[0]
        assert order[2].split("-")[0] == order[3].split("-")[0]

    def test_different_keys_do_not_block(self):
        locks = KeyedLocks()
        with locks.hold("order:1"):
            acquired = threading.Event()

            def other():
                with locks.hold("order:2"):
                    acquired.set()

            t = threading.Thread(target=other)
            t.start()
            assert acquired.wait(1.0)
            t.join()

    def test_lock_released_after_exception(self):
        locks = KeyedLocks()
        try:
            with locks.hold("order:1", "courier:1"):
                raise RuntimeError("boom")
        except RuntimeError:
            pass
        with locks.hold("courier:1", "order:1"):
            pass

    def test_duplicate_keys_are_collapsed(self):
        locks = KeyedLocks()
        with locks.hold("order:1", "order:1"):
            pass


class TestKeyedLocksCleanup:
    def test_no_locks_kept_after_release(self):
        locks = KeyedLocks()
        for n in range(20):
            with locks.hold(f"order:{n}", f"courier:{n}"):
                assert len(locks) == 2
        assert len(locks) == 0

    def test_lock_kept_while_another_thread_waits(self):
        locks = KeyedLocks()
        entered = threading.Event()
        done = threading.Event()

        def waiter():
            with locks.hold("order:1"):
                entered.set()

        with locks.hold("order:1"):
            t = threading.Thread(target=lambda: (waiter(), done.set()))
            t.start()
            time.sleep(0.05)
            assert not entered.is_set()
            assert len(locks) == 1
        t.join(1.0)

        assert done.is_set()
        assert len(locks) == 0

    def test_cleanup_after_exception(self):
        locks = KeyedLocks()
        try:
            with locks.hold("order:1", "courier:1"):
                raise RuntimeError("boom")
        except RuntimeError:
            pass
        assert len(locks) == 0
