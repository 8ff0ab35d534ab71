"""Tests for LockManager and SideEffectDispatcher."""

import threading
import time

from trade_risk.engine import LockManager, SideEffectDispatcher


class TestLockManager:
    def test_same_key_reuses_lock(self):
        locks = LockManager()
        with locks.holding(1, 2):
            assert locks.is_locked(("holding", 1, 2))
        assert not locks.is_locked(("holding", 1, 2))
        with locks.holding(1, 2):
            pass
        assert len(locks) == 1

    def test_different_keys_do_not_contend(self):
        locks = LockManager()
        entered = threading.Event()

        def other():
            with locks.holding(1, 3):
                entered.set()

        with locks.holding(1, 2):
            t = threading.Thread(target=other)
            t.start()
            assert entered.wait(timeout=2)
            t.join()

    def test_same_key_is_exclusive(self):
        locks = LockManager()
        active = []
        overlap = []

        def worker():
            with locks.holding(7, 7):
                active.append(1)
                if len(active) > 1:
                    overlap.append(True)
                time.sleep(0.01)
                active.pop()

        threads = [threading.Thread(target=worker) for _ in range(5)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert overlap == []

    def test_released_on_exception(self):
        locks = LockManager()
        try:
            with locks.holding(1, 1):
                raise ValueError("boom")
        except ValueError:
            pass
        assert not locks.is_locked(("holding", 1, 1))


class TestSideEffectDispatcher:
    def test_synchronous_runs_inline(self):
        calls = []
        dispatcher = SideEffectDispatcher(synchronous=True)
        dispatcher.submit("append", calls.append, 1)
        assert calls == [1]

    def test_failures_are_swallowed_and_counted(self):
        dispatcher = SideEffectDispatcher(synchronous=True)

        def fail():
            raise RuntimeError("nope")

        dispatcher.submit("fail", fail)
        dispatcher.submit("fail-again", fail)
        assert dispatcher.failures == 2

    def test_background_pool(self):
        done = threading.Event()
        dispatcher = SideEffectDispatcher(max_workers=1)
        try:
            dispatcher.submit("set", done.set)
            dispatcher.drain(timeout=5)
            assert done.is_set()
        finally:
            dispatcher.shutdown()

    def test_submit_after_shutdown_is_ignored(self):
        dispatcher = SideEffectDispatcher(max_workers=1)
        dispatcher.shutdown()
        dispatcher.submit("late", lambda: None)
        assert dispatcher.failures == 0

    def test_zero_workers_runs_inline(self):
        calls = []
        dispatcher = SideEffectDispatcher(max_workers=0)
        dispatcher.submit("append", calls.append, 1)
        assert calls == [1]
