"""Tests for the per-key lock table."""

import threading
import time

from geogate.quota import KeyedLock


class TestKeyedLock:
    def test_same_key_serializes(self) -> None:
        locks = KeyedLock()
        inside = 0
        peak = 0
        guard = threading.Lock()

        def work() -> None:
            nonlocal inside, peak
            with locks.hold("k"):
                with guard:
                    inside += 1
                    peak = max(peak, inside)
                time.sleep(0.01)
                with guard:
                    inside -= 1

        threads = [threading.Thread(target=work) for _ in range(6)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert peak == 1

    def test_different_keys_do_not_block(self) -> None:
        locks = KeyedLock()
        acquired = threading.Event()

        def other() -> None:
            with locks.hold("b"):
                acquired.set()

        with locks.hold("a"):
            thread = threading.Thread(target=other)
            thread.start()
            assert acquired.wait(timeout=2)
            thread.join()

    def test_entries_released(self) -> None:
        locks = KeyedLock()
        with locks.hold("a"):
            assert len(locks) == 1
        assert len(locks) == 0

    def test_released_on_exception(self) -> None:
        locks = KeyedLock()
        try:
            with locks.hold("a"):
                raise RuntimeError("boom")
        except RuntimeError:
            pass
        assert len(locks) == 0
        with locks.hold("a"):
            pass
