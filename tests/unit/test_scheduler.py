"""Unit tests for clocks and deferred action schedulers."""

import threading
import time
from datetime import datetime, timedelta, timezone

import pytest

from papertrade.simulator.clock import SystemClock, VirtualClock
from papertrade.simulator.scheduler import ThreadingScheduler, VirtualScheduler

START = datetime(2024, 1, 1, tzinfo=timezone.utc)


class TestClocks:
    """Test VirtualClock and SystemClock."""

    def test_virtual_clock_advance(self):
        clock = VirtualClock(START)
        clock.advance(1.5)
        assert clock.now() == START + timedelta(seconds=1.5)
        assert clock.epoch_ms() == 1704067201500

    def test_virtual_clock_never_goes_back(self):
        clock = VirtualClock(START)
        clock.set(START - timedelta(hours=1))
        assert clock.now() == START
        with pytest.raises(ValueError):
            clock.advance(-1)

    def test_system_clock_is_utc(self):
        assert SystemClock().now().tzinfo == timezone.utc


class TestVirtualScheduler:
    """Test VirtualScheduler."""

    def test_nothing_fires_before_due(self, virtual_clock):
        scheduler = VirtualScheduler(virtual_clock)
        fired = []
        scheduler.arm("a", 20.0, lambda: fired.append("a"))

        assert scheduler.advance(19.9) == 0
        assert fired == []
        assert scheduler.pending() == 1

        assert scheduler.advance(0.1) == 1
        assert fired == ["a"]
        assert scheduler.pending() == 0

    def test_fires_in_due_order_and_sets_clock(self, virtual_clock):
        scheduler = VirtualScheduler(virtual_clock)
        seen = []
        scheduler.arm("late", 30.0, lambda: seen.append(("late", virtual_clock.now())))
        scheduler.arm("early", 10.0, lambda: seen.append(("early", virtual_clock.now())))

        assert scheduler.advance(60.0) == 2
        assert seen == [
            ("early", START + timedelta(seconds=10)),
            ("late", START + timedelta(seconds=30)),
        ]
        assert virtual_clock.now() == START + timedelta(seconds=60)

    def test_ties_fire_in_arming_order(self, virtual_clock):
        scheduler = VirtualScheduler(virtual_clock)
        seen = []
        for key in ("x", "y", "z"):
            scheduler.arm(key, 5.0, lambda key=key: seen.append(key))
        scheduler.advance(5.0)
        assert seen == ["x", "y", "z"]

    def test_duplicate_key_ignored(self, virtual_clock, caplog):
        scheduler = VirtualScheduler(virtual_clock)
        assert scheduler.arm("trade_1", 10.0, lambda: None) is True
        assert scheduler.arm("trade_1", 5.0, lambda: None) is False
        assert scheduler.pending() == 1
        assert "already scheduled" in caplog.text

    def test_key_reusable_after_firing(self, virtual_clock):
        scheduler = VirtualScheduler(virtual_clock)
        scheduler.arm("k", 1.0, lambda: None)
        scheduler.advance(1.0)
        assert scheduler.arm("k", 1.0, lambda: None) is True

    def test_task_armed_by_task_fires_inside_window(self, virtual_clock):
        scheduler = VirtualScheduler(virtual_clock)
        seen = []

        def first():
            seen.append("first")
            scheduler.arm("second", 5.0, lambda: seen.append("second"))

        scheduler.arm("first", 5.0, first)
        assert scheduler.advance(12.0) == 2
        assert seen == ["first", "second"]

    def test_failing_task_is_logged(self, virtual_clock, caplog):
        scheduler = VirtualScheduler(virtual_clock)
        fired = []

        def boom():
            raise RuntimeError("boom")

        scheduler.arm("bad", 1.0, boom)
        scheduler.arm("good", 2.0, lambda: fired.append(True))
        assert scheduler.advance(5.0) == 2
        assert fired == [True]
        assert "Scheduled task bad failed" in caplog.text

    def test_run_all(self, virtual_clock):
        scheduler = VirtualScheduler(virtual_clock)
        scheduler.arm("a", 100.0, lambda: None)
        scheduler.arm("b", 3600.0, lambda: None)
        assert scheduler.next_due() == START + timedelta(seconds=100)
        assert scheduler.run_all() == 2
        assert scheduler.next_due() is None
        assert virtual_clock.now() == START + timedelta(seconds=3600)

    def test_negative_delay_rejected(self, virtual_clock):
        with pytest.raises(ValueError):
            VirtualScheduler(virtual_clock).arm("a", -1.0, lambda: None)


class TestThreadingScheduler:
    """Test ThreadingScheduler."""

    def test_fires_once(self):
        scheduler = ThreadingScheduler()
        done = threading.Event()
        assert scheduler.arm("a", 0.01, done.set)
        assert done.wait(timeout=2.0)

        deadline = time.monotonic() + 2.0
        while scheduler.pending() and time.monotonic() < deadline:
            time.sleep(0.01)
        assert scheduler.pending() == 0

    def test_shutdown_cancels_pending(self):
        scheduler = ThreadingScheduler()
        fired = threading.Event()
        scheduler.arm("a", 60.0, fired.set)
        assert scheduler.shutdown() == 1
        assert scheduler.pending() == 0
        assert scheduler.arm("b", 0.0, fired.set) is False
        assert not fired.is_set()

    def test_duplicate_key_ignored(self):
        scheduler = ThreadingScheduler()
        try:
            assert scheduler.arm("a", 60.0, lambda: None) is True
            assert scheduler.arm("a", 60.0, lambda: None) is False
        finally:
            scheduler.shutdown()
