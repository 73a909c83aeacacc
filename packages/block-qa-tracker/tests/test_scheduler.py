"""Tests for the sequential cycle scheduler."""

from __future__ import annotations

import signal
import threading

import pytest

from block_qa_tracker.errors import FetchError
from block_qa_tracker.scheduler import Scheduler, SchedulerState, install_signal_handlers


class FakeTime:
    """Monotonic clock that only moves when told to."""

    def __init__(self) -> None:
        self.now = 0.0

    def __call__(self) -> float:
        return self.now


class ClockedEvent(threading.Event):
    """Stop event whose wait() advances a FakeTime instead of sleeping."""

    def __init__(self, clock: FakeTime) -> None:
        super().__init__()
        self.clock = clock
        self.timeouts: list[float] = []

    def wait(self, timeout: float | None = None) -> bool:
        self.timeouts.append(timeout)
        if not self.is_set():
            self.clock.now += timeout or 0.0
        return self.is_set()


class TestScheduler:
    """Tests for Scheduler.run()."""

    def test_initial_cycle_then_interval_grid(self):
        """Fast cycles start at 0, 10, 20."""
        clock = FakeTime()
        stop = ClockedEvent(clock)
        starts = []

        def work():
            starts.append(clock.now)
            clock.now += 1.0
            if len(starts) == 3:
                stop.set()

        cycles = Scheduler(10.0, work, stop, clock=clock).run()

        assert cycles == 3
        assert starts == [0.0, 10.0, 20.0]
        assert stop.timeouts[:2] == [9.0, 9.0]

    def test_overrun_collapses_missed_ticks(self):
        """A cycle longer than the interval is followed immediately by one more, not a burst."""
        clock = FakeTime()
        stop = ClockedEvent(clock)
        starts = []

        def work():
            starts.append(clock.now)
            clock.now += 35.0
            if len(starts) == 2:
                stop.set()

        Scheduler(10.0, work, stop, clock=clock).run()

        assert starts == [0.0, 35.0]
        assert stop.timeouts == [0.0, 0.0]

    def test_cycles_never_overlap(self):
        in_flight = []
        overlaps = []
        stop = threading.Event()

        def work():
            if in_flight:
                overlaps.append(True)
            in_flight.append(True)
            try:
                if scheduler.cycles_run >= 5:
                    stop.set()
            finally:
                in_flight.pop()

        scheduler = Scheduler(0.001, work, stop)
        scheduler.run()

        assert scheduler.cycles_run == 5
        assert overlaps == []

    def test_errors_do_not_stop_schedule(self):
        stop = threading.Event()
        calls = []

        def work():
            calls.append(1)
            if len(calls) == 1:
                raise FetchError("firehose", None, "connection reset")
            if len(calls) == 2:
                raise RuntimeError("unexpected")
            stop.set()

        scheduler = Scheduler(0.001, work, stop)
        assert scheduler.run() == 3
        assert scheduler.cycles_failed == 2
        assert scheduler.state == SchedulerState.STOPPED

    def test_stop_before_run(self):
        calls = []
        scheduler = Scheduler(1.0, lambda: calls.append(1))
        scheduler.stop()
        assert scheduler.run() == 0
        assert calls == []

    def test_stop_during_cycle_lets_it_finish(self):
        stop = threading.Event()
        finished = []

        def work():
            stop.set()
            finished.append(True)

        assert Scheduler(60.0, work, stop).run() == 1
        assert finished == [True]

    @pytest.mark.parametrize("interval", [0, -1.0])
    def test_non_positive_interval_rejected(self, interval):
        with pytest.raises(ValueError):
            Scheduler(interval, lambda: None)


class TestSignalHandlers:
    """Tests for install_signal_handlers()."""

    @pytest.mark.parametrize("signum", [signal.SIGINT, signal.SIGTERM])
    def test_signal_sets_stop_event(self, signum):
        previous = {s: signal.getsignal(s) for s in (signal.SIGINT, signal.SIGTERM)}
        stop = threading.Event()
        try:
            install_signal_handlers(stop)
            signal.raise_signal(signum)
            assert stop.is_set()
        finally:
            for s, handler in previous.items():
                signal.signal(s, handler)
