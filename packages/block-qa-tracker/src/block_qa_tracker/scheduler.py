"""Periodic, strictly sequential cycle scheduler.

One cycle runs immediately, then one per interval, on the calling thread.
Because the same thread runs the cycle and waits for the next tick, a tick
can never start a cycle while the previous one is still running. When a
cycle overruns the interval the next one starts as soon as it returns.

The stop event is only looked at between cycles; an in-flight cycle always
runs to completion.
"""

from __future__ import annotations

import signal
import threading
import time
from collections.abc import Callable
from enum import Enum
from typing import Any

from loguru import logger

from block_qa_tracker.errors import CycleError
from block_qa_tracker.interval import format_interval
from block_qa_tracker.telemetry import log_cycle_start


class SchedulerState(str, Enum):
    IDLE = "idle"
    RUNNING = "running"
    WAITING = "waiting"
    STOPPED = "stopped"


class Scheduler:
    """Run a unit of work now and then once per interval until stopped.

    Args:
        interval_seconds: Time between cycle starts
        work: One fetch-compare-report cycle; its errors are logged, not raised
        stop_event: Set to stop the loop at the next wait point
        clock: Monotonic time source
    """

    def __init__(
        self,
        interval_seconds: float,
        work: Callable[[], Any],
        stop_event: threading.Event | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if interval_seconds <= 0:
            raise ValueError("interval_seconds must be positive")
        self.interval_seconds = interval_seconds
        self.work = work
        self.stop_event = stop_event or threading.Event()
        self.clock = clock
        self.state = SchedulerState.IDLE
        self.cycles_run = 0
        self.cycles_failed = 0

    def stop(self) -> None:
        """Request a stop; honoured before the next cycle starts."""
        self.stop_event.set()

    def _run_once(self, trigger: str) -> None:
        self.state = SchedulerState.RUNNING
        self.cycles_run += 1
        log_cycle_start(self.cycles_run, trigger)
        logger.info(f"Running {trigger} block comparison")
        try:
            self.work()
        except CycleError as e:
            self.cycles_failed += 1
            logger.error(f"Error in {trigger} block comparison: {e}")
        except Exception as e:  # noqa: BLE001
            self.cycles_failed += 1
            logger.opt(exception=e).error(f"Unexpected error in {trigger} block comparison: {e}")

    def run(self) -> int:
        """Run until the stop event is set.

        Returns:
            Number of cycles executed
        """
        logger.info(f"Starting block QA tracker, interval {format_interval(self.interval_seconds)}")
        if self.stop_event.is_set():
            self.state = SchedulerState.STOPPED
            return 0

        next_tick = self.clock() + self.interval_seconds
        self._run_once("initial")

        while True:
            self.state = SchedulerState.WAITING
            if self.stop_event.wait(max(0.0, next_tick - self.clock())):
                break
            now = self.clock()
            next_tick += self.interval_seconds
            if next_tick <= now:
                # Missed ticks collapse into the one that is firing now
                next_tick = now + self.interval_seconds
            self._run_once("periodic")

        self.state = SchedulerState.STOPPED
        logger.info(f"Tracker stopped after {self.cycles_run} cycles ({self.cycles_failed} failed)")
        return self.cycles_run


def install_signal_handlers(stop_event: threading.Event) -> None:
    """Set stop_event on SIGINT or SIGTERM instead of raising.

    Must be called from the main thread.
    """

    def _handle(signum: int, _frame: Any) -> None:
        logger.info(f"Received {signal.Signals(signum).name}, stopping after the current cycle")
        stop_event.set()

    signal.signal(signal.SIGINT, _handle)
    signal.signal(signal.SIGTERM, _handle)
