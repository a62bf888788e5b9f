"""Deferred action schedulers used for auto-sell (and delayed buys)."""

import heapq
import itertools
import logging
import threading
from abc import ABC, abstractmethod
from datetime import datetime, timedelta
from typing import Callable, Dict, List, Optional, Tuple

from papertrade.simulator.clock import VirtualClock

logger = logging.getLogger(__name__)

Action = Callable[[], object]


class SchedulerInterface(ABC):
    """
    Schedules exactly one deferred invocation per key.

    There is no cancel call. A task that fires after its position was settled
    elsewhere is neutralised by the engine's close guard.
    """

    @abstractmethod
    def arm(self, key: str, delay_seconds: float, action: Action) -> bool:
        """
        Schedule ``action`` to run once after ``delay_seconds``.

        Returns:
            True if scheduled, False if a task with this key is already pending.
        """
        pass

    @abstractmethod
    def pending(self) -> int:
        """Number of tasks not yet fired."""
        pass

    @staticmethod
    def _run(key: str, action: Action) -> None:
        """Run an action, logging rather than propagating its failure."""
        try:
            action()
        except Exception as e:
            logger.error(f"Scheduled task {key} failed: {e}", exc_info=True)


class VirtualScheduler(SchedulerInterface):
    """
    Task queue driven by a VirtualClock.

    Nothing fires until ``advance`` or ``run_all`` is called. Tasks fire in
    due-time order (arming order breaks ties) and the clock is moved to each
    task's due time before it runs, so trade timestamps line up with the
    schedule.

    Example:
        >>> clock = VirtualClock()
        >>> scheduler = VirtualScheduler(clock)
        >>> scheduler.arm("trade_1", 20.0, lambda: print("sell"))
        True
        >>> scheduler.advance(25.0)
        sell
        1
    """

    def __init__(self, clock: Optional[VirtualClock] = None):
        self.clock = clock or VirtualClock()
        self._queue: List[Tuple[datetime, int, str, Action]] = []
        self._keys: set = set()
        self._seq = itertools.count()
        self._lock = threading.Lock()

    def arm(self, key: str, delay_seconds: float, action: Action) -> bool:
        if delay_seconds < 0:
            raise ValueError("delay_seconds must be >= 0")
        with self._lock:
            if key in self._keys:
                logger.warning(f"Task {key} already scheduled, ignoring")
                return False
            due = self.clock.now() + timedelta(seconds=delay_seconds)
            heapq.heappush(self._queue, (due, next(self._seq), key, action))
            self._keys.add(key)
        logger.debug(f"Scheduled {key} in {delay_seconds:.2f}s (due {due.isoformat()})")
        return True

    def advance(self, seconds: float) -> int:
        """
        Advance virtual time, firing every task that becomes due.

        Tasks armed by a firing task are honoured if they fall inside the
        window.

        Returns:
            Number of tasks fired.
        """
        if seconds < 0:
            raise ValueError("seconds must be >= 0")
        target = self.clock.now() + timedelta(seconds=seconds)
        fired = 0

        while True:
            task = self._pop_due(target)
            if task is None:
                break
            due, key, action = task
            self.clock.set(due)
            self._run(key, action)
            fired += 1

        self.clock.set(target)
        return fired

    def run_all(self) -> int:
        """Fire every pending task, advancing the clock as far as needed."""
        fired = 0
        while True:
            with self._lock:
                if not self._queue:
                    return fired
                next_due = self._queue[0][0]
            fired += self.advance(max((next_due - self.clock.now()).total_seconds(), 0.0))

    def next_due(self) -> Optional[datetime]:
        """Due time of the earliest pending task."""
        with self._lock:
            return self._queue[0][0] if self._queue else None

    def pending(self) -> int:
        with self._lock:
            return len(self._queue)

    def _pop_due(self, target: datetime) -> Optional[Tuple[datetime, str, Action]]:
        with self._lock:
            if not self._queue or self._queue[0][0] > target:
                return None
            due, _, key, action = heapq.heappop(self._queue)
            self._keys.discard(key)
            return due, key, action


class ThreadingScheduler(SchedulerInterface):
    """
    Real-time scheduler backed by one daemon ``threading.Timer`` per task.

    Actions run on timer threads, concurrently with the event feed.
    """

    def __init__(self):
        self._timers: Dict[str, threading.Timer] = {}
        self._lock = threading.Lock()
        self._closed = False

    def arm(self, key: str, delay_seconds: float, action: Action) -> bool:
        if delay_seconds < 0:
            raise ValueError("delay_seconds must be >= 0")
        with self._lock:
            if self._closed:
                logger.warning(f"Scheduler shut down, not scheduling {key}")
                return False
            if key in self._timers:
                logger.warning(f"Task {key} already scheduled, ignoring")
                return False
            timer = threading.Timer(delay_seconds, self._fire, args=(key, action))
            timer.daemon = True
            self._timers[key] = timer
            timer.start()
        logger.debug(f"Scheduled {key} in {delay_seconds:.2f}s")
        return True

    def _fire(self, key: str, action: Action) -> None:
        # Counted as pending until the action has returned
        self._run(key, action)
        with self._lock:
            self._timers.pop(key, None)

    def pending(self) -> int:
        with self._lock:
            return len(self._timers)

    def shutdown(self) -> int:
        """
        Cancel every pending timer.

        Returns:
            Number of timers cancelled.
        """
        with self._lock:
            self._closed = True
            timers = list(self._timers.values())
            self._timers.clear()
        for timer in timers:
            timer.cancel()
        if timers:
            logger.info(f"Cancelled {len(timers)} pending scheduled task(s)")
        return len(timers)
