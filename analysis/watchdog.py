"""
Liveness Watchdog for the Dining Philosophers Deadlock Simulator.

An event sink that watches meals. When no philosopher starts eating for
``stall_timeout`` seconds the table is considered stalled; the simulator
then runs deadlock detection on a table snapshot.
"""

import threading
import time
from typing import Dict, Optional

from analysis.events import EventType, TableEvent


class LivenessWatchdog:
    """
    Tracks eating progress per philosopher.

    Attributes:
        stall_timeout: Seconds without a meal that count as a stall
        meals: EATING events seen per philosopher
    """

    def __init__(self, stall_timeout: float = 3.0):
        self.stall_timeout = stall_timeout
        self.meals: Dict[int, int] = {}
        self.total_meals = 0
        self._last_progress = time.monotonic()
        self._cond = threading.Condition(threading.Lock())

    def add(self, event: TableEvent) -> None:
        """Event sink hook."""
        if event.event_type != EventType.EATING:
            return
        with self._cond:
            self.meals[event.philosopher_id] = self.meals.get(event.philosopher_id, 0) + 1
            self.total_meals += 1
            self._last_progress = time.monotonic()
            self._cond.notify_all()

    def reset(self) -> None:
        """Restart the stall clock (call when the table starts)."""
        with self._cond:
            self._last_progress = time.monotonic()

    def seconds_since_progress(self) -> float:
        with self._cond:
            return time.monotonic() - self._last_progress

    def stalled(self) -> bool:
        """True when no philosopher has started eating within ``stall_timeout``."""
        return self.seconds_since_progress() >= self.stall_timeout

    def wait_for_meals(self, total: int, timeout: Optional[float] = None) -> bool:
        """
        Block until at least ``total`` meals have been eaten.

        Returns:
            True if reached, False on timeout
        """
        with self._cond:
            return self._cond.wait_for(lambda: self.total_meals >= total, timeout)

    def wait_for_everyone(self, num_philosophers: int, meals_each: int = 1,
                          timeout: Optional[float] = None) -> bool:
        """
        Block until every philosopher has eaten at least ``meals_each`` times.

        Returns:
            True if reached, False on timeout
        """
        def everyone_ate():
            return all(self.meals.get(pid, 0) >= meals_each for pid in range(num_philosophers))

        with self._cond:
            return self._cond.wait_for(everyone_ate, timeout)

    def hungry(self, num_philosophers: int) -> list:
        """PIDs that have not eaten yet."""
        with self._cond:
            return [pid for pid in range(num_philosophers) if self.meals.get(pid, 0) == 0]
