"""
Chopstick model for the Dining Philosophers Deadlock Simulator.

Represents a single-instance, exclusive-use resource shared by two
neighbouring philosophers.
"""

import threading
import time
from typing import Optional


class Chopstick:
    """
    Binary exclusive-use token in the resource ring.

    Attributes:
        chopstick_id: Position in the ring (0..N-1)
        acquisitions: Number of successful acquisitions so far
        releases: Number of releases so far

    Invariant:
        At most one philosopher holds the chopstick at any instant, and only
        that philosopher may release it.
    """

    def __init__(self, chopstick_id: int):
        self.chopstick_id = chopstick_id
        self.acquisitions = 0
        self.releases = 0
        self._holder: Optional[int] = None
        self._cond = threading.Condition(threading.Lock())

    @property
    def holder(self) -> Optional[int]:
        """PID of the current holder, or None when free."""
        with self._cond:
            return self._holder

    @property
    def is_held(self) -> bool:
        return self.holder is not None

    def acquire(self, holder: int, cancel: Optional[threading.Event] = None) -> bool:
        """
        Block until the chopstick is free, then take it for ``holder``.

        Implements Mutual Exclusion: the free -> held transition happens
        under the chopstick's lock.

        Args:
            holder: PID of the acquiring philosopher
            cancel: Optional stop signal; checked every time the waiter wakes

        Returns:
            True once held, False if ``cancel`` is set before the grant
        """
        with self._cond:
            while True:
                if cancel is not None and cancel.is_set():
                    return False
                if self._holder is None:
                    break
                self._cond.wait()
            self._grant(holder)
            return True

    def try_acquire(
        self,
        holder: int,
        timeout: float,
        cancel: Optional[threading.Event] = None
    ) -> bool:
        """
        Attempt to take the chopstick, waiting at most ``timeout`` seconds.

        Args:
            holder: PID of the acquiring philosopher
            timeout: Upper bound on the wait in seconds
            cancel: Optional stop signal that ends the attempt early

        Returns:
            True if acquired, False on timeout or cancellation
        """
        deadline = time.monotonic() + max(0.0, timeout)
        with self._cond:
            while True:
                if cancel is not None and cancel.is_set():
                    return False
                if self._holder is None:
                    break
                remaining = deadline - time.monotonic()
                if remaining <= 0:
                    return False
                self._cond.wait(remaining)
            self._grant(holder)
            return True

    def release(self, holder: int) -> None:
        """
        Release the chopstick.

        Implements No Preemption: only the holder gives the chopstick back.

        Raises:
            AssertionError: If ``holder`` does not currently hold it
        """
        with self._cond:
            assert self._holder == holder, (
                f"C{self.chopstick_id}: release by P{holder} "
                f"but held by {self._describe_holder()}"
            )
            self._holder = None
            self.releases += 1
            self._cond.notify_all()

    def wake_waiters(self) -> None:
        """Wake every blocked acquirer so it re-checks its cancel event."""
        with self._cond:
            self._cond.notify_all()

    def _grant(self, holder: int) -> None:
        self._holder = holder
        self.acquisitions += 1

    def _describe_holder(self) -> str:
        return "nobody" if self._holder is None else f"P{self._holder}"

    def __repr__(self) -> str:
        with self._cond:
            return f"Chopstick(id={self.chopstick_id}, holder={self._describe_holder()})"
