"""
Dining Table model for the Dining Philosophers Deadlock Simulator.

Builds the ring of chopsticks and philosophers, owns the shared stop signal
and the optional Arbiter, and exposes allocation/request snapshots for
deadlock detection.
"""

import threading
import time
import numpy as np
from typing import Callable, Dict, List, Optional, Sequence

from algorithms.avoidance import Arbiter
from algorithms.policies import Policy, create_policy
from analysis.events import TableEvent
from models.chopstick import Chopstick
from models.errors import ConfigurationError
from models.philosopher import Philosopher, PhilosopherState
from utils.timing import RandomDurations


class DiningTable:
    """
    N philosophers around N chopsticks.

    Philosopher i is bound to chopstick i (left) and chopstick (i+1) mod N
    (right); this cycle is the structural precondition for deadlock.

    Attributes:
        chopsticks: Chopsticks indexed 0..N-1
        philosophers: Philosophers indexed 0..N-1
        policy: Selected Policy
        arbiter: Arbiter for the admission-control policy, else None
        stop_event: Cooperative stop signal shared by all philosophers
    """

    def __init__(
        self,
        num_philosophers: int,
        policy="naive",
        acquire_timeout: float = 0.5,
        retry_delay: float = 0.1,
        durations: Optional[RandomDurations] = None,
        sinks: Optional[Sequence] = None,
        max_meals: Optional[int] = None,
        on_first_acquired: Optional[Callable[[Philosopher], None]] = None,
        logger=None
    ):
        """
        Args:
            num_philosophers: Ring size N (integer >= 2)
            policy: Policy member or name; defaults to the deadlock-prone baseline
            acquire_timeout: Wait bound for the timeout policy (seconds)
            retry_delay: Pause after a failed timeout attempt (seconds)
            durations: Think/eat duration source; each philosopher gets its own stream
            sinks: Objects with an ``add(event)`` method receiving every TableEvent
            max_meals: Stop each philosopher after this many meals (None = forever)
            on_first_acquired: Hook run after the first chopstick of each pair
            logger: SimulatorLogger used to report failing sinks

        Raises:
            ConfigurationError: On invalid ring size or policy parameters
        """
        if isinstance(num_philosophers, bool) or not isinstance(num_philosophers, int):
            raise ConfigurationError(f"num_philosophers must be an integer, got {num_philosophers!r}")
        if num_philosophers < 2:
            raise ConfigurationError(f"num_philosophers must be at least 2, got {num_philosophers}")

        self.policy = Policy.parse(policy)
        self.sinks = list(sinks or [])
        self.logger = logger
        self.stop_event = threading.Event()
        self.chopsticks = [Chopstick(i) for i in range(num_philosophers)]

        claims = [(i, (i + 1) % num_philosophers) for i in range(num_philosophers)]
        self.arbiter = Arbiter(self.chopsticks, claims) if self.policy == Policy.ADMISSION_CONTROL else None
        self.acquisition = create_policy(self.policy, acquire_timeout, retry_delay, self.arbiter)

        durations = durations or RandomDurations()
        self.philosophers = [
            Philosopher(
                pid=i,
                left=self.chopsticks[left],
                right=self.chopsticks[right],
                policy=self.acquisition,
                stop_event=self.stop_event,
                durations=durations.spawn(i),
                publish=self.publish,
                clock=self.elapsed,
                max_meals=max_meals,
                on_first_acquired=on_first_acquired,
                logger=logger
            )
            for i, (left, right) in enumerate(claims)
        ]
        self._validate_ring()

        self._started_at: Optional[float] = None
        self._stopped = False

    @property
    def num_philosophers(self) -> int:
        return len(self.philosophers)

    @property
    def num_chopsticks(self) -> int:
        return len(self.chopsticks)

    def _validate_ring(self) -> None:
        """Every chopstick must be shared by exactly two philosophers."""
        usage = [0] * self.num_chopsticks
        for p in self.philosophers:
            usage[p.left.chopstick_id] += 1
            usage[p.right.chopstick_id] += 1
        for chopstick_id, count in enumerate(usage):
            if count != 2:
                raise ConfigurationError(
                    f"C{chopstick_id} is bound to {count} philosophers (expected 2)"
                )

    # Lifecycle

    def start(self) -> None:
        """Launch every philosopher thread."""
        if self._started_at is not None:
            raise RuntimeError("Table already started")
        self._started_at = time.monotonic()
        for p in self.philosophers:
            p.start()

    def stop(self, timeout: Optional[float] = None) -> bool:
        """
        Signal every philosopher to stop and wait until all have exited.

        Blocked acquirers are woken so they observe the signal; each
        philosopher releases what it holds before its thread ends.

        Args:
            timeout: Optional bound on the join, per philosopher

        Returns:
            True if every philosopher exited
        """
        self.stop_event.set()
        for c in self.chopsticks:
            c.wake_waiters()
        if self.arbiter is not None:
            self.arbiter.wake_all()

        all_exited = all([p.join(timeout) for p in self.philosophers])
        if all_exited:
            self._stopped = True
            self.assert_all_released("after stop")
        return all_exited

    def join(self, timeout: Optional[float] = None) -> bool:
        """
        Wait for philosophers to leave on their own (max_meals reached).

        Returns:
            True if all exited within ``timeout``
        """
        deadline = None if timeout is None else time.monotonic() + timeout
        for p in self.philosophers:
            remaining = None if deadline is None else max(0.0, deadline - time.monotonic())
            if not p.join(remaining):
                return False
        return True

    def all_finished(self) -> bool:
        return all(p.state == PhilosopherState.FINISHED and not p.is_alive() for p in self.philosophers)

    def elapsed(self) -> float:
        """Seconds since ``start`` (0 before start)."""
        if self._started_at is None:
            return 0.0
        return time.monotonic() - self._started_at

    # Event dispatch

    def publish(self, event: TableEvent) -> None:
        """
        Pass ``event`` to every sink.

        The table ignores sink return values; a failing sink is reported and
        never interrupts the philosopher that emitted the event.
        """
        for sink in self.sinks:
            try:
                sink.add(event)
            except Exception as e:
                if self.logger is not None:
                    self.logger.log(f"Event sink {type(sink).__name__} failed: {e}", "error")

    # State inspection

    def snapshot(self) -> Dict[str, np.ndarray]:
        """
        Allocation/request view of the table for deadlock detection.

        Returns:
            Dictionary with 'allocation' [P][R], 'request' [P][R] and
            'available' [R] integer arrays
        """
        allocation = np.zeros((self.num_philosophers, self.num_chopsticks), dtype=int)
        request = np.zeros((self.num_philosophers, self.num_chopsticks), dtype=int)

        for i, p in enumerate(self.philosophers):
            held, awaiting = p.holdings()
            for chopstick_id in held:
                allocation[i][chopstick_id] = 1
            if awaiting is not None:
                request[i][awaiting] = 1

        available = np.clip(1 - allocation.sum(axis=0), 0, 1)
        return {'allocation': allocation, 'request': request, 'available': available}

    def meals(self) -> List[int]:
        return [p.meals for p in self.philosophers]

    def assert_all_released(self, context: str = "") -> None:
        """
        Verify no chopstick is held and acquisitions match releases.

        Raises:
            AssertionError: If any chopstick is still held
        """
        for c in self.chopsticks:
            assert not c.is_held, f"C{c.chopstick_id} still held by P{c.holder} {context}"
            assert c.acquisitions == c.releases, (
                f"C{c.chopstick_id} {context}: {c.acquisitions} acquisitions "
                f"!= {c.releases} releases"
            )

    def display(self) -> str:
        """
        Generate readable string representation of the table.

        Returns:
            Formatted string showing philosophers and chopsticks
        """
        output = []
        output.append("\n" + "="*60)
        output.append(f"DINING TABLE ({self.acquisition.describe()})")
        output.append("="*60)

        output.append("\nPhilosophers:")
        for p in self.philosophers:
            held, awaiting = p.holdings()
            held_str = ", ".join(f"C{c}" for c in held) or "none"
            awaiting_str = f"C{awaiting}" if awaiting is not None else "-"
            output.append(
                f"  P{p.pid}: {p.state.value:14} meals={p.meals:3} "
                f"holds=[{held_str}] awaiting={awaiting_str}"
            )

        output.append("\nChopsticks:")
        for c in self.chopsticks:
            holder = f"P{c.holder}" if c.is_held else "free"
            output.append(f"  C{c.chopstick_id}: {holder:5} (acquired {c.acquisitions}x)")

        output.append("\n" + "="*60)
        return "\n".join(output)
