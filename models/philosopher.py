"""
Philosopher model for the Dining Philosophers Deadlock Simulator.

Represents one concurrent actor cycling through think -> acquire -> eat -> release.
"""

import threading
import time
from enum import Enum
from typing import Callable, List, Optional, Tuple

from analysis.events import EventType, TableEvent
from models.chopstick import Chopstick
from models.errors import ConfigurationError
from utils.timing import RandomDurations


class PhilosopherState(Enum):
    """Philosopher states in the simulation."""
    THINKING = "THINKING"
    AWAITING_LEFT = "AWAITING_LEFT"
    AWAITING_RIGHT = "AWAITING_RIGHT"
    EATING = "EATING"
    FINISHED = "FINISHED"


class Philosopher:
    """
    A philosopher running its own thread.

    Attributes:
        pid: Philosopher identifier (0..N-1)
        left: Chopstick i (non-owning)
        right: Chopstick (i+1) mod N (non-owning)
        policy: Acquisition policy used for each pair of chopsticks
        stop_event: Shared cooperative stop signal
        meals: Number of eating phases started
        state: Current PhilosopherState

    Invariant:
        Holds at most its two chopsticks, and only ones it acquired.
        Whatever it holds is released on every exit path.
    """

    def __init__(
        self,
        pid: int,
        left: Chopstick,
        right: Chopstick,
        policy,
        stop_event: threading.Event,
        durations: Optional[RandomDurations] = None,
        publish: Optional[Callable[[TableEvent], None]] = None,
        clock: Optional[Callable[[], float]] = None,
        max_meals: Optional[int] = None,
        on_first_acquired: Optional[Callable[["Philosopher"], None]] = None,
        logger=None
    ):
        if left is None or right is None:
            raise ConfigurationError(f"P{pid}: both chopsticks must be bound")
        if left is right or left.chopstick_id == right.chopstick_id:
            raise ConfigurationError(
                f"P{pid}: left and right are the same chopstick (C{left.chopstick_id})"
            )
        if max_meals is not None and max_meals < 1:
            raise ConfigurationError(f"P{pid}: max_meals must be positive, got {max_meals}")

        self.pid = pid
        self.left = left
        self.right = right
        self.policy = policy
        self.stop_event = stop_event
        self.durations = durations or RandomDurations()
        self.max_meals = max_meals
        self.meals = 0
        self.state = PhilosopherState.THINKING

        self._publish = publish
        self._clock = clock or time.monotonic
        self._on_first_acquired = on_first_acquired
        self._logger = logger
        self._lock = threading.Lock()
        self._held: List[Chopstick] = []
        self._awaiting: Optional[Chopstick] = None
        self._thread = threading.Thread(
            target=self.run, name=f"philosopher-{pid}", daemon=True
        )

    # Thread control

    def start(self) -> None:
        self._thread.start()

    def join(self, timeout: Optional[float] = None) -> bool:
        """Wait for the thread to exit. Returns True if it has."""
        self._thread.join(timeout)
        return not self._thread.is_alive()

    def is_alive(self) -> bool:
        return self._thread.is_alive()

    def run(self) -> None:
        """Think, acquire, eat, release; until stopped or full."""
        reason = "stopped"
        try:
            while not self.stop_event.is_set():
                if self.max_meals is not None and self.meals >= self.max_meals:
                    reason = f"ate {self.meals} meals"
                    break

                self._think()
                if self.stop_event.is_set():
                    break

                try:
                    acquired = self.policy.acquire_pair(self)
                    if self.stop_event.is_set():
                        break
                    if acquired:
                        self._eat()
                    else:
                        self.release_all()
                        self.policy.backoff(self)
                finally:
                    self.release_all()
        finally:
            self.release_all()
            self.policy.retire(self)
            self.state = PhilosopherState.FINISHED
            self._emit(EventType.FINISHED, message=reason)

    def _think(self) -> None:
        self.state = PhilosopherState.THINKING
        self._emit(EventType.THINKING)
        self.stop_event.wait(self.durations.think_duration())

    def _eat(self) -> None:
        self.state = PhilosopherState.EATING
        self.meals += 1
        self._emit(EventType.EATING)
        self.stop_event.wait(self.durations.eat_duration())

    # Hooks used by acquisition policies

    def side_of(self, chopstick: Chopstick) -> str:
        return "left" if chopstick is self.left else "right"

    def await_chopstick(self, chopstick: Chopstick) -> None:
        """Mark that this philosopher is now blocked on ``chopstick``."""
        with self._lock:
            self._awaiting = chopstick
        if chopstick is self.left:
            self.state = PhilosopherState.AWAITING_LEFT
        else:
            self.state = PhilosopherState.AWAITING_RIGHT

    def abandon_wait(self) -> None:
        with self._lock:
            self._awaiting = None

    def record_acquired(self, chopstick: Chopstick, waited: float) -> None:
        """Called right after ``chopstick`` was actually acquired."""
        with self._lock:
            self._awaiting = None
            self._held.append(chopstick)
        event_type = EventType.ACQUIRED_LEFT if chopstick is self.left else EventType.ACQUIRED_RIGHT
        self._emit(event_type, chopstick=chopstick, waited=waited)

    def record_timeout(self, chopstick: Chopstick, waited: float) -> None:
        self.abandon_wait()
        self._emit(EventType.ACQUIRE_TIMEOUT, chopstick=chopstick, waited=waited)

    def first_acquired(self) -> None:
        """
        Run the injected hook after the first chopstick of a pair.

        A failing hook is reported like a failing sink; the philosopher
        goes on to request its second chopstick.
        """
        if self._on_first_acquired is None:
            return
        try:
            self._on_first_acquired(self)
        except Exception as e:
            if self._logger is not None:
                self._logger.log(f"P{self.pid}: first-acquired hook failed: {e!r}", "error")

    def release_all(self) -> None:
        """
        Release held chopsticks in reverse acquisition order.

        The RELEASED event is emitted before the chopstick is handed back, so
        an acquisition by the neighbour is always logged after it.
        """
        while True:
            with self._lock:
                if not self._held:
                    return
                chopstick = self._held.pop()
            self._emit(EventType.RELEASED, chopstick=chopstick)
            self.policy.release(self, chopstick)

    def holdings(self) -> Tuple[List[int], Optional[int]]:
        """Ids of held chopsticks and of the awaited one, read atomically."""
        with self._lock:
            held = [c.chopstick_id for c in self._held]
            awaiting = None if self._awaiting is None else self._awaiting.chopstick_id
        return held, awaiting

    def _emit(self, event_type: EventType, chopstick: Optional[Chopstick] = None,
              waited: Optional[float] = None, message: str = "") -> None:
        if self._publish is None:
            return
        self._publish(TableEvent(
            elapsed=self._clock(),
            event_type=event_type,
            philosopher_id=self.pid,
            chopstick_id=None if chopstick is None else chopstick.chopstick_id,
            waited=waited,
            message=message
        ))

    def __repr__(self) -> str:
        held, awaiting = self.holdings()
        return (
            f"Philosopher(pid={self.pid}, state={self.state.value}, "
            f"left=C{self.left.chopstick_id}, right=C{self.right.chopstick_id}, "
            f"held={held}, awaiting={awaiting}, meals={self.meals})"
        )
