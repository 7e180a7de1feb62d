"""
Randomized activity durations for the Dining Philosophers Deadlock Simulator.

Think and eat times only shape contention timing; they never affect the
acquisition protocol. A seed makes runs reproducible.
"""

import random
from typing import Optional, Tuple


DEFAULT_THINK_TIME = (0.0, 1.0)
DEFAULT_EAT_TIME = (0.0, 1.0)


class RandomDurations:
    """
    Uniform random think/eat durations in seconds.

    Each philosopher gets its own stream via ``spawn`` so that no
    ``random.Random`` instance is shared between threads.
    """

    def __init__(
        self,
        think_time: Tuple[float, float] = DEFAULT_THINK_TIME,
        eat_time: Tuple[float, float] = DEFAULT_EAT_TIME,
        seed: Optional[int] = None
    ):
        self.think_time = _validate_range("think_time", think_time)
        self.eat_time = _validate_range("eat_time", eat_time)
        self.seed = seed
        self._rng = random.Random(seed)

    def spawn(self, pid: int) -> "RandomDurations":
        """Independent duration stream for philosopher ``pid``."""
        seed = None if self.seed is None else self.seed + pid
        return RandomDurations(self.think_time, self.eat_time, seed)

    def think_duration(self) -> float:
        return self._rng.uniform(*self.think_time)

    def eat_duration(self) -> float:
        return self._rng.uniform(*self.eat_time)


def _validate_range(name: str, bounds: Tuple[float, float]) -> Tuple[float, float]:
    """Check a (low, high) duration range and return it as floats."""
    if len(bounds) != 2:
        raise ValueError(f"{name} must be a (low, high) pair, got {bounds!r}")
    low, high = float(bounds[0]), float(bounds[1])
    if low < 0 or high < low:
        raise ValueError(f"{name} must satisfy 0 <= low <= high, got ({low}, {high})")
    return low, high
