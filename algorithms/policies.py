"""
Acquisition Policies for the Dining Philosophers Deadlock Simulator.

Each policy decides in which order, and with which bound, a philosopher
requests its two chopsticks:

- NAIVE: left then right, unbounded. All four Coffman conditions hold,
  so lockstep interleaving deadlocks.
- ASYMMETRIC: even PIDs go left-first, odd PIDs right-first.
- GLOBAL_ORDERING: lower chopstick id first (resource hierarchy).
- TIMEOUT: bounded attempts; give up and think again on failure.
- ADMISSION_CONTROL: every request goes through the Banker's-style Arbiter.

The first three only change the ORDER of blocking requests; the
chopsticks' exclusion semantics are the same for all policies.
"""

import time
from abc import ABC
from enum import Enum
from typing import Optional, Tuple

from models.chopstick import Chopstick
from models.errors import ConfigurationError


class Policy(Enum):
    """Selectable acquisition policies."""
    NAIVE = "naive"
    ASYMMETRIC = "asymmetric"
    GLOBAL_ORDERING = "global_ordering"
    TIMEOUT = "timeout"
    ADMISSION_CONTROL = "admission_control"

    @classmethod
    def parse(cls, value) -> "Policy":
        """
        Resolve a policy from an enum member or a name.

        Accepts hyphenated names and the long forms used in reports
        ("asymmetric-ordering", "global-ordering", "admission-control").

        Raises:
            ConfigurationError: If the name is unknown
        """
        if isinstance(value, cls):
            return value
        name = str(value).strip().lower().replace("-", "_")
        name = _POLICY_ALIASES.get(name, name)
        try:
            return cls(name)
        except ValueError:
            choices = ", ".join(p.value for p in cls)
            raise ConfigurationError(f"Unknown policy '{value}' (choose from: {choices})")


_POLICY_ALIASES = {
    "asymmetric_ordering": "asymmetric",
    "resource_hierarchy": "global_ordering",
    "hierarchy": "global_ordering",
    "bankers": "admission_control",
    "banker": "admission_control",
}


class AcquisitionPolicy(ABC):
    """
    Base policy: blocking acquisition in the order given by ``order``.

    Subclasses override ``order`` to change which chopstick is requested
    first, or ``acquire``/``release`` to change how a single chopstick is
    obtained.
    """
    policy: Policy = Policy.NAIVE

    def order(self, philosopher) -> Tuple[Chopstick, Chopstick]:
        """Chopsticks in the order they will be requested."""
        return philosopher.left, philosopher.right

    def acquire_pair(self, philosopher) -> bool:
        """
        Acquire both chopsticks for ``philosopher``.

        Returns:
            True when both are held. False means the attempt was abandoned;
            the philosopher releases whatever it holds.
        """
        first, second = self.order(philosopher)
        if not self.acquire(philosopher, first):
            return False
        philosopher.first_acquired()
        return self.acquire(philosopher, second)

    def acquire(self, philosopher, chopstick: Chopstick) -> bool:
        """Block on one chopstick until held or until the table stops."""
        philosopher.await_chopstick(chopstick)
        started = time.monotonic()
        if not chopstick.acquire(philosopher.pid, philosopher.stop_event):
            philosopher.abandon_wait()
            return False
        philosopher.record_acquired(chopstick, time.monotonic() - started)
        return True

    def release(self, philosopher, chopstick: Chopstick) -> None:
        chopstick.release(philosopher.pid)

    def backoff(self, philosopher) -> None:
        """Pause after an abandoned attempt (no-op for blocking policies)."""
        pass

    def retire(self, philosopher) -> None:
        """Called once when the philosopher's thread exits."""
        pass

    def describe(self) -> str:
        return self.policy.value


class NaivePolicy(AcquisitionPolicy):
    """Left then right for everyone. Deadlock-prone baseline."""
    policy = Policy.NAIVE


class AsymmetricPolicy(AcquisitionPolicy):
    """Even PIDs take left first, odd PIDs take right first."""
    policy = Policy.ASYMMETRIC

    def order(self, philosopher) -> Tuple[Chopstick, Chopstick]:
        if philosopher.pid % 2 == 0:
            return philosopher.left, philosopher.right
        return philosopher.right, philosopher.left


class GlobalOrderingPolicy(AcquisitionPolicy):
    """Lower-indexed chopstick first, regardless of side."""
    policy = Policy.GLOBAL_ORDERING

    def order(self, philosopher) -> Tuple[Chopstick, Chopstick]:
        left, right = philosopher.left, philosopher.right
        if left.chopstick_id < right.chopstick_id:
            return left, right
        return right, left


class TimeoutPolicy(AcquisitionPolicy):
    """
    Bounded attempts: left within ``acquire_timeout``, then right within
    ``acquire_timeout``. On failure the philosopher drops what it holds,
    waits ``retry_delay`` and goes back to thinking.

    Never holds one chopstick indefinitely while waiting on the other, so
    no permanent deadlock; starvation of an unlucky philosopher is possible.
    """
    policy = Policy.TIMEOUT

    def __init__(self, acquire_timeout: float, retry_delay: float):
        if acquire_timeout <= 0:
            raise ConfigurationError(f"acquire_timeout must be positive, got {acquire_timeout}")
        if retry_delay < 0:
            raise ConfigurationError(f"retry_delay cannot be negative, got {retry_delay}")
        self.acquire_timeout = acquire_timeout
        self.retry_delay = retry_delay

    def acquire(self, philosopher, chopstick: Chopstick) -> bool:
        philosopher.await_chopstick(chopstick)
        started = time.monotonic()
        acquired = chopstick.try_acquire(
            philosopher.pid, self.acquire_timeout, philosopher.stop_event
        )
        waited = time.monotonic() - started
        if acquired:
            philosopher.record_acquired(chopstick, waited)
        elif philosopher.stop_event.is_set():
            philosopher.abandon_wait()
        else:
            philosopher.record_timeout(chopstick, waited)
        return acquired

    def backoff(self, philosopher) -> None:
        philosopher.stop_event.wait(self.retry_delay)

    def describe(self) -> str:
        return f"{self.policy.value} (wait={self.acquire_timeout}s, retry={self.retry_delay}s)"


class AdmissionControlPolicy(AcquisitionPolicy):
    """Left then right, each grant approved by the Arbiter's safety check."""
    policy = Policy.ADMISSION_CONTROL

    def __init__(self, arbiter):
        if arbiter is None:
            raise ConfigurationError("admission_control policy requires an arbiter")
        self.arbiter = arbiter

    def acquire(self, philosopher, chopstick: Chopstick) -> bool:
        philosopher.await_chopstick(chopstick)
        started = time.monotonic()
        if not self.arbiter.request(philosopher.pid, chopstick, philosopher.stop_event):
            philosopher.abandon_wait()
            return False
        philosopher.record_acquired(chopstick, time.monotonic() - started)
        return True

    def release(self, philosopher, chopstick: Chopstick) -> None:
        self.arbiter.release(philosopher.pid, chopstick)

    def retire(self, philosopher) -> None:
        self.arbiter.retire(philosopher.pid)


def create_policy(
    policy,
    acquire_timeout: float = 0.5,
    retry_delay: float = 0.1,
    arbiter=None
) -> AcquisitionPolicy:
    """
    Build the acquisition policy selected by ``policy``.

    Args:
        policy: Policy member or name
        acquire_timeout: Wait bound for the timeout policy
        retry_delay: Pause after a failed attempt for the timeout policy
        arbiter: Arbiter instance for the admission-control policy

    Returns:
        AcquisitionPolicy instance shared by all philosophers at a table
    """
    selected = Policy.parse(policy)

    if selected == Policy.NAIVE:
        return NaivePolicy()
    elif selected == Policy.ASYMMETRIC:
        return AsymmetricPolicy()
    elif selected == Policy.GLOBAL_ORDERING:
        return GlobalOrderingPolicy()
    elif selected == Policy.TIMEOUT:
        return TimeoutPolicy(acquire_timeout, retry_delay)
    else:
        return AdmissionControlPolicy(arbiter)


def policy_names(exclude: Optional[Policy] = None) -> list:
    """Names of all policies, in declaration order."""
    return [p.value for p in Policy if p != exclude]
