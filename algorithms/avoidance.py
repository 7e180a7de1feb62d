"""
Deadlock Avoidance (Banker's Algorithm) for the Dining Philosophers Simulator.

The Arbiter approves every chopstick grant for the admission-control policy,
refusing any grant that would leave the table in an unsafe state.
"""

import threading
import numpy as np
from typing import List, Optional, Sequence, Tuple

from models.chopstick import Chopstick


def is_safe_state(
    allocation: np.ndarray,
    max_claim: np.ndarray,
    available: np.ndarray
) -> Tuple[bool, Optional[List[int]]]:
    """
    Check if a table configuration is safe using Banker's Algorithm.

    Algorithm:
    1. Initialize Work = Available, Finish = [False] * num_philosophers
    2. Find philosopher i where Finish[i] == False and Need[i] <= Work
    3. If found: Finish[i] = True, Work += Allocation[i], add PID to sequence
    4. Repeat step 2 until all philosophers finish (SAFE) or stuck (UNSAFE)

    Args:
        allocation: [P][R] chopsticks currently held
        max_claim: [P][R] chopsticks each philosopher may hold at once
        available: [R] free chopsticks

    Returns:
        Tuple of (is_safe, safe_sequence if exists else None)
    """
    need = max_claim - allocation
    work = available.copy()
    num_philosophers = allocation.shape[0]
    finish = np.zeros(num_philosophers, dtype=bool)
    safe_sequence = []

    made_progress = True
    while made_progress:
        made_progress = False

        for i in range(num_philosophers):
            if finish[i]:
                continue

            if np.all(need[i] <= work):
                # Philosopher i can eat and then return what it holds
                work += allocation[i]
                finish[i] = True
                safe_sequence.append(i)
                made_progress = True
                break  # Restart search from beginning for determinism

    if finish.all():
        return True, safe_sequence
    return False, None


class Arbiter:
    """
    Central admission controller for the admission-control policy.

    Tracks an allocation matrix and a max-claim matrix for the whole table.
    All reads and writes happen under a single condition lock, so the
    feasibility check never races a concurrent release or grant.

    Lock order is always arbiter -> chopstick.
    """

    def __init__(self, chopsticks: Sequence[Chopstick], claims: Sequence[Tuple[int, int]]):
        """
        Args:
            chopsticks: The table's chopsticks, indexed by chopstick_id
            claims: For each PID, the ids of the two chopsticks it needs
        """
        self.chopsticks = list(chopsticks)
        num_philosophers = len(claims)
        num_chopsticks = len(self.chopsticks)

        self._max_claim = np.zeros((num_philosophers, num_chopsticks), dtype=int)
        for pid, (first, second) in enumerate(claims):
            self._max_claim[pid][first] = 1
            self._max_claim[pid][second] = 1
        self._allocation = np.zeros((num_philosophers, num_chopsticks), dtype=int)

        self._cond = threading.Condition(threading.Lock())
        self.grants = 0
        self.denials = 0

    @property
    def available_vector(self) -> np.ndarray:
        """[R] free chopsticks as seen by the arbiter."""
        with self._cond:
            return self._available(self._allocation)

    def allocation_matrix(self) -> np.ndarray:
        with self._cond:
            return self._allocation.copy()

    def max_claim_matrix(self) -> np.ndarray:
        with self._cond:
            return self._max_claim.copy()

    def request(self, pid: int, chopstick: Chopstick,
                cancel: Optional[threading.Event] = None) -> bool:
        """
        Block until granting ``chopstick`` to ``pid`` is both possible and safe.

        Steps:
        1. Check: chopstick free (otherwise wait)
        2. Tentatively allocate and run the safety algorithm
        3. If safe: acquire the chopstick and commit
           If unsafe: wait for the next release and retry

        Returns:
            True once granted, False if ``cancel`` was set while waiting
        """
        r = chopstick.chopstick_id
        denied = False
        with self._cond:
            while True:
                if cancel is not None and cancel.is_set():
                    return False
                if self._grantable(pid, r):
                    break
                if not denied:
                    denied = True
                    self.denials += 1
                self._cond.wait()

            acquired = chopstick.try_acquire(pid, 0)
            assert acquired, f"Arbiter granted C{r} to P{pid} but it is held by P{chopstick.holder}"
            self._allocation[pid][r] = 1
            self.grants += 1
            return True

    def release(self, pid: int, chopstick: Chopstick) -> None:
        """Return ``chopstick`` and wake every waiting requester."""
        r = chopstick.chopstick_id
        with self._cond:
            assert self._allocation[pid][r] == 1, f"Arbiter: P{pid} releases C{r} it was never granted"
            self._allocation[pid][r] = 0
            chopstick.release(pid)
            self._cond.notify_all()

    def retire(self, pid: int) -> None:
        """Drop the claim of a philosopher that left the table."""
        with self._cond:
            assert not self._allocation[pid].any(), f"Arbiter: P{pid} retires while holding chopsticks"
            self._max_claim[pid] = 0
            self._cond.notify_all()

    def wake_all(self) -> None:
        """Wake all waiting requesters so they re-check their cancel events."""
        with self._cond:
            self._cond.notify_all()

    def is_safe(self) -> bool:
        with self._cond:
            safe, _ = is_safe_state(self._allocation, self._max_claim, self._available(self._allocation))
            return safe

    def _grantable(self, pid: int, r: int) -> bool:
        if self._allocation[:, r].any():
            return False
        tentative = self._allocation.copy()
        tentative[pid][r] = 1
        safe, _ = is_safe_state(tentative, self._max_claim, self._available(tentative))
        return safe

    def _available(self, allocation: np.ndarray) -> np.ndarray:
        return 1 - allocation.sum(axis=0)
