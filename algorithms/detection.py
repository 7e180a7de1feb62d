"""
Deadlock Detection Algorithm for the Dining Philosophers Deadlock Simulator.

Implements matrix-based deadlock detection (Work/Finish algorithm) over a
snapshot of the table. The simulator runs it when the liveness watchdog
reports a stall; it reports deadlock but never resolves it.
"""

import numpy as np
from typing import List, Tuple


def detect_deadlock(
    allocation: np.ndarray,
    request: np.ndarray,
    available: np.ndarray
) -> Tuple[bool, List[int]]:
    """
    Detect deadlock using matrix-based Work/Finish algorithm.

    Algorithm:
    1. Initialize Work = Available.copy(), Finish = [False] * num_philosophers
    2. Find philosopher i where Finish[i] == False and Request[i] <= Work
    3. If found: Finish[i] = True, Work += Allocation[i], repeat step 2
    4. If no such philosopher: deadlock exists if any Finish[i] == False

    Uses Request[i] (chopstick currently awaited), NOT the full claim.
    A thinking or eating philosopher has an empty request row and always
    finishes.

    Four Deadlock Conditions Manifested:
    - Mutual Exclusion: a chopstick has one holder
    - Hold and Wait: a philosopher keeps its left chopstick while awaiting the right
    - No Preemption: chopsticks are released only by their holder
    - Circular Wait: the ring closes the chain of awaited chopsticks

    Args:
        allocation: [P][R] chopsticks held
        request: [P][R] chopsticks awaited
        available: [R] free chopsticks

    Returns:
        Tuple of (deadlock_exists, list of deadlocked PIDs)
    """
    num_philosophers = allocation.shape[0]

    work = available.copy()
    finish = np.zeros(num_philosophers, dtype=bool)

    found_progress = True
    while found_progress:
        found_progress = False

        for i in range(num_philosophers):
            if finish[i]:
                continue

            if np.all(request[i] <= work):
                work += allocation[i]
                finish[i] = True
                found_progress = True
                break

    deadlocked_pids = [i for i, is_finished in enumerate(finish) if not is_finished]
    return len(deadlocked_pids) > 0, deadlocked_pids


def find_wait_cycle(allocation: np.ndarray, request: np.ndarray) -> List[int]:
    """
    Follow the wait-for graph (philosopher -> holder of awaited chopstick)
    and return the first cycle found, as a list of PIDs.

    With single-instance chopsticks a cycle is exactly a deadlock.
    """
    num_philosophers = allocation.shape[0]
    waits_for = {}
    for i in range(num_philosophers):
        awaited = np.flatnonzero(request[i])
        if len(awaited) == 0:
            continue
        holders = np.flatnonzero(allocation[:, awaited[0]])
        if len(holders) > 0 and holders[0] != i:
            waits_for[i] = int(holders[0])

    for start in sorted(waits_for):
        path = []
        current = start
        while current in waits_for and current not in path:
            path.append(current)
            current = waits_for[current]
        if current in path:
            return path[path.index(current):]
    return []


def should_run_detection(elapsed: float, last_run: float, detect_interval: float) -> bool:
    """
    Determine if detection should run now.

    Args:
        elapsed: Seconds since the table started
        last_run: Elapsed time of the previous detection run
        detect_interval: Seconds between detection runs
    """
    return elapsed - last_run >= detect_interval
