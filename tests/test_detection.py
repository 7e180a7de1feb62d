"""
Deadlock Detection Tests

Tests the Work/Finish algorithm and wait-for cycle search on table snapshots.
"""

import sys
from pathlib import Path

import numpy as np

# Add project root to path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from algorithms.detection import detect_deadlock, find_wait_cycle, should_run_detection


def _all_left_state(n):
    allocation = np.eye(n, dtype=int)
    request = np.zeros((n, n), dtype=int)
    for i in range(n):
        request[i][(i + 1) % n] = 1
    available = 1 - allocation.sum(axis=0)
    return allocation, request, available


def test_full_ring_deadlock():
    allocation, request, available = _all_left_state(5)

    deadlock_exists, deadlocked = detect_deadlock(allocation, request, available)
    assert deadlock_exists
    assert deadlocked == [0, 1, 2, 3, 4]

    cycle = find_wait_cycle(allocation, request)
    assert cycle == [0, 1, 2, 3, 4]
    print(f"  ✓ Cycle: {' -> '.join(f'P{p}' for p in cycle + cycle[:1])}")


def test_one_thinker_breaks_the_cycle():
    """If one philosopher holds nothing and waits for nothing, everyone can finish."""
    allocation, request, available = _all_left_state(5)
    allocation[4] = 0
    request[4] = 0
    available = 1 - allocation.sum(axis=0)

    deadlock_exists, deadlocked = detect_deadlock(allocation, request, available)
    assert not deadlock_exists
    assert deadlocked == []
    assert find_wait_cycle(allocation, request) == []


def test_waiting_on_eater_is_not_deadlock():
    """P1 waits for C1, held by eating P0; P0 will release it."""
    n = 3
    allocation = np.zeros((n, n), dtype=int)
    request = np.zeros((n, n), dtype=int)
    allocation[0][0] = allocation[0][1] = 1
    request[1][1] = 1
    available = 1 - allocation.sum(axis=0)

    deadlock_exists, _ = detect_deadlock(allocation, request, available)
    assert not deadlock_exists


def test_two_philosopher_deadlock():
    allocation, request, available = _all_left_state(2)
    deadlock_exists, deadlocked = detect_deadlock(allocation, request, available)
    assert deadlock_exists
    assert deadlocked == [0, 1]


def test_should_run_detection():
    assert should_run_detection(1.0, float("-inf"), 0.5)
    assert not should_run_detection(1.2, 1.0, 0.5)
    assert should_run_detection(1.5, 1.0, 0.5)
