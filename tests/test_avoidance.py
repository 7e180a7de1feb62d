"""
Admission Control Tests - Banker's safety check and the Arbiter

Tests the safety algorithm on hand-built matrices and the Arbiter's
grant/deny behaviour in isolation from a running table.
"""

import sys
import threading
import time
from pathlib import Path

import numpy as np

# Add project root to path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from algorithms.avoidance import Arbiter, is_safe_state
from models.chopstick import Chopstick


def _ring_claims(n):
    claims = np.zeros((n, n), dtype=int)
    for i in range(n):
        claims[i][i] = 1
        claims[i][(i + 1) % n] = 1
    return claims


def test_empty_table_is_safe():
    n = 5
    allocation = np.zeros((n, n), dtype=int)
    safe, sequence = is_safe_state(allocation, _ring_claims(n), np.ones(n, dtype=int))
    assert safe
    assert sorted(sequence) == list(range(n))


def test_everyone_holding_left_is_unsafe():
    """Each philosopher holds its left chopstick: the classic deadlock state."""
    n = 5
    allocation = np.eye(n, dtype=int)
    available = 1 - allocation.sum(axis=0)

    safe, sequence = is_safe_state(allocation, _ring_claims(n), available)
    print(f"\n  Allocation:\n{allocation}\n  Available: {available}")
    assert not safe
    assert sequence is None
    print("  ✓ All-left state rejected")


def test_all_but_one_holding_left_is_safe():
    """With one chopstick still free, the philosopher next to it can eat."""
    n = 5
    allocation = np.eye(n, dtype=int)
    allocation[4][4] = 0
    available = 1 - allocation.sum(axis=0)

    safe, sequence = is_safe_state(allocation, _ring_claims(n), available)
    assert safe
    # P3 holds C3 and needs C4, the only free chopstick
    assert sequence[0] == 3


def test_arbiter_denies_unsafe_grant():
    """N=2: after P0 takes C0, giving C1 to P1 would deadlock the table."""
    chopsticks = [Chopstick(0), Chopstick(1)]
    arbiter = Arbiter(chopsticks, [(0, 1), (1, 0)])

    assert arbiter.request(0, chopsticks[0])
    assert chopsticks[0].holder == 0

    granted = []
    t = threading.Thread(target=lambda: granted.append(arbiter.request(1, chopsticks[1])))
    t.start()
    time.sleep(0.1)
    assert t.is_alive(), "P1 must wait: the grant is unsafe although C1 is free"
    assert not chopsticks[1].is_held
    assert arbiter.denials == 1

    # P0 may take C1: it can then eat and return both
    assert arbiter.request(0, chopsticks[1])
    assert arbiter.is_safe()

    arbiter.release(0, chopsticks[1])
    arbiter.release(0, chopsticks[0])
    t.join(2)

    assert granted == [True]
    assert chopsticks[1].holder == 1
    arbiter.release(1, chopsticks[1])
    assert list(arbiter.available_vector) == [1, 1]
    assert arbiter.grants == 3


def test_arbiter_request_cancelled():
    chopsticks = [Chopstick(i) for i in range(3)]
    arbiter = Arbiter(chopsticks, [(0, 1), (1, 2), (2, 0)])
    cancel = threading.Event()

    assert arbiter.request(0, chopsticks[1])
    result = []
    t = threading.Thread(target=lambda: result.append(arbiter.request(1, chopsticks[1], cancel)))
    t.start()
    time.sleep(0.05)
    assert t.is_alive()

    cancel.set()
    arbiter.wake_all()
    t.join(2)
    assert result == [False]
    assert chopsticks[1].holder == 0


def test_arbiter_retire_drops_claim():
    chopsticks = [Chopstick(i) for i in range(3)]
    arbiter = Arbiter(chopsticks, [(0, 1), (1, 2), (2, 0)])

    arbiter.retire(1)
    claims = arbiter.max_claim_matrix()
    assert not claims[1].any()
    assert claims[0].sum() == 2 and claims[2].sum() == 2


def test_arbiter_matrices_track_grants():
    chopsticks = [Chopstick(i) for i in range(4)]
    arbiter = Arbiter(chopsticks, [(i, (i + 1) % 4) for i in range(4)])

    assert arbiter.request(2, chopsticks[2])
    allocation = arbiter.allocation_matrix()
    assert allocation[2][2] == 1
    assert allocation.sum() == 1
    assert list(arbiter.available_vector) == [1, 1, 0, 1]
