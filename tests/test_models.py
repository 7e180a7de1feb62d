"""
Model Validation Tests - Chopstick, Philosopher and DiningTable

Tests exclusion, cancellation and construction-time validation.
"""

import sys
import threading
import time
from pathlib import Path

import pytest

# Add project root to path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from algorithms.policies import NaivePolicy
from models.chopstick import Chopstick
from models.errors import ConfigurationError
from models.philosopher import Philosopher, PhilosopherState
from models.table import DiningTable


def test_chopstick_acquire_release():
    """A free chopstick is granted immediately and freed by its holder."""
    chopstick = Chopstick(3)
    assert not chopstick.is_held

    assert chopstick.acquire(holder=1)
    assert chopstick.holder == 1
    assert chopstick.is_held

    chopstick.release(holder=1)
    assert chopstick.holder is None
    assert chopstick.acquisitions == 1 and chopstick.releases == 1
    print(f"  ✓ {chopstick}")


def test_release_by_non_holder_is_fatal():
    """Releasing a chopstick you do not hold is a programming error."""
    chopstick = Chopstick(0)

    with pytest.raises(AssertionError):
        chopstick.release(holder=0)

    chopstick.acquire(holder=0)
    with pytest.raises(AssertionError):
        chopstick.release(holder=1)
    assert chopstick.holder == 0, "Failed release must not change the holder"


def test_mutual_exclusion_under_contention():
    """No two threads are ever inside the chopstick at once."""
    chopstick = Chopstick(0)
    inside = [0]
    max_inside = [0]
    counter_lock = threading.Lock()

    def worker(pid):
        for _ in range(200):
            chopstick.acquire(pid)
            with counter_lock:
                inside[0] += 1
                max_inside[0] = max(max_inside[0], inside[0])
            with counter_lock:
                inside[0] -= 1
            chopstick.release(pid)

    threads = [threading.Thread(target=worker, args=(pid,)) for pid in range(8)]
    for t in threads:
        t.start()
    for t in threads:
        t.join(10)

    assert not any(t.is_alive() for t in threads), "Workers did not finish"
    assert max_inside[0] == 1
    assert chopstick.acquisitions == chopstick.releases == 1600
    print(f"  ✓ 1600 acquisitions, max concurrent holders = {max_inside[0]}")


def test_try_acquire_respects_bound():
    """try_acquire on a held chopstick returns False within the wait bound."""
    chopstick = Chopstick(0)
    chopstick.acquire(holder=0)

    started = time.monotonic()
    acquired = chopstick.try_acquire(holder=1, timeout=0.2)
    waited = time.monotonic() - started

    assert not acquired
    assert 0.15 <= waited <= 0.2 + 0.25, f"Waited {waited:.3f}s for a 0.2s bound"
    assert chopstick.holder == 0

    chopstick.release(holder=0)
    assert chopstick.try_acquire(holder=1, timeout=0.2)
    assert chopstick.holder == 1


def test_try_acquire_succeeds_when_released_during_wait():
    chopstick = Chopstick(0)
    chopstick.acquire(holder=0)

    timer = threading.Timer(0.05, chopstick.release, args=(0,))
    timer.start()
    try:
        assert chopstick.try_acquire(holder=1, timeout=2.0)
    finally:
        timer.join()
    assert chopstick.holder == 1


def test_cancel_wakes_blocked_acquirer():
    """A blocked acquire returns False once the cancel event is set."""
    chopstick = Chopstick(0)
    chopstick.acquire(holder=0)
    cancel = threading.Event()
    result = []

    t = threading.Thread(target=lambda: result.append(chopstick.acquire(1, cancel)))
    t.start()
    time.sleep(0.05)
    assert t.is_alive(), "Acquirer should block while the chopstick is held"

    cancel.set()
    chopstick.wake_waiters()
    t.join(2)

    assert not t.is_alive()
    assert result == [False]
    assert chopstick.holder == 0


@pytest.mark.parametrize("bounded", [False, True])
def test_cancel_wins_over_release(bounded):
    """Cancel set, then the holder releases: the waiter must not take the chopstick."""
    chopstick = Chopstick(0)
    chopstick.acquire(holder=0)
    cancel = threading.Event()
    result = []

    def waiter():
        if bounded:
            result.append(chopstick.try_acquire(1, timeout=5.0, cancel=cancel))
        else:
            result.append(chopstick.acquire(1, cancel))

    t = threading.Thread(target=waiter)
    t.start()
    time.sleep(0.05)
    assert t.is_alive()

    cancel.set()
    chopstick.release(holder=0)
    t.join(2)

    assert not t.is_alive()
    assert result == [False]
    assert chopstick.holder is None
    assert chopstick.acquisitions == chopstick.releases == 1


def test_cancelled_acquire_of_free_chopstick():
    chopstick = Chopstick(0)
    cancel = threading.Event()
    cancel.set()

    assert not chopstick.acquire(1, cancel)
    assert not chopstick.try_acquire(1, timeout=0.1, cancel=cancel)
    assert not chopstick.is_held


def test_philosopher_binding_validation():
    """Missing or duplicate chopstick bindings are configuration errors."""
    c0, c1 = Chopstick(0), Chopstick(1)
    stop = threading.Event()

    with pytest.raises(ConfigurationError):
        Philosopher(0, None, c1, NaivePolicy(), stop)
    with pytest.raises(ConfigurationError):
        Philosopher(0, c0, None, NaivePolicy(), stop)
    with pytest.raises(ConfigurationError):
        Philosopher(0, c0, c0, NaivePolicy(), stop)
    with pytest.raises(ConfigurationError):
        Philosopher(0, c0, Chopstick(0), NaivePolicy(), stop)
    with pytest.raises(ConfigurationError):
        Philosopher(0, c0, c1, NaivePolicy(), stop, max_meals=0)

    p = Philosopher(0, c0, c1, NaivePolicy(), stop)
    assert p.state == PhilosopherState.THINKING
    assert p.side_of(c0) == "left" and p.side_of(c1) == "right"


@pytest.mark.parametrize("size", [0, 1, -3, "5", 2.0, True])
def test_table_rejects_invalid_size(size):
    with pytest.raises(ConfigurationError):
        DiningTable(size)


def test_table_rejects_unknown_policy():
    with pytest.raises(ConfigurationError):
        DiningTable(5, policy="waiter")


def test_table_ring_layout():
    """Philosopher i gets chopsticks i and (i+1) mod N."""
    table = DiningTable(5)

    assert table.num_philosophers == 5
    assert table.num_chopsticks == 5
    for i, p in enumerate(table.philosophers):
        assert p.left is table.chopsticks[i]
        assert p.right is table.chopsticks[(i + 1) % 5]
    assert table.arbiter is None

    print(table.display())


def test_table_snapshot_matrices():
    """Snapshot reflects held and awaited chopsticks."""
    table = DiningTable(3)
    p0, p1 = table.philosophers[0], table.philosophers[1]

    # Drive the bookkeeping by hand: P0 holds C0, P1 holds C1 and waits for C2
    assert table.chopsticks[0].acquire(0)
    p0.record_acquired(table.chopsticks[0], 0.0)
    assert table.chopsticks[1].acquire(1)
    p1.record_acquired(table.chopsticks[1], 0.0)
    p1.await_chopstick(table.chopsticks[2])

    snapshot = table.snapshot()
    assert snapshot['allocation'].shape == (3, 3)
    assert snapshot['allocation'][0][0] == 1
    assert snapshot['allocation'][1][1] == 1
    assert snapshot['request'][1][2] == 1
    assert list(snapshot['available']) == [0, 0, 1]
    assert p1.state == PhilosopherState.AWAITING_RIGHT

    p0.release_all()
    p1.abandon_wait()
    p1.release_all()
    table.assert_all_released("after manual release")


def test_table_cannot_start_twice():
    table = DiningTable(2, max_meals=1)
    table.start()
    try:
        with pytest.raises(RuntimeError):
            table.start()
    finally:
        assert table.stop(timeout=5)
