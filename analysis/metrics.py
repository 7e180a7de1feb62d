"""
Metrics Tracking for the Dining Philosophers Deadlock Simulator.

Derives performance metrics from a run's EventLog.
"""

from dataclasses import dataclass, field
from typing import Dict, List, Optional
import statistics

import numpy as np

from analysis.events import ACQUIRED_EVENTS, EventLog, EventType


@dataclass
class SimulationMetrics:
    """
    Accumulated metrics for a single simulation run.

    Tracks five key performance metrics:
    1. Deadlock Count: Deadlocks detected by the watchdog
    2. Throughput: Meals started per second
    3. Acquisition Wait: Mean seconds waited before a chopstick was granted
    4. Timeouts: Abandoned acquisition attempts (timeout policy)
    5. Fairness: Jain's index over meals per philosopher (1.0 = perfectly even)
    """
    policy: str = ""
    num_philosophers: int = 0
    elapsed: float = 0.0
    deadlock_count: int = 0

    meals: Dict[int, int] = field(default_factory=dict)
    timeouts: Dict[int, int] = field(default_factory=dict)
    acquisitions: Dict[int, int] = field(default_factory=dict)
    releases: Dict[int, int] = field(default_factory=dict)
    wait_samples: List[float] = field(default_factory=list)

    def record_deadlock(self) -> None:
        """Record a deadlock occurrence."""
        self.deadlock_count += 1

    @property
    def total_meals(self) -> int:
        return sum(self.meals.values())

    @property
    def total_timeouts(self) -> int:
        return sum(self.timeouts.values())

    def get_throughput(self) -> float:
        """Meals per second over the run."""
        if self.elapsed <= 0:
            return 0.0
        return self.total_meals / self.elapsed

    def get_avg_wait(self) -> float:
        """Mean wait before a successful acquisition, in seconds."""
        if not self.wait_samples:
            return 0.0
        return statistics.mean(self.wait_samples)

    def get_max_wait(self) -> float:
        if not self.wait_samples:
            return 0.0
        return max(self.wait_samples)

    def get_fairness(self) -> float:
        """
        Jain's fairness index over meals per philosopher.

        Formula: (sum x)^2 / (n * sum x^2); 1.0 when everyone ate equally,
        1/n when a single philosopher ate everything.
        """
        counts = np.array([self.meals.get(pid, 0) for pid in range(self.num_philosophers)], dtype=float)
        if counts.size == 0 or not counts.any():
            return 0.0
        return float(counts.sum() ** 2 / (counts.size * (counts ** 2).sum()))

    def starved(self) -> List[int]:
        """PIDs that never ate."""
        return [pid for pid in range(self.num_philosophers) if self.meals.get(pid, 0) == 0]


def collect_metrics(
    event_log: EventLog,
    num_philosophers: int,
    elapsed: float,
    policy: str = ""
) -> SimulationMetrics:
    """
    Build SimulationMetrics from the events of one run.

    Args:
        event_log: Events recorded during the run
        num_philosophers: Ring size
        elapsed: Run duration in seconds
        policy: Policy name (for reports)
    """
    metrics = SimulationMetrics(policy=policy, num_philosophers=num_philosophers, elapsed=elapsed)
    for pid in range(num_philosophers):
        metrics.meals[pid] = 0
        metrics.timeouts[pid] = 0

    for event in event_log.snapshot():
        if event.event_type == EventType.EATING:
            metrics.meals[event.philosopher_id] += 1
        elif event.event_type == EventType.ACQUIRE_TIMEOUT:
            metrics.timeouts[event.philosopher_id] += 1
        elif event.event_type in ACQUIRED_EVENTS:
            metrics.acquisitions[event.chopstick_id] = metrics.acquisitions.get(event.chopstick_id, 0) + 1
            if event.waited is not None:
                metrics.wait_samples.append(event.waited)
        elif event.event_type == EventType.RELEASED:
            metrics.releases[event.chopstick_id] = metrics.releases.get(event.chopstick_id, 0) + 1
        elif event.event_type == EventType.DEADLOCK:
            metrics.record_deadlock()

    return metrics


@dataclass
class MetricAccumulator:
    """Accumulates metrics across multiple simulation runs."""
    runs: List[SimulationMetrics] = field(default_factory=list)

    def add_run(self, metrics: SimulationMetrics) -> None:
        """Add metrics from a simulation run."""
        self.runs.append(metrics)

    def get_deadlock_frequency(self) -> float:
        """Fraction of runs that deadlocked."""
        if not self.runs:
            return 0.0
        return sum(1 for run in self.runs if run.deadlock_count > 0) / len(self.runs)

    def get_aggregate_throughput(self) -> float:
        if not self.runs:
            return 0.0
        return statistics.mean(run.get_throughput() for run in self.runs)

    def get_aggregate_wait(self) -> float:
        if not self.runs:
            return 0.0
        return statistics.mean(run.get_avg_wait() for run in self.runs)

    def get_aggregate_fairness(self) -> float:
        if not self.runs:
            return 0.0
        return statistics.mean(run.get_fairness() for run in self.runs)

    def get_aggregate_timeouts(self) -> float:
        """Mean abandoned attempts per run."""
        if not self.runs:
            return 0.0
        return statistics.mean(run.total_timeouts for run in self.runs)


def format_metrics_report(
    metrics: SimulationMetrics,
    verbose: bool = False,
    stop_reason: Optional[str] = None
) -> str:
    """
    Format metrics for display at end of simulation.

    Args:
        metrics: SimulationMetrics instance with collected data
        verbose: If True, include metric formulas
        stop_reason: Reason simulation stopped

    Returns:
        Formatted metrics report string
    """
    lines = []
    lines.append("\n" + "="*60)
    lines.append("SIMULATION METRICS")
    lines.append("="*60)

    if metrics.policy:
        lines.append(f"Policy: {metrics.policy.upper()}")
    if stop_reason:
        lines.append(f"Stop Reason: {stop_reason}")
    lines.append(f"Philosophers: {metrics.num_philosophers}")
    lines.append(f"Elapsed: {metrics.elapsed:.2f}s")
    lines.append("")

    lines.append("KEY PERFORMANCE METRICS:")
    lines.append("-" * 60)
    lines.append(f"1. Deadlock Count: {metrics.deadlock_count}")
    lines.append(f"2. Throughput: {metrics.get_throughput():.2f} meals/s ({metrics.total_meals} meals)")
    lines.append(f"3. Average Acquisition Wait: {metrics.get_avg_wait():.3f}s (max {metrics.get_max_wait():.3f}s)")
    lines.append(f"4. Acquisition Timeouts: {metrics.total_timeouts}")
    lines.append(f"5. Fairness (Jain): {metrics.get_fairness():.3f}")

    lines.append("")
    lines.append("PER-PHILOSOPHER SUMMARY:")
    lines.append("-" * 60)
    for pid in range(metrics.num_philosophers):
        lines.append(
            f"  P{pid}: meals={metrics.meals.get(pid, 0):4} "
            f"timeouts={metrics.timeouts.get(pid, 0):4}"
        )

    starved = metrics.starved()
    if starved:
        lines.append(f"  Never ate: {', '.join(f'P{pid}' for pid in starved)}")

    if verbose:
        lines.append("")
        lines.append("METRIC FORMULAS:")
        lines.append("-" * 60)
        lines.append("1. Deadlock Count: Number of times the watchdog confirmed a deadlock")
        lines.append("2. Throughput: EATING events / elapsed seconds")
        lines.append("3. Acquisition Wait: Mean time between requesting and getting a chopstick")
        lines.append("4. Timeouts: Attempts abandoned after the wait bound")
        lines.append("5. Fairness: (SUM meals)^2 / (N x SUM meals^2)")

    lines.append("="*60)
    return "\n".join(lines)
