#!/usr/bin/env python3
"""
Dining Philosophers Deadlock Simulator
Main entry point for the simulation system.

Seats N philosophers around N chopsticks, runs them with the selected
acquisition policy, and reports deadlocks and metrics.
"""

import argparse
import sys
from typing import Callable, Optional, Sequence, Tuple

from algorithms.detection import detect_deadlock, find_wait_cycle, should_run_detection
from algorithms.policies import policy_names
from analysis.analyzer import compare_policies, generate_comparison_report
from analysis.events import EventLog, EventType, TableEvent
from analysis.metrics import SimulationMetrics, collect_metrics, format_metrics_report
from analysis.watchdog import LivenessWatchdog
from models.errors import ConfigurationError
from models.table import DiningTable
from utils.config_loader import ConfigLoadError, TableConfig, load_config
from utils.logger import SimulatorLogger
from utils.timing import RandomDurations


POLL_INTERVAL = 0.05

STOP_DURATION = "Duration elapsed"
STOP_FINISHED = "All philosophers finished"
STOP_DEADLOCK = "Deadlock detected"


def build_table(
    config: TableConfig,
    sinks: Sequence = (),
    logger: Optional[SimulatorLogger] = None,
    on_first_acquired: Optional[Callable] = None
) -> DiningTable:
    """Create a DiningTable from a TableConfig."""
    return DiningTable(
        num_philosophers=config.num_philosophers,
        policy=config.policy,
        acquire_timeout=config.acquire_timeout,
        retry_delay=config.retry_delay,
        durations=RandomDurations(config.think_time, config.eat_time, config.seed),
        sinks=sinks,
        max_meals=config.max_meals,
        on_first_acquired=on_first_acquired,
        logger=logger
    )


def run_simulation(
    config: TableConfig,
    verbose: bool = False,
    narrate: bool = False,
    logger: Optional[SimulatorLogger] = None,
    on_first_acquired: Optional[Callable] = None
) -> Tuple[EventLog, SimulationMetrics, str]:
    """
    Run the dining philosophers with the configured policy.

    Loop (every POLL_INTERVAL):
    1. Stop if every philosopher left the table (max_meals reached)
    2. If the watchdog reports a stall, run deadlock detection
       (at most once per detect_interval)
    3. Stop on confirmed deadlock or when the duration elapses
    Then stop the table, which releases every chopstick.

    Args:
        config: Table settings
        verbose: Enable debug logging and the final table display
        narrate: Print every table event
        logger: Logger to use (a new one is created and closed otherwise)
        on_first_acquired: Hook passed to every philosopher

    Returns:
        Tuple of (EventLog, SimulationMetrics, stop_reason)
    """
    owns_logger = logger is None
    if logger is None:
        logger = SimulatorLogger(verbose=verbose, narrate=narrate)

    event_log = EventLog()
    watchdog = LivenessWatchdog(config.stall_timeout)
    table = build_table(config, [event_log, watchdog, logger], logger, on_first_acquired)

    logger.log(f"\n{'='*60}")
    logger.log(f"SIMULATION START: {table.acquisition.describe().upper()}")
    logger.log(f"Philosophers: {config.num_philosophers}, duration: {config.duration}s, "
               f"max meals: {config.max_meals or 'unbounded'}, seed: {config.seed}")
    logger.log(f"{'='*60}\n")

    table.start()
    watchdog.reset()

    stop_reason = STOP_DURATION
    last_detection = float("-inf")

    while table.elapsed() < config.duration:
        if table.join(POLL_INTERVAL):
            stop_reason = STOP_FINISHED
            break

        if not watchdog.stalled():
            continue

        elapsed = table.elapsed()
        if not should_run_detection(elapsed, last_detection, config.detect_interval):
            continue
        last_detection = elapsed

        snapshot = table.snapshot()
        deadlock_exists, deadlocked_pids = detect_deadlock(
            snapshot['allocation'], snapshot['request'], snapshot['available']
        )

        if deadlock_exists:
            cycle = find_wait_cycle(snapshot['allocation'], snapshot['request'])
            logger.log(f"\n{'!'*60}")
            logger.log_deadlock(elapsed, deadlocked_pids, cycle)
            logger.log(f"{'!'*60}\n")
            logger.log_table_state(table.display())

            event_log.add(TableEvent(
                elapsed=elapsed,
                event_type=EventType.DEADLOCK,
                philosopher_id=-1,  # No single philosopher - table-wide event
                message=f"philosophers {deadlocked_pids} blocked"
            ))
            stop_reason = STOP_DEADLOCK
            break

        logger.log(
            f"No meal for {watchdog.seconds_since_progress():.2f}s but no deadlock "
            f"(hungry: {watchdog.hungry(config.num_philosophers)})",
            "debug"
        )

    elapsed = table.elapsed()
    table.stop()

    logger.log(f"\n{'='*60}")
    logger.log("SIMULATION COMPLETE")
    logger.log(f"{'='*60}")

    if verbose:
        logger.log(table.display())

    metrics = collect_metrics(event_log, config.num_philosophers, elapsed, config.policy)
    logger.log(format_metrics_report(metrics, verbose, stop_reason))

    if owns_logger:
        logger.close()
    return event_log, metrics, stop_reason


def _build_config(args: argparse.Namespace) -> TableConfig:
    """Load the config file (if any) and apply command-line overrides."""
    base = load_config(args.config) if args.config else TableConfig()
    return base.with_overrides(
        num_philosophers=args.philosophers,
        policy=args.policy,
        duration=args.duration,
        max_meals=args.max_meals,
        seed=args.seed,
        acquire_timeout=args.acquire_timeout,
        retry_delay=args.retry_delay,
        stall_timeout=args.stall_timeout,
        think_time=tuple(args.think_time) if args.think_time else None,
        eat_time=tuple(args.eat_time) if args.eat_time else None
    )


def main(argv: Optional[Sequence[str]] = None) -> int:
    """Main entry point for the simulator."""
    parser = argparse.ArgumentParser(
        description='Dining Philosophers Deadlock Simulator'
    )
    parser.add_argument(
        '--policy',
        choices=policy_names(),
        help='Chopstick acquisition policy (default: naive)'
    )
    parser.add_argument(
        '--philosophers',
        type=int,
        help='Number of philosophers, at least 2 (default: 5)'
    )
    parser.add_argument(
        '--duration',
        type=float,
        help='Seconds to run before stopping the table (default: 10)'
    )
    parser.add_argument(
        '--config',
        type=str,
        help='Path to table config JSON file'
    )
    parser.add_argument(
        '--seed',
        type=int,
        help='Seed for reproducible think/eat durations'
    )
    parser.add_argument(
        '--max-meals',
        type=int,
        help='Meals per philosopher before it leaves the table'
    )
    parser.add_argument(
        '--acquire-timeout',
        type=float,
        help='Wait bound per chopstick for the timeout policy (default: 0.5)'
    )
    parser.add_argument(
        '--retry-delay',
        type=float,
        help='Pause after a failed attempt for the timeout policy (default: 0.1)'
    )
    parser.add_argument(
        '--stall-timeout',
        type=float,
        help='Seconds without a meal before deadlock detection runs (default: 3)'
    )
    parser.add_argument(
        '--think-time',
        type=float,
        nargs=2,
        metavar=('LOW', 'HIGH'),
        help='Think duration range in seconds (default: 0 1)'
    )
    parser.add_argument(
        '--eat-time',
        type=float,
        nargs=2,
        metavar=('LOW', 'HIGH'),
        help='Eat duration range in seconds (default: 0 1)'
    )
    parser.add_argument(
        '--verbose',
        action='store_true',
        help='Enable verbose logging'
    )
    parser.add_argument(
        '--quiet',
        action='store_true',
        help='Do not narrate individual philosopher events'
    )
    parser.add_argument(
        '--log-file',
        type=str,
        help='Also write the log to this file'
    )
    parser.add_argument(
        '--analyze',
        action='store_true',
        help='Run performance analysis mode'
    )
    parser.add_argument(
        '--compare-policies',
        action='store_true',
        help='Compare all policies (requires --analyze)'
    )
    parser.add_argument(
        '--runs',
        type=int,
        default=5,
        help='Number of simulation runs per policy for analysis (default: 5)'
    )

    args = parser.parse_args(argv)

    if args.compare_policies and not args.analyze:
        parser.error('--compare-policies requires --analyze')
    if args.runs < 1:
        parser.error('--runs must be at least 1')

    logger = SimulatorLogger(verbose=args.verbose, log_file=args.log_file, narrate=not args.quiet)

    try:
        config = _build_config(args)
    except (ConfigLoadError, ConfigurationError) as e:
        logger.log(f"Failed to load configuration: {e}", "error")
        logger.close()
        return 1

    if args.analyze:
        policies = policy_names() if args.compare_policies else [config.policy]
        results, _ = compare_policies(
            policies=policies,
            base_config=config,
            num_runs=args.runs,
            verbose_runs=args.verbose,
            run_simulation_func=run_simulation
        )
        logger.log(generate_comparison_report(results, config, args.runs))
    else:
        run_simulation(config, verbose=args.verbose, logger=logger)

    logger.close()
    return 0


if __name__ == '__main__':
    sys.exit(main())
