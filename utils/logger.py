"""
Logger utility for the Dining Philosophers Deadlock Simulator.

Console/file logging with verbosity levels. Philosopher threads narrate
concurrently, so every write happens under one lock.
"""

import threading
from typing import List, Optional
from datetime import datetime


LEVEL_PREFIXES = {
    "error": "[ERROR] ",
    "warning": "[WARNING] ",
    "debug": "[DEBUG] ",
}


class SimulatorLogger:
    """
    Logger for table events and simulator decisions.

    Doubles as an event sink: ``add(event)`` prints the narration line,
    e.g. "[   0.412s] Philosopher 2 picked up left chopstick C2."
    """

    def __init__(self, verbose: bool = False, log_file: Optional[str] = None,
                 narrate: bool = True):
        """
        Args:
            verbose: Print debug messages and table state dumps
            log_file: Optional path; the log is mirrored there
            narrate: Print table events passed to ``add``
        """
        self.verbose = verbose
        self.narrate = narrate
        self.log_file = log_file
        self._lock = threading.Lock()
        self._handle = None

        if log_file:
            self._handle = open(log_file, 'w', encoding='utf-8')
            started = datetime.now().strftime("%Y-%m-%d %H:%M:%S")
            self._handle.write(f"Dining Philosophers Log - {started}\n{'='*60}\n\n")

    def log(self, message: str, level: str = "info") -> None:
        """
        Log a message.

        Args:
            message: Message to log
            level: One of info, debug, warning, error
        """
        if level == "debug" and not self.verbose:
            return

        line = LEVEL_PREFIXES.get(level, "") + message

        with self._lock:
            print(line)
            if self._handle:
                self._handle.write(line + "\n")
                self._handle.flush()

    def add(self, event) -> None:
        """Event sink hook: narrate one table event."""
        if self.narrate:
            self.log(str(event))

    def log_deadlock(self, elapsed: float, deadlocked_pids: List[int], cycle: List[int]) -> None:
        """
        Report a confirmed deadlock.

        Args:
            elapsed: Seconds since the table started
            deadlocked_pids: Philosophers that cannot proceed
            cycle: Wait-for cycle as a list of PIDs (may be empty)
        """
        blocked = ", ".join(f"P{pid}" for pid in deadlocked_pids)
        message = f"[{elapsed:8.3f}s] DEADLOCK DETECTED - Philosophers in deadlock: [{blocked}]"
        if cycle:
            message += " cycle: " + " -> ".join(f"P{pid}" for pid in cycle + cycle[:1])
        self.log(message)

    def log_table_state(self, state_str: str) -> None:
        if self.verbose:
            self.log(f"Table State:\n{state_str}")

    def close(self) -> None:
        with self._lock:
            if self._handle:
                self._handle.close()
                self._handle = None

    def __del__(self):
        self.close()
