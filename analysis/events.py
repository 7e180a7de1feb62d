"""
Event Model for the Dining Philosophers Deadlock Simulator.

Defines event types for tracking philosopher state transitions.
"""

import threading
from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional


class EventType(Enum):
    """Types of events emitted by the table."""
    THINKING = "thinking"
    ACQUIRED_LEFT = "acquired_left"
    ACQUIRED_RIGHT = "acquired_right"
    EATING = "eating"
    RELEASED = "released"
    ACQUIRE_TIMEOUT = "acquire_timeout"
    FINISHED = "finished"
    DEADLOCK = "deadlock"


ACQUIRED_EVENTS = (EventType.ACQUIRED_LEFT, EventType.ACQUIRED_RIGHT)


@dataclass
class TableEvent:
    """
    Represents a single event at the table.

    Attributes:
        elapsed: Seconds since the table was started
        event_type: Type of event
        philosopher_id: PID involved in event (-1 for table-wide events)
        chopstick_id: Chopstick involved (if applicable)
        waited: Seconds spent waiting before an acquisition or timeout
        message: Human-readable detail
        sequence: Position in the EventLog (assigned on add)
    """
    elapsed: float
    event_type: EventType
    philosopher_id: int
    chopstick_id: Optional[int] = None
    waited: Optional[float] = None
    message: str = ""
    sequence: int = -1

    def __str__(self) -> str:
        """Format event for logging."""
        base = f"[{self.elapsed:8.3f}s] Philosopher {self.philosopher_id}"

        if self.event_type == EventType.THINKING:
            return f"{base} is thinking."
        elif self.event_type == EventType.ACQUIRED_LEFT:
            return f"{base} picked up left chopstick C{self.chopstick_id}."
        elif self.event_type == EventType.ACQUIRED_RIGHT:
            return f"{base} picked up right chopstick C{self.chopstick_id}."
        elif self.event_type == EventType.EATING:
            return f"{base} is eating."
        elif self.event_type == EventType.RELEASED:
            return f"{base} put down chopstick C{self.chopstick_id}."
        elif self.event_type == EventType.ACQUIRE_TIMEOUT:
            return (
                f"{base} gave up on chopstick C{self.chopstick_id} "
                f"after {self.waited:.3f}s and goes back to thinking."
            )
        elif self.event_type == EventType.FINISHED:
            return f"{base} left the table ({self.message})."
        elif self.event_type == EventType.DEADLOCK:
            return f"[{self.elapsed:8.3f}s] DEADLOCK DETECTED ({self.message})"
        else:
            return f"{base} - {self.event_type.value}: {self.message}"


@dataclass
class EventLog:
    """
    Thread-safe collection of table events.

    Acts as an event sink: philosophers call ``add`` from their own threads,
    and every event gets a sequence number in arrival order.
    """
    events: List[TableEvent] = field(default_factory=list)

    def __post_init__(self):
        self._lock = threading.Lock()

    def add(self, event: TableEvent) -> None:
        """Add an event to the log."""
        with self._lock:
            event.sequence = len(self.events)
            self.events.append(event)

    def snapshot(self) -> List[TableEvent]:
        """Copy of the events recorded so far."""
        with self._lock:
            return list(self.events)

    def get_events_by_type(self, event_type: EventType) -> list:
        """Get all events of a specific type."""
        return [e for e in self.snapshot() if e.event_type == event_type]

    def get_events_for_philosopher(self, philosopher_id: int) -> list:
        """Get all events emitted by one philosopher."""
        return [e for e in self.snapshot() if e.philosopher_id == philosopher_id]

    def get_events_for_chopstick(self, chopstick_id: int) -> list:
        """Get all acquisition/release events touching one chopstick."""
        return [
            e for e in self.snapshot()
            if e.chopstick_id == chopstick_id
            and (e.event_type in ACQUIRED_EVENTS or e.event_type == EventType.RELEASED)
        ]

    def count(self, event_type: EventType) -> int:
        return len(self.get_events_by_type(event_type))

    def display(self) -> str:
        """Format all events for display."""
        return "\n".join(str(event) for event in self.snapshot())

    def __len__(self) -> int:
        with self._lock:
            return len(self.events)
