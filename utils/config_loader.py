"""
Config Loader for the Dining Philosophers Deadlock Simulator.

Loads and validates JSON table configuration files.
"""

import json
from dataclasses import dataclass, fields, replace
from typing import Any, Dict, Optional, Tuple

from algorithms.policies import Policy
from models.errors import ConfigurationError
from utils.timing import DEFAULT_EAT_TIME, DEFAULT_THINK_TIME


class ConfigLoadError(Exception):
    """Exception raised when a config file cannot be loaded or is invalid."""
    pass


@dataclass
class TableConfig:
    """
    Settings for one simulation run.

    Attributes:
        num_philosophers: Ring size N (>= 2)
        policy: Acquisition policy name
        think_time: (low, high) think duration range in seconds
        eat_time: (low, high) eat duration range in seconds
        acquire_timeout: Wait bound for the timeout policy
        retry_delay: Pause after a failed timeout attempt
        max_meals: Meals per philosopher before leaving (None = until stopped)
        seed: Seed for reproducible durations (None = random)
        duration: Wall-clock bound on the run in seconds
        stall_timeout: Seconds without any meal before the watchdog reports a stall
        detect_interval: Seconds between deadlock detection runs during a stall
    """
    num_philosophers: int = 5
    policy: str = "naive"
    think_time: Tuple[float, float] = DEFAULT_THINK_TIME
    eat_time: Tuple[float, float] = DEFAULT_EAT_TIME
    acquire_timeout: float = 0.5
    retry_delay: float = 0.1
    max_meals: Optional[int] = None
    seed: Optional[int] = None
    duration: float = 10.0
    stall_timeout: float = 3.0
    detect_interval: float = 0.5

    def __post_init__(self):
        """Validate configuration values."""
        if isinstance(self.num_philosophers, bool) or not isinstance(self.num_philosophers, int):
            raise ConfigurationError(f"num_philosophers must be an integer, got {self.num_philosophers!r}")
        if self.num_philosophers < 2:
            raise ConfigurationError(f"num_philosophers must be at least 2, got {self.num_philosophers}")

        self.policy = Policy.parse(self.policy).value
        self.think_time = tuple(self.think_time)
        self.eat_time = tuple(self.eat_time)
        for name in ('think_time', 'eat_time'):
            bounds = getattr(self, name)
            if len(bounds) != 2 or bounds[0] < 0 or bounds[1] < bounds[0]:
                raise ConfigurationError(f"{name} must be (low, high) with 0 <= low <= high, got {bounds}")

        if self.acquire_timeout <= 0:
            raise ConfigurationError(f"acquire_timeout must be positive, got {self.acquire_timeout}")
        if self.retry_delay < 0:
            raise ConfigurationError(f"retry_delay cannot be negative, got {self.retry_delay}")
        if self.max_meals is not None and self.max_meals < 1:
            raise ConfigurationError(f"max_meals must be positive, got {self.max_meals}")
        if self.duration <= 0:
            raise ConfigurationError(f"duration must be positive, got {self.duration}")
        if self.stall_timeout <= 0:
            raise ConfigurationError(f"stall_timeout must be positive, got {self.stall_timeout}")
        if self.detect_interval <= 0:
            raise ConfigurationError(f"detect_interval must be positive, got {self.detect_interval}")

    def with_overrides(self, **overrides) -> "TableConfig":
        """Copy of this config with every non-None override applied."""
        changes = {k: v for k, v in overrides.items() if v is not None}
        return replace(self, **changes)


def load_config(file_path: str) -> TableConfig:
    """
    Load table configuration from JSON file.

    Unknown keys are rejected; missing keys take TableConfig defaults.

    Args:
        file_path: Path to config JSON file

    Returns:
        Validated TableConfig

    Raises:
        ConfigLoadError: If file cannot be loaded or is invalid
    """
    try:
        with open(file_path, 'r', encoding='utf-8') as f:
            data = json.load(f)
    except FileNotFoundError:
        raise ConfigLoadError(f"Config file not found: {file_path}")
    except json.JSONDecodeError as e:
        raise ConfigLoadError(f"Invalid JSON in config file: {e}")

    return config_from_dict(data)


def config_from_dict(data: Dict[str, Any]) -> TableConfig:
    """
    Build a TableConfig from parsed JSON data.

    Raises:
        ConfigLoadError: On unknown fields, wrong shapes or invalid values
    """
    if not isinstance(data, dict):
        raise ConfigLoadError("Config must be a JSON object")

    known = {f.name for f in fields(TableConfig)}
    unknown = sorted(set(data) - known)
    if unknown:
        raise ConfigLoadError(f"Unknown config field(s): {', '.join(unknown)}")

    for key in ('think_time', 'eat_time'):
        if key in data:
            _validate_range_field(key, data[key])

    try:
        return TableConfig(**data)
    except (ConfigurationError, TypeError) as e:
        raise ConfigLoadError(f"Invalid config: {e}")


def _validate_range_field(key: str, value: Any) -> None:
    """Check that a duration range is a two-element list of non-negative numbers."""
    if not isinstance(value, (list, tuple)) or len(value) != 2:
        raise ConfigLoadError(f"'{key}' must be a [low, high] pair, got {value!r}")
    low, high = value
    if not all(isinstance(v, (int, float)) and not isinstance(v, bool) for v in value):
        raise ConfigLoadError(f"'{key}' values must be numbers, got {value!r}")
    if low < 0 or high < low:
        raise ConfigLoadError(f"'{key}' must satisfy 0 <= low <= high, got {value!r}")
