"""
Error types for the Dining Philosophers Deadlock Simulator.
"""


class ConfigurationError(ValueError):
    """Raised when a table or philosopher is built from an invalid configuration."""
    pass
