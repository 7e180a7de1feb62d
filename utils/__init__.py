"""
Utilities for the Dining Philosophers Deadlock Simulator.
Logging, configuration loading and randomized durations.
"""
