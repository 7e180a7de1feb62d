"""
Analysis package for the Dining Philosophers Deadlock Simulator.
Contains the event model, liveness watchdog, metrics and policy comparison.
"""
