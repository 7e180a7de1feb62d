"""
Algorithms package for the Dining Philosophers Deadlock Simulator.
Contains acquisition policies, the Banker's-style admission arbiter and deadlock detection.
"""
