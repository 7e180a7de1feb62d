"""
Models package for the Dining Philosophers Deadlock Simulator.
Contains the chopstick, philosopher and table models.
"""
