"""
simulation
==========

Simulated observers for exercising staircases without a subject.
"""

from .observer import LogisticObserver, simulate_staircase

__all__ = ["LogisticObserver", "simulate_staircase"]
