"""
schedule.py
-----------

Coarse-to-fine step-size schedule.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from rhythmstair.staircase.config import StaircaseConfig


def step_size_for_reversal(reversal_count: int, config: StaircaseConfig) -> float:
    """
    Step magnitude to use once ``reversal_count`` reversals have occurred.

    Parameters
    ----------
    reversal_count : int
        Reversals observed so far (>= 0).
    config : StaircaseConfig

    Returns
    -------
    float
        ``initial_step_size`` before the first reversal, then
        ``step_sizes[reversal_count - 1]`` with the last entry repeating.
    """
    if reversal_count < 0:
        raise ValueError(f"reversal_count must be >= 0, got {reversal_count}")
    if reversal_count == 0:
        return config.initial_step_size
    index = min(reversal_count - 1, len(config.step_sizes) - 1)
    return config.step_sizes[index]
