"""
trial.py
--------

Append-only trial record shared by the controller and the convergence
detector.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Optional, Sequence

import numpy as np

from rhythmstair.staircase.config import Direction


@dataclass(frozen=True)
class StaircaseTrial:
    """
    One presented stimulus and the subject's response.

    Attributes
    ----------
    trial_index : int
        0-based position in the history.
    level : float
        Level at which the stimulus was presented.
    response : bool
        True for a correct (or "heard") response.
    is_reversal : bool
        Whether this trial flipped the direction of level adjustment.
    timestamp : datetime
        Time the response was recorded (timezone aware).
    step_size : float
        Step magnitude applied after this trial; 0.0 if the level did not move.
    direction : {"up", "down"} or None
        Direction of the step triggered by this trial, None for no change.
    next_level : float
        Level presented on the following trial.
    """

    trial_index: int
    level: float
    response: bool
    is_reversal: bool
    timestamp: datetime
    step_size: float = 0.0
    direction: Optional[Direction] = None
    next_level: float = float("nan")


def reversal_levels(trials: Sequence[StaircaseTrial]) -> list[float]:
    """Levels presented on the reversal trials, in order."""
    return [t.level for t in trials if t.is_reversal]


def count_reversals(trials: Sequence[StaircaseTrial]) -> int:
    return sum(1 for t in trials if t.is_reversal)


def trials_to_numpy(
    trials: Sequence[StaircaseTrial],
) -> tuple[np.ndarray, np.ndarray, np.ndarray]:
    """
    Return levels, responses and reversal flags as numpy arrays.

    Returns
    -------
    levels : np.ndarray of float
    responses : np.ndarray of bool
    reversals : np.ndarray of bool
    """
    return (
        np.array([t.level for t in trials], dtype=float),
        np.array([t.response for t in trials], dtype=bool),
        np.array([t.is_reversal for t in trials], dtype=bool),
    )
