"""
tempo.py
--------

Inter-onset-interval (IOI) helpers for the tempo-direction tests.

A tempo change with slope k (ms/beat) produces

    IOI_n = IOI_0 - k * n    (accelerando)
    IOI_n = IOI_0 + k * n    (ritardando)

floored at ``min_ioi`` so the beats never collapse.
"""

from __future__ import annotations

from typing import Literal, Sequence

import numpy as np

TempoDirection = Literal["accelerando", "ritardando"]
TEMPO_DIRECTIONS: tuple[TempoDirection, ...] = ("accelerando", "ritardando")

DEFAULT_BASE_IOI_MS = 500.0
DEFAULT_MIN_IOI_MS = 100.0
DEFAULT_N_BEATS = 12
# Net first-to-last IOI change (ms) below which a sequence counts as steady.
STEADY_TOLERANCE_MS = 10.0


def bpm_to_ioi(bpm: float) -> float:
    """Beats per minute -> IOI in milliseconds."""
    if bpm <= 0:
        raise ValueError(f"bpm must be positive, got {bpm}")
    return 60_000.0 / bpm


def ioi_to_bpm(ioi: float) -> float:
    """IOI in milliseconds -> beats per minute."""
    if ioi <= 0:
        raise ValueError(f"ioi must be positive, got {ioi}")
    return 60_000.0 / ioi


def ioi_sequence(
    slope_k: float,
    direction: TempoDirection,
    n_beats: int = DEFAULT_N_BEATS,
    base_ioi: float = DEFAULT_BASE_IOI_MS,
    min_ioi: float = DEFAULT_MIN_IOI_MS,
) -> np.ndarray:
    """
    IOIs (ms) of a linearly accelerating or decelerating beat sequence.

    Parameters
    ----------
    slope_k : float
        IOI change per beat (ms/beat), >= 0.
    direction : {"accelerando", "ritardando"}
    n_beats : int, default=12
    base_ioi : float, default=500.0
        IOI of the first beat.
    min_ioi : float, default=100.0
        Floor applied to every IOI.

    Returns
    -------
    np.ndarray
        Shape (n_beats,).
    """
    if direction not in TEMPO_DIRECTIONS:
        raise ValueError(f"direction must be one of {list(TEMPO_DIRECTIONS)}, got {direction!r}")
    if slope_k < 0:
        raise ValueError(f"slope_k must be >= 0, got {slope_k}")
    if n_beats < 1:
        raise ValueError(f"n_beats must be >= 1, got {n_beats}")
    sign = -1.0 if direction == "accelerando" else 1.0
    n = np.arange(n_beats, dtype=float)
    return np.maximum(base_ioi + sign * slope_k * n, min_ioi)


def detect_tempo_direction(
    iois: Sequence[float], tolerance: float = STEADY_TOLERANCE_MS
) -> Literal["accelerando", "ritardando", "steady"]:
    """Classify a sequence by its net first-to-last IOI change."""
    if len(iois) < 2:
        return "steady"
    first, last = float(iois[0]), float(iois[-1])
    if last < first - tolerance:
        return "accelerando"
    if last > first + tolerance:
        return "ritardando"
    return "steady"
