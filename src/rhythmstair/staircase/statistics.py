"""
statistics.py
-------------

Descriptive statistics for a single staircase run.

Provides:
- summarize_reversals: mean threshold with SD, SE, normal-approximation CI
  and flagged outliers.
- analyze_learning_curve: variance reduction, late-run stability, the
  point where the level track settled, and its trend.
- calculate_performance_metrics: accuracy, response consistency,
  reversal spacing and the shape of the errors.
- analyze_trial_history: both of the above for one run.

The threshold estimator is always the plain reversal mean; nothing here
fits a psychometric function.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Literal, Sequence

import numpy as np

from rhythmstair.staircase.trial import StaircaseTrial, trials_to_numpy

Trend = Literal["improving", "stable", "declining"]
ErrorPattern = Literal["random", "systematic", "learning"]

_Z_SCORES = {0.90: 1.645, 0.95: 1.96, 0.99: 2.576}


@dataclass(frozen=True)
class ReversalSummary:
    threshold: float
    standard_deviation: float
    standard_error: float
    variance: float
    sample_size: int
    confidence_interval: tuple[float, float]
    outliers: tuple[float, ...]


def z_score(confidence_level: float) -> float:
    """Two-sided z value for 0.90/0.95/0.99; 1.96 for anything else."""
    return _Z_SCORES.get(round(confidence_level, 2), 1.96)


def summarize_reversals(
    levels: Sequence[float],
    *,
    confidence_level: float = 0.95,
    outlier_sd: float = 2.5,
) -> ReversalSummary:
    """
    Summarize reversal levels.

    Parameters
    ----------
    levels : sequence of float
        Reversal levels (typically ``result.convergence_analysis.final_reversals``).
    confidence_level : float, default=0.95
    outlier_sd : float, default=2.5
        Levels further than this many SDs from the mean are reported as
        outliers. They are not removed from the estimate.

    Raises
    ------
    ValueError
        If ``levels`` is empty.
    """
    arr = np.asarray(levels, dtype=float)
    if arr.size == 0:
        raise ValueError("summarize_reversals needs at least one level")

    mean = float(np.mean(arr))
    variance = float(np.var(arr))
    sd = float(np.sqrt(variance))
    se = sd / float(np.sqrt(arr.size))
    margin = z_score(confidence_level) * se

    if sd > 0:
        outliers = tuple(float(x) for x in arr[np.abs(arr - mean) > outlier_sd * sd])
    else:
        outliers = ()

    return ReversalSummary(
        threshold=mean,
        standard_deviation=sd,
        standard_error=se,
        variance=variance,
        sample_size=int(arr.size),
        confidence_interval=(mean - margin, mean + margin),
        outliers=outliers,
    )


# ----------------------------------------------------------------------
# Trial history
# ----------------------------------------------------------------------

#: Histories shorter than this get a neutral learning curve.
LEARNING_CURVE_MIN_TRIALS = 10
#: Histories shorter than this get a zero adaptation rate.
ADAPTATION_MIN_TRIALS = 5
CONVERGENCE_WINDOW = 5
CONVERGENCE_MAX_CV = 0.1


@dataclass(frozen=True)
class LearningCurve:
    """
    Attributes
    ----------
    learning_rate : float
        Relative drop in level variance from the first half of the run to
        the second, floored at 0.
    stability_index : float
        1 - CV of the second half's levels, clipped to [0, 1].
    convergence_point : int
        Number of trials after which a window of ``CONVERGENCE_WINDOW``
        levels first had a CV of at most ``CONVERGENCE_MAX_CV``; the
        history length when that never happened.
    trend : {"improving", "stable", "declining"}
    slope : float
        Least-squares slope of level against trial index.
    """

    learning_rate: float
    stability_index: float
    convergence_point: int
    trend: Trend
    slope: float


@dataclass(frozen=True)
class PerformanceMetrics:
    """
    Attributes
    ----------
    accuracy : float
        Fraction of correct responses.
    reaction_consistency : float
        Fraction of consecutive trial pairs where the response agrees with
        the level change (correct after a rise, incorrect otherwise).
    adaptation_rate : float
        Mean spacing of reversals mapped from 1..10 trials onto 1..0.
    error_pattern : {"random", "systematic", "learning"}
        ``learning`` when the error rate drops by more than 0.2 from the
        first half to the second; ``systematic`` when more than half of the
        errors share one level; ``random`` otherwise.
    """

    accuracy: float
    reaction_consistency: float
    adaptation_rate: float
    error_pattern: ErrorPattern


@dataclass(frozen=True)
class TrialHistoryAnalysis:
    learning_curve: LearningCurve
    performance: PerformanceMetrics

    @property
    def accuracy(self) -> float:
        return self.performance.accuracy

    @property
    def trend(self) -> Trend:
        return self.learning_curve.trend

    @property
    def slope(self) -> float:
        return self.learning_curve.slope

    @property
    def learning_rate(self) -> float:
        return self.learning_curve.learning_rate


def _level_slope(levels: np.ndarray) -> float:
    # Least-squares slope of level against trial index.
    x = np.arange(levels.size, dtype=float)
    x_centered = x - x.mean()
    denom = float(np.sum(x_centered**2))
    if denom == 0.0:
        return 0.0
    return float(np.sum(x_centered * (levels - levels.mean())) / denom)


def _cv(values: np.ndarray) -> float:
    # Constant values have CV 0; a zero mean with spread is unbounded.
    sd = float(np.std(values))
    if sd == 0.0:
        return 0.0
    mean = abs(float(np.mean(values)))
    return sd / mean if mean > 0 else math.inf


def _convergence_point(levels: np.ndarray) -> int:
    for end in range(CONVERGENCE_WINDOW, levels.size + 1):
        if _cv(levels[end - CONVERGENCE_WINDOW : end]) <= CONVERGENCE_MAX_CV:
            return end
    return int(levels.size)


def analyze_learning_curve(
    trials: Sequence[StaircaseTrial], *, flat_slope: float = 0.01
) -> LearningCurve:
    """
    Learning-curve indices of one run.

    Parameters
    ----------
    trials : sequence of StaircaseTrial
    flat_slope : float, default=0.01
        Absolute slope (level units per trial) below which the trend is
        ``"stable"``.

    Notes
    -----
    A falling level track means the subject handled harder stimuli over
    time, reported as ``"improving"``. Runs shorter than
    ``LEARNING_CURVE_MIN_TRIALS`` return a neutral curve.
    """
    levels, _, _ = trials_to_numpy(trials)
    n = int(levels.size)
    if n < LEARNING_CURVE_MIN_TRIALS:
        return LearningCurve(0.0, 0.0, n, "stable", 0.0)

    half = n // 2
    first_var = float(np.var(levels[:half]))
    second = levels[half:]
    second_var = float(np.var(second))
    learning_rate = 0.0
    if first_var > 0:
        learning_rate = max(0.0, (first_var - second_var) / first_var)

    stability_index = float(min(1.0, max(0.0, 1.0 - _cv(second))))

    slope = _level_slope(levels)
    if abs(slope) < flat_slope:
        trend: Trend = "stable"
    else:
        trend = "improving" if slope < 0 else "declining"

    return LearningCurve(
        learning_rate=learning_rate,
        stability_index=stability_index,
        convergence_point=_convergence_point(levels),
        trend=trend,
        slope=slope,
    )


def _reaction_consistency(levels: np.ndarray, responses: np.ndarray) -> float:
    if levels.size < 2:
        return 1.0
    rose = levels[1:] > levels[:-1]
    return float(np.mean(rose == responses[1:]))


def _adaptation_rate(trials: Sequence[StaircaseTrial]) -> float:
    if len(trials) < ADAPTATION_MIN_TRIALS:
        return 0.0
    indices = [t.trial_index for t in trials if t.is_reversal]
    if len(indices) < 2:
        return 0.0
    mean_interval = float(np.mean(np.diff(indices)))
    return float(min(1.0, max(0.0, (10.0 - mean_interval) / 9.0)))


def _error_pattern(
    levels: np.ndarray, responses: np.ndarray, *, level_tolerance: float = 0.1
) -> ErrorPattern:
    n = int(levels.size)
    if n < LEARNING_CURVE_MIN_TRIALS:
        return "random"
    errors = np.flatnonzero(~responses)
    if errors.size == 0:
        return "random"

    half = n / 2
    first_rate = np.sum(errors < half) / half
    second_rate = np.sum(errors >= half) / half
    if first_rate - second_rate > 0.2:
        return "learning"

    error_levels = levels[errors]
    largest_cluster = max(
        int(np.sum(np.abs(error_levels - level) < level_tolerance))
        for level in np.unique(error_levels)
    )
    if largest_cluster / errors.size > 0.5:
        return "systematic"
    return "random"


def calculate_performance_metrics(
    trials: Sequence[StaircaseTrial],
) -> PerformanceMetrics:
    """Accuracy and response-behaviour indices of one run."""
    if not trials:
        return PerformanceMetrics(0.0, 0.0, 0.0, "random")
    levels, responses, _ = trials_to_numpy(trials)
    return PerformanceMetrics(
        accuracy=float(np.mean(responses)),
        reaction_consistency=_reaction_consistency(levels, responses),
        adaptation_rate=_adaptation_rate(trials),
        error_pattern=_error_pattern(levels, responses),
    )


def analyze_trial_history(
    trials: Sequence[StaircaseTrial], *, flat_slope: float = 0.01
) -> TrialHistoryAnalysis:
    """
    Learning curve and performance metrics of one subject's run.

    Examples
    --------
    >>> from rhythmstair.staircase import StaircaseController
    >>> ctrl = StaircaseController()
    >>> for r in [True] * 12:
    ...     _ = ctrl.record_trial(r)
    >>> analyze_trial_history(ctrl.trial_history).trend
    'improving'
    """
    return TrialHistoryAnalysis(
        learning_curve=analyze_learning_curve(trials, flat_slope=flat_slope),
        performance=calculate_performance_metrics(trials),
    )
