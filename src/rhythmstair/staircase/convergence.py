"""
convergence.py
--------------

Convergence detection for adaptive staircases.

The stopping decision is deliberately narrow:

    converged  <=>  (reversals >= target_reversals and trials >= min_trials)
                    or trials >= max_trials

Everything else computed here (stability, variability, warnings, quality
label) is diagnostic and never changes that decision. The core enforces no
timeouts and no early stopping.

Confidence
----------
confidence = 0.5 * min(1, reversals / target_reversals)
           + 0.5 * (1 - min(1, spread / (max_level - min_level)))

where ``spread`` is max - min of the last ``target_reversals`` reversal
levels. With fewer than two final reversals the spread term is 0.5.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass, field
from datetime import datetime
from typing import TYPE_CHECKING, Optional, Sequence

import numpy as np

from rhythmstair.staircase.trial import StaircaseTrial, reversal_levels
from rhythmstair.utils.numeric import require_finite

if TYPE_CHECKING:
    from rhythmstair.staircase.config import StaircaseConfig


class ConvergenceReason(str, enum.Enum):
    TARGET_REVERSALS = "target_reversals"
    MAX_TRIALS = "max_trials"


class ConvergenceWarning(str, enum.Enum):
    HIGH_VARIABILITY = "high_variability"
    LOW_CONFIDENCE = "low_confidence"
    APPROACHING_MAX_TRIALS = "approaching_max_trials"
    UNSTABLE_PATTERN = "unstable_pattern"
    OUTLIERS_DETECTED = "outliers_detected"


@dataclass(frozen=True)
class ConvergenceSettings:
    """
    Thresholds for the diagnostic part of convergence checking.

    Parameters
    ----------
    stability_window : int, default=5
        Number of most recent reversal levels used for the stability index.
    stability_min_samples : int, default=3
        Minimum reversals before stability is computed.
    max_variability : float, default=0.3
        Coefficient of variation above which ``high_variability`` is raised.
    min_confidence : float, default=0.7
        Confidence below which ``low_confidence`` is raised (once the
        minimum trial count is reached).
    max_trials_warning_fraction : float, default=0.8
        Fraction of ``max_trials`` after which ``approaching_max_trials`` is raised.
    unstable_below : float, default=0.5
        Stability index under which ``unstable_pattern`` is raised.
    outlier_sd : float, default=2.5
        Level deviations beyond this many SDs count as outliers.
    stability_threshold : float, default=0.15
        CV of the recent reversal window at or below which the run is
        reported as stable.
    reference_level : float, default=0.0
        Added to reversal levels before ratio statistics (CV, stability).
        Controllers running on an offset axis pass their anchor here.
    """

    stability_window: int = 5
    stability_min_samples: int = 3
    max_variability: float = 0.3
    min_confidence: float = 0.7
    max_trials_warning_fraction: float = 0.8
    unstable_below: float = 0.5
    outlier_sd: float = 2.5
    stability_threshold: float = 0.15
    reference_level: float = 0.0

    def __post_init__(self) -> None:
        if self.stability_window < 1 or self.stability_min_samples < 1:
            raise ValueError("stability window sizes must be >= 1")
        if not 0.0 < self.max_trials_warning_fraction <= 1.0:
            raise ValueError("max_trials_warning_fraction must lie in (0, 1]")
        if self.outlier_sd <= 0:
            raise ValueError("outlier_sd must be > 0")
        if self.stability_threshold <= 0:
            raise ValueError("stability_threshold must be > 0")
        require_finite("reference_level", self.reference_level)


DEFAULT_CONVERGENCE_SETTINGS = ConvergenceSettings()
HEARING_CONVERGENCE_SETTINGS = ConvergenceSettings(stability_threshold=0.2)
BST_CONVERGENCE_SETTINGS = ConvergenceSettings(stability_threshold=0.15)
BIT_CONVERGENCE_SETTINGS = ConvergenceSettings(stability_threshold=0.15)
BFIT_CONVERGENCE_SETTINGS = ConvergenceSettings(stability_threshold=0.2)

CONVERGENCE_PRESETS: dict[str, ConvergenceSettings] = {
    "default": DEFAULT_CONVERGENCE_SETTINGS,
    "hearing": HEARING_CONVERGENCE_SETTINGS,
    "bst": BST_CONVERGENCE_SETTINGS,
    "bit": BIT_CONVERGENCE_SETTINGS,
    "bfit": BFIT_CONVERGENCE_SETTINGS,
}


def convergence_preset(kind: str) -> ConvergenceSettings:
    """Diagnostic settings for one of the four tests (or ``"default"``)."""
    try:
        return CONVERGENCE_PRESETS[kind]
    except KeyError:
        raise ValueError(
            f"Unknown convergence preset {kind!r}; expected one of {sorted(CONVERGENCE_PRESETS)}"
        ) from None


@dataclass(frozen=True)
class ConvergenceMetrics:
    total_trials: int
    total_reversals: int
    stability_index: float
    variability_index: float
    efficiency_score: float
    elapsed_seconds: float
    convergence_speed: float


@dataclass(frozen=True)
class ConvergenceState:
    """
    Outcome of one convergence check.

    Attributes
    ----------
    is_converged : bool
        True once the staircase has terminated (target reached or forced stop).
    confidence : float
        Reliability score in [0, 1].
    reason : ConvergenceReason or None
        Why the run terminated; None while still collecting.
    final_reversals : tuple of float
        Levels of the last ``target_reversals`` reversals.
    stability : float
        1 - CV of the recent reversal window (0 when too few reversals).
    quality : str
        ``"excellent"``, ``"good"``, ``"acceptable"`` or ``"poor"``.
    warnings : tuple of ConvergenceWarning
    metrics : ConvergenceMetrics
    is_stable : bool
        Whether the recent reversal window's CV is within
        ``ConvergenceSettings.stability_threshold``. Diagnostic only.
    """

    is_converged: bool
    confidence: float
    reason: Optional[ConvergenceReason]
    final_reversals: tuple[float, ...]
    stability: float
    quality: str
    warnings: tuple[ConvergenceWarning, ...] = field(default_factory=tuple)
    metrics: Optional[ConvergenceMetrics] = None
    is_stable: bool = False

    @property
    def forced_stop(self) -> bool:
        return self.reason is ConvergenceReason.MAX_TRIALS


@dataclass(frozen=True)
class ReversalPattern:
    intervals: tuple[int, ...]
    average_interval: float
    pattern_stability: float
    is_regular: bool


def _coefficient_of_variation(values: Sequence[float]) -> float:
    """CV of ``values``; 1.0 when undefined (empty or zero mean)."""
    if len(values) == 0:
        return 1.0
    arr = np.asarray(values, dtype=float)
    mean = float(np.mean(arr))
    if mean == 0.0:
        return 1.0
    return float(np.std(arr)) / abs(mean)


def _termination(
    total_trials: int, total_reversals: int, config: StaircaseConfig
) -> Optional[ConvergenceReason]:
    if total_reversals >= config.target_reversals and total_trials >= config.min_trials:
        return ConvergenceReason.TARGET_REVERSALS
    if total_trials >= config.max_trials:
        return ConvergenceReason.MAX_TRIALS
    return None


def compute_confidence(
    reversal_points: Sequence[float], config: StaircaseConfig
) -> float:
    """
    Confidence score in [0, 1] from reversal count and final spread.

    Parameters
    ----------
    reversal_points : sequence of float
        All reversal levels in order.
    config : StaircaseConfig
    """
    count_term = min(1.0, len(reversal_points) / config.target_reversals)
    final = list(reversal_points)[-config.target_reversals :]
    if len(final) < 2:
        spread_term = 0.5
    else:
        spread = max(final) - min(final)
        spread_term = 1.0 - min(1.0, spread / config.level_range)
    confidence = 0.5 * count_term + 0.5 * spread_term
    return float(min(1.0, max(0.0, confidence)))


def quality_label(confidence: float) -> str:
    if confidence >= 0.9:
        return "excellent"
    if confidence >= 0.8:
        return "good"
    if confidence >= 0.7:
        return "acceptable"
    return "poor"


def analyze_reversal_pattern(trials: Sequence[StaircaseTrial]) -> ReversalPattern:
    """
    Spacing of reversals along the trial sequence.

    A pattern is regular when the CV of the inter-reversal intervals is at
    most 0.3.
    """
    indices = [t.trial_index for t in trials if t.is_reversal]
    if len(indices) < 2:
        return ReversalPattern((), 0.0, 0.0, False)
    intervals = tuple(int(b - a) for a, b in zip(indices, indices[1:]))
    cv = _coefficient_of_variation(intervals)
    return ReversalPattern(
        intervals=intervals,
        average_interval=float(np.mean(intervals)),
        pattern_stability=max(0.0, 1.0 - cv),
        is_regular=cv <= 0.3,
    )


class ConvergenceDetector:
    """
    Evaluates a trial history against a staircase config.

    Parameters
    ----------
    settings : ConvergenceSettings, optional
        Diagnostic thresholds; defaults are used when omitted.
    """

    def __init__(self, settings: ConvergenceSettings | None = None):
        self.settings = settings or ConvergenceSettings()

    def check_convergence(
        self,
        trials: Sequence[StaircaseTrial],
        start_time: datetime,
        current_level: float,
        config: StaircaseConfig,
    ) -> ConvergenceState:
        """
        Decide whether the staircase has terminated and score its reliability.

        Parameters
        ----------
        trials : sequence of StaircaseTrial
            Full trial history.
        start_time : datetime
            When the measurement started; elapsed time is measured up to the
            last trial's timestamp so the check stays deterministic.
        current_level : float
            Level that would be presented next. Used only for the outlier scan.
        config : StaircaseConfig

        Returns
        -------
        ConvergenceState
        """
        total_trials = len(trials)
        reversals = reversal_levels(trials)
        total_reversals = len(reversals)

        reason = _termination(total_trials, total_reversals, config)
        confidence = compute_confidence(reversals, config)
        natural = [level + self.settings.reference_level for level in reversals]
        stability = self._stability(natural)
        variability = _coefficient_of_variation(natural)

        elapsed = 0.0
        if trials:
            elapsed = max(0.0, (trials[-1].timestamp - start_time).total_seconds())

        metrics = ConvergenceMetrics(
            total_trials=total_trials,
            total_reversals=total_reversals,
            stability_index=stability,
            variability_index=variability,
            efficiency_score=max(0.0, 1.0 - total_trials / config.max_trials),
            elapsed_seconds=elapsed,
            convergence_speed=total_reversals / total_trials if total_trials else 0.0,
        )
        warnings = self._warnings(trials, current_level, confidence, metrics, config)

        return ConvergenceState(
            is_converged=reason is not None,
            confidence=confidence,
            reason=reason,
            final_reversals=tuple(reversals[-config.target_reversals :]),
            stability=stability,
            quality=quality_label(confidence),
            warnings=warnings,
            metrics=metrics,
            is_stable=self._is_stable(natural),
        )

    def _stability(self, reversals: Sequence[float]) -> float:
        if len(reversals) < self.settings.stability_min_samples:
            return 0.0
        window = list(reversals)[-self.settings.stability_window :]
        return float(max(0.0, 1.0 - _coefficient_of_variation(window)))

    def _is_stable(self, reversals: Sequence[float]) -> bool:
        if len(reversals) < self.settings.stability_min_samples:
            return False
        window = list(reversals)[-self.settings.stability_window :]
        return _coefficient_of_variation(window) <= self.settings.stability_threshold

    def _warnings(
        self,
        trials: Sequence[StaircaseTrial],
        current_level: float,
        confidence: float,
        metrics: ConvergenceMetrics,
        config: StaircaseConfig,
    ) -> tuple[ConvergenceWarning, ...]:
        s = self.settings
        found: list[ConvergenceWarning] = []
        if metrics.total_reversals > 0 and metrics.variability_index > s.max_variability:
            found.append(ConvergenceWarning.HIGH_VARIABILITY)
        if metrics.total_trials >= config.min_trials and confidence < s.min_confidence:
            found.append(ConvergenceWarning.LOW_CONFIDENCE)
        if metrics.total_trials > config.max_trials * s.max_trials_warning_fraction:
            found.append(ConvergenceWarning.APPROACHING_MAX_TRIALS)
        if (
            metrics.total_reversals >= s.stability_min_samples
            and metrics.stability_index < s.unstable_below
        ):
            found.append(ConvergenceWarning.UNSTABLE_PATTERN)
        if len(trials) >= 5 and self._has_outliers(trials, current_level):
            found.append(ConvergenceWarning.OUTLIERS_DETECTED)
        return tuple(found)

    def _has_outliers(
        self, trials: Sequence[StaircaseTrial], current_level: float
    ) -> bool:
        levels = np.array([t.level for t in trials] + [current_level], dtype=float)
        sd = float(np.std(levels))
        if sd == 0.0:
            return False
        deviations = np.abs(levels - np.mean(levels))
        return bool(np.any(deviations > self.settings.outlier_sd * sd))


_DEFAULT_DETECTOR = ConvergenceDetector()


def check_convergence(
    trials: Sequence[StaircaseTrial],
    start_time: datetime,
    current_level: float,
    config: StaircaseConfig,
) -> ConvergenceState:
    """Module-level shortcut using default ``ConvergenceSettings``."""
    return _DEFAULT_DETECTOR.check_convergence(trials, start_time, current_level, config)
