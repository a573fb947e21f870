"""
hearing.py
----------

Pure-tone hearing threshold test.

One StaircaseController per frequency, activated in the order 1000, 2000,
4000 Hz. The controllers run on an offset axis relative to an anchor level:

    dB SPL = anchor_db + level

so the configuration is written in dB SPL while the engine sees offsets
around 0. The session-level average threshold is reported only once every
frequency has terminated (converged or hit its trial cap).
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import datetime
from typing import Literal, Mapping, Optional

import numpy as np

from rhythmstair.staircase.config import HEARING_STAIRCASE_CONFIG, StaircaseConfig
from rhythmstair.staircase.controller import (
    Clock,
    ConvergenceAnalysis,
    StaircaseController,
    StaircaseProgress,
    StaircaseResult,
    utc_now,
)
from rhythmstair.staircase.convergence import (
    HEARING_CONVERGENCE_SETTINGS,
    ConvergenceDetector,
    ConvergenceSettings,
)
from rhythmstair.staircase.trial import StaircaseTrial
from rhythmstair.utils.numeric import require_finite

HEARING_FREQUENCIES: tuple[int, ...] = (1000, 2000, 4000)
DEFAULT_ANCHOR_DB = 40.0


@dataclass(frozen=True)
class HearingConfig:
    """
    Parameters
    ----------
    staircase : StaircaseConfig
        Staircase parameters in dB SPL (levels, bounds, step sizes).
    anchor_db : float, default=40.0
        Reference level of the engine's offset axis.
    frequencies : tuple of int
        Test frequencies in Hz, in presentation order.
    convergence : ConvergenceSettings
        Diagnostic settings of the per-frequency detectors. Ratio
        statistics are taken on the dB scale.
    """

    staircase: StaircaseConfig = HEARING_STAIRCASE_CONFIG
    anchor_db: float = DEFAULT_ANCHOR_DB
    frequencies: tuple[int, ...] = HEARING_FREQUENCIES
    convergence: ConvergenceSettings = HEARING_CONVERGENCE_SETTINGS

    def __post_init__(self) -> None:
        object.__setattr__(self, "frequencies", tuple(self.frequencies))
        if not isinstance(self.staircase, StaircaseConfig):
            raise ValueError("staircase must be a StaircaseConfig")
        if not isinstance(self.convergence, ConvergenceSettings):
            raise ValueError("convergence must be a ConvergenceSettings")
        if self.staircase.step_mode != "additive":
            raise ValueError("hearing staircases use additive dB steps")
        require_finite("anchor_db", self.anchor_db)
        if not self.frequencies:
            raise ValueError("frequencies must not be empty")
        if len(set(self.frequencies)) != len(self.frequencies):
            raise ValueError(f"frequencies must be unique, got {self.frequencies}")
        if any(f <= 0 for f in self.frequencies):
            raise ValueError(f"frequencies must be positive, got {self.frequencies}")

    def level_config(self) -> StaircaseConfig:
        """The dB config shifted onto the anchor-relative level axis."""
        sc = self.staircase
        return sc.replace(
            initial_level=sc.initial_level - self.anchor_db,
            min_level=sc.min_level - self.anchor_db,
            max_level=sc.max_level - self.anchor_db,
        )

    def detector_settings(self) -> ConvergenceSettings:
        """Convergence settings referenced to the anchor, so CVs are in dB."""
        return replace(self.convergence, reference_level=self.anchor_db)


@dataclass(frozen=True)
class HearingTrial:
    frequency: int
    db_level: float
    heard: bool
    reaction_time: Optional[float]
    staircase_trial: StaircaseTrial

    @property
    def trial_index(self) -> int:
        return self.staircase_trial.trial_index

    @property
    def is_reversal(self) -> bool:
        return self.staircase_trial.is_reversal

    @property
    def timestamp(self) -> datetime:
        return self.staircase_trial.timestamp


@dataclass(frozen=True)
class HearingResult:
    """
    Result for one frequency.

    ``staircase`` is the engine result on the offset axis; ``threshold_db``
    and ``convergence_analysis.final_reversals`` are in dB SPL.
    """

    frequency: int
    threshold_db: float
    trials: tuple[HearingTrial, ...]
    staircase: StaircaseResult
    convergence_analysis: ConvergenceAnalysis

    @property
    def threshold(self) -> float:
        return self.threshold_db

    @property
    def total_trials(self) -> int:
        return self.staircase.total_trials

    @property
    def total_reversals(self) -> int:
        return self.staircase.total_reversals

    @property
    def duration(self) -> float:
        return self.staircase.duration


@dataclass(frozen=True)
class HearingSessionResult:
    session_id: str
    profile_id: str
    started_at: datetime
    completed_at: Optional[datetime]
    frequencies: tuple[int, ...]
    results: Mapping[int, HearingResult] = field(default_factory=dict)
    is_completed: bool = False
    average_threshold: Optional[float] = None


@dataclass(frozen=True)
class HearingProgress(StaircaseProgress):
    frequency: int = 0


class HearingStaircaseController:
    """
    Hearing threshold controller across several frequencies.

    Parameters
    ----------
    session_id, profile_id : str
        Identifiers carried into session results.
    config : HearingConfig, optional
    clock : callable, optional
        Shared by all per-frequency controllers.

    Examples
    --------
    >>> hearing = HearingStaircaseController("s1", "p1")
    >>> hearing.get_current_level()
    40.0
    >>> trial = hearing.record_response(heard=True, reaction_time=420.0)
    """

    def __init__(
        self,
        session_id: str,
        profile_id: str,
        config: HearingConfig | None = None,
        *,
        clock: Clock | None = None,
    ):
        self.session_id = session_id
        self.profile_id = profile_id
        self.config = config or HearingConfig()
        self._clock = clock or utc_now
        self._init_controllers()

    def _init_controllers(self) -> None:
        level_config = self.config.level_config()
        settings = self.config.detector_settings()
        self._controllers = {
            f: StaircaseController(
                level_config,
                detector=ConvergenceDetector(settings),
                clock=self._clock,
            )
            for f in self.config.frequencies
        }
        self._trials: dict[int, list[HearingTrial]] = {
            f: [] for f in self.config.frequencies
        }
        self._current_frequency = self.config.frequencies[0]
        self._start_time = self._clock()

    # ------------------------------------------------------------------
    # UNIT CONVERSION
    # ------------------------------------------------------------------
    def level_to_db(self, level: float) -> float:
        return self.config.anchor_db + level

    def db_to_level(self, db: float) -> float:
        return db - self.config.anchor_db

    # ------------------------------------------------------------------
    # FREQUENCY NAVIGATION
    # ------------------------------------------------------------------
    @property
    def frequencies(self) -> tuple[int, ...]:
        return self.config.frequencies

    def get_current_frequency(self) -> int:
        return self._current_frequency

    def set_current_frequency(self, frequency: int) -> None:
        if frequency not in self._controllers:
            raise ValueError(
                f"Unsupported frequency: {frequency}; expected one of {list(self.frequencies)}"
            )
        self._current_frequency = frequency

    def move_to_next_frequency(self) -> Optional[int]:
        """Activate the next frequency; None (and no change) at the last one."""
        index = self.frequencies.index(self._current_frequency) + 1
        if index >= len(self.frequencies):
            return None
        self._current_frequency = self.frequencies[index]
        return self._current_frequency

    def move_to_previous_frequency(self) -> Optional[int]:
        """Activate the previous frequency; None (and no change) at the first one."""
        index = self.frequencies.index(self._current_frequency) - 1
        if index < 0:
            return None
        self._current_frequency = self.frequencies[index]
        return self._current_frequency

    def controller_for(self, frequency: int) -> StaircaseController:
        try:
            return self._controllers[frequency]
        except KeyError:
            raise ValueError(f"Unsupported frequency: {frequency}") from None

    # ------------------------------------------------------------------
    # TRIALS
    # ------------------------------------------------------------------
    def get_current_level(self) -> float:
        """Level to present next at the current frequency, in dB SPL."""
        return self.level_to_db(self.controller_for(self._current_frequency).get_current_level())

    def record_response(
        self, heard: bool, reaction_time: Optional[float] = None
    ) -> HearingTrial:
        """
        Record whether the tone at the current frequency was heard.

        ``reaction_time`` (ms) is stored with the trial and not used by the
        staircase.
        """
        frequency = self._current_frequency
        trial = self.controller_for(frequency).record_trial(bool(heard))
        hearing_trial = HearingTrial(
            frequency=frequency,
            db_level=self.level_to_db(trial.level),
            heard=bool(heard),
            reaction_time=reaction_time,
            staircase_trial=trial,
        )
        self._trials[frequency].append(hearing_trial)
        return hearing_trial

    def get_progress(self) -> HearingProgress:
        """Progress at the current frequency (levels in dB SPL)."""
        progress = self.controller_for(self._current_frequency).get_progress()
        return HearingProgress(
            trials_completed=progress.trials_completed,
            reversals_count=progress.reversals_count,
            target_reversals=progress.target_reversals,
            current_level=self.level_to_db(progress.current_level),
            is_converged=progress.is_converged,
            estimated_remaining_trials=progress.estimated_remaining_trials,
            max_trials=progress.max_trials,
            frequency=self._current_frequency,
        )

    def is_converged(self) -> bool:
        return self.is_current_frequency_completed()

    def is_current_frequency_completed(self) -> bool:
        return self.is_frequency_completed(self._current_frequency)

    def is_frequency_completed(self, frequency: int) -> bool:
        """True once ``frequency`` converged or reached its trial cap."""
        return self.controller_for(frequency).is_converged()

    def is_session_completed(self) -> bool:
        return all(self.is_frequency_completed(f) for f in self.frequencies)

    # ------------------------------------------------------------------
    # RESULTS
    # ------------------------------------------------------------------
    def get_result_for(self, frequency: int) -> Optional[HearingResult]:
        result = self.controller_for(frequency).get_result()
        if result is None:
            return None
        analysis = replace(
            result.convergence_analysis,
            final_reversals=tuple(
                self.level_to_db(x) for x in result.convergence_analysis.final_reversals
            ),
        )
        return HearingResult(
            frequency=frequency,
            threshold_db=self.level_to_db(result.threshold),
            trials=tuple(self._trials[frequency]),
            staircase=result,
            convergence_analysis=analysis,
        )

    def get_current_result(self) -> Optional[HearingResult]:
        return self.get_result_for(self._current_frequency)

    def get_result(self) -> Optional[HearingResult]:
        return self.get_current_result()

    def get_session_result(self) -> HearingSessionResult:
        """
        Per-frequency results and, once every frequency has terminated, the
        mean threshold across frequencies.
        """
        results = {}
        for frequency in self.frequencies:
            result = self.get_result_for(frequency)
            if result is not None:
                results[frequency] = result

        is_completed = self.is_session_completed()
        average = None
        completed_at = None
        if is_completed:
            average = float(np.mean([r.threshold_db for r in results.values()]))
            # time of the last response, so repeated calls agree
            completed_at = max(r.trials[-1].timestamp for r in results.values())
        return HearingSessionResult(
            session_id=self.session_id,
            profile_id=self.profile_id,
            started_at=self._start_time,
            completed_at=completed_at,
            frequencies=self.frequencies,
            results=results,
            is_completed=is_completed,
            average_threshold=average,
        )

    # ------------------------------------------------------------------
    # LIFECYCLE
    # ------------------------------------------------------------------
    def reset_current_frequency(self) -> None:
        frequency = self._current_frequency
        self._controllers[frequency].reset()
        self._trials[frequency] = []

    def reset(self) -> None:
        """Reset every frequency and return to the first one."""
        self._init_controllers()


# ----------------------------------------------------------------------
# Audiogram helpers
# ----------------------------------------------------------------------

HearingLossLevel = Literal["normal", "mild", "moderate", "severe", "profound"]
ThresholdPattern = Literal["flat", "sloping", "rising", "notched"]


def classify_hearing_loss(threshold_db: float) -> HearingLossLevel:
    """Clinical category for a pure-tone threshold in dB."""
    if threshold_db <= 25:
        return "normal"
    if threshold_db <= 40:
        return "mild"
    if threshold_db <= 70:
        return "moderate"
    if threshold_db <= 90:
        return "severe"
    return "profound"


def analyze_threshold_pattern(
    results: Mapping[int, HearingResult],
) -> tuple[ThresholdPattern, float]:
    """
    Shape of one subject's audiogram across ascending frequencies.

    Returns
    -------
    pattern : {"flat", "sloping", "rising", "notched"}
        ``flat`` when adjacent thresholds never differ by more than 10 dB
        (or fewer than two frequencies were measured); ``sloping`` when
        thresholds worsen towards high frequencies on average by more than
        5 dB per step; ``rising`` for the mirror case; ``notched`` otherwise.
    max_difference : float
        Largest absolute difference between adjacent frequencies.
    """
    thresholds = [results[f].threshold_db for f in sorted(results)]
    if len(thresholds) < 2:
        return "flat", 0.0
    diffs = np.diff(np.asarray(thresholds, dtype=float))
    max_difference = float(np.max(np.abs(diffs)))
    mean_difference = float(np.mean(diffs))
    if max_difference <= 10:
        return "flat", max_difference
    if mean_difference > 5:
        return "sloping", max_difference
    if mean_difference < -5:
        return "rising", max_difference
    return "notched", max_difference


ReliabilityLevel = Literal["excellent", "good", "fair", "poor"]


@dataclass(frozen=True)
class HearingReliability:
    """
    Attributes
    ----------
    score : float
        0.5 * convergence + 0.3 * consistency + 0.2 * trial_count, in [0, 1].
    convergence : float
        Confidence of the convergence analysis.
    consistency : float
        1 - (spread of the final reversals / ``consistency_range_db``),
        floored at 0; 0.5 with fewer than four final reversals.
    trial_count : float
        Trials run relative to ``full_trial_count``, capped at 1.
    overall : {"excellent", "good", "fair", "poor"}
    """

    score: float
    convergence: float
    consistency: float
    trial_count: float
    overall: ReliabilityLevel


def evaluate_reliability(
    result: HearingResult,
    *,
    consistency_range_db: float = 40.0,
    full_trial_count: int = 20,
) -> HearingReliability:
    """How far one frequency's threshold can be trusted."""
    convergence = result.convergence_analysis.confidence
    reversals = result.convergence_analysis.final_reversals
    if len(reversals) >= 4:
        spread = max(reversals) - min(reversals)
        consistency = max(0.0, 1.0 - spread / consistency_range_db)
    else:
        consistency = 0.5
    trial_count = min(len(result.trials) / full_trial_count, 1.0)

    score = 0.5 * convergence + 0.3 * consistency + 0.2 * trial_count
    if score >= 0.8:
        overall: ReliabilityLevel = "excellent"
    elif score >= 0.6:
        overall = "good"
    elif score >= 0.4:
        overall = "fair"
    else:
        overall = "poor"
    return HearingReliability(
        score=float(score),
        convergence=float(convergence),
        consistency=float(consistency),
        trial_count=float(trial_count),
        overall=overall,
    )
