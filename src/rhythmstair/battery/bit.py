"""
bit.py
------

Beat Interval Test.

The subject hears an isochronous-looking beat sequence whose IOIs drift
linearly and reports whether it sped up (accelerando) or slowed down
(ritardando). The staircase level is the IOI slope k in ms/beat; smaller
slopes are harder to detect.

defines:
- TempoTrial: trial record shared with BFIT.
- TempoStaircaseTest: direction-judgement plumbing shared with BFIT.
- BITConfig / BITResult / BITStaircaseController.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Mapping, Optional, Sequence

import numpy as np

from rhythmstair.battery.base import (
    CategoryAccuracy,
    RhythmStaircaseTest,
    RhythmTestConfig,
    category_accuracy,
    check_label,
)
from rhythmstair.battery.tempo import (
    DEFAULT_BASE_IOI_MS,
    DEFAULT_MIN_IOI_MS,
    DEFAULT_N_BEATS,
    TEMPO_DIRECTIONS,
    TempoDirection,
    ioi_sequence,
)
from rhythmstair.staircase.config import BIT_STAIRCASE_CONFIG, StaircaseConfig
from rhythmstair.staircase.controller import (
    Clock,
    ConvergenceAnalysis,
    StaircaseResult,
)
from rhythmstair.staircase.convergence import BIT_CONVERGENCE_SETTINGS, ConvergenceSettings
from rhythmstair.staircase.trial import StaircaseTrial
from rhythmstair.utils.numeric import require_finite


@dataclass(frozen=True)
class BITConfig(RhythmTestConfig):
    """
    Parameters
    ----------
    staircase : StaircaseConfig
        Staircase over the IOI slope (ms/beat).
    convergence : ConvergenceSettings
        Diagnostic settings of the convergence detector.
    base_ioi : float, default=500.0
        First IOI of every sequence (ms); 500 ms is 120 BPM.
    min_ioi : float, default=100.0
        IOI floor (ms).
    n_beats : int, default=12
    """

    staircase: StaircaseConfig = BIT_STAIRCASE_CONFIG
    convergence: ConvergenceSettings = BIT_CONVERGENCE_SETTINGS
    base_ioi: float = DEFAULT_BASE_IOI_MS
    min_ioi: float = DEFAULT_MIN_IOI_MS
    n_beats: int = DEFAULT_N_BEATS

    def __post_init__(self) -> None:
        super().__post_init__()
        if require_finite("base_ioi", self.base_ioi) <= 0:
            raise ValueError(f"base_ioi must be positive, got {self.base_ioi}")
        if not (0 < require_finite("min_ioi", self.min_ioi) <= self.base_ioi):
            raise ValueError(
                f"min_ioi must lie in (0, base_ioi], got {self.min_ioi}"
            )
        if self.n_beats < 2:
            raise ValueError(f"n_beats must be >= 2, got {self.n_beats}")


@dataclass(frozen=True)
class TempoTrial:
    slope_k: float
    direction: TempoDirection
    user_answer: TempoDirection
    correct: bool
    reaction_time: Optional[float]
    ioi_sequence: tuple[float, ...]
    sound_level: float
    staircase_trial: StaircaseTrial
    pattern_id: Optional[str] = None

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
class BITResult:
    slope_threshold: float
    trials: tuple[TempoTrial, ...]
    direction_accuracy: Mapping[str, CategoryAccuracy]
    hearing_threshold: float
    staircase: StaircaseResult

    @property
    def threshold(self) -> float:
        return self.slope_threshold

    @property
    def convergence_analysis(self) -> ConvergenceAnalysis:
        return self.staircase.convergence_analysis

    @property
    def overall_accuracy(self) -> float:
        return self.direction_accuracy["overall"].accuracy

    @property
    def total_trials(self) -> int:
        return self.staircase.total_trials

    @property
    def total_reversals(self) -> int:
        return self.staircase.total_reversals

    @property
    def duration(self) -> float:
        return self.staircase.duration


class TempoStaircaseTest(RhythmStaircaseTest):
    """Accelerando/ritardando judgements on an IOI-slope staircase."""

    def get_current_slope_k(self) -> float:
        return self.get_current_level()

    def _pattern_id(self) -> Optional[str]:
        return None

    def record_response(
        self,
        direction: TempoDirection,
        user_answer: TempoDirection,
        ioi_sequence: Sequence[float],
        reaction_time: Optional[float] = None,
    ) -> TempoTrial:
        """
        Record a tempo-direction judgement at the current slope.

        Parameters
        ----------
        direction : {"accelerando", "ritardando"}
            Direction actually presented.
        user_answer : {"accelerando", "ritardando"}
        ioi_sequence : sequence of float
            IOIs (ms) that were played; stored with the trial.
        reaction_time : float, optional
            Milliseconds; telemetry only.
        """
        check_label(direction, TEMPO_DIRECTIONS, "direction")
        check_label(user_answer, TEMPO_DIRECTIONS, "user_answer")
        correct = direction == user_answer
        slope_k = self.get_current_slope_k()

        trial = self.controller.record_trial(correct)
        tempo_trial = TempoTrial(
            slope_k=slope_k,
            direction=direction,
            user_answer=user_answer,
            correct=correct,
            reaction_time=reaction_time,
            ioi_sequence=tuple(float(x) for x in ioi_sequence),
            sound_level=self.get_sound_level(),
            staircase_trial=trial,
            pattern_id=self._pattern_id(),
        )
        self._trials.append(tempo_trial)
        return tempo_trial

    def _direction_accuracy(
        self, trials: Sequence[TempoTrial]
    ) -> dict[str, CategoryAccuracy]:
        return category_accuracy(
            trials, TEMPO_DIRECTIONS, lambda t: t.direction, lambda t: t.correct
        )


class BITStaircaseController(TempoStaircaseTest):
    """
    Parameters
    ----------
    session_id, profile_id : str
    hearing_threshold : float or None
        Falls back to 50 dB (with a RuntimeWarning) when missing or not
        finite.
    config : BITConfig, optional
    clock : callable, optional

    Examples
    --------
    >>> bit = BITStaircaseController("s1", "p1", hearing_threshold=20.0)
    >>> bit.get_sound_level()
    50.0
    >>> iois = bit.build_ioi_sequence("accelerando")
    >>> trial = bit.record_response("accelerando", "accelerando", iois)
    """

    config: BITConfig

    def __init__(
        self,
        session_id: str,
        profile_id: str,
        hearing_threshold: Optional[float],
        config: BITConfig | None = None,
        *,
        clock: Clock | None = None,
    ):
        super().__init__(
            session_id, profile_id, hearing_threshold, config or BITConfig(), clock=clock
        )

    def build_ioi_sequence(self, direction: TempoDirection) -> np.ndarray:
        """IOIs (ms) for the next trial at the current slope."""
        return ioi_sequence(
            self.get_current_slope_k(),
            direction,
            n_beats=self.config.n_beats,
            base_ioi=self.config.base_ioi,
            min_ioi=self.config.min_ioi,
        )

    def get_result(self) -> Optional[BITResult]:
        result = self.controller.get_result()
        if result is None:
            return None
        trials = tuple(self._trials)
        return BITResult(
            slope_threshold=result.threshold,
            trials=trials,
            direction_accuracy=self._direction_accuracy(trials),
            hearing_threshold=self.hearing_threshold,
            staircase=result,
        )
