"""
bfit.py
-------

Beat Finding and Interval Test.

Same judgement as BIT, but the beats carry a complex rhythm pattern played
at ``base_tempo`` and repeated ``repetitions`` times. IOIs are floored at
half the base IOI.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Mapping, Optional

import numpy as np

from rhythmstair.battery.base import CategoryAccuracy, RhythmTestConfig
from rhythmstair.battery.bit import TempoStaircaseTest, TempoTrial
from rhythmstair.battery.tempo import TempoDirection, bpm_to_ioi, ioi_sequence
from rhythmstair.staircase.config import BFIT_STAIRCASE_CONFIG, StaircaseConfig
from rhythmstair.staircase.controller import (
    Clock,
    ConvergenceAnalysis,
    StaircaseResult,
)
from rhythmstair.staircase.convergence import BFIT_CONVERGENCE_SETTINGS, ConvergenceSettings
from rhythmstair.utils.numeric import require_finite


@dataclass(frozen=True)
class BFITConfig(RhythmTestConfig):
    """
    Parameters
    ----------
    staircase : StaircaseConfig
        Staircase over the IOI slope (ms/beat).
    convergence : ConvergenceSettings
        Diagnostic settings of the convergence detector.
    pattern_id : str, default="default"
        Rhythm pattern presented on every trial.
    base_tempo : float, default=120.0
        BPM of the unmodified pattern.
    repetitions : int, default=3
        Times the pattern is repeated within a trial.
    """

    staircase: StaircaseConfig = BFIT_STAIRCASE_CONFIG
    convergence: ConvergenceSettings = BFIT_CONVERGENCE_SETTINGS
    pattern_id: str = "default"
    base_tempo: float = 120.0
    repetitions: int = 3

    def __post_init__(self) -> None:
        super().__post_init__()
        if not self.pattern_id:
            raise ValueError("pattern_id must be a non-empty string")
        if require_finite("base_tempo", self.base_tempo) <= 0:
            raise ValueError(f"base_tempo must be positive, got {self.base_tempo}")
        if self.repetitions < 1:
            raise ValueError(f"repetitions must be >= 1, got {self.repetitions}")

    @property
    def base_ioi(self) -> float:
        return bpm_to_ioi(self.base_tempo)


@dataclass(frozen=True)
class PatternAnalysis:
    """
    Attributes
    ----------
    pattern_id : str
    average_reaction_time : float
        Mean over recorded positive reaction times; 0.0 if there are none.
    pattern_accuracy : float
        Overall fraction correct.
    """

    pattern_id: str
    average_reaction_time: float
    pattern_accuracy: float


@dataclass(frozen=True)
class BFITResult:
    slope_threshold: float
    trials: tuple[TempoTrial, ...]
    direction_accuracy: Mapping[str, CategoryAccuracy]
    pattern_analysis: PatternAnalysis
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


class BFITStaircaseController(TempoStaircaseTest):
    """
    Parameters
    ----------
    session_id, profile_id : str
    hearing_threshold : float or None
        Falls back to 50 dB (with a RuntimeWarning) when missing or not
        finite.
    config : BFITConfig, optional
    clock : callable, optional
    """

    config: BFITConfig

    def __init__(
        self,
        session_id: str,
        profile_id: str,
        hearing_threshold: Optional[float],
        config: BFITConfig | None = None,
        *,
        clock: Clock | None = None,
    ):
        super().__init__(
            session_id, profile_id, hearing_threshold, config or BFITConfig(), clock=clock
        )

    def _pattern_id(self) -> Optional[str]:
        return self.config.pattern_id

    def get_pattern_id(self) -> str:
        return self.config.pattern_id

    def get_base_tempo(self) -> float:
        return self.config.base_tempo

    def get_repetitions(self) -> int:
        return self.config.repetitions

    def build_ioi_sequence(self, direction: TempoDirection, n_beats: int) -> np.ndarray:
        """
        IOIs (ms) for ``n_beats`` pattern onsets at the current slope.

        Starts from the base tempo's IOI and never drops below half of it.
        """
        base_ioi = self.config.base_ioi
        return ioi_sequence(
            self.get_current_slope_k(),
            direction,
            n_beats=n_beats,
            base_ioi=base_ioi,
            min_ioi=0.5 * base_ioi,
        )

    def get_result(self) -> Optional[BFITResult]:
        result = self.controller.get_result()
        if result is None:
            return None
        trials = tuple(self._trials)
        accuracy = self._direction_accuracy(trials)
        return BFITResult(
            slope_threshold=result.threshold,
            trials=trials,
            direction_accuracy=accuracy,
            pattern_analysis=self._pattern_analysis(trials, accuracy),
            hearing_threshold=self.hearing_threshold,
            staircase=result,
        )

    def _pattern_analysis(
        self,
        trials: tuple[TempoTrial, ...],
        accuracy: Mapping[str, CategoryAccuracy],
    ) -> PatternAnalysis:
        reaction_times = [
            t.reaction_time
            for t in trials
            if t.reaction_time is not None and t.reaction_time > 0
        ]
        return PatternAnalysis(
            pattern_id=self.config.pattern_id,
            average_reaction_time=(
                float(np.mean(reaction_times)) if reaction_times else 0.0
            ),
            pattern_accuracy=accuracy["overall"].accuracy,
        )
