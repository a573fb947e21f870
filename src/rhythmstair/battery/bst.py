"""
bst.py
------

Beat Saliency Test.

The subject hears a beat pattern whose accented (strong) beat is louder
than the others and reports whether it is a 2-beat or 3-beat meter. The
staircase level is the strong/weak volume difference in dB: a smaller
difference makes the meter harder to hear.

    strong beat = hearing threshold + 30 dB
    weak beat   = strong beat - volume difference
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Literal, Mapping, Optional

from rhythmstair.battery.base import (
    CategoryAccuracy,
    RhythmStaircaseTest,
    RhythmTestConfig,
    category_accuracy,
    check_label,
)
from rhythmstair.staircase.config import BST_STAIRCASE_CONFIG, StaircaseConfig
from rhythmstair.staircase.controller import (
    Clock,
    ConvergenceAnalysis,
    StaircaseResult,
)
from rhythmstair.staircase.convergence import BST_CONVERGENCE_SETTINGS, ConvergenceSettings
from rhythmstair.staircase.trial import StaircaseTrial

PatternType = Literal["2beat", "3beat"]
PATTERN_TYPES: tuple[PatternType, ...] = ("2beat", "3beat")


@dataclass(frozen=True)
class BSTConfig(RhythmTestConfig):
    staircase: StaircaseConfig = BST_STAIRCASE_CONFIG
    convergence: ConvergenceSettings = BST_CONVERGENCE_SETTINGS


@dataclass(frozen=True)
class BSTTrial:
    volume_difference: float
    pattern_type: PatternType
    user_answer: PatternType
    correct: bool
    reaction_time: Optional[float]
    strong_beat_level: float
    weak_beat_level: float
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
class BSTResult:
    """
    Attributes
    ----------
    volume_difference_threshold : float
        Threshold volume difference (dB).
    pattern_accuracy : mapping
        ``"2beat"``, ``"3beat"`` and ``"overall"`` -> CategoryAccuracy.
    staircase : StaircaseResult
        Underlying engine result.
    """

    volume_difference_threshold: float
    trials: tuple[BSTTrial, ...]
    pattern_accuracy: Mapping[str, CategoryAccuracy]
    hearing_threshold: float
    staircase: StaircaseResult

    @property
    def threshold(self) -> float:
        return self.volume_difference_threshold

    @property
    def convergence_analysis(self) -> ConvergenceAnalysis:
        return self.staircase.convergence_analysis

    @property
    def overall_accuracy(self) -> float:
        return self.pattern_accuracy["overall"].accuracy

    @property
    def total_trials(self) -> int:
        return self.staircase.total_trials

    @property
    def total_reversals(self) -> int:
        return self.staircase.total_reversals

    @property
    def duration(self) -> float:
        return self.staircase.duration


class BSTStaircaseController(RhythmStaircaseTest):
    """
    Parameters
    ----------
    session_id, profile_id : str
    hearing_threshold : float or None
        Mean hearing threshold (dB) from the hearing test. None or a
        non-finite value falls back to ``config.fallback_hearing_threshold_db``
        with a RuntimeWarning.
    config : BSTConfig, optional
    clock : callable, optional
    """

    def __init__(
        self,
        session_id: str,
        profile_id: str,
        hearing_threshold: Optional[float],
        config: BSTConfig | None = None,
        *,
        clock: Clock | None = None,
    ):
        super().__init__(
            session_id, profile_id, hearing_threshold, config or BSTConfig(), clock=clock
        )

    def get_current_volume_difference(self) -> float:
        return self.get_current_level()

    def get_strong_beat_level(self) -> float:
        return self.get_sound_level()

    def get_weak_beat_level(self) -> float:
        return self.get_strong_beat_level() - self.get_current_volume_difference()

    def record_response(
        self,
        pattern_type: PatternType,
        user_answer: PatternType,
        reaction_time: Optional[float] = None,
    ) -> BSTTrial:
        """
        Record the subject's meter judgement at the current volume difference.

        The response is correct when ``user_answer`` equals ``pattern_type``.
        """
        check_label(pattern_type, PATTERN_TYPES, "pattern_type")
        check_label(user_answer, PATTERN_TYPES, "user_answer")
        correct = pattern_type == user_answer
        strong = self.get_strong_beat_level()
        weak = self.get_weak_beat_level()
        volume_difference = self.get_current_volume_difference()

        trial = self.controller.record_trial(correct)
        bst_trial = BSTTrial(
            volume_difference=volume_difference,
            pattern_type=pattern_type,
            user_answer=user_answer,
            correct=correct,
            reaction_time=reaction_time,
            strong_beat_level=strong,
            weak_beat_level=weak,
            staircase_trial=trial,
        )
        self._trials.append(bst_trial)
        return bst_trial

    def get_result(self) -> Optional[BSTResult]:
        result = self.controller.get_result()
        if result is None:
            return None
        trials = tuple(self._trials)
        return BSTResult(
            volume_difference_threshold=result.threshold,
            trials=trials,
            pattern_accuracy=category_accuracy(
                trials,
                PATTERN_TYPES,
                lambda t: t.pattern_type,
                lambda t: t.correct,
            ),
            hearing_threshold=self.hearing_threshold,
            staircase=result,
        )
