"""
quality.py
----------

Letter grade and 0-100 score for a finished test.

    score = 100 * (w_c * confidence + w_a * accuracy) / (w_c + w_a)

The accuracy term only takes part when the result reports categorical
accuracy and its weight is non-zero. Runs that stopped on ``max_trials``
instead of converging are scaled by ``unconverged_factor``. Grades come
from descending cutoffs: A >= 90, B >= 75, C >= 60, D >= 40, else F.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Literal, Mapping, Optional

from rhythmstair.battery.bfit import BFITResult
from rhythmstair.battery.bit import BITResult
from rhythmstair.battery.bst import BSTResult
from rhythmstair.battery.hearing import HearingResult
from rhythmstair.utils.numeric import require_finite

Grade = Literal["A", "B", "C", "D", "F"]
GRADES: tuple[Grade, ...] = ("A", "B", "C", "D", "F")


def _default_cutoffs() -> dict[str, float]:
    return {"A": 90.0, "B": 75.0, "C": 60.0, "D": 40.0}


def _default_feedback() -> dict[str, str]:
    return {
        "A": "Excellent: the threshold estimate is very reliable.",
        "B": "Good: the threshold estimate is reliable.",
        "C": "Fair: the threshold estimate is usable.",
        "D": "Weak: consider repeating the test.",
        "F": "Unreliable: repeat the test.",
    }


@dataclass(frozen=True)
class QualityScheme:
    """
    Parameters
    ----------
    confidence_weight : float, default=1.0
    accuracy_weight : float, default=0.0
    cutoffs : mapping, default A 90 / B 75 / C 60 / D 40
        Minimum score for each grade above F; must strictly decrease.
    unconverged_factor : float, default=0.8
        Score multiplier for runs that did not converge, in [0, 1].
    feedback : mapping
        Text shown for each grade.
    """

    confidence_weight: float = 1.0
    accuracy_weight: float = 0.0
    cutoffs: Mapping[str, float] = field(default_factory=_default_cutoffs)
    unconverged_factor: float = 0.8
    feedback: Mapping[str, str] = field(default_factory=_default_feedback)

    def __post_init__(self) -> None:
        for name in ("confidence_weight", "accuracy_weight"):
            value = getattr(self, name)
            if require_finite(name, value) < 0:
                raise ValueError(f"{name} must be >= 0, got {value!r}")
        if self.confidence_weight + self.accuracy_weight <= 0:
            raise ValueError("at least one weight must be positive")
        if not 0 <= self.unconverged_factor <= 1:
            raise ValueError(
                f"unconverged_factor must lie in [0, 1], got {self.unconverged_factor}"
            )
        if set(self.cutoffs) != set(GRADES[:-1]):
            raise ValueError(f"cutoffs must define exactly {list(GRADES[:-1])}")
        values = [self.cutoffs[g] for g in GRADES[:-1]]
        if any(a <= b for a, b in zip(values, values[1:])):
            raise ValueError(f"cutoffs must strictly decrease from A to D, got {values}")
        missing = set(GRADES) - set(self.feedback)
        if missing:
            raise ValueError(f"feedback missing for grades {sorted(missing)}")

    def grade_for(self, score: float) -> Grade:
        for grade in GRADES[:-1]:
            if score >= self.cutoffs[grade]:
                return grade
        return "F"


@dataclass(frozen=True)
class QualityEvaluation:
    grade: Grade
    score: int
    feedback: str


HEARING_QUALITY = QualityScheme(confidence_weight=1.0, accuracy_weight=0.0)
BST_QUALITY = QualityScheme(confidence_weight=0.6, accuracy_weight=0.4)
BIT_QUALITY = QualityScheme(confidence_weight=0.6, accuracy_weight=0.4)
BFIT_QUALITY = QualityScheme(confidence_weight=0.6, accuracy_weight=0.4)

_SCHEMES_BY_RESULT = (
    (HearingResult, HEARING_QUALITY),
    (BSTResult, BST_QUALITY),
    (BFITResult, BFIT_QUALITY),
    (BITResult, BIT_QUALITY),
)


def scheme_for(result: Any) -> QualityScheme:
    """Default scheme for a result type (confidence only for anything unknown)."""
    for result_type, scheme in _SCHEMES_BY_RESULT:
        if isinstance(result, result_type):
            return scheme
    return HEARING_QUALITY


def evaluate_quality(
    result: Any, scheme: Optional[QualityScheme] = None
) -> QualityEvaluation:
    """
    Grade a test result.

    Parameters
    ----------
    result : StaircaseResult, HearingResult, BSTResult, BITResult or BFITResult
        Anything with a ``convergence_analysis``; categorical accuracy is
        read from ``overall_accuracy`` when present.
    scheme : QualityScheme, optional
        Chosen from the result type when omitted.

    Returns
    -------
    QualityEvaluation
    """
    scheme = scheme or scheme_for(result)
    analysis = result.convergence_analysis
    confidence = min(1.0, max(0.0, analysis.confidence))

    weighted = scheme.confidence_weight * confidence
    total_weight = scheme.confidence_weight
    accuracy = getattr(result, "overall_accuracy", None)
    if accuracy is not None and scheme.accuracy_weight > 0:
        weighted += scheme.accuracy_weight * accuracy
        total_weight += scheme.accuracy_weight

    raw = 100.0 * weighted / total_weight if total_weight > 0 else 0.0
    if not analysis.is_converged:
        raw *= scheme.unconverged_factor
    score = int(min(100, max(0, round(raw))))
    grade = scheme.grade_for(score)
    return QualityEvaluation(grade=grade, score=score, feedback=scheme.feedback[grade])
