"""
base.py
-------

Shared pieces of the four test controllers.

defines:
- BatteryController: protocol every test controller satisfies.
- CategoryAccuracy / category_accuracy: per-category fraction correct, a
  read-only aggregate over the trial history that never feeds the
  staircase decision.
- RhythmTestConfig / RhythmStaircaseTest: config and plumbing shared by
  BST, BIT and BFIT.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import (
    Any,
    Callable,
    Iterable,
    Optional,
    Protocol,
    Sequence,
    TypeVar,
    runtime_checkable,
)

from rhythmstair.staircase.config import DEFAULT_STAIRCASE_CONFIG, StaircaseConfig
from rhythmstair.staircase.controller import (
    Clock,
    StaircaseController,
    StaircaseProgress,
)
from rhythmstair.staircase.convergence import (
    DEFAULT_CONVERGENCE_SETTINGS,
    ConvergenceDetector,
    ConvergenceSettings,
)
from rhythmstair.utils.numeric import finite_or_default, require_finite

T = TypeVar("T")


@runtime_checkable
class BatteryController(Protocol):
    """
    Capability set of a perceptual test controller.

    Each controller wraps one or more StaircaseController instances and
    adapts domain units and trial shapes. ``record_response`` takes
    test-specific arguments.
    """

    def record_response(self, *args: Any, **kwargs: Any) -> Any: ...

    def get_result(self) -> Any: ...

    def get_progress(self) -> StaircaseProgress: ...

    def is_converged(self) -> bool: ...

    def reset(self) -> None: ...


@dataclass(frozen=True)
class CategoryAccuracy:
    correct: int
    total: int

    @property
    def accuracy(self) -> float:
        """Fraction correct; 0.0 for an empty category."""
        return self.correct / self.total if self.total else 0.0


def category_accuracy(
    trials: Sequence[T],
    categories: Iterable[str],
    category_of: Callable[[T], str],
    is_correct: Callable[[T], bool],
) -> dict[str, CategoryAccuracy]:
    """
    Fraction correct within each category plus an ``"overall"`` entry.

    Parameters
    ----------
    trials : sequence
        Domain trial records.
    categories : iterable of str
        Category labels to report (reported even when empty).
    category_of : callable
        Maps a trial to its category label.
    is_correct : callable
        Maps a trial to its correctness.
    """
    counts = {name: [0, 0] for name in categories}
    for trial in trials:
        bucket = counts.setdefault(category_of(trial), [0, 0])
        bucket[1] += 1
        if is_correct(trial):
            bucket[0] += 1
    summary = {name: CategoryAccuracy(c, n) for name, (c, n) in counts.items()}
    summary["overall"] = CategoryAccuracy(
        correct=sum(c for c, _ in counts.values()),
        total=sum(n for _, n in counts.values()),
    )
    return summary


def check_label(value: str, allowed: Sequence[str], name: str) -> str:
    if value not in allowed:
        raise ValueError(f"{name} must be one of {list(allowed)}, got {value!r}")
    return value


# ----------------------------------------------------------------------
# Shared machinery of the rhythm tests (BST, BIT, BFIT)
# ----------------------------------------------------------------------

FALLBACK_HEARING_THRESHOLD_DB = 50.0
SOUND_LEVEL_OFFSET_DB = 30.0


@dataclass(frozen=True)
class RhythmTestConfig:
    """
    Parameters common to the rhythm tests.

    Parameters
    ----------
    staircase : StaircaseConfig
        Staircase over the test's level unit.
    sound_level_offset_db : float, default=30.0
        Presentation level above the subject's hearing threshold.
    fallback_hearing_threshold_db : float, default=50.0
        Hearing threshold used when the measured one is missing or not
        finite.
    convergence : ConvergenceSettings
        Diagnostic settings of the convergence detector.
    """

    staircase: StaircaseConfig = DEFAULT_STAIRCASE_CONFIG
    sound_level_offset_db: float = SOUND_LEVEL_OFFSET_DB
    fallback_hearing_threshold_db: float = FALLBACK_HEARING_THRESHOLD_DB
    convergence: ConvergenceSettings = DEFAULT_CONVERGENCE_SETTINGS

    def __post_init__(self) -> None:
        if not isinstance(self.staircase, StaircaseConfig):
            raise ValueError("staircase must be a StaircaseConfig")
        if not isinstance(self.convergence, ConvergenceSettings):
            raise ValueError("convergence must be a ConvergenceSettings")
        for name in ("sound_level_offset_db", "fallback_hearing_threshold_db"):
            require_finite(name, getattr(self, name))


class RhythmStaircaseTest:
    """
    One staircase plus a hearing-threshold anchored presentation level.

    Subclasses add the test-specific ``record_response`` and ``get_result``.
    """

    def __init__(
        self,
        session_id: str,
        profile_id: str,
        hearing_threshold: Optional[float],
        config: RhythmTestConfig,
        *,
        clock: Clock | None = None,
    ):
        self.session_id = session_id
        self.profile_id = profile_id
        self.config = config
        self.hearing_threshold = finite_or_default(
            hearing_threshold,
            config.fallback_hearing_threshold_db,
            name="hearing threshold",
        )
        self.controller = StaircaseController(
            config.staircase,
            detector=ConvergenceDetector(config.convergence),
            clock=clock,
        )
        self._trials: list = []

    def get_current_level(self) -> float:
        return self.controller.get_current_level()

    def get_sound_level(self) -> float:
        """Presentation level in dB SPL (hearing threshold + offset)."""
        return self.hearing_threshold + self.config.sound_level_offset_db

    def get_progress(self) -> StaircaseProgress:
        return self.controller.get_progress()

    def is_converged(self) -> bool:
        return self.controller.is_converged()

    def reset(self) -> None:
        """Discard all trials; the hearing threshold is kept."""
        self.controller.reset()
        self._trials.clear()
