"""
controller.py
-------------

Generic adaptive staircase engine.

StaircaseController holds the current level and an append-only trial
history. Each recorded response:

1. applies the n-down/m-up rule to the run of identical responses ending at
   this trial,
2. flags a reversal when the resulting step points the other way than the
   previous step,
3. moves the level by ``step_size_for_reversal(reversals so far)`` and
   clamps it into ``[min_level, max_level]``.

A trial that does not satisfy the rule leaves the level where it is and does
not count as a step for reversal detection.

Lifecycle
---------
collecting -> converged     (target reversals and min trials reached)
collecting -> forced_stop   (max_trials reached first)

Examples
--------
>>> from rhythmstair.staircase import StaircaseController, StaircaseConfig
>>> ctrl = StaircaseController(StaircaseConfig(step_sizes=(8.0,)))
>>> for r in [True, True, True, False]:
...     _ = ctrl.record_trial(r)
>>> ctrl.get_current_level()
32.0
"""

from __future__ import annotations

import enum
import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Callable, Optional

import numpy as np

from rhythmstair.staircase.config import (
    DEFAULT_STAIRCASE_CONFIG,
    Direction,
    StaircaseConfig,
    preset,
)
from rhythmstair.staircase.convergence import (
    ConvergenceDetector,
    ConvergenceReason,
    ConvergenceSettings,
    ConvergenceState,
    convergence_preset,
)
from rhythmstair.staircase.schedule import step_size_for_reversal
from rhythmstair.staircase.trial import StaircaseTrial

logger = logging.getLogger(__name__)

Clock = Callable[[], datetime]

# Trials per reversal assumed before the first reversal has been seen.
DEFAULT_TRIALS_PER_REVERSAL = 5


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class StaircasePhase(str, enum.Enum):
    COLLECTING = "collecting"
    CONVERGED = "converged"
    FORCED_STOP = "forced_stop"


@dataclass(frozen=True)
class ConvergenceAnalysis:
    is_converged: bool
    confidence: float
    final_reversals: tuple[float, ...]
    reversal_count: int
    reason: Optional[ConvergenceReason] = None


@dataclass(frozen=True)
class StaircaseResult:
    """
    Outcome of a staircase run.

    Attributes
    ----------
    threshold : float
        Mean level over the last ``target_reversals`` reversals (all
        reversals if fewer occurred, all trial levels if none did).
    trials : tuple of StaircaseTrial
    total_reversals, total_trials : int
    duration : float
        Seconds from the controller start to the last recorded trial.
    convergence_analysis : ConvergenceAnalysis
        ``is_converged`` is False when the run was cut off by ``max_trials``.
    reversal_points : tuple of float
        Every reversal level, in order.
    """

    threshold: float
    trials: tuple[StaircaseTrial, ...]
    total_reversals: int
    total_trials: int
    duration: float
    convergence_analysis: ConvergenceAnalysis
    reversal_points: tuple[float, ...] = ()

    @property
    def confidence(self) -> float:
        return self.convergence_analysis.confidence


@dataclass(frozen=True)
class StaircaseState:
    current_level: float
    current_direction: Direction
    total_trials: int
    total_reversals: int
    trial_history: tuple[StaircaseTrial, ...]
    reversal_points: tuple[float, ...]
    phase: StaircasePhase


@dataclass(frozen=True)
class StaircaseProgress:
    """
    Read model for a progress display.

    ``estimated_remaining_trials`` is a heuristic: remaining reversals times
    the trials-per-reversal observed so far (``DEFAULT_TRIALS_PER_REVERSAL``
    before any reversal), capped by the trials left before ``max_trials``.
    """

    trials_completed: int
    reversals_count: int
    target_reversals: int
    current_level: float
    is_converged: bool
    estimated_remaining_trials: int
    max_trials: int

    @property
    def reversal_progress(self) -> float:
        return min(1.0, self.reversals_count / self.target_reversals)

    @property
    def trial_progress(self) -> float:
        return min(1.0, self.trials_completed / self.max_trials)

    @property
    def overall_progress(self) -> float:
        if self.is_converged:
            return 1.0
        blended = 0.8 * self.reversal_progress + 0.2 * self.trial_progress
        return max(blended, self.trial_progress)


class StaircaseController:
    """
    Adaptive n-down/m-up staircase.

    Parameters
    ----------
    config : StaircaseConfig, optional
        Validated configuration (``DEFAULT_STAIRCASE_CONFIG`` if omitted).
    detector : ConvergenceDetector, optional
        Convergence detector; a default one is created when omitted.
    clock : callable, optional
        Returns the current aware ``datetime``. Injected for reproducible
        timestamps.

    Notes
    -----
    One controller serves one measurement. Callers that share a process
    between sessions must create one controller per session and serialize
    access to it.
    """

    def __init__(
        self,
        config: StaircaseConfig | None = None,
        *,
        detector: ConvergenceDetector | None = None,
        clock: Clock | None = None,
    ):
        if config is not None and not isinstance(config, StaircaseConfig):
            raise TypeError(
                f"config must be a StaircaseConfig, got {type(config).__name__}"
            )
        self.config = config or DEFAULT_STAIRCASE_CONFIG
        self.detector = detector or ConvergenceDetector()
        self._clock = clock or utc_now
        self._init_state()

    def _init_state(self) -> None:
        self._level = float(self.config.initial_level)
        self._current_direction: Direction = self.config.start_direction
        self._last_step_direction: Optional[Direction] = None
        self._history: list[StaircaseTrial] = []
        self._reversal_points: list[float] = []
        self._run_response: Optional[bool] = None
        self._run_length = 0
        self._start_time = self._clock()
        self._cached_result: tuple[int, StaircaseResult] | None = None

    # ------------------------------------------------------------------
    # RECORDING
    # ------------------------------------------------------------------
    def record_trial(self, response: bool) -> StaircaseTrial:
        """
        Record a response at the current level and compute the next level.

        Parameters
        ----------
        response : bool
            True for correct / heard.

        Returns
        -------
        StaircaseTrial
            The appended trial.
        """
        response = bool(response)
        if response == self._run_response:
            self._run_length += 1
        else:
            self._run_response = response
            self._run_length = 1

        direction = self._rule_direction(response)
        is_reversal = (
            direction is not None
            and self._last_step_direction is not None
            and direction != self._last_step_direction
        )
        if is_reversal:
            self._reversal_points.append(self._level)

        step = 0.0
        next_level = self._level
        if direction is not None:
            step = step_size_for_reversal(len(self._reversal_points), self.config)
            next_level = self._apply_step(self._level, direction, step)
            self._last_step_direction = direction
            self._current_direction = direction

        trial = StaircaseTrial(
            trial_index=len(self._history),
            level=self._level,
            response=response,
            is_reversal=is_reversal,
            timestamp=self._clock(),
            step_size=step,
            direction=direction,
            next_level=next_level,
        )
        self._history.append(trial)
        logger.debug(
            "staircase trial %d: level=%.3f response=%s direction=%s reversal=%s next=%.3f",
            trial.trial_index,
            trial.level,
            response,
            direction,
            is_reversal,
            next_level,
        )
        self._level = next_level
        return trial

    def _rule_direction(self, response: bool) -> Optional[Direction]:
        if response and self._run_length >= self.config.n_down:
            return "down"
        if not response and self._run_length >= self.config.m_up:
            return "up"
        return None

    def _apply_step(self, level: float, direction: Direction, step: float) -> float:
        if self.config.step_mode == "multiplicative":
            new_level = level * step if direction == "down" else level / step
        else:
            new_level = level - step if direction == "down" else level + step
        return self.config.clamp(new_level)

    # ------------------------------------------------------------------
    # QUERIES
    # ------------------------------------------------------------------
    def get_current_level(self) -> float:
        """Level to present on the next trial."""
        return self._level

    @property
    def start_time(self) -> datetime:
        return self._start_time

    @property
    def total_trials(self) -> int:
        return len(self._history)

    @property
    def total_reversals(self) -> int:
        return len(self._reversal_points)

    @property
    def trial_history(self) -> tuple[StaircaseTrial, ...]:
        return tuple(self._history)

    def convergence_state(self) -> ConvergenceState:
        return self.detector.check_convergence(
            self._history, self._start_time, self._level, self.config
        )

    @property
    def phase(self) -> StaircasePhase:
        reason = self.convergence_state().reason
        if reason is ConvergenceReason.TARGET_REVERSALS:
            return StaircasePhase.CONVERGED
        if reason is ConvergenceReason.MAX_TRIALS:
            return StaircasePhase.FORCED_STOP
        return StaircasePhase.COLLECTING

    def is_converged(self) -> bool:
        """True once the run has terminated (converged or forced stop)."""
        return self.convergence_state().is_converged

    def is_finished(self) -> bool:
        return self.phase is not StaircasePhase.COLLECTING

    def get_state(self) -> StaircaseState:
        """Read-only snapshot of the controller."""
        return StaircaseState(
            current_level=self._level,
            current_direction=self._current_direction,
            total_trials=len(self._history),
            total_reversals=len(self._reversal_points),
            trial_history=tuple(self._history),
            reversal_points=tuple(self._reversal_points),
            phase=self.phase,
        )

    def get_progress(self) -> StaircaseProgress:
        state = self.convergence_state()
        trials = len(self._history)
        reversals = len(self._reversal_points)
        remaining_reversals = max(0, self.config.target_reversals - reversals)
        if state.is_converged:
            estimate = 0
        else:
            per_reversal = (
                trials / reversals if reversals > 0 else DEFAULT_TRIALS_PER_REVERSAL
            )
            estimate = int(round(remaining_reversals * per_reversal))
            estimate = max(0, min(estimate, self.config.max_trials - trials))
        return StaircaseProgress(
            trials_completed=trials,
            reversals_count=reversals,
            target_reversals=self.config.target_reversals,
            current_level=self._level,
            is_converged=state.is_converged,
            estimated_remaining_trials=estimate,
            max_trials=self.config.max_trials,
        )

    def get_result(self) -> StaircaseResult | None:
        """
        Threshold estimate and convergence analysis for the current history.

        Returns
        -------
        StaircaseResult or None
            None while no trial has been recorded. Repeated calls without new
            trials return the same object.
        """
        if not self._history:
            return None
        if self._cached_result is not None and self._cached_result[0] == len(
            self._history
        ):
            return self._cached_result[1]

        target = self.config.target_reversals
        final = self._reversal_points[-target:]
        if final:
            threshold = float(np.mean(final))
        else:
            threshold = float(np.mean([t.level for t in self._history]))

        state = self.convergence_state()
        result = StaircaseResult(
            threshold=threshold,
            trials=tuple(self._history),
            total_reversals=len(self._reversal_points),
            total_trials=len(self._history),
            duration=max(
                0.0, (self._history[-1].timestamp - self._start_time).total_seconds()
            ),
            convergence_analysis=ConvergenceAnalysis(
                is_converged=state.reason is ConvergenceReason.TARGET_REVERSALS,
                confidence=state.confidence,
                final_reversals=tuple(final),
                reversal_count=len(self._reversal_points),
                reason=state.reason,
            ),
            reversal_points=tuple(self._reversal_points),
        )
        self._cached_result = (len(self._history), result)
        return result

    # ------------------------------------------------------------------
    # LIFECYCLE
    # ------------------------------------------------------------------
    def reset(self) -> None:
        """Discard the history and start a fresh measurement."""
        self._init_state()


def create_staircase_controller(
    kind: str = "default",
    *,
    settings: ConvergenceSettings | None = None,
    clock: Clock | None = None,
    **overrides,
) -> StaircaseController:
    """
    Build a controller from a named preset.

    Parameters
    ----------
    kind : {"default", "hearing", "bst", "bit", "bfit"}
    settings : ConvergenceSettings, optional
        Diagnostic settings; the preset of the same ``kind`` when omitted.
    clock : callable, optional
    **overrides
        StaircaseConfig fields to replace.
    """
    config = preset(kind, **overrides)
    detector = ConvergenceDetector(settings or convergence_preset(kind))
    return StaircaseController(config, detector=detector, clock=clock)
