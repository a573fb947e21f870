"""
staircase
=========

Generic adaptive staircase engine.

- config : StaircaseConfig and presets for the four tests.
- schedule : coarse-to-fine step-size schedule.
- convergence : stopping rule, confidence score and diagnostics.
- controller : StaircaseController (the engine itself).
- statistics : descriptive summaries, learning curve and performance
  metrics of a run.
"""

from .config import (
    BFIT_STAIRCASE_CONFIG,
    BIT_STAIRCASE_CONFIG,
    BST_STAIRCASE_CONFIG,
    DEFAULT_STAIRCASE_CONFIG,
    HEARING_STAIRCASE_CONFIG,
    StaircaseConfig,
    parse_rule,
    preset,
)
from .controller import (
    ConvergenceAnalysis,
    StaircaseController,
    StaircasePhase,
    StaircaseProgress,
    StaircaseResult,
    StaircaseState,
    create_staircase_controller,
)
from .convergence import (
    BFIT_CONVERGENCE_SETTINGS,
    BIT_CONVERGENCE_SETTINGS,
    BST_CONVERGENCE_SETTINGS,
    DEFAULT_CONVERGENCE_SETTINGS,
    HEARING_CONVERGENCE_SETTINGS,
    ConvergenceDetector,
    ConvergenceReason,
    ConvergenceSettings,
    ConvergenceState,
    ConvergenceWarning,
    analyze_reversal_pattern,
    check_convergence,
    compute_confidence,
    convergence_preset,
)
from .schedule import step_size_for_reversal
from .statistics import (
    LearningCurve,
    PerformanceMetrics,
    TrialHistoryAnalysis,
    analyze_learning_curve,
    analyze_trial_history,
    calculate_performance_metrics,
    summarize_reversals,
)
from .trial import StaircaseTrial

__all__ = [
    # config
    "StaircaseConfig",
    "DEFAULT_STAIRCASE_CONFIG",
    "HEARING_STAIRCASE_CONFIG",
    "BST_STAIRCASE_CONFIG",
    "BIT_STAIRCASE_CONFIG",
    "BFIT_STAIRCASE_CONFIG",
    "parse_rule",
    "preset",
    # engine
    "StaircaseController",
    "StaircaseTrial",
    "StaircaseResult",
    "StaircaseState",
    "StaircaseProgress",
    "StaircasePhase",
    "ConvergenceAnalysis",
    "create_staircase_controller",
    "step_size_for_reversal",
    # convergence
    "ConvergenceDetector",
    "ConvergenceSettings",
    "DEFAULT_CONVERGENCE_SETTINGS",
    "HEARING_CONVERGENCE_SETTINGS",
    "BST_CONVERGENCE_SETTINGS",
    "BIT_CONVERGENCE_SETTINGS",
    "BFIT_CONVERGENCE_SETTINGS",
    "convergence_preset",
    "ConvergenceState",
    "ConvergenceReason",
    "ConvergenceWarning",
    "check_convergence",
    "compute_confidence",
    "analyze_reversal_pattern",
    # statistics
    "summarize_reversals",
    "analyze_trial_history",
    "analyze_learning_curve",
    "calculate_performance_metrics",
    "LearningCurve",
    "PerformanceMetrics",
    "TrialHistoryAnalysis",
]
