"""
battery
=======

Test-specific controllers built on the staircase engine.

- hearing : pure-tone thresholds at 1, 2 and 4 kHz.
- bst : beat saliency (volume difference, dB).
- bit : tempo direction (IOI slope, ms/beat).
- bfit : tempo direction within a complex rhythm pattern.
- tempo : IOI sequence helpers.
"""

from .base import (
    BatteryController,
    CategoryAccuracy,
    RhythmStaircaseTest,
    RhythmTestConfig,
    category_accuracy,
)
from .bfit import BFITConfig, BFITResult, BFITStaircaseController, PatternAnalysis
from .bit import BITConfig, BITResult, BITStaircaseController, TempoTrial
from .bst import BSTConfig, BSTResult, BSTStaircaseController, BSTTrial
from .hearing import (
    HEARING_FREQUENCIES,
    HearingConfig,
    HearingProgress,
    HearingReliability,
    HearingResult,
    HearingSessionResult,
    HearingStaircaseController,
    HearingTrial,
    analyze_threshold_pattern,
    classify_hearing_loss,
    evaluate_reliability,
)
from .tempo import bpm_to_ioi, detect_tempo_direction, ioi_sequence, ioi_to_bpm

__all__ = [
    # shared
    "BatteryController",
    "CategoryAccuracy",
    "category_accuracy",
    "RhythmTestConfig",
    "RhythmStaircaseTest",
    # hearing
    "HEARING_FREQUENCIES",
    "HearingConfig",
    "HearingTrial",
    "HearingResult",
    "HearingSessionResult",
    "HearingProgress",
    "HearingStaircaseController",
    "classify_hearing_loss",
    "analyze_threshold_pattern",
    "HearingReliability",
    "evaluate_reliability",
    # bst
    "BSTConfig",
    "BSTTrial",
    "BSTResult",
    "BSTStaircaseController",
    # bit / bfit
    "BITConfig",
    "BITResult",
    "BITStaircaseController",
    "BFITConfig",
    "BFITResult",
    "BFITStaircaseController",
    "PatternAnalysis",
    "TempoTrial",
    # tempo
    "ioi_sequence",
    "bpm_to_ioi",
    "ioi_to_bpm",
    "detect_tempo_direction",
]
