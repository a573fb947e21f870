"""
rhythmstair
===========

Adaptive staircase psychophysics for rhythm-perception testing.

This package implements the n-down/m-up adaptive staircase that drives a
battery of four perceptual tests: pure-tone hearing thresholds, beat
saliency (BST), tempo-direction (BIT) and tempo-direction within a complex
rhythm (BFIT). Trial by trial, the staircase decides which stimulus level
to present next, detects when the track has settled around a threshold,
and reports the threshold with a confidence score.

----------------------------------------------------------------------
Workflow
----------------------------------------------------------------------

Core design
-----------
1. StaircaseConfig (staircase/config.py):
   - Frozen, validated parameter set (levels, bounds, step schedule,
     stopping rule, decision rule).
   - Presets for the four tests.

2. StaircaseController (staircase/controller.py):
   - Applies the n-down/m-up rule over the run of identical responses.
   - Flags reversals, shrinks the step after each one, clamps the level.
   - Produces a StaircaseResult (mean of the last reversal levels).

3. ConvergenceDetector (staircase/convergence.py):
   - Stops on target reversals + minimum trials, or on max_trials.
   - Confidence score from reversal count and spread, plus diagnostics.

4. Test controllers (battery/):
   - HearingStaircaseController: one staircase per frequency, dB SPL axis.
   - BSTStaircaseController: volume difference between strong/weak beats.
   - BITStaircaseController, BFITStaircaseController: IOI slope (ms/beat).

Unified import style
--------------------
Top-level:
  from rhythmstair import StaircaseController, StaircaseConfig, create_staircase_controller
  from rhythmstair import HearingStaircaseController, BSTStaircaseController
  from rhythmstair import BITStaircaseController, BFITStaircaseController
  from rhythmstair import evaluate_quality, LogisticObserver, simulate_staircase

Subpackages:
  from rhythmstair.staircase import ConvergenceDetector, summarize_reversals, analyze_trial_history
  from rhythmstair.battery import ioi_sequence, bpm_to_ioi, classify_hearing_loss
  from rhythmstair.evaluation import QualityScheme, BST_QUALITY
  from rhythmstair.data import format_result_for_export
  from rhythmstair.utils import seed, split

Data flow
---------
- The caller reads get_current_level(), presents the stimulus and passes
  the subject's answer to record_response() (or record_trial()).
- The controller updates its level and history; convergence is evaluated
  on demand.
- The caller polls get_progress() / is_converged() and finally reads
  get_result().

----------------------------------------------------------------------
"""

# Re-export subpackages for unified import style (e.g., rhythmstair.staircase)
from . import battery as battery
from . import data as data
from . import evaluation as evaluation
from . import simulation as simulation
from . import staircase as staircase
from . import utils as utils

# Test controllers
from .battery.bfit import BFITConfig, BFITStaircaseController
from .battery.bit import BITConfig, BITStaircaseController
from .battery.bst import BSTConfig, BSTStaircaseController
from .battery.hearing import HearingConfig, HearingStaircaseController

# Export
from .data.export import ExportPayload, format_result_for_export

# Quality
from .evaluation.quality import QualityScheme, evaluate_quality

# Simulation
from .simulation.observer import LogisticObserver, simulate_staircase

# Engine
from .staircase.config import StaircaseConfig
from .staircase.controller import (
    StaircaseController,
    StaircaseResult,
    create_staircase_controller,
)
from .staircase.trial import StaircaseTrial

__all__ = [
    # Engine
    "StaircaseConfig",
    "StaircaseController",
    "StaircaseTrial",
    "StaircaseResult",
    "create_staircase_controller",
    # Test controllers
    "HearingConfig",
    "HearingStaircaseController",
    "BSTConfig",
    "BSTStaircaseController",
    "BITConfig",
    "BITStaircaseController",
    "BFITConfig",
    "BFITStaircaseController",
    # Quality
    "QualityScheme",
    "evaluate_quality",
    # Export
    "ExportPayload",
    "format_result_for_export",
    # Simulation
    "LogisticObserver",
    "simulate_staircase",
    # Subpackages
    "staircase",
    "battery",
    "evaluation",
    "data",
    "simulation",
    "utils",
]
