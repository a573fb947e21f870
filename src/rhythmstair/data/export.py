"""
export.py
---------

Plain-dict records of finished tests, ready for a persistence layer.

Every formatter returns an ExportPayload:
- summary : one dict describing the run (threshold, counts, convergence).
- trials : one dict per trial with the session id, 1-based trial index,
  level or domain fields, response, reaction time, reversal flag and ISO
  timestamp.

Notes
-----
- Values are Python scalars, lists and strings only; numpy values are
  converted so the records serialize with any JSON encoder.
- Nothing here touches the filesystem.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Optional

from rhythmstair.battery.bfit import BFITResult
from rhythmstair.battery.bit import BITResult, TempoTrial
from rhythmstair.battery.bst import BSTResult
from rhythmstair.battery.hearing import HearingResult, HearingSessionResult
from rhythmstair.staircase.controller import ConvergenceAnalysis, StaircaseResult
from rhythmstair.staircase.trial import StaircaseTrial

Record = dict[str, Any]


@dataclass
class ExportPayload:
    summary: Record
    trials: list[Record] = field(default_factory=list)


def _convergence_fields(analysis: ConvergenceAnalysis) -> Record:
    return {
        "is_converged": bool(analysis.is_converged),
        "confidence": float(analysis.confidence),
        "reversal_count": int(analysis.reversal_count),
        "final_reversals": [float(x) for x in analysis.final_reversals],
        "convergence_reason": analysis.reason.value if analysis.reason else None,
    }


def _trial_fields(session_id: Optional[str], trial: StaircaseTrial) -> Record:
    return {
        "session_id": session_id,
        "trial_index": trial.trial_index + 1,
        "level": float(trial.level),
        "response": bool(trial.response),
        "is_reversal": bool(trial.is_reversal),
        "timestamp": trial.timestamp.isoformat(),
    }


# ----------------------------------------------------------------------
# Generic engine
# ----------------------------------------------------------------------


def format_staircase_result_for_export(
    result: StaircaseResult, session_id: Optional[str] = None
) -> ExportPayload:
    summary = {
        "session_id": session_id,
        "threshold": float(result.threshold),
        "total_trials": int(result.total_trials),
        "total_reversals": int(result.total_reversals),
        "duration": float(result.duration),
        **_convergence_fields(result.convergence_analysis),
    }
    trials = [_trial_fields(session_id, t) for t in result.trials]
    return ExportPayload(summary=summary, trials=trials)


# ----------------------------------------------------------------------
# Hearing
# ----------------------------------------------------------------------


def format_hearing_result_for_export(
    result: HearingResult, session_id: Optional[str] = None
) -> ExportPayload:
    summary = {
        "session_id": session_id,
        "frequency": int(result.frequency),
        "threshold_db": float(result.threshold_db),
        "total_trials": int(result.total_trials),
        "total_reversals": int(result.total_reversals),
        "duration": float(result.duration),
        **_convergence_fields(result.convergence_analysis),
    }
    trials = []
    for t in result.trials:
        record = _trial_fields(session_id, t.staircase_trial)
        record.update(
            frequency=int(t.frequency),
            db_level=float(t.db_level),
            heard=bool(t.heard),
            reaction_time=t.reaction_time,
        )
        trials.append(record)
    return ExportPayload(summary=summary, trials=trials)


def format_hearing_session_for_export(session: HearingSessionResult) -> ExportPayload:
    """One summary for the whole session; trials of every frequency in order."""
    per_frequency = {
        f: format_hearing_result_for_export(r, session.session_id)
        for f, r in session.results.items()
    }
    summary = {
        "session_id": session.session_id,
        "profile_id": session.profile_id,
        "started_at": session.started_at.isoformat(),
        "completed_at": session.completed_at.isoformat() if session.completed_at else None,
        "is_completed": bool(session.is_completed),
        "average_threshold": session.average_threshold,
        "thresholds": {
            str(f): float(r.threshold_db) for f, r in session.results.items()
        },
    }
    trials = [
        record
        for f in session.frequencies
        if f in per_frequency
        for record in per_frequency[f].trials
    ]
    return ExportPayload(summary=summary, trials=trials)


# ----------------------------------------------------------------------
# Rhythm tests
# ----------------------------------------------------------------------


def format_bst_result_for_export(
    result: BSTResult, session_id: Optional[str] = None
) -> ExportPayload:
    summary = {
        "session_id": session_id,
        "volume_difference_threshold": float(result.volume_difference_threshold),
        "hearing_threshold": float(result.hearing_threshold),
        "total_trials": int(result.total_trials),
        "total_reversals": int(result.total_reversals),
        "duration": float(result.duration),
        **{
            f"accuracy_{name}": float(acc.accuracy)
            for name, acc in result.pattern_accuracy.items()
        },
        **_convergence_fields(result.convergence_analysis),
    }
    trials = []
    for t in result.trials:
        record = _trial_fields(session_id, t.staircase_trial)
        record.update(
            volume_difference=float(t.volume_difference),
            pattern_type=t.pattern_type,
            user_answer=t.user_answer,
            correct=bool(t.correct),
            reaction_time=t.reaction_time,
            strong_beat_level=float(t.strong_beat_level),
            weak_beat_level=float(t.weak_beat_level),
        )
        trials.append(record)
    return ExportPayload(summary=summary, trials=trials)


def _tempo_trial_record(session_id: Optional[str], t: TempoTrial) -> Record:
    record = _trial_fields(session_id, t.staircase_trial)
    record.update(
        slope_k=float(t.slope_k),
        direction=t.direction,
        user_answer=t.user_answer,
        correct=bool(t.correct),
        reaction_time=t.reaction_time,
        ioi_sequence=list(t.ioi_sequence),
        sound_level=float(t.sound_level),
    )
    if t.pattern_id is not None:
        record["pattern_id"] = t.pattern_id
    return record


def format_bit_result_for_export(
    result: BITResult, session_id: Optional[str] = None
) -> ExportPayload:
    summary = {
        "session_id": session_id,
        "slope_threshold": float(result.slope_threshold),
        "hearing_threshold": float(result.hearing_threshold),
        "total_trials": int(result.total_trials),
        "total_reversals": int(result.total_reversals),
        "duration": float(result.duration),
        **{
            f"accuracy_{name}": float(acc.accuracy)
            for name, acc in result.direction_accuracy.items()
        },
        **_convergence_fields(result.convergence_analysis),
    }
    trials = [_tempo_trial_record(session_id, t) for t in result.trials]
    return ExportPayload(summary=summary, trials=trials)


def format_bfit_result_for_export(
    result: BFITResult, session_id: Optional[str] = None
) -> ExportPayload:
    payload = format_bit_result_for_export(result, session_id)  # type: ignore[arg-type]
    analysis = result.pattern_analysis
    payload.summary.update(
        pattern_id=analysis.pattern_id,
        average_reaction_time=float(analysis.average_reaction_time),
        pattern_accuracy=float(analysis.pattern_accuracy),
    )
    return payload


_FORMATTERS = (
    (HearingSessionResult, lambda r, sid: format_hearing_session_for_export(r)),
    (HearingResult, format_hearing_result_for_export),
    (BSTResult, format_bst_result_for_export),
    (BFITResult, format_bfit_result_for_export),
    (BITResult, format_bit_result_for_export),
    (StaircaseResult, format_staircase_result_for_export),
)


def format_result_for_export(
    result: Any, session_id: Optional[str] = None
) -> ExportPayload:
    """
    Dispatch to the formatter for ``result``'s type.

    Raises
    ------
    TypeError
        If ``result`` is not a known result type.
    """
    for result_type, formatter in _FORMATTERS:
        if isinstance(result, result_type):
            return formatter(result, session_id)
    raise TypeError(f"Cannot export result of type {type(result).__name__}")
