"""
test_export.py
--------------

Export payloads for the persistence layer.
"""

import json

import pytest

from rhythmstair.battery import (
    BFITConfig,
    BFITStaircaseController,
    BITStaircaseController,
    BSTStaircaseController,
    HearingStaircaseController,
)
from rhythmstair.data import (
    ExportPayload,
    format_hearing_session_for_export,
    format_result_for_export,
)
from rhythmstair.staircase import StaircaseController


class TestEngineExport:
    def test_summary_and_trials(self, single_step_config, clock):
        ctrl = StaircaseController(single_step_config, clock=clock)
        for r in [True, True, True, False]:
            ctrl.record_trial(r)
        payload = format_result_for_export(ctrl.get_result(), session_id="s-1")

        assert isinstance(payload, ExportPayload)
        assert payload.summary["session_id"] == "s-1"
        assert payload.summary["total_trials"] == 4
        assert payload.summary["is_converged"] is False
        assert payload.summary["convergence_reason"] is None
        assert [t["trial_index"] for t in payload.trials] == [1, 2, 3, 4]
        assert [t["is_reversal"] for t in payload.trials] == [False, False, False, True]
        assert payload.trials[0]["timestamp"].startswith("2024-01-01T12:00:01")

    def test_payload_is_json_serialisable(self, single_step_config, clock):
        ctrl = StaircaseController(single_step_config, clock=clock)
        ctrl.record_trial(True)
        payload = format_result_for_export(ctrl.get_result())
        json.dumps({"summary": payload.summary, "trials": payload.trials})

    def test_unknown_type(self):
        with pytest.raises(TypeError):
            format_result_for_export(object())


class TestHearingExport:
    def test_per_frequency_result(self, clock, hearing_responses):
        hearing = HearingStaircaseController("s-1", "p-1", clock=clock)
        for r in hearing_responses:
            hearing.record_response(r, reaction_time=300.0)
        payload = format_result_for_export(hearing.get_current_result(), "s-1")
        assert payload.summary["frequency"] == 1000
        assert payload.summary["threshold_db"] == pytest.approx(194.0 / 6.0)
        assert payload.summary["convergence_reason"] == "target_reversals"
        assert payload.trials[0]["db_level"] == 40.0
        assert payload.trials[0]["heard"] is True
        assert payload.trials[0]["reaction_time"] == 300.0

    def test_session(self, clock):
        hearing = HearingStaircaseController("s-1", "p-1", clock=clock)
        hearing.record_response(True)
        hearing.move_to_next_frequency()
        hearing.record_response(False)
        payload = format_hearing_session_for_export(hearing.get_session_result())
        assert payload.summary["session_id"] == "s-1"
        assert payload.summary["average_threshold"] is None
        assert set(payload.summary["thresholds"]) == {"1000", "2000"}
        assert [t["frequency"] for t in payload.trials] == [1000, 2000]
        json.dumps(payload.summary)


class TestRhythmExport:
    def test_bst(self, clock):
        bst = BSTStaircaseController("s-1", "p-1", 20.0, clock=clock)
        bst.record_response("2beat", "2beat", reaction_time=410.0)
        payload = format_result_for_export(bst.get_result(), "s-1")
        assert payload.summary["accuracy_2beat"] == 1.0
        assert payload.summary["accuracy_3beat"] == 0.0
        assert payload.summary["accuracy_overall"] == 1.0
        trial = payload.trials[0]
        assert trial["pattern_type"] == "2beat"
        assert trial["strong_beat_level"] == 50.0
        assert trial["weak_beat_level"] == 30.0

    def test_bit(self, clock):
        bit = BITStaircaseController("s-1", "p-1", 20.0, clock=clock)
        iois = bit.build_ioi_sequence("accelerando")
        bit.record_response("accelerando", "ritardando", iois)
        payload = format_result_for_export(bit.get_result(), "s-1")
        assert payload.summary["slope_threshold"] == pytest.approx(5.0)
        assert payload.summary["accuracy_accelerando"] == 0.0
        assert payload.trials[0]["ioi_sequence"] == [float(x) for x in iois]
        assert "pattern_id" not in payload.trials[0]
        json.dumps(payload.trials)

    def test_bfit(self, clock):
        bfit = BFITStaircaseController(
            "s-1", "p-1", 20.0, BFITConfig(pattern_id="p7"), clock=clock
        )
        bfit.record_response("ritardando", "ritardando", [500.0, 508.0], reaction_time=700.0)
        payload = format_result_for_export(bfit.get_result(), "s-1")
        assert payload.summary["pattern_id"] == "p7"
        assert payload.summary["average_reaction_time"] == pytest.approx(700.0)
        assert payload.trials[0]["pattern_id"] == "p7"
