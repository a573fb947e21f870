"""
test_bit_bfit.py
----------------

Tempo-direction tests (BIT, BFIT) and the IOI helpers they use.
"""

import math

import numpy as np
import pytest

from rhythmstair.battery import (
    BFITConfig,
    BFITStaircaseController,
    BITConfig,
    BITStaircaseController,
    bpm_to_ioi,
    detect_tempo_direction,
    ioi_sequence,
    ioi_to_bpm,
)
from rhythmstair.staircase import BFIT_CONVERGENCE_SETTINGS, BIT_CONVERGENCE_SETTINGS


class TestIOIHelpers:
    def test_accelerando_shrinks_intervals(self):
        iois = ioi_sequence(10.0, "accelerando", n_beats=4, base_ioi=500.0)
        np.testing.assert_allclose(iois, [500.0, 490.0, 480.0, 470.0])

    def test_ritardando_grows_intervals(self):
        iois = ioi_sequence(10.0, "ritardando", n_beats=4, base_ioi=500.0)
        np.testing.assert_allclose(iois, [500.0, 510.0, 520.0, 530.0])

    def test_floor(self):
        iois = ioi_sequence(100.0, "accelerando", n_beats=6, base_ioi=400.0, min_ioi=150.0)
        assert iois.min() == pytest.approx(150.0)

    def test_invalid_arguments(self):
        with pytest.raises(ValueError):
            ioi_sequence(5.0, "sideways")
        with pytest.raises(ValueError):
            ioi_sequence(-1.0, "accelerando")
        with pytest.raises(ValueError):
            ioi_sequence(5.0, "accelerando", n_beats=0)

    def test_bpm_conversions(self):
        assert bpm_to_ioi(120.0) == pytest.approx(500.0)
        assert ioi_to_bpm(500.0) == pytest.approx(120.0)
        with pytest.raises(ValueError):
            bpm_to_ioi(0.0)

    @pytest.mark.parametrize(
        "iois, expected",
        [
            ([500, 480, 460], "accelerando"),
            ([500, 520, 540], "ritardando"),
            ([500, 505, 502], "steady"),
            ([500], "steady"),
        ],
    )
    def test_detect_tempo_direction(self, iois, expected):
        assert detect_tempo_direction(iois) == expected

    def test_generated_sequences_are_detected(self):
        for direction in ("accelerando", "ritardando"):
            assert detect_tempo_direction(ioi_sequence(5.0, direction)) == direction


@pytest.fixture
def bit(clock):
    return BITStaircaseController("session-1", "profile-1", hearing_threshold=25.0, clock=clock)


class TestBIT:
    def test_initial_state(self, bit):
        assert bit.get_current_slope_k() == pytest.approx(5.0)
        assert bit.get_sound_level() == pytest.approx(55.0)

    def test_detector_uses_bit_settings(self, bit):
        assert bit.controller.detector.settings is BIT_CONVERGENCE_SETTINGS

    def test_build_ioi_sequence_uses_current_slope(self, bit):
        iois = bit.build_ioi_sequence("ritardando")
        assert len(iois) == BITConfig().n_beats
        assert iois[1] - iois[0] == pytest.approx(5.0)

    def test_record_response(self, bit):
        iois = bit.build_ioi_sequence("accelerando")
        trial = bit.record_response("accelerando", "accelerando", iois, reaction_time=600.0)
        assert trial.correct
        assert trial.slope_k == pytest.approx(5.0)
        assert trial.ioi_sequence == tuple(float(x) for x in iois)
        assert trial.sound_level == pytest.approx(55.0)
        assert trial.pattern_id is None

    def test_slope_decreases_after_two_correct(self, bit):
        for _ in range(2):
            bit.record_response("ritardando", "ritardando", [500.0, 505.0])
        assert bit.get_current_slope_k() == pytest.approx(3.0)

    def test_direction_accuracy(self, bit):
        bit.record_response("accelerando", "accelerando", [])
        bit.record_response("accelerando", "ritardando", [])
        bit.record_response("ritardando", "ritardando", [])
        acc = bit.get_result().direction_accuracy
        assert acc["accelerando"].accuracy == pytest.approx(0.5)
        assert acc["ritardando"].accuracy == pytest.approx(1.0)
        assert acc["overall"].total == 3
        assert bit.get_result().overall_accuracy == pytest.approx(2 / 3)

    def test_invalid_direction(self, bit):
        with pytest.raises(ValueError, match="direction"):
            bit.record_response("steady", "accelerando", [])

    def test_nan_hearing_threshold(self, clock):
        with pytest.warns(RuntimeWarning):
            bit = BITStaircaseController("s", "p", math.nan, clock=clock)
        assert bit.get_sound_level() == pytest.approx(80.0)

    @pytest.mark.parametrize(
        "overrides",
        [{"base_ioi": 0.0}, {"base_ioi": "fast"}, {"min_ioi": 600.0}, {"n_beats": 1}],
    )
    def test_invalid_config(self, overrides):
        with pytest.raises(ValueError):
            BITConfig(**overrides)


@pytest.fixture
def bfit(clock):
    cfg = BFITConfig(pattern_id="syncopated-a", base_tempo=100.0, repetitions=2)
    return BFITStaircaseController("session-1", "profile-1", 30.0, cfg, clock=clock)


class TestBFIT:
    def test_config_accessors(self, bfit):
        assert bfit.get_pattern_id() == "syncopated-a"
        assert bfit.get_base_tempo() == 100.0
        assert bfit.get_repetitions() == 2
        assert bfit.get_current_slope_k() == pytest.approx(8.0)
        assert bfit.get_sound_level() == pytest.approx(60.0)

    def test_detector_uses_bfit_settings(self, bfit):
        assert bfit.config.convergence is BFIT_CONVERGENCE_SETTINGS
        assert bfit.controller.detector.settings is BFIT_CONVERGENCE_SETTINGS

    def test_ioi_sequence_starts_at_base_tempo(self, bfit):
        iois = bfit.build_ioi_sequence("ritardando", n_beats=5)
        assert iois[0] == pytest.approx(600.0)
        assert iois[-1] == pytest.approx(600.0 + 4 * 8.0)

    def test_ioi_floor_is_half_base_ioi(self, bfit):
        iois = bfit.build_ioi_sequence("accelerando", n_beats=60)
        assert iois.min() == pytest.approx(300.0)

    def test_trials_carry_pattern_id(self, bfit):
        trial = bfit.record_response("accelerando", "accelerando", [600.0, 592.0])
        assert trial.pattern_id == "syncopated-a"

    def test_pattern_analysis(self, bfit):
        bfit.record_response("accelerando", "accelerando", [], reaction_time=400.0)
        bfit.record_response("ritardando", "accelerando", [], reaction_time=800.0)
        bfit.record_response("ritardando", "ritardando", [], reaction_time=None)
        bfit.record_response("ritardando", "ritardando", [], reaction_time=0.0)
        analysis = bfit.get_result().pattern_analysis
        assert analysis.pattern_id == "syncopated-a"
        assert analysis.average_reaction_time == pytest.approx(600.0)
        assert analysis.pattern_accuracy == pytest.approx(0.75)

    def test_no_reaction_times(self, bfit):
        bfit.record_response("accelerando", "accelerando", [])
        assert bfit.get_result().pattern_analysis.average_reaction_time == 0.0

    def test_convergence_bounds(self, bfit):
        for _ in range(34):
            bfit.record_response("accelerando", "accelerando", [])
        assert not bfit.is_converged()
        bfit.record_response("accelerando", "accelerando", [])
        assert bfit.is_converged()

    @pytest.mark.parametrize(
        "overrides",
        [{"pattern_id": ""}, {"base_tempo": 0.0}, {"base_tempo": None}, {"repetitions": 0}],
    )
    def test_invalid_config(self, overrides):
        with pytest.raises(ValueError):
            BFITConfig(**overrides)
