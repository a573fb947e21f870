"""
test_config.py
--------------

Validation, overrides and presets of StaircaseConfig.
"""

import math

import pytest

from rhythmstair.staircase import (
    BFIT_STAIRCASE_CONFIG,
    BIT_STAIRCASE_CONFIG,
    BST_STAIRCASE_CONFIG,
    HEARING_STAIRCASE_CONFIG,
    StaircaseConfig,
    parse_rule,
    preset,
)


class TestParseRule:
    @pytest.mark.parametrize(
        "rule, expected",
        [("1down1up", (1, 1)), ("2down1up", (2, 1)), ("3down1up", (3, 1)), ("2down2up", (2, 2))],
    )
    def test_valid_rules(self, rule, expected):
        assert parse_rule(rule) == expected

    @pytest.mark.parametrize("rule", ["", "2up1down", "0down1up", "2down0up", "down up", None])
    def test_invalid_rules(self, rule):
        with pytest.raises(ValueError):
            parse_rule(rule)


class TestValidation:
    def test_defaults_are_valid(self):
        cfg = StaircaseConfig()
        assert cfg.rule == "2down1up"
        assert (cfg.n_down, cfg.m_up) == (2, 1)
        assert cfg.level_range == 80.0

    def test_step_sizes_normalised_to_tuple(self):
        cfg = StaircaseConfig(step_sizes=[4, 2])
        assert cfg.step_sizes == (4, 2)

    @pytest.mark.parametrize(
        "overrides",
        [
            {"min_level": 50.0, "max_level": 10.0},
            {"min_level": 10.0, "max_level": 10.0},
            {"initial_level": 90.0},
            {"initial_level": -1.0},
            {"initial_level": math.nan},
            {"max_level": math.inf},
            {"max_level": 10**400},
            {"initial_level": "40"},
            {"step_sizes": ()},
            {"step_sizes": (4.0, 0.0)},
            {"step_sizes": (-2.0,)},
            {"initial_step_size": 0.0},
            {"target_reversals": 0},
            {"min_trials": 0},
            {"min_trials": 10, "max_trials": 5},
            {"start_direction": "sideways"},
            {"rule": "2down"},
            {"step_mode": "exponential"},
            {"max_trials": 10.5},
        ],
    )
    def test_invalid_configs_raise(self, overrides):
        with pytest.raises(ValueError):
            StaircaseConfig(**overrides)

    def test_multiplicative_requires_factors_below_one(self):
        with pytest.raises(ValueError, match="multiplicative"):
            StaircaseConfig(step_mode="multiplicative", min_level=1.0)

    def test_multiplicative_requires_positive_floor(self):
        with pytest.raises(ValueError, match="min_level"):
            StaircaseConfig(
                step_mode="multiplicative",
                initial_step_size=0.5,
                step_sizes=(0.5,),
                min_level=0.0,
            )

    def test_clamp(self):
        cfg = StaircaseConfig()
        assert cfg.clamp(-5.0) == 0.0
        assert cfg.clamp(95.0) == 80.0
        assert cfg.clamp(33.0) == 33.0


class TestOverrides:
    def test_replace_validates(self):
        cfg = StaircaseConfig().replace(initial_level=20.0)
        assert cfg.initial_level == 20.0
        with pytest.raises(ValueError):
            StaircaseConfig().replace(initial_level=200.0)

    def test_replace_rejects_unknown_fields(self):
        with pytest.raises(ValueError, match="Unknown"):
            StaircaseConfig().replace(initial_levle=20.0)

    def test_from_mapping(self):
        cfg = StaircaseConfig.from_mapping({"initial_level": 20, "max_level": 40})
        assert cfg.initial_level == 20
        assert cfg.max_level == 40

    def test_from_mapping_uses_base(self):
        cfg = StaircaseConfig.from_mapping({"max_trials": 20}, base=BST_STAIRCASE_CONFIG)
        assert cfg.initial_level == BST_STAIRCASE_CONFIG.initial_level
        assert cfg.max_trials == 20

    def test_from_mapping_rejects_unknown_keys(self):
        with pytest.raises(ValueError):
            StaircaseConfig.from_mapping({"volume": 3})

    def test_configs_are_frozen(self):
        cfg = StaircaseConfig()
        with pytest.raises(AttributeError):
            cfg.initial_level = 10.0


class TestPresets:
    def test_hearing(self):
        cfg = HEARING_STAIRCASE_CONFIG
        assert (cfg.initial_level, cfg.min_level, cfg.max_level) == (40.0, 0.0, 80.0)
        assert cfg.step_sizes == (8.0, 4.0, 2.0)
        assert (cfg.min_trials, cfg.max_trials, cfg.target_reversals) == (6, 30, 6)

    def test_bst(self):
        cfg = BST_STAIRCASE_CONFIG
        assert (cfg.initial_level, cfg.min_level, cfg.max_level) == (20.0, 0.5, 40.0)

    def test_bit(self):
        cfg = BIT_STAIRCASE_CONFIG
        assert (cfg.initial_level, cfg.min_level, cfg.max_level) == (5.0, 0.1, 20.0)
        assert cfg.step_sizes == (2.0, 1.0, 0.5)

    def test_bfit(self):
        cfg = BFIT_STAIRCASE_CONFIG
        assert (cfg.initial_level, cfg.min_level, cfg.max_level) == (8.0, 0.5, 30.0)
        assert (cfg.min_trials, cfg.max_trials) == (8, 35)

    def test_preset_with_overrides(self):
        cfg = preset("hearing", max_trials=20)
        assert cfg.max_trials == 20
        assert preset("hearing") is HEARING_STAIRCASE_CONFIG

    def test_unknown_preset(self):
        with pytest.raises(ValueError, match="Unknown staircase kind"):
            preset("vision")
