"""
test_controller.py
------------------

Behaviour of the generic StaircaseController: decision rule, reversals,
clamping, termination, results, progress and reset.
"""

import math

import pytest

from rhythmstair.staircase import (
    ConvergenceReason,
    StaircaseConfig,
    StaircaseController,
    StaircasePhase,
    create_staircase_controller,
)

C, I = True, False


def run(controller, responses):
    return [controller.record_trial(r) for r in responses]


class TestDecisionRule:
    def test_scripted_two_down_one_up(self, single_step_config, clock):
        ctrl = StaircaseController(single_step_config, clock=clock)
        trials = run(ctrl, [C, C, C, I, C, I])

        assert [t.level for t in trials] == [40, 40, 32, 24, 32, 32]
        assert [t.next_level for t in trials] == [40, 32, 24, 32, 32, 40]
        assert [t.is_reversal for t in trials] == [False, False, False, True, False, False]
        assert [t.direction for t in trials] == [None, "down", "down", "up", None, "up"]
        assert ctrl.get_state().reversal_points == (24.0,)

    def test_first_trial_is_never_a_reversal(self, clock):
        ctrl = StaircaseController(StaircaseConfig(rule="1down1up"), clock=clock)
        assert ctrl.record_trial(I).is_reversal is False

    def test_no_change_trial_has_zero_step(self, single_step_config, clock):
        ctrl = StaircaseController(single_step_config, clock=clock)
        trial = ctrl.record_trial(C)
        assert trial.step_size == 0.0
        assert trial.direction is None
        assert ctrl.get_current_level() == 40.0

    def test_one_down_one_up_alternation_reverses_every_trial(self, single_step_config, clock):
        ctrl = StaircaseController(single_step_config.replace(rule="1down1up"), clock=clock)
        trials = run(ctrl, [C, I, C, I, C])
        assert [t.level for t in trials] == [40, 32, 40, 32, 40]
        assert [t.is_reversal for t in trials] == [False, True, True, True, True]

    def test_three_down_one_up_needs_three_correct(self, single_step_config, clock):
        ctrl = StaircaseController(single_step_config.replace(rule="3down1up"), clock=clock)
        run(ctrl, [C, C])
        assert ctrl.get_current_level() == 40.0
        ctrl.record_trial(C)
        assert ctrl.get_current_level() == 32.0

    def test_two_up_rule_needs_two_incorrect(self, single_step_config, clock):
        ctrl = StaircaseController(single_step_config.replace(rule="1down2up"), clock=clock)
        ctrl.record_trial(I)
        assert ctrl.get_current_level() == 40.0
        ctrl.record_trial(I)
        assert ctrl.get_current_level() == 48.0

    def test_step_shrinks_after_reversals(self, clock):
        cfg = StaircaseConfig(initial_step_size=8.0, step_sizes=(4.0, 2.0), rule="1down1up")
        ctrl = StaircaseController(cfg, clock=clock)
        trials = run(ctrl, [C, I, C])
        # 40 -8-> 32, reversal #1 -4-> 36, reversal #2 -2-> 34
        assert [t.step_size for t in trials] == [8.0, 4.0, 2.0]
        assert ctrl.get_current_level() == 34.0

    def test_multiplicative_steps(self, clock):
        cfg = StaircaseConfig(
            initial_level=40.0,
            initial_step_size=0.5,
            step_sizes=(0.5,),
            min_level=1.0,
            max_level=80.0,
            step_mode="multiplicative",
        )
        ctrl = StaircaseController(cfg, clock=clock)
        run(ctrl, [C, C])
        assert ctrl.get_current_level() == pytest.approx(20.0)
        ctrl.record_trial(I)
        assert ctrl.get_current_level() == pytest.approx(40.0)

    def test_non_boolean_responses_are_coerced(self, single_step_config, clock):
        ctrl = StaircaseController(single_step_config, clock=clock)
        trial = ctrl.record_trial(1)
        assert trial.response is True


class TestBoundedness:
    @pytest.mark.parametrize("response", [C, I])
    def test_levels_stay_within_bounds(self, single_step_config, clock, response):
        ctrl = StaircaseController(single_step_config, clock=clock)
        for _ in range(40):
            trial = ctrl.record_trial(response)
            assert single_step_config.min_level <= trial.level <= single_step_config.max_level
            assert single_step_config.min_level <= trial.next_level <= single_step_config.max_level

    def test_all_correct_saturates_at_floor(self, single_step_config, clock):
        ctrl = StaircaseController(single_step_config, clock=clock)
        run(ctrl, [C] * 20)
        assert ctrl.get_current_level() == 0.0
        assert ctrl.total_reversals == 0

    def test_trial_count_is_monotonic(self, single_step_config, clock):
        ctrl = StaircaseController(single_step_config, clock=clock)
        counts = []
        for r in [C, I] * 5:
            ctrl.record_trial(r)
            counts.append(ctrl.get_state().total_trials)
        assert counts == list(range(1, 11))
        assert [t.trial_index for t in ctrl.trial_history] == list(range(10))


class TestTermination:
    def test_forced_stop_on_max_trials(self, single_step_config, clock):
        cfg = single_step_config.replace(max_trials=12)
        ctrl = StaircaseController(cfg, clock=clock)
        run(ctrl, [C] * 11)
        assert not ctrl.is_converged()
        ctrl.record_trial(C)
        assert ctrl.is_converged()
        assert ctrl.phase is StaircasePhase.FORCED_STOP

        result = ctrl.get_result()
        assert result.convergence_analysis.is_converged is False
        assert result.convergence_analysis.reason is ConvergenceReason.MAX_TRIALS
        assert result.total_reversals == 0
        # no reversals: threshold is the mean of all presented levels
        assert result.threshold == pytest.approx(
            sum(t.level for t in result.trials) / len(result.trials)
        )

    def test_forced_stop_with_alternating_responses(self, single_step_config, clock):
        cfg = single_step_config.replace(min_trials=5, max_trials=5)
        ctrl = StaircaseController(cfg, clock=clock)
        run(ctrl, [C, I, C, I, C])
        assert ctrl.is_converged()
        assert ctrl.phase is StaircasePhase.FORCED_STOP

        result = ctrl.get_result()
        assert result.total_trials == 5
        assert result.total_reversals < cfg.target_reversals
        assert result.convergence_analysis.is_converged is False
        assert result.convergence_analysis.reason is ConvergenceReason.MAX_TRIALS

    def test_converges_on_target_reversals(self, clock, hearing_responses):
        ctrl = create_staircase_controller("hearing", clock=clock)
        run(ctrl, hearing_responses[:-1])
        assert not ctrl.is_converged()
        ctrl.record_trial(hearing_responses[-1])
        assert ctrl.is_converged()
        assert ctrl.phase is StaircasePhase.CONVERGED

        result = ctrl.get_result()
        assert result.reversal_points == (32.0, 40.0, 28.0, 32.0, 30.0, 32.0)
        assert result.threshold == pytest.approx(194.0 / 6.0)
        assert result.convergence_analysis.is_converged is True
        assert result.total_trials == 14

    def test_min_trials_delays_convergence(self, single_step_config, clock):
        cfg = single_step_config.replace(rule="1down1up", target_reversals=2, min_trials=6)
        ctrl = StaircaseController(cfg, clock=clock)
        run(ctrl, [C, I, C])
        assert ctrl.total_reversals == 2
        assert not ctrl.is_converged()
        run(ctrl, [I, C, I])
        assert ctrl.is_converged()

    def test_recording_after_termination_keeps_terminal_phase(self, single_step_config, clock):
        ctrl = StaircaseController(single_step_config.replace(max_trials=6), clock=clock)
        run(ctrl, [C] * 6)
        ctrl.record_trial(I)
        assert ctrl.total_trials == 7
        assert ctrl.is_finished()


class TestResult:
    def test_none_before_any_trial(self, single_step_config, clock):
        assert StaircaseController(single_step_config, clock=clock).get_result() is None

    def test_result_is_memoised(self, single_step_config, clock):
        ctrl = StaircaseController(single_step_config, clock=clock)
        run(ctrl, [C, C, C, I])
        first = ctrl.get_result()
        assert ctrl.get_result() is first
        ctrl.record_trial(C)
        second = ctrl.get_result()
        assert second is not first
        assert second.total_trials == 5

    def test_threshold_uses_last_target_reversals(self, single_step_config, clock):
        cfg = single_step_config.replace(rule="1down1up", target_reversals=2)
        ctrl = StaircaseController(cfg, clock=clock)
        run(ctrl, [C, I, C, I])
        result = ctrl.get_result()
        assert result.reversal_points == (32.0, 40.0, 32.0)
        assert result.convergence_analysis.final_reversals == (40.0, 32.0)
        assert result.threshold == pytest.approx(36.0)

    def test_duration_runs_to_last_trial(self, single_step_config, clock):
        ctrl = StaircaseController(single_step_config, clock=clock)
        run(ctrl, [C, C, C])
        assert ctrl.get_result().duration == pytest.approx(3.0)

    @pytest.mark.parametrize(
        "responses", [[C] * 30, [I] * 30, [C, I] * 15, [C, C, I] * 10]
    )
    def test_confidence_bounded_on_degenerate_histories(self, single_step_config, clock, responses):
        ctrl = StaircaseController(single_step_config, clock=clock)
        run(ctrl, responses)
        confidence = ctrl.get_result().confidence
        assert 0.0 <= confidence <= 1.0
        assert not math.isnan(ctrl.get_result().threshold)


class TestStateAndProgress:
    def test_initial_state(self, single_step_config, clock):
        ctrl = StaircaseController(single_step_config.replace(start_direction="up"), clock=clock)
        state = ctrl.get_state()
        assert state.current_level == 40.0
        assert state.current_direction == "up"
        assert state.total_trials == 0
        assert state.trial_history == ()
        assert state.phase is StaircasePhase.COLLECTING

    def test_direction_follows_last_step(self, single_step_config, clock):
        ctrl = StaircaseController(single_step_config.replace(start_direction="up"), clock=clock)
        run(ctrl, [C, C])
        assert ctrl.get_state().current_direction == "down"

    def test_estimate_before_any_reversal(self, single_step_config, clock):
        progress = StaircaseController(single_step_config, clock=clock).get_progress()
        assert progress.estimated_remaining_trials == 30
        assert progress.overall_progress == 0.0

    def test_estimate_uses_observed_rate(self, single_step_config, clock):
        ctrl = StaircaseController(single_step_config, clock=clock)
        run(ctrl, [C, C, C, I, C, I])
        progress = ctrl.get_progress()
        assert progress.reversals_count == 1
        assert progress.estimated_remaining_trials == 30
        assert progress.reversal_progress == pytest.approx(1 / 6)
        assert progress.trial_progress == pytest.approx(6 / 50)

    def test_estimate_capped_by_max_trials(self, single_step_config, clock):
        ctrl = StaircaseController(single_step_config.replace(max_trials=10), clock=clock)
        run(ctrl, [C, C, C, I])
        assert ctrl.get_progress().estimated_remaining_trials == 6

    def test_progress_after_convergence(self, clock, hearing_responses):
        ctrl = create_staircase_controller("hearing", clock=clock)
        run(ctrl, hearing_responses)
        progress = ctrl.get_progress()
        assert progress.is_converged
        assert progress.estimated_remaining_trials == 0
        assert progress.overall_progress == 1.0


class TestLifecycle:
    def test_reset_restores_initial_state(self, single_step_config, clock):
        ctrl = StaircaseController(single_step_config, clock=clock)
        started = ctrl.start_time
        run(ctrl, [C, C, C, I])
        ctrl.reset()
        assert ctrl.get_current_level() == 40.0
        assert ctrl.total_trials == 0
        assert ctrl.total_reversals == 0
        assert ctrl.get_result() is None
        assert ctrl.start_time > started

    def test_reset_forgets_response_run(self, single_step_config, clock):
        ctrl = StaircaseController(single_step_config, clock=clock)
        ctrl.record_trial(C)
        ctrl.reset()
        ctrl.record_trial(C)
        assert ctrl.get_current_level() == 40.0

    def test_rejects_non_config(self):
        with pytest.raises(TypeError):
            StaircaseController({"initial_level": 40})

    def test_factory(self, clock):
        ctrl = create_staircase_controller("bst", clock=clock, max_trials=20)
        assert ctrl.get_current_level() == 20.0
        assert ctrl.config.max_trials == 20
