"""Tests for the history log and the gradient descent step controller."""

import math

import pytest

from labs.CobberSlopeConfig import DEFAULT_POINTS, RESET_POINTS, Hyperparameters
from labs.CobberSlopeEngine import DataPoint, calculate_gradient_details, calculate_mse
from labs.CobberSlopeRun import HistoryLog, RunPhase, StepController, StepRecord


class TestHistoryLog:
    def test_append_in_order(self):
        log = HistoryLog()
        log.append(StepRecord(0, 0.0, 4.0, -4.0))
        log.append(StepRecord(1, 0.4, 2.56, -3.2))
        assert len(log) == 2
        assert log.last.step == 1
        assert [r.step for r in log] == [0, 1]
        assert list(log.steps()) == [0, 1]
        assert list(log.errors()) == [4.0, 2.56]

    def test_rejects_out_of_order_step(self):
        log = HistoryLog()
        with pytest.raises(ValueError):
            log.append(StepRecord(1, 0.0, 0.0, 0.0))

    def test_clear(self):
        log = HistoryLog()
        log.append(StepRecord(0, 0.0, 0.0, 0.0))
        log.clear()
        assert len(log) == 0
        assert log.last is None

    def test_records_is_a_snapshot(self):
        log = HistoryLog()
        snapshot = log.records
        log.append(StepRecord(0, 0.0, 0.0, 0.0))
        assert snapshot == ()


class TestStep:
    def test_first_step_records_initial_slope(self, controller_factory):
        c = controller_factory(points=[(1, 2)], initial_slope=0.0, learning_rate=0.1)
        record = c.step()
        assert record == StepRecord(step=0, a=0.0, mse=4.0, gradient=-4.0)
        assert c.current_step == 0
        assert c.phase == RunPhase.STEPPING

    def test_current_slope_runs_one_step_ahead(self, controller_factory):
        c = controller_factory(points=[(1, 2)], initial_slope=0.0, learning_rate=0.1)
        c.step()
        # 0 - 0.1 * (-4) = 0.4, not yet in the history
        assert c.current_slope == pytest.approx(0.4)
        assert c.history.last.a == 0.0
        second = c.step()
        assert second.step == 1
        assert second.a == pytest.approx(0.4)
        assert second.mse == pytest.approx(2.56)
        assert second.gradient == pytest.approx(-3.2)
        assert c.current_slope == pytest.approx(0.72)

    def test_step_detail(self, controller_factory):
        c = controller_factory(points=[(1, 2), (2, 3)], initial_slope=0.5, learning_rate=0.05)
        assert c.detail is None
        c.step()
        detail = c.detail
        assert detail.start_slope == 0.5
        assert len(detail.point_gradients) == 2
        assert detail.final_gradient == pytest.approx(calculate_gradient_details(0.5, [(1, 2), (2, 3)]).final_gradient)
        assert detail.next_slope == pytest.approx(c.current_slope)
        assert detail.update == pytest.approx(0.05 * detail.final_gradient)

    def test_records_are_rounded(self, controller_factory):
        c = controller_factory(points=RESET_POINTS, initial_slope=1 / 3, learning_rate=0.001)
        record = c.step()
        assert record.a == 0.3333
        assert record.mse == round(calculate_mse(1 / 3, RESET_POINTS), 4)

    def test_first_step_ignores_manual_override(self, controller_factory):
        c = controller_factory(initial_slope=0.25)
        c.set_slope(3.0)
        record = c.step()
        assert record.a == 0.25

    def test_bounded_run(self, controller_factory):
        c = controller_factory(points=RESET_POINTS, learning_rate=0.001)
        for _ in range(31):
            assert c.step() is not None
        assert len(c.history) == 31
        assert [r.step for r in c.history] == list(range(31))
        assert c.phase == RunPhase.TERMINAL
        assert c.is_terminal
        assert c.step() is None
        assert len(c.history) == 31
        assert c.current_step == 30

    def test_terminal_step_leaves_state_alone(self, controller_factory):
        c = controller_factory(max_iterations=2)
        for _ in range(3):
            c.step()
        slope = c.current_slope
        assert c.step() is None
        assert c.current_slope == slope

    def test_converges_on_learnable_data(self, controller_factory, line_points):
        c = controller_factory(points=line_points, initial_slope=0.0, learning_rate=0.001)
        while c.step() is not None:
            pass
        assert c.history[30].mse < c.history[0].mse
        assert all(b.mse <= a.mse for a, b in zip(c.history, list(c.history)[1:]))

    def test_records_reproduce_from_their_slope(self, controller_factory, line_points):
        c = controller_factory(points=line_points, initial_slope=0.0, learning_rate=0.001)
        for _ in range(31):
            c.step()
        mean_x2 = sum(x * x for x, _ in line_points) / len(line_points)
        half_unit = 0.5 * 10 ** -4
        for record in c.history:
            # The recorded slope is itself rounded, so allow for its first-order effect.
            mse_tol = 2 * half_unit + (abs(record.gradient) + half_unit) * half_unit + mean_x2 * half_unit ** 2
            grad_tol = 2 * half_unit + 2 * mean_x2 * half_unit
            assert round(calculate_mse(record.a, line_points), 4) == pytest.approx(record.mse, abs=mse_tol)
            details = calculate_gradient_details(record.a, line_points)
            assert round(details.final_gradient, 4) == pytest.approx(record.gradient, abs=grad_tol)

    def test_records_match_engine_exactly(self, controller_factory):
        # Slopes 0.5 and 2.0 are exact in binary, so no rounding slack is needed
        points = [(1, 2)]
        c = controller_factory(points=points, initial_slope=0.5, learning_rate=0.5)
        for _ in range(31):
            c.step()
        assert c.history[0] == StepRecord(step=0, a=0.5, mse=2.25, gradient=-3.0)
        assert [r.a for r in c.history] == [0.5] + [2.0] * 30
        for record in c.history:
            assert record.mse == round(calculate_mse(record.a, points), 4)
            assert record.gradient == round(calculate_gradient_details(record.a, points).final_gradient, 4)

    def test_first_record_matches_engine_on_integer_data(self, controller_factory):
        c = controller_factory(points=RESET_POINTS, initial_slope=0.5, learning_rate=0.001)
        record = c.step()
        assert record.a == 0.5
        assert record.mse == round(calculate_mse(0.5, RESET_POINTS), 4)
        assert record.gradient == round(calculate_gradient_details(0.5, RESET_POINTS).final_gradient, 4)

    def test_divergent_run_completes(self, controller_factory):
        c = controller_factory(points=DEFAULT_POINTS, initial_slope=0.0, learning_rate=100)
        for _ in range(31):
            assert c.step() is not None
        assert c.is_terminal
        assert math.isinf(c.history.last.mse)
        assert c.step() is None
        assert len(c.history) == 31


class TestResetAndEdits:
    def test_reset_clears_everything(self, controller_factory):
        c = controller_factory(initial_slope=0.5)
        for _ in range(5):
            c.step()
        c.reset()
        assert len(c.history) == 0
        assert c.current_slope == 0.5
        assert c.current_step == 0
        assert not c.is_running
        assert c.detail is None
        assert c.phase == RunPhase.IDLE

    def test_reset_from_terminal(self, controller_factory):
        c = controller_factory(max_iterations=1)
        c.step(); c.step()
        assert c.phase == RunPhase.TERMINAL
        c.reset()
        assert c.phase == RunPhase.IDLE
        assert c.step().step == 0

    def test_manual_override_leaves_history_alone(self, controller_factory):
        c = controller_factory()
        c.step(); c.step()
        c.set_slope(2.75)
        assert len(c.history) == 2
        assert c.current_step == 1
        assert c.current_slope == 2.75
        assert c.step().a == 2.75

    def test_manual_override_coerces(self, controller_factory):
        c = controller_factory()
        c.set_slope("not a number")
        assert c.current_slope == 0.0

    def test_edit_point_resets_run(self, controller_factory):
        c = controller_factory(points=[(1, 2), (2, 4)])
        c.step()
        c.edit_point(1, "y", "5")
        assert c.data[1] == DataPoint(2.0, 5.0)
        assert len(c.history) == 0

    def test_edit_point_coerces_garbage(self, controller_factory):
        c = controller_factory(points=[(1, 2)])
        c.edit_point(0, "x", "one")
        assert c.data[0] == DataPoint(0.0, 2.0)

    def test_replace_data(self, controller_factory):
        c = controller_factory()
        c.step()
        c.replace_data([(3, 3)])
        assert c.data.as_tuples() == [(3.0, 3.0)]
        assert len(c.history) == 0

    def test_replace_data_rejects_empty(self, controller_factory):
        c = controller_factory(points=[(1, 2)])
        c.step()
        with pytest.raises(ValueError):
            c.replace_data([])
        assert len(c.data) == 1
        assert len(c.history) == 1

    def test_set_hyperparameters_resets(self, controller_factory):
        c = controller_factory(initial_slope=0.0, learning_rate=0.1)
        c.step()
        c.set_hyperparameters(initial_slope="1.25", learning_rate="0.02")
        assert c.hyperparameters.initial_slope == 1.25
        assert c.hyperparameters.learning_rate == 0.02
        assert len(c.history) == 0
        assert c.current_slope == 1.25

    def test_set_hyperparameters_coerces_garbage(self, controller_factory):
        c = controller_factory(initial_slope=1.0)
        c.set_hyperparameters(initial_slope="??")
        assert c.hyperparameters.initial_slope == 0.0
        assert c.hyperparameters.learning_rate == 0.1

    def test_reset_to_defaults(self, controller_factory):
        c = controller_factory(points=[(5, 5)], initial_slope=2.0)
        c.step()
        c.reset_to_defaults()
        assert c.data.as_tuples() == [(float(x), float(y)) for x, y in RESET_POINTS]
        assert c.hyperparameters.initial_slope == 0.0
        assert c.current_slope == 0.0
        assert len(c.history) == 0

    def test_hyperparameters_are_not_shared(self):
        shared = Hyperparameters(initial_slope=0.5, learning_rate=0.1)
        first = StepController(data=[(1, 2)], hyperparameters=shared)
        second = StepController(data=[(1, 2)], hyperparameters=shared)
        first.set_hyperparameters(initial_slope="3.0")
        first.reset_to_defaults()
        assert second.hyperparameters.initial_slope == 0.5
        assert shared == Hyperparameters(initial_slope=0.5, learning_rate=0.1)
        assert second.step().a == 0.5

    def test_default_controller_uses_classroom_data(self):
        c = StepController()
        assert len(c.data) == 10
        assert c.data[0] == DataPoint(20.0, 45.0)


class TestViews:
    def test_current_metrics_follow_slope(self, controller_factory):
        c = controller_factory(points=[(1, 2)])
        c.set_slope(1.0)
        assert c.current_mse == 1.0
        assert c.current_gradient == -2.0

    def test_huge_manual_slope_overflows_to_infinity(self, controller_factory):
        c = controller_factory(points=[(1, 2)])
        c.set_slope(1e160)
        assert math.isinf(c.current_mse)
        assert c.current_gradient == pytest.approx(2e160)

    def test_curve_and_line(self, controller_factory):
        c = controller_factory(points=[(1, 2), (3, 6)])
        c.set_slope(2.0)
        slopes, errors = c.mse_curve()
        assert len(slopes) == len(errors)
        assert c.model_line() == ((0.0, 0.0), (4.0, 8.0))
        assert c.residual_segments()[1] == ((3.0, 6.0), (3.0, 6.0))

    def test_subscribers_are_notified(self, controller_factory):
        c = controller_factory()
        seen = []
        c.subscribe(lambda ctl: seen.append(ctl.current_step))
        c.step()
        c.set_slope(1.0)
        c.reset()
        assert len(seen) == 3

    def test_unsubscribe(self, controller_factory):
        c = controller_factory()
        seen = []
        callback = seen.append
        c.subscribe(callback)
        c.unsubscribe(callback)
        c.step()
        assert seen == []


class TestRun:
    def test_run_schedules_with_default_interval(self, controller_factory, fake_scheduler):
        c = controller_factory(scheduler=fake_scheduler)
        assert c.run() is True
        assert c.is_running
        assert fake_scheduler.interval == 500
        assert fake_scheduler.events == ["cancel", "schedule"]

    def test_run_custom_interval(self, controller_factory, fake_scheduler):
        c = controller_factory(scheduler=fake_scheduler)
        c.run(interval_ms=20)
        assert fake_scheduler.interval == 20

    def test_restart_cancels_pending_task_first(self, controller_factory, fake_scheduler):
        c = controller_factory(scheduler=fake_scheduler)
        c.run()
        c.run()
        assert fake_scheduler.events == ["cancel", "schedule", "cancel", "schedule"]

    def test_ticks_step_the_run(self, controller_factory, fake_scheduler):
        c = controller_factory(scheduler=fake_scheduler)
        c.run()
        fake_scheduler.fire()
        fake_scheduler.fire()
        assert [r.step for r in c.history] == [0, 1]

    def test_run_from_idle_restores_initial_slope(self, controller_factory, fake_scheduler):
        c = controller_factory(initial_slope=0.5, scheduler=fake_scheduler)
        c.set_slope(3.0)
        c.run()
        assert c.current_slope == 0.5

    def test_run_stops_itself_at_terminal(self, controller_factory, fake_scheduler):
        c = controller_factory(max_iterations=3, scheduler=fake_scheduler)
        c.run()
        for _ in range(4):
            fake_scheduler.fire()
        assert len(c.history) == 4
        assert not c.is_running
        assert not fake_scheduler.is_active

    def test_run_at_terminal_does_nothing(self, controller_factory, fake_scheduler):
        c = controller_factory(max_iterations=0, scheduler=fake_scheduler)
        c.step()
        assert c.run() is False
        assert not c.is_running
        assert "schedule" not in fake_scheduler.events

    def test_stale_tick_after_stop_commits_nothing(self, controller_factory, fake_scheduler):
        c = controller_factory(scheduler=fake_scheduler)
        c.run()
        stale_tick = fake_scheduler.callback
        fake_scheduler.fire()
        c.stop()
        assert stale_tick() is None
        assert len(c.history) == 1

    def test_toggle_run(self, controller_factory, fake_scheduler):
        c = controller_factory(scheduler=fake_scheduler)
        assert c.toggle_run() is True
        assert c.toggle_run() is False
        assert not fake_scheduler.is_active

    @pytest.mark.parametrize("interrupt", [
        lambda c: c.set_slope(1.0),
        lambda c: c.reset(),
        lambda c: c.set_hyperparameters(learning_rate=0.2),
        lambda c: c.edit_point(0, "x", 3),
        lambda c: c.reset_to_defaults(),
    ])
    def test_edits_stop_a_running_timer(self, controller_factory, fake_scheduler, interrupt):
        c = controller_factory(scheduler=fake_scheduler)
        c.run()
        fake_scheduler.fire()
        interrupt(c)
        assert not c.is_running
        assert not fake_scheduler.is_active

    def test_run_without_scheduler_needs_manual_ticks(self, controller_factory):
        c = controller_factory()
        c.run()
        assert c.is_running
        assert len(c.history) == 0
        c.tick()
        assert len(c.history) == 1
