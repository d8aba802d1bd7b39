"""
Controller Tests: round lifecycle, outcomes, events, observation vector.
"""

import sys
import os
import numpy as np
import pytest

sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

from controller import MarbleSlidesController
from curves import CurveModel
from physics import Target


# ── Helpers ──────────────────────────────────────────────────────────────────

def ramp_controller(**kw):
    ctrl = MarbleSlidesController(**kw)
    ctrl.add_curve(CurveModel.explicit_y(lambda x: -x, original_text="y = -x"))
    ctrl.set_targets([Target(position=(0.0, 0.0))])
    return ctrl


def pit_controller(**kw):
    """A single curve far below the world, so marbles simply fall out."""
    ctrl = MarbleSlidesController(**kw)
    ctrl.add_curve(CurveModel.constant_y(-20.0))
    return ctrl


def event_types(events):
    return [e["type"] for e in events]


# ── Curves ───────────────────────────────────────────────────────────────────

class TestCurves:

    def test_add_curve(self):
        ctrl = MarbleSlidesController()
        assert ctrl.add_curve(CurveModel.constant_y(1.0))
        assert len(ctrl.curves) == 1
        assert "update_curves" in event_types(ctrl.pending_events)
        assert "y = 1.0" in ctrl.status_msg

    def test_add_non_curve_rejected(self):
        with pytest.raises(TypeError):
            MarbleSlidesController().add_curve("y = x")

    def test_remove_curve(self):
        ctrl = MarbleSlidesController()
        first = CurveModel.constant_y(1.0)
        ctrl.add_curve(first)
        ctrl.add_curve(CurveModel.constant_y(2.0))
        assert ctrl.remove_curve(0) is first
        assert len(ctrl.curves) == 1
        assert ctrl.remove_curve(5) is None

    def test_curves_locked_while_running(self):
        ctrl = ramp_controller()
        ctrl.launch_marbles((-5.0, 6.0))
        assert not ctrl.add_curve(CurveModel.constant_y(0.0))
        assert ctrl.remove_curve(0) is None
        ctrl.clear_curves()
        assert len(ctrl.curves) == 1


# ── Launch ───────────────────────────────────────────────────────────────────

class TestLaunch:

    def test_launch_needs_a_curve(self):
        ctrl = MarbleSlidesController()
        assert not ctrl.launch_marbles()
        assert ctrl.mode == "idle"
        assert ctrl.marbles == []
        assert "equation" in ctrl.status_msg

    def test_one_marble_per_curve_capped(self):
        ctrl = MarbleSlidesController()
        for i in range(5):
            ctrl.add_curve(CurveModel.constant_y(float(-i)))
        assert ctrl.launch_marbles((1.0, 4.0))
        assert len(ctrl.marbles) == MarbleSlidesController.MAX_MARBLES
        for i, m in enumerate(ctrl.marbles):
            assert m.name == f"marble{i}"
            assert m.position.x == 1.0
            assert m.position.y == pytest.approx(4.0 - i * 0.5)
            assert tuple(m.velocity) == (0.5, 0.0)
        assert event_types(ctrl.pending_events).count("spawn_marble") == 3

    def test_cannot_relaunch_while_running(self):
        ctrl = ramp_controller()
        assert ctrl.launch_marbles()
        assert not ctrl.launch_marbles()

    def test_step_before_launch_is_noop(self):
        ctrl = ramp_controller()
        ctrl.step()
        assert ctrl.frames == 0 and ctrl.marbles == []


# ── Outcomes ─────────────────────────────────────────────────────────────────

class TestOutcomes:

    def test_ramp_round_succeeds(self):
        ctrl = ramp_controller()
        res = ctrl.simulate(start=(-5.0, 6.0))
        assert res["outcome"] == "success", f"round ended {res['outcome']} after {res['frames']} frames"
        assert res["stars_collected"] == 1
        assert ctrl.mode == "idle"
        assert {"type": "round_over", "outcome": "success"} in ctrl.pending_events

    def test_falling_out_fails_and_resets_stars(self):
        ctrl = pit_controller()
        on_path, far = Target(position=(0.0, -1.0)), Target(position=(8.0, 8.0))
        ctrl.set_targets([on_path, far])
        ctrl.launch_marbles((0.0, 0.0))

        collected_events = 0
        while ctrl.mode == "running" and ctrl.frames < 1000:
            ctrl.step()
            collected_events += event_types(ctrl.physics_events).count("collected")

        assert collected_events == 1, "marble should pass through the first star"
        assert ctrl.outcome == "failed"
        assert ctrl.stars_collected == 0
        assert not on_path.collected and not far.collected

    def test_no_stars_falls_out(self):
        res = pit_controller().simulate(start=(0.0, 0.0))
        assert res["outcome"] == "failed"
        assert res["frames"] < 1000

    def test_walls_keep_marble_in_play(self):
        ctrl = pit_controller(bounce_walls=True)
        ctrl.set_targets([Target(position=(8.0, 8.0))])
        res = ctrl.simulate(start=(0.0, 0.0), max_frames=300)
        assert res["outcome"] == "timeout"
        assert res["frames"] == 300
        assert ctrl.bounds.contains(ctrl.marbles[0].position)

    def test_simulate_without_curves(self):
        res = MarbleSlidesController().simulate()
        assert res["outcome"] is None and res["frames"] == 0

    def test_reset(self):
        ctrl = ramp_controller()
        ctrl.simulate(start=(-5.0, 6.0))
        ctrl.reset()
        assert ctrl.mode == "idle" and ctrl.outcome is None
        assert ctrl.marbles == [] and ctrl.trail_positions == {}
        assert ctrl.stars_collected == 0
        assert not any(t.collected for t in ctrl.targets)


# ── Observation / trails ─────────────────────────────────────────────────────

class TestObservation:

    def test_obs_shape(self):
        ctrl = MarbleSlidesController()
        ctrl.add_curve(CurveModel.constant_y(0.0))
        ctrl.add_curve(CurveModel.constant_y(-1.0))
        ctrl.launch_marbles((0.0, 2.0))
        obs = ctrl.get_obs()
        assert obs.shape == (8,)
        assert obs.dtype == np.float32
        np.testing.assert_allclose(obs, [0, 2, 0.5, 0, 0, 1.5, 0.5, 0])

    def test_trails_follow_marbles(self):
        ctrl = ramp_controller()
        ctrl.launch_marbles((-5.0, 6.0))
        for _ in range(40):
            ctrl.step()
        trail = ctrl.trail_positions["marble0"]
        assert len(trail) == 30
        m = ctrl.marbles[0]
        assert trail[-1] == (m.position.x, m.position.y)

    def test_deterministic(self):
        """Identical setups produce identical trajectories."""
        a, b = ramp_controller(), ramp_controller()
        a.simulate(start=(-6.0, 7.0), max_frames=60)
        b.simulate(start=(-6.0, 7.0), max_frames=60)
        np.testing.assert_array_equal(a.get_obs(), b.get_obs())
