"""
Level Presets
Ready-made curve / star / marble layouts that set up (and optionally run)
one marble through the physics engine. Used by the controller demos and as
end-to-end regression scenarios.
"""

import logging
import math

from curves import CurveModel
from physics import Marble, PhysicsEngine, Target, WorldBounds

logger = logging.getLogger(__name__)

# Visible plot range of a level
X_MIN, X_MAX = -10.0, 10.0
Y_MIN, Y_MAX = -10.0, 10.0

MAX_STEPS = 2000
LAUNCH_VELOCITY = (0.5, 0.0)


def _make_engine() -> PhysicsEngine:
    return PhysicsEngine(bounds=WorldBounds.from_plot_range(X_MIN, X_MAX, Y_MIN, Y_MAX))


def _run(engine: PhysicsEngine, marble: Marble, curves, targets,
         max_steps: int = MAX_STEPS) -> dict:
    """Step until all stars are collected or the marble leaves the world.

    Besides the step count, records when the marble first came within snap
    distance of a curve, when it first attached, and how close it got to the
    first star.
    """
    snap = engine.config.snap_distance
    first_in_range = None
    first_attach = None
    min_target_distance = math.inf
    steps = 0

    while steps < max_steps:
        info = engine.analyzer.find_nearest_path(marble.position, curves)
        if first_in_range is None and info is not None and info.distance < snap:
            first_in_range = steps

        result = engine.step(marble, 1.0, curves, targets)
        steps += 1

        if result.attached and first_attach is None:
            first_attach = steps - 1
        if targets:
            d = marble.position.distance_to(targets[0].position)
            min_target_distance = min(min_target_distance, d)
            if all(t.collected for t in targets):
                break
        if not result.in_bounds:
            break

    logger.debug("Preset finished after %d steps (attach at %s)", steps, first_attach)
    return {
        "steps": steps,
        "first_in_range": first_in_range,
        "first_attach": first_attach,
        "min_target_distance": min_target_distance,
    }


def _result(marble, curves, targets, engine, run_info=None) -> dict:
    out = {"marble": marble, "curves": curves, "targets": targets, "engine": engine,
           "steps": 0, "first_in_range": None, "first_attach": None,
           "min_target_distance": math.inf}
    if run_info:
        out.update(run_info)
    return out


class LevelPreset:
    """Each preset builds curves + stars + marble → (optionally) runs → result dict."""

    @staticmethod
    def scenario_1_ramp(run=True) -> dict:
        """Downhill ramp y = -x: the marble lands, slides right and takes the star at the origin."""
        engine = _make_engine()
        curves = [CurveModel.explicit_y(lambda x: -x, original_text="y = -x")]
        targets = [Target(position=(0.0, 0.0), radius=0.3)]
        marble = Marble("ramp", position=(-5.0, 6.0), velocity=LAUNCH_VELOCITY)

        info = _run(engine, marble, curves, targets) if run else None
        return _result(marble, curves, targets, engine, info)

    @staticmethod
    def scenario_2_line(run=True) -> dict:
        """Rising line y = x with a star at the origin; gravity carries the marble down-left."""
        engine = _make_engine()
        curves = [CurveModel.explicit_y(lambda x: x, original_text="y = x")]
        targets = [Target(position=(0.0, 0.0), radius=0.3)]
        marble = Marble("line", position=(-5.0, 5.0), velocity=LAUNCH_VELOCITY)

        info = _run(engine, marble, curves, targets) if run else None
        return _result(marble, curves, targets, engine, info)

    @staticmethod
    def scenario_3_valley(run=True) -> dict:
        """Parabolic valley y = x²/4 with a star near the bottom."""
        engine = _make_engine()
        curves = [CurveModel.explicit_y(lambda x: 0.25 * x * x, original_text="y = x^2/4")]
        targets = [Target(position=(0.0, 0.2), radius=0.3)]
        marble = Marble("valley", position=(-4.0, 6.0), velocity=LAUNCH_VELOCITY)

        info = _run(engine, marble, curves, targets) if run else None
        return _result(marble, curves, targets, engine, info)

    @staticmethod
    def scenario_4_bowl(run=True) -> dict:
        """Inside of the circle x² + y² = 16, with a shaded region that must be ignored."""
        engine = _make_engine()
        curves = [
            CurveModel.implicit(lambda x, y: x * x + y * y - 16, original_text="x^2 + y^2 = 16"),
            CurveModel.inequality(lambda x, y: y + 6, "<", original_text="y < -6"),
        ]
        targets = [Target(position=(0.0, -3.8), radius=0.3)]
        marble = Marble("bowl", position=(-3.0, 0.0), velocity=LAUNCH_VELOCITY)

        info = _run(engine, marble, curves, targets) if run else None
        return _result(marble, curves, targets, engine, info)

    @staticmethod
    def scenario_5_rose(run=True) -> dict:
        """Polar curve r = 3 + sin(3θ)."""
        engine = _make_engine()
        curves = [CurveModel.polar(lambda t: 3 + math.sin(3 * t), original_text="r = 3 + sin(3θ)")]
        targets = [Target(position=(2.5, 0.0), radius=0.3)]
        marble = Marble("rose", position=(0.0, 6.0), velocity=LAUNCH_VELOCITY)

        info = _run(engine, marble, curves, targets) if run else None
        return _result(marble, curves, targets, engine, info)

    @staticmethod
    def scenario_6_ellipse(run=True) -> dict:
        """Parametric ellipse x = 4cos t, y = 2sin t."""
        engine = _make_engine()
        curves = [CurveModel.parametric(lambda t: 4 * math.cos(t), lambda t: 2 * math.sin(t),
                                        original_text="(4cos t, 2sin t)")]
        targets = [Target(position=(3.5, 1.2), radius=0.3)]
        marble = Marble("ellipse", position=(-1.0, 5.0), velocity=LAUNCH_VELOCITY)

        info = _run(engine, marble, curves, targets) if run else None
        return _result(marble, curves, targets, engine, info)

    @staticmethod
    def scenario_7_wall(run=True) -> dict:
        """Piecewise ramp y = -x/2 {x < 6} ending against the wall x = 6."""
        engine = _make_engine()
        curves = [
            CurveModel.piecewise(lambda x: -0.5 * x, [("<", 6.0)], original_text="y = -x/2 {x < 6}"),
            CurveModel.constant_x(6.0),
        ]
        targets = [Target(position=(2.0, -1.0), radius=0.3)]
        marble = Marble("wall", position=(-4.0, 4.0), velocity=LAUNCH_VELOCITY)

        info = _run(engine, marble, curves, targets) if run else None
        return _result(marble, curves, targets, engine, info)


SCENARIOS = {
    "1": (LevelPreset.scenario_1_ramp,    "1: Ramp"),
    "2": (LevelPreset.scenario_2_line,    "2: Line"),
    "3": (LevelPreset.scenario_3_valley,  "3: Valley"),
    "4": (LevelPreset.scenario_4_bowl,    "4: Bowl"),
    "5": (LevelPreset.scenario_5_rose,    "5: Rose"),
    "6": (LevelPreset.scenario_6_ellipse, "6: Ellipse"),
    "7": (LevelPreset.scenario_7_wall,    "7: Wall"),
}
