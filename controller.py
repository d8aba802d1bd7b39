"""
MarbleSlidesController: Layer 2 (Game Logic)

Owns the curves, stars and marbles of one level and runs rounds through the
physics engine. A renderer / UI layer talks to it through two queues:
  - pending_events  : rendering commands (spawn_marble, clear_marbles, round_over, …)
  - physics_events  : per-step engine events (attached, detached, collected)

Caller loop:
  ctrl.step(dt_frame)         - advance every marble one frame
  ctrl.pending_events         - list of dicts to consume and act on
  ctrl.trail_positions        - {marble name: [(x, y), ...]} for drawing
  ctrl.<state properties>     - mode, outcome, stars_collected, status_msg
"""

import logging
from typing import List, Optional, Sequence, Tuple

import numpy as np

from curves import CurveModel
from physics import Marble, PhysicsConfig, PhysicsEngine, Target, WorldBounds
from vector import Vector2

logger = logging.getLogger(__name__)

DEFAULT_INFO_MSG = "Add equations, then launch the marbles."


class MarbleSlidesController:
    """Layer 2: round state machine + physics orchestration."""

    # ── Class-level constants ─────────────────────────────────────────────────
    MAX_MARBLES      = 3
    LAUNCH_SPACING   = 0.5
    LAUNCH_VELOCITY  = (0.5, 0.0)
    DEFAULT_START    = (-8.0, 8.0)
    TRAIL_MAX_POINTS = 30
    MAX_FRAMES       = 5000

    PLOT_RANGE = (-10.0, 10.0, -10.0, 10.0)    # x_min, x_max, y_min, y_max

    # ── Constructor ───────────────────────────────────────────────────────────

    def __init__(self, config: Optional[PhysicsConfig] = None, bounce_walls: bool = False):
        self.bounds = WorldBounds.from_plot_range(*self.PLOT_RANGE)
        self.engine = PhysicsEngine(config, bounds=self.bounds)
        self.bounce_walls = bounce_walls

        self.curves: List[CurveModel] = []
        self.targets: List[Target] = []
        self.marbles: List[Marble] = []

        self.mode = "idle"              # "idle" | "running"
        self.outcome: Optional[str] = None   # None | "success" | "failed"
        self.frames = 0
        self.stars_collected = 0

        self.trail_positions: dict[str, list] = {}

        self.status_msg = ""
        self.info_msg   = DEFAULT_INFO_MSG

        self.pending_events: list[dict] = []
        self.physics_events: list[dict] = []

    # ──────────────────────────────────────────────────────────────────────────
    # Curves / stars
    # ──────────────────────────────────────────────────────────────────────────

    def add_curve(self, curve: CurveModel) -> bool:
        if self.mode == "running":
            logger.warning("Cannot add a curve while marbles are running")
            return False
        if not isinstance(curve, CurveModel):
            raise TypeError(f"Expected CurveModel, got {type(curve).__name__}")
        self.curves.append(curve)
        self.pending_events.append({"type": "update_curves"})
        self.status_msg = f"Equation added: {curve.original_text or curve.kind.value}"
        return True

    def remove_curve(self, index: int) -> Optional[CurveModel]:
        if self.mode == "running" or not 0 <= index < len(self.curves):
            return None
        removed = self.curves.pop(index)
        self.pending_events.append({"type": "update_curves"})
        self.status_msg = f"Equation removed: {removed.original_text or removed.kind.value}"
        return removed

    def clear_curves(self) -> None:
        if self.mode == "running":
            return
        self.curves.clear()
        self.pending_events.append({"type": "update_curves"})

    def set_targets(self, targets: Sequence[Target]) -> None:
        self.targets = list(targets)
        self.stars_collected = sum(1 for t in self.targets if t.collected)
        self.pending_events.append({"type": "update_stars"})

    # ──────────────────────────────────────────────────────────────────────────
    # Round control
    # ──────────────────────────────────────────────────────────────────────────

    def launch_marbles(self, start: Optional[Tuple[float, float]] = None) -> bool:
        """Spawn one marble per curve (up to MAX_MARBLES) and start the round."""
        if self.mode == "running":
            return False
        if not self.curves:
            self.status_msg = "Add at least one equation before launching marbles."
            logger.warning(self.status_msg)
            return False

        x, y = start if start is not None else self.DEFAULT_START
        self._clear_marbles()
        for t in self.targets:
            t.reset()
        self.stars_collected = 0

        for i in range(min(len(self.curves), self.MAX_MARBLES)):
            m = Marble(f"marble{i}", position=Vector2(x, y - i * self.LAUNCH_SPACING),
                       velocity=self.LAUNCH_VELOCITY, max_trail_length=self.TRAIL_MAX_POINTS)
            self.marbles.append(m)
            self.trail_positions[m.name] = []
            self.pending_events.append({"type": "spawn_marble", "marble": m})

        self.mode = "running"
        self.outcome = None
        self.frames = 0
        self.status_msg = f"Marbles launched from ({x}, {y})!"
        logger.info("Launched %d marble(s) from (%.2f, %.2f) over %d curve(s)",
                    len(self.marbles), x, y, len(self.curves))
        return True

    def step(self, dt_frame: float = 1.0) -> None:
        """Advance every marble one frame. Called by the driver loop."""
        if self.mode != "running":
            return

        self.physics_events.clear()
        any_in_bounds = False

        for m in self.marbles:
            result = self.engine.step(m, dt_frame, self.curves, self.targets)
            if self.bounce_walls and self.engine.apply_boundary_bounce(m, self.bounds):
                self.physics_events.append({"type": "wall", "marble": m.name})
            self.physics_events.extend(result.events)
            self.stars_collected += len(result.collected_targets)
            self.trail_positions[m.name] = [(p.x, p.y) for p in m.trail]
            if self.engine.is_within_bounds(m, self.bounds):
                any_in_bounds = True

        self.frames += 1

        if self.targets and self.stars_collected == len(self.targets):
            self._finish("success", "Success! All stars collected!")
        elif not any_in_bounds:
            for t in self.targets:
                t.reset()
            self.stars_collected = 0
            self._finish("failed", "Try again! Adjust your equations to collect all stars.")

    def _finish(self, outcome: str, message: str) -> None:
        self.mode = "idle"
        self.outcome = outcome
        self.status_msg = message
        self.pending_events.append({"type": "round_over", "outcome": outcome})
        logger.info("Round over after %d frame(s): %s", self.frames, outcome)

    def _clear_marbles(self) -> None:
        self.marbles.clear()
        self.trail_positions.clear()
        self.pending_events.append({"type": "clear_marbles"})

    def reset(self) -> None:
        """Stop the round, drop marbles and put every star back."""
        self._clear_marbles()
        for t in self.targets:
            t.reset()
        self.stars_collected = 0
        self.mode = "idle"
        self.outcome = None
        self.frames = 0
        self.status_msg = "Game reset. Ready to launch!"

    # ──────────────────────────────────────────────────────────────────────────
    # Headless API
    # ──────────────────────────────────────────────────────────────────────────

    def simulate(self, start: Optional[Tuple[float, float]] = None,
                 max_frames: Optional[int] = None) -> dict:
        """Launch and run a full round without a renderer.

        Returns:
            dict with ``outcome`` (``"success"``, ``"failed"`` or ``"timeout"``),
            ``frames``, ``stars_collected`` and final marble states.
        """
        limit = max_frames or self.MAX_FRAMES
        if not self.launch_marbles(start):
            return {"outcome": None, "frames": 0, "stars_collected": 0, "marbles": {}}

        while self.mode == "running" and self.frames < limit:
            self.step()

        if self.mode == "running":
            self.mode = "idle"
            self.outcome = "timeout"

        return {
            "outcome":         self.outcome,
            "frames":          self.frames,
            "stars_collected": self.stars_collected,
            "marbles": {
                m.name: {
                    "pos":     [round(m.position.x, 6), round(m.position.y, 6)],
                    "vel":     [round(m.velocity.x, 6), round(m.velocity.y, 6)],
                    "on_path": m.on_path,
                }
                for m in self.marbles
            },
        }

    def get_obs(self) -> np.ndarray:
        """Flat float32 vector of [x, y, vx, vy] per marble, in launch order."""
        values = []
        for m in self.marbles:
            values.extend([m.position.x, m.position.y, m.velocity.x, m.velocity.y])
        return np.array(values, dtype=np.float32)
