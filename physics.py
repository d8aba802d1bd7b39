"""
Marble Slides Physics Engine
Curve following, free fall, attach/detach policy, star collection
"""

import enum
import logging
import math
import threading
import weakref
import numpy as np
from collections import deque
from dataclasses import dataclass, field, fields
from typing import Any, Dict, List, Optional, Sequence

from analyzer import CurveAnalyzer, PathInfo
from curves import CurveModel
from vector import Vector2

logger = logging.getLogger(__name__)

# ──────────────────────────────────────────────
# Defaults (world units, seconds)
# ──────────────────────────────────────────────
GRAVITY: float = -9.8               # negative = downward
TIME_SCALE: float = 0.016           # seconds of simulated time per unit of dt
ROLLING_FRICTION: float = 0.02
AIR_DRAG: float = 0.01              # quadratic drag coefficient in free fall
SNAP_DISTANCE: float = 0.5          # max curve distance considered for attachment
SNAP_STRENGTH: float = 0.4          # lerp factor towards the closest point
DETACH_THRESHOLD: float = 0.3       # speed below which steep slopes release
MAX_SLOPE_ANGLE: float = math.pi / 3
BOUNCE_COEFFICIENT: float = 0.6
MIN_VELOCITY: float = 0.001
DERIVATIVE_STEP: float = 0.001
SEARCH_RESOLUTION: float = 0.05     # polar / parametric scan step

# Attachment policy
ATTACH_TANGENT_RATIO: float = 0.5   # |v·t| must beat this fraction of |v·n|
ATTACH_CONTACT_DISTANCE: float = 0.1
CENTRIPETAL_MARGIN: float = 2.0     # multiple of the normal force available

# Bound dynamics
FRICTION_DAMPING: float = 0.9
LOW_SPEED_FLIP: float = 0.1
PATH_CORRECTION_MIN: float = 0.01
PATH_CORRECTION_GAIN: float = 0.5

MARBLE_RADIUS: float = 0.2
MARBLE_VELOCITY = (0.1, 0.0)
MAX_TRAIL_LENGTH: int = 30
TARGET_RADIUS: float = 0.3

# (attr, label, min, max): accepted range of each parameter
PHYSICS_PARAMS = [
    ("gravity",            "Gravity",        -50.0,  50.0),
    ("time_scale",         "Time Scale",      1e-4,   1.0),
    ("rolling_friction",   "Roll Frict.",     0.0,    1.0),
    ("air_drag",           "Air Drag",        0.0,    1.0),
    ("snap_distance",      "Snap Dist.",      0.0,    5.0),
    ("snap_strength",      "Snap Strength",   0.0,    1.0),
    ("detach_threshold",   "Detach Speed",    0.0,   10.0),
    ("max_slope_angle",    "Max Slope",       0.0,    math.pi / 2),
    ("bounce_coefficient", "Bounce",          0.0,    1.0),
    ("min_velocity",       "Min Speed",       0.0,    1.0),
    ("derivative_step",    "Deriv. Step",     1e-6,   0.1),
    ("search_resolution",  "Scan Step",       1e-3,   0.5),
]


class MotionState(enum.Enum):
    FREE = 0
    BOUND = 1


@dataclass
class PhysicsConfig:
    """Tunable engine parameters. Values outside PHYSICS_PARAMS ranges are rejected."""
    gravity: float = GRAVITY
    time_scale: float = TIME_SCALE
    rolling_friction: float = ROLLING_FRICTION
    air_drag: float = AIR_DRAG
    snap_distance: float = SNAP_DISTANCE
    snap_strength: float = SNAP_STRENGTH
    detach_threshold: float = DETACH_THRESHOLD
    max_slope_angle: float = MAX_SLOPE_ANGLE
    bounce_coefficient: float = BOUNCE_COEFFICIENT
    min_velocity: float = MIN_VELOCITY
    derivative_step: float = DERIVATIVE_STEP
    search_resolution: float = SEARCH_RESOLUTION

    def __post_init__(self):
        for attr, label, lo, hi in PHYSICS_PARAMS:
            value = float(getattr(self, attr))
            if not (lo <= value <= hi):
                raise ValueError(f"{label} ({attr}) must be in [{lo}, {hi}], got {value}")
            setattr(self, attr, value)

    @classmethod
    def from_dict(cls, params: Dict[str, Any]) -> "PhysicsConfig":
        known = {f.name for f in fields(cls)}
        unknown = sorted(set(params) - known)
        if unknown:
            raise ValueError(f"Unknown physics parameter(s): {', '.join(unknown)}")
        return cls(**params)


def _as_vector(value) -> Vector2:
    if isinstance(value, Vector2):
        return value
    return Vector2.from_array(value)


@dataclass
class Marble:
    """Point mass that either follows a curve or falls freely."""
    name: str = "marble"
    position: Vector2 = field(default_factory=Vector2)
    velocity: Vector2 = field(default_factory=lambda: Vector2(*MARBLE_VELOCITY))
    radius: float = MARBLE_RADIUS
    max_trail_length: int = MAX_TRAIL_LENGTH
    on_path: bool = False
    trail: deque = field(init=False, repr=False)
    _bound_ref: Optional[weakref.ref] = field(default=None, init=False, repr=False)

    def __post_init__(self):
        self.position = _as_vector(self.position)
        self.velocity = _as_vector(self.velocity)
        if not self.radius > 0:
            raise ValueError(f"Marble radius must be positive, got {self.radius}")
        self.trail = deque(maxlen=self.max_trail_length)

    @property
    def state(self) -> MotionState:
        return MotionState.BOUND if self.on_path else MotionState.FREE

    @property
    def bound_curve(self) -> Optional[CurveModel]:
        """Curve the marble is following; never keeps the curve alive."""
        if self._bound_ref is None:
            return None
        return self._bound_ref()

    def bind(self, curve: CurveModel) -> None:
        self.on_path = True
        self._bound_ref = weakref.ref(curve)

    def release(self) -> None:
        self.on_path = False
        self._bound_ref = None

    @property
    def speed(self) -> float:
        return self.velocity.magnitude()

    @property
    def direction(self) -> float:
        """Heading of the velocity in radians."""
        return math.atan2(self.velocity.y, self.velocity.x)

    def apply_impulse(self, impulse) -> None:
        self.velocity = self.velocity + _as_vector(impulse)

    def update_trail(self) -> None:
        self.trail.append(self.position)

    def reset(self, x: float, y: float) -> None:
        self.position = Vector2(x, y)
        self.velocity = Vector2(*MARBLE_VELOCITY)
        self.release()
        self.trail.clear()


@dataclass
class Target:
    """Star marker. ``collected`` only ever goes False → True inside the engine."""
    position: Vector2 = field(default_factory=Vector2)
    radius: float = TARGET_RADIUS
    collected: bool = False
    name: str = ""
    _lock: threading.Lock = field(default_factory=threading.Lock, init=False,
                                  repr=False, compare=False)

    def __post_init__(self):
        self.position = _as_vector(self.position)

    def collect(self) -> bool:
        """Mark collected; True only for the call that made the change."""
        with self._lock:
            if self.collected:
                return False
            self.collected = True
            return True

    def reset(self) -> None:
        with self._lock:
            self.collected = False


@dataclass(frozen=True)
class WorldBounds:
    """Axis-aligned world rectangle (inclusive)."""
    min_x: float
    max_x: float
    min_y: float
    max_y: float

    @classmethod
    def from_plot_range(cls, x_min: float, x_max: float, y_min: float, y_max: float,
                        margin_x: float = 2.0, margin_bottom: float = 5.0,
                        margin_top: float = 2.0) -> "WorldBounds":
        """Visible plot range grown by a margin; extra room below for falling marbles."""
        return cls(x_min - margin_x, x_max + margin_x, y_min - margin_bottom, y_max + margin_top)

    def contains(self, point: Vector2) -> bool:
        return self.min_x <= point.x <= self.max_x and self.min_y <= point.y <= self.max_y


@dataclass
class StepResult:
    collected_targets: List[Target] = field(default_factory=list)
    attached: bool = False
    detached: bool = False
    in_bounds: bool = True
    events: List[dict] = field(default_factory=list)


class PhysicsEngine:
    """Marble physics: one marble, one step at a time."""

    def __init__(self, config: Optional[PhysicsConfig] = None,
                 bounds: Optional[WorldBounds] = None):
        self.config = config or PhysicsConfig()
        self.bounds = bounds
        self.analyzer = CurveAnalyzer(derivative_step=self.config.derivative_step,
                                      search_resolution=self.config.search_resolution)
        self.events: list = []

    # ──────────────────────────────────────────
    # Main update
    # ──────────────────────────────────────────
    def step(self, marble: Marble, dt: float, curves: Sequence[CurveModel],
             targets: Sequence[Target] = ()) -> StepResult:
        """Advance one marble by dt (in units of time_scale)."""
        self.events.clear()
        result = StepResult()

        if dt == 0:
            result.in_bounds = self._in_bounds(marble)
            return result

        cfg = self.config
        scaled_dt = dt * cfg.time_scale
        was_on_path = marble.on_path

        # 1-3. Nearest curve → bound or free dynamics
        info = self.analyzer.find_nearest_path(marble.position, curves)
        in_range = info is not None and info.distance < cfg.snap_distance
        if in_range and self.should_attach(marble, info):
            if not was_on_path:
                result.attached = True
                self._emit("attached", marble, curve=info.curve.original_text)
            marble.bind(info.curve)
            self._update_on_path(marble, info, scaled_dt)

            if self.should_detach(marble, info):
                marble.release()
                result.detached = True
                self._emit("detached", marble, curve=info.curve.original_text)
        else:
            # A refused attach within snap range releases silently
            if was_on_path and not in_range:
                result.detached = True
                self._emit("detached", marble, curve=None)
            marble.release()
            self._update_in_air(marble, scaled_dt)

        # 4. Integrate position
        marble.position = marble.position + marble.velocity * scaled_dt

        # 5. Stars
        for i, target in enumerate(targets):
            if not target.collected and self.is_colliding(marble, target) and target.collect():
                result.collected_targets.append(target)
                self._emit("collected", marble, target=i)

        # 6. Trail
        marble.update_trail()

        # 7. Keep the marble from stalling numerically
        speed = marble.speed
        if speed < cfg.min_velocity:
            if speed > 0:
                marble.velocity = marble.velocity.normalize() * (cfg.min_velocity * 2)
            else:
                down = -1.0 if cfg.gravity <= 0 else 1.0
                marble.velocity = Vector2(0.0, down * cfg.min_velocity * 2)

        result.in_bounds = self._in_bounds(marble)
        result.events = list(self.events)
        return result

    def _emit(self, kind: str, marble: Marble, **payload) -> None:
        event = {"type": kind, "marble": marble.name, **payload}
        self.events.append(event)
        logger.debug("%s: %s", kind, event)

    def _in_bounds(self, marble: Marble) -> bool:
        if self.bounds is None:
            return True
        return self.is_within_bounds(marble, self.bounds)

    # ──────────────────────────────────────────
    # Attachment policy
    # ──────────────────────────────────────────
    @staticmethod
    def should_attach(marble: Marble, info: PathInfo) -> bool:
        """Bind unless the curve is behind a marble moving away from it."""
        v = marble.velocity
        normal_speed = abs(v.dot(info.normal.normalize()))
        tangent_speed = abs(v.dot(info.tangent.normalize()))
        if tangent_speed > normal_speed * ATTACH_TANGENT_RATIO or \
                info.distance < ATTACH_CONTACT_DISTANCE:
            return True

        to_path = (info.closest_point - marble.position).normalize()
        return v.dot(to_path) > 0

    def should_detach(self, marble: Marble, info: PathInfo) -> bool:
        """Release on steep slopes at low speed, or when the curve turns too sharply."""
        cfg = self.config
        slope_angle = math.atan2(abs(info.tangent.y), abs(info.tangent.x))
        speed = marble.speed

        if slope_angle > cfg.max_slope_angle and speed < cfg.detach_threshold:
            return True

        if info.curvature != 0:
            centripetal_required = speed * speed * abs(info.curvature)
            normal_force = abs(cfg.gravity * math.cos(slope_angle))
            if centripetal_required > normal_force * CENTRIPETAL_MARGIN:
                return True

        return False

    # ──────────────────────────────────────────
    # Bound dynamics
    # ──────────────────────────────────────────
    def _update_on_path(self, marble: Marble, info: PathInfo, dt: float) -> None:
        cfg = self.config
        target = info.closest_point

        # Partial snap towards the curve smooths search noise without clamping
        marble.position = marble.position.lerp(target, cfg.snap_strength)

        tangent = info.tangent.normalize()
        normal = info.normal.normalize()

        tangent_speed = marble.velocity.dot(tangent)
        gravity = Vector2(0.0, cfg.gravity)
        tangent_speed += gravity.dot(tangent) * dt

        # Rolling friction must not reverse the direction of travel
        friction = -float(np.sign(tangent_speed)) * cfg.rolling_friction * abs(cfg.gravity)
        if abs(friction * dt) < abs(tangent_speed):
            tangent_speed += friction * dt
        else:
            tangent_speed *= FRICTION_DAMPING

        # At rest on a minimum: prefer travelling towards +x
        if tangent.x < 0 and abs(tangent_speed) < LOW_SPEED_FLIP:
            tangent = -tangent
            tangent_speed = abs(tangent_speed)

        marble.velocity = tangent * tangent_speed

        residual = marble.position.distance_to(target)
        if residual > PATH_CORRECTION_MIN:
            side = float(np.sign((target - marble.position).dot(normal)))
            marble.velocity = marble.velocity + normal * (side * residual * PATH_CORRECTION_GAIN)

    # ──────────────────────────────────────────
    # Free fall
    # ──────────────────────────────────────────
    def _update_in_air(self, marble: Marble, dt: float) -> None:
        cfg = self.config
        v = Vector2(marble.velocity.x, marble.velocity.y + cfg.gravity * dt)

        speed = v.magnitude()
        if speed > 0:
            drag = cfg.air_drag * speed * speed
            v = v + v.normalize() * (-drag * dt)
        marble.velocity = v

    # ──────────────────────────────────────────
    # Collision & bounds
    # ──────────────────────────────────────────
    @staticmethod
    def is_colliding(marble: Marble, target: Target) -> bool:
        radius_sum = marble.radius + target.radius
        return marble.position.distance_sq_to(target.position) < radius_sum * radius_sum

    @staticmethod
    def is_within_bounds(marble: Marble, bounds: WorldBounds) -> bool:
        return bounds.contains(marble.position)

    def apply_boundary_bounce(self, marble: Marble, bounds: WorldBounds) -> bool:
        """Clamp the marble inside bounds, reflecting the offending velocity component.

        Returns True if the marble touched a wall.
        """
        e = self.config.bounce_coefficient
        (px, py), (vx, vy) = marble.position, marble.velocity
        hit = False

        if px < bounds.min_x:
            px, vx, hit = bounds.min_x, abs(vx) * e, True
        elif px > bounds.max_x:
            px, vx, hit = bounds.max_x, -abs(vx) * e, True

        if py < bounds.min_y:
            py, vy, hit = bounds.min_y, abs(vy) * e, True
        elif py > bounds.max_y:
            py, vy, hit = bounds.max_y, -abs(vy) * e, True

        if hit:
            marble.position = Vector2(px, py)
            marble.velocity = Vector2(vx, vy)
        return hit

    def simulate(self, marble: Marble, curves: Sequence[CurveModel],
                 targets: Sequence[Target] = (), dt: float = 1.0,
                 max_steps: int = 2000) -> int:
        """
        Step until every target is collected, the marble leaves the bounds,
        or max_steps is reached.

        Returns:
            Number of steps taken.
        """
        steps = 0
        while steps < max_steps:
            result = self.step(marble, dt, curves, targets)
            steps += 1
            if targets and all(t.collected for t in targets):
                break
            if not result.in_bounds:
                break
        return steps
