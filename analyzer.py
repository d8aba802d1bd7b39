"""
Curve geometry for the marble physics core.

For a point and a CurveModel, finds the closest point on the curve and the
local tangent, normal and curvature there. Every curve family gets its own
numerical search; all of them are iteration-capped so a step always returns
in bounded time, and none of them lets an undefined evaluation escape.
"""

import logging
import math
import numpy as np
from dataclasses import dataclass
from typing import Callable, Iterable, Optional

from curves import CurveKind, CurveModel, safe_evaluate
from vector import Vector2

logger = logging.getLogger(__name__)

# ──────────────────────────────────────────────
# Search constants
# ──────────────────────────────────────────────
GOLDEN_RATIO: float = (1 + math.sqrt(5)) / 2
SEARCH_HALF_WIDTH: float = 3.0      # explicit search window around the marble
GOLDEN_TOLERANCE: float = 1e-3
GOLDEN_MAX_ITER: int = 50

IMPLICIT_MAX_ITER: int = 20
IMPLICIT_TOLERANCE: float = 0.01    # |f| below this counts as on the curve
IMPLICIT_MIN_GRADIENT: float = 1e-3
IMPLICIT_DAMPING: float = 0.1

SCAN_TANGENT_STEP: float = 0.01     # polar / parametric symmetric difference

DEFAULT_DERIVATIVE_STEP: float = 1e-3
DEFAULT_SEARCH_RESOLUTION: float = 0.05

FALLBACK_TANGENT = Vector2(1.0, 0.0)
FALLBACK_NORMAL = Vector2(0.0, 1.0)


@dataclass
class PathInfo:
    """Geometry of the closest point of one curve. Built fresh every step."""
    curve: CurveModel
    closest_point: Vector2
    distance: float
    tangent: Vector2
    normal: Vector2
    curvature: float

    def is_finite(self) -> bool:
        return (self.closest_point.is_finite() and self.tangent.is_finite()
                and self.normal.is_finite()
                and math.isfinite(self.distance) and math.isfinite(self.curvature))


# ──────────────────────────────────────────────
# Numerical methods
# ──────────────────────────────────────────────
def golden_section_search(objective: Callable[[float], float], lo: float, hi: float,
                          tol: float = GOLDEN_TOLERANCE,
                          max_iter: int = GOLDEN_MAX_ITER) -> float:
    """Minimise a unimodal objective on [lo, hi]; returns the final midpoint."""
    a, b = lo, hi
    c = b - (b - a) / GOLDEN_RATIO
    d = a + (b - a) / GOLDEN_RATIO
    iterations = 0
    while abs(b - a) > tol and iterations < max_iter:
        if objective(c) < objective(d):
            b = d
        else:
            a = c
        c = b - (b - a) / GOLDEN_RATIO
        d = a + (b - a) / GOLDEN_RATIO
        iterations += 1
    return (a + b) / 2


def central_difference(fn: Callable[[float], float], u: float, h: float) -> float:
    """First derivative; 0 where either sample is undefined."""
    f1 = safe_evaluate(fn, u - h)
    f2 = safe_evaluate(fn, u + h)
    if math.isnan(f1) or math.isnan(f2):
        return 0.0
    return (f2 - f1) / (2 * h)


def second_difference(fn: Callable[[float], float], u: float, h: float) -> float:
    """Second derivative; 0 where any sample is undefined."""
    f0 = safe_evaluate(fn, u - h)
    f1 = safe_evaluate(fn, u)
    f2 = safe_evaluate(fn, u + h)
    if math.isnan(f0) or math.isnan(f1) or math.isnan(f2):
        return 0.0
    return (f0 - 2 * f1 + f2) / (h * h)


class CurveAnalyzer:
    """Closest point, tangent, normal and curvature for every curve family."""

    def __init__(self, derivative_step: float = DEFAULT_DERIVATIVE_STEP,
                 search_resolution: float = DEFAULT_SEARCH_RESOLUTION):
        self.derivative_step = derivative_step
        self.search_resolution = search_resolution

    # ──────────────────────────────────────────
    # Entry points
    # ──────────────────────────────────────────
    def find_nearest_path(self, position: Vector2,
                          curves: Iterable[CurveModel]) -> Optional[PathInfo]:
        """Min-distance PathInfo over all physical curves, or None."""
        nearest = None
        for curve in curves:
            if not curve.is_physical:
                continue
            info = self.analyze(position, curve)
            if info is not None and (nearest is None or info.distance < nearest.distance):
                nearest = info
        return nearest

    def analyze(self, position: Vector2, curve: CurveModel) -> Optional[PathInfo]:
        kind = curve.kind
        if kind in (CurveKind.EXPLICIT_Y, CurveKind.PIECEWISE):
            info = self._analyze_explicit(position, curve, along_x=True)
        elif kind == CurveKind.EXPLICIT_X:
            info = self._analyze_explicit(position, curve, along_x=False)
        elif kind in (CurveKind.CONSTANT_X, CurveKind.CONSTANT_Y):
            info = self._analyze_constant(position, curve)
        elif kind == CurveKind.IMPLICIT:
            info = self._analyze_implicit(position, curve)
        elif kind == CurveKind.POLAR:
            info = self._analyze_polar(position, curve)
        elif kind == CurveKind.PARAMETRIC:
            info = self._analyze_parametric(position, curve)
        else:
            return None

        if info is None or not info.is_finite():
            logger.debug("No usable geometry on %r near (%.3f, %.3f)",
                         curve.original_text or kind.value, position.x, position.y)
            return None
        return info

    # ──────────────────────────────────────────
    # Helpers
    # ──────────────────────────────────────────
    @staticmethod
    def _frame_from_tangent(tangent: Vector2):
        """Unit (tangent, normal) with the normal rotated +90° from the tangent."""
        tangent = tangent.normalize()
        if tangent.magnitude_sq() == 0 or not tangent.is_finite():
            return FALLBACK_TANGENT, FALLBACK_NORMAL
        return tangent, tangent.perpendicular()

    # ──────────────────────────────────────────
    # y = f(x), x = f(y), piecewise
    # ──────────────────────────────────────────
    def _analyze_explicit(self, pos: Vector2, curve: CurveModel,
                          along_x: bool) -> Optional[PathInfo]:
        """Golden-section search along the free coordinate.

        along_x=True searches x for y=f(x); False searches y for x=f(y).
        """
        origin = pos.x if along_x else pos.y

        def point_at(u: float) -> Vector2:
            v = safe_evaluate(curve.evaluate, u)
            return Vector2(u, v) if along_x else Vector2(v, u)

        def distance_at(u: float) -> float:
            p = point_at(u)
            if not p.is_finite():
                return math.inf
            return pos.distance_to(p)

        u = golden_section_search(distance_at, origin - SEARCH_HALF_WIDTH,
                                  origin + SEARCH_HALF_WIDTH)
        closest = point_at(u)
        if not closest.is_finite():
            return None

        h = self.derivative_step
        slope = central_difference(curve.evaluate, u, h)
        tangent = Vector2(1.0, slope) if along_x else Vector2(slope, 1.0)
        tangent, normal = self._frame_from_tangent(tangent)

        second = second_difference(curve.evaluate, u, h)
        curvature = abs(second) / (1 + slope * slope) ** 1.5

        return PathInfo(curve, closest, pos.distance_to(closest), tangent, normal, curvature)

    # ──────────────────────────────────────────
    # x = c, y = c
    # ──────────────────────────────────────────
    @staticmethod
    def _analyze_constant(pos: Vector2, curve: CurveModel) -> PathInfo:
        if curve.kind == CurveKind.CONSTANT_Y:
            closest = Vector2(pos.x, curve.value)
            tangent = Vector2(1.0, 0.0)
        else:
            closest = Vector2(curve.value, pos.y)
            tangent = Vector2(0.0, 1.0)
        return PathInfo(curve, closest, pos.distance_to(closest),
                        tangent, tangent.perpendicular(), 0.0)

    # ──────────────────────────────────────────
    # f(x, y) = 0
    # ──────────────────────────────────────────
    def gradient(self, curve: CurveModel, x: float, y: float) -> Vector2:
        """Central-difference gradient; (0, 1) where it is undefined."""
        h = self.derivative_step
        f = curve.fn
        dfdx = (safe_evaluate(f, x + h, y) - safe_evaluate(f, x - h, y)) / (2 * h)
        dfdy = (safe_evaluate(f, x, y + h) - safe_evaluate(f, x, y - h)) / (2 * h)
        if not (math.isfinite(dfdx) and math.isfinite(dfdy)):
            return FALLBACK_NORMAL
        return Vector2(dfdx, dfdy)

    def closest_point_implicit(self, pos: Vector2, curve: CurveModel) -> Vector2:
        """Damped Newton descent from the marble towards f(x, y) = 0."""
        x, y = pos.x, pos.y
        for _ in range(IMPLICIT_MAX_ITER):
            f = safe_evaluate(curve.fn, x, y)
            if math.isnan(f) or abs(f) < IMPLICIT_TOLERANCE:
                break
            grad = self.gradient(curve, x, y)
            grad_sq = grad.magnitude_sq()
            if math.sqrt(grad_sq) < IMPLICIT_MIN_GRADIENT:
                break  # flat region, no direction to improve in
            step = f / grad_sq
            x -= grad.x * step * IMPLICIT_DAMPING
            y -= grad.y * step * IMPLICIT_DAMPING
        return Vector2(x, y)

    def implicit_curvature(self, curve: CurveModel, x: float, y: float) -> float:
        """|fx²·fyy − 2·fx·fy·fxy + fy²·fxx| / (fx² + fy²)^1.5"""
        h = self.derivative_step
        f = curve.fn
        f0 = safe_evaluate(f, x, y)
        fxp, fxm = safe_evaluate(f, x + h, y), safe_evaluate(f, x - h, y)
        fyp, fym = safe_evaluate(f, x, y + h), safe_evaluate(f, x, y - h)
        fpp, fpm = safe_evaluate(f, x + h, y + h), safe_evaluate(f, x + h, y - h)
        fmp, fmm = safe_evaluate(f, x - h, y + h), safe_evaluate(f, x - h, y - h)

        samples = np.array([f0, fxp, fxm, fyp, fym, fpp, fpm, fmp, fmm])
        if not np.isfinite(samples).all():
            return 0.0

        fx = (fxp - fxm) / (2 * h)
        fy = (fyp - fym) / (2 * h)
        fxx = (fxp - 2 * f0 + fxm) / (h * h)
        fyy = (fyp - 2 * f0 + fym) / (h * h)
        fxy = (fpp - fpm - fmp + fmm) / (4 * h * h)

        den = (fx * fx + fy * fy) ** 1.5
        if den == 0:
            return 0.0
        return abs(fx * fx * fyy - 2 * fx * fy * fxy + fy * fy * fxx) / den

    def _analyze_implicit(self, pos: Vector2, curve: CurveModel) -> Optional[PathInfo]:
        closest = self.closest_point_implicit(pos, curve)
        if math.isnan(safe_evaluate(curve.fn, closest.x, closest.y)):
            return None

        normal = self.gradient(curve, closest.x, closest.y).normalize()
        if normal.magnitude_sq() == 0:
            normal = FALLBACK_NORMAL
        # tangent is the normal rotated +90°
        tangent = normal.perpendicular()
        curvature = self.implicit_curvature(curve, closest.x, closest.y)
        return PathInfo(curve, closest, pos.distance_to(closest), tangent, normal, curvature)

    # ──────────────────────────────────────────
    # r = f(theta)
    # ──────────────────────────────────────────
    def _analyze_polar(self, pos: Vector2, curve: CurveModel) -> Optional[PathInfo]:
        """Coarse scan of theta over one turn centred on the marble's angle."""
        marble_theta = math.atan2(pos.y, pos.x)
        thetas = np.arange(marble_theta - math.pi, marble_theta + math.pi,
                           self.search_resolution)
        radii = np.array([safe_evaluate(curve.fn, float(t)) for t in thetas])
        dists = np.hypot(radii * np.cos(thetas) - pos.x, radii * np.sin(thetas) - pos.y)
        if not np.isfinite(dists).any():
            return None

        i = int(np.nanargmin(dists))
        theta = float(thetas[i])
        r = float(radii[i])
        closest = Vector2(r * math.cos(theta), r * math.sin(theta))

        drdt = central_difference(curve.fn, theta, SCAN_TANGENT_STEP)
        dxdt = drdt * math.cos(theta) - r * math.sin(theta)
        dydt = drdt * math.sin(theta) + r * math.cos(theta)
        tangent, normal = self._frame_from_tangent(Vector2(dxdt, dydt))

        return PathInfo(curve, closest, float(dists[i]), tangent, normal, 0.0)

    # ──────────────────────────────────────────
    # x = fx(t), y = fy(t)
    # ──────────────────────────────────────────
    def _analyze_parametric(self, pos: Vector2, curve: CurveModel) -> Optional[PathInfo]:
        """Coarse scan of t over [0, 2π)."""
        ts = np.arange(0.0, 2 * math.pi, self.search_resolution)
        pts = np.array([curve.evaluate_point(float(t)) for t in ts])
        dists = np.hypot(pts[:, 0] - pos.x, pts[:, 1] - pos.y)
        if not np.isfinite(dists).any():
            return None

        i = int(np.nanargmin(dists))
        t = float(ts[i])
        closest = Vector2.from_array(pts[i])

        dxdt = central_difference(curve.fn, t, SCAN_TANGENT_STEP)
        dydt = central_difference(curve.fn_y, t, SCAN_TANGENT_STEP)
        tangent, normal = self._frame_from_tangent(Vector2(dxdt, dydt))

        return PathInfo(curve, closest, float(dists[i]), tangent, normal, 0.0)
