"""
2D vector value type used by the marble physics core.
"""

import math
import numpy as np
from dataclasses import dataclass
from typing import Iterator


@dataclass(frozen=True)
class Vector2:
    """Immutable 2D vector with the operations the integrator needs."""
    x: float = 0.0
    y: float = 0.0

    def __post_init__(self):
        object.__setattr__(self, "x", float(self.x))
        object.__setattr__(self, "y", float(self.y))

    # ── Arithmetic ────────────────────────────────────────────────────────────
    def __add__(self, other: "Vector2") -> "Vector2":
        return Vector2(self.x + other.x, self.y + other.y)

    def __sub__(self, other: "Vector2") -> "Vector2":
        return Vector2(self.x - other.x, self.y - other.y)

    def __mul__(self, scalar: float) -> "Vector2":
        return Vector2(self.x * scalar, self.y * scalar)

    def __rmul__(self, scalar: float) -> "Vector2":
        return self * scalar

    def __truediv__(self, scalar: float) -> "Vector2":
        if scalar == 0:
            return Vector2(0.0, 0.0)
        return Vector2(self.x / scalar, self.y / scalar)

    def __neg__(self) -> "Vector2":
        return Vector2(-self.x, -self.y)

    def __iter__(self) -> Iterator[float]:
        yield self.x
        yield self.y

    # ── Metrics ───────────────────────────────────────────────────────────────
    def dot(self, other: "Vector2") -> float:
        return self.x * other.x + self.y * other.y

    def magnitude(self) -> float:
        return math.hypot(self.x, self.y)

    def magnitude_sq(self) -> float:
        return self.x * self.x + self.y * self.y

    def distance_to(self, other: "Vector2") -> float:
        return math.hypot(self.x - other.x, self.y - other.y)

    def distance_sq_to(self, other: "Vector2") -> float:
        dx = self.x - other.x
        dy = self.y - other.y
        return dx * dx + dy * dy

    def is_finite(self) -> bool:
        return math.isfinite(self.x) and math.isfinite(self.y)

    # ── Directions ────────────────────────────────────────────────────────────
    def normalize(self) -> "Vector2":
        """Unit vector in the same direction; the zero vector stays zero."""
        mag = self.magnitude()
        if mag == 0:
            return Vector2(0.0, 0.0)
        return self / mag

    def perpendicular(self) -> "Vector2":
        """Rotate +90° (counter-clockwise)."""
        return Vector2(-self.y, self.x)

    def rotate(self, angle: float) -> "Vector2":
        cs, sn = math.cos(angle), math.sin(angle)
        return Vector2(self.x * cs - self.y * sn, self.x * sn + self.y * cs)

    def lerp(self, other: "Vector2", t: float) -> "Vector2":
        return Vector2(self.x + (other.x - self.x) * t,
                       self.y + (other.y - self.y) * t)

    # ── numpy interop ─────────────────────────────────────────────────────────
    def to_array(self) -> np.ndarray:
        return np.array([self.x, self.y], dtype=float)

    @classmethod
    def from_array(cls, arr) -> "Vector2":
        arr = np.asarray(arr, dtype=float)
        return cls(arr[0], arr[1])
