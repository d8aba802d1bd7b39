"""
Curve model for the marble physics core.

A CurveModel is the canonical, read-only form of one authored curve. The
(external) equation front end builds them through the factory class methods;
the physics engine only ever calls their evaluators.

Evaluators are plain callables and may raise or return non-finite values for
inputs outside their domain (log of a negative number, division by zero, …).
Every consumer goes through ``safe_evaluate`` and treats both outcomes as
"undefined here".
"""

import enum
import inspect
import math
import numpy as np
from dataclasses import dataclass
from typing import Callable, List, Optional, Tuple


class CurveModelError(ValueError):
    """Raised when a CurveModel is malformed for its declared kind."""


class CurveKind(enum.Enum):
    EXPLICIT_Y = "explicit_y"
    EXPLICIT_X = "explicit_x"
    CONSTANT_X = "constant_x"
    CONSTANT_Y = "constant_y"
    IMPLICIT = "implicit"
    POLAR = "polar"
    PARAMETRIC = "parametric"
    PIECEWISE = "piecewise"
    INEQUALITY = "inequality"


# Number of scalar arguments each kind's evaluator takes (None = no evaluator)
_ARITY = {
    CurveKind.EXPLICIT_Y: 1,
    CurveKind.EXPLICIT_X: 1,
    CurveKind.CONSTANT_X: None,
    CurveKind.CONSTANT_Y: None,
    CurveKind.IMPLICIT: 2,
    CurveKind.POLAR: 1,
    CurveKind.PARAMETRIC: 1,
    CurveKind.PIECEWISE: 1,
    CurveKind.INEQUALITY: 2,
}

INEQUALITY_OPERATORS = ("<", "<=", ">", ">=")
PIECEWISE_OPERATORS = ("<", "<=", ">", ">=", "==", "!=")
PIECEWISE_EQ_TOLERANCE: float = 0.01


def safe_evaluate(fn: Callable, *args: float) -> float:
    """Call an evaluator, mapping domain errors and non-finite output to nan."""
    try:
        with np.errstate(all="ignore"):
            value = float(fn(*args))
    except (ArithmeticError, ValueError, TypeError):
        return math.nan
    return value if math.isfinite(value) else math.nan


def _check_evaluator(kind: CurveKind, name: str, fn, arity: int) -> None:
    if fn is None:
        raise CurveModelError(f"{kind.value} curve requires an evaluator '{name}'")
    if not callable(fn):
        raise CurveModelError(f"{kind.value} evaluator '{name}' is not callable: {fn!r}")
    try:
        sig = inspect.signature(fn)
    except (TypeError, ValueError):
        return  # some builtins expose no signature; accept them
    try:
        sig.bind(*([0.0] * arity))
    except TypeError as exc:
        raise CurveModelError(
            f"{kind.value} evaluator '{name}' must accept {arity} argument(s): {exc}"
        ) from exc


def _condition_holds(x: float, op: str, value: float) -> bool:
    if op == ">":
        return x > value
    if op == "<":
        return x < value
    if op == ">=":
        return x >= value
    if op == "<=":
        return x <= value
    if op == "==":
        return abs(x - value) < PIECEWISE_EQ_TOLERANCE
    return abs(x - value) >= PIECEWISE_EQ_TOLERANCE  # "!="


@dataclass(frozen=True, eq=False)
class CurveModel:
    """One authored curve. Use the factory class methods to build it."""
    kind: CurveKind
    fn: Optional[Callable] = None
    fn_y: Optional[Callable] = None           # parametric y(t)
    value: Optional[float] = None             # constant_x / constant_y
    conditions: Tuple[Tuple[str, float], ...] = ()   # piecewise domain
    operator: Optional[str] = None            # inequality comparison
    color: Optional[str] = None
    original_text: str = ""

    def __post_init__(self):
        if not isinstance(self.kind, CurveKind):
            raise CurveModelError(f"Unknown curve kind: {self.kind!r}")

        arity = _ARITY[self.kind]
        if arity is None:
            if self.value is None:
                raise CurveModelError(f"{self.kind.value} curve requires a constant value")
            try:
                value = float(self.value)
            except (TypeError, ValueError) as exc:
                raise CurveModelError(f"Invalid constant value: {self.value!r}") from exc
            if not math.isfinite(value):
                raise CurveModelError(f"Constant value must be finite, got {value}")
            object.__setattr__(self, "value", value)
        else:
            _check_evaluator(self.kind, "fn", self.fn, arity)

        if self.kind == CurveKind.PARAMETRIC:
            _check_evaluator(self.kind, "fn_y", self.fn_y, 1)

        if self.kind == CurveKind.INEQUALITY and self.operator not in INEQUALITY_OPERATORS:
            raise CurveModelError(f"Invalid inequality operator: {self.operator!r}")

        if self.kind == CurveKind.PIECEWISE:
            conds = []
            for cond in self.conditions:
                try:
                    op, bound = cond
                    bound = float(bound)
                except (TypeError, ValueError) as exc:
                    raise CurveModelError(f"Invalid piecewise condition: {cond!r}") from exc
                if op not in PIECEWISE_OPERATORS:
                    raise CurveModelError(f"Invalid piecewise operator: {op!r}")
                conds.append((op, bound))
            object.__setattr__(self, "conditions", tuple(conds))

    # ──────────────────────────────────────────
    # Factories
    # ──────────────────────────────────────────
    @classmethod
    def explicit_y(cls, fn, color=None, original_text="") -> "CurveModel":
        """y = f(x)"""
        return cls(CurveKind.EXPLICIT_Y, fn=fn, color=color, original_text=original_text)

    @classmethod
    def explicit_x(cls, fn, color=None, original_text="") -> "CurveModel":
        """x = f(y)"""
        return cls(CurveKind.EXPLICIT_X, fn=fn, color=color, original_text=original_text)

    @classmethod
    def constant_x(cls, value, color=None, original_text="") -> "CurveModel":
        return cls(CurveKind.CONSTANT_X, value=value, color=color,
                   original_text=original_text or f"x = {value}")

    @classmethod
    def constant_y(cls, value, color=None, original_text="") -> "CurveModel":
        return cls(CurveKind.CONSTANT_Y, value=value, color=color,
                   original_text=original_text or f"y = {value}")

    @classmethod
    def implicit(cls, fn, color=None, original_text="") -> "CurveModel":
        """f(x, y) = 0"""
        return cls(CurveKind.IMPLICIT, fn=fn, color=color, original_text=original_text)

    @classmethod
    def polar(cls, fn, color=None, original_text="") -> "CurveModel":
        """r = f(theta)"""
        return cls(CurveKind.POLAR, fn=fn, color=color, original_text=original_text)

    @classmethod
    def parametric(cls, fx, fy, color=None, original_text="") -> "CurveModel":
        """x = fx(t), y = fy(t)"""
        return cls(CurveKind.PARAMETRIC, fn=fx, fn_y=fy, color=color,
                   original_text=original_text)

    @classmethod
    def piecewise(cls, fn, conditions, color=None, original_text="") -> "CurveModel":
        """y = f(x) restricted to the x where every (operator, value) condition holds."""
        return cls(CurveKind.PIECEWISE, fn=fn, conditions=tuple(conditions),
                   color=color, original_text=original_text)

    @classmethod
    def inequality(cls, fn, operator, color=None, original_text="") -> "CurveModel":
        """Region where fn(x, y) <operator> 0 (fn is lhs - rhs)."""
        return cls(CurveKind.INEQUALITY, fn=fn, operator=operator, color=color,
                   original_text=original_text)

    # ──────────────────────────────────────────
    # Evaluation
    # ──────────────────────────────────────────
    @property
    def is_physical(self) -> bool:
        """Regions are drawn but never followed by a marble."""
        return self.kind != CurveKind.INEQUALITY

    def in_domain(self, x: float) -> bool:
        return all(_condition_holds(x, op, bound) for op, bound in self.conditions)

    def evaluate(self, *args: float) -> float:
        """Raw evaluator call. May raise or return non-finite for undefined inputs."""
        if self.kind in (CurveKind.CONSTANT_X, CurveKind.CONSTANT_Y):
            return self.value
        if self.kind == CurveKind.PIECEWISE and not self.in_domain(args[0]):
            return math.nan
        return self.fn(*args)

    def evaluate_point(self, t: float) -> Tuple[float, float]:
        """Parametric point (fx(t), fy(t)); each coordinate nan where undefined."""
        return safe_evaluate(self.fn, t), safe_evaluate(self.fn_y, t)

    def contains(self, x: float, y: float) -> bool:
        """Inequality-region membership; False wherever the region is undefined."""
        if self.kind != CurveKind.INEQUALITY:
            raise CurveModelError(f"contains() is only defined for inequality regions, "
                                  f"not {self.kind.value}")
        diff = safe_evaluate(self.fn, x, y)
        if math.isnan(diff):
            return False
        if self.operator == ">=":
            return diff >= 0
        if self.operator == "<=":
            return diff <= 0
        if self.operator == ">":
            return diff > 0
        return diff < 0

    def sample_points(self, lo: float, hi: float, step: float = 0.1) -> List[Tuple[float, float]]:
        """Finite curve points for parameter values in [lo, hi].

        The parameter is x for y=f(x) forms, y for x=f(y) forms, theta for
        polar and t for parametric curves. Undefined samples are skipped.
        """
        if self.kind in (CurveKind.IMPLICIT, CurveKind.INEQUALITY):
            raise CurveModelError(f"{self.kind.value} curves have no parameterisation to sample")
        if step <= 0:
            raise ValueError(f"step must be positive, got {step}")

        points = []
        for p in np.arange(lo, hi + step * 0.5, step):
            p = float(p)
            if self.kind == CurveKind.PARAMETRIC:
                x, y = self.evaluate_point(p)
            elif self.kind == CurveKind.POLAR:
                r = safe_evaluate(self.fn, p)
                x, y = r * math.cos(p), r * math.sin(p)
            elif self.kind in (CurveKind.EXPLICIT_X, CurveKind.CONSTANT_X):
                x, y = safe_evaluate(self.evaluate, p), p
            else:
                x, y = p, safe_evaluate(self.evaluate, p)
            if math.isfinite(x) and math.isfinite(y):
                points.append((x, y))
        return points

    def region_points(self, x_min: float, x_max: float, y_min: float, y_max: float,
                      resolution: int = 50) -> List[Tuple[float, float]]:
        """Grid samples inside an inequality region (resolution+1 per axis)."""
        xs = np.linspace(x_min, x_max, resolution + 1)
        ys = np.linspace(y_min, y_max, resolution + 1)
        return [(float(x), float(y)) for x in xs for y in ys if self.contains(float(x), float(y))]
