"""
CurveModel Tests: construction-time validation, domain handling, sampling.
"""

import sys
import os
import math
import warnings
import numpy as np
import pytest

sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

from curves import CurveKind, CurveModel, CurveModelError, safe_evaluate


class TestSafeEvaluate:

    def test_finite_value_passes_through(self):
        assert safe_evaluate(lambda x: 2 * x, 3) == 6.0

    @pytest.mark.parametrize("fn", [
        lambda x: math.log(x),            # ValueError
        lambda x: 1 / x,                  # ZeroDivisionError
        lambda x: math.exp(1000 + x),     # OverflowError
        lambda x: (x - 1) ** 0.5,         # complex → TypeError on float()
        lambda x: float("inf"),
        lambda x: float("nan"),
    ])
    def test_undefined_becomes_nan(self, fn):
        assert math.isnan(safe_evaluate(fn, 0.0))

    def test_numpy_warnings_are_silenced(self):
        with warnings.catch_warnings():
            warnings.simplefilter("error")
            assert math.isnan(safe_evaluate(np.log, -1.0))

    def test_two_argument_evaluator(self):
        assert safe_evaluate(lambda x, y: x * y, 2.0, 3.0) == 6.0


class TestValidation:

    def test_factories_set_kind(self):
        assert CurveModel.explicit_y(math.sin).kind == CurveKind.EXPLICIT_Y
        assert CurveModel.explicit_x(math.sin).kind == CurveKind.EXPLICIT_X
        assert CurveModel.constant_x(1).kind == CurveKind.CONSTANT_X
        assert CurveModel.constant_y(1).kind == CurveKind.CONSTANT_Y
        assert CurveModel.implicit(lambda x, y: x + y).kind == CurveKind.IMPLICIT
        assert CurveModel.polar(lambda t: 1.0).kind == CurveKind.POLAR
        assert CurveModel.parametric(math.cos, math.sin).kind == CurveKind.PARAMETRIC
        assert CurveModel.piecewise(abs, [(">", 0)]).kind == CurveKind.PIECEWISE
        assert CurveModel.inequality(lambda x, y: y - x, "<").kind == CurveKind.INEQUALITY

    def test_missing_evaluator_rejected(self):
        with pytest.raises(CurveModelError):
            CurveModel(CurveKind.EXPLICIT_Y)

    def test_non_callable_rejected(self):
        with pytest.raises(CurveModelError):
            CurveModel.explicit_y(5)

    def test_wrong_arity_rejected(self):
        with pytest.raises(CurveModelError):
            CurveModel.implicit(lambda x: x)
        with pytest.raises(CurveModelError):
            CurveModel.explicit_y(lambda x, y: x)

    def test_parametric_needs_both_evaluators(self):
        with pytest.raises(CurveModelError):
            CurveModel.parametric(math.cos, None)

    @pytest.mark.parametrize("value", [None, "abc", math.nan, math.inf])
    def test_bad_constant_rejected(self, value):
        with pytest.raises(CurveModelError):
            CurveModel.constant_y(value)

    def test_constant_coerced_to_float(self):
        assert CurveModel.constant_x("3").value == 3.0

    def test_bad_inequality_operator_rejected(self):
        with pytest.raises(CurveModelError):
            CurveModel.inequality(lambda x, y: y, "=")

    def test_bad_piecewise_condition_rejected(self):
        with pytest.raises(CurveModelError):
            CurveModel.piecewise(abs, [("~", 1.0)])
        with pytest.raises(CurveModelError):
            CurveModel.piecewise(abs, [(">", "high")])

    def test_unknown_kind_rejected(self):
        with pytest.raises(CurveModelError):
            CurveModel("explicit_y", fn=math.sin)

    def test_curve_model_error_is_value_error(self):
        assert issubclass(CurveModelError, ValueError)

    def test_builtin_evaluator_accepted(self):
        curve = CurveModel.explicit_y(math.sin, original_text="y = sin(x)")
        assert curve.evaluate(0.0) == 0.0


class TestEvaluation:

    def test_constant_evaluate_ignores_argument(self):
        assert CurveModel.constant_y(2).evaluate(123.0) == 2.0

    def test_piecewise_outside_domain_is_nan(self):
        curve = CurveModel.piecewise(lambda x: x * x, [(">", 0), ("<=", 2)])
        assert curve.evaluate(1.5) == 2.25
        assert math.isnan(curve.evaluate(-1.0))
        assert math.isnan(curve.evaluate(2.5))
        assert curve.in_domain(2.0)

    def test_piecewise_equality_tolerance(self):
        curve = CurveModel.piecewise(lambda x: 1.0, [("!=", 1.0)])
        assert math.isnan(curve.evaluate(1.005))
        assert curve.evaluate(1.02) == 1.0

    def test_evaluate_point(self):
        curve = CurveModel.parametric(lambda t: 2 * t, lambda t: math.log(t))
        x, y = curve.evaluate_point(1.0)
        assert (x, y) == (2.0, 0.0)
        x, y = curve.evaluate_point(-1.0)
        assert x == -2.0 and math.isnan(y)

    def test_is_physical(self):
        assert CurveModel.constant_y(0).is_physical
        assert not CurveModel.inequality(lambda x, y: y, ">").is_physical


class TestRegion:

    @pytest.mark.parametrize("op, inside, outside", [
        ("<",  (0, -1), (0, 0)),
        ("<=", (0, 0),  (0, 1)),
        (">",  (0, 1),  (0, 0)),
        (">=", (0, 0),  (0, -1)),
    ])
    def test_contains(self, op, inside, outside):
        region = CurveModel.inequality(lambda x, y: y, op)
        assert region.contains(*inside)
        assert not region.contains(*outside)

    def test_undefined_is_outside(self):
        region = CurveModel.inequality(lambda x, y: math.log(x) - y, "<")
        assert not region.contains(-1.0, 0.0)

    def test_contains_requires_region(self):
        with pytest.raises(CurveModelError):
            CurveModel.constant_y(0).contains(0, 0)

    def test_region_points(self):
        region = CurveModel.inequality(lambda x, y: x, ">=")
        pts = region.region_points(-1, 1, -1, 1, resolution=2)
        assert sorted(pts) == [(0.0, -1.0), (0.0, 0.0), (0.0, 1.0),
                               (1.0, -1.0), (1.0, 0.0), (1.0, 1.0)]


class TestSampling:

    def test_explicit_samples_include_endpoints(self):
        pts = CurveModel.explicit_y(lambda x: 2 * x).sample_points(-1, 1, 0.5)
        assert pts == [(-1.0, -2.0), (-0.5, -1.0), (0.0, 0.0), (0.5, 1.0), (1.0, 2.0)]

    def test_undefined_samples_skipped(self):
        pts = CurveModel.explicit_y(math.log).sample_points(-1, 1, 0.5)
        assert [p[0] for p in pts] == [0.5, 1.0]

    def test_explicit_x_and_constant_x(self):
        pts = CurveModel.explicit_x(lambda y: y * y).sample_points(0, 1, 1.0)
        assert pts == [(0.0, 0.0), (1.0, 1.0)]
        pts = CurveModel.constant_x(3).sample_points(0, 1, 1.0)
        assert pts == [(3.0, 0.0), (3.0, 1.0)]

    def test_polar_samples_are_cartesian(self):
        pts = CurveModel.polar(lambda t: 2.0).sample_points(0, math.pi, math.pi / 2)
        np.testing.assert_allclose(pts, [(2, 0), (0, 2), (-2, 0)], atol=1e-12)

    def test_parametric_samples(self):
        pts = CurveModel.parametric(lambda t: t, lambda t: -t).sample_points(0, 2, 1.0)
        assert pts == [(0.0, 0.0), (1.0, -1.0), (2.0, -2.0)]

    def test_implicit_cannot_be_sampled(self):
        with pytest.raises(CurveModelError):
            CurveModel.implicit(lambda x, y: x).sample_points(0, 1)

    def test_non_positive_step_rejected(self):
        with pytest.raises(ValueError):
            CurveModel.constant_y(0).sample_points(0, 1, 0)
