"""
Vector2 Tests: value semantics and the algebra used by the integrator.
"""

import sys
import os
import math
import dataclasses
import numpy as np
import pytest

sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

from vector import Vector2


class TestArithmetic:

    def test_add_sub(self):
        a, b = Vector2(1, 2), Vector2(3, -1)
        assert a + b == Vector2(4, 1)
        assert a - b == Vector2(-2, 3)

    def test_scalar_mul_both_sides(self):
        v = Vector2(1.5, -2)
        assert v * 2 == Vector2(3, -4)
        assert 2 * v == Vector2(3, -4)

    def test_division_by_zero_gives_zero_vector(self):
        assert Vector2(3, 4) / 0 == Vector2(0, 0)
        assert Vector2(3, 4) / 2 == Vector2(1.5, 2)

    def test_negate(self):
        assert -Vector2(1, -2) == Vector2(-1, 2)

    def test_components_are_floats(self):
        v = Vector2(1, 2)
        assert isinstance(v.x, float) and isinstance(v.y, float)

    def test_frozen(self):
        v = Vector2(1, 2)
        with pytest.raises(dataclasses.FrozenInstanceError):
            v.x = 5.0

    def test_unpacking(self):
        x, y = Vector2(7, 8)
        assert (x, y) == (7.0, 8.0)


class TestMetrics:

    def test_dot_and_magnitude(self):
        v = Vector2(3, 4)
        assert v.dot(Vector2(1, 0)) == 3
        assert v.magnitude() == 5
        assert v.magnitude_sq() == 25

    def test_distance(self):
        a, b = Vector2(0, 0), Vector2(3, 4)
        assert a.distance_to(b) == 5
        assert a.distance_sq_to(b) == 25

    def test_is_finite(self):
        assert Vector2(1, 2).is_finite()
        assert not Vector2(math.nan, 0).is_finite()
        assert not Vector2(0, math.inf).is_finite()


class TestDirections:

    def test_normalize(self):
        n = Vector2(3, 4).normalize()
        assert n.magnitude() == pytest.approx(1.0)
        assert n == Vector2(0.6, 0.8)

    def test_normalize_zero_stays_zero(self):
        assert Vector2(0, 0).normalize() == Vector2(0, 0)

    def test_perpendicular_is_ccw(self):
        assert Vector2(1, 0).perpendicular() == Vector2(0, 1)
        assert Vector2(0, 1).perpendicular() == Vector2(-1, 0)

    def test_rotate_quarter_turn(self):
        r = Vector2(1, 0).rotate(math.pi / 2)
        assert r.x == pytest.approx(0.0, abs=1e-12)
        assert r.y == pytest.approx(1.0)

    def test_lerp(self):
        a, b = Vector2(0, 0), Vector2(10, -10)
        assert a.lerp(b, 0.4) == Vector2(4, -4)
        assert a.lerp(b, 0.0) == a
        assert a.lerp(b, 1.0) == b


class TestNumpyInterop:

    def test_round_trip(self):
        v = Vector2(1.25, -3.5)
        arr = v.to_array()
        np.testing.assert_array_equal(arr, np.array([1.25, -3.5]))
        assert Vector2.from_array(arr) == v

    def test_from_tuple(self):
        assert Vector2.from_array((2, 3)) == Vector2(2, 3)
