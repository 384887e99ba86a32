import math

from core.domain.geometry import (
    DEFAULT_DIRECTION,
    SpatialPoint,
    horizontal_perpendicular,
    midpoint,
    normalize,
)


def test_vector_arithmetic():
    a = SpatialPoint(1.0, 2.0, 3.0)
    b = SpatialPoint(0.5, -1.0, 2.0)

    assert a + b == SpatialPoint(1.5, 1.0, 5.0)
    assert a - b == SpatialPoint(0.5, 3.0, 1.0)
    assert a * 2 == SpatialPoint(2.0, 4.0, 6.0)
    assert 2 * a == a * 2
    assert a / 2 == SpatialPoint(0.5, 1.0, 1.5)


def test_distance_and_midpoint():
    a = SpatialPoint(0.0, 0.0, 0.0)
    b = SpatialPoint(3.0, 0.0, 4.0)

    assert a.distance_to(b) == 5.0
    assert midpoint(a, b) == SpatialPoint(1.5, 0.0, 2.0)


def test_normalize_returns_unit_vector():
    v = normalize(SpatialPoint(0.0, 0.0, 3.0))
    assert v == SpatialPoint(0.0, 0.0, 1.0)
    assert math.isclose(normalize(SpatialPoint(1.0, 2.0, 2.0)).length, 1.0)


def test_normalize_zero_vector_uses_fallback():
    assert normalize(SpatialPoint(0.0, 0.0, 0.0)) == DEFAULT_DIRECTION


def test_horizontal_perpendicular_is_orthogonal_and_level():
    direction = normalize(SpatialPoint(1.0, 0.0, 1.0))
    perpendicular = horizontal_perpendicular(direction)

    assert perpendicular.y == 0.0
    dot = direction.x * perpendicular.x + direction.z * perpendicular.z
    assert math.isclose(dot, 0.0, abs_tol=1e-12)
    assert math.isclose(perpendicular.length, 1.0)


def test_with_height_keeps_horizontal_position():
    p = SpatialPoint(1.0, -1.2, 2.0).with_height(1.68)
    assert p == SpatialPoint(1.0, 1.68, 2.0)


def test_from_sequence():
    assert SpatialPoint.from_sequence([1, 2, 3]) == SpatialPoint(1.0, 2.0, 3.0)
