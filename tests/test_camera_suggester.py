import math
import random

import pytest

from core.domain.geometry import SpatialPoint
from core.services.camera_suggester import (
    EYE_HEIGHT_METERS,
    CameraPositionSuggester,
    suggest_camera_position,
)


def horizontal_distance(a: SpatialPoint, b: SpatialPoint) -> float:
    return math.hypot(a.x - b.x, a.z - b.z)


def test_straight_putt_along_z():
    hole = SpatialPoint(0.0, 0.0, 0.0)
    putting = SpatialPoint(0.0, 0.0, 3.0)

    camera = CameraPositionSuggester.suggest(hole, putting)

    # perpendicular of (0, 0, 1) is (-1, 0, 0)
    assert camera.x == pytest.approx(-2.598, abs=1e-3)
    assert camera.y == pytest.approx(EYE_HEIGHT_METERS)
    assert camera.z == pytest.approx(1.5)


def test_height_is_eye_level_regardless_of_terrain():
    hole = SpatialPoint(0.0, -1.4, 0.0)
    putting = SpatialPoint(2.0, -1.4, 0.0)

    camera = suggest_camera_position(hole, putting)

    assert camera.y == EYE_HEIGHT_METERS


def test_triangle_is_equilateral_from_above():
    rng = random.Random(42)
    for _ in range(50):
        ground = rng.uniform(-2.0, 0.5)
        hole = SpatialPoint(rng.uniform(-5, 5), ground, rng.uniform(-5, 5))
        putting = SpatialPoint(rng.uniform(-5, 5), ground, rng.uniform(-5, 5))
        if hole.distance_to(putting) < 1e-3:
            continue

        camera = CameraPositionSuggester.suggest(hole, putting)
        side = hole.distance_to(putting)

        assert camera.y == pytest.approx(EYE_HEIGHT_METERS)
        assert horizontal_distance(hole, camera) == pytest.approx(side, rel=1e-6)
        assert horizontal_distance(putting, camera) == pytest.approx(side, rel=1e-6)


def test_degenerate_points_return_midpoint_at_eye_height():
    point = SpatialPoint(1.0, -1.3, 2.0)

    camera = CameraPositionSuggester.suggest(point, point)

    assert camera.is_finite()
    assert camera == SpatialPoint(1.0, EYE_HEIGHT_METERS, 2.0)


def test_vertical_separation_does_not_produce_nan():
    hole = SpatialPoint(0.0, 0.0, 0.0)
    putting = SpatialPoint(0.0, 1.0, 0.0)

    camera = CameraPositionSuggester.suggest(hole, putting)

    assert camera.is_finite()
    assert camera.y == EYE_HEIGHT_METERS


def test_suggest_is_deterministic():
    hole = SpatialPoint(0.3, -1.2, -2.0)
    putting = SpatialPoint(-0.4, -1.2, 1.1)
    assert CameraPositionSuggester.suggest(hole, putting) == CameraPositionSuggester.suggest(hole, putting)
