"""
Geometry Primitives

3-D points and the handful of vector operations the setup flow needs.
World frame follows the AR convention: meters, y is the vertical axis.
"""

import math
from dataclasses import dataclass
from typing import Tuple


@dataclass(frozen=True)
class SpatialPoint:
    """
    An immutable point (or vector) in world space.

    Attributes:
        x: Horizontal axis (meters)
        y: Vertical axis (meters, up)
        z: Horizontal axis (meters)
    """
    x: float
    y: float
    z: float

    def __add__(self, other: "SpatialPoint") -> "SpatialPoint":
        return SpatialPoint(self.x + other.x, self.y + other.y, self.z + other.z)

    def __sub__(self, other: "SpatialPoint") -> "SpatialPoint":
        return SpatialPoint(self.x - other.x, self.y - other.y, self.z - other.z)

    def __mul__(self, factor: float) -> "SpatialPoint":
        return SpatialPoint(self.x * factor, self.y * factor, self.z * factor)

    __rmul__ = __mul__

    def __truediv__(self, divisor: float) -> "SpatialPoint":
        return SpatialPoint(self.x / divisor, self.y / divisor, self.z / divisor)

    @property
    def length(self) -> float:
        """Euclidean norm when the point is read as a vector."""
        return math.sqrt(self.x ** 2 + self.y ** 2 + self.z ** 2)

    def distance_to(self, other: "SpatialPoint") -> float:
        """Calculate Euclidean distance to another point."""
        return (self - other).length

    def with_height(self, y: float) -> "SpatialPoint":
        """Same horizontal position, vertical coordinate replaced."""
        return SpatialPoint(self.x, y, self.z)

    def is_finite(self) -> bool:
        return all(math.isfinite(v) for v in (self.x, self.y, self.z))

    def as_tuple(self) -> Tuple[float, float, float]:
        return (self.x, self.y, self.z)

    @classmethod
    def from_sequence(cls, values) -> "SpatialPoint":
        """Build from any 3-element sequence (list, tuple, numpy array)."""
        x, y, z = values
        return cls(float(x), float(y), float(z))


ORIGIN = SpatialPoint(0.0, 0.0, 0.0)
DEFAULT_DIRECTION = SpatialPoint(1.0, 0.0, 0.0)

# Below this length a vector has no usable direction
EPSILON = 1e-9


def midpoint(a: SpatialPoint, b: SpatialPoint) -> SpatialPoint:
    return (a + b) / 2


def normalize(v: SpatialPoint, fallback: SpatialPoint = DEFAULT_DIRECTION) -> SpatialPoint:
    """
    Scale a vector to unit length.

    Returns `fallback` for a (near) zero vector instead of dividing by zero.
    """
    length = v.length
    if length < EPSILON or not math.isfinite(length):
        return fallback
    return v / length


def horizontal_perpendicular(direction: SpatialPoint) -> SpatialPoint:
    """
    Rotate the horizontal projection of `direction` 90 degrees about the
    vertical axis: (dx, dy, dz) -> (-dz, 0, dx).

    For a level unit direction the result is unit length; a sloped direction
    yields a proportionally shorter vector.
    """
    return SpatialPoint(-direction.z, 0.0, direction.x)
