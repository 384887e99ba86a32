"""
Camera Position Suggester

Geometry for the suggested observation viewpoint.

Seen from above, hole, ball and viewpoint form an equilateral triangle: the
viewpoint sits on the perpendicular bisector of the hole-ball line, at
sqrt(3)/2 times the putt length from its midpoint. Height is fixed at eye
level regardless of the terrain under the midpoint.
"""

from ..domain.geometry import (
    SpatialPoint,
    horizontal_perpendicular,
    midpoint,
    normalize,
)

# 5.5 ft, roughly eye level for a standing adult
EYE_HEIGHT_METERS = 1.68

# sqrt(3)/2: height of an equilateral triangle with unit sides
EQUILATERAL_HEIGHT_RATIO = 0.8660254


class CameraPositionSuggester:
    """
    Derives a viewpoint from the hole and putting positions.

    All methods are static - no state needed.

    Usage:
        camera = CameraPositionSuggester.suggest(hole, putting)
    """

    @staticmethod
    def suggest(hole: SpatialPoint, putting: SpatialPoint) -> SpatialPoint:
        """
        Suggest where to stand to watch the putt.

        Args:
            hole: Hole position in world space
            putting: Ball position in world space

        Returns:
            Viewpoint at EYE_HEIGHT_METERS. When hole and ball coincide the
            offset collapses to zero and the midpoint (at eye height) is
            returned.
        """
        center = midpoint(hole, putting)
        direction = normalize(putting - hole)
        perpendicular = horizontal_perpendicular(direction)

        distance = hole.distance_to(putting)
        offset = perpendicular * (distance * EQUILATERAL_HEIGHT_RATIO)

        return (center + offset).with_height(EYE_HEIGHT_METERS)


def suggest_camera_position(hole: SpatialPoint, putting: SpatialPoint) -> SpatialPoint:
    """Module-level shortcut for CameraPositionSuggester.suggest."""
    return CameraPositionSuggester.suggest(hole, putting)
