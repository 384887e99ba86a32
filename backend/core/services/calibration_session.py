"""
Calibration Session

State machine for the putting setup: mark the hole, mark the ball, get a
suggested viewpoint, lock.

Positions may only be set once per run. A second call to a setter, a call out
of order, or any mutation after locking raises InvalidTransition and leaves the
session untouched. reset() is the only way back.
"""

import logging
from typing import Optional

from ..domain.calibration import (
    CalibrationSnapshot,
    CalibrationState,
    CameraSuggestedState,
    HoleSetState,
    IdleState,
    LockedState,
    PuttingSetState,
    SessionState,
    FEET_PER_METER,
)
from ..domain.geometry import SpatialPoint
from ..errors import InvalidPosition, InvalidTransition, NoSurfaceFound
from .camera_suggester import CameraPositionSuggester

logger = logging.getLogger(__name__)


class CalibrationSession:
    """
    Holds the hole, putting and suggested camera positions for one setup run.

    Not thread-safe: exactly one owner (see SetupCoordinator) may call the
    mutating methods.

    Usage:
        session = CalibrationSession()
        session.set_hole_position(SpatialPoint(0, 0, 0))
        session.set_putting_position(SpatialPoint(0, 0, 3))
        print(session.distance_in_feet)          # ~9.84
        print(session.suggested_camera_position)
        session.lock_setup()
    """

    def __init__(self):
        self._state: SessionState = IdleState()

    # -------------------------------------------------------------------------
    # Read-only accessors
    # -------------------------------------------------------------------------

    @property
    def state(self) -> CalibrationState:
        return self._state.kind

    @property
    def hole_position(self) -> Optional[SpatialPoint]:
        return getattr(self._state, "hole", None)

    @property
    def putting_position(self) -> Optional[SpatialPoint]:
        return getattr(self._state, "putting", None)

    @property
    def suggested_camera_position(self) -> Optional[SpatialPoint]:
        return getattr(self._state, "camera", None)

    @property
    def distance_meters(self) -> float:
        hole, putting = self.hole_position, self.putting_position
        if hole is None or putting is None:
            return 0.0
        return hole.distance_to(putting)

    @property
    def distance_in_feet(self) -> float:
        """Hole to ball distance in feet, 0 until both are marked."""
        return self.distance_meters * FEET_PER_METER

    @property
    def is_locked(self) -> bool:
        return isinstance(self._state, LockedState)

    def snapshot(self) -> CalibrationSnapshot:
        """Immutable copy of the current state for display."""
        return CalibrationSnapshot.from_state(self._state)

    # -------------------------------------------------------------------------
    # Transitions
    # -------------------------------------------------------------------------

    def set_hole_position(self, position: SpatialPoint) -> CalibrationSnapshot:
        """
        Mark the hole. Only allowed from IDLE.

        Raises:
            InvalidPosition: a coordinate is NaN or infinite
            InvalidTransition: hole already set, or setup locked
        """
        _require_finite("set_hole_position", position)
        if not isinstance(self._state, IdleState):
            raise InvalidTransition(
                "set_hole_position", self.state.name, "hole position already set"
            )

        self._state = HoleSetState(hole=position)
        logger.info(f"Hole position set at {position.as_tuple()}")
        return self.snapshot()

    def set_putting_position(self, position: SpatialPoint) -> CalibrationSnapshot:
        """
        Mark the ball and derive the suggested camera position.

        The session passes through PUTTING_SET and lands in CAMERA_SUGGESTED
        within this call; callers only ever observe the latter.

        Raises:
            InvalidPosition: a coordinate is NaN or infinite
            InvalidTransition: hole not set yet, putting already set, or locked
        """
        _require_finite("set_putting_position", position)
        if isinstance(self._state, IdleState):
            raise InvalidTransition(
                "set_putting_position", self.state.name, "hole position must be set first"
            )
        if not isinstance(self._state, HoleSetState):
            raise InvalidTransition(
                "set_putting_position", self.state.name, "putting position already set"
            )

        marked = PuttingSetState(hole=self._state.hole, putting=position)
        self._state = marked
        logger.debug("Putting position marked, deriving camera position")

        camera = CameraPositionSuggester.suggest(marked.hole, marked.putting)
        self._state = CameraSuggestedState(
            hole=marked.hole,
            putting=marked.putting,
            camera=camera,
        )

        logger.info(
            f"Putting position set at {position.as_tuple()}, "
            f"distance {self.distance_in_feet:.2f} ft, "
            f"suggested camera at {camera.as_tuple()}"
        )
        return self.snapshot()

    def handle_tap(self, position: Optional[SpatialPoint]) -> CalibrationSnapshot:
        """
        Route a tap result from spatial tracking to the next unset position.

        Args:
            position: World point under the tap, or None when tracking found
                no surface there

        Raises:
            NoSurfaceFound: position is None (nothing changes)
            InvalidPosition: a coordinate is NaN or infinite
            InvalidTransition: both positions are already set
        """
        if position is None:
            raise NoSurfaceFound()

        if isinstance(self._state, IdleState):
            return self.set_hole_position(position)
        if isinstance(self._state, HoleSetState):
            return self.set_putting_position(position)

        raise InvalidTransition("handle_tap", self.state.name, "both positions already set")

    def lock_setup(self) -> CalibrationSnapshot:
        """
        Finish the setup. Positions are frozen until reset().

        Raises:
            InvalidTransition: called before both positions are set, or twice
        """
        if not isinstance(self._state, CameraSuggestedState):
            reason = (
                "setup already locked"
                if isinstance(self._state, LockedState)
                else "hole and putting positions must be set first"
            )
            raise InvalidTransition("lock_setup", self.state.name, reason)

        self._state = LockedState(
            hole=self._state.hole,
            putting=self._state.putting,
            camera=self._state.camera,
        )
        logger.info("Setup locked")
        return self.snapshot()

    def reset(self) -> CalibrationSnapshot:
        """Clear everything and return to IDLE. Allowed from any state."""
        previous = self.state
        self._state = IdleState()
        logger.info(f"Calibration reset (was {previous.name})")
        return self.snapshot()


def _require_finite(operation: str, position: SpatialPoint) -> None:
    if not position.is_finite():
        raise InvalidPosition(f"{operation}: position {position.as_tuple()} is not finite")
