import asyncio

import pytest

from conftest import ResourceFactory
from core.domain.calibration import CalibrationState
from core.domain.geometry import SpatialPoint
from core.errors import CaptureUnavailable, InvalidPosition, InvalidTransition, NoSurfaceFound
from core.services.capture import held_device
from core.services.capture_pipeline import PipelineState
from core.services.setup_coordinator import SUBSCRIBER_QUEUE_SIZE, SetupCoordinator

HOLE = SpatialPoint(0.0, 0.0, 0.0)
BALL = SpatialPoint(0.0, 0.0, 3.0)


async def eventually(predicate, timeout=3.0):
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while loop.time() < deadline:
        if predicate():
            return True
        await asyncio.sleep(0.01)
    return predicate()


@pytest.fixture
def coordinator(make_pipeline):
    return SetupCoordinator(pipeline=make_pipeline())


def test_calibration_flow(coordinator):
    async def scenario():
        await coordinator.start()
        try:
            await coordinator.handle_tap(HOLE)
            snapshot = await coordinator.handle_tap(BALL)
            assert snapshot.state is CalibrationState.CAMERA_SUGGESTED
            assert snapshot.distance_in_feet == pytest.approx(9.84, abs=0.01)
            assert coordinator.suggested_camera_position() == snapshot.suggested_camera_position

            locked = await coordinator.lock_setup()
            assert locked.is_locked
            assert coordinator.calibration_snapshot() == locked

            reset = await coordinator.reset()
            assert reset.state is CalibrationState.IDLE
            assert coordinator.suggested_camera_position() is None
        finally:
            await coordinator.close()

    asyncio.run(scenario())


def test_rejected_commands_leave_state_unchanged(coordinator):
    async def scenario():
        await coordinator.start()
        try:
            await coordinator.set_hole_position(HOLE)
            before = coordinator.calibration_snapshot()

            with pytest.raises(NoSurfaceFound):
                await coordinator.handle_tap(None)
            with pytest.raises(InvalidTransition):
                await coordinator.set_hole_position(BALL)
            with pytest.raises(InvalidTransition):
                await coordinator.lock_setup()

            assert coordinator.calibration_snapshot() == before
            # The coordinator keeps serving after a rejected command
            snapshot = await coordinator.set_putting_position(BALL)
            assert snapshot.state is CalibrationState.CAMERA_SUGGESTED
        finally:
            await coordinator.close()

    asyncio.run(scenario())


def test_concurrent_taps_are_serialized(coordinator):
    async def scenario():
        await coordinator.start()
        try:
            results = await asyncio.gather(
                coordinator.handle_tap(HOLE),
                coordinator.handle_tap(BALL),
                coordinator.handle_tap(SpatialPoint(9.0, 0.0, 9.0)),
                return_exceptions=True,
            )
            errors = [r for r in results if isinstance(r, Exception)]
            assert len(errors) == 1
            assert isinstance(errors[0], InvalidTransition)
            assert coordinator.calibration_snapshot().state is CalibrationState.CAMERA_SUGGESTED
        finally:
            await coordinator.close()

    asyncio.run(scenario())


def test_subscribers_receive_snapshots(coordinator):
    async def scenario():
        await coordinator.start()
        updates = coordinator.subscribe()
        try:
            await coordinator.handle_tap(HOLE)
            event, snapshot = await asyncio.wait_for(updates.get(), 1)
            assert event == "snapshot"
            assert snapshot.calibration.state is CalibrationState.HOLE_SET
        finally:
            coordinator.unsubscribe(updates)
            await coordinator.close()

    asyncio.run(scenario())


def test_slow_subscriber_keeps_newest_updates(coordinator):
    async def scenario():
        await coordinator.start()
        updates = coordinator.subscribe()
        try:
            for _ in range(SUBSCRIBER_QUEUE_SIZE + 5):
                await coordinator.reset()

            assert updates.qsize() == SUBSCRIBER_QUEUE_SIZE
        finally:
            await coordinator.close()

    asyncio.run(scenario())


def test_metrics_reach_the_loop(coordinator):
    async def scenario():
        await coordinator.start()
        updates = coordinator.subscribe()
        try:
            assert await coordinator.start_pose_detection() is True
            assert await eventually(lambda: coordinator.latest_metrics() is not None)

            metrics = coordinator.latest_metrics()
            assert metrics.stance_width == pytest.approx(0.16)
            assert coordinator.snapshot().metrics == metrics

            events = []
            while not updates.empty():
                events.append(updates.get_nowait()[0])
            assert "pipeline" in events
            assert "metrics" in events
        finally:
            await coordinator.close()

    asyncio.run(scenario())


def test_stop_clears_metrics_and_releases_device(coordinator):
    async def scenario():
        await coordinator.start()
        try:
            await coordinator.start_pose_detection()
            assert await eventually(lambda: coordinator.latest_metrics() is not None)

            assert await coordinator.stop_pose_detection() is True
            assert coordinator.latest_metrics() is None
            assert coordinator.snapshot().pipeline.state is PipelineState.STOPPED
            assert held_device() is None

            # Metrics still in flight when stopping are not applied
            await asyncio.sleep(0.05)
            assert coordinator.latest_metrics() is None
        finally:
            await coordinator.close()

    asyncio.run(scenario())


def test_second_start_is_a_no_op(make_pipeline):
    resources = ResourceFactory()
    coordinator = SetupCoordinator(pipeline=make_pipeline(resource_factory=resources))

    async def scenario():
        await coordinator.start()
        try:
            assert await coordinator.start_pose_detection() is True
            assert await coordinator.start_pose_detection() is False
            assert resources.calls == 1
        finally:
            await coordinator.close()

    asyncio.run(scenario())


def test_pose_detection_independent_of_calibration(coordinator):
    async def scenario():
        await coordinator.start()
        try:
            await coordinator.start_pose_detection()
            await coordinator.handle_tap(HOLE)
            await coordinator.handle_tap(BALL)
            await coordinator.lock_setup()
            assert coordinator.pipeline.is_running

            await coordinator.reset()
            assert coordinator.pipeline.is_running
        finally:
            await coordinator.close()

    asyncio.run(scenario())


def test_unavailable_device_propagates(make_pipeline):
    coordinator = SetupCoordinator(
        pipeline=make_pipeline(resource_factory=ResourceFactory(fail_open=True))
    )

    async def scenario():
        await coordinator.start()
        try:
            with pytest.raises(CaptureUnavailable):
                await coordinator.start_pose_detection()
            assert not coordinator.pipeline.is_running
        finally:
            await coordinator.close()

    asyncio.run(scenario())


def test_close_releases_device(make_pipeline):
    coordinator = SetupCoordinator(pipeline=make_pipeline())

    async def scenario():
        await coordinator.start()
        await coordinator.start_pose_detection()
        await coordinator.close()

    asyncio.run(scenario())

    assert held_device() is None
    assert not coordinator.is_started


def test_commands_require_start(coordinator):
    with pytest.raises(RuntimeError):
        asyncio.run(coordinator.reset())


def test_non_finite_tap_is_rejected(coordinator):
    async def scenario():
        await coordinator.start()
        try:
            with pytest.raises(InvalidPosition):
                await coordinator.handle_tap(SpatialPoint(float("nan"), 0.0, 0.0))
            assert coordinator.calibration_snapshot().state is CalibrationState.IDLE
        finally:
            await coordinator.close()

    asyncio.run(scenario())
