"""Tests for the end-to-end tracking session."""

from __future__ import annotations

import asyncio

import numpy as np
import pytest

from facerig.config.schema import FaceRigConfig
from facerig.vtuber.avatar import AvatarController
from facerig.vtuber.errors import CameraUnavailable, RigUnavailable, TrackerFailure
from facerig.vtuber.face_tracker import FaceTracker
from facerig.vtuber.session import TrackingSession, build_gate, run_session
from facerig.vtuber.status import StatusBoard, StatusState
from facerig.vtuber.types import DetectionResult, ExpressionScore

FULL = DetectionResult(
    transform=np.eye(4),
    expressions=(ExpressionScore("eyeBlinkLeft", 0.5), ExpressionScore("jawOpen", 0.3)),
)


class FakeCamera:
    def __init__(self, count: int = 10, fail_open: bool = False):
        self.count = count
        self.fail_open = fail_open
        self.opened = False
        self.closed = False

    def open(self) -> None:
        if self.fail_open:
            raise CameraUnavailable("Camera 0 could not be opened")
        self.opened = True

    def close(self) -> None:
        self.closed = True

    async def frames(self):
        for index in range(self.count):
            await asyncio.sleep(0.01)
            yield np.zeros((2, 2, 3), dtype=np.uint8), index * 33


class FakeTracker(FaceTracker):
    def __init__(self):
        self.closed = False

    def detect(self, frame, timestamp_ms):
        return FULL

    def close(self) -> None:
        self.closed = True


async def instant_sleep(_seconds):
    await asyncio.sleep(0)


async def endless_sleep(_seconds):
    await asyncio.sleep(3600)


def make_session(camera: FakeCamera, tracker: FaceTracker | None = None, sleep=instant_sleep, **config):
    tracker = tracker or FakeTracker()
    return TrackingSession(
        config=FaceRigConfig(**config),
        avatar=AvatarController(),
        camera_factory=lambda _config: camera,
        tracker_factory=lambda _config: tracker,
        sleep=sleep,
    )


@pytest.mark.asyncio
async def test_session_calibrates_then_tracks():
    camera = FakeCamera(count=10)
    tracker = FakeTracker()
    session = make_session(camera, tracker)

    result = await session.run()

    assert result.frames == 10
    assert result.frames_applied >= 5
    assert result.errors == 0
    assert result.status.text == "Ready - Face the camera"
    assert result.status.state is StatusState.SUCCESS
    assert result.status.overlay_visible is False
    assert result.rig["visible"] is True
    assert result.rig["influences"]["eyeBlinkLeft"] == pytest.approx(0.6)
    assert result.rig["pose"]["position"] == [0.0, 0.0, -2.5]
    assert camera.closed is True
    assert tracker.closed is True


@pytest.mark.asyncio
async def test_rig_never_shown_before_calibration_ends():
    camera = FakeCamera(count=5)
    session = make_session(camera, sleep=endless_sleep)

    result = await session.run()

    assert result.frames == 5
    assert result.frames_applied == 0
    assert result.rig["visible"] is False
    assert result.status.overlay_visible is False


@pytest.mark.asyncio
async def test_camera_failure_reports_status():
    camera = FakeCamera(fail_open=True)
    session = make_session(camera)

    with pytest.raises(CameraUnavailable):
        await session.run()

    assert session.status.text == "Failed: Camera 0 could not be opened"
    assert session.status.state is StatusState.ERROR
    assert session.gate.is_tracking


@pytest.mark.asyncio
async def test_tracker_failure_closes_camera():
    camera = FakeCamera()

    def broken_tracker(_config):
        raise TrackerFailure("Face landmarker model not found: missing.task")

    session = TrackingSession(
        config=FaceRigConfig(),
        camera_factory=lambda _config: camera,
        tracker_factory=broken_tracker,
        sleep=instant_sleep,
    )

    with pytest.raises(TrackerFailure):
        await session.run()

    assert camera.closed is True
    assert session.status.text.startswith("Failed: Face landmarker model not found")


@pytest.mark.asyncio
async def test_run_session_attaches_configured_rig():
    camera = FakeCamera(count=2)
    avatar = AvatarController()

    result = await run_session(
        FaceRigConfig(calibration={"ticks": 0}, rig={"model_path": "assets/fox.glb"}),
        avatar=avatar,
        camera_factory=lambda _config: camera,
        tracker_factory=lambda _config: FakeTracker(),
        sleep=instant_sleep,
    )

    assert result.rig["model_path"].endswith("fox.glb")
    assert result.frames_applied == 2


def test_build_gate_uses_config():
    gate = build_gate(
        FaceRigConfig(
            calibration={"ticks": 5, "tick_seconds": 0.5},
            pose={"fixed_scale": 2.0, "fixed_depth": -4.0},
            retarget={"gains": {"jawOpen": 1.5}},
        )
    )

    assert gate.state.remaining_ticks == 5
    assert gate.tick_seconds == 0.5
    assert gate.fixed_scale == 2.0
    assert gate.fixed_depth == -4.0
    assert gate.retarget_map.gains == {"jawOpen": 1.5}


class BrokenOverlayStatus(StatusBoard):
    def show_countdown(self, seconds_remaining: int) -> None:
        raise RuntimeError("overlay unavailable")


@pytest.mark.asyncio
async def test_countdown_display_failure_does_not_block_tracking():
    camera = FakeCamera(count=10)
    session = TrackingSession(
        config=FaceRigConfig(),
        avatar=AvatarController(),
        status=BrokenOverlayStatus(),
        camera_factory=lambda _config: camera,
        tracker_factory=lambda _config: FakeTracker(),
        sleep=instant_sleep,
    )

    result = await session.run()

    assert session.gate.is_tracking
    assert result.frames_applied >= 5
    assert result.status.text == "Ready - Face the camera"


@pytest.mark.asyncio
async def test_calibration_task_error_is_collected():
    camera = FakeCamera(count=3)
    session = make_session(camera)

    async def failing_calibration():
        raise RuntimeError("countdown crashed")

    session._calibrate = failing_calibration

    result = await session.run()

    assert result.frames == 3
    assert camera.closed is True


@pytest.mark.asyncio
async def test_empty_rig_path_fails_as_rig_unavailable():
    camera = FakeCamera()
    session = make_session(camera, rig={"model_path": ""})

    with pytest.raises(RigUnavailable):
        await session.run()

    assert session.status.state is StatusState.ERROR
    assert camera.opened is False
