"""Tests for the webcam frame source."""

from __future__ import annotations

import numpy as np
import pytest

from facerig.vtuber.avatar import AvatarController
from facerig.vtuber.errors import CameraUnavailable
from facerig.vtuber.face_tracker import FaceTracker
from facerig.vtuber.frame_loop import FrameLoop
from facerig.vtuber.gate import TrackingGate
from facerig.vtuber.types import DetectionResult, ExpressionScore
from facerig.vtuber.video import CameraFrameSource

FRAME = np.zeros((2, 2, 3), dtype=np.uint8)
FULL = DetectionResult(transform=np.eye(4), expressions=(ExpressionScore("jawOpen", 0.3),))


class FakeCv2:
    COLOR_BGR2RGB = 4

    @staticmethod
    def cvtColor(frame, code):
        return frame


class FakeCapture:
    """Replays scripted read() results; True entries deliver a frame, False drops one."""

    def __init__(self, script: list[bool], opened: bool = True):
        self.script = list(script)
        self.opened = opened
        self.reads = 0

    def isOpened(self) -> bool:
        return self.opened

    def read(self):
        self.reads += 1
        ok = self.script.pop(0) if self.script else True
        return (True, FRAME) if ok else (False, None)

    def release(self) -> None:
        self.opened = False


class StaticTracker(FaceTracker):
    def detect(self, frame, timestamp_ms):
        return FULL


def make_source(capture: FakeCapture, **kwargs) -> CameraFrameSource:
    source = CameraFrameSource(retry_seconds=0.0, **kwargs)
    source._capture = capture
    source._cv2 = FakeCv2
    return source


async def collect(source: CameraFrameSource, count: int) -> list[tuple]:
    items = []
    async for item in source.frames():
        items.append(item)
        if len(items) >= count:
            break
    return items


@pytest.mark.asyncio
async def test_dropped_frame_is_skipped():
    capture = FakeCapture([True, False, True, True])
    source = make_source(capture)

    items = await collect(source, 3)

    assert len(items) == 3
    assert capture.reads == 4
    timestamps = [timestamp for _frame, timestamp in items]
    assert timestamps == sorted(set(timestamps))


@pytest.mark.asyncio
async def test_frame_loop_survives_a_dropped_frame():
    source = make_source(FakeCapture([True, False, True, True, True, True]))
    avatar = AvatarController()
    avatar.load_model("rig.glb")
    loop = FrameLoop(StaticTracker(), avatar, TrackingGate(calibration_ticks=0))

    processed = await loop.run(source.frames(), max_frames=5)

    assert processed == 5
    assert loop.frames_applied == 5


@pytest.mark.asyncio
async def test_too_many_consecutive_drops_raise():
    source = make_source(FakeCapture([False] * 10), max_dropped_frames=3)

    with pytest.raises(CameraUnavailable):
        await collect(source, 1)


@pytest.mark.asyncio
async def test_drop_counter_resets_after_a_frame():
    source = make_source(FakeCapture([False, False, True, False, False, True]), max_dropped_frames=3)

    items = await collect(source, 2)

    assert len(items) == 2


@pytest.mark.asyncio
async def test_closed_device_raises():
    source = make_source(FakeCapture([True], opened=False))

    with pytest.raises(CameraUnavailable):
        await collect(source, 1)


def test_read_without_open_raises():
    with pytest.raises(CameraUnavailable):
        CameraFrameSource().read()
