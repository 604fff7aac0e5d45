"""End-to-end tracking session: camera, tracker, calibration and frame loop."""

from __future__ import annotations

import asyncio
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any

from loguru import logger

from facerig.config.schema import FaceRigConfig
from facerig.telemetry.metrics import calibration_remaining
from facerig.vtuber.avatar import AvatarController
from facerig.vtuber.errors import CameraUnavailable
from facerig.vtuber.face_tracker import FaceTracker, MediaPipeFaceTracker
from facerig.vtuber.frame_loop import FrameLoop
from facerig.vtuber.gate import TrackingGate
from facerig.vtuber.retarget import RetargetMap
from facerig.vtuber.status import StatusBoard, StatusState
from facerig.vtuber.video import CameraFrameSource


@dataclass
class SessionResult:
    frames: int = 0
    frames_applied: int = 0
    errors: int = 0
    status: StatusBoard = field(default_factory=StatusBoard)
    rig: dict[str, Any] = field(default_factory=dict)


def build_gate(config: FaceRigConfig) -> TrackingGate:
    return TrackingGate(
        calibration_ticks=config.calibration.ticks,
        tick_seconds=config.calibration.tick_seconds,
        fixed_scale=config.pose.fixed_scale,
        fixed_depth=config.pose.fixed_depth,
        retarget_map=RetargetMap(config.retarget.gains),
    )


def build_tracker(config: FaceRigConfig) -> FaceTracker:
    tracker_cfg = config.tracker
    return MediaPipeFaceTracker(
        model_path=tracker_cfg.model_path,
        delegate=tracker_cfg.delegate,
        num_faces=tracker_cfg.num_faces,
        min_detection_confidence=tracker_cfg.min_detection_confidence,
        min_presence_confidence=tracker_cfg.min_presence_confidence,
        min_tracking_confidence=tracker_cfg.min_tracking_confidence,
    )


class TrackingSession:
    """
    Runs the startup sequence and then tracks until the frame source ends.

    Startup order: attach the rig, open the camera, build the tracker, start
    the frame loop, then count down calibration alongside it.
    """

    def __init__(
        self,
        config: FaceRigConfig | None = None,
        avatar: AvatarController | None = None,
        status: StatusBoard | None = None,
        camera_factory: Callable[[FaceRigConfig], Any] | None = None,
        tracker_factory: Callable[[FaceRigConfig], FaceTracker] | None = None,
        sleep: Callable[[float], Any] = asyncio.sleep,
    ):
        self.config = config or FaceRigConfig()
        self.avatar = avatar or AvatarController()
        self.status = status or StatusBoard()
        self.gate = build_gate(self.config)
        self._camera_factory = camera_factory or self._default_camera
        self._tracker_factory = tracker_factory or build_tracker
        self._sleep = sleep
        self.frame_loop: FrameLoop | None = None

    @staticmethod
    def _default_camera(config: FaceRigConfig) -> CameraFrameSource:
        camera = config.camera
        return CameraFrameSource(
            camera.index,
            camera.width,
            camera.height,
            max_dropped_frames=camera.max_dropped_frames,
            retry_seconds=camera.retry_seconds,
        )

    def _on_countdown(self, seconds_remaining: int) -> None:
        calibration_remaining.set(seconds_remaining)
        self.status.show_countdown(seconds_remaining)

    def _open_camera(self) -> Any:
        self.status.set_status("Requesting camera...")
        camera = self._camera_factory(self.config)
        try:
            camera.open()
        except CameraUnavailable as e:
            logger.error(f"vtuber.session.open_camera error={e}")
            self.status.set_status("Camera permission denied or failed", StatusState.ERROR)
            raise
        self.status.set_status("Calibrating camera...")
        logger.info("vtuber.session.open_camera camera acquired")
        return camera

    async def _calibrate(self) -> None:
        await self.gate.run_calibration(self._on_countdown, sleep=self._sleep)
        self.status.hide_overlay()
        logger.info("vtuber.session.run face tracking started")
        self.status.set_status("Ready - Face the camera", StatusState.SUCCESS)

    async def _finish_calibration(self, task: asyncio.Task) -> None:
        """Cancel the countdown if it is still running and collect its outcome."""
        if not task.done():
            task.cancel()
            self.status.hide_overlay()
        (outcome,) = await asyncio.gather(task, return_exceptions=True)
        if isinstance(outcome, BaseException) and not isinstance(outcome, asyncio.CancelledError):
            logger.error(f"vtuber.session.run calibration_error={outcome!r}")
            self.status.hide_overlay()

    async def run(self, max_frames: int | None = None) -> SessionResult:
        camera = None
        tracker: FaceTracker | None = None
        calibration_task: asyncio.Task | None = None
        try:
            self.status.set_status("Initializing...")
            if not self.avatar.is_attached:
                self.avatar.load_model(self.config.rig.model_path)

            camera = self._open_camera()

            self.status.set_status("Loading MediaPipe...")
            tracker = self._tracker_factory(self.config)
            logger.info("vtuber.session.run face tracker loaded")

            self.frame_loop = FrameLoop(tracker, self.avatar, self.gate, self.status)
            self.status.set_status("Calibrating - position your face")
            calibration_task = asyncio.create_task(self._calibrate())
            await self.frame_loop.run(camera.frames(), max_frames)
        except Exception as e:
            logger.error(f"vtuber.session.run failed error={e}")
            self.status.set_status(f"Failed: {e}", StatusState.ERROR)
            self.status.hide_overlay()
            self.gate.end_calibration()
            raise
        finally:
            if calibration_task is not None:
                await self._finish_calibration(calibration_task)
            if tracker is not None:
                tracker.close()
            if camera is not None:
                camera.close()

        return SessionResult(
            frames=self.frame_loop.frames_seen,
            frames_applied=self.frame_loop.frames_applied,
            errors=self.frame_loop.errors,
            status=self.status,
            rig=self.avatar.snapshot(),
        )


async def run_session(
    config: FaceRigConfig | None = None,
    max_frames: int | None = None,
    **kwargs: Any,
) -> SessionResult:
    """Convenience wrapper that builds and runs a TrackingSession."""
    session = TrackingSession(config=config, **kwargs)
    return await session.run(max_frames=max_frames)
