"""Per-frame driver: tracker -> gate -> rig."""

from __future__ import annotations

import asyncio
from collections.abc import AsyncIterable
from typing import Any

from loguru import logger

from facerig.telemetry.metrics import (
    detection_duration,
    frame_errors,
    frames_processed,
    rig_visible,
    track_duration,
)
from facerig.vtuber.avatar import RigHandle
from facerig.vtuber.errors import DecompositionFailure, RigUnavailable, TrackerFailure
from facerig.vtuber.face_tracker import FaceTracker
from facerig.vtuber.gate import DecisionKind, GateDecision, TrackingGate
from facerig.vtuber.status import StatusBoard, StatusState
from facerig.vtuber.types import DetectionResult


class FrameLoop:
    """
    Pulls one detection per video frame and pushes the gated result to the rig.

    Tracker, decomposition and missing-rig errors are recovered by treating
    the frame as having no detection; a bad frame never ends the loop.
    """

    def __init__(
        self,
        tracker: FaceTracker,
        rig: RigHandle,
        gate: TrackingGate | None = None,
        status: StatusBoard | None = None,
    ):
        self.tracker = tracker
        self.rig = rig
        self.gate = gate or TrackingGate()
        self.status = status
        self.frames_seen = 0
        self.frames_applied = 0
        self.errors = 0
        self.last_decision: GateDecision | None = None
        self._rig_ever_shown = False
        self._running = False

    @property
    def is_running(self) -> bool:
        return self._running

    def _rig_attached(self) -> bool:
        return bool(getattr(self.rig, "is_attached", self.rig is not None))

    @track_duration(detection_duration)
    def _detect(self, frame: Any, timestamp_ms: int) -> DetectionResult:
        try:
            result = self.tracker.detect(frame, timestamp_ms)
        except TrackerFailure:
            raise
        except Exception as e:
            raise TrackerFailure(str(e) or type(e).__name__) from e
        if not isinstance(result, DetectionResult):
            raise TrackerFailure(f"tracker returned {type(result).__name__}, expected DetectionResult")
        return result

    def _record_failure(self, kind: str, error: Exception, timestamp_ms: int) -> None:
        self.errors += 1
        frame_errors.labels(kind=kind).inc()
        logger.error(
            f"vtuber.frame_loop.process_frame error={kind} "
            f"timestamp_ms={timestamp_ms} detail={error}"
        )
        if self.status is not None and not self._rig_ever_shown and self.frames_applied == 0:
            self.status.set_status("Face detection error", StatusState.ERROR)

    async def process_frame(self, frame: Any, timestamp_ms: int) -> GateDecision:
        """
        Run one frame through the pipeline.

        Returns:
            The gate decision that was applied to the rig
        """
        self.frames_seen += 1
        attached = self._rig_attached()

        if not attached:
            self._record_failure("rig_unavailable", RigUnavailable("no avatar model attached"), timestamp_ms)
            detection = DetectionResult.empty(timestamp_ms)
        else:
            try:
                detection = await asyncio.to_thread(self._detect, frame, timestamp_ms)
            except TrackerFailure as e:
                self._record_failure("tracker_failure", e, timestamp_ms)
                detection = DetectionResult.empty(timestamp_ms)

        try:
            decision = self.gate.gate(detection)
        except DecompositionFailure as e:
            self._record_failure("decomposition_failure", e, timestamp_ms)
            decision = self.gate.gate(DetectionResult.empty(timestamp_ms))

        if attached:
            try:
                self._push(decision)
            except RigUnavailable as e:
                self._record_failure("rig_unavailable", e, timestamp_ms)

        frames_processed.labels(decision=decision.kind.value).inc()
        self.last_decision = decision
        logger.debug(
            f"vtuber.frame_loop.process_frame timestamp_ms={timestamp_ms} "
            f"decision={decision.kind.value}"
        )
        return decision

    def _push(self, decision: GateDecision) -> None:
        if decision.kind is DecisionKind.SUPPRESS:
            return
        if decision.kind is DecisionKind.HIDE:
            self.rig.set_visible(False)
            rig_visible.set(0)
            return

        self.rig.set_pose(decision.pose)
        for name, value in decision.influences.items():
            self.rig.set_influence(name, value)
        self.rig.set_visible(True)
        rig_visible.set(1)
        self.frames_applied += 1
        if not self._rig_ever_shown:
            self._rig_ever_shown = True
            logger.info("vtuber.frame_loop.process_frame rig_shown=first")

    async def run(
        self,
        frames: AsyncIterable[tuple[Any, int]],
        max_frames: int | None = None,
    ) -> int:
        """
        Drive process_frame once per frame until the source ends or stop() is called.

        Returns:
            Number of frames processed
        """
        self._running = True
        processed = 0
        logger.info("vtuber.frame_loop.run started")
        try:
            async for frame, timestamp_ms in frames:
                if not self._running:
                    break
                await self.process_frame(frame, timestamp_ms)
                processed += 1
                if max_frames is not None and processed >= max_frames:
                    break
        finally:
            self._running = False
            logger.info(
                f"vtuber.frame_loop.run stopped frames={processed} "
                f"applied={self.frames_applied} errors={self.errors}"
            )
        return processed

    def stop(self) -> None:
        self._running = False
