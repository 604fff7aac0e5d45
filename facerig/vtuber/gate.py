"""Calibration gate deciding whether tracker output may touch the rig."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable

from loguru import logger

from facerig.vtuber.pose import extract_pose
from facerig.vtuber.retarget import RetargetMap
from facerig.vtuber.types import DetectionResult, InfluenceVector, Pose


class CalibrationPhase(Enum):
    CALIBRATING = "calibrating"
    TRACKING = "tracking"


class DecisionKind(Enum):
    SUPPRESS = "suppress"
    HIDE = "hide"
    APPLY = "apply"


@dataclass
class CalibrationState:
    """
    Shared calibration state.

    The countdown task is the only writer; the frame loop only reads it.
    """

    phase: CalibrationPhase = CalibrationPhase.CALIBRATING
    remaining_ticks: int = 3

    @classmethod
    def start(cls, ticks: int) -> CalibrationState:
        ticks = max(0, int(ticks))
        if ticks == 0:
            return cls(phase=CalibrationPhase.TRACKING, remaining_ticks=0)
        return cls(phase=CalibrationPhase.CALIBRATING, remaining_ticks=ticks)

    @property
    def is_tracking(self) -> bool:
        return self.phase is CalibrationPhase.TRACKING


@dataclass(frozen=True)
class GateDecision:
    kind: DecisionKind
    pose: Pose | None = None
    influences: InfluenceVector = field(default_factory=dict)

    @classmethod
    def suppress(cls) -> GateDecision:
        return cls(DecisionKind.SUPPRESS)

    @classmethod
    def hide(cls) -> GateDecision:
        return cls(DecisionKind.HIDE)

    @classmethod
    def apply(cls, pose: Pose, influences: InfluenceVector) -> GateDecision:
        return cls(DecisionKind.APPLY, pose=pose, influences=influences)

    @property
    def visible(self) -> bool | None:
        """Rig visibility this decision requires, or None when the rig is left alone."""
        if self.kind is DecisionKind.SUPPRESS:
            return None
        return self.kind is DecisionKind.APPLY


def _notify(on_countdown: Callable[[int], None] | None, seconds_remaining: int) -> None:
    if on_countdown is None:
        return
    try:
        on_countdown(seconds_remaining)
    except Exception as e:
        logger.error(f"vtuber.gate.run_calibration countdown_display_error={e} seconds_remaining={seconds_remaining}")


def tick(state: CalibrationState) -> CalibrationState:
    """Advance the countdown by one tick; reaching zero switches to tracking for good."""
    if state.is_tracking:
        return state
    remaining = max(0, state.remaining_ticks - 1)
    if remaining == 0:
        # Count first so a reader never sees TRACKING with ticks left.
        state.remaining_ticks = 0
        state.phase = CalibrationPhase.TRACKING
        logger.info("vtuber.gate.tick phase=tracking")
    else:
        state.remaining_ticks = remaining
        logger.debug(f"vtuber.gate.tick remaining_ticks={remaining}")
    return state


def gate(
    state: CalibrationState,
    detection: DetectionResult,
    retarget_map: RetargetMap,
    fixed_scale: float,
    fixed_depth: float,
) -> GateDecision:
    """
    Decide what one detection does to the rig.

    Raises:
        DecompositionFailure: If the detection's transform cannot be decomposed
    """
    if not state.is_tracking:
        return GateDecision.suppress()
    if not detection.has_face:
        return GateDecision.hide()

    pose = extract_pose(detection.transform, fixed_scale, fixed_depth)
    return GateDecision.apply(pose, retarget_map.retarget(detection.expressions))


class TrackingGate:
    """Owns the calibration state and the pose/retarget settings used by gate()."""

    def __init__(
        self,
        calibration_ticks: int = 3,
        tick_seconds: float = 1.0,
        fixed_scale: float = 4.0,
        fixed_depth: float = -2.5,
        retarget_map: RetargetMap | None = None,
    ):
        self.state = CalibrationState.start(calibration_ticks)
        self.calibration_ticks = max(0, int(calibration_ticks))
        self.tick_seconds = tick_seconds
        self.fixed_scale = fixed_scale
        self.fixed_depth = fixed_depth
        self.retarget_map = retarget_map or RetargetMap()

    @property
    def phase(self) -> CalibrationPhase:
        return self.state.phase

    @property
    def is_tracking(self) -> bool:
        return self.state.is_tracking

    def tick(self) -> CalibrationState:
        return tick(self.state)

    def gate(self, detection: DetectionResult) -> GateDecision:
        return gate(
            self.state,
            detection,
            self.retarget_map,
            self.fixed_scale,
            self.fixed_depth,
        )

    async def run_calibration(
        self,
        on_countdown: Callable[[int], None] | None = None,
        sleep: Callable[[float], object] = asyncio.sleep,
    ) -> CalibrationState:
        """
        Count down the calibration ticks, one every ``tick_seconds``.

        Args:
            on_countdown: Receives the seconds remaining before each tick and 0 once calibrated
                (display errors are logged and do not stop the countdown)
            sleep: Awaitable sleep, swapped out in tests

        Returns:
            The final (tracking) calibration state
        """
        logger.info(f"vtuber.gate.run_calibration ticks={self.state.remaining_ticks}")
        while not self.state.is_tracking:
            _notify(on_countdown, self.state.remaining_ticks)
            await sleep(self.tick_seconds)
            self.tick()
        _notify(on_countdown, 0)
        logger.info("vtuber.gate.run_calibration calibrated")
        return self.state

    def end_calibration(self) -> CalibrationState:
        """Force tracking, used when startup aborts mid-countdown."""
        self.state.remaining_ticks = 0
        self.state.phase = CalibrationPhase.TRACKING
        return self.state
