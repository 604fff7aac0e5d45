"""Face tracking to avatar rig retargeting."""

from facerig.vtuber.avatar import AvatarController, RigHandle
from facerig.vtuber.errors import (
    CameraUnavailable,
    DecompositionFailure,
    FaceRigError,
    RigUnavailable,
    TrackerFailure,
)
from facerig.vtuber.face_tracker import FaceTracker, MediaPipeFaceTracker
from facerig.vtuber.frame_loop import FrameLoop
from facerig.vtuber.gate import CalibrationPhase, CalibrationState, DecisionKind, GateDecision, TrackingGate
from facerig.vtuber.pose import extract_pose
from facerig.vtuber.retarget import RetargetMap, retarget
from facerig.vtuber.types import DetectionResult, ExpressionScore, InfluenceVector, Pose

__all__ = [
    "AvatarController",
    "RigHandle",
    "FaceTracker",
    "MediaPipeFaceTracker",
    "FrameLoop",
    "TrackingGate",
    "CalibrationPhase",
    "CalibrationState",
    "DecisionKind",
    "GateDecision",
    "RetargetMap",
    "retarget",
    "extract_pose",
    "DetectionResult",
    "ExpressionScore",
    "InfluenceVector",
    "Pose",
    "FaceRigError",
    "TrackerFailure",
    "DecompositionFailure",
    "RigUnavailable",
    "CameraUnavailable",
]
