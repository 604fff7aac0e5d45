"""Per-frame data exchanged between the tracker, the gate and the rig."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Sequence

InfluenceVector = dict[str, float]


@dataclass(frozen=True, slots=True)
class ExpressionScore:
    """One named blendshape score reported by the tracker."""

    name: str
    score: float


@dataclass(frozen=True, slots=True)
class DetectionResult:
    """
    Tracker output for a single video frame.

    A missing ``transform`` or ``expressions`` means no face was detected.

    Attributes:
        transform: 4x4 facial transformation matrix, translation in the last column
        expressions: Ordered blendshape scores for the tracked face
        timestamp_ms: Timestamp of the video frame the result belongs to
    """

    transform: Any | None = None
    expressions: Sequence[ExpressionScore] | None = None
    timestamp_ms: int = 0

    @property
    def has_face(self) -> bool:
        """Whether both the transform and the expressions are usable."""
        return self.transform is not None and bool(self.expressions)

    @classmethod
    def empty(cls, timestamp_ms: int = 0) -> DetectionResult:
        return cls(timestamp_ms=timestamp_ms)


@dataclass(frozen=True, slots=True)
class Pose:
    """Root transform applied to the rig: position, quaternion (x, y, z, w), uniform scale."""

    position: tuple[float, float, float]
    rotation: tuple[float, float, float, float]
    scale: float

    def to_dict(self) -> dict[str, Any]:
        return {
            "position": list(self.position),
            "rotation": list(self.rotation),
            "scale": self.scale,
        }
