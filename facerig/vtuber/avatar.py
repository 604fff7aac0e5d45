"""Avatar rig handle written to by the tracking pipeline."""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from pathlib import Path
from time import monotonic
from typing import Any, Protocol, runtime_checkable

from loguru import logger

from facerig.vtuber.errors import RigUnavailable
from facerig.vtuber.types import Pose

# ARKit-style blendshape names emitted by MediaPipe's face landmarker.
ARKIT_BLENDSHAPES: tuple[str, ...] = (
    "_neutral",
    "browDownLeft",
    "browDownRight",
    "browInnerUp",
    "browOuterUpLeft",
    "browOuterUpRight",
    "cheekPuff",
    "cheekSquintLeft",
    "cheekSquintRight",
    "eyeBlinkLeft",
    "eyeBlinkRight",
    "eyeLookDownLeft",
    "eyeLookDownRight",
    "eyeLookInLeft",
    "eyeLookInRight",
    "eyeLookOutLeft",
    "eyeLookOutRight",
    "eyeLookUpLeft",
    "eyeLookUpRight",
    "eyeSquintLeft",
    "eyeSquintRight",
    "eyeWideLeft",
    "eyeWideRight",
    "jawForward",
    "jawLeft",
    "jawOpen",
    "jawRight",
    "mouthClose",
    "mouthDimpleLeft",
    "mouthDimpleRight",
    "mouthFrownLeft",
    "mouthFrownRight",
    "mouthFunnel",
    "mouthLeft",
    "mouthLowerDownLeft",
    "mouthLowerDownRight",
    "mouthPressLeft",
    "mouthPressRight",
    "mouthPucker",
    "mouthRight",
    "mouthRollLower",
    "mouthRollUpper",
    "mouthShrugLower",
    "mouthShrugUpper",
    "mouthSmileLeft",
    "mouthSmileRight",
    "mouthStretchLeft",
    "mouthStretchRight",
    "mouthUpperUpLeft",
    "mouthUpperUpRight",
    "noseSneerLeft",
    "noseSneerRight",
)


@runtime_checkable
class RigHandle(Protocol):
    """Write target for pose, morph-target influences and visibility."""

    def set_pose(self, pose: Pose) -> None: ...

    def set_influence(self, name: str, value: float) -> None: ...

    def set_visible(self, visible: bool) -> None: ...


@dataclass(slots=True)
class AvatarState:
    """Runtime rig state consumed by renderers and stream outputs."""

    model_path: str | None = None
    visible: bool = False
    pose: Pose | None = None
    morph_targets: dict[str, int] = field(default_factory=dict)
    influences: list[float] = field(default_factory=list)
    updated_at: float = field(default_factory=monotonic)


class AvatarController:
    """Holds avatar rig state; owns no tracking logic."""

    def __init__(self, enable_streaming: bool = True):
        self.enable_streaming = enable_streaming
        self.state = AvatarState()

    @property
    def is_attached(self) -> bool:
        return self.state.model_path is not None

    @property
    def visible(self) -> bool:
        return self.state.visible

    @property
    def pose(self) -> Pose | None:
        return self.state.pose

    def load_model(self, model_path: str, morph_targets: Iterable[str] = ARKIT_BLENDSHAPES) -> AvatarState:
        """
        Attach a rig model, replacing any previously loaded one.

        The rig starts hidden until the first applied frame.
        """
        if not model_path:
            raise RigUnavailable("rig model_path is required")
        names = list(dict.fromkeys(morph_targets))
        self.state = AvatarState(
            model_path=str(Path(model_path)),
            morph_targets={name: index for index, name in enumerate(names)},
            influences=[0.0] * len(names),
        )
        logger.info(
            f"vtuber.avatar.load_model model_path={self.state.model_path} "
            f"morph_targets={len(names)}"
        )
        return self.state

    def _require_model(self) -> None:
        if not self.is_attached:
            raise RigUnavailable("no avatar model attached")

    def set_pose(self, pose: Pose) -> None:
        self._require_model()
        self.state.pose = pose
        self.state.updated_at = monotonic()

    def set_influence(self, name: str, value: float) -> None:
        """Write one morph-target influence; names the rig does not declare are ignored."""
        self._require_model()
        index = self.state.morph_targets.get(name)
        if index is None:
            return
        self.state.influences[index] = float(value)
        self.state.updated_at = monotonic()

    def set_visible(self, visible: bool) -> None:
        self._require_model()
        self.state.visible = bool(visible)
        self.state.updated_at = monotonic()

    def update_blendshapes(self, influences: Mapping[str, float]) -> None:
        for name, value in influences.items():
            self.set_influence(name, value)

    def influence(self, name: str) -> float | None:
        index = self.state.morph_targets.get(name)
        if index is None:
            return None
        return self.state.influences[index]

    def influences(self) -> dict[str, float]:
        return {name: self.state.influences[index] for name, index in self.state.morph_targets.items()}

    def snapshot(self) -> dict[str, Any]:
        """Return serializable state for renderers and stream bridges."""
        return {
            "model_path": self.state.model_path,
            "visible": self.state.visible,
            "pose": self.state.pose.to_dict() if self.state.pose else None,
            "influences": self.influences(),
            "updated_at": self.state.updated_at,
            "streaming": self.enable_streaming,
        }
