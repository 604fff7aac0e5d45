"""Facial landmark tracker adapters producing per-frame detection results."""

from __future__ import annotations

from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any

import numpy as np
from loguru import logger

from facerig.vtuber.errors import TrackerFailure
from facerig.vtuber.types import DetectionResult, ExpressionScore


class FaceTracker(ABC):
    """
    Tracker interface used by the frame loop.

    Implementations take an RGB frame (H, W, 3 uint8) with its timestamp and
    return the detection for the first tracked face.
    """

    @abstractmethod
    def detect(self, frame: Any, timestamp_ms: int) -> DetectionResult: ...

    def close(self) -> None:
        return None


class MediaPipeFaceTracker(FaceTracker):
    """MediaPipe Tasks FaceLandmarker in VIDEO mode with blendshapes and transforms enabled."""

    def __init__(
        self,
        model_path: str | Path,
        delegate: str = "gpu",
        num_faces: int = 1,
        min_detection_confidence: float = 0.5,
        min_presence_confidence: float = 0.5,
        min_tracking_confidence: float = 0.5,
    ):
        try:
            import mediapipe as mp
            from mediapipe.tasks import python as mp_tasks
            from mediapipe.tasks.python import vision
        except Exception as e:
            raise TrackerFailure(
                "MediaPipe is not installed. Install it with: pip install mediapipe"
            ) from e

        path = Path(model_path)
        if not path.exists():
            raise TrackerFailure(f"Face landmarker model not found: {path}")

        delegates = mp_tasks.BaseOptions.Delegate
        base_options = mp_tasks.BaseOptions(
            model_asset_path=str(path),
            delegate=delegates.GPU if delegate.lower() == "gpu" else delegates.CPU,
        )
        options = vision.FaceLandmarkerOptions(
            base_options=base_options,
            running_mode=vision.RunningMode.VIDEO,
            num_faces=int(num_faces),
            min_face_detection_confidence=float(min_detection_confidence),
            min_face_presence_confidence=float(min_presence_confidence),
            min_tracking_confidence=float(min_tracking_confidence),
            output_face_blendshapes=True,
            output_facial_transformation_matrixes=True,
        )
        try:
            self._landmarker = vision.FaceLandmarker.create_from_options(options)
        except Exception as e:
            raise TrackerFailure(f"Failed to create face landmarker: {e}") from e

        self._mp = mp
        self._last_timestamp_ms = -1
        logger.info(f"vtuber.face_tracker.init model_path={path} delegate={delegate}")

    def detect(self, frame: Any, timestamp_ms: int) -> DetectionResult:
        # VIDEO mode rejects timestamps that do not strictly increase.
        timestamp_ms = max(int(timestamp_ms), self._last_timestamp_ms + 1)
        self._last_timestamp_ms = timestamp_ms

        try:
            image = self._mp.Image(
                image_format=self._mp.ImageFormat.SRGB,
                data=np.ascontiguousarray(frame),
            )
            result = self._landmarker.detect_for_video(image, timestamp_ms)
        except Exception as e:
            raise TrackerFailure(f"detect_for_video failed: {e}") from e

        return result_to_detection(result, timestamp_ms)

    def close(self) -> None:
        landmarker = getattr(self, "_landmarker", None)
        if landmarker is not None:
            landmarker.close()
            self._landmarker = None


def result_to_detection(result: Any, timestamp_ms: int = 0) -> DetectionResult:
    """
    Convert a FaceLandmarkerResult into a DetectionResult for the first face.

    Raises:
        TrackerFailure: If the result is present but malformed
    """
    if result is None:
        return DetectionResult.empty(timestamp_ms)

    matrices = getattr(result, "facial_transformation_matrixes", None) or []
    blendshapes = getattr(result, "face_blendshapes", None) or []

    transform = None
    expressions = None
    try:
        if len(matrices) > 0:
            transform = np.asarray(matrices[0], dtype=np.float64)
        if len(blendshapes) > 0:
            expressions = tuple(
                ExpressionScore(name=str(category.category_name), score=float(category.score))
                for category in blendshapes[0]
            )
    except (AttributeError, TypeError, ValueError) as e:
        raise TrackerFailure(f"malformed landmarker result: {e}") from e

    return DetectionResult(transform=transform, expressions=expressions, timestamp_ms=timestamp_ms)
