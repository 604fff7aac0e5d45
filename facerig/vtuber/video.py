"""Video frame sources feeding the frame loop one frame at a time."""

from __future__ import annotations

import asyncio
import time
from collections.abc import AsyncIterator
from typing import Any

from loguru import logger

from facerig.vtuber.errors import CameraUnavailable


class CameraFrameSource:
    """
    Webcam capture through OpenCV.

    Frames are RGB arrays paired with strictly increasing millisecond
    timestamps. The next frame is only read once the consumer asks for it.
    """

    def __init__(
        self,
        index: int = 0,
        width: int = 1280,
        height: int = 720,
        max_dropped_frames: int = 30,
        retry_seconds: float = 0.1,
    ):
        self.index = index
        self.width = width
        self.height = height
        self.max_dropped_frames = max(1, int(max_dropped_frames))
        self.retry_seconds = retry_seconds
        self._capture: Any = None
        self._cv2: Any = None
        self._started_at = 0.0
        self._last_timestamp_ms = -1

    def open(self) -> None:
        try:
            import cv2
        except Exception as e:
            raise CameraUnavailable("OpenCV is not installed. Install it with: pip install opencv-python") from e

        capture = cv2.VideoCapture(self.index)
        if not capture.isOpened():
            capture.release()
            raise CameraUnavailable(f"Camera {self.index} could not be opened")
        capture.set(cv2.CAP_PROP_FRAME_WIDTH, self.width)
        capture.set(cv2.CAP_PROP_FRAME_HEIGHT, self.height)

        self._cv2 = cv2
        self._capture = capture
        self._started_at = time.monotonic()
        logger.info(f"vtuber.video.open index={self.index} size={self.width}x{self.height}")

    def close(self) -> None:
        if self._capture is not None:
            self._capture.release()
            self._capture = None
            logger.info(f"vtuber.video.close index={self.index}")

    def _timestamp_ms(self) -> int:
        now = int((time.monotonic() - self._started_at) * 1000)
        self._last_timestamp_ms = max(now, self._last_timestamp_ms + 1)
        return self._last_timestamp_ms

    def read(self) -> tuple[Any, int] | None:
        """Read one RGB frame, or None when the device dropped it."""
        if self._capture is None or not self._capture.isOpened():
            raise CameraUnavailable(f"Camera {self.index} is not open")
        ok, frame = self._capture.read()
        if not ok or frame is None:
            return None
        return self._cv2.cvtColor(frame, self._cv2.COLOR_BGR2RGB), self._timestamp_ms()

    async def frames(self) -> AsyncIterator[tuple[Any, int]]:
        """
        Yield frames until the capture closes.

        Dropped frames are skipped and retried after ``retry_seconds``.

        Raises:
            CameraUnavailable: After ``max_dropped_frames`` consecutive drops
                or when the device reports it is closed
        """
        dropped = 0
        while self._capture is not None:
            item = await asyncio.to_thread(self.read)
            if item is None:
                dropped += 1
                logger.warning(f"vtuber.video.frames dropped_frame index={self.index} consecutive={dropped}")
                if dropped >= self.max_dropped_frames:
                    raise CameraUnavailable(
                        f"Camera {self.index} stopped delivering frames ({dropped} dropped in a row)"
                    )
                await asyncio.sleep(self.retry_seconds)
                continue
            dropped = 0
            yield item

    def __enter__(self) -> CameraFrameSource:
        self.open()
        return self

    def __exit__(self, *args) -> None:
        self.close()
