"""User-facing status line, calibration overlay and in-memory log viewer."""

from __future__ import annotations

import sys
from collections import deque
from dataclasses import dataclass
from enum import Enum

from loguru import logger

LOG_FORMAT = "[{time:YYYY-MM-DDTHH:mm:ss.SSS!UTC}Z] [{level}] {message}"


class StatusState(Enum):
    LOADING = "loading"
    SUCCESS = "success"
    ERROR = "error"


@dataclass
class StatusBoard:
    """Current status text plus the calibration overlay."""

    text: str = ""
    state: StatusState = StatusState.LOADING
    overlay_visible: bool = False
    overlay_text: str = ""
    countdown: str = ""

    def set_status(self, text: str, state: StatusState = StatusState.LOADING) -> None:
        self.text = text
        self.state = state
        logger.debug(f"vtuber.status.set_status state={state.value} text={text!r}")

    def show_countdown(self, seconds_remaining: int) -> None:
        """Update the calibration overlay; zero means calibration finished."""
        self.overlay_visible = True
        if seconds_remaining > 0:
            self.overlay_text = "Position your face in the frame"
            self.countdown = str(seconds_remaining)
        else:
            self.overlay_text = "Calibrated!"
            self.countdown = ""

    def hide_overlay(self) -> None:
        self.overlay_visible = False


class LogBuffer:
    """Bounded loguru sink keeping formatted lines for display or copying."""

    def __init__(self, max_entries: int = 1000):
        self._entries: deque[str] = deque(maxlen=max_entries)
        self._sink_id: int | None = None

    def write(self, message: str) -> None:
        self._entries.append(str(message).rstrip("\n"))

    def entries(self) -> list[str]:
        return list(self._entries)

    def dump(self) -> str:
        return "\n".join(self._entries) if self._entries else "No logs yet."

    def clear(self) -> None:
        self._entries.clear()

    def attach(self, level: str = "INFO") -> int:
        if self._sink_id is None:
            self._sink_id = logger.add(self.write, level=level, format=LOG_FORMAT)
        return self._sink_id

    def detach(self) -> None:
        if self._sink_id is not None:
            logger.remove(self._sink_id)
            self._sink_id = None


def configure_logging(level: str = "INFO", buffer: LogBuffer | None = None) -> LogBuffer | None:
    """Route loguru to stderr at ``level`` and optionally into ``buffer``."""
    if buffer is not None:
        buffer.detach()
    logger.remove()
    logger.add(sys.stderr, level=level)
    if buffer is not None:
        buffer.attach(level)
    return buffer
