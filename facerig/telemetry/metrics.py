"""Prometheus metrics."""

from __future__ import annotations

import time
from functools import wraps

from prometheus_client import Counter, Gauge, Histogram

frames_processed = Counter(
    "facerig_frames_processed_total",
    "Frames processed by gate decision",
    ["decision"],
)

frame_errors = Counter(
    "facerig_frame_errors_total",
    "Recovered per-frame errors",
    ["kind"],
)

detection_duration = Histogram(
    "facerig_detection_duration_seconds",
    "Landmark detection duration",
    buckets=[0.005, 0.01, 0.02, 0.033, 0.05, 0.1, 0.25],
)

rig_visible = Gauge("facerig_rig_visible", "Whether the avatar rig is currently shown")

calibration_remaining = Gauge(
    "facerig_calibration_remaining_ticks",
    "Calibration ticks left before tracking starts",
)


def track_duration(metric: Histogram):
    def decorator(func):
        @wraps(func)
        def wrapper(*args, **kwargs):
            start = time.perf_counter()
            try:
                return func(*args, **kwargs)
            finally:
                metric.observe(time.perf_counter() - start)

        return wrapper

    return decorator
