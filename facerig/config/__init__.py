"""Configuration module for facerig."""

from facerig.config.loader import get_config_path, load_config, save_config
from facerig.config.schema import (
    CalibrationConfig,
    CameraConfig,
    FaceRigConfig,
    LoggingConfig,
    MetricsConfig,
    PoseConfig,
    RetargetConfig,
    RigConfig,
    TrackerConfig,
)

__all__ = [
    "FaceRigConfig",
    "CalibrationConfig",
    "PoseConfig",
    "RetargetConfig",
    "TrackerConfig",
    "CameraConfig",
    "RigConfig",
    "LoggingConfig",
    "MetricsConfig",
    "load_config",
    "save_config",
    "get_config_path",
]
