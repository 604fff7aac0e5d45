"""Configuration schema for facerig."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from facerig.vtuber.retarget import DEFAULT_GAINS


class CalibrationConfig(BaseModel):
    """Warm-up countdown before tracker output reaches the rig."""

    ticks: int = Field(default=3, ge=0)
    tick_seconds: float = Field(default=1.0, gt=0)


class PoseConfig(BaseModel):
    """Fixed on-screen placement of the rig root."""

    fixed_scale: float = Field(default=4.0, gt=0)
    fixed_depth: float = -2.5


class RetargetConfig(BaseModel):
    gains: dict[str, float] = Field(default_factory=lambda: dict(DEFAULT_GAINS))


class TrackerConfig(BaseModel):
    model_config = ConfigDict(protected_namespaces=())

    model_path: str = "face_landmarker.task"
    delegate: str = Field(default="gpu", pattern="^(gpu|cpu)$")
    num_faces: int = Field(default=1, ge=1)
    min_detection_confidence: float = Field(default=0.5, ge=0.0, le=1.0)
    min_presence_confidence: float = Field(default=0.5, ge=0.0, le=1.0)
    min_tracking_confidence: float = Field(default=0.5, ge=0.0, le=1.0)


class CameraConfig(BaseModel):
    index: int = Field(default=0, ge=0)
    width: int = Field(default=1280, gt=0)
    height: int = Field(default=720, gt=0)
    max_dropped_frames: int = Field(default=30, ge=1)
    retry_seconds: float = Field(default=0.1, ge=0)


class RigConfig(BaseModel):
    model_config = ConfigDict(protected_namespaces=())

    model_path: str = "assets/Watchdog Rigged.glb"


class LoggingConfig(BaseModel):
    level: str = "INFO"
    buffer_size: int = Field(default=1000, ge=1)


class MetricsConfig(BaseModel):
    enabled: bool = False
    port: int = Field(default=9090, ge=1, le=65535)


class FaceRigConfig(BaseSettings):
    """Root configuration; environment overrides use FACERIG_<SECTION>__<FIELD>."""

    calibration: CalibrationConfig = Field(default_factory=CalibrationConfig)
    pose: PoseConfig = Field(default_factory=PoseConfig)
    retarget: RetargetConfig = Field(default_factory=RetargetConfig)
    tracker: TrackerConfig = Field(default_factory=TrackerConfig)
    camera: CameraConfig = Field(default_factory=CameraConfig)
    rig: RigConfig = Field(default_factory=RigConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)
    metrics: MetricsConfig = Field(default_factory=MetricsConfig)

    model_config = SettingsConfigDict(env_prefix="FACERIG_", env_nested_delimiter="__")
