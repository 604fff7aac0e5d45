"""Error taxonomy for the tracking-to-rig pipeline."""

from __future__ import annotations


class FaceRigError(Exception):
    """Base class for facerig errors."""


class TrackerFailure(FaceRigError):
    """Raised when the landmark tracker fails or returns malformed data."""


class DecompositionFailure(FaceRigError):
    """Raised when a transformation matrix cannot be decomposed."""


class RigUnavailable(FaceRigError):
    """Raised when the rig is written to before a model is attached."""


class CameraUnavailable(FaceRigError):
    """Raised when the video device cannot be opened or read."""
