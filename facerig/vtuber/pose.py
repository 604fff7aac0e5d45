"""Head pose extraction from the tracker's facial transformation matrix."""

from __future__ import annotations

from typing import Any

import numpy as np

from facerig.vtuber.errors import DecompositionFailure
from facerig.vtuber.types import Pose

_EPSILON = 1e-9


def decompose(transform: Any) -> tuple[np.ndarray, np.ndarray, np.ndarray]:
    """
    Split a 4x4 affine matrix into translation, rotation and scale.

    Args:
        transform: 4x4 matrix (column vectors, translation in the last column)
            or its 16 values flattened column-major

    Returns:
        (translation xyz, quaternion xyzw, scale xyz)

    Raises:
        DecompositionFailure: If the matrix is not a finite 4x4 with non-degenerate axes
    """
    try:
        matrix = np.asarray(transform, dtype=np.float64)
    except (TypeError, ValueError) as e:
        raise DecompositionFailure(f"transform is not numeric: {e}") from e

    if matrix.shape == (16,):
        # Flat data is column-major, as in MediaPipe Tasks JS and three.js.
        matrix = matrix.reshape(4, 4, order="F")
    if matrix.shape != (4, 4):
        raise DecompositionFailure(f"expected a 4x4 matrix, got shape {matrix.shape}")
    if not np.all(np.isfinite(matrix)):
        raise DecompositionFailure("transform contains non-finite values")

    basis = matrix[:3, :3]
    scale = np.linalg.norm(basis, axis=0)
    if np.any(scale < _EPSILON):
        raise DecompositionFailure(f"degenerate axis scale {scale.tolist()}")
    if np.linalg.det(basis) < 0:
        scale[0] = -scale[0]

    rotation = basis / scale
    translation = matrix[:3, 3].copy()
    return translation, rotation_to_quaternion(rotation), scale


def rotation_to_quaternion(rotation: np.ndarray) -> np.ndarray:
    """Convert a 3x3 rotation matrix to a unit quaternion (x, y, z, w)."""
    m = rotation
    trace = m[0, 0] + m[1, 1] + m[2, 2]

    if trace > 0:
        s = 0.5 / np.sqrt(trace + 1.0)
        quat = np.array([
            (m[2, 1] - m[1, 2]) * s,
            (m[0, 2] - m[2, 0]) * s,
            (m[1, 0] - m[0, 1]) * s,
            0.25 / s,
        ])
    elif m[0, 0] > m[1, 1] and m[0, 0] > m[2, 2]:
        s = 2.0 * np.sqrt(1.0 + m[0, 0] - m[1, 1] - m[2, 2])
        quat = np.array([
            0.25 * s,
            (m[0, 1] + m[1, 0]) / s,
            (m[0, 2] + m[2, 0]) / s,
            (m[2, 1] - m[1, 2]) / s,
        ])
    elif m[1, 1] > m[2, 2]:
        s = 2.0 * np.sqrt(1.0 + m[1, 1] - m[0, 0] - m[2, 2])
        quat = np.array([
            (m[0, 1] + m[1, 0]) / s,
            0.25 * s,
            (m[1, 2] + m[2, 1]) / s,
            (m[0, 2] - m[2, 0]) / s,
        ])
    else:
        s = 2.0 * np.sqrt(1.0 + m[2, 2] - m[0, 0] - m[1, 1])
        quat = np.array([
            (m[0, 2] + m[2, 0]) / s,
            (m[1, 2] + m[2, 1]) / s,
            0.25 * s,
            (m[1, 0] - m[0, 1]) / s,
        ])

    norm = np.linalg.norm(quat)
    if not np.isfinite(norm) or norm < _EPSILON:
        raise DecompositionFailure("rotation block does not yield a unit quaternion")
    return quat / norm


def extract_pose(transform: Any, fixed_scale: float, fixed_depth: float) -> Pose:
    """
    Project a tracked transform onto the fixed on-screen pose.

    Only the rotation is carried over. The rig sits at (0, 0, fixed_depth) with
    a uniform ``fixed_scale``; tracked translation and scale are discarded.
    """
    _, quaternion, _ = decompose(transform)
    return Pose(
        position=(0.0, 0.0, float(fixed_depth)),
        rotation=tuple(float(v) for v in quaternion),
        scale=float(fixed_scale),
    )
