#!/usr/bin/env python3
"""
Small vector and quaternion helpers shared by the depth pipeline.

Vectors are numpy float64 arrays of shape (3,). Quaternions are (x, y, z, w)
arrays, matching the layout reported by AR plane and pose providers.
"""

import numpy as np
from typing import Sequence

WORLD_UP = np.array([0.0, 1.0, 0.0])
IDENTITY_ROTATION = np.array([0.0, 0.0, 0.0, 1.0])


def as_vector(value: Sequence[float]) -> np.ndarray:
    """Coerce a 3-sequence into a float64 vector."""
    vec = np.asarray(value, dtype=np.float64)
    if vec.shape != (3,):
        raise ValueError(f"Expected a 3-vector, got shape {vec.shape}")
    return vec


def as_quaternion(value: Sequence[float]) -> np.ndarray:
    """Coerce a 4-sequence into a unit (x, y, z, w) quaternion."""
    quat = np.asarray(value, dtype=np.float64)
    if quat.shape != (4,):
        raise ValueError(f"Expected an (x, y, z, w) quaternion, got shape {quat.shape}")
    norm = np.linalg.norm(quat)
    if norm < 1e-12:
        raise ValueError("Quaternion has zero length")
    return quat / norm


def normalize(vec: np.ndarray) -> np.ndarray:
    """Return vec scaled to unit length (zero vectors are returned unchanged)."""
    norm = np.linalg.norm(vec)
    if norm < 1e-12:
        return vec
    return vec / norm


def lerp(a, b, t: float):
    """Unclamped linear interpolation from a to b."""
    return a + (b - a) * t


def inverse_lerp(a: float, b: float, value: float) -> float:
    """Fraction of the way value lies from a to b, clamped to [0, 1]."""
    if a == b:
        return 0.0
    return float(np.clip((value - a) / (b - a), 0.0, 1.0))


def quaternion_from_axis_angle(axis: Sequence[float], angle_degrees: float) -> np.ndarray:
    """Build a rotation of angle_degrees around axis."""
    axis_vec = normalize(as_vector(axis))
    half = np.radians(angle_degrees) / 2.0
    return np.concatenate([axis_vec * np.sin(half), [np.cos(half)]])


def quaternion_conjugate(quat: np.ndarray) -> np.ndarray:
    """Inverse rotation of a unit quaternion."""
    return np.array([-quat[0], -quat[1], -quat[2], quat[3]])


def rotate(quat: np.ndarray, vec: np.ndarray) -> np.ndarray:
    """Rotate vec by the unit quaternion quat."""
    q_xyz = quat[:3]
    t = 2.0 * np.cross(q_xyz, vec)
    return vec + quat[3] * t + np.cross(q_xyz, t)


def inverse_rotate(quat: np.ndarray, vec: np.ndarray) -> np.ndarray:
    """Rotate vec by the inverse of quat (world to local frame)."""
    return rotate(quaternion_conjugate(quat), vec)
