#!/usr/bin/env python3
"""
Pose providers: turn a viewport coordinate into a world-space ray.

The pipeline only needs two questions answered by the tracking system:
where the observer is, and which world ray passes through a given
normalized viewport point. PinholePoseProvider answers them for a simple
pinhole camera and is what the launcher and tests use; an AR session would
plug in its own provider.

Conventions: world up is +Y, the camera looks down its local +Z axis, and
viewport v grows in the depth image's row direction (v = 0 is the first
row, drawn at the top).
"""

import numpy as np
from typing import Sequence, Tuple

from .geometry import IDENTITY_ROTATION, as_quaternion, as_vector, normalize, rotate

LOCAL_RIGHT = np.array([1.0, 0.0, 0.0])
LOCAL_UP = np.array([0.0, 1.0, 0.0])
LOCAL_FORWARD = np.array([0.0, 0.0, 1.0])


class PoseProvider:
    """Interface to the pose tracking system."""

    def viewport_to_world_ray(self, u: float, v: float) -> Tuple[np.ndarray, np.ndarray]:
        """Return (origin, unit direction) of the ray through viewport (u, v)."""
        raise NotImplementedError

    def observer_position(self) -> np.ndarray:
        raise NotImplementedError

    def project(self, u: float, v: float, depth: float) -> np.ndarray:
        """World point at distance depth along the ray through (u, v)."""
        origin, direction = self.viewport_to_world_ray(u, v)
        return origin + direction * depth


class PinholePoseProvider(PoseProvider):
    """Pinhole camera with a settable pose."""

    def __init__(
        self,
        position: Sequence[float] = (0.0, 0.0, 0.0),
        rotation: Sequence[float] = IDENTITY_ROTATION,
        vertical_fov_degrees: float = 60.0,
        aspect_ratio: float = 4.0 / 3.0,
    ):
        if not 0.0 < vertical_fov_degrees < 180.0:
            raise ValueError(f"Vertical field of view must be in (0, 180), got {vertical_fov_degrees}")
        if aspect_ratio <= 0:
            raise ValueError(f"Aspect ratio must be positive, got {aspect_ratio}")

        self.vertical_fov_degrees = vertical_fov_degrees
        self.aspect_ratio = aspect_ratio
        self._tan_half_v = np.tan(np.radians(vertical_fov_degrees) / 2.0)
        self._tan_half_h = self._tan_half_v * aspect_ratio
        self.set_pose(position, rotation)

    def set_pose(self, position: Sequence[float], rotation: Sequence[float]):
        """Update the camera pose (called once per tick by the tracking glue)."""
        self.position = as_vector(position)
        self.rotation = as_quaternion(rotation)
        self.right = rotate(self.rotation, LOCAL_RIGHT)
        self.up = rotate(self.rotation, LOCAL_UP)
        self.forward = rotate(self.rotation, LOCAL_FORWARD)

    def viewport_to_world_ray(self, u: float, v: float) -> Tuple[np.ndarray, np.ndarray]:
        x_ndc = 2.0 * u - 1.0
        y_ndc = 1.0 - 2.0 * v
        direction = (
            self.forward
            + self.right * (x_ndc * self._tan_half_h)
            + self.up * (y_ndc * self._tan_half_v)
        )
        return self.position.copy(), normalize(direction)

    def observer_position(self) -> np.ndarray:
        return self.position.copy()
