#!/usr/bin/env python3
"""
Floor and ceiling rejection for obstacle candidates.

Three interchangeable strategies:
- GeometricSurfaceFilter: rejects rays that point nearly straight up or
  down from the observer. Needs no plane data and also catches ceilings.
- PlaneBoundedSurfaceFilter: rejects points lying on or just above a cached
  floor plane, within that plane's bounds.
- FloorHeightSurfaceFilter: rejects points whose height is close to the
  lowest known floor, ignoring plane bounds.

Usage:
    surface_filter = create_surface_filter(SurfaceFilterMode.PLANE_BOUNDED,
                                           projector, plane_cache,
                                           min_height_above_floor=0.3)
    if surface_filter.accept(candidate):
        ...
"""

import numpy as np
from enum import Enum
from typing import Optional
import logging

from .geometry import WORLD_UP, as_vector, inverse_rotate, normalize
from .plane_cache import FloorPlane, PlaneCache

logger = logging.getLogger(__name__)


class SurfaceFilterMode(Enum):
    """Which floor rejection strategy the pipeline uses."""

    GEOMETRIC = "geometric"
    PLANE_BOUNDED = "plane_bounded"
    FLOOR_HEIGHT = "floor_height"


class SurfaceFilter:
    """Base class: decide whether a candidate is a real obstacle."""

    mode: SurfaceFilterMode

    def accept(self, candidate) -> bool:
        return not self.is_surface(candidate.world_position)

    def is_surface(self, world_position: np.ndarray) -> bool:
        raise NotImplementedError


class GeometricSurfaceFilter(SurfaceFilter):
    """Reject candidates seen along a nearly vertical ray."""

    mode = SurfaceFilterMode.GEOMETRIC

    def __init__(self, projector, vertical_ignore_dot: float = 0.75, world_up=WORLD_UP):
        if not 0.0 <= vertical_ignore_dot <= 1.0:
            raise ValueError(f"vertical_ignore_dot must be in [0, 1], got {vertical_ignore_dot}")
        self.projector = projector
        self.vertical_ignore_dot = vertical_ignore_dot
        self.world_up = normalize(as_vector(world_up))

    def is_surface(self, world_position: np.ndarray) -> bool:
        offset = world_position - self.projector.observer_position()
        if np.linalg.norm(offset) < 1e-9:
            return False
        direction = normalize(offset)
        return abs(float(np.dot(direction, self.world_up))) > self.vertical_ignore_dot


class PlaneBoundedSurfaceFilter(SurfaceFilter):
    """Reject candidates on or just above a cached floor plane."""

    mode = SurfaceFilterMode.PLANE_BOUNDED

    def __init__(self, plane_cache: PlaneCache, min_height_above_floor: float = 0.3):
        self.plane_cache = plane_cache
        self.min_height_above_floor = min_height_above_floor

    @staticmethod
    def in_plane_bounds(world_position: np.ndarray, plane: FloorPlane) -> bool:
        """Whether the point projects inside the plane's extents (local x/z)."""
        local = inverse_rotate(plane.rotation, world_position - plane.center)
        return abs(local[0]) <= plane.extents_xz[0] and abs(local[2]) <= plane.extents_xz[1]

    def is_surface(self, world_position: np.ndarray) -> bool:
        for plane in self.plane_cache.snapshot():
            height_above_floor = world_position[1] - plane.y_position
            # bounds check only for points low enough to matter
            if height_above_floor < self.min_height_above_floor:
                if self.in_plane_bounds(world_position, plane):
                    return True
        return False


class FloorHeightSurfaceFilter(SurfaceFilter):
    """Reject candidates within a tolerance of the lowest floor height."""

    mode = SurfaceFilterMode.FLOOR_HEIGHT

    def __init__(self, plane_cache: PlaneCache, floor_height_tolerance: float = 0.15):
        self.plane_cache = plane_cache
        self.floor_height_tolerance = floor_height_tolerance

    def is_surface(self, world_position: np.ndarray) -> bool:
        floor_y = self.plane_cache.lowest_floor_y()
        if floor_y is None:
            return False
        return abs(world_position[1] - floor_y) < self.floor_height_tolerance


def create_surface_filter(
    mode: SurfaceFilterMode,
    projector,
    plane_cache: Optional[PlaneCache] = None,
    vertical_ignore_dot: float = 0.75,
    min_height_above_floor: float = 0.3,
    floor_height_tolerance: float = 0.15,
) -> SurfaceFilter:
    """Build the surface filter for a strategy."""
    mode = SurfaceFilterMode(mode)

    if mode is SurfaceFilterMode.GEOMETRIC:
        return GeometricSurfaceFilter(projector, vertical_ignore_dot)

    if plane_cache is None:
        raise ValueError(f"{mode.value} surface filter needs a plane cache")

    if mode is SurfaceFilterMode.PLANE_BOUNDED:
        return PlaneBoundedSurfaceFilter(plane_cache, min_height_above_floor)
    return FloorHeightSurfaceFilter(plane_cache, floor_height_tolerance)
