#!/usr/bin/env python3
"""
Cached floor plane geometry.

Plane bounds checks involve a rotation per plane per candidate, and tracked
planes change slowly compared to the detection rate, so the set of floor
planes is snapshotted on a fixed cadence instead of being re-read every
cycle. A refresh replaces the whole snapshot; a snapshot handed to a filter
is never modified afterwards.
"""

import numpy as np
from dataclasses import dataclass
from enum import Enum
from typing import Iterable, Optional, Sequence, Tuple
import logging

from .geometry import IDENTITY_ROTATION, as_quaternion, as_vector

logger = logging.getLogger(__name__)


class PlaneAlignment(Enum):
    """Plane alignment as classified by the plane detector."""

    HORIZONTAL_UP = "horizontal_up"
    HORIZONTAL_DOWN = "horizontal_down"
    VERTICAL = "vertical"
    NOT_AXIS_ALIGNED = "not_axis_aligned"


@dataclass(frozen=True)
class TrackedPlane:
    """A plane as reported by the plane provider."""

    alignment: PlaneAlignment
    center: Tuple[float, float, float]
    extents: Tuple[float, float]  # half sizes along local x and z
    rotation: Tuple[float, float, float, float] = tuple(IDENTITY_ROTATION)


@dataclass(frozen=True, eq=False)
class FloorPlane:
    """Snapshot of one horizontal-upward plane."""

    center: np.ndarray
    y_position: float
    extents_xz: Tuple[float, float]
    rotation: np.ndarray

    @classmethod
    def from_tracked(cls, plane: TrackedPlane) -> "FloorPlane":
        center = as_vector(plane.center)
        center.flags.writeable = False
        rotation = as_quaternion(plane.rotation)
        rotation.flags.writeable = False
        return cls(
            center=center,
            y_position=float(center[1]),
            extents_xz=(float(plane.extents[0]), float(plane.extents[1])),
            rotation=rotation,
        )


class CadenceController:
    """
    Decides when a periodic job is due.

    Time is whatever the caller passes in: frame counts, seconds from a
    monotonic clock, or a synthetic clock in tests. The first check is
    always due, and an interval of 0 makes every check due.
    """

    def __init__(self, interval: float):
        if interval < 0:
            raise ValueError(f"Cadence interval must be >= 0, got {interval}")
        self.interval = interval
        self.last_run: Optional[float] = None

    def is_due(self, now: float) -> bool:
        return self.last_run is None or now - self.last_run >= self.interval

    def since_last_run(self, now: float) -> Optional[float]:
        if self.last_run is None:
            return None
        return now - self.last_run

    def mark(self, now: float):
        self.last_run = now

    def reset(self):
        self.last_run = None


class PlaneCache:
    """Periodically refreshed snapshot of floor planes."""

    def __init__(self, cadence: CadenceController):
        self.cadence = cadence
        self._planes: Tuple[FloorPlane, ...] = ()
        self.refresh_count = 0

    def refresh(self, all_known_planes: Iterable[TrackedPlane], now: float) -> bool:
        """
        Replace the snapshot if the cadence allows it.

        all_known_planes is only iterated when a refresh is applied, so a
        lazy generator costs nothing on skipped cycles.

        Returns:
            True if the snapshot was replaced
        """
        if not self.cadence.is_due(now):
            return False

        self.cadence.mark(now)
        self._planes = tuple(
            FloorPlane.from_tracked(plane)
            for plane in all_known_planes
            if plane.alignment is PlaneAlignment.HORIZONTAL_UP
        )
        self.refresh_count += 1
        logger.debug(f"Plane cache refreshed: {len(self._planes)} floor planes")
        return True

    def snapshot(self) -> Tuple[FloorPlane, ...]:
        return self._planes

    def lowest_floor_y(self) -> Optional[float]:
        """Height of the lowest cached floor plane, or None if there is none."""
        if not self._planes:
            return None
        return min(plane.y_position for plane in self._planes)

    def __len__(self) -> int:
        return len(self._planes)


class StaticPlaneProvider:
    """Plane provider returning a fixed, replaceable list of planes."""

    def __init__(self, planes: Sequence[TrackedPlane] = ()):
        self.planes = list(planes)

    def tracked_planes(self) -> Iterable[TrackedPlane]:
        return iter(self.planes)
