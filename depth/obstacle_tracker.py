#!/usr/bin/env python3
"""
Nearest obstacle tracking with temporal smoothing.

Each detection cycle the tracker picks the nearest candidate that survives
surface rejection and blends it into a persistent smoothed position. Two
mechanisms keep the output steady:

- exponential smoothing towards the new position, weighted towards history
- a deadband: raw positions closer than min_movement_threshold to the
  smoothed position leave the estimate untouched

A cycle without any accepted candidate reports no obstacle but keeps the
smoothed position, so a single dropped frame does not reset the estimate.
Only the optional staleness window clears it.
"""

import numpy as np
from dataclasses import dataclass
from typing import Optional, Sequence
import logging

from .geometry import lerp
from .grid_sampler import Candidate, CellSample, make_candidates
from .surface_filter import SurfaceFilter

logger = logging.getLogger(__name__)


@dataclass
class SmoothingState:
    """Smoothed obstacle position persisted across cycles."""

    previous_world_position: Optional[np.ndarray] = None
    has_value: bool = False
    last_accepted_time: Optional[float] = None

    def clear(self):
        self.previous_world_position = None
        self.has_value = False
        self.last_accepted_time = None


@dataclass(frozen=True)
class ObstacleEstimate:
    """Smoothed nearest obstacle, as handed to the audio stage."""

    world_position: np.ndarray
    distance: float  # from the observer at update time
    raw_distance: float
    cell_index: int
    sequence: int
    timestamp: float


@dataclass
class TrackerDiagnostics:
    """Per-outcome counters of tracker updates."""

    updates: int = 0
    no_valid_cells: int = 0
    surface_rejects: int = 0
    no_accepted_candidate: int = 0
    deadband_skips: int = 0
    accepted_updates: int = 0
    stale_resets: int = 0


class ObstacleTracker:
    """Reduces a grid scan to one smoothed nearest obstacle estimate."""

    def __init__(
        self,
        projector,
        smoothing_factor: float = 0.85,
        min_movement_threshold: float = 0.05,
        staleness_timeout: Optional[float] = None,
    ):
        """
        Args:
            projector: Pose provider used to place candidates in the world
            smoothing_factor: Weight of the previous smoothed position, in [0, 1)
            min_movement_threshold: Deadband radius in meters
            staleness_timeout: Clear the smoothed position after this long
                without an accepted candidate (None keeps it indefinitely)
        """
        if not 0.0 <= smoothing_factor < 1.0:
            raise ValueError(f"smoothing_factor must be in [0, 1), got {smoothing_factor}")
        if min_movement_threshold < 0:
            raise ValueError(f"min_movement_threshold must be >= 0, got {min_movement_threshold}")
        if staleness_timeout is not None and staleness_timeout <= 0:
            raise ValueError(f"staleness_timeout must be positive, got {staleness_timeout}")

        self.projector = projector
        self.smoothing_factor = smoothing_factor
        self.min_movement_threshold = min_movement_threshold
        self.staleness_timeout = staleness_timeout

        self.state = SmoothingState()
        self.diagnostics = TrackerDiagnostics()
        self.current: Optional[ObstacleEstimate] = None
        self._sequence = 0

    def select_nearest(
        self, candidates: Sequence[Candidate], surface_filter: SurfaceFilter
    ) -> Optional[Candidate]:
        """
        Nearest accepted candidate; ties go to the earliest in scan order.

        Candidates are visited nearest first (stable sort) so the surface
        filter only runs until the first acceptance.
        """
        for candidate in sorted(candidates, key=lambda c: c.distance):
            if surface_filter.accept(candidate):
                return candidate
            self.diagnostics.surface_rejects += 1
        return None

    def update(
        self,
        cells: Sequence[CellSample],
        surface_filter: SurfaceFilter,
        now: float,
    ) -> Optional[ObstacleEstimate]:
        """
        Fold one scan into the estimate.

        Returns:
            The current estimate (unchanged object if the deadband held it),
            or None when this scan produced no accepted obstacle
        """
        self.diagnostics.updates += 1

        candidates = make_candidates(cells, self.projector)
        if not candidates:
            self.diagnostics.no_valid_cells += 1
            self.expire_if_stale(now)
            return None

        nearest = self.select_nearest(candidates, surface_filter)
        if nearest is None:
            self.diagnostics.no_accepted_candidate += 1
            self.expire_if_stale(now)
            return None

        self.state.last_accepted_time = now
        target = nearest.world_position

        if self.state.has_value:
            movement = float(np.linalg.norm(target - self.state.previous_world_position))
            if movement < self.min_movement_threshold:
                self.diagnostics.deadband_skips += 1
                return self.current

        if self.state.has_value:
            smoothed = lerp(target, self.state.previous_world_position, self.smoothing_factor)
        else:
            smoothed = np.array(target, dtype=np.float64)

        self.state.previous_world_position = smoothed
        self.state.has_value = True
        self._sequence += 1
        self.diagnostics.accepted_updates += 1

        distance = float(np.linalg.norm(smoothed - self.projector.observer_position()))
        self.current = ObstacleEstimate(
            world_position=smoothed,
            distance=distance,
            raw_distance=nearest.distance,
            cell_index=nearest.index,
            sequence=self._sequence,
            timestamp=now,
        )
        logger.debug(
            f"Obstacle #{self._sequence}: cell {nearest.index}, raw {nearest.distance:.2f}m, "
            f"smoothed {distance:.2f}m"
        )
        return self.current

    def expire_if_stale(self, now: float) -> bool:
        """
        Clear the smoothed position if nothing was accepted for longer than
        staleness_timeout. Also called on cycles without a depth frame.

        Returns:
            True if the estimate was cleared
        """
        if not self.state.has_value or self.staleness_timeout is None:
            return False
        if now - self.state.last_accepted_time <= self.staleness_timeout:
            return False

        logger.info(
            f"Obstacle estimate stale after {now - self.state.last_accepted_time:.2f}s, clearing"
        )
        self.reset()
        self.diagnostics.stale_resets += 1
        return True

    def reset(self):
        """Forget the smoothed position (sequence numbers keep increasing)."""
        self.state.clear()
        self.current = None
