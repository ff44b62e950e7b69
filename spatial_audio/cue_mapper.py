#!/usr/bin/env python3
"""
Distance to audio cue mapping.

The beacon beeps from the obstacle's position. Two things encode distance:

- pitch, from a response curve (closer = higher)
- cadence: the gap between beeps shrinks linearly from max_beep_interval at
  max_depth to min_beep_interval at min_depth

A cooldown timer gates emission. The interval is recomputed on every tick
from the current distance, so an approaching obstacle ramps the cadence
smoothly instead of waiting for the next beep to pick up the new rate.

Usage:
    from spatial_audio.cue_mapper import AudioCueMapper

    mapper = AudioCueMapper(min_depth=0.3, max_depth=8.0)
    trigger = mapper.tick(now, estimate)
    if trigger:
        renderer.play(trigger)
"""

import numpy as np
from dataclasses import dataclass
from enum import Enum
from typing import Optional, Sequence, Tuple
import logging

logger = logging.getLogger(__name__)


class CueState(Enum):
    """Beacon state."""

    SILENT = "silent"
    ARMED = "armed"


@dataclass(frozen=True)
class CueTrigger:
    """One beep for the audio renderer."""

    world_position: np.ndarray
    pitch: float
    distance: float
    interval: float
    timestamp: float


@dataclass
class AudioCueState:
    """Cooldown and current cue parameters."""

    next_allowed_trigger_time: float = float("-inf")
    current_pitch: float = 1.0
    current_interval: float = 1.0
    state: CueState = CueState.SILENT
    triggers: int = 0


class ResponseCurve:
    """
    Piecewise-linear curve over distance, clamped at both ends.

    Keys must be sorted by distance and their values non-increasing, so a
    closer obstacle never maps to a lower pitch.
    """

    def __init__(self, keys: Sequence[Tuple[float, float]]):
        if len(keys) < 2:
            raise ValueError("A response curve needs at least two keys")

        xs = np.array([k[0] for k in keys], dtype=np.float64)
        ys = np.array([k[1] for k in keys], dtype=np.float64)
        if np.any(np.diff(xs) <= 0):
            raise ValueError("Response curve keys must have strictly increasing distances")
        if np.any(np.diff(ys) > 0):
            raise ValueError("Response curve values must not increase with distance")

        self.xs = xs
        self.ys = ys

    @classmethod
    def linear(cls, near_distance: float, near_value: float, far_distance: float, far_value: float):
        return cls([(near_distance, near_value), (far_distance, far_value)])

    def evaluate(self, distance: float) -> float:
        return float(np.interp(distance, self.xs, self.ys))


class AudioCueMapper:
    """Turns the current obstacle estimate into rate-limited cue triggers."""

    def __init__(
        self,
        min_depth: float = 0.3,
        max_depth: float = 8.0,
        min_beep_interval: float = 0.05,
        max_beep_interval: float = 1.0,
        pitch_curve: Optional[ResponseCurve] = None,
    ):
        """
        Args:
            min_depth: Distance at which the cadence saturates (fastest)
            max_depth: Distance at which the cadence idles (slowest)
            min_beep_interval: Seconds between beeps at min_depth
            max_beep_interval: Seconds between beeps at max_depth
            pitch_curve: Pitch over distance (default: 2.0 at min_depth
                falling linearly to 0.5 at max_depth)
        """
        if not min_depth < max_depth:
            raise ValueError(f"min_depth ({min_depth}) must be below max_depth ({max_depth})")
        if not 0.0 < min_beep_interval <= max_beep_interval:
            raise ValueError(
                f"Beep intervals must satisfy 0 < min ({min_beep_interval}) <= max ({max_beep_interval})"
            )

        self.min_depth = min_depth
        self.max_depth = max_depth
        self.min_beep_interval = min_beep_interval
        self.max_beep_interval = max_beep_interval
        self.pitch_curve = pitch_curve or ResponseCurve.linear(min_depth, 2.0, max_depth, 0.5)
        self.state = AudioCueState(
            current_pitch=self.pitch_curve.evaluate(max_depth),
            current_interval=max_beep_interval,
        )

    def pitch_for(self, distance: float) -> float:
        clamped = float(np.clip(distance, self.min_depth, self.max_depth))
        return self.pitch_curve.evaluate(clamped)

    def proximity(self, distance: float) -> float:
        """0.0 at max_depth or beyond, 1.0 at min_depth or closer."""
        fraction = (distance - self.max_depth) / (self.min_depth - self.max_depth)
        return float(np.clip(fraction, 0.0, 1.0))

    def interval_for(self, distance: float) -> float:
        p = self.proximity(distance)
        return self.max_beep_interval + (self.min_beep_interval - self.max_beep_interval) * p

    def tick(self, now: float, estimate, observer_position=None) -> Optional[CueTrigger]:
        """
        Advance the beacon by one tick.

        Args:
            now: Current time in seconds
            estimate: ObstacleEstimate, or None when there is no obstacle
            observer_position: Current observer position. When given, the
                distance is measured from it on every tick; otherwise the
                estimate's own distance is used.

        Returns:
            A CueTrigger if a beep is due, otherwise None
        """
        if estimate is None:
            if self.state.state is CueState.ARMED:
                logger.debug("Beacon silent: obstacle lost")
            self.state.state = CueState.SILENT
            return None

        if observer_position is None:
            distance = estimate.distance
        else:
            offset = np.asarray(estimate.world_position) - np.asarray(observer_position, dtype=np.float64)
            distance = float(np.linalg.norm(offset))

        if self.state.state is CueState.SILENT:
            logger.debug(f"Beacon armed at {distance:.2f}m")
        self.state.state = CueState.ARMED

        self.state.current_pitch = self.pitch_for(distance)
        self.state.current_interval = self.interval_for(distance)

        if now < self.state.next_allowed_trigger_time:
            return None

        self.state.next_allowed_trigger_time = max(
            self.state.next_allowed_trigger_time, now + self.state.current_interval
        )
        self.state.triggers += 1

        trigger = CueTrigger(
            world_position=estimate.world_position,
            pitch=self.state.current_pitch,
            distance=distance,
            interval=self.state.current_interval,
            timestamp=now,
        )
        logger.debug(
            f"Beep at {distance:.2f}m: pitch {trigger.pitch:.2f}, "
            f"next in {trigger.interval:.2f}s"
        )
        return trigger
