#!/usr/bin/env python3
"""
Integration of depth sampling, obstacle tracking and audio cues.

ObstacleBeaconSystem wires the collaborators together and runs one
processing cycle per step():

1. refresh the floor plane cache (between filter passes, on its cadence)
2. if the detection interval has elapsed, acquire a depth frame, scan the
   grid and update the obstacle tracker; the frame is released before the
   step continues, even if scanning raises
3. tick the audio cue mapper with the latest detection result, measured from
   the current observer position, and hand any trigger to the renderer

Detection and audio run at different rates: the beacon keeps beeping at the
current cadence between detections, and goes silent once a detection
reports no obstacle or the estimate goes stale during a depth outage.

Usage:
    from depth import BeaconConfig, PinholePoseProvider, SyntheticObstacleSource
    from spatial_audio.integration import ObstacleBeaconSystem

    system = ObstacleBeaconSystem(BeaconConfig(), SyntheticObstacleSource(),
                                  PinholePoseProvider())
    system.run(duration=10.0)
"""

import time
from dataclasses import dataclass
from typing import Callable, Optional
import logging

from depth.config import BeaconConfig
from depth.depth_source import DepthSource, acquire_frame
from depth.grid_sampler import GridSampler, GridScan
from depth.obstacle_tracker import ObstacleEstimate, ObstacleTracker
from depth.plane_cache import CadenceController, PlaneCache
from depth.surface_filter import SurfaceFilterMode, create_surface_filter

from .beep_renderer import CueRenderer
from .cue_mapper import AudioCueMapper, CueTrigger, ResponseCurve

logger = logging.getLogger(__name__)


@dataclass
class CycleResult:
    """What happened during one step."""

    cycle: int
    timestamp: float
    detection_ran: bool = False
    frame_acquired: bool = False
    scan: Optional[GridScan] = None
    estimate: Optional[ObstacleEstimate] = None
    trigger: Optional[CueTrigger] = None


@dataclass
class BeaconDiagnostics:
    """Counters across the whole session."""

    cycles: int = 0
    detections: int = 0
    depth_failures: int = 0
    plane_refreshes: int = 0
    triggers: int = 0


class ObstacleBeaconSystem:
    """Depth frame in, spatial beeps out."""

    def __init__(
        self,
        config: BeaconConfig,
        depth_source: DepthSource,
        pose_provider,
        plane_provider=None,
        renderer: Optional[CueRenderer] = None,
    ):
        """
        Args:
            config: Pipeline parameters
            depth_source: Non-blocking depth frame source
            pose_provider: Viewport ray / observer position provider
            plane_provider: Object with tracked_planes(), or None
            renderer: Receives cue triggers (None: triggers are only returned)
        """
        self.config = config
        self.depth_source = depth_source
        self.pose_provider = pose_provider
        self.plane_provider = plane_provider
        self.renderer = renderer

        self.sampler = GridSampler(
            config.grid_spec(),
            sample_radius=config.sample_radius,
            min_depth=config.min_depth,
            max_depth=config.max_depth,
        )
        self.plane_cache = PlaneCache(CadenceController(config.plane_cache_interval_frames))
        self.surface_filter = create_surface_filter(
            config.surface_filter,
            pose_provider,
            self.plane_cache,
            vertical_ignore_dot=config.vertical_ignore_dot,
            min_height_above_floor=config.min_height_above_floor,
            floor_height_tolerance=config.floor_height_tolerance,
        )
        self.tracker = ObstacleTracker(
            pose_provider,
            smoothing_factor=config.smoothing_factor,
            min_movement_threshold=config.min_movement_threshold,
            staleness_timeout=config.staleness_timeout,
        )
        self.cue_mapper = AudioCueMapper(
            min_depth=config.min_depth,
            max_depth=config.max_depth,
            min_beep_interval=config.min_beep_interval,
            max_beep_interval=config.max_beep_interval,
            pitch_curve=ResponseCurve.linear(
                config.min_depth, config.near_pitch, config.max_depth, config.far_pitch
            ),
        )

        self.detection_cadence = CadenceController(config.detection_interval)
        self.latest_estimate: Optional[ObstacleEstimate] = None
        self.diagnostics = BeaconDiagnostics()

        if plane_provider is None and config.surface_filter is not SurfaceFilterMode.GEOMETRIC:
            logger.warning(
                f"{config.surface_filter.value} filter without a plane provider: "
                "no floor will ever be rejected"
            )

        logger.info(
            f"ObstacleBeaconSystem initialized: {self.sampler.grid.cell_count} cells, "
            f"{config.min_depth}-{config.max_depth}m, {config.surface_filter.value} filter"
        )

    def _refresh_planes(self):
        if self.plane_provider is None:
            return
        if self.plane_cache.refresh(self.plane_provider.tracked_planes(), now=self.diagnostics.cycles):
            self.diagnostics.plane_refreshes += 1

    def detect(self, now: float, result: CycleResult):
        """Run one detection pass, filling in result."""
        result.detection_ran = True
        self.diagnostics.detections += 1

        with acquire_frame(self.depth_source) as view:
            if view is None:
                self.diagnostics.depth_failures += 1
                if self.tracker.expire_if_stale(now):
                    self.latest_estimate = None
                return
            result.frame_acquired = True
            result.scan = self.sampler.scan(view)
            self.latest_estimate = self.tracker.update(result.scan.cells, self.surface_filter, now)

    def step(self, now: float) -> CycleResult:
        """One tick of the beacon."""
        self.diagnostics.cycles += 1
        result = CycleResult(cycle=self.diagnostics.cycles, timestamp=now)

        self._refresh_planes()

        if self.detection_cadence.is_due(now):
            self.detection_cadence.mark(now)
            self.detect(now, result)

        result.estimate = self.latest_estimate
        result.trigger = self.cue_mapper.tick(
            now, self.latest_estimate, observer_position=self.pose_provider.observer_position()
        )
        if result.trigger is not None:
            self.diagnostics.triggers += 1
            if self.renderer is not None:
                self.renderer.play(result.trigger)

        return result

    def run(
        self,
        duration: Optional[float] = None,
        tick_interval: float = 1.0 / 30.0,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], None] = time.sleep,
        max_cycles: Optional[int] = None,
    ):
        """
        Step the beacon at a fixed tick rate until duration or max_cycles.

        Stops early on KeyboardInterrupt. The renderer is started and
        stopped around the loop.
        """
        if self.renderer is not None:
            self.renderer.start()

        start = clock()
        try:
            while True:
                tick_start = clock()
                if duration is not None and tick_start - start >= duration:
                    break
                if max_cycles is not None and self.diagnostics.cycles >= max_cycles:
                    break

                self.step(tick_start - start)

                remaining = tick_interval - (clock() - tick_start)
                if remaining > 0:
                    sleep(remaining)
        except KeyboardInterrupt:
            logger.info("Stopped by user")
        finally:
            if self.renderer is not None:
                self.renderer.stop()

        logger.info(f"Session finished: {self.diagnostics}, tracker {self.tracker.diagnostics}")
