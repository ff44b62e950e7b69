#!/usr/bin/env python3
"""End-to-end tests of the full pipeline - depth frame in, beep trigger out"""

import numpy as np
import pytest

from depth import (
    ArrayDepthSource,
    BeaconConfig,
    GridSampler,
    GridSpec,
    ObstacleTracker,
    PinholePoseProvider,
    PlaneAlignment,
    StaticPlaneProvider,
    SurfaceFilterMode,
    TrackedPlane,
    acquire_frame,
    create_surface_filter,
)
from depth.geometry import quaternion_from_axis_angle
from spatial_audio import AudioCueMapper, CueState, LoggingCueRenderer, ObstacleBeaconSystem


def wall_with_box():
    """30x30 frame at 5m with a 1.2m box over rows/cols 10..19."""
    depth = np.full((30, 30), 5000, dtype=np.uint16)
    depth[10:20, 10:20] = 1200
    return depth


def expected_interval(distance, min_depth=0.3, max_depth=8.0):
    return 1.0 + (0.05 - 1.0) * ((distance - max_depth) / (min_depth - max_depth))


class TestNearestObstacleBeeps:
    def test_components(self):
        source = ArrayDepthSource([wall_with_box()])
        pose = PinholePoseProvider()
        sampler = GridSampler(GridSpec(columns=3, rows=3), sample_radius=2, min_depth=0.3, max_depth=8.0)
        tracker = ObstacleTracker(pose)
        surface_filter = create_surface_filter(SurfaceFilterMode.GEOMETRIC, pose)
        mapper = AudioCueMapper(min_depth=0.3, max_depth=8.0)

        with acquire_frame(source) as view:
            scan = sampler.scan(view)
            estimate = tracker.update(scan.cells, surface_filter, now=0.0)

        assert not source.holding_frame
        assert estimate.cell_index == 4
        assert estimate.distance == pytest.approx(1.2)
        np.testing.assert_allclose(estimate.world_position, [0.0, 0.0, 1.2], atol=1e-9)

        trigger = mapper.tick(0.0, estimate)
        assert trigger is not None
        assert trigger.timestamp == 0.0
        assert mapper.state.next_allowed_trigger_time == pytest.approx(expected_interval(1.2))

    def test_system_step(self):
        config = BeaconConfig(grid_columns=3, grid_rows=3, sample_radius=2, min_depth=0.3, max_depth=8.0)
        renderer = LoggingCueRenderer()
        system = ObstacleBeaconSystem(
            config, ArrayDepthSource([wall_with_box()]), PinholePoseProvider(), renderer=renderer
        )

        result = system.step(0.0)

        assert result.detection_ran and result.frame_acquired
        assert result.estimate.cell_index == 4
        assert result.trigger is not None
        assert renderer.triggers == [result.trigger]
        assert system.cue_mapper.state.next_allowed_trigger_time == pytest.approx(expected_interval(1.2))


class TestFloorRejection:
    def make_system(self):
        config = BeaconConfig(
            grid_points=[(0.5, 0.5)],
            sample_radius=2,
            surface_filter=SurfaceFilterMode.PLANE_BOUNDED,
            min_height_above_floor=0.3,
        )
        # looking straight down from 1.5m
        pose = PinholePoseProvider(
            position=(0.0, 1.5, 0.0),
            rotation=quaternion_from_axis_angle((1.0, 0.0, 0.0), 90.0),
        )
        floor = TrackedPlane(PlaneAlignment.HORIZONTAL_UP, center=(0.0, 0.0, 0.0), extents=(5.0, 5.0))
        frame = np.full((30, 30), 1450, dtype=np.uint16)
        return ObstacleBeaconSystem(
            config, ArrayDepthSource([frame]), pose, plane_provider=StaticPlaneProvider([floor])
        )

    def test_floor_hit_is_not_an_obstacle(self):
        system = self.make_system()

        result = system.step(0.0)

        assert result.frame_acquired
        assert result.scan.cells[0].distance == pytest.approx(1.45)
        assert result.estimate is None
        assert result.trigger is None
        assert system.tracker.diagnostics.surface_rejects == 1
        assert system.diagnostics.plane_refreshes == 1

    def test_geometric_strategy_agrees(self):
        system = self.make_system()
        system.surface_filter = create_surface_filter(SurfaceFilterMode.GEOMETRIC, system.pose_provider)

        assert system.step(0.0).estimate is None


class ExplodingFilter:
    def accept(self, candidate):
        raise RuntimeError("filter failure")


def test_frame_released_when_detection_raises():
    source = ArrayDepthSource([wall_with_box()])
    system = ObstacleBeaconSystem(BeaconConfig(), source, PinholePoseProvider())
    system.surface_filter = ExplodingFilter()

    with pytest.raises(RuntimeError):
        system.step(0.0)

    assert not source.holding_frame


def test_missing_frame_skips_detection_only():
    system = ObstacleBeaconSystem(BeaconConfig(), ArrayDepthSource([None]), PinholePoseProvider())

    result = system.step(0.0)

    assert result.detection_ran
    assert not result.frame_acquired
    assert result.trigger is None
    assert system.diagnostics.depth_failures == 1


def test_depth_outage_expires_stale_obstacle():
    config = BeaconConfig(staleness_timeout=0.5, detection_interval=0.0)
    source = ArrayDepthSource([wall_with_box()] + [None] * 100)
    system = ObstacleBeaconSystem(config, source, PinholePoseProvider())

    results = [system.step(i * 0.1) for i in range(50)]

    assert results[0].trigger is not None
    assert system.tracker.diagnostics.stale_resets == 1
    assert not system.tracker.state.has_value
    assert system.latest_estimate is None
    assert all(r.estimate is None and r.trigger is None for r in results if r.timestamp > 0.65)
    assert system.cue_mapper.state.state is CueState.SILENT


def test_depth_outage_keeps_obstacle_without_staleness():
    source = ArrayDepthSource([wall_with_box()] + [None] * 10)
    system = ObstacleBeaconSystem(BeaconConfig(detection_interval=0.0), source, PinholePoseProvider())

    results = [system.step(float(i)) for i in range(10)]

    assert all(r.estimate is not None for r in results)
    assert system.tracker.diagnostics.stale_resets == 0


def test_cues_follow_observer_walking_to_still_wall():
    """The wall stays put, so the tracker deadband holds; cues still speed up."""
    steps = [0.0, 0.5, 1.0, 1.5, 2.0]
    frames = [np.full((30, 30), round((3.0 - z) * 1000), dtype=np.uint16) for z in steps]
    config = BeaconConfig(
        grid_points=[(0.5, 0.5)],
        smoothing_factor=0.85,
        min_movement_threshold=0.05,
        detection_interval=0.0,
    )
    pose = PinholePoseProvider()
    system = ObstacleBeaconSystem(config, ArrayDepthSource(frames), pose)

    intervals = []
    for i, z in enumerate(steps):
        pose.set_pose((0.0, 0.0, z), (0.0, 0.0, 0.0, 1.0))
        result = system.step(float(i) * 2.0)
        assert result.trigger is not None
        assert result.trigger.distance == pytest.approx(3.0 - z)
        intervals.append(system.cue_mapper.state.current_interval)

    assert system.tracker.diagnostics.deadband_skips == len(steps) - 1
    assert all(b < a for a, b in zip(intervals, intervals[1:]))
    assert intervals[-1] == pytest.approx(system.cue_mapper.interval_for(1.0))


def test_detection_interval_gates_scans_but_not_beeps():
    config = BeaconConfig(detection_interval=0.15, min_beep_interval=0.05, max_beep_interval=0.05)
    system = ObstacleBeaconSystem(config, ArrayDepthSource([wall_with_box()], loop=True), PinholePoseProvider())

    results = [system.step(now) for now in (0.0, 0.05, 0.1, 0.15)]

    assert [r.detection_ran for r in results] == [True, False, False, True]
    assert system.diagnostics.detections == 2
    assert all(r.estimate is not None for r in results)
    assert sum(r.trigger is not None for r in results) >= 3


class FakeClock:
    def __init__(self):
        self.t = 0.0

    def now(self):
        return self.t

    def sleep(self, seconds):
        self.t += seconds


def test_run_loop_with_fake_clock():
    clock = FakeClock()
    renderer = LoggingCueRenderer()
    system = ObstacleBeaconSystem(
        BeaconConfig(),
        ArrayDepthSource([wall_with_box()], loop=True),
        PinholePoseProvider(),
        renderer=renderer,
    )

    system.run(tick_interval=0.1, clock=clock.now, sleep=clock.sleep, max_cycles=10)

    assert system.diagnostics.cycles == 10
    assert clock.t == pytest.approx(1.0)
    assert len(renderer.triggers) == system.diagnostics.triggers
    assert system.diagnostics.triggers >= 1
