#!/usr/bin/env python3
"""
Depth module for obstacle detection.

This module turns depth frames into a single stable nearest-obstacle
estimate for the obstacle beacon. Floors and ceilings are rejected and the
result is smoothed over time.

Main components:
- DepthFrameView: Read-only, stride-aware view over a depth buffer
- GridSampler: Median-filtered readings at a grid of viewport points
- PlaneCache: Periodically refreshed floor plane snapshot
- SurfaceFilter strategies: Floor / ceiling rejection
- ObstacleTracker: Nearest obstacle with smoothing and a deadband

Usage:
    from depth import BeaconConfig, GridSampler, acquire_frame

    config = BeaconConfig()
    sampler = GridSampler(config.grid_spec(), config.sample_radius,
                          config.min_depth, config.max_depth)
    with acquire_frame(source) as view:
        if view is not None:
            scan = sampler.scan(view)
"""

from .config import BeaconConfig, ConfigurationError, PRESETS
from .depth_frame import (
    DepthFrame,
    DepthFrameView,
    DepthFrameReleasedError,
    SampleUnit,
)
from .depth_source import (
    DepthSource,
    ArrayDepthSource,
    PngSequenceDepthSource,
    SyntheticObstacleSource,
    acquire_frame,
)
from .grid_sampler import (
    GridSpec,
    GridSampler,
    GridScan,
    CellSample,
    Candidate,
    INVALID_DEPTH,
)
from .plane_cache import (
    PlaneAlignment,
    TrackedPlane,
    FloorPlane,
    CadenceController,
    PlaneCache,
    StaticPlaneProvider,
)
from .pose_provider import PoseProvider, PinholePoseProvider
from .surface_filter import (
    SurfaceFilter,
    SurfaceFilterMode,
    GeometricSurfaceFilter,
    PlaneBoundedSurfaceFilter,
    FloorHeightSurfaceFilter,
    create_surface_filter,
)
from .obstacle_tracker import (
    ObstacleTracker,
    ObstacleEstimate,
    SmoothingState,
    TrackerDiagnostics,
)

__all__ = [
    "BeaconConfig",
    "ConfigurationError",
    "PRESETS",
    "DepthFrame",
    "DepthFrameView",
    "DepthFrameReleasedError",
    "SampleUnit",
    "DepthSource",
    "ArrayDepthSource",
    "PngSequenceDepthSource",
    "SyntheticObstacleSource",
    "acquire_frame",
    "GridSpec",
    "GridSampler",
    "GridScan",
    "CellSample",
    "Candidate",
    "INVALID_DEPTH",
    "PlaneAlignment",
    "TrackedPlane",
    "FloorPlane",
    "CadenceController",
    "PlaneCache",
    "StaticPlaneProvider",
    "PoseProvider",
    "PinholePoseProvider",
    "SurfaceFilter",
    "SurfaceFilterMode",
    "GeometricSurfaceFilter",
    "PlaneBoundedSurfaceFilter",
    "FloorHeightSurfaceFilter",
    "create_surface_filter",
    "ObstacleTracker",
    "ObstacleEstimate",
    "SmoothingState",
    "TrackerDiagnostics",
]

__version__ = "1.0.0"
