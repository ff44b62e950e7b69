#!/usr/bin/env python3
"""
Configuration for the obstacle beacon pipeline.

All tuning parameters live in one dataclass and are validated when it is
created, so an inconsistent setup fails at startup rather than mid-session.
The presets are the detector setups the beacon is usually run with; they
differ in grid density, depth range, smoothing and floor strategy.

Usage:
    from depth.config import BeaconConfig

    config = BeaconConfig(min_depth=0.3, max_depth=8.0)
    config = BeaconConfig.from_preset("center_band", max_depth=3.0)
"""

from dataclasses import asdict, dataclass, replace
from typing import Any, Dict, Optional, Tuple

from .grid_sampler import GridSpec
from .surface_filter import SurfaceFilterMode


class ConfigurationError(ValueError):
    """Raised for inconsistent pipeline parameters."""


@dataclass(frozen=True)
class BeaconConfig:
    """Named parameters of the obstacle beacon."""

    # Sampling grid
    grid_columns: int = 3
    grid_rows: int = 3
    grid_points: Optional[Tuple[Tuple[float, float], ...]] = None
    top_ignore: float = 0.0
    bottom_ignore: float = 0.0
    sample_radius: int = 2

    # Valid depth range (meters, exclusive)
    min_depth: float = 0.3
    max_depth: float = 8.0

    # Temporal filtering
    smoothing_factor: float = 0.85
    min_movement_threshold: float = 0.05
    staleness_timeout: Optional[float] = None  # None: keep the last position

    # Floor / ceiling rejection
    surface_filter: SurfaceFilterMode = SurfaceFilterMode.GEOMETRIC
    vertical_ignore_dot: float = 0.75
    min_height_above_floor: float = 0.3
    floor_height_tolerance: float = 0.15
    plane_cache_interval_frames: int = 30

    # Audio cues
    min_beep_interval: float = 0.05
    max_beep_interval: float = 1.0
    near_pitch: float = 2.0
    far_pitch: float = 0.5

    # Cadence (seconds)
    detection_interval: float = 0.15

    def __post_init__(self):
        try:
            object.__setattr__(self, "surface_filter", SurfaceFilterMode(self.surface_filter))
        except ValueError:
            raise ConfigurationError(f"Unknown surface filter: {self.surface_filter!r}") from None

        if self.grid_points is not None:
            object.__setattr__(
                self, "grid_points", tuple((float(u), float(v)) for u, v in self.grid_points)
            )

        self.validate()

    def validate(self):
        """Raise ConfigurationError if parameters are inconsistent."""
        errors = []

        if self.min_depth < 0:
            errors.append(f"min_depth must be >= 0 (got {self.min_depth})")
        if not self.min_depth < self.max_depth:
            errors.append(f"min_depth ({self.min_depth}) must be below max_depth ({self.max_depth})")
        try:
            self.grid_spec()
        except ValueError as e:
            errors.append(str(e))
        if self.sample_radius < 0:
            errors.append(f"sample_radius must be >= 0 (got {self.sample_radius})")
        if not 0.0 <= self.smoothing_factor < 1.0:
            errors.append(f"smoothing_factor must be in [0, 1) (got {self.smoothing_factor})")
        if self.min_movement_threshold < 0:
            errors.append("min_movement_threshold must be >= 0")
        if self.staleness_timeout is not None and self.staleness_timeout <= 0:
            errors.append("staleness_timeout must be positive")
        if not 0.0 <= self.vertical_ignore_dot <= 1.0:
            errors.append(f"vertical_ignore_dot must be in [0, 1] (got {self.vertical_ignore_dot})")
        if self.floor_height_tolerance < 0:
            errors.append("floor_height_tolerance must be >= 0")
        if self.plane_cache_interval_frames < 1:
            errors.append("plane_cache_interval_frames must be >= 1")
        if not 0.0 < self.min_beep_interval <= self.max_beep_interval:
            errors.append(
                f"beep intervals must satisfy 0 < min ({self.min_beep_interval}) "
                f"<= max ({self.max_beep_interval})"
            )
        if self.near_pitch < self.far_pitch:
            errors.append("near_pitch must be >= far_pitch (closer obstacles sound higher)")
        if self.far_pitch <= 0:
            errors.append("pitches must be positive")
        if self.detection_interval < 0:
            errors.append("detection_interval must be >= 0")

        if errors:
            raise ConfigurationError("; ".join(errors))

    def grid_spec(self) -> GridSpec:
        return GridSpec(
            columns=self.grid_columns,
            rows=self.grid_rows,
            points=self.grid_points,
            top_ignore=self.top_ignore,
            bottom_ignore=self.bottom_ignore,
        )

    def with_overrides(self, **overrides) -> "BeaconConfig":
        return replace(self, **overrides)

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["surface_filter"] = self.surface_filter.value
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "BeaconConfig":
        unknown = set(data) - set(cls.__dataclass_fields__)
        if unknown:
            raise ConfigurationError(f"Unknown configuration keys: {sorted(unknown)}")
        return cls(**data)

    @classmethod
    def from_preset(cls, name: str, **overrides) -> "BeaconConfig":
        if name not in PRESETS:
            raise ConfigurationError(f"Unknown preset {name!r}; choose from {sorted(PRESETS)}")
        params = dict(PRESETS[name])
        params.update(overrides)
        return cls(**params)


CENTER_BAND_POINTS = (
    (0.2, 0.6), (0.4, 0.6), (0.6, 0.6), (0.8, 0.6),
    (0.2, 0.4), (0.4, 0.4), (0.6, 0.4), (0.8, 0.4),
)

PRESETS: Dict[str, Dict[str, Any]] = {
    # 3x3 median grid scanner
    "grid_scanner": {
        "grid_columns": 3,
        "grid_rows": 3,
        "sample_radius": 2,
        "min_depth": 0.3,
        "max_depth": 8.0,
        "smoothing_factor": 0.0,
        "min_movement_threshold": 0.0,
        "detection_interval": 0.5,
    },
    # Dense beeping detector with a floor height threshold
    "obstacle_detector": {
        "grid_columns": 15,
        "grid_rows": 10,
        "top_ignore": 0.2,
        "bottom_ignore": 0.3,
        "sample_radius": 0,
        "min_depth": 0.2,
        "max_depth": 4.0,
        "smoothing_factor": 0.0,
        "min_movement_threshold": 0.0,
        "surface_filter": SurfaceFilterMode.FLOOR_HEIGHT,
        "floor_height_tolerance": 0.15,
        "plane_cache_interval_frames": 1,
        "min_beep_interval": 0.05,
        "max_beep_interval": 1.0,
        "near_pitch": 2.0,
        "far_pitch": 0.5,
        "detection_interval": 0.15,
    },
    # Eight points across the middle of the view, cached floor planes
    "center_band": {
        "grid_points": CENTER_BAND_POINTS,
        "sample_radius": 0,
        "min_depth": 0.1,
        "max_depth": 4.0,
        "smoothing_factor": 0.0,
        "min_movement_threshold": 0.0,
        "surface_filter": SurfaceFilterMode.PLANE_BOUNDED,
        "min_height_above_floor": 0.3,
        "plane_cache_interval_frames": 30,
        "detection_interval": 10 / 30,  # every 10th frame at 30 fps
    },
    # Dense scan with smoothing and the vertical ray heuristic
    "raycast_placer": {
        "grid_columns": 16,
        "grid_rows": 12,
        "sample_radius": 0,
        "min_depth": 0.2,
        "max_depth": 5.0,
        "smoothing_factor": 0.85,
        "min_movement_threshold": 0.05,
        "surface_filter": SurfaceFilterMode.GEOMETRIC,
        "vertical_ignore_dot": 0.75,
        "detection_interval": 0.25,
    },
    # Single filtered reading at the center of the view
    "center_distance": {
        "grid_points": ((0.5, 0.5),),
        "sample_radius": 2,
        "min_depth": 0.2,
        "max_depth": 8.0,
        "smoothing_factor": 0.0,
        "min_movement_threshold": 0.0,
        "detection_interval": 0.5,
    },
}
