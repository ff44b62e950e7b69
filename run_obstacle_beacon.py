#!/usr/bin/env python3
"""
Launcher for the obstacle beacon.

Runs the depth -> obstacle -> beep pipeline on a replayed depth recording or
on a synthetic scene with an approaching obstacle.

Usage:
    python3 run_obstacle_beacon.py                          # Synthetic scene, audio on
    python3 run_obstacle_beacon.py --no-audio --verbose     # Log beeps instead of playing them
    python3 run_obstacle_beacon.py --replay recordings/hall # Replay recorded depth frames
    python3 run_obstacle_beacon.py --preset center_band     # Use a preset
    python3 run_obstacle_beacon.py --list-presets           # Show presets
"""

import argparse
import logging
import sys

from depth import (
    BeaconConfig,
    ConfigurationError,
    PRESETS,
    PinholePoseProvider,
    PlaneAlignment,
    PngSequenceDepthSource,
    StaticPlaneProvider,
    SurfaceFilterMode,
    SyntheticObstacleSource,
    TrackedPlane,
)
from spatial_audio import LoggingCueRenderer, ObstacleBeaconSystem, PygameCueRenderer

logger = logging.getLogger("obstacle_beacon")


def parse_grid(value: str):
    """Parse a COLSxROWS grid argument."""
    try:
        cols, rows = value.lower().split("x")
        return int(cols), int(rows)
    except ValueError:
        raise argparse.ArgumentTypeError(f"Grid must look like 3x3, got {value!r}") from None


def build_config(args) -> BeaconConfig:
    overrides = {}
    if args.grid is not None:
        overrides["grid_columns"], overrides["grid_rows"] = args.grid
        overrides["grid_points"] = None
    if args.strategy is not None:
        overrides["surface_filter"] = SurfaceFilterMode(args.strategy)
    if args.staleness is not None:
        overrides["staleness_timeout"] = args.staleness
    if args.min_depth is not None:
        overrides["min_depth"] = args.min_depth
    if args.max_depth is not None:
        overrides["max_depth"] = args.max_depth

    if args.preset is not None:
        return BeaconConfig.from_preset(args.preset, **overrides)
    return BeaconConfig(**overrides)


def build_source(args):
    if args.replay:
        return PngSequenceDepthSource(args.replay, loop=args.loop)

    # Obstacle walks from 4m to 0.5m over the session
    return SyntheticObstacleSource(
        obstacle_depth=lambda n: max(0.5, 4.0 - 0.02 * n),
        noise_std=0.02,
        seed=0,
    )


def list_presets():
    print("Available presets:")
    for name, params in PRESETS.items():
        summary = ", ".join(f"{k}={v}" for k, v in params.items() if k != "grid_points")
        print(f"  {name}: {summary}")


def main():
    """Main function with command line interface."""
    parser = argparse.ArgumentParser(
        description="Obstacle beacon: depth-driven spatial beeps",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python3 run_obstacle_beacon.py --no-audio --duration 5
  python3 run_obstacle_beacon.py --replay recordings/hall --strategy plane_bounded
  python3 run_obstacle_beacon.py --preset obstacle_detector --grid 20x12
        """,
    )
    parser.add_argument("--preset", choices=sorted(PRESETS), help="Start from a preset")
    parser.add_argument("--replay", help="Directory of recorded depth frames (.png/.tif/.npy)")
    parser.add_argument("--loop", action="store_true", help="Loop the replay")
    parser.add_argument(
        "--strategy",
        choices=[mode.value for mode in SurfaceFilterMode],
        help="Floor rejection strategy",
    )
    parser.add_argument("--grid", type=parse_grid, help="Sampling grid as COLSxROWS")
    parser.add_argument("--min-depth", type=float, help="Minimum valid depth (m)")
    parser.add_argument("--max-depth", type=float, help="Maximum valid depth (m)")
    parser.add_argument("--staleness", type=float, help="Forget the obstacle after this many seconds")
    parser.add_argument("--camera-height", type=float, default=1.5, help="Camera height above the floor (m)")
    parser.add_argument("--duration", type=float, default=20.0, help="Run time in seconds")
    parser.add_argument("--tick", type=float, default=1.0 / 30.0, help="Tick interval in seconds")
    parser.add_argument("--volume", type=float, default=0.3, help="Master volume")
    parser.add_argument("--no-audio", action="store_true", help="Log beeps instead of playing them")
    parser.add_argument("--verbose", action="store_true", help="Enable debug output")
    parser.add_argument("--list-presets", action="store_true", help="List presets and exit")

    args = parser.parse_args()

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    if args.list_presets:
        list_presets()
        return

    try:
        config = build_config(args)
    except ConfigurationError as e:
        parser.error(str(e))

    pose_provider = PinholePoseProvider(position=(0.0, args.camera_height, 0.0))
    plane_provider = StaticPlaneProvider(
        [TrackedPlane(PlaneAlignment.HORIZONTAL_UP, center=(0.0, 0.0, 2.0), extents=(5.0, 5.0))]
    )

    if args.no_audio:
        renderer = LoggingCueRenderer()
    else:
        renderer = PygameCueRenderer(
            pose_provider,
            min_distance=0.5,
            max_distance=config.max_depth,
            master_volume=args.volume,
        )

    print("Obstacle Beacon")
    print("=" * 50)
    for key, value in config.to_dict().items():
        print(f"  {key}: {value}")
    print("\nPress Ctrl+C to stop")

    system = ObstacleBeaconSystem(
        config,
        build_source(args),
        pose_provider,
        plane_provider=plane_provider,
        renderer=renderer,
    )
    try:
        system.run(duration=args.duration, tick_interval=args.tick)
    except RuntimeError as e:
        logger.error(f"Beacon failed: {e}")
        sys.exit(1)

    print(f"\nCycles: {system.diagnostics.cycles}, beeps: {system.diagnostics.triggers}")
    print(f"Tracker: {system.tracker.diagnostics}")


if __name__ == "__main__":
    main()
