#!/usr/bin/env python3
"""
Grid sampling of depth frames.

The GridSampler reads a depth frame at a fixed set of normalized viewport
points and reduces the square neighborhood around each point to a single
distance. The median of the in-range samples is used rather than the mean:
depth maps are noisy at object edges, and a single near or far outlier would
otherwise drag a cell's reading towards it.

Usage:
    from depth.grid_sampler import GridSpec, GridSampler

    sampler = GridSampler(GridSpec(columns=3, rows=3), sample_radius=2,
                          min_depth=0.3, max_depth=8.0)
    scan = sampler.scan(view)
    for cell in scan.cells:
        print(cell.index, cell.distance)
"""

import math
import numpy as np
from dataclasses import dataclass, field
from typing import List, Optional, Sequence, Tuple
import logging

from .depth_frame import DepthFrameView, valid_depth_mask
from .geometry import lerp

logger = logging.getLogger(__name__)

INVALID_DEPTH = -1.0


@dataclass(frozen=True)
class GridSpec:
    """
    Where to sample the frame.

    Either a regular columns x rows grid (cell centers, row-major) or an
    explicit list of normalized (u, v) points. top_ignore / bottom_ignore
    squeeze the vertical coordinate into [top_ignore, 1 - bottom_ignore] so
    floor-heavy or ceiling-heavy screen regions are never sampled.
    """

    columns: int = 3
    rows: int = 3
    points: Optional[Tuple[Tuple[float, float], ...]] = None
    top_ignore: float = 0.0
    bottom_ignore: float = 0.0

    def __post_init__(self):
        if self.points is None:
            if self.columns < 1 or self.rows < 1:
                raise ValueError(f"Grid must be at least 1x1, got {self.columns}x{self.rows}")
        else:
            if len(self.points) == 0:
                raise ValueError("Explicit sample point list is empty")
            for u, v in self.points:
                if not (0.0 <= u <= 1.0 and 0.0 <= v <= 1.0):
                    raise ValueError(f"Sample point ({u}, {v}) outside [0, 1] x [0, 1]")
            # normalize to an immutable tuple of tuples
            object.__setattr__(self, "points", tuple((float(u), float(v)) for u, v in self.points))

        if not (0.0 <= self.top_ignore < 1.0 and 0.0 <= self.bottom_ignore < 1.0):
            raise ValueError("top_ignore and bottom_ignore must be in [0, 1)")
        if self.top_ignore + self.bottom_ignore >= 1.0:
            raise ValueError(
                f"top_ignore ({self.top_ignore}) + bottom_ignore ({self.bottom_ignore}) "
                "leaves no band to sample"
            )

    @classmethod
    def from_points(cls, points: Sequence[Tuple[float, float]], **kwargs) -> "GridSpec":
        return cls(points=tuple(tuple(p) for p in points), **kwargs)

    @property
    def cell_count(self) -> int:
        if self.points is not None:
            return len(self.points)
        return self.columns * self.rows

    def map_v(self, v: float) -> float:
        """Squeeze v into the configured vertical band."""
        return lerp(self.top_ignore, 1.0 - self.bottom_ignore, v)

    def sample_points(self) -> List[Tuple[float, float]]:
        """Normalized (u, v) of every cell in scan order, band applied."""
        if self.points is not None:
            return [(u, self.map_v(v)) for u, v in self.points]

        result = []
        for row in range(self.rows):
            v = self.map_v((row + 0.5) / self.rows)
            for col in range(self.columns):
                result.append(((col + 0.5) / self.columns, v))
        return result


@dataclass(frozen=True)
class CellSample:
    """Filtered reading of one grid cell."""

    index: int
    uv: Tuple[float, float]
    pixel: Tuple[int, int]
    distance: float

    @property
    def is_valid(self) -> bool:
        return self.distance != INVALID_DEPTH


class Candidate:
    """
    A valid cell reading pending surface rejection.

    The world position is only computed when first asked for, since most
    candidates are discarded on distance alone.
    """

    __slots__ = ("index", "uv", "distance", "_projector", "_world_position")

    def __init__(self, index: int, uv: Tuple[float, float], distance: float, projector):
        self.index = index
        self.uv = uv
        self.distance = distance
        self._projector = projector
        self._world_position: Optional[np.ndarray] = None

    @property
    def world_position(self) -> np.ndarray:
        if self._world_position is None:
            self._world_position = self._projector.project(self.uv[0], self.uv[1], self.distance)
        return self._world_position

    def __repr__(self):
        return f"Candidate(index={self.index}, uv={self.uv}, distance={self.distance:.3f})"


@dataclass
class GridScan:
    """Result of scanning one frame."""

    cells: List[CellSample] = field(default_factory=list)

    @property
    def valid_cells(self) -> List[CellSample]:
        return [c for c in self.cells if c.is_valid]

    @property
    def valid_cell_count(self) -> int:
        return len(self.valid_cells)

    @property
    def has_valid_data(self) -> bool:
        return self.valid_cell_count > 0

    @property
    def nearest_cell(self) -> Optional[CellSample]:
        """Nearest valid cell before any surface rejection (first wins on ties)."""
        nearest = None
        for cell in self.cells:
            if cell.is_valid and (nearest is None or cell.distance < nearest.distance):
                nearest = cell
        return nearest


class GridSampler:
    """Samples a DepthFrameView at the points of a GridSpec."""

    def __init__(
        self,
        grid: GridSpec,
        sample_radius: int = 2,
        min_depth: float = 0.3,
        max_depth: float = 8.0,
    ):
        if sample_radius < 0:
            raise ValueError(f"sample_radius must be >= 0, got {sample_radius}")
        if not min_depth < max_depth:
            raise ValueError(f"min_depth ({min_depth}) must be below max_depth ({max_depth})")

        self.grid = grid
        self.sample_radius = sample_radius
        self.min_depth = min_depth
        self.max_depth = max_depth
        self._points = grid.sample_points()

    @staticmethod
    def to_pixel(u: float, v: float, width: int, height: int) -> Tuple[int, int]:
        """Buffer coordinates of a normalized viewport point."""
        return math.floor(u * (width - 1)), math.floor(v * (height - 1))

    def filtered_depth(self, view: DepthFrameView, px: int, py: int) -> float:
        """
        Median of the in-range samples around (px, py).

        Returns INVALID_DEPTH when the neighborhood is outside the frame or
        holds no finite sample inside (min_depth, max_depth).
        """
        r = self.sample_radius
        x0, x1 = max(0, px - r), min(view.width, px + r + 1)
        y0, y1 = max(0, py - r), min(view.height, py + r + 1)
        if x0 >= x1 or y0 >= y1:
            return INVALID_DEPTH

        window = view.read_window(x0, y0, x1, y1)
        samples = window[valid_depth_mask(window, self.min_depth, self.max_depth)]
        if samples.size == 0:
            return INVALID_DEPTH
        return float(np.median(samples))

    def sample(self, view: DepthFrameView) -> List[CellSample]:
        """One CellSample per grid point, in scan order."""
        cells = []
        for index, (u, v) in enumerate(self._points):
            px, py = self.to_pixel(u, v, view.width, view.height)
            distance = self.filtered_depth(view, px, py)
            cells.append(CellSample(index=index, uv=(u, v), pixel=(px, py), distance=distance))
        return cells

    def scan(self, view: DepthFrameView) -> GridScan:
        scan = GridScan(cells=self.sample(view))
        nearest = scan.nearest_cell
        if nearest is not None:
            logger.debug(
                f"Grid scan: {scan.valid_cell_count}/{len(scan.cells)} valid cells, "
                f"nearest {nearest.distance:.2f}m at cell {nearest.index}"
            )
        else:
            logger.debug(f"Grid scan: 0/{len(scan.cells)} valid cells")
        return scan


def make_candidates(cells: Sequence[CellSample], projector) -> List[Candidate]:
    """Candidates for the valid cells, preserving scan order."""
    return [Candidate(c.index, c.uv, c.distance, projector) for c in cells if c.is_valid]
