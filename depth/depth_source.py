#!/usr/bin/env python3
"""
Depth sources feeding the obstacle pipeline.

A depth source hands out at most one DepthFrame at a time through a
non-blocking try_acquire(); the frame must be released before the next
acquisition. acquire_frame() wraps that contract in a context manager so the
buffer is released on every exit path.

Sources provided here:
- ArrayDepthSource: replays in-memory arrays (tests, recorded sessions)
- PngSequenceDepthSource: replays a directory of recorded depth images
- SyntheticObstacleSource: procedural wall + obstacle scene for demos
"""

import cv2
import numpy as np
import os
from contextlib import contextmanager
from typing import Callable, Iterator, List, Optional, Sequence
import logging

from .depth_frame import DepthFrame, DepthFrameView, DepthFrameReleasedError, SampleUnit

logger = logging.getLogger(__name__)


class DepthSource:
    """Base class for depth sources."""

    def __init__(self):
        self._outstanding: Optional[DepthFrame] = None
        self.frames_acquired = 0

    def try_acquire(self) -> Optional[DepthFrame]:
        """Return the next frame immediately, or None if none is available."""
        if self._outstanding is not None:
            raise DepthFrameReleasedError(
                "Previous depth frame must be released before acquiring another"
            )
        frame = self._next_frame()
        if frame is not None:
            self._outstanding = frame
            self.frames_acquired += 1
        return frame

    def release(self, frame: DepthFrame):
        """Return a frame obtained from try_acquire()."""
        if frame is not self._outstanding:
            raise DepthFrameReleasedError("Releasing a frame this source does not hold")
        self._outstanding = None

    @property
    def holding_frame(self) -> bool:
        return self._outstanding is not None

    def _next_frame(self) -> Optional[DepthFrame]:
        raise NotImplementedError


@contextmanager
def acquire_frame(source: DepthSource) -> Iterator[Optional[DepthFrameView]]:
    """
    Scoped acquisition of one depth frame.

    Yields a DepthFrameView, or None when the source has nothing this cycle.
    The view is invalidated and the frame returned to the source on exit,
    including when the body raises.
    """
    frame = source.try_acquire()
    if frame is None:
        yield None
        return

    try:
        view = DepthFrameView(frame)
        try:
            yield view
        finally:
            view.release()
    finally:
        source.release(frame)


class ArrayDepthSource(DepthSource):
    """
    Replays a sequence of depth arrays.

    Entries that are None simulate cycles where the platform had no frame.
    """

    def __init__(self, frames: Sequence[Optional[np.ndarray]], loop: bool = False):
        super().__init__()
        self.frames: List[Optional[np.ndarray]] = list(frames)
        self.loop = loop
        self._index = 0

    def _next_frame(self) -> Optional[DepthFrame]:
        if self._index >= len(self.frames):
            if not self.loop or not self.frames:
                return None
            self._index = 0

        depth = self.frames[self._index]
        self._index += 1
        if depth is None:
            return None
        return DepthFrame.from_array(depth)


class PngSequenceDepthSource(DepthSource):
    """
    Replays recorded depth images from a directory in filename order.

    16-bit PNGs are read as millimeters, 32-bit float TIFFs and .npy files as
    meters (or millimeters if stored as uint16).
    """

    EXTENSIONS = (".png", ".tif", ".tiff", ".npy")

    def __init__(self, directory: str, loop: bool = False):
        super().__init__()
        if not os.path.isdir(directory):
            raise ValueError(f"Replay directory not found: {directory}")

        self.directory = directory
        self.loop = loop
        self.paths = sorted(
            os.path.join(directory, name)
            for name in os.listdir(directory)
            if name.lower().endswith(self.EXTENSIONS)
        )
        self._index = 0

        if not self.paths:
            logger.warning(f"No depth images found in {directory}")
        else:
            logger.info(f"Replaying {len(self.paths)} depth frames from {directory}")

    def _load(self, path: str) -> Optional[np.ndarray]:
        if path.lower().endswith(".npy"):
            depth = np.load(path)
        else:
            depth = cv2.imread(path, cv2.IMREAD_ANYDEPTH)

        if depth is None:
            logger.warning(f"Could not read depth image {path}")
            return None
        if depth.ndim == 3:
            depth = depth[:, :, 0]
        if depth.dtype not in (np.uint16, np.float32):
            depth = depth.astype(np.float32)
        return depth

    def _next_frame(self) -> Optional[DepthFrame]:
        if self._index >= len(self.paths):
            if not self.loop or not self.paths:
                return None
            self._index = 0

        path = self.paths[self._index]
        self._index += 1
        depth = self._load(path)
        if depth is None:
            return None
        return DepthFrame.from_array(depth)


class SyntheticObstacleSource(DepthSource):
    """
    Procedural scene: a flat background wall with one square obstacle.

    The obstacle distance is a function of the frame number, so an
    approaching obstacle can be simulated with e.g.
    ``lambda n: max(0.4, 3.0 - 0.05 * n)``.
    """

    def __init__(
        self,
        width: int = 160,
        height: int = 120,
        background_depth: float = 5.0,
        obstacle_depth: Callable[[int], float] = lambda n: 1.5,
        obstacle_center: Sequence[float] = (0.5, 0.5),
        obstacle_size: float = 0.25,
        noise_std: float = 0.0,
        seed: Optional[int] = None,
    ):
        super().__init__()
        self.width = width
        self.height = height
        self.background_depth = background_depth
        self.obstacle_depth = obstacle_depth
        self.obstacle_center = obstacle_center
        self.obstacle_size = obstacle_size
        self.noise_std = noise_std
        self.rng = np.random.default_rng(seed)
        self.frame_number = 0

    def render(self, frame_number: int) -> np.ndarray:
        """Depth image in millimeters for the given frame number."""
        depth = np.full((self.height, self.width), self.background_depth, dtype=np.float64)

        cx = int(self.obstacle_center[0] * (self.width - 1))
        cy = int(self.obstacle_center[1] * (self.height - 1))
        half_w = max(1, int(self.obstacle_size * self.width / 2))
        half_h = max(1, int(self.obstacle_size * self.height / 2))
        depth[
            max(0, cy - half_h) : cy + half_h + 1,
            max(0, cx - half_w) : cx + half_w + 1,
        ] = self.obstacle_depth(frame_number)

        if self.noise_std > 0:
            depth += self.rng.normal(0.0, self.noise_std, depth.shape)

        return np.clip(depth * 1000.0, 0, np.iinfo(np.uint16).max).astype(np.uint16)

    def _next_frame(self) -> Optional[DepthFrame]:
        depth = self.render(self.frame_number)
        self.frame_number += 1
        return DepthFrame.from_array(depth)
