#!/usr/bin/env python3
"""
Depth frame container and read-only view.

A DepthFrame is one acquired depth buffer exactly as the platform hands it
over: dimensions, byte strides, sample encoding and the raw bytes. The
DepthFrameView wraps it in a strided numpy array so the rest of the pipeline
can read distances in meters without touching byte offsets.

Usage:
    from depth.depth_frame import DepthFrame, DepthFrameView

    frame = DepthFrame.from_array(depth_mm.astype(np.uint16))
    view = DepthFrameView(frame)
    window = view.read_window(10, 10, 15, 15)  # meters, float64
    view.release()
"""

import numpy as np
from dataclasses import dataclass
from enum import Enum
from typing import Optional, Union
import logging

logger = logging.getLogger(__name__)

MILLIMETERS_TO_METERS = 0.001


class DepthFrameReleasedError(RuntimeError):
    """Raised when a depth buffer is read after it has been released."""


class SampleUnit(Enum):
    """Encoding of the raw depth samples."""

    MILLIMETERS_U16 = "millimeters_u16"
    METERS_F32 = "meters_f32"

    @property
    def dtype(self) -> np.dtype:
        if self is SampleUnit.MILLIMETERS_U16:
            return np.dtype("<u2")
        return np.dtype("<f4")


@dataclass(frozen=True)
class DepthFrame:
    """One depth buffer as delivered by the depth source."""

    width: int
    height: int
    row_stride_bytes: int
    pixel_stride_bytes: int
    sample_unit: SampleUnit
    buffer: Union[bytes, memoryview]

    @classmethod
    def from_array(
        cls,
        depth: np.ndarray,
        sample_unit: Optional[SampleUnit] = None,
        row_padding_bytes: int = 0,
    ) -> "DepthFrame":
        """
        Pack a 2D array into a DepthFrame.

        Args:
            depth: uint16 millimeters or float32 meters, shape (height, width)
            sample_unit: Encoding (inferred from dtype if None)
            row_padding_bytes: Extra bytes appended to every row, as some
                platforms pad rows to an alignment boundary

        Returns:
            DepthFrame owning a copy of the data
        """
        if depth.ndim != 2:
            raise ValueError(f"Depth array must be 2D, got shape {depth.shape}")

        if sample_unit is None:
            if depth.dtype == np.uint16:
                sample_unit = SampleUnit.MILLIMETERS_U16
            elif depth.dtype == np.float32:
                sample_unit = SampleUnit.METERS_F32
            else:
                raise ValueError(
                    f"Cannot infer sample unit for dtype {depth.dtype}; "
                    "pass uint16 millimeters or float32 meters"
                )

        dtype = sample_unit.dtype
        height, width = depth.shape
        data = np.ascontiguousarray(depth, dtype=dtype)

        if row_padding_bytes:
            padded = np.zeros((height, width * dtype.itemsize + row_padding_bytes), dtype=np.uint8)
            padded[:, : width * dtype.itemsize] = data.view(np.uint8).reshape(height, -1)
            raw = padded.tobytes()
        else:
            raw = data.tobytes()

        return cls(
            width=width,
            height=height,
            row_stride_bytes=width * dtype.itemsize + row_padding_bytes,
            pixel_stride_bytes=dtype.itemsize,
            sample_unit=sample_unit,
            buffer=raw,
        )


def to_meters(raw: np.ndarray, sample_unit: SampleUnit) -> np.ndarray:
    """Convert raw samples to float64 meters."""
    if sample_unit is SampleUnit.MILLIMETERS_U16:
        return raw.astype(np.float64) * MILLIMETERS_TO_METERS
    return raw.astype(np.float64)


class DepthFrameView:
    """
    Read-only, bounds-checked view over a DepthFrame.

    The buffer layout is validated once at construction. Reads after
    release() raise DepthFrameReleasedError.
    """

    def __init__(self, frame: DepthFrame):
        if frame.width < 1 or frame.height < 1:
            raise ValueError(f"Invalid frame size {frame.width}x{frame.height}")

        dtype = frame.sample_unit.dtype
        if frame.pixel_stride_bytes < dtype.itemsize:
            raise ValueError(
                f"Pixel stride {frame.pixel_stride_bytes} smaller than sample size {dtype.itemsize}"
            )
        if frame.row_stride_bytes < frame.width * frame.pixel_stride_bytes:
            raise ValueError(
                f"Row stride {frame.row_stride_bytes} too small for {frame.width} pixels"
            )

        required = (
            (frame.height - 1) * frame.row_stride_bytes
            + (frame.width - 1) * frame.pixel_stride_bytes
            + dtype.itemsize
        )
        if len(frame.buffer) < required:
            raise ValueError(
                f"Depth buffer holds {len(frame.buffer)} bytes, layout needs {required}"
            )

        self._frame = frame
        self._raw: Optional[np.ndarray] = np.ndarray(
            shape=(frame.height, frame.width),
            dtype=dtype,
            buffer=frame.buffer,
            strides=(frame.row_stride_bytes, frame.pixel_stride_bytes),
        )
        self._raw.flags.writeable = False

    @property
    def width(self) -> int:
        return self._frame.width

    @property
    def height(self) -> int:
        return self._frame.height

    @property
    def sample_unit(self) -> SampleUnit:
        return self._frame.sample_unit

    @property
    def frame(self) -> DepthFrame:
        return self._frame

    @property
    def released(self) -> bool:
        return self._raw is None

    def _checked_raw(self) -> np.ndarray:
        if self._raw is None:
            raise DepthFrameReleasedError("Depth frame was read after release")
        return self._raw

    def meters_at(self, x: int, y: int) -> float:
        """Distance in meters of a single pixel."""
        raw = self._checked_raw()
        if not (0 <= x < self.width and 0 <= y < self.height):
            raise IndexError(f"Pixel ({x}, {y}) outside {self.width}x{self.height} frame")
        return float(to_meters(raw[y, x], self.sample_unit))

    def read_window(self, x0: int, y0: int, x1: int, y1: int) -> np.ndarray:
        """
        Read the half-open pixel window [x0, x1) x [y0, y1) in meters.

        The window must lie inside the frame; callers clip before reading.
        """
        raw = self._checked_raw()
        if not (0 <= x0 <= x1 <= self.width and 0 <= y0 <= y1 <= self.height):
            raise IndexError(
                f"Window x[{x0}:{x1}] y[{y0}:{y1}] outside {self.width}x{self.height} frame"
            )
        return to_meters(raw[y0:y1, x0:x1], self.sample_unit)

    def to_meters_array(self) -> np.ndarray:
        """Copy of the whole frame in meters."""
        return to_meters(self._checked_raw(), self.sample_unit)

    def release(self):
        """Drop the reference to the underlying buffer."""
        self._raw = None


def valid_depth_mask(samples: np.ndarray, min_depth: float, max_depth: float) -> np.ndarray:
    """Samples that are finite and strictly inside (min_depth, max_depth)."""
    with np.errstate(invalid="ignore"):
        return np.isfinite(samples) & (samples > min_depth) & (samples < max_depth)
