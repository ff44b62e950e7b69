#!/usr/bin/env python3
"""
Tests for the depth frame view and scoped acquisition.

Usage:
    python3 -m pytest depth/test_depth_frame.py
"""

import cv2
import numpy as np
import pytest

from depth import (
    ArrayDepthSource,
    DepthFrame,
    DepthFrameReleasedError,
    DepthFrameView,
    PngSequenceDepthSource,
    SampleUnit,
    SyntheticObstacleSource,
    acquire_frame,
)


def test_millimeter_frame_reads_meters():
    depth_mm = np.array([[1000, 2000, 3000], [4000, 5000, 6000]], dtype=np.uint16)
    view = DepthFrameView(DepthFrame.from_array(depth_mm))

    assert view.sample_unit is SampleUnit.MILLIMETERS_U16
    assert view.width == 3 and view.height == 2
    assert view.meters_at(0, 0) == pytest.approx(1.0)
    assert view.meters_at(2, 1) == pytest.approx(6.0)


def test_float_frame_is_identity():
    depth_m = np.array([[0.5, 1.25], [2.0, np.nan]], dtype=np.float32)
    view = DepthFrameView(DepthFrame.from_array(depth_m))

    assert view.sample_unit is SampleUnit.METERS_F32
    assert view.meters_at(1, 0) == pytest.approx(1.25)
    assert np.isnan(view.meters_at(1, 1))


def test_row_padding_is_respected():
    """Rows padded past width * pixel size must not shift later rows."""
    depth_mm = np.arange(12, dtype=np.uint16).reshape(3, 4) * 100
    frame = DepthFrame.from_array(depth_mm, row_padding_bytes=6)
    assert frame.row_stride_bytes == 4 * 2 + 6

    view = DepthFrameView(frame)
    np.testing.assert_allclose(view.to_meters_array(), depth_mm / 1000.0)
    np.testing.assert_allclose(view.read_window(1, 1, 3, 3), depth_mm[1:3, 1:3] / 1000.0)


def test_short_buffer_rejected():
    frame = DepthFrame(
        width=4,
        height=4,
        row_stride_bytes=8,
        pixel_stride_bytes=2,
        sample_unit=SampleUnit.MILLIMETERS_U16,
        buffer=bytes(20),
    )
    with pytest.raises(ValueError):
        DepthFrameView(frame)


def test_out_of_bounds_reads_raise():
    view = DepthFrameView(DepthFrame.from_array(np.ones((4, 4), dtype=np.float32)))

    with pytest.raises(IndexError):
        view.meters_at(4, 0)
    with pytest.raises(IndexError):
        view.read_window(-1, 0, 2, 2)
    with pytest.raises(IndexError):
        view.read_window(0, 0, 5, 2)


def test_read_after_release_raises():
    view = DepthFrameView(DepthFrame.from_array(np.ones((4, 4), dtype=np.float32)))
    view.release()

    assert view.released
    with pytest.raises(DepthFrameReleasedError):
        view.meters_at(0, 0)
    with pytest.raises(DepthFrameReleasedError):
        view.read_window(0, 0, 1, 1)


def test_view_is_read_only():
    view = DepthFrameView(DepthFrame.from_array(np.ones((2, 2), dtype=np.float32)))
    window = view._raw
    with pytest.raises(ValueError):
        window[0, 0] = 5.0


class TestAcquireFrame:
    """Scoped acquisition always returns the frame to its source."""

    def test_yields_view_and_releases(self):
        source = ArrayDepthSource([np.full((4, 4), 1500, dtype=np.uint16)])

        with acquire_frame(source) as view:
            assert view is not None
            assert source.holding_frame
            assert view.meters_at(0, 0) == pytest.approx(1.5)

        assert view.released
        assert not source.holding_frame

    def test_absent_frame_yields_none(self):
        source = ArrayDepthSource([None])
        with acquire_frame(source) as view:
            assert view is None
        assert source.frames_acquired == 0

    def test_releases_when_body_raises(self):
        source = ArrayDepthSource([np.ones((4, 4), dtype=np.float32)])

        with pytest.raises(ZeroDivisionError):
            with acquire_frame(source) as view:
                1 / 0

        assert view.released
        assert not source.holding_frame

    def test_second_acquire_without_release_is_misuse(self):
        source = ArrayDepthSource([np.ones((2, 2), dtype=np.float32)] * 2)
        source.try_acquire()
        with pytest.raises(DepthFrameReleasedError):
            source.try_acquire()

    def test_exhausted_source_returns_none_unless_looping(self):
        frame = np.ones((2, 2), dtype=np.float32)

        once = ArrayDepthSource([frame])
        once.release(once.try_acquire())
        assert once.try_acquire() is None

        looping = ArrayDepthSource([frame], loop=True)
        looping.release(looping.try_acquire())
        assert looping.try_acquire() is not None


class TestPngSequenceDepthSource:
    def test_replays_png_and_npy_in_name_order(self, tmp_path):
        depth_mm = np.full((6, 8), 2500, dtype=np.uint16)
        assert cv2.imwrite(str(tmp_path / "000.png"), depth_mm)
        np.save(tmp_path / "001.npy", np.full((6, 8), 1.75, dtype=np.float32))
        (tmp_path / "notes.txt").write_text("ignored")

        source = PngSequenceDepthSource(str(tmp_path))
        assert len(source.paths) == 2

        with acquire_frame(source) as view:
            assert view.sample_unit is SampleUnit.MILLIMETERS_U16
            assert view.meters_at(3, 2) == pytest.approx(2.5)
        with acquire_frame(source) as view:
            assert view.sample_unit is SampleUnit.METERS_F32
            assert view.meters_at(3, 2) == pytest.approx(1.75)
        with acquire_frame(source) as view:
            assert view is None

    def test_missing_directory(self, tmp_path):
        with pytest.raises(ValueError):
            PngSequenceDepthSource(str(tmp_path / "missing"))


def test_synthetic_source_renders_obstacle():
    source = SyntheticObstacleSource(
        width=40, height=30, background_depth=5.0, obstacle_depth=lambda n: 2.0 - 0.5 * n
    )

    first = source.render(0)
    second = source.render(1)

    assert first.dtype == np.uint16
    assert first[0, 0] == 5000
    assert first[15, 20] == 2000
    assert second[15, 20] == 1500
