#!/usr/bin/env python3
"""
Tests for the plane cache and its refresh cadence.
"""

import numpy as np
import pytest

from depth import CadenceController, PlaneAlignment, PlaneCache, StaticPlaneProvider, TrackedPlane


def floor(y=0.0):
    return TrackedPlane(PlaneAlignment.HORIZONTAL_UP, center=(0.0, y, 0.0), extents=(2.0, 2.0))


class TestCadenceController:
    def test_first_check_is_due(self):
        cadence = CadenceController(30)
        assert cadence.is_due(0)
        assert cadence.since_last_run(0) is None

    def test_interval_gates_runs(self):
        cadence = CadenceController(30)
        cadence.mark(0)

        assert not cadence.is_due(29)
        assert cadence.is_due(30)
        assert cadence.since_last_run(12) == 12

    def test_zero_interval_always_due(self):
        cadence = CadenceController(0)
        cadence.mark(5.0)
        assert cadence.is_due(5.0)

    def test_reset(self):
        cadence = CadenceController(10)
        cadence.mark(3)
        cadence.reset()
        assert cadence.is_due(4)

    def test_negative_interval_rejected(self):
        with pytest.raises(ValueError):
            CadenceController(-1)


class TestPlaneCache:
    def test_keeps_only_upward_horizontal_planes(self):
        planes = [
            floor(0.0),
            TrackedPlane(PlaneAlignment.HORIZONTAL_DOWN, center=(0.0, 2.5, 0.0), extents=(2.0, 2.0)),
            TrackedPlane(PlaneAlignment.VERTICAL, center=(0.0, 1.0, 3.0), extents=(2.0, 2.0)),
            TrackedPlane(PlaneAlignment.NOT_AXIS_ALIGNED, center=(0.0, 0.5, 1.0), extents=(1.0, 1.0)),
        ]
        cache = PlaneCache(CadenceController(30))

        assert cache.refresh(planes, now=0)
        assert len(cache) == 1
        assert cache.snapshot()[0].y_position == 0.0

    def test_refresh_only_when_due(self):
        cache = PlaneCache(CadenceController(30))
        cache.refresh([floor(0.0)], now=0)

        assert not cache.refresh([floor(0.0), floor(-0.2)], now=10)
        assert len(cache) == 1
        assert cache.refresh([floor(0.0), floor(-0.2)], now=30)
        assert len(cache) == 2
        assert cache.refresh_count == 2

    def test_skipped_refresh_does_not_consume_planes(self):
        consumed = []

        def planes():
            consumed.append(True)
            yield floor()

        cache = PlaneCache(CadenceController(30))
        cache.refresh(planes(), now=0)
        cache.refresh(planes(), now=1)

        assert len(consumed) == 1

    def test_refresh_replaces_snapshot_wholesale(self):
        cache = PlaneCache(CadenceController(0))
        cache.refresh([floor(0.0), floor(0.1)], now=0)
        held = cache.snapshot()

        cache.refresh([floor(-1.0)], now=1)

        assert len(held) == 2
        assert cache.snapshot() is not held
        assert [p.y_position for p in cache.snapshot()] == [-1.0]

    def test_snapshot_arrays_are_read_only(self):
        cache = PlaneCache(CadenceController(0))
        cache.refresh([floor(0.0)], now=0)
        plane = cache.snapshot()[0]

        with pytest.raises(ValueError):
            plane.center[0] = 1.0
        np.testing.assert_allclose(plane.rotation, [0.0, 0.0, 0.0, 1.0])

    def test_lowest_floor(self):
        cache = PlaneCache(CadenceController(0))
        assert cache.lowest_floor_y() is None

        cache.refresh([floor(0.4), floor(-0.1)], now=0)
        assert cache.lowest_floor_y() == pytest.approx(-0.1)


def test_static_provider_yields_planes():
    provider = StaticPlaneProvider([floor(0.0)])
    cache = PlaneCache(CadenceController(0))
    cache.refresh(provider.tracked_planes(), now=0)
    assert len(cache) == 1
