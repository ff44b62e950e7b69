#!/usr/bin/env python3
"""
Tests for the renderer helpers. Nothing here opens an audio device.
"""

import numpy as np
import pytest

from depth import PinholePoseProvider
from spatial_audio import CueTrigger, LoggingCueRenderer, PygameCueRenderer
from spatial_audio.beep_renderer import (
    SAMPLE_RATE,
    generate_beep,
    logarithmic_rolloff,
    pitch_shift,
    stereo_gains,
)


def trigger(distance=1.0, x=0.0):
    return CueTrigger(
        world_position=np.array([x, 0.0, distance]),
        pitch=1.0,
        distance=distance,
        interval=0.5,
        timestamp=0.0,
    )


def test_logarithmic_rolloff():
    assert logarithmic_rolloff(0.2, 0.5, 8.0) == 1.0
    assert logarithmic_rolloff(1.0, 0.5, 8.0) == pytest.approx(0.5)
    assert logarithmic_rolloff(16.0, 0.5, 8.0) == pytest.approx(0.5 / 8.0)


class TestStereoGains:
    listener = np.zeros(3)
    right = np.array([1.0, 0.0, 0.0])

    def test_ahead_is_centered(self):
        left_gain, right_gain = stereo_gains(self.listener, self.right, [0.0, 0.0, 2.0])
        assert left_gain == pytest.approx(right_gain)
        assert left_gain ** 2 + right_gain ** 2 == pytest.approx(1.0)

    def test_hard_right_and_left(self):
        left_gain, right_gain = stereo_gains(self.listener, self.right, [3.0, 0.0, 0.0])
        assert left_gain == pytest.approx(0.0, abs=1e-9)
        assert right_gain == pytest.approx(1.0)

        left_gain, right_gain = stereo_gains(self.listener, self.right, [-3.0, 0.0, 0.0])
        assert left_gain == pytest.approx(1.0)
        assert right_gain == pytest.approx(0.0, abs=1e-9)

    def test_source_at_listener(self):
        left_gain, right_gain = stereo_gains(self.listener, self.right, [0.0, 0.0, 0.0])
        assert left_gain == pytest.approx(np.sqrt(0.5))
        assert right_gain == pytest.approx(np.sqrt(0.5))


def test_generate_beep():
    beep = generate_beep(frequency=440.0, duration=0.08, volume=0.5)

    assert beep.dtype == np.float32
    assert len(beep) == int(0.08 * SAMPLE_RATE)
    assert np.max(np.abs(beep)) <= 0.5 + 1e-6
    assert beep[0] == 0.0


def test_pitch_shift_changes_length():
    samples = np.linspace(-1.0, 1.0, 100).astype(np.float32)

    assert len(pitch_shift(samples, 2.0)) == 50
    assert len(pitch_shift(samples, 0.5)) == 200
    with pytest.raises(ValueError):
        pitch_shift(samples, 0.0)


def test_logging_renderer_keeps_bounded_history():
    renderer = LoggingCueRenderer(max_history=2)
    for distance in (3.0, 2.0, 1.0):
        renderer.play(trigger(distance))

    assert [t.distance for t in renderer.triggers] == [2.0, 1.0]


class TestPygameCueRenderer:
    def test_listener_right_follows_pose(self):
        renderer = PygameCueRenderer(PinholePoseProvider())
        np.testing.assert_allclose(renderer.listener_right(), [1.0, 0.0, 0.0], atol=1e-9)

    def test_play_requires_start(self):
        renderer = PygameCueRenderer(PinholePoseProvider())
        with pytest.raises(RuntimeError):
            renderer.play(trigger())

    def test_distance_range_validated(self):
        with pytest.raises(ValueError):
            PygameCueRenderer(PinholePoseProvider(), min_distance=5.0, max_distance=2.0)
