#!/usr/bin/env python3
"""
Audio renderers for beacon cue triggers.

The cue mapper decides when to beep, at what pitch and from where; a
renderer turns that into sound. PygameCueRenderer plays a short beep through
the pygame mixer, panned towards the obstacle and attenuated with a
logarithmic rolloff. LoggingCueRenderer only records triggers, for headless
runs and tests.

Usage:
    from spatial_audio.beep_renderer import PygameCueRenderer

    renderer = PygameCueRenderer(pose_provider, max_distance=8.0)
    renderer.start()
    renderer.play(trigger)
    renderer.stop()
"""

import pygame
import numpy as np
from typing import Dict, List, Optional, Tuple
import logging

from .cue_mapper import CueTrigger

logger = logging.getLogger(__name__)

SAMPLE_RATE = 44100


def logarithmic_rolloff(distance: float, min_distance: float, max_distance: float) -> float:
    """
    Inverse-distance gain: 1.0 inside min_distance, min/d beyond it.

    Attenuation stops at max_distance, where the gain is held.
    """
    if distance <= min_distance:
        return 1.0
    return min_distance / min(distance, max_distance)


def stereo_gains(
    listener_position: np.ndarray,
    listener_right: np.ndarray,
    source_position: np.ndarray,
) -> Tuple[float, float]:
    """
    Constant-power left/right gains for a source around the listener.

    Uses the sine of the azimuth (projection of the source direction onto
    the listener's right vector), so a source straight ahead or behind is
    centered.
    """
    offset = np.asarray(source_position, dtype=np.float64) - listener_position
    norm = np.linalg.norm(offset)
    if norm < 1e-9:
        return float(np.sqrt(0.5)), float(np.sqrt(0.5))

    pan = float(np.clip(np.dot(offset / norm, listener_right), -1.0, 1.0))
    angle = (pan + 1.0) * np.pi / 4.0  # 0 = hard left, pi/2 = hard right
    return float(np.cos(angle)), float(np.sin(angle))


def generate_beep(frequency: float = 880.0, duration: float = 0.08, volume: float = 0.5) -> np.ndarray:
    """Mono float32 sine burst with short fades to avoid clicks."""
    num_samples = int(duration * SAMPLE_RATE)
    t = np.arange(num_samples) / SAMPLE_RATE
    tone = np.sin(2 * np.pi * frequency * t) * volume

    fade = min(num_samples // 2, int(0.005 * SAMPLE_RATE))
    if fade > 0:
        ramp = np.linspace(0.0, 1.0, fade)
        tone[:fade] *= ramp
        tone[-fade:] *= ramp[::-1]
    return tone.astype(np.float32)


def pitch_shift(samples: np.ndarray, pitch: float) -> np.ndarray:
    """Resample so playback runs `pitch` times faster (and higher)."""
    if pitch <= 0:
        raise ValueError(f"Pitch must be positive, got {pitch}")
    length = max(1, int(round(len(samples) / pitch)))
    positions = np.linspace(0, len(samples) - 1, length)
    return np.interp(positions, np.arange(len(samples)), samples).astype(np.float32)


class CueRenderer:
    """Base class for cue renderers."""

    def start(self):
        pass

    def play(self, trigger: CueTrigger):
        raise NotImplementedError

    def stop(self):
        pass


class LoggingCueRenderer(CueRenderer):
    """Keeps and logs every trigger instead of playing it."""

    def __init__(self, max_history: int = 1000):
        self.max_history = max_history
        self.triggers: List[CueTrigger] = []

    def play(self, trigger: CueTrigger):
        self.triggers.append(trigger)
        if len(self.triggers) > self.max_history:
            del self.triggers[0]
        logger.info(
            f"BEEP {trigger.distance:.2f}m pitch={trigger.pitch:.2f} "
            f"pos=({trigger.world_position[0]:.2f}, {trigger.world_position[1]:.2f}, "
            f"{trigger.world_position[2]:.2f})"
        )


class PygameCueRenderer(CueRenderer):
    """Spatial one-shot beeps through the pygame mixer."""

    def __init__(
        self,
        pose_provider,
        min_distance: float = 0.5,
        max_distance: float = 8.0,
        master_volume: float = 0.3,
        clip_path: Optional[str] = None,
        beep_frequency: float = 880.0,
        max_channels: int = 8,
    ):
        """
        Args:
            pose_provider: Listener pose (observer position and view rays)
            min_distance: Distance at which a beep is loudest
            max_distance: Distance beyond which it gets no quieter
            master_volume: Overall volume (0.0 to 1.0)
            clip_path: Sound file to use instead of the generated beep
            beep_frequency: Frequency of the generated beep (Hz)
            max_channels: Mixer channels reserved for overlapping beeps
        """
        if not 0 < min_distance < max_distance:
            raise ValueError(f"Need 0 < min_distance ({min_distance}) < max_distance ({max_distance})")

        self.pose_provider = pose_provider
        self.min_distance = min_distance
        self.max_distance = max_distance
        self.master_volume = master_volume
        self.clip_path = clip_path
        self.beep_frequency = beep_frequency
        self.max_channels = max_channels

        self.is_running = False
        self._clip: Optional[np.ndarray] = None
        self._sound_cache: Dict[float, "pygame.mixer.Sound"] = {}

    def start(self):
        """Initialize the mixer and prepare the beep clip."""
        if self.is_running:
            return
        try:
            pygame.mixer.init(frequency=SAMPLE_RATE, size=-16, channels=2, buffer=512)
        except pygame.error as e:
            raise RuntimeError(f"Failed to initialize pygame mixer: {e}") from e
        if not pygame.mixer.get_init():
            raise RuntimeError("Pygame mixer failed to initialize")
        pygame.mixer.set_num_channels(self.max_channels)

        self._clip = self._load_clip()
        self.is_running = True
        logger.info(
            f"Pygame cue renderer started ({self.max_channels} channels, "
            f"rolloff {self.min_distance}-{self.max_distance}m)"
        )

    def _load_clip(self) -> np.ndarray:
        if self.clip_path is None:
            return generate_beep(self.beep_frequency)
        try:
            sound = pygame.mixer.Sound(self.clip_path)
        except (pygame.error, FileNotFoundError) as e:
            logger.warning(f"Could not load {self.clip_path} ({e}), using generated beep")
            return generate_beep(self.beep_frequency)

        samples = pygame.sndarray.array(sound).astype(np.float32) / 32768.0
        if samples.ndim == 2:
            samples = samples.mean(axis=1)
        return samples

    def _sound_for_pitch(self, pitch: float) -> "pygame.mixer.Sound":
        key = round(pitch, 2)
        sound = self._sound_cache.get(key)
        if sound is None:
            mono = pitch_shift(self._clip, key)
            stereo = np.column_stack([mono, mono])
            pcm = np.ascontiguousarray((stereo * 32767).astype(np.int16))
            sound = pygame.sndarray.make_sound(pcm)
            self._sound_cache[key] = sound
        return sound

    def listener_right(self) -> np.ndarray:
        """Listener's right vector, derived from the viewport edge rays."""
        _, left = self.pose_provider.viewport_to_world_ray(0.0, 0.5)
        _, right = self.pose_provider.viewport_to_world_ray(1.0, 0.5)
        direction = right - left
        norm = np.linalg.norm(direction)
        return direction / norm if norm > 1e-9 else np.array([1.0, 0.0, 0.0])

    def play(self, trigger: CueTrigger):
        if not self.is_running:
            raise RuntimeError("Renderer not started")

        listener = self.pose_provider.observer_position()
        distance = float(np.linalg.norm(np.asarray(trigger.world_position) - listener))
        gain = self.master_volume * logarithmic_rolloff(distance, self.min_distance, self.max_distance)
        left, right = stereo_gains(listener, self.listener_right(), trigger.world_position)

        channel = self._sound_for_pitch(trigger.pitch).play()
        if channel is None:
            logger.debug("No free mixer channel, beep dropped")
            return
        channel.set_volume(gain * left, gain * right)

    def stop(self):
        if not self.is_running:
            return
        pygame.mixer.stop()
        pygame.mixer.quit()
        self._sound_cache.clear()
        self.is_running = False
        logger.info("Pygame cue renderer stopped")
