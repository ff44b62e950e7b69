#!/usr/bin/env python3
"""
Spatial Audio Module for the obstacle beacon

This module maps the tracked obstacle distance to beeps: pitch rises and the
beep cadence speeds up as the obstacle gets closer. Beeps are rendered from
the obstacle's world position with pygame.

Main components:
- AudioCueMapper: Distance to pitch / beep interval, cooldown gating
- PygameCueRenderer: Panned, distance-attenuated one-shot beeps
- ObstacleBeaconSystem: Full integration with the depth pipeline

Usage:
    from spatial_audio import AudioCueMapper

    mapper = AudioCueMapper(min_depth=0.3, max_depth=8.0)
    trigger = mapper.tick(now, estimate)
"""

from .cue_mapper import AudioCueMapper, AudioCueState, CueState, CueTrigger, ResponseCurve
from .beep_renderer import CueRenderer, LoggingCueRenderer, PygameCueRenderer
from .integration import ObstacleBeaconSystem, CycleResult, BeaconDiagnostics

__all__ = [
    "AudioCueMapper",
    "AudioCueState",
    "CueState",
    "CueTrigger",
    "ResponseCurve",
    "CueRenderer",
    "LoggingCueRenderer",
    "PygameCueRenderer",
    "ObstacleBeaconSystem",
    "CycleResult",
    "BeaconDiagnostics",
]

__version__ = "1.0.0"
