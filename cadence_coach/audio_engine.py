"""
Audio feedback engine.
Plays a rhythmic metronome beat at the baseline tempo and short feedback cues
(cadence up / down / recovered) through the pygame mixer.
"""
import logging
import os
from typing import Callable, Dict, Optional, Protocol

import numpy as np
import pygame

from cadence_coach import config as cfg
from cadence_coach.scheduler import Scheduler, TaskHandle

logger = logging.getLogger(__name__)

CUE_KINDS = ("beat", "cadence_up", "cadence_down", "cadence_recovered")


class FeedbackSink(Protocol):
    """Anything that can voice cadence feedback."""

    def start_beat(self, cadence_spm: int) -> None: ...
    def stop_beat(self) -> None: ...
    def play_cadence_up(self) -> None: ...
    def play_cadence_down(self) -> None: ...
    def play_cadence_recovered(self) -> None: ...


# --- Cue Synthesis ---
def _tone(freq_start: float, freq_end: float, duration_s: float, sr: int) -> np.ndarray:
    """Linear chirp between two frequencies with a short fade in/out."""
    n = max(1, int(duration_s * sr))
    freqs = np.linspace(freq_start, freq_end, n, dtype=np.float64)
    phase = 2.0 * np.pi * np.cumsum(freqs) / sr
    y = np.sin(phase)
    fade = min(n // 2, int(0.005 * sr))
    if fade > 0:
        ramp = np.linspace(0.0, 1.0, fade)
        y[:fade] *= ramp
        y[-fade:] *= ramp[::-1]
    return y.astype(np.float32)


def synth_cue(kind: str, sr: int = cfg.SAMPLE_RATE) -> np.ndarray:
    """Synthesises a mono cue waveform in [-1, 1]."""
    if kind == "beat":
        n = int(0.03 * sr)
        t = np.arange(n) / sr
        return (np.sin(2.0 * np.pi * 1000.0 * t) * np.exp(-t * 120.0)).astype(np.float32)
    if kind == "cadence_up":
        return _tone(600.0, 1200.0, 0.25, sr)
    if kind == "cadence_down":
        return _tone(1200.0, 600.0, 0.25, sr)
    if kind == "cadence_recovered":
        gap = np.zeros(int(0.04 * sr), dtype=np.float32)
        return np.concatenate([_tone(880.0, 880.0, 0.12, sr), gap, _tone(1320.0, 1320.0, 0.12, sr)])
    raise ValueError(f"Unknown cue kind: {kind}")


def to_pcm16(y: np.ndarray) -> np.ndarray:
    """Converts a float waveform to 16-bit PCM."""
    y = np.clip(np.asarray(y, dtype=np.float32), -1.0, 1.0)
    return (y * 32767.0).astype(np.int16)


def beat_interval_ms(cadence_spm: int) -> int:
    """Time between metronome clicks for a given cadence."""
    return 60_000 // int(cadence_spm)


# --- Playback ---
class AudioEngine:
    """
    FeedbackSink backed by pygame.
    Channel 0 carries the beat, channel 1 the feedback cues; starting a cue on a
    busy channel replaces whatever was still playing there.
    """

    def __init__(self, scheduler: Scheduler, sounds_dir: str = cfg.SOUNDS_DIR,
                 enable_audio: bool = cfg.ENABLE_AUDIO, sample_rate: int = cfg.SAMPLE_RATE,
                 status: Optional[Callable[[str], None]] = None) -> None:
        self.scheduler = scheduler
        self.sounds_dir = sounds_dir
        self.sample_rate = int(sample_rate)
        self.status = status or logger.warning

        self.beat_cadence = 0
        self.beat_task: Optional[TaskHandle] = None
        self.beats_played = 0
        self.last_cue: Optional[str] = None

        self.audio_enabled = False
        self.beat_ch = None
        self.cue_ch = None
        self.sounds: Dict[str, "pygame.mixer.Sound"] = {}
        if enable_audio:
            self._init_mixer()

    def _init_mixer(self) -> None:
        try:
            pygame.mixer.init(frequency=self.sample_rate, size=-16, channels=1)
            self.beat_ch = pygame.mixer.Channel(0)
            self.cue_ch = pygame.mixer.Channel(1)
            self.beat_ch.set_volume(cfg.BEAT_VOLUME)
            self.cue_ch.set_volume(cfg.FEEDBACK_VOLUME)
            self.sounds = {kind: self._load_sound(kind) for kind in CUE_KINDS}
            self.audio_enabled = True
        except pygame.error as e:
            self.audio_enabled = False
            self.status(f"⚠️ Audio output disabled: {e}")

    def _load_sound(self, kind: str) -> "pygame.mixer.Sound":
        """Loads the cue WAV if present, otherwise synthesises it."""
        path = os.path.join(self.sounds_dir, cfg.CUE_FILES[kind])
        if os.path.exists(path):
            try:
                return pygame.mixer.Sound(path)
            except pygame.error as e:
                logger.warning("Could not load %s (%s); using synthesised cue", path, e)
        return pygame.mixer.Sound(buffer=to_pcm16(synth_cue(kind, self.sample_rate)).tobytes())

    @property
    def is_beating(self) -> bool:
        return self.beat_task is not None

    def _click(self) -> None:
        self.beats_played += 1
        if self.audio_enabled:
            self.beat_ch.play(self.sounds["beat"])

    def start_beat(self, cadence_spm: int) -> None:
        """Starts the metronome at the given cadence, replacing any running beat."""
        self.stop_beat()
        if cadence_spm is None or int(cadence_spm) <= 0:
            return
        self.beat_cadence = int(cadence_spm)
        interval = beat_interval_ms(self.beat_cadence)
        self.beat_task = self.scheduler.call_every(interval, self._click, first_delay_ms=0,
                                                  name="beat", skip_missed=True)
        logger.info("Beat started at %d SPM (%d ms)", self.beat_cadence, interval)

    def stop_beat(self) -> None:
        if self.beat_task is not None:
            self.beat_task.cancel()
            self.beat_task = None
            logger.info("Beat stopped")
        self.beat_cadence = 0
        if self.audio_enabled:
            self.beat_ch.stop()

    def _play_cue(self, kind: str) -> None:
        self.last_cue = kind
        if self.audio_enabled:
            self.cue_ch.play(self.sounds[kind])

    def play_cadence_up(self) -> None:
        self._play_cue("cadence_up")

    def play_cadence_down(self) -> None:
        self._play_cue("cadence_down")

    def play_cadence_recovered(self) -> None:
        self._play_cue("cadence_recovered")

    def close(self) -> None:
        """Stops all playback and releases the mixer."""
        self.stop_beat()
        if self.audio_enabled:
            self.cue_ch.stop()
            pygame.mixer.quit()
            self.audio_enabled = False
