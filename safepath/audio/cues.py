from __future__ import annotations

import math

import numpy as np

from safepath.utils.logger import get_logger

try:
    import sounddevice as sd
except (ImportError, OSError):  # pragma: no cover
    sd = None

CUE_FREQ_HZ = 660.0
CUE_DURATION_S = 0.4
CUE_GAIN = 0.15
CUE_FLOOR = 0.0001


def pan_gains(pan: float) -> tuple[float, float]:
    """Equal-power (left, right) gains for a mono source panned to [-1, 1]."""
    pan = max(-1.0, min(1.0, float(pan)))
    x = (pan + 1.0) / 2.0
    return math.cos(x * math.pi / 2.0), math.sin(x * math.pi / 2.0)


def tone_buffer(
    pan: float = 0.0,
    sample_rate: int = 44100,
    freq_hz: float = CUE_FREQ_HZ,
    duration_s: float = CUE_DURATION_S,
    gain: float = CUE_GAIN,
) -> np.ndarray:
    """
    Stereo sine ping with an exponential decay from ``gain`` to near silence.
    Shape (N, 2), float32.
    """
    n = max(1, int(round(sample_rate * duration_s)))
    t = np.arange(n, dtype=np.float64) / float(sample_rate)
    envelope = gain * np.power(CUE_FLOOR / gain, t / duration_s)
    mono = np.sin(2.0 * np.pi * freq_hz * t) * envelope
    left, right = pan_gains(pan)
    return np.stack([mono * left, mono * right], axis=1).astype(np.float32)


class DirectionalCue:
    """Plays the short panned ping that precedes spoken alerts."""

    def __init__(self, sample_rate: int = 44100, enabled: bool = True):
        self.sample_rate = int(sample_rate)
        self.enabled = enabled
        self.logger = get_logger(__name__)
        if sd is None and enabled:
            self.logger.warning("sounddevice/PortAudio unavailable; directional cues are muted.")

    def play(self, pan: float = 0.0) -> None:
        if not self.enabled or sd is None:
            return
        try:
            sd.play(tone_buffer(pan, sample_rate=self.sample_rate), self.sample_rate, blocking=False)
        except sd.PortAudioError as exc:
            self.logger.warning("Cue playback failed: %s", exc)

    def close(self) -> None:
        if sd is not None:
            sd.stop()
