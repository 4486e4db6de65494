import logging
import math
from dataclasses import dataclass
from threading import Lock, Thread
from typing import Optional, Sequence

import numpy as np

try:
    import pyaudio
except ImportError:  # pragma: no cover - optional audio backend
    pyaudio = None  # type: ignore

logger = logging.getLogger(__name__)

ATTACK_SECONDS = 0.01
FLOOR_GAIN = 0.0001


@dataclass(frozen=True)
class Tone:
    """One sine tone of a cue: start offset and duration in seconds.

    ``end_frequency`` turns the tone into a linear sweep, passing through
    ``via_frequency`` at half time when given. ``decay_end`` is the offset
    from ``start`` where the envelope would reach silence; it defaults to
    ``duration`` and may lie past it, in which case the tone is cut short.
    """

    frequency: float
    start: float
    duration: float
    gain: float = 0.22
    end_frequency: Optional[float] = None
    via_frequency: Optional[float] = None
    decay_end: Optional[float] = None


def _envelope(length: int, sample_rate: int, peak: float, decay_length: Optional[int] = None) -> np.ndarray:
    attack = min(length, max(1, int(ATTACK_SECONDS * sample_rate)))
    env = np.empty(length, dtype=np.float64)
    env[:attack] = np.geomspace(FLOOR_GAIN, peak, attack)
    if length > attack:
        decay = max(length, decay_length or length) - attack
        env[attack:] = np.geomspace(peak, FLOOR_GAIN, decay)[: length - attack]
    return env


def _frequency_path(tone: Tone, length: int) -> np.ndarray:
    end = tone.end_frequency if tone.end_frequency is not None else tone.frequency
    if tone.via_frequency is None:
        return np.linspace(tone.frequency, end, length)
    half = length // 2
    return np.concatenate(
        (
            np.linspace(tone.frequency, tone.via_frequency, half, endpoint=False),
            np.linspace(tone.via_frequency, end, length - half),
        )
    )


def render_tones(tones: Sequence[Tone], sample_rate: int) -> np.ndarray:
    """Mix tones into a mono float32 buffer in [-1, 1]."""

    if not tones:
        return np.zeros(0, dtype=np.float32)
    total_seconds = max(t.start + t.duration for t in tones)
    buffer = np.zeros(int(math.ceil(total_seconds * sample_rate)) + 1, dtype=np.float64)
    for tone in tones:
        length = int(round(tone.duration * sample_rate))
        if length <= 0 or tone.gain <= 0:
            continue
        decay_length = None
        if tone.decay_end is not None:
            decay_length = int(round(tone.decay_end * sample_rate))
        phase = 2 * math.pi * np.cumsum(_frequency_path(tone, length)) / sample_rate
        samples = np.sin(phase) * _envelope(length, sample_rate, tone.gain, decay_length)
        offset = int(round(tone.start * sample_rate))
        segment = buffer[offset : offset + length]
        segment += samples[: len(segment)]
    np.clip(buffer, -1.0, 1.0, out=buffer)
    return buffer.astype(np.float32)


class AudioOutput:
    """Best-effort mono output. Any backend failure degrades to silence."""

    def __init__(self, sample_rate: int = 24000, enabled: bool = True):
        self.sample_rate = sample_rate
        self._available = enabled and pyaudio is not None
        self._pa = None
        self._lock = Lock()
        if enabled and pyaudio is None:
            logger.info("pyaudio is not installed, cues will be silent")

    @property
    def available(self) -> bool:
        return self._available

    def play(self, samples: np.ndarray) -> bool:
        if not self._available or samples.size == 0:
            return False
        Thread(target=self._write, args=(samples,), name="cue-playback", daemon=True).start()
        return True

    def _write(self, samples: np.ndarray) -> None:  # pragma: no cover - needs a device
        with self._lock:
            if not self._available:
                return
            try:
                if self._pa is None:
                    self._pa = pyaudio.PyAudio()
                stream = self._pa.open(format=pyaudio.paFloat32, channels=1, rate=self.sample_rate, output=True)
                try:
                    stream.write(samples.astype(np.float32).tobytes())
                finally:
                    stream.stop_stream()
                    stream.close()
            except Exception as exc:
                logger.warning("Audio output unavailable, muting cues: %s", exc)
                self._available = False

    def close(self) -> None:
        with self._lock:
            if self._pa is not None:
                try:
                    self._pa.terminate()
                except Exception:  # pragma: no cover - backend teardown
                    logger.debug("pyaudio terminate failed", exc_info=True)
                self._pa = None
            self._available = False
