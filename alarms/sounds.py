from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Dict, Optional, Protocol, Tuple

import numpy as np

from audio_io import Tone, render_tones

logger = logging.getLogger(__name__)

Tones = Tuple[Tone, ...]


class AlarmSound(str, Enum):
    BEEP = "beep"
    CHIME = "chime"
    SIREN = "siren"
    BELL = "bell"
    DIGITAL = "digital"
    NONE = "none"

    @classmethod
    def coerce(cls, value, default: Optional["AlarmSound"] = None) -> "AlarmSound":
        if isinstance(value, cls):
            return value
        if value is None:
            return default or DEFAULT_SOUND
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            return default or DEFAULT_SOUND


DEFAULT_SOUND = AlarmSound.CHIME


class CueKind(str, Enum):
    WARNING = "warning"
    TERMINAL = "terminal"


@dataclass(frozen=True)
class CueEvent:
    """Fire notification for the display layer and the sound sink.

    Alarm fires carry ``alarm_id``/``label``; countdown cues carry
    ``seconds_left`` on warnings.
    """

    kind: CueKind
    sound: AlarmSound
    alarm_id: Optional[str] = None
    label: Optional[str] = None
    fingerprint: Optional[str] = None
    by_snooze: bool = False
    seconds_left: Optional[int] = None


SIREN_RING: Tones = (Tone(600, 0.00, 0.70, via_frequency=1400, end_frequency=600, decay_end=1.00),)
SIREN_TERMINAL: Tones = (Tone(600, 0.00, 0.70, via_frequency=1400, end_frequency=600, decay_end=0.95),)

RING_TONES: Dict[AlarmSound, Tones] = {
    AlarmSound.BEEP: (Tone(880, 0.00, 0.18), Tone(880, 0.22, 0.18), Tone(880, 0.44, 0.18)),
    AlarmSound.CHIME: (Tone(784, 0.00, 0.16), Tone(988, 0.20, 0.16), Tone(1175, 0.40, 0.22)),
    AlarmSound.SIREN: SIREN_RING,
    AlarmSound.BELL: (
        Tone(1200, 0.00, 0.10, 0.18),
        Tone(1320, 0.00, 0.10, 0.14),
        Tone(1200, 0.16, 0.10, 0.18),
        Tone(1320, 0.16, 0.10, 0.14),
    ),
    AlarmSound.DIGITAL: (
        Tone(900, 0.00, 0.08, 0.18),
        Tone(1100, 0.12, 0.08, 0.18),
        Tone(1300, 0.24, 0.08, 0.18),
        Tone(1500, 0.36, 0.08, 0.18),
    ),
    AlarmSound.NONE: (),
}

TERMINAL_TONES: Dict[AlarmSound, Tones] = {
    AlarmSound.BEEP: (Tone(600, 0.00, 0.90, 0.25),),
    AlarmSound.CHIME: (Tone(784, 0.00, 0.18), Tone(988, 0.22, 0.18), Tone(1175, 0.44, 0.22)),
    AlarmSound.SIREN: SIREN_TERMINAL,
    AlarmSound.BELL: RING_TONES[AlarmSound.BELL],
    AlarmSound.DIGITAL: RING_TONES[AlarmSound.DIGITAL],
    AlarmSound.NONE: (),
}


def _chime_tick(seconds_left: int) -> Tones:
    # rising pitch on 3, 2, 1
    step = 3 - min(3, max(0, seconds_left))
    return (Tone(880 + step * 120, 0.00, 0.10, 0.16),)


WARNING_TONES: Dict[AlarmSound, Callable[[int], Tones]] = {
    AlarmSound.BEEP: lambda _s: (Tone(1100, 0.00, 0.12, 0.18),),
    AlarmSound.CHIME: _chime_tick,
    AlarmSound.SIREN: lambda _s: (Tone(1400, 0.00, 0.08, 0.14),),
    AlarmSound.BELL: lambda _s: (Tone(1200, 0.00, 0.10, 0.18),),
    AlarmSound.DIGITAL: lambda _s: (Tone(1300, 0.00, 0.08, 0.18),),
    AlarmSound.NONE: lambda _s: (),
}


def tones_for(kind: CueKind, sound: AlarmSound, seconds_left: Optional[int] = None) -> Tones:
    if kind is CueKind.WARNING:
        return WARNING_TONES[sound](3 if seconds_left is None else seconds_left)
    return TERMINAL_TONES[sound]


def ring_tones(sound: AlarmSound) -> Tones:
    return RING_TONES[sound]


class CueOutput(Protocol):
    sample_rate: int

    def play(self, samples: np.ndarray) -> bool:
        ...


class SoundCue:
    """Stateless sink turning cue requests into rendered tones."""

    def __init__(self, output: Optional[CueOutput] = None):
        self.output = output

    def play(self, kind: CueKind, sound, seconds_left: Optional[int] = None) -> Tones:
        tones = tones_for(CueKind(kind), AlarmSound.coerce(sound), seconds_left)
        self._emit(tones)
        return tones

    def ring(self, sound) -> Tones:
        tones = ring_tones(AlarmSound.coerce(sound))
        self._emit(tones)
        return tones

    def preview(self, sound) -> Tones:
        return self.ring(sound)

    def _emit(self, tones: Tones) -> None:
        if not tones or self.output is None:
            return
        try:
            self.output.play(render_tones(tones, self.output.sample_rate))
        except Exception:  # pragma: no cover - playback never breaks the tick
            logger.debug("Cue playback failed", exc_info=True)


class RepeatingCue:
    """Owned handle for a ring that repeats until stopped.

    Driven by ``poll()`` from the tick; ``stop()`` (or leaving the ``with``
    block) releases it.
    """

    def __init__(
        self,
        cue: SoundCue,
        interval_seconds: float = 1.3,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.cue = cue
        self.interval_seconds = interval_seconds
        self._clock = clock
        self._sound: Optional[AlarmSound] = None
        self._next_at: Optional[float] = None

    @property
    def active(self) -> bool:
        return self._sound is not None

    @property
    def sound(self) -> Optional[AlarmSound]:
        return self._sound

    def start(self, sound) -> None:
        self._sound = AlarmSound.coerce(sound)
        self.cue.ring(self._sound)
        self._next_at = self._clock() + self.interval_seconds

    def poll(self) -> bool:
        if self._sound is None or self._next_at is None:
            return False
        now = self._clock()
        if now < self._next_at:
            return False
        self.cue.ring(self._sound)
        # re-arm from now so a stalled tick does not replay a backlog
        self._next_at = now + self.interval_seconds
        return True

    def stop(self) -> None:
        if self._sound is not None:
            logger.debug("Repeating cue stopped (sound=%s)", self._sound.value)
        self._sound = None
        self._next_at = None

    def __enter__(self) -> "RepeatingCue":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.stop()
