from __future__ import annotations

import logging
import math
import time
from dataclasses import dataclass
from enum import Enum
from typing import Callable, List, Optional

from .sounds import AlarmSound, CueEvent, CueKind, SoundCue

logger = logging.getLogger(__name__)

DEFAULT_DURATION_MS = 30_000.0
WARNING_SECONDS = 3


class CountdownPhase(str, Enum):
    IDLE = "idle"
    RUNNING = "running"
    WARNING = "warning"
    FINISHED = "finished"
    DISABLED = "disabled"


@dataclass(frozen=True)
class CountdownView:
    phase: CountdownPhase
    remaining_ms: float
    seconds_left: int
    text: str
    is_warning: bool
    finished: bool


class AwayCountdown:
    """Countdown that runs only while the user is away.

    ``tick()`` samples a monotonic clock and decrements by the measured
    time since the previous sample, so late or missed ticks neither stall
    nor overshoot the countdown.
    """

    def __init__(
        self,
        duration_ms: float = DEFAULT_DURATION_MS,
        warning_seconds: int = WARNING_SECONDS,
        enabled: bool = True,
        sound_cue: Optional[SoundCue] = None,
        sound=AlarmSound.BEEP,
        cue_enabled: bool = True,
        clock: Callable[[], float] = time.monotonic,
        on_cue: Optional[Callable[[CueEvent], None]] = None,
    ):
        self.duration_ms = float(duration_ms)
        self.warning_seconds = max(0, int(warning_seconds))
        self.sound_cue = sound_cue or SoundCue()
        self.sound = AlarmSound.coerce(sound, default=AlarmSound.BEEP)
        self.cue_enabled = cue_enabled
        self.on_cue = on_cue
        self._clock = clock

        self.enabled = bool(enabled)
        self.away = False
        self.finished = False
        self.remaining_ms = self.duration_ms
        self.last_warned_second: Optional[int] = None
        self._last_sample_ms: Optional[float] = None

    @property
    def running(self) -> bool:
        return self.enabled and self.away and not self.finished and self.remaining_ms > 0

    @property
    def seconds_left(self) -> int:
        return max(0, math.ceil(self.remaining_ms / 1000))

    @property
    def phase(self) -> CountdownPhase:
        if not self.enabled:
            return CountdownPhase.DISABLED
        if not self.away:
            return CountdownPhase.IDLE
        if self.finished:
            return CountdownPhase.FINISHED
        if 0 < self.seconds_left <= self.warning_seconds:
            return CountdownPhase.WARNING
        return CountdownPhase.RUNNING

    def view(self) -> CountdownView:
        seconds_left = self.seconds_left
        minutes, seconds = divmod(seconds_left, 60)
        phase = self.phase
        return CountdownView(
            phase=phase,
            remaining_ms=self.remaining_ms,
            seconds_left=seconds_left,
            text=f"{minutes:02d}:{seconds:02d}",
            is_warning=phase is CountdownPhase.WARNING,
            finished=self.finished,
        )

    def set_away(self, away: bool) -> None:
        away = bool(away)
        if away == self.away:
            return
        self.away = away
        if not away:
            self._reset()
        elif self.running:
            self._last_sample_ms = self._now_ms()
        logger.info("Away=%s, countdown phase -> %s", away, self.phase.value)

    def set_enabled(self, enabled: bool) -> None:
        enabled = bool(enabled)
        if enabled == self.enabled:
            return
        self.enabled = enabled
        if not enabled:
            self._reset()
        elif self.running:
            self._last_sample_ms = self._now_ms()
        logger.info("Countdown %s, phase -> %s", "enabled" if enabled else "disabled", self.phase.value)

    def tick(self, now_ms: Optional[float] = None) -> List[CueEvent]:
        if not self.running:
            self._last_sample_ms = None
            return []
        now = self._now_ms() if now_ms is None else now_ms
        last = self._last_sample_ms if self._last_sample_ms is not None else now
        self._last_sample_ms = now
        return self.advance(now - last)

    def advance(self, delta_ms: float) -> List[CueEvent]:
        """Apply an already measured elapsed time."""

        if not self.running:
            return []
        self.remaining_ms = max(0.0, self.remaining_ms - max(0.0, delta_ms))
        return self._emit_cues()

    def _emit_cues(self) -> List[CueEvent]:
        events: List[CueEvent] = []
        seconds_left = self.seconds_left
        if 0 < seconds_left <= self.warning_seconds and self.last_warned_second != seconds_left:
            self.last_warned_second = seconds_left
            events.append(CueEvent(kind=CueKind.WARNING, sound=self.sound, seconds_left=seconds_left))
        if seconds_left == 0 and not self.finished:
            self.finished = True
            self._last_sample_ms = None
            logger.info("Away countdown finished")
            events.append(CueEvent(kind=CueKind.TERMINAL, sound=self.sound, seconds_left=0))
        for event in events:
            if self.cue_enabled:
                self.sound_cue.play(event.kind, event.sound, event.seconds_left)
            self._notify(event)
        return events

    def _reset(self) -> None:
        self.remaining_ms = self.duration_ms
        self.finished = False
        self.last_warned_second = None
        self._last_sample_ms = None

    def _now_ms(self) -> float:
        return self._clock() * 1000.0

    def _notify(self, event: CueEvent) -> None:
        if not self.on_cue:
            return
        try:
            self.on_cue(event)
        except Exception:  # pragma: no cover - callback safety
            logger.error("on_cue callback failed", exc_info=True)


class PresenceMonitor:
    """Turns pointer and visibility events into the away flag."""

    def __init__(self, on_change: Callable[[bool], None], away: bool = False):
        self.on_change = on_change
        self.away = away

    def pointer_over(self) -> None:
        self._set(False)

    def pointer_out(self, related_target: object = None) -> None:
        # no related target means the pointer left the window
        if related_target is None:
            self._set(True)

    def visibility_changed(self, state: str) -> None:
        self._set(state != "visible")

    def _set(self, away: bool) -> None:
        if away == self.away:
            return
        self.away = away
        self.on_change(away)
