import logging
import signal
import time
from datetime import datetime
from threading import Event, RLock, Thread
from typing import Callable, List, Optional

from alarms.countdown import AwayCountdown, CountdownView, PresenceMonitor
from alarms.scheduler import AlarmScheduler, Evaluation
from alarms.sounds import CueEvent, CueKind, RepeatingCue, SoundCue
from audio_io import AudioOutput
from config import Config, load_config, setup_logging
from time_utils import CivilClock, format_countdown, format_tz_offset, resolve_timezone

logger = logging.getLogger("clock")


def graceful_exit(signum, frame) -> None:  # pragma: no cover - signal handler
    logger.info("Shutting down (signal %s)", signum)
    raise KeyboardInterrupt()


class ClockRuntime:
    """Owns the alarm scheduler and the away countdown and drives both from
    one periodic tick."""

    def __init__(
        self,
        config: Config,
        output: Optional[AudioOutput] = None,
        civil_clock: Optional[CivilClock] = None,
        monotonic: Callable[[], float] = time.monotonic,
    ):
        self.config = config
        self.clock = civil_clock or CivilClock(resolve_timezone(config.civil_timezone, config.civil_utc_offset))
        self.output = output if output is not None else AudioOutput(config.output_sample_rate, config.audio_enabled)
        self.sound_cue = SoundCue(self.output)
        self.scheduler = AlarmScheduler(
            clock=self.clock,
            storage_path=config.alarms_path,
            sound_cue=self.sound_cue,
            ring_cue=RepeatingCue(self.sound_cue, config.alarm_ring_repeat_ms / 1000.0, clock=monotonic),
            default_snooze_minutes=config.alarm_default_snooze_min,
            on_fire=self._dispatch,
        )
        self.countdown = AwayCountdown(
            duration_ms=config.away_duration_ms,
            warning_seconds=config.away_warning_seconds,
            enabled=config.away_timer_enabled,
            sound_cue=self.sound_cue,
            sound=config.away_cue_sound,
            cue_enabled=config.away_cue_enabled,
            clock=monotonic,
            on_cue=self._dispatch,
        )
        self.presence = PresenceMonitor(self.set_away)
        self.tick_interval = config.tick_interval_ms / 1000.0
        self.last_evaluation: Optional[Evaluation] = None

        self._lock = RLock()
        self._stop_event = Event()
        self._thread: Optional[Thread] = None
        self._listeners: List[Callable[[CueEvent], None]] = []

    def subscribe(self, listener: Callable[[CueEvent], None]) -> None:
        self._listeners.append(listener)

    def start(self) -> None:
        self.scheduler.load()
        self._stop_event.clear()
        self._thread = Thread(target=self._loop, name="clock-tick", daemon=True)
        self._thread.start()
        logger.info("Tick loop started (interval=%.0f ms)", self.tick_interval * 1000)

    def shutdown(self) -> None:
        self._stop_event.set()
        if self._thread:
            self._thread.join(timeout=2)
        self._thread = None
        self.scheduler.shutdown()
        self.output.close()

    def set_away(self, away: bool) -> None:
        with self._lock:
            self.countdown.set_away(away)

    def set_away_timer_enabled(self, enabled: bool) -> None:
        with self._lock:
            self.countdown.set_enabled(enabled)

    def countdown_view(self) -> CountdownView:
        with self._lock:
            return self.countdown.view()

    def tick_once(self, now: Optional[datetime] = None) -> Evaluation:
        with self._lock:
            evaluation = self.scheduler.evaluate(now)
            self.countdown.tick()
            self.scheduler.poll_ring()
            self.last_evaluation = evaluation
        return evaluation

    def _loop(self) -> None:
        while not self._stop_event.is_set():
            try:
                self.tick_once()
            except Exception as exc:  # pragma: no cover - keep ticking
                logger.error("Tick failed: %s", exc, exc_info=True)
            self._stop_event.wait(self.tick_interval)

    def _dispatch(self, event: CueEvent) -> None:
        for listener in list(self._listeners):
            try:
                listener(event)
            except Exception:  # pragma: no cover - listener safety
                logger.error("Cue listener failed", exc_info=True)


def describe_event(event: CueEvent) -> str:
    if event.alarm_id:
        via = "snooze" if event.by_snooze else "schedule"
        return f"Alarm '{event.label}' ringing ({event.sound.value}, via {via})"
    if event.kind is CueKind.WARNING:
        return f"{event.seconds_left} seconds left!"
    return "Time's up!"


def main() -> None:
    signal.signal(signal.SIGINT, graceful_exit)
    config = load_config()
    setup_logging(config.log_level)
    runtime = ClockRuntime(config)
    logger.info(
        "Starting clock (tz=%s, offset=%s, alarms=%s)",
        config.civil_timezone,
        format_tz_offset(runtime.clock.tz),
        config.alarms_path,
    )
    runtime.subscribe(lambda event: logger.info(describe_event(event)))
    runtime.start()
    try:
        while True:
            time.sleep(0.5)
            if config.debug and runtime.last_evaluation and runtime.last_evaluation.next_up:
                nxt = runtime.last_evaluation.next_up
                logger.debug("Next: %s at %s (in %s)", nxt.alarm.label, nxt.alarm.time, format_countdown(nxt.ms_to_next))
    except KeyboardInterrupt:
        logger.info("Interrupted by user")
    finally:
        runtime.shutdown()


if __name__ == "__main__":
    main()
