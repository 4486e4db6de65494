from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from pathlib import Path
from threading import Lock
from typing import Callable, List, Optional

from time_utils import CivilClock, CivilFields, to_epoch_ms

from .parser import TimeOfDayInput, parse_time_of_day
from .sounds import DEFAULT_SOUND, AlarmSound, CueEvent, CueKind, RepeatingCue, SoundCue
from .storage import DEFAULT_LABEL, AlarmDefinition, load_alarms, new_alarm_id, save_alarms

logger = logging.getLogger(__name__)


def time_fingerprint(day_key: str, alarm_id: str, time_text: str) -> str:
    return f"{day_key}-{alarm_id}-{time_text}"


def snooze_fingerprint(alarm_id: str, snooze_until: datetime) -> str:
    return f"SNOOZE-{alarm_id}-{to_epoch_ms(snooze_until)}"


@dataclass(frozen=True)
class ScheduledAlarm:
    alarm: AlarmDefinition
    next_at: datetime
    ms_to_next: int


@dataclass
class Evaluation:
    due_fires: List[CueEvent] = field(default_factory=list)
    next_up: Optional[ScheduledAlarm] = None
    schedule: List[ScheduledAlarm] = field(default_factory=list)


@dataclass(frozen=True)
class RingingAlarm:
    alarm_id: str
    label: str
    sound: AlarmSound


class AlarmScheduler:
    def __init__(
        self,
        clock: CivilClock,
        storage_path: Optional[Path] = None,
        sound_cue: Optional[SoundCue] = None,
        ring_cue: Optional[RepeatingCue] = None,
        default_snooze_minutes: int = 5,
        on_fire: Optional[Callable[[CueEvent], None]] = None,
    ):
        self.clock = clock
        self.storage_path = storage_path
        self.sound_cue = sound_cue or SoundCue()
        self.ring_cue = ring_cue or RepeatingCue(self.sound_cue)
        self.default_snooze_minutes = max(1, default_snooze_minutes)
        self.on_fire = on_fire

        self._alarms: List[AlarmDefinition] = []
        self._lock = Lock()
        self._ringing: Optional[RingingAlarm] = None

    def load(self) -> None:
        if self.storage_path is None:
            return
        alarms = load_alarms(self.storage_path, self.clock.tz)
        with self._lock:
            self._alarms = alarms
        logger.info("Loaded %s alarms from %s", len(alarms), self.storage_path)

    def shutdown(self) -> None:
        self.stop_ringing()

    @property
    def alarms(self) -> List[AlarmDefinition]:
        with self._lock:
            return list(self._alarms)

    @property
    def ringing(self) -> Optional[RingingAlarm]:
        with self._lock:
            return self._ringing

    @property
    def is_ringing(self) -> bool:
        return self.ringing is not None

    def get(self, alarm_id: str) -> Optional[AlarmDefinition]:
        with self._lock:
            return self._find(alarm_id)

    def add(
        self,
        label: Optional[str],
        time: TimeOfDayInput,
        sound=DEFAULT_SOUND,
        enabled: bool = True,
    ) -> str:
        hour, minute = parse_time_of_day(time)
        alarm = AlarmDefinition(
            id=new_alarm_id(),
            label=(label or "").strip() or DEFAULT_LABEL,
            hour=hour,
            minute=minute,
            enabled=bool(enabled),
            sound=AlarmSound.coerce(sound),
        )
        with self._lock:
            self._alarms.append(alarm)
            self._persist()
        logger.info("Alarm %s added for %s (label=%s, sound=%s)", alarm.id, alarm.time, alarm.label, alarm.sound.value)
        return alarm.id

    def remove(self, alarm_id: str) -> Optional[AlarmDefinition]:
        with self._lock:
            alarm = self._find(alarm_id)
            if alarm is None:
                logger.info("Remove ignored, alarm %s not found", alarm_id)
                return None
            self._alarms = [a for a in self._alarms if a.id != alarm_id]
            self._persist()
            stop = self._ringing is not None and self._ringing.alarm_id == alarm_id
        if stop:
            self.stop_ringing()
        logger.info("Removed alarm %s", alarm_id)
        return alarm

    def update(
        self,
        alarm_id: str,
        label: Optional[str] = None,
        time: Optional[TimeOfDayInput] = None,
        sound=None,
        enabled: Optional[bool] = None,
    ) -> Optional[AlarmDefinition]:
        if enabled is not None:
            if self.set_enabled(alarm_id, enabled) is None:
                return None
        with self._lock:
            alarm = self._find(alarm_id)
            if alarm is None:
                logger.info("Update ignored, alarm %s not found", alarm_id)
                return None
            if label is not None:
                alarm.label = label.strip() or DEFAULT_LABEL
            if time is not None:
                alarm.hour, alarm.minute = parse_time_of_day(time)
            if sound is not None:
                alarm.sound = AlarmSound.coerce(sound, default=alarm.sound)
            self._persist()
        logger.info("Alarm %s updated (%s, label=%s, sound=%s)", alarm.id, alarm.time, alarm.label, alarm.sound.value)
        return alarm

    def set_enabled(self, alarm_id: str, enabled: bool) -> Optional[AlarmDefinition]:
        with self._lock:
            alarm = self._find(alarm_id)
            if alarm is None:
                logger.info("Toggle ignored, alarm %s not found", alarm_id)
                return None
            alarm.enabled = bool(enabled)
            if not alarm.enabled:
                # a pending snooze would otherwise ring as soon as it is re-enabled
                alarm.snooze_until = None
            self._persist()
            stop = not alarm.enabled and self._ringing is not None and self._ringing.alarm_id == alarm_id
        if stop:
            self.stop_ringing()
        logger.info("Alarm %s %s", alarm_id, "enabled" if enabled else "disabled")
        return alarm

    def set_snooze(
        self,
        alarm_id: str,
        duration_ms: float,
        now: Optional[datetime] = None,
    ) -> Optional[AlarmDefinition]:
        now = self.clock.localize(now) if now else self.clock.now()
        with self._lock:
            if self._ringing is None or self._ringing.alarm_id != alarm_id:
                logger.info("Snooze ignored, alarm %s is not ringing", alarm_id)
                return None
            alarm = self._find(alarm_id)
            if alarm is None:
                return None
            alarm.snooze_until = now + timedelta(milliseconds=max(0.0, float(duration_ms)))
            self._persist()
        self.stop_ringing()
        logger.info("Alarm %s snoozed until %s", alarm_id, alarm.snooze_until.isoformat())
        return alarm

    def snooze(self, minutes: Optional[int] = None, now: Optional[datetime] = None) -> Optional[AlarmDefinition]:
        ringing = self.ringing
        if ringing is None:
            return None
        if minutes is None:
            minutes = self.default_snooze_minutes
        return self.set_snooze(ringing.alarm_id, minutes * 60_000, now=now)

    def stop_ringing(self) -> Optional[RingingAlarm]:
        with self._lock:
            current = self._ringing
            self._ringing = None
        self.ring_cue.stop()
        return current

    def preview_sound(self, alarm_id: str) -> bool:
        alarm = self.get(alarm_id)
        if alarm is None:
            return False
        self.sound_cue.preview(alarm.sound)
        return True

    def poll_ring(self) -> bool:
        return self.ring_cue.poll()

    def evaluate(self, now: Optional[datetime] = None) -> Evaluation:
        """Compute next occurrences and fire every alarm due at ``now``.

        Safe to call on every tick: an occurrence whose fingerprint matches
        the alarm's ``last_fired_key`` is suppressed.
        """

        now = self.clock.localize(now) if now else self.clock.now()
        fields = self.clock.to_civil_fields(now)
        result = Evaluation()

        with self._lock:
            fired = False
            for alarm in self._alarms:
                try:
                    next_at = self._next_due(alarm, fields, now)
                    event = self._fire_if_due(alarm, fields, now)
                except (TypeError, ValueError, AttributeError) as exc:
                    logger.warning("Skipping alarm %s during evaluation: %s", getattr(alarm, "id", "?"), exc)
                    continue
                ms_to_next = max(0, int((next_at - now).total_seconds() * 1000))
                result.schedule.append(ScheduledAlarm(alarm, next_at, ms_to_next))
                if event is not None:
                    result.due_fires.append(event)
                    fired = True
            ringing = None
            if fired:
                last = result.due_fires[-1]
                ringing = RingingAlarm(last.alarm_id or "", last.label or DEFAULT_LABEL, last.sound)
                self._ringing = ringing
                self._persist()

        # stable sort keeps definition order for equal instants
        result.schedule.sort(key=lambda item: item.next_at)
        result.next_up = next((item for item in result.schedule if item.alarm.enabled), None)

        if result.due_fires:
            self._start_ring(ringing)
            for event in result.due_fires:
                self._notify(event)
        return result

    def _start_ring(self, ringing: RingingAlarm) -> None:
        self.ring_cue.start(ringing.sound)
        # a stop or snooze may land between releasing the lock and starting
        with self._lock:
            released = self._ringing is not ringing
        if released:
            self.ring_cue.stop()

    def _next_due(self, alarm: AlarmDefinition, fields: CivilFields, now: datetime) -> datetime:
        next_at = self.clock.next_occurrence(fields, alarm.hour, alarm.minute)
        if alarm.snooze_until is not None and alarm.snooze_until > now:
            return alarm.snooze_until
        return next_at

    def _fire_if_due(self, alarm: AlarmDefinition, fields: CivilFields, now: datetime) -> Optional[CueEvent]:
        if not alarm.enabled:
            return None
        due_by_time = fields.hour == alarm.hour and fields.minute == alarm.minute
        due_by_snooze = alarm.snooze_until is not None and now >= alarm.snooze_until
        if not due_by_time and not due_by_snooze:
            return None

        time_key = time_fingerprint(fields.day_key, alarm.id, alarm.time)
        key = snooze_fingerprint(alarm.id, alarm.snooze_until) if due_by_snooze else time_key
        if key == alarm.last_fired_key:
            logger.debug("Alarm %s already fired for %s", alarm.id, key)
            return None

        # a snooze expiring inside the alarm's own minute also covers that occurrence
        alarm.last_fired_key = time_key if due_by_time else key
        alarm.snooze_until = None
        logger.info("Alarm %s fired (label=%s, key=%s)", alarm.id, alarm.label, key)
        return CueEvent(
            kind=CueKind.TERMINAL,
            sound=alarm.sound,
            alarm_id=alarm.id,
            label=alarm.label,
            fingerprint=key,
            by_snooze=due_by_snooze,
        )

    def _notify(self, event: CueEvent) -> None:
        if not self.on_fire:
            return
        try:
            self.on_fire(event)
        except Exception:  # pragma: no cover - callback safety
            logger.error("on_fire callback failed", exc_info=True)

    def _find(self, alarm_id: str) -> Optional[AlarmDefinition]:
        for alarm in self._alarms:
            if alarm.id == alarm_id:
                return alarm
        return None

    def _persist(self) -> None:
        if self.storage_path is None:
            return
        try:
            save_alarms(self.storage_path, self._alarms)
        except OSError as exc:
            logger.error("Failed to save alarms to %s: %s", self.storage_path, exc)
