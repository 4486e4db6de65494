"""Alarm and away-countdown core of the clock."""

from .countdown import AwayCountdown, CountdownPhase, PresenceMonitor
from .scheduler import AlarmScheduler, Evaluation, ScheduledAlarm
from .sounds import AlarmSound, CueEvent, CueKind, RepeatingCue, SoundCue
from .storage import AlarmDefinition
