from __future__ import annotations

import json
import logging
import uuid
from dataclasses import dataclass
from datetime import datetime, tzinfo
from pathlib import Path
from typing import List, Optional

from time_utils import from_epoch_ms

from .parser import format_time_of_day, parse_time_of_day
from .sounds import DEFAULT_SOUND, AlarmSound

logger = logging.getLogger(__name__)

SCHEMA_VERSION = 1
DEFAULT_LABEL = "Alarm"


def new_alarm_id() -> str:
    return f"al_{uuid.uuid4().hex[:8]}"


@dataclass
class AlarmDefinition:
    id: str
    label: str
    hour: int
    minute: int
    enabled: bool = True
    sound: AlarmSound = DEFAULT_SOUND
    snooze_until: Optional[datetime] = None
    last_fired_key: Optional[str] = None

    @property
    def time(self) -> str:
        return format_time_of_day(self.hour, self.minute)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "label": self.label,
            "time": self.time,
            "enabled": self.enabled,
            "sound": self.sound.value,
            "snooze_until": self.snooze_until.isoformat() if self.snooze_until else None,
            "last_fired_key": self.last_fired_key,
        }

    @classmethod
    def from_dict(cls, data: dict, tz: Optional[tzinfo] = None) -> "AlarmDefinition":
        """Build a definition from a stored record, current or legacy shape.

        Missing fields get defaults; a record that is not a mapping raises
        ValueError so the caller can skip it.
        """

        if not isinstance(data, dict):
            raise ValueError(f"Alarm record must be an object, got {type(data).__name__}")
        hour, minute = parse_time_of_day(data.get("time", ""))
        label = str(data.get("label") or "").strip() or DEFAULT_LABEL
        return cls(
            id=str(data.get("id") or "") or new_alarm_id(),
            label=label,
            hour=hour,
            minute=minute,
            enabled=_coerce_bool(data.get("enabled", True)),
            sound=AlarmSound.coerce(data.get("sound")),
            snooze_until=_parse_snooze(data, tz),
            last_fired_key=_optional_str(data.get("last_fired_key", data.get("lastFiredKey"))),
        )


def _coerce_bool(value) -> bool:
    if isinstance(value, str):
        return value.strip().lower() in {"1", "true", "yes", "on"}
    return bool(value)


def _optional_str(value) -> Optional[str]:
    if value is None or value == "":
        return None
    return str(value)


def _parse_snooze(data: dict, tz: Optional[tzinfo]) -> Optional[datetime]:
    raw = data.get("snooze_until")
    legacy_ms = data.get("snoozeUntilMs")
    try:
        if raw:
            parsed = datetime.fromisoformat(str(raw))
            if parsed.tzinfo is None and tz is not None:
                parsed = parsed.replace(tzinfo=tz)
            return parsed
        if legacy_ms:
            return from_epoch_ms(float(legacy_ms), tz)
    except (TypeError, ValueError, OverflowError, OSError) as exc:
        logger.warning("Dropping unreadable snooze for alarm %s: %s", data.get("id"), exc)
    return None


def migrate_payload(payload) -> List[dict]:
    """Return the raw alarm records of any known stored shape."""

    if isinstance(payload, list):
        # Unversioned list written before the schema carried a version.
        return payload
    if isinstance(payload, dict):
        version = payload.get("version")
        if version == SCHEMA_VERSION:
            records = payload.get("alarms")
            if isinstance(records, list):
                return records
            raise ValueError("Alarm payload has no 'alarms' list")
        raise ValueError(f"Unsupported alarm schema version: {version!r}")
    if payload is None:
        return []
    raise ValueError(f"Unexpected alarm payload type: {type(payload).__name__}")


def load_alarms(path: Path, tz: Optional[tzinfo] = None) -> List[AlarmDefinition]:
    if not path.exists():
        return []
    try:
        with path.open("r", encoding="utf-8") as f:
            payload = json.load(f)
        records = migrate_payload(payload)
    except (OSError, ValueError) as exc:
        logger.error("Failed to load alarms from %s: %s", path, exc)
        return []
    alarms: List[AlarmDefinition] = []
    seen = set()
    for item in records:
        try:
            alarm = AlarmDefinition.from_dict(item, tz)
        except (TypeError, ValueError) as exc:
            logger.warning("Skipping alarm item due to parse error: %s", exc)
            continue
        if alarm.id in seen:
            logger.warning("Skipping alarm item with duplicate id %s", alarm.id)
            continue
        seen.add(alarm.id)
        alarms.append(alarm)
    return alarms


def save_alarms(path: Path, alarms: List[AlarmDefinition]) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    serializable = {"version": SCHEMA_VERSION, "alarms": [a.to_dict() for a in alarms]}
    tmp_path = path.with_suffix(path.suffix + ".tmp")
    with tmp_path.open("w", encoding="utf-8") as f:
        json.dump(serializable, f, ensure_ascii=False, indent=2)
    tmp_path.replace(path)
