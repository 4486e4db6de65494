import logging
import logging.handlers
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv


def _get_env_bool(name: str, default: bool = False) -> bool:
    val = os.getenv(name)
    if val is None:
        return default
    return val.strip() in {"1", "true", "True", "yes", "YES", "y"}


def _get_env_int(name: str, default: int) -> int:
    val = os.getenv(name)
    if val is None or val == "":
        return default
    try:
        return int(val)
    except ValueError as exc:
        raise ValueError(f"Environment variable {name} must be an integer") from exc


def _get_env_float(name: str, default: float) -> float:
    val = os.getenv(name)
    if val is None or val == "":
        return default
    try:
        return float(val)
    except ValueError as exc:
        raise ValueError(f"Environment variable {name} must be a float") from exc


@dataclass
class Config:
    civil_timezone: str
    civil_utc_offset: str
    tick_interval_ms: int
    alarms_path: Path
    alarm_default_snooze_min: int
    alarm_ring_repeat_ms: int
    away_timer_enabled: bool
    away_duration_ms: float
    away_warning_seconds: int
    away_cue_enabled: bool
    away_cue_sound: str
    audio_enabled: bool
    output_sample_rate: int
    debug: bool
    log_level: str


MIN_TICK_INTERVAL_MS = 50
MAX_TICK_INTERVAL_MS = 1000


def load_config(env_path: Optional[Path] = None) -> Config:
    if env_path is None:
        env_path = Path(".env")
    if env_path.exists():
        load_dotenv(env_path)

    civil_timezone = os.getenv("CIVIL_TIMEZONE", "Asia/Manila")
    civil_utc_offset = os.getenv("CIVIL_UTC_OFFSET", "+08:00")
    tick_interval_ms = _get_env_int("TICK_INTERVAL_MS", 250)
    if not MIN_TICK_INTERVAL_MS <= tick_interval_ms <= MAX_TICK_INTERVAL_MS:
        clamped = min(MAX_TICK_INTERVAL_MS, max(MIN_TICK_INTERVAL_MS, tick_interval_ms))
        logging.warning("TICK_INTERVAL_MS=%s is out of range, using %s", tick_interval_ms, clamped)
        tick_interval_ms = clamped
    alarms_path = Path(os.getenv("ALARM_STORAGE_PATH", "data/alarms.json"))
    alarm_default_snooze_min = max(1, _get_env_int("ALARM_DEFAULT_SNOOZE_MIN", 5))
    alarm_ring_repeat_ms = max(200, _get_env_int("ALARM_RING_REPEAT_MS", 1300))
    away_timer_enabled = _get_env_bool("AWAY_TIMER_ENABLED", True)
    away_duration_ms = max(1000.0, _get_env_float("AWAY_DURATION_MS", 30_000.0))
    away_warning_seconds = max(0, _get_env_int("AWAY_WARNING_SECONDS", 3))
    away_cue_enabled = _get_env_bool("AWAY_CUE_ENABLED", True)
    away_cue_sound = os.getenv("AWAY_CUE_SOUND", "beep").strip().lower()
    audio_enabled = _get_env_bool("AUDIO_ENABLED", True)
    output_sample_rate = _get_env_int("OUTPUT_SAMPLE_RATE", 24000)
    debug = _get_env_bool("DEBUG", False)
    log_level = os.getenv("LOG_LEVEL", "INFO").upper()

    return Config(
        civil_timezone=civil_timezone,
        civil_utc_offset=civil_utc_offset,
        tick_interval_ms=tick_interval_ms,
        alarms_path=alarms_path,
        alarm_default_snooze_min=alarm_default_snooze_min,
        alarm_ring_repeat_ms=alarm_ring_repeat_ms,
        away_timer_enabled=away_timer_enabled,
        away_duration_ms=away_duration_ms,
        away_warning_seconds=away_warning_seconds,
        away_cue_enabled=away_cue_enabled,
        away_cue_sound=away_cue_sound,
        audio_enabled=audio_enabled,
        output_sample_rate=output_sample_rate,
        debug=debug,
        log_level=log_level,
    )


def setup_logging(log_level: str = "INFO") -> None:
    logs_dir = Path("logs")
    logs_dir.mkdir(exist_ok=True)

    log_path = logs_dir / "clock.log"
    formatter = logging.Formatter("%(asctime)s [%(levelname)s] %(name)s: %(message)s")

    file_handler = logging.handlers.RotatingFileHandler(
        log_path, maxBytes=1_000_000, backupCount=3, encoding="utf-8"
    )
    file_handler.setFormatter(formatter)

    console_handler = logging.StreamHandler()
    console_handler.setFormatter(formatter)

    logging.basicConfig(
        level=getattr(logging, log_level, logging.INFO),
        handlers=[file_handler, console_handler],
    )
