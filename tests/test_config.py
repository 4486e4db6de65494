from pathlib import Path

import pytest

from config import load_config

ENV_KEYS = (
    "CIVIL_TIMEZONE",
    "CIVIL_UTC_OFFSET",
    "TICK_INTERVAL_MS",
    "ALARM_STORAGE_PATH",
    "ALARM_DEFAULT_SNOOZE_MIN",
    "ALARM_RING_REPEAT_MS",
    "AWAY_TIMER_ENABLED",
    "AWAY_DURATION_MS",
    "AWAY_WARNING_SECONDS",
    "AWAY_CUE_ENABLED",
    "AWAY_CUE_SOUND",
    "AUDIO_ENABLED",
    "OUTPUT_SAMPLE_RATE",
    "DEBUG",
    "LOG_LEVEL",
)


@pytest.fixture
def clean_env(monkeypatch):
    for key in ENV_KEYS:
        monkeypatch.delenv(key, raising=False)
    return monkeypatch


def test_defaults(clean_env, tmp_path):
    config = load_config(tmp_path / "missing.env")
    assert config.civil_timezone == "Asia/Manila"
    assert config.tick_interval_ms == 250
    assert config.alarms_path == Path("data/alarms.json")
    assert config.alarm_default_snooze_min == 5
    assert config.alarm_ring_repeat_ms == 1300
    assert config.away_duration_ms == 30_000
    assert config.away_warning_seconds == 3
    assert config.away_timer_enabled is True
    assert config.away_cue_sound == "beep"
    assert config.log_level == "INFO"


def test_env_file_values(clean_env, tmp_path):
    env_file = tmp_path / ".env"
    env_file.write_text(
        "AWAY_DURATION_MS=45000\nAWAY_CUE_SOUND=Chime\nAWAY_TIMER_ENABLED=no\nLOG_LEVEL=debug\n",
        encoding="utf-8",
    )
    config = load_config(env_file)
    assert config.away_duration_ms == 45_000
    assert config.away_cue_sound == "chime"
    assert config.away_timer_enabled is False
    assert config.log_level == "DEBUG"


def test_tick_interval_is_clamped(clean_env, tmp_path):
    clean_env.setenv("TICK_INTERVAL_MS", "60000")
    assert load_config(tmp_path / "missing.env").tick_interval_ms == 1000
    clean_env.setenv("TICK_INTERVAL_MS", "5")
    assert load_config(tmp_path / "missing.env").tick_interval_ms == 50


def test_bad_integer_names_the_variable(clean_env, tmp_path):
    clean_env.setenv("ALARM_DEFAULT_SNOOZE_MIN", "soon")
    with pytest.raises(ValueError, match="ALARM_DEFAULT_SNOOZE_MIN"):
        load_config(tmp_path / "missing.env")
