import json
from pathlib import Path

import pytest

from attendance_tracker.config import (
    DEFAULT_CONFIG,
    UserConfig,
    get_settings,
    load_config,
    save_config,
)
from attendance_tracker.errors import ConfigError

ENV_VARS = (
    "ATTENDANCE_DATA_DIR",
    "PORTAL_BASE_URL",
    "DISCORD_WEBHOOK_URL",
    "SCRAPE_TIMEOUT",
    "ATTENDANCE_TIMEZONE",
    "POLL_INTERVAL",
)


@pytest.fixture
def clean_env(monkeypatch, tmp_path):
    # keep a developer's .env out of the picture
    monkeypatch.chdir(tmp_path)
    for name in ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    return monkeypatch


def test_missing_config_file_gives_defaults(tmp_path):
    config = load_config(tmp_path / "config.json")

    assert config.to_dict() == DEFAULT_CONFIG
    assert config.has_credentials is False


def test_partial_config_is_merged_onto_defaults(tmp_path):
    path = tmp_path / "config.json"
    path.write_text(json.dumps({"username": "2201", "password": "secret"}), encoding="utf-8")

    config = load_config(path)

    assert config == UserConfig(username="2201", password="secret", calendar_only=False, notifications=True)


def test_explicit_false_notifications_is_kept(tmp_path):
    path = tmp_path / "config.json"
    path.write_text(json.dumps({"notifications": False, "calendarOnly": True}), encoding="utf-8")

    config = load_config(path)

    assert config.notifications is False
    assert config.calendar_only is True


def test_invalid_json_is_config_error(tmp_path):
    path = tmp_path / "config.json"
    path.write_text("{username:", encoding="utf-8")

    with pytest.raises(ConfigError):
        load_config(path)


def test_require_credentials():
    with pytest.raises(ConfigError):
        UserConfig(username="2201").require_credentials()

    UserConfig(username="2201", password="secret").require_credentials()


def test_save_and_load_config(tmp_path):
    path = tmp_path / "nested" / "config.json"
    config = UserConfig(username="2201", password="secret", notifications=False)

    save_config(path, config)

    assert load_config(path) == config


def test_save_config_rejects_non_string_credentials(tmp_path):
    with pytest.raises(ValueError):
        save_config(tmp_path / "config.json", UserConfig(username=2201, password="x"))


def test_settings_defaults(clean_env):
    settings = get_settings()

    assert settings.data_dir == Path("data")
    assert settings.attendance_path == Path("data") / "attendance.json"
    assert settings.status_path == Path("data") / "scrape-status.json"
    assert settings.portal_base_url == "https://ac.ncpsc.edu.bd"
    assert settings.discord_webhook_url is None
    assert settings.scrape_timeout == 30
    assert settings.timezone == "Asia/Dhaka"


def test_settings_from_environment(clean_env, tmp_path):
    clean_env.setenv("ATTENDANCE_DATA_DIR", str(tmp_path / "store"))
    clean_env.setenv("PORTAL_BASE_URL", "https://portal.example/ ")
    clean_env.setenv("DISCORD_WEBHOOK_URL", " https://example.com/webhook ")
    clean_env.setenv("SCRAPE_TIMEOUT", "45")

    settings = get_settings()

    assert settings.holidays_path == tmp_path / "store" / "holidays.json"
    assert settings.portal_base_url == "https://portal.example"
    assert settings.discord_webhook_url == "https://example.com/webhook"
    assert settings.scrape_timeout == 45


def test_invalid_timeout_is_rejected(clean_env):
    clean_env.setenv("SCRAPE_TIMEOUT", "soon")

    with pytest.raises(ValueError, match="SCRAPE_TIMEOUT"):
        get_settings()


def test_unknown_timezone_is_rejected(clean_env):
    clean_env.setenv("ATTENDANCE_TIMEZONE", "Mars/Olympus_Mons")

    with pytest.raises(ValueError, match="ATTENDANCE_TIMEZONE"):
        get_settings()
