"""Configuration handling for the attendance tracker."""

import json
import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from dotenv import find_dotenv, load_dotenv

from .errors import ConfigError

LOGGER = logging.getLogger(__name__)

DEFAULT_DATA_DIR = "data"
DEFAULT_PORTAL_BASE_URL = "https://ac.ncpsc.edu.bd"
DEFAULT_SCRAPE_TIMEOUT = 30
DEFAULT_TIMEZONE = "Asia/Dhaka"
DEFAULT_POLL_INTERVAL = 1.0

# the one place user config defaults live
DEFAULT_CONFIG: Dict[str, Any] = {
    "username": "",
    "password": "",
    "calendarOnly": False,
    "notifications": True,
}


@dataclass
class Settings:
    """Process settings loaded from environment variables."""

    data_dir: Path = Path(DEFAULT_DATA_DIR)
    portal_base_url: str = DEFAULT_PORTAL_BASE_URL
    discord_webhook_url: Optional[str] = None
    scrape_timeout: int = DEFAULT_SCRAPE_TIMEOUT
    timezone: str = DEFAULT_TIMEZONE
    poll_interval: float = DEFAULT_POLL_INTERVAL

    @property
    def attendance_path(self) -> Path:
        return self.data_dir / "attendance.json"

    @property
    def status_path(self) -> Path:
        return self.data_dir / "scrape-status.json"

    @property
    def config_path(self) -> Path:
        return self.data_dir / "config.json"

    @property
    def holidays_path(self) -> Path:
        return self.data_dir / "holidays.json"

    @property
    def lock_path(self) -> Path:
        return self.data_dir / "ingestion.lock"

    @property
    def tz(self) -> ZoneInfo:
        return ZoneInfo(self.timezone)


@dataclass
class UserConfig:
    """Credentials and preferences stored in ``config.json``."""

    username: str = ""
    password: str = ""
    calendar_only: bool = False
    notifications: bool = True

    @property
    def has_credentials(self) -> bool:
        return bool(self.username and self.password)

    def require_credentials(self) -> None:
        if not self.has_credentials:
            raise ConfigError("username or password is not set in config.json")

    def to_dict(self) -> Dict[str, Any]:
        return {
            "username": self.username,
            "password": self.password,
            "calendarOnly": self.calendar_only,
            "notifications": self.notifications,
        }


def get_settings() -> Settings:
    """Load settings from environment variables (and a ``.env`` file)."""
    load_dotenv(find_dotenv(usecwd=True))

    try:
        timeout = int(os.getenv("SCRAPE_TIMEOUT", str(DEFAULT_SCRAPE_TIMEOUT)))
    except ValueError as exc:
        raise ValueError("SCRAPE_TIMEOUT must be an integer") from exc
    if timeout <= 0:
        raise ValueError("SCRAPE_TIMEOUT must be positive")

    try:
        poll_interval = float(os.getenv("POLL_INTERVAL", str(DEFAULT_POLL_INTERVAL)))
    except ValueError as exc:
        raise ValueError("POLL_INTERVAL must be a number") from exc

    timezone = os.getenv("ATTENDANCE_TIMEZONE", DEFAULT_TIMEZONE).strip()
    try:
        ZoneInfo(timezone)
    except (ZoneInfoNotFoundError, ValueError) as exc:
        raise ValueError(f"ATTENDANCE_TIMEZONE {timezone!r} is not a known timezone") from exc

    webhook = os.getenv("DISCORD_WEBHOOK_URL", "").strip()

    return Settings(
        data_dir=Path(os.getenv("ATTENDANCE_DATA_DIR", DEFAULT_DATA_DIR)),
        portal_base_url=os.getenv("PORTAL_BASE_URL", DEFAULT_PORTAL_BASE_URL).strip().rstrip("/"),
        discord_webhook_url=webhook or None,
        scrape_timeout=timeout,
        timezone=timezone,
        poll_interval=poll_interval,
    )


def load_config(path: str | Path) -> UserConfig:
    """Read ``config.json`` merged onto :data:`DEFAULT_CONFIG`.

    A missing file yields the defaults; an unreadable one is a ConfigError.
    """
    config_path = Path(path)
    try:
        raw = config_path.read_text(encoding="utf-8")
    except FileNotFoundError:
        LOGGER.info("%s missing -> default config", config_path)
        raw = "{}"

    try:
        data = json.loads(raw)
    except json.JSONDecodeError as exc:
        raise ConfigError(f"{config_path} is not valid JSON") from exc
    if not isinstance(data, dict):
        raise ConfigError(f"{config_path} must hold a JSON object")

    merged = {**DEFAULT_CONFIG, **{k: v for k, v in data.items() if v is not None}}
    return UserConfig(
        username=str(merged["username"] or ""),
        password=str(merged["password"] or ""),
        calendar_only=bool(merged["calendarOnly"]),
        notifications=bool(merged["notifications"]),
    )


def save_config(path: str | Path, config: UserConfig) -> None:
    if not isinstance(config.username, str) or not isinstance(config.password, str):
        raise ValueError("Username and password must be strings.")

    config_path = Path(path)
    config_path.parent.mkdir(parents=True, exist_ok=True)
    config_path.write_text(
        json.dumps(config.to_dict(), ensure_ascii=False, indent=2),
        encoding="utf-8",
    )
    LOGGER.info("Saved config to %s", config_path)
