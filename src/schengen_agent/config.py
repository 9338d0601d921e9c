# src/schengen_agent/config.py

"""Centralized settings loaded from environment variables (+ optional .env).

Design goals:
- One Settings object for the whole process (normal "settings layer").
- No secrets required at import time.
- Env values only seed defaults; settings saved by the user in the database win.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

from dotenv import load_dotenv

from .monitor.models import AgentSettings

ENV_PREFIX = "SCHENGEN"

load_dotenv(override=False)


def _k(suffix: str) -> str:
    """Build env var name with the project prefix."""
    return f"{ENV_PREFIX}_{suffix}"


def _env(name: str, default: str = "") -> str:
    v = os.getenv(name)
    return default if v is None else v


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in {"1", "true", "yes", "y", "on"}


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return float(raw)
    except ValueError:
        return default


def _env_path(name: str, default: Path) -> Path:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    return Path(raw).expanduser()


@dataclass(frozen=True, slots=True)
class Settings:
    # ---- App / logging ----
    app_name: str
    log_level: str

    # ---- Local data paths (ignored by git) ----
    data_dir: Path
    db_path: Path

    # ---- Agent defaults (overridable from the database) ----
    api_url: str
    poll_interval: float
    poll_jitter: float
    desktop_notify: bool
    sound_notify: bool

    # ---- Backend client ----
    health_interval: float
    request_timeout: float

    # ---- Connectors ----
    console_enabled: bool
    matrix_enabled: bool
    matrix_homeserver: str
    matrix_user_id: str
    matrix_password: str
    matrix_room: str
    matrix_store_path: Path

    @staticmethod
    def from_env() -> "Settings":
        data_dir = _env_path(_k("DATA_DIR"), Path(".local/schengen"))

        return Settings(
            app_name=_env(_k("APP_NAME"), "schengen-agent"),
            log_level=_env(_k("LOG_LEVEL"), "INFO"),
            data_dir=data_dir,
            db_path=_env_path(_k("DB_PATH"), data_dir / "agent.sqlite3"),
            api_url=_env(_k("API_URL"), "http://localhost:3000").strip().rstrip("/"),
            poll_interval=_env_float(_k("POLL_INTERVAL"), 120.0),
            poll_jitter=_env_float(_k("POLL_JITTER"), 30.0),
            desktop_notify=_env_bool(_k("DESKTOP_NOTIFY"), False),
            sound_notify=_env_bool(_k("SOUND_NOTIFY"), True),
            health_interval=_env_float(_k("HEALTH_INTERVAL"), 30.0),
            request_timeout=_env_float(_k("REQUEST_TIMEOUT"), 30.0),
            console_enabled=_env_bool(_k("CONSOLE_ENABLED"), True),
            matrix_enabled=_env_bool(_k("MATRIX_ENABLED"), False),
            matrix_homeserver=_env(_k("MATRIX_HOMESERVER")).strip(),
            matrix_user_id=_env(_k("MATRIX_USER_ID")).strip(),
            matrix_password=_env(_k("MATRIX_PASSWORD")).strip(),
            matrix_room=_env(_k("MATRIX_ROOM")).strip(),
            matrix_store_path=_env_path(_k("MATRIX_STORE_PATH"), data_dir / "matrix_store"),
        )

    def agent_defaults(self) -> AgentSettings:
        return AgentSettings(
            api_url=self.api_url,
            poll_interval=self.poll_interval,
            poll_jitter=self.poll_jitter,
            desktop_notify=self.desktop_notify,
            sound_notify=self.sound_notify,
        )


_SETTINGS: Settings | None = None


def get_settings() -> Settings:
    global _SETTINGS
    if _SETTINGS is None:
        _SETTINGS = Settings.from_env()
    return _SETTINGS
