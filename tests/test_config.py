# tests/test_config.py

from __future__ import annotations

from pathlib import Path

from schengen_agent.config import Settings


def test_settings_defaults(monkeypatch) -> None:
    for key in ("DATA_DIR", "DB_PATH", "API_URL", "POLL_INTERVAL", "POLL_JITTER", "SOUND_NOTIFY", "MATRIX_ENABLED"):
        monkeypatch.delenv(f"SCHENGEN_{key}", raising=False)

    s = Settings.from_env()

    assert s.data_dir == Path(".local/schengen")
    assert s.db_path == Path(".local/schengen/agent.sqlite3")
    assert s.api_url == "http://localhost:3000"
    assert s.poll_interval == 120.0
    assert s.poll_jitter == 30.0
    assert s.sound_notify is True
    assert s.matrix_enabled is False


def test_settings_from_env(monkeypatch, tmp_path: Path) -> None:
    monkeypatch.setenv("SCHENGEN_DATA_DIR", str(tmp_path))
    monkeypatch.delenv("SCHENGEN_DB_PATH", raising=False)
    monkeypatch.setenv("SCHENGEN_API_URL", "http://10.0.0.5:3000/")
    monkeypatch.setenv("SCHENGEN_POLL_INTERVAL", "300")
    monkeypatch.setenv("SCHENGEN_POLL_JITTER", "not-a-number")
    monkeypatch.setenv("SCHENGEN_DESKTOP_NOTIFY", "yes")

    s = Settings.from_env()

    assert s.db_path == tmp_path / "agent.sqlite3"
    assert s.api_url == "http://10.0.0.5:3000"
    assert s.poll_interval == 300.0
    assert s.poll_jitter == 30.0
    assert s.desktop_notify is True

    defaults = s.agent_defaults()
    assert defaults.api_url == "http://10.0.0.5:3000"
    assert defaults.poll_interval == 300.0
    assert defaults.desktop_notify is True
