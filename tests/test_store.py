# tests/test_store.py

from __future__ import annotations

import sqlite3
from pathlib import Path

import pytest

from schengen_agent.monitor.errors import StoreError
from schengen_agent.monitor.models import Account, HistoryEntry, Portal, Task, TaskStatus
from schengen_agent.monitor.store import AgentStore


def test_task_put_get_update_delete(tmp_path: Path) -> None:
    store = AgentStore(tmp_path / "agent.sqlite3")

    task_id = store.put_task(Task(id=None, account_id=1, full_name="Jane Doe", country="DE"))
    loaded = store.get_task(task_id)
    assert loaded is not None
    assert loaded.full_name == "Jane Doe"
    assert loaded.status is TaskStatus.READY

    loaded.status = TaskStatus.PAUSED
    assert store.put_task(loaded) == task_id
    assert store.get_task(task_id).status is TaskStatus.PAUSED
    assert [t.id for t in store.list_tasks()] == [task_id]

    store.delete_task(task_id)
    assert store.get_task(task_id) is None


def test_try_transition_claims_once(tmp_path: Path) -> None:
    store = AgentStore(tmp_path / "agent.sqlite3")
    task_id = store.put_task(Task(id=None, account_id=None, full_name="A", status=TaskStatus.RUNNING))

    first = store.try_transition(
        task_id,
        expected=TaskStatus.RUNNING,
        new_status=TaskStatus.ACTION_REQUIRED,
        booked_date="2025-11-10",
        appointment_details="Slot X",
    )
    second = store.try_transition(
        task_id,
        expected=TaskStatus.RUNNING,
        new_status=TaskStatus.ACTION_REQUIRED,
        booked_date="2025-12-01",
        appointment_details="Slot Y",
    )

    assert first is True
    assert second is False
    task = store.get_task(task_id)
    assert task.status is TaskStatus.ACTION_REQUIRED
    assert task.booked_date == "2025-11-10"
    assert task.appointment_details == "Slot X"


def test_accounts_roundtrip(tmp_path: Path) -> None:
    store = AgentStore(tmp_path / "agent.sqlite3")
    acc_id = store.put_account(Account(id=None, portal=Portal.VFS, username="u", password="p"))
    assert store.get_account(acc_id) == Account(id=acc_id, portal=Portal.VFS, username="u", password="p")

    store.delete_account(acc_id)
    assert store.list_accounts() == []


def test_settings_are_json_encoded(tmp_path: Path) -> None:
    store = AgentStore(tmp_path / "agent.sqlite3")
    store.put_setting("poll_interval", 90.0)
    store.put_setting("sound_notify", False)
    store.put_setting("api_url", "http://localhost:3000")

    assert store.get_all_settings() == {
        "poll_interval": 90.0,
        "sound_notify": False,
        "api_url": "http://localhost:3000",
    }

    with pytest.raises(StoreError):
        store.put_setting("bad", object())


def test_history_is_listed_newest_first(tmp_path: Path) -> None:
    store = AgentStore(tmp_path / "agent.sqlite3")
    store.append_history(
        HistoryEntry(1, TaskStatus.READY, TaskStatus.RUNNING, "first", timestamp="2025-01-01T10:00:00+00:00")
    )
    store.append_history(
        HistoryEntry(1, TaskStatus.RUNNING, TaskStatus.PAUSED, "second", timestamp="2025-01-01T11:00:00+00:00")
    )
    store.append_history(
        HistoryEntry(2, TaskStatus.READY, TaskStatus.RUNNING, "other task", timestamp="2025-01-01T12:00:00+00:00")
    )

    entries = store.list_history(1)
    assert [e.details for e in entries] == ["second", "first"]
    assert entries[0].old_status is TaskStatus.RUNNING
    assert entries[0].id is not None


def test_legacy_tasks_table_is_migrated(tmp_path: Path) -> None:
    db = tmp_path / "legacy.sqlite3"
    conn = sqlite3.connect(db)
    conn.execute("CREATE TABLE tasks (id INTEGER PRIMARY KEY AUTOINCREMENT, full_name TEXT NOT NULL DEFAULT '')")
    conn.execute("INSERT INTO tasks(full_name) VALUES ('Old Person')")
    conn.commit()
    conn.close()

    store = AgentStore(db)
    (task,) = store.list_tasks()
    assert task.full_name == "Old Person"
    assert task.status is TaskStatus.READY
    assert task.account_id is None


def test_unusable_database_raises_store_error(tmp_path: Path) -> None:
    # a directory cannot be opened as a database file
    with pytest.raises(StoreError):
        AgentStore(tmp_path)
