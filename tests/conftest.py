# tests/conftest.py

from __future__ import annotations

from pathlib import Path
from types import SimpleNamespace

import pytest

from schengen_agent.core.state import AppState
from schengen_agent.monitor.models import Account, AgentSettings, Portal, Task
from schengen_agent.monitor.service import MonitorService
from schengen_agent.monitor.store import AgentStore

from .fakes import FakeChecker, FakeNotifier, FlakyStore, SyncRunner


@pytest.fixture()
def settings(tmp_path: Path) -> SimpleNamespace:
    """
    Minimal settings object compatible with AppState.

    We intentionally use a SimpleNamespace rather than importing real config,
    to keep unit tests isolated and deterministic.
    """
    return SimpleNamespace(
        app_name="schengen-agent-test",
        data_dir=tmp_path,
        db_path=tmp_path / "agent.sqlite3",
        console_enabled=False,
        matrix_enabled=False,
        matrix_room="",
    )


@pytest.fixture()
def store(settings: SimpleNamespace) -> FlakyStore:
    return FlakyStore(settings.db_path)


@pytest.fixture()
def checker() -> FakeChecker:
    return FakeChecker()


@pytest.fixture()
def notifier() -> FakeNotifier:
    return FakeNotifier()


@pytest.fixture()
def defaults() -> AgentSettings:
    # Long interval: tests drive cycles explicitly instead of waiting on the timer.
    return AgentSettings(api_url="http://backend.test", poll_interval=60.0, poll_jitter=0.0)


@pytest.fixture()
def service(store: AgentStore, checker: FakeChecker, notifier: FakeNotifier, defaults: AgentSettings) -> MonitorService:
    return MonitorService(store, checker, notifier, defaults=defaults, min_delay_ms=10)


@pytest.fixture()
def account(store: AgentStore) -> Account:
    acc = Account(id=None, portal=Portal.IDATA, username="agent@example.com", password="secret")
    acc.id = store.put_account(acc)
    return acc


@pytest.fixture()
def make_task(store: AgentStore):
    """Persist a task and return it with its id."""

    def _make(full_name: str = "Jane Doe", **kwargs) -> Task:
        task = Task(id=None, account_id=kwargs.pop("account_id", None), full_name=full_name, **kwargs)
        task.id = store.put_task(task)
        return task

    return _make


@pytest.fixture()
def state(settings: SimpleNamespace, store: AgentStore, checker: FakeChecker, notifier: FakeNotifier, service: MonitorService) -> AppState:
    """AppState wired with deterministic fakes and a synchronous runner."""
    return AppState(
        settings=settings,
        store=store,
        checker=checker,
        notifier=notifier,
        service=service,
        runner=SyncRunner(),
    )
