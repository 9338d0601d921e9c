# tests/fakes.py

from __future__ import annotations

import asyncio
from collections.abc import Coroutine
from dataclasses import dataclass, field
from typing import Any

from schengen_agent.monitor.errors import StoreError
from schengen_agent.monitor.models import (
    Account,
    CheckResult,
    HealthStatus,
    HistoryEntry,
    Notification,
    Task,
)
from schengen_agent.monitor.store import AgentStore


@dataclass(slots=True)
class FakeNotifier:
    """Captures notifications for assertions."""

    sent: list[Notification] = field(default_factory=list)

    async def notify(self, notification: Notification) -> None:
        self.sent.append(notification)

    def titles(self) -> list[str]:
        return [n.title for n in self.sent]


class BlockingNotifier(FakeNotifier):
    """Holds back notifications with one title until `release` is set."""

    def __init__(self, title: str) -> None:
        super().__init__()
        self.title = title
        self.blocked = asyncio.Event()
        self.release = asyncio.Event()

    async def notify(self, notification: Notification) -> None:
        if notification.title == self.title:
            self.blocked.set()
            await self.release.wait()
        await super().notify(notification)


class FakeChecker:
    """
    Deterministic RemoteChecker.

    - `results` maps task id -> CheckResult (default: nothing available)
    - `errors` maps task id -> exception to raise
    """

    def __init__(self, *, healthy: bool = True) -> None:
        self.results: dict[int | None, CheckResult] = {}
        self.errors: dict[int | None, Exception] = {}
        self.healthy = healthy
        self.calls: list[tuple[Task, Account]] = []

    async def check(self, task: Task, account: Account) -> CheckResult:
        self.calls.append((task, account))
        if task.id in self.errors:
            raise self.errors[task.id]
        return self.results.get(task.id, CheckResult(available=False, log="No slots."))

    async def health(self) -> HealthStatus:
        if self.healthy:
            return HealthStatus(ok=True, message="OK")
        return HealthStatus(ok=False, message="down")

    async def aclose(self) -> None:
        return None


class FlakyStore(AgentStore):
    """Real SQLite store that can be told to fail selected writes."""

    def __init__(self, db_path) -> None:
        super().__init__(db_path)
        self.fail_put_task = False
        self.fail_history = False
        self._puts_left: int | None = None

    def fail_puts_after(self, count: int) -> None:
        """Let `count` more put_task calls through, then fail the rest."""
        self._puts_left = count

    def put_task(self, task: Task) -> int:
        if self._puts_left is not None:
            if self._puts_left <= 0:
                raise StoreError("put_task failed: disk I/O error")
            self._puts_left -= 1
        if self.fail_put_task:
            raise StoreError("put_task failed: disk I/O error")
        return super().put_task(task)

    def append_history(self, entry: HistoryEntry) -> int:
        if self.fail_history:
            raise StoreError("append_history failed: disk I/O error")
        return super().append_history(entry)


class SyncRunner:
    """Stands in for the agent background thread: runs each call on a fresh loop."""

    def call(self, coro: Coroutine[Any, Any, Any], timeout: float | None = None) -> Any:
        return asyncio.run(coro)


async def drain(rounds: int = 5) -> None:
    """Let fire-and-forget dispatches run to completion."""
    for _ in range(rounds):
        await asyncio.sleep(0)
