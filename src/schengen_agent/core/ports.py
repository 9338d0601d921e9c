# src/schengen_agent/core/ports.py

from __future__ import annotations

"""
Ports (interfaces) used by the monitoring core.

The scheduler, reconciler and service depend on Protocols instead of concrete
implementations. This keeps storage, the check backend and notification
channels swappable and makes testing easier.
"""

from typing import Any, Protocol

from ..monitor.models import (
    Account,
    CheckResult,
    HealthStatus,
    HistoryEntry,
    Notification,
    Task,
    TaskStatus,
)


class AgentRepo(Protocol):
    """Durable records. Each call is atomic on its own record only."""

    def list_tasks(self) -> list[Task]: ...
    def get_task(self, task_id: int) -> Task | None: ...
    def put_task(self, task: Task) -> int: ...
    def delete_task(self, task_id: int) -> None: ...
    def try_transition(
            self,
            task_id: int,
            *,
            expected: TaskStatus,
            new_status: TaskStatus,
            booked_date: str | None = None,
            appointment_details: str | None = None,
    ) -> bool: ...

    def list_accounts(self) -> list[Account]: ...
    def get_account(self, account_id: int) -> Account | None: ...
    def put_account(self, account: Account) -> int: ...
    def delete_account(self, account_id: int) -> None: ...

    def get_all_settings(self) -> dict[str, Any]: ...
    def put_setting(self, key: str, value: Any) -> None: ...

    def append_history(self, entry: HistoryEntry) -> int: ...
    def list_history(self, task_id: int) -> list[HistoryEntry]: ...


class RemoteChecker(Protocol):
    """
    Appointment backend.

    `check` raises CheckError on transport/protocol failure.
    """

    async def check(self, task: Task, account: Account) -> CheckResult: ...
    async def health(self) -> HealthStatus: ...


class Notifier(Protocol):
    """
    Notification sink.

    Each implementation delivers the channels it understands and ignores the rest.
    """

    async def notify(self, notification: Notification) -> None: ...
