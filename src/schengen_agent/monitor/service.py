# src/schengen_agent/monitor/service.py

from __future__ import annotations

import dataclasses
import logging
import random
from typing import Any

from ..core.ports import AgentRepo, Notifier, RemoteChecker
from .catalog import accounts_for_country
from .errors import StoreError
from .health import HEALTH_INTERVAL_SECONDS, HealthMonitor
from .models import (
    Account,
    AgentSettings,
    GlobalStatus,
    HistoryEntry,
    Notification,
    Task,
    TaskStatus,
)
from .reconciler import ResultReconciler
from .scheduler import MIN_DELAY_MS, CheckScheduler
from .status_machine import (
    BulkCommand,
    bulk_target,
    command_allowed,
    global_status_after,
    mark_completed,
    requeue,
    status_for_save,
)

logger = logging.getLogger(__name__)

BULK_DETAILS = "Updated by bulk operation."
COMPLETED_DETAILS = "Marked completed by the user."
REQUEUE_DETAILS = "Requeued by the user."


class MonitorService:
    """
    Application service over the monitoring working set.

    Holds the in-memory tasks/accounts/settings and the global status, and keeps
    the scheduler's copy in sync. Every method must run on the event loop that
    owns the scheduler, so mutations are serialized.

    Store failures are logged, surfaced as an error notification and abort the
    operation. Memory only follows writes that succeeded, so a bulk command that
    fails halfway keeps the tasks it already moved and the old global status.
    """

    def __init__(
        self,
        store: AgentRepo,
        checker: RemoteChecker,
        notifier: Notifier,
        *,
        defaults: AgentSettings | None = None,
        health: HealthMonitor | None = None,
        health_interval_seconds: float = HEALTH_INTERVAL_SECONDS,
        rng: random.Random | None = None,
        min_delay_ms: float = MIN_DELAY_MS,
    ) -> None:
        self._store = store
        self._notifier = notifier
        self._defaults = defaults or AgentSettings()

        self.tasks: list[Task] = []
        self.accounts: list[Account] = []
        self.settings = dataclasses.replace(self._defaults, status=GlobalStatus.STOPPED)

        self.health = health or HealthMonitor(checker, interval_seconds=health_interval_seconds)
        self.reconciler = ResultReconciler(store, notifier)
        self.scheduler = CheckScheduler(
            checker,
            self.reconciler,
            on_task_changed=self._on_task_changed,
            rng=rng,
            min_delay_ms=min_delay_ms,
        )

    # ---- lifecycle ----

    @property
    def global_status(self) -> GlobalStatus:
        return self.settings.status

    @property
    def next_run_at(self) -> float | None:
        return self.scheduler.next_run_at

    async def load(self) -> bool:
        try:
            tasks = self._store.list_tasks()
            accounts = self._store.list_accounts()
            stored = self._store.get_all_settings()
        except StoreError as e:
            await self._store_failed("Reading the database", e)
            return False

        self.tasks = tasks
        self.accounts = accounts
        self.settings = AgentSettings.from_mapping(stored, base=self.settings)
        self._sync_scheduler()
        logger.info("Loaded %d tasks, %d accounts.", len(tasks), len(accounts))
        return True

    def start_background(self) -> None:
        self.health.start()

    async def shutdown(self) -> None:
        await self.scheduler.aclose()
        await self.health.stop()

    # ---- bulk commands ----

    async def start_all(self) -> bool:
        if not command_allowed(BulkCommand.START, self.global_status):
            logger.info("Start ignored: monitoring is already running.")
            return False
        if not self.health.ok:
            await self._notify_error(
                "Backend unavailable",
                "The backend server is not active. Start the server first.",
            )
            return False
        return await self._run_bulk(BulkCommand.START)

    async def pause_all(self) -> bool:
        if not command_allowed(BulkCommand.PAUSE, self.global_status):
            logger.info("Pause ignored: monitoring is not running.")
            return False
        return await self._run_bulk(BulkCommand.PAUSE)

    async def stop_all(self) -> bool:
        if not command_allowed(BulkCommand.STOP, self.global_status):
            logger.info("Stop ignored: monitoring is already stopped.")
            return False
        return await self._run_bulk(BulkCommand.STOP)

    async def _run_bulk(self, command: BulkCommand) -> bool:
        changed = 0
        for task_id in [t.id for t in self.tasks]:
            # Current copy, not a snapshot: a slot claim can land at any await below.
            old = next((t for t in self.tasks if t.id == task_id), None)
            if old is None:
                continue
            target = bulk_target(old.status, command)
            if target is None or target is old.status:
                continue

            new = dataclasses.replace(old, status=target)
            try:
                self._store.put_task(new)
            except StoreError as e:
                # Rows written so far stay written; memory already mirrors them.
                await self._store_failed(f"Bulk {command.value}", e)
                self._sync_scheduler()
                logger.warning("Bulk %s aborted after %d tasks changed.", command.value, changed)
                return False
            self.tasks = [new if t.id == task_id else t for t in self.tasks]
            changed += 1
            await self._record_history(old, target, BULK_DETAILS)

        self.settings.status = global_status_after(command)
        logger.info("Bulk %s: %d tasks changed, global status=%s", command.value, changed, self.settings.status.value)

        if command is BulkCommand.START:
            self.scheduler.start(self.tasks, self.accounts, self.settings)
        else:
            self.scheduler.update(self.tasks, self.accounts, self.settings)
            self.scheduler.stop()
        return True

    # ---- tasks ----

    def get_task(self, task_id: int) -> Task:
        for task in self.tasks:
            if task.id == task_id:
                return task
        raise LookupError(f"task {task_id} not found")

    def list_tasks(self, status: TaskStatus | None = None, search: str | None = None) -> list[Task]:
        out = [t for t in self.tasks if status is None or t.status is status]
        term = (search or "").strip().lower()
        if term:
            out = [
                t
                for t in out
                if any(term in str(v).lower() for v in dataclasses.asdict(t).values() if v is not None)
            ]
        return out

    async def save_task(self, task: Task) -> Task | None:
        existing = None
        if task.id is not None:
            existing = next((t for t in self.tasks if t.id == task.id), None)

        status = status_for_save(existing.status if existing else None, self.global_status)
        to_save = dataclasses.replace(task, status=status)
        try:
            task_id = self._store.put_task(to_save)
        except StoreError as e:
            await self._store_failed("Saving task", e)
            return None

        saved = dataclasses.replace(to_save, id=task_id)

        if existing is None:
            self.tasks = [*self.tasks, saved]
        else:
            self.tasks = [saved if t.id == task_id else t for t in self.tasks]
        self._sync_scheduler()

        verb = "updated" if existing is not None else "added"
        await self._notify(Notification(title="Task saved", body=f"'{saved.full_name}' {verb}."))
        return saved

    async def delete_task(self, task_id: int) -> bool:
        try:
            self._store.delete_task(task_id)
        except StoreError as e:
            await self._store_failed("Deleting task", e)
            return False
        self.tasks = [t for t in self.tasks if t.id != task_id]
        self._sync_scheduler()
        return True

    async def mark_completed(self, task_id: int) -> Task | None:
        task = self.get_task(task_id)
        return await self._transition_one(task, mark_completed(task.status), COMPLETED_DETAILS)

    async def requeue(self, task_id: int) -> Task | None:
        task = self.get_task(task_id)
        return await self._transition_one(task, requeue(task.status, self.global_status), REQUEUE_DETAILS)

    async def history(self, task_id: int) -> list[HistoryEntry]:
        try:
            return self._store.list_history(task_id)
        except StoreError as e:
            await self._store_failed("Reading task history", e)
            return []

    async def _transition_one(self, task: Task, new_status: TaskStatus, details: str) -> Task | None:
        updated = dataclasses.replace(task, status=new_status)
        try:
            self._store.put_task(updated)
        except StoreError as e:
            await self._store_failed("Updating task status", e)
            return None
        await self._record_history(task, new_status, details)

        self.tasks = [updated if t.id == task.id else t for t in self.tasks]
        self._sync_scheduler()
        return updated

    # ---- accounts ----

    def accounts_for(self, country: str) -> list[Account]:
        return accounts_for_country(self.accounts, country)

    async def save_account(self, account: Account) -> Account | None:
        try:
            account_id = self._store.put_account(account)
        except StoreError as e:
            await self._store_failed("Saving account", e)
            return None
        saved = dataclasses.replace(account, id=account_id)
        if any(a.id == account_id for a in self.accounts):
            self.accounts = [saved if a.id == account_id else a for a in self.accounts]
        else:
            self.accounts = [*self.accounts, saved]
        self._sync_scheduler()
        return saved

    async def delete_account(self, account_id: int) -> bool:
        """Tasks that referenced the account stay and are skipped by the scheduler."""
        try:
            self._store.delete_account(account_id)
        except StoreError as e:
            await self._store_failed("Deleting account", e)
            return False
        self.accounts = [a for a in self.accounts if a.id != account_id]
        self._sync_scheduler()
        return True

    # ---- settings ----

    async def update_settings(self, **changes: Any) -> AgentSettings | None:
        unknown = set(changes) - set(AgentSettings.persisted_keys())
        if unknown:
            raise ValueError(f"unknown settings: {', '.join(sorted(unknown))}")

        updated = AgentSettings.from_mapping(changes, base=self.settings)
        try:
            for key in changes:
                self._store.put_setting(key, getattr(updated, key))
        except StoreError as e:
            await self._store_failed("Saving settings", e)
            return None

        self.settings = updated
        self._sync_scheduler()
        return updated

    # ---- internals ----

    def _sync_scheduler(self) -> None:
        self.scheduler.update(self.tasks, self.accounts, self.settings)

    def _on_task_changed(self, task: Task) -> None:
        self.tasks = [task if t.id == task.id else t for t in self.tasks]

    async def _record_history(self, task: Task, new_status: TaskStatus, details: str) -> None:
        if task.id is None:
            return
        try:
            self._store.append_history(
                HistoryEntry(task_id=task.id, old_status=task.status, new_status=new_status, details=details)
            )
        except StoreError as e:
            await self._store_failed("Saving task history", e)

    async def _store_failed(self, op: str, exc: StoreError) -> None:
        logger.error("%s failed: %s", op, exc)
        await self._notify_error("Storage error", f"{op} failed: {exc}")

    async def _notify_error(self, title: str, body: str) -> None:
        await self._notify(Notification(title=title, body=body, level="error"))

    async def _notify(self, notification: Notification) -> None:
        try:
            await self._notifier.notify(notification)
        except Exception:
            logger.exception("Notification delivery failed: %s", notification.title)
