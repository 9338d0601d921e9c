# src/schengen_agent/monitor/reconciler.py

from __future__ import annotations

import dataclasses
import logging

from ..core.ports import AgentRepo, Notifier
from .errors import StoreError
from .models import (
    Account,
    AgentSettings,
    Channel,
    CheckResult,
    HistoryEntry,
    Notification,
    Task,
    TaskStatus,
)
from .status_machine import slot_found

logger = logging.getLogger(__name__)


def slot_channels(settings: AgentSettings) -> frozenset[Channel]:
    channels = {Channel.VISUAL}
    if settings.desktop_notify:
        channels.add(Channel.DESKTOP)
    if settings.sound_notify:
        channels.add(Channel.SOUND)
    return frozenset(channels)


def slot_details(result: CheckResult) -> str:
    """Appointment details to store; never empty for an available result."""
    return (result.appointment_details or "").strip() or (result.log or "").strip() or "Slot available"


class ResultReconciler:
    """
    Applies a finished remote check to durable state.

    A finding is claimed with a conditional store update (running -> action_required)
    before anything else happens, so when two results for the same task race,
    only the first one writes history and notifies.
    """

    def __init__(self, store: AgentRepo, notifier: Notifier) -> None:
        self._store = store
        self._notifier = notifier

    def on_check_error(self, task: Task, account: Account, exc: Exception) -> None:
        logger.error(
            "[%s] Backend communication failed (account=%s): %s",
            task.label(),
            account.username,
            exc,
        )

    def claim_slot(self, task: Task, result: CheckResult) -> Task | None:
        """
        Record a finding and return the updated task, or None if nothing was claimed.

        Nothing here awaits: the caller applies the returned task to its
        working set before calling announce_slot().
        """
        if not result.available:
            logger.info("[%s] Backend report: %s", task.label(), result.log or "no slot")
            return None

        if task.id is None:
            logger.warning("[%s] Slot reported for an unsaved task; ignoring.", task.label())
            return None

        details = slot_details(result)
        new_status = slot_found(TaskStatus.RUNNING)
        try:
            claimed = self._store.try_transition(
                task.id,
                expected=TaskStatus.RUNNING,
                new_status=new_status,
                booked_date=result.found_date,
                appointment_details=details,
            )
        except StoreError:
            logger.exception("[%s] Failed to record found slot.", task.label())
            return None

        if not claimed:
            logger.info(
                "[%s] Slot reported but task is no longer running; skipping duplicate.",
                task.label(),
            )
            return None

        logger.info("[%s] Backend report: %s", task.label(), result.log or "slot available")

        try:
            self._store.append_history(
                HistoryEntry(
                    task_id=task.id,
                    old_status=TaskStatus.RUNNING,
                    new_status=new_status,
                    details=f"Slot found: {details}",
                )
            )
        except StoreError:
            # The task row is already updated; history loss is logged, not rolled back.
            logger.exception("[%s] Failed to append history entry.", task.label())

        return dataclasses.replace(
            task,
            status=new_status,
            booked_date=result.found_date if result.found_date is not None else task.booked_date,
            appointment_details=details,
        )

    async def announce_slot(self, task: Task, settings: AgentSettings) -> None:
        """Alert the user about a claimed task; delivery failures are logged."""
        try:
            await self._notifier.notify(
                Notification(
                    title="APPOINTMENT FOUND!",
                    body=f"Slot found for {task.full_name}! Details: {task.appointment_details}",
                    level="success",
                    channels=slot_channels(settings),
                )
            )
        except Exception:
            logger.exception("[%s] Notification delivery failed.", task.label())

    async def on_check_result(
        self,
        task: Task,
        account: Account,
        result: CheckResult,
        settings: AgentSettings,
    ) -> Task | None:
        """Claim and announce in one step; return the updated task when a slot was recorded."""
        updated = self.claim_slot(task, result)
        if updated is not None:
            await self.announce_slot(updated, settings)
        return updated
