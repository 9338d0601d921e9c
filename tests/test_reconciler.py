# tests/test_reconciler.py

from __future__ import annotations

import asyncio

import pytest

from schengen_agent.monitor.models import AgentSettings, Channel, CheckResult, TaskStatus
from schengen_agent.monitor.reconciler import ResultReconciler, slot_channels, slot_details

SLOT = CheckResult(available=True, log="found", found_date="2025-11-10", appointment_details="Slot X")


@pytest.mark.asyncio
async def test_found_slot_moves_task_and_notifies_once(store, notifier, account, make_task) -> None:
    task = make_task("Ayse Yilmaz", account_id=account.id, status=TaskStatus.RUNNING)
    reconciler = ResultReconciler(store, notifier)

    updated = await reconciler.on_check_result(task, account, SLOT, AgentSettings())

    assert updated is not None
    assert updated.status is TaskStatus.ACTION_REQUIRED
    assert updated.booked_date == "2025-11-10"
    assert updated.appointment_details == "Slot X"

    row = store.get_task(task.id)
    assert row.status is TaskStatus.ACTION_REQUIRED
    assert row.booked_date == "2025-11-10"

    (entry,) = store.list_history(task.id)
    assert entry.old_status is TaskStatus.RUNNING
    assert entry.new_status is TaskStatus.ACTION_REQUIRED
    assert entry.details == "Slot found: Slot X"

    (note,) = notifier.sent
    assert note.title == "APPOINTMENT FOUND!"
    assert note.body == "Slot found for Ayse Yilmaz! Details: Slot X"
    assert note.level == "success"


@pytest.mark.asyncio
async def test_duplicate_results_are_applied_once(store, notifier, account, make_task) -> None:
    task = make_task(account_id=account.id, status=TaskStatus.RUNNING)
    reconciler = ResultReconciler(store, notifier)

    first, second = await asyncio.gather(
        reconciler.on_check_result(task, account, SLOT, AgentSettings()),
        reconciler.on_check_result(task, account, SLOT, AgentSettings()),
    )

    assert (first is None) != (second is None)
    assert len(store.list_history(task.id)) == 1
    assert len(notifier.sent) == 1


@pytest.mark.asyncio
async def test_result_for_task_no_longer_running_is_dropped(store, notifier, account, make_task) -> None:
    task = make_task(account_id=account.id, status=TaskStatus.RUNNING)
    # the user paused monitoring while the check was in flight
    paused = store.get_task(task.id)
    paused.status = TaskStatus.PAUSED
    store.put_task(paused)

    updated = await ResultReconciler(store, notifier).on_check_result(task, account, SLOT, AgentSettings())

    assert updated is None
    assert store.get_task(task.id).status is TaskStatus.PAUSED
    assert notifier.sent == []


@pytest.mark.asyncio
async def test_unavailable_result_changes_nothing(store, notifier, account, make_task) -> None:
    task = make_task(account_id=account.id, status=TaskStatus.RUNNING)

    updated = await ResultReconciler(store, notifier).on_check_result(
        task, account, CheckResult(available=False, log="No slots."), AgentSettings()
    )

    assert updated is None
    assert store.get_task(task.id).status is TaskStatus.RUNNING
    assert store.list_history(task.id) == []
    assert notifier.sent == []


@pytest.mark.asyncio
async def test_history_failure_keeps_status_change(store, notifier, account, make_task) -> None:
    task = make_task(account_id=account.id, status=TaskStatus.RUNNING)
    store.fail_history = True

    updated = await ResultReconciler(store, notifier).on_check_result(task, account, SLOT, AgentSettings())

    assert updated is not None
    assert store.get_task(task.id).status is TaskStatus.ACTION_REQUIRED
    assert len(notifier.sent) == 1


def test_claim_writes_history_before_any_alert(store, notifier, account, make_task) -> None:
    task = make_task(account_id=account.id, status=TaskStatus.RUNNING)

    claimed = ResultReconciler(store, notifier).claim_slot(task, SLOT)

    assert claimed is not None
    assert claimed.status is TaskStatus.ACTION_REQUIRED
    assert [e.new_status for e in store.list_history(task.id)] == [TaskStatus.ACTION_REQUIRED]
    assert notifier.sent == []


def test_claim_without_details_falls_back_to_backend_log(store, notifier, account, make_task) -> None:
    task = make_task(account_id=account.id, status=TaskStatus.RUNNING)

    claimed = ResultReconciler(store, notifier).claim_slot(task, CheckResult(available=True, log="found"))

    assert claimed is not None
    assert claimed.appointment_details == "found"
    assert store.get_task(task.id).appointment_details == "found"
    assert store.list_history(task.id)[0].details == "Slot found: found"


def test_slot_details_is_never_empty() -> None:
    assert slot_details(SLOT) == "Slot X"
    assert slot_details(CheckResult(available=True, log=" found ")) == "found"
    assert slot_details(CheckResult(available=True, appointment_details="  ")) == "Slot available"


def test_slot_channels_follow_settings() -> None:
    assert slot_channels(AgentSettings(desktop_notify=False, sound_notify=False)) == {Channel.VISUAL}
    assert slot_channels(AgentSettings(desktop_notify=True, sound_notify=True)) == {
        Channel.VISUAL,
        Channel.DESKTOP,
        Channel.SOUND,
    }
