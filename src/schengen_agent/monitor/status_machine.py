# src/schengen_agent/monitor/status_machine.py

from __future__ import annotations

"""
Task lifecycle transitions.

Pure functions only: no storage, no timing. Callers are responsible for
writing one HistoryEntry per transition that actually changes a status.

    ready / paused  --start-->  running
    running         --pause-->  paused
    any but completed --stop--> ready
    running         --slot found-->  action_required
    action_required --mark done-->   completed
    action_required --requeue-->     running | ready
"""

from enum import StrEnum

from .errors import TransitionError
from .models import GlobalStatus, TaskStatus


class BulkCommand(StrEnum):
    START = "start"
    PAUSE = "pause"
    STOP = "stop"


_BULK_SOURCES: dict[BulkCommand, frozenset[TaskStatus]] = {
    BulkCommand.START: frozenset({TaskStatus.READY, TaskStatus.PAUSED}),
    BulkCommand.PAUSE: frozenset({TaskStatus.RUNNING}),
    BulkCommand.STOP: frozenset(
        {TaskStatus.RUNNING, TaskStatus.PAUSED, TaskStatus.ACTION_REQUIRED}
    ),
}

_BULK_TARGET: dict[BulkCommand, TaskStatus] = {
    BulkCommand.START: TaskStatus.RUNNING,
    BulkCommand.PAUSE: TaskStatus.PAUSED,
    BulkCommand.STOP: TaskStatus.READY,
}

_GLOBAL_AFTER: dict[BulkCommand, GlobalStatus] = {
    BulkCommand.START: GlobalStatus.RUNNING,
    BulkCommand.PAUSE: GlobalStatus.PAUSED,
    BulkCommand.STOP: GlobalStatus.STOPPED,
}


def bulk_target(status: TaskStatus, command: BulkCommand) -> TaskStatus | None:
    """Return the new status for a bulk command, or None if the task is left as is."""
    if status is TaskStatus.COMPLETED:
        return None
    if status not in _BULK_SOURCES[command]:
        return None
    return _BULK_TARGET[command]


def command_allowed(command: BulkCommand, global_status: GlobalStatus) -> bool:
    if command is BulkCommand.START:
        return global_status is not GlobalStatus.RUNNING
    if command is BulkCommand.PAUSE:
        return global_status is GlobalStatus.RUNNING
    return global_status is not GlobalStatus.STOPPED


def global_status_after(command: BulkCommand) -> GlobalStatus:
    return _GLOBAL_AFTER[command]


def slot_found(status: TaskStatus) -> TaskStatus:
    if status is not TaskStatus.RUNNING:
        raise TransitionError(f"slot found for a task in {status.value!r}, expected 'running'")
    return TaskStatus.ACTION_REQUIRED


def mark_completed(status: TaskStatus) -> TaskStatus:
    if status is not TaskStatus.ACTION_REQUIRED:
        raise TransitionError(f"cannot complete a task in {status.value!r}")
    return TaskStatus.COMPLETED


def requeue(status: TaskStatus, global_status: GlobalStatus) -> TaskStatus:
    if status is not TaskStatus.ACTION_REQUIRED:
        raise TransitionError(f"cannot requeue a task in {status.value!r}")
    return TaskStatus.RUNNING if global_status is GlobalStatus.RUNNING else TaskStatus.READY


def status_for_save(existing: TaskStatus | None, global_status: GlobalStatus) -> TaskStatus:
    """
    Status assigned by a manual create/edit.

    Edits keep whatever status the task had, even if the global status changed since.
    """
    if existing is not None:
        return existing
    return TaskStatus.RUNNING if global_status is GlobalStatus.RUNNING else TaskStatus.READY


def is_schedulable(status: TaskStatus) -> bool:
    return status is TaskStatus.RUNNING
