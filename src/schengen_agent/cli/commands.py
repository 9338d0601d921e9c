# src/schengen_agent/cli/commands.py

from __future__ import annotations

import dataclasses
import inspect
import logging
import shlex
from collections.abc import Callable
from datetime import datetime
from typing import cast

from ..core.state import AppState
from ..monitor.catalog import centers_for_city
from ..monitor.models import Account, AgentSettings, Portal, Task, TaskStatus

CommandEmitter = Callable[[str], None]
CommandConfirm = Callable[[str], bool]
CommandHandler2 = Callable[[AppState, list[str]], str]
CommandHandler3 = Callable[[AppState, list[str], CommandEmitter | None], str]
CommandHandler = CommandHandler2 | CommandHandler3

logger = logging.getLogger(__name__)

_YES_FLAGS = {"-y", "--yes"}


@dataclasses.dataclass(slots=True)
class _Entry:
    handler: CommandHandler
    help_text: str
    confirm: str | None


class CommandRegistry:
    """Slash-command registry used by the console connector (/help, /start, ...)."""

    def __init__(self) -> None:
        self._entries: dict[str, _Entry] = {}
        self._help: dict[str, str] = {}

    def register(
        self,
        name: str,
        handler: CommandHandler,
        help_text: str,
        aliases: list[str] | None = None,
        confirm: str | None = None,
    ) -> None:
        """`confirm` is the question asked before running the command."""
        entry = _Entry(handler=handler, help_text=help_text, confirm=confirm)
        key = name.lower()
        self._entries[key] = entry
        self._help[key] = help_text
        for alias in aliases or []:
            self._entries[alias.lower()] = entry

    def handle(
        self,
        state: AppState,
        line: str,
        emit: CommandEmitter | None = None,
        confirm: CommandConfirm | None = None,
    ) -> str | None:
        """
        Handle a string like "/command args".
        Returns a reply string or None if not a command.
        """
        if not line.startswith("/"):
            return None

        try:
            parts = shlex.split(line[1:])
        except ValueError as e:
            return f"Cannot parse command: {e}"
        if not parts:
            return "Empty command. Use /help to list available commands."

        name = parts[0].lower()
        args = parts[1:]

        entry = self._entries.get(name)
        if not entry:
            return f"Unknown command: /{name}. Use /help to list available commands."

        if entry.confirm is not None:
            if _YES_FLAGS & set(args):
                args = [a for a in args if a not in _YES_FLAGS]
            elif confirm is None or not confirm(entry.confirm):
                return "Cancelled."

        try:
            nparams = len(inspect.signature(entry.handler).parameters)
        except (TypeError, ValueError):
            nparams = 3

        try:
            if nparams >= 3:
                h3 = cast(CommandHandler3, entry.handler)
                return h3(state, args, emit)
            h2 = cast(CommandHandler2, entry.handler)
            return h2(state, args)
        except (LookupError, ValueError) as e:
            # TransitionError is a ValueError: illegal transitions are user errors.
            return f"Error: {e}"

    def build_help(self) -> str:
        lines = ["Available commands:"]
        for name, help_text in self._help.items():
            lines.append(f"  /{name} - {help_text}")
        return "\n".join(lines)


registry = CommandRegistry()


# ---- formatting helpers ----


def mask_document(value: str | None) -> str:
    if not value:
        return ""
    return "*" * len(value) if len(value) <= 4 else f"{value[:2]}****{value[-2:]}"


def _fmt_ts(ts: float | None) -> str:
    if ts is None:
        return "-"
    return datetime.fromtimestamp(ts).astimezone().strftime("%H:%M:%S")


def format_task(task: Task, account_names: dict[int, str]) -> str:
    account = account_names.get(task.account_id, "ACCOUNT DELETED") if task.account_id is not None else "-"
    line = (
        f"#{task.id:<4} {task.full_name:<24} {mask_document(task.passport_no):<10} "
        f"{account:<16} {task.center or '-':<24} {task.status.value}"
    )
    if task.status in (TaskStatus.ACTION_REQUIRED, TaskStatus.COMPLETED) and task.appointment_details:
        line += f"\n       {task.booked_date or ''} {task.appointment_details}".rstrip()
    return line


_TASK_FIELDS = {
    "name": "full_name",
    "full_name": "full_name",
    "passport": "passport_no",
    "passport_no": "passport_no",
    "birth": "birth_date",
    "birth_date": "birth_date",
    "country": "country",
    "city": "city",
    "center": "center",
    "from": "earliest_date",
    "earliest_date": "earliest_date",
    "to": "latest_date",
    "latest_date": "latest_date",
    "account": "account_id",
    "account_id": "account_id",
}


def _parse_pairs(args: list[str]) -> dict[str, str]:
    out: dict[str, str] = {}
    for arg in args:
        key, sep, value = arg.partition("=")
        if not sep:
            raise ValueError(f"expected key=value, got {arg!r}")
        out[key.strip().lower()] = value.strip()
    return out


def _task_changes(args: list[str]) -> dict[str, object]:
    changes: dict[str, object] = {}
    for key, value in _parse_pairs(args).items():
        field = _TASK_FIELDS.get(key)
        if field is None:
            raise ValueError(f"unknown task field {key!r}")
        if field == "account_id":
            changes[field] = int(value) if value else None
        elif field == "country":
            changes[field] = value.upper()
        else:
            changes[field] = value
    return changes


def _parse_id(args: list[str], usage: str) -> int:
    if not args:
        raise ValueError(f"usage: {usage}")
    try:
        return int(args[0].lstrip("#"))
    except ValueError:
        raise ValueError(f"usage: {usage}") from None


# ---- commands ----


def cmd_help(state: AppState, args: list[str]) -> str:
    return registry.build_help()


def cmd_status(state: AppState, args: list[str]) -> str:
    svc = state.service
    counts: dict[str, int] = {}
    for task in svc.tasks:
        counts[task.status.value] = counts.get(task.status.value, 0) + 1
    by_status = ", ".join(f"{k}={v}" for k, v in sorted(counts.items())) or "no tasks"
    s = svc.settings
    return (
        "Status:\n"
        f"  Monitoring: {svc.global_status.value}\n"
        f"  Backend: {'OK' if svc.health.ok else 'DOWN'} ({svc.health.status.message})\n"
        f"  Next check: {_fmt_ts(svc.next_run_at)}\n"
        f"  Tasks: {by_status}\n"
        f"  Poll: every {s.poll_interval:g}s +/- {s.poll_jitter:g}s via {s.api_url}"
    )


def cmd_start(state: AppState, args: list[str]) -> str:
    ok = state.run(state.service.start_all())
    return "Monitoring started." if ok else "Monitoring was not started."


def cmd_pause(state: AppState, args: list[str]) -> str:
    ok = state.run(state.service.pause_all())
    return "Monitoring paused." if ok else "Nothing to pause."


def cmd_stop(state: AppState, args: list[str]) -> str:
    ok = state.run(state.service.stop_all())
    return "Monitoring stopped." if ok else "Monitoring is already stopped."


def cmd_list(state: AppState, args: list[str]) -> str:
    """
    /list                 -> all tasks
    /list running         -> filter by status
    /list running smith   -> filter by status and search term
    /list smith           -> search term only
    """
    status: TaskStatus | None = None
    terms = list(args)
    if terms:
        try:
            status = TaskStatus(terms[0].lower())
            terms = terms[1:]
        except ValueError:
            status = None
    tasks = state.service.list_tasks(status=status, search=" ".join(terms) or None)
    if not tasks:
        return "List is empty or no task matched."
    names = {a.id: a.username for a in state.service.accounts if a.id is not None}
    return "\n".join(format_task(t, names) for t in tasks)


def cmd_add(state: AppState, args: list[str]) -> str:
    """/add name="Jane Doe" passport=U123 country=DE city=Ankara center="iDATA Ankara" account=1"""
    changes = _task_changes(args)
    if not changes.get("full_name"):
        raise ValueError("name=... is required")
    task = Task(id=None, account_id=None, full_name="")
    saved = state.run(state.service.save_task(dataclasses.replace(task, **changes)))
    return f"Task #{saved.id} added ({saved.status.value})." if saved else "Task was not saved."


def cmd_edit(state: AppState, args: list[str]) -> str:
    task_id = _parse_id(args, "/edit <id> key=value ...")
    current = state.service.get_task(task_id)
    saved = state.run(state.service.save_task(dataclasses.replace(current, **_task_changes(args[1:]))))
    return f"Task #{task_id} updated." if saved else "Task was not saved."


def cmd_delete(state: AppState, args: list[str]) -> str:
    task_id = _parse_id(args, "/delete <id>")
    state.service.get_task(task_id)
    ok = state.run(state.service.delete_task(task_id))
    return f"Task #{task_id} deleted." if ok else "Task was not deleted."


def cmd_done(state: AppState, args: list[str]) -> str:
    task_id = _parse_id(args, "/done <id>")
    updated = state.run(state.service.mark_completed(task_id))
    return f"Task #{task_id} completed." if updated else "Task was not updated."


def cmd_requeue(state: AppState, args: list[str]) -> str:
    task_id = _parse_id(args, "/requeue <id>")
    updated = state.run(state.service.requeue(task_id))
    return f"Task #{task_id} requeued ({updated.status.value})." if updated else "Task was not updated."


def cmd_history(state: AppState, args: list[str]) -> str:
    task_id = _parse_id(args, "/history <id>")
    task = state.service.get_task(task_id)
    entries = state.run(state.service.history(task_id))
    if not entries:
        return f"No history for {task.full_name}."
    lines = [f"History of {task.full_name}:"]
    for e in entries:
        lines.append(f"  {e.timestamp}  {e.old_status.value} -> {e.new_status.value}  {e.details}")
    return "\n".join(lines)


def cmd_accounts(state: AppState, args: list[str]) -> str:
    """/accounts [country] -> list accounts (usable for the given country)."""
    accounts = state.service.accounts_for(args[0]) if args else state.service.accounts
    if not accounts:
        return "No accounts."
    return "\n".join(f"#{a.id:<4} {a.portal.value:<6} {a.username}" for a in accounts)


def cmd_account_add(state: AppState, args: list[str]) -> str:
    if len(args) < 2:
        raise ValueError("usage: /account-add <idata|vfs> <username> [password]")
    try:
        portal = Portal(args[0].lower())
    except ValueError:
        raise ValueError(f"unknown portal {args[0]!r} (idata, vfs)") from None
    account = Account(id=None, portal=portal, username=args[1], password=args[2] if len(args) > 2 else "")
    saved = state.run(state.service.save_account(account))
    return f"Account #{saved.id} saved." if saved else "Account was not saved."


def cmd_account_delete(state: AppState, args: list[str]) -> str:
    account_id = _parse_id(args, "/account-delete <id>")
    ok = state.run(state.service.delete_account(account_id))
    return f"Account #{account_id} deleted." if ok else "Account was not deleted."


def cmd_settings(state: AppState, args: list[str]) -> str:
    """
    /settings                          -> show settings
    /settings poll_interval=90 ...     -> change settings
    """
    if args:
        changes = _parse_pairs(args)
        updated = state.run(state.service.update_settings(**changes))
        if updated is None:
            return "Settings were not saved."
    current = state.service.settings
    keys = AgentSettings.persisted_keys()
    return "Settings:\n" + "\n".join(f"  {k} = {getattr(current, k)}" for k in keys)


def cmd_centers(state: AppState, args: list[str]) -> str:
    city = " ".join(args)
    centers = centers_for_city(city)
    return ", ".join(centers) if centers else f"No centers known for {city!r}."


registry.register("help", cmd_help, "Show this help", aliases=["h", "?"])
registry.register("status", cmd_status, "Monitoring status, backend health, next check")
registry.register("start", cmd_start, "Start monitoring all tasks", confirm="Start monitoring?")
registry.register("pause", cmd_pause, "Pause running tasks", confirm="Pause monitoring?")
registry.register("stop", cmd_stop, "Stop monitoring and reset tasks to ready", confirm="Stop monitoring?")
registry.register("list", cmd_list, "List tasks: /list [status] [search]", aliases=["ls"])
registry.register("add", cmd_add, "Add a task: /add name=... passport=... country=... account=<id>")
registry.register("edit", cmd_edit, "Edit a task: /edit <id> key=value ...")
registry.register("delete", cmd_delete, "Delete a task: /delete <id>", aliases=["rm"])
registry.register("done", cmd_done, "Mark a found appointment as completed: /done <id>")
registry.register("requeue", cmd_requeue, "Search again for a task: /requeue <id>")
registry.register("history", cmd_history, "Status history of a task: /history <id>")
registry.register("accounts", cmd_accounts, "List portal accounts: /accounts [country]")
registry.register("account-add", cmd_account_add, "Add an account: /account-add <idata|vfs> <user> [password]")
registry.register("account-delete", cmd_account_delete, "Delete an account: /account-delete <id>")
registry.register("settings", cmd_settings, "Show or change settings: /settings key=value ...")
registry.register("centers", cmd_centers, "Application centers of a city: /centers <city>")
