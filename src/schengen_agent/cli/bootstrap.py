# src/schengen_agent/cli/bootstrap.py

"""
CLI bootstrap helpers.

This module is the "composition root":
- loads settings once,
- ensures local (gitignored) directories exist,
- wires concrete implementations (SQLite store, HTTP checker, console
  notifier) into the MonitorService and AppState.
"""

from __future__ import annotations

import logging

from ..config import get_settings
from ..connectors.console_notifier import ConsoleNotifier, FanoutNotifier
from ..core.state import AppState
from ..monitor.checker import HttpAppointmentChecker
from ..monitor.service import MonitorService
from ..monitor.store import AgentStore

logger = logging.getLogger(__name__)


def _ensure_local_dirs(settings) -> None:
    settings.data_dir.mkdir(parents=True, exist_ok=True)
    settings.db_path.parent.mkdir(parents=True, exist_ok=True)


def create_initial_state(*, settings=None) -> AppState:
    """
    Create AppState from the provided settings.

    Keeping settings injectable makes the app easier to test and avoids hidden global config reads.
    If settings is None, falls back to get_settings().
    """
    if settings is None:
        settings = get_settings()

    _ensure_local_dirs(settings)

    store = AgentStore(settings.db_path)
    notifier = FanoutNotifier(ConsoleNotifier())

    # The checker reads the base URL through the service's live settings.
    holder: dict[str, MonitorService] = {}
    checker = HttpAppointmentChecker(
        lambda: holder["service"].settings,
        timeout_seconds=settings.request_timeout,
    )
    service = MonitorService(
        store,
        checker,
        notifier,
        defaults=settings.agent_defaults(),
        health_interval_seconds=settings.health_interval,
    )
    holder["service"] = service

    return AppState(
        settings=settings,
        store=store,
        checker=checker,
        notifier=notifier,
        service=service,
    )
