# src/schengen_agent/core/state.py

from __future__ import annotations

from collections.abc import Coroutine
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, TypeVar

from ..monitor.service import MonitorService
from ..monitor.store import AgentStore

if TYPE_CHECKING:
    from ..cli.runner import AgentBackgroundRunner
    from ..connectors.console_notifier import FanoutNotifier
    from ..monitor.checker import HttpAppointmentChecker

T = TypeVar("T")


@dataclass
class AppState:
    # Store Settings on the state for easy access in other modules later.
    settings: Any

    store: AgentStore
    checker: HttpAppointmentChecker
    notifier: FanoutNotifier
    service: MonitorService

    runner: AgentBackgroundRunner | None = None

    def run(self, coro: Coroutine[Any, Any, T], timeout: float | None = 60.0) -> T:
        """Run a service coroutine on the agent loop and wait for its result."""
        if self.runner is None:
            coro.close()
            raise RuntimeError("agent loop is not running")
        return self.runner.call(coro, timeout=timeout)
