# src/schengen_agent/monitor/scheduler.py

from __future__ import annotations

"""
Check scheduler.

A one-shot-timer loop on the asyncio event loop that:
- selects the RUNNING tasks of the current working set,
- resolves each task's account (skipping unresolved ones with a warning),
- dispatches a remote check per task without waiting for the responses,
- computes the next wake-up (interval +/- jitter, 15 s floor) and re-arms.

All public methods must be called from the event loop thread. A generation
counter guards every armed timer: a callback whose generation is stale does
nothing, even if the underlying handle could not be cancelled in time.
"""

import asyncio
import dataclasses
import logging
import math
import random
import time
from collections.abc import Callable, Iterable, Sequence

from ..core.ports import RemoteChecker
from .errors import CheckError
from .models import Account, AgentSettings, GlobalStatus, Task
from .reconciler import ResultReconciler
from .status_machine import is_schedulable

logger = logging.getLogger(__name__)

MIN_DELAY_MS = 15_000


def _non_negative(raw: object) -> float:
    try:
        val = float(raw)  # type: ignore[arg-type]
    except (TypeError, ValueError):
        return 0.0
    if math.isnan(val) or math.isinf(val) or val < 0:
        return 0.0
    return val


def compute_next_delay_ms(
    poll_interval: float,
    poll_jitter: float,
    *,
    rng: random.Random | None = None,
    floor_ms: float = MIN_DELAY_MS,
) -> float:
    """
    Next wake delay in milliseconds:

        max(floor, interval * 1000 + uniform(-jitter, +jitter) * 1000)

    Malformed interval/jitter values are clamped to 0 rather than rejected.
    """
    interval = _non_negative(poll_interval)
    jitter = _non_negative(poll_jitter)
    r = rng if rng is not None else random
    offset = r.uniform(-jitter, jitter) if jitter else 0.0
    return max(float(floor_ms), interval * 1000.0 + offset * 1000.0)


class CheckScheduler:
    def __init__(
        self,
        checker: RemoteChecker,
        reconciler: ResultReconciler,
        *,
        on_task_changed: Callable[[Task], None] | None = None,
        rng: random.Random | None = None,
        clock: Callable[[], float] = time.time,
        min_delay_ms: float = MIN_DELAY_MS,
    ) -> None:
        self._checker = checker
        self._reconciler = reconciler
        self._on_task_changed = on_task_changed
        self._rng = rng or random.Random()
        self._clock = clock
        self._min_delay_ms = float(min_delay_ms)

        self._tasks: list[Task] = []
        self._accounts: dict[int, Account] = {}
        self._settings = AgentSettings()

        self._generation = 0
        self._timer: asyncio.TimerHandle | None = None
        self._inflight: set[asyncio.Task[None]] = set()

        self.next_run_at: float | None = None
        self.cycles = 0

    # ---- public API ----

    @property
    def tasks(self) -> Sequence[Task]:
        return tuple(self._tasks)

    @property
    def settings(self) -> AgentSettings:
        return self._settings

    @property
    def is_armed(self) -> bool:
        return self._timer is not None

    def start(self, tasks: Iterable[Task], accounts: Iterable[Account], settings: AgentSettings) -> None:
        """Replace the working set and, if globally running, run a cycle right away."""
        self._replace_working_set(tasks, accounts, settings)
        self._cancel()
        if settings.status is GlobalStatus.RUNNING:
            self._run_cycle()

    def update(self, tasks: Iterable[Task], accounts: Iterable[Account], settings: AgentSettings) -> None:
        """
        Replace the working set without forcing a cycle.

        A non-running status cancels the pending wake-up. A running status with no
        timer armed (the active set ran dry earlier) arms the next wake-up if there
        is something to check again.
        """
        self._replace_working_set(tasks, accounts, settings)
        if settings.status is not GlobalStatus.RUNNING:
            self._cancel()
        elif self._timer is None and any(is_schedulable(t.status) for t in self._tasks):
            self._arm(self._next_delay_ms())

    def stop(self) -> None:
        self._cancel()
        self._settings.status = GlobalStatus.STOPPED

    def replace_task(self, task: Task) -> None:
        self._tasks = [task if t.id == task.id else t for t in self._tasks]

    async def aclose(self) -> None:
        """Cancel the timer and wait for in-flight checks to be reconciled."""
        self._cancel()
        if self._inflight:
            await asyncio.gather(*list(self._inflight), return_exceptions=True)

    # ---- internals ----

    def _replace_working_set(
        self,
        tasks: Iterable[Task],
        accounts: Iterable[Account],
        settings: AgentSettings,
    ) -> None:
        self._tasks = list(tasks)
        self._accounts = {a.id: a for a in accounts if a.id is not None}
        self._settings = dataclasses.replace(settings)

    def _next_delay_ms(self) -> float:
        return compute_next_delay_ms(
            self._settings.poll_interval,
            self._settings.poll_jitter,
            rng=self._rng,
            floor_ms=self._min_delay_ms,
        )

    def _cancel(self) -> None:
        self._generation += 1
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None
        self.next_run_at = None

    def _arm(self, delay_ms: float) -> None:
        loop = asyncio.get_running_loop()
        self._generation += 1
        generation = self._generation
        delay_s = delay_ms / 1000.0
        self.next_run_at = self._clock() + delay_s
        self._timer = loop.call_later(delay_s, self._fire, generation)

    def _fire(self, generation: int) -> None:
        if generation != self._generation:
            logger.debug("Stale timer fired (generation=%s, current=%s); ignoring.", generation, self._generation)
            return
        self._timer = None
        self._run_cycle()

    def _run_cycle(self) -> None:
        active = [t for t in self._tasks if is_schedulable(t.status)]
        if not active or self._settings.status is not GlobalStatus.RUNNING:
            self.next_run_at = None
            return

        self.cycles += 1
        logger.info("Scheduling checks for %d active tasks...", len(active))

        for task in active:
            account = self._accounts.get(task.account_id) if task.account_id is not None else None
            if account is None:
                logger.warning("[%s] No account found for this task. Skipping.", task.label())
                continue
            job = asyncio.create_task(self._dispatch(task, account, self._settings))
            self._inflight.add(job)
            job.add_done_callback(self._inflight.discard)

        delay_ms = self._next_delay_ms()
        self._arm(delay_ms)
        logger.debug("Next cycle in %.1fs", delay_ms / 1000.0)

    async def _dispatch(self, task: Task, account: Account, settings: AgentSettings) -> None:
        logger.info("[%s] Sending check to backend...", task.label())
        try:
            result = await self._checker.check(task, account)
        except CheckError as e:
            self._reconciler.on_check_error(task, account, e)
            return
        except Exception as e:
            logger.exception("[%s] Remote checker crashed.", task.label())
            self._reconciler.on_check_error(task, account, e)
            return

        updated = self._reconciler.claim_slot(task, result)
        if updated is None:
            return

        # Working set first; the notification may block for a while.
        self.replace_task(updated)
        if self._on_task_changed is not None:
            try:
                self._on_task_changed(updated)
            except Exception:
                logger.exception("[%s] on_task_changed hook failed.", task.label())

        await self._reconciler.announce_slot(updated, settings)
