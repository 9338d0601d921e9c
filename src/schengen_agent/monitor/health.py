# src/schengen_agent/monitor/health.py

from __future__ import annotations

import asyncio
import contextlib
import logging

from ..core.ports import RemoteChecker
from .models import HealthStatus

logger = logging.getLogger(__name__)

HEALTH_INTERVAL_SECONDS = 30.0


class HealthMonitor:
    """
    Periodic backend liveness probe.

    Runs on its own cadence, independent of the check scheduler. The latest
    status only gates the bulk "start" command; a failing probe never stops a
    schedule that is already running.
    """

    def __init__(self, checker: RemoteChecker, *, interval_seconds: float = HEALTH_INTERVAL_SECONDS) -> None:
        self._checker = checker
        self._interval = max(0.01, float(interval_seconds))
        self._task: asyncio.Task[None] | None = None
        self.status = HealthStatus(ok=False, message="Checking...")

    @property
    def ok(self) -> bool:
        return self.status.ok

    async def probe(self) -> HealthStatus:
        try:
            status = await self._checker.health()
        except Exception:
            logger.exception("Health probe crashed.")
            status = HealthStatus(ok=False, message="Health probe failed.")

        if status.ok != self.status.ok:
            log = logger.info if status.ok else logger.warning
            log("Backend health changed: ok=%s (%s)", status.ok, status.message)
        self.status = status
        return status

    async def _run(self) -> None:
        while True:
            await self.probe()
            await asyncio.sleep(self._interval)

    def start(self) -> None:
        if self._task is None or self._task.done():
            self._task = asyncio.create_task(self._run())

    async def stop(self) -> None:
        if self._task is None:
            return
        self._task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await self._task
        self._task = None
