# src/schengen_agent/cli/runner.py

from __future__ import annotations

import asyncio
import contextlib
import logging
import threading
from collections.abc import Coroutine
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, TypeVar

if TYPE_CHECKING:
    from ..core.state import AppState

logger = logging.getLogger(__name__)

T = TypeVar("T")


async def _attach_matrix(state: AppState) -> Any:
    from ..connectors.matrix_client import create_matrix_client
    from ..connectors.matrix_notifier import MatrixNotifier

    settings = state.settings
    room_id = (getattr(settings, "matrix_room", "") or "").strip()
    if not room_id:
        logger.error("Matrix push enabled but SCHENGEN_MATRIX_ROOM is not set.")
        return None

    client = await create_matrix_client(settings)
    if client is None:
        return None

    notifier = MatrixNotifier(client, room_id)
    state.notifier.add(notifier)
    logger.info("Matrix push notifications enabled (room=%s).", room_id)
    return notifier


async def _run_agent(state: AppState, stop_event: asyncio.Event, started: threading.Event) -> None:
    """
    Agent loop (async):

    load -> health probe -> wait for stop -> drain in-flight checks

    The check scheduler is armed only by explicit commands (/start).
    """
    matrix = None
    if getattr(state.settings, "matrix_enabled", False):
        try:
            matrix = await _attach_matrix(state)
        except Exception:
            logger.exception("Failed to start Matrix push notifications.")

    try:
        await state.service.load()
        state.service.start_background()
        started.set()
        await stop_event.wait()
    except asyncio.CancelledError:
        logger.info("Agent loop cancelled.")
    finally:
        with contextlib.suppress(Exception):
            await state.service.shutdown()
        with contextlib.suppress(Exception):
            await state.checker.aclose()
        if matrix is not None:
            with contextlib.suppress(Exception):
                await matrix.aclose()
        logger.info("Agent loop stopped.")


@dataclass
class AgentBackgroundRunner:
    thread: threading.Thread
    loop: asyncio.AbstractEventLoop
    stop_event: asyncio.Event

    def call(self, coro: Coroutine[Any, Any, T], timeout: float | None = 60.0) -> T:
        fut = asyncio.run_coroutine_threadsafe(coro, self.loop)
        return fut.result(timeout=timeout)

    def stop(self) -> None:
        try:
            self.loop.call_soon_threadsafe(self.stop_event.set)
        except RuntimeError:
            logger.debug("Failed to signal agent stop (loop closed).", exc_info=True)

    def join(self, timeout: float | None = None) -> None:
        self.thread.join(timeout=timeout)


def start_agent_in_background(state: AppState) -> AgentBackgroundRunner | None:
    """
    Start the agent event loop in a background thread.

    Why a thread:
    - console REPL is blocking (input()).
    - scheduler, health probe and HTTP checks are async and want their own event loop.
    """
    ready = threading.Event()
    started = threading.Event()
    holder: dict[str, object] = {}

    def runner() -> None:
        loop = asyncio.new_event_loop()
        asyncio.set_event_loop(loop)
        stop_event = asyncio.Event()

        holder["loop"] = loop
        holder["stop_event"] = stop_event
        ready.set()

        try:
            loop.run_until_complete(_run_agent(state, stop_event, started))
        finally:
            with contextlib.suppress(Exception):
                loop.run_until_complete(loop.shutdown_asyncgens())
            loop.close()

    t = threading.Thread(target=runner, name="agent-loop", daemon=True)
    t.start()

    ready.wait(timeout=5.0)
    loop = holder.get("loop")
    stop_event = holder.get("stop_event")

    if not isinstance(loop, asyncio.AbstractEventLoop) or not isinstance(stop_event, asyncio.Event):
        logger.error("Agent thread did not initialize properly.")
        return None

    if not started.wait(timeout=60.0):
        logger.warning("Agent loop is still starting up; commands may wait.")

    runner_obj = AgentBackgroundRunner(thread=t, loop=loop, stop_event=stop_event)
    state.runner = runner_obj
    logger.info("Agent background thread started.")
    return runner_obj
