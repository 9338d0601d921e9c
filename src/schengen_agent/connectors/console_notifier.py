# src/schengen_agent/connectors/console_notifier.py

from __future__ import annotations

import logging
import sys
from datetime import datetime
from typing import TextIO

from ..monitor.models import Channel, Notification

logger = logging.getLogger(__name__)

_LEVEL_TAG = {
    "info": "INFO",
    "success": "OK",
    "warning": "WARN",
    "error": "ERROR",
}


def _ts_local() -> str:
    return datetime.now().astimezone().strftime("%Y-%m-%d %H:%M:%S")


class ConsoleNotifier:
    """
    Terminal notification sink.

    VISUAL -> a timestamped line on the console
    SOUND  -> terminal bell
    """

    def __init__(self, stream: TextIO | None = None) -> None:
        self._stream = stream

    @property
    def stream(self) -> TextIO:
        return self._stream if self._stream is not None else sys.stdout

    async def notify(self, notification: Notification) -> None:
        out = self.stream
        if Channel.VISUAL in notification.channels:
            tag = _LEVEL_TAG.get(notification.level, notification.level.upper())
            out.write(f"[{_ts_local()}] [{tag}] {notification.title} {notification.body}\n")
        if Channel.SOUND in notification.channels:
            out.write("\a")
        out.flush()


class FanoutNotifier:
    """Deliver each notification to every sink; one failing sink does not block the rest."""

    def __init__(self, *sinks) -> None:
        self._sinks = [s for s in sinks if s is not None]

    def add(self, sink) -> None:
        self._sinks.append(sink)

    async def notify(self, notification: Notification) -> None:
        for sink in self._sinks:
            try:
                await sink.notify(notification)
            except Exception:
                logger.exception("Notifier %s failed.", type(sink).__name__)
