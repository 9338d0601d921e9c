# tests/test_logging_setup.py

from __future__ import annotations

import logging

import pytest

from schengen_agent.logging_setup import _ConsoleNoiseFilter


def _record(name: str, level: int) -> logging.LogRecord:
    return logging.LogRecord(name, level, __file__, 1, "msg", None, None)


@pytest.mark.parametrize(
    ("name", "level", "shown"),
    [
        ("schengen_agent.monitor.scheduler", logging.INFO, True),
        ("schengen_agent.monitor.scheduler", logging.DEBUG, True),
        ("schengen_agent.connectors.matrix_notifier", logging.INFO, False),
        ("schengen_agent.connectors.matrix_client", logging.WARNING, True),
        ("httpx", logging.WARNING, False),
        ("nio.rooms", logging.ERROR, True),
        ("py.warnings", logging.WARNING, False),
    ],
)
def test_console_filter(name: str, level: int, shown: bool) -> None:
    assert _ConsoleNoiseFilter().filter(_record(name, level)) is shown
