# tests/test_notifiers.py

from __future__ import annotations

import io

import pytest

from schengen_agent.connectors.console_notifier import ConsoleNotifier, FanoutNotifier
from schengen_agent.connectors.matrix_client import read_session
from schengen_agent.connectors.matrix_notifier import MatrixNotifier, render_notification
from schengen_agent.monitor.models import Channel, Notification

from .fakes import FakeNotifier

FOUND = Notification(
    title="APPOINTMENT FOUND!",
    body="Slot found for Jane! Details: Slot X",
    level="success",
    channels=frozenset({Channel.VISUAL, Channel.DESKTOP, Channel.SOUND}),
)


class _BrokenNotifier:
    async def notify(self, notification: Notification) -> None:
        raise RuntimeError("sink down")


class _FakeMatrixClient:
    def __init__(self) -> None:
        self.sent: list[dict] = []
        self.closed = False

    async def room_send(self, *, room_id, message_type, content, ignore_unverified_devices=False):
        self.sent.append({"room_id": room_id, "content": content})
        return None

    async def close(self) -> None:
        self.closed = True


@pytest.mark.asyncio
async def test_console_notifier_visual_and_sound() -> None:
    out = io.StringIO()
    await ConsoleNotifier(stream=out).notify(FOUND)

    text = out.getvalue()
    assert "[OK] APPOINTMENT FOUND! Slot found for Jane! Details: Slot X" in text
    assert text.endswith("\a")


@pytest.mark.asyncio
async def test_console_notifier_without_sound() -> None:
    out = io.StringIO()
    await ConsoleNotifier(stream=out).notify(Notification(title="Task saved", body="'Jane' added."))
    assert "\a" not in out.getvalue()
    assert "[INFO] Task saved" in out.getvalue()


@pytest.mark.asyncio
async def test_fanout_continues_after_failing_sink() -> None:
    good = FakeNotifier()
    fanout = FanoutNotifier(_BrokenNotifier(), None)
    fanout.add(good)

    await fanout.notify(FOUND)

    assert good.sent == [FOUND]


@pytest.mark.asyncio
async def test_matrix_notifier_pushes_desktop_channel_only() -> None:
    client = _FakeMatrixClient()
    notifier = MatrixNotifier(client, "!room:example.org")

    await notifier.notify(Notification(title="Task saved", body="x"))
    await notifier.notify(FOUND)
    await notifier.aclose()

    assert len(client.sent) == 1
    assert client.sent[0]["room_id"] == "!room:example.org"
    assert client.sent[0]["content"] == {"msgtype": "m.text", "body": render_notification(FOUND)}
    assert client.closed is True


def test_read_session_requires_all_fields(tmp_path) -> None:
    path = tmp_path / "session.json"
    assert read_session(path) is None

    path.write_text('{"access_token": "t", "user_id": "@a:b"}', "utf-8")
    assert read_session(path) is None

    path.write_text("not json", "utf-8")
    assert read_session(path) is None

    path.write_text('{"access_token": "t", "user_id": "@a:b", "device_id": "D1"}', "utf-8")
    assert read_session(path) == {"access_token": "t", "user_id": "@a:b", "device_id": "D1"}
