# src/schengen_agent/connectors/matrix_notifier.py

from __future__ import annotations

import logging

from nio import AsyncClient, RoomSendResponse

from ..monitor.models import Channel, Notification

logger = logging.getLogger(__name__)


def render_notification(notification: Notification) -> str:
    return f"{notification.title}\n{notification.body}".strip()


class MatrixNotifier:
    """
    Desktop/push channel: posts DESKTOP notifications into one Matrix room,
    so they reach every device of whoever follows that room.
    """

    def __init__(self, client: AsyncClient, room_id: str) -> None:
        self._client = client
        self._room_id = room_id

    async def notify(self, notification: Notification) -> None:
        if Channel.DESKTOP not in notification.channels:
            return

        resp = await self._client.room_send(
            room_id=self._room_id,
            message_type="m.room.message",
            content={"msgtype": "m.text", "body": render_notification(notification)},
            ignore_unverified_devices=True,
        )
        if isinstance(resp, RoomSendResponse):
            logger.info("Pushed %r to room %s.", notification.title, self._room_id)
        else:
            logger.warning("Matrix push to %s failed: %r", self._room_id, resp)

    async def aclose(self) -> None:
        await self._client.close()
