"""Queue-backed WebSocket send handle.

``send()`` never awaits: messages go onto a bounded per-client queue and
a writer task drains the queue onto the socket in order. A full queue or
a failed socket write closes the channel.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Callable

from fastapi import WebSocket

from canvasrelay.relay.connections import DeliveryFailure, SendHandle

logger = logging.getLogger(__name__)

DEFAULT_QUEUE_SIZE = 256


class WebSocketChannel(SendHandle):
    """Outbound channel for one WebSocket connection.

    Usage::

        channel = WebSocketChannel(websocket, client_id)
        writer = asyncio.create_task(channel.run())
        channel.send({"type": "consume-ack", ...})
        ...
        channel.close()
        await writer
    """

    def __init__(
        self,
        websocket: WebSocket,
        client_id: str = "",
        max_queue: int = DEFAULT_QUEUE_SIZE,
        on_failure: Callable[[], None] | None = None,
    ) -> None:
        self._websocket = websocket
        self._client_id = client_id
        self._queue: asyncio.Queue[dict[str, Any] | None] = asyncio.Queue(maxsize=max_queue)
        self._on_failure = on_failure
        self._closed = False

    @property
    def is_closed(self) -> bool:
        return self._closed

    @property
    def backlog(self) -> int:
        return self._queue.qsize()

    def send(self, message: dict[str, Any]) -> None:
        if self._closed:
            raise DeliveryFailure("Channel is closed", client_id=self._client_id)
        try:
            self._queue.put_nowait(message)
        except asyncio.QueueFull:
            self.close()
            raise DeliveryFailure(
                f"Outbound queue full ({self._queue.maxsize} messages)",
                client_id=self._client_id,
            ) from None

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        try:
            self._queue.put_nowait(None)
        except asyncio.QueueFull:
            # The writer checks the closed flag after every message.
            pass

    async def run(self) -> None:
        """Drain the queue onto the socket until the channel closes."""
        while True:
            message = await self._queue.get()
            if message is None or self._closed:
                break
            try:
                await self._websocket.send_json(message)
            except Exception as e:
                logger.warning("WebSocket send to %s failed: %s", self._client_id, e)
                self.close()
                if self._on_failure is not None:
                    self._on_failure()
                break
