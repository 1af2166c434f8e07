"""Registry of connected rendering clients and their send handles.

The registry owns each client's :class:`SendHandle` for as long as the
client is connected. Handles are the seam between the relay core and the
transport: the WebSocket endpoint provides a queue-backed implementation,
tests provide in-memory ones.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from datetime import datetime
from typing import Any, Callable

from pydantic import BaseModel, ConfigDict, Field

from canvasrelay.relay.sessions import SessionRegistry

logger = logging.getLogger(__name__)


class DeliveryFailure(Exception):
    """Raised by a send handle when a message cannot be handed off."""

    def __init__(self, message: str, client_id: str = "") -> None:
        super().__init__(message)
        self.client_id = client_id


class SendHandle(ABC):
    """Abstract, non-blocking outbound channel to one client."""

    @abstractmethod
    def send(self, message: dict[str, Any]) -> None:
        """Hand a JSON-compatible message to the transport.

        Must not block or await. Ordering of successive sends on the same
        handle is preserved.

        Raises:
            DeliveryFailure: If the channel is closed or cannot accept
                the message.
        """
        ...

    @abstractmethod
    def close(self) -> None:
        """Stop accepting messages. Safe to call multiple times."""
        ...


class Client(BaseModel):
    """A connected rendering client."""

    model_config = ConfigDict(arbitrary_types_allowed=True, frozen=True)

    id: str
    handle: SendHandle = Field(exclude=True)
    session_id: str | None = None
    connected_at: datetime = Field(default_factory=datetime.now)


class ConnectionRegistry:
    """Tracks currently connected clients.

    Fan-out must go through :meth:`snapshot` or :meth:`for_each`, both of
    which iterate a copy so that removals during a broadcast do not
    disturb the iteration.
    """

    def __init__(
        self,
        sessions: SessionRegistry | None = None,
        clock: Callable[[], datetime] = datetime.now,
    ) -> None:
        self._sessions = sessions
        self._clock = clock
        self._clients: dict[str, Client] = {}

    def add(
        self,
        client_id: str,
        handle: SendHandle,
        session_id: str | None = None,
    ) -> Client:
        """Register a client and associate it with its session, if any.

        Raises:
            ValueError: If a client with this id is already connected.
        """
        if client_id in self._clients:
            raise ValueError(f"Client {client_id} is already connected")

        client = Client(
            id=client_id,
            handle=handle,
            session_id=session_id,
            connected_at=self._clock(),
        )
        self._clients[client_id] = client
        logger.info("Client connected: %s", client_id)

        if session_id and self._sessions is not None:
            self._sessions.associate_client(session_id, client_id)
        return client

    def remove(self, client_id: str) -> bool:
        """Drop a client and close its handle.

        Both an explicit close and a failed send may call this for the
        same client; the second call returns False.
        """
        client = self._clients.pop(client_id, None)
        if client is None:
            return False
        client.handle.close()
        logger.info("Client disconnected: %s", client_id)
        return True

    def get(self, client_id: str) -> Client | None:
        return self._clients.get(client_id)

    def count(self) -> int:
        return len(self._clients)

    def snapshot(self) -> tuple[Client, ...]:
        return tuple(self._clients.values())

    def for_each(self, visit: Callable[[Client], None]) -> None:
        for client in self.snapshot():
            visit(client)

    def __contains__(self, client_id: object) -> bool:
        return client_id in self._clients
