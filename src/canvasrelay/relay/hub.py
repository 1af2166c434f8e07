"""The relay hub: single owner of the ledger, registries, and broadcaster.

Ties together submission, fan-out, client acknowledgments, and session
bookkeeping. Both the MCP tool layer and the HTTP/WebSocket endpoint talk
to the relay only through this class.
"""

from __future__ import annotations

import logging
import time
import uuid
from typing import Any, Callable, Literal, assert_never

from pydantic import BaseModel, Field, ValidationError

from canvasrelay.domain.models import (
    Command,
    CommandConsumedMessage,
    CommandStatusMessage,
    ConnectionInfo,
    ConnectionMessage,
    ConsumeAckMessage,
    DeliveryMode,
    LedgerStats,
    SessionStats,
    parse_inbound,
)
from canvasrelay.relay.broadcaster import Broadcaster
from canvasrelay.relay.connections import ConnectionRegistry, DeliveryFailure, SendHandle
from canvasrelay.relay.ledger import CommandLedger
from canvasrelay.relay.sessions import DEFAULT_ACTIVE_WINDOW, SessionRegistry
from canvasrelay.validation import CommandValidationError, ValidationResult, validate_commands

logger = logging.getLogger(__name__)

Validator = Callable[[str], ValidationResult]


class SubmitResult(BaseModel):
    """Outcome of a submission, used to build the caller-facing summary."""

    command_id: str
    delivered_count: int = Field(ge=0)
    connected_clients: int = Field(ge=0)
    stats: LedgerStats

    @property
    def delivered(self) -> bool:
        return self.delivered_count > 0


class StatusSnapshot(BaseModel):
    stats: LedgerStats
    recent_commands: list[Command]
    connected_clients: int
    sessions: SessionStats


class CanvasHub:
    """Facade over the relay core.

    All state lives on one event loop and every method here is
    synchronous, so callers never need to lock.
    """

    def __init__(
        self,
        delivery_mode: DeliveryMode = DeliveryMode.PUSH,
        validator: Validator = validate_commands,
        ledger: CommandLedger | None = None,
        sessions: SessionRegistry | None = None,
        connections: ConnectionRegistry | None = None,
        active_window: float = DEFAULT_ACTIVE_WINDOW,
    ) -> None:
        self.sessions = sessions if sessions is not None else SessionRegistry()
        self.connections = (
            connections if connections is not None else ConnectionRegistry(self.sessions)
        )
        self.ledger = (
            ledger if ledger is not None else CommandLedger(delivery_mode=delivery_mode)
        )
        self.broadcaster = Broadcaster(self.ledger, self.connections)
        self._validator = validator
        self._active_window = active_window

    @property
    def delivery_mode(self) -> DeliveryMode:
        return self.ledger.delivery_mode

    # -------------------------------------------------------------------
    # Submission
    # -------------------------------------------------------------------

    def submit(self, payload: str, session_id: str | None = None) -> SubmitResult:
        """Validate, record, and broadcast a command.

        Raises:
            CommandValidationError: If the payload is empty or rejected by
                the validator. Nothing is enqueued in that case.
        """
        if not payload or not payload.strip():
            raise CommandValidationError(["No commands provided"])
        result = self._validator(payload)
        if not result.valid:
            raise CommandValidationError(result.errors)

        if session_id:
            self.sessions.touch(session_id)

        command_id = self.ledger.enqueue(payload, origin_session=session_id)
        command = self.ledger.get(command_id)
        delivered = self.broadcaster.broadcast(command) if command is not None else 0

        logger.info(
            "Command %s submitted (session=%s, delivered=%d)",
            command_id, session_id, delivered,
        )
        return SubmitResult(
            command_id=command_id,
            delivered_count=delivered,
            connected_clients=self.connections.count(),
            stats=self.ledger.stats(),
        )

    # -------------------------------------------------------------------
    # Sessions (tool-invocation layer hooks)
    # -------------------------------------------------------------------

    def open_session(self, session_id: str) -> None:
        self.sessions.create(session_id)

    def close_session(self, session_id: str) -> None:
        self.sessions.remove(session_id)

    # -------------------------------------------------------------------
    # Clients
    # -------------------------------------------------------------------

    def connect_client(
        self,
        handle: SendHandle,
        session_id: str | None = None,
        client_id: str | None = None,
    ) -> str:
        """Register a client, confirm the connection, and replay backlog.

        Returns:
            The client id.
        """
        client_id = client_id or str(uuid.uuid4())
        self.connections.add(client_id, handle, session_id=session_id)

        greeting = ConnectionMessage(
            data=ConnectionInfo(
                client_id=client_id,
                session_id=session_id,
                timestamp=int(time.time() * 1000),
            )
        )
        try:
            handle.send(greeting.to_wire())
        except DeliveryFailure as e:
            logger.warning("Failed to greet client %s: %s", client_id, e)
            self.connections.remove(client_id)
            return client_id

        self.broadcaster.deliver_backlog(client_id)
        return client_id

    def disconnect_client(self, client_id: str) -> None:
        self.connections.remove(client_id)

    def handle_client_message(
        self, client_id: str, raw: str | bytes | dict[str, Any]
    ) -> ConsumeAckMessage | None:
        """Apply an inbound client message to the ledger.

        Malformed or unknown messages are logged and ignored. A
        ``command-consumed`` message is answered with a ``consume-ack``,
        which is also sent back to the client.
        """
        try:
            message = parse_inbound(raw)
        except ValidationError as e:
            logger.warning(
                "Ignoring invalid message from client %s: %s",
                client_id, e.errors(include_url=False),
            )
            return None

        if isinstance(message, CommandConsumedMessage):
            ack = ConsumeAckMessage(
                command_id=message.command_id,
                success=self.consume(message.command_id),
            )
            self._reply(client_id, ack)
            return ack
        elif isinstance(message, CommandStatusMessage):
            self.update_status(message.command_id, message.status, message.error)
            return None
        else:
            assert_never(message)

    def _reply(self, client_id: str, message: ConsumeAckMessage) -> None:
        client = self.connections.get(client_id)
        if client is None:
            return
        try:
            client.handle.send(message.to_wire())
        except DeliveryFailure as e:
            logger.warning("Failed to reply to client %s: %s", client_id, e)
            self.connections.remove(client_id)

    # -------------------------------------------------------------------
    # Acknowledgments (shared by push and pull paths)
    # -------------------------------------------------------------------

    def consume(self, command_id: str) -> bool:
        """Mark a command executed. False for stale acknowledgments."""
        if self.ledger.record_consumption(command_id):
            logger.info("Command %s consumed", command_id)
            return True
        logger.warning("Stale acknowledgment for command %s", command_id)
        return False

    def update_status(
        self,
        command_id: str,
        status: Literal["executed", "error"],
        error: str | None = None,
    ) -> bool:
        """Apply a client-reported execution outcome."""
        if status == "executed":
            return self.consume(command_id)

        detail = error or "Unknown error"
        if self.ledger.record_error(command_id, detail):
            logger.warning("Command %s failed on client: %s", command_id, detail)
            return True
        logger.warning("Stale error report for command %s", command_id)
        return False

    # -------------------------------------------------------------------
    # Queries
    # -------------------------------------------------------------------

    def pending(self) -> list[Command]:
        return self.ledger.list_pending()

    def status_snapshot(self, recent_limit: int = 5) -> StatusSnapshot:
        return StatusSnapshot(
            stats=self.ledger.stats(),
            recent_commands=self.ledger.recent(recent_limit),
            connected_clients=self.connections.count(),
            sessions=self.sessions.stats(self._active_window),
        )
