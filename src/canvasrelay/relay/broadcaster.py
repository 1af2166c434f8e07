"""Fan-out of commands to connected clients."""

from __future__ import annotations

import logging

from canvasrelay.domain.models import CanvasCommandMessage, Command
from canvasrelay.relay.connections import Client, ConnectionRegistry, DeliveryFailure
from canvasrelay.relay.ledger import CommandLedger

logger = logging.getLogger(__name__)


class Broadcaster:
    """Pushes commands to clients and records outcomes in the ledger.

    Delivery is at-least-once across clients: a command already sent to
    one client is still replayed to clients that connect while it is
    pending. A single connection never receives the same command twice.
    """

    def __init__(self, ledger: CommandLedger, connections: ConnectionRegistry) -> None:
        self._ledger = ledger
        self._connections = connections

    def broadcast(self, command: Command) -> int:
        """Send ``command`` to every connected client.

        A client whose send fails is removed and the remaining clients
        are still served.

        Returns:
            Number of clients the command was handed to.
        """
        message = CanvasCommandMessage.from_command(command).to_wire()
        delivered = 0
        for client in self._connections.snapshot():
            if client.id in command.delivered_to:
                continue
            if self._send(client, command.id, message):
                delivered += 1
        logger.debug("Command %s delivered to %d client(s)", command.id, delivered)
        return delivered

    def deliver_backlog(self, client_id: str) -> int:
        """Replay every pending command, oldest first, to one client.

        Returns:
            Number of commands handed to the client.
        """
        delivered = 0
        for command in self._ledger.list_pending():
            # Re-read the client on each pass: a failed send removes it.
            client = self._connections.get(client_id)
            if client is None:
                break
            if client_id in command.delivered_to:
                continue
            message = CanvasCommandMessage.from_command(command).to_wire()
            if self._send(client, command.id, message):
                delivered += 1
        if delivered:
            logger.info("Replayed %d pending command(s) to %s", delivered, client_id)
        return delivered

    def _send(self, client: Client, command_id: str, message: dict) -> bool:
        try:
            client.handle.send(message)
        except DeliveryFailure as e:
            logger.warning(
                "Failed to send command %s to client %s: %s", command_id, client.id, e
            )
            self._connections.remove(client.id)
            return False
        self._ledger.record_delivery(command_id, client.id)
        return True
