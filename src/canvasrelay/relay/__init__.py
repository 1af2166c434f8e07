"""Command distribution and session subsystem.

Public API:
    CanvasHub -- Facade used by the endpoint and the MCP tools
    CommandLedger -- Authoritative command store
    ConnectionRegistry -- Connected clients and their send handles
    SessionRegistry -- Logical sessions with inactivity sweep
    Broadcaster -- Fan-out of commands to clients
    GarbageCollector -- Periodic purge and sweep
"""

from canvasrelay.relay.broadcaster import Broadcaster
from canvasrelay.relay.connections import (
    Client,
    ConnectionRegistry,
    DeliveryFailure,
    SendHandle,
)
from canvasrelay.relay.gc import GarbageCollector, PeriodicTask
from canvasrelay.relay.hub import CanvasHub, StatusSnapshot, SubmitResult
from canvasrelay.relay.ledger import CommandLedger
from canvasrelay.relay.sessions import SessionRegistry

__all__ = [
    "Broadcaster",
    "CanvasHub",
    "Client",
    "CommandLedger",
    "ConnectionRegistry",
    "DeliveryFailure",
    "GarbageCollector",
    "PeriodicTask",
    "SendHandle",
    "SessionRegistry",
    "StatusSnapshot",
    "SubmitResult",
]
