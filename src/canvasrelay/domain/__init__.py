"""Domain models for canvasrelay.

This package contains the command, session, and statistics models plus
the wire messages exchanged with rendering clients. All models use
Pydantic v2 for validation and serialization.
"""

from canvasrelay.domain.models import (
    TERMINAL_STATES,
    CanvasCommandMessage,
    Command,
    CommandConsumedMessage,
    CommandState,
    CommandStatusMessage,
    ConnectionMessage,
    ConsumeAckMessage,
    DeliveryMode,
    InboundMessage,
    LedgerStats,
    OutboundMessage,
    Session,
    SessionStats,
    parse_inbound,
)

__all__ = [
    "TERMINAL_STATES",
    "CanvasCommandMessage",
    "Command",
    "CommandConsumedMessage",
    "CommandState",
    "CommandStatusMessage",
    "ConnectionMessage",
    "ConsumeAckMessage",
    "DeliveryMode",
    "InboundMessage",
    "LedgerStats",
    "OutboundMessage",
    "Session",
    "SessionStats",
    "parse_inbound",
]
