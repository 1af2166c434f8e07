"""Core domain models for the canvasrelay system.

These models represent the data flowing through the relay: submitted
drawing commands and their lifecycle state, logical sessions, ledger
statistics, and the JSON messages exchanged with rendering clients.
"""

from __future__ import annotations

import enum
from datetime import datetime
from typing import Annotated, Any, Literal, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter


# ---------------------------------------------------------------------------
# Enumerations
# ---------------------------------------------------------------------------


class CommandState(str, enum.Enum):
    """Lifecycle state of a submitted command."""

    PENDING = "pending"  # Accepted, not yet delivered anywhere
    SENT = "sent"  # Pushed to at least one client
    EXECUTED = "executed"  # A client acknowledged consumption
    ERROR = "error"  # A client reported an execution failure

    @property
    def is_terminal(self) -> bool:
        return self in TERMINAL_STATES


TERMINAL_STATES = frozenset({CommandState.EXECUTED, CommandState.ERROR})


class DeliveryMode(str, enum.Enum):
    """How a successful push affects the command state."""

    PUSH = "push"  # First delivery advances pending -> sent
    PULL = "pull"  # Stays pending until a client acknowledges it


# ---------------------------------------------------------------------------
# Ledger / Session Models
# ---------------------------------------------------------------------------


class Command(BaseModel):
    """A submitted drawing instruction tracked through its lifecycle."""

    id: str = Field(description="Globally unique, immutable command id")
    payload: str = Field(description="Instruction text as submitted")
    created_at: datetime = Field(default_factory=datetime.now)
    state: CommandState = Field(default=CommandState.PENDING)
    error_detail: str | None = Field(
        default=None, description="Last error reported by a client"
    )
    origin_session: str | None = Field(
        default=None, description="Session that submitted the command, if any"
    )
    delivered_to: list[str] = Field(
        default_factory=list, description="Client ids the command was pushed to"
    )

    @property
    def timestamp_ms(self) -> int:
        """Creation time as epoch milliseconds, the wire representation."""
        return int(self.created_at.timestamp() * 1000)


class Session(BaseModel):
    """A logical caller conversation with its associated clients."""

    id: str = Field(description="Session id issued by the tool-invocation layer")
    created_at: datetime = Field(default_factory=datetime.now)
    last_activity: datetime = Field(default_factory=datetime.now)
    client_ids: list[str] = Field(default_factory=list)


class LedgerStats(BaseModel):
    """Command counts per lifecycle state."""

    total: int = 0
    pending: int = 0
    sent: int = 0
    executed: int = 0
    error: int = 0


class SessionStats(BaseModel):
    total: int = 0
    active: int = 0


# ---------------------------------------------------------------------------
# Wire Messages (discriminated unions on ``type``)
# ---------------------------------------------------------------------------


class WireModel(BaseModel):
    """Base for messages exchanged with rendering clients.

    Field names are snake_case in Python and camelCase on the wire.
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    def to_wire(self) -> dict[str, Any]:
        """Serialize to the JSON-compatible dict sent over the socket."""
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


class CommandPayload(WireModel):
    id: str
    commands: str
    timestamp: int = Field(description="Command creation time, epoch milliseconds")


class CanvasCommandMessage(WireModel):
    """Server -> client: a command to render."""

    type: Literal["canvas-command"] = "canvas-command"
    data: CommandPayload

    @classmethod
    def from_command(cls, command: Command) -> CanvasCommandMessage:
        return cls(
            data=CommandPayload(
                id=command.id,
                commands=command.payload,
                timestamp=command.timestamp_ms,
            )
        )


class ConnectionInfo(WireModel):
    client_id: str = Field(alias="clientId")
    session_id: str | None = Field(default=None, alias="sessionId")
    timestamp: int


class ConnectionMessage(WireModel):
    """Server -> client: confirms the push channel is registered."""

    type: Literal["connection"] = "connection"
    data: ConnectionInfo


class ConsumeAckMessage(WireModel):
    """Server -> client: result of a consumption acknowledgment."""

    type: Literal["consume-ack"] = "consume-ack"
    command_id: str = Field(alias="commandId")
    success: bool


class CommandConsumedMessage(WireModel):
    """Client -> server: the command was consumed by the renderer."""

    type: Literal["command-consumed"] = "command-consumed"
    command_id: str = Field(alias="commandId")


class CommandStatusMessage(WireModel):
    """Client -> server: explicit execution outcome for a command."""

    type: Literal["command-status"] = "command-status"
    command_id: str = Field(alias="commandId")
    status: Literal["executed", "error"]
    error: str | None = None


InboundMessage = Annotated[
    Union[CommandConsumedMessage, CommandStatusMessage],
    Field(discriminator="type"),
]

OutboundMessage = Annotated[
    Union[CanvasCommandMessage, ConnectionMessage, ConsumeAckMessage],
    Field(discriminator="type"),
]

_inbound_adapter: TypeAdapter[InboundMessage] = TypeAdapter(InboundMessage)


def parse_inbound(raw: str | bytes | dict[str, Any]) -> InboundMessage:
    """Parse a client message into its typed variant.

    Raises:
        pydantic.ValidationError: If the message is malformed or its
            ``type`` is not a known inbound message.
    """
    if isinstance(raw, dict):
        return _inbound_adapter.validate_python(raw)
    return _inbound_adapter.validate_json(raw)
