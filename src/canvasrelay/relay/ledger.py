"""The command ledger: authoritative record of every submitted command.

The record_* operations return a boolean instead of raising.
Redundant acknowledgments, acknowledgments for purged commands, and
deliveries racing a purge are normal traffic, so a ``False`` return is
the whole error report. enqueue is different: it rejects an empty
payload with ValueError, which never occurs in normal traffic.

State machine::

    pending --delivery--> sent --consumed--> executed
       |                   |
       +------consumed-----+--> executed
       +------error--------+--> error

``executed`` and ``error`` are terminal and the only purgeable states.
"""

from __future__ import annotations

import logging
import uuid
from collections.abc import Iterable
from datetime import datetime, timedelta
from typing import Callable

from canvasrelay.domain.models import (
    TERMINAL_STATES,
    Command,
    CommandState,
    DeliveryMode,
    LedgerStats,
)

logger = logging.getLogger(__name__)

# Default retention for terminal commands (seconds)
DEFAULT_MAX_AGE = 60 * 60.0


def _new_command_id() -> str:
    return str(uuid.uuid4())


class CommandLedger:
    """In-memory store of commands keyed by id, in submission order.

    Reads return copies; all mutation goes through the record_* methods.
    """

    def __init__(
        self,
        delivery_mode: DeliveryMode = DeliveryMode.PUSH,
        clock: Callable[[], datetime] = datetime.now,
        id_factory: Callable[[], str] = _new_command_id,
    ) -> None:
        self._delivery_mode = delivery_mode
        self._clock = clock
        self._id_factory = id_factory
        self._commands: dict[str, Command] = {}

    @property
    def delivery_mode(self) -> DeliveryMode:
        return self._delivery_mode

    def enqueue(self, payload: str, origin_session: str | None = None) -> str:
        """Insert a new pending command and return its id.

        Raises:
            ValueError: If the payload is empty or whitespace-only. This is
                a deliberate rejection, not a soft failure: the hub refuses
                empty submissions before they get here, so reaching it means
                a caller skipped validation.
        """
        if not payload or not payload.strip():
            raise ValueError("Command payload must not be empty")

        command_id = self._id_factory()
        while command_id in self._commands:
            command_id = self._id_factory()

        self._commands[command_id] = Command(
            id=command_id,
            payload=payload,
            created_at=self._clock(),
            origin_session=origin_session,
        )
        logger.debug("Enqueued command %s (session=%s)", command_id, origin_session)
        return command_id

    def record_delivery(self, command_id: str, client_id: str) -> bool:
        """Note that ``client_id`` received the command.

        In push mode the first delivery of a pending command advances it
        to sent. Returns False if the command has been purged.
        """
        command = self._commands.get(command_id)
        if command is None:
            return False
        if client_id not in command.delivered_to:
            command.delivered_to.append(client_id)
        if (
            self._delivery_mode is DeliveryMode.PUSH
            and command.state is CommandState.PENDING
        ):
            command.state = CommandState.SENT
        return True

    def record_consumption(self, command_id: str) -> bool:
        """Mark a pending or sent command as executed.

        Returns False, without changing anything, if the command is
        missing or already terminal. A repeated call therefore returns
        False.
        """
        command = self._commands.get(command_id)
        if command is None or command.state.is_terminal:
            return False
        command.state = CommandState.EXECUTED
        return True

    def record_error(self, command_id: str, detail: str) -> bool:
        """Force a non-terminal command into the error state."""
        command = self._commands.get(command_id)
        if command is None or command.state.is_terminal:
            return False
        command.state = CommandState.ERROR
        command.error_detail = detail
        return True

    def get(self, command_id: str) -> Command | None:
        command = self._commands.get(command_id)
        return command.model_copy(deep=True) if command is not None else None

    def list_pending(self) -> list[Command]:
        """All pending commands, oldest first."""
        return [
            c.model_copy(deep=True)
            for c in self._commands.values()
            if c.state is CommandState.PENDING
        ]

    def recent(self, limit: int = 10) -> list[Command]:
        """The ``limit`` most recently submitted commands, newest first."""
        newest = sorted(
            self._commands.values(), key=lambda c: c.created_at, reverse=True
        )
        return [c.model_copy(deep=True) for c in newest[:limit]]

    def stats(self) -> LedgerStats:
        counts = {state: 0 for state in CommandState}
        for command in self._commands.values():
            counts[command.state] += 1
        return LedgerStats(
            total=len(self._commands),
            pending=counts[CommandState.PENDING],
            sent=counts[CommandState.SENT],
            executed=counts[CommandState.EXECUTED],
            error=counts[CommandState.ERROR],
        )

    def purge(
        self,
        max_age: float = DEFAULT_MAX_AGE,
        eligible_states: Iterable[CommandState] = TERMINAL_STATES,
    ) -> int:
        """Delete terminal commands older than ``max_age`` seconds.

        ``eligible_states`` is narrowed to the terminal states, so pending
        and sent commands are kept regardless of age.

        Returns:
            Number of commands deleted.
        """
        states = frozenset(eligible_states) & TERMINAL_STATES
        cutoff = self._clock() - timedelta(seconds=max_age)
        doomed = [
            cid for cid, c in self._commands.items()
            if c.state in states and c.created_at < cutoff
        ]
        for cid in doomed:
            del self._commands[cid]
        return len(doomed)

    def __len__(self) -> int:
        return len(self._commands)

    def __contains__(self, command_id: object) -> bool:
        return command_id in self._commands
