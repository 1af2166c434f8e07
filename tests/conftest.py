"""Shared test fixtures for the canvasrelay test suite.

Provides a controllable clock, in-memory send handles standing in for
WebSocket channels, and pre-wired relay components.
"""

from __future__ import annotations

import pytest

from canvasrelay.relay.connections import ConnectionRegistry
from canvasrelay.relay.hub import CanvasHub
from canvasrelay.relay.ledger import CommandLedger
from canvasrelay.relay.sessions import SessionRegistry

from helpers import FakeClock, RecordingHandle


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def ledger(clock: FakeClock) -> CommandLedger:
    return CommandLedger(clock=clock)


@pytest.fixture
def sessions(clock: FakeClock) -> SessionRegistry:
    return SessionRegistry(clock=clock)


@pytest.fixture
def connections(sessions: SessionRegistry, clock: FakeClock) -> ConnectionRegistry:
    return ConnectionRegistry(sessions, clock=clock)


@pytest.fixture
def hub(
    ledger: CommandLedger,
    sessions: SessionRegistry,
    connections: ConnectionRegistry,
) -> CanvasHub:
    """A hub wired to the fake-clock stores."""
    return CanvasHub(ledger=ledger, sessions=sessions, connections=connections)


@pytest.fixture
def handle() -> RecordingHandle:
    return RecordingHandle()
