"""Test doubles shared across the suite."""

from __future__ import annotations

from datetime import datetime, timedelta
from typing import Any

from canvasrelay.relay.connections import DeliveryFailure, SendHandle


class FakeClock:
    """A clock that only moves when told to."""

    def __init__(self, start: datetime = datetime(2025, 1, 1, 12, 0, 0)) -> None:
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += timedelta(seconds=seconds)


class RecordingHandle(SendHandle):
    """Collects every message it is asked to send."""

    def __init__(self) -> None:
        self.messages: list[dict[str, Any]] = []
        self.closed = False

    def send(self, message: dict[str, Any]) -> None:
        if self.closed:
            raise DeliveryFailure("closed")
        self.messages.append(message)

    def close(self) -> None:
        self.closed = True

    def of_type(self, message_type: str) -> list[dict[str, Any]]:
        return [m for m in self.messages if m["type"] == message_type]


class FailingHandle(SendHandle):
    """A handle whose every send fails."""

    def __init__(self) -> None:
        self.close_calls = 0

    def send(self, message: dict[str, Any]) -> None:
        raise DeliveryFailure("connection reset")

    def close(self) -> None:
        self.close_calls += 1
