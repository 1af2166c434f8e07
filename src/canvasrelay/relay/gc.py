"""Periodic garbage collection of terminal commands and idle sessions.

Command purge and session sweep run as two independent tasks, each with
its own interval, so either can be retimed or disabled without touching
the other.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Callable

from canvasrelay.relay.connections import ConnectionRegistry
from canvasrelay.relay.ledger import DEFAULT_MAX_AGE, CommandLedger
from canvasrelay.relay.sessions import DEFAULT_ACTIVE_WINDOW, SessionRegistry

logger = logging.getLogger(__name__)

DEFAULT_INTERVAL = 30.0
DEFAULT_SESSION_TIMEOUT = 30 * 60.0


class PeriodicTask:
    """Runs a synchronous callable every ``interval`` seconds.

    A tick that raises is logged and the schedule continues. An interval
    of zero or less leaves the task disabled: start() is then a no-op.
    """

    def __init__(self, name: str, interval: float, action: Callable[[], object]) -> None:
        self.name = name
        self._interval = interval
        self._action = action
        self._task: asyncio.Task[None] | None = None

    @property
    def interval(self) -> float:
        return self._interval

    @property
    def enabled(self) -> bool:
        return self._interval > 0

    @property
    def is_running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        """Schedule the task on the running event loop."""
        if not self.enabled or self.is_running:
            return
        self._task = asyncio.create_task(self._run(), name=self.name)
        logger.debug("Started periodic task %s (every %.1fs)", self.name, self._interval)

    async def stop(self) -> None:
        """Cancel the task and wait for it to finish."""
        if self._task is None:
            return
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None
        logger.debug("Stopped periodic task %s", self.name)

    async def _run(self) -> None:
        while True:
            await asyncio.sleep(self._interval)
            try:
                self._action()
            except Exception as e:
                logger.error("Periodic task %s failed: %s", self.name, e)


class GarbageCollector:
    """Owns the command-purge and session-sweep schedules."""

    def __init__(
        self,
        ledger: CommandLedger,
        sessions: SessionRegistry,
        connections: ConnectionRegistry | None = None,
        purge_interval: float = DEFAULT_INTERVAL,
        command_max_age: float = DEFAULT_MAX_AGE,
        sweep_interval: float = DEFAULT_INTERVAL,
        session_timeout: float = DEFAULT_SESSION_TIMEOUT,
        active_window: float = DEFAULT_ACTIVE_WINDOW,
    ) -> None:
        self._ledger = ledger
        self._sessions = sessions
        self._connections = connections
        self._command_max_age = command_max_age
        self._session_timeout = session_timeout
        self._active_window = active_window
        self.purge_task = PeriodicTask("command-purge", purge_interval, self.purge_commands)
        self.sweep_task = PeriodicTask("session-sweep", sweep_interval, self.sweep_sessions)

    def purge_commands(self) -> int:
        cleaned = self._ledger.purge(self._command_max_age)
        if cleaned > 0:
            logger.info("Cleaned up %d old command(s)", cleaned)
        return cleaned

    def sweep_sessions(self) -> int:
        cleaned = self._sessions.sweep(self._session_timeout)
        if cleaned > 0:
            logger.info("Cleaned up %d inactive session(s)", cleaned)
        self._log_stats()
        return cleaned

    def start(self) -> None:
        self.purge_task.start()
        self.sweep_task.start()

    async def stop(self) -> None:
        await self.purge_task.stop()
        await self.sweep_task.stop()

    def _log_stats(self) -> None:
        clients = self._connections.count() if self._connections is not None else 0
        sessions = self._sessions.stats(self._active_window)
        if clients > 0 or sessions.total > 0:
            logger.debug(
                "Connected clients: %d, active sessions: %d/%d",
                clients, sessions.active, sessions.total,
            )
