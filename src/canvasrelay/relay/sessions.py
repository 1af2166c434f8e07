"""Registry of logical sessions opened by the tool-invocation layer."""

from __future__ import annotations

import logging
from datetime import datetime, timedelta
from typing import Callable

from canvasrelay.domain.models import Session, SessionStats

logger = logging.getLogger(__name__)

# Sessions touched within this window count as active in stats()
DEFAULT_ACTIVE_WINDOW = 5 * 60.0


class SessionRegistry:
    """Tracks sessions, their associated clients, and their last activity.

    Sessions are created and removed by the transport layer; the
    inactivity sweep removes any that were never explicitly closed.
    Removal is idempotent so a sweep racing an explicit close is harmless.
    """

    def __init__(self, clock: Callable[[], datetime] = datetime.now) -> None:
        self._clock = clock
        self._sessions: dict[str, Session] = {}

    def create(self, session_id: str) -> Session:
        """Register a session, or refresh it if the id is already known."""
        existing = self._sessions.get(session_id)
        if existing is not None:
            existing.last_activity = self._clock()
            return existing.model_copy(deep=True)

        now = self._clock()
        session = Session(id=session_id, created_at=now, last_activity=now)
        self._sessions[session_id] = session
        logger.info("Session created: %s", session_id)
        return session.model_copy(deep=True)

    def touch(self, session_id: str) -> bool:
        session = self._sessions.get(session_id)
        if session is None:
            return False
        session.last_activity = self._clock()
        return True

    def associate_client(self, session_id: str, client_id: str) -> bool:
        """Attach a client to a session and bump its activity.

        Returns False if the session does not exist.
        """
        session = self._sessions.get(session_id)
        if session is None:
            logger.debug("Client %s named unknown session %s", client_id, session_id)
            return False
        if client_id not in session.client_ids:
            session.client_ids.append(client_id)
        session.last_activity = self._clock()
        return True

    def remove(self, session_id: str) -> bool:
        if self._sessions.pop(session_id, None) is None:
            return False
        logger.info("Session terminated: %s", session_id)
        return True

    def sweep(self, timeout: float) -> int:
        """Remove every session idle for longer than ``timeout`` seconds.

        Returns:
            Number of sessions removed.
        """
        cutoff = self._clock() - timedelta(seconds=timeout)
        expired = [
            sid for sid, session in self._sessions.items()
            if session.last_activity < cutoff
        ]
        for sid in expired:
            if self._sessions.pop(sid, None) is not None:
                logger.info("Cleaned up inactive session: %s", sid)
        return len(expired)

    def get(self, session_id: str) -> Session | None:
        session = self._sessions.get(session_id)
        return session.model_copy(deep=True) if session is not None else None

    def count(self) -> int:
        return len(self._sessions)

    def stats(self, active_window: float = DEFAULT_ACTIVE_WINDOW) -> SessionStats:
        cutoff = self._clock() - timedelta(seconds=active_window)
        active = sum(1 for s in self._sessions.values() if s.last_activity >= cutoff)
        return SessionStats(total=len(self._sessions), active=active)

    def __contains__(self, session_id: object) -> bool:
        return session_id in self._sessions
