"""
In-memory registry of map search sessions with idle expiry.
"""

import logging
import time
import uuid
from dataclasses import dataclass, field
from typing import Any, Dict, Optional

from config import SESSION_TTL
from api.services.map_engine import CommandBufferMapEngine
from api.services.viewport_sync import ViewportSyncController

logger = logging.getLogger(__name__)


@dataclass
class SearchSession:
    """A controller plus the engine whose commands go back to the browser."""

    session_id: str
    controller: ViewportSyncController
    engine: CommandBufferMapEngine
    last_access: float = field(default_factory=time.time)

    def touch(self) -> None:
        self.last_access = time.time()


class SessionStore:
    """Sessions keyed by id; entries idle for longer than ``ttl`` seconds are dropped."""

    def __init__(self, ttl: int = SESSION_TTL):
        self.ttl = ttl
        self._sessions: Dict[str, SearchSession] = {}

    def create(
        self, controller: ViewportSyncController, engine: CommandBufferMapEngine
    ) -> SearchSession:
        self.evict_expired()
        session = SearchSession(
            session_id=uuid.uuid4().hex, controller=controller, engine=engine
        )
        self._sessions[session.session_id] = session
        logger.info("Created search session %s", session.session_id)
        return session

    def get(self, session_id: str) -> Optional[SearchSession]:
        session = self._sessions.get(session_id)
        if session is None:
            return None
        if time.time() - session.last_access >= self.ttl:
            logger.debug("Search session %s EXPIRED", session_id)
            self._close(session_id)
            return None
        session.touch()
        return session

    def delete(self, session_id: str) -> bool:
        if session_id not in self._sessions:
            return False
        self._close(session_id)
        logger.info("Deleted search session %s", session_id)
        return True

    def evict_expired(self) -> int:
        """Drop idle sessions; returns how many were removed."""
        now = time.time()
        expired = [
            sid
            for sid, session in self._sessions.items()
            if now - session.last_access >= self.ttl
        ]
        for sid in expired:
            self._close(sid)
        if expired:
            logger.info("Evicted %d expired search sessions", len(expired))
        return len(expired)

    def clear(self) -> None:
        for sid in list(self._sessions):
            self._close(sid)
        logger.info("Session store cleared")

    def stats(self) -> Dict[str, Any]:
        now = time.time()
        active = sum(
            1 for s in self._sessions.values() if now - s.last_access < self.ttl
        )
        return {
            "total_sessions": len(self._sessions),
            "active_sessions": active,
            "expired_sessions": len(self._sessions) - active,
            "ttl_seconds": self.ttl,
        }

    def _close(self, session_id: str) -> None:
        session = self._sessions.pop(session_id)
        session.controller.close()


_store = SessionStore()


def get_session_store() -> SessionStore:
    """Process-wide session store."""
    return _store
