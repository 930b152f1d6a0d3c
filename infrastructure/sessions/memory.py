from datetime import datetime, timedelta
from threading import Lock
from typing import Dict, Optional

from config.settings import settings
from core.entities.session import Session
from core.repositories.session_store import SessionStore
from core.services.session_manager import SessionManager


class InMemorySessionStore(SessionStore):
    """Process-local session map guarded by one lock.

    A single coarse lock keeps every check-and-set trivially atomic; all
    critical sections are dict operations, so contention stays short at the
    cost of serializing session lookups.
    """
    def __init__(self):
        self._sessions: Dict[str, Session] = {}
        self._lock = Lock()

    def add(self, session: Session) -> None:
        with self._lock:
            if session.id in self._sessions:
                raise KeyError(f"duplicate session id {session.id}")
            self._sessions[session.id] = session

    def get(self, session_id: str) -> Optional[Session]:
        with self._lock:
            return self._sessions.get(session_id)

    def extend(self, session_id: str, expires_at: datetime, now: datetime) -> Optional[Session]:
        with self._lock:
            current = self._sessions.get(session_id)
            if current is None or current.is_expired(now):
                return None
            # продлеваем только вперёд
            if expires_at <= current.expires_at:
                return current
            renewed = current.extended_to(expires_at)
            self._sessions[session_id] = renewed
            return renewed

    def remove_expired(self, now: datetime) -> int:
        with self._lock:
            expired = [sid for sid, s in self._sessions.items() if s.is_expired(now)]
            for sid in expired:
                del self._sessions[sid]
            return len(expired)

    def __len__(self) -> int:
        with self._lock:
            return len(self._sessions)


def build_session_manager() -> SessionManager:
    return SessionManager(
        InMemorySessionStore(),
        ttl=timedelta(minutes=settings.SESSION_TTL_MINUTES),
        renew_threshold=timedelta(seconds=settings.SESSION_RENEW_THRESHOLD_SECONDS),
    )
