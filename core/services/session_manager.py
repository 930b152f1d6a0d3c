import logging
from datetime import datetime, timedelta, timezone
from typing import Callable, Optional
from uuid import uuid4

from core.entities.session import Session
from core.errors import SessionExpiredError, SessionNotFoundError
from core.repositories.session_store import SessionStore

logger = logging.getLogger(__name__)

DEFAULT_TTL = timedelta(minutes=10)
DEFAULT_RENEW_THRESHOLD = timedelta(minutes=1)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class SessionManager:
    """Issues, validates and renews login sessions.

    Validation renews a session in place when less than ``renew_threshold``
    of its lifetime remains, so callers never have to renew explicitly.
    """
    def __init__(
        self,
        store: SessionStore,
        ttl: timedelta = DEFAULT_TTL,
        renew_threshold: timedelta = DEFAULT_RENEW_THRESHOLD,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        if ttl <= timedelta(0):
            raise ValueError("ttl must be positive")
        if renew_threshold < timedelta(0) or renew_threshold > ttl:
            raise ValueError("renew_threshold must be between 0 and ttl")
        self.store = store
        self.ttl = ttl
        self.renew_threshold = renew_threshold
        self.clock = clock or utcnow

    def create_session(self, account_id: int) -> Session:
        now = self.clock()
        session = Session(
            id=str(uuid4()),
            account_id=account_id,
            created_at=now,
            expires_at=now + self.ttl,
        )
        self.store.add(session)
        logger.info("Session %s created for account %s", session.id[:8], account_id)
        return session

    def validate(self, session_id: str) -> Session:
        session = self.store.get(session_id)
        if session is None:
            logger.warning("Session %s not found", session_id[:8])
            raise SessionNotFoundError(session_id)

        now = self.clock()
        if session.is_expired(now):
            logger.warning("Session %s expired at %s", session_id[:8], session.expires_at.isoformat())
            raise SessionExpiredError(session_id)

        if session.remaining(now) < self.renew_threshold:
            renewed = self.store.extend(session_id, now + self.ttl, now)
            if renewed is None:
                # истекла между проверками
                raise SessionExpiredError(session_id)
            logger.debug("Session %s auto-renewed until %s", session_id[:8], renewed.expires_at.isoformat())
            return renewed
        return session

    def renew(self, session: Session) -> Session:
        now = self.clock()
        renewed = self.store.extend(session.id, now + self.ttl, now)
        if renewed is None:
            if self.store.get(session.id) is None:
                raise SessionNotFoundError(session.id)
            raise SessionExpiredError(session.id)
        return renewed

    def purge_expired(self) -> int:
        removed = self.store.remove_expired(self.clock())
        if removed:
            logger.info("Purged %d expired sessions", removed)
        return removed
