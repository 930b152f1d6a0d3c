from abc import ABC, abstractmethod
from datetime import datetime
from typing import Optional
from core.entities.session import Session


class SessionStore(ABC):
    @abstractmethod
    def add(self, session: Session) -> None:...

    @abstractmethod
    def get(self, session_id: str) -> Optional[Session]:...

    @abstractmethod
    def extend(self, session_id: str, expires_at: datetime, now: datetime) -> Optional[Session]:
        """Atomically move the expiry of a session that is still valid at ``now``.

        Returns the renewed session, or None if it is unknown or already
        expired. Must never bring an expired session back.
        """

    @abstractmethod
    def remove_expired(self, now: datetime) -> int:...

    @abstractmethod
    def __len__(self) -> int:...
