from dataclasses import dataclass, replace
from datetime import datetime, timedelta


@dataclass(frozen=True)
class Session:
    """Time-bounded proof of a successful login.

    Sessions are immutable values: renewal produces a copy with a later
    ``expires_at`` that replaces the stored one.
    """
    id: str
    account_id: int
    created_at: datetime
    expires_at: datetime

    def is_expired(self, now: datetime) -> bool:
        return now >= self.expires_at

    def remaining(self, now: datetime) -> timedelta:
        return self.expires_at - now

    def extended_to(self, expires_at: datetime) -> "Session":
        return replace(self, expires_at=expires_at)
