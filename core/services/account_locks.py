from threading import Lock
from typing import Dict


class AccountLocks:
    """Per-account locks so balance updates on one account never interleave"""
    def __init__(self):
        self._locks: Dict[int, Lock] = {}
        self._guard = Lock()

    def lock_for(self, account_id: int) -> Lock:
        lock = self._locks.get(account_id)
        if lock is not None:
            return lock
        with self._guard:
            lock = self._locks.get(account_id)
            if lock is None:
                lock = Lock()
                self._locks[account_id] = lock
            return lock
