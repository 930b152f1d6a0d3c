from abc import ABC, abstractmethod
from typing import Optional, List
from core.entities.account import Account
from core.entities.transaction import Transaction, TransactionKind


class LedgerRepository(ABC):
    @abstractmethod
    def create_account(self, pin: str, balance: int = 0) -> Account:...

    @abstractmethod
    def find_by_pin(self, pin: str) -> Optional[Account]:...

    @abstractmethod
    def get_by_id(self, account_id: int) -> Optional[Account]:...

    @abstractmethod
    def apply_transaction(self, account_id: int, kind: TransactionKind, amount: int,
                          allow_overdraft: bool = False) -> Transaction:
        """Update the balance and append the log entry as one atomic unit.

        Either both writes commit or neither does.
        """

    @abstractmethod
    def list_transactions(self, account_id: int, limit: int = 100, offset: int = 0) -> List[Transaction]:...
