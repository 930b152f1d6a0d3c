from dataclasses import dataclass
from enum import Enum
from typing import Optional

# предел INTEGER в SQLite
MAX_AMOUNT = 2 ** 63 - 1


class TransactionKind(str, Enum):
    DEPOSIT = "deposit"
    WITHDRAWAL = "withdrawal"

    def signed(self, amount: int) -> int:
        return amount if self is TransactionKind.DEPOSIT else -amount


@dataclass(frozen=True)
class Transaction:
    id: Optional[int]
    account_id: int
    kind: TransactionKind
    amount: int             # депозит: >=0, снятие: <=0
    balance_after: int      # баланс после операции
    created_at: str
