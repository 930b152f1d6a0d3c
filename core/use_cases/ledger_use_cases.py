from typing import List, Optional
from core.entities.account import Account
from core.entities.transaction import MAX_AMOUNT, Transaction, TransactionKind
from core.errors import AccountNotFoundError, AuthenticationError, MalformedInputError
from core.repositories.ledger_repository import LedgerRepository
from core.services.account_locks import AccountLocks


def resolve_account(repo: LedgerRepository, pin: str) -> Account:
    if not isinstance(pin, str) or not pin:
        raise AuthenticationError("Invalid PIN")
    account = repo.find_by_pin(pin)
    if account is None:
        raise AuthenticationError("Invalid PIN")
    return account

def get_balance(repo: LedgerRepository, account_id: int) -> int:
    account = repo.get_by_id(_require_account_id(account_id))
    if account is None:
        raise AccountNotFoundError(account_id)
    return account.balance

def parse_amount(raw) -> int:
    # bool является подклассом int, его не принимаем
    if isinstance(raw, bool):
        raise MalformedInputError("Amount must be an integer")
    if isinstance(raw, str):
        try:
            raw = int(raw.strip())
        except ValueError:
            raise MalformedInputError(f"Amount is not an integer: {raw!r}") from None
    if not isinstance(raw, int):
        raise MalformedInputError("Amount must be an integer")
    if raw < 0:
        raise MalformedInputError("Amount must be non-negative")
    if raw > MAX_AMOUNT:
        raise MalformedInputError(f"Amount must not exceed {MAX_AMOUNT}")
    return raw

def apply_transaction(
    repo: LedgerRepository,
    locks: AccountLocks,
    account_id: int,
    kind: TransactionKind,
    amount,
    allow_overdraft: bool = False,
) -> Transaction:
    """Apply a deposit or withdrawal as one all-or-nothing unit.

    The amount is validated before any storage access. The per-account lock
    serializes writers inside this process; the repository's own transaction
    boundary guarantees that balance and log are committed together.
    """
    account_id = _require_account_id(account_id)
    amount = parse_amount(amount)
    kind = TransactionKind(kind)
    with locks.lock_for(account_id):
        return repo.apply_transaction(account_id, kind, amount, allow_overdraft=allow_overdraft)

def deposit(repo: LedgerRepository, locks: AccountLocks, account_id: int, amount,
            allow_overdraft: bool = False) -> Transaction:
    return apply_transaction(repo, locks, account_id, TransactionKind.DEPOSIT, amount, allow_overdraft)

def withdraw(repo: LedgerRepository, locks: AccountLocks, account_id: int, amount,
             allow_overdraft: bool = False) -> Transaction:
    return apply_transaction(repo, locks, account_id, TransactionKind.WITHDRAWAL, amount, allow_overdraft)

def list_transactions(repo: LedgerRepository, account_id: int, limit: int = 50, offset: int = 0) -> List[Transaction]:
    limit = max(1, min(100, int(limit)))
    offset = max(0, min(MAX_AMOUNT, int(offset)))
    return repo.list_transactions(_require_account_id(account_id), limit=limit, offset=offset)

def _require_account_id(account_id: Optional[int]) -> int:
    # сюда попадаем только после проверки сессии
    if account_id is None:
        raise RuntimeError("ledger called without a resolved session")
    return int(account_id)
