import logging
import sqlite3
from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Optional, List
from pathlib import Path

from core.entities.account import Account
from core.entities.transaction import Transaction, TransactionKind
from core.errors import AccountNotFoundError, InsufficientFundsError, StorageError
from core.repositories.ledger_repository import LedgerRepository

logger = logging.getLogger(__name__)


def connect(db_path: str, timeout: float = 5.0) -> sqlite3.Connection:
    conn = sqlite3.connect(db_path, timeout=timeout, check_same_thread=False)
    conn.row_factory = sqlite3.Row
    conn.execute("PRAGMA foreign_keys = ON")
    return conn


def init_db(db_path: str) -> None:
    if db_path != ":memory:" and not db_path.startswith("file:"):
        Path(db_path).parent.mkdir(parents=True, exist_ok=True)

    conn = sqlite3.connect(db_path, check_same_thread=False)
    try:
        cur = conn.cursor()

        cur.execute("""
        CREATE TABLE IF NOT EXISTS accounts (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            pin TEXT UNIQUE NOT NULL,
            balance INTEGER NOT NULL DEFAULT 0,
            created_at TEXT NOT NULL
        );
        """)

        cur.execute("""
        CREATE TABLE IF NOT EXISTS transactions (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            account_id INTEGER NOT NULL,
            kind TEXT NOT NULL CHECK (kind IN ('deposit', 'withdrawal')),
            amount INTEGER NOT NULL,
            balance_after INTEGER NOT NULL,
            created_at TEXT NOT NULL,
            FOREIGN KEY(account_id) REFERENCES accounts(id)
        );
        """)

        cur.execute("CREATE INDEX IF NOT EXISTS ix_transactions_account ON transactions(account_id);")
        conn.commit()
    finally:
        conn.close()


class SQLiteLedgerRepository(LedgerRepository):
    def __init__(self, conn: sqlite3.Connection):
        self.conn = conn
        self.conn.row_factory = sqlite3.Row

    def _row_to_account(self, row: sqlite3.Row) -> Account:
        return Account(
            id=row["id"],
            balance=int(row["balance"]),
            created_at=row["created_at"],
        )

    def _row_to_tx(self, row: sqlite3.Row) -> Transaction:
        return Transaction(
            id=row["id"],
            account_id=row["account_id"],
            kind=TransactionKind(row["kind"]),
            amount=row["amount"],
            balance_after=row["balance_after"],
            created_at=row["created_at"],
        )

    def create_account(self, pin: str, balance: int = 0) -> Account:
        created_at = datetime.now(timezone.utc).isoformat()
        cur = self.conn.cursor()
        cur.execute(
            "INSERT INTO accounts (pin, balance, created_at) VALUES (?, ?, ?)",
            (pin, int(balance), created_at),
        )
        self.conn.commit()
        return Account(id=cur.lastrowid, balance=int(balance), created_at=created_at)

    @contextmanager
    def _reading(self, what: str):
        try:
            yield
        except (sqlite3.Error, OverflowError) as exc:
            logger.error("Failed to read %s: %s", what, exc)
            raise StorageError(f"failed to read {what}") from exc

    def find_by_pin(self, pin: str) -> Optional[Account]:
        with self._reading("account by pin"):
            cur = self.conn.cursor()
            cur.execute("SELECT * FROM accounts WHERE pin = ?", (pin,))
            row = cur.fetchone()
        return self._row_to_account(row) if row else None

    def get_by_id(self, account_id: int) -> Optional[Account]:
        with self._reading(f"account {account_id}"):
            cur = self.conn.cursor()
            cur.execute("SELECT * FROM accounts WHERE id = ?", (int(account_id),))
            row = cur.fetchone()
        return self._row_to_account(row) if row else None

    def apply_transaction(self, account_id: int, kind: TransactionKind, amount: int,
                          allow_overdraft: bool = False) -> Transaction:
        delta = kind.signed(int(amount))
        cur = self.conn.cursor()
        try:
            # IMMEDIATE берёт блокировку записи до чтения баланса
            cur.execute("BEGIN IMMEDIATE")
            balance = self._current_balance(cur, account_id)
            new_balance = balance + delta
            if new_balance < 0 and not allow_overdraft:
                raise InsufficientFundsError(account_id, balance, delta)
            self._update_balance(cur, account_id, new_balance)
            tx = self._append_entry(cur, account_id, kind, delta, new_balance)
            self.conn.commit()
        except (sqlite3.Error, OverflowError) as exc:
            # OverflowError: значение не помещается в INTEGER SQLite
            self._rollback()
            logger.error("Transaction failed for account %s, rolled back: %s", account_id, exc)
            raise StorageError(f"{kind.value} failed for account {account_id}") from exc
        except Exception:
            self._rollback()
            raise
        logger.info("Committed %s of %d for account %s, balance %d",
                    kind.value, abs(delta), account_id, new_balance)
        return tx

    def _rollback(self) -> None:
        if self.conn.in_transaction:
            self.conn.rollback()

    def _current_balance(self, cur: sqlite3.Cursor, account_id: int) -> int:
        cur.execute("SELECT balance FROM accounts WHERE id = ?", (int(account_id),))
        row = cur.fetchone()
        if row is None:
            raise AccountNotFoundError(account_id)
        return int(row["balance"])

    def _update_balance(self, cur: sqlite3.Cursor, account_id: int, new_balance: int) -> None:
        cur.execute(
            "UPDATE accounts SET balance = ? WHERE id = ?",
            (int(new_balance), int(account_id)),
        )
        if cur.rowcount != 1:
            raise AccountNotFoundError(account_id)

    def _append_entry(self, cur: sqlite3.Cursor, account_id: int, kind: TransactionKind,
                      delta: int, balance_after: int) -> Transaction:
        created_at = datetime.now(timezone.utc).isoformat()
        cur.execute(
            "INSERT INTO transactions (account_id, kind, amount, balance_after, created_at) VALUES (?, ?, ?, ?, ?)",
            (int(account_id), kind.value, int(delta), int(balance_after), created_at),
        )
        return Transaction(
            id=cur.lastrowid,
            account_id=account_id,
            kind=kind,
            amount=delta,
            balance_after=balance_after,
            created_at=created_at,
        )

    def list_transactions(self, account_id: int, limit: int = 100, offset: int = 0) -> List[Transaction]:
        with self._reading(f"transactions of account {account_id}"):
            cur = self.conn.cursor()
            cur.execute(
                "SELECT * FROM transactions WHERE account_id = ? ORDER BY id DESC LIMIT ? OFFSET ?",
                (int(account_id), int(limit), int(offset)),
            )
            rows = cur.fetchall()
        return [self._row_to_tx(r) for r in rows]
