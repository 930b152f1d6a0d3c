"""
Provision an ATM account.

    python init_account.py 4623 --balance 0
"""
import argparse
import sqlite3

from config.settings import settings
from infrastructure.db.sqlite import SQLiteLedgerRepository, connect, init_db


def create_account(pin: str, balance: int) -> None:
    init_db(settings.DB_PATH)
    conn = connect(settings.DB_PATH, timeout=settings.DB_TIMEOUT_SECONDS)
    try:
        repo = SQLiteLedgerRepository(conn)
        if repo.find_by_pin(pin) is not None:
            print("Account with this PIN already exists")
            return
        try:
            account = repo.create_account(pin, balance)
        except sqlite3.IntegrityError as e:
            print(f"Failed to create account: {e}")
            return
        print(f"Account {account.id} created with balance {account.balance}")
    finally:
        conn.close()


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Create an ATM account")
    parser.add_argument("pin")
    parser.add_argument("--balance", type=int, default=0)
    args = parser.parse_args()
    create_account(args.pin, args.balance)
