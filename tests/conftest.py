import sqlite3
from datetime import datetime, timedelta, timezone

import pytest
from fastapi.testclient import TestClient

from core.services.account_locks import AccountLocks
from core.services.session_manager import SessionManager
from infrastructure.db.sqlite import SQLiteLedgerRepository, connect, init_db
from infrastructure.sessions.memory import InMemorySessionStore
from infrastructure.web.controllers import atm_controller


class FakeClock:
    """Manually advanced clock for session expiry tests."""

    def __init__(self, start=None):
        self.now = start or datetime(2024, 1, 1, 12, 0, tzinfo=timezone.utc)

    def __call__(self):
        return self.now

    def advance(self, **kwargs):
        self.now += timedelta(**kwargs)


class BrokenConnection:
    """Connection stand-in whose every query fails like an unavailable database."""

    row_factory = None
    in_transaction = False

    def cursor(self):
        raise sqlite3.OperationalError("unable to open database file")


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def session_store():
    return InMemorySessionStore()


@pytest.fixture
def session_manager(session_store, clock):
    return SessionManager(session_store, clock=clock)


@pytest.fixture
def db_path(tmp_path):
    path = str(tmp_path / "atm.db")
    init_db(path)
    return path


@pytest.fixture
def conn(db_path):
    conn = connect(db_path)
    yield conn
    conn.close()


@pytest.fixture
def repo(conn):
    return SQLiteLedgerRepository(conn)


@pytest.fixture
def broken_repo():
    return SQLiteLedgerRepository(BrokenConnection())


@pytest.fixture
def locks():
    return AccountLocks()


@pytest.fixture
def overdraft():
    """Mutable overdraft policy shared with the app under test."""
    return {"allowed": False}


@pytest.fixture
def app(db_path, session_manager, locks, overdraft):
    from main import app

    def _get_db():
        c = connect(db_path)
        try:
            yield c
        finally:
            c.close()

    app.dependency_overrides[atm_controller.get_db] = _get_db
    app.dependency_overrides[atm_controller.get_session_manager] = lambda: session_manager
    app.dependency_overrides[atm_controller.get_account_locks] = lambda: locks
    app.dependency_overrides[atm_controller.get_overdraft_policy] = lambda: overdraft["allowed"]
    yield app
    app.dependency_overrides.clear()


@pytest.fixture
def client(app):
    return TestClient(app)
