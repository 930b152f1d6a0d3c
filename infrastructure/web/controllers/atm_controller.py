import logging
import sqlite3
from datetime import datetime
from typing import Optional, List
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Header, Request, Response, status
from pydantic import BaseModel, Field, StrictInt

from config.settings import settings
from core.entities.session import Session
from core.entities.transaction import MAX_AMOUNT, Transaction, TransactionKind
from core.errors import (
    AccountNotFoundError,
    AuthenticationError,
    InsufficientFundsError,
    MalformedInputError,
    SessionExpiredError,
    SessionNotFoundError,
    StorageError,
)
from core.services.account_locks import AccountLocks
from core.services.session_manager import SessionManager
from core.use_cases import ledger_use_cases
from infrastructure.db.sqlite import SQLiteLedgerRepository, connect

logger = logging.getLogger(__name__)

router = APIRouter(prefix="", tags=["atm"])


def get_db():
    conn = connect(settings.DB_PATH, timeout=settings.DB_TIMEOUT_SECONDS)
    try:
        yield conn
    finally:
        conn.close()

def get_ledger_repo(conn: sqlite3.Connection = Depends(get_db)) -> SQLiteLedgerRepository:
    return SQLiteLedgerRepository(conn)

# состояние живёт в app.state, создаётся при старте
def get_session_manager(request: Request) -> SessionManager:
    return request.app.state.session_manager

def get_account_locks(request: Request) -> AccountLocks:
    return request.app.state.account_locks

def get_overdraft_policy() -> bool:
    return settings.ALLOW_OVERDRAFT

def get_bearer_token(authorization: Optional[str] = Header(None)) -> str:
    if not authorization or not authorization.startswith("Bearer "):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return authorization.split(" ", 1)[1].strip()

def get_current_session(
    token: str = Depends(get_bearer_token),
    manager: SessionManager = Depends(get_session_manager),
) -> Session:
    try:
        UUID(token)
    except ValueError:
        logger.warning("Authorization header is not a session id")
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="invalid authorization")
    try:
        return manager.validate(token)
    except SessionExpiredError:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="session expired",
            headers={"WWW-Authenticate": "Bearer"},
        )
    except SessionNotFoundError:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="invalid authorization",
            headers={"WWW-Authenticate": "Bearer"},
        )


class LoginRequest(BaseModel):
    pin: str = Field(..., min_length=1)

class SessionResponse(BaseModel):
    session_id: str
    expires_at: datetime

class BalanceResponse(BaseModel):
    account_id: int
    balance: int

class AmountRequest(BaseModel):
    amount: StrictInt = Field(..., ge=0, le=MAX_AMOUNT)

class TransactionResponse(BaseModel):
    status: str = "ok"
    transaction_id: int
    balance: int

class TransactionItem(BaseModel):
    id: int
    kind: TransactionKind
    amount: int
    balance_after: int
    created_at: str


@router.post("/login", response_model=SessionResponse)
def login(
    payload: LoginRequest,
    response: Response,
    repo: SQLiteLedgerRepository = Depends(get_ledger_repo),
    manager: SessionManager = Depends(get_session_manager),
):
    try:
        account = ledger_use_cases.resolve_account(repo, payload.pin)
    except AuthenticationError:
        logger.warning("Login rejected: unknown PIN")
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="invalid pin")
    except StorageError:
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="failed to log in")

    manager.purge_expired()
    session = manager.create_session(account.id)
    response.headers["SessionID"] = session.id
    return SessionResponse(session_id=session.id, expires_at=session.expires_at)

@router.get("/balance", response_model=BalanceResponse)
def balance(
    session: Session = Depends(get_current_session),
    repo: SQLiteLedgerRepository = Depends(get_ledger_repo),
):
    try:
        value = ledger_use_cases.get_balance(repo, session.account_id)
    except AccountNotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
    except StorageError:
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="failed to get balance")
    return BalanceResponse(account_id=session.account_id, balance=value)


def _run_transaction(
    kind: TransactionKind,
    amount: int,
    session: Session,
    repo: SQLiteLedgerRepository,
    locks: AccountLocks,
    allow_overdraft: bool,
) -> TransactionResponse:
    try:
        tx: Transaction = ledger_use_cases.apply_transaction(
            repo, locks, session.account_id, kind, amount, allow_overdraft=allow_overdraft,
        )
    except MalformedInputError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    except InsufficientFundsError:
        raise HTTPException(status_code=status.HTTP_402_PAYMENT_REQUIRED, detail="Insufficient funds")
    except AccountNotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
    except StorageError:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"failed to perform {kind.value}",
        )
    return TransactionResponse(transaction_id=tx.id, balance=tx.balance_after)

@router.post("/deposit", response_model=TransactionResponse)
def deposit(
    payload: AmountRequest,
    session: Session = Depends(get_current_session),
    repo: SQLiteLedgerRepository = Depends(get_ledger_repo),
    locks: AccountLocks = Depends(get_account_locks),
    allow_overdraft: bool = Depends(get_overdraft_policy),
):
    return _run_transaction(TransactionKind.DEPOSIT, payload.amount, session, repo, locks, allow_overdraft)

@router.post("/withdraw", response_model=TransactionResponse)
def withdraw(
    payload: AmountRequest,
    session: Session = Depends(get_current_session),
    repo: SQLiteLedgerRepository = Depends(get_ledger_repo),
    locks: AccountLocks = Depends(get_account_locks),
    allow_overdraft: bool = Depends(get_overdraft_policy),
):
    return _run_transaction(TransactionKind.WITHDRAWAL, payload.amount, session, repo, locks, allow_overdraft)

@router.get("/transactions", response_model=List[TransactionItem])
def get_transactions(
    limit: int = 50,
    offset: int = 0,
    session: Session = Depends(get_current_session),
    repo: SQLiteLedgerRepository = Depends(get_ledger_repo),
):
    try:
        txs = ledger_use_cases.list_transactions(repo, session.account_id, limit=limit, offset=offset)
    except StorageError:
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="failed to list transactions")
    return [
        TransactionItem(
            id=tx.id,
            kind=tx.kind,
            amount=tx.amount,
            balance_after=tx.balance_after,
            created_at=tx.created_at,
        )
        for tx in txs
    ]
