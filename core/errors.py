class AtmError(Exception):
    """Base class for errors raised by the session and ledger layers."""


class AuthenticationError(AtmError):
    pass


class SessionError(AtmError):
    def __init__(self, session_id: str, message: str):
        super().__init__(message)
        self.session_id = session_id


class SessionNotFoundError(SessionError):
    def __init__(self, session_id: str):
        super().__init__(session_id, "Session not found")


class SessionExpiredError(SessionError):
    def __init__(self, session_id: str):
        super().__init__(session_id, "Session expired")


class AccountNotFoundError(AtmError):
    def __init__(self, account_id: int):
        super().__init__(f"Account {account_id} not found")
        self.account_id = account_id


class StorageError(AtmError):
    pass


class MalformedInputError(AtmError, ValueError):
    pass


class InsufficientFundsError(AtmError, ValueError):
    def __init__(self, account_id: int, balance: int, delta: int):
        super().__init__(f"Insufficient funds: balance {balance}, requested {-delta}")
        self.account_id = account_id
        self.balance = balance
        self.delta = delta
