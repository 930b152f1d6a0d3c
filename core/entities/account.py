from dataclasses import dataclass


@dataclass(frozen=True)
class Account:
    id: int
    balance: int
    created_at: str
