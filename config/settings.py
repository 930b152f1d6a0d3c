import os
from dataclasses import dataclass


def _env_bool(name: str, default: str) -> bool:
    return os.getenv(name, default).strip().lower() in {"1", "true", "yes", "on"}


@dataclass
class Settings:
    DB_PATH: str = os.getenv("DB_PATH", "./atm.db")
    DB_TIMEOUT_SECONDS: float = float(os.getenv("DB_TIMEOUT_SECONDS", "5"))

    SESSION_TTL_MINUTES: int = int(os.getenv("SESSION_TTL_MINUTES", "10"))
    SESSION_RENEW_THRESHOLD_SECONDS: int = int(os.getenv("SESSION_RENEW_THRESHOLD_SECONDS", "60"))

    # отрицательный баланс запрещён, если явно не разрешён
    ALLOW_OVERDRAFT: bool = _env_bool("ALLOW_OVERDRAFT", "false")

    LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO")
    HOST: str = os.getenv("HOST", "0.0.0.0")
    PORT: int = int(os.getenv("PORT", "8080"))

settings = Settings()
