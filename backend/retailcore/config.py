# backend/retailcore/config.py
from __future__ import annotations
import os


def _env_bool(name: str, default: bool) -> bool:
    raw = os.environ.get(name)
    if raw is None:
        return default
    return raw.strip().lower() in {"1", "true", "yes", "on"}


class Config:
    # Optional "SECRET_KEY", with default dev key
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-secret-key-change-me")

    # SQLite DB stored in backend/instance/retailcore.sqlite3
    SQLALCHEMY_DATABASE_URI = os.environ.get(
        "DATABASE_URL", #optional alternative location
        "sqlite:///retailcore.sqlite3", #default local location
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # Connection pool bounds (ignored for SQLite, which uses a busy timeout instead)
    DB_POOL_SIZE = int(os.environ.get("DB_POOL_SIZE", "10"))
    DB_MAX_OVERFLOW = int(os.environ.get("DB_MAX_OVERFLOW", "0"))
    DB_POOL_TIMEOUT_SECONDS = float(os.environ.get("DB_POOL_TIMEOUT_SECONDS", "10"))
    SQLITE_BUSY_TIMEOUT_SECONDS = float(os.environ.get("SQLITE_BUSY_TIMEOUT_SECONDS", "5"))

    # Units of work older than this are rolled back at their next write or commit
    UNIT_OF_WORK_TIMEOUT_SECONDS = float(os.environ.get("UNIT_OF_WORK_TIMEOUT_SECONDS", "30"))

    STOCK_RETRY_ATTEMPTS = int(os.environ.get("STOCK_RETRY_ATTEMPTS", "3"))
    MEMBER_ID_RETRY_ATTEMPTS = int(os.environ.get("MEMBER_ID_RETRY_ATTEMPTS", "3"))
    RETRY_BACKOFF_SECONDS = float(os.environ.get("RETRY_BACKOFF_SECONDS", "0.05"))

    # When enabled, committing a sale also decrements stock in the same transaction
    SALE_COMMIT_DECREMENTS_STOCK = _env_bool("SALE_COMMIT_DECREMENTS_STOCK", False)

    LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")
