# backend/stockledger/config.py
from __future__ import annotations
import os


class Config:
    # Optional "SECRET_KEY", with default dev key
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-secret-key-change-me")

    # SQLite DB stored next to the process by default; point DATABASE_URL at
    # PostgreSQL in any shared deployment (registers on several hosts).
    SQLALCHEMY_DATABASE_URI = os.environ.get(
        "DATABASE_URL",
        "sqlite:///stockledger.sqlite3",
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # Upper bound on how long one transaction may wait for a row/table lock.
    # Used as the SQLite busy timeout and the PostgreSQL statement/lock timeout.
    LEDGER_LOCK_TIMEOUT_SECONDS = float(os.environ.get("LEDGER_LOCK_TIMEOUT_SECONDS", "5"))

    # Optimistic-concurrency retry loop (stale version / lock contention)
    LEDGER_RETRY_ATTEMPTS = int(os.environ.get("LEDGER_RETRY_ATTEMPTS", "3"))
    LEDGER_RETRY_BACKOFF = float(os.environ.get("LEDGER_RETRY_BACKOFF", "0.1"))


def engine_options_for(uri: str, lock_timeout_seconds: float) -> dict:
    """
    Driver-level timeouts so a stuck lock fails the request instead of
    blocking other registers or transfers indefinitely.
    """
    if uri.startswith("sqlite"):
        return {"connect_args": {"timeout": lock_timeout_seconds}}
    if uri.startswith("postgresql"):
        ms = int(lock_timeout_seconds * 1000)
        return {"connect_args": {"options": f"-c statement_timeout={ms} -c lock_timeout={ms}"}}
    return {}
