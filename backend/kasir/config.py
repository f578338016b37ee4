# backend/kasir/config.py
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

    # SQLite DB stored in backend/instance/kasir.sqlite3
    SQLALCHEMY_DATABASE_URI = os.environ.get(
        "DATABASE_URL", #optional alternative location
        "sqlite:///kasir.sqlite3", #default local location
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO").upper()

    # Dashboard window, in days
    DASHBOARD_DEFAULT_PERIOD_DAYS = int(os.environ.get("DASHBOARD_DEFAULT_PERIOD_DAYS", "7"))
    DASHBOARD_MAX_PERIOD_DAYS = int(os.environ.get("DASHBOARD_MAX_PERIOD_DAYS", "366"))

    TRANSACTIONS_PAGE_SIZE = int(os.environ.get("TRANSACTIONS_PAGE_SIZE", "10"))
    TRANSACTIONS_MAX_PAGE_SIZE = int(os.environ.get("TRANSACTIONS_MAX_PAGE_SIZE", "100"))

    # Reject carts whose totals don't add up to their lines
    CHECKOUT_VERIFY_TOTALS = _env_bool("CHECKOUT_VERIFY_TOTALS", True)

    CORS_ALLOWED_ORIGINS = [
        origin.strip()
        for origin in os.environ.get(
            "CORS_ALLOWED_ORIGINS",
            "http://localhost:3000,http://127.0.0.1:3000,http://localhost:5173,http://127.0.0.1:5173",
        ).split(",")
        if origin.strip()
    ]
