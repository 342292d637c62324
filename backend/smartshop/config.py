# backend/smartshop/config.py
from __future__ import annotations
import os


def _env_flag(name: str, default: bool) -> bool:
    raw = os.environ.get(name)
    if raw is None:
        return default
    return raw.strip().lower() in {"1", "true", "yes", "on"}


class Config:
    # Optional "SECRET_KEY", with default dev key
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-secret-key-change-me")

    # SQLite DB stored in backend/instance/smartshop.sqlite3
    SQLALCHEMY_DATABASE_URI = os.environ.get(
        "DATABASE_URL", #optional alternative location
        "sqlite:///smartshop.sqlite3", #default local location
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # Shops without an explicit timezone use this for calendar-day windows
    DEFAULT_TIMEZONE = os.environ.get("DEFAULT_TIMEZONE", "UTC")

    # Off by default: stock is only changed by explicit stock updates
    DECREMENT_STOCK_ON_SALE = _env_flag("DECREMENT_STOCK_ON_SALE", False)

    ALLOW_SIGNUP = _env_flag("ALLOW_SIGNUP", True)

    # List caps
    SALES_LIST_LIMIT = int(os.environ.get("SALES_LIST_LIMIT", "100"))
    PRICE_HISTORY_LIMIT = int(os.environ.get("PRICE_HISTORY_LIMIT", "50"))
    DAILY_CLOSE_HISTORY_LIMIT = int(os.environ.get("DAILY_CLOSE_HISTORY_LIMIT", "30"))
    DEBT_TRANSACTION_LIMIT = int(os.environ.get("DEBT_TRANSACTION_LIMIT", "50"))

    SESSION_IDLE_TIMEOUT_MINUTES = int(os.environ.get("SESSION_IDLE_TIMEOUT_MINUTES", "120"))

    CORS_ALLOWED_ORIGINS = {
        origin.strip()
        for origin in os.environ.get(
            "CORS_ALLOWED_ORIGINS",
            "http://localhost:5173,http://127.0.0.1:5173,http://localhost:4173,http://127.0.0.1:4173",
        ).split(",")
        if origin.strip()
    }

    LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO").upper()
