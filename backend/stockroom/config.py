# backend/stockroom/config.py
from __future__ import annotations
import os


def _env_bool(name: str, default: bool) -> bool:
    value = os.environ.get(name)
    if value is None:
        return default
    return value.strip().lower() in {"1", "true", "yes", "on"}


class Config:
    # Optional "SECRET_KEY", with default dev key
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-secret-key-change-me")

    # SQLite DB stored in backend/instance/stockroom.sqlite3
    SQLALCHEMY_DATABASE_URI = os.environ.get(
        "DATABASE_URL", #optional alternative location
        "sqlite:///stockroom.sqlite3", #default local location
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # Order pricing. Totals are always recomputed server-side from these.
    ORDER_TAX_RATE = os.environ.get("ORDER_TAX_RATE", "0.08")
    ORDER_SHIPPING_FLAT = os.environ.get("ORDER_SHIPPING_FLAT", "10.00")

    DEFAULT_LOW_STOCK_THRESHOLD = int(os.environ.get("DEFAULT_LOW_STOCK_THRESHOLD", "10"))

    # Seed the default category set the first time the categories feed is empty
    SEED_DEFAULT_CATEGORIES = _env_bool("SEED_DEFAULT_CATEGORIES", True)

    # Bounded commit retries on transient database errors
    STORE_COMMIT_ATTEMPTS = int(os.environ.get("STORE_COMMIT_ATTEMPTS", "3"))
