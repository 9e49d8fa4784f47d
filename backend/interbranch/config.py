# backend/interbranch/config.py
from __future__ import annotations
import os


class Config:
    # Optional "SECRET_KEY", with default dev key
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-secret-key-change-me")

    # SQLite DB stored in backend/instance/interbranch.sqlite3
    SQLALCHEMY_DATABASE_URI = os.environ.get(
        "DATABASE_URL", #optional alternative location
        "sqlite:///interbranch.sqlite3", #default local location
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")

    # Applied when a credit creates the first inventory row for a branch
    DEFAULT_MIN_STOCK = int(os.environ.get("DEFAULT_MIN_STOCK", "5"))

    TRANSFER_PAGE_DEFAULT_LIMIT = 10
    TRANSFER_PAGE_MAX_LIMIT = 100

    # Roles that receive transfer notifications at a branch
    NOTIFY_ROLES = ("admin", "manager", "staff")

    DB_RETRY_ATTEMPTS = int(os.environ.get("DB_RETRY_ATTEMPTS", "3"))
    DB_RETRY_BACKOFF_SECONDS = float(os.environ.get("DB_RETRY_BACKOFF_SECONDS", "0.1"))

    # Per-subscriber buffer for branch broadcasts
    REALTIME_QUEUE_SIZE = 100
