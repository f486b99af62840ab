# backend/tracker/config.py
from __future__ import annotations
import os


class Config:
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-secret-key-change-me")

    # SQLite file next to the instance by default; any SQLAlchemy URL works
    SQLALCHEMY_DATABASE_URI = os.environ.get(
        "DATABASE_URL",
        "sqlite:///tracker.sqlite3",
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # Retries for lock timeouts and optimistic-locking conflicts
    TRACKER_RETRY_ATTEMPTS = int(os.environ.get("TRACKER_RETRY_ATTEMPTS", "3"))
    TRACKER_RETRY_BACKOFF = float(os.environ.get("TRACKER_RETRY_BACKOFF", "0.1"))

    TRACKER_SEARCH_LIMIT = 10
    TRACKER_RECENT_HISTORY_LIMIT = 50

    LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")
