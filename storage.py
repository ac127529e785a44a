from __future__ import annotations

import os
import sqlite3
from pathlib import Path

from models import Config


def _get_db_path() -> Path:
    """Get database path from environment variable or default location."""
    if env_path := os.environ.get("DAILYPROD_DB"):
        return Path(env_path)
    return Path(__file__).parent / "data" / "dailyprod.db"


DB_PATH = _get_db_path()


def get_connection() -> sqlite3.Connection:
    DB_PATH.parent.mkdir(parents=True, exist_ok=True)
    conn = sqlite3.connect(DB_PATH)
    conn.row_factory = sqlite3.Row
    return conn


def init_db():
    """Create tables if they don't exist."""
    conn = get_connection()
    conn.executescript("""
        CREATE TABLE IF NOT EXISTS config (
            key TEXT PRIMARY KEY,
            value TEXT NOT NULL
        );
    """)
    conn.commit()
    conn.close()


def get_token() -> str | None:
    """Bearer token for the API. Only ever read from the environment."""
    return os.environ.get("DAILYPROD_TOKEN") or None


def get_config() -> Config:
    """Load config from database."""
    conn = get_connection()
    rows = conn.execute("SELECT key, value FROM config").fetchall()
    conn.close()

    config = Config()
    for row in rows:
        if row["key"] == "api_base_url":
            config.api_base_url = row["value"]
        elif row["key"] == "request_timeout":
            config.request_timeout = float(row["value"])
        elif row["key"] == "last_month":
            config.last_month = int(row["value"])
        elif row["key"] == "last_year":
            config.last_year = int(row["value"])

    if env_url := os.environ.get("DAILYPROD_API_URL"):
        config.api_base_url = env_url
    return config


def save_config(config: Config):
    """Save config to database."""
    conn = get_connection()
    conn.execute("INSERT OR REPLACE INTO config (key, value) VALUES (?, ?)",
                 ("api_base_url", config.api_base_url))
    conn.execute("INSERT OR REPLACE INTO config (key, value) VALUES (?, ?)",
                 ("request_timeout", str(config.request_timeout)))
    if config.last_month is not None:
        conn.execute("INSERT OR REPLACE INTO config (key, value) VALUES (?, ?)",
                     ("last_month", str(config.last_month)))
    if config.last_year is not None:
        conn.execute("INSERT OR REPLACE INTO config (key, value) VALUES (?, ?)",
                     ("last_year", str(config.last_year)))
    conn.commit()
    conn.close()


def save_last_period(month: int, year: int):
    """Remember the selected month so the next start opens on it."""
    conn = get_connection()
    conn.execute("INSERT OR REPLACE INTO config (key, value) VALUES (?, ?)",
                 ("last_month", str(month)))
    conn.execute("INSERT OR REPLACE INTO config (key, value) VALUES (?, ?)",
                 ("last_year", str(year)))
    conn.commit()
    conn.close()
