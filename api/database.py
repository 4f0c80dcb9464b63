import os
import sqlite3
from contextlib import contextmanager

DB_PATH = os.environ.get("DB_PATH", "/data/whspr.db")

SCHEMA = """
CREATE TABLE IF NOT EXISTS users (
    id TEXT PRIMARY KEY,
    email TEXT NOT NULL UNIQUE,
    password_hash TEXT NOT NULL,
    created_at TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS tracks (
    id TEXT PRIMARY KEY,
    user_id TEXT REFERENCES users(id),
    path TEXT NOT NULL,
    duration_s REAL NOT NULL DEFAULT 0,
    size_bytes INTEGER NOT NULL DEFAULT 0,
    status TEXT NOT NULL DEFAULT 'processing',
    error_msg TEXT,
    created_at TEXT NOT NULL,
    updated_at TEXT NOT NULL
);

CREATE INDEX IF NOT EXISTS tracks_user_created ON tracks (user_id, created_at);
"""


DEFAULT_PRAGMAS = {
    "journal_mode": "WAL",
    "foreign_keys": "ON",
    "busy_timeout": 5000,
}


class Database:
    """SQLite connection factory shared by the repositories.

    One instance per process, created at startup. Connections are short-lived:
    every ``session()`` opens one, commits on success, rolls back on error.
    ``pragmas`` are applied to each new connection on top of the defaults.
    """

    def __init__(self, path: str | None = None, pragmas: dict | None = None):
        self.path = path or DB_PATH
        self.pragmas = {**DEFAULT_PRAGMAS, **(pragmas or {})}

    def get_connection(self) -> sqlite3.Connection:
        conn = sqlite3.connect(self.path, check_same_thread=False)
        conn.row_factory = sqlite3.Row
        for name, value in self.pragmas.items():
            conn.execute(f"PRAGMA {name}={value}")
        return conn

    @contextmanager
    def session(self):
        conn = self.get_connection()
        try:
            yield conn
            conn.commit()
        except Exception:
            conn.rollback()
            raise
        finally:
            conn.close()

    def init_db(self):
        parent = os.path.dirname(self.path)
        if parent:
            os.makedirs(parent, exist_ok=True)
        with self.session() as conn:
            conn.executescript(SCHEMA)
