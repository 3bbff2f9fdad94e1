"""
SQLite database connection and schema management.
"""

import sqlite3
from pathlib import Path
from typing import Optional

from finboard.errors import PersistenceError


class Database:
    """SQLite database connection manager."""

    def __init__(self, db_path: str, timeout: float = 5.0):
        """
        Initialize database connection.

        Args:
            db_path: Path to SQLite database file, or ":memory:" for in-memory DB.
            timeout: Seconds to wait on a locked database before giving up.
        """
        self.db_path = db_path
        self.timeout = timeout
        self._connection: Optional[sqlite3.Connection] = None
        self._connect()

    def _connect(self) -> None:
        """Establish database connection."""
        if self.db_path != ":memory:":
            # Ensure parent directory exists
            path = Path(self.db_path)
            path.parent.mkdir(parents=True, exist_ok=True)

        try:
            self._connection = sqlite3.connect(self.db_path, timeout=self.timeout)
        except sqlite3.Error as e:
            raise PersistenceError(f"Cannot open database {self.db_path}: {e}") from e
        self._connection.row_factory = sqlite3.Row
        # Enable foreign keys
        self._connection.execute("PRAGMA foreign_keys = ON")

    @property
    def connection(self) -> sqlite3.Connection:
        """Get the database connection."""
        if self._connection is None:
            raise sqlite3.ProgrammingError("Database connection is closed")
        return self._connection

    def initialize(self) -> None:
        """Create database schema if it doesn't exist."""
        cursor = self.connection.cursor()

        cursor.execute("""
            CREATE TABLE IF NOT EXISTS alerts (
                id TEXT PRIMARY KEY,
                symbol TEXT NOT NULL,
                alert_type TEXT NOT NULL,
                status TEXT NOT NULL DEFAULT 'active',
                title TEXT NOT NULL,
                description TEXT,
                target_value REAL,
                percentage_value REAL,
                timeframe TEXT NOT NULL DEFAULT 'daily',
                source TEXT NOT NULL DEFAULT 'user',
                snoozed_until TIMESTAMP,
                triggered_at TIMESTAMP,
                created_at TIMESTAMP NOT NULL
            )
        """)

        cursor.execute("""
            CREATE TABLE IF NOT EXISTS alert_triggers (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                alert_id TEXT NOT NULL,
                ticker TEXT NOT NULL,
                price REAL,
                triggered_at TIMESTAMP NOT NULL,
                evaluation_window_minutes INTEGER NOT NULL DEFAULT 60,
                outcome TEXT,
                pnl_after_window REAL,
                delivered_channels TEXT NOT NULL DEFAULT '[]',
                dismissed INTEGER NOT NULL DEFAULT 0,
                acknowledged_at TIMESTAMP,
                FOREIGN KEY (alert_id) REFERENCES alerts(id) ON DELETE CASCADE
            )
        """)

        cursor.execute("""
            CREATE TABLE IF NOT EXISTS notifications (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                kind TEXT NOT NULL,
                title TEXT,
                body TEXT,
                payload TEXT NOT NULL DEFAULT '{}',
                created_at TIMESTAMP NOT NULL,
                read_at TIMESTAMP
            )
        """)

        cursor.execute("""
            CREATE TABLE IF NOT EXISTS watchlists (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                name TEXT NOT NULL,
                description TEXT,
                is_default INTEGER NOT NULL DEFAULT 0,
                created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
            )
        """)

        cursor.execute("""
            CREATE TABLE IF NOT EXISTS watchlist_items (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                watchlist_id INTEGER NOT NULL,
                symbol TEXT NOT NULL,
                company_name TEXT,
                notes TEXT,
                added_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
                FOREIGN KEY (watchlist_id) REFERENCES watchlists(id) ON DELETE CASCADE,
                UNIQUE (watchlist_id, symbol)
            )
        """)

        # Create indexes for common queries
        cursor.execute("""
            CREATE INDEX IF NOT EXISTS idx_alerts_status ON alerts(status)
        """)
        cursor.execute("""
            CREATE INDEX IF NOT EXISTS idx_alerts_created ON alerts(created_at)
        """)
        cursor.execute("""
            CREATE INDEX IF NOT EXISTS idx_triggers_alert ON alert_triggers(alert_id)
        """)
        cursor.execute("""
            CREATE INDEX IF NOT EXISTS idx_watchlist_items_watchlist
            ON watchlist_items(watchlist_id)
        """)

        self.connection.commit()

    def close(self) -> None:
        """Close the database connection."""
        if self._connection:
            self._connection.close()
            self._connection = None
