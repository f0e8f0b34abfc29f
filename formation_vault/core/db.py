"""
SQLite foundation for the formation store.
Connection handling, table creation and health check.
"""

import sqlite3
from contextlib import contextmanager
from typing import Generator

from .config import ensure_db_directory, get_db_path

REQUIRED_TABLES = ['formations', 'formation_history', 'formation_metrics', 'access_grants', 'registry_state']


@contextmanager
def get_db(db_path: str = None) -> Generator[sqlite3.Connection, None, None]:
    """Get a SQLite database connection in autocommit mode.

    Transactions are opened explicitly by the store with BEGIN IMMEDIATE.
    """
    conn = sqlite3.connect(db_path or get_db_path(), timeout=30.0, isolation_level=None)
    try:
        conn.execute("PRAGMA busy_timeout=30000")
        yield conn
    finally:
        conn.close()


def init_db(db_path: str = None):
    """Initialize the database with required tables."""
    db_path = db_path or get_db_path()
    ensure_db_directory(db_path)

    with get_db(db_path) as conn:
        cursor = conn.cursor()

        # Both record spaces share this table; space is 'primary' or 'secondary'
        cursor.execute('''
            CREATE TABLE IF NOT EXISTS formations (
                space TEXT NOT NULL,
                id INTEGER NOT NULL,
                signature TEXT NOT NULL,
                owner TEXT NOT NULL,
                content_hash TEXT NOT NULL,
                metadata TEXT NOT NULL,
                cluster TEXT NOT NULL,
                resonance_tags TEXT NOT NULL,  -- JSON array
                created_at INTEGER NOT NULL,
                updated_at INTEGER NOT NULL,
                PRIMARY KEY (space, id)
            )
        ''')

        cursor.execute('''
            CREATE TABLE IF NOT EXISTS formation_history (
                formation_id INTEGER PRIMARY KEY,
                formation_count INTEGER NOT NULL DEFAULT 0,
                last_editor TEXT NOT NULL,
                origin_tag TEXT NOT NULL
            )
        ''')

        cursor.execute('''
            CREATE TABLE IF NOT EXISTS formation_metrics (
                formation_id INTEGER PRIMARY KEY,
                stability INTEGER NOT NULL,
                complexity INTEGER NOT NULL,
                pattern TEXT NOT NULL
            )
        ''')

        cursor.execute('''
            CREATE TABLE IF NOT EXISTS access_grants (
                formation_id INTEGER NOT NULL,
                entity TEXT NOT NULL,
                classification TEXT NOT NULL,
                granted_at INTEGER NOT NULL,
                expires_at INTEGER NOT NULL,
                can_modify BOOLEAN NOT NULL,
                PRIMARY KEY (formation_id, entity)
            )
        ''')

        # Single row holding the global counters
        cursor.execute('''
            CREATE TABLE IF NOT EXISTS registry_state (
                id INTEGER PRIMARY KEY CHECK (id = 1),
                sequence_tracker INTEGER NOT NULL DEFAULT 0,
                total_operations INTEGER NOT NULL DEFAULT 0,
                last_calibration INTEGER NOT NULL DEFAULT 0,
                flux_indicator BOOLEAN NOT NULL DEFAULT FALSE
            )
        ''')
        cursor.execute('INSERT OR IGNORE INTO registry_state (id) VALUES (1)')

        cursor.execute('CREATE INDEX IF NOT EXISTS idx_formations_owner ON formations(space, owner, id)')


def health_check(db_path: str = None):
    """Check database health."""
    try:
        with get_db(db_path) as conn:
            cursor = conn.cursor()
            cursor.execute("SELECT name FROM sqlite_master WHERE type='table';")
            table_names = [table[0] for table in cursor.fetchall()]

            return all(table in table_names for table in REQUIRED_TABLES)
    except sqlite3.Error:
        return False
